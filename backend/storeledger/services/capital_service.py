from __future__ import annotations

from ..extensions import db
from ..errors import UnauthorizedError, ValidationError
from ..models import CapitalEntry
from ..roles import AdminRole
from ..validation import coerce_int
from storeledger.time_utils import utcnow

CAPITAL_INJECTION = "INJECTION"


def create_capital_entry(*, amount, actor, type: str | None = None, description: str | None = None) -> CapitalEntry:
    """Append a capital movement (super_admin only). Never touches stock."""
    if actor is None or actor.admin_role != AdminRole.SUPER_ADMIN:
        raise UnauthorizedError("Only super_admin can record capital entries")
    if amount is None or amount == "":
        raise ValidationError("Amount is required")
    amount = coerce_int("amount", amount)
    if amount == 0:
        raise ValidationError("Amount must be non-zero")

    entry = CapitalEntry(
        amount=amount,
        type=(type or CAPITAL_INJECTION).strip().upper(),
        description=(description or "").strip() or None,
        admin_id=actor.id,
        date=utcnow(),
    )
    db.session.add(entry)
    db.session.commit()
    return entry


def list_capital_entries() -> list[CapitalEntry]:
    return (
        db.session.query(CapitalEntry)
        .order_by(CapitalEntry.date.desc(), CapitalEntry.id.desc())
        .all()
    )
