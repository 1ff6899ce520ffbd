from flask import Blueprint, request, g

from ..roles import AdminRole
from ..services import capital_service
from ..decorators import require_auth, require_role

capital_bp = Blueprint("capital", __name__, url_prefix="/api/capital")


@capital_bp.get("")
@require_auth
@require_role(AdminRole.SUPER_ADMIN, AdminRole.EDITOR)
def list_capital_entries():
    entries = capital_service.list_capital_entries()
    return {"items": [e.to_dict() for e in entries], "count": len(entries)}


@capital_bp.post("")
@require_auth
@require_role(AdminRole.SUPER_ADMIN)
def create_capital_entry():
    payload = request.get_json(silent=True) or {}
    entry = capital_service.create_capital_entry(
        amount=payload.get("amount"),
        type=payload.get("type"),
        description=payload.get("description"),
        actor=g.current_admin,
    )
    return entry.to_dict(), 201
