# Overview: Sequential human-readable order numbers.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import DocumentSequence
from storeledger.time_utils import utcnow


def next_sequence_value(document_type: str) -> int:
    """
    Allocate the next number for ``document_type`` inside the caller's
    transaction.

    The increment is a single UPDATE, so the row stays write-locked until
    the caller commits and two concurrent orders cannot draw the same
    number. The first allocation for a type inserts the row; a concurrent
    first insert fails on the unique key with IntegrityError, so callers
    run under NUMBERING_RETRYABLE_ERRORS and retry on a fresh transaction.
    """
    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type)
            .scalar()
        )
        return current - 1

    db.session.add(DocumentSequence(document_type=document_type, next_number=2))
    db.session.flush()
    return 1


def next_order_number() -> str:
    """Retail order number, e.g. ORD-000042."""
    return f"ORD-{next_sequence_value('ORDER'):06d}"


def next_wholesale_order_number(year: int | None = None) -> str:
    """Wholesale order number with a yearly counter, e.g. WO-2026-0007."""
    year = year or utcnow().year
    return f"WO-{year}-{next_sequence_value(f'WHOLESALE_ORDER:{year}'):04d}"
