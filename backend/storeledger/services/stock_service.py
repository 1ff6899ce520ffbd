# Overview: The stock mutator; the only code path that changes Product.quantity.

"""
Stock Mutator

adjust_stock() is the single write path for on-hand quantity. It never
commits: callers invoke it inside their own run_in_transaction() unit so
the quantity change and the ledger row that justifies it (order item,
procurement, wholesale item) persist together or not at all.

INVARIANTS:
- quantity + delta >= 0, checked against a locked row before writing
- in_stock = (new quantity > 0) after every change
- every change appends a StockMovement in the same transaction
- positive deltas only come from restocking reasons (procurement, manual
  adjustment) or from releasing a reservation back to stock
"""

from __future__ import annotations

from enum import Enum

from ..extensions import db
from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..models import Product, StockMovement
from storeledger.time_utils import utcnow
from .concurrency import lock_for_update


class StockReason(str, Enum):
    RETAIL_ORDER = "RETAIL_ORDER"
    RETAIL_ORDER_CANCELLED = "RETAIL_ORDER_CANCELLED"
    WHOLESALE_ORDER = "WHOLESALE_ORDER"
    WHOLESALE_ORDER_RELEASED = "WHOLESALE_ORDER_RELEASED"
    PROCUREMENT = "PROCUREMENT"
    MANUAL_ADJUSTMENT = "MANUAL_ADJUSTMENT"


INCREASE_REASONS = frozenset({
    StockReason.PROCUREMENT,
    StockReason.MANUAL_ADJUSTMENT,
    StockReason.RETAIL_ORDER_CANCELLED,
    StockReason.WHOLESALE_ORDER_RELEASED,
})

DECREASE_REASONS = frozenset({
    StockReason.RETAIL_ORDER,
    StockReason.WHOLESALE_ORDER,
    StockReason.MANUAL_ADJUSTMENT,
})


def get_product_for_update(product_id: int) -> Product:
    """Load a product with a row lock held until the transaction ends."""
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def ensure_available(product: Product, requested: int) -> None:
    """Raise InsufficientStockError unless ``requested`` units can be taken."""
    if not product.in_stock or product.quantity < requested:
        raise InsufficientStockError(
            product_name=product.name,
            requested=requested,
            available=product.quantity,
            product_id=product.id,
        )


def adjust_stock(
    product_id: int,
    delta: int,
    reason: StockReason,
    *,
    reference_type: str | None = None,
    reference_id: int | None = None,
    actor_admin_id: int | None = None,
) -> Product:
    """
    Apply ``delta`` to a product's on-hand quantity.

    Must run inside the caller's transaction; flushes but never commits.

    Raises:
        ValidationError: zero delta, or a delta whose sign the reason forbids
        NotFoundError: unknown product
        InsufficientStockError: delta would take quantity below zero
    """
    reason = StockReason(reason)

    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError("Stock delta must be an integer")
    if delta == 0:
        raise ValidationError("Stock delta must be non-zero")
    if delta > 0 and reason not in INCREASE_REASONS:
        raise ValidationError(f"{reason.value} cannot increase stock")
    if delta < 0 and reason not in DECREASE_REASONS:
        raise ValidationError(f"{reason.value} cannot decrease stock")

    product = get_product_for_update(product_id)

    new_quantity = product.quantity + delta
    if new_quantity < 0:
        raise InsufficientStockError(
            product_name=product.name,
            requested=-delta,
            available=product.quantity,
            product_id=product.id,
        )

    product.quantity = new_quantity
    product.in_stock = new_quantity > 0

    movement = StockMovement(
        product_id=product.id,
        delta=delta,
        quantity_after=new_quantity,
        reason=reason.value,
        reference_type=reference_type,
        reference_id=reference_id,
        actor_admin_id=actor_admin_id,
        occurred_at=utcnow(),
    )
    db.session.add(movement)
    db.session.flush()
    return product


def list_stock_movements(product_id: int, limit: int = 200) -> list[StockMovement]:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")

    return (
        db.session.query(StockMovement)
        .filter_by(product_id=product_id)
        .order_by(StockMovement.occurred_at.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )
