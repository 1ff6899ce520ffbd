# Overview: Wholesalers and wholesale orders, with stock reserved per item.

"""
Wholesale Order Lifecycle

Every item of a wholesale order holds its quantity out of stock:
- create: check and decrement every item
- replace: release every old item, then check and decrement every new item
- delete: release every item, then delete the order

Each of these runs as one transaction, so a failed check on a new item
leaves the original reservation exactly as it was.

total_amount is recomputed from the items on every write and status is
derived from (total_amount, advance_amount); neither is set by callers.
"""

from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import WholesaleOrder, WholesaleOrderItem, Wholesaler
from ..roles import WholesaleStatus
from ..validation import require_non_negative_int, require_positive_int, validate_text
from .concurrency import NUMBERING_RETRYABLE_ERRORS, lock_for_update, run_in_transaction
from .document_service import next_wholesale_order_number
from .stock_service import StockReason, adjust_stock, ensure_available, get_product_for_update


def derive_status(total_amount: int, advance_amount: int) -> WholesaleStatus:
    return WholesaleStatus.PAID if total_amount - advance_amount <= 0 else WholesaleStatus.PENDING


# -- wholesalers ---------------------------------------------------------------

def create_wholesaler(*, name, phone, email=None, address=None) -> Wholesaler:
    name = validate_text("name", name, min_length=1, label="Name")
    phone = str(phone or "").strip()
    if not phone:
        raise ValidationError("Name and phone are required")

    if db.session.query(Wholesaler).filter_by(phone=phone).first():
        raise ConflictError("Phone number already exists", details={"phone": phone})

    wholesaler = Wholesaler(
        name=name,
        phone=phone,
        email=(email or "").strip() or None,
        address=(address or "").strip() or None,
    )
    db.session.add(wholesaler)
    db.session.commit()
    return wholesaler


def list_wholesalers(search: str | None = None) -> list[dict]:
    """Wholesalers by name with their order counts; search matches name or phone."""
    query = (
        db.session.query(Wholesaler, func.count(WholesaleOrder.id))
        .outerjoin(WholesaleOrder, WholesaleOrder.wholesaler_id == Wholesaler.id)
        .group_by(Wholesaler.id)
    )
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Wholesaler.name.ilike(pattern), Wholesaler.phone.ilike(pattern)))

    items = []
    for wholesaler, count in query.order_by(Wholesaler.name.asc(), Wholesaler.id.asc()).all():
        data = wholesaler.to_dict()
        data["orders_count"] = int(count or 0)
        items.append(data)
    return items


def get_wholesaler(wholesaler_id: int) -> Wholesaler:
    wholesaler = db.session.get(Wholesaler, wholesaler_id)
    if wholesaler is None:
        raise NotFoundError(f"Wholesaler {wholesaler_id} not found", details={"wholesaler_id": wholesaler_id})
    return wholesaler


def get_wholesaler_detail(wholesaler_id: int) -> dict:
    wholesaler = get_wholesaler(wholesaler_id)
    data = wholesaler.to_dict()
    data["orders"] = [o.to_dict() for o in wholesaler.orders]
    return data


# -- wholesale orders ----------------------------------------------------------

def normalize_wholesale_items(items) -> list[dict]:
    """Validate item lines: positive integer quantity, non-negative integer unit price."""
    if not isinstance(items, list) or not items:
        raise ValidationError("Items are required")

    normalized = []
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{idx}] must be an object")
        normalized.append({
            "product_id": require_positive_int(f"items[{idx}].product_id", item.get("product_id")),
            "quantity": require_positive_int(f"items[{idx}].quantity", item.get("quantity")),
            "unit_price": require_non_negative_int(f"items[{idx}].unit_price", item.get("unit_price")),
        })
    return normalized


def _reserve_items(order: WholesaleOrder, items: list[dict], actor_admin_id: int | None) -> int:
    """Check, decrement and attach items; returns the new total amount."""
    # Lock in id order, then check each product against its combined demand
    demand: dict[int, int] = {}
    for item in items:
        demand[item["product_id"]] = demand.get(item["product_id"], 0) + item["quantity"]
    products = {pid: get_product_for_update(pid) for pid in sorted(demand)}
    for pid, qty in demand.items():
        ensure_available(products[pid], qty)

    total = 0
    for item in items:
        order.items.append(WholesaleOrderItem(
            product_id=item["product_id"],
            quantity=item["quantity"],
            unit_price=item["unit_price"],
        ))
        total += item["quantity"] * item["unit_price"]
    db.session.flush()

    for pid, qty in demand.items():
        adjust_stock(
            pid,
            -qty,
            StockReason.WHOLESALE_ORDER,
            reference_type="WHOLESALE_ORDER",
            reference_id=order.id,
            actor_admin_id=actor_admin_id,
        )
    return total


def _release_items(order: WholesaleOrder, actor_admin_id: int | None) -> None:
    """Return every reserved unit of ``order`` to stock."""
    released: dict[int, int] = {}
    for item in order.items:
        released[item.product_id] = released.get(item.product_id, 0) + item.quantity

    for pid in sorted(released):
        adjust_stock(
            pid,
            released[pid],
            StockReason.WHOLESALE_ORDER_RELEASED,
            reference_type="WHOLESALE_ORDER",
            reference_id=order.id,
            actor_admin_id=actor_admin_id,
        )


def _get_order_for_update(order_id: int) -> WholesaleOrder:
    order = lock_for_update(db.session.query(WholesaleOrder).filter_by(id=order_id)).first()
    if order is None:
        raise NotFoundError(f"Wholesale order {order_id} not found", details={"order_id": order_id})
    return order


def _apply_totals(order: WholesaleOrder, total_amount: int, advance_amount: int) -> None:
    order.total_amount = total_amount
    order.advance_amount = advance_amount
    order.status = derive_status(total_amount, advance_amount).value


def create_wholesale_order(wholesaler_id: int, *, items, advance_amount=0, actor=None) -> WholesaleOrder:
    """
    Raises:
        ValidationError: bad items or advance
        NotFoundError: unknown wholesaler or product
        InsufficientStockError: an item exceeds available stock
    """
    items = normalize_wholesale_items(items)
    advance = require_non_negative_int("advance_amount", advance_amount if advance_amount is not None else 0)
    actor_id = actor.id if actor is not None else None

    def _op():
        wholesaler = get_wholesaler(wholesaler_id)

        order = WholesaleOrder(
            wholesaler_id=wholesaler.id,
            order_number=next_wholesale_order_number(),
            created_by_admin_id=actor_id,
            total_amount=0,
            advance_amount=advance,
            status=WholesaleStatus.PENDING.value,
        )
        db.session.add(order)
        db.session.flush()

        total = _reserve_items(order, items, actor_id)
        _apply_totals(order, total, advance)
        db.session.flush()
        return order

    return run_in_transaction(_op, retry_on=NUMBERING_RETRYABLE_ERRORS)


def replace_wholesale_order(order_id: int, *, items, advance_amount=None, actor=None) -> WholesaleOrder:
    """
    Replace an order's item set: release old items, then reserve the new ones.

    When advance_amount is omitted the current advance is kept. Any failure
    rolls back the whole replacement.
    """
    items = normalize_wholesale_items(items)
    advance = None
    if advance_amount is not None:
        advance = require_non_negative_int("advance_amount", advance_amount)
    actor_id = actor.id if actor is not None else None

    def _op():
        order = _get_order_for_update(order_id)

        _release_items(order, actor_id)
        for item in list(order.items):
            order.items.remove(item)
        db.session.flush()

        total = _reserve_items(order, items, actor_id)
        _apply_totals(order, total, order.advance_amount if advance is None else advance)
        db.session.flush()
        return order

    return run_in_transaction(_op)


def delete_wholesale_order(order_id: int, *, actor=None) -> None:
    """Release every reserved unit, then delete the order and its items."""
    actor_id = actor.id if actor is not None else None

    def _op():
        order = _get_order_for_update(order_id)
        _release_items(order, actor_id)
        db.session.delete(order)

    run_in_transaction(_op)


def update_advance(order_id: int, advance_amount) -> WholesaleOrder:
    """Change the advance and re-derive status. Stock is untouched."""
    if advance_amount is None or advance_amount == "":
        raise ValidationError("Advance amount required")
    advance = require_non_negative_int("advance_amount", advance_amount)

    def _op():
        order = _get_order_for_update(order_id)
        _apply_totals(order, order.total_amount, advance)
        db.session.flush()
        return order

    return run_in_transaction(_op)


def get_wholesale_order(order_id: int) -> WholesaleOrder:
    order = db.session.get(WholesaleOrder, order_id)
    if order is None:
        raise NotFoundError(f"Wholesale order {order_id} not found", details={"order_id": order_id})
    return order


def list_wholesale_orders() -> list[WholesaleOrder]:
    return (
        db.session.query(WholesaleOrder)
        .order_by(WholesaleOrder.created_at.desc(), WholesaleOrder.id.desc())
        .all()
    )
