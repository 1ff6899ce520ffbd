# Overview: Retail order creation and the role-gated status state machine.

"""
Retail Order Lifecycle

create_order() runs as one transaction:
1. validate the cart and customer contact fields (before any locking)
2. lock every product in id order and check availability for the whole cart
3. upsert the customer by phone, allocate the order number, persist PENDING
   with unit prices and the total snapshotted from current product prices
4. decrement stock through the stock mutator
After commit, confirmation mails are dispatched best-effort.

set_order_status() authorizes against the role transition table in
storeledger.roles. Cancelling restores stock only when RESTOCK_ON_CANCEL is
enabled.
"""

from __future__ import annotations

from collections import OrderedDict

from flask import current_app

from ..extensions import db
from ..errors import ForbiddenError, NotFoundError, ValidationError
from ..models import Customer, Order, OrderItem
from ..roles import OrderStatus, RESTOCKABLE_STATUSES, can_transition, parse_order_status, visible_statuses
from ..validation import require_positive_int, validate_email, validate_phone, validate_text
from .concurrency import NUMBERING_RETRYABLE_ERRORS, lock_for_update, run_in_transaction
from .document_service import next_order_number
from .notification_service import dispatch_order_notifications
from .stock_service import StockReason, adjust_stock, ensure_available, get_product_for_update


def normalize_items(items) -> "OrderedDict[int, int]":
    """
    Validate cart lines and merge repeated products.

    Returns {product_id: quantity} in first-seen order.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("Your cart is empty")

    quantities: OrderedDict[int, int] = OrderedDict()
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{idx}] must be an object")
        product_id = require_positive_int(f"items[{idx}].product_id", item.get("product_id"))
        quantity = require_positive_int(f"items[{idx}].quantity", item.get("quantity"))
        quantities[product_id] = quantities.get(product_id, 0) + quantity
    return quantities


def validate_customer(customer: dict) -> dict:
    if not isinstance(customer, dict):
        raise ValidationError("Customer details are required")
    return {
        "name": validate_text("name", customer.get("name"), min_length=2, label="Full name"),
        "email": validate_email(customer.get("email")),
        "phone": validate_phone(customer.get("phone")),
        "city": validate_text("city", customer.get("city"), min_length=2, label="City"),
        "address": validate_text("address", customer.get("address"), min_length=5, label="Address"),
    }


def _upsert_customer(contact: dict) -> Customer:
    customer = db.session.query(Customer).filter_by(phone=contact["phone"]).first()
    if customer is None:
        customer = Customer(phone=contact["phone"])
        db.session.add(customer)
    customer.name = contact["name"]
    customer.email = contact["email"] or None
    customer.city = contact["city"]
    customer.address = contact["address"]
    db.session.flush()
    return customer


def create_order(*, items, customer: dict) -> Order:
    """
    Place a cash-on-delivery order.

    Raises:
        ValidationError: empty cart, bad quantities or contact fields
        NotFoundError: a product does not exist
        InsufficientStockError: a product cannot cover the requested quantity
    """
    quantities = normalize_items(items)
    contact = validate_customer(customer)

    def _op():
        # Lock in id order so concurrent carts cannot deadlock each other
        products = {pid: get_product_for_update(pid) for pid in sorted(quantities)}

        for pid, qty in quantities.items():
            ensure_available(products[pid], qty)

        cust = _upsert_customer(contact)

        order = Order(
            order_number=next_order_number(),
            customer_id=cust.id,
            customer_name=contact["name"],
            email=contact["email"] or None,
            phone=contact["phone"],
            city=contact["city"],
            address=contact["address"],
            total=sum(products[pid].price * qty for pid, qty in quantities.items()),
            status=OrderStatus.PENDING.value,
        )
        for pid, qty in quantities.items():
            order.items.append(OrderItem(product_id=pid, quantity=qty, price=products[pid].price))
        db.session.add(order)
        db.session.flush()

        for pid, qty in quantities.items():
            adjust_stock(
                pid,
                -qty,
                StockReason.RETAIL_ORDER,
                reference_type="ORDER",
                reference_id=order.id,
            )
        return order

    order = run_in_transaction(_op, retry_on=NUMBERING_RETRYABLE_ERRORS)
    dispatch_order_notifications(order)
    return order


def set_order_status(order_id: int, new_status, actor) -> Order:
    """
    Move a retail order to ``new_status`` if the actor's role allows it.

    Raises:
        ValidationError: unknown status
        NotFoundError: order does not exist
        ForbiddenError: transition not allowed for the role
    """
    try:
        target = parse_order_status(new_status)
    except ValueError as e:
        raise ValidationError(str(e))
    role = actor.admin_role

    def _op():
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if order is None:
            raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})

        current = OrderStatus(order.status)
        if not can_transition(role, current, target):
            raise ForbiddenError(
                f"Role {role.value} cannot change an order from {current.value} to {target.value}",
                details={"from": current.value, "to": target.value, "role": role.value},
            )
        if current == target:
            return order

        order.status = target.value

        if (
            target == OrderStatus.CANCELLED
            and current in RESTOCKABLE_STATUSES
            and current_app.config.get("RESTOCK_ON_CANCEL", False)
        ):
            for item in order.items:
                adjust_stock(
                    item.product_id,
                    item.quantity,
                    StockReason.RETAIL_ORDER_CANCELLED,
                    reference_type="ORDER",
                    reference_id=order.id,
                    actor_admin_id=actor.id,
                )

        db.session.flush()
        return order

    return run_in_transaction(_op)


def _visible_query(actor):
    query = db.session.query(Order)
    visible = visible_statuses(actor.admin_role)
    if visible is not None:
        query = query.filter(Order.status.in_([s.value for s in visible]))
    return query, visible


def list_orders(*, actor, status: str | None = None, city: str | None = None, phone: str | None = None) -> list[Order]:
    """
    Orders newest first.

    A magasinier only sees warehouse statuses; a status filter outside that
    set is ignored rather than widening the view.
    """
    query, visible = _visible_query(actor)

    if status:
        try:
            wanted = parse_order_status(status)
        except ValueError as e:
            raise ValidationError(str(e))
        if visible is None or wanted in visible:
            query = query.filter(Order.status == wanted.value)
    if city:
        query = query.filter(Order.city == city)
    if phone:
        query = query.filter(Order.phone == phone)

    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def get_order(order_id: int, *, actor) -> Order:
    query, _ = _visible_query(actor)
    order = query.filter(Order.id == order_id).first()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
    return order
