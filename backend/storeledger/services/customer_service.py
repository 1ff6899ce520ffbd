from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Customer, Order
from storeledger.time_utils import to_utc_z


def list_customers() -> list[dict]:
    """Customers with order count, total spent and last order date, biggest spenders first."""
    rows = (
        db.session.query(
            Customer,
            func.count(Order.id).label("orders_count"),
            func.coalesce(func.sum(Order.total), 0).label("total_spent"),
            func.max(Order.created_at).label("last_order_date"),
        )
        .outerjoin(Order, Order.customer_id == Customer.id)
        .group_by(Customer.id)
        .all()
    )

    items = []
    for customer, orders_count, total_spent, last_order_date in rows:
        data = customer.to_dict()
        data["orders_count"] = int(orders_count or 0)
        data["total_spent"] = int(total_spent or 0)
        data["last_order_date"] = to_utc_z(last_order_date) if last_order_date else None
        items.append(data)

    items.sort(key=lambda c: (-c["total_spent"], c["name"]))
    return items


def list_customer_orders(phone: str) -> list[Order]:
    """All orders placed with this phone number, newest first."""
    return (
        db.session.query(Order)
        .filter(Order.phone == phone)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
