# Overview: Flask API routes for retail orders.

"""
Retail order routes.

POST /api/orders is the public checkout. Reads are open to every admin role
(a magasinier only sees warehouse statuses); status changes are checked
against the role transition table by the service.
"""
from flask import Blueprint, request, g

from ..roles import ORDER_READERS, ORDER_STATUS_WRITERS
from ..services import order_service
from ..decorators import require_auth, require_role

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
def create_order_route():
    """
    Body:
    - items: [{product_id, quantity}, ...]
    - customer_name, email, phone, city, address
    """
    payload = request.get_json(silent=True) or {}
    order = order_service.create_order(
        items=payload.get("items"),
        customer={
            "name": payload.get("customer_name"),
            "email": payload.get("email"),
            "phone": payload.get("phone"),
            "city": payload.get("city"),
            "address": payload.get("address"),
        },
    )
    return order.to_dict(), 201


@orders_bp.get("")
@require_auth
@require_role(*ORDER_READERS)
def list_orders_route():
    orders = order_service.list_orders(
        actor=g.current_admin,
        status=request.args.get("status"),
        city=request.args.get("city"),
        phone=request.args.get("phone"),
    )
    return {"items": [o.to_dict() for o in orders], "count": len(orders)}


@orders_bp.get("/<int:order_id>")
@require_auth
@require_role(*ORDER_READERS)
def get_order_route(order_id: int):
    return order_service.get_order(order_id, actor=g.current_admin).to_dict()


@orders_bp.patch("/<int:order_id>/status")
@require_auth
@require_role(*ORDER_STATUS_WRITERS)
def set_order_status_route(order_id: int):
    payload = request.get_json(silent=True) or {}
    order = order_service.set_order_status(order_id, payload.get("status"), g.current_admin)
    return order.to_dict()
