# Overview: Flask API routes for wholesalers and their orders.

from flask import Blueprint, request, g

from ..roles import AdminRole
from ..services import wholesale_service
from ..decorators import require_auth, require_role

wholesalers_bp = Blueprint("wholesalers", __name__, url_prefix="/api/wholesalers")

MANAGERS = (AdminRole.SUPER_ADMIN, AdminRole.EDITOR)


@wholesalers_bp.get("")
@require_auth
@require_role(*MANAGERS)
def list_wholesalers():
    items = wholesale_service.list_wholesalers(search=request.args.get("search"))
    return {"items": items, "count": len(items)}


@wholesalers_bp.post("")
@require_auth
@require_role(*MANAGERS)
def create_wholesaler():
    payload = request.get_json(silent=True) or {}
    wholesaler = wholesale_service.create_wholesaler(
        name=payload.get("name"),
        phone=payload.get("phone"),
        email=payload.get("email"),
        address=payload.get("address"),
    )
    return wholesaler.to_dict(), 201


@wholesalers_bp.get("/orders")
@require_auth
@require_role(*MANAGERS)
def list_wholesale_orders():
    orders = wholesale_service.list_wholesale_orders()
    return {"items": [o.to_dict() for o in orders], "count": len(orders)}


@wholesalers_bp.get("/<int:wholesaler_id>")
@require_auth
@require_role(*MANAGERS)
def get_wholesaler(wholesaler_id: int):
    return wholesale_service.get_wholesaler_detail(wholesaler_id)


@wholesalers_bp.post("/<int:wholesaler_id>/orders")
@require_auth
@require_role(*MANAGERS)
def create_wholesale_order(wholesaler_id: int):
    """Body: items [{product_id, quantity, unit_price}], advance_amount."""
    payload = request.get_json(silent=True) or {}
    order = wholesale_service.create_wholesale_order(
        wholesaler_id,
        items=payload.get("items"),
        advance_amount=payload.get("advance_amount", 0),
        actor=g.current_admin,
    )
    return order.to_dict(), 201


@wholesalers_bp.get("/orders/<int:order_id>")
@require_auth
@require_role(*MANAGERS)
def get_wholesale_order(order_id: int):
    return wholesale_service.get_wholesale_order(order_id).to_dict()


@wholesalers_bp.put("/orders/<int:order_id>")
@require_auth
@require_role(*MANAGERS)
def replace_wholesale_order(order_id: int):
    payload = request.get_json(silent=True) or {}
    order = wholesale_service.replace_wholesale_order(
        order_id,
        items=payload.get("items"),
        advance_amount=payload.get("advance_amount"),
        actor=g.current_admin,
    )
    return order.to_dict()


@wholesalers_bp.patch("/orders/<int:order_id>")
@require_auth
@require_role(*MANAGERS)
def update_advance(order_id: int):
    payload = request.get_json(silent=True) or {}
    order = wholesale_service.update_advance(order_id, payload.get("advance_amount"))
    return order.to_dict()


@wholesalers_bp.delete("/orders/<int:order_id>")
@require_auth
@require_role(*MANAGERS)
def delete_wholesale_order(order_id: int):
    wholesale_service.delete_wholesale_order(order_id, actor=g.current_admin)
    return "", 204
