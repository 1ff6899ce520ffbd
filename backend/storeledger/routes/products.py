# Overview: Flask API routes for the product catalogue and cost correction.

"""
Product routes.

Listing and detail are public. Writes require super_admin or editor; the
service layer applies the finer rules (quantity increases are super_admin
only with password re-authentication).
"""
from flask import Blueprint, request, g

from ..models import Product
from ..roles import AdminRole
from ..services import products_service, procurement_service, stock_service
from ..validation import ModelValidationPolicy, validate_payload
from ..decorators import require_auth, require_role

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "category_id", "name", "description", "price", "original_price", "badge",
        "quantity", "in_stock",
    },
    required_on_create={"category_id", "name", "price"},
)

# Request fields that are not product columns
ACTION_FIELDS = ("supplier_id", "unit_cost_price", "password")

products_bp = Blueprint("products", __name__, url_prefix="/api/products")

MANAGERS = (AdminRole.SUPER_ADMIN, AdminRole.EDITOR)


def _split_payload(payload: dict) -> tuple[dict, dict]:
    payload = dict(payload)
    extras = {k: payload.pop(k, None) for k in ACTION_FIELDS}
    return payload, extras


@products_bp.get("")
def list_products():
    """
    Query params:
    - category_id: int (optional)
    - in_stock: true/false (optional)
    - search: str (optional) - matches product name
    - page / per_page: int (optional) - pagination (per_page max 100)
    """
    in_stock_arg = request.args.get("in_stock")
    in_stock = None if in_stock_arg is None else in_stock_arg.lower() == "true"

    return products_service.list_products(
        category_id=request.args.get("category_id", type=int),
        in_stock=in_stock,
        search=request.args.get("search"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )


@products_bp.get("/<int:product_id>")
def get_product(product_id: int):
    product = products_service.get_product(product_id)
    return products_service.serialize_product(product)


@products_bp.post("")
@require_auth
@require_role(*MANAGERS)
def create_product_route():
    """Create a product; supplier_id and unit_cost_price are required."""
    payload, extras = _split_payload(request.get_json(silent=True) or {})
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)

    created = products_service.create_product(
        patch=patch,
        supplier_id=extras["supplier_id"],
        unit_cost_price=extras["unit_cost_price"],
        actor=g.current_admin,
    )
    return created, 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_role(*MANAGERS)
def update_product_route(product_id: int):
    """
    Update a product. A ``quantity`` is applied as a stock change; increases
    need ``password`` and may carry ``supplier_id`` + ``unit_cost_price``.
    """
    payload, extras = _split_payload(request.get_json(silent=True) or {})
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)

    return products_service.update_product(
        product_id,
        patch=patch,
        actor=g.current_admin,
        password=extras["password"],
        supplier_id=extras["supplier_id"],
        unit_cost_price=extras["unit_cost_price"],
    )


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role(*MANAGERS)
def delete_product_route(product_id: int):
    products_service.delete_product(product_id)
    return {"ok": True}, 200


@products_bp.post("/<int:product_id>/adjust-cost")
@require_auth
@require_role(*MANAGERS)
def adjust_cost_route(product_id: int):
    """Body: unit_cost_price, password, optional supplier_id."""
    payload = request.get_json(silent=True) or {}
    procurement = procurement_service.adjust_cost(
        product_id,
        new_unit_cost=payload.get("unit_cost_price"),
        actor=g.current_admin,
        password=payload.get("password"),
        supplier_id=payload.get("supplier_id"),
    )
    product = products_service.get_product(product_id)
    return {
        "procurement": procurement.to_dict(),
        "product": products_service.serialize_product(product),
    }


@products_bp.get("/<int:product_id>/stock-movements")
@require_auth
@require_role(*MANAGERS)
def stock_movements_route(product_id: int):
    limit = min(request.args.get("limit", default=200, type=int), 1000)
    movements = stock_service.list_stock_movements(product_id, limit=limit)
    return {"items": [m.to_dict() for m in movements], "count": len(movements)}


@products_bp.get("/<int:product_id>/cost-corrections")
@require_auth
@require_role(*MANAGERS)
def cost_corrections_route(product_id: int):
    products_service.get_product(product_id)
    corrections = procurement_service.list_cost_corrections(product_id)
    return {"items": [c.to_dict() for c in corrections], "count": len(corrections)}
