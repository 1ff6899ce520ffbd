from flask import Blueprint, request, g

from ..roles import AdminRole
from ..services import procurement_service
from ..decorators import require_auth, require_role

procurements_bp = Blueprint("procurements", __name__, url_prefix="/api/procurements")


@procurements_bp.get("")
@require_auth
@require_role(AdminRole.SUPER_ADMIN, AdminRole.EDITOR)
def list_procurements():
    procurements = procurement_service.list_procurements(
        product_id=request.args.get("product_id", type=int),
        supplier_id=request.args.get("supplier_id", type=int),
    )
    return {"items": [p.to_dict() for p in procurements], "count": len(procurements)}


@procurements_bp.post("")
@require_auth
@require_role(AdminRole.SUPER_ADMIN, AdminRole.EDITOR)
def create_procurement():
    """Record a supplier purchase; the product is restocked in the same transaction."""
    payload = request.get_json(silent=True) or {}
    procurement = procurement_service.create_procurement(
        supplier_id=payload.get("supplier_id"),
        product_id=payload.get("product_id"),
        quantity=payload.get("quantity_purchased"),
        unit_cost_price=payload.get("unit_cost_price"),
        purchase_date=payload.get("purchase_date"),
        actor=g.current_admin,
    )
    return procurement.to_dict(), 201
