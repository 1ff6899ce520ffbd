from flask import Blueprint

from ..roles import CUSTOMER_READERS
from ..services import customer_service
from ..decorators import require_auth, require_role

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_role(*CUSTOMER_READERS)
def list_customers():
    items = customer_service.list_customers()
    return {"items": items, "count": len(items)}


@customers_bp.get("/<phone>/orders")
@require_auth
@require_role(*CUSTOMER_READERS)
def list_customer_orders(phone: str):
    orders = customer_service.list_customer_orders(phone)
    return {"items": [o.to_dict() for o in orders], "count": len(orders)}
