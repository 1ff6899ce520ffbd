from flask import Blueprint, request

from ..models import Supplier
from ..roles import AdminRole
from ..services import supplier_service
from ..validation import ModelValidationPolicy, validate_payload
from ..decorators import require_auth, require_role

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "city", "notes"},
    required_on_create={"name", "phone"},
)

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")

MANAGERS = (AdminRole.SUPER_ADMIN, AdminRole.EDITOR)


@suppliers_bp.get("")
@require_auth
@require_role(*MANAGERS)
def list_suppliers():
    items = supplier_service.list_suppliers()
    return {"items": items, "count": len(items)}


@suppliers_bp.get("/<int:supplier_id>")
@require_auth
@require_role(*MANAGERS)
def get_supplier(supplier_id: int):
    return supplier_service.get_supplier(supplier_id)


@suppliers_bp.post("")
@require_auth
@require_role(*MANAGERS)
def create_supplier():
    payload = request.get_json(silent=True) or {}
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)
    return supplier_service.create_supplier(patch=patch).to_dict(), 201


@suppliers_bp.put("/<int:supplier_id>")
@require_auth
@require_role(*MANAGERS)
def update_supplier(supplier_id: int):
    payload = request.get_json(silent=True) or {}
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=True)
    return supplier_service.update_supplier(supplier_id, patch=patch).to_dict()


@suppliers_bp.delete("/<int:supplier_id>")
@require_auth
@require_role(*MANAGERS)
def delete_supplier(supplier_id: int):
    supplier_service.delete_supplier(supplier_id)
    return {"ok": True}, 200
