from flask import Blueprint, request

from ..roles import AdminRole
from ..services import category_service
from ..decorators import require_auth, require_role

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
def list_categories():
    """Public listing; ?all=true includes inactive categories."""
    include_inactive = request.args.get("all", "false").lower() == "true"
    categories = category_service.list_categories(include_inactive=include_inactive)
    return {"items": [c.to_dict() for c in categories], "count": len(categories)}


@categories_bp.post("")
@require_auth
@require_role(AdminRole.SUPER_ADMIN, AdminRole.EDITOR)
def create_category():
    payload = request.get_json(silent=True) or {}
    category = category_service.create_category(
        name=payload.get("name"),
        slug=payload.get("slug"),
        active=payload.get("active", True),
    )
    return category.to_dict(), 201
