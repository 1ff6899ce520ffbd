# Overview: Request authentication and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .roles import AdminRole
from .services import session_service


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid session token.

    Sets g.current_admin to the authenticated Admin.

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid, expired or idle token
    - Admin account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if token is None:
            return jsonify({"error": "Authentication required"}), 401

        admin = session_service.validate_session(token)
        if admin is None:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_admin = admin
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: AdminRole):
    """Allow only admins whose role is one of ``roles``. Use after @require_auth."""
    allowed = frozenset(AdminRole(r) for r in roles)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            admin = getattr(g, "current_admin", None)
            if admin is None:
                return jsonify({"error": "Authentication required"}), 401

            if admin.admin_role not in allowed:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": sorted(r.value for r in allowed),
                }), 403

            return f(*args, **kwargs)

        return decorated_function

    return decorator
