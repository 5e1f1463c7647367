# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .extensions import db
from .models import User
from .permissions import role_has_permission
from .services.token_service import TokenError, decode_access_token


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def require_auth(f):
    """
    Require a valid bearer token and load the acting user.

    Sets:
    - g.current_user: The authenticated User object
    - g.token_claims: The decoded TokenClaims

    SECURITY: Returns 401 if:
    - No Authorization header
    - Invalid or expired token
    - User no longer exists or account disabled
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]

        try:
            claims = decode_access_token(token)
        except TokenError:
            return jsonify({"error": "Invalid or expired token"}), 401

        # Reload so role and status changes apply without re-login
        user = db.session.get(User, claims.user_id)
        if user is None:
            return jsonify({"error": "Invalid or expired token"}), 401
        if not user.is_enabled:
            return jsonify({"error": "Account disabled"}), 401

        g.current_user = user
        g.token_claims = claims

        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """Require a permission granted by the caller's role."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if not role_has_permission(g.current_user.role, permission_code):
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": permission_code,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_role(*roles: str):
    """Require the caller to hold one of the given roles."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if g.current_user.role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
