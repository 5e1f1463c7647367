# Overview: Flask API routes for user administration; parses input and returns JSON responses.

"""
User management routes.

SECURITY: All routes require authentication.
- Listing, creating, enabling/disabling and deleting require MANAGE_USERS / VIEW_USERS
- A user may read and edit their own profile (name, email)
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_permission, require_role
from ..models.auth import ROLE_OWNER
from ..errors import GestiComError
from ..services import activity_service, user_service
from .labels import ROLE_VALUES, USER_STATUS_VALUES, activity_json, error_response, from_label, user_json


users_bp = Blueprint("users", __name__, url_prefix="/api/usuarios")


def _parse_enabled(value: str | None) -> bool | None:
    if value is None or value == "":
        return None
    value = from_label(USER_STATUS_VALUES, value)
    if value in ("enabled", "true", "1"):
        return True
    if value in ("disabled", "false", "0"):
        return False
    return None


@users_bp.get("")
@require_auth
@require_permission("VIEW_USERS")
def list_users_route():
    """
    Query params:
    - search: matches name, email or RUT
    - rol: dueño | trabajador
    - estado: habilitado | deshabilitado
    """
    role = request.args.get("rol")
    users = user_service.list_users(
        search=request.args.get("search"),
        role=from_label(ROLE_VALUES, role) if role else None,
        enabled=_parse_enabled(request.args.get("estado")),
    )
    return jsonify([user_json(u) for u in users]), 200


@users_bp.get("/<int:user_id>")
@require_auth
def get_user_route(user_id: int):
    if not g.current_user.is_owner and g.current_user.id != user_id:
        return jsonify({"error": "Permission denied"}), 403
    try:
        user = user_service.get_user_or_404(user_id)
    except GestiComError as e:
        return error_response(e)
    return jsonify(user_json(user)), 200


@users_bp.post("")
@require_auth
@require_permission("MANAGE_USERS")
def create_user_route():
    data = request.get_json(silent=True) or {}
    try:
        user = user_service.create_user(
            name=data.get("nombre"),
            national_id=data.get("rut"),
            email=data.get("email"),
            password=data.get("password"),
            role=from_label(ROLE_VALUES, data.get("rol") or "trabajador"),
        )
    except GestiComError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500

    activity_service.log_activity(
        g.current_user.id, activity_service.ACTION_CREATE_USER, f"Created user {user.email}"
    )
    return jsonify({"message": "User created", "usuario": user_json(user)}), 201


@users_bp.put("/<int:user_id>")
@require_auth
def update_user_route(user_id: int):
    data = request.get_json(silent=True) or {}

    patch = {}
    if "nombre" in data:
        patch["name"] = data["nombre"]
    if "email" in data:
        patch["email"] = data["email"]
    if "rol" in data:
        patch["role"] = from_label(ROLE_VALUES, data["rol"])
    unknown = set(data) - {"nombre", "email", "rol"}
    if unknown:
        return jsonify({"error": f"Field not allowed: {sorted(unknown)[0]}"}), 400

    try:
        user = user_service.update_user(actor=g.current_user, user_id=user_id, patch=patch)
    except GestiComError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Internal server error"}), 500

    activity_service.log_activity(
        g.current_user.id, activity_service.ACTION_UPDATE_USER, f"Updated user {user.id}"
    )
    return jsonify({"message": "User updated", "usuario": user_json(user)}), 200


@users_bp.put("/<int:user_id>/toggle-status")
@require_auth
@require_permission("MANAGE_USERS")
def toggle_status_route(user_id: int):
    try:
        user = user_service.toggle_status(actor=g.current_user, user_id=user_id)
    except GestiComError as e:
        return error_response(e)

    action = (
        activity_service.ACTION_ACTIVATE_USER if user.is_enabled else activity_service.ACTION_DEACTIVATE_USER
    )
    activity_service.log_activity(g.current_user.id, action, f"User {user.id} -> {user.status}")
    return jsonify({"message": "Status updated", "usuario": user_json(user)}), 200


@users_bp.delete("/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def delete_user_route(user_id: int):
    try:
        user = user_service.delete_user(actor=g.current_user, user_id=user_id)
    except GestiComError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete user")
        return jsonify({"error": "Internal server error"}), 500

    activity_service.log_activity(
        g.current_user.id, activity_service.ACTION_DELETE_USER, f"Deleted user {user_id} ({user.email})"
    )
    return jsonify({"message": "User deleted"}), 200


@users_bp.get("/actividad")
@require_auth
@require_role(ROLE_OWNER)
def activity_route():
    """
    Activity trail (logins, user changes, sales and voids).

    Query params:
    - usuario_id: restrict to one user
    - limit: default 50, max 200
    """
    limit = min(request.args.get("limit", default=50, type=int) or 50, 200)
    entries = activity_service.recent_activity(
        user_id=request.args.get("usuario_id", type=int),
        limit=limit,
    )
    return jsonify([activity_json(e) for e in entries]), 200
