# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

- Login by email and password returns a signed access token
- Self-registration does not exist; owners create users (see users.py)
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import activity_service, auth_service, token_service
from ..services.auth_service import AccountDisabledError, AuthenticationError, PasswordValidationError
from ..decorators import require_auth
from .labels import user_json


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and issue an access token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not email or not password:
            return jsonify({"error": "email and password required"}), 400

        try:
            user = auth_service.authenticate(email, password)
        except AccountDisabledError as e:
            return jsonify({"error": str(e)}), 401
        except AuthenticationError:
            return jsonify({"error": "Invalid credentials"}), 401

        token = token_service.create_access_token(user.id, user.role)
        activity_service.log_activity(user.id, activity_service.ACTION_LOGIN, "Login")

        return jsonify({
            "message": "Login successful",
            "token": token,
            "usuario": user_json(user),
        }), 200

    except Exception:
        current_app.logger.exception("Login failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Tokens are stateless; logout is recorded for the activity trail and the client drops the token."""
    activity_service.log_activity(g.current_user.id, activity_service.ACTION_LOGOUT, "Logout")
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"usuario": user_json(g.current_user)}), 200


@auth_bp.put("/change-password")
@require_auth
def change_password_route():
    data = request.get_json(silent=True) or {}
    current_password = data.get("current_password") or data.get("password_actual")
    new_password = data.get("new_password") or data.get("password_nueva")

    if not current_password or not new_password:
        return jsonify({"error": "current_password and new_password required"}), 400

    try:
        auth_service.change_password(g.current_user, current_password, new_password)
    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except AuthenticationError as e:
        return jsonify({"error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed to change password")
        return jsonify({"error": "Internal server error"}), 500

    activity_service.log_activity(g.current_user.id, activity_service.ACTION_CHANGE_PASSWORD, "Password changed")
    return jsonify({"message": "Password updated"}), 200
