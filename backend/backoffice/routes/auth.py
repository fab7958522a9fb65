# Overview: Flask API routes for auth operations; sign-in, sign-out, current user and user administration.

"""
Authentication API routes

- POST /api/auth/login    email + password -> session token
- POST /api/auth/logout   revokes the presented token
- GET  /api/auth/me       current user
- /api/auth/users         admin-only account management
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_admin, require_auth
from ..services import auth_service, session_service
from .common import DOMAIN_ERRORS, error_response, json_body

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included as `Authorization: Bearer <token>` on protected routes.
    """
    try:
        data = json_body()
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        current_app.logger.info("User %s signed in", user.email)

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "expires_at": session.expires_at.isoformat(),
        }), 200

    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Login failed")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.session_token)
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"user": g.current_user.to_dict()}), 200


@auth_bp.get("/users")
@require_auth
@require_admin
def list_users_route():
    users = auth_service.list_users()
    return jsonify({"items": [u.to_dict() for u in users], "count": len(users)}), 200


@auth_bp.post("/users")
@require_auth
@require_admin
def create_user_route():
    try:
        data = json_body()
        user = auth_service.create_user(
            data.get("email"),
            data.get("password"),
            full_name=data.get("full_name"),
            role=data.get("role") or "cashier",
        )
        return jsonify({"user": user.to_dict()}), 201
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.patch("/users/<int:user_id>")
@require_auth
@require_admin
def update_user_route(user_id: int):
    try:
        data = json_body()
        allowed = {"full_name", "role", "is_active", "password"}
        unknown = set(data) - allowed
        if unknown:
            return jsonify({"error": f"Field not allowed: {sorted(unknown)[0]}"}), 400
        if user_id == g.current_user.id and data.get("is_active") is False:
            return jsonify({"error": "You cannot deactivate your own account"}), 400
        user = auth_service.update_user(user_id, data)
        return jsonify({"user": user.to_dict()}), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Internal server error"}), 500
