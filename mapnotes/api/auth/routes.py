from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from mapnotes.api import error_response
from mapnotes.app.container import get_auth_service
from mapnotes.errors import AuthRequiredError, MapNotesError

auth_bp = Blueprint("auth", __name__)


@auth_bp.post("/register")
def register():
    """Create an account and start a session for it."""
    data = request.get_json(silent=True) or {}
    service = get_auth_service()
    try:
        user = service.register(data.get("email"), data.get("password"))
        service.login(user)
        return jsonify({
            "message": "User registered successfully.",
            "email": user.email,
            "isAdmin": user.is_admin,
        }), 201
    except MapNotesError as exc:
        return error_response(exc)
    except Exception as e:
        current_app.logger.error(f"Error registering user: {e}", exc_info=True)
        return jsonify({"error": "Registration failed."}), 500


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    service = get_auth_service()
    try:
        user = service.authenticate(data.get("email"), data.get("password"))
        service.login(user)
        return jsonify({
            "message": "Logged in successfully.",
            "email": user.email,
            "isAdmin": user.is_admin,
        }), 200
    except MapNotesError as exc:
        return error_response(exc)
    except Exception as e:
        current_app.logger.error(f"Error logging in: {e}", exc_info=True)
        return jsonify({"error": "Login failed."}), 500


@auth_bp.post("/logout")
def logout():
    get_auth_service().logout()
    return jsonify({"message": "Logged out successfully."}), 200


@auth_bp.get("/user/info")
def user_info():
    """Identity of the current session."""
    identity = get_auth_service().current_identity()
    if identity is None:
        return error_response(AuthRequiredError("Authentication required."))
    return jsonify({"id": identity.id, "email": identity.email, "isAdmin": identity.is_admin}), 200
