from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from mapnotes.api import error_response
from mapnotes.app.container import get_auth_service, get_document_service
from mapnotes.errors import AuthRequiredError, ForbiddenError, MapNotesError

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


@admin_bp.get("/files")
def list_all_documents():
    """Every stored document with its owner's email."""
    identity = get_auth_service().current_identity()
    try:
        summaries = get_document_service().admin_list_documents(identity)
        return jsonify([summary.to_json() for summary in summaries]), 200
    except MapNotesError as exc:
        return error_response(exc)
    except Exception as e:
        current_app.logger.error(f"Error listing all documents: {e}", exc_info=True)
        return jsonify({"error": "Failed to list files."}), 500


@admin_bp.get("/load/<email>/<path:file_name>")
def load_user_document(email: str, file_name: str):
    identity = get_auth_service().current_identity()
    try:
        document = get_document_service().admin_load_document(identity, email, file_name)
        return jsonify(document.to_geojson()), 200
    except MapNotesError as exc:
        return error_response(exc)
    except Exception as e:
        current_app.logger.error(f"Error loading {file_name!r} of {email}: {e}", exc_info=True)
        return jsonify({"error": "Failed to load file."}), 500


@admin_bp.delete("/files/<email>/<path:file_name>")
def delete_user_document(email: str, file_name: str):
    identity = get_auth_service().current_identity()
    try:
        get_document_service().admin_delete_document(identity, email, file_name)
        return jsonify({"message": f"File deleted: {file_name} ({email})"}), 200
    except MapNotesError as exc:
        return error_response(exc)
    except Exception as e:
        current_app.logger.error(f"Error deleting {file_name!r} of {email}: {e}", exc_info=True)
        return jsonify({"error": "Failed to delete file."}), 500


@admin_bp.delete("/files")
def delete_every_document():
    identity = get_auth_service().current_identity()
    try:
        count = get_document_service().admin_delete_all_documents(identity)
        return jsonify({"message": "All files of all users deleted.", "deleted": count}), 200
    except MapNotesError as exc:
        return error_response(exc)
    except Exception as e:
        current_app.logger.error(f"Error deleting all documents: {e}", exc_info=True)
        return jsonify({"error": "Failed to delete files."}), 500


@admin_bp.get("/users")
def list_users():
    service = get_auth_service()
    identity = service.current_identity()
    if identity is None:
        return error_response(AuthRequiredError("Authentication required."))
    if not identity.is_admin:
        return error_response(ForbiddenError("Administrator rights are required."))
    return jsonify([user.to_json() for user in service.list_users()]), 200


@admin_bp.post("/set-role")
def set_role():
    data = request.get_json(silent=True) or {}
    service = get_auth_service()
    identity = service.current_identity()
    if identity is None:
        return error_response(AuthRequiredError("Authentication required."))
    if not identity.is_admin:
        return error_response(ForbiddenError("Administrator rights are required."))
    try:
        user = service.set_role(data.get("email"), data.get("role"))
        current_app.logger.info(f"Admin {identity.email} set role of {user.email} to {user.role}")
        return jsonify({"message": f"Role of {user.email} set to {user.role}."}), 200
    except MapNotesError as exc:
        return error_response(exc)
    except Exception as e:
        current_app.logger.error(f"Error setting role: {e}", exc_info=True)
        return jsonify({"error": "Failed to set role."}), 500
