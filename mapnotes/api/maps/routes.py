from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from mapnotes.api import error_response
from mapnotes.app.container import get_auth_service, get_document_service
from mapnotes.errors import MapNotesError

maps_bp = Blueprint("maps", __name__)


@maps_bp.post("/save")
def save_document():
    """Save the posted FeatureCollection under ``fileName``, overwriting it."""
    data = request.get_json(silent=True) or {}
    identity = get_auth_service().current_identity()
    try:
        document = get_document_service().save_document(
            identity, data.get("fileName"), data.get("geojsonData")
        )
        return jsonify({"message": f"File saved: {document.name}"}), 200
    except MapNotesError as exc:
        return error_response(exc)
    except Exception as e:
        current_app.logger.error(f"Error saving document: {e}", exc_info=True)
        return jsonify({"error": "Failed to save file."}), 500


@maps_bp.get("/load/<path:file_name>")
def load_document(file_name: str):
    identity = get_auth_service().current_identity()
    try:
        document = get_document_service().load_document(identity, file_name)
        return jsonify(document.to_geojson()), 200
    except MapNotesError as exc:
        return error_response(exc)
    except Exception as e:
        current_app.logger.error(f"Error loading document {file_name!r}: {e}", exc_info=True)
        return jsonify({"error": "Failed to load file."}), 500


@maps_bp.get("/files")
def list_documents():
    identity = get_auth_service().current_identity()
    try:
        return jsonify(get_document_service().list_documents(identity)), 200
    except MapNotesError as exc:
        return error_response(exc)
    except Exception as e:
        current_app.logger.error(f"Error listing documents: {e}", exc_info=True)
        return jsonify({"error": "Failed to list files."}), 500


@maps_bp.delete("/files/<path:file_name>")
def delete_document(file_name: str):
    identity = get_auth_service().current_identity()
    try:
        get_document_service().delete_document(identity, file_name)
        return jsonify({"message": f"File deleted: {file_name}"}), 200
    except MapNotesError as exc:
        return error_response(exc)
    except Exception as e:
        current_app.logger.error(f"Error deleting document {file_name!r}: {e}", exc_info=True)
        return jsonify({"error": "Failed to delete file."}), 500


@maps_bp.delete("/files")
def delete_all_documents():
    identity = get_auth_service().current_identity()
    try:
        count = get_document_service().delete_all_documents(identity)
        return jsonify({"message": "All files deleted.", "deleted": count}), 200
    except MapNotesError as exc:
        return error_response(exc)
    except Exception as e:
        current_app.logger.error(f"Error deleting documents: {e}", exc_info=True)
        return jsonify({"error": "Failed to delete files."}), 500
