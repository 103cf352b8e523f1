from __future__ import annotations

from flask import jsonify

from mapnotes.errors import MapNotesError


def error_response(exc: MapNotesError):
    """JSON error body with the status code of the error class."""
    return jsonify({"error": exc.user_message}), exc.status_code
