from __future__ import annotations

from flask import current_app

from mapnotes.services.auth_service import AuthService
from mapnotes.services.document_service import DocumentService

AUTH_SERVICE_KEY = "auth_service"
DOCUMENT_SERVICE_KEY = "document_service"


def register_services(app) -> None:
    """Pre-instantiate core services and store them on the application."""
    with app.app_context():
        auth_service = AuthService.from_app_config()
        app.extensions[AUTH_SERVICE_KEY] = auth_service

        document_service = DocumentService.from_app_config(auth_service)
        app.extensions[DOCUMENT_SERVICE_KEY] = document_service


def get_auth_service() -> AuthService:
    """Return the shared auth service instance."""
    service = current_app.extensions.get(AUTH_SERVICE_KEY)
    if service is None:
        service = AuthService.from_app_config()
        current_app.extensions[AUTH_SERVICE_KEY] = service
    return service


def get_document_service() -> DocumentService:
    """Return the shared document service instance."""
    service = current_app.extensions.get(DOCUMENT_SERVICE_KEY)
    if service is None:
        service = DocumentService.from_app_config(get_auth_service())
        current_app.extensions[DOCUMENT_SERVICE_KEY] = service
    return service
