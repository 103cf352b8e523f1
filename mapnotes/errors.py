from __future__ import annotations


class MapNotesError(Exception):
    """Base exception for map document operations.

    The message is short and meant to be shown to the user as-is.
    """

    status_code: int = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__doc__ or "")

    @property
    def user_message(self) -> str:
        return str(self)


class ValidationError(MapNotesError):
    """Invalid input rejected before any storage call."""

    status_code = 400


class AuthRequiredError(MapNotesError):
    """Authentication is required."""

    status_code = 401


class ForbiddenError(MapNotesError):
    """Administrator rights are required."""

    status_code = 403


class NotFoundError(MapNotesError):
    """Document not found."""

    status_code = 404


class MalformedDocumentError(MapNotesError):
    """Stored document could not be decoded."""

    status_code = 422


class TransportError(MapNotesError):
    """Server request failed."""

    status_code = 502
