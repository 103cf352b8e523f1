"""
HTTP map store client.

Talks to the mapnotes Flask API with an ``httpx.AsyncClient``; the session
cookie set by ``/login`` is kept by the client's cookie jar. HTTP failures
are translated into ``mapnotes.errors`` exceptions by status code.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Type
from urllib.parse import quote

import httpx

from mapnotes.domain.documents import DocumentSummary, Identity
from mapnotes.errors import (
    AuthRequiredError,
    ForbiddenError,
    MalformedDocumentError,
    MapNotesError,
    NotFoundError,
    TransportError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_ERRORS: Dict[int, Type[MapNotesError]] = {
    400: ValidationError,
    401: AuthRequiredError,
    403: ForbiddenError,
    404: NotFoundError,
    422: MalformedDocumentError,
}


def _segment(value: str) -> str:
    return quote(value, safe="")


class HttpMapStoreClient:
    """Map store client and auth provider backed by the HTTP API."""

    def __init__(
        self,
        base_url: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            transport=transport,
            timeout=timeout,
        )
        self._identity: Optional[Identity] = None

    async def __aenter__(self) -> "HttpMapStoreClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # auth
    # ------------------------------------------------------------------

    def current_identity(self) -> Optional[Identity]:
        """Identity cached from the last login or ``fetch_identity`` call."""
        return self._identity

    async def register(self, email: str, password: str) -> Identity:
        await self._request("POST", "/register", json={"email": email, "password": password})
        return await self._require_identity()

    async def login(self, email: str, password: str) -> Identity:
        await self._request("POST", "/login", json={"email": email, "password": password})
        return await self._require_identity()

    async def logout(self) -> None:
        try:
            await self._request("POST", "/logout")
        finally:
            self._identity = None

    async def fetch_identity(self) -> Optional[Identity]:
        try:
            data = self._json(await self._request("GET", "/user/info"))
        except AuthRequiredError:
            return None
        self._identity = Identity(
            id=int(data["id"]),
            email=data["email"],
            is_admin=bool(data.get("isAdmin")),
        )
        return self._identity

    async def _require_identity(self) -> Identity:
        identity = await self.fetch_identity()
        if identity is None:
            raise AuthRequiredError("Authentication required.")
        return identity

    # ------------------------------------------------------------------
    # documents
    # ------------------------------------------------------------------

    async def list_documents(self) -> List[str]:
        return list(self._json(await self._request("GET", "/files")))

    async def save_document(self, name: str, document: Dict[str, Any]) -> None:
        await self._request("POST", "/save", json={"fileName": name, "geojsonData": document})

    async def load_document(self, name: str) -> Any:
        return self._json(await self._request("GET", f"/load/{_segment(name)}"))

    async def delete_document(self, name: str) -> None:
        await self._request("DELETE", f"/files/{_segment(name)}")

    async def delete_all_documents(self) -> int:
        data = self._json(await self._request("DELETE", "/files"))
        return int(data.get("deleted", 0))

    async def admin_list_documents(self) -> List[DocumentSummary]:
        data = self._json(await self._request("GET", "/admin/files"))
        return [self._to_summary(item) for item in data]

    async def admin_load_document(self, owner: str, name: str) -> Any:
        return self._json(await self._request("GET", f"/admin/load/{_segment(owner)}/{_segment(name)}"))

    async def admin_delete_document(self, owner: str, name: str) -> None:
        await self._request("DELETE", f"/admin/files/{_segment(owner)}/{_segment(name)}")

    async def admin_delete_all_documents(self) -> int:
        data = self._json(await self._request("DELETE", "/admin/files"))
        return int(data.get("deleted", 0))

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning(f"{method} {path} failed: {exc}")
            raise TransportError("Server is unreachable.") from exc

        if response.is_success:
            return response

        if response.status_code == 401:
            self._identity = None
        error_class = _STATUS_ERRORS.get(response.status_code, TransportError)
        message = self._error_message(response)
        logger.info(f"{method} {path} returned {response.status_code}: {message}")
        raise error_class(message)

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and data.get("error"):
            return str(data["error"])
        return f"Server request failed ({response.status_code})."

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedDocumentError("Server returned invalid JSON.") from exc

    @staticmethod
    def _to_summary(item: Dict[str, Any]) -> DocumentSummary:
        created_at = None
        if item.get("createdAt"):
            try:
                created_at = datetime.fromisoformat(item["createdAt"])
            except ValueError:
                created_at = None
        return DocumentSummary(
            owner_id=int(item["ownerId"]),
            name=item["fileName"],
            created_at=created_at,
            owner_email=item.get("email"),
        )
