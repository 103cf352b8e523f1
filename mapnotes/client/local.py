from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, TypeVar

from flask import Flask

from mapnotes.domain.documents import DocumentSummary, Identity
from mapnotes.errors import TransportError
from mapnotes.storage.protocols import DocumentStoreError

T = TypeVar("T")


class LocalMapStoreClient:
    """
    In-process map store client.

    Runs ``DocumentService`` calls inside an application context of ``app``
    on behalf of a fixed identity, without going through HTTP.
    """

    def __init__(self, app: Flask, identity: Optional[Identity] = None) -> None:
        self._app = app
        self._identity = identity

    def current_identity(self) -> Optional[Identity]:
        return self._identity

    def sign_in(self, email: str, password: str) -> Identity:
        from mapnotes.app.container import get_auth_service

        with self._app.app_context():
            user = get_auth_service().authenticate(email, password)
            self._identity = Identity(id=user.id, email=user.email, is_admin=user.is_admin)
        return self._identity

    def sign_out(self) -> None:
        self._identity = None

    def _run(self, operation: Callable[..., T], *args: Any) -> T:
        from mapnotes.app.container import get_document_service

        with self._app.app_context():
            service = get_document_service()
            try:
                return operation(service, self._identity, *args)
            except DocumentStoreError as exc:
                raise TransportError("Document storage failed.") from exc

    async def list_documents(self) -> List[str]:
        return self._run(lambda service, identity: service.list_documents(identity))

    async def save_document(self, name: str, document: Dict[str, Any]) -> None:
        self._run(lambda service, identity: service.save_document(identity, name, document))

    async def load_document(self, name: str) -> Any:
        return self._run(lambda service, identity: service.load_document(identity, name).to_geojson())

    async def delete_document(self, name: str) -> None:
        self._run(lambda service, identity: service.delete_document(identity, name))

    async def delete_all_documents(self) -> int:
        return self._run(lambda service, identity: service.delete_all_documents(identity))

    async def admin_list_documents(self) -> List[DocumentSummary]:
        return self._run(lambda service, identity: service.admin_list_documents(identity))

    async def admin_load_document(self, owner: str, name: str) -> Any:
        return self._run(
            lambda service, identity: service.admin_load_document(identity, owner, name).to_geojson()
        )

    async def admin_delete_document(self, owner: str, name: str) -> None:
        self._run(lambda service, identity: service.admin_delete_document(identity, owner, name))

    async def admin_delete_all_documents(self) -> int:
        return self._run(lambda service, identity: service.admin_delete_all_documents(identity))
