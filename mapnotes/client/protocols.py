from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

from mapnotes.domain.documents import DocumentSummary, Identity


class AuthProvider(Protocol):
    """Source of the identity used for persistence operations."""

    def current_identity(self) -> Optional[Identity]:
        ...


class MapStoreClient(Protocol):
    """
    Asynchronous access to the document store of the current user.

    Admin operations address other users' documents by owner email.
    Implementations raise ``mapnotes.errors`` exceptions on failure.
    """

    async def list_documents(self) -> List[str]:
        ...

    async def save_document(self, name: str, document: Dict[str, Any]) -> None:
        ...

    async def load_document(self, name: str) -> Any:
        ...

    async def delete_document(self, name: str) -> None:
        ...

    async def delete_all_documents(self) -> int:
        ...

    async def admin_list_documents(self) -> List[DocumentSummary]:
        ...

    async def admin_load_document(self, owner: str, name: str) -> Any:
        ...

    async def admin_delete_document(self, owner: str, name: str) -> None:
        ...

    async def admin_delete_all_documents(self) -> int:
        ...
