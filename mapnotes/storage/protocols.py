from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

from mapnotes.domain.documents import DocumentSummary, StoredDocument


class DocumentStore(Protocol):
    """Interface for map document storage keyed by (owner, name)."""

    def list_names(self, owner_id: int) -> List[str]:
        ...

    def save(self, owner_id: int, name: str, document: Dict[str, Any]) -> StoredDocument:
        ...

    def load(self, owner_id: int, name: str) -> Optional[StoredDocument]:
        ...

    def delete(self, owner_id: int, name: str) -> bool:
        ...

    def delete_all(self, owner_id: int) -> int:
        ...

    def list_all(self) -> List[DocumentSummary]:
        ...

    def delete_everything(self) -> int:
        ...


class DocumentStoreError(Exception):
    """Raised when a document store cannot complete an operation."""
