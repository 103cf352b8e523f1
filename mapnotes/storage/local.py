from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from mapnotes.domain.documents import DocumentSummary, StoredDocument
from mapnotes.services.geojson_serializer import FEATURE_COLLECTION, decode_features
from mapnotes.storage.protocols import DocumentStore, DocumentStoreError


class LocalDocumentStoreError(DocumentStoreError):
    """Raised when local document storage operations fail."""


class LocalDocumentStore(DocumentStore):
    """Filesystem document store: one JSON file per (owner, name)."""

    def __init__(self, root: Path) -> None:
        self._root = root
        self._root.mkdir(parents=True, exist_ok=True)

    def list_names(self, owner_id: int) -> List[str]:
        entries = [data for _, data in self._iter_owner(owner_id)]
        entries.sort(key=lambda data: data.get("createdAt") or "")
        return [data["name"] for data in entries]

    def save(self, owner_id: int, name: str, document: Dict[str, Any]) -> StoredDocument:
        target = self._resolve(owner_id, name)
        now = datetime.now(timezone.utc).isoformat()
        created_at = now
        if target.exists():
            created_at = self._read(target).get("createdAt") or now

        data = {
            "name": name,
            "type": document.get("type") or FEATURE_COLLECTION,
            "features": document.get("features", []),
            "createdAt": created_at,
            "updatedAt": now,
        }
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            target.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as exc:
            raise LocalDocumentStoreError(f"Unable to write document to {target}") from exc
        return self._to_stored(owner_id, data)

    def load(self, owner_id: int, name: str) -> Optional[StoredDocument]:
        target = self._resolve(owner_id, name)
        if not target.exists():
            return None
        return self._to_stored(owner_id, self._read(target))

    def delete(self, owner_id: int, name: str) -> bool:
        target = self._resolve(owner_id, name)
        if not target.exists():
            return False
        self._unlink(target)
        return True

    def delete_all(self, owner_id: int) -> int:
        count = 0
        for path, _ in self._iter_owner(owner_id):
            self._unlink(path)
            count += 1
        return count

    def list_all(self) -> List[DocumentSummary]:
        summaries = []
        for owner_id in self._owner_ids():
            for _, data in self._iter_owner(owner_id):
                summaries.append(
                    DocumentSummary(
                        owner_id=owner_id,
                        name=data["name"],
                        created_at=self._parse_time(data.get("createdAt")),
                    )
                )
        summaries.sort(key=lambda s: s.created_at.isoformat() if s.created_at else "")
        return summaries

    def delete_everything(self) -> int:
        return sum(self.delete_all(owner_id) for owner_id in self._owner_ids())

    def _resolve(self, owner_id: int, name: str) -> Path:
        digest = hashlib.sha256(name.encode("utf-8")).hexdigest()[:32]
        return self._root / str(int(owner_id)) / f"{digest}.json"

    def _owner_ids(self) -> List[int]:
        return sorted(int(p.name) for p in self._root.iterdir() if p.is_dir() and p.name.isdigit())

    def _iter_owner(self, owner_id: int) -> Iterator[Tuple[Path, Dict[str, Any]]]:
        owner_dir = self._root / str(int(owner_id))
        if not owner_dir.is_dir():
            return
        for path in sorted(owner_dir.glob("*.json")):
            yield path, self._read(path)

    @staticmethod
    def _read(path: Path) -> Dict[str, Any]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError) as exc:
            raise LocalDocumentStoreError(f"Unable to read document {path}") from exc

    @staticmethod
    def _unlink(path: Path) -> None:
        try:
            path.unlink()
        except OSError as exc:
            raise LocalDocumentStoreError(f"Unable to delete document {path}") from exc

    @staticmethod
    def _parse_time(value: Optional[str]) -> Optional[datetime]:
        if not value:
            return None
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None

    def _to_stored(self, owner_id: int, data: Dict[str, Any]) -> StoredDocument:
        return StoredDocument(
            owner_id=owner_id,
            name=data["name"],
            type=data.get("type") or FEATURE_COLLECTION,
            features=decode_features(data.get("features", [])),
            created_at=self._parse_time(data.get("createdAt")),
            updated_at=self._parse_time(data.get("updatedAt")),
        )
