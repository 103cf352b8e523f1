from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from mapnotes.domain.documents import DocumentSummary, StoredDocument
from mapnotes.extensions import db
from mapnotes.models import MapDocument, User
from mapnotes.services.geojson_serializer import FEATURE_COLLECTION, decode_features
from mapnotes.storage.protocols import DocumentStore, DocumentStoreError


class SqlDocumentStore(DocumentStore):
    """Document store backed by the ``map_documents`` table."""

    def list_names(self, owner_id: int) -> List[str]:
        rows = db.session.execute(
            db.select(MapDocument.name)
            .filter_by(owner_id=owner_id)
            .order_by(MapDocument.created_at, MapDocument.id)
        ).scalars()
        names: List[str] = []
        for name in rows:
            # Older databases may hold several rows per name.
            if name not in names:
                names.append(name)
        return names

    def save(self, owner_id: int, name: str, document: Dict[str, Any]) -> StoredDocument:
        record = self._latest(owner_id, name)
        try:
            if record is None:
                record = MapDocument(owner_id=owner_id, name=name)
                db.session.add(record)
            record.type = document.get("type") or FEATURE_COLLECTION
            record.features = json.dumps(document.get("features", []), ensure_ascii=False)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise DocumentStoreError(f"Unable to save document {name!r}") from exc
        return self._to_stored(record)

    def load(self, owner_id: int, name: str) -> Optional[StoredDocument]:
        record = self._latest(owner_id, name)
        if record is None:
            return None
        return self._to_stored(record)

    def delete(self, owner_id: int, name: str) -> bool:
        return self._delete_where(owner_id=owner_id, name=name) > 0

    def delete_all(self, owner_id: int) -> int:
        return self._delete_where(owner_id=owner_id)

    def list_all(self) -> List[DocumentSummary]:
        rows = db.session.execute(
            db.select(MapDocument, User.email)
            .join(User, MapDocument.owner_id == User.id)
            .order_by(MapDocument.created_at, MapDocument.id)
        ).all()
        return [
            DocumentSummary(
                owner_id=record.owner_id,
                name=record.name,
                created_at=record.created_at,
                owner_email=email,
            )
            for record, email in rows
        ]

    def delete_everything(self) -> int:
        return self._delete_where()

    def _latest(self, owner_id: int, name: str) -> Optional[MapDocument]:
        return db.session.execute(
            db.select(MapDocument)
            .filter_by(owner_id=owner_id, name=name)
            .order_by(MapDocument.updated_at.desc(), MapDocument.id.desc())
            .limit(1)
        ).scalar_one_or_none()

    def _delete_where(self, **criteria: Any) -> int:
        try:
            records = db.session.execute(db.select(MapDocument).filter_by(**criteria)).scalars().all()
            for record in records:
                db.session.delete(record)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise DocumentStoreError("Unable to delete documents") from exc
        return len(records)

    @staticmethod
    def _to_stored(record: MapDocument) -> StoredDocument:
        return StoredDocument(
            owner_id=record.owner_id,
            name=record.name,
            type=record.type or FEATURE_COLLECTION,
            features=decode_features(record.features),
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
