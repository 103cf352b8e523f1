from __future__ import annotations

from pathlib import Path
from typing import Any, List, Optional

from flask import current_app

from mapnotes.domain.documents import DocumentSummary, Identity, StoredDocument
from mapnotes.errors import AuthRequiredError, ForbiddenError, NotFoundError, ValidationError
from mapnotes.services.auth_service import AuthService
from mapnotes.services.geojson_serializer import export_feature_collection, parse_feature_collection
from mapnotes.storage.protocols import DocumentStore

MAX_NAME_LENGTH = 255


class DocumentService:
    """
    Server-side document operations on behalf of an identity.

    Normal users only reach their own documents. Administrators additionally
    list, load and delete any user's documents by (owner email, name).
    """

    def __init__(self, store: DocumentStore, auth_service: AuthService) -> None:
        self._store = store
        self._auth_service = auth_service

    @classmethod
    def from_app_config(cls, auth_service: AuthService) -> "DocumentService":
        from mapnotes.storage import LocalDocumentStore, SqlDocumentStore

        backend = current_app.config.get("STORAGE_BACKEND", "sql")
        if backend == "local":
            document_dir = Path(current_app.config["DOCUMENT_DIR"])
            if not document_dir.is_absolute():
                document_dir = Path(current_app.root_path).parents[1] / document_dir
            store: DocumentStore = LocalDocumentStore(document_dir)
        elif backend == "sql":
            store = SqlDocumentStore()
        else:
            raise ValueError(f"Unknown STORAGE_BACKEND: {backend}")
        return cls(store=store, auth_service=auth_service)

    @property
    def store(self) -> DocumentStore:
        return self._store

    @staticmethod
    def _require_identity(identity: Optional[Identity]) -> Identity:
        if identity is None:
            raise AuthRequiredError("Authentication required.")
        return identity

    @classmethod
    def _require_admin(cls, identity: Optional[Identity]) -> Identity:
        identity = cls._require_identity(identity)
        if not identity.is_admin:
            raise ForbiddenError("Administrator rights are required.")
        return identity

    @staticmethod
    def _require_name(name: Optional[str]) -> str:
        cleaned = (name or "").strip()
        if not cleaned:
            raise ValidationError("File name is required.")
        if len(cleaned) > MAX_NAME_LENGTH:
            raise ValidationError(f"File name must be at most {MAX_NAME_LENGTH} characters.")
        return cleaned

    def _owner_id(self, owner_email: Optional[str]) -> int:
        user = self._auth_service.get_user_by_email(owner_email or "")
        if user is None:
            raise NotFoundError("User not found.")
        return user.id

    # ------------------------------------------------------------------
    # own documents
    # ------------------------------------------------------------------

    def save_document(self, identity: Optional[Identity], name: Optional[str], payload: Any) -> StoredDocument:
        """
        Save a document, overwriting one with the same name.

        Only readable features are stored, so lines and polygons below their
        minimum point count never reach the store.
        """
        identity = self._require_identity(identity)
        name = self._require_name(name)
        if payload is None:
            raise ValidationError("Document data is required.")

        result = parse_feature_collection(payload)
        if not result.shapes:
            raise ValidationError("Document has no objects to save.")
        if result.skipped:
            current_app.logger.warning(
                f"Dropped {len(result.skipped)} unreadable feature(s) while saving {name!r} for user {identity.id}"
            )

        stored = self._store.save(identity.id, name, export_feature_collection(result.shapes))
        current_app.logger.info(f"Saved {name!r} for user {identity.id} ({result.imported} feature(s))")
        return stored

    def load_document(self, identity: Optional[Identity], name: Optional[str]) -> StoredDocument:
        identity = self._require_identity(identity)
        name = self._require_name(name)
        document = self._store.load(identity.id, name)
        if document is None:
            raise NotFoundError("File not found.")
        return document

    def list_documents(self, identity: Optional[Identity]) -> List[str]:
        identity = self._require_identity(identity)
        return self._store.list_names(identity.id)

    def delete_document(self, identity: Optional[Identity], name: Optional[str]) -> None:
        identity = self._require_identity(identity)
        name = self._require_name(name)
        if not self._store.delete(identity.id, name):
            raise NotFoundError("File not found.")
        current_app.logger.info(f"Deleted {name!r} for user {identity.id}")

    def delete_all_documents(self, identity: Optional[Identity]) -> int:
        identity = self._require_identity(identity)
        count = self._store.delete_all(identity.id)
        current_app.logger.info(f"Deleted {count} document(s) for user {identity.id}")
        return count

    # ------------------------------------------------------------------
    # administrator
    # ------------------------------------------------------------------

    def admin_list_documents(self, identity: Optional[Identity]) -> List[DocumentSummary]:
        self._require_admin(identity)
        summaries = []
        for summary in self._store.list_all():
            if summary.owner_email is None:
                owner = self._auth_service.get_user(summary.owner_id)
                summary = DocumentSummary(
                    owner_id=summary.owner_id,
                    name=summary.name,
                    created_at=summary.created_at,
                    owner_email=owner.email if owner else None,
                )
            summaries.append(summary)
        return summaries

    def admin_load_document(
        self, identity: Optional[Identity], owner_email: Optional[str], name: Optional[str]
    ) -> StoredDocument:
        self._require_admin(identity)
        name = self._require_name(name)
        document = self._store.load(self._owner_id(owner_email), name)
        if document is None:
            raise NotFoundError("File not found.")
        return document

    def admin_delete_document(
        self, identity: Optional[Identity], owner_email: Optional[str], name: Optional[str]
    ) -> None:
        identity = self._require_admin(identity)
        name = self._require_name(name)
        if not self._store.delete(self._owner_id(owner_email), name):
            raise NotFoundError("File not found.")
        current_app.logger.info(f"Admin {identity.email} deleted {name!r} of {owner_email}")

    def admin_delete_all_documents(self, identity: Optional[Identity]) -> int:
        identity = self._require_admin(identity)
        count = self._store.delete_everything()
        current_app.logger.warning(f"Admin {identity.email} deleted all {count} document(s)")
        return count
