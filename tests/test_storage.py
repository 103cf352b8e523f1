"""Document stores and the server-side document service."""
from __future__ import annotations

import json

import pytest

from mapnotes.app.container import get_auth_service, get_document_service
from mapnotes.domain.documents import Identity
from mapnotes.errors import AuthRequiredError, ForbiddenError, NotFoundError, ValidationError
from mapnotes.extensions import db
from mapnotes.models import MapDocument
from mapnotes.services.document_service import DocumentService
from mapnotes.storage import LocalDocumentStore, SqlDocumentStore


def _collection(*names):
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [i, i]},
                "properties": {"name": name},
            }
            for i, name in enumerate(names)
        ],
    }


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield


@pytest.fixture
def users(ctx):
    auth = get_auth_service()
    owner = auth.register("owner@example.com", "secret")
    other = auth.register("other@example.com", "secret")
    admin = auth.register("admin@example.com", "secret")
    return {
        "owner": Identity(owner.id, owner.email, owner.is_admin),
        "other": Identity(other.id, other.email, other.is_admin),
        "admin": Identity(admin.id, admin.email, admin.is_admin),
    }


# ---------------------------------------------------------------------------
# Local store
# ---------------------------------------------------------------------------

class TestLocalDocumentStore:

    def test_save_load_overwrite(self, tmp_path):
        store = LocalDocumentStore(tmp_path)
        store.save(1, "Trip", _collection("A"))
        first = store.load(1, "Trip")
        store.save(1, "Trip", _collection("B", "C"))
        second = store.load(1, "Trip")

        assert [f["properties"]["name"] for f in second.features] == ["B", "C"]
        assert second.created_at == first.created_at
        assert store.list_names(1) == ["Trip"]

    def test_names_with_path_characters(self, tmp_path):
        store = LocalDocumentStore(tmp_path)
        store.save(1, "../etc/passwd", _collection("A"))
        assert store.list_names(1) == ["../etc/passwd"]
        assert all(path.is_relative_to(tmp_path) for path in tmp_path.rglob("*.json"))

    def test_owners_are_isolated(self, tmp_path):
        store = LocalDocumentStore(tmp_path)
        store.save(1, "Trip", _collection("A"))
        assert store.load(2, "Trip") is None
        assert store.delete(2, "Trip") is False

    def test_delete_everything(self, tmp_path):
        store = LocalDocumentStore(tmp_path)
        store.save(1, "A", _collection("A"))
        store.save(2, "B", _collection("B"))
        assert [s.name for s in store.list_all()] == ["A", "B"]
        assert store.delete_everything() == 2
        assert store.list_all() == []

    def test_stringified_features_on_disk(self, tmp_path):
        store = LocalDocumentStore(tmp_path)
        store.save(1, "Trip", _collection("A"))
        path = next(tmp_path.rglob("*.json"))
        data = json.loads(path.read_text(encoding="utf-8"))
        data["features"] = json.dumps(data["features"])
        path.write_text(json.dumps(data), encoding="utf-8")
        assert len(store.load(1, "Trip").features) == 1


# ---------------------------------------------------------------------------
# SQL store
# ---------------------------------------------------------------------------

class TestSqlDocumentStore:

    def test_save_overwrites(self, users):
        store = SqlDocumentStore()
        owner_id = users["owner"].id
        store.save(owner_id, "Trip", _collection("A"))
        store.save(owner_id, "Trip", _collection("B"))
        assert store.list_names(owner_id) == ["Trip"]
        assert store.load(owner_id, "Trip").features[0]["properties"]["name"] == "B"
        assert len(db.session.execute(db.select(MapDocument)).scalars().all()) == 1

    def test_doubly_encoded_rows_are_decoded(self, users):
        owner_id = users["owner"].id
        features = _collection("A")["features"]
        db.session.add(MapDocument(owner_id=owner_id, name="Legacy", features=json.dumps(json.dumps(features))))
        db.session.commit()
        document = SqlDocumentStore().load(owner_id, "Legacy")
        assert document.features == features

    def test_list_all_has_owner_email(self, users):
        store = SqlDocumentStore()
        store.save(users["owner"].id, "A", _collection("A"))
        store.save(users["other"].id, "B", _collection("B"))
        assert [(s.owner_email, s.name) for s in store.list_all()] == [
            ("owner@example.com", "A"),
            ("other@example.com", "B"),
        ]


# ---------------------------------------------------------------------------
# DocumentService
# ---------------------------------------------------------------------------

class TestDocumentService:

    def test_requires_identity(self, ctx):
        with pytest.raises(AuthRequiredError):
            get_document_service().list_documents(None)

    def test_blank_name(self, users):
        with pytest.raises(ValidationError):
            get_document_service().save_document(users["owner"], "  ", _collection("A"))

    def test_unreadable_features_are_not_stored(self, users):
        payload = _collection("A")
        payload["features"].append(
            {"type": "Feature", "geometry": {"type": "LineString", "coordinates": [[0, 0]]}, "properties": {}}
        )
        stored = get_document_service().save_document(users["owner"], "Trip", payload)
        assert len(stored.features) == 1

    def test_document_without_valid_features(self, users):
        with pytest.raises(ValidationError):
            get_document_service().save_document(users["owner"], "Trip", {"type": "FeatureCollection", "features": []})

    def test_stringified_payload(self, users):
        service = get_document_service()
        service.save_document(users["owner"], "Trip", json.dumps(_collection("A", "B")))
        assert len(service.load_document(users["owner"], "Trip").features) == 2

    def test_users_only_see_their_own(self, users):
        service = get_document_service()
        service.save_document(users["owner"], "Trip", _collection("A"))
        assert service.list_documents(users["other"]) == []
        with pytest.raises(NotFoundError):
            service.load_document(users["other"], "Trip")
        with pytest.raises(NotFoundError):
            service.delete_document(users["other"], "Trip")

    def test_admin_operations(self, users):
        service = get_document_service()
        service.save_document(users["owner"], "Trip", _collection("A"))

        with pytest.raises(ForbiddenError):
            service.admin_list_documents(users["owner"])

        summaries = service.admin_list_documents(users["admin"])
        assert [(s.owner_email, s.name) for s in summaries] == [("owner@example.com", "Trip")]
        assert service.admin_load_document(users["admin"], "owner@example.com", "Trip").name == "Trip"
        with pytest.raises(NotFoundError):
            service.admin_load_document(users["admin"], "nobody@example.com", "Trip")

        service.admin_delete_document(users["admin"], "owner@example.com", "Trip")
        assert service.list_documents(users["owner"]) == []

    def test_admin_list_fills_emails_for_local_store(self, users, tmp_path):
        service = DocumentService(LocalDocumentStore(tmp_path), get_auth_service())
        service.save_document(users["other"], "Walk", _collection("A"))
        summaries = service.admin_list_documents(users["admin"])
        assert summaries[0].owner_email == "other@example.com"

    def test_admin_delete_all(self, users):
        service = get_document_service()
        service.save_document(users["owner"], "A", _collection("A"))
        service.save_document(users["other"], "B", _collection("B"))
        assert service.admin_delete_all_documents(users["admin"]) == 2
