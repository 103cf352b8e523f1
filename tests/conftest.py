from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import pytest

from mapnotes.app import create_app
from mapnotes.domain.documents import DocumentSummary, Identity
from mapnotes.errors import NotFoundError
from mapnotes.extensions import db


# ---------------------------------------------------------------------------
# Flask application
# ---------------------------------------------------------------------------

@pytest.fixture
def app():
    app = create_app("testing")
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def register():
    """Register (and thereby log in) a user on a test client."""

    def _register(test_client, email: str, password: str = "secret"):
        response = test_client.post("/register", json={"email": email, "password": password})
        assert response.status_code == 201, response.get_json()
        return response

    return _register


@pytest.fixture
def sample_collection() -> Dict[str, Any]:
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [13.4, 52.5]},
                "properties": {"name": "Office"},
            },
            {
                "type": "Feature",
                "geometry": {"type": "LineString", "coordinates": [[0, 0], [0, 1]]},
                "properties": {"name": "Route"},
            },
        ],
    }


# ---------------------------------------------------------------------------
# Editor collaborators
# ---------------------------------------------------------------------------

class FakeAuth:
    def __init__(self, identity: Optional[Identity] = None) -> None:
        self.identity = identity

    def current_identity(self) -> Optional[Identity]:
        return self.identity


class FakeStoreClient:
    """In-memory map store client. ``gate`` (an asyncio.Event) blocks calls until set."""

    def __init__(self) -> None:
        self.documents: Dict[str, Any] = {}
        self.calls: List[str] = []
        self.gate: Optional[asyncio.Event] = None
        self.fail_with: Optional[Exception] = None

    async def _enter(self, call: str) -> None:
        self.calls.append(call)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with

    async def list_documents(self) -> List[str]:
        await self._enter("list")
        return list(self.documents)

    async def save_document(self, name: str, document: Dict[str, Any]) -> None:
        await self._enter(f"save:{name}")
        self.documents[name] = document

    async def load_document(self, name: str) -> Any:
        await self._enter(f"load:{name}")
        if name not in self.documents:
            raise NotFoundError("File not found.")
        return self.documents[name]

    async def delete_document(self, name: str) -> None:
        await self._enter(f"delete:{name}")
        if self.documents.pop(name, None) is None:
            raise NotFoundError("File not found.")

    async def delete_all_documents(self) -> int:
        await self._enter("delete_all")
        count = len(self.documents)
        self.documents.clear()
        return count

    async def admin_list_documents(self) -> List[DocumentSummary]:
        await self._enter("admin_list")
        return [DocumentSummary(owner_id=1, name=name, owner_email="owner@example.com") for name in self.documents]

    async def admin_load_document(self, owner: str, name: str) -> Any:
        await self._enter(f"admin_load:{owner}/{name}")
        if name not in self.documents:
            raise NotFoundError("File not found.")
        return self.documents[name]

    async def admin_delete_document(self, owner: str, name: str) -> None:
        await self._enter(f"admin_delete:{owner}/{name}")
        self.documents.pop(name, None)

    async def admin_delete_all_documents(self) -> int:
        await self._enter("admin_delete_all")
        count = len(self.documents)
        self.documents.clear()
        return count


class RecordingWidget:
    def __init__(self) -> None:
        self.rendered: List[list] = []
        self.highlighted: List[Any] = []
        self.cleared = 0

    def render(self, shapes) -> None:
        self.rendered.append(list(shapes))

    def highlight(self, shape) -> None:
        self.highlighted.append(shape)

    def clear_highlight(self) -> None:
        self.cleared += 1


@pytest.fixture
def user_identity() -> Identity:
    return Identity(id=1, email="user@example.com")


@pytest.fixture
def admin_identity() -> Identity:
    return Identity(id=2, email="admin@example.com", is_admin=True)


@pytest.fixture
def fake_auth(user_identity):
    return FakeAuth(user_identity)


@pytest.fixture
def store_client():
    return FakeStoreClient()


@pytest.fixture
def widget():
    return RecordingWidget()
