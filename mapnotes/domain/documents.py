from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Identity:
    """Authenticated user as seen by document operations."""

    id: int
    email: str
    is_admin: bool = False


@dataclass(frozen=True)
class StoredDocument:
    """A persisted map document as returned by a document store."""

    owner_id: int
    name: str
    type: str
    features: List[Dict[str, Any]] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_geojson(self) -> Dict[str, Any]:
        return {"type": self.type, "features": self.features}


@dataclass(frozen=True)
class DocumentSummary:
    """One row of the administrator's cross-user document listing."""

    owner_id: int
    name: str
    created_at: Optional[datetime] = None
    owner_email: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        return {
            "email": self.owner_email,
            "ownerId": self.owner_id,
            "fileName": self.name,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
