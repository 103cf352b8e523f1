from __future__ import annotations

from datetime import datetime, timezone

from mapnotes.extensions import db

ROLE_ADMIN = "admin"
ROLE_USER = "user"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(32), nullable=False, default=ROLE_USER)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    documents = db.relationship(
        "MapDocument",
        back_populates="owner",
        cascade="all, delete-orphan",
        lazy="dynamic",
    )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def to_json(self) -> dict:
        return {"id": self.id, "email": self.email, "role": self.role}


class MapDocument(db.Model):
    """A saved map. ``features`` holds the JSON-encoded feature list."""

    __tablename__ = "map_documents"
    __table_args__ = (db.UniqueConstraint("owner_id", "name", name="uq_map_documents_owner_name"),)

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(64), nullable=False, default="FeatureCollection")
    features = db.Column(db.Text, nullable=False, default="[]")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    owner = db.relationship("User", back_populates="documents")
