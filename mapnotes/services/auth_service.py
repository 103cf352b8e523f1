from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from flask import current_app, session
from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from mapnotes.domain.documents import Identity
from mapnotes.errors import AuthRequiredError, NotFoundError, ValidationError
from mapnotes.extensions import db
from mapnotes.models import ROLE_ADMIN, ROLE_USER, User

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_SESSION_KEY = "user_id"
ROLES = (ROLE_ADMIN, ROLE_USER)


class AuthService:
    """User accounts and the identity of the current request."""

    def __init__(self, admin_emails: Iterable[str] = ()) -> None:
        self._admin_emails = {email.strip().lower() for email in admin_emails if email.strip()}

    @classmethod
    def from_app_config(cls) -> "AuthService":
        return cls(admin_emails=current_app.config.get("ADMIN_EMAILS", ()))

    @staticmethod
    def _normalize_email(email: Optional[str]) -> str:
        return (email or "").strip().lower()

    def register(self, email: Optional[str], password: Optional[str]) -> User:
        """Create a user account. Listed admin emails get the admin role."""
        email = self._normalize_email(email)
        if not email or not password:
            raise ValidationError("Email and password are required.")
        if not _EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email address.")
        if self.get_user_by_email(email) is not None:
            raise ValidationError("User already exists.")

        user = User(
            email=email,
            password_hash=generate_password_hash(password),
            role=ROLE_ADMIN if email in self._admin_emails else ROLE_USER,
        )
        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise ValidationError("User already exists.") from exc
        current_app.logger.info(f"Registered user {email}")
        return user

    def authenticate(self, email: Optional[str], password: Optional[str]) -> User:
        email = self._normalize_email(email)
        user = self.get_user_by_email(email) if email else None
        if user is None or not check_password_hash(user.password_hash, password or ""):
            current_app.logger.info(f"Failed login for {email or '<empty>'}")
            raise AuthRequiredError("Invalid email or password.")

        user.last_login_at = datetime.now(timezone.utc)
        if email in self._admin_emails and user.role != ROLE_ADMIN:
            user.role = ROLE_ADMIN
            current_app.logger.info(f"Granted admin role to {email}")
        db.session.commit()
        return user

    def login(self, user: User) -> None:
        session.clear()
        session[_SESSION_KEY] = user.id

    def logout(self) -> None:
        session.clear()

    def current_user(self) -> Optional[User]:
        user_id = session.get(_SESSION_KEY)
        if user_id is None:
            return None
        return db.session.get(User, user_id)

    def current_identity(self) -> Optional[Identity]:
        user = self.current_user()
        if user is None:
            return None
        return Identity(id=user.id, email=user.email, is_admin=user.is_admin)

    def get_user_by_email(self, email: str) -> Optional[User]:
        return db.session.execute(
            db.select(User).filter_by(email=self._normalize_email(email))
        ).scalar_one_or_none()

    def get_user(self, user_id: int) -> Optional[User]:
        return db.session.get(User, user_id)

    def list_users(self) -> List[User]:
        return list(db.session.execute(db.select(User).order_by(User.id)).scalars())

    def set_role(self, email: Optional[str], role: Optional[str]) -> User:
        if not email or not role:
            raise ValidationError("Email and role are required.")
        if role not in ROLES:
            raise ValidationError(f"Unknown role: {role}")
        user = self.get_user_by_email(email)
        if user is None:
            raise NotFoundError("User not found.")
        user.role = role
        db.session.commit()
        return user
