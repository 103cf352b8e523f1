from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Tuple, Type


def _env_list(name: str, default: str = "") -> Tuple[str, ...]:
    raw = os.getenv(name, default)
    return tuple(item.strip().lower() for item in raw.split(",") if item.strip())


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Base application configuration."""

    SECRET_KEY: str = os.getenv("SECRET_KEY", "change-me")
    SQLALCHEMY_DATABASE_URI: str = os.getenv(
        "DATABASE_URL",
        os.getenv(
            "SQLALCHEMY_DATABASE_URI",
            "sqlite:///mapnotes.db",
        ),
    )
    SQLALCHEMY_TRACK_MODIFICATIONS: bool = False
    SESSION_COOKIE_SAMESITE: str = "Lax"
    # "sql" keeps documents in the database, "local" as JSON files under DOCUMENT_DIR
    STORAGE_BACKEND: str = os.getenv("STORAGE_BACKEND", "sql")
    DOCUMENT_DIR: Path = Path(os.getenv("DOCUMENT_DIR", "instance/documents"))
    ADMIN_EMAILS: Tuple[str, ...] = _env_list("ADMIN_EMAILS")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")


class DevelopmentConfig(Config):
    DEBUG: bool = True
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "DEBUG")


class ProductionConfig(Config):
    DEBUG: bool = False
    SESSION_COOKIE_SECURE: bool = True


class TestingConfig(Config):
    TESTING: bool = True
    SECRET_KEY: str = "testing"
    SQLALCHEMY_DATABASE_URI: str = "sqlite://"
    STORAGE_BACKEND: str = "sql"
    ADMIN_EMAILS: Tuple[str, ...] = ("admin@example.com",)


CONFIG_MAP: Dict[str, Type[Config]] = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": Config,
}


def resolve_config(config_name: str | None) -> Type[Config]:
    """Return the configuration class for the given name."""
    if not config_name:
        return CONFIG_MAP["default"]
    return CONFIG_MAP.get(config_name, CONFIG_MAP["default"])


@dataclass(frozen=True)
class EditorSettings:
    """Settings of a map editor session (client side)."""

    api_url: str = "http://127.0.0.1:5000"
    autosave: bool = False
    autosave_interval: float = 2.0
    zoom: float = 13
    point_tolerance_m: float = 20.0
    line_tolerance_px: float = 10.0

    @classmethod
    def from_env(cls) -> "EditorSettings":
        return cls(
            api_url=os.getenv("MAPNOTES_API_URL", cls.api_url),
            autosave=_env_bool("MAPNOTES_AUTOSAVE", cls.autosave),
            autosave_interval=float(os.getenv("MAPNOTES_AUTOSAVE_INTERVAL", cls.autosave_interval)),
            zoom=float(os.getenv("MAPNOTES_ZOOM", cls.zoom)),
        )
