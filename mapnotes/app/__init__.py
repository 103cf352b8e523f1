from __future__ import annotations

import logging
import os
from pathlib import Path

from flask import Flask

from mapnotes.config import resolve_config
from mapnotes.extensions import init_extensions
from mapnotes.app.container import register_services


def create_app(config_name: str | None = None) -> Flask:
    """Application factory."""
    project_root = Path(__file__).resolve().parents[2]
    app = Flask(
        __name__,
        instance_relative_config=True,
        instance_path=str(project_root / "instance"),
    )

    config_class = resolve_config(config_name or os.getenv("FLASK_ENV"))
    app.config.from_object(config_class)
    _configure_logging(app)

    init_extensions(app)
    register_services(app)
    _register_blueprints(app)
    return app


def _register_blueprints(app: Flask) -> None:
    from mapnotes.api.auth.routes import auth_bp
    from mapnotes.api.maps.routes import maps_bp
    from mapnotes.api.admin.routes import admin_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(maps_bp)
    app.register_blueprint(admin_bp)


def _configure_logging(app: Flask) -> None:
    """Apply LOG_LEVEL to the app logger and the library modules."""
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO
    app.logger.setLevel(level)
    logging.getLogger("mapnotes").setLevel(level)
