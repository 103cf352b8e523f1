from __future__ import annotations

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def init_extensions(app) -> None:
    """Initialize Flask extensions and create missing tables."""
    db.init_app(app)
    # Import models so their tables are registered on the metadata.
    from mapnotes import models  # noqa: F401

    with app.app_context():
        db.create_all()
