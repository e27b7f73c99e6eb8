"""
Helpers for building settings and inspecting store state from tests.
"""

from pathlib import Path
from typing import Any

from sqlalchemy import select
from sqlalchemy.engine import Engine

from imagedrop.config import Settings
from imagedrop.database import images


def make_settings(base_dir: Path, **overrides: Any) -> Settings:
    """Settings rooted at ``base_dir`` with a SQLite database inside it."""
    values: dict = {
        "base_dir": base_dir,
        "database_url": f"sqlite:///{base_dir / 'test.db'}",
        "log_level": "DEBUG",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def stored_paths(engine: Engine) -> list:
    """Every image_path currently in the table, in id order."""
    with engine.connect() as conn:
        return list(
            conn.execute(select(images.c.image_path).order_by(images.c.id)).scalars()
        )


def uploaded_files(settings: Settings) -> list:
    """Names of the files currently in the upload directory."""
    if not settings.upload_path.exists():
        return []
    return sorted(p.name for p in settings.upload_path.iterdir())
