"""
Test configuration and shared fixtures for the imagedrop test suite.

Every test runs against its own temporary base directory and a SQLite
file database, so file and row state can be inspected directly.
"""

import io
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy.engine import Engine

from imagedrop.api import create_app
from imagedrop.config import DatabaseCredentials, ServiceConfig, Settings
from imagedrop.database import SchemaManager, build_engine
from imagedrop.files import ImageFileStore
from imagedrop.storage import StorageService
from tests.helpers import make_settings

ENVIRONMENT_KEYS = (
    "PORT",
    "DB_USER",
    "DB_PASSWORD",
    "DB_SERVER",
    "DB_NAME",
    "DATABASE_URL",
    "BASE_DIR",
    "FRONTEND_URL",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep the developer's environment out of settings resolution."""
    for key in ENVIRONMENT_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Test-specific settings configuration."""
    return make_settings(tmp_path)


@pytest.fixture
def service_config() -> ServiceConfig:
    return ServiceConfig(
        database=DatabaseCredentials(
            user="test", password="test", server="localhost", database="test"
        )
    )


@pytest.fixture
def engine(settings, service_config) -> Generator[Engine, None, None]:
    """Engine with the image table already created."""
    engine = build_engine(service_config, settings)
    SchemaManager(engine).ensure_schema()
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def storage(engine) -> StorageService:
    return StorageService(engine)


@pytest.fixture
def file_store(settings) -> ImageFileStore:
    store = ImageFileStore(settings)
    store.setup()
    return store


@pytest.fixture
def client(settings, service_config, engine, file_store) -> TestClient:
    """FastAPI test client over the temporary store."""
    app = create_app(settings, service_config, engine)
    return TestClient(app)


def _image_bytes(fmt: str, color: str = "red") -> bytes:
    image = Image.new("RGB", (32, 32), color=color)
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return _image_bytes("PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    return _image_bytes("JPEG", color="blue")


@pytest.fixture
def gif_bytes() -> bytes:
    return _image_bytes("GIF", color="green")

