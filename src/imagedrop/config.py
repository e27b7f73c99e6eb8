"""
Configuration management for imagedrop.

This module defines the ambient process settings, loaded once from
environment variables and an optional ``.env`` file, and the immutable
service configuration produced at startup by the configuration resolver.
"""

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

DEFAULT_PORT = 3001
UPLOADS_URL_PREFIX = "/uploads"


class Settings(BaseSettings):
    """Application configuration settings."""

    # Database credentials (consulted by the configuration cascade only)
    db_user: Optional[str] = Field(default=None, description="Database user")
    db_password: Optional[str] = Field(
        default=None, description="Database password"
    )
    db_server: Optional[str] = Field(default=None, description="Database server")
    db_name: Optional[str] = Field(default=None, description="Database name")

    # Database engine settings
    db_driver: str = Field(
        default="mssql+pymssql", description="SQLAlchemy dialect and driver"
    )
    database_url: Optional[str] = Field(
        default=None,
        description="Full SQLAlchemy URL, overrides driver and credentials",
    )
    pool_max: int = Field(default=10, ge=1, description="Maximum pooled connections")
    pool_min: int = Field(
        default=0, ge=0, description="Connections opened when the pool starts"
    )
    pool_idle_timeout: int = Field(
        default=30, ge=1, description="Seconds before a pooled connection is recycled"
    )

    # Storage settings
    base_dir: Path = Field(default=Path("."), description="Working directory")
    config_file: str = Field(
        default="config.json", description="Persisted configuration file name"
    )
    upload_dir: Path = Field(
        default=Path("uploads/images"),
        description="Image upload directory, relative to base_dir",
    )
    public_dir: Path = Field(
        default=Path("public"),
        description="Frontend build directory, relative to base_dir",
    )

    # Upload settings
    max_upload_size: int = Field(
        default=5 * 1024 * 1024, description="Maximum image size in bytes (5MB)"
    )
    allowed_image_types: List[str] = Field(
        default=["image/jpeg", "image/png", "image/gif"],
        description="Accepted image MIME types",
    )

    # Server settings
    server_host: str = Field(default="0.0.0.0", description="Server host")
    port: Optional[int] = Field(
        default=None, ge=1, le=65535, description="Server port override"
    )
    frontend_url: str = Field(
        default="http://localhost:3000", description="Allowed CORS origin"
    )
    log_level: str = Field(default="INFO", description="Log level")
    debug: bool = Field(default=False, description="Debug mode")

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"
        env_ignore_empty = True
        case_sensitive = False
        extra = "ignore"

    @property
    def base_path(self) -> Path:
        return self.base_dir.resolve()

    @property
    def config_path(self) -> Path:
        return self.base_path / self.config_file

    @property
    def upload_path(self) -> Path:
        return self.base_path / self.upload_dir

    @property
    def uploads_root(self) -> Path:
        """Directory served under the ``/uploads`` URL prefix."""
        return self.base_path / UPLOADS_URL_PREFIX.lstrip("/")

    @property
    def public_path(self) -> Path:
        return self.base_path / self.public_dir


class DatabaseCredentials(BaseModel):
    """Credentials for the relational store."""

    user: str = Field(..., description="Database user")
    password: str = Field(..., description="Database password")
    server: str = Field(..., description="Database server, host or host\\instance")
    database: str = Field(..., description="Database name")

    class Config:
        """Pydantic configuration."""

        frozen = True


class ServiceConfig(BaseModel):
    """Resolved service configuration, fixed for the life of the process."""

    database: DatabaseCredentials = Field(..., description="Database credentials")
    port: int = Field(DEFAULT_PORT, ge=1, le=65535, description="HTTP port")

    class Config:
        """Pydantic configuration."""

        frozen = True


def get_settings() -> Settings:
    """Get application settings instance."""
    return Settings()
