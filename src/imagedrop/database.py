"""
Database engine, table definition and schema bootstrap.

The engine wraps a bounded SQLAlchemy QueuePool and is the only shared
mutable resource of the process. SQL Server is the default target; any
SQLAlchemy URL can be supplied through ``DATABASE_URL``.
"""

import logging
from typing import Union

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    MetaData,
    Table,
    Unicode,
    create_engine,
    func,
    inspect,
    text,
)
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import QueuePool

from .config import ServiceConfig, Settings
from .errors import DatabaseError

logger = logging.getLogger(__name__)

IMAGES_TABLE = "Images"

metadata = MetaData()

images = Table(
    IMAGES_TABLE,
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("image_path", Unicode(255), nullable=False),
    Column("upload_date", DateTime, server_default=func.now()),
)


def build_database_url(config: ServiceConfig, settings: Settings) -> Union[str, URL]:
    """Build the connection URL from resolved credentials."""
    if settings.database_url:
        return settings.database_url

    credentials = config.database
    return URL.create(
        settings.db_driver,
        username=credentials.user,
        password=credentials.password,
        host=credentials.server,
        database=credentials.database,
    )


def build_engine(config: ServiceConfig, settings: Settings) -> Engine:
    """
    Create the pooled engine.

    Args:
        config: Resolved service configuration
        settings: Application settings (pool sizing)

    Returns:
        SQLAlchemy engine; no connection is opened yet

    Raises:
        DatabaseError: If the URL or driver is unusable
    """
    try:
        url = make_url(build_database_url(config, settings))
        connect_args = {}
        if url.get_backend_name() == "sqlite":
            # Requests run on the threadpool; pooled connections move between threads
            connect_args["check_same_thread"] = False

        engine = create_engine(
            url,
            connect_args=connect_args,
            echo=settings.debug,
            poolclass=QueuePool,
            pool_size=settings.pool_max,
            max_overflow=0,
            pool_recycle=settings.pool_idle_timeout,
            pool_pre_ping=True,
        )
    except (SQLAlchemyError, ImportError, ValueError) as e:
        error_msg = f"Failed to create database engine: {e}"
        logger.error(error_msg)
        raise DatabaseError(error_msg, details=str(e)) from e

    return engine


def check_connection(engine: Engine) -> None:
    """
    Open a connection and run a trivial query.

    Raises:
        DatabaseError: If the store cannot be reached
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        error_msg = f"Database connection failed: {e}"
        logger.error(error_msg)
        raise DatabaseError("Database unavailable", details=str(e)) from e


def warm_pool(engine: Engine, count: int) -> None:
    """Open ``count`` connections up front and hand them back to the pool."""
    if count <= 0:
        return

    connections = []
    try:
        for _ in range(count):
            connections.append(engine.connect())
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to open pooled connections", details=str(e)) from e
    finally:
        for conn in connections:
            conn.close()

    logger.debug(f"Connection pool warmed with {count} connections")


class SchemaManager:
    """Creates the image table if it is missing, once per process."""

    def __init__(self, engine: Engine):
        assert engine is not None, "Engine is required"
        self.engine = engine
        self._ensured = False

    def ensure_schema(self) -> bool:
        """
        Guarantee the image table exists.

        Returns:
            True if the table was created by this call, False otherwise

        Raises:
            DatabaseError: If the existence check or creation fails
        """
        if self._ensured:
            return False

        try:
            with self.engine.begin() as conn:
                if inspect(conn).has_table(IMAGES_TABLE):
                    logger.info(f"{IMAGES_TABLE} table already exists")
                    created = False
                else:
                    logger.info(f"Creating {IMAGES_TABLE} table...")
                    images.create(conn)
                    logger.info(f"{IMAGES_TABLE} table created successfully")
                    created = True
        except SQLAlchemyError as e:
            error_msg = f"Error checking/creating table: {e}"
            logger.error(error_msg)
            raise DatabaseError(error_msg, details=str(e)) from e

        self._ensured = True
        return created
