"""
Main entry point for imagedrop.

This module orchestrates startup (configuration, directories, database
and schema) and provides the CLI for running the server or checking the
database connection.
"""

import argparse
import logging
import sys
from typing import List, Optional, Tuple

import uvicorn
from pydantic import ValidationError as SettingsValidationError
from sqlalchemy.engine import Engine

from .api import create_app
from .config import ServiceConfig, Settings
from .database import SchemaManager, build_engine, check_connection, warm_pool
from .errors import ConfigurationError, ImageDropError
from .files import ImageFileStore
from .prompts import ConsolePrompter
from .resolver import ConfigResolver

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


def is_packaged() -> bool:
    """True when running from a frozen single-file executable."""
    return bool(getattr(sys, "frozen", False))


def load_settings() -> Settings:
    """Load settings from the environment and ``.env``."""
    try:
        return Settings()
    except SettingsValidationError as e:
        raise ConfigurationError("Invalid environment settings", details=str(e)) from e


def resolve_config(settings: Settings, interactive: bool = True) -> ServiceConfig:
    """Run the configuration cascade, holding the console only while it runs."""
    if not interactive:
        return ConfigResolver(settings, packaged=is_packaged()).resolve()

    with ConsolePrompter() as prompter:
        return ConfigResolver(settings, prompter=prompter, packaged=is_packaged()).resolve()


def connect(config: ServiceConfig, settings: Settings) -> Engine:
    """Create the pool and make sure the database answers."""
    logger.info("Connecting to database...")
    engine = build_engine(config, settings)
    try:
        check_connection(engine)
        warm_pool(engine, settings.pool_min)
    except ImageDropError:
        engine.dispose()
        raise
    logger.info("Connected to database")
    return engine


def prepare(settings: Settings, interactive: bool = True) -> Tuple[ServiceConfig, Engine]:
    """
    Bring the service to the point where it can accept requests.

    Raises:
        ConfigurationError: If configuration cannot be resolved
        FileSystemError: If storage directories cannot be created
        DatabaseError: If the database cannot be reached or bootstrapped
    """
    config = resolve_config(settings, interactive=interactive)

    ImageFileStore(settings).setup()

    engine = connect(config, settings)
    try:
        SchemaManager(engine).ensure_schema()
    except ImageDropError:
        engine.dispose()
        raise

    return config, engine


def serve(settings: Settings, interactive: bool = True) -> None:
    """Start the HTTP server; returns after shutdown."""
    config, engine = prepare(settings, interactive=interactive)
    app = create_app(settings, config, engine)

    logger.info(f"Server listening at http://localhost:{config.port}")
    uvicorn.run(
        app,
        host=settings.server_host,
        port=config.port,
        log_level=settings.log_level.lower(),
    )


def check_db(settings: Settings, interactive: bool = True) -> None:
    """Resolve configuration, connect once and disconnect."""
    config = resolve_config(settings, interactive=interactive)
    engine = connect(config, settings)
    engine.dispose()
    print(f"Connected to {config.database.server}/{config.database.database} successfully")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="imagedrop", description="Image upload service"
    )
    parser.add_argument(
        "command",
        nargs="?",
        choices=["serve", "check-db"],
        default="serve",
        help="Run the server (default) or test the database connection",
    )
    parser.add_argument(
        "--no-input",
        action="store_true",
        help="Never prompt; fail if configuration is incomplete",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main application entry point."""
    args = build_parser().parse_args(argv)
    interactive = not args.no_input

    try:
        settings = load_settings()
        logging.getLogger().setLevel(settings.log_level.upper())

        if args.command == "check-db":
            check_db(settings, interactive=interactive)
        else:
            serve(settings, interactive=interactive)

    except ImageDropError as e:
        detail = f" ({e.details})" if e.details else ""
        logger.error(f"Server initialization failed: {e.message}{detail}")
        sys.exit(1)


if __name__ == "__main__":
    main()
