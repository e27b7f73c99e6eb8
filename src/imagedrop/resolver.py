"""
Startup configuration resolution.

Database credentials and the service port are resolved through two
independent cascades:

- database: persisted config file -> DB_* environment -> interactive prompt
- port: PORT environment -> config file ``port`` -> interactive prompt
  (packaged executable only) -> default

Values newly derived from the environment or from the user are persisted
to the config file so later runs start unattended. Resolution happens once;
the resulting ServiceConfig is immutable.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .config import DEFAULT_PORT, DatabaseCredentials, ServiceConfig, Settings
from .errors import ConfigurationError, FileSystemError
from .prompts import ConsolePrompter

logger = logging.getLogger(__name__)

REQUIRED_DATABASE_FIELDS = ("user", "password", "server", "database")


class ConfigFile:
    """JSON config file holding database credentials and an optional port."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> Optional[Dict[str, Any]]:
        """
        Read the config file.

        Returns:
            Parsed JSON object, or None if the file is missing or unreadable
        """
        if not self.exists():
            return None

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error(f"Error reading config file {self.path}: {e}")
            return None

        if not isinstance(data, dict):
            logger.error(f"Config file {self.path} does not contain a JSON object")
            return None

        return data

    def save(self, data: Mapping[str, Any]) -> None:
        """
        Write the config file, replacing any previous content.

        Raises:
            FileSystemError: If the file cannot be written
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(dict(data), indent=2), encoding="utf-8")
        except OSError as e:
            error_msg = f"Failed to write config file {self.path}: {e}"
            logger.error(error_msg)
            raise FileSystemError(error_msg) from e

    def update(self, **fields: Any) -> bool:
        """
        Merge fields into an existing, readable config file.

        Returns:
            True if the file was rewritten, False if there was nothing to merge into
        """
        data = self.load()
        if data is None:
            return False
        data.update(fields)
        self.save(data)
        return True


def validate_database_config(data: Optional[Mapping[str, Any]]) -> DatabaseCredentials:
    """
    Check that all required database fields are present and non-empty.

    Args:
        data: Mapping with user, password, server and database keys

    Returns:
        Validated credentials

    Raises:
        ConfigurationError: If the mapping is missing or incomplete
    """
    if data is None:
        raise ConfigurationError("Database configuration is required")

    missing = [
        field
        for field in REQUIRED_DATABASE_FIELDS
        if data.get(field) is None or str(data.get(field)).strip() == ""
    ]
    if missing:
        raise ConfigurationError(
            f"Missing required database configuration fields: {', '.join(missing)}"
        )

    return DatabaseCredentials(
        **{field: str(data[field]) for field in REQUIRED_DATABASE_FIELDS}
    )


def parse_port(value: Any, source: str) -> int:
    """
    Convert a port value from a config source to an integer.

    Raises:
        ConfigurationError: If the value is not an integer in [1, 65535]
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid port in {source}: {value!r}")

    try:
        port = int(str(value).strip())
    except ValueError as e:
        raise ConfigurationError(f"Invalid port in {source}: {value!r}") from e

    if not 1 <= port <= 65535:
        raise ConfigurationError(
            f"Port in {source} must be between 1 and 65535, got {port}"
        )
    return port


class ConfigResolver:
    """
    Resolves the ServiceConfig for one process start.

    The resolver never touches the environment directly: environment values
    arrive through the already-loaded Settings. Interactive input goes
    through the optional prompter, which the caller owns.
    """

    def __init__(
        self,
        settings: Settings,
        prompter: Optional[ConsolePrompter] = None,
        packaged: bool = False,
    ):
        assert settings is not None, "Settings object is required"

        self.settings = settings
        self.prompter = prompter
        self.packaged = packaged
        self.config_file = ConfigFile(settings.config_path)

    def resolve(self) -> ServiceConfig:
        """
        Run both cascades and build the service configuration.

        Raises:
            ConfigurationError: If required settings cannot be determined
        """
        database = self.resolve_database()
        port = self.resolve_port()
        logger.info(
            f"Configuration resolved: server={database.server} "
            f"database={database.database} port={port}"
        )
        return ServiceConfig(database=database, port=port)

    # ========================================
    # DATABASE CASCADE
    # ========================================

    def resolve_database(self) -> DatabaseCredentials:
        """Resolve database credentials: file, then environment, then prompt."""
        file_data = self.config_file.load()
        if file_data is not None:
            logger.info(f"Using database configuration from {self.config_file.path}")
            return validate_database_config(file_data)

        env_data = self._database_from_environment()
        if env_data is not None:
            logger.info("Using database configuration from environment")
            credentials = validate_database_config(env_data)
            self.config_file.save(credentials.model_dump())
            logger.info(f"Configuration saved to {self.config_file.path}")
            return credentials

        return self._database_from_prompt()

    def _database_from_environment(self) -> Optional[Dict[str, str]]:
        values = {
            "user": self.settings.db_user,
            "password": self.settings.db_password,
            "server": self.settings.db_server,
            "database": self.settings.db_name,
        }
        if all(values.values()):
            return values
        return None

    def _database_from_prompt(self) -> DatabaseCredentials:
        if self.prompter is None:
            raise ConfigurationError(
                "Database configuration not found in "
                f"{self.config_file.path} or environment (DB_USER, DB_PASSWORD, "
                "DB_SERVER, DB_NAME) and no console is available to ask for it"
            )

        prompter = self.prompter
        prompter.say("\n=== Database Configuration Setup ===")
        prompter.say("Please enter your SQL Server credentials:")

        data = {
            "user": prompter.ask("Username: "),
            "password": prompter.ask("Password: ", secret=True),
            "server": prompter.ask("Server (e.g. localhost\\SQLEXPRESS): "),
            "database": prompter.ask("Database name: "),
        }
        credentials = validate_database_config(data)

        if prompter.confirm("Save this configuration for future use? (y/n): "):
            self.config_file.save(credentials.model_dump())
            prompter.say(f"Configuration saved to {self.config_file.path.name}")

        return credentials

    # ========================================
    # PORT CASCADE
    # ========================================

    def resolve_port(self) -> int:
        """Resolve the HTTP port: environment, file, prompt, default."""
        if self.settings.port is not None:
            logger.debug(f"Port {self.settings.port} taken from environment")
            return self.settings.port

        file_data = self.config_file.load()
        if file_data is not None and file_data.get("port") not in (None, ""):
            return parse_port(file_data["port"], str(self.config_file.path))

        if self.packaged and self.prompter is not None:
            return self._port_from_prompt()

        return DEFAULT_PORT

    def _port_from_prompt(self) -> int:
        prompter = self.prompter
        assert prompter is not None, "Prompter is required for port prompt"

        while True:
            answer = prompter.ask(f"Port to listen on [{DEFAULT_PORT}]: ")
            if not answer:
                return DEFAULT_PORT
            try:
                port = parse_port(answer, "input")
            except ConfigurationError as e:
                prompter.say(str(e))
                continue
            break

        if self.config_file.update(port=port):
            prompter.say(f"Port saved to {self.config_file.path.name}")
        else:
            logger.info("No config file to record the port in; using it for this run")
        return port
