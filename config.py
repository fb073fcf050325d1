"""
Brickstore - Configuration

Settings are read from a TOML settings file (``application.toml`` in the
working directory, or the path in ``BRICKSTORE_CONFIG``) and may be overridden
by environment variables, which are themselves loaded from ``.env``.

    [db]
    jdbcUrl = "jdbc:postgresql://localhost:5432/brickstore"
    user = "postgres"
    password = "postgres"

    [server]
    host = "0.0.0.0"
    port = 8080
    shutdownTimeout = 5
"""
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Type, TypeVar, Union

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from core.errors import ConfigError
from observability.logging import LoggingConfig

load_dotenv()

DEFAULT_CONFIG_FILE = "application.toml"

# Environment overrides, keyed by the setting name used in the file
DB_ENV_OVERRIDES = {
    "jdbcUrl": "DB_JDBC_URL",
    "user": "DB_USER",
    "password": "DB_PASSWORD",
}
SERVER_ENV_OVERRIDES = {
    "host": "SERVER_HOST",
    "port": "SERVER_PORT",
    "shutdownTimeout": "SERVER_SHUTDOWN_TIMEOUT",
}

M = TypeVar("M", bound=BaseModel)


class DbConfig(BaseModel):
    """Database connection parameters. Immutable once loaded."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    jdbc_url: str = Field(..., alias="jdbcUrl", min_length=1)
    user: str = Field(..., min_length=1)
    password: str

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for diagnostics (password excluded)."""
        return {"jdbcUrl": self.jdbc_url, "user": self.user, "password": "***"}


class ServerConfig(BaseModel):
    """HTTP listener settings."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    host: str = "0.0.0.0"
    port: int = Field(8080, ge=0, le=65535)
    # Upper bound on how long in-flight responses may run once shutdown starts
    shutdown_timeout: float = Field(5.0, alias="shutdownTimeout", ge=0)

    def to_dict(self) -> Dict[str, Any]:
        return {"host": self.host, "port": self.port, "shutdownTimeout": self.shutdown_timeout}


@dataclass(frozen=True)
class AppConfig:
    """Main configuration combining all sub-configs."""

    db: DbConfig
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary (excluding sensitive values)."""
        return {
            "db": self.db.to_dict(),
            "server": self.server.to_dict(),
            "logging": {
                "level": self.logging.level,
                "json_format": self.logging.json_format,
                "environment": self.logging.environment,
            },
        }


class ConfigLoader:
    """
    Reads typed settings from the settings file and the environment.

    Environment variables win over file values. A missing settings file is
    only an error when its path was given explicitly; otherwise the
    environment alone must supply the required keys.
    """

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.environ = os.environ if environ is None else environ
        explicit = path or self.environ.get("BRICKSTORE_CONFIG")
        self.path = Path(explicit or DEFAULT_CONFIG_FILE)
        self._explicit = bool(explicit)
        self._document: Optional[Dict[str, Any]] = None

    def load(self) -> DbConfig:
        """Load the ``db`` namespace."""
        return self._load_section("db", DB_ENV_OVERRIDES, DbConfig)

    def load_server(self) -> ServerConfig:
        """Load the ``server`` namespace (every key has a default)."""
        return self._load_section("server", SERVER_ENV_OVERRIDES, ServerConfig)

    def load_app(self) -> AppConfig:
        return AppConfig(db=self.load(), server=self.load_server())

    def _read_document(self) -> Dict[str, Any]:
        if self._document is not None:
            return self._document

        if not self.path.exists():
            if self._explicit:
                raise ConfigError(
                    f"Settings file not found: {self.path}",
                    config_key="BRICKSTORE_CONFIG",
                    actual_value=str(self.path),
                )
            self._document = {}
            return self._document

        try:
            with self.path.open("rb") as f:
                self._document = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Malformed settings file {self.path}: {e}", cause=e) from e
        return self._document

    def _load_section(
        self,
        namespace: str,
        overrides: Mapping[str, str],
        model: Type[M],
    ) -> M:
        section = self._read_document().get(namespace, {})
        if not isinstance(section, dict):
            raise ConfigError(
                f"Setting '{namespace}' must be a table",
                config_key=namespace,
                actual_value=section,
            )

        values = dict(section)
        for key, env_var in overrides.items():
            if env_var in self.environ:
                values[key] = self.environ[env_var]

        try:
            return model.model_validate(values)
        except ValidationError as e:
            first = e.errors()[0]
            key = ".".join(str(part) for part in (namespace, *first["loc"]))
            if first["type"] == "missing":
                message = f"Missing required setting '{key}'"
            else:
                message = f"Invalid value for setting '{key}': {first['msg']}"
            raise ConfigError(
                message,
                config_key=key,
                actual_value=first.get("input"),
                cause=e,
            ) from e
