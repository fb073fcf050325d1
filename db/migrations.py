"""
Brickstore - Schema Migrations

Applies the alembic scripts in ``alembic/versions`` up to ``head``.

Migrations always run over a fresh, unpooled connection built from the raw
credentials, never over the shared transactor.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional, Union

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from sqlalchemy.engine import Connection
from sqlalchemy.pool import NullPool

from config import DbConfig
from core.errors import MigrationError
from db.transactor import create_db_engine, to_sqlalchemy_url
from observability import get_logger

DEFAULT_SCRIPT_LOCATION = Path(__file__).resolve().parent.parent / "alembic"


class MigrationRunner:
    """
    Runs versioned schema migrations synchronously.

    The logger is handed to the alembic environment through
    ``Config.attributes`` so migration scripts log through the same
    structured logger as the rest of the service.
    """

    def __init__(
        self,
        logger: Optional[Any] = None,
        script_location: Optional[Union[str, Path]] = None,
    ):
        self.logger = logger or get_logger("brickstore.db.migrations")
        self.script_location = Path(
            script_location
            or os.getenv("MIGRATIONS_LOCATION")
            or DEFAULT_SCRIPT_LOCATION
        )

    def alembic_config(self, connection: Optional[Connection] = None) -> Config:
        cfg = Config()
        cfg.set_main_option("script_location", str(self.script_location))
        cfg.attributes["logger"] = self.logger
        if connection is not None:
            cfg.attributes["connection"] = connection
        return cfg

    def migrate(self, config: DbConfig) -> None:
        """Upgrade the schema to the latest revision. Idempotent."""
        engine = create_db_engine(config, to_sqlalchemy_url(config), poolclass=NullPool)
        try:
            with engine.begin() as connection:
                before = MigrationContext.configure(connection).get_current_revision()
                command.upgrade(self.alembic_config(connection), "head")
                after = MigrationContext.configure(connection).get_current_revision()
        except Exception as e:
            self.logger.error("Schema migration failed", error=str(e))
            raise MigrationError(
                f"Schema migration failed: {e}",
                cause=e,
                suggestions=["Fix the failing script in alembic/versions; nothing was applied"],
            ) from e
        finally:
            engine.dispose()

        if before == after:
            self.logger.info("Schema up to date", revision=after)
        else:
            self.logger.info("Schema migrated", from_revision=before, to_revision=after)

    def current_revision(self, config: DbConfig) -> Optional[str]:
        """Return the revision the database is currently at (None if unmigrated)."""
        engine = create_db_engine(config, to_sqlalchemy_url(config), poolclass=NullPool)
        try:
            with engine.connect() as connection:
                return MigrationContext.configure(connection).get_current_revision()
        finally:
            engine.dispose()
