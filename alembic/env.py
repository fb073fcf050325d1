"""Alembic environment for Brickstore.

When invoked through ``MigrationRunner`` the connection and logger arrive in
``config.attributes``. When invoked from the alembic CLI the URL comes from
the regular settings (``application.toml`` / environment).
"""
import logging

from alembic import context
from sqlalchemy import create_engine
from sqlalchemy.pool import NullPool

from db.models import Base

config = context.config
target_metadata = Base.metadata

logger = config.attributes.get("logger") or logging.getLogger("alembic.env")


def _url():
    from config import ConfigLoader
    from db.transactor import to_sqlalchemy_url

    return to_sqlalchemy_url(ConfigLoader().load())


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of executing it."""
    context.configure(
        url=_url().render_as_string(hide_password=False),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connection = config.attributes.get("connection")
    if connection is not None:
        _run(connection)
        return

    engine = create_engine(_url(), poolclass=NullPool)
    try:
        with engine.begin() as connection:
            _run(connection)
    finally:
        engine.dispose()


def _run(connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        render_as_batch=connection.dialect.name == "sqlite",
    )
    logger.info("Running migrations")
    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
