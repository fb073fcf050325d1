"""
Brickstore - Test Configuration

Pytest fixtures and configuration for all tests. Database tests run against
temporary SQLite files migrated with the real alembic scripts.
"""
import pytest
import pytest_asyncio
from pathlib import Path
from typing import AsyncIterator, Dict


@pytest.fixture
def settings_file(tmp_path: Path):
    """Write a settings file and return its path."""

    def write(text: str) -> Path:
        path = tmp_path / "application.toml"
        path.write_text(text)
        return path

    return write


@pytest.fixture
def sample_settings() -> Dict[str, Dict[str, object]]:
    """Settings as they appear in a typical application.toml."""
    return {
        "db": {
            "jdbcUrl": "jdbc:postgresql://db.internal:5432/brickstore",
            "user": "brickstore",
            "password": "s3cret",
        },
        "server": {"host": "127.0.0.1", "port": 9090, "shutdownTimeout": 2},
    }


@pytest.fixture
def db_config(tmp_path: Path):
    """DbConfig pointing at an empty SQLite database file."""
    from config import DbConfig

    return DbConfig(
        jdbc_url=f"sqlite:///{tmp_path / 'brickstore.db'}",
        user="sa",
        password="",
    )


@pytest.fixture
def migrated_db_config(db_config):
    """DbConfig for a SQLite database migrated to head."""
    from db.migrations import MigrationRunner

    MigrationRunner().migrate(db_config)
    return db_config


@pytest_asyncio.fixture
async def transactor(migrated_db_config) -> AsyncIterator:
    """Transactor over a migrated SQLite database."""
    from db.transactor import ConnectionPoolProvider

    provider = ConnectionPoolProvider(connect_threads=2, pool_size=2, max_overflow=2)
    async with provider.acquire(migrated_db_config) as tx:
        yield tx


@pytest.fixture
def module(transactor):
    """Wired business module."""
    from di.module import MainModule

    return MainModule.make(transactor)


@pytest_asyncio.fixture
async def client(module) -> AsyncIterator:
    """HTTP client for the assembled application, served in-process."""
    import httpx

    from api.main import assemble_routes, create_app

    app = create_app(assemble_routes(module))
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://brickstore.test") as http:
        yield http
    await module.aclose()


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "slow: tests that open real sockets or wait on timers")
