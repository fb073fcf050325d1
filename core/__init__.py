"""
Brickstore - Core Module

Error types shared by every layer and the application lifecycle.

Usage:
    from core import BrickstoreError, ConfigError, MigrationError
    from core.bootstrap import Application, run_application
"""

from core.errors import (
    BrickstoreError,
    ConfigError,
    ConflictError,
    DatabaseConnectionError,
    ErrorSeverity,
    ListenerError,
    MigrationError,
    NotFoundError,
    RequestError,
    StartupError,
    UnauthorizedError,
    ValidationFailedError,
)

__all__ = [
    "BrickstoreError",
    "ConfigError",
    "ConflictError",
    "DatabaseConnectionError",
    "ErrorSeverity",
    "ListenerError",
    "MigrationError",
    "NotFoundError",
    "RequestError",
    "StartupError",
    "UnauthorizedError",
    "ValidationFailedError",
]
