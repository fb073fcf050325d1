"""
Brickstore - Unified Error Handling

Error hierarchy shared by the startup lifecycle and the HTTP layer.

Features:
- Hierarchical exception classes with cause preservation
- Severity levels (startup failures are FATAL)
- OpenTelemetry integration: errors record themselves on the active span
- Request-scoped errors carry the HTTP status they map to
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode


class ErrorSeverity(Enum):
    """Error severity levels for prioritized handling."""

    WARNING = "warning"  # Per-request problem, service keeps running
    ERROR = "error"      # Operation failed
    FATAL = "fatal"      # Unrecoverable, process must not start


class BrickstoreError(Exception):
    """
    Base exception for all Brickstore-specific errors.

    Provides:
    - Severity level
    - Chained exception support
    - OpenTelemetry span recording
    """

    default_severity: ErrorSeverity = ErrorSeverity.ERROR
    error_code: str = "BRICKSTORE_ERROR"

    def __init__(
        self,
        message: str,
        severity: Optional[ErrorSeverity] = None,
        cause: Optional[BaseException] = None,
        suggestions: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.severity = severity or self.default_severity
        self.cause = cause
        self.suggestions = suggestions or []
        self.timestamp = datetime.now(timezone.utc)

        self._record_to_span()

    def _record_to_span(self) -> None:
        """Record exception to current OpenTelemetry span."""
        span = trace.get_current_span()
        if span and span.is_recording():
            span.set_status(Status(StatusCode.ERROR, self.message))
            span.record_exception(self)
            span.set_attribute("error.code", self.error_code)
            span.set_attribute("error.severity", self.severity.value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses and diagnostics."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "severity": self.severity.value,
            "suggestions": self.suggestions,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def __str__(self) -> str:
        parts = [f"[{self.error_code}] {self.message}"]
        if self.cause:
            parts.append(f" [caused by: {self.cause}]")
        return "".join(parts)


# =============================================================================
# STARTUP ERRORS (fatal)
# =============================================================================


class StartupError(BrickstoreError):
    """Base for errors that abort the process before it serves traffic."""

    error_code = "STARTUP_ERROR"
    default_severity = ErrorSeverity.FATAL


class ConfigError(StartupError):
    """Missing or malformed settings."""

    error_code = "CONFIG_ERROR"

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.config_key = config_key
        self.actual_value = actual_value


class DatabaseConnectionError(StartupError):
    """The connection pool could not be established."""

    error_code = "CONNECTION_ERROR"

    def __init__(self, message: str, url: Optional[str] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.url = url


class MigrationError(StartupError):
    """A schema migration failed to apply."""

    error_code = "MIGRATION_ERROR"

    def __init__(self, message: str, revision: Optional[str] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.revision = revision


class ListenerError(StartupError):
    """The HTTP listener could not bind its address."""

    error_code = "LISTENER_ERROR"

    def __init__(
        self,
        message: str,
        host: Optional[str] = None,
        port: Optional[int] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.host = host
        self.port = port


# =============================================================================
# REQUEST ERRORS (scoped to a single request)
# =============================================================================


class RequestError(BrickstoreError):
    """Error raised while handling a request; never crashes the listener."""

    error_code = "REQUEST_ERROR"
    default_severity = ErrorSeverity.WARNING
    status_code: int = 400


class NotFoundError(RequestError):
    """Referenced entity does not exist."""

    error_code = "NOT_FOUND"
    status_code = 404


class ConflictError(RequestError):
    """Request conflicts with current state (e.g. ordering an empty cart)."""

    error_code = "CONFLICT"
    status_code = 409


class ValidationFailedError(RequestError):
    """Request payload is well-formed but semantically invalid."""

    error_code = "VALIDATION_ERROR"
    status_code = 422

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.field_name = field_name


class UnauthorizedError(RequestError):
    """Request carries no usable user identity."""

    error_code = "UNAUTHORIZED"
    status_code = 401
