"""
Brickstore - Observability Package

Structured logging (structlog) and tracing through the OpenTelemetry API.
No exporter is configured here; when the process runs without an SDK the
tracer is a no-op.

Usage:
    from observability import get_logger, get_tracer

    logger = get_logger(__name__)
    tracer = get_tracer(__name__)
"""
from opentelemetry import trace

from .logging import (
    LogContext,
    LoggingConfig,
    bind_context,
    clear_context,
    get_logger,
    setup_logging,
)


def get_tracer(name: str) -> trace.Tracer:
    """Get an OpenTelemetry tracer for manual instrumentation."""
    return trace.get_tracer(name)


__all__ = [
    "LogContext",
    "LoggingConfig",
    "bind_context",
    "clear_context",
    "get_logger",
    "get_tracer",
    "setup_logging",
]
