"""
Brickstore - FastAPI Application

Builds the HTTP surface from a wired business module:

    table = assemble_routes(module)     # prefix -> controller router
    app = create_app(table)             # mounted, with error handling and health

The application has no lifespan of its own; startup and shutdown are driven
by ``core.bootstrap``, which owns every resource the routes depend on.
"""
import time
import uuid
from types import MappingProxyType
from typing import TYPE_CHECKING, Mapping, Optional

from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.responses import JSONResponse
from opentelemetry import trace
from pydantic import BaseModel

from core.errors import RequestError
from observability import get_logger
from observability.logging import bind_context, clear_context

if TYPE_CHECKING:
    from di.module import Module

logger = get_logger(__name__)

VERSION = "1.0.0"

# Prefix -> router. Read-only once assembled.
RouteTable = Mapping[str, APIRouter]


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    trace_id: Optional[str] = None


def get_current_trace_id() -> Optional[str]:
    """Get current trace ID as hex string."""
    span = trace.get_current_span()
    if span and span.is_recording():
        ctx = span.get_span_context()
        if ctx.is_valid:
            return format(ctx.trace_id, "032x")
    return None


def assemble_routes(module: "Module") -> RouteTable:
    """Map each top-level prefix to the controller that owns it."""
    return MappingProxyType({
        "/bricks": module.bricks_controller.routes,
        "/cart": module.cart_controller.routes,
        "/order": module.order_controller.routes,
    })


async def request_error_handler(request: Request, exc: RequestError) -> JSONResponse:
    """Per-request failures become a JSON error response; the listener keeps serving."""
    logger.warning(
        "Request rejected",
        error_code=exc.error_code,
        status_code=exc.status_code,
        error=exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error_code": exc.error_code, "message": exc.message},
    )


async def observability_middleware(request: Request, call_next) -> Response:
    """Add request tracking with trace context."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    start_time = time.perf_counter()

    # Bind request context to all logs
    bind_context(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )

    try:
        response: Response = await call_next(request)
        duration = time.perf_counter() - start_time

        trace_id = get_current_trace_id()
        if trace_id:
            response.headers["X-Trace-ID"] = trace_id
        response.headers["X-Request-ID"] = request_id

        logger.info(
            "Request completed",
            status_code=response.status_code,
            duration_ms=duration * 1000,
        )
        return response
    except Exception as e:
        duration = time.perf_counter() - start_time
        logger.error("Request failed", error=str(e), duration_ms=duration * 1000)
        raise
    finally:
        clear_context()


async def health_check() -> HealthResponse:
    """Liveness probe; answering at all means startup has completed."""
    return HealthResponse(status="healthy", version=VERSION, trace_id=get_current_trace_id())


def create_app(table: RouteTable) -> FastAPI:
    """Mount every router in ``table`` under its prefix."""
    app = FastAPI(
        title="Brickstore API",
        description="Bricks catalog, shopping cart and orders",
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    for prefix, router in table.items():
        app.include_router(router, prefix=prefix)

    app.add_api_route("/health", health_check, methods=["GET"], response_model=HealthResponse)
    app.add_exception_handler(RequestError, request_error_handler)
    app.middleware("http")(observability_middleware)

    return app
