"""
Brickstore - Application Bootstrap

Coordinates startup and shutdown of the service as one scoped chain:

    config -> connection pool -> schema migration -> business module
    -> routes -> HTTP listener -> (serve until shutdown) -> release

Every acquired resource is registered on a single ``AsyncExitStack``, so
whatever the exit path (startup failure, shutdown signal, task
cancellation) the resources acquired so far are released exactly once, in
reverse acquisition order: listener, module, engine, transact executor,
connect executor.

Usage:
    from core.bootstrap import Application, run_application

    # Serve until SIGINT/SIGTERM
    asyncio.run(run_application())

    # Or drive the scope yourself
    app = Application()
    async with app.start() as handle:
        print(f"listening on {handle.host}:{handle.port}")
        app.request_shutdown()
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
import math
import signal
import socket
import sys
import time
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any,
    AsyncContextManager,
    AsyncIterator,
    Callable,
    Dict,
    Iterator,
    List,
    Optional,
    Tuple,
)
from uuid import UUID, uuid4

import uvicorn
from fastapi import FastAPI

from api.main import assemble_routes, create_app
from config import ConfigLoader, DbConfig, ServerConfig
from core.errors import ListenerError
from db.migrations import MigrationRunner
from db.transactor import ConnectionPoolProvider, Transactor
from di.module import MainModule, Module
from observability import LogContext, get_tracer

logger = logging.getLogger("brickstore.bootstrap")
tracer = get_tracer(__name__)

# Connections are never closed for being idle; streaming responses rely on it.
IDLE_TIMEOUT = math.inf

ModuleFactory = Callable[[Transactor], Module]
ListenerFactory = Callable[[FastAPI, ServerConfig], AsyncContextManager[Any]]


# =============================================================================
# LIFECYCLE PHASES AND EVENTS
# =============================================================================


class ApplicationPhase(Enum):
    """
    Application lifecycle phases.

    The application transitions through these phases in order:
    CREATED → CONFIGURING → POOL_ACQUIRED → MIGRATED → MODULE_BUILT → LISTENING
    → SHUTTING_DOWN → TERMINATED

    A startup failure moves to FAILED once everything acquired is released.
    """
    CREATED = "created"
    CONFIGURING = "configuring"
    POOL_ACQUIRED = "pool_acquired"
    MIGRATED = "migrated"
    MODULE_BUILT = "module_built"
    LISTENING = "listening"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"
    FAILED = "failed"


_STARTING_PHASES = frozenset({
    ApplicationPhase.CREATED,
    ApplicationPhase.CONFIGURING,
    ApplicationPhase.POOL_ACQUIRED,
    ApplicationPhase.MIGRATED,
    ApplicationPhase.MODULE_BUILT,
})

@dataclass(frozen=True, slots=True)
class LifecycleEvent:
    """Immutable record of one startup or shutdown step."""
    event_id: UUID
    timestamp: float
    phase: ApplicationPhase
    component: str
    success: bool
    duration_ms: float
    error: Optional[str] = None
    error_type: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success_event(
        cls,
        phase: ApplicationPhase,
        component: str,
        duration_ms: float,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "LifecycleEvent":
        """Factory for successful lifecycle events."""
        return cls(
            event_id=uuid4(),
            timestamp=time.time(),
            phase=phase,
            component=component,
            success=True,
            duration_ms=duration_ms,
            metadata=metadata or {},
        )

    @classmethod
    def failure_event(
        cls,
        phase: ApplicationPhase,
        component: str,
        error: BaseException,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "LifecycleEvent":
        """Factory for failed lifecycle events."""
        return cls(
            event_id=uuid4(),
            timestamp=time.time(),
            phase=phase,
            component=component,
            success=False,
            duration_ms=0,
            error=str(error),
            error_type=type(error).__name__,
            metadata=metadata or {},
        )


# =============================================================================
# HTTP LISTENER
# =============================================================================


class ManagedServer(uvicorn.Server):
    """
    uvicorn server that leaves process signals alone.

    Signals belong to the owning :class:`Application`, which turns them into a
    shutdown request; the server only stops when ``should_exit`` is set.
    """

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


@dataclass
class ServerHandle:
    """A bound listening socket and the server task serving on it."""
    server: ManagedServer
    sock: socket.socket
    task: "asyncio.Task[None]"
    address: Tuple[str, int]

    @property
    def host(self) -> str:
        return self.address[0]

    @property
    def port(self) -> int:
        return self.address[1]


def bind_socket(host: str, port: int) -> socket.socket:
    """Bind the listening socket up front so a bind failure is a typed error."""
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
    except OSError as e:
        sock.close()
        raise ListenerError(
            f"Cannot bind HTTP listener to {host}:{port}: {e}",
            host=host,
            port=port,
            cause=e,
            suggestions=["Check that no other process is using the port"],
        ) from e
    return sock


@asynccontextmanager
async def serve_http(app: FastAPI, config: ServerConfig) -> AsyncIterator[ServerHandle]:
    """
    Serve ``app`` on ``config.host:config.port`` for the duration of the scope.

    Idle connections are never timed out. On exit the server stops accepting,
    in-flight responses get ``config.shutdown_timeout`` seconds to finish and
    are then cancelled.
    """
    sock = bind_socket(config.host, config.port)
    server = ManagedServer(
        uvicorn.Config(
            app,
            lifespan="off",
            log_config=None,
            access_log=False,
            timeout_keep_alive=IDLE_TIMEOUT,
            timeout_graceful_shutdown=config.shutdown_timeout,
        )
    )
    task = asyncio.create_task(server.serve(sockets=[sock]), name="http-listener")
    try:
        while not server.started:
            if task.done():
                cause = None if task.cancelled() else task.exception()
                raise ListenerError(
                    f"HTTP listener failed to start on {config.host}:{config.port}",
                    host=config.host,
                    port=config.port,
                    cause=cause,
                )
            await asyncio.sleep(0.01)

        address = sock.getsockname()[:2]
        logger.info(f"Listening on {address[0]}:{address[1]}")
        yield ServerHandle(server=server, sock=sock, task=task, address=address)
    finally:
        server.should_exit = True
        await asyncio.wait({task})
        sock.close()
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"HTTP listener exited with error: {task.exception()}")
        logger.info("Listener closed")


# =============================================================================
# APPLICATION
# =============================================================================


class Application:
    """
    The running service.

    Each step of the startup chain is injectable so the lifecycle can be
    exercised with instrumented stand-ins:

    - ``config_loader``: ``load()`` and ``load_server()``
    - ``pool_provider``: ``acquire(db_config)`` async context manager
    - ``migration_runner``: blocking ``migrate(db_config)``
    - ``module_factory``: ``transactor -> Module`` (released through ``aclose()``)
    - ``listener_factory``: ``(app, server_config)`` async context manager
    """

    def __init__(
        self,
        config_loader: Optional[ConfigLoader] = None,
        pool_provider: Optional[ConnectionPoolProvider] = None,
        migration_runner: Optional[MigrationRunner] = None,
        module_factory: Optional[ModuleFactory] = None,
        listener_factory: Optional[ListenerFactory] = None,
    ):
        self.config_loader = config_loader or ConfigLoader()
        self.pool_provider = pool_provider or ConnectionPoolProvider()
        self.migration_runner = migration_runner or MigrationRunner()
        self.module_factory = module_factory or MainModule.make
        self.listener_factory = listener_factory or serve_http

        self._phase = ApplicationPhase.CREATED
        self._lifecycle_events: List[LifecycleEvent] = []
        self._shutdown_requested = asyncio.Event()
        self._run_task: Optional["asyncio.Task[Any]"] = None
        self._startup_interrupted = False

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def phase(self) -> ApplicationPhase:
        """Current lifecycle phase."""
        return self._phase

    @property
    def lifecycle_events(self) -> List[LifecycleEvent]:
        return list(self._lifecycle_events)

    # -------------------------------------------------------------------------
    # Lifecycle Management
    # -------------------------------------------------------------------------

    async def run(self) -> None:
        """
        Start, serve until shutdown is requested, then release everything.

        A shutdown request that arrives before the listener is up cancels the
        startup step in progress; whatever was acquired is released and
        ``run`` returns normally.
        """
        if self._shutdown_requested.is_set():
            logger.info("Shutdown requested before startup, not starting")
            return

        self._run_task = asyncio.current_task()
        try:
            async with self.start() as handle:
                await self._serve_until_shutdown(handle)
        except asyncio.CancelledError:
            if not self._startup_interrupted:
                raise
            self._run_task.uncancel()
            logger.info("Startup interrupted by shutdown request")
        finally:
            self._run_task = None

    @asynccontextmanager
    async def start(self) -> AsyncIterator[Any]:
        """
        Acquire the whole chain and yield the listener handle.

        Leaving the scope, for any reason, releases the listener, the module
        and the pool in that order.
        """
        try:
            async with AsyncExitStack() as stack:
                try:
                    handle = await self._acquire(stack)
                except Exception as e:
                    self._phase = ApplicationPhase.FAILED
                    logger.error(f"Startup failed: {e}")
                    raise
                except asyncio.CancelledError:
                    self._phase = ApplicationPhase.SHUTTING_DOWN
                    logger.info("Startup cancelled, releasing acquired resources")
                    raise

                try:
                    yield handle
                finally:
                    self._phase = ApplicationPhase.SHUTTING_DOWN
                    logger.info("Shutting down")
        finally:
            if self._phase is not ApplicationPhase.FAILED:
                self._phase = ApplicationPhase.TERMINATED
                logger.info("Shutdown complete")

    async def _acquire(self, stack: AsyncExitStack) -> Any:
        total_start = time.perf_counter()
        self._phase = ApplicationPhase.CONFIGURING

        with self._step("config", ApplicationPhase.CONFIGURING) as details:
            db_config, server_config = await asyncio.to_thread(self._load_config)
            details["server"] = f"{server_config.host}:{server_config.port}"

        with self._step("pool", ApplicationPhase.POOL_ACQUIRED):
            transactor = await stack.enter_async_context(self.pool_provider.acquire(db_config))

        with self._step("migrate", ApplicationPhase.MIGRATED):
            await asyncio.to_thread(self.migration_runner.migrate, db_config)

        with self._step("module", ApplicationPhase.MODULE_BUILT):
            module = self.module_factory(transactor)
            stack.push_async_callback(module.aclose)
            app = create_app(assemble_routes(module))

        with self._step("listener", ApplicationPhase.LISTENING) as details:
            handle = await stack.enter_async_context(self.listener_factory(app, server_config))
            if isinstance(handle, ServerHandle):
                details["address"] = f"{handle.host}:{handle.port}"

        logger.info(
            f"Application started (duration={(time.perf_counter() - total_start) * 1000:.0f}ms)"
        )
        return handle

    def _load_config(self) -> Tuple[DbConfig, ServerConfig]:
        return self.config_loader.load(), self.config_loader.load_server()

    @contextlib.contextmanager
    def _step(self, component: str, reached: ApplicationPhase) -> Iterator[Dict[str, Any]]:
        """Run one startup step in a span and record its outcome with any details it adds."""
        start = time.perf_counter()
        details: Dict[str, Any] = {}
        with tracer.start_as_current_span(f"startup.{component}"), LogContext(startup_step=component):
            try:
                yield details
            except (Exception, asyncio.CancelledError) as e:
                self._record_event(LifecycleEvent.failure_event(self._phase, component, e, details))
                raise
        self._phase = reached
        self._record_event(
            LifecycleEvent.success_event(
                reached, component, (time.perf_counter() - start) * 1000, details
            )
        )

    async def _serve_until_shutdown(self, handle: Any) -> None:
        waiters = {asyncio.ensure_future(self.wait_for_shutdown())}
        if isinstance(handle, ServerHandle):
            waiters.add(handle.task)
        try:
            done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                if isinstance(handle, ServerHandle) and waiter is handle.task:
                    continue
                waiter.cancel()

        if isinstance(handle, ServerHandle) and handle.task in done:
            cause = None if handle.task.cancelled() else handle.task.exception()
            raise ListenerError(
                "HTTP listener stopped unexpectedly",
                host=handle.host,
                port=handle.port,
                cause=cause,
            )

    def request_shutdown(self) -> None:
        """
        Request graceful shutdown (called by signal handlers).

        While the chain is still starting, the running startup is cancelled so
        it unwinds instead of completing first.
        """
        if not self._shutdown_requested.is_set():
            logger.info("Shutdown requested")
        self._shutdown_requested.set()

        if (
            self._phase in _STARTING_PHASES
            and self._run_task is not None
            and not self._startup_interrupted
        ):
            self._startup_interrupted = True
            self._run_task.cancel()

    async def wait_for_shutdown(self) -> None:
        """Wait until shutdown is requested."""
        await self._shutdown_requested.wait()

    def _record_event(self, event: LifecycleEvent) -> None:
        """Record a lifecycle event."""
        self._lifecycle_events.append(event)

        if event.success:
            logger.debug(f"Lifecycle: {event.component} ({event.duration_ms:.0f}ms)")
        else:
            logger.warning(f"Lifecycle failed: {event.component} - {event.error}")


async def run_application(
    application: Optional[Application] = None,
    setup_signals: bool = True,
) -> None:
    """
    Run the service until SIGINT or SIGTERM.

    Usage:
        asyncio.run(run_application())
    """
    app = application or Application()
    loop = asyncio.get_running_loop()
    signals = (signal.SIGTERM, signal.SIGINT)

    # Set up signal handlers for graceful shutdown
    if setup_signals and sys.platform != "win32":
        for sig in signals:
            loop.add_signal_handler(sig, app.request_shutdown)
    try:
        await app.run()
    finally:
        if setup_signals and sys.platform != "win32":
            for sig in signals:
                loop.remove_signal_handler(sig)
