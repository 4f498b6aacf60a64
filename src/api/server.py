"""Application composition and listener lifecycle.

``Server`` wires the collaborators into a FastAPI application, then owns the
uvicorn server running it. Middleware, outermost first:

1. ``RequestLifecycleMiddleware``: timing, correlation id, ingress/egress logs
2. ``CORSMiddleware``: cross-origin policy from ``settings.cors``
3. ``BodySizeLimitMiddleware``: 413 above ``settings.server.body_limit_bytes``
4. ``ErrorClassifierMiddleware``: any escaping error becomes a classified
   plain-text response

Lifecycle: ``CONSTRUCTED`` -> ``listen()`` -> ``LISTENING`` -> ``close()`` ->
``CLOSED``. A server is used once; it cannot listen again after closing.
"""

from __future__ import annotations

import asyncio
import socket
from enum import Enum
from typing import TYPE_CHECKING, Any, Final

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware

from src.api.authorization import AuthorizationGate
from src.api.middleware.body_limit import BodySizeLimitMiddleware
from src.api.middleware.error_classifier import (
    DEFAULT_CLASSIFICATION,
    ErrorClassification,
    ErrorClassifier,
    ErrorClassifierMiddleware,
)
from src.api.middleware.request_lifecycle import RequestLifecycleMiddleware
from src.api.routes import ROUTE_TABLE, RouteTable
from src.api.utils.responses import ORJSONResponse
from src.core.observability import instrument_app

if TYPE_CHECKING:
    from loguru import Logger

    from src.core.config import Settings

STARTUP_POLL_INTERVAL_SECONDS: Final[float] = 0.01


class ServerState(Enum):
    """Lifecycle states of a ``Server``."""

    CONSTRUCTED = "CONSTRUCTED"
    LISTENING = "LISTENING"
    CLOSED = "CLOSED"


class ServerStateError(RuntimeError):
    """Raised when an operation is not allowed in the server's current state."""


class Server:
    """The HTTP server: composed application plus its listener.

    Args:
        settings: Application settings.
        logger: Parent logger; the server logs with ``context="Server"``.
        database: Persistence handle, reachable by handlers.
        identity: Identity provider client, used by the authorization gate.
        storage: Object storage client, reachable by handlers.
        route_table: Prefixes, handler groups and gating policy.
        classification: Error kind to status mapping.
    """

    def __init__(
        self,
        settings: Settings,
        logger: Logger,
        database: Any,
        identity: Any,
        storage: Any,
        *,
        route_table: RouteTable = ROUTE_TABLE,
        classification: ErrorClassification = DEFAULT_CLASSIFICATION,
    ) -> None:
        self.settings = settings
        self.logger = logger.bind(context="Server")
        self.route_table = route_table
        self.classifier = ErrorClassifier(
            classification,
            self.logger,
            sensitive_fields=settings.log_config.sensitive_fields,
        )
        self.gate = AuthorizationGate(identity)
        self.state = ServerState.CONSTRUCTED

        self._socket: socket.socket | None = None
        self._port: int | None = None
        self._uvicorn: uvicorn.Server | None = None
        self._serve_task: asyncio.Task[None] | None = None

        self.logger.debug("Applying middleware")
        self.app = FastAPI(
            title=settings.app_name,
            version=settings.app_version,
            debug=settings.debug,
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
            default_response_class=ORJSONResponse,
            middleware=self._middleware(),
        )
        self.logger.debug("Middleware applied")

        self.app.state.settings = settings
        self.app.state.logger = self.logger
        self.app.state.database = database
        self.app.state.identity = identity
        self.app.state.storage = storage

        self.logger.debug("Mounting routes")
        self.route_table.mount(self.app, self.gate)
        self.logger.debug(
            "Routes mounted",
            guarded_prefixes=sorted(self.route_table.guarded_prefixes()),
        )

        self.logger.debug("Registering error handlers")
        self.app.add_exception_handler(HTTPException, self.classifier.handle)
        self.app.add_exception_handler(RequestValidationError, self.classifier.handle)
        self.logger.debug("Error handlers registered")

        instrument_app(self.app, settings)

    def _middleware(self) -> list[Middleware]:
        cors = self.settings.cors
        return [
            Middleware(RequestLifecycleMiddleware, logger=self.logger),
            Middleware(
                CORSMiddleware,
                allow_origins=cors.allow_origins,
                allow_methods=cors.allow_methods,
                allow_headers=cors.allow_headers,
                expose_headers=cors.expose_headers,
                allow_credentials=cors.allow_credentials,
                max_age=cors.max_age,
            ),
            Middleware(
                BodySizeLimitMiddleware,
                max_bytes=self.settings.server.body_limit_bytes,
            ),
            Middleware(ErrorClassifierMiddleware, classifier=self.classifier),
        ]

    @property
    def port(self) -> int | None:
        """Port the server is bound to, once listening."""
        return self._port

    def _bind(self, host: str, port: int) -> socket.socket:
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
        except OSError:
            sock.close()
            raise
        sock.set_inheritable(True)
        return sock

    async def listen(self, port: int | None = None) -> None:
        """Bind the port and start serving.

        Args:
            port: Port to bind; ``settings.server.port`` when omitted. ``0``
                picks a free port, readable from ``Server.port``.

        Raises:
            ServerStateError: If the server is listening or closed.
            OSError: If the port cannot be bound. The server stays
                ``CONSTRUCTED``.
        """
        if self.state is not ServerState.CONSTRUCTED:
            msg = f"Cannot listen while {self.state.value}"
            raise ServerStateError(msg)

        host = self.settings.server.host
        port = self.settings.server.port if port is None else port

        try:
            sock = self._bind(host, port)
        except OSError as e:
            self.logger.error("Could not bind {}:{}: {}", host, port, e)
            raise

        config = uvicorn.Config(
            self.app,
            log_config=None,
            access_log=False,
            lifespan="off",
            timeout_graceful_shutdown=self.settings.server.shutdown_grace_seconds,
        )
        server = uvicorn.Server(config)
        task = asyncio.create_task(server.serve(sockets=[sock]))

        while not server.started:
            if task.done():
                sock.close()
                msg = "Server stopped before it started listening"
                raise RuntimeError(msg) from task.exception()
            await asyncio.sleep(STARTUP_POLL_INTERVAL_SECONDS)

        self._socket = sock
        self._port = sock.getsockname()[1]
        self._uvicorn = server
        self._serve_task = task
        self.state = ServerState.LISTENING
        self.logger.info("Listening on {}:{}", host, self.port)

    async def wait(self) -> None:
        """Wait until the listener stops, e.g. after a termination signal."""
        if self._serve_task is not None:
            await asyncio.shield(self._serve_task)

    async def close(self) -> None:
        """Stop accepting connections and drain in-flight requests.

        Requests still running after ``settings.server.shutdown_grace_seconds``
        are cancelled. Calling ``close`` again is a no-op.

        Raises:
            Exception: Whatever made the listener fail. The server is
                ``CLOSED`` even then.
        """
        if self.state is ServerState.CLOSED:
            return

        try:
            if self._uvicorn is not None and self._serve_task is not None:
                self.logger.info("Closing server")
                self._uvicorn.should_exit = True
                await self._serve_task
        finally:
            if self._socket is not None:
                self._socket.close()
            self.state = ServerState.CLOSED
            self.logger.info("Server closed")
