"""Request lifecycle middleware: timing, correlation and request logging.

This is the outermost layer of the application. For every HTTP request it:

- **Starts the clock** before anything else runs
- **Builds the request context**: a logger bound with the ``X-Request-ID``
  header value (when the client sent one), stored in ``request.state.context``
  and in a contextvar
- **Logs ingress** once, before the request reaches any other layer
- **Logs egress** exactly once when the exchange ends, whatever the outcome:
  normal response, error response, escaped exception or cancellation

Implemented as a pure ASGI middleware. ``BaseHTTPMiddleware`` runs the
downstream app in a separate task, which breaks contextvar propagation and
hides the moment the response actually finishes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from loguru import logger as default_logger

from src.api.constants import REQUEST_ID_HEADER
from src.core.context import RequestContext
from src.core.error_context import sanitize_headers
from src.core.timing import format_duration

if TYPE_CHECKING:
    from loguru import Logger
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

_REQUEST_ID_HEADER_KEY = REQUEST_ID_HEADER.lower().encode("latin-1")


def _header(scope: Scope, name: bytes) -> str | None:
    for key, value in scope.get("headers", []):
        if key.lower() == name:
            return value.decode("latin-1")
    return None


def request_url(scope: Scope) -> str:
    """Rebuild the request target (path plus query string) from a scope."""
    path = scope.get("path", "")
    query_string = scope.get("query_string", b"")
    if query_string:
        return f"{path}?{query_string.decode('latin-1')}"
    return path


class RequestLifecycleMiddleware:
    """Time, correlate and log every HTTP request.

    Args:
        app: The ASGI application to wrap.
        logger: Parent logger; request loggers are children of it.
    """

    def __init__(self, app: ASGIApp, *, logger: Logger | None = None) -> None:
        self.app = app
        self._logger = logger or default_logger

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Process one ASGI call."""
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        correlation_id = _header(scope, _REQUEST_ID_HEADER_KEY)
        request_logger = (
            self._logger.bind(request_id=correlation_id)
            if correlation_id
            else self._logger.bind()
        )
        context = RequestContext(logger=request_logger, correlation_id=correlation_id)
        context.attach(scope)
        token = context.activate()

        http_version = scope.get("http_version", "1.1")
        method = scope.get("method", "")
        url = request_url(scope)

        request_logger.info(
            "Incoming request",
            http_version=http_version,
            method=method,
            url=url,
            headers=sanitize_headers(
                (key.decode("latin-1"), value.decode("latin-1"))
                for key, value in scope.get("headers", [])
            ),
            trailers={},
        )

        status_code: int | None = None
        completed = False

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code, completed
            if message["type"] == "http.response.start":
                status_code = message["status"]
            elif message["type"] == "http.response.body" and not message.get(
                "more_body", False
            ):
                completed = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            # Starlette's last-resort handler answers with 500
            if status_code is None:
                status_code = 500
            raise
        finally:
            elapsed_ms = context.elapsed_ms
            request_logger.info(
                "Outgoing response",
                http_version=http_version,
                method=method,
                url=url,
                status_code=status_code,
                duration=format_duration(elapsed_ms),
                duration_ms=elapsed_ms,
                completed=completed,
            )
            RequestContext.deactivate(token)
