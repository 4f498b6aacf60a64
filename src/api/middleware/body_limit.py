"""Request body size limit.

Requests declaring a ``Content-Length`` above the limit are answered with
413 before any body bytes are read. Requests without one (chunked uploads)
are counted while the application reads them; crossing the limit raises
``PayloadTooLargeError``, which carries its own 413 status and reaches the
error classifier like any other error.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from src.api.constants import PAYLOAD_TOO_LARGE_MESSAGE
from src.api.utils.responses import plain_text_error
from src.core.context import RequestContext

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

PAYLOAD_TOO_LARGE_STATUS = 413


class PayloadTooLargeError(Exception):
    """Raised when a streamed request body exceeds the configured limit."""

    status_code = PAYLOAD_TOO_LARGE_STATUS

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(PAYLOAD_TOO_LARGE_MESSAGE)


def declared_content_length(scope: Scope) -> int | None:
    """Return the request's ``Content-Length``, or None if absent or invalid."""
    for name, value in scope.get("headers", []):
        if name.lower() == b"content-length":
            try:
                return int(value)
            except ValueError:
                return None
    return None


class BodySizeLimitMiddleware:
    """Reject request bodies larger than ``max_bytes``.

    Args:
        app: The ASGI application to wrap.
        max_bytes: Largest accepted body, in bytes.
    """

    def __init__(self, app: ASGIApp, *, max_bytes: int) -> None:
        self.app = app
        self.max_bytes = max_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Process one ASGI call."""
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        content_length = declared_content_length(scope)
        if content_length is not None and content_length > self.max_bytes:
            context = RequestContext.from_scope(scope)
            if context:
                context.logger.warning(
                    "Request body too large",
                    content_length=content_length,
                    limit=self.max_bytes,
                )
            response = plain_text_error(
                PAYLOAD_TOO_LARGE_STATUS, PAYLOAD_TOO_LARGE_MESSAGE
            )
            await response(scope, receive, send)
            return

        received = 0

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_bytes:
                    raise PayloadTooLargeError(self.max_bytes)
            return message

        await self.app(scope, limited_receive, send)
