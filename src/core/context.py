"""Per-request observability state shared across middleware and handlers."""

from __future__ import annotations

import time
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from loguru import Logger

    from src.core.types import AsgiScope

# Key under which the context is stored in the ASGI scope state
SCOPE_STATE_KEY = "context"

_current_context: ContextVar[RequestContext | None] = ContextVar(
    "request_context", default=None
)


@dataclass(slots=True)
class RequestContext:
    """State owned by a single request from ingress until its response finishes.

    Attributes:
        logger: Logger bound with the request's correlation id, when one exists.
        correlation_id: Value of the inbound request-id header, if any.
        start_time: ``time.perf_counter()`` reading taken at ingress.
    """

    logger: Logger
    correlation_id: str | None = None
    start_time: float = field(default_factory=time.perf_counter)

    @property
    def elapsed_ms(self) -> float:
        """Milliseconds since ingress."""
        return (time.perf_counter() - self.start_time) * 1000

    def activate(self) -> Token[RequestContext | None]:
        """Make this the current context for the running task.

        Returns:
            Token: Token to pass to ``deactivate`` once the request is done.
        """
        return _current_context.set(self)

    @staticmethod
    def deactivate(token: Token[RequestContext | None]) -> None:
        """Restore whatever context was current before ``activate``."""
        _current_context.reset(token)

    @staticmethod
    def current() -> RequestContext | None:
        """Get the context of the request being processed by this task."""
        return _current_context.get()

    @staticmethod
    def get_correlation_id() -> str | None:
        """Get the correlation id of the current request, if any."""
        context = _current_context.get()
        return context.correlation_id if context else None

    @staticmethod
    def from_scope(scope: AsgiScope) -> RequestContext | None:
        """Read the context the lifecycle middleware stored in an ASGI scope."""
        state = scope.get("state")
        if not isinstance(state, dict):
            return None
        context = state.get(SCOPE_STATE_KEY)
        return context if isinstance(context, RequestContext) else None

    def attach(self, scope: AsgiScope) -> None:
        """Store this context in the scope state (``request.state.context``)."""
        scope.setdefault("state", {})[SCOPE_STATE_KEY] = self
