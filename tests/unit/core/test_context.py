"""Unit tests for the per-request context."""

import asyncio
import time

import pytest
from loguru import logger

from src.core.context import SCOPE_STATE_KEY, RequestContext


@pytest.mark.unit
class TestRequestContext:
    """Test RequestContext activation and scope storage."""

    def test_no_context_outside_requests(self) -> None:
        """Nothing is current unless a request activated it."""
        assert RequestContext.current() is None
        assert RequestContext.get_correlation_id() is None

    def test_activate_and_deactivate(self) -> None:
        """Activation is undone by its token."""
        context = RequestContext(logger=logger, correlation_id="abc-123")
        token = context.activate()
        try:
            assert RequestContext.current() is context
            assert RequestContext.get_correlation_id() == "abc-123"
        finally:
            RequestContext.deactivate(token)

        assert RequestContext.current() is None

    def test_elapsed_ms_is_positive(self) -> None:
        """Elapsed time counts from creation."""
        context = RequestContext(logger=logger, start_time=time.perf_counter() - 0.05)
        assert context.elapsed_ms >= 50

    def test_attach_and_from_scope(self) -> None:
        """A context attached to a scope is found again."""
        scope: dict = {"type": "http"}
        context = RequestContext(logger=logger)
        context.attach(scope)

        assert scope["state"][SCOPE_STATE_KEY] is context
        assert RequestContext.from_scope(scope) is context

    @pytest.mark.parametrize(
        "scope",
        [{}, {"state": None}, {"state": {}}, {"state": {SCOPE_STATE_KEY: "x"}}],
    )
    def test_from_scope_without_context(self, scope: dict) -> None:
        """Scopes without a stored context yield None."""
        assert RequestContext.from_scope(scope) is None

    async def test_contexts_are_isolated_between_tasks(self) -> None:
        """Concurrent requests see their own context."""
        seen: dict[str, str | None] = {}

        async def handle(request_id: str) -> None:
            token = RequestContext(logger=logger, correlation_id=request_id).activate()
            try:
                await asyncio.sleep(0.01)
                seen[request_id] = RequestContext.get_correlation_id()
            finally:
                RequestContext.deactivate(token)

        await asyncio.gather(handle("first"), handle("second"))

        assert seen == {"first": "first", "second": "second"}
