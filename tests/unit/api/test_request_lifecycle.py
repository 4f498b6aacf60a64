"""Unit tests for the request lifecycle middleware."""

import asyncio
from typing import Any

import pytest
from loguru import logger

from src.api.middleware.request_lifecycle import (
    RequestLifecycleMiddleware,
    request_url,
)
from src.core.constants import REDACTED
from src.core.context import RequestContext
from tests.fakes import messages
from tests.unit.api.asgi import call, http_scope

LIFECYCLE_MESSAGES = ("Incoming request", "Outgoing response")


async def ok_app(scope: Any, receive: Any, send: Any) -> None:
    await send({"type": "http.response.start", "status": 204, "headers": []})
    await send({"type": "http.response.body", "body": b""})


@pytest.mark.unit
class TestRequestUrl:
    """Test request target reconstruction."""

    def test_path_only(self) -> None:
        assert request_url(http_scope("/person")) == "/person"

    def test_with_query(self) -> None:
        scope = http_scope("/person", query_string=b"limit=5&sort=-name")
        assert request_url(scope) == "/person?limit=5&sort=-name"


@pytest.mark.unit
class TestRequestLifecycleMiddleware:
    """Test ingress/egress logging and context handling."""

    async def test_one_ingress_then_one_egress(
        self, log_records: list[dict[str, Any]]
    ) -> None:
        """Exactly one record of each, in order."""
        await call(RequestLifecycleMiddleware(ok_app), http_scope())

        lifecycle = messages(log_records, *LIFECYCLE_MESSAGES)
        assert [r["message"] for r in lifecycle] == list(LIFECYCLE_MESSAGES)

        ingress, egress = lifecycle
        assert ingress["extra"]["method"] == "GET"
        assert ingress["extra"]["url"] == "/person"
        assert ingress["extra"]["http_version"] == "1.1"
        assert ingress["extra"]["trailers"] == {}
        assert egress["extra"]["status_code"] == 204
        assert egress["extra"]["completed"] is True
        assert egress["extra"]["duration_ms"] > 0
        assert egress["extra"]["duration"].endswith(("ms", "s"))

    async def test_request_id_binding(self, log_records: list[dict[str, Any]]) -> None:
        """Records carry the inbound X-Request-ID."""
        scope = http_scope(headers=[(b"x-request-id", b"req-1")])

        await call(RequestLifecycleMiddleware(ok_app), scope)

        for record in messages(log_records, *LIFECYCLE_MESSAGES):
            assert record["extra"]["request_id"] == "req-1"

    async def test_no_request_id_generated(
        self, log_records: list[dict[str, Any]]
    ) -> None:
        """Without the header no correlation id is invented."""
        await call(RequestLifecycleMiddleware(ok_app), http_scope())

        for record in messages(log_records, *LIFECYCLE_MESSAGES):
            assert "request_id" not in record["extra"]

    async def test_headers_are_redacted(
        self, log_records: list[dict[str, Any]]
    ) -> None:
        """Credentials never reach the ingress log."""
        scope = http_scope(
            headers=[(b"authorization", b"Bearer secret"), (b"accept", b"*/*")]
        )

        await call(RequestLifecycleMiddleware(ok_app), scope)

        ingress = messages(log_records, "Incoming request")[0]
        assert ingress["extra"]["headers"] == {
            "authorization": REDACTED,
            "accept": "*/*",
        }

    async def test_context_visible_downstream(self) -> None:
        """The app sees the context in the scope and the contextvar."""
        seen: list[RequestContext | None] = []

        async def app(scope: Any, receive: Any, send: Any) -> None:
            seen.append(RequestContext.from_scope(scope))
            seen.append(RequestContext.current())
            await ok_app(scope, receive, send)

        await call(
            RequestLifecycleMiddleware(app),
            http_scope(headers=[(b"x-request-id", b"req-9")]),
        )

        assert seen[0] is seen[1]
        assert seen[0] is not None
        assert seen[0].correlation_id == "req-9"
        assert RequestContext.current() is None

    async def test_egress_on_escaped_exception(
        self, log_records: list[dict[str, Any]]
    ) -> None:
        """An unanswered error is logged as a 500 and re-raised."""
        async def failing_app(scope: Any, receive: Any, send: Any) -> None:
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await call(RequestLifecycleMiddleware(failing_app), http_scope())

        egress = messages(log_records, "Outgoing response")
        assert len(egress) == 1
        assert egress[0]["extra"]["status_code"] == 500
        assert egress[0]["extra"]["completed"] is False

    async def test_egress_on_cancellation(
        self, log_records: list[dict[str, Any]]
    ) -> None:
        """A cancelled request still logs its egress record once."""
        started = asyncio.Event()

        async def slow_app(scope: Any, receive: Any, send: Any) -> None:
            started.set()
            await asyncio.sleep(10)

        task = asyncio.create_task(
            call(RequestLifecycleMiddleware(slow_app), http_scope())
        )
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        egress = messages(log_records, "Outgoing response")
        assert len(egress) == 1
        assert egress[0]["extra"]["status_code"] is None

    async def test_uses_parent_logger(self, log_records: list[dict[str, Any]]) -> None:
        """Request loggers are children of the configured logger."""
        parent = logger.bind(context="Server")

        await call(RequestLifecycleMiddleware(ok_app, logger=parent), http_scope())

        for record in messages(log_records, *LIFECYCLE_MESSAGES):
            assert record["extra"]["context"] == "Server"

    async def test_passes_non_http(self, log_records: list[dict[str, Any]]) -> None:
        """Lifespan scopes are not logged."""
        async def app(scope: Any, receive: Any, send: Any) -> None:
            return None

        await RequestLifecycleMiddleware(app)({"type": "lifespan"}, None, None)

        assert not messages(log_records, *LIFECYCLE_MESSAGES)
