"""Helpers for driving ASGI middleware without a server."""

from typing import Any

from starlette.types import ASGIApp, Message


def http_scope(
    path: str = "/person",
    method: str = "GET",
    headers: list[tuple[bytes, bytes]] | None = None,
    query_string: bytes = b"",
) -> dict[str, Any]:
    """Build a minimal HTTP scope."""
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": path.encode(),
        "query_string": query_string,
        "headers": headers or [],
        "client": ("127.0.0.1", 50000),
        "server": ("testserver", 80),
    }


async def call(
    app: ASGIApp,
    scope: dict[str, Any],
    body_chunks: list[bytes] | None = None,
) -> list[Message]:
    """Run one ASGI exchange and return every message the app sent."""
    chunks = list(body_chunks or [b""])
    sent: list[Message] = []

    async def receive() -> Message:
        if chunks:
            chunk = chunks.pop(0)
            return {"type": "http.request", "body": chunk, "more_body": bool(chunks)}
        return {"type": "http.disconnect"}

    async def send(message: Message) -> None:
        sent.append(message)

    await app(scope, receive, send)
    return sent


def response_status(messages: list[Message]) -> int:
    """Status of the response start message."""
    return next(m["status"] for m in messages if m["type"] == "http.response.start")


def response_body(messages: list[Message]) -> bytes:
    """Concatenated response body."""
    return b"".join(
        m.get("body", b"") for m in messages if m["type"] == "http.response.body"
    )
