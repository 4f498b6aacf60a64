"""Response classes shared by handlers and the error pipeline.

Successful responses are JSON rendered with orjson, which natively handles
the ``datetime`` and ``UUID`` values stored documents carry. Error responses
are always plain text: the body is the error's message and nothing else.
"""

from collections.abc import Mapping
from typing import Any

import orjson
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel


class ORJSONResponse(JSONResponse):
    """FastAPI Response class using orjson for JSON serialization.

    Attributes:
        media_type: The media type for the response.
    """

    media_type = "application/json"

    def render(self, content: Any) -> bytes:  # noqa: ANN401 - accepts any JSON-serializable content
        """Render the content as JSON using orjson.

        Args:
            content: The content to serialize to JSON.

        Returns:
            bytes: The JSON-encoded bytes.
        """
        if isinstance(content, BaseModel):
            content = content.model_dump(by_alias=True)

        return orjson.dumps(content, option=orjson.OPT_NON_STR_KEYS)


def plain_text_error(
    status_code: int, message: str, headers: Mapping[str, str] | None = None
) -> PlainTextResponse:
    """Build the plain-text response every error path answers with.

    Args:
        status_code: HTTP status to send.
        message: Body text, sent verbatim.
        headers: Extra response headers, e.g. ``Allow`` on a 405.

    Returns:
        PlainTextResponse: ``text/plain; charset=utf-8`` response.
    """
    return PlainTextResponse(
        content=message, status_code=status_code, headers=headers
    )
