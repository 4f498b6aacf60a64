"""Result shaping: ``limit``, ``skip`` and ``sort`` query parameters.

Declared by the list handlers through ``PageParams``. Router dependencies run
first, so on guarded prefixes the authorization gate answers before any
parameter is parsed. The parsed values are also stored on
``request.state.pagination``.

- ``limit``: page size, clamped to ``server.max_results_limit``
- ``skip``: number of documents to skip
- ``sort``: comma-separated field names, ``-`` prefix for descending;
  ``_id`` sorts by the resource identifier
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Annotated

from fastapi import Depends, Request

from src.api.constants import (
    LIMIT_PARAM,
    SKIP_PARAM,
    SORT_DESCENDING_PREFIX,
    SORT_PARAM,
)
from src.core.exceptions import CastError


@dataclass(frozen=True, slots=True)
class Pagination:
    """Parsed result-shaping parameters.

    Attributes:
        limit: Maximum number of documents to return.
        skip: Number of documents to skip.
        sort: ``(field, descending)`` pairs, most significant first.
    """

    limit: int
    skip: int = 0
    sort: tuple[tuple[str, bool], ...] = field(default_factory=tuple)


def _parse_int(raw: str | None, name: str, default: int) -> int:
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise CastError(raw, name, "Number", cause=e) from e
    return max(value, 0)


def parse_sort(raw: str | None) -> tuple[tuple[str, bool], ...]:
    """Parse a ``sort`` parameter such as ``"-created_at,name"``."""
    if not raw:
        return ()
    fields = []
    for part in raw.split(","):
        name = part.strip()
        descending = name.startswith(SORT_DESCENDING_PREFIX)
        name = name.removeprefix(SORT_DESCENDING_PREFIX).strip()
        if name:
            fields.append((name, descending))
    return tuple(fields)


def parse_pagination(query: Mapping[str, str], max_limit: int) -> Pagination:
    """Build a ``Pagination`` from query parameters.

    Args:
        query: Mapping of query parameters (e.g. ``request.query_params``).
        max_limit: Upper bound for ``limit``, also its default.

    Returns:
        Pagination: The parsed parameters.

    Raises:
        CastError: If ``limit`` or ``skip`` is not an integer.
    """
    limit = _parse_int(query.get(LIMIT_PARAM), LIMIT_PARAM, max_limit)
    return Pagination(
        limit=min(limit, max_limit) if limit else max_limit,
        skip=_parse_int(query.get(SKIP_PARAM), SKIP_PARAM, 0),
        sort=parse_sort(query.get(SORT_PARAM)),
    )


async def shape_results(request: Request) -> Pagination:
    """Dependency parsing the result-shaping parameters of a list request."""
    settings = request.app.state.settings
    pagination = parse_pagination(
        request.query_params, settings.server.max_results_limit
    )
    request.state.pagination = pagination
    return pagination


PageParams = Annotated[Pagination, Depends(shape_results)]
