"""Sensitive data redaction for request and error logging.

Request headers are logged verbatim at ingress and error attributes are
attached to error records, so both pass through here first. Redaction is
applied to the logged copies only; the request itself is never modified.

Fields are treated as sensitive when their name matches a built-in pattern
(passwords, tokens, keys, sessions...) or one of the configured
``log_config.sensitive_fields``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from functools import lru_cache
from re import Pattern
from typing import Any, Final

from src.core.config import get_settings
from src.core.constants import REDACTED
from src.core.types import LogContext

type SanitizableValue = (
    str | int | float | bool | None | dict[str, Any] | list[Any] | tuple[Any, ...]
)

SENSITIVE_HEADERS: Final[frozenset[str]] = frozenset(
    {
        "authorization",
        "cookie",
        "x-api-key",
        "x-auth-token",
        "x-csrf-token",
        "set-cookie",
        "x-secret-key",
        "proxy-authorization",
    }
)

DEFAULT_SENSITIVE_PATTERN: Final[Pattern[str]] = re.compile(
    r"(password|passwd|pwd|secret|token|api[_-]?key|apikey|auth|authorization|"
    r"credential|private[_-]?key|access[_-]?key|secret[_-]?key|session|"
    r"ssn|social[_-]?security|cvv|cvc|card[_-]?number|connection[_-]?string)",
    re.IGNORECASE,
)

MAX_DEPTH: Final[int] = 10


@lru_cache(maxsize=1)
def _get_sensitive_fields() -> tuple[str, ...]:
    """Get the configured sensitive field names, lower-cased."""
    settings = get_settings()
    return tuple(field.lower() for field in settings.log_config.sensitive_fields)


def is_sensitive_field(
    field_name: str, sensitive_fields: Sequence[str] | None = None
) -> bool:
    """Check if a field name indicates sensitive data.

    Args:
        field_name: The field name to check.
        sensitive_fields: Configured field names to match besides the built-in
            pattern; ``log_config.sensitive_fields`` of the global settings
            when omitted.

    Returns:
        bool: True if the field appears to contain sensitive data.
    """
    if DEFAULT_SENSITIVE_PATTERN.search(field_name):
        return True

    configured = (
        _get_sensitive_fields() if sensitive_fields is None else sensitive_fields
    )
    field_lower = field_name.lower()
    return any(sensitive.lower() in field_lower for sensitive in configured)


def is_sensitive_header(header_name: str) -> bool:
    """Check if a header name is sensitive (case-insensitive)."""
    return header_name.lower() in SENSITIVE_HEADERS


def sanitize_value(
    value: SanitizableValue,
    field_name: str = "",
    depth: int = 0,
    sensitive_fields: Sequence[str] | None = None,
) -> SanitizableValue:
    """Redact a value if its field name marks it as sensitive.

    Nested dicts, lists and tuples are walked up to ``MAX_DEPTH`` levels.

    Args:
        value: The value to potentially sanitize.
        field_name: The field name for context.
        depth: Current recursion depth.
        sensitive_fields: Configured sensitive field names, see
            ``is_sensitive_field``.

    Returns:
        SanitizableValue: Sanitized value or original if not sensitive.
    """
    if depth > MAX_DEPTH:
        return REDACTED

    if field_name and is_sensitive_field(field_name, sensitive_fields):
        return REDACTED

    if isinstance(value, dict):
        return {
            k: sanitize_value(v, str(k), depth + 1, sensitive_fields)
            for k, v in value.items()
        }

    if isinstance(value, list):
        return [sanitize_value(item, "", depth + 1, sensitive_fields) for item in value]

    if isinstance(value, tuple):
        return tuple(
            sanitize_value(item, "", depth + 1, sensitive_fields) for item in value
        )

    return value


def sanitize_dict(
    data: Mapping[str, Any], sensitive_fields: Sequence[str] | None = None
) -> dict[str, Any]:
    """Return a copy of ``data`` with sensitive values redacted."""
    return {
        key: sanitize_value(value, key, 0, sensitive_fields)
        for key, value in data.items()
    }


def sanitize_headers(headers: Iterable[tuple[str, str]]) -> dict[str, str]:
    """Build a loggable header mapping with credentials redacted.

    Args:
        headers: Header name/value pairs, e.g. ``request.headers.items()``.

    Returns:
        dict[str, str]: Lower-cased header names mapped to their (redacted)
            values. Repeated headers are joined with ``", "``.
    """
    sanitized: dict[str, str] = {}
    for name, value in headers:
        key = name.lower()
        shown = REDACTED if is_sensitive_header(key) else value
        sanitized[key] = f"{sanitized[key]}, {shown}" if key in sanitized else shown
    return sanitized


def sanitize_error_context(
    error: BaseException,
    context: LogContext | None = None,
    sensitive_fields: Sequence[str] | None = None,
) -> LogContext:
    """Create sanitized error context for logging.

    Args:
        error: The exception to create context for.
        context: Additional context to include (will be sanitized).
        sensitive_fields: Configured sensitive field names, see
            ``is_sensitive_field``.

    Returns:
        LogContext: Sanitized error context safe for logging.
    """
    error_context: LogContext = {"error_type": type(error).__name__}

    if context:
        error_context.update(sanitize_dict(context, sensitive_fields))

    if hasattr(error, "__dict__"):
        error_attrs = {
            k: v
            for k, v in vars(error).items()
            if not k.startswith("_") and k not in {"stack_trace", "cause"}
        }
        if error_attrs:
            error_context["error_attributes"] = sanitize_dict(
                error_attrs, sensitive_fields
            )

    return error_context


def sanitize_sql_params(params: object) -> object:
    """Sanitize SQL query parameters for safe logging.

    Args:
        params: SQL query parameters in any of SQLAlchemy's formats.

    Returns:
        object: Named parameters with sensitive values redacted, positional
            parameters unchanged, anything else replaced by REDACTED.
    """
    if params is None:
        return None

    if isinstance(params, dict):
        return sanitize_dict(params)
    if isinstance(params, (list, tuple)):
        # Positional parameters carry no names to judge sensitivity by
        return params

    return REDACTED
