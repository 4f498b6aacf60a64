"""Structured logging built on Loguru.

Every component logs through Loguru; records carry their structured fields
in ``extra`` (``context``, ``request_id``, ``status_code``...) rather than
baking them into the message text.

Features:
- **Structured logging**: JSON lines with a consistent schema
- **Context propagation**: Request-scoped loggers carry the correlation id
- **Standard library integration**: uvicorn and library logs are routed
  through Loguru
- **Rich console output**: Development-friendly formatting with context

Formatter types:
- **console**: Human-readable with inline context (development)
- **json**: One JSON object per line (deployed environments)
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any, Final, Protocol, cast

import orjson
from loguru import logger

from src.core.constants import REDACTED

if TYPE_CHECKING:
    from loguru import Logger


class _LoggingState:
    """Simple state holder to track if logging has been configured."""

    def __init__(self) -> None:
        self.configured = False


_state = _LoggingState()


class SettingsProtocol(Protocol):
    """Protocol for settings objects that setup_logging can accept."""

    @property
    def debug(self) -> bool:
        """Debug mode flag."""
        ...

    @property
    def log_config(self) -> LogConfigProtocol:
        """Log configuration."""
        ...


class LogConfigProtocol(Protocol):
    """Protocol for log configuration objects."""

    @property
    def log_level(self) -> str:
        """Logging level."""
        ...

    @property
    def log_formatter_type(self) -> str | None:
        """Log formatter type."""
        ...

    @property
    def sensitive_fields(self) -> list[str]:
        """Field names whose values are never printed."""
        ...


DEFAULT_LOG_FORMAT: Final[str] = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{message}"
)
MAX_FIELD_VALUE_LENGTH: Final[int] = 100

# Fields shown first, in this order, by the console formatter
PRIORITY_FIELDS: Final[tuple[str, ...]] = (
    "context",
    "request_id",
    "method",
    "url",
    "status_code",
    "duration",
)


def _escape(value: object) -> str:
    return str(value).replace("{", "{{").replace("}", "}}")


def _format_priority_field(field: str, value: object) -> str | None:
    """Format a priority field for display.

    Args:
        field: The field name.
        value: The field value.

    Returns:
        str | None: Formatted value or None if formatting fails.
    """
    try:
        text = _escape(value)
        if field == "status_code":
            status_str = str(value)
            if status_str.startswith("2"):
                return f"<green>{text}</green>"
            if status_str.startswith("3"):
                return f"<yellow>{text}</yellow>"
            if status_str.startswith("4"):
                return f"<red>{text}</red>"
            if status_str.startswith("5"):
                return f"<red><bold>{text}</bold></red>"
    except (AttributeError, TypeError, ValueError) as e:
        logger.trace(f"Failed to format priority field {field}: {e}")
        return None
    else:
        return text


def _format_extra_field(
    key: str, value: object, sensitive_fields: frozenset[str]
) -> str | None:
    """Format an extra field for display.

    Args:
        key: The field name.
        value: The field value.
        sensitive_fields: Lower-cased names whose values are redacted.

    Returns:
        str | None: Formatted field or None if formatting fails.
    """
    try:
        str_value = str(value)

        if key.lower() in sensitive_fields:
            str_value = REDACTED
        elif len(str_value) > MAX_FIELD_VALUE_LENGTH:
            str_value = str_value[: MAX_FIELD_VALUE_LENGTH - 3] + "..."
    except (AttributeError, TypeError, ValueError) as e:
        logger.trace(f"Failed to format extra field {key}: {e}")
        return None
    else:
        return f"{_escape(key)}={_escape(str_value)}"


def _format_context_fields(
    extra: dict[str, Any], sensitive_fields: frozenset[str]
) -> list[str]:
    """Format all context fields from extra data, priority fields first."""
    context_parts = []

    for field in PRIORITY_FIELDS:
        if extra.get(field) is not None:
            formatted = _format_priority_field(field, extra[field])
            if formatted:
                context_parts.append(f"<yellow>{formatted}</yellow>")

    for key, value in extra.items():
        if key not in PRIORITY_FIELDS and not key.startswith("_") and value is not None:
            formatted = _format_extra_field(key, value, sensitive_fields)
            if formatted:
                context_parts.append(f"<dim>{formatted}</dim>")

    return context_parts


def make_console_formatter(sensitive_fields: list[str]) -> Any:
    """Build a Loguru format function that shows every context field inline.

    Args:
        sensitive_fields: Field names whose values are redacted.

    Returns:
        Callable: Format function for ``logger.add(format=...)``.
    """
    sensitive = frozenset(field.lower() for field in sensitive_fields)

    def format_console_with_context(record: dict[str, Any]) -> str:
        try:
            time_str = record["time"].strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
            parts = [
                f"<green>{time_str}</green>",
                f"<level>{record['level'].name: <8}</level>",
                f"<cyan>{record['name']}:{record['function']}:{record['line']}</cyan>",
            ]

            context_parts = _format_context_fields(record.get("extra", {}), sensitive)
            if context_parts:
                parts.append(" ".join(f"[{part}]" for part in context_parts))

            parts.append(_escape(record.get("message", "")))

            line = " | ".join(parts)
            if record.get("exception"):
                line += "\n{exception}"
        except (AttributeError, TypeError, ValueError, KeyError) as e:
            logger.trace(f"Failed to format log record: {e}")
            return DEFAULT_LOG_FORMAT + "\n"
        else:
            return line + "\n"

    return format_console_with_context


def serialize_for_json(record: dict[str, Any]) -> str:
    """Format log record as a single JSON line.

    Args:
        record: Loguru record to format.

    Returns:
        str: JSON-formatted log entry with newline.
    """
    log_entry: dict[str, Any] = {
        "timestamp": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "logger": record["name"],
        "function": record["function"],
        "line": record["line"],
    }

    if extra := record.get("extra", {}):
        log_entry.update({k: v for k, v in extra.items() if not k.startswith("_")})

    if exc := record.get("exception"):
        log_entry["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value) if exc.value else None,
        }

    return orjson.dumps(log_entry, default=str).decode() + "\n"


class InterceptHandler(logging.Handler):
    """Intercept standard logging and redirect to Loguru.

    This handler captures logs from libraries using standard logging
    (uvicorn, SQLAlchemy, botocore) and forwards them to Loguru for
    consistent formatting.
    """

    def emit(self, record: logging.LogRecord) -> None:
        """Forward log record to Loguru.

        Args:
            record: Standard library LogRecord to forward.
        """
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).bind(
            context=record.name
        ).log(level, record.getMessage())


def _json_sink(message: Any) -> None:
    sys.stdout.write(serialize_for_json(message.record))
    sys.stdout.flush()


def setup_logging(settings: SettingsProtocol) -> None:
    """Configure Loguru with the formatter the settings ask for.

    Args:
        settings: Application settings containing log configuration.

    Note:
        This function ensures it's only called once using module state.
    """
    if _state.configured:
        return

    logger.remove()

    formatter_type = settings.log_config.log_formatter_type or "console"

    if formatter_type == "json":
        logger.add(
            _json_sink,
            level=settings.log_config.log_level,
            enqueue=True,
            diagnose=False,
            backtrace=False,
        )
    else:
        logger.add(
            sys.stdout,
            format=cast(
                "Any", make_console_formatter(settings.log_config.sensitive_fields)
            ),
            level=settings.log_config.log_level,
            enqueue=True,
            colorize=True,
            diagnose=settings.debug,
            backtrace=settings.debug,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for logger_name in ("uvicorn", "uvicorn.error"):
        uvicorn_logger = logging.getLogger(logger_name)
        uvicorn_logger.handlers = [InterceptHandler()]
        uvicorn_logger.propagate = False

    # Request logging is done by the lifecycle middleware
    logging.getLogger("uvicorn.access").disabled = True
    for logger_name in ("urllib3.connectionpool", "botocore"):
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logger.info(
        "Logging configured with {} formatter",
        formatter_type,
        context="Logging",
        formatter_type=formatter_type,
        log_level=settings.log_config.log_level,
    )

    _state.configured = True


def get_logger(context: str) -> Logger:
    """Get a logger whose records are tagged with a component name.

    Args:
        context: Component name, e.g. ``"Server"`` or ``"Database"``.

    Returns:
        Logger: Logger bound with ``context``.
    """
    return logger.bind(context=context)
