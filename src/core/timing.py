"""Human-readable duration formatting for log output."""

from src.core.constants import (
    HOURS_PER_DAY,
    MILLISECONDS_PER_SECOND,
    MINUTES_PER_HOUR,
    SECONDS_PER_MINUTE,
)

_SUB_MILLISECOND_PRECISION_BELOW = 10


def format_duration(milliseconds: float) -> str:
    """Format an elapsed time the way people read it.

    Args:
        milliseconds: Elapsed time in milliseconds. Negative values are
            treated as zero.

    Returns:
        str: ``"4.2ms"``, ``"350ms"``, ``"1.2s"``, ``"1m 5s"``, ``"2h 3m 4s"``
            or ``"1d 2h 3m 4s"``.

    Examples:
        >>> format_duration(1337)
        '1.3s'
        >>> format_duration(65_000)
        '1m 5s'
    """
    ms = max(milliseconds, 0.0)

    if ms < _SUB_MILLISECOND_PRECISION_BELOW:
        return f"{ms:.1f}ms"
    if ms < MILLISECONDS_PER_SECOND:
        return f"{ms:.0f}ms"

    seconds = ms / MILLISECONDS_PER_SECOND
    if seconds < SECONDS_PER_MINUTE:
        return f"{seconds:.1f}s"

    total_seconds = int(seconds)
    minutes, secs = divmod(total_seconds, SECONDS_PER_MINUTE)
    hours, minutes = divmod(minutes, MINUTES_PER_HOUR)
    days, hours = divmod(hours, HOURS_PER_DAY)

    parts = [
        f"{value}{unit}"
        for value, unit in ((days, "d"), (hours, "h"), (minutes, "m"), (secs, "s"))
        if value
    ]
    return " ".join(parts)
