"""Core application constants."""

# Time constants
MILLISECONDS_PER_SECOND = 1000
SECONDS_PER_MINUTE = 60
MINUTES_PER_HOUR = 60
HOURS_PER_DAY = 24

# Size constants
BYTES_PER_MEGABYTE = 1024 * 1024
DEFAULT_BODY_LIMIT_BYTES = 5 * BYTES_PER_MEGABYTE

# Security and redaction
REDACTED = "[REDACTED]"

# Persistence: name under which resource identifiers are exposed to clients
RESOURCE_ID_FIELD = "_id"
