"""API-related constants."""

# HTTP Headers
REQUEST_ID_HEADER = "X-Request-ID"
AUTHORIZATION_HEADER = "Authorization"

# Request handling
SORT_DESCENDING_PREFIX = "-"

# Query parameters read by result shaping
LIMIT_PARAM = "limit"
SKIP_PARAM = "skip"
SORT_PARAM = "sort"

# Response bodies
PAYLOAD_TOO_LARGE_MESSAGE = "request entity too large"

# Resource collections, by route prefix
RESOURCE_COLLECTIONS = (
    "person",
    "notification",
    "person-request",
    "contributor",
    "user",
    "role",
    "permission",
    "organization",
)
