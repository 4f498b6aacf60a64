"""Type aliases for dynamic data structures throughout the application.

All types defined here should be JSON-serializable to support logging,
API responses, and persistence layers.
"""

from typing import Any

# Context dictionary for logging additional information
type LogContext = dict[str, Any]  # JSON-serializable values

# A stored resource as exposed to clients (``_id`` plus its payload)
type Document = dict[str, Any]

# Verified token claims handed out by the identity provider
type Claims = dict[str, Any]

# ASGI scope type for middleware implementations
# Following ASGI spec: https://asgi.readthedocs.io/en/latest/specs/www.html
type AsgiScope = dict[str, Any]
