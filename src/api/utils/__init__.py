"""Utility modules for API-specific functionality.

- **responses**: orjson-backed JSON responses and the plain-text error response
"""
