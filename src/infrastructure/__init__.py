"""Infrastructure layer: the external systems the API depends on.

- **database**: Document persistence on async PostgreSQL
- **identity**: Bearer token verification against the identity provider
- **storage**: Object storage client
"""
