"""Handler groups and the route table that mounts them.

``ROUTE_TABLE`` is the deployment policy: which prefixes exist and which of
them require a verified bearer token.
"""

from src.api.routes import auth, root, stats
from src.api.routes.resources import build_resource_router
from src.api.routes.table import RouteEntry, RouteTable

ROUTE_TABLE = RouteTable(
    (
        RouteEntry("/", guarded=False, handler_group=root.router),
        RouteEntry("/auth", guarded=False, handler_group=auth.router),
        RouteEntry("/stats", guarded=True, handler_group=stats.router),
        RouteEntry(
            "/person", guarded=False, handler_group=build_resource_router("person")
        ),
        RouteEntry(
            "/notification",
            guarded=False,
            handler_group=build_resource_router("notification"),
        ),
        RouteEntry(
            "/person-request",
            guarded=False,
            handler_group=build_resource_router("person-request"),
        ),
        RouteEntry(
            "/contributor",
            guarded=False,
            handler_group=build_resource_router("contributor"),
        ),
        RouteEntry("/user", guarded=True, handler_group=build_resource_router("user")),
        RouteEntry("/role", guarded=True, handler_group=build_resource_router("role")),
        RouteEntry(
            "/permission",
            guarded=True,
            handler_group=build_resource_router("permission"),
        ),
        RouteEntry(
            "/organization",
            guarded=True,
            handler_group=build_resource_router("organization"),
        ),
    )
)

__all__ = ["ROUTE_TABLE", "RouteEntry", "RouteTable"]
