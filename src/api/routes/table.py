"""Route table: which handler group serves which prefix, and which are guarded.

The table is composed into the application once, at startup. Guarded
prefixes get the authorization gate as a router dependency, so there is no
per-request decision about whether to check a credential.
"""

from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from typing import Any

from fastapi import APIRouter, Depends, FastAPI


@dataclass(frozen=True, slots=True)
class RouteEntry:
    """One mount point of the route table.

    Attributes:
        path_prefix: Prefix the handler group is mounted under, e.g. ``/user``.
        guarded: Whether requests must pass the authorization gate.
        handler_group: Router with the handlers for this prefix.
    """

    path_prefix: str
    guarded: bool
    handler_group: APIRouter


class RouteTable:
    """An ordered, validated collection of route entries.

    Args:
        entries: Entries in mount order.

    Raises:
        ValueError: If a prefix does not start with ``/`` or appears twice.
    """

    def __init__(self, entries: Iterable[RouteEntry]) -> None:
        self.entries: tuple[RouteEntry, ...] = tuple(entries)

        seen: set[str] = set()
        for entry in self.entries:
            if not entry.path_prefix.startswith("/"):
                msg = f"Route prefix must start with '/': {entry.path_prefix!r}"
                raise ValueError(msg)
            if entry.path_prefix in seen:
                msg = f"Duplicate route prefix: {entry.path_prefix!r}"
                raise ValueError(msg)
            seen.add(entry.path_prefix)

    def __iter__(self) -> Iterator[RouteEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def guarded_prefixes(self) -> frozenset[str]:
        """Prefixes whose handlers require a verified credential."""
        return frozenset(entry.path_prefix for entry in self.entries if entry.guarded)

    def mount(self, app: FastAPI, gate: Callable[..., Any]) -> None:
        """Include every handler group in ``app``.

        Args:
            app: Application to mount into.
            gate: Dependency run before the handlers of guarded prefixes.
        """
        for entry in self.entries:
            app.include_router(
                entry.handler_group,
                prefix=entry.path_prefix.rstrip("/"),
                dependencies=[Depends(gate)] if entry.guarded else [],
            )
