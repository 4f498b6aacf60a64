"""FastAPI dependencies giving handlers access to shared collaborators.

The server stores its collaborators on ``app.state``; handlers declare what
they need with the ``Annotated`` aliases below instead of reaching into
``request.app.state`` themselves.
"""

from typing import TYPE_CHECKING, Annotated, Any

from fastapi import Depends, Request

from src.core.config import Settings
from src.core.context import RequestContext
from src.infrastructure.database import Database
from src.infrastructure.identity import IdentityClient

if TYPE_CHECKING:
    from loguru import Logger


def get_app_settings(request: Request) -> Settings:
    """Settings the running server was built with."""
    return request.app.state.settings


def get_database(request: Request) -> Database:
    """The persistence handle."""
    return request.app.state.database


def get_identity(request: Request) -> IdentityClient:
    """The identity provider client."""
    return request.app.state.identity


def get_request_logger(request: Request) -> "Logger":
    """Logger bound to the current request, or the server logger outside one."""
    context = RequestContext.from_scope(request.scope)
    if context:
        return context.logger
    return request.app.state.logger


AppSettings = Annotated[Settings, Depends(get_app_settings)]
DatabaseHandle = Annotated[Database, Depends(get_database)]
Identity = Annotated[IdentityClient, Depends(get_identity)]
RequestLogger = Annotated[Any, Depends(get_request_logger)]
