"""Login support: public identity-provider settings and token introspection."""

from typing import Any

from fastapi import APIRouter, Request

from src.api.authorization import extract_bearer_token
from src.api.dependencies import Identity

router = APIRouter(tags=["auth"])


@router.get("/config")
async def identity_config(identity: Identity) -> dict[str, Any]:
    """Settings a client needs to start a login."""
    return identity.public_config()


@router.get("/me")
async def current_user(request: Request, identity: Identity) -> dict[str, Any]:
    """Claims of the bearer token sent with the request.

    Raises:
        UnauthorizedError: If no valid token was sent.
    """
    return await identity.verify(await extract_bearer_token(request))
