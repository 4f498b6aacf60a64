"""Authorization gate for guarded route prefixes.

The gate is attached as a router dependency when the route table is mounted,
so it runs before any handler of a guarded prefix. It only extracts the
bearer token; whether the token is valid is up to the identity client.
"""

from typing import Protocol

from fastapi.security import HTTPBearer
from starlette.requests import Request

from src.api.constants import AUTHORIZATION_HEADER
from src.core.exceptions import UnauthorizedError
from src.core.types import Claims

MISSING_TOKEN_MESSAGE = "No authorization token was found"
MALFORMED_HEADER_MESSAGE = "Format is Authorization: Bearer [token]"

_bearer = HTTPBearer(auto_error=False)


class TokenVerifier(Protocol):
    """Anything that can turn a bearer token into claims."""

    async def verify(self, token: str) -> Claims:
        """Return the token's claims or raise ``UnauthorizedError``."""
        ...


async def extract_bearer_token(request: Request) -> str:
    """Read the bearer token from the ``Authorization`` header.

    Args:
        request: The incoming request.

    Returns:
        str: The raw token.

    Raises:
        UnauthorizedError: If the header is missing or not a bearer credential.
    """
    if not request.headers.get(AUTHORIZATION_HEADER):
        raise UnauthorizedError(MISSING_TOKEN_MESSAGE)

    credentials = await _bearer(request)
    token = credentials.credentials.strip() if credentials else ""
    if not token or any(char.isspace() for char in token):
        raise UnauthorizedError(MALFORMED_HEADER_MESSAGE)

    return token


class AuthorizationGate:
    """FastAPI dependency admitting only requests with a verified token.

    On success the verified claims are stored on ``request.state.user``.

    Args:
        identity: Client that verifies tokens.
    """

    def __init__(self, identity: TokenVerifier) -> None:
        self.identity = identity

    async def __call__(self, request: Request) -> Claims:
        """Verify the request's credential.

        Raises:
            UnauthorizedError: If no valid credential was presented.
        """
        token = await extract_bearer_token(request)
        claims = await self.identity.verify(token)
        request.state.user = claims
        return claims
