"""Bearer token verification against the identity provider.

Tokens are RS256 JWTs issued by an OIDC tenant. Signing keys come from the
tenant's JWKS endpoint and are cached by PyJWT's ``PyJWKClient``. Fetching
keys and verifying signatures are blocking, so both run in the threadpool.
"""

from typing import Any

import jwt
from jwt import PyJWKClient, PyJWKClientConnectionError, PyJWTError
from starlette.concurrency import run_in_threadpool

from src.core.config import IdentityConfig
from src.core.exceptions import UnauthorizedError
from src.core.logging import get_logger
from src.core.types import Claims
from src.infrastructure.constants import JWKS_FETCH_TIMEOUT_SECONDS


class IdentityClient:
    """Verifies access tokens issued by the configured tenant.

    Args:
        config: Identity provider settings.
        jwks_client: Key client to use instead of one built from ``config``.
    """

    def __init__(
        self, config: IdentityConfig, jwks_client: PyJWKClient | None = None
    ) -> None:
        self.config = config
        self.jwks_client = jwks_client or PyJWKClient(
            config.jwks_url,
            cache_keys=True,
            lifespan=config.jwks_cache_ttl_seconds,
            timeout=JWKS_FETCH_TIMEOUT_SECONDS,
        )
        self._log = get_logger("Identity")

    def _decode(self, token: str) -> Claims:
        signing_key = self.jwks_client.get_signing_key_from_jwt(token)
        return jwt.decode(
            token,
            signing_key.key,
            algorithms=self.config.algorithms,
            audience=self.config.audience or None,
            issuer=self.config.issuer,
            options={"verify_aud": bool(self.config.audience)},
        )

    async def verify(self, token: str) -> Claims:
        """Verify a token and return its claims.

        Args:
            token: The raw bearer token.

        Returns:
            Claims: The verified token claims.

        Raises:
            UnauthorizedError: If the token is rejected, carrying the reason.
            PyJWKClientConnectionError: If the signing keys cannot be fetched.
        """
        try:
            claims = await run_in_threadpool(self._decode, token)
        except PyJWKClientConnectionError:
            self._log.error(
                "Could not fetch signing keys from {}", self.config.jwks_url
            )
            raise
        except PyJWTError as e:
            raise UnauthorizedError(str(e), cause=e) from e

        self._log.debug("Token verified for subject {}", claims.get("sub"))
        return claims

    def public_config(self) -> dict[str, Any]:
        """Settings a client needs to start a login against the tenant."""
        return {
            "domain": self.config.domain,
            "audience": self.config.audience,
            "client_id": self.config.client_id,
        }
