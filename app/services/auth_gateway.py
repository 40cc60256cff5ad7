"""
Auth Gateway
Bearer-token verification delegated to the identity provider

The provider is the only source of truth: every request is verified with a
fresh `/auth/v1/user` call. Tokens are never cached or stored.
"""

from typing import Optional

import httpx
import structlog

from app.models.api import Principal
from app.models.results import Err, ErrorKind, Ok, Result
from app.utils.supabase_client import SupabaseClient
from shared.utils.security import extract_bearer_token

logger = structlog.get_logger(__name__)

AUTH_REQUIRED_MESSAGE = "Authentication token is required"
AUTH_INVALID_MESSAGE = "Invalid or expired token"


class AuthGateway:
    """Resolves bearer tokens into principals"""

    def __init__(self, client: SupabaseClient):
        self.client = client

    async def authenticate(self, authorization: Optional[str]) -> Result[Principal]:
        """Verify the token carried by an Authorization header"""
        return await self.verify(extract_bearer_token(authorization))

    async def verify(self, token: Optional[str]) -> Result[Principal]:
        """
        Verify a bearer token with the identity provider

        Returns:
            Ok(principal), Err(AUTH_REQUIRED) for a missing token, or
            Err(AUTH_INVALID) for a rejected token or unreachable provider
        """
        if not token:
            return Err(ErrorKind.AUTH_REQUIRED, AUTH_REQUIRED_MESSAGE)

        try:
            status_code, user = await self.client.get_user(token)
        except httpx.HTTPError as e:
            logger.warning("Identity provider unreachable", error=str(e))
            return Err(ErrorKind.AUTH_INVALID, AUTH_INVALID_MESSAGE)

        if status_code != 200 or not isinstance(user, dict) or not user.get("id"):
            logger.info("Token rejected by identity provider", status_code=status_code)
            return Err(ErrorKind.AUTH_INVALID, AUTH_INVALID_MESSAGE)

        return Ok(Principal.from_provider(user))
