"""
Authentication Service
Login and registration delegated to the identity provider

No credential is checked locally: Google ID tokens, passwords and sign-ups
are all forwarded to Supabase auth and its answer is returned as-is.
"""

from typing import Any, Dict, Mapping

import httpx
import structlog

from app.models.api import Principal
from app.models.results import Err, ErrorKind, Ok, Result, UpstreamResult
from app.utils.validators import validate_required
from app.utils.supabase_client import SupabaseClient
from shared.utils.security import sanitize_input

logger = structlog.get_logger(__name__)

GOOGLE_PROVIDER = "google"
SIGN_UP_SUCCESS = frozenset({200, 201})


def provider_error_message(payload: Any) -> str:
    """Pick the most specific message from a Supabase auth error body"""
    if isinstance(payload, dict):
        for key in ("error_description", "msg", "error"):
            if payload.get(key):
                return str(payload[key])
    return "Authentication failed"


def session_result(status_code: int, payload: Any) -> Result[UpstreamResult]:
    """Shape a token-endpoint response"""
    if status_code >= 400 or not isinstance(payload, dict):
        return Err(ErrorKind.AUTH_INVALID, provider_error_message(payload), status_code=max(status_code, 400))

    return Ok(UpstreamResult(status_code=200, body={
        "status": True,
        "data": {
            "access_token": payload.get("access_token"),
            "refresh_token": payload.get("refresh_token"),
            "expires_in": payload.get("expires_in"),
            "user": payload.get("user"),
        }
    }))


class AuthService:
    """Identity-provider delegation for the /api/auth routes"""

    def __init__(self, client: SupabaseClient):
        self.client = client

    async def google_login(self, data: Mapping[str, Any]) -> Result[UpstreamResult]:
        """Exchange a Google ID token for a provider session"""
        validation = validate_required(data, ("token",))
        if isinstance(validation, Err):
            return validation

        return await self._grant("id_token", {
            "provider": GOOGLE_PROVIDER,
            "id_token": data["token"],
        })

    async def login(self, data: Mapping[str, Any]) -> Result[UpstreamResult]:
        """Email/password sign-in"""
        validation = validate_required(data, ("email", "password"))
        if isinstance(validation, Err):
            return validation

        return await self._grant("password", {
            "email": data["email"],
            "password": data["password"],
        })

    async def register(self, data: Mapping[str, Any]) -> Result[UpstreamResult]:
        """Create an account; fields other than email/password become user metadata"""
        validation = validate_required(data, ("email", "password"))
        if isinstance(validation, Err):
            return validation

        metadata = sanitize_input({
            key: value for key, value in data.items()
            if key not in ("email", "password")
        })

        try:
            status_code, payload = await self.client.sign_up(data["email"], data["password"], metadata)
        except httpx.HTTPError as e:
            logger.warning("Identity provider unreachable during sign-up", error=str(e))
            return Err(ErrorKind.AUTH_INVALID, "Authentication failed")

        if status_code not in SIGN_UP_SUCCESS:
            return Err(ErrorKind.AUTH_INVALID, provider_error_message(payload), status_code=max(status_code, 400))

        logger.info("Account registered", email=data["email"])
        return Ok(UpstreamResult.passthrough(status_code, payload, SIGN_UP_SUCCESS))

    @staticmethod
    def current_user(principal: Principal) -> Result[UpstreamResult]:
        return Ok(UpstreamResult.passthrough(200, principal.model_dump(), frozenset({200})))

    async def _grant(self, grant_type: str, body: Dict[str, Any]) -> Result[UpstreamResult]:
        try:
            status_code, payload = await self.client.token_grant(grant_type, body)
        except httpx.HTTPError as e:
            logger.warning("Identity provider unreachable", grant_type=grant_type, error=str(e))
            return Err(ErrorKind.AUTH_INVALID, "Authentication failed")

        if status_code < 400:
            logger.info("Provider session issued", grant_type=grant_type)
        return session_result(status_code, payload)
