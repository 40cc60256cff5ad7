"""
Supabase HTTP Client
Identity-provider and REST data-store access for the portal API

Uses a single shared httpx.AsyncClient opened at app startup, with a bounded
timeout on every outbound call. Responses are returned as
(status_code, payload) so the caller can pass the upstream status through.
"""

from typing import Any, Dict, List, Optional, Tuple

import httpx
import structlog

logger = structlog.get_logger(__name__)

UpstreamResponse = Tuple[int, Any]


class SupabaseConfigError(Exception):
    """Supabase URL or keys are not configured"""


class SupabaseClient:
    """
    HTTP client for Supabase auth (`/auth/v1`) and PostgREST (`/rest/v1`).

    Lifecycle:
        - Call start() during app startup (FastAPI lifespan)
        - Call stop() during app shutdown
        - If not started, each call opens a short-lived client
    """

    # Connection pool settings (per worker)
    MAX_CONNECTIONS = 50
    MAX_KEEPALIVE = 10
    KEEPALIVE_EXPIRY = 5.0

    def __init__(
        self,
        url: str,
        service_key: str,
        anon_key: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.url = (url or "").rstrip('/')
        self.service_key = service_key or ""
        self.anon_key = anon_key or ""
        self.timeout = httpx.Timeout(timeout)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.service_key)

    async def start(self):
        """Initialize the shared HTTP client"""
        if self._client is not None:
            logger.warning("SupabaseClient already started")
            return

        limits = httpx.Limits(
            max_connections=self.MAX_CONNECTIONS,
            max_keepalive_connections=self.MAX_KEEPALIVE,
            keepalive_expiry=self.KEEPALIVE_EXPIRY
        )
        self._client = httpx.AsyncClient(
            base_url=self.url,
            limits=limits,
            timeout=self.timeout,
            transport=self._transport
        )
        logger.info("SupabaseClient started", base_url=self.url, timeout=self.timeout.read)

    async def stop(self):
        """Close the HTTP client and release resources"""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("SupabaseClient stopped")

    def _require_config(self):
        if not self.is_configured:
            raise SupabaseConfigError("Supabase environment variables not set")

    def _service_headers(self) -> Dict[str, str]:
        return {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/json",
        }

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send one request; transport failures raise httpx.HTTPError"""
        self._require_config()
        if self._client:
            return await self._client.request(method, path, **kwargs)

        async with httpx.AsyncClient(
            base_url=self.url,
            timeout=self.timeout,
            transport=self._transport
        ) as client:
            return await client.request(method, path, **kwargs)

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    async def _rest(
        self,
        method: str,
        table: str,
        params: Optional[Dict[str, Any]] = None,
        body: Any = None
    ) -> UpstreamResponse:
        headers = self._service_headers()
        headers["Prefer"] = "return=representation"
        kwargs: Dict[str, Any] = {"headers": headers}
        if params:
            kwargs["params"] = params
        if body is not None:
            kwargs["json"] = body

        response = await self._send(method, f"/rest/v1/{table}", **kwargs)
        if response.status_code >= 400:
            logger.warning(
                "Data store request failed",
                method=method, table=table, status_code=response.status_code
            )
        return response.status_code, self._decode(response)

    async def fetch(self, table: str, params: Optional[Dict[str, Any]] = None) -> UpstreamResponse:
        """Read rows from a collection, filtered by PostgREST query parameters"""
        return await self._rest("GET", table, params=params)

    async def insert(self, table: str, rows: List[Dict[str, Any]]) -> UpstreamResponse:
        """Insert rows into a collection"""
        return await self._rest("POST", table, body=rows)

    async def update(self, table: str, record_id: str, data: Dict[str, Any]) -> UpstreamResponse:
        """Patch the row whose id equals `record_id`"""
        return await self._rest("PATCH", table, params={"id": f"eq.{record_id}"}, body=data)

    async def get_user(self, token: str) -> UpstreamResponse:
        """
        Ask the identity provider who owns an access token

        Args:
            token: Bearer access token presented by the client

        Returns:
            (status_code, user payload); any non-200 status means the token
            is not valid
        """
        headers = {
            "apikey": self.anon_key or self.service_key,
            "Authorization": f"Bearer {token}",
        }
        response = await self._send("GET", "/auth/v1/user", headers=headers)
        return response.status_code, self._decode(response)

    async def token_grant(self, grant_type: str, body: Dict[str, Any]) -> UpstreamResponse:
        """Exchange credentials for a session (`password`, `id_token`, ...)"""
        headers = {
            "apikey": self.anon_key or self.service_key,
            "Content-Type": "application/json",
        }
        response = await self._send(
            "POST",
            "/auth/v1/token",
            params={"grant_type": grant_type},
            headers=headers,
            json=body
        )
        return response.status_code, self._decode(response)

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> UpstreamResponse:
        """Create an account with the identity provider"""
        headers = {
            "apikey": self.anon_key or self.service_key,
            "Content-Type": "application/json",
        }
        body = {"email": email, "password": password, "data": metadata or {}}
        response = await self._send("POST", "/auth/v1/signup", headers=headers, json=body)
        return response.status_code, self._decode(response)
