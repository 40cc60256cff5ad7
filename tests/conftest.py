"""
Pytest fixtures for portal API tests
"""

from typing import Any, Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from app.config import Settings, get_settings
from app.main import app
from app.services.error_responder import ErrorResponder
from app.services.rate_limiter import RateLimiter
from app.utils.dependencies import get_error_responder, get_rate_limiter, get_supabase_client
from app.utils.supabase_client import SupabaseClient

SUPABASE_URL = "https://supabase.test"
VALID_TOKEN = "valid-token"


class FakeClock:
    """Controllable time source for the rate limiter"""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class SupabaseStub:
    """
    Stands in for Supabase behind an httpx.MockTransport

    Answers `/auth/v1/user` from `users` (token -> user payload) and every
    other request from `routes` ((method, path) -> (status, payload)).
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.routes: Dict[tuple, tuple] = {}
        self.users: Dict[str, Dict[str, Any]] = {}

    def respond(self, method: str, path: str, status_code: int, payload: Any = None):
        self.routes[(method, path)] = (status_code, payload)

    def fail(self, method: str, path: str):
        self.routes[(method, path)] = (None, None)

    def last_request(self, path: Optional[str] = None) -> httpx.Request:
        matching = [r for r in self.requests if path is None or r.url.path == path]
        return matching[-1]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.path == "/auth/v1/user":
            token = request.headers.get("Authorization", "")[len("Bearer "):]
            user = self.users.get(token)
            if user is None:
                return httpx.Response(401, json={"msg": "invalid JWT: token is expired"})
            return httpx.Response(200, json=user)

        status_code, payload = self.routes.get(
            (request.method, request.url.path),
            (404, {"message": "relation does not exist"})
        )
        if status_code is None:
            raise httpx.ConnectError("Connection refused", request=request)
        return httpx.Response(status_code, json=payload)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Development settings with a temporary error log"""
    return Settings(
        app_env="development",
        supabase_url=SUPABASE_URL,
        supabase_service_key="service-key",
        supabase_anon_key="anon-key",
        redis_enabled=False,
        error_log_path=str(tmp_path / "logs" / "api_errors.log"),
    )


@pytest.fixture
def supabase_stub() -> SupabaseStub:
    stub = SupabaseStub()
    stub.users[VALID_TOKEN] = {
        "id": "user-123",
        "email": "doctor@example.com",
        "role": "authenticated",
        "app_metadata": {"role": "admin"},
        "user_metadata": {"full_name": "Dra. Ana"},
    }
    return stub


@pytest.fixture
def supabase_client(supabase_stub) -> SupabaseClient:
    return SupabaseClient(
        url=SUPABASE_URL,
        service_key="service-key",
        anon_key="anon-key",
        transport=httpx.MockTransport(supabase_stub)
    )


@pytest.fixture
def rate_limiter(clock) -> RateLimiter:
    return RateLimiter(default_limit=100, default_window=60, clock=clock)


@pytest.fixture
def client(settings, supabase_client, rate_limiter):
    """Test client with upstream HTTP and rate-limit state replaced"""
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_supabase_client] = lambda: supabase_client
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    app.dependency_overrides[get_error_responder] = lambda: ErrorResponder(settings)

    yield TestClient(app, raise_server_exceptions=False)

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {VALID_TOKEN}"}


def make_request(
    method: str = "GET",
    path: str = "/api/articles",
    client_host: str = "1.2.3.4",
    headers: Optional[Dict[str, str]] = None,
    body: bytes = b"",
    query_string: bytes = b""
) -> Request:
    """Build a bare Starlette request for unit tests"""
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "root_path": "",
        "scheme": "http",
        "query_string": query_string,
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": (client_host, 50000),
        "server": ("testserver", 80),
    }

    async def receive():
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)
