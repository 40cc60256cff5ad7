"""
FastAPI Dependencies
Process-wide clients and the per-request pipeline components

The Supabase client and the rate limiter hold state that must outlive a
request (connection pool, counters), so they are created once per worker.
Everything else is cheap and built per request from those two.
"""

from typing import Optional

from fastapi import Depends

from app.config import Settings, get_settings
from app.services.auth_gateway import AuthGateway
from app.services.auth_service import AuthService
from app.services.content_service import ContentService
from app.services.error_responder import ErrorResponder
from app.services.rate_limiter import RateLimiter
from app.services.request_handler import RequestHandler
from app.utils.supabase_client import SupabaseClient

_supabase_client: Optional[SupabaseClient] = None
_rate_limiter: Optional[RateLimiter] = None


def get_supabase_client() -> SupabaseClient:
    """Shared Supabase client, started and stopped by the app lifespan"""
    global _supabase_client

    if _supabase_client is None:
        settings = get_settings()
        _supabase_client = SupabaseClient(
            url=settings.supabase_url,
            service_key=settings.supabase_service_key,
            anon_key=settings.supabase_anon_key,
            timeout=settings.supabase_timeout_seconds
        )
    return _supabase_client


def get_rate_limiter() -> RateLimiter:
    """Shared limiter; the lifespan attaches the Redis store when available"""
    global _rate_limiter

    if _rate_limiter is None:
        settings = get_settings()
        _rate_limiter = RateLimiter(
            default_limit=settings.api_rate_limit,
            default_window=settings.api_rate_window,
            key_prefix=settings.rate_limit_key_prefix
        )
    return _rate_limiter


def get_error_responder(settings: Settings = Depends(get_settings)) -> ErrorResponder:
    return ErrorResponder(settings)


def get_auth_gateway(client: SupabaseClient = Depends(get_supabase_client)) -> AuthGateway:
    return AuthGateway(client)


def get_request_handler(
    limiter: RateLimiter = Depends(get_rate_limiter),
    gateway: AuthGateway = Depends(get_auth_gateway),
    responder: ErrorResponder = Depends(get_error_responder)
) -> RequestHandler:
    """Request pipeline wired to the shared limiter and identity provider"""
    return RequestHandler(limiter, gateway, responder)


def get_content_service(client: SupabaseClient = Depends(get_supabase_client)) -> ContentService:
    return ContentService(client)


def get_auth_service(client: SupabaseClient = Depends(get_supabase_client)) -> AuthService:
    return AuthService(client)
