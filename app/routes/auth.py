"""
Authentication routes
Google sign-in, password login and registration, delegated to Supabase auth
"""

from fastapi import APIRouter, Depends, Request

from app.services.auth_service import AuthService
from app.services.request_handler import RequestContext, RequestHandler
from app.utils.dependencies import get_auth_service, get_request_handler

router = APIRouter()

POST_ONLY = ("POST",)


@router.post("/google-login")
async def google_login(
    request: Request,
    handler: RequestHandler = Depends(get_request_handler),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Exchange a Google ID token for a session"""
    async def operation(ctx: RequestContext):
        return await auth_service.google_login(ctx.data)

    return await handler.handle(request, operation, methods=POST_ONLY, require_auth=False)


@router.post("/login")
async def login(
    request: Request,
    handler: RequestHandler = Depends(get_request_handler),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Email/password login"""
    async def operation(ctx: RequestContext):
        return await auth_service.login(ctx.data)

    # Credentials are forwarded untouched
    return await handler.handle(request, operation, methods=POST_ONLY, require_auth=False, sanitize=False)


@router.post("/register")
async def register(
    request: Request,
    handler: RequestHandler = Depends(get_request_handler),
    auth_service: AuthService = Depends(get_auth_service)
):
    """
    Register a new account

    Fields besides email and password are stored as user metadata
    (HTML-escaped by the service).
    """
    async def operation(ctx: RequestContext):
        return await auth_service.register(ctx.data)

    return await handler.handle(request, operation, methods=POST_ONLY, require_auth=False, sanitize=False)


@router.get("/me")
async def current_user(
    request: Request,
    handler: RequestHandler = Depends(get_request_handler)
):
    """Return the principal behind the bearer token"""
    async def operation(ctx: RequestContext):
        return AuthService.current_user(ctx.principal)

    return await handler.handle(request, operation, methods=("GET",))
