"""
MedicinaHub Portal API - Main Application
Content endpoints and identity-provider delegation for the medical-education portal
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.httpsredirect import HTTPSRedirectMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
import structlog

from app.config import Settings, get_settings
from app.models.results import ErrorKind
from app.routes import auth, content, health
from app.services.error_responder import ErrorResponder, client_ip
from app.services.rate_limiter import RedisSlidingWindow
from app.utils.dependencies import get_error_responder, get_rate_limiter, get_supabase_client
from shared.utils.logger import setup_logging
from shared.utils.redis_client import close_redis_client, init_redis_client

logger = structlog.get_logger(__name__)

# Response headers added to every response in production
SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "X-Content-Type-Options": "nosniff",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains; preload",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": (
        "default-src 'self'; "
        "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
        "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net https://fonts.googleapis.com; "
        "font-src 'self' https://fonts.gstatic.com; "
        "img-src 'self' data:;"
    ),
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan events"""
    settings: Settings = app.state.settings
    logger.info("Starting portal API", environment=settings.app_env)
    settings.log_config()

    supabase = get_supabase_client()
    await supabase.start()
    if not supabase.is_configured:
        logger.warning("Supabase URL or service key missing; data-store calls will fail")

    if settings.redis_enabled:
        redis = await init_redis_client(
            host=settings.redis_host,
            port=settings.redis_port,
            password=settings.redis_password,
            db=settings.redis_db
        )
        if redis is not None:
            get_rate_limiter().shared = RedisSlidingWindow(redis, settings.rate_limit_key_prefix)
            logger.info("Rate limiter using Redis store")

    yield

    get_rate_limiter().shared = None
    await close_redis_client()
    await supabase.stop()
    logger.info("Portal API shutdown complete")


async def log_requests(request: Request, call_next):
    """Log all incoming requests"""
    logger.info(
        "Request received",
        method=request.method,
        path=request.url.path,
        client_ip=client_ip(request)
    )

    response = await call_next(request)

    logger.info(
        "Request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code
    )

    return response


async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    for name, value in SECURITY_HEADERS.items():
        response.headers[name] = value
    return response


def error_responder_for(request: Request) -> ErrorResponder:
    """Responder for exception handlers, honouring dependency overrides"""
    override = request.app.dependency_overrides.get(get_error_responder)
    if override is not None:
        return override()
    overridden_settings = request.app.dependency_overrides.get(get_settings, get_settings)
    return ErrorResponder(overridden_settings())


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Unknown routes and unsupported methods, in the standard error envelope"""
    responder = error_responder_for(request)
    if exc.status_code == 404:
        response = responder.not_found_error(request, "Resource not found", request.url.path)
    else:
        response = responder.handle_error(request, exc.status_code, str(exc.detail))

    for name, value in (exc.headers or {}).items():
        response.headers[name] = value
    return response


async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(
        "Unhandled exception",
        error=str(exc),
        method=request.method,
        path=request.url.path,
        exc_info=True
    )

    responder = error_responder_for(request)
    details = responder.exception_details(exc)
    return responder.handle_error(
        request,
        ErrorKind.INTERNAL_ERROR.status_code,
        "Internal Server Error",
        details,
        ErrorKind.INTERNAL_ERROR.code
    )


def create_app(settings: Settings) -> FastAPI:
    """
    Build the portal API for one environment

    Development enables CORS. Production redirects plain HTTP to HTTPS and
    adds the security headers to every response.
    """
    app = FastAPI(
        title="MedicinaHub - Portal API",
        description="Lessons, articles, congresses and residency programs for the MedicinaHub portal",
        version=settings.service_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.settings = settings

    app.middleware("http")(log_requests)

    if settings.is_development:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "OPTIONS"],
            allow_headers=["Content-Type", "Authorization"],
        )

    if settings.is_production:
        app.middleware("http")(add_security_headers)
        # Outermost, so the redirect happens before any other work
        app.add_middleware(HTTPSRedirectMiddleware)

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    # Register routes
    app.include_router(health.router, tags=["Health"])
    app.include_router(content.router, prefix="/api")
    app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])

    # Root endpoint
    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "service": settings.service_name,
            "version": settings.service_version,
            "status": "running",
            "docs": "/docs"
        }

    return app


settings = get_settings()

setup_logging(
    config_path=settings.logging_config_path,
    log_level=settings.log_level,
    json_logs=settings.is_production or settings.log_format == "json"
)

app = create_app(settings)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level="info"
    )
