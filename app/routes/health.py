"""
Health check routes for the portal API
"""

from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
import structlog

from app.config import Settings, get_settings
from app.services.rate_limiter import RateLimiter
from app.utils.dependencies import get_rate_limiter
from shared.utils.redis_client import get_redis_client

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(
    settings: Settings = Depends(get_settings),
    limiter: RateLimiter = Depends(get_rate_limiter)
):
    """Health check endpoint"""
    return {
        "service": settings.service_name,
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": settings.service_version,
        "environment": settings.app_env,
        "rate_limit_store": "redis" if limiter.shared is not None else "local"
    }


@router.get("/health/redis")
async def redis_health_check():
    """Shared rate-limit store connectivity"""
    client = get_redis_client()
    if client is None:
        return {"status": "disabled", "rate_limit_store": "local"}

    try:
        await client.ping()
    except (RedisError, OSError) as e:
        logger.error("Redis health check failed", error=str(e))
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "rate_limit_store": "local", "error": str(e)}
        )

    return {"status": "healthy", "rate_limit_store": "redis"}
