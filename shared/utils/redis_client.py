"""
Redis client utilities for the MedicinaHub portal

Manages the async Redis connection backing the shared rate-limit counters.
Uses redis.asyncio to avoid blocking the event loop.
"""

from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError
import structlog

logger = structlog.get_logger(__name__)

# Global async Redis client instance
_redis_client: Optional[aioredis.Redis] = None


async def init_redis_client(
    host: str = "127.0.0.1",
    port: int = 6379,
    password: Optional[str] = None,
    db: int = 0,
    socket_timeout: float = 2.0
) -> Optional[aioredis.Redis]:
    """
    Connect to Redis and verify the connection with PING

    Returns:
        The client, or None if Redis is unreachable. Callers treat a missing
        client as "no shared store" and keep serving requests.
    """
    global _redis_client

    if _redis_client is not None:
        return _redis_client

    client = aioredis.Redis(
        host=host,
        port=port,
        password=password or None,
        db=db,
        decode_responses=True,
        socket_timeout=socket_timeout,
        socket_connect_timeout=socket_timeout,
        socket_keepalive=True,
        health_check_interval=30
    )

    try:
        await client.ping()
    except (RedisError, OSError) as e:
        logger.warning("Redis unavailable, shared rate limiting disabled", host=host, port=port, error=str(e))
        await client.aclose()
        return None

    _redis_client = client
    logger.info("Async Redis client initialized", host=host, port=port, db=db)
    return _redis_client


def get_redis_client() -> Optional[aioredis.Redis]:
    """Get the initialized Redis client, if any"""
    return _redis_client


async def close_redis_client():
    """Close async Redis client connection"""
    global _redis_client

    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
        logger.info("Async Redis client closed")
