"""
Rate Limiter
Sliding-window request counting per client key

Counts live in Redis when it is reachable so every worker sees the same
numbers. Without Redis, or when a Redis call fails, the limiter falls back to
a per-process key-value store; limits are then enforced per worker rather
than globally, and concurrent requests on the fallback path may undercount
because its read and write are not atomic.
"""

import math
import time
import uuid
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple

from fastapi import Response
from redis.exceptions import RedisError
import structlog

from app.models.api import RateLimitResult

logger = structlog.get_logger(__name__)

Clock = Callable[[], float]

# KEYS[1] = sorted-set key
# ARGV: now, window, limit, member
# Returns {limited, count, reference_ts}; reference_ts is the oldest surviving
# timestamp when limited, else now. Sent back as a string to keep fractions.
SLIDING_WINDOW_SCRIPT = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])

redis.call('ZREMRANGEBYSCORE', key, '-inf', '(' .. tostring(now - window))
local count = redis.call('ZCARD', key)

if count >= limit then
  local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
  local oldest_ts = ARGV[1]
  if oldest[2] then
    oldest_ts = oldest[2]
  end
  return {1, count, oldest_ts}
end

redis.call('ZADD', key, now, ARGV[4])
redis.call('EXPIRE', key, math.ceil(window))
return {0, count + 1, ARGV[1]}
"""


class KeyValueStore(ABC):
    """Minimal key-value interface for the fallback counter store"""

    @abstractmethod
    async def get(self, key: str) -> Any:
        """Return the stored value, or None if missing or expired"""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store a value, optionally expiring after `ttl` seconds"""

    @abstractmethod
    async def expire(self, key: str, ttl: float) -> None:
        """Expire an existing key after `ttl` seconds"""


class InMemoryKeyValueStore(KeyValueStore):
    """
    Per-process store; the default in tests and the fallback in production

    Expired keys are evicted when read and swept from the whole map at most
    once per `sweep_interval` seconds on write, so keys that are never read
    again still go away.
    """

    def __init__(self, clock: Clock = time.time, sweep_interval: float = 60.0):
        self._clock = clock
        self.sweep_interval = sweep_interval
        self._data: Dict[str, Any] = {}
        self._expires_at: Dict[str, float] = {}
        self._next_sweep = 0.0

    def _evict_if_expired(self, key: str) -> None:
        expires_at = self._expires_at.get(key)
        if expires_at is not None and expires_at <= self._clock():
            self._data.pop(key, None)
            self._expires_at.pop(key, None)

    def _sweep(self) -> None:
        now = self._clock()
        if now < self._next_sweep:
            return
        expired = [key for key, expires_at in self._expires_at.items() if expires_at <= now]
        for key in expired:
            self._data.pop(key, None)
            self._expires_at.pop(key, None)
        self._next_sweep = now + self.sweep_interval

    async def get(self, key: str) -> Any:
        self._evict_if_expired(key)
        return self._data.get(key)

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        self._sweep()
        self._data[key] = value
        if ttl is None:
            self._expires_at.pop(key, None)
        else:
            self._expires_at[key] = self._clock() + ttl

    async def expire(self, key: str, ttl: float) -> None:
        if key in self._data:
            self._expires_at[key] = self._clock() + ttl

    def __len__(self) -> int:
        return len(self._data)


class RedisSlidingWindow:
    """Shared sliding-window counter; one Lua script call per check"""

    def __init__(self, redis, key_prefix: str = "ratelimit:"):
        self.key_prefix = key_prefix
        self._script = redis.register_script(SLIDING_WINDOW_SCRIPT)

    async def hit(self, key: str, limit: int, window: int, now: float) -> Tuple[bool, int, float]:
        """Record a request unless limited; returns (limited, count, reference_ts)"""
        member = f"{now}-{uuid.uuid4().hex}"
        limited, count, reference = await self._script(
            keys=[f"{self.key_prefix}{key}"],
            args=[repr(now), window, limit, member]
        )
        return bool(int(limited)), int(count), float(reference)


class RateLimiter:
    """
    Sliding-window rate limiter

    Args:
        shared: Redis-backed counter, or None to use the local store only
        local: Fallback key-value store
        default_limit: Requests allowed per window when `check` gets none
        default_window: Window length in seconds when `check` gets none
        clock: Time source returning epoch seconds
    """

    def __init__(
        self,
        shared: Optional[RedisSlidingWindow] = None,
        local: Optional[KeyValueStore] = None,
        default_limit: int = 100,
        default_window: int = 60,
        clock: Clock = time.time,
        key_prefix: str = "ratelimit:"
    ):
        self.shared = shared
        self.local = local or InMemoryKeyValueStore(clock=clock)
        self.default_limit = default_limit
        self.default_window = default_window
        self.key_prefix = key_prefix
        self._clock = clock

    async def check(self, key: str, limit: Optional[int] = None, window: Optional[int] = None) -> RateLimitResult:
        """
        Count a request for `key` against the trailing window

        A limited request is not recorded.
        """
        limit = self.default_limit if limit is None else limit
        window = self.default_window if window is None else window
        now = self._clock()

        if self.shared is not None:
            try:
                limited, count, reference = await self.shared.hit(key, limit, window, now)
                return self._build_result(limited, count, reference, limit, window, now)
            except (RedisError, OSError) as e:
                logger.warning("Shared rate-limit store unavailable, using local store", key=key, error=str(e))

        return await self._check_local(key, limit, window, now)

    async def _check_local(self, key: str, limit: int, window: int, now: float) -> RateLimitResult:
        store_key = f"{self.key_prefix}{key}"
        stored: List[float] = await self.local.get(store_key) or []
        timestamps = [ts for ts in stored if ts >= now - window]

        if len(timestamps) >= limit:
            await self.local.set(store_key, timestamps, ttl=window)
            oldest = timestamps[0] if timestamps else now
            return self._build_result(True, len(timestamps), oldest, limit, window, now)

        timestamps.append(now)
        await self.local.set(store_key, timestamps)
        await self.local.expire(store_key, window)
        return self._build_result(False, len(timestamps), now, limit, window, now)

    @staticmethod
    def _build_result(
        limited: bool,
        count: int,
        reference: float,
        limit: int,
        window: int,
        now: float
    ) -> RateLimitResult:
        if limited:
            return RateLimitResult(
                limited=True,
                limit=limit,
                remaining=0,
                reset=math.ceil(reference + window),
                retry_after=max(1, math.ceil(reference + window - now))
            )
        return RateLimitResult(
            limited=False,
            limit=limit,
            remaining=max(0, limit - count),
            reset=math.ceil(now + window),
            retry_after=0
        )


def apply_rate_limit_headers(response: Response, result: RateLimitResult) -> Response:
    """Set X-RateLimit-* headers; a limited result also forces 429 + Retry-After"""
    response.headers["X-RateLimit-Limit"] = str(result.limit)
    response.headers["X-RateLimit-Remaining"] = str(result.remaining)
    response.headers["X-RateLimit-Reset"] = str(result.reset)

    if result.limited:
        response.headers["Retry-After"] = str(result.retry_after)
        response.status_code = 429

    return response
