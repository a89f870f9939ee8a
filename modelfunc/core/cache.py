"""Cache service with Redis (production) or in-process memory (development) backend.

Values are opaque strings. Unlike a best-effort application cache, every
backend failure is raised as CacheError so the accessor can decide what a
failure means for its read or write path; an absent key raises CacheMiss.
"""

import time
from typing import Dict, Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError

from modelfunc.core.config import Settings
from modelfunc.core.exceptions import CacheError, CacheMiss
from modelfunc.core.logging import get_logger, log_cache_operation

logger = get_logger(__name__)


def ensure_str(value) -> Optional[str]:
    """Ensure value is a string, handling both bytes and str.

    Redis with decode_responses=True returns strings directly.
    This helper handles both cases for clients built without it.
    """
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode('utf-8')
    return str(value)


class CacheService:
    """Async key-value cache with TTL.

    Backend selection:
    - Redis: when redis_enabled is set and redis_url is configured
    - Memory: otherwise (single process; expired entries are dropped on read
      and swept on every write)
    """

    def __init__(self, settings: Settings, client: Optional["redis.Redis"] = None):
        self.settings = settings
        self.redis: Optional[redis.Redis] = client
        self.use_redis = client is not None or settings.cache_backend == "redis"
        self.memory_cache: Dict[str, Tuple[str, Optional[float]]] = {}

    async def startup(self):
        """Initialize cache connection."""
        if not self.use_redis:
            logger.info("Using in-memory cache", redis_enabled=self.settings.redis_enabled)
            return

        if self.redis is None:
            self.redis = redis.from_url(
                self.settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
            )

        try:
            await self.redis.ping()
        except RedisError as e:
            logger.error("Redis connection failed", url=self.settings.redis_url, error=str(e))
            raise CacheError(f"redis unavailable: {e}") from e

        logger.info("Redis cache initialized", url=self.settings.redis_url)

    async def shutdown(self):
        """Close cache connections."""
        if self.redis:
            await self.redis.aclose()
            logger.info("Redis cache connections closed")

        self.memory_cache.clear()

    async def get(self, key: str) -> str:
        """Get the raw value stored under key.

        Raises:
            CacheMiss: key absent or expired
            CacheError: backend failure
        """
        if self.is_redis_available():
            try:
                value = await self.redis.get(key)
            except RedisError as e:
                logger.error("Cache get failed", key=key, error=str(e))
                raise CacheError(f"get {key}: {e}") from e
        else:
            value = self._memory_get(key)

        log_cache_operation(logger, "get", key, hit=value is not None)
        if value is None:
            raise CacheMiss(key)
        return ensure_str(value)

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """Set value with TTL in seconds (settings.cache_ttl when omitted)."""
        ttl = ttl or self.settings.cache_ttl

        if self.is_redis_available():
            try:
                await self.redis.setex(key, ttl, value)
            except RedisError as e:
                logger.error("Cache set failed", key=key, error=str(e))
                raise CacheError(f"set {key}: {e}") from e
        else:
            self._sweep_expired()
            self.memory_cache[key] = (str(value), time.monotonic() + ttl)

        log_cache_operation(logger, "set", key, ttl=ttl)

    async def delete(self, key: str) -> bool:
        """Delete key. Returns whether it existed."""
        if self.is_redis_available():
            try:
                deleted = bool(await self.redis.delete(key))
            except RedisError as e:
                logger.error("Cache delete failed", key=key, error=str(e))
                raise CacheError(f"delete {key}: {e}") from e
        else:
            deleted = self.memory_cache.pop(key, None) is not None

        log_cache_operation(logger, "delete", key, deleted=deleted)
        return deleted

    def _sweep_expired(self) -> None:
        now = time.monotonic()
        expired = [k for k, (_, expires_at) in self.memory_cache.items()
                   if expires_at is not None and expires_at <= now]
        for k in expired:
            del self.memory_cache[k]

    def _memory_get(self, key: str) -> Optional[str]:
        entry = self.memory_cache.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if expires_at is not None and expires_at <= time.monotonic():
            del self.memory_cache[key]
            return None
        return value

    def is_redis_available(self) -> bool:
        """Check if Redis is available and connected."""
        return self.use_redis and self.redis is not None
