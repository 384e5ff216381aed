"""Redis-backed cache for read-heavy lookups.

The cache is never load-bearing: every Redis failure is logged and the
caller falls through to the source of truth.
"""

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError

from hotel_booking.config import settings

logger = logging.getLogger(__name__)

# Namespaces touched by any reservation, hold or availability change.
RESERVATION_CACHE_PATTERNS = (
    "reservations:*",
    "reservationsWithDetails:*",
    "roomTypes:*",
    "availability:*",
)


class CacheService:
    """Thin JSON cache over an async Redis client."""

    def __init__(self, client: Redis, default_ttl: int = 300) -> None:
        self.client = client
        self.default_ttl = default_ttl

    async def get_or_compute(
        self,
        key: str,
        ttl_seconds: int | None,
        fn: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Return the cached value for ``key`` or compute, store and return it."""
        try:
            cached = await self.client.get(key)
        except RedisError:
            logger.warning("Cache read failed for %s", key, exc_info=True)
            cached = None

        if cached is not None:
            try:
                return json.loads(cached)
            except (TypeError, ValueError):
                logger.warning("Discarding unparseable cache entry %s", key)

        value = await fn()

        try:
            await self.client.set(key, json.dumps(value, default=str), ex=ttl_seconds or self.default_ttl)
        except (RedisError, TypeError, ValueError):
            logger.warning("Cache write failed for %s", key, exc_info=True)
        return value

    async def invalidate(self, key: str) -> None:
        try:
            await self.client.delete(key)
        except RedisError:
            logger.warning("Cache invalidation failed for %s", key, exc_info=True)

    async def invalidate_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern. Returns the number deleted."""
        deleted = 0
        try:
            async for key in self.client.scan_iter(match=pattern):
                deleted += await self.client.delete(key)
        except RedisError:
            logger.warning("Cache pattern invalidation failed for %s", pattern, exc_info=True)
        return deleted

    async def close(self) -> None:
        await self.client.aclose()


_cache: CacheService | None = None


def get_cache() -> CacheService:
    """Return the process-wide cache (FastAPI dependency)."""
    global _cache
    if _cache is None:
        client = Redis.from_url(settings.redis_url, decode_responses=True)
        _cache = CacheService(client, default_ttl=settings.cache_default_ttl_seconds)
    return _cache


async def close_cache() -> None:
    global _cache
    if _cache is not None:
        await _cache.close()
        _cache = None
