"""Read-through cache for analytics reports.

Analytics reports are scans over every enrollment in a scope, so the API
caches their serialized JSON under ``analytics:<report>:<scope>`` keys.

Two invalidation rules keep dashboards honest:

  1. TTL: every entry expires after ANALYTICS_CACHE_TTL seconds.
  2. Explicit: every progress mutation deletes ``analytics:*`` after its
     transaction commits.

A report may therefore lag a change by at most one TTL only if an
invalidation is lost.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

from redis.exceptions import RedisError

from academy.core.metrics import CACHE_OPERATIONS
from academy.db.redis import redis_pool

logger = logging.getLogger(__name__)

ANALYTICS_PREFIX = "analytics:"


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None:
        """Fetch a cached value.  Returns None on cache miss."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value with a TTL (time to live)."""
        ...

    async def delete(self, key: str) -> None:
        """Explicitly invalidate a cached entry."""
        ...

    async def delete_pattern(self, pattern: str) -> None:
        """Delete all keys matching a glob pattern (e.g. 'analytics:*')."""
        ...


class InMemoryCacheService:
    """Process-local cache for dev and tests; TTLs are not enforced.

    The autouse fixture in tests/conftest.py clears the store between
    tests.
    """

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = value

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    async def delete_pattern(self, pattern: str) -> None:
        prefix = pattern.rstrip("*")
        for k in [k for k in self._store if k.startswith(prefix)]:
            del self._store[k]


class RedisCacheService:
    """Redis-backed cache shared by every API instance.

    Redis errors are logged and treated as a miss (reads) or a no-op
    (writes), so an outage slows dashboards down but never fails a
    progress mutation.  A lost invalidation is bounded by the TTL.
    """

    _PREFIX = "cache:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        try:
            return await self._redis.get(f"{self._PREFIX}{key}")
        except RedisError:
            logger.warning("Cache read failed key=%s", key, exc_info=True)
            return None

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)
        except RedisError:
            logger.warning("Cache write failed key=%s", key, exc_info=True)

    async def delete(self, key: str) -> None:
        try:
            await self._redis.delete(f"{self._PREFIX}{key}")
        except RedisError:
            logger.error("Cache delete failed key=%s", key, exc_info=True)

    async def delete_pattern(self, pattern: str) -> None:
        # SCAN, not KEYS: KEYS blocks the server for the whole keyspace
        cursor = 0
        try:
            while True:
                cursor, keys = await self._redis.scan(
                    cursor, match=f"{self._PREFIX}{pattern}", count=100
                )
                if keys:
                    await self._redis.delete(*keys)
                if cursor == 0:
                    break
        except RedisError:
            logger.error("Cache invalidation failed pattern=%s", pattern, exc_info=True)


async def read_through(
    cache: CacheService,
    key: str,
    ttl_seconds: int,
    produce: Callable[[], Awaitable[Any]],
) -> Any:
    """Return the JSON value cached under ``key``, computing it on a miss."""
    cached = await cache.get(key)
    if cached is not None:
        CACHE_OPERATIONS.labels(operation="hit").inc()
        return json.loads(cached)

    CACHE_OPERATIONS.labels(operation="miss").inc()
    value = await produce()
    await cache.set(key, json.dumps(value), ttl_seconds)
    return value


async def invalidate_analytics(cache: CacheService) -> None:
    await cache.delete_pattern(f"{ANALYTICS_PREFIX}*")
    logger.debug("Analytics cache invalidated")


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    cache_service: CacheService = RedisCacheService(redis_pool)
else:
    cache_service = InMemoryCacheService()
