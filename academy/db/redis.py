"""Redis client for the analytics report cache.

Built at import time from REDIS_URL, like the engine in engine.py.  With
no REDIS_URL (local dev, tests) ``redis_pool`` is None and
academy.services.cache keeps reports in a process-local dict.

Redis holds nothing but cached reports, so an outage costs recomputation,
never progress data.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from academy.core.config import SETTINGS

logger = logging.getLogger(__name__)


def build_client(url: str) -> aioredis.Redis:  # type: ignore[type-arg]
    # Cached values are JSON text, so decode to str on read
    return aioredis.from_url(url, decode_responses=True, max_connections=20)


redis_pool: aioredis.Redis | None = (  # type: ignore[type-arg]
    build_client(SETTINGS.redis_url) if SETTINGS.redis_url else None
)


@asynccontextmanager
async def lifespan_redis() -> AsyncIterator[None]:
    if redis_pool is None:
        logger.info("No REDIS_URL configured, analytics cache is in-memory")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
    except RedisError:
        # Serve anyway: every cache call degrades to a recomputation
        logger.exception("Redis unreachable on startup")
    else:
        logger.info("Redis ready for the analytics cache")

    try:
        yield
    finally:
        await redis_pool.aclose()
        logger.info("Redis connection pool closed")
