"""Liveness and readiness endpoints.

/health answers "is the process alive" and reports per-dependency
status; it returns 200 even when degraded so an orchestrator does not
restart the container over a cache outage.

/ready answers "can this instance serve traffic".  The database is the
only critical dependency: without it progress cannot be read or written.
Redis is optional because the analytics cache falls back to recomputing.

/metrics serves the Prometheus text format.  Restrict it at the ingress:
labels reveal route structure and traffic levels.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text

from academy.db.engine import engine
from academy.db.redis import redis_pool

logger = logging.getLogger(__name__)

router = APIRouter(tags=["operations"])


async def _check_redis() -> str:
    if redis_pool is None:
        return "not_configured"
    try:
        await redis_pool.ping()  # type: ignore[misc]
    except Exception:
        logger.warning("Redis health check failed", exc_info=True)
        return "degraded"
    return "ok"


async def _check_database() -> str:
    if engine is None:
        return "not_configured"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Database health check failed", exc_info=True)
        return "degraded"
    return "ok"


@router.get("/health")
async def health() -> dict:
    checks = {
        "database": await _check_database(),
        "redis": await _check_redis(),
    }
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    if await _check_database() == "degraded":
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
