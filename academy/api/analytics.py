"""Analytics dashboard endpoints.

The caller's scope is resolved and authorized first; only then is the
read-through cache consulted, so a cached report is never served to a
caller who could not have computed it.  Keys have the form
``analytics:<report>:<scope>`` and are dropped by every progress
mutation (see academy.api.progress).
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.encoders import jsonable_encoder

from academy.api.dependencies import get_aggregator, require_user
from academy.core.config import SETTINGS
from academy.models.analytics import AnalyticsScope
from academy.models.principal import Principal
from academy.services.analytics_aggregator import AnalyticsAggregator
from academy.services.cache import ANALYTICS_PREFIX, cache_service, read_through

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/analytics", tags=["analytics"])

Aggregator = Annotated[AnalyticsAggregator, Depends(get_aggregator)]
Caller = Annotated[Principal, Depends(require_user)]


class ReportType(str, Enum):
    overview = "overview"
    enrollment = "enrollment"
    performance = "performance"
    engagement = "engagement"
    all = "all"


async def _cached(
    report: str, scope: AnalyticsScope, produce: Callable[[], Awaitable[Any]]
) -> Any:
    async def _encoded() -> Any:
        return jsonable_encoder(await produce())

    key = f"{ANALYTICS_PREFIX}{report}:{scope.cache_key()}"
    return await read_through(
        cache_service, key, SETTINGS.analytics_cache_ttl, _encoded
    )


@router.get("")
async def get_analytics(
    principal: Caller,
    aggregator: Aggregator,
    report: Annotated[ReportType, Query(alias="type")] = ReportType.all,
    instructor_id: UUID | None = None,
    course_id: UUID | None = None,
) -> dict:
    scope = await aggregator.resolve_scope(
        principal, instructor_id=instructor_id, course_id=course_id
    )
    logger.info(
        "Analytics requested report=%s scope=%s user=%s",
        report.value,
        scope.cache_key(),
        principal.user_id,
    )

    producers: dict[ReportType, Callable[[], Awaitable[Any]]] = {
        ReportType.overview: lambda: aggregator.compute_overview(scope),
        ReportType.enrollment: lambda: aggregator.compute_enrollment_trend(
            scope,
            window_months=SETTINGS.trend_window_months,
            top_n=SETTINGS.top_courses_limit,
        ),
        ReportType.performance: lambda: aggregator.compute_performance(scope),
        ReportType.engagement: lambda: aggregator.compute_engagement(
            scope, window_days=SETTINGS.engagement_window_days
        ),
    }
    if report is not ReportType.all:
        return {report.value: await _cached(report.value, scope, producers[report])}
    return {
        name.value: await _cached(name.value, scope, produce)
        for name, produce in producers.items()
    }


@router.get("/dropoff")
async def get_dropoff(
    principal: Caller,
    aggregator: Aggregator,
    instructor_id: UUID | None = None,
    course_id: UUID | None = None,
) -> list[dict]:
    scope = await aggregator.resolve_scope(
        principal, instructor_id=instructor_id, course_id=course_id
    )
    return await _cached("dropoff", scope, lambda: aggregator.compute_dropoff(scope))


@router.get("/progress")
async def get_progress_analytics(
    principal: Caller,
    aggregator: Aggregator,
    instructor_id: UUID | None = None,
    course_id: UUID | None = None,
    window_days: Annotated[int, Query(ge=1, le=366)] = 30,
) -> dict:
    scope = await aggregator.resolve_scope(
        principal, instructor_id=instructor_id, course_id=course_id
    )
    return await _cached(
        f"progress:{window_days}",
        scope,
        lambda: aggregator.compute_progress_analytics(scope, window_days=window_days),
    )


@router.get("/popular")
async def get_popular_courses(
    principal: Caller,
    aggregator: Aggregator,
    instructor_id: UUID | None = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> list[dict]:
    scope = await aggregator.resolve_scope(principal, instructor_id=instructor_id)
    return await _cached(
        f"popular:{limit}",
        scope,
        lambda: aggregator.popular_courses_by_completion(scope, limit=limit),
    )
