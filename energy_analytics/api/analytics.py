"""
GET /v1/analytics endpoints for site listings and period analytics.

Thin routes over AnalyticsService: they pass the authenticated user id and
raw query parameters through and let the service validate them. Service
errors are mapped to HTTP status codes by the AnalyticsError handler
registered in main.py.

CHANGELOG:
- 2026-10-17: Skip caching degraded listings, treat invalid cache rows as a miss (STORY-116)
- 2026-10-17: Serve /site/{site_id} alongside /sites/{site_id} (STORY-116)
- 2026-10-15: Cache site listings in Redis (STORY-114)
- 2026-10-15: Initial creation (STORY-112)

TODO:
- None
"""

import logging
from typing import Annotated

import pydantic
from fastapi import APIRouter, Query

from energy_analytics.api.deps import Service, Settings, UserId
from energy_analytics.cache.redis_client import (
    read_cached_json,
    sites_cache_key,
    write_cached_json,
)
from energy_analytics.services.analytics import (
    AggregatedAnalytics,
    SiteAnalytics,
    SiteSummary,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/analytics", tags=["analytics"])

PeriodParam = Annotated[
    str | None, Query(description="Period: day, week, month, or year.")
]
StartParam = Annotated[str | None, Query(description="ISO-8601 range start.")]
EndParam = Annotated[str | None, Query(description="ISO-8601 range end.")]


@router.get("/sites", response_model=list[SiteSummary])
async def list_sites(
    user_id: UserId,
    service: Service,
    settings: Settings,
) -> list[SiteSummary]:
    """Return one summary row per site of the authenticated user.

    Served from the Redis cache when a fresh listing is available.
    """
    ttl = settings.sites_cache_ttl_s
    key = sites_cache_key(user_id)

    if ttl > 0:
        cached = await read_cached_json(settings.redis_url, key)
        if isinstance(cached, list):
            try:
                return [SiteSummary.model_validate(row) for row in cached]
            except pydantic.ValidationError:
                logger.warning("Ignoring cached listing %s with invalid rows", key)

    sites = await service.list_sites_for_user(user_id)

    # Degraded rows describe this request's failure and are not cached.
    if ttl > 0 and not any(site.error for site in sites):
        await write_cached_json(
            settings.redis_url,
            key,
            [site.model_dump(mode="json") for site in sites],
            ttl,
        )

    logger.debug("Listed %d site(s) for user %s", len(sites), user_id)
    return sites


@router.get("/sites/{site_id}", response_model=SiteAnalytics)
@router.get("/site/{site_id}", response_model=SiteAnalytics, include_in_schema=False)
async def site_analytics(
    site_id: str,
    user_id: UserId,
    service: Service,
    period: PeriodParam = None,
    start_date: StartParam = None,
    end_date: EndParam = None,
) -> SiteAnalytics:
    """Return period analytics for one site.

    Raises:
        AnalyticsError: 400 on invalid parameters, 404 for an unknown site,
            500 when storage reads fail.
    """
    return await service.get_site_analytics(
        user_id, site_id, start_date, end_date, period
    )


@router.get("/aggregated", response_model=AggregatedAnalytics)
async def aggregated_analytics(
    user_id: UserId,
    service: Service,
    period: PeriodParam = None,
    start_date: StartParam = None,
    end_date: EndParam = None,
) -> AggregatedAnalytics:
    """Return period analytics summed over all of the user's sites."""
    return await service.get_aggregated_analytics(
        user_id, start_date, end_date, period
    )
