"""
FastAPI dependency injection providers.

Provides the analytics service and the authenticated user id for use with
FastAPI's Depends() mechanism. Both read from objects placed on app.state
during startup, which tests replace via app.dependency_overrides.

CHANGELOG:
- 2026-10-15: Provide AnalyticsService instead of raw sessions (STORY-112)
- 2026-10-12: Initial creation (STORY-102)
"""

from typing import Annotated

from fastapi import Depends, Request

from energy_analytics.config import AnalyticsSettings
from energy_analytics.services.analytics import AnalyticsService
from energy_analytics.services.repository import SqlAnalyticsRepository


async def get_user_id(request: Request) -> str:
    """Extract the authenticated user_id via BearerAuth on app.state."""
    return await request.app.state.auth.verify(request)


def get_settings(request: Request) -> AnalyticsSettings:
    """Return the settings loaded at startup."""
    return request.app.state.settings


def get_analytics_service(request: Request) -> AnalyticsService:
    """Build an AnalyticsService over the shared session factory."""
    repository = SqlAnalyticsRepository(request.app.state.session_factory)
    return AnalyticsService(repository)


UserId = Annotated[str, Depends(get_user_id)]
Settings = Annotated[AnalyticsSettings, Depends(get_settings)]
Service = Annotated[AnalyticsService, Depends(get_analytics_service)]
