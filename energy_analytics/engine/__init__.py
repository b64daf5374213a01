"""
Synthetic energy analytics engine.

Exports the profile catalog, daily simulator, and period aggregators used
when a site has no metered telemetry.

CHANGELOG:
- 2026-10-13: Export aggregators (STORY-106)
- 2026-10-12: Initial creation (STORY-103)

TODO:
- None
"""

from energy_analytics.engine.aggregator import (
    PERIOD_DAYS,
    PeriodAnalytics,
    PeriodKey,
    Trends,
    aggregate_all_sites,
    aggregate_period,
    format_trend,
)
from energy_analytics.engine.profiles import (
    DEFAULT_CATALOG,
    ProfileCatalog,
    SiteProfile,
    map_index,
)
from energy_analytics.engine.randomness import RandomSource
from energy_analytics.engine.simulator import DailyEnergyRecord, simulate_day

__all__ = [
    "DEFAULT_CATALOG",
    "PERIOD_DAYS",
    "DailyEnergyRecord",
    "PeriodAnalytics",
    "PeriodKey",
    "ProfileCatalog",
    "RandomSource",
    "SiteProfile",
    "Trends",
    "aggregate_all_sites",
    "aggregate_period",
    "format_trend",
    "map_index",
    "simulate_day",
]
