"""
Period and multi-site aggregation of simulated daily energy.

aggregate_period() runs the daily simulator once per day of a period
(day=1, week=7, month=30, year=365 simulated days, not calendar-exact),
sums the results, and derives revenue, trade counts, efficiency, and trend
strings. aggregate_all_sites() rolls every catalog profile into one
portfolio summary, recomputing net export and efficiency from the summed
totals and drawing its own trend values.

CHANGELOG:
- 2026-10-17: Efficiency derived from the rounded totals (STORY-116)
- 2026-10-14: Add sum_analytics for meter-mapped portfolios (STORY-110)
- 2026-10-13: Initial creation (STORY-106)

TODO:
- None
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from datetime import UTC, date, datetime
from typing import Literal

from pydantic import BaseModel

from energy_analytics.engine.profiles import ProfileCatalog, SiteProfile
from energy_analytics.engine.randomness import RandomSource, resolve_rng
from energy_analytics.engine.simulator import simulate_day

logger = logging.getLogger(__name__)

PeriodKey = Literal["day", "week", "month", "year"]

PERIOD_DAYS: dict[str, int] = {
    "day": 1,
    "week": 7,
    "month": 30,
    "year": 365,
}

EXPORT_PRICE_PER_KWH = 7.5
PRICE_VARIATION_BAND = (0.90, 1.10)
ACTIVE_TRADE_VARIATION_BAND = (0.7, 1.3)
COMPLETED_TRADE_RATIO_BAND = (2.0, 5.0)

SITE_GENERATION_TREND_BAND = (-5.0, 15.0)
SITE_REVENUE_TREND_BAND = (-3.0, 12.0)
PORTFOLIO_GENERATION_TREND_BAND = (-2.0, 13.0)
PORTFOLIO_REVENUE_TREND_BAND = (-1.0, 11.0)


class Trends(BaseModel):
    """Signed percentage strings such as ``+4.2%`` or ``-1.0%``."""

    generation: str
    revenue: str


class PeriodAnalytics(BaseModel):
    """Energy, revenue, and trade summary for one period.

    Attributes:
        period: Period key the summary covers.
        energy_generated_kwh: Total generation in kWh.
        energy_consumed_kwh: Total consumption in kWh.
        net_export_kwh: Generation minus consumption; may be negative.
        total_revenue: Revenue from exported energy or completed orders.
        active_trades: Open trades.
        completed_trades: Settled trades.
        efficiency_pct: net_export / generation * 100, or 0 without generation.
        trends: Period-over-period trend strings.
    """

    period: PeriodKey
    energy_generated_kwh: float
    energy_consumed_kwh: float
    net_export_kwh: float
    total_revenue: float
    active_trades: int
    completed_trades: int
    efficiency_pct: float
    trends: Trends


def format_trend(value: float) -> str:
    """Format a percentage with an explicit sign and one decimal."""
    return f"{value:+.1f}%"


def efficiency_pct(net_export_kwh: float, generated_kwh: float) -> float:
    """Return net export as a percentage of generation, rounded to 0.1."""
    if generated_kwh <= 0:
        return 0.0
    return round(net_export_kwh / generated_kwh * 100, 1)


def base_active_trades(profile: SiteProfile) -> int:
    """Return the nominal number of open trades for a site of this size."""
    if profile.solar_capacity_kw < 10:
        return 2
    if profile.solar_capacity_kw < 50:
        return 5
    return 8


def _today() -> date:
    return datetime.now(UTC).date()


def aggregate_period(
    catalog: ProfileCatalog,
    profile_id: str,
    period: PeriodKey = "month",
    rng: RandomSource | None = None,
    anchor: date | None = None,
) -> PeriodAnalytics:
    """Simulate and summarise one profile over a period.

    Unknown profile ids fall back to the catalog's first profile.

    Args:
        catalog: Profile registry.
        profile_id: Catalog id to simulate.
        period: One of day, week, month, year.
        rng: Random source shared by every draw in this call.
        anchor: Last simulated day; defaults to today (UTC).

    Returns:
        PeriodAnalytics: Summed and derived metrics.

    Raises:
        KeyError: If period is not a PERIOD_DAYS key.
    """
    days = PERIOD_DAYS[period]
    rng = resolve_rng(rng)
    anchor = anchor or _today()

    profile = catalog.get_profile(profile_id)
    if profile is None:
        logger.debug(
            "Unknown profile '%s', falling back to '%s'",
            profile_id,
            catalog.default.id,
        )
        profile = catalog.default

    total_generation = 0.0
    total_consumption = 0.0
    for days_back in range(days):
        record = simulate_day(profile, anchor, days_back, rng)
        total_generation += record.generation_kwh
        total_consumption += record.consumption_kwh

    net_export = total_generation - total_consumption
    revenue = max(0.0, net_export) * EXPORT_PRICE_PER_KWH
    revenue *= rng.uniform(*PRICE_VARIATION_BAND)

    active_trades = math.floor(
        base_active_trades(profile) * rng.uniform(*ACTIVE_TRADE_VARIATION_BAND)
    )
    completed_trades = math.floor(
        active_trades * rng.uniform(*COMPLETED_TRADE_RATIO_BAND)
    )

    generated_kwh = round(total_generation, 2)
    net_export_kwh = round(net_export, 2)
    return PeriodAnalytics(
        period=period,
        energy_generated_kwh=generated_kwh,
        energy_consumed_kwh=round(total_consumption, 2),
        net_export_kwh=net_export_kwh,
        total_revenue=round(revenue, 2),
        active_trades=active_trades,
        completed_trades=completed_trades,
        efficiency_pct=efficiency_pct(net_export_kwh, generated_kwh),
        trends=Trends(
            generation=format_trend(rng.uniform(*SITE_GENERATION_TREND_BAND)),
            revenue=format_trend(rng.uniform(*SITE_REVENUE_TREND_BAND)),
        ),
    )


def sum_analytics(
    parts: Iterable[PeriodAnalytics],
    period: PeriodKey,
    rng: RandomSource | None = None,
) -> PeriodAnalytics:
    """Sum per-site summaries into one portfolio summary.

    Energy, revenue, and trade counts are summed; net export and efficiency
    are recomputed from the totals; trends are drawn fresh from the
    portfolio bands rather than combined from the parts.
    """
    rng = resolve_rng(rng)

    generated = consumed = revenue = 0.0
    active = completed = 0
    for part in parts:
        generated += part.energy_generated_kwh
        consumed += part.energy_consumed_kwh
        revenue += part.total_revenue
        active += part.active_trades
        completed += part.completed_trades

    generated_kwh = round(generated, 2)
    net_export_kwh = round(generated - consumed, 2)
    return PeriodAnalytics(
        period=period,
        energy_generated_kwh=generated_kwh,
        energy_consumed_kwh=round(consumed, 2),
        net_export_kwh=net_export_kwh,
        total_revenue=round(revenue, 2),
        active_trades=active,
        completed_trades=completed,
        efficiency_pct=efficiency_pct(net_export_kwh, generated_kwh),
        trends=Trends(
            generation=format_trend(rng.uniform(*PORTFOLIO_GENERATION_TREND_BAND)),
            revenue=format_trend(rng.uniform(*PORTFOLIO_REVENUE_TREND_BAND)),
        ),
    )


def aggregate_all_sites(
    catalog: ProfileCatalog,
    period: PeriodKey = "month",
    rng: RandomSource | None = None,
    anchor: date | None = None,
) -> PeriodAnalytics:
    """Summarise every catalog profile over a period as one portfolio."""
    rng = resolve_rng(rng)
    anchor = anchor or _today()
    parts = [
        aggregate_period(catalog, profile.id, period, rng, anchor)
        for profile in catalog
    ]
    return sum_analytics(parts, period, rng)
