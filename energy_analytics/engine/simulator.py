"""
Daily energy simulator driven by a SiteProfile.

Produces one day's generation, consumption, and net export for a profile.
The numbers are plausible and bounded rather than physically accurate: a
nominal sun-hour yield is scaled by weather, shading, orientation, inverter
efficiency, season, and day-to-day noise, while consumption follows a
base-plus-peak load shape with longer peaks at weekends.

Randomness comes from an injected RandomSource; the function has no other
side effects.

CHANGELOG:
- 2026-10-13: Accept injected RandomSource instead of module random (STORY-105)
- 2026-10-12: Initial creation (STORY-104)

TODO:
- None
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, timedelta

from energy_analytics.engine.profiles import SiteProfile
from energy_analytics.engine.randomness import RandomSource, resolve_rng

AVERAGE_SUN_HOURS = 4.5
SHADING_FACTOR = 0.85
WEEKDAY_PEAK_HOURS = 6
WEEKEND_PEAK_HOURS = 8

WEATHER_BANDS: dict[str, tuple[float, float]] = {
    "sunny": (0.90, 1.10),
    "moderate": (0.75, 0.95),
    "cloudy": (0.55, 0.75),
    "variable": (0.50, 0.90),
}
"""Uniform multiplier band per weather pattern, resampled every call."""

ORIENTATION_FACTORS: dict[str, float] = {
    "optimal": 1.00,
    "east": 0.88,
    "west": 0.88,
    "north": 0.65,
}

DAILY_VARIATION_BAND = (0.85, 1.15)
CONSUMPTION_VARIATION_BAND = (0.90, 1.10)


@dataclass(frozen=True)
class DailyEnergyRecord:
    """One simulated day.

    Attributes:
        generation_kwh: Energy generated, >= 0.
        consumption_kwh: Energy consumed, >= 0.
        net_export_kwh: generation - consumption; negative means net import.
    """

    generation_kwh: float
    consumption_kwh: float
    net_export_kwh: float


def seasonal_multiplier(target: date) -> float:
    """Return the seasonal yield multiplier for *target*.

    Uses the 0-indexed calendar month so the curve peaks around May.
    """
    month = target.month - 1
    return 0.85 + 0.15 * math.sin((month - 2) * math.pi / 6)


def peak_hours(target: date) -> int:
    """Return the number of peak-load hours on *target*."""
    # Saturday=5, Sunday=6
    return WEEKEND_PEAK_HOURS if target.weekday() >= 5 else WEEKDAY_PEAK_HOURS


def simulate_day(
    profile: SiteProfile,
    anchor: date,
    days_back: int = 0,
    rng: RandomSource | None = None,
) -> DailyEnergyRecord:
    """Simulate one day of energy flow for a site.

    Args:
        profile: Site characteristics.
        anchor: Reference date, usually today.
        days_back: How many days before *anchor* to simulate.
        rng: Random source; a fresh unseeded one is used if omitted.

    Returns:
        DailyEnergyRecord: Rounded to 2 decimals, with net export derived
        from the rounded generation and consumption.
    """
    rng = resolve_rng(rng)
    target = anchor - timedelta(days=days_back)

    generation = profile.solar_capacity_kw * AVERAGE_SUN_HOURS
    generation *= rng.uniform(*WEATHER_BANDS[profile.weather_pattern])
    if profile.has_shading:
        generation *= SHADING_FACTOR
    generation *= ORIENTATION_FACTORS[profile.panel_orientation]
    generation *= profile.inverter_efficiency_pct / 100
    generation *= seasonal_multiplier(target)
    generation *= rng.uniform(*DAILY_VARIATION_BAND)
    generation_kwh = round(max(0.0, generation), 2)

    consumption = profile.base_load_kw * 24 + (
        profile.peak_load_kw - profile.base_load_kw
    ) * peak_hours(target)
    consumption *= rng.uniform(*CONSUMPTION_VARIATION_BAND)
    consumption_kwh = round(max(0.0, consumption), 2)

    return DailyEnergyRecord(
        generation_kwh=generation_kwh,
        consumption_kwh=consumption_kwh,
        net_export_kwh=round(generation_kwh - consumption_kwh, 2),
    )
