"""
Site profile catalog for synthetic energy generation.

Each SiteProfile describes one archetypal installation (inverter, capacity,
load shape, weather exposure, shading, orientation). A ProfileCatalog is an
immutable, ordered registry of profiles; it is built once and passed by
reference to the simulator, aggregators, and service layer.

Physical meters without telemetry are mapped to a profile by ordinal
position: meter k uses ``catalog[k mod len(catalog)]``.

CHANGELOG:
- 2026-10-13: Add profile_for_index and map_index for meter fallback (STORY-108)
- 2026-10-12: Initial creation (STORY-103)

TODO:
- None
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Literal

from pydantic import BaseModel, Field, model_validator

InverterType = Literal["string", "micro", "hybrid", "central"]
WeatherPattern = Literal["sunny", "moderate", "cloudy", "variable"]
PanelOrientation = Literal["optimal", "east", "west", "north"]
LoggingInterval = Literal[5, 15, 30]


class SiteProfile(BaseModel):
    """Archetypal installation driving the daily simulator.

    Attributes:
        id: Stable catalog identifier.
        name: Display name.
        utility_provider_name: Distribution company serving the site.
        consumer_reference: Consumer number with the utility provider.
        address: Optional postal address.
        inverter_type: Inverter archetype (documentary only).
        logging_interval_minutes: Data logger interval (documentary only).
        solar_capacity_kw: Installed PV capacity in kW.
        base_load_kw: Always-on load in kW.
        peak_load_kw: Load during peak hours in kW (>= base_load_kw).
        inverter_efficiency_pct: Inverter efficiency in percent, (0, 100].
        weather_pattern: Typical local weather.
        has_shading: Whether nearby obstructions shade the array.
        panel_orientation: Array orientation relative to optimal.
    """

    model_config = {"frozen": True}

    id: str = Field(min_length=1)
    name: str
    utility_provider_name: str
    consumer_reference: str
    address: str | None = None
    inverter_type: InverterType
    logging_interval_minutes: LoggingInterval
    solar_capacity_kw: float = Field(gt=0)
    base_load_kw: float = Field(gt=0)
    peak_load_kw: float = Field(gt=0)
    inverter_efficiency_pct: float = Field(gt=0, le=100)
    weather_pattern: WeatherPattern
    has_shading: bool
    panel_orientation: PanelOrientation

    @model_validator(mode="after")
    def _peak_at_least_base(self) -> "SiteProfile":
        """Reject profiles whose peak load is below their base load."""
        if self.peak_load_kw < self.base_load_kw:
            raise ValueError("peak_load_kw must be >= base_load_kw")
        return self


def map_index(ordinal: int, catalog_size: int) -> int:
    """Map a meter's ordinal position onto a catalog index.

    Args:
        ordinal: 0-based position of the meter in the user's meter listing.
        catalog_size: Number of profiles in the catalog.

    Returns:
        int: ``ordinal mod catalog_size``.

    Raises:
        ValueError: If ordinal is negative or catalog_size is not positive.
    """
    if ordinal < 0:
        raise ValueError("ordinal must be >= 0")
    if catalog_size <= 0:
        raise ValueError("catalog_size must be > 0")
    return ordinal % catalog_size


class ProfileCatalog:
    """Immutable ordered registry of site profiles.

    Iteration order is the construction order and is stable for the life
    of the catalog.
    """

    def __init__(self, profiles: Iterable[SiteProfile]) -> None:
        """Build the catalog.

        Args:
            profiles: Profiles in listing order.

        Raises:
            ValueError: If no profiles are given or an id repeats.
        """
        ordered = tuple(profiles)
        if not ordered:
            raise ValueError("ProfileCatalog requires at least one profile")

        by_id: dict[str, SiteProfile] = {}
        for profile in ordered:
            if profile.id in by_id:
                raise ValueError(f"Duplicate site profile id '{profile.id}'")
            by_id[profile.id] = profile

        self._profiles = ordered
        self._by_id = by_id

    def __len__(self) -> int:
        return len(self._profiles)

    def __iter__(self) -> Iterator[SiteProfile]:
        return iter(self._profiles)

    def __contains__(self, profile_id: object) -> bool:
        return profile_id in self._by_id

    @property
    def default(self) -> SiteProfile:
        """First profile, used when an unknown id is requested."""
        return self._profiles[0]

    def list_profiles(self) -> tuple[SiteProfile, ...]:
        """Return all profiles in catalog order."""
        return self._profiles

    def get_profile(self, profile_id: str) -> SiteProfile | None:
        """Return the profile with *profile_id*, or None if absent."""
        return self._by_id.get(profile_id)

    def profile_for_index(self, ordinal: int) -> SiteProfile:
        """Return the fallback profile for the meter at *ordinal*."""
        return self._profiles[map_index(ordinal, len(self._profiles))]


DEFAULT_CATALOG = ProfileCatalog(
    [
        SiteProfile(
            id="site-1",
            name="Site 1 - Residential Premium",
            utility_provider_name="MSEDCL",
            consumer_reference="MSEDCL-001234",
            address="123 Green Energy Lane, Pune",
            inverter_type="hybrid",
            logging_interval_minutes=5,
            solar_capacity_kw=5.0,
            base_load_kw=0.4,
            peak_load_kw=2.5,
            inverter_efficiency_pct=96.5,
            weather_pattern="sunny",
            has_shading=False,
            panel_orientation="optimal",
        ),
        SiteProfile(
            id="site-2",
            name="Site 2 - Commercial Building",
            utility_provider_name="Tata Power",
            consumer_reference="TATA-005678",
            address="456 Business Park, Mumbai",
            inverter_type="central",
            logging_interval_minutes=15,
            solar_capacity_kw=25.0,
            base_load_kw=3.0,
            peak_load_kw=12.0,
            inverter_efficiency_pct=94.0,
            weather_pattern="moderate",
            has_shading=False,
            panel_orientation="optimal",
        ),
        SiteProfile(
            id="site-3",
            name="Site 3 - Residential Standard",
            utility_provider_name="Adani Electricity",
            consumer_reference="ADANI-009012",
            address="789 Residential Complex, Delhi",
            inverter_type="string",
            logging_interval_minutes=15,
            solar_capacity_kw=3.5,
            base_load_kw=0.5,
            peak_load_kw=2.0,
            inverter_efficiency_pct=92.0,
            weather_pattern="variable",
            has_shading=True,
            panel_orientation="east",
        ),
        SiteProfile(
            id="site-4",
            name="Site 4 - Industrial Plant",
            utility_provider_name="BSES Yamuna",
            consumer_reference="BSES-003456",
            address="321 Industrial Zone, Noida",
            inverter_type="central",
            logging_interval_minutes=30,
            solar_capacity_kw=100.0,
            base_load_kw=15.0,
            peak_load_kw=45.0,
            inverter_efficiency_pct=95.5,
            weather_pattern="cloudy",
            has_shading=False,
            panel_orientation="optimal",
        ),
    ]
)
"""Reference catalog of four archetypal installations."""
