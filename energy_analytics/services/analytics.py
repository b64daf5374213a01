"""
Selection and blending of real and synthetic site analytics.

For each unit of work (one site, all sites, or the site listing) the
service decides between metered telemetry and synthetic output:

- A user with no meters gets the synthetic catalog.
- A meter without readings is mapped to a catalog profile by its ordinal
  position in the meter listing and simulated; when the user has real order
  history, revenue and trade counts come from the orders instead.
- A meter with readings is summed directly; revenue and trade counts always
  come from the user's orders.

Active and completed orders are fetched concurrently, once per request, and
shared by every per-meter computation. In the site listing each meter is
computed independently and a failing meter yields a degraded row instead of
failing the whole listing.

CHANGELOG:
- 2026-10-17: Efficiency over rounded totals; gather_all for paired reads (STORY-116)
- 2026-10-15: Blend real order history into synthetic meter analytics (STORY-113)
- 2026-10-14: Per-meter outcome capture in site listing (STORY-111)
- 2026-10-14: Meter-mapped synthetic fill for aggregated analytics (STORY-110)
- 2026-10-13: Initial creation (STORY-108)

TODO:
- None
"""

import asyncio
import logging
import random
from collections import defaultdict
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Literal

from pydantic import BaseModel

from energy_analytics.engine.aggregator import (
    PeriodAnalytics,
    PeriodKey,
    Trends,
    aggregate_all_sites,
    aggregate_period,
    efficiency_pct,
    sum_analytics,
)
from energy_analytics.engine.profiles import DEFAULT_CATALOG, ProfileCatalog, SiteProfile
from energy_analytics.engine.randomness import RandomSource
from energy_analytics.errors import AnalyticsError, DependencyError, NotFoundError
from energy_analytics.services.outcome import Outcome, capture, gather_all
from energy_analytics.services.repository import (
    AnalyticsRepository,
    MeterRecord,
    OrderRecord,
    ReadingRecord,
)
from energy_analytics.services.validation import (
    AggregatedAnalyticsQuery,
    SiteAnalyticsQuery,
    UserQuery,
    validate,
)

logger = logging.getLogger(__name__)

DataSource = Literal["synthetic", "telemetry", "blended"]

LISTING_PERIOD: PeriodKey = "month"
DEGRADED_ROW_ERROR = "Failed to load analytics"

# A single reading window has no previous period to compare against.
TELEMETRY_TRENDS = Trends(generation="+12.0%", revenue="+8.0%")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class SiteAnalytics(PeriodAnalytics):
    """Period analytics for one site, tagged with where the numbers came from."""

    site_id: str
    data_source: DataSource


class AggregatedAnalytics(PeriodAnalytics):
    """Period analytics across all of a user's sites."""

    data_source: DataSource


class SiteSummary(BaseModel):
    """One row of the site listing.

    Attributes:
        id: Meter id, or catalog id for demo sites.
        name: Display name.
        utility_provider_name: Distribution company.
        consumer_reference: Consumer number with the provider.
        address: Optional installation address.
        total_generation_kwh: Generation over the listing period.
        total_revenue: Revenue over the listing period.
        active_trades: Open trades.
        completed_trades: Settled trades.
        efficiency_pct: Net export as a percentage of generation.
        error: Set when this row's analytics could not be computed.
    """

    id: str
    name: str
    utility_provider_name: str
    consumer_reference: str
    address: str | None = None
    total_generation_kwh: float
    total_revenue: float
    active_trades: int
    completed_trades: int
    efficiency_pct: float
    error: str | None = None


# ---------------------------------------------------------------------------
# Order history
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OrderHistory:
    """A user's active and completed orders for one request."""

    active: Sequence[OrderRecord]
    completed: Sequence[OrderRecord]

    @property
    def exists(self) -> bool:
        return bool(self.active or self.completed)

    @property
    def revenue(self) -> float:
        return round(sum(order.total_price for order in self.completed), 2)


def _from_totals(
    period: PeriodKey,
    generated: float,
    consumed: float,
    history: OrderHistory,
) -> PeriodAnalytics:
    """Build analytics from real energy totals and real order history."""
    generated_kwh = round(generated, 2)
    net_export_kwh = round(generated - consumed, 2)
    return PeriodAnalytics(
        period=period,
        energy_generated_kwh=generated_kwh,
        energy_consumed_kwh=round(consumed, 2),
        net_export_kwh=net_export_kwh,
        total_revenue=history.revenue,
        active_trades=len(history.active),
        completed_trades=len(history.completed),
        # efficiency is taken over the rounded fields
        efficiency_pct=efficiency_pct(net_export_kwh, generated_kwh),
        trends=TELEMETRY_TRENDS,
    )


def _from_readings(
    readings: Sequence[ReadingRecord],
    period: PeriodKey,
    history: OrderHistory,
) -> PeriodAnalytics:
    return _from_totals(
        period,
        sum(r.generation_kwh for r in readings),
        sum(r.consumption_kwh for r in readings),
        history,
    )


def _blend(
    analytics: PeriodAnalytics, history: OrderHistory
) -> tuple[PeriodAnalytics, DataSource]:
    """Replace synthetic revenue and trade counts with real order history."""
    if not history.exists:
        return analytics, "synthetic"
    blended = analytics.model_copy(
        update={
            "total_revenue": history.revenue,
            "active_trades": len(history.active),
            "completed_trades": len(history.completed),
        }
    )
    return blended, "blended"


def _utc_today() -> date:
    return datetime.now(UTC).date()


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class AnalyticsService:
    """Chooses between metered and synthetic analytics per unit of work.

    Attributes:
        repository: Read collaborators for meters, readings, and orders.
        catalog: Profiles used for synthetic output and meter fallback.
    """

    def __init__(
        self,
        repository: AnalyticsRepository,
        catalog: ProfileCatalog = DEFAULT_CATALOG,
        rng_factory: Callable[[], RandomSource] = random.Random,
        clock: Callable[[], date] = _utc_today,
    ) -> None:
        """Initialise the service.

        Args:
            repository: Read collaborators.
            catalog: Profile registry.
            rng_factory: Called once per unit of work for a fresh random source.
            clock: Returns the anchor date for simulations.
        """
        self.repository = repository
        self.catalog = catalog
        self._rng_factory = rng_factory
        self._clock = clock

    # -- shared reads -------------------------------------------------------

    async def _list_meters(self, user_id: str) -> Sequence[MeterRecord]:
        try:
            return await self.repository.list_meters_for_user(user_id)
        except AnalyticsError:
            raise
        except Exception as exc:
            raise DependencyError("Error fetching user meters") from exc

    async def _fetch_order_history(self, user_id: str) -> OrderHistory:
        active, completed = await gather_all(
            self.repository.list_active_orders(user_id),
            self.repository.list_completed_orders(user_id),
        )
        return OrderHistory(active=active, completed=completed)

    def _simulate(self, profile_id: str, period: PeriodKey) -> PeriodAnalytics:
        return aggregate_period(
            self.catalog, profile_id, period, self._rng_factory(), self._clock()
        )

    # -- site listing -------------------------------------------------------

    async def list_sites_for_user(self, user_id: str) -> list[SiteSummary]:
        """Return one summary row per site of the user.

        Users without meters get one synthetic row per catalog profile.
        Otherwise each meter is computed independently; a meter whose
        computation fails is returned with zeroed metrics and ``error`` set.

        Raises:
            ValidationError: If user_id is not a UUID.
            DependencyError: If the user's meters cannot be listed.
        """
        validate(UserQuery, user_id=user_id)
        meters = await self._list_meters(user_id)

        if not meters:
            logger.debug("User %s has no meters, listing catalog sites", user_id)
            return [self._catalog_summary(profile) for profile in self.catalog]

        history = await capture(self._fetch_order_history(user_id))
        if not history.ok:
            logger.warning(
                "Order history unavailable for user %s",
                user_id,
                exc_info=history.error,
            )

        outcomes = await asyncio.gather(
            *(
                capture(self._meter_summary(ordinal, meter, history))
                for ordinal, meter in enumerate(meters)
            )
        )

        rows: list[SiteSummary] = []
        for ordinal, (meter, outcome) in enumerate(zip(meters, outcomes)):
            if outcome.ok:
                rows.append(outcome.unwrap())
                continue
            logger.warning(
                "Error processing meter %s", meter.id, exc_info=outcome.error
            )
            rows.append(self._degraded_summary(ordinal, meter))
        return rows

    def _catalog_summary(self, profile: SiteProfile) -> SiteSummary:
        analytics = self._simulate(profile.id, LISTING_PERIOD)
        return SiteSummary(
            id=profile.id,
            name=profile.name,
            utility_provider_name=profile.utility_provider_name,
            consumer_reference=profile.consumer_reference,
            address=profile.address,
            total_generation_kwh=analytics.energy_generated_kwh,
            total_revenue=analytics.total_revenue,
            active_trades=analytics.active_trades,
            completed_trades=analytics.completed_trades,
            efficiency_pct=analytics.efficiency_pct,
        )

    async def _meter_summary(
        self,
        ordinal: int,
        meter: MeterRecord,
        history: Outcome[OrderHistory],
    ) -> SiteSummary:
        readings = await self.repository.read_energy_records(meter.id)
        orders = history.unwrap()

        if readings:
            analytics = _from_readings(readings, LISTING_PERIOD, orders)
        else:
            profile = self.catalog.profile_for_index(ordinal)
            logger.debug(
                "Meter %s has no readings, using profile %s", meter.id, profile.id
            )
            analytics, _ = _blend(self._simulate(profile.id, LISTING_PERIOD), orders)

        return SiteSummary(
            id=meter.id,
            name=f"Site {ordinal + 1} - {meter.utility_provider_name}",
            utility_provider_name=meter.utility_provider_name,
            consumer_reference=meter.consumer_reference,
            address=meter.address,
            total_generation_kwh=analytics.energy_generated_kwh,
            total_revenue=analytics.total_revenue,
            active_trades=analytics.active_trades,
            completed_trades=analytics.completed_trades,
            efficiency_pct=analytics.efficiency_pct,
        )

    @staticmethod
    def _degraded_summary(ordinal: int, meter: MeterRecord) -> SiteSummary:
        return SiteSummary(
            id=meter.id,
            name=f"Site {ordinal + 1} - {meter.utility_provider_name}",
            utility_provider_name=meter.utility_provider_name,
            consumer_reference=meter.consumer_reference,
            address=meter.address,
            total_generation_kwh=0.0,
            total_revenue=0.0,
            active_trades=0,
            completed_trades=0,
            efficiency_pct=0.0,
            error=DEGRADED_ROW_ERROR,
        )

    # -- single site --------------------------------------------------------

    async def get_site_analytics(
        self,
        user_id: str,
        site_id: str,
        start_date: str | datetime | None = None,
        end_date: str | datetime | None = None,
        period: str | None = None,
    ) -> SiteAnalytics:
        """Return analytics for one of the user's meters or a catalog site.

        Raises:
            ValidationError: If any parameter is invalid.
            NotFoundError: If site_id is neither a user meter nor a catalog id.
            DependencyError: If meters, readings, or orders cannot be read.
        """
        query = validate(
            SiteAnalyticsQuery,
            user_id=user_id,
            site_id=site_id,
            start_date=start_date,
            end_date=end_date,
            period=period,
        )
        try:
            return await self._site_analytics(query)
        except AnalyticsError:
            raise
        except Exception as exc:
            logger.error("Site analytics failed for %s", site_id, exc_info=True)
            raise DependencyError(f"Failed to fetch site analytics: {exc}") from exc

    async def _site_analytics(self, query: SiteAnalyticsQuery) -> SiteAnalytics:
        meters = await self._list_meters(query.user_id)
        ordinal = next(
            (k for k, meter in enumerate(meters) if meter.id == query.site_id), None
        )

        if ordinal is None:
            if query.site_id not in self.catalog:
                raise NotFoundError("Site not found or access denied")
            analytics = self._simulate(query.site_id, query.period)
            return SiteAnalytics(
                site_id=query.site_id,
                data_source="synthetic",
                **analytics.model_dump(),
            )

        readings, history = await gather_all(
            self.repository.read_energy_records(
                query.site_id, query.start_date, query.end_date
            ),
            self._fetch_order_history(query.user_id),
        )

        source: DataSource
        if readings:
            analytics = _from_readings(readings, query.period, history)
            source = "telemetry"
        else:
            profile = self.catalog.profile_for_index(ordinal)
            logger.debug(
                "Meter %s has no readings in range, using profile %s",
                query.site_id,
                profile.id,
            )
            analytics, source = _blend(
                self._simulate(profile.id, query.period), history
            )

        return SiteAnalytics(
            site_id=query.site_id,
            data_source=source,
            **analytics.model_dump(),
        )

    # -- all sites ----------------------------------------------------------

    async def get_aggregated_analytics(
        self,
        user_id: str,
        start_date: str | datetime | None = None,
        end_date: str | datetime | None = None,
        period: str | None = None,
    ) -> AggregatedAnalytics:
        """Return analytics summed over all of the user's sites.

        Raises:
            ValidationError: If any parameter is invalid.
            DependencyError: If meters, readings, or orders cannot be read.
        """
        query = validate(
            AggregatedAnalyticsQuery,
            user_id=user_id,
            start_date=start_date,
            end_date=end_date,
            period=period,
        )
        try:
            return await self._aggregated_analytics(query)
        except AnalyticsError:
            raise
        except Exception as exc:
            logger.error("Aggregated analytics failed for %s", user_id, exc_info=True)
            raise DependencyError(
                f"Failed to fetch aggregated analytics: {exc}"
            ) from exc

    async def _aggregated_analytics(
        self, query: AggregatedAnalyticsQuery
    ) -> AggregatedAnalytics:
        meters = await self._list_meters(query.user_id)

        if not meters:
            analytics = aggregate_all_sites(
                self.catalog, query.period, self._rng_factory(), self._clock()
            )
            return AggregatedAnalytics(data_source="synthetic", **analytics.model_dump())

        readings, history = await gather_all(
            self.repository.read_energy_records_for_meters(
                [meter.id for meter in meters], query.start_date, query.end_date
            ),
            self._fetch_order_history(query.user_id),
        )

        by_meter: dict[str, list[ReadingRecord]] = defaultdict(list)
        for reading in readings:
            by_meter[reading.meter_id].append(reading)

        # Meters without readings fall back to their mapped profile.
        synthetic = [
            self._simulate(self.catalog.profile_for_index(ordinal).id, query.period)
            for ordinal, meter in enumerate(meters)
            if meter.id not in by_meter
        ]

        source: DataSource
        if not by_meter:
            if len(synthetic) == 1:
                analytics = synthetic[0]
            else:
                analytics = sum_analytics(synthetic, query.period, self._rng_factory())
            analytics, source = _blend(analytics, history)
        else:
            generated = sum(r.generation_kwh for r in readings)
            consumed = sum(r.consumption_kwh for r in readings)
            generated += sum(part.energy_generated_kwh for part in synthetic)
            consumed += sum(part.energy_consumed_kwh for part in synthetic)
            analytics = _from_totals(query.period, generated, consumed, history)
            source = "blended" if synthetic else "telemetry"

        return AggregatedAnalytics(data_source=source, **analytics.model_dump())
