"""
Tests for selection and blending in AnalyticsService (STORY-108 - STORY-113).

Covers the no-meter synthetic catalog, ordinal meter-to-profile mapping,
telemetry sums with order-derived revenue, order blending into synthetic
output, once-per-request order fetching, per-meter failure isolation, and
the error taxonomy.

CHANGELOG:
- 2026-10-17: Efficiency over rounded telemetry totals (STORY-116)
- 2026-10-15: Add order blending tests (STORY-113)
- 2026-10-14: Add failure isolation and aggregated fill tests (STORY-110, STORY-111)
- 2026-10-13: Initial creation (STORY-108)

TODO:
- None
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from energy_analytics.engine.aggregator import aggregate_all_sites, aggregate_period
from energy_analytics.engine.profiles import DEFAULT_CATALOG
from energy_analytics.errors import DependencyError, NotFoundError, ValidationError
from energy_analytics.services.analytics import (
    DEGRADED_ROW_ERROR,
    AnalyticsService,
)
from energy_analytics.services.repository import OrderRecord
from tests.conftest import (
    ANCHOR,
    USER_ID,
    FakeRepository,
    FixedRandom,
    make_meter,
    make_reading,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

COMPLETED = [
    OrderRecord(id="o-1", status="completed", total_price=120.50),
    OrderRecord(id="o-2", status="completed", total_price=79.25),
]
ACTIVE = [OrderRecord(id="o-3", status="pending", total_price=40.0)]


def _service(repo: FakeRepository) -> AnalyticsService:
    """Build a service with a midpoint random source and fixed anchor date."""
    return AnalyticsService(
        repo,
        DEFAULT_CATALOG,
        rng_factory=lambda: FixedRandom(0.5),
        clock=lambda: ANCHOR,
    )


def _synthetic(profile_id: str, period: str = "month"):
    """Expected synthetic analytics for a profile under the test service."""
    return aggregate_period(DEFAULT_CATALOG, profile_id, period, FixedRandom(0.5), ANCHOR)


# ---------------------------------------------------------------------------
# list_sites_for_user
# ---------------------------------------------------------------------------


class TestListSitesNoMeters:
    """Users without meters get the synthetic catalog."""

    @pytest.mark.asyncio
    async def test_returns_one_row_per_catalog_profile(self) -> None:
        repo = FakeRepository()
        rows = await _service(repo).list_sites_for_user(USER_ID)

        assert len(rows) == 4
        assert [r.id for r in rows] == [p.id for p in DEFAULT_CATALOG]
        assert all(r.total_generation_kwh >= 0 for r in rows)
        assert all(r.error is None for r in rows)

    @pytest.mark.asyncio
    async def test_rows_carry_profile_descriptors_and_month_totals(self) -> None:
        rows = await _service(FakeRepository()).list_sites_for_user(USER_ID)
        industrial = rows[3]
        expected = _synthetic("site-4")

        assert industrial.name == "Site 4 - Industrial Plant"
        assert industrial.utility_provider_name == "BSES Yamuna"
        assert industrial.total_generation_kwh == expected.energy_generated_kwh
        assert industrial.active_trades == expected.active_trades
        assert industrial.completed_trades == expected.completed_trades

    @pytest.mark.asyncio
    async def test_does_not_fetch_orders(self) -> None:
        repo = FakeRepository()
        await _service(repo).list_sites_for_user(USER_ID)
        assert repo.calls == ["list_meters_for_user"]


class TestListSitesWithMeters:
    @pytest.mark.asyncio
    async def test_meter_with_telemetry_uses_readings_and_orders(self) -> None:
        repo = FakeRepository(
            meters=[make_meter(0, "Tata Power")],
            readings={
                "meter-0": [
                    make_reading("meter-0", 30.0, 10.0, hour=10),
                    make_reading("meter-0", 20.0, 15.0, hour=11),
                ]
            },
            active_orders=ACTIVE,
            completed_orders=COMPLETED,
        )
        [row] = await _service(repo).list_sites_for_user(USER_ID)

        assert row.id == "meter-0"
        assert row.name == "Site 1 - Tata Power"
        assert row.total_generation_kwh == 50.0
        assert row.total_revenue == 199.75
        assert row.active_trades == 1
        assert row.completed_trades == 2
        assert row.efficiency_pct == 50.0

    @pytest.mark.asyncio
    async def test_meters_without_telemetry_map_by_ordinal(self) -> None:
        meters = [make_meter(i) for i in range(6)]
        rows = await _service(FakeRepository(meters=meters)).list_sites_for_user(USER_ID)

        assert [r.id for r in rows] == [m.id for m in meters]
        # meter 5 -> profile index 1 (site-2)
        expected = _synthetic("site-2")
        assert rows[5].total_generation_kwh == expected.energy_generated_kwh
        assert rows[5].active_trades == expected.active_trades
        assert rows[5].name == "Site 6 - MSEDCL"

    @pytest.mark.asyncio
    async def test_synthetic_meter_blends_real_order_history(self) -> None:
        repo = FakeRepository(
            meters=[make_meter(0)], active_orders=ACTIVE, completed_orders=COMPLETED
        )
        [row] = await _service(repo).list_sites_for_user(USER_ID)

        assert row.total_generation_kwh == _synthetic("site-1").energy_generated_kwh
        assert row.total_revenue == 199.75
        assert row.active_trades == 1
        assert row.completed_trades == 2

    @pytest.mark.asyncio
    async def test_orders_fetched_once_per_request(self) -> None:
        repo = FakeRepository(meters=[make_meter(i) for i in range(5)])
        await _service(repo).list_sites_for_user(USER_ID)

        assert repo.calls.count("list_active_orders") == 1
        assert repo.calls.count("list_completed_orders") == 1
        assert repo.calls.count("read_energy_records") == 5

    @pytest.mark.asyncio
    async def test_listing_reads_full_history(self) -> None:
        repo = FakeRepository(meters=[make_meter(0)])
        await _service(repo).list_sites_for_user(USER_ID)
        assert repo.ranges == [(None, None)]


class TestListSitesFailureIsolation:
    """One failing meter degrades only its own row."""

    @pytest.mark.asyncio
    async def test_single_failure_yields_one_degraded_row(self) -> None:
        meters = [make_meter(i) for i in range(3)]
        repo = FakeRepository(
            meters=meters,
            readings={"meter-2": [make_reading("meter-2", 12.0, 4.0)]},
        )
        repo.failing_meters = {"meter-1"}

        rows = await _service(repo).list_sites_for_user(USER_ID)

        assert len(rows) == 3
        degraded = [r for r in rows if r.error is not None]
        assert len(degraded) == 1
        bad = degraded[0]
        assert bad.id == "meter-1"
        assert bad.error == DEGRADED_ROW_ERROR
        assert bad.total_generation_kwh == 0.0
        assert bad.total_revenue == 0.0
        assert bad.active_trades == 0
        assert bad.efficiency_pct == 0.0
        assert rows[0].total_generation_kwh > 0
        assert rows[2].total_generation_kwh == 12.0

    @pytest.mark.asyncio
    async def test_failed_meter_is_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        repo = FakeRepository(meters=[make_meter(0)])
        repo.failing_meters = {"meter-0"}

        with caplog.at_level("WARNING"):
            await _service(repo).list_sites_for_user(USER_ID)

        assert "Error processing meter meter-0" in caplog.text

    @pytest.mark.asyncio
    async def test_order_history_failure_degrades_rows_not_listing(self) -> None:
        repo = FakeRepository(meters=[make_meter(0), make_meter(1)])
        repo.list_completed_orders = AsyncMock(side_effect=DependencyError("boom"))

        rows = await _service(repo).list_sites_for_user(USER_ID)

        assert len(rows) == 2
        assert all(r.error == DEGRADED_ROW_ERROR for r in rows)

    @pytest.mark.asyncio
    async def test_meter_listing_failure_raises_dependency_error(self) -> None:
        repo = FakeRepository()
        repo.list_meters_for_user = AsyncMock(side_effect=RuntimeError("db down"))

        with pytest.raises(DependencyError, match="Error fetching user meters"):
            await _service(repo).list_sites_for_user(USER_ID)

    @pytest.mark.asyncio
    async def test_invalid_user_id(self) -> None:
        with pytest.raises(ValidationError, match="Invalid user ID"):
            await _service(FakeRepository()).list_sites_for_user("not-a-uuid")

    @pytest.mark.asyncio
    async def test_missing_user_id(self) -> None:
        with pytest.raises(ValidationError):
            await _service(FakeRepository()).list_sites_for_user("")


# ---------------------------------------------------------------------------
# get_site_analytics
# ---------------------------------------------------------------------------


class TestGetSiteAnalytics:
    @pytest.mark.asyncio
    async def test_unknown_site_raises_not_found(self) -> None:
        repo = FakeRepository(meters=[make_meter(0)])
        with pytest.raises(NotFoundError):
            await _service(repo).get_site_analytics(USER_ID, "site-404")

    @pytest.mark.asyncio
    async def test_catalog_site_is_synthetic(self) -> None:
        result = await _service(FakeRepository()).get_site_analytics(
            USER_ID, "site-3", period="week"
        )

        expected = _synthetic("site-3", "week")
        assert result.site_id == "site-3"
        assert result.period == "week"
        assert result.data_source == "synthetic"
        assert result.energy_generated_kwh == expected.energy_generated_kwh

    @pytest.mark.asyncio
    async def test_defaults_to_month(self) -> None:
        result = await _service(FakeRepository()).get_site_analytics(USER_ID, "site-1")
        assert result.period == "month"

    @pytest.mark.asyncio
    async def test_meter_with_telemetry(self) -> None:
        repo = FakeRepository(
            meters=[make_meter(0), make_meter(1)],
            readings={"meter-1": [make_reading("meter-1", 8.0, 10.0)]},
            active_orders=ACTIVE,
            completed_orders=COMPLETED,
        )
        result = await _service(repo).get_site_analytics(USER_ID, "meter-1", period="day")

        assert result.data_source == "telemetry"
        assert result.energy_generated_kwh == 8.0
        assert result.energy_consumed_kwh == 10.0
        assert result.net_export_kwh == -2.0
        assert result.efficiency_pct == -25.0
        assert result.total_revenue == 199.75
        assert result.active_trades == 1
        assert result.completed_trades == 2
        assert result.trends.generation == "+12.0%"

    @pytest.mark.asyncio
    async def test_generation_rounding_to_zero_gives_zero_efficiency(self) -> None:
        repo = FakeRepository(
            meters=[make_meter(0)],
            readings={"meter-0": [make_reading("meter-0", 0.004, 0.0)]},
        )
        result = await _service(repo).get_site_analytics(USER_ID, "meter-0")

        assert result.data_source == "telemetry"
        assert result.energy_generated_kwh == 0.0
        assert result.net_export_kwh == 0.0
        assert result.efficiency_pct == 0.0

    @pytest.mark.asyncio
    async def test_efficiency_follows_rounded_fields(self) -> None:
        # Unrounded totals give 62.5%; the returned 0.01 / 0.02 give 50.0%.
        repo = FakeRepository(
            meters=[make_meter(0)],
            readings={"meter-0": [make_reading("meter-0", 0.016, 0.006)]},
        )
        result = await _service(repo).get_site_analytics(USER_ID, "meter-0")

        assert result.energy_generated_kwh == 0.02
        assert result.net_export_kwh == 0.01
        assert result.efficiency_pct == 50.0

    @pytest.mark.asyncio
    async def test_date_range_passed_to_readings(self) -> None:
        repo = FakeRepository(meters=[make_meter(0)])
        await _service(repo).get_site_analytics(
            USER_ID, "meter-0", "2026-05-01", "2026-05-31T23:59:59Z"
        )
        assert repo.ranges == [
            (
                datetime(2026, 5, 1, tzinfo=UTC),
                datetime(2026, 5, 31, 23, 59, 59, tzinfo=UTC),
            )
        ]

    @pytest.mark.asyncio
    async def test_meter_without_telemetry_maps_by_ordinal(self) -> None:
        meters = [make_meter(i) for i in range(4)]
        result = await _service(FakeRepository(meters=meters)).get_site_analytics(
            USER_ID, "meter-2", period="week"
        )

        expected = _synthetic("site-3", "week")
        assert result.data_source == "synthetic"
        assert result.energy_generated_kwh == expected.energy_generated_kwh
        assert result.active_trades == expected.active_trades

    @pytest.mark.asyncio
    async def test_meter_without_telemetry_blends_orders(self) -> None:
        repo = FakeRepository(meters=[make_meter(0)], completed_orders=COMPLETED)
        result = await _service(repo).get_site_analytics(USER_ID, "meter-0")

        assert result.data_source == "blended"
        assert result.energy_generated_kwh == _synthetic("site-1").energy_generated_kwh
        assert result.total_revenue == 199.75
        assert result.active_trades == 0
        assert result.completed_trades == 2

    @pytest.mark.asyncio
    async def test_reading_failure_surfaces_as_dependency_error(self) -> None:
        repo = FakeRepository(meters=[make_meter(0)])
        repo.failing_meters = {"meter-0"}

        with pytest.raises(DependencyError, match="Failed to fetch site analytics"):
            await _service(repo).get_site_analytics(USER_ID, "meter-0")

    @pytest.mark.asyncio
    async def test_dependency_error_passes_through(self) -> None:
        repo = FakeRepository(meters=[make_meter(0)])
        repo.list_active_orders = AsyncMock(
            side_effect=DependencyError("Failed to fetch active orders")
        )

        with pytest.raises(DependencyError, match="Failed to fetch active orders"):
            await _service(repo).get_site_analytics(USER_ID, "meter-0")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("kwargs", "message"),
        [
            ({"user_id": "abc", "site_id": "site-1"}, "Invalid user ID"),
            ({"user_id": USER_ID, "site_id": ""}, "site_id"),
            ({"user_id": USER_ID, "site_id": "site-1", "period": "decade"}, "period"),
            (
                {"user_id": USER_ID, "site_id": "site-1", "start_date": "yesterday"},
                "start_date",
            ),
            (
                {
                    "user_id": USER_ID,
                    "site_id": "site-1",
                    "start_date": "2026-06-01",
                    "end_date": "2026-05-01",
                },
                "start_date must not be after end_date",
            ),
        ],
    )
    async def test_validation_errors(self, kwargs: dict, message: str) -> None:
        repo = FakeRepository()
        with pytest.raises(ValidationError, match=message):
            await _service(repo).get_site_analytics(**kwargs)
        assert repo.calls == []


# ---------------------------------------------------------------------------
# get_aggregated_analytics
# ---------------------------------------------------------------------------


class TestGetAggregatedAnalytics:
    @pytest.mark.asyncio
    async def test_no_meters_aggregates_catalog(self) -> None:
        result = await _service(FakeRepository()).get_aggregated_analytics(
            USER_ID, period="week"
        )
        expected = aggregate_all_sites(DEFAULT_CATALOG, "week", FixedRandom(0.5), ANCHOR)

        assert result.data_source == "synthetic"
        assert result.energy_generated_kwh == expected.energy_generated_kwh
        assert result.active_trades == expected.active_trades
        assert result.trends == expected.trends

    @pytest.mark.asyncio
    async def test_single_meter_without_telemetry_uses_first_profile(self) -> None:
        repo = FakeRepository(meters=[make_meter(0)])
        result = await _service(repo).get_aggregated_analytics(USER_ID, period="month")
        expected = _synthetic("site-1", "month")

        assert result.period == "month"
        assert result.data_source == "synthetic"
        assert result.energy_generated_kwh == expected.energy_generated_kwh
        assert result.energy_consumed_kwh == expected.energy_consumed_kwh
        assert result.total_revenue == expected.total_revenue

    @pytest.mark.asyncio
    async def test_several_meters_without_telemetry_sum_mapped_profiles(self) -> None:
        repo = FakeRepository(meters=[make_meter(i) for i in range(5)])
        result = await _service(repo).get_aggregated_analytics(USER_ID, period="day")

        mapped = ["site-1", "site-2", "site-3", "site-4", "site-1"]
        expected = sum(_synthetic(p, "day").energy_generated_kwh for p in mapped)
        assert result.energy_generated_kwh == pytest.approx(expected)

    @pytest.mark.asyncio
    async def test_all_meters_with_telemetry(self) -> None:
        repo = FakeRepository(
            meters=[make_meter(0), make_meter(1)],
            readings={
                "meter-0": [make_reading("meter-0", 10.0, 4.0)],
                "meter-1": [make_reading("meter-1", 30.0, 6.0)],
            },
            active_orders=ACTIVE,
            completed_orders=COMPLETED,
        )
        result = await _service(repo).get_aggregated_analytics(USER_ID)

        assert result.data_source == "telemetry"
        assert result.energy_generated_kwh == 40.0
        assert result.energy_consumed_kwh == 10.0
        assert result.net_export_kwh == 30.0
        assert result.efficiency_pct == 75.0
        assert result.total_revenue == 199.75
        assert result.completed_trades == 2
        assert repo.calls.count("read_energy_records_for_meters") == 1

    @pytest.mark.asyncio
    async def test_partial_telemetry_fills_missing_meters(self) -> None:
        repo = FakeRepository(
            meters=[make_meter(0), make_meter(1)],
            readings={"meter-0": [make_reading("meter-0", 10.0, 4.0)]},
        )
        result = await _service(repo).get_aggregated_analytics(USER_ID, period="day")

        filler = _synthetic("site-2", "day")
        assert result.data_source == "blended"
        assert result.energy_generated_kwh == pytest.approx(
            10.0 + filler.energy_generated_kwh
        )
        assert result.total_revenue == 0.0
        assert result.active_trades == 0

    @pytest.mark.asyncio
    async def test_batched_read_failure_raises(self) -> None:
        repo = FakeRepository(meters=[make_meter(0)])
        repo.read_energy_records_for_meters = AsyncMock(
            side_effect=DependencyError("Failed to fetch energy data")
        )

        with pytest.raises(DependencyError):
            await _service(repo).get_aggregated_analytics(USER_ID)

    @pytest.mark.asyncio
    async def test_invalid_period(self) -> None:
        with pytest.raises(ValidationError, match="period"):
            await _service(FakeRepository()).get_aggregated_analytics(
                USER_ID, period="fortnight"
            )
