"""
Read collaborators for meters, energy readings, and orders.

AnalyticsRepository is the protocol the analytics service depends on;
SqlAnalyticsRepository implements it over the trading backend's tables
using SQLAlchemy async sessions. Each read opens its own session so that
independent reads can be awaited concurrently. Database failures surface as
DependencyError; no retries happen here.

CHANGELOG:
- 2026-10-14: Batched reading query for aggregated analytics (STORY-110)
- 2026-10-13: Add order reads (STORY-109)
- 2026-10-12: Initial creation (STORY-107)

TODO:
- None
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy import Select, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from energy_analytics.db.models import (
    ACTIVE_ORDER_STATUSES,
    COMPLETED_ORDER_STATUS,
    EnergyReading,
    Meter,
    Order,
)
from energy_analytics.errors import DependencyError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MeterRecord:
    """A user's physical meter."""

    id: str
    utility_provider_name: str
    consumer_reference: str
    address: str | None = None


@dataclass(frozen=True)
class ReadingRecord:
    """One metered interval; missing values count as zero."""

    meter_id: str
    ts: datetime
    generation_kwh: float = 0.0
    consumption_kwh: float = 0.0


@dataclass(frozen=True)
class OrderRecord:
    """A trade order; only the settlement amount matters here."""

    id: str
    status: str
    total_price: float = 0.0


class AnalyticsRepository(Protocol):
    """Read-only access to meters, readings, and orders."""

    async def list_meters_for_user(self, user_id: str) -> Sequence[MeterRecord]: ...

    async def read_energy_records(
        self,
        meter_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> Sequence[ReadingRecord]: ...

    async def read_energy_records_for_meters(
        self,
        meter_ids: Sequence[str],
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> Sequence[ReadingRecord]: ...

    async def list_active_orders(self, user_id: str) -> Sequence[OrderRecord]: ...

    async def list_completed_orders(self, user_id: str) -> Sequence[OrderRecord]: ...


def _to_reading(row: EnergyReading) -> ReadingRecord:
    return ReadingRecord(
        meter_id=row.meter_id,
        ts=row.ts,
        generation_kwh=row.generation_kwh or 0.0,
        consumption_kwh=row.consumption_kwh or 0.0,
    )


def _to_order(row: Order) -> OrderRecord:
    return OrderRecord(
        id=row.id,
        status=row.status,
        total_price=float(row.total_price or 0),
    )


def _filter_range(
    stmt: Select, start: datetime | None, end: datetime | None
) -> Select:
    """Apply inclusive start/end bounds on the reading timestamp."""
    if start is not None:
        stmt = stmt.where(EnergyReading.ts >= start)
    if end is not None:
        stmt = stmt.where(EnergyReading.ts <= end)
    return stmt


class SqlAnalyticsRepository:
    """AnalyticsRepository backed by PostgreSQL via SQLAlchemy async.

    Attributes:
        session_factory: Factory producing one AsyncSession per read.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def _scalars(self, stmt: Select, what: str) -> list:
        """Execute *stmt* in a fresh session and return all scalar rows.

        Raises:
            DependencyError: If the database call fails.
        """
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            logger.error("Database read failed while fetching %s", what, exc_info=True)
            raise DependencyError(f"Failed to fetch {what}") from exc

    async def list_meters_for_user(self, user_id: str) -> list[MeterRecord]:
        """Return the user's meters ordered by registration time, then id."""
        stmt = (
            select(Meter)
            .where(Meter.user_id == user_id)
            .order_by(Meter.created_at.asc(), Meter.id.asc())
        )
        rows = await self._scalars(stmt, "user meters")
        return [
            MeterRecord(
                id=row.id,
                utility_provider_name=row.utility_provider_name,
                consumer_reference=row.consumer_reference,
                address=row.address,
            )
            for row in rows
        ]

    async def read_energy_records(
        self,
        meter_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[ReadingRecord]:
        """Return readings for one meter within the optional range."""
        stmt = _filter_range(
            select(EnergyReading).where(EnergyReading.meter_id == meter_id),
            start,
            end,
        )
        rows = await self._scalars(stmt, f"energy data for meter {meter_id}")
        return [_to_reading(row) for row in rows]

    async def read_energy_records_for_meters(
        self,
        meter_ids: Sequence[str],
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[ReadingRecord]:
        """Return readings for several meters in one query."""
        if not meter_ids:
            return []
        stmt = _filter_range(
            select(EnergyReading).where(EnergyReading.meter_id.in_(list(meter_ids))),
            start,
            end,
        )
        rows = await self._scalars(stmt, "energy data")
        return [_to_reading(row) for row in rows]

    def _orders_for(self, user_id: str) -> Select:
        return select(Order).where(
            or_(Order.buyer_id == user_id, Order.seller_id == user_id)
        )

    async def list_active_orders(self, user_id: str) -> list[OrderRecord]:
        """Return the user's pending, confirmed, and in-progress orders."""
        stmt = self._orders_for(user_id).where(
            Order.status.in_(ACTIVE_ORDER_STATUSES)
        )
        rows = await self._scalars(stmt, "active orders")
        return [_to_order(row) for row in rows]

    async def list_completed_orders(self, user_id: str) -> list[OrderRecord]:
        """Return the user's completed orders."""
        stmt = self._orders_for(user_id).where(Order.status == COMPLETED_ORDER_STATUS)
        rows = await self._scalars(stmt, "completed orders")
        return [_to_order(row) for row in rows]
