"""
SQLAlchemy ORM models for the tables the analytics service reads.

The meters, energy_data, and orders tables are owned by the trading
backend; this service only selects from them. Attribute names follow this
package's vocabulary while column names match the existing schema.

CHANGELOG:
- 2026-10-13: Add Order model for revenue/trade blending (STORY-109)
- 2026-10-12: Initial creation (STORY-107)

TODO:
- None
"""

import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Double, Numeric, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

ACTIVE_ORDER_STATUSES = ("pending", "confirmed", "in_progress")
COMPLETED_ORDER_STATUS = "completed"


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all analytics ORM models."""

    pass


class Meter(Base):
    """A physical electricity meter registered by a user.

    Attributes:
        id: Meter identifier.
        user_id: Owning user.
        utility_provider_name: Distribution company (``discom_name``).
        consumer_reference: Consumer number (``consumer_number``).
        address: Optional installation address.
        created_at: Registration time; defines the stable listing order.
    """

    __tablename__ = "meters"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    utility_provider_name: Mapped[str] = mapped_column(
        "discom_name", Text, nullable=False
    )
    consumer_reference: Mapped[str] = mapped_column(
        "consumer_number", Text, nullable=False
    )
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    def __repr__(self) -> str:
        """Return string representation of the Meter."""
        return f"Meter(id={self.id!r}, user_id={self.user_id!r})"


class EnergyReading(Base):
    """Metered generation and consumption for one interval.

    Attributes:
        meter_id: Meter the reading belongs to.
        ts: Interval timestamp in UTC (``timestamp``).
        generation_kwh: Energy generated in the interval (``generation``).
        consumption_kwh: Energy consumed in the interval (``consumption``).
    """

    __tablename__ = "energy_data"

    meter_id: Mapped[str] = mapped_column(Text, primary_key=True)
    ts: Mapped[datetime.datetime] = mapped_column(
        "timestamp", DateTime(timezone=True), primary_key=True
    )
    generation_kwh: Mapped[float | None] = mapped_column(
        "generation", Double, nullable=True
    )
    consumption_kwh: Mapped[float | None] = mapped_column(
        "consumption", Double, nullable=True
    )


class Order(Base):
    """An energy trade order where the user is buyer or seller.

    Attributes:
        id: Order identifier.
        buyer_id: Buying user.
        seller_id: Selling user.
        status: pending, confirmed, in_progress, completed, or cancelled.
        total_price: Settlement amount.
    """

    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    buyer_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    seller_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False)
    total_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
