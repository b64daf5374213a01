"""
Request validation for the analytics service.

Pydantic models check caller-supplied identifiers, period keys, and date
ranges. Pydantic's ValidationError is translated into the service's
ValidationError with the individual messages joined, so callers see one
client error regardless of how many fields failed.

CHANGELOG:
- 2026-10-13: Initial creation (STORY-108)

TODO:
- None
"""

import uuid
from datetime import UTC, datetime
from typing import TypeVar

import pydantic
from pydantic import BaseModel, Field, field_validator, model_validator

from energy_analytics.engine.aggregator import PeriodKey
from energy_analytics.errors import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


class UserQuery(BaseModel):
    """Identifies the requesting user."""

    user_id: str

    @field_validator("user_id")
    @classmethod
    def user_id_must_be_uuid(cls, v: str) -> str:
        """Reject user ids that are not UUID strings."""
        try:
            uuid.UUID(v)
        except (ValueError, AttributeError, TypeError):
            raise ValueError("Invalid user ID") from None
        return v


class AggregatedAnalyticsQuery(UserQuery):
    """Parameters for aggregated analytics over all of a user's sites."""

    start_date: datetime | None = None
    end_date: datetime | None = None
    period: PeriodKey = "month"

    @field_validator("start_date", "end_date")
    @classmethod
    def naive_dates_are_utc(cls, v: datetime | None) -> datetime | None:
        """Treat dates without an offset as UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @model_validator(mode="after")
    def _range_is_ordered(self) -> "AggregatedAnalyticsQuery":
        """Reject ranges whose start is after their end."""
        if (
            self.start_date is not None
            and self.end_date is not None
            and self.start_date > self.end_date
        ):
            raise ValueError("start_date must not be after end_date")
        return self


class SiteAnalyticsQuery(AggregatedAnalyticsQuery):
    """Parameters for analytics of a single site."""

    site_id: str = Field(min_length=1)


def _message(error: dict) -> str:
    msg = error["msg"]
    # pydantic prefixes validator errors raised as ValueError
    return msg.removeprefix("Value error, ")


def validate(model: type[ModelT], **params: object) -> ModelT:
    """Validate *params* against *model*.

    Args:
        model: Pydantic model class describing the request.
        **params: Raw caller-supplied values; None means "not supplied".

    Returns:
        The validated model instance.

    Raises:
        ValidationError: With every issue message joined by ", ".
    """
    supplied = {k: v for k, v in params.items() if v is not None}
    try:
        return model.model_validate(supplied)
    except pydantic.ValidationError as exc:
        messages = []
        for error in exc.errors():
            field = ".".join(str(p) for p in error["loc"])
            text = _message(error)
            messages.append(f"{field}: {text}" if field else text)
        raise ValidationError(", ".join(messages)) from None
