"""
Per-item outcome wrapping for fan-out computations.

capture() awaits a coroutine and returns an Outcome holding either its
value or the exception it raised, so a failure in one item of an
asyncio.gather() never crosses the fan-out boundary. gather_all() is for
reads that must all succeed: it waits for every item before re-raising the
first failure.

CHANGELOG:
- 2026-10-17: gather_all retrieves every sibling failure (STORY-116)
- 2026-10-14: Initial creation (STORY-111)

TODO:
- None
"""

import asyncio
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of one guarded computation.

    Attributes:
        value: The computed value when ``error`` is None.
        error: The exception raised, if any.
    """

    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, re-raising the captured exception if any."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


async def capture(awaitable: Awaitable[T]) -> Outcome[T]:
    """Await *awaitable* and wrap its result or exception in an Outcome."""
    try:
        return Outcome(value=await awaitable)
    except Exception as exc:
        return Outcome(error=exc)


async def gather_all(*awaitables: Awaitable[Any]) -> list[Any]:
    """Await every item, then re-raise the first failure in argument order.

    Unlike a plain asyncio.gather(), sibling failures are always retrieved,
    so no task is left with an unobserved exception.
    """
    outcomes = await asyncio.gather(*(capture(aw) for aw in awaitables))
    return [outcome.unwrap() for outcome in outcomes]
