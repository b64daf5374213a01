"""
Random source strategy for the synthetic engine.

Engine functions take an explicit RandomSource so tests can substitute a
deterministic one. ``random.Random`` satisfies the protocol; when no source
is passed, a fresh instance is created per call so no generator state is
shared between requests.

CHANGELOG:
- 2026-10-12: Initial creation (STORY-103)

TODO:
- None
"""

from __future__ import annotations

import random
from typing import Protocol


class RandomSource(Protocol):
    """Anything that can draw a uniform float from a closed interval."""

    def uniform(self, a: float, b: float) -> float: ...


def resolve_rng(rng: RandomSource | None) -> RandomSource:
    """Return *rng*, or a fresh unseeded ``random.Random`` if it is None."""
    if rng is None:
        return random.Random()
    return rng
