"""Shared numeric helpers: clamping, rounding and robust statistics."""

from __future__ import annotations

import math
from typing import Sequence


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def round_half_up(value: float) -> int:
    """Round to the nearest integer, ties toward +infinity.

    Python's ``round`` uses banker's rounding (``round(2.5) == 2``); all XP,
    target-time and median rounding in the engine uses half-up so that
    ``x.5`` always rounds the same way regardless of parity.
    """
    return int(math.floor(value + 0.5))


def median(values: Sequence[float], empty: float = 0) -> float:
    """Median of ``values``; ``empty`` when there are no samples."""
    if not values:
        return empty
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


def median_absolute_deviation(values: Sequence[float]) -> float:
    if not values:
        return 0
    center = median(values)
    return median([abs(v - center) for v in values])
