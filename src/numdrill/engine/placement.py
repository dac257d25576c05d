"""First-run placement from a timed assessment.

The competence group is driven by throughput (correct per minute), capped
by accuracy and nudged one group by median response time. Every
intermediate value is kept in :class:`PlacementDebug`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from numdrill.config.settings import PlacementConfig
from numdrill.engine.numeric import round_half_up

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssessmentMetrics:
    total_answers: int
    correct_answers: int
    response_times_ms: Sequence[float]
    duration_seconds: float


@dataclass(frozen=True)
class PlacementDebug:
    n: int
    c: int
    a: float
    cpm: float
    median_ms: float
    g0: int
    g_cap: int
    g1: int
    g2: int
    g: int
    l_start: int
    is_valid_placement: bool


@dataclass(frozen=True)
class PlacementResult:
    competence_group: int
    starting_level: int
    debug: PlacementDebug


def placement_median(samples: Sequence[float], empty: Optional[float] = None) -> float:
    """Median response time; only an even-length midpoint is rounded (half-up)."""
    if not samples:
        return PlacementConfig().empty_median_ms if empty is None else empty
    ordered = sorted(samples)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return round_half_up((ordered[mid - 1] + ordered[mid]) / 2)


def base_group(cpm: float, bands: Sequence[float]) -> int:
    """Group 1 below the first threshold, one group per threshold reached."""
    group = 1
    for threshold in bands:
        if cpm >= threshold:
            group += 1
    return group


def accuracy_cap(accuracy: float, config: PlacementConfig) -> int:
    for bound, cap in config.accuracy_caps:
        if accuracy < bound:
            return cap
    return config.default_cap


def group_to_level(group: int, config: Optional[PlacementConfig] = None) -> int:
    config = config or PlacementConfig()
    level = config.group_to_level.get(group, 1)
    return min(level, config.max_start_level)


def compute_starting_placement(
    metrics: AssessmentMetrics, config: Optional[PlacementConfig] = None
) -> PlacementResult:
    config = config or PlacementConfig()
    n = metrics.total_answers
    c = metrics.correct_answers
    a = c / n if n > 0 else 0.0
    cpm = c / (metrics.duration_seconds / 60) if metrics.duration_seconds > 0 else 0.0
    median_ms = placement_median(metrics.response_times_ms, config.empty_median_ms)

    if n < config.min_answers:
        logger.info("placement invalid: %d answers (< %d)", n, config.min_answers)
        debug = PlacementDebug(
            n=n, c=c, a=a, cpm=cpm, median_ms=median_ms,
            g0=1, g_cap=1, g1=1, g2=1, g=1, l_start=1,
            is_valid_placement=False,
        )
        return PlacementResult(competence_group=1, starting_level=1, debug=debug)

    g0 = base_group(cpm, config.cpm_bands)
    g_cap = accuracy_cap(a, config)
    g1 = min(g0, g_cap)

    nudge = config.speed_nudge
    g2 = g1
    if median_ms <= nudge.fast_threshold_ms and a >= nudge.fast_accuracy_min:
        g2 = min(g2 + 1, 10)
    if median_ms >= nudge.slow_threshold_ms:
        g2 = max(g2 - 1, 1)

    g = max(1, min(10, g2))
    level = group_to_level(g, config)
    logger.info("placement: cpm=%.2f acc=%.2f median=%gms -> group %d, level %d", cpm, a, median_ms, g, level)

    debug = PlacementDebug(
        n=n, c=c, a=a, cpm=cpm, median_ms=median_ms,
        g0=g0, g_cap=g_cap, g1=g1, g2=g2, g=g, l_start=level,
        is_valid_placement=True,
    )
    return PlacementResult(competence_group=g, starting_level=level, debug=debug)


_MESSAGES = (
    (2, "We've identified a good starting point for you. Consistent practice "
        "will build your confidence and speed. Let's begin."),
    (4, "Your foundations are solid. With focused practice, you'll develop "
        "reliable fluency. Ready when you are."),
    (6, "You've demonstrated capable arithmetic skills. We'll help you refine "
        "your speed and consistency."),
    (8, "Strong performance. You're ready for challenging problems that will "
        "push your limits."),
)


def placement_message(group: int) -> str:
    for upper, message in _MESSAGES:
        if group <= upper:
            return message
    return ("Excellent results. You'll start at an advanced level with complex "
            "problems suited to your abilities.")
