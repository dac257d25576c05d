"""Session fluency: accuracy, speed, consistency and throughput in one score."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from numdrill.config.settings import FluencyConfig
from numdrill.engine.numeric import clamp, median, median_absolute_deviation


@dataclass(frozen=True)
class FluencyMetrics:
    accuracy: float
    speed_score: float
    consistency_score: float
    throughput_score: float
    fluency_score: float
    median_ms: float
    variability_ms: float
    questions_per_second: float


def compute_fluency(
    total: int,
    correct: int,
    response_times_ms: Sequence[float],
    duration_seconds: float,
    config: Optional[FluencyConfig] = None,
) -> FluencyMetrics:
    config = config or FluencyConfig()
    duration = max(duration_seconds, 1)
    accuracy = correct / max(total, 1)

    median_ms = median(response_times_ms, empty=config.empty_median_ms)
    speed_score = clamp(config.target_time_ms / median_ms, 0.0, 1.0)

    variability = median_absolute_deviation(response_times_ms)
    consistency = clamp(1 - variability / config.reference_variability_ms, 0.0, 1.0)

    qps = total / duration
    throughput = clamp(qps / config.target_qps, 0.0, 1.0)

    weights = config.weights
    score = 100 * (
        weights.accuracy * accuracy
        + weights.speed * speed_score
        + weights.consistency * consistency
        + weights.throughput * throughput
    )
    # lucky-fast but inaccurate sessions stay low
    if accuracy < config.accuracy_floor:
        score = min(score, config.cap_below_accuracy_floor)

    return FluencyMetrics(
        accuracy=accuracy,
        speed_score=speed_score,
        consistency_score=consistency,
        throughput_score=throughput,
        fluency_score=score,
        median_ms=median_ms,
        variability_ms=variability,
        questions_per_second=qps,
    )


_LABELS = ((25, "Building"), (50, "Improving"), (75, "Strong"), (90, "Fluent"))


def fluency_label(score: float) -> str:
    for upper, label in _LABELS:
        if score <= upper:
            return label
    return "Elite"
