"""Adaptive difficulty: performance score, skill rating and anti-whiplash step.

ProgressionState is a plain value owned by the caller. Every transition
here returns a new state instead of mutating a shared one.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Optional

from numdrill.config.settings import AdaptiveConfig
from numdrill.engine.difficulty import band_from_level
from numdrill.engine.leveling import LevelUpResult
from numdrill.engine.numeric import clamp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnswerRecord:
    correct: bool
    time_ms: float
    template_id: str
    difficulty_points: int
    performance_score: float


@dataclass(frozen=True)
class ProgressionState:
    level: int = 1
    skill_rating: float = 50.0
    difficulty_step: int = 0
    good_streak: int = 0
    poor_streak: int = 0
    xp_into_level: int = 0
    history: tuple[AnswerRecord, ...] = field(default_factory=tuple)

    @classmethod
    def initial(cls, config: Optional[AdaptiveConfig] = None, level: int = 1) -> "ProgressionState":
        """Fresh state for a new learner, rated at the configured starting skill."""
        config = config or AdaptiveConfig()
        return cls(level=max(1, level), skill_rating=config.initial_skill_rating)

    @property
    def band(self) -> int:
        return band_from_level(self.level)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["band"] = self.band
        data["history"] = [asdict(record) for record in self.history]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProgressionState":
        """Rebuild a state persisted with :meth:`to_dict`.

        Raises ValueError when required fields are missing or out of range.
        """
        try:
            level = int(data["level"])
            skill_rating = float(data.get("skill_rating", AdaptiveConfig().initial_skill_rating))
            step = int(data.get("difficulty_step", 0))
            history = tuple(
                AnswerRecord(
                    correct=bool(item["correct"]),
                    time_ms=float(item["time_ms"]),
                    template_id=str(item.get("template_id", "")),
                    difficulty_points=int(item.get("difficulty_points", 0)),
                    performance_score=float(item.get("performance_score", 0.0)),
                )
                for item in data.get("history", [])
            )
            state = cls(
                level=level,
                skill_rating=skill_rating,
                difficulty_step=step,
                good_streak=int(data.get("good_streak", 0)),
                poor_streak=int(data.get("poor_streak", 0)),
                xp_into_level=int(data.get("xp_into_level", 0)),
                history=history,
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed progression state: {e}") from e

        if state.level < 1:
            raise ValueError(f"level must be >= 1, got {state.level}")
        if not 0 <= state.skill_rating <= 100:
            raise ValueError(f"skill_rating must be within 0-100, got {state.skill_rating}")
        if state.difficulty_step < 0:
            raise ValueError(f"difficulty_step must be >= 0, got {state.difficulty_step}")
        if state.xp_into_level < 0:
            raise ValueError(f"xp_into_level must be >= 0, got {state.xp_into_level}")
        return state


def compute_performance_score(correct: bool, time_ms: float, target_time_ms: float) -> float:
    """Per-answer score: 0 when wrong, 0.65-1.0 when right depending on speed."""
    accuracy = 1.0 if correct else 0.0
    speed_score = clamp(1.2 - time_ms / max(target_time_ms, 1), 0.0, 1.0)
    return accuracy * (0.65 + 0.35 * speed_score)


def update_skill_rating(
    skill_rating: float,
    performance_score: float,
    difficulty_tier: int,
    config: Optional[AdaptiveConfig] = None,
) -> float:
    config = config or AdaptiveConfig()
    k = config.base_k + difficulty_tier
    return clamp(skill_rating + k * (performance_score - config.expected_performance), 0.0, 100.0)


def classify_answer(
    correct: bool, time_ms: float, target_time_ms: float, config: Optional[AdaptiveConfig] = None
) -> str:
    """Return ``"good"``, ``"poor"`` or ``"neutral"``."""
    config = config or AdaptiveConfig()
    if correct and time_ms <= config.good_time_factor * target_time_ms:
        return "good"
    if not correct or time_ms >= config.poor_time_factor * target_time_ms:
        return "poor"
    return "neutral"


def update_anti_whiplash(
    state: ProgressionState,
    correct: bool,
    time_ms: float,
    target_time_ms: float,
    config: Optional[AdaptiveConfig] = None,
) -> ProgressionState:
    """Move the difficulty step only on consecutive runs of good or poor answers."""
    config = config or AdaptiveConfig()
    kind = classify_answer(correct, time_ms, target_time_ms, config)
    step = state.difficulty_step

    if kind == "good":
        good, poor = state.good_streak + 1, 0
        if good >= config.good_streak_to_step_up:
            step = min(step + 1, config.max_difficulty_step)
            good = 0
    elif kind == "poor":
        good, poor = 0, state.poor_streak + 1
        if poor >= config.poor_streak_to_step_down:
            step = max(step - 1, 0)
            poor = 0
    else:
        good, poor = 0, 0

    if step != state.difficulty_step:
        logger.debug("difficulty step %d -> %d", state.difficulty_step, step)
    return replace(state, good_streak=good, poor_streak=poor, difficulty_step=step)


def record_answer(
    state: ProgressionState,
    correct: bool,
    time_ms: float,
    target_time_ms: Optional[float] = None,
    difficulty_points: int = 0,
    template_id: str = "",
    config: Optional[AdaptiveConfig] = None,
) -> tuple[ProgressionState, float]:
    """Apply one answer: score it, update SR and the step, log it in history.

    Returns the new state and the performance score.
    """
    config = config or AdaptiveConfig()
    target = target_time_ms or config.target_time_ms
    ps = compute_performance_score(correct, time_ms, target)
    rating = update_skill_rating(state.skill_rating, ps, state.band, config)

    next_state = update_anti_whiplash(state, correct, time_ms, target, config)
    record = AnswerRecord(
        correct=correct,
        time_ms=time_ms,
        template_id=template_id,
        difficulty_points=difficulty_points,
        performance_score=ps,
    )
    history = (state.history + (record,))[-config.history_window:]
    return replace(next_state, skill_rating=rating, history=history), ps


def apply_level_result(state: ProgressionState, result: LevelUpResult) -> ProgressionState:
    """Carry a session's level progression into the state."""
    if result.level_up_count:
        logger.info("level up: %d -> %d", result.level_before, result.level_after)
    return replace(state, level=result.level_after, xp_into_level=result.xp_into_level_after)

