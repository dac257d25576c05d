"""XP engine.

Two session pipelines exist:

* the bonus pipeline (canonical): XP earned live per answer plus a flat
  excellence/elite bonus, with no multiplication of the live XP;
* the multiplier pipeline (legacy): fluency-derived base XP chained
  through mode, excellence and elite multipliers.

Both gate excellence and elite on session validity.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from numdrill.config.settings import XPConfig
from numdrill.engine.fluency import FluencyMetrics
from numdrill.engine.numeric import clamp, round_half_up

logger = logging.getLogger(__name__)


class SessionType(str, Enum):
    DAILY = "daily"
    QUICK_FIRE = "quick_fire"
    PRACTICE = "practice"
    SKILL_DRILL = "skill_drill"
    UNLIMITED = "unlimited"
    ASSESSMENT = "assessment"


@dataclass(frozen=True)
class SessionXPResult:
    base_xp: int
    is_valid: bool
    mode_multiplier: float
    xp_after_mode: int
    excellence_applied: bool
    excellence_multiplier: float
    elite_applied: bool
    elite_multiplier: float
    final_xp: int


@dataclass(frozen=True)
class BonusXPResult:
    bonus_xp: int
    excellence_bonus: int
    elite_bonus: int
    excellence_achieved: bool
    elite_achieved: bool


@dataclass(frozen=True)
class CombinedXPResult:
    in_game_xp: int
    bonus_xp: int
    final_session_xp: int
    excellence_bonus: int
    elite_bonus: int
    is_valid: bool
    excellence_achieved: bool
    elite_achieved: bool


def _session_value(session_type: SessionType | str) -> str:
    return session_type.value if isinstance(session_type, SessionType) else str(session_type)


def is_valid_session(total: int, duration_seconds: float, config: Optional[XPConfig] = None) -> bool:
    config = config or XPConfig()
    return total >= config.min_questions and duration_seconds >= config.min_duration_sec


def meets_excellence(fluency: FluencyMetrics, config: Optional[XPConfig] = None) -> bool:
    t = (config or XPConfig()).excellence
    return (
        fluency.accuracy >= t.accuracy
        and fluency.speed_score >= t.speed_score
        and fluency.consistency_score >= t.consistency
        and fluency.throughput_score >= t.throughput
    )


def meets_elite(
    fluency: FluencyMetrics, total: int, duration_seconds: float, config: Optional[XPConfig] = None
) -> bool:
    t = (config or XPConfig()).elite
    return (
        fluency.accuracy >= t.accuracy
        and fluency.speed_score >= t.speed_score
        and fluency.consistency_score >= t.consistency
        and fluency.throughput_score >= t.throughput
        and total >= t.min_questions
        and duration_seconds >= t.min_duration_sec
    )


def compute_base_session_xp(
    total: int,
    fluency_score: float,
    duration_seconds: float,
    config: Optional[XPConfig] = None,
) -> tuple[int, bool]:
    """Base XP before any multiplier, and whether the session counts as valid.

    Invalid sessions keep the flat base but only a fraction of the
    performance and effort components.
    """
    config = config or XPConfig()
    valid = is_valid_session(total, duration_seconds, config)
    effort = clamp(total / config.effort_target_questions, 0.0, 1.0)

    performance_xp = round_half_up(config.max_performance_xp * fluency_score / 100)
    effort_xp = round_half_up(config.max_effort_xp * effort)
    if valid:
        return config.base_xp + performance_xp + effort_xp, True

    fraction = config.invalid_session_fraction
    reduced = round_half_up(fraction * effort_xp) + round_half_up(fraction * performance_xp)
    return config.base_xp + reduced, False


def compute_session_xp_with_multipliers(
    base_xp: int,
    is_valid: bool,
    session_type: SessionType | str,
    fluency: FluencyMetrics,
    total: int,
    duration_seconds: float,
    config: Optional[XPConfig] = None,
) -> SessionXPResult:
    config = config or XPConfig()
    mode = config.mode_multiplier(_session_value(session_type))
    xp = round_half_up(base_xp * mode)
    xp_after_mode = xp

    excellence = is_valid and meets_excellence(fluency, config)
    excellence_mult = 1.0
    if excellence:
        if fluency.accuracy >= config.excellence_high_accuracy:
            excellence_mult = config.excellence_high_accuracy_multiplier
        else:
            excellence_mult = config.excellence_multiplier
        xp = round_half_up(xp * excellence_mult)

    elite = is_valid and meets_elite(fluency, total, duration_seconds, config)
    elite_mult = 1.0
    if elite:
        elite_mult = config.elite_multiplier
        xp = round_half_up(xp * elite_mult)

    return SessionXPResult(
        base_xp=base_xp,
        is_valid=is_valid,
        mode_multiplier=mode,
        xp_after_mode=xp_after_mode,
        excellence_applied=excellence,
        excellence_multiplier=excellence_mult,
        elite_applied=elite,
        elite_multiplier=elite_mult,
        final_xp=xp,
    )


def calculate_full_session_xp(
    total: int,
    fluency: FluencyMetrics,
    duration_seconds: float,
    session_type: SessionType | str = SessionType.DAILY,
    config: Optional[XPConfig] = None,
) -> SessionXPResult:
    """Legacy multiplier pipeline end to end."""
    base_xp, valid = compute_base_session_xp(total, fluency.fluency_score, duration_seconds, config)
    return compute_session_xp_with_multipliers(
        base_xp, valid, session_type, fluency, total, duration_seconds, config
    )


def compute_bonus_xp(
    fluency: FluencyMetrics,
    total: int,
    duration_seconds: float,
    config: Optional[XPConfig] = None,
) -> BonusXPResult:
    config = config or XPConfig()
    if not is_valid_session(total, duration_seconds, config):
        return BonusXPResult(
            bonus_xp=0, excellence_bonus=0, elite_bonus=0, excellence_achieved=False, elite_achieved=False
        )

    excellence = meets_excellence(fluency, config)
    elite = meets_elite(fluency, total, duration_seconds, config)
    excellence_bonus = elite_bonus = 0
    if excellence:
        if fluency.accuracy >= config.excellence_high_accuracy:
            excellence_bonus = config.excellence_high_accuracy_bonus_xp
        else:
            excellence_bonus = config.excellence_bonus_xp
    if elite:
        elite_bonus = config.elite_bonus_xp
    return BonusXPResult(
        bonus_xp=excellence_bonus + elite_bonus,
        excellence_bonus=excellence_bonus,
        elite_bonus=elite_bonus,
        excellence_achieved=excellence,
        elite_achieved=elite,
    )


def check_xp_invariant(result: CombinedXPResult) -> bool:
    """Log (never raise) when the final XP is not in-game XP plus bonus."""
    expected = result.in_game_xp + result.bonus_xp
    if result.final_session_xp != expected:
        logger.warning(
            "XP invariant violated: final %d != in-game %d + bonus %d",
            result.final_session_xp, result.in_game_xp, result.bonus_xp,
        )
        return False
    return True


def calculate_combined_session_xp(
    in_game_xp: int,
    fluency: FluencyMetrics,
    total: int,
    duration_seconds: float,
    session_type: SessionType | str = SessionType.DAILY,
    config: Optional[XPConfig] = None,
) -> CombinedXPResult:
    """Canonical bonus pipeline: live XP plus flat bonuses."""
    config = config or XPConfig()
    valid = is_valid_session(total, duration_seconds, config)
    if config.mode_multiplier(_session_value(session_type)) == 0:
        return CombinedXPResult(
            in_game_xp=0, bonus_xp=0, final_session_xp=0, excellence_bonus=0, elite_bonus=0,
            is_valid=valid, excellence_achieved=False, elite_achieved=False,
        )

    bonus = compute_bonus_xp(fluency, total, duration_seconds, config)
    result = CombinedXPResult(
        in_game_xp=in_game_xp,
        bonus_xp=bonus.bonus_xp,
        final_session_xp=in_game_xp + bonus.bonus_xp,
        excellence_bonus=bonus.excellence_bonus,
        elite_bonus=bonus.elite_bonus,
        is_valid=valid,
        excellence_achieved=bonus.excellence_achieved,
        elite_achieved=bonus.elite_achieved,
    )
    check_xp_invariant(result)
    return result


def answer_xp(
    correct: bool,
    time_ms: float,
    streak: int = 0,
    tier: str = "core",
    session_type: SessionType | str = SessionType.DAILY,
    config: Optional[XPConfig] = None,
) -> int:
    """XP for one answer during play; ``streak`` counts prior consecutive correct answers."""
    if not correct:
        return 0
    config = config or XPConfig()
    cfg = config.answer
    base = cfg.base
    if time_ms < cfg.fast_bonus_ms:
        base += cfg.speed_bonus
    if time_ms < cfg.very_fast_bonus_ms:
        base += cfg.speed_bonus
    streak_mult = min(1 + cfg.streak_step * max(streak, 0), cfg.streak_cap)
    tier_mult = cfg.tier_multipliers.get(tier, 1.0)
    mode = config.mode_multiplier(_session_value(session_type))
    return round_half_up(base * streak_mult * tier_mult * mode)
