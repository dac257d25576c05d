"""Infinite piecewise level curve with multi-level carryover."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from numdrill.config.settings import LevelCurveConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LevelUpResult:
    level_before: int
    xp_into_level_before: int
    level_after: int
    xp_into_level_after: int
    level_up_count: int
    xp_required_for_next: int


def xp_required_to_advance(level: int, config: Optional[LevelCurveConfig] = None) -> int:
    """XP needed to go from ``level`` to ``level + 1``.

    Flat for the first levels, then an increment that itself grows, first
    slowly and from ``stage2_start`` faster.
    """
    config = config or LevelCurveConfig()
    level = max(1, level)
    if level <= config.early_last_level:
        return config.early_requirement

    required = config.level5_requirement
    increment = config.increment_start
    for current in range(config.early_last_level + 2, level + 1):
        required += increment
        increment += config.growth_stage1 if current < config.stage2_start else config.growth_stage2
    return required


def apply_xp_and_level_up(
    level: int,
    xp_into_level: int,
    earned_xp: int,
    config: Optional[LevelCurveConfig] = None,
) -> LevelUpResult:
    level_before = max(1, level)
    current = level_before
    remaining = max(0, xp_into_level) + max(0, earned_xp)
    count = 0

    required = xp_required_to_advance(current, config)
    while remaining >= required:
        remaining -= required
        current += 1
        count += 1
        required = xp_required_to_advance(current, config)

    if count:
        logger.debug("+%d XP: level %d -> %d (%d levels)", earned_xp, level_before, current, count)
    return LevelUpResult(
        level_before=level_before,
        xp_into_level_before=xp_into_level,
        level_after=current,
        xp_into_level_after=remaining,
        level_up_count=count,
        xp_required_for_next=required,
    )
