"""Profile-driven question generation for the curriculum layer.

Unlike the level generator, this draws on the full difficulty profile:
negatives, decimals, carry/borrow, division with remainders, percentages
and multi-step expressions, gated by a minimum complexity score.
"""

from __future__ import annotations

import logging
import random
from collections import deque
from dataclasses import dataclass, replace
from typing import Optional, Sequence

from numdrill.config.settings import GeneratorConfig
from numdrill.engine.answers import AnswerFormat
from numdrill.engine.difficulty import Operation
from numdrill.engine.generator import (
    Question,
    difficulty_points,
    new_question_id,
    question_signature,
    recent_signatures,
    select_operation,
    target_time_ms,
)
from numdrill.engine.profiles import (
    DifficultyProfile,
    MultiStepSettings,
    compute_question_complexity,
    get_difficulty_profile,
    has_carry_or_borrow,
)
from numdrill.engine.numeric import round_half_up

logger = logging.getLogger(__name__)

TIER_REVIEW = "review"
TIER_CORE = "core"
TIER_STRETCH = "stretch"

CARRY_BORROW_ATTEMPTS = 10


@dataclass
class Candidate:
    text: str
    answer: float
    a: float
    b: float


def tier_level(level: int, tier: str) -> int:
    """Effective level for a question tier: review eases off, stretch reaches ahead."""
    if tier == TIER_REVIEW:
        return max(1, level - 3)
    if tier == TIER_STRETCH:
        return level + 2
    return level


def select_question_tier(question_index: int, rng: random.Random) -> str:
    """First two questions of a session are review; then 80% core, 15% stretch, 5% review."""
    if question_index < 2:
        return TIER_REVIEW
    roll = rng.random()
    if roll < 0.80:
        return TIER_CORE
    if roll < 0.95:
        return TIER_STRETCH
    return TIER_REVIEW


class OperationScheduler:
    """Keeps one operation from dominating a run of questions.

    After three identical operations in a row that operation is excluded
    from the next draw; after two its weight is cut to 30%.
    """

    MAX_STREAK = 3
    DAMPING = 0.3

    def __init__(self, window: int = 10):
        self.recent: deque[Operation] = deque(maxlen=window)

    def select(self, profile: DifficultyProfile, rng: random.Random) -> Operation:
        weights = dict(profile.weights)
        recent = list(self.recent)

        if len(recent) >= self.MAX_STREAK and len(set(recent[-self.MAX_STREAK:])) == 1:
            weights[recent[-1]] = 0
        if len(recent) >= 2 and recent[-1] == recent[-2]:
            weights[recent[-1]] *= self.DAMPING

        if sum(weights.values()) <= 0:
            op = rng.choice((Operation.ADD, Operation.SUB, Operation.MUL, Operation.DIV))
        else:
            op = select_operation(weights, rng)
        self.recent.append(op)
        return op

    def reset(self) -> None:
        self.recent.clear()


def _uniform(rng: random.Random, low: float, high: float, decimals: int) -> float:
    if decimals > 0:
        return round(low + rng.random() * (high - low), decimals)
    return rng.randint(int(low), int(high))


def _display(value: float) -> str:
    text = f"{value:g}" if isinstance(value, float) else str(value)
    return f"({text})" if value < 0 else text


def _add(profile: DifficultyProfile, rng: random.Random) -> Candidate:
    rng_cfg = profile.add_sub
    for attempt in range(1, CARRY_BORROW_ATTEMPTS + 2):
        a = _uniform(rng, rng_cfg.min, rng_cfg.max, rng_cfg.decimals)
        b = _uniform(rng, rng_cfg.min, rng_cfg.max, rng_cfg.decimals)
        if rng_cfg.allow_negatives and rng.random() < 0.25:
            if rng.random() < 0.5:
                a = -a
            else:
                b = -b
        if not rng_cfg.require_carry_borrow or attempt > CARRY_BORROW_ATTEMPTS:
            break
        if has_carry_or_borrow(int(abs(a)), int(abs(b)), Operation.ADD):
            break
    answer = round(a + b, rng_cfg.decimals) if rng_cfg.decimals else a + b
    return Candidate(f"{_display(a)} + {_display(b)}", answer, a, b)


def _sub(profile: DifficultyProfile, rng: random.Random) -> Candidate:
    rng_cfg = profile.add_sub
    for attempt in range(1, CARRY_BORROW_ATTEMPTS + 2):
        if rng_cfg.decimals > 0:
            a = _uniform(rng, rng_cfg.min, rng_cfg.max, rng_cfg.decimals)
            b = _uniform(rng, rng_cfg.min, min(a * 1.2, rng_cfg.max), rng_cfg.decimals)
        else:
            a = rng.randint(int(rng_cfg.min), int(rng_cfg.max))
            b = rng.randint(int(rng_cfg.min), max(int(rng_cfg.min), int(a * 0.9)))
        if b > a and not rng_cfg.allow_negatives:
            a, b = b, a
        if not rng_cfg.require_carry_borrow or attempt > CARRY_BORROW_ATTEMPTS:
            break
        if has_carry_or_borrow(int(abs(a)), int(abs(b)), Operation.SUB):
            break
    if rng_cfg.allow_negatives and rng.random() < 0.15:
        a = -a
    answer = round(a - b, rng_cfg.decimals) if rng_cfg.decimals else a - b
    return Candidate(f"{_display(a)} - {_display(b)}", answer, a, b)


def _mul(profile: DifficultyProfile, rng: random.Random) -> Candidate:
    if not profile.mul.enabled:
        return _add(profile, rng)
    a = rng.randint(profile.mul.a_min, profile.mul.a_max)
    b = rng.randint(profile.mul.b_min, profile.mul.b_max)
    return Candidate(f"{a} × {b}", a * b, a, b)


def _div(profile: DifficultyProfile, rng: random.Random) -> Candidate:
    div = profile.div
    if not div.enabled:
        return _mul(profile, rng) if profile.mul.enabled else _sub(profile, rng)
    divisor = rng.randint(div.divisor_min, div.divisor_max)
    quotient_low = max(2, div.dividend_min // divisor)
    quotient_high = max(quotient_low, div.dividend_max // divisor)
    quotient = rng.randint(quotient_low, quotient_high)
    if div.allow_remainder and divisor > 1 and rng.random() < 0.3:
        dividend = divisor * quotient + rng.randint(1, divisor - 1)
        return Candidate(f"{dividend} ÷ {divisor}", dividend / divisor, dividend, divisor)
    dividend = divisor * quotient
    return Candidate(f"{dividend} ÷ {divisor}", quotient, dividend, divisor)


def _percent(profile: DifficultyProfile, rng: random.Random) -> Candidate:
    pct_cfg = profile.percent
    if not pct_cfg.enabled or not pct_cfg.values:
        return _mul(profile, rng)
    base = rng.randint(pct_cfg.base_min, pct_cfg.base_max)
    pct = rng.choice(pct_cfg.values)
    if pct_cfg.allow_change and rng.random() < 0.4:
        increase = rng.random() < 0.5
        result = base * (1 + pct / 100) if increase else base * (1 - pct / 100)
        verb = "Increase" if increase else "Decrease"
        return Candidate(f"{verb} {base} by {pct:g}%", round_half_up(result), base, pct)
    return Candidate(f"{pct:g}% of {base}", round_half_up(base * pct / 100), base, pct)


def _multi_step(profile: DifficultyProfile, rng: random.Random) -> Candidate:
    simpler = replace(profile, multi_step=MultiStepSettings())
    first = _mul(simpler, rng) if rng.random() < 0.6 else _add(simpler, rng)
    magnitude = abs(first.answer)
    low = max(5, int(magnitude * 0.1))
    high = max(low, min(500, int(magnitude * 0.5)))
    operand = rng.randint(low, high)
    if rng.random() < 0.5:
        return Candidate(f"({first.text}) + {operand}", first.answer + operand, first.a, first.b)
    return Candidate(f"({first.text}) - {operand}", first.answer - operand, first.a, first.b)


_BUILDERS = {
    Operation.ADD: _add,
    Operation.SUB: _sub,
    Operation.MUL: _mul,
    Operation.DIV: _div,
    Operation.PERCENT: _percent,
}


def _allowed(candidate: Candidate, op: Operation, profile: DifficultyProfile) -> bool:
    """Reject answers the profile does not yet teach."""
    if candidate.answer < 0 and not profile.add_sub.allow_negatives:
        return False
    is_decimal = float(candidate.answer) != int(candidate.answer)
    if is_decimal and profile.add_sub.decimals == 0:
        return op is Operation.DIV and profile.div.allow_remainder
    return True


def _answer_format(candidate: Candidate, op: Operation, profile: DifficultyProfile) -> AnswerFormat:
    allow_negative = profile.add_sub.allow_negatives
    if op is Operation.DIV and float(candidate.answer) != int(candidate.answer):
        return AnswerFormat(dp_required=2 if profile.add_sub.decimals >= 2 else 1, rounding_mode="round",
                            allow_negative=allow_negative)
    if profile.add_sub.decimals and float(candidate.answer) != int(candidate.answer):
        return AnswerFormat(dp_required=profile.add_sub.decimals, rounding_mode="exact",
                            allow_negative=allow_negative)
    return AnswerFormat(allow_negative=allow_negative)


def _complexity(candidate: Candidate, op: Operation, profile: DifficultyProfile) -> float:
    multi = op is Operation.MULTI
    return compute_question_complexity(
        op,
        candidate.a,
        candidate.b,
        carry_borrow=profile.add_sub.require_carry_borrow,
        decimals=profile.add_sub.decimals > 0,
        negatives=candidate.a < 0 or candidate.b < 0,
        multi_step=multi,
        steps=2 if multi else 1,
    )


def generate_profile_question(
    level: int,
    history: Sequence[str] = (),
    tier: str = TIER_CORE,
    rng: Optional[random.Random] = None,
    scheduler: Optional[OperationScheduler] = None,
    config: Optional[GeneratorConfig] = None,
) -> Question:
    """Generate a question from the difficulty profile of ``level`` at ``tier``."""
    rng = rng or random.Random()
    scheduler = scheduler or OperationScheduler()
    config = config or GeneratorConfig()
    effective = tier_level(level, tier)
    profile = get_difficulty_profile(effective)
    seen = recent_signatures(history, config.history_window)

    op = Operation.ADD
    candidate = Candidate("", 0, 0, 0)
    for _ in range(config.max_attempts):
        multi = profile.multi_step
        if multi.enabled and rng.random() < multi.probability:
            op = Operation.MULTI
            candidate = _multi_step(profile, rng)
        else:
            op = scheduler.select(profile, rng)
            candidate = _BUILDERS[op](profile, rng)

        if not _allowed(candidate, op, profile):
            continue
        if question_signature(candidate.text) in seen:
            continue
        if _complexity(candidate, op, profile) >= profile.min_complexity:
            break
    else:
        logger.debug("profile L%d: accepting %r after %d attempts", effective, candidate.text, config.max_attempts)

    return Question(
        id=new_question_id(rng),
        text=candidate.text,
        operation=op,
        operand_a=candidate.a,
        operand_b=candidate.b,
        answer=candidate.answer,
        target_time_ms=target_time_ms(op, effective, config),
        difficulty_points=difficulty_points(op, effective, config),
        level=effective,
        tier=tier,
        complexity=_complexity(candidate, op, profile),
        answer_format=_answer_format(candidate, op, profile),
    )
