"""Difficulty profiles for the curriculum layer.

A profile is selected from an ordered table of level ranges. Each entry's
builder is a set of linear formulas in the level, so the last entry keeps
extrapolating for levels beyond the designed ceiling of 100.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable, Optional

from numdrill.engine.difficulty import Operation


@dataclass(frozen=True)
class AddSubRange:
    min: float
    max: float
    allow_negatives: bool = False
    require_carry_borrow: bool = False
    decimals: int = 0


@dataclass(frozen=True)
class MulRange:
    enabled: bool = False
    a_min: int = 0
    a_max: int = 0
    b_min: int = 0
    b_max: int = 0


@dataclass(frozen=True)
class DivRange:
    enabled: bool = False
    dividend_min: int = 0
    dividend_max: int = 0
    divisor_min: int = 0
    divisor_max: int = 0
    allow_remainder: bool = False


@dataclass(frozen=True)
class PercentRange:
    enabled: bool = False
    base_min: int = 0
    base_max: int = 0
    values: tuple[float, ...] = ()
    allow_change: bool = False


@dataclass(frozen=True)
class FractionSettings:
    enabled: bool = False
    denominators: tuple[int, ...] = ()
    add_sub_only: bool = True


@dataclass(frozen=True)
class MultiStepSettings:
    enabled: bool = False
    max_steps: int = 1
    probability: float = 0.0


@dataclass(frozen=True)
class DifficultyProfile:
    level: int
    band: int
    weights: dict[Operation, float]
    add_sub: AddSubRange
    mul: MulRange = field(default_factory=MulRange)
    div: DivRange = field(default_factory=DivRange)
    percent: PercentRange = field(default_factory=PercentRange)
    fractions: FractionSettings = field(default_factory=FractionSettings)
    multi_step: MultiStepSettings = field(default_factory=MultiStepSettings)
    min_complexity: float = 0
    description: str = ""


def _weights(add: float, sub: float, mul: float, div: float, percent: float = 0.0) -> dict[Operation, float]:
    return {
        Operation.ADD: add,
        Operation.SUB: sub,
        Operation.MUL: mul,
        Operation.DIV: div,
        Operation.PERCENT: percent,
    }


def _foundation(level: int) -> DifficultyProfile:
    t = (level - 1) / 4
    low, high = 2 + level, 10 + level * 3
    return DifficultyProfile(
        level=level,
        band=0,
        weights=_weights(0.75 - t * 0.05, 0.25 + t * 0.05, 0, 0),
        add_sub=AddSubRange(min=low, max=high),
        min_complexity=2 + level // 2,
        description=f"L{level}: Foundation - simple add/sub {low}-{high}",
    )


def _carry_borrow(level: int) -> DifficultyProfile:
    t = (level - 6) / 4
    mul_weight = 0.10 + (level - 9) * 0.05 if level >= 9 else 0
    low, high = 10 + (level - 6) * 5, 30 + (level - 6) * 10
    return DifficultyProfile(
        level=level,
        band=0,
        weights=_weights(0.55 - mul_weight / 2, 0.45 - mul_weight / 2, mul_weight, 0),
        add_sub=AddSubRange(min=low, max=high, require_carry_borrow=level >= 7),
        mul=MulRange(enabled=level >= 9, a_min=2, a_max=9, b_min=2, b_max=9),
        min_complexity=4 + math.floor(t * 2),
        description=f"L{level}: Carry/Borrow - add/sub {low}-{high}" + (", tables begin" if level >= 9 else ""),
    )


def _intermediate(level: int) -> DifficultyProfile:
    t = (level - 11) / 9
    mul_weight = 0.15 + t * 0.15
    div_weight = 0.05 + (level - 15) * 0.02 if level >= 15 else 0
    a_max, b_max = 12 + (level - 11) * 2, 9 + (level - 11) // 2
    return DifficultyProfile(
        level=level,
        band=1,
        weights=_weights(0.40 - div_weight / 2, 0.35 - div_weight / 2, mul_weight, div_weight),
        add_sub=AddSubRange(min=25 + (level - 11) * 6, max=80 + (level - 11) * 10, require_carry_borrow=True),
        mul=MulRange(enabled=True, a_min=6, a_max=a_max, b_min=2, b_max=b_max),
        div=DivRange(
            enabled=level >= 15,
            dividend_min=10,
            dividend_max=50 + (level - 15) * 10,
            divisor_min=2,
            divisor_max=9,
            allow_remainder=level >= 18,
        ),
        min_complexity=5 + math.floor(t * 3),
        description=f"L{level}: Intermediate - 2-digit ops, mul {a_max}x{b_max}",
    )


def _two_digit_mul(level: int) -> DifficultyProfile:
    t = (level - 21) / 9
    return DifficultyProfile(
        level=level,
        band=2,
        weights=_weights(0.25, 0.25, 0.30, 0.20),
        add_sub=AddSubRange(min=50 + (level - 21) * 10, max=150 + (level - 21) * 18, require_carry_borrow=True),
        mul=MulRange(
            enabled=True,
            a_min=11,
            a_max=25 + (level - 21) * 5,
            b_min=3 + (level - 21) // 3,
            b_max=12 + (level - 21),
        ),
        div=DivRange(
            enabled=True,
            dividend_min=50,
            dividend_max=200 + (level - 21) * 30,
            divisor_min=3,
            divisor_max=12 + (level - 21) // 2,
            allow_remainder=True,
        ),
        min_complexity=7 + math.floor(t * 3),
        description=f"L{level}: Two-digit multiplication",
    )


def _advanced(level: int) -> DifficultyProfile:
    t = (level - 31) / 9
    return DifficultyProfile(
        level=level,
        band=3,
        weights=_weights(0.20, 0.20, 0.35, 0.25),
        add_sub=AddSubRange(
            min=80 + (level - 31) * 12,
            max=250 + (level - 31) * 25,
            allow_negatives=level >= 35,
            require_carry_borrow=True,
        ),
        mul=MulRange(enabled=True, a_min=15, a_max=50 + (level - 31) * 5, b_min=11, b_max=25 + (level - 31) * 3),
        div=DivRange(
            enabled=True,
            dividend_min=100,
            dividend_max=500 + (level - 31) * 50,
            divisor_min=5,
            divisor_max=20 + (level - 31),
            allow_remainder=True,
        ),
        min_complexity=9 + math.floor(t * 3),
        description=f"L{level}: Advanced - 2x2 digit mul" + (", negatives" if level >= 35 else ""),
    )


def _hard(level: int) -> DifficultyProfile:
    t = (level - 41) / 9
    percent_weight = 0.05 + (level - 48) * 0.02 if level >= 48 else 0
    return DifficultyProfile(
        level=level,
        band=4,
        weights=_weights(0.15 - percent_weight / 2, 0.15 - percent_weight / 2, 0.35, 0.30, percent_weight),
        add_sub=AddSubRange(
            min=80 + (level - 41) * 15,
            max=300 + (level - 41) * 30,
            allow_negatives=True,
            require_carry_borrow=True,
        ),
        mul=MulRange(enabled=True, a_min=25, a_max=100 + (level - 41) * 10, b_min=11, b_max=50 + (level - 41) * 5),
        div=DivRange(
            enabled=True,
            dividend_min=200,
            dividend_max=2000 + (level - 41) * 200,
            divisor_min=10,
            divisor_max=30 + (level - 41) * 2,
            allow_remainder=True,
        ),
        percent=PercentRange(
            enabled=level >= 48,
            base_min=40,
            base_max=200,
            values=(10, 15, 20, 25, 50),
        ),
        min_complexity=9 + t * 2,
        description=f"L{level}: Hard - 3x1/2x2 digit, 4-digit division" + (", percent" if level >= 48 else ""),
    )


def _very_hard(level: int) -> DifficultyProfile:
    t = (level - 51) / 9
    return DifficultyProfile(
        level=level,
        band=5,
        weights=_weights(0.12, 0.12, 0.35, 0.33, 0.08),
        add_sub=AddSubRange(
            min=100 + (level - 51) * 20,
            max=500 + (level - 51) * 50,
            allow_negatives=True,
            require_carry_borrow=True,
            decimals=1 if level >= 55 else 0,
        ),
        mul=MulRange(enabled=True, a_min=50, a_max=200 + (level - 51) * 20, b_min=15, b_max=70 + (level - 51) * 5),
        div=DivRange(
            enabled=True,
            dividend_min=500,
            dividend_max=5000 + (level - 51) * 500,
            divisor_min=15,
            divisor_max=50 + (level - 51) * 3,
            allow_remainder=True,
        ),
        percent=PercentRange(
            enabled=True,
            base_min=50,
            base_max=500,
            values=(5, 10, 12, 15, 20, 25, 30, 50, 75),
        ),
        min_complexity=11 + t * 2,
        description=f"L{level}: Very Hard - 3x2 digit, 5-digit division" + (", decimals" if level >= 55 else ""),
    )


def _elite_entry(level: int) -> DifficultyProfile:
    t = (level - 61) / 9
    return DifficultyProfile(
        level=level,
        band=6,
        weights=_weights(0.10, 0.10, 0.35, 0.35, 0.10),
        add_sub=AddSubRange(
            min=150 + (level - 61) * 30,
            max=800 + (level - 61) * 80,
            allow_negatives=True,
            require_carry_borrow=True,
            decimals=1,
        ),
        mul=MulRange(enabled=True, a_min=100, a_max=400 + (level - 61) * 30, b_min=20, b_max=90 + (level - 61) * 5),
        div=DivRange(
            enabled=True,
            dividend_min=1000,
            dividend_max=10000 + (level - 61) * 1000,
            divisor_min=20,
            divisor_max=80 + (level - 61) * 5,
            allow_remainder=True,
        ),
        percent=PercentRange(
            enabled=True,
            base_min=80,
            base_max=800,
            values=(5, 8, 10, 12, 15, 18, 20, 25, 30, 40, 50, 75),
        ),
        fractions=FractionSettings(enabled=level >= 68, denominators=(2, 4)),
        min_complexity=13 + t * 2,
        description=f"L{level}: Elite Entry - large operands" + (", fractions" if level >= 68 else ""),
    )


def _elite(level: int) -> DifficultyProfile:
    t = (level - 71) / 9
    return DifficultyProfile(
        level=level,
        band=7,
        weights=_weights(0.08, 0.08, 0.38, 0.36, 0.10),
        add_sub=AddSubRange(
            min=200 + (level - 71) * 40,
            max=1000 + (level - 71) * 100,
            allow_negatives=True,
            require_carry_borrow=True,
            decimals=2 if level >= 75 else 1,
        ),
        mul=MulRange(enabled=True, a_min=150, a_max=600 + (level - 71) * 40, b_min=30, b_max=120 + (level - 71) * 8),
        div=DivRange(
            enabled=True,
            dividend_min=2000,
            dividend_max=20000 + (level - 71) * 2000,
            divisor_min=30,
            divisor_max=120 + (level - 71) * 10,
            allow_remainder=True,
        ),
        percent=PercentRange(
            enabled=True,
            base_min=100,
            base_max=1000,
            values=(3, 5, 7, 8, 10, 12, 15, 17, 20, 25, 30, 33, 40, 50, 60, 75),
            allow_change=level >= 76,
        ),
        fractions=FractionSettings(enabled=True, denominators=(2, 3, 4, 5, 8)),
        min_complexity=15 + t * 2,
        description=f"L{level}: Elite - 2 decimal places" + (", percent change" if level >= 76 else ""),
    )


def _very_elite(level: int) -> DifficultyProfile:
    t = (level - 81) / 9
    probability = 0.15 + (level - 85) * 0.03 if level >= 85 else 0
    return DifficultyProfile(
        level=level,
        band=8,
        weights=_weights(0.06, 0.06, 0.40, 0.38, 0.10),
        add_sub=AddSubRange(
            min=300 + (level - 81) * 50,
            max=1500 + (level - 81) * 150,
            allow_negatives=True,
            require_carry_borrow=True,
            decimals=2,
        ),
        mul=MulRange(enabled=True, a_min=200, a_max=1000 + (level - 81) * 80, b_min=40, b_max=200 + (level - 81) * 15),
        div=DivRange(
            enabled=True,
            dividend_min=5000,
            dividend_max=50000 + (level - 81) * 5000,
            divisor_min=50,
            divisor_max=200 + (level - 81) * 15,
            allow_remainder=True,
        ),
        percent=PercentRange(
            enabled=True,
            base_min=150,
            base_max=2000,
            values=(2, 3, 5, 7, 8, 10, 12, 15, 17, 20, 22, 25, 30, 33, 40, 45, 50, 60, 75, 80),
            allow_change=True,
        ),
        fractions=FractionSettings(enabled=True, denominators=(2, 3, 4, 5, 6, 8, 10), add_sub_only=False),
        multi_step=MultiStepSettings(enabled=level >= 85, max_steps=2, probability=probability),
        min_complexity=17 + t * 2,
        description=f"L{level}: Very Elite - multi-step" + (f" ({round(probability * 100)}%)" if level >= 85 else " soon"),
    )


def _peak(level: int) -> DifficultyProfile:
    t = (level - 91) / 9
    probability = 0.30 + t * 0.20
    return DifficultyProfile(
        level=level,
        band=9,
        weights=_weights(0.05, 0.05, 0.42, 0.38, 0.10),
        add_sub=AddSubRange(
            min=500 + (level - 91) * 80,
            max=2500 + (level - 91) * 250,
            allow_negatives=True,
            require_carry_borrow=True,
            decimals=2,
        ),
        mul=MulRange(enabled=True, a_min=300, a_max=2000 + (level - 91) * 150, b_min=60, b_max=300 + (level - 91) * 20),
        div=DivRange(
            enabled=True,
            dividend_min=10000,
            dividend_max=100000 + (level - 91) * 10000,
            divisor_min=80,
            divisor_max=400 + (level - 91) * 30,
            allow_remainder=True,
        ),
        percent=PercentRange(
            enabled=True,
            base_min=200,
            base_max=5000,
            values=(1, 2, 3, 5, 7, 8, 10, 11, 12, 15, 17, 18, 20, 22, 25, 27, 30, 33, 35, 40, 45, 50, 55, 60, 66, 75, 80, 90),
            allow_change=True,
        ),
        fractions=FractionSettings(enabled=True, denominators=(2, 3, 4, 5, 6, 7, 8, 9, 10, 12), add_sub_only=False),
        multi_step=MultiStepSettings(enabled=True, max_steps=3 if level >= 100 else 2, probability=min(probability, 1.0)),
        min_complexity=19 + t * 2,
        description=f"L{level}: Peak - multi-step {round(min(probability, 1.0) * 100)}%",
    )


# (first level, last level or None for open-ended, builder)
PROFILE_TABLE: list[tuple[int, Optional[int], Callable[[int], DifficultyProfile]]] = [
    (1, 5, _foundation),
    (6, 10, _carry_borrow),
    (11, 20, _intermediate),
    (21, 30, _two_digit_mul),
    (31, 40, _advanced),
    (41, 50, _hard),
    (51, 60, _very_hard),
    (61, 70, _elite_entry),
    (71, 80, _elite),
    (81, 90, _very_elite),
    (91, None, _peak),
]


def get_difficulty_profile(level: int) -> DifficultyProfile:
    level = max(1, int(level))
    for first, last, build in PROFILE_TABLE:
        if level >= first and (last is None or level <= last):
            return build(level)
    raise AssertionError("unreachable: profile table starts at level 1 and is open-ended")


def _digit_count(value: float) -> int:
    value = abs(value)
    if value < 1:
        return 1
    return int(math.floor(math.log10(value))) + 1


def compute_question_complexity(
    op: Operation | str,
    a: float,
    b: float,
    carry_borrow: bool = False,
    decimals: bool = False,
    negatives: bool = False,
    multi_step: bool = False,
    steps: int = 1,
) -> float:
    """Digit-count based complexity score used to gate too-easy candidates."""
    op = Operation(op)
    digits_a, digits_b = _digit_count(a), _digit_count(b)

    score = 0
    if op in (Operation.ADD, Operation.SUB):
        score = digits_a + digits_b + (2 if carry_borrow else 0)
    elif op is Operation.MUL:
        score = digits_a * digits_b + 2
    elif op is Operation.DIV:
        score = digits_a + digits_b * 2 + 3
    elif op is Operation.PERCENT:
        score = 6 + digits_a

    if decimals:
        score += 3
    if negatives:
        score += 2
    if multi_step:
        score += steps * 4
    return score


def has_carry_or_borrow(a: int, b: int, op: Operation | str) -> bool:
    """Whether column addition/subtraction of ``a`` and ``b`` carries or borrows."""
    op = Operation(op)
    a, b = abs(int(a)), abs(int(b))
    if op is Operation.ADD:
        while a or b:
            if a % 10 + b % 10 >= 10:
                return True
            a, b = a // 10, b // 10
        return False
    if op is Operation.SUB:
        larger, smaller = max(a, b), min(a, b)
        while larger:
            if larger % 10 < smaller % 10:
                return True
            larger, smaller = larger // 10, smaller // 10
        return False
    raise ValueError(f"carry/borrow only applies to add/sub, got {op.value}")
