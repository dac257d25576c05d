"""Skill drills: rounding, doubling and halving.

Difficulty is a tier that rises every three correct answers and keeps
scaling past the last designed tier.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional

from numdrill.engine.generator import new_question_id
from numdrill.engine.numeric import round_half_up

CORRECT_PER_TIER = 3


@dataclass(frozen=True)
class RoundingTarget:
    label: str
    unit: float
    decimal_places: int = 0
    min_tier: int = 0


ROUNDING_TARGETS = (
    RoundingTarget("10", 10),
    RoundingTarget("100", 100, min_tier=2),
    RoundingTarget("1 decimal place", 0.1, decimal_places=1, min_tier=4),
    RoundingTarget("1000", 1000, min_tier=6),
    RoundingTarget("2 decimal places", 0.01, decimal_places=2, min_tier=8),
    RoundingTarget("10000", 10000, min_tier=10),
)


@dataclass(frozen=True)
class DrillQuestion:
    id: str
    kind: str
    number: float
    answer: float
    text: str
    round_to: Optional[str] = None


def drill_tier(correct_count: int) -> int:
    return max(0, correct_count) // CORRECT_PER_TIER


def _fmt(value: float) -> str:
    return f"{value:g}" if value != int(value) else str(int(value))


def generate_rounding_question(tier: int, rng: Optional[random.Random] = None) -> DrillQuestion:
    rng = rng or random.Random()
    target = rng.choice([t for t in ROUNDING_TARGETS if tier >= t.min_tier])

    if target.decimal_places == 0:
        magnitude = 1 + tier * 0.5
        high = min(target.unit * 20 * magnitude, 1_000_000)
        number = float(int(rng.random() * (high - target.unit) + target.unit))
        if tier >= 4 and rng.random() < 0.4:
            number += round_half_up(rng.random() * 99) / 100
        answer = round_half_up(number / target.unit) * target.unit
        display = f"{number:.2f}" if number != int(number) else str(int(number))
    else:
        places = target.decimal_places
        extra = places + 1 + rng.randrange(2)
        whole = rng.randrange(int(min(50 + tier * 30, 5000)))
        number = round(whole + round_half_up(rng.random() * 10 ** extra) / 10 ** extra, extra)
        answer = round(round_half_up(number * 10 ** places) / 10 ** places, places)
        display = f"{number:.{max(2, extra)}f}"

    return DrillQuestion(
        id=new_question_id(rng),
        kind="rounding",
        number=float(display),
        answer=answer,
        text=f"Round {display} to the nearest {target.label}",
        round_to=target.label,
    )


def generate_doubling_question(tier: int, rng: Optional[random.Random] = None) -> DrillQuestion:
    rng = rng or random.Random()
    if tier <= 1:
        number = rng.randint(2, 49)
    elif tier <= 3:
        number = rng.randint(20, 149) + (0.5 if rng.random() < 0.3 else 0)
    elif tier <= 5:
        base = rng.randint(50, 299)
        number = base + rng.choice((0.5, 0.25)) if rng.random() < 0.4 else base
    elif tier <= 7:
        base = rng.randint(100, 499)
        if rng.random() < 0.4:
            number = base + rng.choice((0.5, 0.75))
        else:
            # avoid friendly multiples of ten
            number = base + (3 if base % 10 == 0 else 0)
    else:
        base_max = int(500 * (1 + (tier - 8) * 0.3))
        base = rng.randrange(base_max) + 200
        number = base + rng.choice((0.25, 0.5, 0.75, 0.125, 0.375)) if rng.random() < 0.5 else base

    return DrillQuestion(
        id=new_question_id(rng),
        kind="doubling",
        number=number,
        answer=number * 2,
        text=f"Double {_fmt(number)}",
    )


def _odd(rng: random.Random, low: int, high: int) -> int:
    value = rng.randint(low, high)
    return value + 1 if value % 2 == 0 else value


def generate_halving_question(tier: int, rng: Optional[random.Random] = None) -> DrillQuestion:
    rng = rng or random.Random()
    if tier <= 1:
        number = rng.randint(5, 49) * 2
    elif tier <= 3:
        number = _odd(rng, 11, 100) if rng.random() < 0.4 else rng.randint(10, 84) * 2
    elif tier <= 5:
        number = _odd(rng, 5, 199) if rng.random() < 0.5 else rng.randint(25, 174) * 2
    elif tier <= 7:
        if rng.random() < 0.3:
            number = rng.randint(50, 249) + 0.5
        elif rng.random() < 0.5:
            number = _odd(rng, 5, 299)
        else:
            number = rng.randint(50, 249) * 2
    else:
        base_max = int(500 * (1 + (tier - 8) * 0.25))
        roll = rng.random()
        if roll < 0.25:
            number = rng.randrange(base_max) + 100 + rng.choice((0.5, 1.5, 2.5, 0.25, 0.75))
        elif roll < 0.5:
            number = _odd(rng, 101, base_max + 100)
        else:
            number = (rng.randrange(base_max // 2) + 100) * 2

    return DrillQuestion(
        id=new_question_id(rng),
        kind="halving",
        number=number,
        answer=number / 2,
        text=f"Half of {_fmt(number)}",
    )


DRILL_GENERATORS = {
    "rounding": generate_rounding_question,
    "doubling": generate_doubling_question,
    "halving": generate_halving_question,
}


def generate_drill_question(kind: str, correct_count: int, rng: Optional[random.Random] = None) -> DrillQuestion:
    try:
        generator = DRILL_GENERATORS[kind]
    except KeyError:
        raise ValueError(f"Unknown drill: {kind!r} (expected one of {sorted(DRILL_GENERATORS)})") from None
    return generator(drill_tier(correct_count), rng)
