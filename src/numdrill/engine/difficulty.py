"""Difficulty mapper: player level -> arithmetic question parameters.

Pure and cheap; called once per generated question.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Operation(str, Enum):
    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    DIV = "div"
    PERCENT = "percent"
    MULTI = "multi"

    @property
    def symbol(self) -> str:
        return _SYMBOLS[self]


_SYMBOLS = {
    Operation.ADD: "+",
    Operation.SUB: "-",
    Operation.MUL: "×",
    Operation.DIV: "÷",
    Operation.PERCENT: "%",
    Operation.MULTI: "()",
}

BASIC_OPERATIONS = (Operation.ADD, Operation.SUB, Operation.MUL, Operation.DIV)

MUL_UNLOCK_LEVEL = 13
DIV_UNLOCK_LEVEL = 21
OPERAND_CEILING = 12

# (highest level, (add, sub, mul, div)); the last row covers everything above
_WEIGHT_BREAKPOINTS: list[tuple[float, tuple[float, float, float, float]]] = [
    (5, (0.80, 0.20, 0.0, 0.0)),
    (12, (0.55, 0.45, 0.0, 0.0)),
    (20, (0.40, 0.35, 0.25, 0.0)),
    (30, (0.30, 0.30, 0.25, 0.15)),
    (float("inf"), (0.25, 0.25, 0.30, 0.20)),
]


def band_from_level(level: int) -> int:
    """Band 0 = levels 1-10, band 1 = levels 11-20, ..."""
    return (max(1, level) - 1) // 10


def get_operation_weights(level: int) -> dict[Operation, float]:
    for upper, weights in _WEIGHT_BREAKPOINTS:
        if level <= upper:
            return dict(zip(BASIC_OPERATIONS, weights))
    raise AssertionError("unreachable: last breakpoint is unbounded")


@dataclass(frozen=True)
class DifficultyParams:
    level: int
    band: int
    weights: dict[Operation, float] = field(default_factory=dict)
    min_add_sub: int = 2
    max_add_sub: int = 14
    allow_mul: bool = False
    min_mul: int = 2
    max_mul_a: int = 0
    max_mul_b: int = 0
    allow_div: bool = False
    min_div: int = 2
    max_div_divisor: int = 0
    max_div_quotient: int = 0


def get_difficulty_params(level: int) -> DifficultyParams:
    level = max(1, int(level))
    band = band_from_level(level)

    allow_mul = level >= MUL_UNLOCK_LEVEL
    allow_div = level >= DIV_UNLOCK_LEVEL

    max_mul_a = max_mul_b = 0
    if allow_mul:
        since = level - MUL_UNLOCK_LEVEL
        max_mul_a = min(OPERAND_CEILING, 5 + since // 2)
        max_mul_b = min(OPERAND_CEILING, 5 + since // 4)

    max_div_divisor = max_div_quotient = 0
    if allow_div:
        since = level - DIV_UNLOCK_LEVEL
        max_div_divisor = min(OPERAND_CEILING, 5 + since // 2)
        max_div_quotient = min(OPERAND_CEILING, 6 + since // 2)

    return DifficultyParams(
        level=level,
        band=band,
        weights=get_operation_weights(level),
        min_add_sub=2 + 5 * band,
        max_add_sub=10 + 4 * level,
        allow_mul=allow_mul,
        max_mul_a=max_mul_a,
        max_mul_b=max_mul_b,
        allow_div=allow_div,
        max_div_divisor=max_div_divisor,
        max_div_quotient=max_div_quotient,
    )
