"""Level-driven arithmetic question generator.

Combines the difficulty mapper, the triviality filter and an anti-repeat
window. Randomness comes from an injectable ``random.Random`` so tests can
seed it.
"""

from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

from numdrill.config.settings import GeneratorConfig
from numdrill.engine.answers import DEFAULT_ANSWER_FORMAT, AnswerFormat
from numdrill.engine.difficulty import (
    DifficultyParams,
    Operation,
    get_difficulty_params,
)
from numdrill.engine.filters import is_trivial
from numdrill.engine.numeric import round_half_up

logger = logging.getLogger(__name__)

_SIGNATURE_RE = re.compile(r"\(?(-?[\d.]+)\)?\s*([+\-×÷%])\s*\(?(-?[\d.]+)\)?")


@dataclass(frozen=True)
class Question:
    id: str
    text: str
    operation: Operation
    operand_a: float
    operand_b: float
    answer: float
    target_time_ms: int
    difficulty_points: int
    level: int
    tier: str = "core"
    complexity: Optional[float] = None
    answer_format: AnswerFormat = field(default=DEFAULT_ANSWER_FORMAT)

    @property
    def signature(self) -> str:
        return question_signature(self.text)


def new_question_id(rng: random.Random) -> str:
    return format(rng.getrandbits(36), "09x")


def question_signature(text: str) -> str:
    """Canonical form of a question for repeat detection.

    Commutative operations sort their operands, so ``3 + 4`` and ``4 + 3``
    share a signature.
    """
    match = _SIGNATURE_RE.fullmatch(text.strip())
    if not match:
        return text
    a, op, b = match.groups()
    if op in ("+", "×"):
        low, high = sorted((float(a), float(b)))
        return f"{op}:{low:g}:{high:g}"
    return f"{op}:{float(a):g}:{float(b):g}"


def recent_signatures(history: Sequence[str], window: int) -> set[str]:
    """Signatures of the ``window`` most recent texts (history is oldest-first)."""
    if window <= 0:
        return set()
    return {question_signature(text) for text in list(history)[-window:] if text}


def select_operation(weights: Mapping[Operation, float], rng: random.Random) -> Operation:
    """Weighted draw: walk the operations accumulating weight until the draw falls inside."""
    total = sum(weights.values())
    draw = rng.random() * total
    cumulative = 0.0
    last = None
    for op, weight in weights.items():
        if weight <= 0:
            continue
        cumulative += weight
        last = op
        if draw < cumulative:
            return op
    return last if last is not None else Operation.ADD


def target_time_ms(op: Operation | str, level: int, config: Optional[GeneratorConfig] = None) -> int:
    config = config or GeneratorConfig()
    base = config.base_target_times_ms.get(Operation(op).value, 3000)
    return round_half_up(base * (1 + (max(1, level) - 1) * config.target_time_level_factor))


def difficulty_points(op: Operation | str, level: int, config: Optional[GeneratorConfig] = None) -> int:
    config = config or GeneratorConfig()
    return level // 5 + 1 + config.dp_operation_bonus.get(Operation(op).value, 0)


def _resolve_operation(op: Operation, params: DifficultyParams, rng: random.Random) -> Operation:
    """Degrade locked operations: div -> mul -> add/sub."""
    if op is Operation.DIV and not params.allow_div:
        op = Operation.MUL
    if op is Operation.MUL and not params.allow_mul:
        op = rng.choice((Operation.ADD, Operation.SUB))
    return op


def _build_candidate(op: Operation, params: DifficultyParams, rng: random.Random) -> tuple[int, int, int]:
    """Return ``(a, b, answer)`` for one candidate question."""
    if op is Operation.ADD:
        a = rng.randint(params.min_add_sub, params.max_add_sub)
        b = rng.randint(params.min_add_sub, params.max_add_sub)
        return a, b, a + b
    if op is Operation.SUB:
        a = rng.randint(params.min_add_sub, params.max_add_sub)
        b = rng.randint(params.min_add_sub, a)
        return a, b, a - b
    if op is Operation.MUL:
        a = rng.randint(params.min_mul, params.max_mul_a)
        b = rng.randint(params.min_mul, params.max_mul_b)
        return a, b, a * b
    if op is Operation.DIV:
        divisor = rng.randint(params.min_div, params.max_div_divisor)
        quotient = rng.randint(params.min_div, params.max_div_quotient)
        return divisor * quotient, divisor, quotient
    raise ValueError(f"Unsupported operation for level generator: {op}")


def generate_question(
    level: int,
    history: Sequence[str] = (),
    rng: Optional[random.Random] = None,
    config: Optional[GeneratorConfig] = None,
    tier: str = "core",
) -> Question:
    """Generate one non-trivial, non-repeated question for ``level``.

    ``history`` holds recently shown question texts, oldest first. When no
    candidate passes within ``config.max_attempts`` the last one is used.
    """
    rng = rng or random.Random()
    config = config or GeneratorConfig()
    params = get_difficulty_params(level)
    seen = recent_signatures(history, config.history_window)

    op = Operation.ADD
    a = b = answer = 0
    text = ""
    for attempt in range(1, config.max_attempts + 1):
        op = _resolve_operation(select_operation(params.weights, rng), params, rng)
        a, b, answer = _build_candidate(op, params, rng)
        text = f"{a} {op.symbol} {b}"
        if is_trivial(op, (a, b), params.band):
            continue
        if question_signature(text) in seen:
            continue
        break
    else:
        logger.debug("level %d: no fresh candidate after %d attempts, using %r", params.level, attempt, text)

    return Question(
        id=new_question_id(rng),
        text=text,
        operation=op,
        operand_a=a,
        operand_b=b,
        answer=answer,
        target_time_ms=target_time_ms(op, params.level, config),
        difficulty_points=difficulty_points(op, params.level, config),
        level=params.level,
        tier=tier,
    )
