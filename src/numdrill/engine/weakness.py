"""Detect the mental-math strategy a learner most needs, from recent results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

from numdrill.engine.difficulty import Operation

MIN_RESULTS = 5


@dataclass(frozen=True)
class QuestionResult:
    operation: Operation
    operand_a: float
    operand_b: float
    correct: bool
    time_ms: float = 0


@dataclass(frozen=True)
class Strategy:
    id: str
    name: str
    operation: Operation
    applies: Callable[[QuestionResult], bool]
    min_attempts: int
    max_accuracy: float


@dataclass(frozen=True)
class WeaknessPattern:
    strategy_id: str
    operation: Operation
    description: str
    accuracy: float
    total_attempts: int
    incorrect_count: int


STRATEGIES: tuple[Strategy, ...] = (
    Strategy(
        "add_place_value", "Place Value Split", Operation.ADD,
        lambda r: r.operation == Operation.ADD and (r.operand_a >= 10 or r.operand_b >= 10), 5, 0.7,
    ),
    Strategy(
        "add_make_tens", "Make Tens", Operation.ADD,
        lambda r: r.operation == Operation.ADD and r.operand_a <= 20 and r.operand_b <= 20, 5, 0.7,
    ),
    Strategy(
        "sub_count_up", "Count Up Method", Operation.SUB,
        lambda r: r.operation == Operation.SUB and r.operand_a - r.operand_b <= 15, 5, 0.7,
    ),
    Strategy(
        "sub_compensation", "Compensation", Operation.SUB,
        lambda r: r.operation == Operation.SUB and (r.operand_b % 10 >= 7 or r.operand_b % 10 <= 3), 5, 0.7,
    ),
    Strategy(
        "mul_distributive", "Distributive Split", Operation.MUL,
        lambda r: r.operation == Operation.MUL and (r.operand_a >= 6 or r.operand_b >= 6), 4, 0.65,
    ),
    Strategy(
        "mul_nines", "Nines Trick", Operation.MUL,
        lambda r: r.operation == Operation.MUL and (r.operand_a == 9 or r.operand_b == 9), 3, 0.7,
    ),
)


def get_strategy(strategy_id: str) -> Optional[Strategy]:
    return next((s for s in STRATEGIES if s.id == strategy_id), None)


def detect_weakness(
    results: Sequence[QuestionResult], seen: Iterable[str] = ()
) -> Optional[WeaknessPattern]:
    """Weakest unseen strategy whose accuracy is at or below its threshold.

    A result counts toward every strategy it applies to. Returns None with
    fewer than five results or when nothing qualifies.
    """
    if len(results) < MIN_RESULTS:
        return None
    seen = set(seen)

    weakest = None
    lowest = 1.0
    for strategy in STRATEGIES:
        if strategy.id in seen:
            continue
        matching = [r for r in results if strategy.applies(r)]
        if len(matching) < strategy.min_attempts:
            continue
        correct = sum(1 for r in matching if r.correct)
        accuracy = correct / len(matching)
        if accuracy <= strategy.max_accuracy and accuracy < lowest:
            lowest = accuracy
            weakest = WeaknessPattern(
                strategy_id=strategy.id,
                operation=strategy.operation,
                description=strategy.name,
                accuracy=accuracy,
                total_attempts=len(matching),
                incorrect_count=len(matching) - correct,
            )
    return weakest
