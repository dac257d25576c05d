"""Triviality filter for generated operand combinations."""

from __future__ import annotations

from typing import Sequence

from numdrill.engine.difficulty import Operation


def is_trivial(op: Operation | str, operands: Sequence[float], band: int) -> bool:
    """Return True when ``operands`` make an obviously easy question at ``band``.

    For division ``operands`` is ``(dividend, divisor)``.
    """
    op = Operation(op)
    a, b = operands[0], operands[1]

    if a == 0 or b == 0:
        return True

    if band <= 0:
        if op is Operation.ADD and a <= 3 and b <= 3:
            return True
        if op is Operation.SUB and b <= 2:
            return True
        return False

    if op in (Operation.ADD, Operation.SUB):
        if a <= 5 and b <= 5:
            return True
        if op is Operation.ADD and 10 in (a, b):
            return True
        if op is Operation.SUB and b == 10:
            return True

    elif op is Operation.MUL:
        if any(n in (1, 10) for n in (a, b)):
            return True
        if band >= 3 and 2 in (a, b):
            return True

    elif op is Operation.DIV:
        divisor = b
        quotient = a / b
        if divisor in (1, 10):
            return True
        if band >= 3 and divisor == 2:
            return True
        if band >= 2 and quotient <= 5 and divisor <= 5:
            return True

    return False
