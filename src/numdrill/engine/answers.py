"""Answer normalization and checking against an answer format."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AnswerFormat:
    dp_required: int = 0  # 0, 1 or 2
    rounding_mode: str = "exact"  # "exact" or "round"
    allow_negative: bool = False


DEFAULT_ANSWER_FORMAT = AnswerFormat()


def normalize_answer(text: str) -> str:
    """Strip whitespace and thousands separators, unify minus signs."""
    text = text.strip()
    text = re.sub(r"[\s,_]", "", text)
    text = text.replace("−", "-").replace("–", "-")
    return text


def parse_answer(text: str) -> Optional[float]:
    """Parse a typed answer; None when it is not a number."""
    text = normalize_answer(text)
    if not re.fullmatch(r"[+-]?(\d+\.?\d*|\.\d+)", text):
        return None
    return float(text)


def validate_answer(user_input: str, correct_answer: float, fmt: AnswerFormat = DEFAULT_ANSWER_FORMAT) -> bool:
    """Check a typed answer against ``correct_answer`` under ``fmt``."""
    value = parse_answer(user_input)
    if value is None:
        return False

    if not fmt.allow_negative and value < 0:
        return False

    if fmt.dp_required == 0:
        if not value.is_integer():
            return False
        return value == math.floor(correct_answer + 0.5)

    text = normalize_answer(user_input)
    if "." not in text:
        return False
    decimals = text.split(".", 1)[1]
    if len(decimals) < fmt.dp_required:
        return False

    factor = 10 ** fmt.dp_required
    if fmt.rounding_mode == "round":
        user_rounded = math.floor(value * factor + 0.5) / factor
        correct_rounded = math.floor(correct_answer * factor + 0.5) / factor
        return user_rounded == correct_rounded

    tolerance = 10 ** -(fmt.dp_required + 1)
    return abs(value - correct_answer) <= tolerance + 1e-12


def answer_format_label(fmt: AnswerFormat) -> Optional[str]:
    if fmt.dp_required == 0:
        return None
    places = "1 decimal place" if fmt.dp_required == 1 else "2 decimal places"
    if fmt.rounding_mode == "round":
        return f"Round to {places}"
    return f"Answer to {places}"
