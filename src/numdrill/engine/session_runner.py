"""Session state machine: question → answer → score → ... → finish.

The runner owns nothing global. It starts from the caller's
ProgressionState and hands the updated state back in the summary.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Union

from numdrill.config.settings import Settings, XPPipeline
from numdrill.engine.adaptive import ProgressionState, apply_level_result, record_answer
from numdrill.engine.answers import validate_answer
from numdrill.engine.difficulty import BASIC_OPERATIONS
from numdrill.engine.fluency import FluencyMetrics, compute_fluency, fluency_label
from numdrill.engine.generator import Question, generate_question
from numdrill.engine.leveling import LevelUpResult, apply_xp_and_level_up
from numdrill.engine.profile_generator import (
    OperationScheduler,
    generate_profile_question,
    select_question_tier,
    tier_level,
)
from numdrill.engine.weakness import QuestionResult, WeaknessPattern, detect_weakness
from numdrill.engine.xp import (
    CombinedXPResult,
    SessionType,
    SessionXPResult,
    answer_xp,
    calculate_combined_session_xp,
    calculate_full_session_xp,
)

logger = logging.getLogger(__name__)


class SessionPhase(str, Enum):
    ASKING = "asking"  # question out, waiting for an answer
    ANSWERED = "answered"  # answer scored, next question not yet drawn
    FINISHED = "finished"


@dataclass(frozen=True)
class AnswerOutcome:
    question: Question
    correct: bool
    performance_score: float
    xp: int
    time_ms: float


@dataclass(frozen=True)
class SessionSummary:
    total: int
    correct: int
    duration_seconds: float
    fluency: FluencyMetrics
    fluency_label: str
    xp: Union[CombinedXPResult, SessionXPResult]
    earned_xp: int
    level: LevelUpResult
    state: ProgressionState
    weakness: Optional[WeaknessPattern] = None


@dataclass
class SessionLog:
    outcomes: list[AnswerOutcome] = field(default_factory=list)
    history: list[str] = field(default_factory=list)
    in_game_xp: int = 0
    streak: int = 0

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def correct(self) -> int:
        return sum(1 for o in self.outcomes if o.correct)

    @property
    def response_times(self) -> list[float]:
        return [o.time_ms for o in self.outcomes]

    def question_results(self) -> list[QuestionResult]:
        """Outcomes of the four basic operations, in the shape weakness detection reads."""
        return [
            QuestionResult(o.question.operation, o.question.operand_a, o.question.operand_b, o.correct, o.time_ms)
            for o in self.outcomes
            if o.question.operation in BASIC_OPERATIONS
        ]


class SessionRunner:
    """Drives one practice session over a caller-owned ProgressionState."""

    def __init__(
        self,
        state: Optional[ProgressionState] = None,
        session_type: SessionType | str = SessionType.DAILY,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
        use_profiles: bool = False,
    ):
        self.settings = settings or Settings()
        self.state = state if state is not None else ProgressionState.initial(self.settings.adaptive)
        self.session_type = SessionType(session_type)
        self.rng = rng or random.Random()
        self.use_profiles = use_profiles
        self.scheduler = OperationScheduler(self.settings.generator.history_window)
        self.log = SessionLog()
        self.phase = SessionPhase.ANSWERED
        self.current: Optional[Question] = None

    def question_level(self, tier: str = "core") -> int:
        """Player level plus the anti-whiplash step, shifted by tier."""
        return tier_level(self.state.level + self.state.difficulty_step, tier)

    def next_question(self) -> Question:
        if self.phase is SessionPhase.FINISHED:
            raise RuntimeError("Session already finished")
        if self.phase is SessionPhase.ASKING and self.current is not None:
            return self.current

        tier = select_question_tier(self.log.total, self.rng)
        base_level = self.state.level + self.state.difficulty_step
        if self.use_profiles:
            question = generate_profile_question(
                base_level,
                history=self.log.history,
                tier=tier,
                rng=self.rng,
                scheduler=self.scheduler,
                config=self.settings.generator,
            )
        else:
            question = generate_question(
                self.question_level(tier),
                history=self.log.history,
                rng=self.rng,
                config=self.settings.generator,
                tier=tier,
            )
        self.current = question
        self.phase = SessionPhase.ASKING
        return question

    def submit(self, answer: str, time_ms: float) -> AnswerOutcome:
        """Score the answer to the current question and update progression."""
        if self.phase is not SessionPhase.ASKING or self.current is None:
            raise RuntimeError("No question awaiting an answer")

        question = self.current
        correct = validate_answer(answer, question.answer, question.answer_format)
        self.state, ps = record_answer(
            self.state,
            correct,
            time_ms,
            target_time_ms=question.target_time_ms,
            difficulty_points=question.difficulty_points,
            template_id=question.operation.value,
            config=self.settings.adaptive,
        )

        xp = answer_xp(
            correct, time_ms, self.log.streak, question.tier, self.session_type, self.settings.xp
        )
        self.log.streak = self.log.streak + 1 if correct else 0
        self.log.in_game_xp += xp
        self.log.history.append(question.text)

        outcome = AnswerOutcome(
            question=question, correct=correct, performance_score=ps, xp=xp, time_ms=time_ms
        )
        self.log.outcomes.append(outcome)
        self.phase = SessionPhase.ANSWERED
        self.current = None
        return outcome

    def finish(self, duration_seconds: float, seen_strategies: Iterable[str] = ()) -> SessionSummary:
        """Close the session: fluency, session XP, level progression, weakness.

        ``seen_strategies`` are strategy ids the learner has already been shown;
        they are skipped when picking the weakness to surface.
        """
        if self.phase is SessionPhase.FINISHED:
            raise RuntimeError("Session already finished")
        self.phase = SessionPhase.FINISHED

        total, correct = self.log.total, self.log.correct
        fluency = compute_fluency(
            total, correct, self.log.response_times, duration_seconds, self.settings.fluency
        )

        xp_config = self.settings.xp
        if xp_config.pipeline is XPPipeline.MULTIPLIER:
            xp_result = calculate_full_session_xp(
                total, fluency, duration_seconds, self.session_type, xp_config
            )
            earned = xp_result.final_xp
        else:
            xp_result = calculate_combined_session_xp(
                self.log.in_game_xp, fluency, total, duration_seconds, self.session_type, xp_config
            )
            earned = xp_result.final_session_xp

        level_result = apply_xp_and_level_up(
            self.state.level, self.state.xp_into_level, earned, self.settings.levels
        )
        self.state = apply_level_result(self.state, level_result)
        weakness = detect_weakness(self.log.question_results(), seen_strategies)
        logger.debug(
            "session %s: %d/%d correct, fluency %.1f, +%d XP",
            self.session_type.value, correct, total, fluency.fluency_score, earned,
        )

        return SessionSummary(
            total=total,
            correct=correct,
            duration_seconds=duration_seconds,
            fluency=fluency,
            fluency_label=fluency_label(fluency.fluency_score),
            xp=xp_result,
            earned_xp=earned,
            level=level_result,
            state=self.state,
            weakness=weakness,
        )
