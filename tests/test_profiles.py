"""Tests for the curriculum difficulty profiles and profile-driven generation."""

import random

import pytest

from numdrill.engine.difficulty import Operation
from numdrill.engine.numeric import round_half_up
from numdrill.engine.profile_generator import (
    OperationScheduler,
    generate_profile_question,
    select_question_tier,
    tier_level,
)
from numdrill.engine.profiles import (
    PROFILE_TABLE,
    compute_question_complexity,
    get_difficulty_profile,
    has_carry_or_borrow,
)


def _profile_batch(level, count, seed=0):
    rng = random.Random(seed)
    scheduler = OperationScheduler()
    history = []
    batch = []
    for _ in range(count):
        q = generate_profile_question(level, history, rng=rng, scheduler=scheduler)
        history.append(q.text)
        batch.append(q)
    return batch


class TestProfileTable:
    def test_table_is_contiguous(self):
        expected_first = 1
        for first, last, _ in PROFILE_TABLE:
            assert first == expected_first
            if last is None:
                break
            expected_first = last + 1
        assert PROFILE_TABLE[-1][1] is None

    @pytest.mark.parametrize("level,band", [(1, 0), (5, 0), (10, 0), (11, 1), (30, 2), (45, 4), (90, 8), (91, 9), (150, 9)])
    def test_bands(self, level, band):
        assert get_difficulty_profile(level).band == band

    def test_low_levels_clamp(self):
        assert get_difficulty_profile(0).level == 1
        assert get_difficulty_profile(-7) == get_difficulty_profile(1)

    def test_feature_unlocks(self):
        assert not get_difficulty_profile(8).mul.enabled
        assert get_difficulty_profile(9).mul.enabled
        assert not get_difficulty_profile(14).div.enabled
        assert get_difficulty_profile(15).div.enabled
        assert get_difficulty_profile(18).div.allow_remainder
        assert not get_difficulty_profile(34).add_sub.allow_negatives
        assert get_difficulty_profile(35).add_sub.allow_negatives
        assert not get_difficulty_profile(47).percent.enabled
        assert get_difficulty_profile(48).percent.enabled
        assert get_difficulty_profile(54).add_sub.decimals == 0
        assert get_difficulty_profile(55).add_sub.decimals == 1
        assert get_difficulty_profile(75).add_sub.decimals == 2
        assert get_difficulty_profile(76).percent.allow_change
        assert get_difficulty_profile(68).fractions.enabled

    def test_multi_step_probability(self):
        assert not get_difficulty_profile(84).multi_step.enabled
        assert get_difficulty_profile(85).multi_step.probability == pytest.approx(0.15)
        assert get_difficulty_profile(91).multi_step.probability == pytest.approx(0.30)
        assert get_difficulty_profile(100).multi_step.max_steps == 3

    def test_extrapolates_past_designed_ceiling(self):
        p100, p150 = get_difficulty_profile(100), get_difficulty_profile(150)
        assert p150.add_sub.max > p100.add_sub.max
        assert p150.mul.a_max > p100.mul.a_max
        assert p150.multi_step.probability <= 1.0

    @pytest.mark.parametrize("level", [1, 7, 12, 25, 33, 49, 58, 66, 77, 88, 99, 130])
    def test_weights_non_negative(self, level):
        weights = get_difficulty_profile(level).weights
        assert all(w >= 0 for w in weights.values())
        assert sum(weights.values()) > 0


class TestComplexity:
    def test_carry_and_borrow(self):
        assert has_carry_or_borrow(27, 15, Operation.ADD)
        assert not has_carry_or_borrow(21, 14, Operation.ADD)
        assert has_carry_or_borrow(52, 17, Operation.SUB)
        assert not has_carry_or_borrow(57, 12, "sub")

    def test_carry_rejects_other_ops(self):
        with pytest.raises(ValueError):
            has_carry_or_borrow(5, 3, Operation.MUL)

    def test_scores(self):
        assert compute_question_complexity(Operation.ADD, 27, 15, carry_borrow=True) == 6
        assert compute_question_complexity(Operation.MUL, 12, 7) == 4
        assert compute_question_complexity(Operation.DIV, 144, 12) == 10
        assert compute_question_complexity(Operation.PERCENT, 200, 15) == 9
        assert compute_question_complexity(Operation.ADD, 2.5, 3.1, decimals=True, negatives=True) == 7
        assert compute_question_complexity(Operation.MUL, 12, 7, multi_step=True, steps=2) == 12

    def test_multi_step_scores_steps_only(self):
        assert compute_question_complexity(Operation.MULTI, 12, 5, multi_step=True, steps=2) == 8
        assert compute_question_complexity(
            Operation.MULTI, 12, 5, decimals=True, negatives=True, multi_step=True, steps=2
        ) == 13


class TestTiers:
    def test_tier_levels(self):
        assert tier_level(10, "review") == 7
        assert tier_level(2, "review") == 1
        assert tier_level(10, "core") == 10
        assert tier_level(10, "stretch") == 12

    def test_first_two_are_review(self, rng):
        assert select_question_tier(0, rng) == "review"
        assert select_question_tier(1, rng) == "review"

    def test_tier_mix(self):
        rng = random.Random(5)
        tiers = [select_question_tier(5, rng) for _ in range(4000)]
        assert 0.76 < tiers.count("core") / len(tiers) < 0.84
        assert 0.12 < tiers.count("stretch") / len(tiers) < 0.18


class TestOperationScheduler:
    def test_three_in_a_row_excluded(self, rng):
        profile = get_difficulty_profile(1)
        scheduler = OperationScheduler()
        scheduler.recent.extend([Operation.ADD] * 3)
        assert scheduler.select(profile, rng) is Operation.SUB

    def test_records_selection(self, rng):
        scheduler = OperationScheduler(window=4)
        for _ in range(10):
            scheduler.select(get_difficulty_profile(25), rng)
        assert len(scheduler.recent) == 4
        scheduler.reset()
        assert not scheduler.recent

    def test_no_long_runs(self):
        rng = random.Random(3)
        scheduler = OperationScheduler()
        profile = get_difficulty_profile(1)
        picks = [scheduler.select(profile, rng) for _ in range(300)]
        for i in range(len(picks) - 3):
            assert len(set(picks[i:i + 4])) > 1


class TestProfileQuestions:
    def test_deterministic(self):
        a = generate_profile_question(40, rng=random.Random(1), scheduler=OperationScheduler())
        b = generate_profile_question(40, rng=random.Random(1), scheduler=OperationScheduler())
        assert a == b

    def test_foundation_answers(self):
        for q in _profile_batch(3, 50):
            assert q.operation in (Operation.ADD, Operation.SUB)
            assert q.answer >= 0
            assert float(q.answer).is_integer()

    def test_carry_mostly_required(self):
        add_sub = [q for q in _profile_batch(8, 60, seed=2) if q.operation in (Operation.ADD, Operation.SUB)]
        carried = [q for q in add_sub if has_carry_or_borrow(q.operand_a, q.operand_b, q.operation)]
        assert len(carried) >= 0.9 * len(add_sub)

    def test_exact_division(self):
        for q in _profile_batch(16, 150, seed=4):
            if q.operation is Operation.DIV:
                assert q.operand_a == q.operand_b * q.answer

    def test_remainder_division_rounds(self):
        remainders = [
            q for q in _profile_batch(25, 300, seed=6)
            if q.operation is Operation.DIV and not float(q.answer).is_integer()
        ]
        assert remainders
        for q in remainders:
            assert q.answer_format.dp_required == 1
            assert q.answer_format.rounding_mode == "round"

    def test_percent_questions(self):
        percents = [q for q in _profile_batch(55, 200, seed=7) if q.operation is Operation.PERCENT]
        assert percents
        for q in percents:
            if "% of " in q.text:
                assert q.answer == round_half_up(q.operand_a * q.operand_b / 100)

    def test_multi_step_questions(self):
        multi = [q for q in _profile_batch(95, 60, seed=9) if q.operation is Operation.MULTI]
        assert multi
        for q in multi:
            assert q.text.startswith("(")

    def test_multi_step_complexity_ignores_operands(self):
        profile = get_difficulty_profile(95)
        multi = [q for q in _profile_batch(95, 60, seed=9) if q.operation is Operation.MULTI]
        assert multi
        for q in multi:
            expected = 8 + (3 if profile.add_sub.decimals > 0 else 0)
            expected += 2 if q.operand_a < 0 or q.operand_b < 0 else 0
            assert q.complexity == expected

    def test_tier_shifts_level(self):
        q = generate_profile_question(20, tier="stretch", rng=random.Random(1))
        assert q.level == 22
        assert q.tier == "stretch"
        q = generate_profile_question(20, tier="review", rng=random.Random(1))
        assert q.level == 17

    def test_complexity_recorded(self):
        q = generate_profile_question(30, rng=random.Random(2))
        assert q.complexity is not None
