"""Tests for fluency scoring, session XP and level progression."""

import logging

import pytest

from numdrill.config.settings import XPConfig
from numdrill.engine.fluency import FluencyMetrics, compute_fluency, fluency_label
from numdrill.engine.leveling import apply_xp_and_level_up, xp_required_to_advance
from numdrill.engine.xp import (
    CombinedXPResult,
    SessionType,
    answer_xp,
    calculate_combined_session_xp,
    calculate_full_session_xp,
    check_xp_invariant,
    compute_base_session_xp,
    compute_bonus_xp,
    compute_session_xp_with_multipliers,
)


def _fluency(accuracy=0.8, speed=0.8, consistency=0.6, throughput=0.7, score=70.0):
    return FluencyMetrics(
        accuracy=accuracy,
        speed_score=speed,
        consistency_score=consistency,
        throughput_score=throughput,
        fluency_score=score,
        median_ms=1500,
        variability_ms=200,
        questions_per_second=0.25,
    )


EXCELLENT = _fluency(accuracy=0.92, speed=0.96, consistency=0.8, throughput=0.9, score=92)
EXCELLENT_HIGH_ACC = _fluency(accuracy=0.96, speed=0.96, consistency=0.8, throughput=0.9, score=94)
ELITE = _fluency(accuracy=0.99, speed=0.98, consistency=0.85, throughput=1.0, score=98)


class TestFluency:
    def test_perfect_session(self):
        m = compute_fluency(54, 54, [1100] * 54, 180)
        assert m.accuracy == 1.0
        assert m.median_ms == 1100
        assert m.speed_score == 1.0
        assert m.consistency_score == 1.0
        assert m.questions_per_second == pytest.approx(0.3)
        assert m.throughput_score == 1.0
        assert m.fluency_score == pytest.approx(100.0)

    def test_component_math(self):
        m = compute_fluency(10, 8, [1000, 2000, 3000, 4000], 100)
        assert m.median_ms == 2500
        assert m.speed_score == pytest.approx(0.64)
        assert m.variability_ms == 1000
        assert m.consistency_score == 0.0
        assert m.throughput_score == pytest.approx(0.1 / 0.28)
        expected = 100 * (0.35 * 0.8 + 0.25 * 0.64 + 0.25 * (0.1 / 0.28))
        assert m.fluency_score == pytest.approx(expected)

    def test_accuracy_floor_caps_score(self):
        m = compute_fluency(20, 10, [800] * 20, 20)
        assert m.speed_score == 1.0
        assert m.throughput_score == 1.0
        assert m.fluency_score == 45

    def test_empty_samples(self):
        m = compute_fluency(0, 0, [], 0)
        assert m.median_ms == 99999
        assert m.accuracy == 0
        assert m.speed_score == pytest.approx(1600 / 99999)
        assert m.questions_per_second == 0

    def test_zero_duration_floored(self):
        m = compute_fluency(5, 5, [1000] * 5, 0)
        assert m.questions_per_second == 5

    @pytest.mark.parametrize("score,label", [
        (0, "Building"), (25, "Building"), (25.1, "Improving"), (50, "Improving"),
        (75, "Strong"), (90, "Fluent"), (90.5, "Elite"), (100, "Elite"),
    ])
    def test_labels(self, score, label):
        assert fluency_label(score) == label


class TestBaseXP:
    def test_valid_full_marks(self):
        assert compute_base_session_xp(35, 100, 60) == (310, True)

    def test_valid_partial(self):
        # 10 + round(220 * 0.5) + round(80 * 20/35)
        assert compute_base_session_xp(20, 50, 60) == (10 + 110 + 46, True)

    def test_too_few_questions(self):
        xp, valid = compute_base_session_xp(7, 100, 60)
        assert not valid
        assert xp == 10 + 4 + 55

    def test_too_short(self):
        xp, valid = compute_base_session_xp(35, 100, 19)
        assert not valid
        assert xp == 10 + 20 + 55

    def test_zero_session(self):
        assert compute_base_session_xp(0, 0, 0) == (10, False)


class TestMultiplierPipeline:
    def test_daily(self):
        r = compute_session_xp_with_multipliers(200, True, SessionType.DAILY, _fluency(), 30, 120)
        assert r.final_xp == 200
        assert not r.excellence_applied

    def test_quick_fire(self):
        r = compute_session_xp_with_multipliers(200, True, "quick_fire", _fluency(), 30, 120)
        assert r.xp_after_mode == 110
        assert r.final_xp == 110

    def test_assessment_gives_nothing(self):
        r = compute_session_xp_with_multipliers(200, True, SessionType.ASSESSMENT, ELITE, 50, 120)
        assert r.final_xp == 0

    def test_unknown_mode_defaults_to_one(self):
        r = compute_session_xp_with_multipliers(200, True, "marathon", _fluency(), 30, 120)
        assert r.mode_multiplier == 1.0

    def test_excellence(self):
        r = compute_session_xp_with_multipliers(200, True, SessionType.DAILY, EXCELLENT, 30, 120)
        assert r.excellence_applied
        assert r.excellence_multiplier == 1.25
        assert r.final_xp == 250

    def test_excellence_high_accuracy(self):
        r = compute_session_xp_with_multipliers(200, True, SessionType.DAILY, EXCELLENT_HIGH_ACC, 30, 120)
        assert r.final_xp == 270

    def test_elite_chains_after_excellence(self):
        r = compute_session_xp_with_multipliers(200, True, SessionType.DAILY, ELITE, 50, 120)
        assert r.excellence_applied and r.elite_applied
        assert r.final_xp == 540

    def test_elite_needs_volume(self):
        r = compute_session_xp_with_multipliers(200, True, SessionType.DAILY, ELITE, 44, 120)
        assert not r.elite_applied
        assert r.final_xp == 270

    def test_invalid_session_never_multiplied(self):
        r = compute_session_xp_with_multipliers(200, False, SessionType.DAILY, ELITE, 50, 120)
        assert not r.excellence_applied
        assert not r.elite_applied
        assert r.final_xp == 200

    def test_full_pipeline_invalid_session(self):
        m = compute_fluency(5, 5, [500] * 5, 10)
        r = calculate_full_session_xp(5, m, 10)
        assert not r.is_valid
        assert not r.excellence_applied

    def test_stage_rounding(self):
        r = compute_session_xp_with_multipliers(101, True, SessionType.QUICK_FIRE, EXCELLENT, 30, 120)
        # round(101 * 0.55) = 56, round(56 * 1.25) = 70
        assert r.final_xp == 70


class TestBonusPipeline:
    def test_no_bonus(self):
        r = calculate_combined_session_xp(180, _fluency(), 30, 120)
        assert r.bonus_xp == 0
        assert r.final_session_xp == 180

    def test_excellence_bonus(self):
        assert compute_bonus_xp(EXCELLENT, 30, 120).bonus_xp == 50
        assert compute_bonus_xp(EXCELLENT_HIGH_ACC, 30, 120).bonus_xp == 100

    def test_elite_bonus_adds(self):
        b = compute_bonus_xp(ELITE, 50, 120)
        assert b.excellence_bonus == 100
        assert b.elite_bonus == 150
        assert b.bonus_xp == 250

    def test_invalid_session_no_bonus(self):
        r = calculate_combined_session_xp(60, ELITE, 5, 120)
        assert not r.is_valid
        assert r.bonus_xp == 0
        assert r.final_session_xp == 60

    def test_live_xp_not_multiplied(self):
        r = calculate_combined_session_xp(300, EXCELLENT, 30, 120, SessionType.QUICK_FIRE)
        assert r.final_session_xp == 350

    def test_assessment_zero(self):
        r = calculate_combined_session_xp(300, ELITE, 50, 120, SessionType.ASSESSMENT)
        assert r.final_session_xp == 0
        assert r.in_game_xp == 0

    def test_invariant_holds(self, caplog):
        with caplog.at_level(logging.WARNING, logger="numdrill.engine.xp"):
            calculate_combined_session_xp(120, EXCELLENT, 30, 120)
        assert not caplog.records

    def test_invariant_violation_logged(self, caplog):
        bad = CombinedXPResult(
            in_game_xp=100, bonus_xp=50, final_session_xp=200,
            excellence_bonus=50, elite_bonus=0,
            is_valid=True, excellence_achieved=True, elite_achieved=False,
        )
        with caplog.at_level(logging.WARNING, logger="numdrill.engine.xp"):
            assert check_xp_invariant(bad) is False
        assert "invariant" in caplog.text


class TestAnswerXP:
    def test_speed_tiers(self):
        assert answer_xp(True, 2500) == 10
        assert answer_xp(True, 1500) == 15
        assert answer_xp(True, 800) == 20

    def test_incorrect(self):
        assert answer_xp(False, 500, streak=10) == 0

    def test_streak(self):
        assert answer_xp(True, 800, streak=5) == 30
        assert answer_xp(True, 800, streak=20) == 40

    def test_tiers(self):
        assert answer_xp(True, 800, tier="review") == 10
        assert answer_xp(True, 1500, tier="stretch") == 23

    def test_mode(self):
        assert answer_xp(True, 3000, session_type="practice") == 7
        assert answer_xp(True, 3000, session_type=SessionType.QUICK_FIRE) == 6
        assert answer_xp(True, 800, session_type="assessment") == 0

    def test_config(self):
        config = XPConfig(mode_multipliers={"daily": 2.0})
        assert answer_xp(True, 3000, config=config) == 20


class TestLevelCurve:
    @pytest.mark.parametrize("level,required", [
        (1, 500), (2, 500), (3, 500), (4, 500), (5, 1000), (6, 1120), (7, 1255),
        (14, 2620), (15, 2875), (16, 3155), (30, 9700),
    ])
    def test_requirements(self, level, required):
        assert xp_required_to_advance(level) == required

    def test_monotonic(self):
        values = [xp_required_to_advance(level) for level in range(1, 200)]
        assert values == sorted(values)

    def test_multi_level_up(self):
        r = apply_xp_and_level_up(1, 0, 1500)
        assert (r.level_after, r.xp_into_level_after, r.level_up_count) == (4, 0, 3)

    def test_single_level_up(self):
        r = apply_xp_and_level_up(1, 0, 600)
        assert (r.level_after, r.xp_into_level_after, r.level_up_count) == (2, 100, 1)

    def test_carryover(self):
        r = apply_xp_and_level_up(1, 400, 200)
        assert (r.level_after, r.xp_into_level_after) == (2, 100)

    def test_exact_threshold(self):
        r = apply_xp_and_level_up(5, 0, 1000)
        assert (r.level_after, r.xp_into_level_after, r.level_up_count) == (6, 0, 1)
        assert r.xp_required_for_next == 1120

    def test_no_level_up(self):
        r = apply_xp_and_level_up(10, 100, 50)
        assert r.level_up_count == 0
        assert r.level_after == 10
        assert r.xp_into_level_after == 150
