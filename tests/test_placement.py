"""Tests for the placement engine."""

import pytest

from numdrill.config.settings import PlacementConfig
from numdrill.engine.placement import (
    AssessmentMetrics,
    compute_starting_placement,
    group_to_level,
    placement_median,
    placement_message,
)


def _place(total, correct, time_ms, duration=180, config=None):
    return compute_starting_placement(AssessmentMetrics(total, correct, [time_ms] * total, duration), config)


class TestPlacementScenarios:
    def test_perfect_fast(self):
        r = _place(54, 54, 1100)
        assert r.debug.cpm == pytest.approx(18)
        assert r.debug.g0 == 9
        assert r.debug.g_cap == 10
        assert r.debug.g2 == 10
        assert r.competence_group == 10
        assert r.starting_level == 30

    def test_accuracy_caps_group(self):
        r = _place(90, 54, 2000)
        assert r.debug.g0 == 9
        assert r.debug.g_cap == 5
        assert r.competence_group == 5
        assert r.starting_level == 8

    def test_slow_nudge_down(self):
        r = _place(26, 24, 2700)
        assert r.debug.g0 == 4
        assert r.debug.g1 == 4
        assert r.debug.g2 == 3
        assert r.starting_level == 4

    def test_fast_nudge_capped_at_ten(self):
        r = _place(68, 63, 1200)
        assert r.debug.g0 == 10
        assert r.competence_group == 10
        assert r.starting_level == 30

    def test_fast_nudge_up(self):
        r = _place(36, 33, 1200)
        assert r.debug.cpm == pytest.approx(11)
        assert r.debug.g0 == 5
        assert r.debug.g2 == 6
        assert r.starting_level == 10

    def test_slow_floor_at_one(self):
        r = _place(12, 9, 5000)
        assert r.debug.cpm == pytest.approx(3)
        assert r.debug.g0 == 1
        assert r.debug.g_cap == 10
        assert r.competence_group == 1
        assert r.starting_level == 1

    def test_fast_needs_accuracy(self):
        r = _place(40, 31, 1000)
        assert r.debug.a < 0.80
        assert r.debug.g2 == r.debug.g1


class TestPlacementRules:
    @pytest.mark.parametrize("correct,group", [
        (11, 1), (12, 2), (17, 2), (18, 3), (30, 5), (36, 6), (53, 8), (54, 9), (60, 10), (90, 10),
    ])
    def test_cpm_bands(self, correct, group):
        # 3-minute assessment: CPM = correct / 3; neutral speed, full accuracy
        r = _place(max(correct, 12), correct, 2000)
        assert r.debug.g0 == group

    @pytest.mark.parametrize("correct,cap", [(54, 3), (60, 5), (70, 7), (75, 10)])
    def test_accuracy_caps(self, correct, cap):
        r = _place(100, correct, 2000)
        assert r.debug.g_cap == cap
        assert r.competence_group <= cap

    def test_doubling_correct_doubles_cpm(self):
        a = _place(40, 20, 2000, duration=120)
        b = _place(40, 40, 2000, duration=120)
        assert b.debug.cpm == pytest.approx(2 * a.debug.cpm)

    def test_halving_duration_doubles_cpm(self):
        a = _place(40, 20, 2000, duration=120)
        b = _place(40, 20, 2000, duration=60)
        assert b.debug.cpm == pytest.approx(2 * a.debug.cpm)

    def test_zero_duration(self):
        r = _place(20, 20, 2000, duration=0)
        assert r.debug.cpm == 0
        assert r.competence_group == 1


class TestPlacementValidity:
    def test_too_few_answers(self):
        r = _place(11, 11, 900)
        assert not r.debug.is_valid_placement
        assert r.competence_group == 1
        assert r.starting_level == 1
        assert (r.debug.g0, r.debug.g_cap, r.debug.g1, r.debug.g2, r.debug.g) == (1, 1, 1, 1, 1)

    def test_no_answers(self):
        r = compute_starting_placement(AssessmentMetrics(0, 0, [], 180))
        assert r.debug.a == 0
        assert r.debug.median_ms == 99999
        assert not r.debug.is_valid_placement

    def test_config_min_answers(self):
        r = _place(14, 14, 1000, config=PlacementConfig(min_answers=15))
        assert not r.debug.is_valid_placement


class TestDeterminism:
    def test_repeated_calls_identical(self):
        metrics = AssessmentMetrics(36, 33, [1200] * 36, 180)
        results = [compute_starting_placement(metrics) for _ in range(5)]
        keys = {(r.competence_group, r.starting_level, r.debug.g, r.debug.cpm) for r in results}
        assert len(keys) == 1

    def test_interleaving_does_not_matter(self):
        metrics = AssessmentMetrics(26, 24, [2700] * 26, 180)
        first = compute_starting_placement(metrics)
        _place(68, 63, 1200)
        _place(12, 9, 5000)
        assert compute_starting_placement(metrics) == first


class TestHelpers:
    def test_median(self):
        assert placement_median([]) == 99999
        assert placement_median([3000, 1000, 2000]) == 2000
        assert placement_median([1000, 1001]) == 1001

    def test_odd_median_keeps_fraction(self):
        assert placement_median([1300.4] * 3) == 1300.4
        assert placement_median([1200.6, 900, 1500]) == 1200.6
        assert placement_median([], empty=4000) == 4000

    def test_group_to_level(self):
        assert [group_to_level(g) for g in range(1, 11)] == [1, 2, 4, 6, 8, 10, 12, 16, 22, 30]
        assert group_to_level(10, PlacementConfig(max_start_level=20)) == 20

    def test_messages(self):
        assert placement_message(1).startswith("We've identified a good starting point")
        assert placement_message(4).startswith("Your foundations are solid")
        assert placement_message(5).startswith("You've demonstrated capable")
        assert placement_message(8).startswith("Strong performance")
        assert placement_message(10).startswith("Excellent results")

    def test_invalid_config(self):
        with pytest.raises(ValueError):
            PlacementConfig(cpm_bands=[4, 6, 8])


class TestMedianBoundary:
    def test_fractional_median_misses_fast_nudge(self):
        r = compute_starting_placement(AssessmentMetrics(13, 13, [1300.4] * 13, 60))
        assert r.debug.median_ms == 1300.4
        assert (r.debug.g0, r.debug.g1, r.debug.g2) == (6, 6, 6)
        assert r.competence_group == 6
        assert r.starting_level == 10

    def test_median_at_threshold_nudges_up(self):
        r = compute_starting_placement(AssessmentMetrics(13, 13, [1300] * 13, 60))
        assert r.debug.g2 == 7
        assert r.starting_level == 12

    def test_empty_median_from_config(self):
        metrics = AssessmentMetrics(36, 36, [], 180)
        slow = compute_starting_placement(metrics)
        assert slow.debug.median_ms == 99999
        assert slow.debug.g2 == slow.debug.g1 - 1

        fast = compute_starting_placement(metrics, PlacementConfig(empty_median_ms=500))
        assert fast.debug.median_ms == 500
        assert fast.debug.g2 == fast.debug.g1 + 1
