"""
Tests for level selection and tiebreaks.
"""

import math
from dataclasses import replace

import pytest

from signal_engine.config import TiebreakPreference
from signal_engine.models import SignalDirection, TrendContext
from signal_engine.support_resistance.levels import Level, LevelType
from signal_engine.support_resistance.selector import (
    LevelSelector,
    asymmetric_max_distance,
    level_score,
    select_best,
    select_nearest,
)

from conftest import BASE_TIME


def make_level(price, level_type=LevelType.SUPPORT, strength=0.6, touches=3):
    return Level(
        price=price,
        level_type=level_type,
        strength=strength,
        touches=touches,
        last_touch_timestamp=BASE_TIME,
    )


class TestSelectNearest:
    """Admissibility and nearest-level search"""

    def test_support_must_be_below_price(self):
        above = make_level(100.5)
        assert select_nearest(100.0, [above], LevelType.SUPPORT, 1.0) is None

    def test_resistance_must_be_above_price(self):
        below = make_level(99.5, LevelType.RESISTANCE)
        assert select_nearest(100.0, [below], LevelType.RESISTANCE, 1.0) is None

    def test_price_on_level_is_admissible(self):
        level = make_level(100.0)
        assert select_nearest(100.0, [level], LevelType.SUPPORT, 1.0) is level

    def test_picks_closest_within_cap(self):
        far = make_level(99.2)
        near = make_level(99.7)
        too_far = make_level(95.0)

        assert select_nearest(100.0, [far, too_far, near], LevelType.SUPPORT, 1.0) is near

    def test_nothing_within_cap(self):
        assert select_nearest(105.0, [make_level(100.1)], LevelType.SUPPORT, 1.0) is None

    def test_ignores_other_level_type(self):
        resistance = make_level(101.0, LevelType.RESISTANCE)
        assert select_nearest(100.5, [resistance], LevelType.SUPPORT, 1.0) is None


class TestAsymmetricDistance:
    """Trend-aligned distance caps"""

    @pytest.mark.parametrize("level_type,trend,expected", [
        (LevelType.SUPPORT, TrendContext.UPTREND, 1.5),
        (LevelType.RESISTANCE, TrendContext.DOWNTREND, 1.5),
        (LevelType.SUPPORT, TrendContext.DOWNTREND, 1.0),
        (LevelType.RESISTANCE, TrendContext.UPTREND, 1.0),
        (LevelType.SUPPORT, TrendContext.NEUTRAL, 1.0),
        (LevelType.SUPPORT, None, 1.0),
    ])
    def test_multiplier_applies_only_when_aligned(self, level_type, trend, expected):
        assert asymmetric_max_distance(1.0, level_type, trend, 1.5) == pytest.approx(expected)

    def test_selector_reaches_further_with_trend(self):
        selector = LevelSelector(max_distance_percent=1.0)
        support = make_level(100.0)

        neutral = selector.select(101.2, [support], [], TrendContext.NEUTRAL)
        uptrend = selector.select(101.2, [support], [], TrendContext.UPTREND)

        assert neutral.direction == SignalDirection.HOLD
        assert uptrend.direction == SignalDirection.LONG
        assert uptrend.level is support


class TestSelectBest:
    """Direction selection between support and resistance"""

    def test_no_levels_is_hold(self):
        selection = select_best(100.0, None, None)

        assert selection.direction == SignalDirection.HOLD
        assert selection.level is None
        assert math.isinf(selection.distance_percent)

    def test_lone_support_wins(self):
        support = make_level(99.5, strength=0.05)
        selection = select_best(100.0, support, None)

        assert selection.direction == SignalDirection.LONG
        assert selection.level is support
        assert selection.distance_percent == pytest.approx(0.5 / 99.5 * 100)

    def test_lone_resistance_wins(self):
        resistance = make_level(100.5, LevelType.RESISTANCE, strength=0.05)
        selection = select_best(100.0, None, resistance)

        assert selection.direction == SignalDirection.SHORT
        assert selection.level is resistance

    def test_higher_score_wins(self):
        support = make_level(99.5, strength=0.8)
        resistance = make_level(100.5, LevelType.RESISTANCE, strength=0.3)

        assert select_best(100.0, support, resistance).direction == SignalDirection.LONG
        assert select_best(100.0, replace(support, strength=0.2), resistance).direction == SignalDirection.SHORT

    def test_score_formula(self):
        level = make_level(99.0, strength=0.5)
        assert level_score(level, 2.0) == pytest.approx(0.5 / 1.02)


class TestTiebreak:
    """Near-equal scores resolved by preference"""

    @pytest.fixture
    def equal_pair(self):
        # Resistance is marginally nearer: 0.4975% vs 0.5025%
        return make_level(99.5, strength=0.6), make_level(100.5, LevelType.RESISTANCE, strength=0.6)

    @pytest.fixture
    def stronger_support_pair(self):
        # Scores differ by ~0.005, which is still a tie
        return make_level(99.5, strength=0.6), make_level(100.5, LevelType.RESISTANCE, strength=0.595)

    @pytest.mark.parametrize("preference,expected", [
        (TiebreakPreference.LONG, SignalDirection.LONG),
        (TiebreakPreference.SHORT, SignalDirection.SHORT),
        (TiebreakPreference.NEAREST, SignalDirection.SHORT),
        (TiebreakPreference.STRONGEST, SignalDirection.LONG),
    ])
    def test_preferences(self, equal_pair, preference, expected):
        support, resistance = equal_pair
        assert select_best(100.0, support, resistance, preference).direction == expected

    def test_near_tie_uses_preference_over_raw_score(self, stronger_support_pair):
        support, resistance = stronger_support_pair
        assert level_score(support, support.distance_percent(100.0)) > level_score(
            resistance, resistance.distance_percent(100.0)
        )

        nearest = select_best(100.0, support, resistance, TiebreakPreference.NEAREST)
        strongest = select_best(100.0, support, resistance, TiebreakPreference.STRONGEST)

        assert nearest.direction == SignalDirection.SHORT
        assert strongest.direction == SignalDirection.LONG

    def test_preference_accepts_strings(self, equal_pair):
        support, resistance = equal_pair
        assert select_best(100.0, support, resistance, "LONG").direction == SignalDirection.LONG

    def test_deterministic_across_calls(self, stronger_support_pair):
        support, resistance = stronger_support_pair
        for preference in TiebreakPreference:
            results = {select_best(100.0, support, resistance, preference).direction for _ in range(20)}
            assert len(results) == 1
