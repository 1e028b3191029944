"""
Tests for the level analyzer.
"""

import math
from datetime import timedelta

import pytest

from signal_engine.config import LevelAnalyzerConfig, TiebreakPreference
from signal_engine.models import SignalDirection, SwingPointType, TrendContext
from signal_engine.support_resistance import (
    LEVEL_ANALYZER_SOURCE,
    Level,
    LevelAnalyzer,
    LevelSource,
    LevelType,
    calculate_confidence,
)
from signal_engine.utils.exceptions import ConfigurationException

from conftest import make_candles, make_swings


@pytest.fixture
def analyzer(mock_logger):
    return LevelAnalyzer(logger=mock_logger)


@pytest.fixture
def now(base_time):
    return base_time + timedelta(minutes=5)


def make_level(strength, touches, level_type=LevelType.SUPPORT, price=100.0, base_time=None):
    return Level(
        price=price,
        level_type=level_type,
        strength=strength,
        touches=touches,
        last_touch_timestamp=base_time,
    )


class TestAnalyze:
    """End-to-end level analysis"""

    def test_long_from_support(self, analyzer, support_swings, candles, now):
        result = analyzer.analyze(support_swings, 100.5, candles, now)

        assert result.direction == SignalDirection.LONG
        assert result.nearest_level.price == pytest.approx(100.1)
        assert result.nearest_level.level_type == LevelType.SUPPORT
        assert result.nearest_level.touches == 3
        assert result.distance_percent == pytest.approx(0.4 / 100.1 * 100)
        assert result.confidence == 75
        assert result.reason.startswith("LONG from support 100.1000 (3T, str:0.73, dist:0.40%)")

    def test_short_from_resistance(self, analyzer, resistance_swings, candles, now):
        result = analyzer.analyze(resistance_swings, 100.5, candles, now)

        assert result.direction == SignalDirection.SHORT
        assert result.nearest_level.price == pytest.approx(101.05)
        assert result.confidence == 75

    def test_far_price_holds(self, analyzer, support_swings, candles, now):
        result = analyzer.analyze(support_swings, 105.0, candles, now)

        assert result.direction == SignalDirection.HOLD
        assert result.nearest_level is None
        assert math.isinf(result.distance_percent)
        assert result.confidence == 0
        assert len(result.all_levels.support) == 1

    def test_price_below_support_is_not_long(self, analyzer, support_swings, candles, now):
        result = analyzer.analyze(support_swings, 99.9, candles, now)

        assert result.direction == SignalDirection.HOLD

    def test_levels_below_min_touches_are_ignored(self, analyzer, candles, now):
        swings = make_swings([100.0, 100.1], SwingPointType.LOW)

        result = analyzer.analyze(swings, 100.5, candles, now)

        assert result.direction == SignalDirection.HOLD
        assert result.all_levels.support == []

    def test_tiebreak_between_sides(self, mock_logger, support_swings, resistance_swings, candles, now):
        swings = support_swings + resistance_swings

        nearest = LevelAnalyzer(logger=mock_logger).analyze(swings, 100.5, candles, now)
        short = LevelAnalyzer(logger=mock_logger, tiebreak_preference="short").analyze(swings, 100.5, candles, now)

        assert nearest.direction == SignalDirection.LONG
        assert short.direction == SignalDirection.SHORT

    def test_trend_context_widens_support_reach(self, analyzer, support_swings, candles, now):
        price = 101.3

        neutral = analyzer.analyze(support_swings, price, candles, now, trend_context=TrendContext.NEUTRAL)
        uptrend = analyzer.analyze(support_swings, price, candles, now, trend_context=TrendContext.UPTREND)

        assert neutral.direction == SignalDirection.HOLD
        assert uptrend.direction == SignalDirection.LONG

    def test_trend_label_is_normalized(self, analyzer, support_swings, candles, now):
        from_label = analyzer.analyze(support_swings, 101.3, candles, now, trend_context="UPTREND")
        all_levels = analyzer.get_all_levels(support_swings, candles, now, trend_context="UPTREND")

        assert from_label.direction == SignalDirection.LONG
        assert from_label.all_levels.trend_context is TrendContext.UPTREND
        assert all_levels.trend_context is TrendContext.UPTREND

    def test_unknown_trend_label_holds(self, analyzer, mock_logger, support_swings, candles, now):
        result = analyzer.analyze(support_swings, 100.5, candles, now, trend_context="SIDEWAYS")

        assert result.direction == SignalDirection.HOLD
        assert result.confidence == 0
        assert result.reason == "Unknown trend context: SIDEWAYS"
        assert mock_logger.warning.call_args[0][0] == "unknown_trend_context"

    def test_logs_analysis(self, analyzer, mock_logger, support_swings, candles, now):
        analyzer.analyze(support_swings, 100.5, candles, now)

        mock_logger.debug.assert_called()
        assert mock_logger.debug.call_args[0][0] == "level_analysis"

    def test_result_serializes(self, analyzer, support_swings, candles, now):
        data = analyzer.analyze(support_swings, 100.5, candles, now).to_dict()

        assert data['direction'] == "LONG"
        assert data['nearest_level']['source'] == "SWING"
        assert len(data['support']) == 1


class TestInsufficientInput:
    """Missing data yields HOLD instead of errors"""

    def test_no_swing_points(self, analyzer, candles, now):
        result = analyzer.analyze([], 100.5, candles, now)
        assert result.direction == SignalDirection.HOLD
        assert result.reason == "No swing points"

    def test_no_candles(self, analyzer, support_swings, now):
        result = analyzer.analyze(support_swings, 100.5, [], now)
        assert result.direction == SignalDirection.HOLD

    def test_too_few_candles(self, mock_logger, support_swings, candles, now):
        analyzer = LevelAnalyzer(logger=mock_logger, min_candles_required=100)
        result = analyzer.analyze(support_swings, 100.5, candles, now)

        assert result.direction == SignalDirection.HOLD
        assert "Insufficient candles" in result.reason

    @pytest.mark.parametrize("price", [0.0, -5.0, float('nan'), float('inf')])
    def test_invalid_price(self, analyzer, support_swings, candles, now, price):
        result = analyzer.analyze(support_swings, price, candles, now)
        assert result.direction == SignalDirection.HOLD


class TestGenerateSignal:
    """Analyzer signal output"""

    def test_signal_fields(self, analyzer, support_swings, candles, now):
        signal = analyzer.generate_signal(support_swings, 100.5, candles, now)

        assert signal.source == LEVEL_ANALYZER_SOURCE
        assert signal.direction == SignalDirection.LONG
        assert signal.confidence == 75
        assert signal.weight == 0.25
        assert signal.priority == 7

    def test_hold_gives_no_signal(self, analyzer, support_swings, candles, now):
        assert analyzer.generate_signal(support_swings, 105.0, candles, now) is None


class TestCalculateConfidence:
    """Confidence formula"""

    def test_clamped_to_max(self, base_time):
        level = make_level(1.0, 20, base_time=base_time)
        assert calculate_confidence(level, 0.1, LevelAnalyzerConfig()) == 90

    def test_very_close_boost_and_touch_bonus(self, base_time):
        level = make_level(0.0, 5, base_time=base_time)
        assert calculate_confidence(level, 0.2, LevelAnalyzerConfig()) == 73

    def test_far_discount(self, base_time):
        level = make_level(0.25, 3, base_time=base_time)
        assert calculate_confidence(level, 0.8, LevelAnalyzerConfig()) == 55

    def test_touch_bonus_capped(self, base_time):
        config = LevelAnalyzerConfig(max_confidence=100)
        level = make_level(0.5, 30, base_time=base_time)
        assert calculate_confidence(level, 0.5, config) == 80

    def test_never_negative(self, base_time):
        config = LevelAnalyzerConfig(base_confidence=0, min_touches_required=10)
        level = make_level(0.0, 1, base_time=base_time)
        assert calculate_confidence(level, 0.5, config) == 0


class TestConfigSnapshots:
    """Configuration updates"""

    def test_dict_config(self, mock_logger):
        analyzer = LevelAnalyzer({'max_distance_percent': 2.0}, logger=mock_logger)
        assert analyzer.config.max_distance_percent == 2.0

    def test_update_config(self, analyzer):
        updated = analyzer.update_config(max_distance_percent=0.2)

        assert updated.max_distance_percent == 0.2
        assert analyzer.config is updated

    def test_invalid_update_keeps_previous(self, analyzer):
        before = analyzer.config

        with pytest.raises(ConfigurationException):
            analyzer.update_config(max_distance_percent=-1)

        assert analyzer.config is before

    def test_update_applies_to_next_call(self, analyzer, support_swings, candles, now):
        assert analyzer.analyze(support_swings, 100.5, candles, now).direction == SignalDirection.LONG

        analyzer.update_config(max_distance_percent=0.2)

        assert analyzer.analyze(support_swings, 100.5, candles, now).direction == SignalDirection.HOLD

    def test_cluster_threshold(self, mock_logger):
        analyzer = LevelAnalyzer(
            logger=mock_logger,
            dynamic_cluster_threshold={'enabled': True, 'atr_multiplier': 0.3},
        )

        assert analyzer.get_cluster_threshold() == pytest.approx(0.005)
        assert analyzer.get_cluster_threshold(3.0) == pytest.approx(0.009)

    def test_asymmetric_max_distance(self, analyzer):
        assert analyzer.get_asymmetric_max_distance(LevelType.SUPPORT, TrendContext.UPTREND) == pytest.approx(1.5)
        assert analyzer.get_asymmetric_max_distance(LevelType.RESISTANCE, TrendContext.UPTREND) == pytest.approx(1.0)

    def test_tiebreak_normalized(self, mock_logger):
        analyzer = LevelAnalyzer(logger=mock_logger, tiebreak_preference="strongest")
        assert analyzer.config.tiebreak_preference == TiebreakPreference.STRONGEST


class TestGetAllLevels:
    """Full level set for inspection and enrichment"""

    def test_includes_single_touch_levels(self, analyzer, support_swings, candles, now):
        swings = support_swings + make_swings([95.0], SwingPointType.LOW) + make_swings([110.0], SwingPointType.HIGH)

        levels = analyzer.get_all_levels(swings, candles, now)

        assert [level.touches for level in levels.support] == [1, 3]
        assert [level.price for level in levels.resistance] == [110.0]
        assert all(level.source == LevelSource.SWING for level in levels.support)

    def test_no_swing_points(self, analyzer, candles, now):
        levels = analyzer.get_all_levels([], candles, now)

        assert levels.support == []
        assert levels.resistance == []

    def test_age_filter(self, mock_logger, base_time, candles):
        analyzer = LevelAnalyzer(logger=mock_logger, max_level_age_candles=30, candle_interval_minutes=1)
        old = make_swings([100.0], SwingPointType.LOW, start=base_time)
        recent = make_swings([98.0], SwingPointType.LOW, start=base_time + timedelta(minutes=50))

        levels = analyzer.get_all_levels(old + recent, candles, base_time + timedelta(minutes=60))

        assert [level.price for level in levels.support] == [98.0]

    def test_volume_profile_levels_added(self, mock_logger, base_time):
        candles = make_candles(count=40, price=100.0, spread=1.0)
        analyzer = LevelAnalyzer(
            logger=mock_logger,
            volume_profile={'enabled': True, 'add_vah_val_levels': True, 'boost_hvn_match': False},
        )
        swings = make_swings([99.0], SwingPointType.LOW)

        levels = analyzer.get_all_levels(swings, candles, base_time + timedelta(minutes=40))

        assert levels.volume_profile is not None
        assert any(level.source == LevelSource.VOLUME_PROFILE for level in levels.support)
        assert any(level.source == LevelSource.VOLUME_PROFILE for level in levels.resistance)
