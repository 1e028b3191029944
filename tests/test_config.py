"""
Tests for configuration snapshots and settings loading.
"""

from unittest.mock import Mock

import pydantic
import pytest

from signal_engine.config import (
    EngineSettings,
    LevelAnalyzerConfig,
    TiebreakPreference,
    VolumeProfileConfig,
    build_config,
    configure_logging_from_settings,
    load_settings_from_file,
    merge_config,
    reload_settings,
    save_settings_to_file,
)
from signal_engine.config import engine_config
from signal_engine.utils.exceptions import ConfigurationException, InvalidDataException
from signal_engine.utils.logger import LogFormat, LogLevel


class TestLevelAnalyzerConfig:
    """Defaults and validation"""

    def test_defaults(self):
        config = LevelAnalyzerConfig()

        assert config.cluster_threshold_percent == 0.5
        assert config.cluster_threshold_ratio == pytest.approx(0.005)
        assert config.min_touches_required == 3
        assert config.min_touches_for_strong == 5
        assert config.max_distance_percent == 1.0
        assert config.very_close_distance_percent == 0.3
        assert config.recency_decay_days == 7
        assert config.volume_boost_threshold == 1.5
        assert config.base_confidence == 60
        assert config.max_confidence == 90
        assert config.tiebreak_preference == TiebreakPreference.NEAREST
        assert not config.dynamic_cluster_threshold.enabled
        assert not config.level_exhaustion.enabled

    @pytest.mark.parametrize("field,value", [
        ("cluster_threshold_percent", 0),
        ("min_touches_required", 0),
        ("max_distance_percent", -1),
        ("max_confidence", 120),
        ("tiebreak_preference", "SIDEWAYS"),
        ("unknown_field", 1),
    ])
    def test_invalid_values(self, field, value):
        with pytest.raises(ConfigurationException) as exc_info:
            build_config(LevelAnalyzerConfig, {field: value})

        assert field in exc_info.value.details['invalid_params'][0]

    def test_base_above_max_rejected(self):
        with pytest.raises(ConfigurationException):
            build_config(LevelAnalyzerConfig, {'base_confidence': 95, 'max_confidence': 90})

    def test_frozen(self):
        config = LevelAnalyzerConfig()
        with pytest.raises(pydantic.ValidationError):
            config.max_distance_percent = 2.0

    def test_nested_override_merges(self):
        config = LevelAnalyzerConfig(level_exhaustion={'enabled': True, 'max_penalty': 0.5})

        updated = merge_config(config, {'level_exhaustion': {'penalty_per_breakout': 0.2}})

        assert updated.level_exhaustion.enabled
        assert updated.level_exhaustion.max_penalty == 0.5
        assert updated.level_exhaustion.penalty_per_breakout == 0.2
        assert config.level_exhaustion.penalty_per_breakout == 0.15

    def test_with_overrides_returns_new_snapshot(self):
        config = LevelAnalyzerConfig()
        updated = config.with_overrides(max_distance_percent=2.0, tiebreak_preference="long")

        assert updated is not config
        assert updated.max_distance_percent == 2.0
        assert updated.tiebreak_preference == TiebreakPreference.LONG
        assert config.max_distance_percent == 1.0

    def test_strength_config(self):
        config = LevelAnalyzerConfig(min_touches_for_strong=4, timeframe_aware_decay={'enabled': True})

        strength = config.strength_config()

        assert strength.min_touches_for_strong == 4
        assert strength.effective_decay_days == 2.0

    @pytest.mark.parametrize("timeframe,decay_days", [("1m", 2), ("5m", 3), ("15m", 5), ("1h", 7)])
    def test_for_timeframe(self, timeframe, decay_days):
        config = LevelAnalyzerConfig.for_timeframe(timeframe)

        assert config.timeframe_aware_decay.enabled
        assert config.strength_config().effective_decay_days == decay_days

    def test_for_timeframe_overrides(self):
        config = LevelAnalyzerConfig.for_timeframe("5m", max_level_age_candles=100)

        assert config.candle_interval_minutes == 5
        assert config.max_level_age_candles == 100

    def test_for_unknown_timeframe(self):
        with pytest.raises(InvalidDataException):
            LevelAnalyzerConfig.for_timeframe("7m")


class TestVolumeProfileConfig:

    def test_defaults(self):
        config = VolumeProfileConfig()

        assert config.lookback_candles == 200
        assert config.value_area_percent == 70
        assert config.max_confidence == 85

    def test_base_above_max_rejected(self):
        with pytest.raises(ConfigurationException):
            build_config(VolumeProfileConfig, {'base_confidence': 90})


class TestEngineSettings:
    """Environment and YAML sources"""

    @pytest.fixture(autouse=True)
    def isolated_settings(self, monkeypatch):
        monkeypatch.setattr("signal_engine.config.engine_config._settings", None)

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("SIGNAL_ENGINE_LEVEL__MAX_DISTANCE_PERCENT", "1.5")
        monkeypatch.setenv("SIGNAL_ENGINE_REGISTRY__MIN_CANDLES", "20")

        settings = reload_settings()

        assert settings.level.max_distance_percent == 1.5
        assert settings.level.min_touches_required == 3
        assert settings.registry.min_candles == 20

    def test_invalid_env_value(self, monkeypatch):
        monkeypatch.setenv("SIGNAL_ENGINE_LEVEL__MAX_DISTANCE_PERCENT", "-2")

        with pytest.raises(ConfigurationException):
            reload_settings()

    def test_yaml_round_trip(self, tmp_path):
        settings = EngineSettings(
            level=LevelAnalyzerConfig(max_distance_percent=2.0, tiebreak_preference="STRONGEST"),
        )
        path = tmp_path / "config" / "engine.yaml"

        save_settings_to_file(settings, path)
        loaded = load_settings_from_file(path)

        assert loaded.level.max_distance_percent == 2.0
        assert loaded.level.tiebreak_preference == TiebreakPreference.STRONGEST
        assert loaded.volume_profile == settings.volume_profile

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings_from_file(tmp_path / "missing.yaml")

    def test_logging_configured_from_settings(self, monkeypatch, tmp_path):
        configure = Mock()
        monkeypatch.setattr(engine_config, "configure_logging", configure)
        settings = EngineSettings(
            log_level="DEBUG",
            log_format="text",
            log_file=tmp_path / "engine.log",
            environment="production",
        )

        configure_logging_from_settings(settings, force=True)

        kwargs = configure.call_args.kwargs
        assert kwargs['level'] == LogLevel.DEBUG
        assert kwargs['format_type'] == LogFormat.TEXT
        assert kwargs['log_file'] == tmp_path / "engine.log"
        assert kwargs['service_name'] == "signal-engine"
        assert kwargs['service_version'] == "1.0.0"
        assert kwargs['environment'] == "production"
        assert kwargs['force'] is True
