"""
Configuration management for the signal engine.

Every analyzer reads an immutable configuration snapshot; changing a
setting means building a new, re-validated snapshot. Environment
variables (prefix ``SIGNAL_ENGINE_``) and YAML files feed the top-level
``EngineSettings``.
"""

from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..utils.exceptions import ConfigurationException
from ..utils.helpers import parse_timeframe_to_minutes
from ..utils.logger import LogFormat, LogLevel, configure_logging

ConfigT = TypeVar("ConfigT", bound=BaseModel)


class TiebreakPreference(str, Enum):
    """How to pick a side when support and resistance score the same"""
    LONG = "LONG"
    SHORT = "SHORT"
    NEAREST = "NEAREST"
    STRONGEST = "STRONGEST"


class FrozenConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra='forbid')


class DynamicClusterThresholdConfig(FrozenConfig):
    """Widen the cluster threshold with volatility"""

    enabled: bool = False
    atr_multiplier: float = Field(default=0.3, gt=0, description="Multiplier applied to the ATR percent")


class TimeWeightedStrengthConfig(FrozenConfig):
    """Bonus for levels touched recently"""

    enabled: bool = False
    recent_touch_bonus_percent: float = Field(default=20.0, ge=0, le=100)
    recent_period_hours: float = Field(default=24.0, gt=0)


class TimeframeAwareDecayConfig(FrozenConfig):
    """Faster recency decay on shorter candle intervals"""

    enabled: bool = False
    candle_interval_minutes: float = Field(default=1.0, gt=0)

    def decay_days(self, default_days: float) -> float:
        if not self.enabled:
            return default_days
        if self.candle_interval_minutes <= 1:
            return 2.0
        if self.candle_interval_minutes <= 5:
            return 3.0
        if self.candle_interval_minutes <= 15:
            return 5.0
        return 7.0


class LevelExhaustionConfig(FrozenConfig):
    """Weaken levels that price has closed through repeatedly"""

    enabled: bool = False
    penalty_per_breakout: float = Field(default=0.15, ge=0, le=1)
    max_penalty: float = Field(default=0.6, ge=0, le=1)
    breakout_threshold_percent: float = Field(default=0.1, ge=0)
    lookback_candles: int = Field(default=50, ge=1)


class OrderbookValidationConfig(FrozenConfig):
    """Corroborate levels with resting order walls"""

    enabled: bool = False
    min_wall_percent: float = Field(default=5.0, ge=0, le=100)
    strength_boost: float = Field(default=0.15, ge=0, le=1)
    max_distance_percent: float = Field(default=0.3, ge=0)
    require_confirmation: bool = False


class VolumeProfileIntegrationConfig(FrozenConfig):
    """Blend volume profile nodes into the swing level set"""

    enabled: bool = False
    boost_hvn_match: bool = True
    hvn_match_threshold_percent: float = Field(default=0.2, ge=0)
    hvn_strength_boost: float = Field(default=0.1, ge=0, le=1)
    add_vah_val_levels: bool = False
    vah_val_strength: float = Field(default=0.5, ge=0, le=1)


class VolumeProfileConfig(FrozenConfig):
    """Volume profile analyzer settings"""

    lookback_candles: int = Field(default=200, ge=1)
    value_area_percent: float = Field(default=70.0, gt=0, le=100)
    price_tick_size: float = Field(default=0.1, gt=0, description="Bucket size as a percent of the lowest price")
    hvn_threshold: float = Field(default=1.5, gt=0)
    lvn_threshold: float = Field(default=0.5, ge=0)
    max_distance_percent: float = Field(default=1.0, gt=0)
    base_confidence: float = Field(default=60.0, ge=0, le=100)
    max_confidence: float = Field(default=85.0, ge=0, le=100)
    min_candles: int = Field(default=20, ge=1)
    signal_weight: float = Field(default=0.18, ge=0)
    signal_priority: int = 7

    @model_validator(mode='after')
    def check_confidence_range(self):
        if self.base_confidence > self.max_confidence:
            raise ValueError("base_confidence must not exceed max_confidence")
        return self


class LevelStrengthConfig(FrozenConfig):
    """Inputs of the level strength model"""

    min_touches_for_strong: int = Field(default=5, ge=1)
    recency_decay_days: float = Field(default=7.0, gt=0)
    volume_boost_threshold: float = Field(default=1.5, gt=0)
    time_weighted: TimeWeightedStrengthConfig = Field(default_factory=TimeWeightedStrengthConfig)
    timeframe_aware_decay: TimeframeAwareDecayConfig = Field(default_factory=TimeframeAwareDecayConfig)

    @property
    def effective_decay_days(self) -> float:
        return self.timeframe_aware_decay.decay_days(self.recency_decay_days)


class LevelAnalyzerConfig(FrozenConfig):
    """
    Level analyzer settings

    Percent values are expressed in percent (0.5 means 0.5%), not as
    ratios.
    """

    cluster_threshold_percent: float = Field(default=0.5, gt=0)
    min_touches_required: int = Field(default=3, ge=1)
    min_touches_for_strong: int = Field(default=5, ge=1)
    max_distance_percent: float = Field(default=1.0, gt=0)
    very_close_distance_percent: float = Field(default=0.3, ge=0)
    recency_decay_days: float = Field(default=7.0, gt=0)
    volume_boost_threshold: float = Field(default=1.5, gt=0)
    base_confidence: float = Field(default=60.0, ge=0, le=100)
    max_confidence: float = Field(default=90.0, ge=0, le=100)
    tiebreak_preference: TiebreakPreference = TiebreakPreference.NEAREST

    dynamic_cluster_threshold: DynamicClusterThresholdConfig = Field(default_factory=DynamicClusterThresholdConfig)
    time_weighted_strength: TimeWeightedStrengthConfig = Field(default_factory=TimeWeightedStrengthConfig)
    timeframe_aware_decay: TimeframeAwareDecayConfig = Field(default_factory=TimeframeAwareDecayConfig)

    max_level_age_candles: Optional[int] = Field(default=None, ge=1)
    candle_interval_minutes: float = Field(default=1.0, gt=0)
    trend_aligned_distance_multiplier: float = Field(default=1.5, gt=0)

    level_exhaustion: LevelExhaustionConfig = Field(default_factory=LevelExhaustionConfig)
    orderbook_validation: OrderbookValidationConfig = Field(default_factory=OrderbookValidationConfig)
    volume_profile: VolumeProfileIntegrationConfig = Field(default_factory=VolumeProfileIntegrationConfig)

    min_candles_required: int = Field(default=1, ge=0)
    signal_weight: float = Field(default=0.25, ge=0)
    signal_priority: int = 7

    @field_validator('tiebreak_preference', mode='before')
    @classmethod
    def normalize_tiebreak(cls, value):
        if isinstance(value, str):
            return value.upper()
        return value

    @model_validator(mode='after')
    def check_confidence_range(self):
        if self.base_confidence > self.max_confidence:
            raise ValueError("base_confidence must not exceed max_confidence")
        return self

    @property
    def cluster_threshold_ratio(self) -> float:
        return self.cluster_threshold_percent / 100

    def strength_config(self) -> LevelStrengthConfig:
        """Strength model settings derived from this snapshot"""
        return LevelStrengthConfig(
            min_touches_for_strong=self.min_touches_for_strong,
            recency_decay_days=self.recency_decay_days,
            volume_boost_threshold=self.volume_boost_threshold,
            time_weighted=self.time_weighted_strength,
            timeframe_aware_decay=self.timeframe_aware_decay,
        )

    def with_overrides(self, **overrides) -> "LevelAnalyzerConfig":
        """
        Build a new validated snapshot with some fields replaced

        Nested sections may be given as dicts, which are merged into the
        current section values.

        Raises:
            ConfigurationException: If the result is invalid
        """
        return merge_config(self, overrides)

    @classmethod
    def for_timeframe(cls, timeframe: str, **overrides) -> "LevelAnalyzerConfig":
        """
        Defaults tuned to a candle timeframe

        Sets the candle interval and turns on timeframe-aware decay.

        Args:
            timeframe: Timeframe label such as "1m" or "15m"
            **overrides: Further field overrides
        """
        minutes = parse_timeframe_to_minutes(timeframe)
        base = {
            'candle_interval_minutes': minutes,
            'timeframe_aware_decay': {'enabled': True, 'candle_interval_minutes': minutes},
        }
        return merge_config(build_config(cls, {}), {**base, **overrides})


class RegistryConfig(FrozenConfig):
    """Which built-in analyzers to register and their admission gates"""

    level_analyzer_enabled: bool = True
    volume_profile_enabled: bool = True
    min_swing_points: int = Field(default=4, ge=0)
    min_candles: int = Field(default=50, ge=0)


class EngineSettings(BaseSettings):
    """
    Top-level settings of the signal engine

    Nested values can be overridden from the environment, e.g.
    ``SIGNAL_ENGINE_LEVEL__MAX_DISTANCE_PERCENT=1.5``.
    """

    model_config = SettingsConfigDict(
        env_prefix="SIGNAL_ENGINE_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
        frozen=True,
    )

    service_name: str = "signal-engine"
    version: str = "1.0.0"
    environment: str = "development"
    log_level: LogLevel = LogLevel.INFO
    log_format: LogFormat = LogFormat.JSON
    log_file: Optional[Path] = None

    level: LevelAnalyzerConfig = Field(default_factory=LevelAnalyzerConfig)
    volume_profile: VolumeProfileConfig = Field(default_factory=VolumeProfileConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)


def build_config(config_cls: Type[ConfigT], data: Dict[str, Any]) -> ConfigT:
    """
    Validate ``data`` into ``config_cls``

    Raises:
        ConfigurationException: With the offending field paths
    """
    try:
        return config_cls(**data)
    except ValidationError as e:
        invalid = ['.'.join(str(part) for part in error['loc']) or '__root__' for error in e.errors()]
        raise ConfigurationException(
            f"Invalid {config_cls.__name__}: {e.error_count()} error(s)",
            config_section=config_cls.__name__,
            invalid_params=invalid,
            original_exception=e
        ) from e


def merge_config(config: ConfigT, overrides: Dict[str, Any]) -> ConfigT:
    """Re-validate ``config`` with ``overrides`` applied on top"""
    data = config.model_dump()
    for key, value in overrides.items():
        if isinstance(value, BaseModel):
            value = value.model_dump()
        if isinstance(value, dict) and isinstance(data.get(key), dict):
            data[key] = {**data[key], **value}
        else:
            data[key] = value
    return build_config(type(config), data)


_settings: Optional[EngineSettings] = None


def get_settings() -> EngineSettings:
    """
    Process-wide settings instance

    Returns:
        Cached EngineSettings
    """
    global _settings
    if _settings is None:
        _settings = build_config(EngineSettings, {})
    return _settings


def reload_settings() -> EngineSettings:
    """
    Rebuild settings from the environment

    Returns:
        Fresh EngineSettings
    """
    global _settings
    _settings = build_config(EngineSettings, {})
    return _settings


def configure_logging_from_settings(settings: Optional[EngineSettings] = None, force: bool = False) -> None:
    """
    Configure structlog from the logging fields of the settings

    Args:
        settings: Engine settings (process-wide settings when omitted)
        force: Reconfigure even if logging was already configured
    """
    settings = settings or get_settings()
    configure_logging(
        level=settings.log_level,
        format_type=settings.log_format,
        log_file=settings.log_file,
        service_name=settings.service_name,
        service_version=settings.version,
        environment=settings.environment,
        force=force,
    )


def load_settings_from_file(config_path: Union[str, Path]) -> EngineSettings:
    """
    Load settings from a YAML file

    Args:
        config_path: Path of the YAML file

    Returns:
        EngineSettings instance
    """
    import yaml

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        config_data = yaml.safe_load(f) or {}

    return build_config(EngineSettings, config_data)


def save_settings_to_file(settings: EngineSettings, config_path: Union[str, Path]) -> None:
    """
    Save settings to a YAML file

    Args:
        settings: Settings to save
        config_path: Destination path
    """
    import yaml

    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(settings.model_dump(mode='json'), f, default_flow_style=False, allow_unicode=True)
