"""
Configuration for the signal engine.

Immutable pydantic snapshots for each analyzer plus the
environment/YAML-backed EngineSettings.
"""

from .engine_config import (
    DynamicClusterThresholdConfig,
    EngineSettings,
    LevelAnalyzerConfig,
    LevelExhaustionConfig,
    LevelStrengthConfig,
    OrderbookValidationConfig,
    RegistryConfig,
    TiebreakPreference,
    TimeframeAwareDecayConfig,
    TimeWeightedStrengthConfig,
    VolumeProfileConfig,
    VolumeProfileIntegrationConfig,
    build_config,
    configure_logging_from_settings,
    get_settings,
    load_settings_from_file,
    merge_config,
    reload_settings,
    save_settings_to_file,
)

__all__ = [
    "DynamicClusterThresholdConfig",
    "EngineSettings",
    "LevelAnalyzerConfig",
    "LevelExhaustionConfig",
    "LevelStrengthConfig",
    "OrderbookValidationConfig",
    "RegistryConfig",
    "TiebreakPreference",
    "TimeframeAwareDecayConfig",
    "TimeWeightedStrengthConfig",
    "VolumeProfileConfig",
    "VolumeProfileIntegrationConfig",
    "build_config",
    "configure_logging_from_settings",
    "get_settings",
    "load_settings_from_file",
    "merge_config",
    "reload_settings",
    "save_settings_to_file",
]
