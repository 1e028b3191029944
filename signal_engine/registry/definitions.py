"""
Built-in analyzer definitions.

Adapters exposing the level analyzer and the volume profile analyzer
through the registry's single ``evaluate(snapshot)`` capability.
"""

from typing import List, Optional

from ..config import EngineSettings, LevelAnalyzerConfig, RegistryConfig, VolumeProfileConfig, get_settings
from ..models import AnalyzerSignal, MarketSnapshot
from ..support_resistance import LEVEL_ANALYZER_SOURCE, VOLUME_PROFILE_SOURCE, LevelAnalyzer, VolumeProfileAnalyzer
from ..utils.logger import get_analyzer_logger
from .analyzer_registry import AnalyzerDefinition, AnalyzerRegistry


class LevelSignalAnalyzer:
    """
    Level analyzer gated on enough swing points and candles

    Args:
        analyzer: Level analyzer to delegate to
        min_swing_points: Skip snapshots with fewer swing points
        min_candles: Skip snapshots with fewer candles
    """

    name = LEVEL_ANALYZER_SOURCE

    def __init__(self, analyzer: Optional[LevelAnalyzer] = None, min_swing_points: int = 4, min_candles: int = 50):
        self.analyzer = analyzer or LevelAnalyzer()
        self.min_swing_points = min_swing_points
        self.min_candles = min_candles

    def evaluate(self, snapshot: MarketSnapshot) -> Optional[AnalyzerSignal]:
        if len(snapshot.swing_points) < self.min_swing_points or len(snapshot.candles) < self.min_candles:
            return None
        return self.analyzer.generate_signal(
            snapshot.swing_points,
            snapshot.current_price,
            snapshot.candles,
            snapshot.timestamp,
            atr_percent=snapshot.atr_percent,
            trend_context=snapshot.trend_context,
        )

    def definition(self, enabled: bool = True) -> AnalyzerDefinition:
        config = self.analyzer.config
        return AnalyzerDefinition(
            name=self.name,
            weight=config.signal_weight,
            priority=config.signal_priority,
            evaluate=self.evaluate,
            enabled=enabled,
        )


class VolumeProfileSignalAnalyzer:
    """
    Volume profile analyzer as a registry source

    Args:
        analyzer: Volume profile analyzer to delegate to
    """

    name = VOLUME_PROFILE_SOURCE

    def __init__(self, analyzer: Optional[VolumeProfileAnalyzer] = None):
        self.analyzer = analyzer or VolumeProfileAnalyzer()

    def evaluate(self, snapshot: MarketSnapshot) -> Optional[AnalyzerSignal]:
        if len(snapshot.candles) < self.analyzer.config.min_candles:
            return None
        return self.analyzer.generate_signal(snapshot.candles, snapshot.current_price)

    def definition(self, enabled: bool = True) -> AnalyzerDefinition:
        config = self.analyzer.config
        return AnalyzerDefinition(
            name=self.name,
            weight=config.signal_weight,
            priority=config.signal_priority,
            evaluate=self.evaluate,
            enabled=enabled,
        )


def build_core_definitions(
    settings: Optional[EngineSettings] = None,
    logger=None,
) -> List[AnalyzerDefinition]:
    """
    Definitions of the built-in analyzers

    Args:
        settings: Engine settings (process-wide settings when omitted)
        logger: Logger injected into the analyzers; each analyzer gets
            its own analyzer-bound logger when omitted

    Returns:
        Level and volume profile definitions, enabled per the registry settings
    """
    settings = settings or get_settings()
    level_config: LevelAnalyzerConfig = settings.level
    profile_config: VolumeProfileConfig = settings.volume_profile
    registry_config: RegistryConfig = settings.registry

    level_logger = logger or get_analyzer_logger(LEVEL_ANALYZER_SOURCE)
    profile_logger = logger or get_analyzer_logger(VOLUME_PROFILE_SOURCE)

    level = LevelSignalAnalyzer(
        LevelAnalyzer(level_config, logger=level_logger, volume_profile_config=profile_config),
        min_swing_points=registry_config.min_swing_points,
        min_candles=registry_config.min_candles,
    )
    profile = VolumeProfileSignalAnalyzer(VolumeProfileAnalyzer(profile_config, logger=profile_logger))

    return [
        level.definition(enabled=registry_config.level_analyzer_enabled),
        profile.definition(enabled=registry_config.volume_profile_enabled),
    ]


def create_default_registry(settings: Optional[EngineSettings] = None, logger=None) -> AnalyzerRegistry:
    """Registry pre-loaded with the built-in analyzers"""
    registry = AnalyzerRegistry(logger=logger)
    registry.register_batch(build_core_definitions(settings, logger=logger))
    return registry
