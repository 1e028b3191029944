"""
Signal Engine

Support/resistance level detection and weighted signal aggregation for
algorithmic trading.

Key Features:
- Swing point clustering with volatility-adaptive thresholds
- Level strength from touches, recency and volume at touches
- Nearest-level selection with trend-aware distance caps and tiebreaks
- Level exhaustion, order book wall confirmation and volume profile blending
- Concurrent, fault-isolated evaluation of many analyzers per round
"""

import logging

from .config import EngineSettings, LevelAnalyzerConfig, VolumeProfileConfig, get_settings
from .models import (
    AnalyzerSignal,
    Candle,
    MarketSnapshot,
    OrderBookLevel,
    OrderBookSnapshot,
    SignalDirection,
    SwingPoint,
    SwingPointType,
    TrendContext,
)
from .registry import AnalyzerDefinition, AnalyzerRegistry, CollectionReport, create_default_registry
from .support_resistance import Level, LevelAnalyzer, LevelType, VolumeProfileAnalyzer
from .utils.logger import configure_logging, get_logger

__version__ = "1.0.0"
__author__ = "ML-Framework Team"
__license__ = "MIT"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Data types
    "AnalyzerSignal",
    "Candle",
    "MarketSnapshot",
    "OrderBookLevel",
    "OrderBookSnapshot",
    "SignalDirection",
    "SwingPoint",
    "SwingPointType",
    "TrendContext",

    # Levels
    "Level",
    "LevelAnalyzer",
    "LevelType",
    "VolumeProfileAnalyzer",

    # Registry
    "AnalyzerDefinition",
    "AnalyzerRegistry",
    "CollectionReport",
    "create_default_registry",

    # Configuration
    "EngineSettings",
    "LevelAnalyzerConfig",
    "VolumeProfileConfig",
    "get_settings",

    # Logging
    "configure_logging",
    "get_logger",

    "__version__",
]
