"""
Support and resistance level detection

Swing points are clustered into levels, scored by touches, recency and
volume, and the nearest admissible level on each side is weighed
against the other to produce a directional signal.

## Usage Example

```python
from signal_engine.support_resistance import LevelAnalyzer

analyzer = LevelAnalyzer(max_distance_percent=1.0)
result = analyzer.analyze(swing_points, current_price, candles, now)

if result.is_actionable:
    print(result.direction, result.confidence, result.reason)

levels = analyzer.get_all_levels(swing_points, candles, now, orderbook=book)
```
"""

from .clustering import SwingCluster, SwingPointClusterer, cluster_swing_points, effective_cluster_threshold
from .detector import LEVEL_ANALYZER_SOURCE, LevelAnalyzer, calculate_confidence
from .enrichment import (
    EXHAUSTION_STRENGTH_FLOOR,
    apply_level_exhaustion,
    boost_volume_profile_matches,
    confirm_with_orderbook,
    count_breakouts,
    filter_by_age,
)
from .levels import AllLevelsResult, Level, LevelAnalysisResult, LevelSource, LevelType
from .selector import (
    TIE_SCORE_EPSILON,
    LevelSelection,
    LevelSelector,
    asymmetric_max_distance,
    select_best,
    select_nearest,
)
from .strength import (
    LevelStrengthModel,
    calculate_avg_candle_volume,
    calculate_avg_volume_at_touches,
    calculate_level_strength,
)
from .volume_profile import VOLUME_PROFILE_SOURCE, PriceLevel, VolumeProfileAnalyzer, VolumeProfileResult

__all__ = [
    # Levels
    "AllLevelsResult",
    "Level",
    "LevelAnalysisResult",
    "LevelSource",
    "LevelType",

    # Clustering
    "SwingCluster",
    "SwingPointClusterer",
    "cluster_swing_points",
    "effective_cluster_threshold",

    # Strength
    "LevelStrengthModel",
    "calculate_avg_candle_volume",
    "calculate_avg_volume_at_touches",
    "calculate_level_strength",

    # Selection
    "TIE_SCORE_EPSILON",
    "LevelSelection",
    "LevelSelector",
    "asymmetric_max_distance",
    "select_best",
    "select_nearest",

    # Enrichment
    "EXHAUSTION_STRENGTH_FLOOR",
    "apply_level_exhaustion",
    "boost_volume_profile_matches",
    "confirm_with_orderbook",
    "count_breakouts",
    "filter_by_age",

    # Analyzers
    "LEVEL_ANALYZER_SOURCE",
    "LevelAnalyzer",
    "calculate_confidence",
    "VOLUME_PROFILE_SOURCE",
    "PriceLevel",
    "VolumeProfileAnalyzer",
    "VolumeProfileResult",
]
