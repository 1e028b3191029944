"""
Level data types.

A level is rebuilt from the current swing points on every analysis
call; enrichment steps derive new Level instances rather than mutating
existing ones.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ..models import OrderBookSide, OrderBookWall, SignalDirection, TrendContext
from ..utils.helpers import clamp, percent_distance


class LevelType(str, Enum):
    """Type of price level"""
    SUPPORT = "SUPPORT"
    RESISTANCE = "RESISTANCE"

    @property
    def direction(self) -> SignalDirection:
        """Direction of a bounce off this kind of level"""
        return SignalDirection.LONG if self == LevelType.SUPPORT else SignalDirection.SHORT

    @property
    def wall_side(self) -> OrderBookSide:
        """Order book side whose walls defend this kind of level"""
        return OrderBookSide.BID if self == LevelType.SUPPORT else OrderBookSide.ASK

    def trend_aligned(self, trend_context: Optional[TrendContext]) -> bool:
        if trend_context is None:
            return False
        trend_context = TrendContext(trend_context)
        return (
            (self == LevelType.SUPPORT and trend_context == TrendContext.UPTREND)
            or (self == LevelType.RESISTANCE and trend_context == TrendContext.DOWNTREND)
        )


class LevelSource(str, Enum):
    """Where a level came from"""
    SWING = "SWING"
    VOLUME_PROFILE = "VOLUME_PROFILE"
    COMBINED = "COMBINED"


@dataclass(frozen=True)
class Level:
    """Clustered and scored price zone"""
    price: float
    level_type: LevelType
    strength: float  # 0.0 to 1.0
    touches: int
    last_touch_timestamp: datetime
    avg_volume_at_touch: float = 0.0
    source: Optional[LevelSource] = None
    volume_profile_match: bool = False
    breakouts: Optional[int] = None
    exhaustion_penalty: Optional[float] = None
    orderbook_confirmed: bool = False
    orderbook_wall: Optional[OrderBookWall] = None

    def __post_init__(self):
        object.__setattr__(self, 'level_type', LevelType(self.level_type))
        object.__setattr__(self, 'strength', clamp(float(self.strength), 0.0, 1.0))

    def distance_percent(self, price: float) -> float:
        """Distance from ``price`` to this level, in percent of the level price"""
        return percent_distance(price, self.price)

    def is_on_correct_side(self, price: float) -> bool:
        """Price must sit at or above support and at or below resistance"""
        if self.level_type == LevelType.SUPPORT:
            return price >= self.price
        return price <= self.price

    def to_dict(self) -> Dict[str, Any]:
        return {
            'price': self.price,
            'level_type': self.level_type.value,
            'strength': round(self.strength, 4),
            'touches': self.touches,
            'last_touch_timestamp': self.last_touch_timestamp.isoformat(),
            'avg_volume_at_touch': self.avg_volume_at_touch,
            'source': self.source.value if self.source else None,
            'volume_profile_match': self.volume_profile_match,
            'breakouts': self.breakouts,
            'exhaustion_penalty': self.exhaustion_penalty,
            'orderbook_confirmed': self.orderbook_confirmed,
            'orderbook_wall': self.orderbook_wall.to_dict() if self.orderbook_wall else None,
        }


@dataclass(frozen=True)
class AllLevelsResult:
    """Every clustered level on both sides, with optional enrichment inputs"""
    support: List[Level] = field(default_factory=list)
    resistance: List[Level] = field(default_factory=list)
    volume_profile: Optional[Any] = None
    trend_context: Optional[TrendContext] = None


@dataclass(frozen=True)
class LevelAnalysisResult:
    """Outcome of one level analysis"""
    nearest_level: Optional[Level]
    distance_percent: float
    direction: SignalDirection
    confidence: float
    reason: str
    all_levels: AllLevelsResult

    @property
    def is_actionable(self) -> bool:
        return self.nearest_level is not None and self.direction != SignalDirection.HOLD

    def to_dict(self) -> Dict[str, Any]:
        return {
            'nearest_level': self.nearest_level.to_dict() if self.nearest_level else None,
            'distance_percent': self.distance_percent,
            'direction': self.direction.value,
            'confidence': self.confidence,
            'reason': self.reason,
            'support': [level.to_dict() for level in self.all_levels.support],
            'resistance': [level.to_dict() for level in self.all_levels.resistance],
        }
