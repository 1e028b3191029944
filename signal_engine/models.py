"""
Market data types shared by the level analyzer and the analyzer registry.

All types are immutable; analyzers receive them read-only and build
fresh results on every call.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .utils.exceptions import InvalidDataException
from .utils.helpers import ensure_datetime, normalize_ohlcv_frame, to_float


class SwingPointType(str, Enum):
    """Kind of local price extremum"""
    HIGH = "HIGH"
    LOW = "LOW"


class SignalDirection(str, Enum):
    """Trade direction proposed by an analyzer"""
    LONG = "LONG"
    SHORT = "SHORT"
    HOLD = "HOLD"


class TrendContext(str, Enum):
    """Trend label supplied by an external trend classifier"""
    UPTREND = "UPTREND"
    DOWNTREND = "DOWNTREND"
    NEUTRAL = "NEUTRAL"


class OrderBookSide(str, Enum):
    BID = "BID"
    ASK = "ASK"


@dataclass(frozen=True)
class Candle:
    """Single OHLCV bar"""
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, 'timestamp', ensure_datetime(self.timestamp))
        for name in ('open', 'high', 'low', 'close', 'volume'):
            object.__setattr__(self, name, to_float(getattr(self, name)))

        if self.high < self.low:
            raise InvalidDataException(
                f"Candle high {self.high} is below low {self.low}",
                field_name="high",
                invalid_value=self.high
            )
        if self.volume < 0:
            raise InvalidDataException("Candle volume must be non-negative", field_name="volume", invalid_value=self.volume)


@dataclass(frozen=True)
class SwingPoint:
    """Local high or low produced by a swing detector"""
    price: float
    timestamp: datetime
    kind: SwingPointType

    def __post_init__(self):
        object.__setattr__(self, 'price', to_float(self.price))
        object.__setattr__(self, 'timestamp', ensure_datetime(self.timestamp))
        object.__setattr__(self, 'kind', SwingPointType(self.kind))


@dataclass(frozen=True)
class OrderBookLevel:
    """Aggregated resting size at one price"""
    price: float
    size: float

    def __post_init__(self):
        object.__setattr__(self, 'price', to_float(self.price))
        object.__setattr__(self, 'size', to_float(self.size))
        if self.size < 0:
            raise InvalidDataException("Order book size must be non-negative", field_name="size", invalid_value=self.size)


@dataclass(frozen=True)
class OrderBookWall:
    """Price level holding a large share of its side of the book"""
    price: float
    size: float
    side: OrderBookSide
    percent_of_total: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'price': self.price,
            'size': self.size,
            'side': self.side.value,
            'percent_of_total': round(self.percent_of_total, 2),
        }


@dataclass(frozen=True)
class OrderBookSnapshot:
    """Bid and ask depth at one instant"""
    bids: Tuple[OrderBookLevel, ...] = ()
    asks: Tuple[OrderBookLevel, ...] = ()
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, 'bids', tuple(self.bids))
        object.__setattr__(self, 'asks', tuple(self.asks))

    def walls(self, min_percent: float = 0.0) -> List[OrderBookWall]:
        """
        Find walls on both sides of the book

        Args:
            min_percent: Minimum share of its own side's total size, in percent

        Returns:
            Walls ordered by side then descending share
        """
        walls: List[OrderBookWall] = []
        for side, levels in ((OrderBookSide.BID, self.bids), (OrderBookSide.ASK, self.asks)):
            total = sum(level.size for level in levels)
            if total <= 0:
                continue
            side_walls = [
                OrderBookWall(
                    price=level.price,
                    size=level.size,
                    side=side,
                    percent_of_total=level.size / total * 100,
                )
                for level in levels
                if level.size / total * 100 >= min_percent
            ]
            walls.extend(sorted(side_walls, key=lambda w: w.percent_of_total, reverse=True))
        return walls


@dataclass(frozen=True)
class AnalyzerSignal:
    """A single analyzer's verdict"""
    source: str
    direction: SignalDirection
    confidence: float
    weight: float
    priority: int
    reason: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'direction', SignalDirection(self.direction))
        if not 0 <= self.confidence <= 100:
            raise InvalidDataException(
                "Signal confidence must be within [0, 100]",
                field_name="confidence",
                invalid_value=self.confidence
            )
        if self.weight < 0:
            raise InvalidDataException("Signal weight must be non-negative", field_name="weight", invalid_value=self.weight)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'source': self.source,
            'direction': self.direction.value,
            'confidence': self.confidence,
            'weight': self.weight,
            'priority': self.priority,
            'reason': self.reason,
        }


@dataclass(frozen=True)
class MarketSnapshot:
    """
    Everything analyzers may read during one signal collection round

    The snapshot is shared by every analyzer evaluated concurrently in a
    round, so it is frozen and holds tuples rather than lists.
    """
    symbol: str
    current_price: float
    timestamp: datetime
    candles: Tuple[Candle, ...] = ()
    swing_points: Tuple[SwingPoint, ...] = ()
    atr_percent: Optional[float] = None
    orderbook: Optional[OrderBookSnapshot] = None
    trend_context: Optional[TrendContext] = None
    timeframe: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'current_price', to_float(self.current_price))
        object.__setattr__(self, 'timestamp', ensure_datetime(self.timestamp))
        object.__setattr__(self, 'candles', tuple(self.candles))
        object.__setattr__(self, 'swing_points', tuple(self.swing_points))
        if self.trend_context is not None:
            object.__setattr__(self, 'trend_context', TrendContext(self.trend_context))

    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        symbol: str,
        swing_points: Sequence[SwingPoint] = (),
        current_price: Optional[float] = None,
        timestamp: Optional[datetime] = None,
        **kwargs
    ) -> "MarketSnapshot":
        """
        Build a snapshot from an OHLCV DataFrame

        Args:
            df: OHLCV frame with a timestamp column or DatetimeIndex
            symbol: Trading symbol
            swing_points: Swing points detected on the same data
            current_price: Defaults to the last close
            timestamp: Defaults to the last candle's timestamp
            **kwargs: Remaining snapshot fields

        Returns:
            Market snapshot
        """
        candles = candles_from_frame(df)
        last = candles[-1]
        return cls(
            symbol=symbol,
            current_price=last.close if current_price is None else current_price,
            timestamp=last.timestamp if timestamp is None else timestamp,
            candles=tuple(candles),
            swing_points=tuple(swing_points),
            **kwargs
        )


def candles_from_frame(df: pd.DataFrame) -> List[Candle]:
    """
    Convert an OHLCV DataFrame into candles ordered by time

    Args:
        df: OHLCV frame

    Returns:
        List of candles
    """
    data = normalize_ohlcv_frame(df)
    return [
        Candle(
            timestamp=row.timestamp,
            open=row.open,
            high=row.high,
            low=row.low,
            close=row.close,
            volume=row.volume,
        )
        for row in data.itertuples(index=False)
    ]
