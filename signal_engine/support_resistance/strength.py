"""
Level strength model.

Strength on a 0-1 scale is a weighted sum of three capped factors:

- touches (up to 0.5): ``min(touches / min_touches_for_strong, 1)``
- recency (up to 0.3): linear decay over ``recency_decay_days``
- volume (up to 0.2): volume at touches relative to the average candle

An optional time-weighting pass multiplies the sum by a bonus for the
share of touches inside a recent window; the result is re-capped at 1.
"""

import bisect
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

from ..config import LevelStrengthConfig
from ..models import Candle, SwingPoint
from ..utils.helpers import clamp, ensure_datetime

TOUCH_WEIGHT = 0.5
RECENCY_WEIGHT = 0.3
VOLUME_WEIGHT = 0.2

# A candle matches a touch if its open time lies within this window
TOUCH_TIMESTAMP_TOLERANCE = timedelta(seconds=60)

_SECONDS_PER_DAY = 86400.0


def calculate_level_strength(
    touches: int,
    last_touch_timestamp: datetime,
    now: datetime,
    avg_volume_at_touch: Optional[float] = None,
    avg_candle_volume: Optional[float] = None,
    touch_timestamps: Optional[Sequence[datetime]] = None,
    config: Optional[LevelStrengthConfig] = None,
) -> float:
    """
    Score a level

    Args:
        touches: Number of swing points in the level's cluster
        last_touch_timestamp: Most recent touch
        now: Evaluation time
        avg_volume_at_touch: Mean candle volume at the touches
        avg_candle_volume: Mean candle volume over the whole window
        touch_timestamps: All touch times, used by time weighting
        config: Strength settings (defaults when omitted)

    Returns:
        Strength in [0, 1]
    """
    config = config or LevelStrengthConfig()
    now = ensure_datetime(now)
    last_touch_timestamp = ensure_datetime(last_touch_timestamp)

    touch_strength = min(touches / config.min_touches_for_strong, 1.0) * TOUCH_WEIGHT

    days_since_last_touch = (now - last_touch_timestamp).total_seconds() / _SECONDS_PER_DAY
    recency_factor = clamp(1 - days_since_last_touch / config.effective_decay_days, 0.0, 1.0)
    recency_strength = recency_factor * RECENCY_WEIGHT

    volume_strength = 0.0
    if avg_volume_at_touch is not None and avg_candle_volume is not None and avg_candle_volume > 0:
        volume_ratio = avg_volume_at_touch / avg_candle_volume
        volume_strength = min(volume_ratio / config.volume_boost_threshold, 1.0) * VOLUME_WEIGHT

    strength = touch_strength + recency_strength + volume_strength

    time_weighted = config.time_weighted
    if time_weighted.enabled and touch_timestamps:
        recent_threshold = now - timedelta(hours=time_weighted.recent_period_hours)
        recent_touches = sum(1 for ts in touch_timestamps if ensure_datetime(ts) >= recent_threshold)
        recent_ratio = recent_touches / len(touch_timestamps)
        strength *= 1 + recent_ratio * time_weighted.recent_touch_bonus_percent / 100

    return clamp(strength, 0.0, 1.0)


def calculate_avg_candle_volume(candles: Sequence[Candle]) -> float:
    if not candles:
        return 0.0
    return sum(candle.volume for candle in candles) / len(candles)


def calculate_avg_volume_at_touches(points: Iterable[SwingPoint], candles: Sequence[Candle]) -> float:
    """
    Mean volume of the candles at which the swing points occurred

    Each touch is matched to the nearest candle whose timestamp lies
    strictly within ``TOUCH_TIMESTAMP_TOLERANCE``; unmatched touches are
    skipped.

    Returns:
        Average matched volume, 0 when nothing matches
    """
    if not candles:
        return 0.0

    ordered = sorted(candles, key=lambda c: c.timestamp)
    stamps = [candle.timestamp for candle in ordered]

    total_volume = 0.0
    matched = 0
    for point in points:
        idx = bisect.bisect_left(stamps, point.timestamp)
        best = None
        for candidate in (idx - 1, idx):
            if 0 <= candidate < len(ordered):
                gap = abs(stamps[candidate] - point.timestamp)
                if gap < TOUCH_TIMESTAMP_TOLERANCE and (best is None or gap < best[0]):
                    best = (gap, ordered[candidate])
        if best is not None:
            total_volume += best[1].volume
            matched += 1

    return total_volume / matched if matched else 0.0


class LevelStrengthModel:
    """
    Strength scoring bound to one configuration snapshot

    Args:
        config: Strength settings
    """

    def __init__(self, config: Optional[LevelStrengthConfig] = None):
        self.config = config or LevelStrengthConfig()

    def score(
        self,
        touches: int,
        last_touch_timestamp: datetime,
        now: datetime,
        avg_volume_at_touch: Optional[float] = None,
        avg_candle_volume: Optional[float] = None,
        touch_timestamps: Optional[Sequence[datetime]] = None,
    ) -> float:
        return calculate_level_strength(
            touches=touches,
            last_touch_timestamp=last_touch_timestamp,
            now=now,
            avg_volume_at_touch=avg_volume_at_touch,
            avg_candle_volume=avg_candle_volume,
            touch_timestamps=touch_timestamps,
            config=self.config,
        )
