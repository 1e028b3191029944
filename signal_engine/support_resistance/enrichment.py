"""
Optional level enrichments applied to the full level set.

Each step takes levels and returns new ones; none of them mutate their
input.
"""

from dataclasses import replace
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from ..config import (
    LevelExhaustionConfig,
    OrderbookValidationConfig,
    VolumeProfileIntegrationConfig,
)
from ..models import Candle, OrderBookSnapshot, OrderBookWall
from ..utils.helpers import ensure_datetime, percent_distance
from .levels import Level, LevelSource, LevelType
from .volume_profile import VolumeProfileResult

# Exhausted levels keep at least this much strength. Calibration value.
EXHAUSTION_STRENGTH_FLOOR = 0.1


def filter_by_age(
    levels: Sequence[Level],
    now: datetime,
    max_age_candles: int,
    candle_interval_minutes: float,
) -> List[Level]:
    """
    Drop levels whose last touch is older than the age limit

    Args:
        levels: Levels to filter
        now: Evaluation time
        max_age_candles: Age limit in candles
        candle_interval_minutes: Candle length in minutes

    Returns:
        Levels touched within ``max_age_candles * candle_interval_minutes``
    """
    max_age = timedelta(minutes=max_age_candles * candle_interval_minutes)
    now = ensure_datetime(now)
    return [level for level in levels if now - level.last_touch_timestamp <= max_age]


def count_breakouts(
    level: Level,
    candles: Sequence[Candle],
    breakout_threshold_percent: float,
) -> int:
    """Closes beyond the level by more than the threshold (below support, above resistance)"""
    threshold = level.price * breakout_threshold_percent / 100
    if level.level_type == LevelType.SUPPORT:
        return sum(1 for candle in candles if candle.close < level.price - threshold)
    return sum(1 for candle in candles if candle.close > level.price + threshold)


def exhaustion_penalty(breakouts: int, penalty_per_breakout: float, max_penalty: float) -> float:
    return min(breakouts * penalty_per_breakout, max_penalty)


def apply_level_exhaustion(
    levels: Sequence[Level],
    candles: Sequence[Candle],
    config: LevelExhaustionConfig,
) -> List[Level]:
    """
    Reduce the strength of levels price keeps closing through

    Strength becomes ``max(strength * (1 - penalty), EXHAUSTION_STRENGTH_FLOOR)``
    where the penalty grows per breakout up to ``max_penalty``. Levels
    without breakouts are returned unchanged.

    Args:
        levels: Levels to check
        candles: Candles in time order; only the last ``lookback_candles`` count
        config: Exhaustion settings

    Returns:
        Levels with ``breakouts`` and ``exhaustion_penalty`` filled in
        where breakouts occurred
    """
    recent = list(candles)[-config.lookback_candles:]
    result = []
    for level in levels:
        breakouts = count_breakouts(level, recent, config.breakout_threshold_percent)
        if breakouts == 0:
            result.append(level)
            continue
        penalty = exhaustion_penalty(breakouts, config.penalty_per_breakout, config.max_penalty)
        result.append(replace(
            level,
            breakouts=breakouts,
            exhaustion_penalty=penalty,
            strength=max(level.strength * (1 - penalty), EXHAUSTION_STRENGTH_FLOOR),
        ))
    return result


def find_confirming_wall(
    level: Level,
    walls: Sequence[OrderBookWall],
    max_distance_percent: float,
) -> Optional[OrderBookWall]:
    """Closest wall on the defending side within ``max_distance_percent`` of the level"""
    side = level.level_type.wall_side
    candidates = [
        (percent_distance(wall.price, level.price), wall)
        for wall in walls
        if wall.side == side
    ]
    candidates = [item for item in candidates if item[0] <= max_distance_percent]
    if not candidates:
        return None
    return min(candidates, key=lambda item: item[0])[1]


def confirm_with_orderbook(
    levels: Sequence[Level],
    orderbook: OrderBookSnapshot,
    config: OrderbookValidationConfig,
) -> List[Level]:
    """
    Boost levels defended by a resting order wall

    Bid walls confirm support and ask walls confirm resistance. A
    confirmed level gains ``strength_boost`` (capped at 1) and records
    the wall. With ``require_confirmation`` unconfirmed levels are
    dropped.

    Args:
        levels: Levels of one or both types
        orderbook: Order book snapshot
        config: Order book validation settings

    Returns:
        Confirmed and (unless confirmation is required) unconfirmed levels
    """
    walls = orderbook.walls(config.min_wall_percent)
    result = []
    for level in levels:
        wall = find_confirming_wall(level, walls, config.max_distance_percent)
        if wall is None:
            if not config.require_confirmation:
                result.append(level)
            continue
        result.append(replace(
            level,
            orderbook_confirmed=True,
            orderbook_wall=wall,
            strength=min(level.strength + config.strength_boost, 1.0),
        ))
    return result


def boost_volume_profile_matches(
    levels: Sequence[Level],
    profile: VolumeProfileResult,
    config: VolumeProfileIntegrationConfig,
) -> List[Level]:
    """Boost levels sitting on a high volume node or the POC"""
    node_prices = profile.high_volume_prices
    result = []
    for level in levels:
        matches = any(
            percent_distance(level.price, price) <= config.hvn_match_threshold_percent
            for price in node_prices
        )
        if matches:
            level = replace(
                level,
                strength=min(level.strength + config.hvn_strength_boost, 1.0),
                volume_profile_match=True,
                source=LevelSource.COMBINED,
            )
        result.append(level)
    return result


def volume_profile_level(
    price: float,
    level_type: LevelType,
    strength: float,
    now: datetime,
) -> Level:
    """Level placed at a value area boundary; it has no swing touches"""
    return Level(
        price=price,
        level_type=level_type,
        strength=strength,
        touches=0,
        last_touch_timestamp=ensure_datetime(now),
        avg_volume_at_touch=0.0,
        source=LevelSource.VOLUME_PROFILE,
    )
