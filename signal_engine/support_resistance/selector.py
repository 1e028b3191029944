"""
Level selection.

Finds the nearest admissible support and resistance for a price and
decides which side to trade from, resolving near-equal scores with a
configurable tiebreak policy.
"""

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from ..config import TiebreakPreference
from ..models import SignalDirection, TrendContext
from .levels import Level, LevelType

# Scores closer than this are a tie. Calibration value, not derived.
TIE_SCORE_EPSILON = 0.01


@dataclass(frozen=True)
class LevelSelection:
    """Chosen level with the resulting direction"""
    level: Optional[Level]
    direction: SignalDirection
    distance_percent: float

    @classmethod
    def hold(cls) -> "LevelSelection":
        return cls(level=None, direction=SignalDirection.HOLD, distance_percent=math.inf)

    @classmethod
    def from_level(cls, level: Level, distance_percent: float) -> "LevelSelection":
        return cls(level=level, direction=level.level_type.direction, distance_percent=distance_percent)


def asymmetric_max_distance(
    base_distance_percent: float,
    level_type: LevelType,
    trend_context: Optional[TrendContext] = None,
    multiplier: float = 1.5,
) -> float:
    """
    Widen the distance cap for trend-aligned levels

    Support gets ``base * multiplier`` in an uptrend and resistance in a
    downtrend; everything else keeps the base cap.
    """
    if LevelType(level_type).trend_aligned(trend_context):
        return base_distance_percent * multiplier
    return base_distance_percent


def select_nearest(
    current_price: float,
    levels: Iterable[Level],
    level_type: LevelType,
    max_distance_percent: float,
) -> Optional[Level]:
    """
    Nearest admissible level of one type

    Args:
        current_price: Current market price
        levels: Candidate levels
        level_type: Side being searched
        max_distance_percent: Distance cap in percent

    Returns:
        Closest level on the correct side of price within the cap; the
        first one seen wins on equal distance
    """
    level_type = LevelType(level_type)
    nearest = None
    min_distance = math.inf

    for level in levels:
        if level.level_type != level_type or not level.is_on_correct_side(current_price):
            continue
        distance = level.distance_percent(current_price)
        if distance <= max_distance_percent and distance < min_distance:
            nearest = level
            min_distance = distance

    return nearest


def level_score(level: Level, distance_percent: float) -> float:
    """Strength discounted by distance: ``strength / (1 + distance / 100)``"""
    return level.strength / (1 + distance_percent / 100)


def select_best(
    current_price: float,
    nearest_support: Optional[Level],
    nearest_resistance: Optional[Level],
    tiebreak_preference: Union[TiebreakPreference, str] = TiebreakPreference.NEAREST,
) -> LevelSelection:
    """
    Pick the side to trade from

    A lone candidate wins outright. With both sides present the higher
    score wins unless the scores differ by less than
    ``TIE_SCORE_EPSILON``, in which case the tiebreak policy decides.

    Args:
        current_price: Current market price
        nearest_support: Admissible support, if any
        nearest_resistance: Admissible resistance, if any
        tiebreak_preference: LONG, SHORT, NEAREST or STRONGEST

    Returns:
        Selection; HOLD with infinite distance when neither side exists
    """
    if nearest_support is None and nearest_resistance is None:
        return LevelSelection.hold()

    if nearest_resistance is None:
        return LevelSelection.from_level(nearest_support, nearest_support.distance_percent(current_price))

    if nearest_support is None:
        return LevelSelection.from_level(nearest_resistance, nearest_resistance.distance_percent(current_price))

    support_distance = nearest_support.distance_percent(current_price)
    resistance_distance = nearest_resistance.distance_percent(current_price)
    support = LevelSelection.from_level(nearest_support, support_distance)
    resistance = LevelSelection.from_level(nearest_resistance, resistance_distance)

    support_score = level_score(nearest_support, support_distance)
    resistance_score = level_score(nearest_resistance, resistance_distance)

    if abs(support_score - resistance_score) < TIE_SCORE_EPSILON:
        preference = TiebreakPreference(tiebreak_preference)
        if preference == TiebreakPreference.LONG:
            return support
        if preference == TiebreakPreference.SHORT:
            return resistance
        if preference == TiebreakPreference.STRONGEST:
            return support if nearest_support.strength >= nearest_resistance.strength else resistance
        return support if support_distance <= resistance_distance else resistance

    return support if support_score > resistance_score else resistance


class LevelSelector:
    """
    Selection bound to a distance cap and tiebreak policy

    Args:
        max_distance_percent: Base distance cap in percent
        tiebreak_preference: Tie policy
        trend_aligned_distance_multiplier: Cap multiplier for trend-aligned levels
    """

    def __init__(
        self,
        max_distance_percent: float = 1.0,
        tiebreak_preference: Union[TiebreakPreference, str] = TiebreakPreference.NEAREST,
        trend_aligned_distance_multiplier: float = 1.5,
    ):
        self.max_distance_percent = max_distance_percent
        self.tiebreak_preference = TiebreakPreference(tiebreak_preference)
        self.trend_aligned_distance_multiplier = trend_aligned_distance_multiplier

    def max_distance_for(self, level_type: LevelType, trend_context: Optional[TrendContext] = None) -> float:
        return asymmetric_max_distance(
            self.max_distance_percent,
            level_type,
            trend_context,
            self.trend_aligned_distance_multiplier,
        )

    def select(
        self,
        current_price: float,
        support_levels: Iterable[Level],
        resistance_levels: Iterable[Level],
        trend_context: Optional[TrendContext] = None,
    ) -> LevelSelection:
        """Find the nearest level on each side and choose between them"""
        nearest_support = select_nearest(
            current_price, support_levels, LevelType.SUPPORT,
            self.max_distance_for(LevelType.SUPPORT, trend_context),
        )
        nearest_resistance = select_nearest(
            current_price, resistance_levels, LevelType.RESISTANCE,
            self.max_distance_for(LevelType.RESISTANCE, trend_context),
        )
        return select_best(current_price, nearest_support, nearest_resistance, self.tiebreak_preference)
