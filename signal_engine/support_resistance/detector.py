"""
Level analyzer.

Clusters swing points into support and resistance levels, scores them,
selects the level to trade from and turns it into a confidence-scored
signal. Missing or insufficient input yields a HOLD result instead of an
exception.
"""

import math
from typing import List, Optional, Sequence, Union

from ..config import LevelAnalyzerConfig, VolumeProfileConfig, build_config
from ..models import (
    AnalyzerSignal,
    Candle,
    OrderBookSnapshot,
    SignalDirection,
    SwingPoint,
    SwingPointType,
    TrendContext,
)
from ..utils.helpers import clamp, ensure_datetime, round_half_up
from ..utils.logger import LoggerMixin
from .clustering import SwingCluster, SwingPointClusterer
from .enrichment import (
    apply_level_exhaustion,
    boost_volume_profile_matches,
    confirm_with_orderbook,
    filter_by_age,
    volume_profile_level,
)
from .levels import AllLevelsResult, Level, LevelAnalysisResult, LevelSource, LevelType
from .selector import LevelSelector
from .strength import LevelStrengthModel, calculate_avg_candle_volume, calculate_avg_volume_at_touches
from .volume_profile import VolumeProfileAnalyzer

LEVEL_ANALYZER_SOURCE = "LEVEL_ANALYZER"

VERY_CLOSE_MULTIPLIER = 1.15
FAR_MULTIPLIER = 0.85
FAR_DISTANCE_RATIO = 0.7
STRENGTH_CONFIDENCE_SCALE = 20
TOUCH_BONUS_PER_TOUCH = 2
MAX_TOUCH_BONUS = 10


def calculate_confidence(level: Level, distance_percent: float, config: LevelAnalyzerConfig) -> float:
    """
    Confidence of a level-based entry

    ``base + strength * 20``, scaled up when very close and down when
    far, plus a touch bonus of up to 10; rounded half-up and clamped to
    ``[0, max_confidence]``.
    """
    confidence = config.base_confidence + level.strength * STRENGTH_CONFIDENCE_SCALE

    if distance_percent <= config.very_close_distance_percent:
        confidence *= VERY_CLOSE_MULTIPLIER
    elif distance_percent > config.max_distance_percent * FAR_DISTANCE_RATIO:
        confidence *= FAR_MULTIPLIER

    touches_bonus = min((level.touches - config.min_touches_required) * TOUCH_BONUS_PER_TOUCH, MAX_TOUCH_BONUS)
    confidence += touches_bonus

    return clamp(round_half_up(confidence), 0.0, config.max_confidence)


class LevelAnalyzer(LoggerMixin):
    """
    Support/resistance analyzer working on swing points

    The configuration is an immutable snapshot; every call reads the
    snapshot current at its start, so ``update_config`` never affects a
    call already in progress.

    Args:
        config: Analyzer settings (model or dict)
        logger: Injected logger (optional)
        volume_profile_config: Settings of the embedded volume profile
            analyzer used when volume profile integration is enabled
        **overrides: Field overrides applied on top of ``config``
    """

    def __init__(
        self,
        config: Optional[Union[LevelAnalyzerConfig, dict]] = None,
        logger=None,
        volume_profile_config: Optional[VolumeProfileConfig] = None,
        **overrides
    ):
        if config is None:
            config = LevelAnalyzerConfig()
        elif isinstance(config, dict):
            config = build_config(LevelAnalyzerConfig, config)
        if overrides:
            config = config.with_overrides(**overrides)

        if logger is not None:
            self._logger = logger
        self._config = config
        self._volume_profile_config = volume_profile_config
        self._volume_profile_analyzer: Optional[VolumeProfileAnalyzer] = None

    @property
    def config(self) -> LevelAnalyzerConfig:
        return self._config

    def update_config(self, **overrides) -> LevelAnalyzerConfig:
        """
        Replace the configuration snapshot

        Raises:
            ConfigurationException: If the overrides are invalid; the
                current snapshot is kept
        """
        self._config = self._config.with_overrides(**overrides)
        self._volume_profile_analyzer = None
        return self._config

    def get_cluster_threshold(self, atr_percent: Optional[float] = None) -> float:
        """Effective cluster threshold ratio for the current snapshot"""
        return self._clusterer(self._config).effective_threshold(atr_percent)

    def get_asymmetric_max_distance(
        self,
        level_type: LevelType,
        trend_context: Optional[TrendContext] = None,
    ) -> float:
        """
        Distance cap for a level type under a trend context

        Support gets the wider cap in an uptrend, resistance in a
        downtrend.
        """
        return self._selector(self._config).max_distance_for(level_type, trend_context)

    def build_levels(
        self,
        swing_points: Sequence[SwingPoint],
        level_type: LevelType,
        candles: Sequence[Candle],
        now,
        atr_percent: Optional[float] = None,
        min_touches: Optional[int] = None,
        config: Optional[LevelAnalyzerConfig] = None,
    ) -> List[Level]:
        """
        Cluster and score the swing points of one side

        Args:
            swing_points: Swing points of the matching kind
            level_type: Type of the resulting levels
            candles: Candles used for volume confirmation
            now: Evaluation time
            atr_percent: Current ATR percent for dynamic clustering
            min_touches: Minimum cluster size (defaults to ``min_touches_required``)
            config: Snapshot to use instead of the current one

        Returns:
            Levels in ascending price order
        """
        config = config or self._config
        if min_touches is None:
            min_touches = config.min_touches_required

        clusters = self._clusterer(config).cluster(swing_points, atr_percent, min_touches)
        if not clusters:
            return []

        strength_model = LevelStrengthModel(config.strength_config())
        avg_candle_volume = calculate_avg_candle_volume(candles)
        now = ensure_datetime(now)
        return [
            self._level_from_cluster(cluster, level_type, candles, now, avg_candle_volume, strength_model)
            for cluster in clusters
        ]

    def analyze(
        self,
        swing_points: Sequence[SwingPoint],
        current_price: float,
        candles: Sequence[Candle],
        now,
        atr_percent: Optional[float] = None,
        trend_context: Optional[TrendContext] = None,
    ) -> LevelAnalysisResult:
        """
        Analyze price against the levels built from swing points

        Args:
            swing_points: Swing highs and lows
            current_price: Current market price
            candles: Recent candles
            now: Evaluation time
            atr_percent: Current ATR percent for dynamic clustering
            trend_context: Trend label widening trend-aligned distance caps

        Returns:
            Analysis result; HOLD with confidence 0 when no level is
            actionable or the input is insufficient
        """
        config = self._config

        try:
            trend_context = TrendContext(trend_context) if trend_context else None
        except ValueError:
            self.logger.warning("unknown_trend_context", trend_context=trend_context)
            return self._hold(f"Unknown trend context: {trend_context}", AllLevelsResult())

        insufficient =self._insufficient_input_reason(swing_points, current_price, candles, config)
        if insufficient:
            return self._hold(insufficient, AllLevelsResult(trend_context=trend_context))

        highs = [p for p in swing_points if p.kind == SwingPointType.HIGH]
        lows = [p for p in swing_points if p.kind == SwingPointType.LOW]
        resistance = self.build_levels(highs, LevelType.RESISTANCE, candles, now, atr_percent, config=config)
        support = self.build_levels(lows, LevelType.SUPPORT, candles, now, atr_percent, config=config)
        all_levels = AllLevelsResult(support=support, resistance=resistance, trend_context=trend_context)

        selection = self._selector(config).select(current_price, support, resistance, trend_context)
        if selection.level is None:
            return self._hold("No valid level within distance threshold", all_levels)

        level = selection.level
        confidence = calculate_confidence(level, selection.distance_percent, config)
        reason = (
            f"{selection.direction.value} from {level.level_type.value.lower()} {level.price:.4f} "
            f"({level.touches}T, str:{level.strength:.2f}, dist:{selection.distance_percent:.2f}%)"
        )

        self.logger.debug(
            "level_analysis",
            direction=selection.direction.value,
            level_price=round(level.price, 4),
            level_type=level.level_type.value,
            touches=level.touches,
            strength=round(level.strength, 2),
            distance_percent=round(selection.distance_percent, 2),
            confidence=confidence,
        )

        return LevelAnalysisResult(
            nearest_level=level,
            distance_percent=selection.distance_percent,
            direction=selection.direction,
            confidence=confidence,
            reason=reason,
            all_levels=all_levels,
        )

    def generate_signal(
        self,
        swing_points: Sequence[SwingPoint],
        current_price: float,
        candles: Sequence[Candle],
        now,
        atr_percent: Optional[float] = None,
        trend_context: Optional[TrendContext] = None,
    ) -> Optional[AnalyzerSignal]:
        """
        Analyzer signal for the registry

        Returns:
            Signal, or None when the analysis ends in HOLD
        """
        config = self._config
        result = self.analyze(swing_points, current_price, candles, now, atr_percent, trend_context)
        if not result.is_actionable:
            return None

        return AnalyzerSignal(
            source=LEVEL_ANALYZER_SOURCE,
            direction=result.direction,
            confidence=result.confidence,
            weight=config.signal_weight,
            priority=config.signal_priority,
            reason=result.reason,
        )

    def get_all_levels(
        self,
        swing_points: Sequence[SwingPoint],
        candles: Sequence[Candle],
        now,
        atr_percent: Optional[float] = None,
        trend_context: Optional[TrendContext] = None,
        orderbook: Optional[OrderBookSnapshot] = None,
    ) -> AllLevelsResult:
        """
        Every clustered level regardless of touch count

        Enrichments run in order when enabled: age filtering, volume
        profile blending, exhaustion, then order book confirmation (only
        when an order book is given).

        Args:
            swing_points: Swing highs and lows
            candles: Recent candles
            now: Evaluation time
            atr_percent: Current ATR percent for dynamic clustering
            trend_context: Passed through to the result
            orderbook: Order book snapshot for wall confirmation

        Returns:
            Support and resistance levels plus the volume profile used
        """
        config = self._config
        now = ensure_datetime(now)

        highs = [p for p in swing_points if p.kind == SwingPointType.HIGH]
        lows = [p for p in swing_points if p.kind == SwingPointType.LOW]
        resistance = self.build_levels(highs, LevelType.RESISTANCE, candles, now, atr_percent, min_touches=1, config=config)
        support = self.build_levels(lows, LevelType.SUPPORT, candles, now, atr_percent, min_touches=1, config=config)

        if config.max_level_age_candles:
            before = (len(support), len(resistance))
            support = filter_by_age(support, now, config.max_level_age_candles, config.candle_interval_minutes)
            resistance = filter_by_age(resistance, now, config.max_level_age_candles, config.candle_interval_minutes)
            expired_support = before[0] - len(support)
            expired_resistance = before[1] - len(resistance)
            if expired_support or expired_resistance:
                self.logger.debug(
                    "level_age_filter",
                    max_age_candles=config.max_level_age_candles,
                    expired_support=expired_support,
                    expired_resistance=expired_resistance,
                    remaining_support=len(support),
                    remaining_resistance=len(resistance),
                )

        volume_profile = None
        vp_config = config.volume_profile
        if vp_config.enabled:
            volume_profile = self._profile_analyzer(config).calculate_profile(candles)
            if volume_profile is not None:
                if vp_config.boost_hvn_match:
                    support = boost_volume_profile_matches(support, volume_profile, vp_config)
                    resistance = boost_volume_profile_matches(resistance, volume_profile, vp_config)
                if vp_config.add_vah_val_levels:
                    support.append(volume_profile_level(volume_profile.val, LevelType.SUPPORT, vp_config.vah_val_strength, now))
                    resistance.append(volume_profile_level(volume_profile.vah, LevelType.RESISTANCE, vp_config.vah_val_strength, now))

        if config.level_exhaustion.enabled:
            support = self._exhaust(support, candles, config)
            resistance = self._exhaust(resistance, candles, config)

        if config.orderbook_validation.enabled and orderbook is not None:
            support = self._confirm(support, orderbook, config, LevelType.SUPPORT)
            resistance = self._confirm(resistance, orderbook, config, LevelType.RESISTANCE)

        return AllLevelsResult(
            support=support,
            resistance=resistance,
            volume_profile=volume_profile,
            trend_context=TrendContext(trend_context) if trend_context else None,
        )

    def _exhaust(self, levels: List[Level], candles: Sequence[Candle], config: LevelAnalyzerConfig) -> List[Level]:
        exhausted = apply_level_exhaustion(levels, candles, config.level_exhaustion)
        for before, after in zip(levels, exhausted):
            if after.breakouts:
                self.logger.debug(
                    "level_exhaustion",
                    level_type=after.level_type.value,
                    price=round(after.price, 4),
                    breakouts=after.breakouts,
                    original_strength=round(before.strength, 2),
                    penalty=after.exhaustion_penalty,
                    adjusted_strength=round(after.strength, 2),
                )
        return exhausted

    def _confirm(
        self,
        levels: List[Level],
        orderbook: OrderBookSnapshot,
        config: LevelAnalyzerConfig,
        level_type: LevelType,
    ) -> List[Level]:
        confirmed = confirm_with_orderbook(levels, orderbook, config.orderbook_validation)
        confirmed_count = sum(1 for level in confirmed if level.orderbook_confirmed)
        if confirmed_count:
            self.logger.info(
                "orderbook_confirmation",
                level_type=level_type.value,
                confirmed=confirmed_count,
                total=len(levels),
            )
        return confirmed

    def _level_from_cluster(
        self,
        cluster: SwingCluster,
        level_type: LevelType,
        candles: Sequence[Candle],
        now,
        avg_candle_volume: float,
        strength_model: LevelStrengthModel,
    ) -> Level:
        avg_volume_at_touch = calculate_avg_volume_at_touches(cluster.points, candles)
        last_touch = cluster.last_touch_timestamp
        strength = strength_model.score(
            touches=cluster.touches,
            last_touch_timestamp=last_touch,
            now=now,
            avg_volume_at_touch=avg_volume_at_touch,
            avg_candle_volume=avg_candle_volume,
            touch_timestamps=cluster.touch_timestamps,
        )
        return Level(
            price=cluster.price,
            level_type=level_type,
            strength=strength,
            touches=cluster.touches,
            last_touch_timestamp=last_touch,
            avg_volume_at_touch=avg_volume_at_touch,
            source=LevelSource.SWING,
        )

    def _insufficient_input_reason(
        self,
        swing_points: Sequence[SwingPoint],
        current_price: float,
        candles: Sequence[Candle],
        config: LevelAnalyzerConfig,
    ) -> Optional[str]:
        if not swing_points:
            return "No swing points"
        if not candles:
            return "No candles"
        if len(candles) < config.min_candles_required:
            return f"Insufficient candles ({len(candles)} < {config.min_candles_required})"
        if current_price is None or not math.isfinite(current_price) or current_price <= 0:
            return "Invalid current price"
        return None

    @staticmethod
    def _hold(reason: str, all_levels: AllLevelsResult) -> LevelAnalysisResult:
        return LevelAnalysisResult(
            nearest_level=None,
            distance_percent=math.inf,
            direction=SignalDirection.HOLD,
            confidence=0.0,
            reason=reason,
            all_levels=all_levels,
        )

    @staticmethod
    def _clusterer(config: LevelAnalyzerConfig) -> SwingPointClusterer:
        return SwingPointClusterer(config.cluster_threshold_ratio, config.dynamic_cluster_threshold)

    @staticmethod
    def _selector(config: LevelAnalyzerConfig) -> LevelSelector:
        return LevelSelector(
            max_distance_percent=config.max_distance_percent,
            tiebreak_preference=config.tiebreak_preference,
            trend_aligned_distance_multiplier=config.trend_aligned_distance_multiplier,
        )

    def _profile_analyzer(self, config: LevelAnalyzerConfig) -> VolumeProfileAnalyzer:
        if self._volume_profile_analyzer is None:
            vp_config = self._volume_profile_config or VolumeProfileConfig(
                max_distance_percent=config.max_distance_percent
            )
            self._volume_profile_analyzer = VolumeProfileAnalyzer(vp_config, logger=self._logger)
        return self._volume_profile_analyzer
