"""
Volume profile analysis.

Buckets recent candle volume by price to find the point of control
(POC), the value area (VAL..VAH) and high/low volume nodes (HVN/LVN),
and turns price position relative to them into a signal.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from ..config import VolumeProfileConfig
from ..models import AnalyzerSignal, Candle, SignalDirection
from ..utils.helpers import percent_distance, round_half_up
from ..utils.logger import LoggerMixin

VOLUME_PROFILE_SOURCE = "VOLUME_PROFILE"

MIN_BUCKETS = 5
MAX_BUCKETS = 1000


@dataclass(frozen=True)
class PriceLevel:
    """Volume traded in one price bucket"""
    price: float
    volume: float
    percentage: float  # share of total volume, in percent


@dataclass(frozen=True)
class VolumeProfileResult:
    """Volume distribution over price"""
    poc: PriceLevel
    vah: float
    val: float
    hvn_levels: List[PriceLevel] = field(default_factory=list)
    lvn_levels: List[PriceLevel] = field(default_factory=list)
    total_volume: float = 0.0
    price_levels: List[PriceLevel] = field(default_factory=list)  # by descending volume

    @property
    def high_volume_prices(self) -> List[float]:
        """HVN prices plus the POC"""
        return [level.price for level in self.hvn_levels] + [self.poc.price]


class VolumeProfileAnalyzer(LoggerMixin):
    """
    Volume profile calculation and signal generation

    Args:
        config: Profile settings
        logger: Injected logger (optional)
    """

    def __init__(self, config: Optional[VolumeProfileConfig] = None, logger=None):
        self.config = config or VolumeProfileConfig()
        if logger is not None:
            self._logger = logger

    def calculate_profile(self, candles: Sequence[Candle]) -> Optional[VolumeProfileResult]:
        """
        Build the volume profile of the most recent candles

        Each candle's volume is spread evenly over the buckets between
        its low and high; a candle with no range puts everything in the
        bucket of its close.

        Args:
            candles: Candles in time order

        Returns:
            Profile, or None with too few candles, a flat price range,
            no traded volume or a bucket count outside [5, 1000]
        """
        config = self.config
        if len(candles) < config.min_candles:
            return None

        window = list(candles)[-config.lookback_candles:]
        highs = np.array([c.high for c in window], dtype=float)
        lows = np.array([c.low for c in window], dtype=float)
        closes = np.array([c.close for c in window], dtype=float)
        volumes = np.array([c.volume for c in window], dtype=float)

        min_price = float(lows.min())
        price_range = float(highs.max()) - min_price
        bucket_size = min_price * config.price_tick_size / 100
        if price_range <= 0 or bucket_size <= 0:
            return None

        num_buckets = math.ceil(price_range / bucket_size)
        if num_buckets < MIN_BUCKETS or num_buckets > MAX_BUCKETS:
            return None

        flat = highs == lows
        low_idx = np.floor((np.where(flat, closes, lows) - min_price) / bucket_size).astype(int)
        high_idx = np.floor((np.where(flat, closes, highs) - min_price) / bucket_size).astype(int)

        bucket_volume = np.zeros(num_buckets + 1)
        touched = np.zeros(num_buckets + 1, dtype=bool)
        for lo, hi, volume in zip(low_idx, high_idx, volumes):
            bucket_volume[lo:hi + 1] += volume / (hi - lo + 1)
            touched[lo:hi + 1] = True

        total_volume = float(bucket_volume.sum())
        if total_volume <= 0:
            return None

        indices = np.flatnonzero(touched)
        prices = min_price + indices * bucket_size + bucket_size / 2
        by_price = [
            PriceLevel(price=float(price), volume=float(volume), percentage=float(volume / total_volume * 100))
            for price, volume in zip(prices, bucket_volume[indices])
        ]
        by_volume = sorted(by_price, key=lambda level: (-level.volume, level.price))

        poc = by_volume[0]
        val, vah = self._value_area(by_price, by_price.index(poc), total_volume)

        avg_volume = total_volume / len(by_price)
        hvn_levels = [level for level in by_volume if level.volume >= avg_volume * config.hvn_threshold]
        lvn_levels = [level for level in by_volume if level.volume <= avg_volume * config.lvn_threshold]

        return VolumeProfileResult(
            poc=poc,
            vah=vah,
            val=val,
            hvn_levels=hvn_levels,
            lvn_levels=lvn_levels,
            total_volume=total_volume,
            price_levels=by_volume,
        )

    def _value_area(self, by_price: List[PriceLevel], poc_index: int, total_volume: float):
        """Grow from the POC toward the heavier neighbour until the target share is covered"""
        target_volume = total_volume * self.config.value_area_percent / 100
        low = high = poc_index
        accumulated = by_price[poc_index].volume
        last = len(by_price) - 1

        while accumulated < target_volume and (low > 0 or high < last):
            low_volume = by_price[low - 1].volume if low > 0 else 0.0
            high_volume = by_price[high + 1].volume if high < last else 0.0
            if low > 0 and (low_volume >= high_volume or high == last):
                low -= 1
                accumulated += by_price[low].volume
            else:
                high += 1
                accumulated += by_price[high].volume

        return by_price[low].price, by_price[high].price

    def generate_signal(self, candles: Sequence[Candle], current_price: float) -> Optional[AnalyzerSignal]:
        """
        Signal from price position relative to the profile

        At or below VAL within reach goes LONG and at or above VAH goes
        SHORT; otherwise price near the POC or an HVN is expected to
        revert toward it.

        Args:
            candles: Candles in time order
            current_price: Current market price

        Returns:
            Signal, or None when the profile is unavailable or price is
            not near any node
        """
        profile = self.calculate_profile(candles)
        if profile is None:
            return None

        config = self.config
        max_distance = config.max_distance_percent
        distance_to_val = percent_distance(current_price, profile.val)
        distance_to_vah = percent_distance(current_price, profile.vah)
        distance_to_poc = percent_distance(current_price, profile.poc.price)

        nearest_hvn = None
        min_hvn_distance = math.inf
        for hvn in profile.hvn_levels:
            distance = percent_distance(current_price, hvn.price)
            if distance < min_hvn_distance and distance <= max_distance:
                nearest_hvn = hvn
                min_hvn_distance = distance

        confidence = config.base_confidence
        if current_price <= profile.val and distance_to_val <= max_distance:
            direction = SignalDirection.LONG
            confidence += 10 + (1 - distance_to_val / max_distance) * 10
            reason = f"Near VAL {profile.val:.4f} (dist: {distance_to_val:.2f}%)"
        elif current_price >= profile.vah and distance_to_vah <= max_distance:
            direction = SignalDirection.SHORT
            confidence += 10 + (1 - distance_to_vah / max_distance) * 10
            reason = f"Near VAH {profile.vah:.4f} (dist: {distance_to_vah:.2f}%)"
        elif distance_to_poc <= max_distance:
            direction = SignalDirection.LONG if current_price < profile.poc.price else SignalDirection.SHORT
            confidence += 15 + profile.poc.percentage
            reason = f"Reversion toward POC {profile.poc.price:.4f}"
        elif nearest_hvn is not None:
            direction = SignalDirection.LONG if current_price < nearest_hvn.price else SignalDirection.SHORT
            confidence += 10 + nearest_hvn.percentage
            reason = f"Near HVN {nearest_hvn.price:.4f} ({nearest_hvn.percentage:.1f}% vol)"
        else:
            return None

        confidence = min(round_half_up(confidence), config.max_confidence)

        self.logger.debug(
            "volume_profile_signal",
            direction=direction.value,
            confidence=confidence,
            poc=round(profile.poc.price, 4),
            vah=round(profile.vah, 4),
            val=round(profile.val, 4),
            current_price=current_price,
        )

        return AnalyzerSignal(
            source=VOLUME_PROFILE_SOURCE,
            direction=direction,
            confidence=confidence,
            weight=config.signal_weight,
            priority=config.signal_priority,
            reason=reason,
        )
