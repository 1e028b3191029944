"""
Swing point clustering.

Groups swing points whose prices sit within a proximity threshold of
the running cluster mean. The threshold can widen with volatility when
an ATR percent is available, but never drops below the static value.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from ..config import DynamicClusterThresholdConfig
from ..models import SwingPoint


@dataclass(frozen=True)
class SwingCluster:
    """Swing points merged into one candidate level"""
    points: Tuple[SwingPoint, ...]
    price: float

    @property
    def touches(self) -> int:
        return len(self.points)

    @property
    def last_touch_timestamp(self) -> datetime:
        return max(point.timestamp for point in self.points)

    @property
    def touch_timestamps(self) -> List[datetime]:
        return [point.timestamp for point in self.points]


def effective_cluster_threshold(
    static_ratio: float,
    atr_percent: Optional[float] = None,
    dynamic: Optional[DynamicClusterThresholdConfig] = None,
) -> float:
    """
    Cluster threshold as a ratio (0.005 = 0.5%)

    Args:
        static_ratio: Static threshold ratio
        atr_percent: Current ATR in percent of price
        dynamic: Volatility-adaptive settings

    Returns:
        ``max(static_ratio, atr_percent * atr_multiplier / 100)`` when the
        dynamic threshold is enabled and an ATR is given, else the static
        ratio
    """
    if dynamic is not None and dynamic.enabled and atr_percent is not None:
        return max(static_ratio, atr_percent * dynamic.atr_multiplier / 100)
    return static_ratio


def _joins(price: float, cluster_mean: float, threshold_ratio: float) -> bool:
    if cluster_mean == 0:
        return price == 0
    return abs(price - cluster_mean) / abs(cluster_mean) <= threshold_ratio


def cluster_swing_points(
    points: Iterable[SwingPoint],
    threshold_ratio: float,
    min_touches: int = 1,
) -> List[SwingCluster]:
    """
    Sweep price-sorted points into clusters

    A point joins the open cluster when its distance to the cluster
    mean, relative to that mean, is within ``threshold_ratio``;
    otherwise the cluster closes and a new one starts. Points are
    ordered by price then timestamp, so membership does not depend on
    input order.

    Args:
        points: Swing points in any order
        threshold_ratio: Proximity threshold as a ratio
        min_touches: Drop clusters with fewer points than this

    Returns:
        Clusters in ascending price order
    """
    ordered = sorted(points, key=lambda p: (p.price, p.timestamp))
    if not ordered:
        return []

    clusters: List[SwingCluster] = []
    current = [ordered[0]]
    running_sum = ordered[0].price

    def close_current():
        if len(current) >= min_touches:
            clusters.append(SwingCluster(points=tuple(current), price=running_sum / len(current)))

    for point in ordered[1:]:
        if _joins(point.price, running_sum / len(current), threshold_ratio):
            current.append(point)
            running_sum += point.price
        else:
            close_current()
            current = [point]
            running_sum = point.price

    close_current()
    return clusters


class SwingPointClusterer:
    """
    Clusterer bound to a static threshold and optional dynamic widening

    Args:
        threshold_ratio: Static threshold ratio (0.005 = 0.5%)
        dynamic: Volatility-adaptive threshold settings
    """

    def __init__(
        self,
        threshold_ratio: float = 0.005,
        dynamic: Optional[DynamicClusterThresholdConfig] = None,
    ):
        self.threshold_ratio = threshold_ratio
        self.dynamic = dynamic or DynamicClusterThresholdConfig()

    def effective_threshold(self, atr_percent: Optional[float] = None) -> float:
        return effective_cluster_threshold(self.threshold_ratio, atr_percent, self.dynamic)

    def cluster(
        self,
        points: Sequence[SwingPoint],
        atr_percent: Optional[float] = None,
        min_touches: int = 1,
    ) -> List[SwingCluster]:
        """
        Cluster points using the effective threshold

        Args:
            points: Swing points
            atr_percent: Current ATR percent, if known
            min_touches: Minimum cluster size to keep (1 keeps all)

        Returns:
            Clusters in ascending price order
        """
        return cluster_swing_points(points, self.effective_threshold(atr_percent), min_touches)
