"""
Tests for swing point clustering.
"""

import itertools
import random
import time

import pytest

from signal_engine.config import DynamicClusterThresholdConfig
from signal_engine.models import SwingPointType
from signal_engine.support_resistance.clustering import (
    SwingPointClusterer,
    cluster_swing_points,
    effective_cluster_threshold,
)

from conftest import make_swings


def memberships(clusters):
    return [tuple(p.price for p in cluster.points) for cluster in clusters]


class TestClusterSwingPoints:
    """Sweep clustering over price-sorted points"""

    def test_empty_input(self):
        assert cluster_swing_points([], 0.005) == []

    def test_close_points_form_one_cluster(self, support_swings):
        clusters = cluster_swing_points(support_swings, 0.005)

        assert len(clusters) == 1
        assert clusters[0].touches == 3
        assert clusters[0].price == pytest.approx(100.1)
        assert clusters[0].last_touch_timestamp == support_swings[-1].timestamp

    def test_distant_points_split(self):
        points = make_swings([100.0, 100.2, 105.0, 105.1], SwingPointType.LOW)

        clusters = cluster_swing_points(points, 0.005)

        assert memberships(clusters) == [(100.0, 100.2), (105.0, 105.1)]

    def test_distance_measured_against_running_mean(self):
        # 100.9 is 0.9% from the first point but only ~0.67% from the mean 100.225
        points = make_swings([100.0, 100.45, 100.9], SwingPointType.LOW)

        clusters = cluster_swing_points(points, 0.005)

        assert memberships(clusters) == [(100.0, 100.45), (100.9,)]

    def test_single_trailing_point_is_its_own_cluster(self):
        points = make_swings([100.0, 100.1, 110.0], SwingPointType.HIGH)

        clusters = cluster_swing_points(points, 0.005)

        assert len(clusters) == 2
        assert clusters[-1].touches == 1
        assert clusters[-1].price == 110.0

    def test_min_touches_filters_small_clusters(self):
        points = make_swings([100.0, 100.1, 100.2, 110.0], SwingPointType.HIGH)

        clusters = cluster_swing_points(points, 0.005, min_touches=3)

        assert memberships(clusters) == [(100.0, 100.1, 100.2)]

    def test_membership_independent_of_input_order(self):
        points = make_swings([100.0, 100.45, 100.9, 101.3, 99.2, 99.25, 104.0], SwingPointType.LOW)
        expected = memberships(cluster_swing_points(points, 0.005))

        for permutation in itertools.islice(itertools.permutations(points), 200):
            assert memberships(cluster_swing_points(permutation, 0.005)) == expected

    def test_clustering_is_idempotent(self):
        rng = random.Random(7)
        points = make_swings([100 + rng.uniform(-2, 2) for _ in range(40)], SwingPointType.LOW)

        first = cluster_swing_points(points, 0.003)
        second = cluster_swing_points(points, 0.003)

        assert first == second

    def test_clusters_ordered_by_price(self):
        points = make_swings([120.0, 100.0, 110.0], SwingPointType.HIGH)

        clusters = cluster_swing_points(points, 0.001)

        assert [c.price for c in clusters] == [100.0, 110.0, 120.0]


class TestDynamicThreshold:
    """Volatility-adaptive cluster threshold"""

    def test_static_when_disabled(self):
        dynamic = DynamicClusterThresholdConfig(enabled=False, atr_multiplier=0.3)
        assert effective_cluster_threshold(0.005, atr_percent=3.0, dynamic=dynamic) == 0.005

    def test_static_without_atr(self):
        dynamic = DynamicClusterThresholdConfig(enabled=True)
        assert effective_cluster_threshold(0.005, atr_percent=None, dynamic=dynamic) == 0.005

    def test_widens_with_high_atr(self):
        dynamic = DynamicClusterThresholdConfig(enabled=True, atr_multiplier=0.3)
        assert effective_cluster_threshold(0.005, atr_percent=3.0, dynamic=dynamic) == pytest.approx(0.009)

    def test_never_below_static_floor(self):
        dynamic = DynamicClusterThresholdConfig(enabled=True, atr_multiplier=0.3)
        assert effective_cluster_threshold(0.005, atr_percent=1.0, dynamic=dynamic) == 0.005

    def test_clusterer_merges_more_in_volatile_market(self):
        points = make_swings([100.0, 100.8], SwingPointType.LOW)
        clusterer = SwingPointClusterer(0.005, DynamicClusterThresholdConfig(enabled=True, atr_multiplier=0.3))

        assert len(clusterer.cluster(points)) == 2
        assert len(clusterer.cluster(points, atr_percent=3.0)) == 1


@pytest.mark.performance
def test_large_input_clusters_quickly():
    rng = random.Random(11)
    points = make_swings([rng.uniform(90, 110) for _ in range(5000)], SwingPointType.HIGH)

    start = time.perf_counter()
    clusters = cluster_swing_points(points, 0.005)
    elapsed = time.perf_counter() - start

    assert sum(cluster.touches for cluster in clusters) == 5000
    assert elapsed < 2.0
