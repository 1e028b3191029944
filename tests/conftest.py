"""
Shared fixtures for the signal engine test suite.
"""

from datetime import datetime, timedelta, timezone
from typing import List
from unittest.mock import Mock

import numpy as np
import pandas as pd
import pytest

from signal_engine.models import Candle, SwingPoint, SwingPointType

BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_candles(
    start: datetime = BASE_TIME,
    count: int = 60,
    price: float = 100.5,
    volume: float = 1000.0,
    interval: timedelta = timedelta(minutes=1),
    spread: float = 0.05,
) -> List[Candle]:
    """Flat candles around ``price`` spaced by ``interval``"""
    return [
        Candle(
            timestamp=start + i * interval,
            open=price,
            high=price + spread,
            low=price - spread,
            close=price,
            volume=volume,
        )
        for i in range(count)
    ]


def make_swings(prices, kind: SwingPointType, start: datetime = BASE_TIME, step: timedelta = timedelta(minutes=1)):
    return [SwingPoint(price=p, timestamp=start + i * step, kind=kind) for i, p in enumerate(prices)]


@pytest.fixture
def base_time():
    return BASE_TIME


@pytest.fixture
def candles():
    """Sixty one-minute candles hovering at 100.5"""
    return make_candles()


@pytest.fixture
def support_swings():
    """Three swing lows forming a support near 100.1"""
    return make_swings([100.0, 100.1, 100.2], SwingPointType.LOW)


@pytest.fixture
def resistance_swings():
    """Three swing highs forming a resistance near 101.05"""
    return make_swings([101.0, 101.05, 101.1], SwingPointType.HIGH)


@pytest.fixture
def mock_logger():
    return Mock()


@pytest.fixture
def sample_ohlcv_data():
    """Random-walk OHLCV frame with one-minute bars"""
    dates = pd.date_range(start='2024-03-01', periods=120, freq='min', tz='UTC')
    rng = np.random.default_rng(42)
    prices = 100 + np.cumsum(rng.normal(0, 0.05, len(dates)))

    rows = []
    for date, price in zip(dates, prices):
        open_price = price + rng.normal(0, 0.02)
        close_price = price + rng.normal(0, 0.02)
        rows.append({
            'timestamp': date,
            'open': open_price,
            'high': max(open_price, close_price) + abs(rng.normal(0, 0.03)),
            'low': min(open_price, close_price) - abs(rng.normal(0, 0.03)),
            'close': close_price,
            'volume': rng.uniform(500, 1500),
        })

    return pd.DataFrame(rows)
