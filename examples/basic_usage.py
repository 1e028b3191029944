"""
Basic usage example for the signal engine.

This example demonstrates the fundamental workflow:
1. Data preparation and swing detection
2. Level analysis
3. Enriched level inspection
4. Concurrent signal collection through the registry
"""

import asyncio
from datetime import datetime

import numpy as np
import pandas as pd

from signal_engine import (
    AnalyzerDefinition,
    AnalyzerSignal,
    MarketSnapshot,
    OrderBookLevel,
    OrderBookSnapshot,
    SignalDirection,
    SwingPoint,
    SwingPointType,
    configure_logging,
    create_default_registry,
)
from signal_engine.config import EngineSettings, LevelAnalyzerConfig
from signal_engine.support_resistance import LevelAnalyzer


def generate_sample_data(periods: int = 300) -> pd.DataFrame:
    """Generate one-minute OHLCV data oscillating inside a range"""
    print("📊 Generating sample OHLCV data...")

    dates = pd.date_range(start='2024-03-01', periods=periods, freq='min', tz='UTC')

    np.random.seed(42)
    cycle = np.sin(np.linspace(0, 12 * np.pi, periods)) * 300
    noise = np.cumsum(np.random.randn(periods) * 5)
    prices = 50000 + cycle + noise

    data = []
    for date, price in zip(dates, prices):
        open_price = price + np.random.randn() * 10
        close_price = price + np.random.randn() * 10
        data.append({
            'timestamp': date,
            'open': open_price,
            'high': max(open_price, close_price) + abs(np.random.randn() * 15),
            'low': min(open_price, close_price) - abs(np.random.randn() * 15),
            'close': close_price,
            'volume': np.random.uniform(50, 500),
        })

    df = pd.DataFrame(data)
    print(f"✅ Generated {len(df)} candles from {df['timestamp'].min()} to {df['timestamp'].max()}")
    return df


def detect_swing_points(df: pd.DataFrame, window: int = 5):
    """Local highs and lows over a centered window"""
    highs = df['high'] == df['high'].rolling(2 * window + 1, center=True).max()
    lows = df['low'] == df['low'].rolling(2 * window + 1, center=True).min()

    points = [
        SwingPoint(price=row.high, timestamp=row.timestamp, kind=SwingPointType.HIGH)
        for row in df[highs].itertuples()
    ]
    points += [
        SwingPoint(price=row.low, timestamp=row.timestamp, kind=SwingPointType.LOW)
        for row in df[lows].itertuples()
    ]
    return points


def level_analysis_example(df: pd.DataFrame):
    """Analyze price against clustered support and resistance"""
    print("\n📐 Level Analysis Example")
    print("=" * 50)

    swing_points = detect_swing_points(df)
    snapshot = MarketSnapshot.from_frame(df, "BTCUSDT", swing_points=swing_points, timeframe="1m")
    print(f"Swing points detected: {len(swing_points)}")

    analyzer = LevelAnalyzer(LevelAnalyzerConfig.for_timeframe("1m", max_distance_percent=1.5))
    result = analyzer.analyze(
        snapshot.swing_points,
        snapshot.current_price,
        snapshot.candles,
        snapshot.timestamp,
    )

    print(f"Support levels: {len(result.all_levels.support)}")
    print(f"Resistance levels: {len(result.all_levels.resistance)}")
    print(f"Direction: {result.direction.value}")
    print(f"Confidence: {result.confidence}")
    print(f"Reason: {result.reason}")

    return analyzer, snapshot


def enriched_levels_example(analyzer: LevelAnalyzer, snapshot: MarketSnapshot):
    """Inspect every level with exhaustion, volume profile and order book enrichment"""
    print("\n🧱 Enriched Levels Example")
    print("=" * 50)

    analyzer.update_config(
        level_exhaustion={'enabled': True},
        orderbook_validation={'enabled': True},
        volume_profile={'enabled': True, 'add_vah_val_levels': True},
    )

    price = snapshot.current_price
    orderbook = OrderBookSnapshot(
        bids=[OrderBookLevel(price * (1 - i / 1000), 5 + (20 if i == 3 else 0)) for i in range(1, 10)],
        asks=[OrderBookLevel(price * (1 + i / 1000), 5 + (20 if i == 4 else 0)) for i in range(1, 10)],
    )

    levels = analyzer.get_all_levels(
        snapshot.swing_points,
        snapshot.candles,
        snapshot.timestamp,
        orderbook=orderbook,
    )

    for level in levels.support + levels.resistance:
        flags = []
        if level.orderbook_confirmed:
            flags.append("wall")
        if level.breakouts:
            flags.append(f"{level.breakouts} breakouts")
        if level.volume_profile_match:
            flags.append("HVN")
        print(
            f"{level.level_type.value:<10} {level.price:>10.2f} "
            f"str:{level.strength:.2f} touches:{level.touches} {' '.join(flags)}"
        )

    if levels.volume_profile is not None:
        profile = levels.volume_profile
        print(f"POC: {profile.poc.price:.2f}  VAL: {profile.val:.2f}  VAH: {profile.vah:.2f}")


async def registry_example(snapshot: MarketSnapshot):
    """Collect signals from the built-in analyzers plus a custom one"""
    print("\n🗳️ Registry Example")
    print("=" * 50)

    registry = create_default_registry(EngineSettings())

    async def momentum(market: MarketSnapshot):
        closes = [candle.close for candle in market.candles[-20:]]
        if len(closes) < 20:
            return None
        change = (closes[-1] - closes[0]) / closes[0] * 100
        if abs(change) < 0.05:
            return None
        return AnalyzerSignal(
            source="MOMENTUM",
            direction=SignalDirection.LONG if change > 0 else SignalDirection.SHORT,
            confidence=min(50 + abs(change) * 100, 80),
            weight=0.1,
            priority=3,
            reason=f"{change:+.2f}% over 20 candles",
        )

    def always_fails(market: MarketSnapshot):
        raise RuntimeError("feed unavailable")

    registry.register("MOMENTUM", AnalyzerDefinition("MOMENTUM", 0.1, 3, momentum))
    registry.register("BROKEN", AnalyzerDefinition("BROKEN", 0.05, 1, always_fails))

    report = await registry.collect_with_report(snapshot)

    print(f"Collected {report.collected}/{report.total} signals in {report.duration_seconds:.3f}s")
    for signal in report.signals:
        print(f"- {signal.source}: {signal.direction.value} @ {signal.confidence} (w={signal.weight})")
    print(f"Blocked: {report.blocked}")
    print(f"Errors: {report.errors}")

    return report


if __name__ == "__main__":
    print("📈 Signal Engine - Basic Usage Examples")
    print("=" * 60)
    print(f"Execution started at: {datetime.now()}")

    configure_logging(level="WARNING", format_type="colored")

    sample_data = generate_sample_data()
    level_analyzer, market = level_analysis_example(sample_data)
    enriched_levels_example(level_analyzer, market)
    asyncio.run(registry_example(market))

    print("\n" + "=" * 60)
    print("🎉 All examples completed successfully!")
    print(f"Execution finished at: {datetime.now()}")
