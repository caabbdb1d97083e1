#!/usr/bin/env python3
"""
Micro-benchmark for the Book Stream hot path.

Tests:
1. Decode throughput for level2 market frames
2. Order book apply throughput (decoded deltas)
3. Snapshot generation speed

Usage:
    python -m book_stream.benchmark
"""

from __future__ import annotations

import random
import time
from decimal import Decimal
from statistics import mean, stdev

from .datafeed.decoder import decode, json_dumps
from .datafeed.orderbook import OrderBook
from .types import MarketDelta, PriceLevel

TOPIC = "/contractMarket/level2Depth5:ETHUSDTM"


def generate_mock_frame(base_price: float = 2500.0, changes: int = 10, ts: int = 0) -> str:
    """Generate a level2 market frame as the server sends it."""
    tick_size = 0.05

    bids = []
    asks = []

    for _ in range(changes // 2):
        offset = random.randint(1, 20)
        # Random qty (0 = remove level)
        bid_qty = random.randint(1, 500) if random.random() > 0.2 else 0
        ask_qty = random.randint(1, 500) if random.random() > 0.2 else 0

        bids.append([f"{base_price - offset * tick_size:.2f}", bid_qty])
        asks.append([f"{base_price + offset * tick_size:.2f}", ask_qty])

    return json_dumps({
        "type": "message",
        "topic": TOPIC,
        "subject": "level2",
        "data": {"bids": bids, "asks": asks, "ts": ts},
    })


def generate_mock_delta(base_price: float = 2500.0, changes: int = 10, ts: int = 0) -> MarketDelta:
    """Generate an already decoded delta."""
    tick = Decimal("0.05")
    base = Decimal(str(base_price))

    def level(sign: int) -> PriceLevel:
        qty = random.randint(1, 500) if random.random() > 0.2 else 0
        return PriceLevel(base + sign * random.randint(1, 20) * tick, qty)

    return MarketDelta(
        topic=TOPIC,
        subject="level2",
        bids=tuple(level(-1) for _ in range(changes // 2)),
        asks=tuple(level(1) for _ in range(changes // 2)),
        timestamp_ms=ts,
    )


def benchmark_decode(iterations: int = 20000) -> None:
    """Benchmark frame decoding."""
    print("\n=== Decode Benchmark ===")

    frames = [generate_mock_frame(ts=i) for i in range(iterations)]

    start = time.perf_counter()
    for f in frames:
        decode(f)
    elapsed = time.perf_counter() - start

    rate = iterations / elapsed
    print(f"  Frames decoded: {iterations:,}")
    print(f"  Time: {elapsed*1000:.1f}ms")
    print(f"  Rate: {rate:,.0f} frames/sec")
    print(f"  Per frame: {elapsed/iterations*1_000_000:.1f}µs")


def benchmark_orderbook_apply(iterations: int = 50000, depth: int = 5) -> None:
    """Benchmark delta application including trim."""
    print("\n=== Order Book Apply Benchmark ===")

    ob = OrderBook("ETHUSDTM", depth=depth)
    deltas = [generate_mock_delta(ts=i) for i in range(iterations)]

    # Warm up
    for d in deltas[:100]:
        ob.apply(d)
    ob.clear()

    start = time.perf_counter()
    for d in deltas:
        ob.apply(d)
    elapsed = time.perf_counter() - start

    rate = iterations / elapsed
    print(f"  Messages applied: {iterations:,}")
    print(f"  Time: {elapsed*1000:.1f}ms")
    print(f"  Rate: {rate:,.0f} messages/sec")
    print(f"  Per message: {elapsed/iterations*1_000_000:.1f}µs")


def benchmark_snapshot(iterations: int = 20000, depth: int = 5) -> None:
    """Benchmark snapshot generation (what the renderer needs)."""
    print("\n=== Snapshot Generation Benchmark ===")

    ob = OrderBook("ETHUSDTM", depth=depth)
    for i in range(100):
        ob.apply(generate_mock_delta(ts=i))

    times = []
    for _ in range(iterations):
        start = time.perf_counter()
        ob.snapshot()
        times.append(time.perf_counter() - start)

    avg_time = mean(times) * 1_000_000
    std_time = stdev(times) * 1_000_000

    print(f"  Iterations: {iterations}")
    print(f"  Avg time: {avg_time:.2f}µs")
    print(f"  Std dev: {std_time:.2f}µs")


def main() -> None:
    """Run all benchmarks."""
    print("=" * 60)
    print("Book Stream Performance Benchmark")
    print("=" * 60)

    benchmark_decode()
    benchmark_orderbook_apply()
    benchmark_snapshot()

    print("\n" + "=" * 60)
    print("Benchmark complete.")
    print("=" * 60)


if __name__ == "__main__":
    main()
