"""Shared price-series fixtures."""

import queue

import numpy as np
import pytest

from trend_analytics.config import EngineConfig
from trend_analytics.trend_engine import TrendEngine


@pytest.fixture
def flat_prices():
    return np.full(120, 100.0)


@pytest.fixture
def rising_prices():
    """Exact line 100, 101, ..., 219."""
    return 100.0 + np.arange(120, dtype=float)


@pytest.fixture
def falling_prices():
    return 300.0 - np.arange(120, dtype=float)


@pytest.fixture
def random_walk():
    rng = np.random.default_rng(7)
    return 100.0 * np.exp(np.cumsum(rng.normal(0.0, 0.01, 300)))


@pytest.fixture
def zigzag_prices():
    """Alternates 100, 101, 100, 101, ..."""
    return np.array([100.0 + (i % 2) for i in range(120)])


@pytest.fixture
def volatility_burst_returns():
    """Quiet returns followed by a burst ten times as wide."""
    rng = np.random.default_rng(11)
    quiet = rng.normal(0.0, 0.001, 200)
    burst = rng.normal(0.0, 0.01, 20)
    return np.concatenate([quiet, burst])


@pytest.fixture
def results():
    return queue.Queue()


@pytest.fixture
def engine(results):
    """Engine with a small buffer and a trend pass on every append."""
    config = EngineConfig(buffer_size=60, min_data_points=50, recalculation_interval=1)
    return TrendEngine(config, results=results)


@pytest.fixture
def drain():
    """Empty a queue.Queue into a list."""
    def _drain(channel):
        items = []
        while True:
            try:
                items.append(channel.get_nowait())
            except queue.Empty:
                return items
    return _drain
