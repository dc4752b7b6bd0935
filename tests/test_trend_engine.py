"""
Tests for the TrendEngine: buffering, trend decisions, escalation, publication
and hot configuration reload.
"""

import logging
import math
import threading

import numpy as np
import pandas as pd
import pytest

from trend_analytics.config import EngineConfig, MABias, Timeframe, TrendDirection
from trend_analytics.exceptions import InvalidInputError
from trend_analytics.regime_detector import HurstBehavior, RegimeType
from trend_analytics.trend_engine import ResultKind, TrendEngine, parse_price


def zigzag(n):
    return [100.0 + (i % 2) for i in range(n)]


class TestScenarios:
    """End-to-end decisions on canonical series."""

    def test_flat_series_waits(self, engine):
        """Test that 60 identical prices give a zeroed WAIT result."""
        engine.preload("BTC", [100.0] * 60)
        result = engine.calculate_trend("BTC")
        assert result.direction is TrendDirection.WAIT
        assert result.strength == 0.0
        assert result.slope == 0.0
        assert result.r_squared == 0.0
        assert result.is_oscillating is True
        assert result.ma_bias is MABias.NEUTRAL

    def test_rising_series_is_long(self, engine):
        """Test that 100, 101, ..., 159 is a strong LONG."""
        engine.preload("BTC", 100.0 + np.arange(60, dtype=float))
        result = engine.calculate_trend("BTC")
        assert result.slope == pytest.approx(1.0)
        assert result.r_squared == pytest.approx(1.0)
        assert result.composite_score == pytest.approx(0.9, abs=1e-3)
        assert result.strength == 100.0
        assert result.ma_bias is MABias.LONG
        assert result.direction is TrendDirection.LONG
        assert result.direction_changes == 0
        assert result.price_change == pytest.approx(59.0)
        assert result.price_change_percent == pytest.approx(59.0)
        assert result.symbol == "BTC"
        assert result.timeframe is Timeframe.ONE_SECOND

    def test_falling_series_is_short(self, engine):
        """Test that a steady decline is SHORT."""
        engine.preload("BTC", 200.0 - np.arange(60, dtype=float))
        result = engine.calculate_trend("BTC")
        assert result.composite_score == pytest.approx(-0.7, abs=1e-3)
        assert result.direction is TrendDirection.SHORT

    def test_zigzag_is_oscillating(self, engine):
        """Test that a tight oscillation is WAIT with a high change ratio."""
        engine.preload("BTC", zigzag(60))
        result = engine.calculate_trend("BTC")
        assert result.is_oscillating is True
        assert result.direction is TrendDirection.WAIT
        assert result.direction_changes == 58
        assert result.direction_change_ratio >= 0.4

    def test_r_squared_bounds(self, engine, random_walk):
        """Test 0 <= adjusted R² <= R² <= 1 on noisy data."""
        result = engine.calculate_from_prices(random_walk[:60])
        assert 0.0 <= result.r_squared_adjusted <= result.r_squared <= 1.0

    def test_stateless_calculation(self, engine, rising_prices):
        """Test that calculate_from_prices leaves symbol and timeframe unset."""
        result = engine.calculate_from_prices(rising_prices)
        assert result.symbol is None
        assert result.timeframe is None
        assert result.to_dict()['direction'] == "LONG"

    def test_insufficient_data_is_none(self, engine):
        """Test that a short buffer yields None rather than an error."""
        engine.preload("BTC", [100.0, 101.0, 102.0])
        assert engine.calculate_trend("BTC") is None
        assert engine.calculate_trend("UNKNOWN") is None


class TestBuffer:
    """Tests for ingestion and the bounded FIFO buffer."""

    def test_fifo_eviction(self, engine):
        """Test that only the last C of N > C appended prices are kept."""
        for i in range(100):
            engine.add_price("BTC", 100.0 + i)
        history = engine.get_price_history("BTC")
        assert len(history) == 60
        assert history == [100.0 + i for i in range(40, 100)]

    def test_recalculation_cadence(self):
        """Test a trend pass on every 10th append once the minimum is reached."""
        engine = TrendEngine(EngineConfig())
        passes = [i for i in range(1, 81) if engine.add_price("BTC", 100.0 + i) is not None]
        assert passes == [50, 60, 70, 80]

    def test_add_price_starts_tracking(self, engine):
        """Test that the first tick of a symbol starts its tracking."""
        engine.add_price(" btc ", "101.5", timestamp=1.0)
        assert engine.is_tracking("BTC")
        sample = engine.get_samples("BTC")[0]
        assert sample.price == 101.5
        assert sample.timestamp == 1.0

    @pytest.mark.parametrize("price", ["abc", None, 0, -1.0, float('nan'), float('inf')])
    def test_add_price_rejects_bad_input(self, engine, price):
        """Test that malformed prices raise InvalidInputError."""
        with pytest.raises(InvalidInputError):
            engine.add_price("BTC", price)

    def test_parse_price(self):
        """Test numeric strings."""
        assert parse_price(" 64210.5 ") == 64210.5

    def test_empty_symbol(self, engine):
        """Test that a blank symbol is rejected."""
        with pytest.raises(InvalidInputError):
            engine.start_tracking("  ")

    def test_start_tracking_idempotent(self, engine):
        """Test that tracking twice keeps the existing buffer."""
        engine.add_price("BTC", 100.0)
        engine.start_tracking("btc")
        assert engine.get_price_history("BTC") == [100.0]
        assert engine.tracked_symbols == ["BTC"]

    def test_half_reset(self, engine):
        """Test that the oldest half is discarded."""
        engine.preload("BTC", [float(p) for p in range(1, 61)])
        assert engine.half_reset_buffer("BTC") == 30
        assert engine.get_price_history("BTC")[0] == 31.0

    def test_clear_buffer(self, engine):
        """Test that clearing empties the buffer."""
        engine.preload("BTC", [100.0] * 10)
        engine.clear_buffer("BTC")
        assert engine.get_price_history("BTC") == []
        assert engine.is_tracking("BTC")

    def test_buffer_status(self, engine):
        """Test depth, capacity and fill percentage."""
        engine.preload("BTC", [100.0] * 30)
        status = engine.get_buffer_status("BTC")
        assert status == {'current': 30, 'max': 60, 'percent': 50.0, 'required': 50}
        assert engine.is_buffer_full("BTC") is False

    def test_stop_tracking(self, engine):
        """Test that stopping removes buffer, escalation and cached results."""
        engine.preload("BTC", zigzag(60))
        engine.calculate_trend("BTC")
        assert engine.stop_tracking("BTC") is True
        assert engine.is_tracking("BTC") is False
        assert engine.get_latest_result("BTC") is None
        assert engine.get_escalation_state("BTC") is None
        assert engine.get_price_history("BTC") == []
        assert engine.stop_tracking("BTC") is False

    def test_restart_after_stop(self, engine):
        """Test that tracking restarts from an empty buffer."""
        engine.preload("BTC", [100.0] * 10)
        engine.stop_tracking("BTC")
        engine.start_tracking("BTC")
        assert engine.get_price_history("BTC") == []


class TestPreload:
    """Tests for warm-starting buffers from historical closes."""

    def test_mixed_rows_respect_capacity(self):
        """Test string and numeric closes with the oldest evicted."""
        engine = TrendEngine(EngineConfig(buffer_size=10, min_data_points=10))
        rows = [{"close": "100"}, {"close": 101}] + [{"close": str(102.5 + i)} for i in range(10)]
        count = engine.preload("ETH", rows)
        assert count == 12
        assert engine.get_price_history("ETH") == [102.5 + i for i in range(10)]

    def test_unparsable_rows_skipped(self, engine, caplog):
        """Test that bad rows are skipped with a warning."""
        with caplog.at_level(logging.WARNING, logger="trend_analytics.trend_engine"):
            count = engine.preload("ETH", [{"close": "abc"}, {"c": 100}, None, "-5", "101"])
        assert count == 2
        assert engine.get_price_history("ETH") == [100.0, 101.0]
        assert "Skipped 3" in caplog.text

    def test_dataframe(self, engine):
        """Test a frame with a Close column."""
        frame = pd.DataFrame({"Open": [1.0, 2.0], "Close": [10.0, 11.0]})
        assert engine.preload("ETH", frame) == 2
        assert engine.get_price_history("ETH") == [10.0, 11.0]

    def test_dataframe_without_close(self, engine):
        """Test that a frame without a close column is rejected."""
        with pytest.raises(InvalidInputError):
            engine.preload("ETH", pd.DataFrame({"open": [1.0]}))

    def test_series(self, engine):
        """Test a pandas Series of closes."""
        engine.preload("ETH", pd.Series([5.0, 6.0]))
        assert engine.get_price_history("ETH") == [5.0, 6.0]

    def test_preload_does_not_trigger_passes(self):
        """Test that preloaded closes do not advance the recalculation counter."""
        engine = TrendEngine(EngineConfig())
        engine.preload("ETH", 100.0 + np.arange(59, dtype=float))
        passes = [i for i in range(1, 11) if engine.add_price("ETH", 200.0 + i) is not None]
        assert passes == [10]


class TestEscalation:
    """Tests for the timeframe escalation state machine."""

    def test_escalates_after_max_waits(self, engine):
        """Test that five WAIT results move one link and reset the counter."""
        engine.preload("BTC", zigzag(60))
        for _ in range(4):
            engine.calculate_trend("BTC")
        state = engine.get_escalation_state("BTC")
        assert state.wait_iterations == 4
        assert state.timeframe_index == 0

        engine.calculate_trend("BTC")
        state = engine.get_escalation_state("BTC")
        assert state.timeframe_index == 1
        assert state.current_timeframe is Timeframe.ONE_MINUTE
        assert state.wait_iterations == 0
        assert state.is_max_escalation is False
        assert engine.get_current_timeframe("BTC") is Timeframe.ONE_MINUTE

    def test_result_stamped_with_timeframe(self, engine):
        """Test that results carry the timeframe they were computed on."""
        engine.preload("BTC", zigzag(60))
        timeframes = [engine.calculate_trend("BTC").timeframe for _ in range(6)]
        assert timeframes[:5] == [Timeframe.ONE_SECOND] * 5
        assert timeframes[5] is Timeframe.ONE_MINUTE

    def test_terminal_link(self, engine):
        """Test that escalating past the last link fails and changes nothing."""
        engine.preload("BTC", zigzag(60))
        engine.calculate_trend("BTC")
        assert engine.escalate("BTC") is True
        assert engine.escalate("BTC") is True
        before = engine.get_escalation_state("BTC")
        assert before.is_max_escalation is True
        assert before.current_timeframe is Timeframe.FIFTEEN_MINUTES

        assert engine.escalate("BTC") is False
        after = engine.get_escalation_state("BTC")
        assert after.timeframe_index == before.timeframe_index
        assert after.wait_iterations == before.wait_iterations

    def test_waits_accumulate_at_terminal_link(self, engine):
        """Test that WAITs at the last link only count up."""
        engine.preload("BTC", zigzag(60))
        for _ in range(15):
            engine.calculate_trend("BTC")
        state = engine.get_escalation_state("BTC")
        assert state.timeframe_index == 2
        assert state.wait_iterations == 5

    def test_decisive_result_resets(self, engine):
        """Test that a LONG result drops the escalation state."""
        engine.preload("BTC", zigzag(60))
        engine.calculate_trend("BTC")
        assert engine.get_escalation_state("BTC") is not None
        engine.preload("BTC", 100.0 + np.arange(60, dtype=float))
        assert engine.calculate_trend("BTC").direction is TrendDirection.LONG
        assert engine.get_escalation_state("BTC") is None
        assert engine.get_current_timeframe("BTC") is Timeframe.ONE_SECOND

    def test_reset_escalation(self, engine):
        """Test the explicit reset."""
        engine.preload("BTC", zigzag(60))
        engine.calculate_trend("BTC")
        engine.reset_escalation("BTC")
        assert engine.get_escalation_state("BTC") is None
        assert engine.escalate("BTC") is False

    def test_per_link_limits(self):
        """Test a different WAIT limit for each link."""
        config = EngineConfig(buffer_size=60, max_wait_iterations_per_link=(2, 3, 4))
        engine = TrendEngine(config)
        engine.preload("BTC", zigzag(60))
        for _ in range(2):
            engine.calculate_trend("BTC")
        assert engine.get_escalation_state("BTC").timeframe_index == 1
        assert engine.get_escalation_state("BTC").max_iterations == 3
        for _ in range(3):
            engine.calculate_trend("BTC")
        assert engine.get_escalation_state("BTC").timeframe_index == 2

    def test_disabled(self):
        """Test that no state is kept when escalation is disabled."""
        engine = TrendEngine(EngineConfig(escalation_enabled=False))
        engine.preload("BTC", zigzag(60))
        for _ in range(10):
            engine.calculate_trend("BTC")
        assert engine.get_escalation_state("BTC") is None

    def test_state_is_a_copy(self, engine):
        """Test that callers cannot mutate the engine's state."""
        engine.preload("BTC", zigzag(60))
        engine.calculate_trend("BTC")
        engine.get_escalation_state("BTC").wait_iterations = 99
        assert engine.get_escalation_state("BTC").wait_iterations == 1


class TestPublication:
    """Tests for the outbound channel and subscribers."""

    def test_trend_results_published(self, engine, results, drain):
        """Test that every trend pass is put on the channel."""
        engine.preload("BTC", 100.0 + np.arange(60, dtype=float))
        result = engine.calculate_trend("BTC")
        items = drain(results)
        assert len(items) == 1
        assert items[0].kind is ResultKind.TREND
        assert items[0].symbol == "BTC"
        assert items[0].payload is result
        assert engine.get_latest_result("BTC") is result
        assert items[0].to_dict()['payload']['direction'] == "LONG"

    def test_subscribers(self, engine):
        """Test subscribe and unsubscribe."""
        received = []
        engine.subscribe(received.append)
        engine.preload("BTC", [100.0] * 60)
        engine.calculate_trend("BTC")
        engine.unsubscribe(received.append)
        engine.calculate_trend("BTC")
        assert len(received) == 1

    def test_failing_subscriber_isolated(self, engine, caplog):
        """Test that a raising subscriber does not break the pass or other subscribers."""
        received = []

        def broken(item):
            raise RuntimeError("boom")

        engine.subscribe(broken)
        engine.subscribe(received.append)
        engine.preload("BTC", [100.0] * 60)
        with caplog.at_level(logging.ERROR, logger="trend_analytics.trend_engine"):
            assert engine.calculate_trend("BTC") is not None
        assert len(received) == 1
        assert "boom" in caplog.text

    def test_result_discarded_after_stop(self, engine, results, drain, monkeypatch):
        """Test that a pass finishing after stop_tracking is not published."""
        engine.preload("BTC", 100.0 + np.arange(60, dtype=float))
        compute = engine.calculate_from_prices

        def racing(prices):
            engine.stop_tracking("BTC")
            return compute(prices)

        monkeypatch.setattr(engine, "calculate_from_prices", racing)
        assert engine.calculate_trend("BTC") is None
        assert drain(results) == []


class TestDeepAnalysis:
    """Tests for Hurst, volatility and regime passes."""

    def test_trending_buffer(self, results, drain):
        """Test all parts on a steadily rising buffer."""
        engine = TrendEngine(EngineConfig(buffer_size=200), results=results)
        engine.preload("BTC", 100.0 + np.arange(200, dtype=float))
        analysis = engine.analyze_deep("BTC")

        assert analysis.data_points == 200
        assert analysis.hurst.behavior is HurstBehavior.TRENDING
        assert analysis.volatility is not None
        assert len(analysis.volatility.forecast.volatilities) == 5
        assert analysis.regime.type is RegimeType.TRENDING_UP
        assert engine.get_latest_analysis("BTC") is analysis
        kinds = [item.kind for item in drain(results)]
        assert kinds == [ResultKind.HURST, ResultKind.VOLATILITY, ResultKind.REGIME, ResultKind.DEEP]

    def test_short_buffer_skips_regime(self, engine):
        """Test that a 40-sample buffer has volatility but no regime."""
        engine.preload("BTC", 100.0 * np.exp(np.cumsum(np.random.default_rng(5).normal(0, 0.01, 40))))
        analysis = engine.analyze_deep("BTC")
        assert analysis.volatility is not None
        assert analysis.regime is None
        assert analysis.hurst.exponent == 0.5

    def test_flat_buffer(self, engine):
        """Test that zero-variance returns leave the volatility part empty."""
        engine.preload("BTC", [100.0] * 60)
        analysis = engine.analyze_deep("BTC")
        assert analysis.volatility is None
        assert analysis.to_dict()['volatility'] is None

    def test_untracked_or_empty(self, engine):
        """Test that there is nothing to analyze without data."""
        assert engine.analyze_deep("NONE") is None
        engine.start_tracking("BTC")
        assert engine.analyze_deep("BTC") is None

    def test_hurst_based_method(self):
        """Test that the configured regime method is used."""
        engine = TrendEngine(EngineConfig(buffer_size=150, regime_detection_method="HURST_BASED"))
        engine.preload("BTC", 100.0 + np.arange(150, dtype=float))
        analysis = engine.analyze_deep("BTC")
        assert analysis.regime.method.value == "HURST_BASED"

    def test_discarded_after_stop(self, engine, results, drain, monkeypatch):
        """Test that a deep pass finishing after stop_tracking is not published."""
        engine.preload("BTC", 100.0 + np.arange(60, dtype=float))
        analyze = engine._hurst.analyze

        def racing(prices):
            engine.stop_tracking("BTC")
            return analyze(prices)

        monkeypatch.setattr(engine._hurst, "analyze", racing)
        assert engine.analyze_deep("BTC") is None
        assert drain(results) == []


class TestHotReload:
    """Tests for runtime configuration changes."""

    def test_buffer_rebounded(self, engine):
        """Test that shrinking the buffer keeps the newest samples."""
        engine.preload("BTC", [float(p) for p in range(1, 61)])
        engine.update_config(bufferSize="30", minDataPoints="20")
        history = engine.get_price_history("BTC")
        assert len(history) == 30
        assert history[0] == 31.0
        assert engine.get_buffer_status("BTC")['max'] == 30

    def test_thresholds_reread(self, engine):
        """Test that a new threshold applies to the next pass."""
        engine.preload("BTC", 100.0 + np.arange(60, dtype=float))
        assert engine.calculate_trend("BTC").direction is TrendDirection.LONG
        engine.update_config(compositeScoreThreshold=0.95)
        assert engine.calculate_trend("BTC").direction is TrendDirection.WAIT

    def test_invalid_update_keeps_config(self, engine):
        """Test that a rejected update leaves the engine untouched."""
        with pytest.raises(InvalidInputError):
            engine.update_config(emaFastPeriod=50)
        assert engine.config.ema_fast_period == 10

    def test_chain_change_drops_escalation(self, engine):
        """Test that a new escalation chain resets every symbol's state."""
        engine.preload("BTC", zigzag(60))
        engine.calculate_trend("BTC")
        engine.update_config(escalationChain="1m,15m")
        assert engine.get_escalation_state("BTC") is None
        assert engine.get_current_timeframe("BTC") is Timeframe.ONE_MINUTE

    def test_wait_limit_reread_for_live_state(self, engine):
        """Test that a lowered WAIT limit applies to a symbol already waiting."""
        engine.preload("BTC", zigzag(60))
        engine.calculate_trend("BTC")
        engine.calculate_trend("BTC")
        assert engine.get_escalation_state("BTC").max_iterations == 5

        engine.update_config(maxIterations=2)
        assert engine.get_escalation_state("BTC").max_iterations == 2
        engine.calculate_trend("BTC")
        state = engine.get_escalation_state("BTC")
        assert state.timeframe_index == 1
        assert state.wait_iterations == 0

    def test_min_data_points_above_new_buffer_rejected(self, engine):
        """Test that shrinking the buffer below the minimum is refused."""
        with pytest.raises(InvalidInputError):
            engine.update_config(bufferSize=40)
        assert engine.config.buffer_size == 60


class TestConcurrency:
    """Tests for per-symbol serialization under threads."""

    def test_parallel_symbols(self):
        """Test that symbols fed from separate threads keep their own buffers."""
        engine = TrendEngine(EngineConfig(buffer_size=200))

        def feed(symbol, offset):
            for i in range(300):
                engine.add_price(symbol, offset + i)

        threads = [threading.Thread(target=feed, args=(f"S{k}", 100.0 * (k + 1))) for k in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        for k in range(4):
            history = engine.get_price_history(f"S{k}")
            assert history == [100.0 * (k + 1) + i for i in range(100, 300)]

    def test_same_symbol_from_two_threads(self):
        """Test that concurrent writers never exceed capacity or lose passes."""
        engine = TrendEngine(EngineConfig(buffer_size=100, recalculation_interval=1))
        errors = []

        def feed():
            try:
                for i in range(500):
                    engine.add_price("BTC", 100.0 + math.sin(i))
            except Exception as exc:
                errors.append(exc)

        threads = [threading.Thread(target=feed) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert errors == []
        assert len(engine.get_price_history("BTC")) == 100
        assert engine.get_latest_result("BTC") is not None
