"""
Streaming Trend Engine
======================

Orchestrator of the analytics stack. The engine owns, per tracked symbol:

    - a bounded FIFO price buffer (ring buffer of PriceSample)
    - an append counter driving the recalculation cadence
    - the timeframe escalation state (1s -> 1m -> 15m)
    - the latest TrendResult and DeepAnalysis

and fuses regression, moving averages and direction-change counting into a
composite score and a LONG / SHORT / WAIT decision.

DECISION ALGORITHM
------------------
    strength        = min(100, |price change %| * R² * 10)
    change ratio    = direction changes / n
    oscillating     = R² < 0.3  or  change ratio >= 0.40  or  strength < 2.0
    composite       = 0.4 * tanh(1000 * slope / mean price)
                    + 0.4 * sign(EMA fast - EMA slow)
                    + 0.2 * (R² - 0.5)
    direction       = WAIT if oscillating
                      LONG if composite > 0.3, SHORT if composite < -0.3
                      WAIT otherwise

Weights and thresholds come from EngineConfig and can be hot-reloaded.

ESCALATION
----------
Every WAIT result increments the symbol's wait counter; after
``max_iterations`` consecutive WAITs the analysis timeframe moves one link
along the chain and the counter restarts. A LONG / SHORT result drops the
state. The last link is terminal.

CONCURRENCY
-----------
One RLock per symbol serializes buffer mutation. Analyses copy the buffer
into a numpy array under the lock and compute without it. A pass whose
symbol was untracked meanwhile is discarded instead of published.
"""

from __future__ import annotations

import logging
import math
import queue
import threading
import time
from collections import deque
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Deque, Dict, Iterable, List, Mapping, Optional

import numpy as np
import pandas as pd

from .config import EngineConfig, MABias, Timeframe, TrendDirection
from .exceptions import ConstraintViolationError, InsufficientDataError, InvalidInputError
from .regime_detector import (
    HurstAnalyzer,
    HurstResult,
    RegimeResult,
    VolatilityAnalysis,
    VolatilityModel,
    make_regime_detector,
)
from .regression import RegressionAnalyzer
from .statistics import ArrayLike, StationarityHelper, StationarityResult, as_array, log_returns, safe_divide
from .technical_indicators import MovingAverageCalculator, count_direction_changes, ma_bias

logger = logging.getLogger(__name__)


# =============================================================================
# SECTION 1: DATA MODEL
# =============================================================================

@dataclass(frozen=True)
class PriceSample:
    price: float
    timestamp: Optional[float] = None


@dataclass(frozen=True)
class TrendResult:
    """
    Published artifact of one trend pass.

    ``symbol`` and ``timeframe`` are filled in by the engine; a stateless
    ``calculate_from_prices`` call leaves them None.
    """
    direction: TrendDirection
    strength: float
    composite_score: float
    slope: float
    r_squared: float
    r_squared_adjusted: float
    ema_fast: Optional[float]
    ema_slow: Optional[float]
    ma_bias: MABias
    direction_changes: int
    direction_change_ratio: float
    is_oscillating: bool
    data_points: int
    start_price: float
    end_price: float
    price_change: float
    price_change_percent: float
    symbol: Optional[str] = None
    timeframe: Optional[Timeframe] = None
    calculated_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'symbol': self.symbol,
            'direction': self.direction.value,
            'strength': self.strength,
            'composite_score': self.composite_score,
            'slope': self.slope,
            'r_squared': self.r_squared,
            'r_squared_adjusted': self.r_squared_adjusted,
            'ema_fast': self.ema_fast,
            'ema_slow': self.ema_slow,
            'ma_bias': self.ma_bias.value,
            'direction_changes': self.direction_changes,
            'direction_change_ratio': self.direction_change_ratio,
            'is_oscillating': self.is_oscillating,
            'data_points': self.data_points,
            'start_price': self.start_price,
            'end_price': self.end_price,
            'price_change': self.price_change,
            'price_change_percent': self.price_change_percent,
            'timeframe': self.timeframe.value if self.timeframe else None,
            'calculated_at': self.calculated_at,
        }


@dataclass
class EscalationState:
    """Per-symbol position in the escalation chain."""
    current_timeframe: Timeframe
    timeframe_index: int = 0
    wait_iterations: int = 0
    max_iterations: int = 5
    is_max_escalation: bool = False
    escalation_start_time: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'current_timeframe': self.current_timeframe.value,
            'timeframe_index': self.timeframe_index,
            'wait_iterations': self.wait_iterations,
            'max_iterations': self.max_iterations,
            'is_max_escalation': self.is_max_escalation,
            'escalation_start_time': self.escalation_start_time,
        }


@dataclass(frozen=True)
class DeepAnalysis:
    """Hurst, volatility, regime and stationarity of one buffer snapshot."""
    symbol: str
    data_points: int
    hurst: HurstResult
    volatility: Optional[VolatilityAnalysis]
    regime: Optional[RegimeResult]
    stationarity: StationarityResult
    calculated_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'symbol': self.symbol,
            'data_points': self.data_points,
            'hurst': self.hurst.to_dict(),
            'volatility': self.volatility.to_dict() if self.volatility else None,
            'regime': self.regime.to_dict() if self.regime else None,
            'stationarity': self.stationarity.to_dict(),
            'calculated_at': self.calculated_at,
        }


class ResultKind(Enum):
    TREND = "TREND"
    HURST = "HURST"
    REGIME = "REGIME"
    VOLATILITY = "VOLATILITY"
    DEEP = "DEEP"


@dataclass(frozen=True)
class PublishedResult:
    """Envelope handed to the publication channel."""
    symbol: str
    kind: ResultKind
    payload: Any
    published_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        body = self.payload.to_dict() if hasattr(self.payload, 'to_dict') else self.payload
        return {
            'symbol': self.symbol,
            'kind': self.kind.value,
            'payload': body,
            'published_at': self.published_at,
        }


Subscriber = Callable[[PublishedResult], None]


class _SymbolState:
    """Everything the engine keeps for one symbol; guarded by ``lock``."""

    __slots__ = ('symbol', 'lock', 'buffer', 'appends', 'escalation', 'latest', 'latest_deep')

    def __init__(self, symbol: str, capacity: int):
        self.symbol = symbol
        self.lock = threading.RLock()
        self.buffer: Deque[PriceSample] = deque(maxlen=capacity)
        self.appends = 0
        self.escalation: Optional[EscalationState] = None
        self.latest: Optional[TrendResult] = None
        self.latest_deep: Optional[DeepAnalysis] = None

    def snapshot(self) -> np.ndarray:
        with self.lock:
            return np.fromiter((s.price for s in self.buffer), dtype=float, count=len(self.buffer))


# =============================================================================
# SECTION 2: HELPERS
# =============================================================================

def normalize_symbol(symbol: str) -> str:
    text = str(symbol).strip().upper()
    if not text:
        raise InvalidInputError("Symbol must not be empty")
    return text


def parse_price(value: Any) -> float:
    """Convert a tick or close value (number or numeric string) to float."""
    try:
        price = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"Unparsable price: {value!r}") from exc
    if not math.isfinite(price) or price <= 0:
        raise InvalidInputError(f"Price must be positive and finite, got {value!r}")
    return price


def _iter_closes(history: Any) -> Iterable[Any]:
    """Yield raw close values from rows, a Series or a DataFrame with a close column."""
    if isinstance(history, pd.DataFrame):
        column = next((c for c in history.columns if str(c).lower() in ('close', 'c')), None)
        if column is None:
            raise InvalidInputError("Historical frame needs a 'close' column")
        return history[column].tolist()
    if isinstance(history, pd.Series):
        return history.tolist()
    return (row.get('close', row.get('c')) if isinstance(row, Mapping) else row for row in history)


# =============================================================================
# SECTION 3: TREND ENGINE
# =============================================================================

class TrendEngine:
    """
    Per-symbol streaming trend analysis with timeframe escalation.

    Usage:
        engine = TrendEngine(EngineConfig(buffer_size=200))
        engine.subscribe(print)
        engine.start_tracking("btcusdt")
        for price in ticks:
            engine.add_price("BTCUSDT", price)
        latest = engine.get_latest_result("BTCUSDT")
    """

    def __init__(self, config: Optional[EngineConfig] = None,
                 results: Optional["queue.Queue[PublishedResult]"] = None):
        self._config = (config or EngineConfig()).validate()
        self._results = results
        self._subscribers: List[Subscriber] = []
        self._states: Dict[str, _SymbolState] = {}
        self._lock = threading.RLock()

        self._regression = RegressionAnalyzer()
        self._averages = MovingAverageCalculator()
        self._hurst = HurstAnalyzer()
        self._volatility = VolatilityModel()
        self._stationarity = StationarityHelper()

        logger.info("TrendEngine initialized (buffer_size=%d, min_data_points=%d)",
                    self._config.buffer_size, self._config.min_data_points)

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    @property
    def config(self) -> EngineConfig:
        return self._config

    def reload_config(self, config: EngineConfig) -> None:
        """
        Swap in a new configuration without restarting.

        Buffers are re-bounded to the new capacity keeping the newest samples.
        Escalation states are dropped when the chain itself changed; otherwise
        their WAIT limits are re-read for the current link.
        """
        config.validate()
        with self._lock:
            previous, self._config = self._config, config
            states = list(self._states.values())
        chain_changed = previous.escalation_chain != config.escalation_chain
        # symbol locks are never acquired while holding the registry lock
        for state in states:
            with state.lock:
                if state.buffer.maxlen != config.buffer_size:
                    state.buffer = deque(state.buffer, maxlen=config.buffer_size)
                if chain_changed:
                    state.escalation = None
                elif state.escalation is not None:
                    escalation = state.escalation
                    escalation.max_iterations = config.max_iterations_for(escalation.timeframe_index)
        logger.info("Configuration reloaded (buffer_size=%d, min_data_points=%d)",
                    config.buffer_size, config.min_data_points)

    def update_config(self, **overrides: Any) -> EngineConfig:
        """Apply field overrides (snake_case or camelCase) on top of the current config."""
        config = EngineConfig.from_mapping(overrides, base=self._config)
        self.reload_config(config)
        return config

    # =========================================================================
    # PUBLICATION
    # =========================================================================

    def subscribe(self, callback: Subscriber) -> None:
        with self._lock:
            if callback not in self._subscribers:
                self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def _publish(self, symbol: str, kind: ResultKind, payload: Any) -> None:
        item = PublishedResult(symbol=symbol, kind=kind, payload=payload)
        if self._results is not None:
            try:
                self._results.put_nowait(item)
            except queue.Full:
                logger.warning("Result channel full; dropped %s result for %s", kind.value, symbol)
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(item)
            except Exception:
                logger.exception("Subscriber %r failed on %s result for %s", callback, kind.value, symbol)

    # =========================================================================
    # TRACKING
    # =========================================================================

    def _get_state(self, symbol: str) -> Optional[_SymbolState]:
        with self._lock:
            return self._states.get(normalize_symbol(symbol))

    def _is_current(self, state: _SymbolState) -> bool:
        with self._lock:
            return self._states.get(state.symbol) is state

    def start_tracking(self, symbol: str) -> str:
        """Create an empty buffer for the symbol; no-op if already tracked."""
        return self._track(normalize_symbol(symbol)).symbol

    def _track(self, key: str) -> _SymbolState:
        with self._lock:
            state = self._states.get(key)
            if state is not None:
                return state
            state = self._states[key] = _SymbolState(key, self._config.buffer_size)
        logger.info("Started tracking %s (buffer: %d)", key, self._config.buffer_size)
        return state

    def stop_tracking(self, symbol: str) -> bool:
        """Drop buffer, escalation state and cached results. Returns False if untracked."""
        key = normalize_symbol(symbol)
        with self._lock:
            state = self._states.pop(key, None)
        if state is None:
            return False
        logger.info("Stopped tracking %s", key)
        return True

    def is_tracking(self, symbol: str) -> bool:
        return self._get_state(symbol) is not None

    @property
    def tracked_symbols(self) -> List[str]:
        with self._lock:
            return sorted(self._states)

    # =========================================================================
    # INGESTION
    # =========================================================================

    def _ensure_state(self, symbol: str) -> _SymbolState:
        """Ticks for an untracked symbol start its tracking."""
        return self._track(normalize_symbol(symbol))

    def preload(self, symbol: str, history: Any) -> int:
        """
        Warm-start a buffer from historical closes.

        Args:
            symbol: Symbol to fill (tracking starts if needed)
            history: Rows like {"close": "101.5"}, plain numbers or strings,
                a pandas Series, or a DataFrame with a ``close`` column

        Returns:
            Number of closes appended (capacity still applies)
        """
        state = self._ensure_state(symbol)
        closes = []
        skipped = 0
        for raw in _iter_closes(history):
            try:
                closes.append(parse_price(raw))
            except InvalidInputError:
                skipped += 1
        if skipped:
            logger.warning("Skipped %d unparsable historical closes for %s", skipped, state.symbol)

        with state.lock:
            state.buffer.extend(PriceSample(price) for price in closes)
            depth = len(state.buffer)
        logger.info("Preloaded %d historical closes for %s (buffer: %d)",
                    len(closes), state.symbol, depth)
        return len(closes)

    def add_price(self, symbol: str, price: Any,
                  timestamp: Optional[float] = None) -> Optional[TrendResult]:
        """
        Append a tick; every ``recalculation_interval`` appends, once the
        buffer holds ``min_data_points``, run a trend pass.

        Returns:
            The TrendResult when a pass ran, else None

        Raises:
            InvalidInputError: Non-numeric, non-finite or non-positive price
        """
        value = parse_price(price)
        state = self._ensure_state(symbol)
        config = self._config
        with state.lock:
            state.buffer.append(PriceSample(value, timestamp))
            state.appends += 1
            due = (len(state.buffer) >= config.min_data_points
                   and state.appends % config.recalculation_interval == 0)
        if due:
            return self.calculate_trend(state.symbol)
        return None

    # =========================================================================
    # BUFFER ACCESS
    # =========================================================================

    def get_price_history(self, symbol: str) -> List[float]:
        state = self._get_state(symbol)
        return state.snapshot().tolist() if state else []

    def get_samples(self, symbol: str) -> List[PriceSample]:
        state = self._get_state(symbol)
        if state is None:
            return []
        with state.lock:
            return list(state.buffer)

    def clear_buffer(self, symbol: str) -> None:
        state = self._get_state(symbol)
        if state is None:
            return
        with state.lock:
            state.buffer.clear()
            state.appends = 0
        logger.info("Cleared buffer for %s", state.symbol)

    def half_reset_buffer(self, symbol: str) -> int:
        """Discard the oldest half of the buffer; returns the number of samples kept."""
        state = self._get_state(symbol)
        if state is None:
            return 0
        with state.lock:
            for _ in range(len(state.buffer) // 2):
                state.buffer.popleft()
            kept = len(state.buffer)
        logger.info("Half-reset buffer for %s: kept %d newest points", state.symbol, kept)
        return kept

    def get_buffer_status(self, symbol: str) -> Dict[str, float]:
        state = self._get_state(symbol)
        current = 0
        if state is not None:
            with state.lock:
                current = len(state.buffer)
        capacity = self._config.buffer_size
        return {
            'current': current,
            'max': capacity,
            'percent': current / capacity * 100,
            'required': self._config.min_data_points,
        }

    def is_buffer_full(self, symbol: str) -> bool:
        return self.get_buffer_status(symbol)['current'] >= self._config.buffer_size

    def get_latest_result(self, symbol: str) -> Optional[TrendResult]:
        state = self._get_state(symbol)
        if state is None:
            return None
        with state.lock:
            return state.latest

    def get_latest_analysis(self, symbol: str) -> Optional[DeepAnalysis]:
        state = self._get_state(symbol)
        if state is None:
            return None
        with state.lock:
            return state.latest_deep

    # =========================================================================
    # TREND CALCULATION
    # =========================================================================

    def calculate_trend(self, symbol: str) -> Optional[TrendResult]:
        """
        Run a trend pass on the symbol's current buffer.

        Returns None (try again later) when the symbol is untracked, the
        buffer is below ``min_data_points``, or the symbol was untracked
        while the pass ran.
        """
        state = self._get_state(symbol)
        if state is None:
            return None
        prices = state.snapshot()
        if len(prices) < self._config.min_data_points:
            logger.debug("Insufficient data for %s: %d/%d",
                         state.symbol, len(prices), self._config.min_data_points)
            return None

        result = self.calculate_from_prices(prices)
        if result is None:
            return None

        with state.lock:
            if not self._is_current(state):
                logger.debug("Discarding trend result for untracked %s", state.symbol)
                return None
            timeframe = state.escalation.current_timeframe if state.escalation \
                else self._config.escalation_chain[0]
            result = replace(result, symbol=state.symbol, timeframe=timeframe)
            self._update_escalation(state, result.direction)
            state.latest = result

        self._publish(state.symbol, ResultKind.TREND, result)
        return result

    def calculate_from_prices(self, prices: ArrayLike) -> Optional[TrendResult]:
        """Stateless trend pass over an explicit price series."""
        config = self._config
        p = as_array(prices)
        n = len(p)
        if n < config.min_data_points:
            return None

        start_price, end_price = float(p[0]), float(p[-1])
        price_change = end_price - start_price
        price_change_percent = safe_divide(price_change, start_price) * 100

        if price_change == 0:
            return self._flat_result(n, start_price, end_price)

        regression = self._regression.analyze(p)
        r_squared = regression.r_squared
        direction_changes = count_direction_changes(p)
        strength = min(100.0, abs(price_change_percent) * r_squared * 10)

        ema_fast = self._averages.ema(p, config.ema_fast_period)
        ema_slow = self._averages.ema(p, config.ema_slow_period)
        bias = ma_bias(ema_fast, ema_slow)

        change_ratio = direction_changes / n
        is_oscillating = (
            r_squared < config.oscillation_r_squared_threshold
            or change_ratio >= config.oscillation_direction_change_ratio
            or strength < config.min_strength_threshold
        )

        normalized_slope = safe_divide(regression.slope, float(p.mean()))
        ema_sign = float(np.sign(ema_fast - ema_slow)) \
            if ema_fast is not None and ema_slow is not None else 0.0
        composite = (
            config.slope_weight * math.tanh(normalized_slope * config.slope_scale)
            + config.ema_weight * ema_sign
            + config.r_squared_weight * (r_squared - 0.5)
        )

        if is_oscillating:
            direction = TrendDirection.WAIT
        elif composite > config.composite_score_threshold:
            direction = TrendDirection.LONG
        elif composite < -config.composite_score_threshold:
            direction = TrendDirection.SHORT
        else:
            direction = TrendDirection.WAIT

        return TrendResult(
            direction=direction,
            strength=strength,
            composite_score=composite,
            slope=regression.slope,
            r_squared=r_squared,
            r_squared_adjusted=regression.r_squared_adjusted,
            ema_fast=ema_fast,
            ema_slow=ema_slow,
            ma_bias=bias,
            direction_changes=direction_changes,
            direction_change_ratio=change_ratio,
            is_oscillating=is_oscillating,
            data_points=n,
            start_price=start_price,
            end_price=end_price,
            price_change=price_change,
            price_change_percent=price_change_percent,
        )

    @staticmethod
    def _flat_result(n: int, start_price: float, end_price: float) -> TrendResult:
        return TrendResult(
            direction=TrendDirection.WAIT,
            strength=0.0,
            composite_score=0.0,
            slope=0.0,
            r_squared=0.0,
            r_squared_adjusted=0.0,
            ema_fast=None,
            ema_slow=None,
            ma_bias=MABias.NEUTRAL,
            direction_changes=0,
            direction_change_ratio=0.0,
            is_oscillating=True,
            data_points=n,
            start_price=start_price,
            end_price=end_price,
            price_change=0.0,
            price_change_percent=0.0,
        )

    # =========================================================================
    # TIMEFRAME ESCALATION
    # =========================================================================

    def _new_escalation(self) -> EscalationState:
        chain = self._config.escalation_chain
        return EscalationState(
            current_timeframe=chain[0],
            max_iterations=self._config.max_iterations_for(0),
            is_max_escalation=len(chain) == 1,
        )

    def _advance(self, escalation: EscalationState) -> bool:
        chain = self._config.escalation_chain
        if escalation.timeframe_index >= len(chain) - 1:
            return False
        escalation.timeframe_index += 1
        escalation.current_timeframe = chain[escalation.timeframe_index]
        escalation.wait_iterations = 0
        escalation.max_iterations = self._config.max_iterations_for(escalation.timeframe_index)
        escalation.is_max_escalation = escalation.timeframe_index == len(chain) - 1
        return True

    def _update_escalation(self, state: _SymbolState, direction: TrendDirection) -> None:
        """Called with ``state.lock`` held."""
        if not self._config.escalation_enabled:
            return
        if direction is not TrendDirection.WAIT:
            if state.escalation is not None:
                logger.debug("Decisive %s result for %s; escalation reset",
                             direction.value, state.symbol)
            state.escalation = None
            return

        if state.escalation is None:
            state.escalation = self._new_escalation()
        escalation = state.escalation
        escalation.wait_iterations += 1
        if escalation.wait_iterations >= escalation.max_iterations and not escalation.is_max_escalation:
            previous = escalation.current_timeframe
            if self._advance(escalation):
                logger.info("Escalated %s from %s to %s after %d WAIT results",
                            state.symbol, previous.value, escalation.current_timeframe.value,
                            self._config.max_iterations_for(escalation.timeframe_index - 1))

    def get_escalation_state(self, symbol: str) -> Optional[EscalationState]:
        """Copy of the symbol's escalation state, or None when none exists."""
        state = self._get_state(symbol)
        if state is None:
            return None
        with state.lock:
            return replace(state.escalation) if state.escalation else None

    def get_current_timeframe(self, symbol: str) -> Timeframe:
        escalation = self.get_escalation_state(symbol)
        return escalation.current_timeframe if escalation else self._config.escalation_chain[0]

    def escalate(self, symbol: str) -> bool:
        """
        Move the symbol one link along the escalation chain.

        Returns False, leaving the state unchanged, when there is no state or
        it is already at the last link.
        """
        state = self._get_state(symbol)
        if state is None:
            return False
        with state.lock:
            if state.escalation is None:
                return False
            advanced = self._advance(state.escalation)
            timeframe = state.escalation.current_timeframe
        if advanced:
            logger.info("Escalated %s to %s", state.symbol, timeframe.value)
        return advanced

    def reset_escalation(self, symbol: str) -> None:
        state = self._get_state(symbol)
        if state is None:
            return
        with state.lock:
            state.escalation = None

    # =========================================================================
    # DEEP ANALYSIS
    # =========================================================================

    def analyze_deep(self, symbol: str) -> Optional[DeepAnalysis]:
        """
        Hurst, GARCH volatility, regime and stationarity over one snapshot.

        Parts that lack data (GARCH below 30 returns, regime below 100
        prices) or hit a degenerate constraint (zero-variance returns) are
        reported as None.
        """
        state = self._get_state(symbol)
        if state is None:
            return None
        prices = state.snapshot()
        if len(prices) < 2:
            return None
        config = self._config

        hurst = self._hurst.analyze(prices)
        returns = log_returns(prices)

        volatility: Optional[VolatilityAnalysis] = None
        try:
            volatility = self._volatility.analyze(returns, config.garch_horizon)
        except InsufficientDataError as exc:
            logger.debug("Volatility skipped for %s: %s", state.symbol, exc)
        except ConstraintViolationError as exc:
            logger.debug("Volatility unavailable for %s: %s", state.symbol, exc)

        regime: Optional[RegimeResult] = None
        detector = make_regime_detector(config.regime_detection_method)
        historical = None
        if volatility is not None:
            historical = self._volatility.conditional_volatility_series(returns, volatility.params)
        try:
            regime = detector.detect(prices, historical)
        except InsufficientDataError as exc:
            logger.debug("Regime skipped for %s: %s", state.symbol, exc)

        analysis = DeepAnalysis(
            symbol=state.symbol,
            data_points=len(prices),
            hurst=hurst,
            volatility=volatility,
            regime=regime,
            stationarity=self._stationarity.test_stationarity(prices),
        )

        with state.lock:
            if not self._is_current(state):
                logger.debug("Discarding deep analysis for untracked %s", state.symbol)
                return None
            state.latest_deep = analysis

        self._publish(state.symbol, ResultKind.HURST, hurst)
        if volatility is not None:
            self._publish(state.symbol, ResultKind.VOLATILITY, volatility)
        if regime is not None:
            self._publish(state.symbol, ResultKind.REGIME, regime)
        self._publish(state.symbol, ResultKind.DEEP, analysis)
        return analysis


__all__ = [
    'PriceSample',
    'TrendResult',
    'EscalationState',
    'DeepAnalysis',
    'ResultKind',
    'PublishedResult',
    'Subscriber',
    'normalize_symbol',
    'parse_price',
    'TrendEngine',
]
