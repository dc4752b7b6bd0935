"""
Streaming Analysis Service

Message-passing front end of the TrendEngine:

    submit_tick() --> inbound queue --> ingestion thread --> TrendEngine.add_price()
                                                              |
                         deep-analysis pool <-- every N trend passes
                                                              |
                     subscribers / outbound queue <-- PublishedResult

A single ingestion thread consumes the inbound channel, so buffer mutation
is serialized for every symbol. Ticks are sampled on the symbol's current
escalation timeframe: the close of each 1s / 1m / 15m bucket is forwarded
once the next bucket opens, so an escalated symbol's buffer fills with
wider bars.

Deep analyses (Hurst, GARCH, regime) run on a bounded ThreadPoolExecutor
with coalesce-latest backpressure: at most one in flight and one pending
per symbol; further requests collapse into the pending one, since only the
newest result is ever consumed.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, Optional, Set

from .config import EngineConfig, Timeframe
from .exceptions import InvalidInputError, TrendAnalyticsError
from .trend_engine import PublishedResult, TrendEngine, normalize_symbol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Tick:
    symbol: str
    price: Any
    timestamp: float


_STOP = object()


class _TimeframeSampler:
    """Emits the close of a timeframe bucket when a tick opens the next one."""

    def __init__(self, timeframe: Timeframe):
        self.timeframe = timeframe
        self.bucket: Optional[int] = None
        self.close: Any = None
        self.close_time: Optional[float] = None

    def offer(self, price: Any, timestamp: float):
        bucket = int(timestamp // self.timeframe.seconds)
        if self.bucket is None:
            self.bucket = bucket
        if bucket == self.bucket:
            self.close, self.close_time = price, timestamp
            return None
        if bucket < self.bucket:
            # out-of-order tick from an already closed bucket
            return None
        finished = (self.close, self.close_time)
        self.bucket, self.close, self.close_time = bucket, price, timestamp
        return finished


class StreamingAnalysisService:
    """
    Threaded ingestion and deep-analysis scheduling around a TrendEngine.

    Usage:
        results = queue.Queue()
        service = StreamingAnalysisService(results=results)
        service.start()
        service.track("BTCUSDT", history=klines)
        service.submit_tick("BTCUSDT", 64_210.5, time.time())
        item = results.get(timeout=5)
        service.stop()
    """

    def __init__(
        self,
        engine: Optional[TrendEngine] = None,
        config: Optional[EngineConfig] = None,
        results: Optional["queue.Queue[PublishedResult]"] = None,
        max_workers: int = 2,
        inbound_capacity: int = 10_000,
        deep_analysis_every: int = 5,
        sample_by_timeframe: bool = True,
    ):
        if engine is not None and (config is not None or results is not None):
            raise InvalidInputError("Pass either an engine or config/results, not both")
        self.engine = engine or TrendEngine(config, results=results)
        self.max_workers = max_workers
        self.deep_analysis_every = deep_analysis_every
        self.sample_by_timeframe = sample_by_timeframe

        self._inbound: "queue.Queue[Any]" = queue.Queue(maxsize=inbound_capacity)
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._outstanding = 0  # ticks queued but not yet handled
        self._samplers: Dict[str, _TimeframeSampler] = {}
        self._trend_passes: Dict[str, int] = {}
        self._in_flight: Set[str] = set()
        self._pending: Set[str] = set()

        self._executor: Optional[ThreadPoolExecutor] = None
        self._worker: Optional[threading.Thread] = None
        self._running = False

        self.processed_ticks = 0
        self.dropped_ticks = 0
        self.rejected_ticks = 0

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            logger.warning("StreamingAnalysisService already running")
            return
        self._executor = ThreadPoolExecutor(max_workers=self.max_workers,
                                            thread_name_prefix="deep-analysis")
        self._worker = threading.Thread(target=self._ingest_loop, name="tick-ingestion", daemon=True)
        self._running = True
        self._worker.start()
        logger.info("StreamingAnalysisService started (workers=%d)", self.max_workers)

    def stop(self, timeout: float = 5.0) -> None:
        """Drain queued ticks, stop the ingestion thread and the analysis pool."""
        if not self._running:
            return
        self._running = False
        try:
            self._inbound.put(_STOP, timeout=timeout)
        except queue.Full:
            logger.error("Inbound channel full; ingestion thread not signalled to stop")
        if self._worker is not None:
            self._worker.join(timeout)
        if self._executor is not None:
            self._executor.shutdown(wait=True, cancel_futures=True)
        with self._lock:
            self._in_flight.clear()
            self._pending.clear()
            self._idle.notify_all()
        logger.info("StreamingAnalysisService stopped (%d ticks processed, %d dropped)",
                    self.processed_ticks, self.dropped_ticks)

    def __enter__(self) -> 'StreamingAnalysisService':
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # =========================================================================
    # SYMBOLS
    # =========================================================================

    def track(self, symbol: str, history: Any = None) -> str:
        key = self.engine.start_tracking(symbol)
        if history is not None:
            self.engine.preload(key, history)
        return key

    def untrack(self, symbol: str) -> bool:
        key = normalize_symbol(symbol)
        with self._lock:
            self._samplers.pop(key, None)
            self._trend_passes.pop(key, None)
            self._pending.discard(key)
        return self.engine.stop_tracking(key)

    # =========================================================================
    # INGESTION
    # =========================================================================

    def submit_tick(self, symbol: str, price: Any, timestamp: Optional[float] = None) -> bool:
        """Queue a tick; returns False when the inbound channel is full."""
        tick = Tick(normalize_symbol(symbol), price, time.time() if timestamp is None else timestamp)
        with self._lock:
            try:
                self._inbound.put_nowait(tick)
            except queue.Full:
                self.dropped_ticks += 1
                accepted = False
            else:
                self._outstanding += 1
                accepted = True
        if not accepted:
            logger.warning("Inbound channel full; dropped tick for %s", tick.symbol)
        return accepted

    def submit_quote(self, symbol: str, bid: float, ask: float,
                     timestamp: Optional[float] = None) -> bool:
        """Queue the mid price of a best bid / ask update."""
        return self.submit_tick(symbol, (float(bid) + float(ask)) / 2, timestamp)

    def _ingest_loop(self) -> None:
        while True:
            item = self._inbound.get()
            try:
                if item is _STOP:
                    return
                self._handle_tick(item)
            except Exception:
                logger.exception("Tick handling failed for %s", getattr(item, 'symbol', item))
            finally:
                if item is not _STOP:
                    with self._idle:
                        self._outstanding -= 1
                        self._idle.notify_all()

    def _sample(self, tick: Tick):
        timeframe = self.engine.get_current_timeframe(tick.symbol)
        with self._lock:
            sampler = self._samplers.get(tick.symbol)
            if sampler is None or sampler.timeframe is not timeframe:
                if sampler is not None:
                    logger.debug("%s sampling switched to %s", tick.symbol, timeframe.value)
                sampler = self._samplers[tick.symbol] = _TimeframeSampler(timeframe)
            return sampler.offer(tick.price, tick.timestamp)

    def _handle_tick(self, tick: Tick) -> None:
        if not self.engine.is_tracking(tick.symbol):
            logger.debug("Ignoring tick for untracked %s", tick.symbol)
            return

        if self.sample_by_timeframe:
            sampled = self._sample(tick)
            if sampled is None:
                return
            price, timestamp = sampled
        else:
            price, timestamp = tick.price, tick.timestamp

        try:
            result = self.engine.add_price(tick.symbol, price, timestamp)
        except TrendAnalyticsError as exc:
            self.rejected_ticks += 1
            logger.warning("Rejected tick for %s: %s", tick.symbol, exc)
            return
        self.processed_ticks += 1

        if result is not None and self.deep_analysis_every > 0:
            with self._lock:
                passes = self._trend_passes.get(tick.symbol, 0) + 1
                self._trend_passes[tick.symbol] = passes
            if passes % self.deep_analysis_every == 0:
                self.request_deep_analysis(tick.symbol)

    # =========================================================================
    # DEEP ANALYSIS
    # =========================================================================

    def request_deep_analysis(self, symbol: str) -> bool:
        """
        Schedule a deep analysis, coalescing with any in-flight request.

        Returns False when the service is not running.
        """
        key = normalize_symbol(symbol)
        with self._lock:
            if not self._running or self._executor is None:
                return False
            if key in self._in_flight:
                self._pending.add(key)
                return True
            self._in_flight.add(key)
            executor = self._executor
        try:
            executor.submit(self._run_deep_analysis, key)
        except RuntimeError:
            # pool already shut down
            with self._idle:
                self._in_flight.discard(key)
                self._idle.notify_all()
            return False
        return True

    def _run_deep_analysis(self, symbol: str) -> None:
        while True:
            try:
                self.engine.analyze_deep(symbol)
            except Exception:
                logger.warning("Deep analysis failed for %s", symbol, exc_info=True)
            with self._idle:
                again = symbol in self._pending and self._running
                self._pending.discard(symbol)
                if not again:
                    self._in_flight.discard(symbol)
                    self._idle.notify_all()
                    return

    def flush(self, timeout: float = 5.0) -> bool:
        """Block until queued ticks and deep analyses are done; False on timeout."""
        with self._idle:
            return self._idle.wait_for(
                lambda: self._outstanding == 0 and not self._in_flight, timeout)

    # =========================================================================
    # STATUS
    # =========================================================================

    def get_status(self) -> Dict[str, Any]:
        symbols = {}
        for key in self.engine.tracked_symbols:
            latest = self.engine.get_latest_result(key)
            symbols[key] = {
                'buffer': self.engine.get_buffer_status(key),
                'timeframe': self.engine.get_current_timeframe(key).value,
                'direction': latest.direction.value if latest else None,
            }
        with self._lock:
            in_flight = sorted(self._in_flight)
        return {
            'status': 'running' if self._running else 'stopped',
            'timestamp': time.time(),
            'tracked_symbols': len(symbols),
            'inbound_depth': self._inbound.qsize(),
            'processed_ticks': self.processed_ticks,
            'dropped_ticks': self.dropped_ticks,
            'rejected_ticks': self.rejected_ticks,
            'deep_in_flight': in_flight,
            'symbols': symbols,
        }


__all__ = [
    'Tick',
    'StreamingAnalysisService',
]
