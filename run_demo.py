#!/usr/bin/env python3
"""
================================================================================
STREAMING TREND ANALYTICS - DEMO RUNNER
================================================================================

End-to-end demonstration of the streaming trend engine on synthetic tick
streams. Three symbols with different characters are generated:

    TREND   - steady drift with small noise      (expect LONG / SHORT)
    RANGE   - mean-reverting oscillation         (expect WAIT, escalation)
    BURST   - random walk with a volatility spike (expect HIGH_VOLATILITY)

EXECUTION:
    python run_demo.py
    python run_demo.py --ticks 3000 --seed 7 --verbose
    python run_demo.py --symbols TREND RANGE --buffer-size 200

PIPELINE:
    1. Warm-start each buffer from a synthetic history (preload)
    2. Stream ticks through StreamingAnalysisService (1s buckets)
    3. Collect TREND / HURST / VOLATILITY / REGIME / DEEP results
    4. Follow the LONG / SHORT decisions with a toy position and score the
       resulting equity curve with MetricsCalculator

OUTPUT ARTIFACTS:
    outputs/
    ├── trend_results_<timestamp>.json    Latest result per symbol and kind
    └── signal_metrics_<timestamp>.json   Performance of the decision stream

================================================================================
"""

from __future__ import annotations

import argparse
import json
import logging
import queue
import sys
import time
from collections import Counter, defaultdict
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List

import numpy as np

from trend_analytics.config import EngineConfig, TrendDirection
from trend_analytics.risk_analytics import MetricsCalculator, Trade
from trend_analytics.streaming import StreamingAnalysisService
from trend_analytics.trend_engine import PublishedResult, ResultKind


# =============================================================================
# CONFIGURATION
# =============================================================================

VERSION = "1.0.0"
PROJECT_ROOT = Path(__file__).parent
OUTPUT_DIR = PROJECT_ROOT / "outputs"

DEFAULT_SYMBOLS = ["TREND", "RANGE", "BURST"]
DEFAULT_TICKS = 1500
DEFAULT_SEED = 42
HISTORY_LENGTH = 120

BANNER = '''
╔═══════════════════════════════════════════════════════════════════════════════╗
║                                                                               ║
║              STREAMING TREND & REGIME ANALYTICS                               ║
║                                                                               ║
║              Regression · EMA bias · Hurst · GARCH · Regimes                  ║
║                                                                               ║
╚═══════════════════════════════════════════════════════════════════════════════╝
'''


def print_section_header(title: str, char: str = "═") -> None:
    width = 79
    print()
    print(char * width)
    print(f"  {title}")
    print(char * width)
    print()


def print_subsection(title: str) -> None:
    print()
    print(f"  {'─' * 75}")
    print(f"  {title}")
    print(f"  {'─' * 75}")


def format_percent(value: float, precision: int = 1) -> str:
    return f"{value * 100:.{precision}f}%"


def ensure_directories(output_dir: Path) -> None:
    output_dir.mkdir(parents=True, exist_ok=True)


# =============================================================================
# SYNTHETIC STREAMS
# =============================================================================

def trending_stream(rng: np.random.Generator, n: int, start: float = 100.0) -> np.ndarray:
    """Linear drift of +0.05 per tick with small Gaussian noise."""
    noise = rng.normal(0.0, 0.02, n)
    return start + 0.05 * np.arange(n) + noise


def ranging_stream(rng: np.random.Generator, n: int, start: float = 100.0) -> np.ndarray:
    """Fast oscillation around a fixed level."""
    t = np.arange(n)
    return start + 0.5 * np.sin(t * 1.3) + rng.normal(0.0, 0.2, n)


def volatile_stream(rng: np.random.Generator, n: int, start: float = 100.0) -> np.ndarray:
    """Random walk whose last fifth runs at ten times the volatility."""
    sigma = np.full(n, 0.001)
    sigma[int(n * 0.8):] = 0.01
    return start * np.exp(np.cumsum(rng.normal(0.0, sigma)))


GENERATORS: Dict[str, Callable[[np.random.Generator, int], np.ndarray]] = {
    "TREND": trending_stream,
    "RANGE": ranging_stream,
    "BURST": volatile_stream,
}


def generate_stream(symbol: str, rng: np.random.Generator, n: int) -> np.ndarray:
    generator = GENERATORS.get(symbol.upper(), volatile_stream)
    return generator(rng, n)


# =============================================================================
# SIGNAL FOLLOWING
# =============================================================================

def follow_signals(prices: np.ndarray, decisions: List[PublishedResult]) -> Dict[str, Any]:
    """
    Hold +1 / -1 unit after each LONG / SHORT decision and flat after WAIT.

    Decisions are keyed by their ``end_price`` position in the stream, so the
    position is applied from the next tick onward.
    """
    position = np.zeros(len(prices))
    index_of = {}
    for i, price in enumerate(prices):
        index_of.setdefault(round(float(price), 10), i)

    for item in decisions:
        result = item.payload
        i = index_of.get(round(result.end_price, 10))
        if i is None:
            continue
        sign = {TrendDirection.LONG: 1.0, TrendDirection.SHORT: -1.0}.get(result.direction, 0.0)
        position[i + 1:] = sign

    returns = np.diff(prices) / prices[:-1]
    equity = 10_000.0 * np.concatenate(([1.0], np.cumprod(1.0 + position[:-1] * returns)))

    trades: List[Trade] = []
    entry = 0 if position[0] != 0 else None
    for i in range(1, len(position)):
        if position[i] == position[i - 1]:
            continue
        if entry is not None:
            trades.append(Trade(pnl=float(equity[i] - equity[entry]),
                                entry_time=float(entry), exit_time=float(i)))
        entry = i if position[i] != 0 else None

    metrics = MetricsCalculator().calculate_all(equity, trades)
    return {"trades": len(trades), "metrics": metrics.to_dict()}


# =============================================================================
# STREAMING RUN
# =============================================================================

def run_stream(args: argparse.Namespace) -> Dict[str, Any]:
    logger = logging.getLogger(__name__)
    rng = np.random.default_rng(args.seed)
    results: "queue.Queue[PublishedResult]" = queue.Queue()
    config = EngineConfig(buffer_size=args.buffer_size,
                          min_data_points=min(50, args.buffer_size))

    streams = {s.upper(): generate_stream(s, rng, HISTORY_LENGTH + args.ticks) for s in args.symbols}

    print_subsection("STREAMING")
    started = time.time()
    with StreamingAnalysisService(config=config, results=results) as service:
        for symbol, series in streams.items():
            service.track(symbol, history=series[:HISTORY_LENGTH])
        for i in range(args.ticks):
            for symbol, series in streams.items():
                # one tick per second of synthetic time
                service.submit_tick(symbol, float(series[HISTORY_LENGTH + i]), float(i))
        if not service.flush(timeout=60.0):
            logger.warning("Timed out waiting for the pipeline to drain")
        status = service.get_status()
    elapsed = time.time() - started

    collected: Dict[str, Dict[ResultKind, List[PublishedResult]]] = defaultdict(lambda: defaultdict(list))
    while True:
        try:
            item = results.get_nowait()
        except queue.Empty:
            break
        collected[item.symbol][item.kind].append(item)

    print(f"    Ticks processed:   {status['processed_ticks']}")
    print(f"    Ticks dropped:     {status['dropped_ticks']}")
    print(f"    Ticks rejected:    {status['rejected_ticks']}")
    print(f"    Elapsed:           {elapsed:.2f}s")

    report: Dict[str, Any] = {"status": status, "symbols": {}}
    for symbol, series in streams.items():
        by_kind = collected.get(symbol, {})
        trends = by_kind.get(ResultKind.TREND, [])
        directions = Counter(item.payload.direction.value for item in trends)

        print_subsection(f"{symbol}")
        print(f"    Trend passes:      {len(trends)}  {dict(directions)}")

        summary: Dict[str, Any] = {
            "trend_passes": len(trends),
            "directions": dict(directions),
            "latest": {kind.value: items[-1].to_dict() for kind, items in by_kind.items() if items},
        }
        if trends:
            latest = trends[-1].payload
            print(f"    Latest decision:   {latest.direction.value} "
                  f"(score {latest.composite_score:+.3f}, R² {latest.r_squared:.3f}, "
                  f"timeframe {latest.timeframe.value if latest.timeframe else '-'})")
        deep = by_kind.get(ResultKind.DEEP, [])
        if deep:
            analysis = deep[-1].payload
            print(f"    Hurst exponent:    {analysis.hurst.exponent:.3f} ({analysis.hurst.behavior.value})")
            if analysis.volatility is not None:
                print(f"    Volatility regime: {analysis.volatility.regime.value} "
                      f"(z {analysis.volatility.z_score:+.2f})")
            if analysis.regime is not None:
                print(f"    Market regime:     {analysis.regime.type.value} "
                      f"({format_percent(analysis.regime.probability)})")

        signal = follow_signals(series[HISTORY_LENGTH:], trends)
        summary["signal_following"] = signal
        metrics = signal["metrics"]
        print(f"    Signal return:     {format_percent(metrics['total_return'], 2)} "
              f"over {signal['trades']} trades, max DD {format_percent(metrics['max_drawdown'], 2)}")
        report["symbols"][symbol] = summary

    return report


# =============================================================================
# MAIN
# =============================================================================

def main() -> int:
    start_time = time.time()

    parser = argparse.ArgumentParser(
        description="Streaming Trend Analytics - Demo Runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_demo.py                               # Three synthetic symbols
  python run_demo.py --symbols TREND --ticks 5000
  python run_demo.py --buffer-size 200 --seed 7 -v
        """
    )
    parser.add_argument("--symbols", "-s", nargs="+", default=DEFAULT_SYMBOLS,
                        help=f"Synthetic symbols to stream (default: {' '.join(DEFAULT_SYMBOLS)})")
    parser.add_argument("--ticks", "-n", type=int, default=DEFAULT_TICKS,
                        help=f"Ticks per symbol (default: {DEFAULT_TICKS})")
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED,
                        help=f"Random seed (default: {DEFAULT_SEED})")
    parser.add_argument("--buffer-size", "-b", type=int, default=100,
                        help="Price buffer capacity per symbol (default: 100)")
    parser.add_argument("--output", "-o", type=Path, default=OUTPUT_DIR,
                        help=f"Output directory (default: {OUTPUT_DIR})")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    args = parser.parse_args()

    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="  %(asctime)s │ %(levelname)s │ %(message)s",
        datefmt="%H:%M:%S"
    )
    logger = logging.getLogger(__name__)

    print(BANNER)
    print(f"  Execution Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"  Symbols:           {', '.join(args.symbols)}")
    print(f"  Ticks per symbol:  {args.ticks}")
    print(f"  Version:           {VERSION}")

    ensure_directories(args.output)

    print_section_header("STREAMING ANALYSIS")
    try:
        report = run_stream(args)
    except Exception as e:
        logger.error(f"Streaming run failed: {e}")
        return 1

    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    results_path = args.output / f"trend_results_{stamp}.json"
    metrics_path = args.output / f"signal_metrics_{stamp}.json"
    with open(results_path, "w") as f:
        json.dump(report, f, indent=2, default=str)
    with open(metrics_path, "w") as f:
        json.dump({s: v["signal_following"] for s, v in report["symbols"].items()},
                  f, indent=2, default=str)

    print_section_header("ARTIFACTS")
    print(f"    Results: {results_path}")
    print(f"    Metrics: {metrics_path}")
    print(f"    Total time: {time.time() - start_time:.2f}s")
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
