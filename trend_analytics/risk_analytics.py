"""
================================================================================
PERFORMANCE & RISK METRICS
================================================================================

Evaluation metrics for the signals produced by the trend engine. Given an
equity curve (and optionally a list of closed trades) they summarize return,
risk-adjusted return, drawdown, tail risk and trade profitability.

Components:
-----------
1. RISK-ADJUSTED RETURN
   - Sharpe ratio (annualized by sqrt(252), risk-free 2% p.a.)
   - Sortino ratio (downside deviation)
   - Calmar ratio (CAGR / max drawdown)

2. DRAWDOWN ANALYSIS
   - Maximum drawdown from running peak
   - Average depth of underwater observations

3. TAIL RISK
   - Historical VaR at 95%
   - Conditional VaR (expected shortfall)

4. TRADE PROFITABILITY
   - Profit factor, win rate, expectancy

Degenerate inputs resolve to sentinels rather than raising: an empty or
single-point series gives 0, and a strategy with no downside reports
``math.inf`` for Sharpe / Sortino / profit factor when its mean return (or
gross profit) is positive.

Academic References:
-------------------
- Sharpe (1966): "Mutual Fund Performance"
- Sortino & Price (1994): "Performance Measurement in a Downside Risk Framework"
================================================================================
"""

from __future__ import annotations

import math
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .statistics import ArrayLike, as_array, mean, sample_std_dev


TRADING_DAYS_YEAR: int = 252
RISK_FREE_RATE: float = 0.02


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class Trade:
    """A closed trade; only ``pnl`` is used by the metrics."""
    pnl: float
    entry_time: Optional[float] = None
    exit_time: Optional[float] = None


@dataclass(frozen=True)
class PerformanceMetrics:
    """Comprehensive metrics for one equity curve and trade list."""

    # Return
    total_return: float
    cagr: float
    win_rate: float

    # Risk-adjusted
    sharpe_ratio: float
    sortino_ratio: float
    calmar_ratio: float

    # Risk
    max_drawdown: float
    avg_drawdown: float
    value_at_risk_95: float
    conditional_var_95: float

    # Profitability
    profit_factor: float
    avg_win: float
    avg_loss: float
    expectancy: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


# =============================================================================
# METRICS CALCULATOR
# =============================================================================

class MetricsCalculator:
    """
    Stateless performance metrics.

    Usage:
        calc = MetricsCalculator()
        metrics = calc.calculate_all(equity_curve, trades)
    """

    def __init__(self, risk_free_rate: float = RISK_FREE_RATE,
                 trading_days: int = TRADING_DAYS_YEAR):
        self.rf = risk_free_rate
        self.trading_days = trading_days

    # =========================================================================
    # RISK-ADJUSTED RETURN
    # =========================================================================

    def _annualized_excess(self, returns: np.ndarray, deviation: float) -> float:
        mean_return = float(returns.mean())
        if deviation == 0:
            return math.inf if mean_return > 0 else 0.0
        daily_rf = self.rf / self.trading_days
        return (mean_return - daily_rf) / deviation * math.sqrt(self.trading_days)

    def sharpe_ratio(self, returns: ArrayLike) -> float:
        r = as_array(returns)
        if len(r) < 2:
            return 0.0
        return self._annualized_excess(r, sample_std_dev(r))

    def sortino_ratio(self, returns: ArrayLike) -> float:
        """Like Sharpe but scaled by the deviation of negative returns only."""
        r = as_array(returns)
        if len(r) < 2:
            return 0.0
        downside = r[r < 0]
        if len(downside) == 0:
            return math.inf if r.mean() > 0 else 0.0
        return self._annualized_excess(r, sample_std_dev(downside))

    # =========================================================================
    # DRAWDOWN
    # =========================================================================

    @staticmethod
    def _drawdown_series(equity: ArrayLike) -> pd.Series:
        curve = pd.Series(as_array(equity))
        running_max = curve.expanding().max()
        return (running_max - curve) / running_max

    def max_drawdown(self, equity: ArrayLike) -> float:
        """Largest peak-to-trough decline as a positive fraction."""
        if len(as_array(equity)) < 2:
            return 0.0
        return float(self._drawdown_series(equity).max())

    def avg_drawdown(self, equity: ArrayLike) -> float:
        if len(as_array(equity)) < 2:
            return 0.0
        drawdown = self._drawdown_series(equity)
        underwater = drawdown[drawdown > 0]
        return float(underwater.mean()) if len(underwater) else 0.0

    # =========================================================================
    # TAIL RISK
    # =========================================================================

    @staticmethod
    def _tail_index(n: int, confidence: float) -> int:
        return int(math.floor((1 - confidence) * n))

    def value_at_risk(self, returns: ArrayLike, confidence: float = 0.95) -> float:
        """Historical VaR, reported as a positive loss."""
        r = np.sort(as_array(returns))
        if len(r) == 0:
            return 0.0
        return float(-r[self._tail_index(len(r), confidence)])

    def conditional_var(self, returns: ArrayLike, confidence: float = 0.95) -> float:
        """Mean of the returns strictly below the VaR index."""
        r = np.sort(as_array(returns))
        tail = r[:self._tail_index(len(r), confidence)]
        if len(tail) == 0:
            return 0.0
        return float(-tail.mean())

    # =========================================================================
    # TRADES
    # =========================================================================

    @staticmethod
    def _pnls(trades: Iterable[Union[Trade, float]]) -> np.ndarray:
        return np.array([t.pnl if isinstance(t, Trade) else float(t) for t in trades], dtype=float)

    def profit_factor(self, trades: Iterable[Union[Trade, float]]) -> float:
        pnl = self._pnls(trades)
        gross_profit = float(pnl[pnl > 0].sum())
        gross_loss = abs(float(pnl[pnl < 0].sum()))
        if gross_loss == 0:
            return math.inf if gross_profit > 0 else 0.0
        return gross_profit / gross_loss

    def expectancy(self, trades: Iterable[Union[Trade, float]]) -> float:
        pnl = self._pnls(trades)
        if len(pnl) == 0:
            return 0.0
        wins, losses = pnl[pnl > 0], pnl[pnl < 0]
        win_rate = len(wins) / len(pnl)
        avg_win = float(wins.mean()) if len(wins) else 0.0
        avg_loss = abs(float(losses.mean())) if len(losses) else 0.0
        return win_rate * avg_win - (1 - win_rate) * avg_loss

    # =========================================================================
    # GROWTH
    # =========================================================================

    def cagr(self, equity: ArrayLike, years_or_days: Optional[float] = None) -> float:
        """
        Compound annual growth rate.

        ``years_or_days`` above 100 is read as a number of trading days;
        omitted, every equity point counts as one trading day.
        """
        curve = as_array(equity)
        if len(curve) < 2:
            return 0.0
        if years_or_days is None:
            years = len(curve) / self.trading_days
        elif years_or_days > 100:
            years = years_or_days / self.trading_days
        else:
            years = years_or_days
        initial, final = curve[0], curve[-1]
        if years == 0 or initial == 0:
            return 0.0
        return float((final / initial) ** (1 / years) - 1)

    # =========================================================================
    # COMPREHENSIVE
    # =========================================================================

    def calculate_all(self, equity: ArrayLike,
                      trades: Sequence[Union[Trade, float]] = ()) -> PerformanceMetrics:
        curve = as_array(equity)
        returns = pd.Series(curve).pct_change().dropna().to_numpy() if len(curve) > 1 else np.array([])
        pnl = self._pnls(trades)
        wins, losses = pnl[pnl > 0], pnl[pnl < 0]

        cagr = self.cagr(curve)
        max_dd = self.max_drawdown(curve)
        total_return = float((curve[-1] - curve[0]) / curve[0]) if len(curve) > 1 and curve[0] else 0.0

        return PerformanceMetrics(
            total_return=total_return,
            cagr=cagr,
            win_rate=len(wins) / len(pnl) if len(pnl) else 0.0,
            sharpe_ratio=self.sharpe_ratio(returns),
            sortino_ratio=self.sortino_ratio(returns),
            calmar_ratio=cagr / (max_dd or 1.0),
            max_drawdown=max_dd,
            avg_drawdown=self.avg_drawdown(curve),
            value_at_risk_95=self.value_at_risk(returns, 0.95),
            conditional_var_95=self.conditional_var(returns, 0.95),
            profit_factor=self.profit_factor(pnl),
            avg_win=mean(wins),
            avg_loss=mean(np.abs(losses)),
            expectancy=self.expectancy(pnl),
        )


__all__ = [
    'TRADING_DAYS_YEAR',
    'RISK_FREE_RATE',
    'Trade',
    'PerformanceMetrics',
    'MetricsCalculator',
]
