"""
Moving Averages and Price-Path Indicators

Indicators used by the trend engine on every analysis pass:

    - EMA (exponential moving average), seeded with the SMA of the first
      ``period`` samples, smoothing factor k = 2 / (period + 1)
    - SMA (simple moving average) of the trailing ``period`` samples
    - MA bias from the relative order of a fast and a slow EMA
    - Direction-change counter over the consecutive price deltas

Scalar helpers return None, not an error, when the series is shorter than
the requested period; the engine polls them during warm-up. A non-positive
period is a caller bug and raises InvalidInputError.

Series variants are computed with pandas (``rolling`` / ``ewm``) so the
output aligns with the input index.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

import numpy as np
import pandas as pd

from .config import MABias
from .exceptions import InvalidInputError
from .statistics import ArrayLike, as_array

logger = logging.getLogger(__name__)


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass(frozen=True)
class MovingAverageResult:
    """Latest value plus the full series for one period."""
    period: int
    value: float
    series: pd.Series


# =============================================================================
# MOVING AVERAGE CALCULATOR
# =============================================================================

class MovingAverageCalculator:
    """
    EMA / SMA over arbitrary periods.

    Usage:
        calc = MovingAverageCalculator()
        fast, slow = calc.ema(prices, 10), calc.ema(prices, 30)
        batch = calc.ema_batch(prices, [10, 30, 50])
    """

    @staticmethod
    def _check_period(period: int) -> None:
        if period <= 0:
            raise InvalidInputError(f"Invalid moving average period: {period}")

    @staticmethod
    def smoothing_factor(period: int) -> float:
        return 2.0 / (period + 1)

    def ema(self, series: ArrayLike, period: int) -> Optional[float]:
        """Latest EMA value, or None when len(series) < period."""
        ema = self.ema_series(series, period)
        return None if ema is None else float(ema.iloc[-1])

    def ema_series(self, series: ArrayLike, period: int) -> Optional[pd.Series]:
        """
        EMA series starting at index ``period - 1`` (the SMA seed).

        ``ewm(adjust=False)`` over [seed, x[period:]...] reproduces the seeded
        recursion exactly.
        """
        self._check_period(period)
        x = as_array(series)
        if len(x) < period:
            return None
        seeded = np.concatenate(([x[:period].mean()], x[period:]))
        ema = pd.Series(seeded).ewm(alpha=self.smoothing_factor(period), adjust=False).mean()
        ema.index = pd.RangeIndex(period - 1, len(x))
        return ema

    def sma(self, series: ArrayLike, period: int) -> Optional[float]:
        """Mean of the trailing ``period`` samples, or None when too short."""
        self._check_period(period)
        x = as_array(series)
        if len(x) < period:
            return None
        return float(x[-period:].mean())

    def sma_series(self, series: ArrayLike, period: int) -> Optional[pd.Series]:
        self._check_period(period)
        x = as_array(series)
        if len(x) < period:
            return None
        return pd.Series(x).rolling(window=period).mean().dropna()

    def _batch(self, series: ArrayLike, periods: Iterable[int], series_fn) -> Dict[int, MovingAverageResult]:
        x = as_array(series)
        results: Dict[int, MovingAverageResult] = {}
        for period in periods:
            try:
                values = series_fn(x, period)
            except InvalidInputError as exc:
                logger.debug("Skipping moving average period %s: %s", period, exc)
                continue
            if values is None:
                logger.debug("Skipping moving average period %s: only %d samples", period, len(x))
                continue
            results[period] = MovingAverageResult(period=period, value=float(values.iloc[-1]),
                                                  series=values)
        return results

    def ema_batch(self, series: ArrayLike, periods: Iterable[int]) -> Dict[int, MovingAverageResult]:
        """EMA for several periods; periods that fail their precondition are skipped."""
        return self._batch(series, periods, self.ema_series)

    def sma_batch(self, series: ArrayLike, periods: Iterable[int]) -> Dict[int, MovingAverageResult]:
        return self._batch(series, periods, self.sma_series)


# =============================================================================
# PRICE-PATH HELPERS
# =============================================================================

def ma_bias(ema_fast: Optional[float], ema_slow: Optional[float]) -> MABias:
    """LONG when the fast EMA is above the slow one, SHORT when below."""
    if ema_fast is None or ema_slow is None:
        return MABias.NEUTRAL
    if ema_fast > ema_slow:
        return MABias.LONG
    if ema_fast < ema_slow:
        return MABias.SHORT
    return MABias.NEUTRAL


def count_direction_changes(series: ArrayLike) -> int:
    """
    Count sign flips between consecutive non-zero price deltas.

    Zero deltas are skipped; the first non-zero delta only sets the
    reference direction.
    """
    deltas = np.sign(np.diff(as_array(series)))
    moves = deltas[deltas != 0]
    if len(moves) < 2:
        return 0
    return int(np.count_nonzero(moves[1:] != moves[:-1]))


__all__ = [
    'MovingAverageResult',
    'MovingAverageCalculator',
    'ma_bias',
    'count_direction_changes',
]
