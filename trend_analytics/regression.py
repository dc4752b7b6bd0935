"""
Trend Regression with Autocorrelation Diagnostics
=================================================

Ordinary least squares of price on sample index, followed by a residual
autocorrelation battery. Price series are strongly autocorrelated, which
inflates R²; when the Durbin-Watson statistic flags autocorrelation the R²
is shrunk by the effective-sample-size ratio.

METHODOLOGY
-----------
OLS with x = 0..n-1:
    slope     = (n Σxy - Σx Σy) / (n Σx² - (Σx)²)
    intercept = (Σy - slope Σx) / n
    R²        = 1 - SS_res / SS_tot, clamped to [0, 1]

Durbin-Watson:
    DW = Σ(e_t - e_{t-1})² / Σe_t²        (2 = no first-order autocorrelation)

    NONE      1.7 <= DW <= 2.3
    MILD      1.5 <= DW < 1.7  or 2.3 < DW <= 2.5
    MODERATE  1.0 <= DW < 1.5  or 2.5 < DW <= 3.0
    SEVERE    otherwise

R² adjustment (MILD or worse):
    rho          = 1 - DW / 2
    effective_n  = n (1 - rho) / (1 + rho)
    adjusted R²  = clamp(R² · effective_n / n, 0, R²)

Ljung-Box:
    Q = n (n + 2) Σ_{k=1..m} r_k² / (n - k),   compared to χ²(m) at α = 0.05

Reference:
    Durbin, J. & Watson, G.S. (1950). "Testing for Serial Correlation in
    Least Squares Regression." Biometrika, 37(3/4).
    Ljung, G.M. & Box, G.E.P. (1978). "On a Measure of Lack of Fit in Time
    Series Models." Biometrika, 65(2).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import numpy as np
from scipy import stats

from .config import AUTOCORRELATION, AutocorrelationThresholds
from .exceptions import InsufficientDataError
from .statistics import ArrayLike, as_array, safe_divide

logger = logging.getLogger(__name__)


# =============================================================================
# SECTION 1: ENUMERATIONS AND RESULT TYPES
# =============================================================================

class AutocorrelationSeverity(Enum):
    NONE = "NONE"
    MILD = "MILD"
    MODERATE = "MODERATE"
    SEVERE = "SEVERE"


@dataclass(frozen=True)
class AutocorrelationTest:
    """Durbin-Watson diagnostic of a residual series."""
    has_autocorrelation: bool
    durbin_watson: float
    first_order_correlation: float
    severity: AutocorrelationSeverity

    def to_dict(self) -> Dict[str, Any]:
        return {
            'has_autocorrelation': self.has_autocorrelation,
            'durbin_watson': self.durbin_watson,
            'first_order_correlation': self.first_order_correlation,
            'severity': self.severity.value,
        }


@dataclass(frozen=True)
class LjungBoxResult:
    statistic: float
    p_value: float
    critical_value: float
    max_lag: int
    has_autocorrelation: bool


@dataclass(frozen=True)
class RegressionResult:
    """
    Output of one regression pass.

    Attributes:
        slope: Price change per sample
        intercept: Fitted value at index 0
        r_squared: Coefficient of determination in [0, 1]
        r_squared_adjusted: R² after autocorrelation correction (== r_squared
            when no autocorrelation was detected)
        residuals: y - fitted
        predictions: Fitted values
        autocorrelation: Durbin-Watson diagnostic of the residuals
    """
    slope: float
    intercept: float
    r_squared: float
    r_squared_adjusted: float
    residuals: np.ndarray = field(repr=False)
    predictions: np.ndarray = field(repr=False)
    autocorrelation: AutocorrelationTest

    @property
    def n(self) -> int:
        return len(self.residuals)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'slope': self.slope,
            'intercept': self.intercept,
            'r_squared': self.r_squared,
            'r_squared_adjusted': self.r_squared_adjusted,
            'n': self.n,
            'autocorrelation': self.autocorrelation.to_dict(),
        }


# =============================================================================
# SECTION 2: AUTOCORRELATION ANALYZER
# =============================================================================

class AutocorrelationAnalyzer:
    """Residual autocorrelation tests (Durbin-Watson, ACF, Ljung-Box)."""

    def __init__(self, thresholds: AutocorrelationThresholds = AUTOCORRELATION):
        self.thresholds = thresholds

    def durbin_watson(self, residuals: ArrayLike,
                      total_sum_squares: Optional[float] = None) -> float:
        """
        Durbin-Watson statistic of a residual series.

        Returns the neutral value 2.0 below two residuals or when the residual
        energy is ~0. With ``total_sum_squares`` given, "~0" means relative to
        the variation of the fitted series, so an exact fit polluted by
        rounding noise does not report spurious autocorrelation.
        """
        e = as_array(residuals)
        if len(e) < 2:
            return self.thresholds.neutral_dw
        sum_squared = float(np.sum(e ** 2))
        if sum_squared == 0:
            return self.thresholds.neutral_dw
        if total_sum_squares is not None and \
                sum_squared <= self.thresholds.exact_fit_tolerance * total_sum_squares:
            return self.thresholds.neutral_dw
        return float(np.sum(np.diff(e) ** 2) / sum_squared)

    def autocorrelation_at_lag(self, data: ArrayLike, lag: int) -> float:
        x = as_array(data)
        if lag < 1 or lag >= len(x):
            return 0.0
        centered = x - x.mean()
        denominator = float(np.sum(centered ** 2))
        if denominator == 0:
            return 0.0
        return float(np.sum(centered[lag:] * centered[:-lag]) / denominator)

    def first_order_autocorrelation(self, data: ArrayLike) -> float:
        return self.autocorrelation_at_lag(data, 1)

    def classify(self, dw: float) -> AutocorrelationSeverity:
        t = self.thresholds
        if dw < t.moderate_low or dw > t.moderate_high:
            return AutocorrelationSeverity.SEVERE
        if dw < t.mild_low or dw > t.mild_high:
            return AutocorrelationSeverity.MODERATE
        if dw < t.none_low or dw > t.none_high:
            return AutocorrelationSeverity.MILD
        return AutocorrelationSeverity.NONE

    def test(self, residuals: ArrayLike,
             total_sum_squares: Optional[float] = None) -> AutocorrelationTest:
        """Durbin-Watson severity test of a residual series."""
        dw = self.durbin_watson(residuals, total_sum_squares)
        severity = self.classify(dw)
        return AutocorrelationTest(
            has_autocorrelation=severity is not AutocorrelationSeverity.NONE,
            durbin_watson=dw,
            first_order_correlation=self.first_order_autocorrelation(residuals),
            severity=severity,
        )

    def ljung_box(self, residuals: ArrayLike, max_lag: Optional[int] = None) -> LjungBoxResult:
        """
        Ljung-Box Q over lags 1..max_lag.

        Below max_lag + 1 residuals the test is not run and reports Q = 0,
        p = 1.0.
        """
        m = max_lag or self.thresholds.ljung_box_max_lag
        e = as_array(residuals)
        n = len(e)
        critical = float(stats.chi2.ppf(1.0 - self.thresholds.ljung_box_alpha, m))

        if n < m + 1:
            return LjungBoxResult(statistic=0.0, p_value=1.0, critical_value=critical,
                                  max_lag=m, has_autocorrelation=False)

        q = sum(self.autocorrelation_at_lag(e, k) ** 2 / (n - k) for k in range(1, m + 1))
        q *= n * (n + 2)

        return LjungBoxResult(
            statistic=float(q),
            p_value=float(stats.chi2.sf(q, m)),
            critical_value=critical,
            max_lag=m,
            has_autocorrelation=q > critical,
        )

    @staticmethod
    def adjust_r_squared(r_squared: float, durbin_watson: float, n: int) -> float:
        """
        Shrink R² by the effective sample size implied by rho = 1 - DW/2.

        Negative autocorrelation (DW > 2) would inflate the ratio above 1; the
        result is capped at the unadjusted value.
        """
        rho = 1.0 - durbin_watson / 2.0
        if rho <= -1.0 or n <= 0:
            return r_squared
        effective_n = n * (1.0 - rho) / (1.0 + rho)
        adjusted = r_squared * (effective_n / n)
        return float(min(r_squared, max(0.0, adjusted)))

    @staticmethod
    def recommendation(test: AutocorrelationTest) -> str:
        dw = test.durbin_watson
        if test.severity is AutocorrelationSeverity.NONE:
            return "No significant autocorrelation detected. Results are reliable."
        if test.severity is AutocorrelationSeverity.MILD:
            return f"Mild autocorrelation (DW={dw:.2f}). Consider adjusting R²."
        if test.severity is AutocorrelationSeverity.MODERATE:
            return f"Moderate autocorrelation (DW={dw:.2f}). R² adjustment recommended."
        return (f"Severe autocorrelation (DW={dw:.2f}). Results may be unreliable. "
                f"Consider data transformation.")


# =============================================================================
# SECTION 3: REGRESSION ANALYZER
# =============================================================================

class RegressionAnalyzer:
    """
    OLS trend fit of a price series against its sample index.

    Usage:
        result = RegressionAnalyzer().analyze(prices)
        if result.autocorrelation.has_autocorrelation:
            confidence = result.r_squared_adjusted
    """

    MIN_POINTS = 3

    def __init__(self, autocorrelation: Optional[AutocorrelationAnalyzer] = None):
        self.autocorrelation = autocorrelation or AutocorrelationAnalyzer()

    @staticmethod
    def _fit(y: np.ndarray):
        n = len(y)
        x = np.arange(n, dtype=float)
        sum_x, sum_y = x.sum(), y.sum()
        sum_xy, sum_x2 = float(np.dot(x, y)), float(np.dot(x, x))

        denominator = n * sum_x2 - sum_x ** 2
        if denominator == 0:
            return 0.0, float(sum_y / n), 0.0, 0.0

        slope = (n * sum_xy - sum_x * sum_y) / denominator
        intercept = (sum_y - slope * sum_x) / n

        predictions = slope * x + intercept
        ss_tot = float(np.sum((y - y.mean()) ** 2))
        ss_res = float(np.sum((y - predictions) ** 2))
        r_squared = 1.0 - ss_res / ss_tot if ss_tot > 0 else 0.0
        return float(slope), float(intercept), float(np.clip(r_squared, 0.0, 1.0)), ss_tot

    def analyze(self, series: ArrayLike) -> RegressionResult:
        """
        Fit the trend line and run the residual diagnostics.

        Raises:
            InsufficientDataError: Fewer than three points
        """
        y = as_array(series)
        if len(y) < self.MIN_POINTS:
            raise InsufficientDataError(self.MIN_POINTS, len(y), "RegressionAnalyzer")

        slope, intercept, r_squared, ss_tot = self._fit(y)
        predictions = slope * np.arange(len(y), dtype=float) + intercept
        residuals = y - predictions

        diagnostic = self.autocorrelation.test(residuals, total_sum_squares=ss_tot)
        adjusted = r_squared
        if diagnostic.has_autocorrelation:
            adjusted = self.autocorrelation.adjust_r_squared(
                r_squared, diagnostic.durbin_watson, len(y))
            logger.debug("Autocorrelation %s (DW=%.2f): R² %.3f -> %.3f",
                         diagnostic.severity.value, diagnostic.durbin_watson,
                         r_squared, adjusted)

        return RegressionResult(
            slope=slope,
            intercept=intercept,
            r_squared=r_squared,
            r_squared_adjusted=adjusted,
            residuals=residuals,
            predictions=predictions,
            autocorrelation=diagnostic,
        )

    def normalized_slope(self, series: ArrayLike) -> float:
        """Slope divided by the average price (fractional change per sample)."""
        y = as_array(series)
        if len(y) < 2:
            return 0.0
        slope, _, _, _ = self._fit(y)
        return safe_divide(slope, float(y.mean()))


__all__ = [
    'AutocorrelationSeverity',
    'AutocorrelationTest',
    'LjungBoxResult',
    'RegressionResult',
    'AutocorrelationAnalyzer',
    'RegressionAnalyzer',
]
