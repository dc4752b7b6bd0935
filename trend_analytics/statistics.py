"""
Numeric Primitives and Stationarity Helper
==========================================

Leaf layer of the analytics stack. Everything above it (regression,
moving averages, Hurst, GARCH, regime detection) works on plain numpy
arrays produced and summarized by the functions in this module.

CONTENTS
--------
    Section 1: Descriptive statistics (mean, variance, stddev, covariance)
    Section 2: Series transforms (log returns, differencing)
    Section 3: Linear algebra (Cholesky SPD solver, penalty matrices)
    Section 4: StationarityHelper (split-half variance/mean check)

Conventions:
    - ``variance`` / ``std_dev`` are population moments (divide by n)
    - ``sample_variance`` / ``covariance`` divide by n - 1
    - Empty or too-short inputs return 0.0 rather than raising
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Sequence, Union

import numpy as np
from scipy import linalg

from .exceptions import InvalidInputError

logger = logging.getLogger(__name__)

ArrayLike = Union[Sequence[float], np.ndarray]


# =============================================================================
# SECTION 1: DESCRIPTIVE STATISTICS
# =============================================================================

def as_array(values: ArrayLike) -> np.ndarray:
    """Flatten any sequence of numbers into a float64 numpy array."""
    return np.asarray(values, dtype=float).ravel()


def safe_divide(a: float, b: float, default: float = 0.0) -> float:
    """Safe division handling zero and invalid values."""
    try:
        if b == 0 or not np.isfinite(b):
            return default
        result = a / b
        return default if not np.isfinite(result) else float(result)
    except (ZeroDivisionError, TypeError, ValueError):
        return default


def mean(values: ArrayLike) -> float:
    x = as_array(values)
    return float(np.mean(x)) if len(x) else 0.0


def variance(values: ArrayLike) -> float:
    """Population variance; 0.0 below two samples."""
    x = as_array(values)
    return float(np.var(x)) if len(x) >= 2 else 0.0


def sample_variance(values: ArrayLike) -> float:
    """Unbiased (n - 1) variance; 0.0 below two samples."""
    x = as_array(values)
    return float(np.var(x, ddof=1)) if len(x) >= 2 else 0.0


def std_dev(values: ArrayLike) -> float:
    """Population standard deviation; 0.0 below two samples."""
    return float(np.sqrt(variance(values)))


def sample_std_dev(values: ArrayLike) -> float:
    return float(np.sqrt(sample_variance(values)))


def covariance(x: ArrayLike, y: ArrayLike) -> float:
    """
    Sample covariance of two equal-length series.

    Returns 0.0 when lengths differ or fewer than two pairs are given.
    """
    a, b = as_array(x), as_array(y)
    if len(a) != len(b) or len(a) < 2:
        return 0.0
    return float(np.sum((a - a.mean()) * (b - b.mean())) / (len(a) - 1))


# =============================================================================
# SECTION 2: SERIES TRANSFORMS
# =============================================================================

def log_returns(prices: ArrayLike) -> np.ndarray:
    """
    Compute log returns r_t = ln(P_t / P_{t-1}).

    Unlike a cleaning transform, non-positive prices are rejected: a log
    return over them is undefined and dropping them would shift the series.

    Args:
        prices: Price series

    Returns:
        Log return series (length n-1, empty below two prices)

    Raises:
        InvalidInputError: If any price is <= 0 or not finite
    """
    p = as_array(prices)
    if len(p) < 2:
        return np.array([], dtype=float)
    if not np.all(np.isfinite(p)) or np.any(p <= 0):
        raise InvalidInputError("Log returns require positive, finite prices")
    with np.errstate(divide='ignore', invalid='ignore'):
        return np.diff(np.log(p))


def difference(values: ArrayLike, order: int = 1) -> np.ndarray:
    """
    Apply ``order`` rounds of first differencing (1 to 3).

    Returns an empty array once the series runs out of points.
    """
    if order < 1 or order > 3:
        raise InvalidInputError("Differencing order must be between 1 and 3")
    x = as_array(values)
    if len(x) <= order:
        return np.array([], dtype=float)
    return np.diff(x, n=order)


# =============================================================================
# SECTION 3: LINEAR ALGEBRA
# =============================================================================

SPD_JITTER = 1e-12


def solve_spd(A: ArrayLike, b: ArrayLike) -> np.ndarray:
    """
    Solve A x = b for a symmetric positive definite matrix via Cholesky.

    A jitter of 1e-12 is added to the diagonal so marginally ill-conditioned
    systems (e.g. penalized least squares with a singular penalty) still
    factor.

    Args:
        A: Square SPD matrix (p x p)
        b: Right-hand side (length p)

    Returns:
        Solution vector x (length p)
    """
    M = np.array(A, dtype=float, copy=True)
    rhs = as_array(b)
    if M.ndim != 2 or M.shape[0] != M.shape[1] or M.shape[0] != len(rhs):
        raise InvalidInputError(
            f"solve_spd expects a square matrix matching b, got {M.shape} and {rhs.shape}"
        )
    M[np.diag_indices_from(M)] += SPD_JITTER
    try:
        factor = linalg.cho_factor(M, lower=True)
    except linalg.LinAlgError as exc:
        raise InvalidInputError("Matrix is not positive definite") from exc
    return linalg.cho_solve(factor, rhs)


def build_identity(p: int) -> np.ndarray:
    return np.eye(p)


def build_second_difference_penalty(p: int) -> np.ndarray:
    """
    Penalty matrix R = D'D where D is the (p-2) x p second-difference
    operator. Falls back to the identity for p <= 2.
    """
    if p <= 2:
        return build_identity(p)
    D = np.zeros((p - 2, p))
    for i in range(p - 2):
        D[i, i:i + 3] = (1.0, -2.0, 1.0)
    return D.T @ D


# =============================================================================
# SECTION 4: STATIONARITY HELPER
# =============================================================================

class TransformRecommendation(Enum):
    """Which representation of a series should feed the regression."""
    USE_PRICES = "USE_PRICES"
    USE_RETURNS = "USE_RETURNS"
    USE_DIFFERENCING = "USE_DIFFERENCING"


class ConfidenceLevel(Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


@dataclass(frozen=True)
class StationarityResult:
    """Split-half stationarity check outcome."""
    is_stationary: bool
    variance_ratio: float
    mean_difference: float
    recommendation: TransformRecommendation
    confidence: ConfidenceLevel

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_stationary': self.is_stationary,
            'variance_ratio': self.variance_ratio,
            'mean_difference': self.mean_difference,
            'recommendation': self.recommendation.value,
            'confidence': self.confidence.value,
        }


class StationarityHelper:
    """
    Lightweight stationarity heuristic (not an ADF/KPSS test).

    The series is split in half; it is called stationary when the ratio of
    the halves' sample variances lies in (0.5, 2.0) and their means differ
    by less than 10% relative.
    """

    MIN_OBSERVATIONS = 20

    def __init__(self, min_observations: int = MIN_OBSERVATIONS):
        self.min_observations = min_observations

    def to_log_returns(self, prices: ArrayLike) -> np.ndarray:
        return log_returns(prices)

    def difference(self, values: ArrayLike, order: int = 1) -> np.ndarray:
        return difference(values, order)

    @staticmethod
    def _split_moments(x: np.ndarray):
        half = len(x) // 2
        first, second = x[:half], x[half:]
        var1, var2 = sample_variance(first), sample_variance(second)
        if var2 == 0:
            var_ratio = 1.0 if var1 == 0 else float('inf')
        else:
            var_ratio = var1 / var2
        m1, m2 = mean(first), mean(second)
        mean_diff = abs(m1 - m2) / max(abs(m1), abs(m2), 1e-10)
        return var_ratio, mean_diff

    def quick_stationarity_check(self, values: ArrayLike) -> bool:
        x = as_array(values)
        if len(x) < self.min_observations:
            return False
        var_ratio, mean_diff = self._split_moments(x)
        return 0.5 < var_ratio < 2.0 and mean_diff < 0.1

    def test_stationarity(self, values: ArrayLike) -> StationarityResult:
        """
        Detailed check with a confidence grade and transform recommendation.

        Below the minimum sample count the answer is "not stationary, use
        returns, low confidence".
        """
        x = as_array(values)
        if len(x) < self.min_observations:
            return StationarityResult(
                is_stationary=False,
                variance_ratio=0.0,
                mean_difference=0.0,
                recommendation=TransformRecommendation.USE_RETURNS,
                confidence=ConfidenceLevel.LOW,
            )

        var_ratio, mean_diff = self._split_moments(x)
        is_stationary = 0.5 < var_ratio < 2.0 and mean_diff < 0.1

        if 0.7 < var_ratio < 1.4 and mean_diff < 0.05:
            confidence = ConfidenceLevel.HIGH
        elif 0.6 < var_ratio < 1.7 and mean_diff < 0.08:
            confidence = ConfidenceLevel.MEDIUM
        else:
            confidence = ConfidenceLevel.LOW

        if is_stationary and confidence is ConfidenceLevel.HIGH:
            recommendation = TransformRecommendation.USE_PRICES
        elif not is_stationary or var_ratio > 2.5 or var_ratio < 0.4:
            recommendation = TransformRecommendation.USE_DIFFERENCING
        else:
            recommendation = TransformRecommendation.USE_RETURNS

        return StationarityResult(
            is_stationary=is_stationary,
            variance_ratio=float(var_ratio),
            mean_difference=float(mean_diff),
            recommendation=recommendation,
            confidence=confidence,
        )

    def select_transform(self, prices: ArrayLike) -> np.ndarray:
        """Return the series in the representation test_stationarity recommends."""
        p = as_array(prices)
        result = self.test_stationarity(p)
        logger.debug("Stationarity recommendation: %s (%s confidence)",
                     result.recommendation.value, result.confidence.value)
        if result.recommendation is TransformRecommendation.USE_PRICES:
            return p
        if result.recommendation is TransformRecommendation.USE_RETURNS:
            return log_returns(p)
        return difference(p, 1)


__all__ = [
    'ArrayLike',
    'as_array',
    'safe_divide',
    'mean',
    'variance',
    'sample_variance',
    'std_dev',
    'sample_std_dev',
    'covariance',
    'log_returns',
    'difference',
    'solve_spd',
    'build_identity',
    'build_second_difference_penalty',
    'TransformRecommendation',
    'ConfidenceLevel',
    'StationarityResult',
    'StationarityHelper',
]
