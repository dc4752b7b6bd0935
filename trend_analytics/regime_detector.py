#!/usr/bin/env python3
"""
Market Regime Detection: Hurst, GARCH and Regime Classifiers
============================================================

This module implements the "deep" analyses of the trend engine. They run on
a snapshot of a symbol's price buffer, on demand or on a slower cadence than
the per-tick trend pass, and classify the current market behaviour as
trending, ranging or volatile.

ACADEMIC FOUNDATIONS
--------------------
Hurst Exponent:
    Hurst, H.E. (1951). "Long-term storage capacity of reservoirs."

    H > 0.5: Persistent (trending)
    H = 0.5: Random walk
    H < 0.5: Mean-reverting

GARCH Volatility:
    Bollerslev, T. (1986). "Generalized Autoregressive Conditional
    Heteroskedasticity." Journal of Econometrics, 31(3).

    Volatility clusters - large changes tend to follow large changes.
    The parameters used here are heuristic (omega = 5% of the sample
    variance, alpha = 0.10, beta = 0.85), not maximum likelihood estimates.

ARCHITECTURE
------------
    Layer 1: Core Analyzers
        - HurstAnalyzer: Rescaled range (R/S) persistence measurement
        - VolatilityModel: GARCH(1,1) estimation, forecasting, regime z-score

    Layer 2: Regime Classifiers
        - SimpleRegimeDetector: Hurst-driven with volatility override
        - MultiFactorRegimeDetector: Weighted rule scoring over five indicators

    Layer 3: Convenience
        - detect_regime(): One-call classification with a chosen method

All analyzers are stateless: every call re-estimates from the series it is
given, so a single instance may be shared across threads.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np
from scipy import stats

from .config import (
    GARCH,
    HURST,
    REGIME,
    GARCHDefaults,
    HurstThresholds,
    RegimeDetectionMethod,
    RegimeThresholds,
)
from .exceptions import ConstraintViolationError, InsufficientDataError, InvalidInputError
from .statistics import ArrayLike, as_array, log_returns, safe_divide, sample_std_dev, sample_variance

logger = logging.getLogger(__name__)


# =============================================================================
# SECTION 1: ENUMERATIONS
# =============================================================================

class HurstBehavior(Enum):
    """Persistence class of a series from its Hurst exponent."""
    MEAN_REVERTING = "MEAN_REVERTING"
    RANDOM_WALK = "RANDOM_WALK"
    TRENDING = "TRENDING"


class StrategyType(Enum):
    """Strategy family suited to a Hurst behaviour."""
    RANGE_TRADING = "RANGE_TRADING"
    TREND_FOLLOWING = "TREND_FOLLOWING"
    NEUTRAL = "NEUTRAL"


class VolatilityRegime(Enum):
    """Current volatility relative to its own history (z-score bands)."""
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    EXTREME = "EXTREME"


class RegimeType(Enum):
    """
    Market regime. Declaration order is the tie-break order of the
    multi-factor detector.
    """
    TRENDING_UP = "TRENDING_UP"
    TRENDING_DOWN = "TRENDING_DOWN"
    RANGING = "RANGING"
    HIGH_VOLATILITY = "HIGH_VOLATILITY"


# =============================================================================
# SECTION 2: DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class HurstResult:
    """
    Output of R/S analysis.

    Attributes:
        exponent: Hurst exponent clamped to [0, 1]
        behavior: MEAN_REVERTING / RANDOM_WALK / TRENDING
        confidence: Distance from 0.5 scaled to [0, 1]
        strategy: Recommended strategy family
        should_trade: True only for strong persistence or strong reversion
        description: Human readable interpretation
        rs_values: Mean R/S per lag
        lags_used: Lags that passed the lag < n/2 filter
        fit_r_squared: Quality of the log-log fit
    """
    exponent: float
    behavior: HurstBehavior
    confidence: float
    strategy: StrategyType
    should_trade: bool
    description: str
    rs_values: List[float] = field(default_factory=list)
    lags_used: List[int] = field(default_factory=list)
    fit_r_squared: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'exponent': self.exponent,
            'behavior': self.behavior.value,
            'confidence': self.confidence,
            'strategy': self.strategy.value,
            'should_trade': self.should_trade,
            'description': self.description,
            'rs_values': list(self.rs_values),
            'lags_used': list(self.lags_used),
            'fit_r_squared': self.fit_r_squared,
        }


@dataclass(frozen=True)
class GARCHParams:
    """
    GARCH(1,1) parameters: sigma²_t = omega + alpha * eps²_{t-1} + beta * sigma²_{t-1}

    Key Properties:
        - Persistence = alpha + beta (must be < 1 for stationarity)
        - Long-run variance = omega / (1 - alpha - beta)
        - Half-life of shocks = log(0.5) / log(alpha + beta)
    """
    omega: float
    alpha: float
    beta: float

    def validate(self) -> 'GARCHParams':
        if not self.omega > 0:
            raise ConstraintViolationError(f"GARCH omega must be > 0, got {self.omega}")
        if not (0 < self.alpha < 1 and 0 < self.beta < 1):
            raise ConstraintViolationError(
                f"GARCH alpha and beta must lie in (0, 1), got {self.alpha}, {self.beta}")
        if self.alpha + self.beta >= 1:
            raise ConstraintViolationError(
                "GARCH constraint violation: alpha + beta must be < 1 for stationarity")
        return self

    @property
    def persistence(self) -> float:
        return self.alpha + self.beta

    @property
    def long_run_variance(self) -> float:
        if self.persistence >= 1:
            return 0.0
        return self.omega / (1 - self.persistence)

    @property
    def long_run_volatility(self) -> float:
        return float(np.sqrt(self.long_run_variance))

    @property
    def half_life(self) -> float:
        """Half-life of volatility shocks (in periods)."""
        if self.persistence <= 0 or self.persistence >= 1:
            return float('inf')
        return float(np.log(0.5) / np.log(self.persistence))

    def to_dict(self) -> Dict[str, float]:
        return {
            'omega': self.omega,
            'alpha': self.alpha,
            'beta': self.beta,
            'persistence': self.persistence,
            'long_run_volatility': self.long_run_volatility,
            'half_life': self.half_life,
        }


@dataclass(frozen=True)
class GARCHForecast:
    """Forecast volatility path (one value per horizon step)."""
    volatilities: List[float]
    horizon: int
    params: GARCHParams

    def to_dict(self) -> Dict[str, Any]:
        return {
            'volatilities': list(self.volatilities),
            'horizon': self.horizon,
            'params': self.params.to_dict(),
        }


@dataclass(frozen=True)
class VolatilityAnalysis:
    """Estimation, forecast and regime of one volatility pass."""
    params: GARCHParams
    forecast: GARCHForecast
    current_volatility: float
    z_score: float
    regime: VolatilityRegime

    def to_dict(self) -> Dict[str, Any]:
        return {
            'params': self.params.to_dict(),
            'forecast': self.forecast.to_dict(),
            'current_volatility': self.current_volatility,
            'z_score': self.z_score,
            'regime': self.regime.value,
        }


@dataclass(frozen=True)
class RegimeIndicators:
    """Inputs of the multi-factor rule set."""
    hurst: float
    r_squared: float
    volatility_z_score: float
    momentum_score: float
    direction_change_ratio: float

    def to_dict(self) -> Dict[str, float]:
        return {
            'hurst': self.hurst,
            'r_squared': self.r_squared,
            'volatility_z_score': self.volatility_z_score,
            'momentum_score': self.momentum_score,
            'direction_change_ratio': self.direction_change_ratio,
        }


@dataclass(frozen=True)
class RegimeResult:
    """Classified regime with its probability and supporting indicators."""
    type: RegimeType
    probability: float
    method: RegimeDetectionMethod
    hurst: Optional[float] = None
    momentum: Optional[float] = None
    volatility: Optional[float] = None
    indicators: Optional[RegimeIndicators] = None
    scores: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.type.value,
            'probability': self.probability,
            'method': self.method.value,
            'hurst': self.hurst,
            'momentum': self.momentum,
            'volatility': self.volatility,
            'indicators': self.indicators.to_dict() if self.indicators else None,
            'scores': dict(self.scores),
        }


# =============================================================================
# SECTION 3: UTILITY FUNCTIONS
# =============================================================================

def _require_positive_prices(prices: np.ndarray, analyzer: str) -> None:
    if not np.all(np.isfinite(prices)) or np.any(prices <= 0):
        raise InvalidInputError(f"{analyzer} requires positive, finite prices")


def classify_hurst(h: float, thresholds: HurstThresholds = HURST) -> HurstBehavior:
    if h < thresholds.mean_reverting_below:
        return HurstBehavior.MEAN_REVERTING
    if h > thresholds.trending_above:
        return HurstBehavior.TRENDING
    return HurstBehavior.RANDOM_WALK


def classify_volatility_z(z: float, defaults: GARCHDefaults = GARCH) -> VolatilityRegime:
    """z < -1 LOW, -1..1 NORMAL, 1..2 HIGH, > 2 EXTREME."""
    if z < defaults.low_z:
        return VolatilityRegime.LOW
    if z > defaults.extreme_z:
        return VolatilityRegime.EXTREME
    if z > defaults.high_z:
        return VolatilityRegime.HIGH
    return VolatilityRegime.NORMAL


def r_squared_of_trend(prices: ArrayLike) -> float:
    """Squared correlation of price with sample index."""
    y = as_array(prices)
    if len(y) < 2:
        return 0.0
    x = np.arange(len(y), dtype=float)
    sx, sy = float(np.std(x)), float(np.std(y))
    r = safe_divide(float(np.mean((x - x.mean()) * (y - y.mean()))), sx * sy)
    return r * r


# =============================================================================
# SECTION 4: HURST EXPONENT ANALYZER
# =============================================================================

class HurstAnalyzer:
    """
    Hurst exponent calculation using Rescaled Range (R/S) analysis.

    Method: Rescaled Range (R/S) Analysis
    ------------------------------------
    Prices are converted to log returns. For each lag in {10, 20, 30, 50, 100}
    with lag < n/2, the returns are cut into floor(n / lag) contiguous chunks:
        1. Compute mean: m = (1/lag) Σ x_i
        2. Compute cumulative deviations: Y_i = Σ_{j<=i} (x_j - m)
        3. Compute range: R = max(Y) - min(Y)
        4. Compute standard deviation: S = sqrt((1/lag) Σ (x_i - m)²)
        5. Compute rescaled range: R/S (0 when S == 0)

    R/S is averaged across chunks per lag and log(R/S) is regressed on
    log(lag). The slope, clamped to [0, 1], is H.
    """

    def __init__(self, thresholds: HurstThresholds = HURST):
        self.thresholds = thresholds

    @staticmethod
    def _rescaled_range(chunk: np.ndarray) -> float:
        if len(chunk) == 0:
            return 0.0
        deviations = chunk - chunk.mean()
        cumulative = np.cumsum(deviations)
        S = float(np.std(chunk))
        if S <= 0:
            return 0.0
        return float((cumulative.max() - cumulative.min()) / S)

    def usable_lags(self, n_returns: int) -> List[int]:
        return [lag for lag in self.thresholds.candidate_lags if lag < n_returns / 2]

    def neutral_result(self) -> HurstResult:
        return self.interpret(0.5)

    def analyze(self, series: ArrayLike) -> HurstResult:
        """
        Calculate the Hurst exponent of a price series.

        Args:
            series: Price series (all prices must be > 0)

        Returns:
            HurstResult; the neutral random-walk result when fewer than two
            lags are usable

        Raises:
            InvalidInputError: If any price is <= 0
        """
        prices = as_array(series)
        _require_positive_prices(prices, "HurstAnalyzer")

        returns = log_returns(prices)
        n = len(returns)
        lags = self.usable_lags(n)
        if len(lags) < self.thresholds.min_usable_lags:
            return self.neutral_result()

        rs_values = []
        for lag in lags:
            chunks = n // lag
            rs = [self._rescaled_range(returns[i * lag:(i + 1) * lag]) for i in range(chunks)]
            rs_values.append(float(np.mean(rs)))

        log_lags = np.log(np.array(lags, dtype=float))
        log_rs = np.log(np.maximum(np.array(rs_values), self.thresholds.min_rs))

        if np.ptp(log_rs) == 0:
            slope, r_value = 0.0, 0.0
        else:
            slope, _, r_value, _, _ = stats.linregress(log_lags, log_rs)

        H = float(np.clip(slope, 0.0, 1.0))
        base = self.interpret(H)
        return HurstResult(
            exponent=H,
            behavior=base.behavior,
            confidence=base.confidence,
            strategy=base.strategy,
            should_trade=base.should_trade,
            description=base.description,
            rs_values=rs_values,
            lags_used=lags,
            fit_r_squared=float(r_value ** 2),
        )

    def interpret(self, H: float) -> HurstResult:
        """Map an exponent to behaviour, confidence and strategy."""
        t = self.thresholds
        behavior = classify_hurst(H, t)

        if behavior is HurstBehavior.MEAN_REVERTING:
            should_trade = H < t.strong_mean_reverting
            description = (
                f"Strong mean reversion (H={H:.3f}). Favorable for range trading."
                if should_trade else
                f"Mild mean reversion (H={H:.3f}). Cautious range trading."
            )
            return HurstResult(H, behavior, (0.5 - H) * 2, StrategyType.RANGE_TRADING,
                               should_trade, description)

        if behavior is HurstBehavior.TRENDING:
            should_trade = H > t.strong_trending
            description = (
                f"Strong trending (H={H:.3f}). Favorable for trend-following."
                if should_trade else
                f"Mild trending (H={H:.3f}). Conservative trend-following."
            )
            return HurstResult(H, behavior, (H - 0.5) * 2, StrategyType.TREND_FOLLOWING,
                               should_trade, description)

        return HurstResult(
            H, behavior, 0.0, StrategyType.NEUTRAL, False,
            f"Random walk behavior (H={H:.3f}). Avoid trading or use neutral strategies.",
        )


# =============================================================================
# SECTION 5: GARCH VOLATILITY MODEL
# =============================================================================

class VolatilityModel:
    """
    Simplified GARCH(1,1) volatility model.

    Forecast:
        sigma²_1 = omega + alpha * eps²_t + beta * sigma²_t   (last observed shock)
        sigma²_h = LTV + (alpha + beta)^(h-1) * (sigma²_1 - LTV),  h > 1

    where sigma²_t is the sample variance of the returns and
    LTV = omega / (1 - alpha - beta) is the long-run variance.
    """

    def __init__(self, defaults: GARCHDefaults = GARCH):
        self.defaults = defaults

    def _clean(self, returns: ArrayLike) -> np.ndarray:
        r = as_array(returns)
        if not np.all(np.isfinite(r)):
            raise InvalidInputError("Returns must be finite")
        return r

    def estimate(self, returns: ArrayLike) -> GARCHParams:
        """
        Heuristic parameter estimate.

        Raises:
            InsufficientDataError: Fewer than 30 returns
            ConstraintViolationError: alpha + beta >= 1 or omega <= 0
        """
        r = self._clean(returns)
        if len(r) < self.defaults.min_observations:
            raise InsufficientDataError(self.defaults.min_observations, len(r), "VolatilityModel")

        params = GARCHParams(
            omega=self.defaults.omega_variance_fraction * sample_variance(r),
            alpha=self.defaults.alpha,
            beta=self.defaults.beta,
        )
        return params.validate()

    def forecast(self, params: GARCHParams, returns: ArrayLike, horizon: int) -> GARCHForecast:
        """Volatility forecast for steps 1..horizon."""
        params.validate()
        if horizon < 1:
            raise InvalidInputError(f"Forecast horizon must be >= 1, got {horizon}")
        r = self._clean(returns)
        if len(r) < 2:
            raise InsufficientDataError(2, len(r), "VolatilityModel.forecast")

        ltv = params.long_run_variance
        sigma2_1 = params.omega + params.alpha * r[-1] ** 2 + params.beta * sample_variance(r)
        steps = np.arange(horizon)
        path = ltv + params.persistence ** steps * (sigma2_1 - ltv)

        return GARCHForecast(
            volatilities=[float(v) for v in np.sqrt(path)],
            horizon=horizon,
            params=params,
        )

    def conditional_volatility_series(self, returns: ArrayLike, params: GARCHParams) -> np.ndarray:
        """
        Replay the recursion over history, starting from the sample variance.

        Element t is the volatility in force before shock t is observed.
        """
        r = self._clean(returns)
        out = np.zeros(len(r))
        sigma2 = sample_variance(r)
        for t in range(len(r)):
            out[t] = np.sqrt(sigma2)
            sigma2 = params.omega + params.alpha * r[t] ** 2 + params.beta * sigma2
        return out

    def z_score(self, current_vol: float, historical_vols: ArrayLike) -> float:
        hist = as_array(historical_vols)
        if len(hist) == 0:
            return 0.0
        return safe_divide(current_vol - float(hist.mean()), sample_std_dev(hist))

    def classify_regime(self, current_vol: float, historical_vols: ArrayLike) -> VolatilityRegime:
        return classify_volatility_z(self.z_score(current_vol, historical_vols), self.defaults)

    def analyze(self, returns: ArrayLike, horizon: int = 5) -> VolatilityAnalysis:
        """Estimate, forecast and classify the latest conditional volatility."""
        params = self.estimate(returns)
        history = self.conditional_volatility_series(returns, params)
        current = float(history[-1])
        z = self.z_score(current, history)
        return VolatilityAnalysis(
            params=params,
            forecast=self.forecast(params, returns, horizon),
            current_volatility=current,
            z_score=z,
            regime=classify_volatility_z(z, self.defaults),
        )


# =============================================================================
# SECTION 6: REGIME DETECTORS
# =============================================================================

class SimpleRegimeDetector:
    """
    Hurst-driven regime classification.

    Priority:
        1. Current return volatility > 2x mean historical volatility -> HIGH_VOLATILITY (0.8)
        2. H > 0.55 -> TRENDING_UP / TRENDING_DOWN by 30-sample momentum sign
        3. Otherwise RANGING with probability (0.5 - H) * 2
    """

    method = RegimeDetectionMethod.HURST_BASED

    def __init__(self, thresholds: RegimeThresholds = REGIME,
                 hurst: Optional[HurstAnalyzer] = None):
        self.thresholds = thresholds
        self.hurst = hurst or HurstAnalyzer()

    def _momentum(self, prices: np.ndarray) -> float:
        recent = prices[-min(self.thresholds.momentum_window, len(prices)):]
        return float((recent[-1] - recent[0]) / recent[0])

    def detect(self, series: ArrayLike,
               historical_volatility: Optional[ArrayLike] = None) -> RegimeResult:
        prices = as_array(series)
        t = self.thresholds
        if len(prices) < t.min_observations:
            raise InsufficientDataError(t.min_observations, len(prices), "SimpleRegimeDetector")
        _require_positive_prices(prices, "SimpleRegimeDetector")

        H = self.hurst.analyze(prices).exponent
        momentum = self._momentum(prices)
        volatility = sample_std_dev(log_returns(prices))

        if historical_volatility is not None:
            hist = as_array(historical_volatility)
            if len(hist) and volatility > float(hist.mean()) * t.high_volatility_multiple:
                return RegimeResult(RegimeType.HIGH_VOLATILITY, t.high_volatility_probability,
                                    self.method, hurst=H, momentum=momentum, volatility=volatility)

        if H > t.trend_hurst:
            regime = RegimeType.TRENDING_UP if momentum > 0 else RegimeType.TRENDING_DOWN
            return RegimeResult(regime, (H - 0.5) * 2, self.method,
                                hurst=H, momentum=momentum, volatility=volatility)

        return RegimeResult(RegimeType.RANGING, max(0.0, (0.5 - H) * 2), self.method,
                            hurst=H, momentum=momentum, volatility=volatility)


class MultiFactorRegimeDetector:
    """
    Weighted rule scoring across five indicators.

    Each regime sums the weights of the rules it satisfies; the best score
    wins and is reported as the probability. Ties go to the earlier member
    of RegimeType.
    """

    method = RegimeDetectionMethod.MULTI_FACTOR

    def __init__(self, thresholds: RegimeThresholds = REGIME,
                 hurst: Optional[HurstAnalyzer] = None):
        self.thresholds = thresholds
        self.hurst = hurst or HurstAnalyzer()

    def _volatility_z_score(self, returns: np.ndarray) -> float:
        t = self.thresholds
        recent = sample_std_dev(returns[-t.volatility_window:])
        historical = sample_std_dev(returns)
        dispersion = historical * t.volatility_z_dispersion
        return (recent - historical) / (dispersion or 1.0)

    def _momentum_score(self, prices: np.ndarray) -> float:
        change = (prices[-1] - prices[0]) / prices[0]
        return float(np.clip(change * self.thresholds.momentum_scale, -1.0, 1.0))

    @staticmethod
    def _direction_change_ratio(prices: np.ndarray) -> float:
        deltas = np.diff(prices)
        prev, curr = deltas[:-1], deltas[1:]
        flips = ((prev > 0) & (curr < 0)) | ((prev < 0) & (curr > 0))
        return safe_divide(float(np.count_nonzero(flips)), len(prices) - 2)

    def indicators(self, prices: np.ndarray) -> RegimeIndicators:
        return RegimeIndicators(
            hurst=self.hurst.analyze(prices).exponent,
            r_squared=r_squared_of_trend(prices),
            volatility_z_score=float(self._volatility_z_score(log_returns(prices))),
            momentum_score=self._momentum_score(prices),
            direction_change_ratio=self._direction_change_ratio(prices),
        )

    def score(self, ind: RegimeIndicators) -> Dict[RegimeType, float]:
        t = self.thresholds

        def trending(momentum_ok: bool) -> float:
            return (
                (t.trend_hurst_weight if ind.hurst > t.trend_hurst else 0.0)
                + (t.trend_r_squared_weight if ind.r_squared > t.trend_r_squared else 0.0)
                + (t.trend_momentum_weight if momentum_ok else 0.0)
                + (t.trend_change_ratio_weight
                   if ind.direction_change_ratio < t.trend_max_change_ratio else 0.0)
            )

        ranging = (
            (t.range_hurst_weight if ind.hurst < t.range_hurst else 0.0)
            + (t.range_r_squared_weight if ind.r_squared < t.range_r_squared else 0.0)
            + (t.range_change_ratio_weight
               if ind.direction_change_ratio > t.range_min_change_ratio else 0.0)
            + (t.range_volatility_weight
               if ind.volatility_z_score < t.range_volatility_z else 0.0)
        )

        high_vol = 0.0
        for z_above, value in t.volatility_ladder:
            if ind.volatility_z_score > z_above:
                high_vol = value
                break

        return {
            RegimeType.TRENDING_UP: trending(ind.momentum_score > t.trend_momentum),
            RegimeType.TRENDING_DOWN: trending(ind.momentum_score < -t.trend_momentum),
            RegimeType.RANGING: ranging,
            RegimeType.HIGH_VOLATILITY: high_vol,
        }

    def detect(self, series: ArrayLike,
               historical_volatility: Optional[ArrayLike] = None) -> RegimeResult:
        """
        Classify the regime of a price series.

        ``historical_volatility`` is accepted for interface parity with the
        simple detector; the volatility z-score is computed internally.
        """
        prices = as_array(series)
        t = self.thresholds
        if len(prices) < t.min_observations:
            raise InsufficientDataError(t.min_observations, len(prices), "MultiFactorRegimeDetector")
        _require_positive_prices(prices, "MultiFactorRegimeDetector")

        ind = self.indicators(prices)
        scores = self.score(ind)
        # max() keeps the first maximal entry, i.e. RegimeType declaration order
        best = max(RegimeType, key=lambda regime: scores[regime])

        return RegimeResult(
            type=best,
            probability=float(scores[best]),
            method=self.method,
            hurst=ind.hurst,
            momentum=ind.momentum_score,
            volatility=ind.volatility_z_score,
            indicators=ind,
            scores={regime.value: value for regime, value in scores.items()},
        )


RegimeDetector = Union[SimpleRegimeDetector, MultiFactorRegimeDetector]


# =============================================================================
# SECTION 7: CONVENIENCE FUNCTIONS
# =============================================================================

def make_regime_detector(method: RegimeDetectionMethod = RegimeDetectionMethod.MULTI_FACTOR,
                         thresholds: RegimeThresholds = REGIME) -> RegimeDetector:
    if method is RegimeDetectionMethod.HURST_BASED:
        return SimpleRegimeDetector(thresholds)
    return MultiFactorRegimeDetector(thresholds)


def detect_regime(
    prices: Union[Sequence[float], np.ndarray],
    method: RegimeDetectionMethod = RegimeDetectionMethod.MULTI_FACTOR,
    historical_volatility: Optional[ArrayLike] = None,
) -> RegimeResult:
    """
    Convenience function for one-off regime detection.

    Args:
        prices: Price series (at least 100 samples)
        method: MULTI_FACTOR (default) or HURST_BASED
        historical_volatility: Optional past volatilities (HURST_BASED override)

    Returns:
        RegimeResult
    """
    return make_regime_detector(method).detect(prices, historical_volatility)


__all__ = [
    'HurstBehavior',
    'StrategyType',
    'VolatilityRegime',
    'RegimeType',
    'HurstResult',
    'GARCHParams',
    'GARCHForecast',
    'VolatilityAnalysis',
    'RegimeIndicators',
    'RegimeResult',
    'classify_hurst',
    'classify_volatility_z',
    'r_squared_of_trend',
    'HurstAnalyzer',
    'VolatilityModel',
    'SimpleRegimeDetector',
    'MultiFactorRegimeDetector',
    'RegimeDetector',
    'make_regime_detector',
    'detect_regime',
]
