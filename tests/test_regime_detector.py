"""
Tests for Hurst R/S analysis, the GARCH(1,1) volatility model and the regime detectors.
"""

import math

import numpy as np
import pytest

from trend_analytics.config import RegimeDetectionMethod
from trend_analytics.exceptions import (
    ConstraintViolationError,
    InsufficientDataError,
    InvalidInputError,
)
from trend_analytics.regime_detector import (
    GARCHParams,
    HurstAnalyzer,
    HurstBehavior,
    MultiFactorRegimeDetector,
    RegimeType,
    SimpleRegimeDetector,
    StrategyType,
    VolatilityModel,
    VolatilityRegime,
    classify_volatility_z,
    detect_regime,
    make_regime_detector,
    r_squared_of_trend,
)


class TestHurstAnalyzer:
    """Tests for the rescaled range Hurst exponent."""

    def test_persistent_series(self):
        """Test that a steady arithmetic climb is strongly trending."""
        prices = 100.0 + np.arange(200, dtype=float)
        result = HurstAnalyzer().analyze(prices)
        assert result.exponent > 0.65
        assert result.behavior is HurstBehavior.TRENDING
        assert result.strategy is StrategyType.TREND_FOLLOWING
        assert result.should_trade is True
        assert result.lags_used == [10, 20, 30, 50]
        assert len(result.rs_values) == 4

    def test_alternating_series(self, zigzag_prices):
        """Test that a perfect oscillation is mean reverting."""
        result = HurstAnalyzer().analyze(zigzag_prices)
        assert result.exponent < 0.35
        assert result.behavior is HurstBehavior.MEAN_REVERTING
        assert result.strategy is StrategyType.RANGE_TRADING

    def test_exponent_clamped(self, random_walk):
        """Test that H always lies in [0, 1]."""
        result = HurstAnalyzer().analyze(random_walk)
        assert 0.0 <= result.exponent <= 1.0

    def test_too_few_lags_is_neutral(self):
        """Test the neutral 0.5 result when fewer than two lags are usable."""
        result = HurstAnalyzer().analyze(100.0 + np.arange(30, dtype=float))
        assert result.exponent == 0.5
        assert result.behavior is HurstBehavior.RANDOM_WALK
        assert result.should_trade is False
        assert result.lags_used == []

    def test_rejects_non_positive_prices(self):
        """Test that zero or negative prices raise InvalidInputError."""
        prices = np.full(100, 50.0)
        prices[40] = 0.0
        with pytest.raises(InvalidInputError):
            HurstAnalyzer().analyze(prices)

    def test_usable_lags(self):
        """Test the lag < n/2 filter."""
        assert HurstAnalyzer().usable_lags(45) == [10, 20]
        assert HurstAnalyzer().usable_lags(250) == [10, 20, 30, 50, 100]

    @pytest.mark.parametrize("h,behavior,strategy,trade", [
        (0.30, HurstBehavior.MEAN_REVERTING, StrategyType.RANGE_TRADING, True),
        (0.40, HurstBehavior.MEAN_REVERTING, StrategyType.RANGE_TRADING, False),
        (0.50, HurstBehavior.RANDOM_WALK, StrategyType.NEUTRAL, False),
        (0.60, HurstBehavior.TRENDING, StrategyType.TREND_FOLLOWING, False),
        (0.70, HurstBehavior.TRENDING, StrategyType.TREND_FOLLOWING, True),
    ])
    def test_interpret(self, h, behavior, strategy, trade):
        """Test the behaviour bands and trade flags."""
        result = HurstAnalyzer().interpret(h)
        assert result.behavior is behavior
        assert result.strategy is strategy
        assert result.should_trade is trade

    def test_confidence(self):
        """Test confidence as the scaled distance from 0.5."""
        assert HurstAnalyzer().interpret(0.7).confidence == pytest.approx(0.4)
        assert HurstAnalyzer().interpret(0.3).confidence == pytest.approx(0.4)
        assert HurstAnalyzer().interpret(0.5).confidence == 0.0


class TestGARCHParams:
    """Tests for parameter constraints and derived quantities."""

    def test_derived_values(self):
        """Test persistence, long-run variance and half-life."""
        params = GARCHParams(omega=1e-4, alpha=0.10, beta=0.85).validate()
        assert params.persistence == pytest.approx(0.95)
        assert params.long_run_variance == pytest.approx(2e-3)
        assert params.long_run_volatility == pytest.approx(math.sqrt(2e-3))
        assert params.half_life == pytest.approx(math.log(0.5) / math.log(0.95))

    @pytest.mark.parametrize("omega,alpha,beta", [
        (0.0, 0.1, 0.85),
        (1e-4, 0.0, 0.85),
        (1e-4, 0.1, 1.0),
        (1e-4, 0.2, 0.8),
        (1e-4, 0.5, 0.6),
    ])
    def test_constraint_violations(self, omega, alpha, beta):
        """Test that invalid parameters raise ConstraintViolationError."""
        with pytest.raises(ConstraintViolationError):
            GARCHParams(omega=omega, alpha=alpha, beta=beta).validate()


class TestVolatilityModel:
    """Tests for estimation, forecasting and classification."""

    def test_estimate(self, volatility_burst_returns):
        """Test omega as 5% of the sample variance with fixed alpha and beta."""
        params = VolatilityModel().estimate(volatility_burst_returns)
        expected = 0.05 * np.var(volatility_burst_returns, ddof=1)
        assert params.omega == pytest.approx(expected)
        assert params.alpha == 0.10
        assert params.beta == 0.85

    def test_estimate_insufficient_data(self):
        """Test that fewer than 30 returns raise InsufficientDataError."""
        with pytest.raises(InsufficientDataError):
            VolatilityModel().estimate(np.full(29, 0.01))

    def test_estimate_zero_variance(self):
        """Test that constant returns give omega = 0 and violate the constraint."""
        with pytest.raises(ConstraintViolationError):
            VolatilityModel().estimate(np.zeros(50))

    def test_forecast_path(self, random_walk):
        """Test sigma²_h = LTV + (alpha + beta)^(h-1) * (sigma²_1 - LTV)."""
        returns = np.diff(np.log(random_walk))
        model = VolatilityModel()
        params = model.estimate(returns)
        forecast = model.forecast(params, returns, 5)

        sigma2_1 = params.omega + params.alpha * returns[-1] ** 2 \
            + params.beta * np.var(returns, ddof=1)
        ltv = params.long_run_variance
        expected = [math.sqrt(ltv + 0.95 ** (h - 1) * (sigma2_1 - ltv)) for h in range(1, 6)]
        assert forecast.horizon == 5
        assert forecast.volatilities == pytest.approx(expected)

    def test_forecast_converges_to_long_run(self, random_walk):
        """Test that a long horizon approaches the long-run volatility."""
        returns = np.diff(np.log(random_walk))
        model = VolatilityModel()
        params = model.estimate(returns)
        forecast = model.forecast(params, returns, 500)
        assert forecast.volatilities[-1] == pytest.approx(params.long_run_volatility, rel=1e-6)

    def test_forecast_invalid_horizon(self, random_walk):
        """Test that a horizon below 1 is rejected."""
        returns = np.diff(np.log(random_walk))
        model = VolatilityModel()
        with pytest.raises(InvalidInputError):
            model.forecast(model.estimate(returns), returns, 0)

    def test_burst_is_high_volatility(self, volatility_burst_returns):
        """Test that a late volatility burst is classified HIGH or EXTREME."""
        analysis = VolatilityModel().analyze(volatility_burst_returns)
        assert analysis.z_score > 1.0
        assert analysis.regime in (VolatilityRegime.HIGH, VolatilityRegime.EXTREME)
        assert len(analysis.forecast.volatilities) == 5

    @pytest.mark.parametrize("z,regime", [
        (-1.5, VolatilityRegime.LOW),
        (0.0, VolatilityRegime.NORMAL),
        (1.5, VolatilityRegime.HIGH),
        (2.5, VolatilityRegime.EXTREME),
    ])
    def test_classify_z(self, z, regime):
        """Test the z-score bands."""
        assert classify_volatility_z(z) is regime

    def test_z_score_empty_history(self):
        """Test that an empty history gives z = 0."""
        assert VolatilityModel().z_score(0.02, []) == 0.0


class TestMultiFactorRegimeDetector:
    """Tests for the weighted rule-scoring detector."""

    def test_trending_up(self, rising_prices):
        """Test that a steady climb scores TRENDING_UP with probability 1."""
        result = MultiFactorRegimeDetector().detect(rising_prices)
        assert result.type is RegimeType.TRENDING_UP
        assert result.probability == pytest.approx(1.0)
        assert result.method is RegimeDetectionMethod.MULTI_FACTOR
        assert result.indicators.r_squared == pytest.approx(1.0)

    def test_trending_down(self, falling_prices):
        """Test that a steady decline scores TRENDING_DOWN."""
        result = MultiFactorRegimeDetector().detect(falling_prices)
        assert result.type is RegimeType.TRENDING_DOWN

    def test_ranging(self, zigzag_prices):
        """Test that a tight oscillation scores RANGING."""
        result = MultiFactorRegimeDetector().detect(zigzag_prices)
        assert result.type is RegimeType.RANGING
        assert result.probability == pytest.approx(0.8)
        assert result.indicators.direction_change_ratio == pytest.approx(1.0)

    def test_scores_reported(self, rising_prices):
        """Test that every regime's score is reported."""
        result = MultiFactorRegimeDetector().detect(rising_prices)
        assert set(result.scores) == {r.value for r in RegimeType}

    def test_insufficient_data(self):
        """Test that fewer than 100 prices raise InsufficientDataError."""
        with pytest.raises(InsufficientDataError):
            MultiFactorRegimeDetector().detect(100.0 + np.arange(99, dtype=float))


class TestSimpleRegimeDetector:
    """Tests for the Hurst-based detector."""

    def test_trending(self, rising_prices):
        """Test that a persistent climb is TRENDING_UP."""
        result = SimpleRegimeDetector().detect(rising_prices)
        assert result.type is RegimeType.TRENDING_UP
        assert result.method is RegimeDetectionMethod.HURST_BASED

    def test_high_volatility_override(self, rising_prices):
        """Test that volatility above twice its history wins."""
        result = SimpleRegimeDetector().detect(rising_prices, historical_volatility=[1e-6] * 10)
        assert result.type is RegimeType.HIGH_VOLATILITY
        assert result.probability == pytest.approx(0.8)

    def test_ranging(self, zigzag_prices):
        """Test that a mean-reverting series is RANGING with a non-negative probability."""
        result = SimpleRegimeDetector().detect(zigzag_prices)
        assert result.type is RegimeType.RANGING
        assert 0.0 <= result.probability <= 1.0


class TestConvenience:
    """Tests for the factory helpers."""

    def test_make_regime_detector(self):
        """Test method dispatch."""
        assert isinstance(make_regime_detector(RegimeDetectionMethod.HURST_BASED), SimpleRegimeDetector)
        assert isinstance(make_regime_detector(), MultiFactorRegimeDetector)

    def test_detect_regime(self, rising_prices):
        """Test the one-off helper with the Hurst-based method."""
        result = detect_regime(rising_prices, RegimeDetectionMethod.HURST_BASED)
        assert result.method is RegimeDetectionMethod.HURST_BASED

    def test_r_squared_of_trend(self, rising_prices, flat_prices):
        """Test squared correlation with the sample index."""
        assert r_squared_of_trend(rising_prices) == pytest.approx(1.0)
        assert r_squared_of_trend(flat_prices) == 0.0
