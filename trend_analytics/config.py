"""
Configuration Module for the Trend Analytics Engine

This module centralizes all configuration constants, enumerations, analyzer
thresholds and the runtime engine settings used throughout the analysis
pipeline.

All "magic numbers" and configuration values are defined here to ensure:
1. Single source of truth for all constants
2. Easy modification without touching analysis code
3. Transparency in assumptions and thresholds
4. Consistency across all modules

The composite-score weights and the oscillation thresholds are hand-tuned
defaults carried over unchanged. They are exposed as configuration so they
can be tuned per deployment, never silently changed in code.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .exceptions import InvalidInputError


# =============================================================================
# ENUMERATIONS
# =============================================================================

class TrendDirection(Enum):
    """Direction recommended by the composite decision."""
    LONG = "LONG"
    SHORT = "SHORT"
    WAIT = "WAIT"


class MABias(Enum):
    """Bias derived from the relative order of the fast and slow EMA."""
    LONG = "LONG"
    SHORT = "SHORT"
    NEUTRAL = "NEUTRAL"


class Timeframe(Enum):
    """Analysis windows of the escalation chain."""
    ONE_SECOND = "1s"
    ONE_MINUTE = "1m"
    FIFTEEN_MINUTES = "15m"

    @property
    def seconds(self) -> int:
        return _TIMEFRAME_SECONDS[self.value]

    @classmethod
    def parse(cls, value: Any) -> 'Timeframe':
        """Accept a Timeframe, its value ('1m') or its name ('ONE_MINUTE')."""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for member in cls:
            if text == member.value or text.upper() == member.name:
                return member
        raise InvalidInputError(f"Unknown timeframe: {value!r}")


_TIMEFRAME_SECONDS: Dict[str, int] = {"1s": 1, "1m": 60, "15m": 900}


class RegimeDetectionMethod(Enum):
    """Strategy used by the engine for regime classification."""
    MULTI_FACTOR = "MULTI_FACTOR"
    HURST_BASED = "HURST_BASED"


# =============================================================================
# ANALYZER THRESHOLDS
# =============================================================================

@dataclass(frozen=True)
class AutocorrelationThresholds:
    """Durbin-Watson severity bands and Ljung-Box settings."""

    # DW in [none_low, none_high] means no autocorrelation
    none_low: float = 1.7
    none_high: float = 2.3

    # MILD outside the NONE band but inside [mild_low, mild_high]
    mild_low: float = 1.5
    mild_high: float = 2.5

    # MODERATE inside [moderate_low, moderate_high], SEVERE beyond
    moderate_low: float = 1.0
    moderate_high: float = 3.0

    # DW value reported when residual energy is ~0
    neutral_dw: float = 2.0

    ljung_box_max_lag: int = 10
    ljung_box_alpha: float = 0.05

    # Relative residual energy below which a fit is treated as exact
    exact_fit_tolerance: float = 1e-12


@dataclass(frozen=True)
class HurstThresholds:
    """Rescaled-range lags and exponent interpretation bands."""

    candidate_lags: Tuple[int, ...] = (10, 20, 30, 50, 100)
    min_usable_lags: int = 2

    mean_reverting_below: float = 0.45   # H < 0.45
    trending_above: float = 0.55         # H > 0.55
    strong_mean_reverting: float = 0.35  # tradeable when H < 0.35
    strong_trending: float = 0.65        # tradeable when H > 0.65

    # Floor applied before log(R/S)
    min_rs: float = 1e-4


@dataclass(frozen=True)
class GARCHDefaults:
    """Heuristic GARCH(1,1) parameters (not maximum likelihood)."""

    min_observations: int = 30
    omega_variance_fraction: float = 0.05  # omega = 5% of sample variance
    alpha: float = 0.10                     # shock sensitivity
    beta: float = 0.85                      # variance persistence

    # Volatility z-score bands
    low_z: float = -1.0
    high_z: float = 1.0
    extreme_z: float = 2.0


@dataclass(frozen=True)
class RegimeThresholds:
    """Regime detector settings and multi-factor rule weights."""

    min_observations: int = 100
    momentum_window: int = 30
    volatility_window: int = 20

    # Simple detector
    high_volatility_multiple: float = 2.0
    high_volatility_probability: float = 0.8

    # Multi-factor indicator scaling
    momentum_scale: float = 10.0
    volatility_z_dispersion: float = 0.2

    # Multi-factor trending rules
    trend_hurst: float = 0.55
    trend_hurst_weight: float = 0.3
    trend_r_squared: float = 0.5
    trend_r_squared_weight: float = 0.2
    trend_momentum: float = 0.3
    trend_momentum_weight: float = 0.3
    trend_max_change_ratio: float = 0.3
    trend_change_ratio_weight: float = 0.2

    # Multi-factor ranging rules
    range_hurst: float = 0.45
    range_hurst_weight: float = 0.3
    range_r_squared: float = 0.3
    range_r_squared_weight: float = 0.3
    range_min_change_ratio: float = 0.4
    range_change_ratio_weight: float = 0.2
    range_volatility_z: float = 0.0
    range_volatility_weight: float = 0.2

    # Multi-factor high volatility ladder: (z-score above, score)
    volatility_ladder: Tuple[Tuple[float, float], ...] = ((2.0, 0.9), (1.5, 0.6), (1.0, 0.3))


# =============================================================================
# ENGINE CONFIGURATION
# =============================================================================

DEFAULT_ESCALATION_CHAIN: Tuple[Timeframe, ...] = (
    Timeframe.ONE_SECOND,
    Timeframe.ONE_MINUTE,
    Timeframe.FIFTEEN_MINUTES,
)


@dataclass
class EngineConfig:
    """
    Runtime settings of the TrendEngine.

    Instances are read at construction and may be replaced at runtime
    through ``TrendEngine.update_config`` / ``TrendEngine.reload_config``.
    """

    # Buffering
    buffer_size: int = 100
    min_data_points: int = 50
    recalculation_interval: int = 10  # trend pass every N appends

    # Moving averages
    ema_fast_period: int = 10
    ema_slow_period: int = 30

    # Oscillation detection
    oscillation_r_squared_threshold: float = 0.3
    oscillation_direction_change_ratio: float = 0.40
    min_strength_threshold: float = 2.0

    # Composite score
    composite_score_threshold: float = 0.3
    slope_weight: float = 0.4
    ema_weight: float = 0.4
    r_squared_weight: float = 0.2
    slope_scale: float = 1000.0

    # Timeframe escalation
    escalation_enabled: bool = True
    escalation_chain: Tuple[Timeframe, ...] = DEFAULT_ESCALATION_CHAIN
    max_wait_iterations: int = 5
    max_wait_iterations_per_link: Optional[Tuple[int, ...]] = None

    # Deep analysis
    regime_detection_method: RegimeDetectionMethod = RegimeDetectionMethod.MULTI_FACTOR
    garch_horizon: int = 5

    def __post_init__(self):
        self.escalation_chain = tuple(Timeframe.parse(tf) for tf in self.escalation_chain)
        if self.max_wait_iterations_per_link is not None:
            self.max_wait_iterations_per_link = tuple(int(v) for v in self.max_wait_iterations_per_link)
        if not isinstance(self.regime_detection_method, RegimeDetectionMethod):
            try:
                self.regime_detection_method = RegimeDetectionMethod(str(self.regime_detection_method).upper())
            except ValueError as exc:
                raise InvalidInputError(
                    f"Unknown regime detection method: {self.regime_detection_method!r}"
                ) from exc

    def validate(self) -> 'EngineConfig':
        """Check every value; raise InvalidInputError on the first problem."""
        if self.buffer_size < 1:
            raise InvalidInputError("buffer_size must be positive")
        if self.min_data_points < 10:
            raise InvalidInputError("min_data_points must be at least 10")
        if self.min_data_points > self.buffer_size:
            raise InvalidInputError("min_data_points must not exceed buffer_size")
        if self.recalculation_interval < 1:
            raise InvalidInputError("recalculation_interval must be positive")
        if self.ema_fast_period < 1 or self.ema_slow_period < 1:
            raise InvalidInputError("EMA periods must be positive")
        if self.ema_fast_period >= self.ema_slow_period:
            raise InvalidInputError("ema_fast_period must be smaller than ema_slow_period")
        if not 0.0 <= self.oscillation_r_squared_threshold <= 1.0:
            raise InvalidInputError("oscillation_r_squared_threshold must lie in [0, 1]")
        if not 0.0 < self.oscillation_direction_change_ratio <= 1.0:
            raise InvalidInputError("oscillation_direction_change_ratio must lie in (0, 1]")
        if not 0.0 <= self.min_strength_threshold <= 100.0:
            raise InvalidInputError("min_strength_threshold must lie in [0, 100]")
        if not 0.0 <= self.composite_score_threshold <= 1.0:
            raise InvalidInputError("composite_score_threshold must lie in [0, 1]")
        if min(self.slope_weight, self.ema_weight, self.r_squared_weight) < 0:
            raise InvalidInputError("composite weights must be non-negative")
        if self.slope_scale <= 0:
            raise InvalidInputError("slope_scale must be positive")
        if not self.escalation_chain:
            raise InvalidInputError("escalation_chain must not be empty")
        if len(set(self.escalation_chain)) != len(self.escalation_chain):
            raise InvalidInputError("escalation_chain must not repeat a timeframe")
        if self.max_wait_iterations < 1:
            raise InvalidInputError("max_wait_iterations must be positive")
        per_link = self.max_wait_iterations_per_link
        if per_link is not None:
            if len(per_link) != len(self.escalation_chain):
                raise InvalidInputError(
                    "max_wait_iterations_per_link needs one value per escalation link"
                )
            if min(per_link) < 1:
                raise InvalidInputError("max_wait_iterations_per_link values must be positive")
        if self.garch_horizon < 1:
            raise InvalidInputError("garch_horizon must be positive")
        return self

    def max_iterations_for(self, timeframe_index: int) -> int:
        """WAIT iterations tolerated at a given link of the escalation chain."""
        if self.max_wait_iterations_per_link is not None:
            return self.max_wait_iterations_per_link[timeframe_index]
        return self.max_wait_iterations

    def with_overrides(self, **overrides: Any) -> 'EngineConfig':
        """Return a validated copy with the given fields replaced."""
        unknown = set(overrides) - {f.name for f in fields(self)}
        if unknown:
            raise InvalidInputError(f"Unknown configuration keys: {sorted(unknown)}")
        return replace(self, **overrides).validate()

    @classmethod
    def from_mapping(cls, settings: Mapping[str, Any],
                     base: Optional['EngineConfig'] = None) -> 'EngineConfig':
        """
        Build a config from settings rows (snake_case or camelCase keys).

        Args:
            settings: Key/value pairs, e.g. {"bufferSize": 200, "minDataPoints": 100}
            base: Config whose values are kept for missing keys (defaults if None)

        Returns:
            Validated EngineConfig
        """
        overrides: Dict[str, Any] = {}
        for key, value in settings.items():
            name = normalize_config_key(key)
            overrides[name] = _coerce_setting(name, value)
        return (base or cls()).with_overrides(**overrides)


# camelCase names used by the settings store
CONFIG_KEY_ALIASES: Dict[str, str] = {
    "bufferSize": "buffer_size",
    "minDataPoints": "min_data_points",
    "recalculationInterval": "recalculation_interval",
    "emaFastPeriod": "ema_fast_period",
    "emaSlowPeriod": "ema_slow_period",
    "oscillationRSquaredThreshold": "oscillation_r_squared_threshold",
    "oscillationDirectionChangeRatio": "oscillation_direction_change_ratio",
    "minStrengthThreshold": "min_strength_threshold",
    "compositeScoreThreshold": "composite_score_threshold",
    "slopeWeight": "slope_weight",
    "emaWeight": "ema_weight",
    "rSquaredWeight": "r_squared_weight",
    "slopeScale": "slope_scale",
    "escalationEnabled": "escalation_enabled",
    "escalationChain": "escalation_chain",
    "maxIterations": "max_wait_iterations",
    "maxWaitIterations": "max_wait_iterations",
    "maxIterationsPerLink": "max_wait_iterations_per_link",
    "regimeDetectionMethod": "regime_detection_method",
    "garchHorizon": "garch_horizon",
}

_INT_KEYS = {
    "buffer_size", "min_data_points", "recalculation_interval", "ema_fast_period",
    "ema_slow_period", "max_wait_iterations", "garch_horizon",
}
_FLOAT_KEYS = {
    "oscillation_r_squared_threshold", "oscillation_direction_change_ratio",
    "min_strength_threshold", "composite_score_threshold", "slope_weight",
    "ema_weight", "r_squared_weight", "slope_scale",
}


def normalize_config_key(key: str) -> str:
    """Map a camelCase settings key to its EngineConfig field name."""
    return CONFIG_KEY_ALIASES.get(key, key)


def _split_list(value: Any) -> List[Any]:
    if isinstance(value, str):
        return [part for part in (p.strip() for p in value.split(",")) if part]
    return list(value)


def _coerce_setting(name: str, value: Any) -> Any:
    """Settings stores hand values over as strings; convert them."""
    try:
        if name in _INT_KEYS:
            return int(value)
        if name in _FLOAT_KEYS:
            return float(value)
        if name == "escalation_enabled":
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "yes", "on")
            return bool(value)
        if name == "escalation_chain":
            return tuple(Timeframe.parse(v) for v in _split_list(value))
        if name == "max_wait_iterations_per_link":
            return None if value is None else tuple(int(v) for v in _split_list(value))
    except (TypeError, ValueError) as exc:
        if isinstance(exc, InvalidInputError):
            raise
        raise InvalidInputError(f"Invalid value for {name}: {value!r}") from exc
    return value


# =============================================================================
# GLOBAL CONFIGURATION INSTANCES
# =============================================================================

AUTOCORRELATION = AutocorrelationThresholds()
HURST = HurstThresholds()
GARCH = GARCHDefaults()
REGIME = RegimeThresholds()


def get_recognized_keys() -> List[str]:
    """All settings keys accepted by EngineConfig.from_mapping."""
    return sorted(set(CONFIG_KEY_ALIASES) | {f.name for f in fields(EngineConfig)})


__all__ = [
    'TrendDirection',
    'MABias',
    'Timeframe',
    'RegimeDetectionMethod',
    'AutocorrelationThresholds',
    'HurstThresholds',
    'GARCHDefaults',
    'RegimeThresholds',
    'DEFAULT_ESCALATION_CHAIN',
    'EngineConfig',
    'CONFIG_KEY_ALIASES',
    'normalize_config_key',
    'get_recognized_keys',
    'AUTOCORRELATION',
    'HURST',
    'GARCH',
    'REGIME',
]
