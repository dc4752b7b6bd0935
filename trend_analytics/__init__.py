"""
Streaming trend and regime analytics.

Per-symbol price buffers feed a regression / EMA / direction-change trend
pass with timeframe escalation, plus Hurst, GARCH(1,1) and market-regime
analysis on demand.
"""

from .config import (
    EngineConfig,
    MABias,
    RegimeDetectionMethod,
    Timeframe,
    TrendDirection,
)
from .exceptions import (
    ConstraintViolationError,
    InsufficientDataError,
    InvalidInputError,
    TrendAnalyticsError,
)
from .regime_detector import (
    HurstAnalyzer,
    MultiFactorRegimeDetector,
    RegimeType,
    SimpleRegimeDetector,
    VolatilityModel,
    detect_regime,
)
from .regression import AutocorrelationAnalyzer, RegressionAnalyzer
from .streaming import StreamingAnalysisService
from .trend_engine import (
    DeepAnalysis,
    EscalationState,
    PublishedResult,
    ResultKind,
    TrendEngine,
    TrendResult,
)

__version__ = "1.0.0"

__all__ = [
    'EngineConfig',
    'MABias',
    'RegimeDetectionMethod',
    'Timeframe',
    'TrendDirection',
    'ConstraintViolationError',
    'InsufficientDataError',
    'InvalidInputError',
    'TrendAnalyticsError',
    'HurstAnalyzer',
    'MultiFactorRegimeDetector',
    'RegimeType',
    'SimpleRegimeDetector',
    'VolatilityModel',
    'detect_regime',
    'AutocorrelationAnalyzer',
    'RegressionAnalyzer',
    'StreamingAnalysisService',
    'DeepAnalysis',
    'EscalationState',
    'PublishedResult',
    'ResultKind',
    'TrendEngine',
    'TrendResult',
]
