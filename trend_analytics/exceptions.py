"""
Error taxonomy for the trend analytics engine.

All errors derive from ValueError so callers that already guard analyzer
calls with ``except ValueError`` keep working.

    InsufficientDataError     Below the minimum sample count of an analyzer.
                              Expected during warm-up; the engine converts it
                              to a None / neutral result.
    InvalidInputError         Non-positive prices on a log-return path,
                              malformed ticks, invalid configuration.
    ConstraintViolationError  Model parameters outside their admissible region
                              (GARCH alpha + beta >= 1).
"""

from __future__ import annotations

from typing import Optional


class TrendAnalyticsError(ValueError):
    """Base class for every error raised by this package."""


class InsufficientDataError(TrendAnalyticsError):
    """Raised when an analyzer receives fewer samples than it requires."""

    def __init__(self, required: int, actual: int, analyzer: Optional[str] = None):
        self.required = required
        self.actual = actual
        self.analyzer = analyzer
        prefix = f"{analyzer}: " if analyzer else ""
        super().__init__(
            f"{prefix}insufficient data (minimum {required} points required, got {actual})"
        )


class InvalidInputError(TrendAnalyticsError):
    """Raised for malformed input that must be fixed by the caller."""


class ConstraintViolationError(TrendAnalyticsError):
    """Raised when model parameters violate a structural constraint."""


__all__ = [
    'TrendAnalyticsError',
    'InsufficientDataError',
    'InvalidInputError',
    'ConstraintViolationError',
]
