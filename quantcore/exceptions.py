"""
quantcore/exceptions.py
-----------------------
Error kinds raised by the numeric core.

Every error derives from ``ValueError`` so callers that already guard
numeric input with ``except ValueError`` keep working.
"""


class QuantError(ValueError):
    """Base class for all quantcore errors."""


class EmptyInputError(QuantError):
    """A statistic was asked for on a zero-length series."""


class InsufficientDataError(QuantError):
    """Too few points (or mismatched lengths) for the requested computation."""


class DegenerateOptimizationError(QuantError):
    """Portfolio variance is zero, so the Sharpe Ratio is undefined."""


class InvalidWeightError(QuantError):
    """Weights outside [0, 1] or not summing to 1 within tolerance."""
