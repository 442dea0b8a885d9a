"""Error types raised by the backtest simulator."""

from __future__ import annotations


class BacktestError(Exception):
    """Base class for simulator failures."""


class InvalidParameter(BacktestError, ValueError):
    """Raised before a run starts when an input is out of range."""


class DivisionByZero(BacktestError, ZeroDivisionError):
    """Raised when a zero price would be used as a return denominator."""


class SchemaMismatch(BacktestError, ValueError):
    """Raised when an externally produced payload does not match its schema."""
