"""Core backtesting engine primitives."""

from .config import BacktestConfig
from .errors import BacktestError, DivisionByZero, InvalidParameter, SchemaMismatch
from .fees import FeeModel
from .indicators import compute_ema, compute_macd
from .metrics import SUMMARY_FIELDS, BacktestSummary, compute_summary
from .pnl import EquitySimulation, compute_drawdown, simulate_equity, warn_if_returns_constant
from .positions import build_positions, count_position_changes, raw_signals
from .prices import generate_price_series, validate_price_series
from .runner import BacktestRun, run_backtest, run_backtests

__all__ = [
    "BacktestConfig",
    "BacktestError",
    "DivisionByZero",
    "InvalidParameter",
    "SchemaMismatch",
    "FeeModel",
    "compute_ema",
    "compute_macd",
    "SUMMARY_FIELDS",
    "BacktestSummary",
    "compute_summary",
    "EquitySimulation",
    "compute_drawdown",
    "simulate_equity",
    "warn_if_returns_constant",
    "build_positions",
    "count_position_changes",
    "raw_signals",
    "generate_price_series",
    "validate_price_series",
    "BacktestRun",
    "run_backtest",
    "run_backtests",
]
