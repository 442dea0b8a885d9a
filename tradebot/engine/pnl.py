"""Equity simulation helpers for the backtesting engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd

from .config import debug_logging_enabled
from .errors import InvalidParameter
from .fees import FeeModel
from .prices import validate_price_series

logger = logging.getLogger(__name__)

if debug_logging_enabled():  # pragma: no cover - configuration branch
    logger.setLevel(logging.DEBUG)


@dataclass
class EquitySimulation:
    equity: pd.Series
    strategy_returns: pd.Series
    n_trades: int
    initial_capital: float


def simulate_equity(
    prices: pd.Series,
    positions: pd.Series,
    initial_capital: float,
    fee_model: Optional[FeeModel] = None,
) -> EquitySimulation:
    """Walk the series bar by bar and build the equity curve.

    The fee is taken from the running equity before the bar's return is
    applied, and only on bars where the position differs from the one held
    on the previous bar.  Equity is not floored at zero.
    """

    fee_model = fee_model or FeeModel()
    if not float(initial_capital) > 0:
        raise InvalidParameter(f"initial_capital must be positive, got {initial_capital}")
    if len(prices) != len(positions):
        raise InvalidParameter(
            f"prices and positions differ in length ({len(prices)} != {len(positions)})"
        )
    validate_price_series(prices)

    price_values = prices.to_numpy(dtype=float)
    position_values = np.asarray(positions, dtype=int)
    if not np.isin(position_values, (-1, 0, 1)).all():
        raise InvalidParameter("positions must be -1, 0 or +1")

    n_bars = len(price_values)
    equity = np.empty(n_bars, dtype=float)
    strategy_returns = np.zeros(n_bars, dtype=float)
    equity[0] = float(initial_capital)
    current_position = 0
    n_trades = 0

    for i in range(1, n_bars):
        market_return = (price_values[i] - price_values[i - 1]) / price_values[i - 1]
        position = int(position_values[i])
        strategy_returns[i] = market_return * position
        running = equity[i - 1]
        if position != current_position:
            n_trades += 1
            running = fee_model.apply(running)
            logger.debug(
                "POSITION CHANGE",
                extra={
                    "bar": i,
                    "from": current_position,
                    "to": position,
                    "price": price_values[i],
                    "equity_after_fee": running,
                },
            )
        equity[i] = running * (1.0 + strategy_returns[i])
        current_position = position

    return EquitySimulation(
        equity=pd.Series(equity, index=prices.index, name="equity"),
        strategy_returns=pd.Series(strategy_returns, index=prices.index, name="strategy_return"),
        n_trades=n_trades,
        initial_capital=float(initial_capital),
    )


def compute_drawdown(equity: pd.Series) -> pd.Series:
    """Compute drawdown from the running peak as a positive fraction."""

    if equity is None or equity.empty:
        return pd.Series(dtype=float)
    running_max = equity.cummax()
    drawdown = (running_max - equity) / running_max
    drawdown.name = "drawdown"
    return drawdown


def warn_if_returns_constant(strategy_returns: pd.Series, threshold: float = 1e-12) -> Optional[float]:
    """Emit a warning when strategy returns barely move and return their stdev."""

    if strategy_returns is None or len(strategy_returns) < 2:
        return None
    spread = float(strategy_returns.iloc[1:].std(ddof=0))
    if spread <= threshold:
        logger.warning(
            "Strategy returns show no variability", extra={"stdev": spread, "bars": len(strategy_returns)}
        )
    return spread
