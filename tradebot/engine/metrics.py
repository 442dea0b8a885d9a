"""Performance metric calculations for backtests."""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from typing import Dict, Optional

import numpy as np

from .pnl import EquitySimulation, compute_drawdown, warn_if_returns_constant

logger = logging.getLogger(__name__)

SUMMARY_FIELDS = [
    "final_equity",
    "total_return_pct",
    "n_trades",
    "wins",
    "win_rate",
    "avg_win",
    "avg_loss",
    "profit_factor",
    "max_consecutive_losses",
    "max_drawdown",
    "sharpe",
]


@dataclass(frozen=True)
class BacktestSummary:
    final_equity: float
    total_return_pct: float
    n_trades: int
    wins: int
    win_rate: float
    avg_win: float
    avg_loss: float
    profit_factor: float
    max_consecutive_losses: int
    max_drawdown: float
    sharpe: float

    @property
    def profit_factor_infinite(self) -> bool:
        return math.isinf(self.profit_factor)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def _sharpe(bar_returns: np.ndarray, periods_per_year: int) -> float:
    if bar_returns.size < 2:
        return 0.0
    stdev = float(np.std(bar_returns, ddof=1))
    if not math.isfinite(stdev) or stdev == 0.0:
        return 0.0
    return float(math.sqrt(periods_per_year) * float(np.mean(bar_returns)) / stdev)


def _max_drawdown(simulation: EquitySimulation) -> float:
    drawdown = compute_drawdown(simulation.equity)
    if drawdown.empty:
        return 0.0
    worst = float(drawdown.max())
    if worst > 1.0:
        logger.warning("Equity fell below zero; drawdown reported as 1.0", extra={"drawdown": worst})
        worst = 1.0
    return max(0.0, worst)


def compute_summary(
    simulation: EquitySimulation,
    initial_capital: Optional[float] = None,
    periods_per_year: int = 252,
) -> BacktestSummary:
    """Reduce an equity simulation to its summary statistics.

    ``win_rate`` divides winning bars by position changes, and
    ``max_consecutive_losses`` is reserved and always 0, matching the
    dashboard's reference script.  ``profit_factor`` is ``math.inf`` when
    there are winning bars but no losing ones, and ``0.0`` when a flat
    strategy has neither.
    """
    capital = float(initial_capital if initial_capital is not None else simulation.initial_capital)
    equity = simulation.equity.to_numpy(dtype=float)
    strategy_returns = simulation.strategy_returns.to_numpy(dtype=float)[1:]

    final_equity = float(equity[-1])
    total_return_pct = final_equity / capital - 1.0

    with np.errstate(divide="ignore", invalid="ignore"):
        bar_returns = equity[1:] / equity[:-1] - 1.0
    finite = np.isfinite(bar_returns)
    if not finite.all():
        logger.warning(
            "Dropping non-finite bar returns from the Sharpe sample",
            extra={"dropped": int((~finite).sum()), "bars": int(bar_returns.size)},
        )
        bar_returns = bar_returns[finite]
    sharpe = _sharpe(bar_returns, periods_per_year)
    warn_if_returns_constant(simulation.strategy_returns)

    positive = strategy_returns[strategy_returns > 0]
    negative = strategy_returns[strategy_returns < 0]
    wins = int(positive.size)
    n_trades = int(simulation.n_trades)
    win_rate = wins / n_trades if n_trades > 0 else 0.0
    avg_win = float(positive.mean() * capital) if positive.size else 0.0
    avg_loss = float(negative.mean() * capital) if negative.size else 0.0

    gross_win = float(positive.sum() * capital)
    gross_loss = abs(float(negative.sum() * capital))
    if gross_loss > 0:
        profit_factor = gross_win / gross_loss
    elif gross_win > 0:
        profit_factor = math.inf
    else:
        profit_factor = 0.0

    return BacktestSummary(
        final_equity=final_equity,
        total_return_pct=float(total_return_pct),
        n_trades=n_trades,
        wins=wins,
        win_rate=float(win_rate),
        avg_win=avg_win,
        avg_loss=avg_loss,
        profit_factor=float(profit_factor),
        max_consecutive_losses=0,
        max_drawdown=_max_drawdown(simulation),
        sharpe=sharpe,
    )
