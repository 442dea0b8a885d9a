"""End-to-end synthetic MACD backtest.

Loader -> indicators -> lagged positions -> equity walk -> summary.  Each call
builds its own series and shares nothing with other calls, so independent
configurations (for example an "original" and an "enhanced" script) can be
evaluated side by side with :func:`run_backtests`.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence, Union

import pandas as pd

from .config import BacktestConfig
from .fees import FeeModel
from .indicators import compute_macd
from .metrics import BacktestSummary, compute_summary
from .pnl import EquitySimulation, compute_drawdown, simulate_equity
from .positions import build_positions
from .prices import generate_price_series, validate_price_series

logger = logging.getLogger(__name__)

ConfigLike = Union[BacktestConfig, Mapping[str, Any], None]


@dataclass
class BacktestRun:
    config: BacktestConfig
    prices: pd.Series
    indicators: pd.DataFrame
    positions: pd.Series
    simulation: EquitySimulation
    summary: BacktestSummary

    @property
    def equity(self) -> pd.Series:
        return self.simulation.equity

    @property
    def drawdown(self) -> pd.Series:
        return compute_drawdown(self.simulation.equity)


def run_backtest(config: ConfigLike = None, prices: Optional[pd.Series] = None) -> BacktestRun:
    """Run the full pipeline for one configuration.

    ``prices`` overrides the synthetic loader, which is how tests inject
    hand-built series.  All validation happens before the equity walk starts.
    """
    cfg = BacktestConfig.from_mapping(config).validate()
    fee_model = FeeModel(cfg.fee_rate)

    if prices is None:
        prices = generate_price_series(
            seed=cfg.seed,
            length=cfg.length,
            start_price=cfg.start_price,
            drift_scale=cfg.drift_scale,
            start=cfg.start,
            freq=cfg.freq,
        )
    validate_price_series(prices)

    indicators = compute_macd(
        prices,
        fast_period=cfg.fast_period,
        slow_period=cfg.slow_period,
        signal_period=cfg.signal_period,
    )
    positions = build_positions(indicators)
    simulation = simulate_equity(prices, positions, cfg.initial_capital, fee_model)
    summary = compute_summary(simulation, cfg.initial_capital, periods_per_year=cfg.periods_per_year)

    logger.info(
        "Backtest complete",
        extra={
            "bars": len(prices),
            "n_trades": summary.n_trades,
            "total_return_pct": summary.total_return_pct,
        },
    )
    return BacktestRun(
        config=cfg,
        prices=prices,
        indicators=indicators,
        positions=positions,
        simulation=simulation,
        summary=summary,
    )


def run_backtests(configs: Sequence[ConfigLike], max_workers: int = 4) -> List[BacktestRun]:
    """Run independent configurations concurrently, returning results in input order."""

    configs = list(configs)
    if not configs:
        return []
    workers = max(1, min(int(max_workers), len(configs)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(run_backtest, cfg) for cfg in configs]
        return [future.result() for future in futures]
