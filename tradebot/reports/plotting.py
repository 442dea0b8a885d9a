"""Static charts for backtest runs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import pandas as pd  # noqa: E402

from tradebot.engine.pnl import compute_drawdown  # noqa: E402

logger = logging.getLogger(__name__)


def plot_equity_curve(
    equity: pd.Series,
    path: Union[str, Path],
    title: Optional[str] = None,
) -> Optional[Path]:
    """Save the equity curve with its drawdown underneath as a PNG.

    Returns the written path, or ``None`` when there is nothing to draw.
    """
    if equity is None or equity.empty:
        logger.warning("No equity data to plot")
        return None
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    drawdown = compute_drawdown(equity)

    fig, (ax_equity, ax_dd) = plt.subplots(
        2, 1, figsize=(8, 5), sharex=True, gridspec_kw={"height_ratios": [3, 1]}
    )
    ax_equity.plot(equity.index, equity.to_numpy(), color="tab:blue")
    ax_equity.set_ylabel("Equity")
    if title:
        ax_equity.set_title(title)
    ax_dd.fill_between(drawdown.index, -drawdown.to_numpy(), 0.0, color="tab:red", alpha=0.4)
    ax_dd.set_ylabel("Drawdown")
    ax_dd.set_xlabel("Time")
    fig.tight_layout()
    fig.savefig(path)
    plt.close(fig)
    return path
