"""EMA and MACD indicators."""

from __future__ import annotations

import logging
from typing import Sequence, Union

import pandas as pd

from .errors import InvalidParameter

logger = logging.getLogger(__name__)

INDICATOR_COLUMNS = ["fast_ema", "slow_ema", "macd", "signal"]


def _check_period(name: str, period: int) -> int:
    if isinstance(period, bool) or int(period) != period or int(period) <= 0:
        raise InvalidParameter(f"{name} must be a positive integer, got {period!r}")
    return int(period)


def compute_ema(values: Union[pd.Series, Sequence[float]], period: int) -> pd.Series:
    """Exponential moving average seeded with the first value.

    Uses ``alpha = 2 / (period + 1)`` and the recursive form
    ``ema[i] = x[i] * alpha + ema[i - 1] * (1 - alpha)`` with ``ema[0] = x[0]``,
    so every index is defined.
    """
    period = _check_period("period", period)
    series = pd.Series(values).astype(float)
    return series.ewm(span=period, adjust=False).mean()


def compute_macd(
    prices: pd.Series,
    fast_period: int = 8,
    slow_period: int = 21,
    signal_period: int = 5,
) -> pd.DataFrame:
    """Compute the fast/slow EMAs, the MACD line and its signal line.

    An inverted configuration (``fast_period >= slow_period``) is allowed but
    logged.
    """
    fast_period = _check_period("fast_period", fast_period)
    slow_period = _check_period("slow_period", slow_period)
    signal_period = _check_period("signal_period", signal_period)
    if fast_period >= slow_period:
        logger.warning(
            "MACD fast period is not shorter than slow period",
            extra={"fast_period": fast_period, "slow_period": slow_period},
        )

    prices = pd.Series(prices).astype(float)
    fast_ema = compute_ema(prices, fast_period)
    slow_ema = compute_ema(prices, slow_period)
    macd = fast_ema - slow_ema
    signal_line = compute_ema(macd, signal_period)
    return pd.DataFrame(
        {"fast_ema": fast_ema, "slow_ema": slow_ema, "macd": macd, "signal": signal_line},
        index=prices.index,
        columns=INDICATOR_COLUMNS,
    )
