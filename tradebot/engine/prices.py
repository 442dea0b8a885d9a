"""Synthetic market data for the backtest simulator."""

from __future__ import annotations

import numbers

import numpy as np
import pandas as pd

from .errors import DivisionByZero, InvalidParameter

DEFAULT_EPOCH = "2024-01-01"


def generate_price_series(
    seed: int = 42,
    length: int = 500,
    start_price: float = 20_000.0,
    drift_scale: float = 0.01,
    start: str = DEFAULT_EPOCH,
    freq: str = "h",
) -> pd.Series:
    """Generate a reproducible geometric random walk.

    ``price[0]`` is ``start_price`` and every later bar applies a normally
    distributed shock scaled by ``drift_scale``:
    ``price[i] = price[i - 1] * (1 + shock[i])``.  Timestamps are evenly spaced
    at ``freq`` starting from ``start``.  The same seed always yields the same
    series.
    """
    if isinstance(seed, bool) or not isinstance(seed, numbers.Integral) or seed < 0:
        raise InvalidParameter(f"seed must be a non-negative integer, got {seed!r}")
    length = int(length)
    if length <= 0:
        raise InvalidParameter(f"length must be positive, got {length}")
    if not float(start_price) > 0:
        raise InvalidParameter(f"start_price must be positive, got {start_price}")
    if float(drift_scale) < 0:
        raise InvalidParameter(f"drift_scale must be non-negative, got {drift_scale}")

    rng = np.random.default_rng(seed)
    shocks = rng.standard_normal(length - 1) * float(drift_scale)
    growth = np.concatenate(([1.0], 1.0 + shocks))
    prices = float(start_price) * np.cumprod(growth)

    try:
        index = pd.date_range(start=start, periods=length, freq=freq, name="timestamp")
    except (TypeError, ValueError) as exc:
        raise InvalidParameter(f"invalid timestamp start/freq: {start!r}/{freq!r}") from exc
    return pd.Series(prices, index=index, name="price")


def validate_price_series(prices: pd.Series) -> pd.Series:
    """Check a price series before it enters the pipeline.

    Any zero price that would serve as a return denominator (every bar but
    the last) is fatal.
    """
    if prices is None or len(prices) == 0:
        raise InvalidParameter("price series must contain at least one bar")
    values = prices.to_numpy(dtype=float)
    if not np.isfinite(values).all():
        raise InvalidParameter("price series contains NaN or infinite values")
    if isinstance(prices.index, pd.DatetimeIndex) and not prices.index.is_monotonic_increasing:
        raise InvalidParameter("price timestamps must be increasing")
    if prices.index.has_duplicates:
        raise InvalidParameter("price timestamps must be unique")
    zero_at = np.flatnonzero(values[:-1] == 0.0)
    if zero_at.size:
        raise DivisionByZero(f"zero price at bar {int(zero_at[0])} cannot be used to compute a return")
    return prices
