"""Turn MACD crossovers into a lagged long/short/flat position series."""

from __future__ import annotations

import numpy as np
import pandas as pd

from .errors import InvalidParameter


def raw_signals(indicators: pd.DataFrame) -> pd.Series:
    """+1 where MACD is above its signal line, -1 where below, 0 when equal."""
    missing = {"macd", "signal"} - set(indicators.columns)
    if missing:
        raise InvalidParameter(f"indicator frame is missing columns: {sorted(missing)}")
    diff = indicators["macd"].to_numpy(dtype=float) - indicators["signal"].to_numpy(dtype=float)
    return pd.Series(np.sign(diff).astype(int), index=indicators.index, name="raw_signal")


def build_positions(indicators: pd.DataFrame) -> pd.Series:
    """Position held on each bar.

    The position at bar ``i`` is the raw signal of bar ``i - 1``; bar 0 is
    always flat.
    """
    raw = raw_signals(indicators).to_numpy()
    positions = np.zeros(len(raw), dtype=int)
    for i in range(1, len(raw)):
        positions[i] = raw[i - 1]
    return pd.Series(positions, index=indicators.index, name="position")


def count_position_changes(positions: pd.Series) -> int:
    values = np.asarray(positions, dtype=int)
    if values.size < 2:
        return 0
    return int(np.count_nonzero(values[1:] != values[:-1]))
