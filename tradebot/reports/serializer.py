"""Serialisers for report payloads exposed to the dashboard."""

from __future__ import annotations

import json
import math
from typing import Any, Dict, List

import pandas as pd

from tradebot.engine.metrics import SUMMARY_FIELDS, BacktestSummary

SUMMARY_MARKER = "---SUMMARY_JSON---"
EQUITY_MARKER = "---EQUITY_CSV---"
EQUITY_CSV_HEADER = "index,equity"


def serialise_summary(summary: BacktestSummary, json_safe: bool = False) -> Dict[str, Any]:
    """Return the flat summary record.

    With ``json_safe`` an infinite profit factor becomes ``None`` and
    ``profit_factor_infinite`` is set, since JSON has no infinity literal.
    """

    payload: Dict[str, Any] = {}
    for name in SUMMARY_FIELDS:
        value = getattr(summary, name)
        payload[name] = int(value) if name in {"n_trades", "wins", "max_consecutive_losses"} else float(value)
    if json_safe:
        infinite = math.isinf(payload["profit_factor"])
        payload["profit_factor"] = None if infinite else payload["profit_factor"]
        payload["profit_factor_infinite"] = infinite
    return payload


def _format_timestamp(ts: Any) -> str:
    if isinstance(ts, pd.Timestamp):
        return ts.isoformat()
    return str(ts)


def equity_curve_to_csv(equity: pd.Series) -> str:
    """Render the equity curve as ``index,equity`` rows in chronological order."""

    lines: List[str] = [EQUITY_CSV_HEADER]
    if equity is None or equity.empty:
        return EQUITY_CSV_HEADER + "\n"
    for ts, value in equity.sort_index().items():
        lines.append(f"{_format_timestamp(ts)},{float(value)!r}")
    return "\n".join(lines) + "\n"


def serialise_series(series: pd.Series, decimals: int = 6) -> Dict[str, List[Any]]:
    """Return ``{"dates": [...], "values": [...]}`` for chart payloads."""

    if series is None or series.empty:
        return {"dates": [], "values": []}
    return {
        "dates": [_format_timestamp(ts) for ts in series.index],
        "values": [round(float(v), decimals) for v in series.to_numpy()],
    }


def format_script_output(summary: BacktestSummary, equity: pd.Series) -> str:
    """Render the marker-delimited stdout the dashboard's script runner parses."""

    summary_json = json.dumps(serialise_summary(summary, json_safe=True))
    return "\n".join([SUMMARY_MARKER, summary_json, EQUITY_MARKER, equity_curve_to_csv(equity).rstrip("\n")]) + "\n"
