"""Validation for JSON and text produced by the external code-analysis service.

Nothing the AI service returns is trusted: payloads are decoded, checked
against the models below and converted into engine types before any other
module sees them.  Every failure surfaces as :class:`SchemaMismatch`.
"""

from __future__ import annotations

import json
import logging
import math
from io import StringIO
from typing import Any, List, Optional, Tuple

import pandas as pd
from pydantic import BaseModel, Field, ValidationError, validator

from tradebot.engine.errors import SchemaMismatch
from tradebot.engine.metrics import BacktestSummary
from tradebot.reports.serializer import EQUITY_MARKER, SUMMARY_MARKER

logger = logging.getLogger(__name__)


class AnalysisParameter(BaseModel):
    name: str
    value: str
    description: str


class Recommendation(BaseModel):
    title: str
    description: str
    pythonCodeSnippet: str


class AnalysisResult(BaseModel):
    parameters: List[AnalysisParameter]
    recommendations: List[Recommendation]


class SummaryPayload(BaseModel):
    final_equity: float
    total_return_pct: float
    n_trades: int = Field(..., ge=0)
    wins: int = Field(..., ge=0)
    win_rate: float = Field(..., ge=0.0)
    avg_win: float
    avg_loss: float
    profit_factor: Optional[float] = None
    profit_factor_infinite: bool = False
    max_consecutive_losses: int = Field(0, ge=0)
    max_drawdown: float = Field(..., ge=0.0, le=1.0)
    sharpe: float

    @validator("final_equity", "total_return_pct", "avg_win", "avg_loss", "sharpe", "win_rate")
    def _finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("must be a finite number")
        return v

    @validator("profit_factor")
    def _profit_factor_sentinel(cls, v: Optional[float]) -> Optional[float]:
        # null and +inf both mean "no losing bars"
        if v is None:
            return v
        if math.isnan(v) or v < 0:
            raise ValueError("must be a non-negative number, +inf or null")
        return v

    def to_summary(self) -> BacktestSummary:
        profit_factor = self.profit_factor
        if profit_factor is None or self.profit_factor_infinite:
            profit_factor = math.inf
        return BacktestSummary(
            final_equity=self.final_equity,
            total_return_pct=self.total_return_pct,
            n_trades=self.n_trades,
            wins=self.wins,
            win_rate=self.win_rate,
            avg_win=self.avg_win,
            avg_loss=self.avg_loss,
            profit_factor=float(profit_factor),
            max_consecutive_losses=self.max_consecutive_losses,
            max_drawdown=self.max_drawdown,
            sharpe=self.sharpe,
        )


class BacktestResultPayload(BaseModel):
    summary: Optional[SummaryPayload] = None
    equity_curve_csv: Optional[str] = None
    error: Optional[str] = None


def strip_code_fences(text: str) -> str:
    """Drop a leading ```python / ``` fence and a trailing ``` fence."""

    code = text.strip()
    for opener in ("```python", "```"):
        if code.startswith(opener):
            code = code[len(opener):]
            break
    if code.endswith("```"):
        code = code[:-3]
    return code.strip()


def _decode_json(text: str, what: str) -> Any:
    try:
        return json.loads(strip_code_fences(text))
    except (TypeError, ValueError) as exc:
        logger.error("Undecodable %s payload", what, extra={"payload": text[:200] if text else text})
        raise SchemaMismatch(f"Invalid JSON for {what}: {exc}") from exc


def parse_analysis_result(text: str) -> AnalysisResult:
    data = _decode_json(text, "analysis")
    if not isinstance(data, dict):
        raise SchemaMismatch("Analysis payload must be a JSON object")
    try:
        return AnalysisResult(**data)
    except ValidationError as exc:
        raise SchemaMismatch(f"Analysis payload does not match schema: {exc}") from exc


def parse_equity_csv(text: str) -> pd.Series:
    """Parse a two-column ``index,equity`` table into an equity series."""

    if not text or not text.strip():
        raise SchemaMismatch("Equity curve CSV is empty")
    try:
        frame = pd.read_csv(StringIO(text.strip().replace("\r", "")))
    except (ValueError, pd.errors.ParserError) as exc:
        raise SchemaMismatch(f"Equity curve CSV could not be parsed: {exc}") from exc
    if frame.shape[1] != 2 or frame.empty:
        raise SchemaMismatch("Equity curve CSV must have one index column and one equity column with rows")

    labels = frame.iloc[:, 0]
    values = pd.to_numeric(frame.iloc[:, 1], errors="coerce")
    if values.isna().any():
        raise SchemaMismatch("Equity curve CSV contains non-numeric equity values")
    if not pd.api.types.is_numeric_dtype(labels):
        parsed = pd.to_datetime(labels, errors="coerce")
        if not parsed.isna().any():
            labels = parsed
    index = pd.Index(labels, name="timestamp")
    if not index.is_monotonic_increasing:
        raise SchemaMismatch("Equity curve CSV rows are not in chronological order")
    return pd.Series(values.to_numpy(dtype=float), index=index, name="equity")


def _to_result(data: Any) -> Tuple[BacktestSummary, pd.Series]:
    if not isinstance(data, dict):
        raise SchemaMismatch("Backtest payload must be a JSON object")
    try:
        payload = BacktestResultPayload(**data)
    except ValidationError as exc:
        raise SchemaMismatch(f"Backtest payload does not match schema: {exc}") from exc
    if payload.error:
        raise SchemaMismatch(f"Backtest execution failed: {payload.error}")
    if payload.summary is None or not payload.equity_curve_csv:
        raise SchemaMismatch("Backtest payload requires both summary and equity_curve_csv")
    return payload.summary.to_summary(), parse_equity_csv(payload.equity_curve_csv)


def parse_backtest_result(text: str) -> Tuple[BacktestSummary, pd.Series]:
    """Validate the AI's backtest JSON and return a typed summary and equity curve."""

    return _to_result(_decode_json(text, "backtest"))


def parse_script_output(stdout: str) -> Tuple[BacktestSummary, pd.Series]:
    """Parse the marker-delimited stdout of a backtest script.

    The summary JSON follows ``---SUMMARY_JSON---`` and may span several
    lines; the equity CSV follows ``---EQUITY_CSV---``.
    """
    if SUMMARY_MARKER not in stdout or EQUITY_MARKER not in stdout:
        raise SchemaMismatch("Script output is missing the summary or equity markers")
    after_summary = stdout.split(SUMMARY_MARKER, 1)[1]
    if EQUITY_MARKER not in after_summary:
        raise SchemaMismatch("Equity marker must follow the summary marker")
    summary_text, csv_text = after_summary.split(EQUITY_MARKER, 1)
    summary = _decode_json(summary_text, "summary")
    return _to_result({"summary": summary, "equity_curve_csv": csv_text})
