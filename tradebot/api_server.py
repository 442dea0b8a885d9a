from __future__ import annotations

import logging
from typing import Any, Dict, List, Literal, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, validator

from tradebot.ai_boundary import parse_backtest_result
from tradebot.engine import (
    BacktestConfig,
    BacktestRun,
    BacktestSummary,
    DivisionByZero,
    FeeModel,
    InvalidParameter,
    SchemaMismatch,
    run_backtest,
    run_backtests,
)
from tradebot.reports.serializer import equity_curve_to_csv, serialise_series, serialise_summary
from tradebot.session import SessionRegistry, TradingSession

logger = logging.getLogger(__name__)

app = FastAPI(title="Trading Bot Backtest API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.state.sessions = SessionRegistry()


class BacktestParams(BaseModel):
    seed: int = Field(42, ge=0)
    length: int = Field(500, ge=1, le=100_000)
    start_price: float = Field(20_000.0, gt=0)
    drift_scale: float = Field(0.01, ge=0)
    fast_period: int = Field(8, ge=1)
    slow_period: int = Field(21, ge=1)
    signal_period: int = Field(5, ge=1)
    initial_capital: float = Field(10_000.0, gt=0)
    fee_rate: Optional[float] = Field(default=None, ge=0.0, lt=1.0)
    fee_bps: Optional[float] = Field(default=None, ge=0.0)
    periods_per_year: int = Field(252, ge=1)
    start: str = "2024-01-01"
    freq: str = "h"

    def to_config(self) -> BacktestConfig:
        data: Dict[str, Any] = self.dict(exclude={"fee_bps"})
        if self.fee_rate is None:
            data["fee_rate"] = FeeModel.from_bps(self.fee_bps).rate if self.fee_bps is not None else 0.001
        return BacktestConfig.from_mapping(data)


class TimeSeries(BaseModel):
    dates: List[str]
    values: List[float]


class Summary(BaseModel):
    final_equity: float
    total_return_pct: float
    n_trades: int
    wins: int
    win_rate: float
    avg_win: float
    avg_loss: float
    profit_factor: Optional[float] = None
    profit_factor_infinite: bool = False
    max_consecutive_losses: int = 0
    max_drawdown: float
    sharpe: float


class BacktestResponse(BaseModel):
    summary: Summary
    equity_curve: TimeSeries
    drawdown_curve: TimeSeries
    price_series: TimeSeries
    positions: TimeSeries
    equity_curve_csv: str
    config: Dict[str, Any] = Field(default_factory=dict)
    trades_count: int


class CompareRequest(BaseModel):
    original: BacktestParams
    enhanced: BacktestParams


class CompareResponse(BaseModel):
    original: BacktestResponse
    enhanced: BacktestResponse
    return_delta: float


class AIPayload(BaseModel):
    text: str


class ValidatedBacktest(BaseModel):
    summary: Summary
    equity_curve: TimeSeries


class CreateSessionRequest(BaseModel):
    balances: Dict[str, float] = Field(default_factory=lambda: {"USD": 0.0})
    fee_bps: float = Field(0.0, ge=0.0)

    @validator("balances")
    def _non_negative(cls, v: Dict[str, float]) -> Dict[str, float]:
        if any(amount < 0 for amount in v.values()):
            raise ValueError("balances must be non-negative")
        return v


class OrderRequest(BaseModel):
    asset: str
    direction: Literal["LONG", "SHORT"] = "LONG"
    amount_usd: float = Field(..., gt=0)
    price: float = Field(..., gt=0)


class ClosePositionRequest(BaseModel):
    price: float = Field(..., gt=0)


class TransferRequest(BaseModel):
    amount: float
    currency: str = "USD"


def _summary_model(summary: BacktestSummary) -> Summary:
    return Summary(**serialise_summary(summary, json_safe=True))


def _response_from_run(run: BacktestRun) -> BacktestResponse:
    return BacktestResponse(
        summary=_summary_model(run.summary),
        equity_curve=TimeSeries(**serialise_series(run.equity)),
        drawdown_curve=TimeSeries(**serialise_series(run.drawdown)),
        price_series=TimeSeries(**serialise_series(run.prices)),
        positions=TimeSeries(**serialise_series(run.positions)),
        equity_curve_csv=equity_curve_to_csv(run.equity),
        config=run.config.to_dict(),
        trades_count=run.summary.n_trades,
    )


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, DivisionByZero):
        return HTTPException(status_code=422, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def _session(session_id: str) -> TradingSession:
    try:
        return app.state.sessions.get(session_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}") from exc


@app.get("/healthz")
def healthz() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/run_backtest", response_model=BacktestResponse)
def run_backtest_endpoint(payload: BacktestParams) -> BacktestResponse:
    try:
        run = run_backtest(payload.to_config())
    except (InvalidParameter, DivisionByZero) as exc:
        raise _http_error(exc) from exc
    return _response_from_run(run)


@app.post("/compare_backtests", response_model=CompareResponse)
def compare_backtests(payload: CompareRequest) -> CompareResponse:
    try:
        original, enhanced = run_backtests([payload.original.to_config(), payload.enhanced.to_config()])
    except (InvalidParameter, DivisionByZero) as exc:
        raise _http_error(exc) from exc
    return CompareResponse(
        original=_response_from_run(original),
        enhanced=_response_from_run(enhanced),
        return_delta=enhanced.summary.total_return_pct - original.summary.total_return_pct,
    )


@app.post("/ai/backtest_result", response_model=ValidatedBacktest)
def validate_ai_backtest(payload: AIPayload) -> ValidatedBacktest:
    try:
        summary, equity = parse_backtest_result(payload.text)
    except SchemaMismatch as exc:
        logger.warning("Rejected AI backtest payload", extra={"reason": str(exc)})
        raise _http_error(exc) from exc
    return ValidatedBacktest(summary=_summary_model(summary), equity_curve=TimeSeries(**serialise_series(equity)))


@app.post("/sessions")
def create_session(payload: CreateSessionRequest) -> Dict[str, Any]:
    session = app.state.sessions.create(payload.balances, FeeModel.from_bps(payload.fee_bps))
    return session.snapshot()


@app.get("/sessions/{session_id}")
def get_session(session_id: str) -> Dict[str, Any]:
    return _session(session_id).snapshot()


@app.post("/sessions/{session_id}/transfers")
def transfer_funds(session_id: str, payload: TransferRequest) -> Dict[str, Any]:
    session = _session(session_id)
    try:
        session.transfer_funds(payload.amount, payload.currency)
    except InvalidParameter as exc:
        raise _http_error(exc) from exc
    return session.snapshot()


@app.post("/sessions/{session_id}/orders")
def place_order(session_id: str, payload: OrderRequest) -> Dict[str, Any]:
    session = _session(session_id)
    try:
        session.open_position(payload.asset, payload.direction, payload.amount_usd, payload.price)
    except InvalidParameter as exc:
        raise _http_error(exc) from exc
    return session.snapshot()


@app.post("/sessions/{session_id}/positions/{position_id}/close")
def close_position(session_id: str, position_id: str, payload: ClosePositionRequest) -> Dict[str, Any]:
    session = _session(session_id)
    try:
        session.close_position(position_id, payload.price)
    except InvalidParameter as exc:
        raise _http_error(exc) from exc
    return session.snapshot()
