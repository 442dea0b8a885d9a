import json

import pytest
from fastapi.testclient import TestClient

from tradebot.api_server import app
from tradebot.reports.serializer import serialise_summary
from tradebot.engine import run_backtest


@pytest.fixture()
def client() -> TestClient:
    return TestClient(app)


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}


def test_run_backtest_defaults(client):
    response = client.post("/run_backtest", json={})
    assert response.status_code == 200
    body = response.json()

    assert len(body["equity_curve"]["values"]) == 500
    assert body["equity_curve"]["values"][0] == 10_000.0
    assert len(body["price_series"]["dates"]) == 500
    assert body["config"]["fee_rate"] == 0.001
    assert body["trades_count"] == body["summary"]["n_trades"]
    assert body["equity_curve_csv"].startswith("index,equity\n")
    assert body["summary"]["max_consecutive_losses"] == 0


def test_fee_bps_is_converted(client):
    body = client.post("/run_backtest", json={"length": 50, "fee_bps": 25}).json()
    assert body["config"]["fee_rate"] == pytest.approx(0.0025)


def test_invalid_parameters(client):
    assert client.post("/run_backtest", json={"fast_period": 0}).status_code == 422
    assert client.post("/run_backtest", json={"seed": -1, "length": 10}).status_code == 422
    response = client.post("/run_backtest", json={"length": 10, "freq": "bogus"})
    assert response.status_code == 400


def test_compare_backtests(client):
    payload = {"original": {"length": 120}, "enhanced": {"length": 120, "fast_period": 12, "slow_period": 26}}
    response = client.post("/compare_backtests", json=payload)
    assert response.status_code == 200
    body = response.json()

    expected = run_backtest({"length": 120, "fast_period": 12, "slow_period": 26}).summary
    assert body["enhanced"]["summary"]["n_trades"] == expected.n_trades
    assert body["return_delta"] == pytest.approx(
        body["enhanced"]["summary"]["total_return_pct"] - body["original"]["summary"]["total_return_pct"]
    )


def test_ai_backtest_validation(client):
    run = run_backtest({"length": 3})
    text = json.dumps(
        {
            "summary": serialise_summary(run.summary, json_safe=True),
            "equity_curve_csv": "index,equity\n2024-01-01T00:00:00,10000\n2024-01-01T01:00:00,10010\n",
        }
    )
    response = client.post("/ai/backtest_result", json={"text": text})
    assert response.status_code == 200
    assert response.json()["equity_curve"]["values"] == [10_000.0, 10_010.0]

    rejected = client.post("/ai/backtest_result", json={"text": json.dumps({"error": "boom"})})
    assert rejected.status_code == 400
    assert "boom" in rejected.json()["detail"]

    broken = {**serialise_summary(run.summary, json_safe=True), "profit_factor": float("nan")}
    nan_profit_factor = json.dumps({"summary": broken, "equity_curve_csv": "index,equity\n2024-01-01T00:00:00,10000\n"})
    assert client.post("/ai/backtest_result", json={"text": nan_profit_factor}).status_code == 400


def test_session_lifecycle(client):
    created = client.post("/sessions", json={"balances": {"USD": 1_000.0}, "fee_bps": 0}).json()
    session_id = created["session_id"]

    after_order = client.post(
        f"/sessions/{session_id}/orders",
        json={"asset": "BTC/USD", "direction": "LONG", "amount_usd": 500.0, "price": 100.0},
    ).json()
    position_id = after_order["positions"][0]["id"]
    assert after_order["balances"]["USD"] == pytest.approx(500.0)

    closed = client.post(f"/sessions/{session_id}/positions/{position_id}/close", json={"price": 120.0}).json()
    assert closed["positions"] == []
    assert closed["closed_trades"][0]["pnl"] == pytest.approx(100.0)
    assert client.get(f"/sessions/{session_id}").json()["balances"]["USD"] == pytest.approx(1_100.0)

    too_big = client.post(
        f"/sessions/{session_id}/orders",
        json={"asset": "BTC/USD", "amount_usd": 5_000.0, "price": 100.0},
    )
    assert too_big.status_code == 400
    deposit = client.post(f"/sessions/{session_id}/transfers", json={"amount": 50.0})
    assert deposit.json()["balances"]["USD"] == pytest.approx(1_150.0)


def test_unknown_session_is_404(client):
    assert client.get("/sessions/does-not-exist").status_code == 404
