from concurrent.futures import ThreadPoolExecutor

import pytest

from tradebot.engine import FeeModel, InvalidParameter
from tradebot.session import SessionRegistry, TradingSession


def _session(cash: float = 1_000.0, fee_bps: float = 10.0) -> TradingSession:
    return TradingSession("test", balances={"usd": cash}, fee_model=FeeModel.from_bps(fee_bps))


def test_long_round_trip_matches_hand_calculation():
    session = _session()

    position = session.open_position("BTC/USD", "LONG", 500.0, 100.0)
    assert position.size == pytest.approx(5.0)
    assert session.cash == pytest.approx(499.5)

    trade = session.close_position(position.id, 110.0)

    assert trade.gross_pnl == pytest.approx(50.0)
    assert trade.fees == pytest.approx(0.5 + 0.55)
    assert trade.pnl == pytest.approx(48.95)
    assert session.cash == pytest.approx(1_048.95)
    assert session.positions == {}
    assert [entry["event"] for entry in session.ledger] == ["open", "close"]


def test_short_position_profits_when_price_falls():
    session = _session(fee_bps=0.0)
    position = session.open_position("ETH/USD", "SHORT", 400.0, 200.0)

    unrealised = session.mark_to_market({"ETH/USD": 180.0})

    assert unrealised[position.id] == pytest.approx(40.0)
    assert position.pnl_percent() == pytest.approx(10.0)
    assert session.total_equity() == pytest.approx(1_040.0)
    trade = session.close_position(position.id, 180.0)
    assert trade.pnl == pytest.approx(40.0)


def test_orders_are_validated():
    session = _session(cash=100.0)
    with pytest.raises(InvalidParameter):
        session.open_position("BTC/USD", "LONG", 100.0, 50.0)  # fee pushes cost above cash
    with pytest.raises(InvalidParameter):
        session.open_position("BTC/USD", "SIDEWAYS", 10.0, 50.0)
    with pytest.raises(InvalidParameter):
        session.open_position("BTC/USD", "LONG", 0.0, 50.0)
    with pytest.raises(InvalidParameter):
        session.close_position("missing", 10.0)
    assert session.cash == 100.0


def test_transfers_update_balances():
    session = _session(cash=0.0)
    assert session.transfer_funds(250.0) == 250.0
    assert session.transfer_funds(-50.0, "usd") == 200.0
    assert session.transfer_funds(1.5, "BTC") == 1.5
    with pytest.raises(InvalidParameter):
        session.transfer_funds(-500.0)
    with pytest.raises(InvalidParameter):
        session.transfer_funds(0.0)
    assert [entry["event"] for entry in session.ledger] == ["deposit", "withdrawal", "deposit"]


def test_sessions_do_not_share_state():
    registry = SessionRegistry()
    first = registry.create({"USD": 1_000.0})
    second = registry.create({"USD": 1_000.0})

    first.open_position("SOL/USD", "LONG", 300.0, 150.0)

    assert len(registry) == 2
    assert registry.get(first.session_id) is first
    assert second.cash == 1_000.0
    assert second.positions == {}
    registry.remove(second.session_id)
    with pytest.raises(KeyError):
        registry.get(second.session_id)


def test_clear_and_snapshot():
    session = _session()
    session.open_position("BTC/USD", "LONG", 100.0, 10.0)

    snapshot = session.snapshot()
    assert snapshot["session_id"] == "test"
    assert snapshot["positions"][0]["asset"] == "BTC/USD"
    assert snapshot["positions"][0]["pnl"] == 0.0
    assert isinstance(snapshot["positions"][0]["open_timestamp"], str)

    session.clear()
    assert session.balances == {"USD": 0.0}
    assert session.snapshot()["positions"] == []


def test_concurrent_orders_never_overdraw_cash():
    session = _session(cash=1_000.0, fee_bps=0.0)

    def place(_):
        try:
            session.open_position("BTC/USD", "LONG", 100.0, 50.0)
        except InvalidParameter:
            return False
        return True

    with ThreadPoolExecutor(max_workers=8) as pool:
        filled = list(pool.map(place, range(25)))

    assert sum(filled) == 10
    assert len(session.positions) == 10
    assert session.cash == pytest.approx(0.0)
    assert session.total_equity() == pytest.approx(1_000.0)
