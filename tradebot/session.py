"""Paper-trading sessions.

Each connected dashboard session owns one :class:`TradingSession`; balances,
open positions and the ledger live on that object and are never shared
between sessions.  :class:`SessionRegistry` hands out sessions by id.
"""

from __future__ import annotations

import itertools
import logging
import threading
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Literal, Mapping, Optional

import pandas as pd

from tradebot.engine.errors import InvalidParameter
from tradebot.engine.fees import FeeModel

logger = logging.getLogger(__name__)

Direction = Literal["LONG", "SHORT"]
QUOTE_CURRENCY = "USD"


def _now() -> pd.Timestamp:
    return pd.Timestamp.now(tz="UTC")


@dataclass
class OpenPosition:
    id: str
    asset: str
    direction: Direction
    entry_price: float
    size: float
    notional: float
    entry_fee: float
    open_timestamp: pd.Timestamp
    mark_price: float

    @property
    def _sign(self) -> float:
        return 1.0 if self.direction == "LONG" else -1.0

    def pnl(self, price: Optional[float] = None) -> float:
        price = self.mark_price if price is None else float(price)
        return (price - self.entry_price) * self.size * self._sign

    def pnl_percent(self, price: Optional[float] = None) -> float:
        if self.notional <= 0:
            return 0.0
        return self.pnl(price) / self.notional * 100.0


@dataclass
class ClosedTrade:
    id: str
    asset: str
    direction: Direction
    entry_price: float
    exit_price: float
    size: float
    gross_pnl: float
    fees: float
    pnl: float
    open_timestamp: pd.Timestamp
    close_timestamp: pd.Timestamp


@dataclass
class TradingSession:
    session_id: str
    balances: Dict[str, float] = field(default_factory=lambda: {QUOTE_CURRENCY: 0.0})
    fee_model: FeeModel = field(default_factory=FeeModel)
    positions: Dict[str, OpenPosition] = field(default_factory=dict)
    closed_trades: List[ClosedTrade] = field(default_factory=list)
    ledger: List[Dict[str, Any]] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.balances = {str(k).upper(): float(v) for k, v in self.balances.items()}
        self.balances.setdefault(QUOTE_CURRENCY, 0.0)
        self._ids = itertools.count(1)
        self._lock = threading.RLock()

    @property
    def cash(self) -> float:
        return self.balances[QUOTE_CURRENCY]

    def _record(self, event: str, **details: Any) -> None:
        entry = {"ts": details.pop("ts", _now()), "event": event, **details, "cash": self.cash}
        self.ledger.append(entry)
        logger.debug("SESSION %s", event.upper(), extra={"session_id": self.session_id, **details})

    def transfer_funds(self, amount: float, currency: str = QUOTE_CURRENCY) -> float:
        """Deposit (positive) or withdraw (negative) funds; returns the new balance."""

        with self._lock:
            amount = float(amount)
            if amount == 0 or amount != amount:
                raise InvalidParameter("transfer amount must be a non-zero number")
            currency = currency.upper()
            balance = self.balances.get(currency, 0.0)
            if balance + amount < 0:
                raise InvalidParameter(f"insufficient {currency} balance for withdrawal of {-amount}")
            self.balances[currency] = balance + amount
            self._record("deposit" if amount > 0 else "withdrawal", currency=currency, amount=amount)
            return self.balances[currency]

    def open_position(
        self,
        asset: str,
        direction: Direction,
        amount_usd: float,
        price: float,
        ts: Optional[pd.Timestamp] = None,
    ) -> OpenPosition:
        with self._lock:
            if direction not in ("LONG", "SHORT"):
                raise InvalidParameter(f"direction must be LONG or SHORT, got {direction!r}")
            amount_usd = float(amount_usd)
            price = float(price)
            if not amount_usd > 0:
                raise InvalidParameter(f"order amount must be positive, got {amount_usd}")
            if not price > 0:
                raise InvalidParameter(f"order price must be positive, got {price}")
            fee = self.fee_model.fee_for_notional(amount_usd)
            if amount_usd + fee - self.cash > 1e-9:
                raise InvalidParameter(
                    f"insufficient {QUOTE_CURRENCY} balance: need {amount_usd + fee:.2f}, have {self.cash:.2f}"
                )

            position = OpenPosition(
                id=f"{self.session_id}-{next(self._ids)}",
                asset=asset,
                direction=direction,
                entry_price=price,
                size=amount_usd / price,
                notional=amount_usd,
                entry_fee=fee,
                open_timestamp=ts or _now(),
                mark_price=price,
            )
            self.balances[QUOTE_CURRENCY] = self.cash - amount_usd - fee
            self.positions[position.id] = position
            self._record(
                "open",
                ts=position.open_timestamp,
                position_id=position.id,
                asset=asset,
                side=direction,
                price=price,
                notional=amount_usd,
                fee=fee,
            )
            return position

    def close_position(self, position_id: str, price: float, ts: Optional[pd.Timestamp] = None) -> ClosedTrade:
        with self._lock:
            position = self.positions.get(position_id)
            if position is None:
                raise InvalidParameter(f"unknown position {position_id!r}")
            price = float(price)
            if not price > 0:
                raise InvalidParameter(f"close price must be positive, got {price}")
            del self.positions[position_id]

            gross_pnl = position.pnl(price)
            exit_fee = self.fee_model.fee_for_notional(price * position.size)
            self.balances[QUOTE_CURRENCY] = self.cash + position.notional + gross_pnl - exit_fee
            trade = ClosedTrade(
                id=position.id,
                asset=position.asset,
                direction=position.direction,
                entry_price=position.entry_price,
                exit_price=price,
                size=position.size,
                gross_pnl=gross_pnl,
                fees=position.entry_fee + exit_fee,
                pnl=gross_pnl - position.entry_fee - exit_fee,
                open_timestamp=position.open_timestamp,
                close_timestamp=ts or _now(),
            )
            self.closed_trades.append(trade)
            self._record(
                "close",
                ts=trade.close_timestamp,
                position_id=position.id,
                asset=position.asset,
                side=position.direction,
                price=price,
                fee=exit_fee,
                pnl=trade.pnl,
            )
            return trade

    def mark_to_market(self, prices: Mapping[str, float]) -> Dict[str, float]:
        """Update mark prices for the given assets and return unrealised PnL by position."""

        with self._lock:
            for position in self.positions.values():
                if position.asset in prices:
                    position.mark_price = float(prices[position.asset])
            return {pid: pos.pnl() for pid, pos in self.positions.items()}

    def total_equity(self) -> float:
        return self.cash + sum(pos.notional + pos.pnl() for pos in self.positions.values())

    def clear(self) -> None:
        with self._lock:
            self.balances = {QUOTE_CURRENCY: 0.0}
            self.positions.clear()
            self.closed_trades.clear()
            self.ledger.clear()

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "session_id": self.session_id,
                "balances": dict(self.balances),
                "total_equity": self.total_equity(),
                "positions": [
                    {
                        **{k: v for k, v in asdict(pos).items() if k != "open_timestamp"},
                        "open_timestamp": pos.open_timestamp.isoformat(),
                        "pnl": pos.pnl(),
                        "pnl_percent": pos.pnl_percent(),
                    }
                    for pos in self.positions.values()
                ],
                "closed_trades": [
                    {
                        **{k: v for k, v in asdict(t).items() if k not in {"open_timestamp", "close_timestamp"}},
                        "open_timestamp": t.open_timestamp.isoformat(),
                        "close_timestamp": t.close_timestamp.isoformat(),
                    }
                    for t in self.closed_trades
                ],
            }


class SessionRegistry:
    """Holds one :class:`TradingSession` per session id."""

    def __init__(self) -> None:
        self._sessions: Dict[str, TradingSession] = {}
        self._lock = threading.Lock()

    def create(
        self,
        balances: Optional[Mapping[str, float]] = None,
        fee_model: Optional[FeeModel] = None,
    ) -> TradingSession:
        session = TradingSession(
            session_id=uuid.uuid4().hex[:12],
            balances=dict(balances) if balances else {QUOTE_CURRENCY: 0.0},
            fee_model=fee_model or FeeModel(),
        )
        with self._lock:
            self._sessions[session.session_id] = session
        logger.info("Session created", extra={"session_id": session.session_id})
        return session

    def get(self, session_id: str) -> TradingSession:
        with self._lock:
            try:
                return self._sessions[session_id]
            except KeyError:
                raise KeyError(f"unknown session {session_id!r}") from None

    def remove(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
