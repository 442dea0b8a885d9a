"""Run configuration for the synthetic MACD backtest."""

from __future__ import annotations

import numbers
import os
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Mapping, Optional

from .errors import InvalidParameter

DEBUG_ENV_VAR = "BACKTEST_DEBUG_TRADES"


def debug_logging_enabled() -> bool:
    value = os.getenv(DEBUG_ENV_VAR, "")
    return value.lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class BacktestConfig:
    """Parameters for one simulator run.

    Defaults reproduce the dashboard's default script: 500 hourly bars from a
    20 000 start price seeded with 42, an 8/21/5 MACD, 10 000 of capital and
    a 0.1% fee per position change.
    """

    seed: int = 42
    length: int = 500
    start_price: float = 20_000.0
    drift_scale: float = 0.01
    fast_period: int = 8
    slow_period: int = 21
    signal_period: int = 5
    initial_capital: float = 10_000.0
    fee_rate: float = 0.001
    periods_per_year: int = 252
    start: str = "2024-01-01"
    freq: str = "h"

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, Any]] = None) -> "BacktestConfig":
        if mapping is None:
            return cls()
        if isinstance(mapping, cls):
            return mapping
        data: Dict[str, Any] = {}
        for field in fields(cls):
            if field.name in mapping and mapping[field.name] is not None:
                data[field.name] = mapping[field.name]
        return cls(**data)

    def validate(self) -> "BacktestConfig":
        if isinstance(self.seed, bool) or not isinstance(self.seed, numbers.Integral) or self.seed < 0:
            raise InvalidParameter(f"seed must be a non-negative integer, got {self.seed!r}")
        if int(self.length) <= 0:
            raise InvalidParameter(f"length must be positive, got {self.length}")
        if not float(self.start_price) > 0:
            raise InvalidParameter(f"start_price must be positive, got {self.start_price}")
        if float(self.drift_scale) < 0:
            raise InvalidParameter(f"drift_scale must be non-negative, got {self.drift_scale}")
        for name in ("fast_period", "slow_period", "signal_period", "periods_per_year"):
            value = getattr(self, name)
            if isinstance(value, bool) or int(value) != value or int(value) <= 0:
                raise InvalidParameter(f"{name} must be a positive integer, got {value!r}")
        if not float(self.initial_capital) > 0:
            raise InvalidParameter(f"initial_capital must be positive, got {self.initial_capital}")
        if not 0.0 <= float(self.fee_rate) < 1.0:
            raise InvalidParameter(f"fee_rate must be in [0, 1), got {self.fee_rate}")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
