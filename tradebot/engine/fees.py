"""Fee model helpers for the backtesting engine."""

from __future__ import annotations

from dataclasses import dataclass

from .errors import InvalidParameter


@dataclass(frozen=True)
class FeeModel:
    """A proportional fee charged once per position change.

    ``fee_rate`` is a decimal fraction of equity, so ``0.001`` takes 0.1% of
    the running equity every time the strategy flips or flattens.
    """

    fee_rate: float = 0.0

    def __post_init__(self) -> None:
        rate = float(self.fee_rate)
        if rate != rate or not 0.0 <= rate < 1.0:  # NaN guard
            raise InvalidParameter(f"fee_rate must be in [0, 1), got {self.fee_rate}")

    @classmethod
    def from_bps(cls, fee_bps: float) -> "FeeModel":
        """Build a model from basis points (``10`` bps is ``0.001``)."""

        return cls(float(fee_bps) / 10_000.0)

    @property
    def rate(self) -> float:
        return float(self.fee_rate)

    def apply(self, equity: float) -> float:
        """Return equity after paying the fee for one position change."""

        return equity * (1.0 - self.rate)

    def fee_for_notional(self, notional: float) -> float:
        """Compute the fee charged on a traded notional."""

        if notional <= 0 or notional != notional:
            return 0.0
        return notional * self.rate
