from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Literal

Interval = Literal["1m", "3m", "5m", "15m", "30m", "1h", "2h", "4h", "8h", "12h", "1d"]

INTERVALS: tuple[str, ...] = ("1m", "3m", "5m", "15m", "30m", "1h", "2h", "4h", "8h", "12h", "1d")


@dataclass(frozen=True)
class Candle:
    """One OHLCV bar.

    `t` is the inclusive open time in epoch milliseconds.
    """

    t: int
    o: Decimal
    h: Decimal
    l: Decimal  # noqa: E741
    c: Decimal
    v: Decimal

    def to_dict(self) -> dict[str, int | float]:
        return {
            "t": int(self.t),
            "o": float(self.o),
            "h": float(self.h),
            "l": float(self.l),
            "c": float(self.c),
            "v": float(self.v),
        }


@dataclass(frozen=True)
class CandleGap:
    """Missing bars between two consecutive candles of a merged sequence."""

    after_t: int
    before_t: int
    missing_bars: int
    at_seam: bool = False
