"""Interval vocabulary and the source client protocol.

Every upstream speaks its own interval dialect. The canonical vocabulary is
`core.types.INTERVALS`; each source translates through a `TimeframeSpec` table.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol

from core.market_data.types import ProviderId
from core.types import Candle


@dataclass(frozen=True)
class TimeframeSpec:
    """Specification for a timeframe including API representation and duration."""

    api: str  # Exchange-specific API identifier (e.g., "1h", "60", "D")
    delta: timedelta  # Duration of one candle
    step_ms: int  # Duration in milliseconds


def make_timeframe_spec(api: str, minutes: int) -> TimeframeSpec:
    return TimeframeSpec(api=api, delta=timedelta(minutes=minutes), step_ms=minutes * 60_000)


# Canonical timeframes; Pacifica and Binance use these identifiers as-is.
COMMON_TIMEFRAMES: dict[str, TimeframeSpec] = {
    "1m": make_timeframe_spec("1m", 1),
    "3m": make_timeframe_spec("3m", 3),
    "5m": make_timeframe_spec("5m", 5),
    "15m": make_timeframe_spec("15m", 15),
    "30m": make_timeframe_spec("30m", 30),
    "1h": make_timeframe_spec("1h", 60),
    "2h": make_timeframe_spec("2h", 120),
    "4h": make_timeframe_spec("4h", 240),
    "8h": make_timeframe_spec("8h", 480),
    "12h": make_timeframe_spec("12h", 720),
    "1d": make_timeframe_spec("1d", 1440),
}


def interval_ms(interval: str) -> int:
    """Duration of one bar of the canonical interval, in milliseconds."""
    spec = COMMON_TIMEFRAMES.get(str(interval))
    if spec is None:
        raise ValueError(
            f"Unsupported interval: {interval}. Supported: {', '.join(COMMON_TIMEFRAMES)}"
        )
    return spec.step_ms


class CandleSource(Protocol):
    """Fetches normalized candles from one upstream provider."""

    provider_id: ProviderId

    async def fetch_candles(
        self,
        symbol: str,
        interval: str,
        start_ms: int,
        end_ms: int,
    ) -> list[Candle]:
        """Return candles with open time in ``[start_ms, end_ms)``, ascending.

        Raises:
            SourceUnavailable: network, timeout, HTTP or envelope failure
            MalformedUpstreamData: a record could not be parsed
        """
        raise NotImplementedError

    def supports_symbol(self, symbol: str) -> bool:
        raise NotImplementedError

    async def aclose(self) -> None:
        raise NotImplementedError
