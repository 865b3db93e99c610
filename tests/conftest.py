"""Shared test fixtures for pytest.

Provides candle builders, an in-memory candle source and the provider
boundary timestamps used across the aggregation tests.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Iterable, Optional

import pytest

from core.market_data.types import ProviderId
from core.types import Candle

HOUR_MS = 3_600_000


def utc_ms(*args: int) -> int:
    return int(datetime(*args, tzinfo=timezone.utc).timestamp() * 1000)


# Provider coverage boundaries of the default table
PACIFICA_START = utc_ms(2025, 6, 1)
BYBIT_START = utc_ms(2020, 1, 1)
BINANCE_START = utc_ms(2019, 9, 1)


def make_candle(t: int, price: str = "100", volume: str = "1") -> Candle:
    p = Decimal(price)
    return Candle(t=t, o=p, h=p + 1, l=p - 1, c=p, v=Decimal(volume))


def hourly(start_ms: int, count: int, price: str = "100") -> list[Candle]:
    return [make_candle(start_ms + i * HOUR_MS, price) for i in range(count)]


class FakeSource:
    """In-memory `CandleSource`.

    Serves `candles` clipped to the requested range (unless ``clip=False``),
    raises `error` when set, and sleeps `delay` seconds first. Every call is
    recorded in `calls`.
    """

    def __init__(
        self,
        provider_id: ProviderId,
        candles: Iterable[Candle] = (),
        *,
        error: Optional[Exception] = None,
        delay: float = 0.0,
        clip: bool = True,
    ) -> None:
        self.provider_id = provider_id
        self.candles = list(candles)
        self.error = error
        self.delay = delay
        self.clip = clip
        self.calls: list[tuple[str, str, int, int]] = []
        self.cancelled = False
        self.closed = False

    async def fetch_candles(self, symbol: str, interval: str, start_ms: int, end_ms: int) -> list[Candle]:
        self.calls.append((symbol, interval, start_ms, end_ms))
        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if self.error is not None:
            raise self.error
        if not self.clip:
            return list(self.candles)
        return [c for c in self.candles if start_ms <= c.t < end_ms]

    def supports_symbol(self, symbol: str) -> bool:
        return True

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_source() -> Callable[..., FakeSource]:
    """Factory for `FakeSource` instances."""

    def _make(provider_id: ProviderId, candles: Iterable[Candle] = (), **kwargs: Any) -> FakeSource:
        return FakeSource(provider_id, candles, **kwargs)

    return _make


@pytest.fixture
def fixed_now() -> Callable[[], int]:
    """Clock pinned one month after Pacifica coverage starts."""
    now = PACIFICA_START + 30 * 24 * HOUR_MS
    return lambda: now
