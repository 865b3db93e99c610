"""Kline adapters: provider wire records -> `Candle`.

Adapters are pure. They never touch the network and never swallow a parse
failure; a bad record raises `MalformedUpstreamData` naming the provider.

Wire formats:
    Pacifica: {"t": 1748736000000, "T": ..., "s": "BTC", "i": "1h",
               "o": "104000.5", "c": "...", "h": "...", "l": "...", "v": "...", "n": 812}
    Binance:  [openTime, "open", "high", "low", "close", "volume", closeTime, ...]
    Bybit:    ["startTime", "open", "high", "low", "close", "volume", "turnover"]
              (newest first)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Sequence

from core.market_data.errors import MalformedUpstreamData
from core.market_data.types import ProviderId
from core.types import Candle


class KlineAdapter(ABC):
    """Converts one provider's raw klines into candles."""

    provider_id: ProviderId

    @abstractmethod
    def adapt(self, raw: Any) -> Candle:
        """Convert a single raw kline."""

    def adapt_many(self, raws: Sequence[Any]) -> list[Candle]:
        """Convert a batch, returned in ascending open-time order."""
        return [self.adapt(raw) for raw in raws]

    # ------------------------------------------------------------------
    # Parsing helpers
    # ------------------------------------------------------------------

    def _malformed(self, raw: Any, reason: str) -> MalformedUpstreamData:
        return MalformedUpstreamData(self.provider_id, raw, reason)

    def _time(self, raw: Any, value: Any, field: str) -> int:
        if isinstance(value, bool):
            raise self._malformed(raw, f"{field} is not a timestamp")
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            try:
                return int(value.strip(), 10)
            except ValueError:
                raise self._malformed(raw, f"{field}={value!r} is not an integer") from None
        raise self._malformed(raw, f"{field} has unexpected type {type(value).__name__}")

    def _decimal(self, raw: Any, value: Any, field: str) -> Decimal:
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            raise self._malformed(raw, f"{field} has unexpected type {type(value).__name__}")
        try:
            parsed = Decimal(str(value).strip())
        except InvalidOperation:
            raise self._malformed(raw, f"{field}={value!r} is not numeric") from None
        if not parsed.is_finite():
            raise self._malformed(raw, f"{field}={value!r} is not finite")
        return parsed

    def _candle(self, raw: Any, t: Any, o: Any, h: Any, l: Any, c: Any, v: Any) -> Candle:  # noqa: E741
        volume = self._decimal(raw, v, "volume")
        if volume < 0:
            raise self._malformed(raw, f"volume={v!r} is negative")
        return Candle(
            t=self._time(raw, t, "open_time"),
            o=self._decimal(raw, o, "open"),
            h=self._decimal(raw, h, "high"),
            l=self._decimal(raw, l, "low"),
            c=self._decimal(raw, c, "close"),
            v=volume,
        )

    def _row(self, raw: Any, width: int) -> Sequence[Any]:
        if not isinstance(raw, (list, tuple)):
            raise self._malformed(raw, f"expected array, got {type(raw).__name__}")
        if len(raw) < width:
            raise self._malformed(raw, f"expected at least {width} fields, got {len(raw)}")
        return raw


class PacificaAdapter(KlineAdapter):
    """Object-shaped klines, already ascending, open time in ms."""

    provider_id = ProviderId.PACIFICA

    def adapt(self, raw: Any) -> Candle:
        if not isinstance(raw, Mapping):
            raise self._malformed(raw, f"expected object, got {type(raw).__name__}")
        missing = [key for key in ("t", "o", "h", "l", "c", "v") if key not in raw]
        if missing:
            raise self._malformed(raw, f"missing fields {missing}")
        return self._candle(raw, raw["t"], raw["o"], raw["h"], raw["l"], raw["c"], raw["v"])


class BinanceAdapter(KlineAdapter):
    """Array-shaped klines, already ascending, prices as decimal strings."""

    provider_id = ProviderId.BINANCE

    def adapt(self, raw: Any) -> Candle:
        row = self._row(raw, 6)
        return self._candle(raw, row[0], row[1], row[2], row[3], row[4], row[5])


class BybitAdapter(KlineAdapter):
    """Array-shaped klines with string open time, delivered newest-first."""

    provider_id = ProviderId.BYBIT

    def adapt(self, raw: Any) -> Candle:
        row = self._row(raw, 6)
        return self._candle(raw, row[0], row[1], row[2], row[3], row[4], row[5])

    def adapt_many(self, raws: Sequence[Any]) -> list[Candle]:
        # Upstream order is descending; callers rely on ascending output.
        candles = [self.adapt(raw) for raw in raws]
        candles.reverse()
        return candles


_ADAPTERS: dict[ProviderId, KlineAdapter] = {
    ProviderId.PACIFICA: PacificaAdapter(),
    ProviderId.BINANCE: BinanceAdapter(),
    ProviderId.BYBIT: BybitAdapter(),
}


def get_adapter(provider_id: ProviderId | str) -> KlineAdapter:
    """Look up the adapter for a provider."""
    try:
        return _ADAPTERS[ProviderId(provider_id)]
    except ValueError:
        raise ValueError(
            f"Unsupported provider: {provider_id}. Supported: {', '.join(p.value for p in _ADAPTERS)}"
        ) from None
