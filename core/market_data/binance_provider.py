from __future__ import annotations

from typing import Any

import httpx

from core.market_data.base import TimeframeSpec
from core.market_data.http_source import HttpCandleSource
from core.market_data.types import ProviderId


class BinanceSource(HttpCandleSource):
    """Binance USD-M futures kline source. History from September 2019.

    Response format: [
        [open_time, open, high, low, close, volume, close_time, quote_volume, trades, ...]
    ]
    """

    provider_id = ProviderId.BINANCE
    page_limit = 1500

    def __init__(
        self,
        *,
        base_url: str = "https://fapi.binance.com",
        timeout_seconds: float = 10.0,
        max_pages: int = 20,
        page_delay_seconds: float = 0.05,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(
            base_url=base_url,
            timeout_seconds=timeout_seconds,
            max_pages=max_pages,
            page_delay_seconds=page_delay_seconds,
            client=client,
        )

    async def _request_page(
        self,
        provider_symbol: str,
        spec: TimeframeSpec,
        start_ms: int,
        end_ms: int,
    ) -> list[Any]:
        data = await self._get_json(
            "/fapi/v1/klines",
            {
                "symbol": provider_symbol,
                "interval": spec.api,
                "startTime": str(start_ms),
                "endTime": str(end_ms),
                "limit": str(self.page_limit),
            },
        )
        if not isinstance(data, list):
            raise self._unexpected("response type", data)
        return data
