from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from core.market_data.base import TimeframeSpec, make_timeframe_spec
from core.market_data.http_source import HttpCandleSource, PageRequest
from core.market_data.types import ProviderId
from core.types import Candle

logger = logging.getLogger(__name__)


class BybitSource(HttpCandleSource):
    """Bybit v5 linear kline source. History from January 2020.

    Response format: {
        "retCode": 0,
        "retMsg": "OK",
        "result": {"list": [[start_time, open, high, low, close, volume, turnover], ...]}
    }

    The list is newest-first and holds the *latest* `limit` bars of the window,
    so pagination walks backwards from the end of the range.
    """

    provider_id = ProviderId.BYBIT
    page_limit = 1000

    timeframes: dict[str, TimeframeSpec] = {
        "1m": make_timeframe_spec("1", 1),
        "3m": make_timeframe_spec("3", 3),
        "5m": make_timeframe_spec("5", 5),
        "15m": make_timeframe_spec("15", 15),
        "30m": make_timeframe_spec("30", 30),
        "1h": make_timeframe_spec("60", 60),
        "2h": make_timeframe_spec("120", 120),
        "4h": make_timeframe_spec("240", 240),
        "8h": make_timeframe_spec("480", 480),
        "12h": make_timeframe_spec("720", 720),
        "1d": make_timeframe_spec("D", 1440),
    }

    def __init__(
        self,
        *,
        base_url: str = "https://api.bybit.com",
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
        payload = await self._get_json(
            "/v5/market/kline",
            {
                "category": "linear",
                "symbol": provider_symbol,
                "interval": spec.api,
                "start": str(start_ms),
                "end": str(end_ms),
                "limit": str(self.page_limit),
            },
        )
        if not isinstance(payload, dict):
            raise self._unexpected("response type", payload)
        if payload.get("retCode") != 0:
            raise self._api_error(payload.get("retMsg"))

        result = payload.get("result")
        if not isinstance(result, dict):
            raise self._unexpected("result type", result)
        rows = result.get("list")
        if rows is None:
            return []
        if not isinstance(rows, list):
            raise self._unexpected("list type", rows)
        return rows

    async def _collect(
        self,
        request_page: PageRequest,
        spec: TimeframeSpec,
        start_ms: int,
        end_ms: int,
    ) -> list[Candle]:
        """Backward pagination: next window end = oldest open time - 1."""
        chunks: list[list[Candle]] = []
        window_end = end_ms - 1
        pages = 0

        while window_end >= start_ms and pages < self.max_pages:
            if pages:
                await asyncio.sleep(self.page_delay_seconds)
            raw_page = await request_page(start_ms, window_end)
            pages += 1
            logger.debug("%s page %d up to %d: %d klines", self.name, pages, window_end, len(raw_page))
            if not raw_page:
                break

            page = self.adapter.adapt_many(raw_page)
            chunks.append(page)

            next_end = page[0].t - 1
            if next_end >= window_end:
                break
            window_end = next_end
            if len(raw_page) < self.page_limit:
                break
        else:
            if window_end >= start_ms:
                logger.warning(
                    "%s stopped after %d pages at %d (requested start %d)",
                    self.name,
                    pages,
                    window_end,
                    start_ms,
                )

        return [candle for chunk in reversed(chunks) for candle in chunk]
