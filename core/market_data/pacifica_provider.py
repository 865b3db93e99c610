from __future__ import annotations

from typing import Any

import httpx

from core.market_data.base import TimeframeSpec
from core.market_data.http_source import HttpCandleSource
from core.market_data.types import ProviderId


class PacificaSource(HttpCandleSource):
    """Pacifica kline source. Primary provider for recent data (June 2025+).

    Response envelope: {"success": true, "data": [{"t", "T", "s", "i", "o", "c", "h", "l", "v", "n"}, ...],
    "error": null}
    """

    provider_id = ProviderId.PACIFICA

    def __init__(
        self,
        *,
        base_url: str = "https://api.pacifica.fi",
        api_key: str | None = None,
        timeout_seconds: float = 10.0,
        max_pages: int = 20,
        page_delay_seconds: float = 0.05,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        headers = {"PF-API-KEY": api_key} if api_key else None
        super().__init__(
            base_url=base_url,
            timeout_seconds=timeout_seconds,
            max_pages=max_pages,
            page_delay_seconds=page_delay_seconds,
            headers=headers,
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
            "/api/v1/kline",
            {
                "symbol": provider_symbol,
                "interval": spec.api,
                "start_time": str(start_ms),
                "end_time": str(end_ms),
            },
        )
        if not isinstance(payload, dict):
            raise self._unexpected("response type", payload)
        if not payload.get("success", False):
            raise self._api_error(payload.get("error"))

        data = payload.get("data")
        if data is None:
            return []
        if not isinstance(data, list):
            raise self._unexpected("data type", data)
        return data

