"""Shared HTTP plumbing for candle source clients.

Each concrete source supplies `_request_page` (one upstream call, envelope
checks, raw klines out). This base handles the HTTP client, the single retry on
transient network errors, pagination and range clipping.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from functools import partial
from typing import Any, Awaitable, Callable, Mapping

import httpx

from core.market_data.adapters import KlineAdapter, get_adapter
from core.market_data.base import COMMON_TIMEFRAMES, TimeframeSpec
from core.market_data.errors import SourceUnavailable, classify_status
from core.market_data.symbols import is_symbol_supported, map_symbol
from core.market_data.types import ProviderId
from core.types import Candle

logger = logging.getLogger(__name__)

# (start_ms, end_ms_inclusive) -> raw klines
PageRequest = Callable[[int, int], Awaitable[list[Any]]]

USER_AGENT = "chart-data-aggregator/1.0"


class HttpCandleSource(ABC):
    """Base class for the Pacifica, Binance and Bybit source clients."""

    provider_id: ProviderId
    # Maximum klines per upstream response; None when the provider does not cap.
    page_limit: int | None = None
    timeframes: dict[str, TimeframeSpec] = COMMON_TIMEFRAMES

    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float = 10.0,
        max_pages: int = 20,
        page_delay_seconds: float = 0.05,
        headers: Mapping[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if max_pages <= 0:
            raise ValueError("max_pages must be > 0")
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.max_pages = max_pages
        self.page_delay_seconds = page_delay_seconds
        self.adapter: KlineAdapter = get_adapter(self.provider_id)
        self._headers = {"Accept": "application/json", "User-Agent": USER_AGENT, **(headers or {})}
        self._client = client
        self._owns_client = client is None

    @property
    def name(self) -> str:
        return self.provider_id.value

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=self._headers,
                timeout=httpx.Timeout(self.timeout_seconds),
            )
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if this source created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def get_timeframe_spec(self, interval: str) -> TimeframeSpec:
        spec = self.timeframes.get(str(interval))
        if spec is None:
            raise ValueError(f"Unsupported interval for {self.name}: {interval}")
        return spec

    def supports_symbol(self, symbol: str) -> bool:
        return is_symbol_supported(symbol, self.provider_id)

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    async def fetch_candles(
        self,
        symbol: str,
        interval: str,
        start_ms: int,
        end_ms: int,
    ) -> list[Candle]:
        """Fetch candles with open time in ``[start_ms, end_ms)``, ascending.

        Raises:
            SourceUnavailable: network, timeout, HTTP or envelope failure
            MalformedUpstreamData: a kline could not be parsed
        """
        spec = self.get_timeframe_spec(interval)
        if not self.supports_symbol(symbol):
            logger.warning("Symbol %s not supported by %s", symbol, self.name)
            return []
        if start_ms >= end_ms:
            return []

        provider_symbol = map_symbol(symbol, self.provider_id)
        started = time.monotonic()
        request_page = partial(self._request_page, provider_symbol, spec)
        collected = await self._collect(request_page, spec, start_ms, end_ms)
        candles = _clip(collected, start_ms, end_ms)

        logger.info(
            "Fetched %d candles from %s for %s %s [%d, %d) in %.0fms",
            len(candles),
            self.name,
            symbol,
            interval,
            start_ms,
            end_ms,
            (time.monotonic() - started) * 1000,
        )
        return candles

    # ------------------------------------------------------------------
    # Provider hooks
    # ------------------------------------------------------------------

    @abstractmethod
    async def _request_page(
        self,
        provider_symbol: str,
        spec: TimeframeSpec,
        start_ms: int,
        end_ms: int,
    ) -> list[Any]:
        """Fetch one page of raw klines for the inclusive range ``[start_ms, end_ms]``."""

    async def _collect(
        self,
        request_page: PageRequest,
        spec: TimeframeSpec,
        start_ms: int,
        end_ms: int,
    ) -> list[Candle]:
        """Forward pagination: next start = last open time + one bar."""
        candles: list[Candle] = []
        cursor = start_ms
        pages = 0

        while cursor < end_ms and pages < self.max_pages:
            if pages:
                await asyncio.sleep(self.page_delay_seconds)
            raw_page = await request_page(cursor, end_ms - 1)
            pages += 1
            logger.debug("%s page %d from %d: %d klines", self.name, pages, cursor, len(raw_page))
            if not raw_page:
                break

            page = self.adapter.adapt_many(raw_page)
            candles.extend(page)

            next_cursor = page[-1].t + spec.step_ms
            if next_cursor <= cursor:
                break
            cursor = next_cursor
            if self.page_limit is not None and len(raw_page) < self.page_limit:
                break
        else:
            if cursor < end_ms:
                logger.warning(
                    "%s stopped after %d pages at %d (requested end %d)",
                    self.name,
                    pages,
                    cursor,
                    end_ms,
                )

        return candles

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    async def _get_json(self, path: str, params: Mapping[str, Any]) -> Any:
        """GET a JSON document, retrying once on a transient network error."""
        client = await self._get_client()
        url = f"{self.base_url}{path}"
        attempts = 2

        for attempt in range(1, attempts + 1):
            try:
                resp = await client.get(url, params=dict(params), headers=self._headers)
                break
            except httpx.NetworkError as exc:
                if attempt < attempts:
                    logger.warning("%s network error on GET %s, retrying once: %s", self.name, path, exc)
                    continue
                raise SourceUnavailable(self.provider_id, f"GET {path} network error: {exc}") from exc
            except httpx.TimeoutException as exc:
                raise SourceUnavailable(self.provider_id, f"GET {path} timed out: {exc}") from exc
            except httpx.HTTPError as exc:
                raise SourceUnavailable(self.provider_id, f"GET {path} failed: {exc}") from exc

        if resp.status_code >= 400:
            raise classify_status(
                self.provider_id,
                resp.status_code,
                f"GET {path} returned HTTP {resp.status_code}: {resp.text[:200]}",
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise SourceUnavailable(self.provider_id, f"GET {path} returned invalid JSON: {exc}") from exc

    def _unexpected(self, what: str, value: Any) -> SourceUnavailable:
        return SourceUnavailable(
            self.provider_id,
            f"unexpected {what}: {type(value).__name__}",
            is_transient=False,
        )

    def _api_error(self, message: Any) -> SourceUnavailable:
        return SourceUnavailable(self.provider_id, f"API error: {message or 'unknown'}", is_transient=False)


def _clip(candles: list[Candle], start_ms: int, end_ms: int) -> list[Candle]:
    """Keep candles inside ``[start_ms, end_ms)``, one per open time, ascending."""
    by_time: dict[int, Candle] = {}
    for candle in candles:
        if start_ms <= candle.t < end_ms:
            by_time.setdefault(candle.t, candle)
    return [by_time[t] for t in sorted(by_time)]
