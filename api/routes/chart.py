"""Chart data API endpoints.

- GET /chart/candles - Aggregated OHLCV candles (Pacifica + Binance/Bybit)
- GET /chart/info - Provider coverage and supported intervals
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from core.market_data import ChartDataAggregator
from core.market_data.symbols import KNOWN_SYMBOLS
from core.types import INTERVALS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chart", tags=["chart"])


class CandleOut(BaseModel):
    t: int
    o: float
    h: float
    l: float  # noqa: E741
    c: float
    v: float


class CandlesMeta(BaseModel):
    symbol: str
    interval: str
    startTime: int
    endTime: int
    count: int


class CandlesResponse(BaseModel):
    success: bool = True
    data: list[CandleOut]
    meta: CandlesMeta


def get_aggregator(request: Request) -> ChartDataAggregator:
    """The aggregator built at startup (see `api.main.lifespan`)."""
    return request.app.state.aggregator


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"success": False, "error": message})


def _parse_ms(value: str) -> int | None:
    try:
        return int(value.strip(), 10)
    except ValueError:
        return None


def _js_iso(ms: int) -> str:
    """ISO-8601 in the ``2019-09-01T00:00:00.000Z`` form browsers emit."""
    dt = datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


@router.get("/candles", response_model=CandlesResponse)
async def get_candles(
    symbol: Optional[str] = Query(None, description="Symbol in BASE-USD form (e.g., BTC-USD)"),
    interval: Optional[str] = Query(None, description="Candle interval (e.g., 1m, 1h, 1d)"),
    start: Optional[str] = Query(None, description="Start timestamp in milliseconds"),
    end: Optional[str] = Query(None, description="End timestamp in milliseconds"),
    aggregator: ChartDataAggregator = Depends(get_aggregator),
):
    """Fetch OHLCV candles, aggregated across providers.

    The range is half-open: candles with ``start <= t < end``.
    """
    if not symbol or not symbol.strip():
        return _bad_request("symbol is required")
    if not interval:
        return _bad_request("interval is required")
    if not start:
        return _bad_request("start timestamp is required")
    if not end:
        return _bad_request("end timestamp is required")

    start_ms = _parse_ms(start)
    end_ms = _parse_ms(end)
    if start_ms is None or end_ms is None:
        return _bad_request("start and end must be valid timestamps")
    if start_ms >= end_ms:
        return _bad_request("start must be before end")
    if interval not in INTERVALS:
        return _bad_request(f"Invalid interval. Valid values: {', '.join(INTERVALS)}")

    symbol = symbol.strip()
    logger.debug("Chart candles request: %s %s [%d, %d)", symbol, interval, start_ms, end_ms)
    candles = await aggregator.get_candles(symbol, interval, start_ms, end_ms)

    return CandlesResponse(
        data=[CandleOut(**candle.to_dict()) for candle in candles],
        meta=CandlesMeta(
            symbol=symbol,
            interval=interval,
            startTime=start_ms,
            endTime=end_ms,
            count=len(candles),
        ),
    )


@router.get("/info")
async def get_info(aggregator: ChartDataAggregator = Depends(get_aggregator)) -> dict[str, Any]:
    """Information about available historical data."""
    sources = {
        window.provider_id.value: {
            "name": window.name or window.provider_id.value,
            "startDate": _js_iso(window.earliest_available_ms)[:10],
            "tier": window.reliability.name.lower(),
            "description": window.description,
        }
        for window in aggregator.windows
    }
    earliest = aggregator.get_earliest_available_date()

    return {
        "success": True,
        "data": {
            "sources": sources,
            "intervals": list(INTERVALS),
            "symbols": list(KNOWN_SYMBOLS),
            "earliestAvailableDate": _js_iso(int(earliest.timestamp() * 1000)),
        },
    }
