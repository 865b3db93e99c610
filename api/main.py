"""FastAPI application for aggregated chart candles.

This module provides the HTTP surface of the candle aggregator:
- GET /chart/candles - Aggregated OHLCV candles for a symbol and range
- GET /chart/info - Provider coverage, intervals and known symbols
- GET /health - Liveness plus the configured providers

Configuration is read from the environment (see
`core.market_data.config.ChartDataConfig`). No authentication.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.routes import chart
from core.market_data import ChartDataAggregator, build_aggregator
from core.market_data.errors import AllSourcesUnavailable, InvalidRange

logger = logging.getLogger(__name__)


def create_app(aggregator: Optional[ChartDataAggregator] = None) -> FastAPI:
    """Build the API.

    Args:
        aggregator: Pre-built aggregator (tests inject a fake one). When
            omitted, one is built from the environment at startup and closed
            at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = aggregator is None
        app.state.aggregator = build_aggregator() if owned else aggregator
        logger.info(
            "Chart API started with providers: %s",
            ", ".join(w.provider_id.value for w in app.state.aggregator.windows),
        )
        try:
            yield
        finally:
            if owned:
                await app.state.aggregator.aclose()

    app = FastAPI(
        title="Chart Data API",
        description="Aggregated OHLCV candles from Pacifica, Binance and Bybit",
        version="1.0.0",
        lifespan=lifespan,
    )
    if aggregator is not None:
        # Usable without entering the lifespan (plain TestClient construction).
        app.state.aggregator = aggregator

    app.include_router(chart.router)

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]:
        """Liveness check; does not call upstream providers."""
        agg: ChartDataAggregator = request.app.state.aggregator
        return {
            "status": "ok",
            "providers": [w.provider_id.value for w in agg.windows],
        }

    @app.exception_handler(InvalidRange)
    async def invalid_range_handler(_request, exc):
        return JSONResponse(status_code=400, content={"success": False, "error": str(exc)})

    @app.exception_handler(AllSourcesUnavailable)
    async def sources_unavailable_handler(_request, exc):
        logger.error("Chart data unavailable: %s", exc)
        return JSONResponse(
            status_code=503,
            content={"success": False, "error": "All candle sources are unavailable"},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(_request, exc):
        """Global exception handler to ensure consistent error responses."""
        logger.exception("Unhandled error: %s", exc)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
            },
        )

    return app


app = create_app()
