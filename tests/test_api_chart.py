"""Tests for the /chart endpoints and app-level error handling."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from conftest import HOUR_MS, PACIFICA_START, hourly
from core.market_data.aggregator import ChartDataAggregator
from core.market_data.errors import AllSourcesUnavailable, SourceUnavailable
from core.market_data.types import ProviderId

T0 = PACIFICA_START


@pytest.fixture
def aggregator(fake_source, fixed_now):
    sources = [
        fake_source(ProviderId.PACIFICA, hourly(T0, 24, "200")),
        fake_source(ProviderId.BYBIT, hourly(T0 - 24 * HOUR_MS, 24, "150")),
        fake_source(ProviderId.BINANCE, hourly(T0 - 24 * HOUR_MS, 24, "100")),
    ]
    return ChartDataAggregator(sources, clock=fixed_now)


@pytest.fixture
def client(aggregator):
    """Create a test client around an injected aggregator."""
    from api.main import create_app

    return TestClient(create_app(aggregator))


def _get_candles(client, **params):
    query = {"symbol": "BTC-USD", "interval": "1h", "start": str(T0 - 2 * HOUR_MS), "end": str(T0 + 2 * HOUR_MS)}
    query.update(params)
    return client.get("/chart/candles", params={k: v for k, v in query.items() if v is not None})


# ---------------------------------------------------------------------------
# GET /chart/candles
# ---------------------------------------------------------------------------


def test_candles_success_shape(client):
    response = _get_candles(client)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["meta"] == {
        "symbol": "BTC-USD",
        "interval": "1h",
        "startTime": T0 - 2 * HOUR_MS,
        "endTime": T0 + 2 * HOUR_MS,
        "count": 4,
    }
    assert [c["t"] for c in body["data"]] == [T0 - 2 * HOUR_MS, T0 - HOUR_MS, T0, T0 + HOUR_MS]
    assert body["data"][0] == {"t": T0 - 2 * HOUR_MS, "o": 150.0, "h": 151.0, "l": 149.0, "c": 150.0, "v": 1.0}
    assert body["data"][2]["o"] == 200.0


def test_candles_future_range_returns_empty_success(client, fixed_now):
    now = fixed_now()

    response = _get_candles(client, start=str(now + HOUR_MS), end=str(now + 5 * HOUR_MS))

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"] == []
    assert body["meta"]["count"] == 0


@pytest.mark.parametrize(
    "params, message",
    [
        ({"symbol": None}, "symbol is required"),
        ({"symbol": "  "}, "symbol is required"),
        ({"interval": None}, "interval is required"),
        ({"start": None}, "start timestamp is required"),
        ({"end": None}, "end timestamp is required"),
        ({"start": "yesterday"}, "start and end must be valid timestamps"),
        ({"end": "1.5e12"}, "start and end must be valid timestamps"),
        ({"start": str(T0), "end": str(T0)}, "start must be before end"),
        ({"start": str(T0 + HOUR_MS), "end": str(T0)}, "start must be before end"),
    ],
)
def test_candles_validation_errors(client, params, message):
    response = _get_candles(client, **params)

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": message}


def test_candles_invalid_interval_lists_valid_values(client):
    response = _get_candles(client, interval="7m")

    assert response.status_code == 400
    error = response.json()["error"]
    assert error.startswith("Invalid interval. Valid values: ")
    assert "1m" in error and "1d" in error


def test_candles_all_sources_failing_returns_503(fake_source, fixed_now):
    from api.main import create_app

    sources = [
        fake_source(pid, error=SourceUnavailable(pid, "down"))
        for pid in (ProviderId.PACIFICA, ProviderId.BYBIT, ProviderId.BINANCE)
    ]
    client = TestClient(create_app(ChartDataAggregator(sources, clock=fixed_now)))

    response = _get_candles(client)

    assert response.status_code == 503
    assert response.json()["success"] is False


def test_candles_partial_failure_still_succeeds(fake_source, fixed_now):
    from api.main import create_app

    sources = [
        fake_source(ProviderId.PACIFICA, hourly(T0, 2)),
        fake_source(ProviderId.BYBIT, error=SourceUnavailable(ProviderId.BYBIT, "down")),
    ]
    client = TestClient(create_app(ChartDataAggregator(sources, clock=fixed_now)))

    response = _get_candles(client)

    assert response.status_code == 200
    assert [c["t"] for c in response.json()["data"]] == [T0, T0 + HOUR_MS]


def test_candles_passes_trimmed_symbol_to_aggregator(client, aggregator):
    with patch.object(aggregator, "get_candles", new=AsyncMock(return_value=[])) as mock_get:
        response = _get_candles(client, symbol=" ETH-USD ")

    assert response.status_code == 200
    mock_get.assert_awaited_once_with("ETH-USD", "1h", T0 - 2 * HOUR_MS, T0 + 2 * HOUR_MS)


def test_candles_unavailable_raised_directly_maps_to_503(client, aggregator):
    error = AllSourcesUnavailable([SourceUnavailable(ProviderId.PACIFICA, "down")])
    with patch.object(aggregator, "get_candles", new=AsyncMock(side_effect=error)):
        response = _get_candles(client)

    assert response.status_code == 503
    assert response.json() == {"success": False, "error": "All candle sources are unavailable"}


# ---------------------------------------------------------------------------
# GET /chart/info and /health
# ---------------------------------------------------------------------------


def test_info_describes_providers(client):
    response = client.get("/chart/info")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["earliestAvailableDate"] == "2019-09-01T00:00:00.000Z"
    assert data["sources"]["pacifica"]["startDate"] == "2025-06-01"
    assert data["sources"]["pacifica"]["tier"] == "primary"
    assert data["sources"]["binance"]["startDate"] == "2019-09-01"
    assert data["sources"]["bybit"]["startDate"] == "2020-01-01"
    assert data["sources"]["bybit"]["tier"] == "fallback"
    assert "1h" in data["intervals"]
    assert "BTC-USD" in data["symbols"]


def test_health_lists_providers(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "providers": ["pacifica", "binance", "bybit"]}


def test_lifespan_keeps_injected_aggregator_open(aggregator):
    from api.main import create_app

    with TestClient(create_app(aggregator)) as client:
        assert client.get("/health").status_code == 200

    assert not any(source.closed for source in aggregator.sources.values())
