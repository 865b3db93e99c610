"""Unit tests for environment-driven aggregator configuration."""

from __future__ import annotations

import pytest

from core.market_data import build_aggregator, build_sources
from core.market_data.config import ChartDataConfig
from core.market_data.types import ProviderId


def test_defaults_when_env_empty():
    config = ChartDataConfig.from_env({})

    assert config == ChartDataConfig()
    assert config.pacifica_api_url == "https://api.pacifica.fi"
    assert config.binance_api_url == "https://fapi.binance.com"
    assert config.bybit_api_url == "https://api.bybit.com"
    assert config.pacifica_api_key is None
    assert config.request_timeout_seconds == 10.0
    assert config.total_timeout_seconds == 30.0
    assert config.max_pages == 20


def test_env_overrides():
    config = ChartDataConfig.from_env(
        {
            "PACIFICA_API_URL": "http://localhost:9000",
            "PACIFICA_API_KEY": "k",
            "BINANCE_FUTURES_API_URL": "http://binance.local",
            "BYBIT_API_URL": "http://bybit.local",
            "CHART_REQUEST_TIMEOUT_SECONDS": "2.5",
            "CHART_TOTAL_TIMEOUT_SECONDS": "5",
            "CHART_MAX_PAGES": "3",
            "CHART_PAGE_DELAY_SECONDS": "0",
        }
    )

    assert config.pacifica_api_url == "http://localhost:9000"
    assert config.pacifica_api_key == "k"
    assert config.binance_api_url == "http://binance.local"
    assert config.bybit_api_url == "http://bybit.local"
    assert config.request_timeout_seconds == 2.5
    assert config.total_timeout_seconds == 5.0
    assert config.max_pages == 3
    assert config.page_delay_seconds == 0.0


@pytest.mark.parametrize(
    "env",
    [
        {"CHART_REQUEST_TIMEOUT_SECONDS": "soon"},
        {"CHART_TOTAL_TIMEOUT_SECONDS": "-1"},
        {"CHART_MAX_PAGES": "1.5"},
        {"CHART_MAX_PAGES": "0"},
    ],
)
def test_invalid_values_name_the_variable(env):
    name = next(iter(env))

    with pytest.raises(ValueError, match=name):
        ChartDataConfig.from_env(env)


def test_build_sources_applies_config():
    config = ChartDataConfig(bybit_api_url="http://bybit.local/", max_pages=4, pacifica_api_key="k")

    sources = build_sources(config)

    assert [s.provider_id for s in sources] == [ProviderId.PACIFICA, ProviderId.BINANCE, ProviderId.BYBIT]
    assert sources[2].base_url == "http://bybit.local"
    assert all(s.max_pages == 4 for s in sources)


def test_build_aggregator_uses_all_providers():
    aggregator = build_aggregator(ChartDataConfig(total_timeout_seconds=7))

    assert {w.provider_id for w in aggregator.windows} == set(ProviderId)
    assert aggregator.total_timeout_seconds == 7
