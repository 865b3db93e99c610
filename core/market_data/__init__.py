"""Market data: multi-source OHLCV candle aggregation.

Pacifica serves recent data; Binance and Bybit serve history. The aggregator
plans which provider owns which slice of a request, fetches the slices
concurrently with fallback, and merges them into one ordered sequence.
"""

from core.market_data.aggregator import ChartDataAggregator
from core.market_data.base import CandleSource, TimeframeSpec
from core.market_data.binance_provider import BinanceSource
from core.market_data.bybit_provider import BybitSource
from core.market_data.config import ChartDataConfig
from core.market_data.coverage import DEFAULT_PROVIDER_WINDOWS, plan_sources
from core.market_data.pacifica_provider import PacificaSource
from core.market_data.types import ProviderId

__all__ = [
    "CandleSource",
    "ChartDataAggregator",
    "ChartDataConfig",
    "DEFAULT_PROVIDER_WINDOWS",
    "TimeframeSpec",
    "BinanceSource",
    "BybitSource",
    "PacificaSource",
    "ProviderId",
    "build_aggregator",
    "build_sources",
    "plan_sources",
]


def build_sources(config: ChartDataConfig) -> list[CandleSource]:
    """Create one source client per supported provider."""
    common = {
        "timeout_seconds": config.request_timeout_seconds,
        "max_pages": config.max_pages,
        "page_delay_seconds": config.page_delay_seconds,
    }
    return [
        PacificaSource(base_url=config.pacifica_api_url, api_key=config.pacifica_api_key, **common),
        BinanceSource(base_url=config.binance_api_url, **common),
        BybitSource(base_url=config.bybit_api_url, **common),
    ]


def build_aggregator(config: ChartDataConfig | None = None) -> ChartDataAggregator:
    """Wire the aggregator with the default provider table."""
    config = config or ChartDataConfig.from_env()
    return ChartDataAggregator(
        build_sources(config),
        DEFAULT_PROVIDER_WINDOWS,
        total_timeout_seconds=config.total_timeout_seconds,
    )
