"""Unit tests for canonical <-> provider symbol mapping."""

from __future__ import annotations

import pytest

from core.market_data.symbols import KNOWN_SYMBOLS, is_symbol_supported, map_symbol
from core.market_data.types import ProviderId


@pytest.mark.parametrize(
    "symbol, provider, expected",
    [
        ("BTC-USD", ProviderId.PACIFICA, "BTC"),
        ("BTC-USD", ProviderId.BINANCE, "BTCUSDT"),
        ("BTC-USD", ProviderId.BYBIT, "BTCUSDT"),
        ("eth-usd", ProviderId.BINANCE, "ETHUSDT"),
        (" SOL ", ProviderId.BYBIT, "SOLUSDT"),
        ("KPEPE-USD", ProviderId.PACIFICA, "1000PEPE"),
        ("KPEPE-USD", ProviderId.BINANCE, "1000PEPEUSDT"),
        ("NEWCOIN-USD", ProviderId.BYBIT, "NEWCOINUSDT"),
    ],
)
def test_map_symbol(symbol, provider, expected):
    assert map_symbol(symbol, provider) == expected


@pytest.mark.parametrize("symbol", ["", "   ", "-USD", "BTC-EUR", "BTC-PERP-USD"])
def test_map_symbol_rejects_bad_format(symbol):
    with pytest.raises(ValueError):
        map_symbol(symbol, ProviderId.BINANCE)


def test_is_symbol_supported():
    assert is_symbol_supported("BTC-USD", ProviderId.PACIFICA)
    assert not is_symbol_supported("BTC-EUR", ProviderId.BYBIT)


def test_known_symbols_all_map_everywhere():
    assert len(set(KNOWN_SYMBOLS)) == len(KNOWN_SYMBOLS)
    for symbol in KNOWN_SYMBOLS:
        for provider in ProviderId:
            assert is_symbol_supported(symbol, provider)
