"""Symbol mapping between the canonical ``BASE-USD`` format and provider formats.

Canonical:  BTC-USD, ETH-USD, KPEPE-USD
Pacifica:   BTC, ETH, 1000PEPE
Binance:    BTCUSDT, ETHUSDT, 1000PEPEUSDT
Bybit:      BTCUSDT, ETHUSDT, 1000PEPEUSDT
"""

from __future__ import annotations

from core.market_data.types import ProviderId

# Bases whose provider ticker differs from the canonical base.
_BASE_OVERRIDES: dict[str, str] = {
    "KPEPE": "1000PEPE",
}

KNOWN_SYMBOLS: tuple[str, ...] = (
    # Majors
    "BTC-USD", "ETH-USD", "SOL-USD", "BNB-USD", "XRP-USD", "DOGE-USD", "ADA-USD", "AVAX-USD", "LINK-USD",
    # Layer 1s
    "SUI-USD", "APT-USD", "SEI-USD", "TIA-USD", "INJ-USD",
    # Layer 2s
    "ARB-USD", "OP-USD", "STX-USD", "IMX-USD",
    # DeFi
    "AAVE-USD", "JUP-USD", "PENDLE-USD", "ENA-USD",
    # AI / data
    "RENDER-USD", "FET-USD",
    # Memecoins
    "WIF-USD", "KPEPE-USD", "WLD-USD", "HYPE-USD",
    # Other
    "ZEC-USD", "PAXG-USD",
)


def _base(symbol: str) -> str:
    s = symbol.strip().upper()
    if not s:
        raise ValueError("symbol is required")
    if s.endswith("-USD"):
        s = s[: -len("-USD")]
    if not s or "-" in s:
        raise ValueError(f"Unsupported symbol format: {symbol}")
    return _BASE_OVERRIDES.get(s, s)


def map_symbol(symbol: str, provider_id: ProviderId) -> str:
    """Convert a canonical symbol to the provider's ticker.

    Unknown ``X-USD`` symbols map to ``X`` / ``XUSDT``.
    """
    base = _base(symbol)
    if provider_id is ProviderId.PACIFICA:
        return base
    return f"{base}USDT"


def is_symbol_supported(symbol: str, provider_id: ProviderId) -> bool:
    try:
        map_symbol(symbol, provider_id)
    except ValueError:
        return False
    return True
