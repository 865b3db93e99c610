from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value < 0:
        raise ValueError(f"{name} must be >= 0, got {raw!r}")
    return value


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be > 0, got {raw!r}")
    return value


@dataclass(frozen=True)
class ChartDataConfig:
    """Upstream endpoints and timeouts for the candle aggregator.

    `pacifica_api_key` comes from the environment (PACIFICA_API_KEY).
    Do not log it.
    """

    pacifica_api_url: str = "https://api.pacifica.fi"
    pacifica_api_key: str | None = None
    binance_api_url: str = "https://fapi.binance.com"
    bybit_api_url: str = "https://api.bybit.com"
    request_timeout_seconds: float = 10.0
    total_timeout_seconds: float = 30.0
    max_pages: int = 20
    page_delay_seconds: float = 0.05

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "ChartDataConfig":
        env = os.environ if env is None else env
        return cls(
            pacifica_api_url=env.get("PACIFICA_API_URL") or cls.pacifica_api_url,
            pacifica_api_key=env.get("PACIFICA_API_KEY") or None,
            binance_api_url=env.get("BINANCE_FUTURES_API_URL") or cls.binance_api_url,
            bybit_api_url=env.get("BYBIT_API_URL") or cls.bybit_api_url,
            request_timeout_seconds=_float(env, "CHART_REQUEST_TIMEOUT_SECONDS", cls.request_timeout_seconds),
            total_timeout_seconds=_float(env, "CHART_TOTAL_TIMEOUT_SECONDS", cls.total_timeout_seconds),
            max_pages=_int(env, "CHART_MAX_PAGES", cls.max_pages),
            page_delay_seconds=_float(env, "CHART_PAGE_DELAY_SECONDS", cls.page_delay_seconds),
        )
