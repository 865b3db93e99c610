#!/usr/bin/env python
"""Fetch aggregated candles from the command line (no API server).

Examples:
    python scripts/fetch_chart_candles.py --symbol BTC-USD --interval 1h \
        --start 2025-05-30 --end 2025-06-02
    python scripts/fetch_chart_candles.py --symbol ETH --interval 1d \
        --start 1577836800000 --end 1580515200000 --report
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

# Ensure imports work when invoked as a script
_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from core.market_data import build_aggregator  # noqa: E402
from core.market_data.errors import ChartDataError  # noqa: E402
from core.types import INTERVALS  # noqa: E402


def _parse_time(value: str) -> int:
    """Epoch milliseconds, or an ISO date/datetime (naive values are UTC)."""
    value = value.strip()
    if value.isdigit():
        return int(value)
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Fetch OHLCV candles across Pacifica, Binance and Bybit.")
    p.add_argument("--symbol", required=True, help="Symbol like BTC-USD (or BTC)")
    p.add_argument("--interval", default="1h", choices=INTERVALS)
    p.add_argument("--start", required=True, type=_parse_time, help="Epoch ms or ISO date (inclusive)")
    p.add_argument("--end", required=True, type=_parse_time, help="Epoch ms or ISO date (exclusive)")
    p.add_argument("--report", action="store_true", help="Print the coverage plan and gaps as well")
    p.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return p.parse_args()


async def _run(args: argparse.Namespace) -> dict:
    async with build_aggregator() as aggregator:
        result = await aggregator.get_candles_report(args.symbol, args.interval, args.start, args.end)

    out: dict = {
        "symbol": args.symbol,
        "interval": args.interval,
        "count": len(result.candles),
        "candles": [c.to_dict() for c in result.candles],
    }
    if args.report:
        out["segments"] = [
            {
                "provider": o.segment.provider_id.value,
                "start": o.segment.range_start,
                "end": o.segment.range_end,
                "servedBy": o.served_by.value if o.served_by else None,
                "count": len(o.candles),
                "errors": [str(e) for e in o.errors],
            }
            for o in result.outcomes
        ]
        out["unavailable"] = [[r.start_ms, r.end_ms] for r in result.plan.unavailable]
        out["gaps"] = [
            {"after": g.after_t, "before": g.before_t, "missing": g.missing_bars, "atSeam": g.at_seam}
            for g in result.gaps
        ]
    return out


def main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        out = asyncio.run(_run(args))
    except ChartDataError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(out, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
