#!/usr/bin/env python3
"""Run the chart data API server.

This script starts the uvicorn server for the candle aggregation API.

Usage:
    python scripts/run_api.py [--host HOST] [--port PORT]

Environment (all optional):
    PACIFICA_API_URL, PACIFICA_API_KEY, BINANCE_FUTURES_API_URL, BYBIT_API_URL
    CHART_REQUEST_TIMEOUT_SECONDS, CHART_TOTAL_TIMEOUT_SECONDS
    CHART_MAX_PAGES, CHART_PAGE_DELAY_SECONDS

Examples:
    python scripts/run_api.py
    python scripts/run_api.py --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Ensure imports work when invoked as a script
_REPO_ROOT = Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from core.market_data.config import ChartDataConfig  # noqa: E402


def main() -> int:
    """Run the API server."""
    parser = argparse.ArgumentParser(description="Run the chart data API server.")
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to (default: 8000)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )
    args = parser.parse_args()

    # Fail fast on a bad environment instead of at first request
    try:
        ChartDataConfig.from_env()
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Starting chart API server on {args.host}:{args.port}")
    print("Endpoints:")
    print(f"  - GET http://{args.host}:{args.port}/health")
    print(f"  - GET http://{args.host}:{args.port}/chart/candles")
    print(f"  - GET http://{args.host}:{args.port}/chart/info")
    print()

    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )

    return 0


if __name__ == "__main__":
    sys.exit(main())
