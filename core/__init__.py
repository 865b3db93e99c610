"""Core domain modules.

- market_data: provider clients, kline adapters, coverage policy and the
  multi-source candle aggregator
- types: shared candle types
"""
