"""Candle aggregation and chart statistics over trade records."""

from amm.candles.aggregator import CandleAggregator, Timeframe, aggregate_candles
from amm.candles.stats import (
    LatestPrice,
    PriceChange,
    TradeStats,
    VolumeSummary,
    latest_price,
    price_change,
    trade_stats,
    volume_summary,
)

__all__ = [
    "CandleAggregator",
    "LatestPrice",
    "PriceChange",
    "Timeframe",
    "TradeStats",
    "VolumeSummary",
    "aggregate_candles",
    "latest_price",
    "price_change",
    "trade_stats",
    "volume_summary",
]
