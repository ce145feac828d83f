"""Simulated decentralized-exchange core.

Constant-product pricing, per-pool ledgers, LP share accounting and OHLCV
candles derived from the trade log.
"""

from amm.engine import ExchangeEngine
from amm.models import Candle, LPPosition, Pool, Trade, TradeSide

__all__ = ["Candle", "ExchangeEngine", "LPPosition", "Pool", "Trade", "TradeSide"]
