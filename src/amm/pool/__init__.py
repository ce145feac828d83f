"""Pool ledger: per-pool reserves, fees, price history and trade log."""

from amm.pool.ledger import PoolLedger
from amm.pool.trade_log import TradeLog

__all__ = ["PoolLedger", "TradeLog"]
