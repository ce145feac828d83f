"""Liquidity ledger: LP positions and mint/burn bookkeeping."""

from amm.liquidity.ledger import LiquidityLedger, LiquidityReceipt, RemovalReceipt

__all__ = ["LiquidityLedger", "LiquidityReceipt", "RemovalReceipt"]
