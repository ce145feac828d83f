"""Pricing core: pure constant-product and LP share math."""

from amm.pricing.curve import (
    LiquidityQuote,
    RemovalQuote,
    SwapQuote,
    quote_liquidity_add,
    quote_liquidity_remove,
    quote_swap,
    validate_fee_rate,
)
from amm.pricing.units import integer_sqrt, spot_price, truncate_pct, truncate_price, truncate_units

__all__ = [
    "LiquidityQuote",
    "RemovalQuote",
    "SwapQuote",
    "integer_sqrt",
    "quote_liquidity_add",
    "quote_liquidity_remove",
    "quote_swap",
    "spot_price",
    "truncate_pct",
    "truncate_price",
    "truncate_units",
    "validate_fee_rate",
]
