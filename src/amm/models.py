"""Shared data models for the AMM core.

CRITICAL: All monetary values use Decimal. Never use float for reserves, prices,
amounts or fees. Token amounts are whole raw smallest-units (already scaled by
the token's decimals); prices are base units per quote unit.

Pool and LPPosition are mutable records owned by the ledgers. Trade and Candle
are immutable. Every record serializes to a dict with Decimals as strings so a
storage collaborator can keep full precision as TEXT.
"""

from collections import deque
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from amm.pricing.units import spot_price, working_precision


class TradeSide(str, Enum):
    """Swap direction, named from the trader's point of view on the token.

    BUY: base in, quote (token) out.
    SELL: quote (token) in, base out.
    """

    BUY = "buy"
    SELL = "sell"


@dataclass
class FeesAccrued:
    """Cumulative swap fees collected by a pool, split by denomination."""

    base: Decimal = Decimal("0")
    quote: Decimal = Decimal("0")


@dataclass(frozen=True)
class PricePoint:
    """Pool price sampled immediately after a completed trade."""

    timestamp: float
    price: Decimal


@dataclass
class Pool:
    """One base/quote trading venue for a single token."""

    id: str
    creator_id: str
    base_reserve: Decimal
    quote_reserve: Decimal
    lp_supply: Decimal
    fee_rate_bps: int
    created_at: float
    updated_at: float
    fees_accrued: FeesAccrued = field(default_factory=FeesAccrued)
    price_history: deque[PricePoint] = field(default_factory=deque)

    @property
    def price(self) -> Decimal:
        """Current marginal price (base_reserve / quote_reserve)."""
        return spot_price(self.base_reserve, self.quote_reserve)

    @property
    def invariant(self) -> Decimal:
        """Constant-product value k = base_reserve * quote_reserve."""
        with working_precision():
            return self.base_reserve * self.quote_reserve

    def to_dict(self) -> dict:
        """Serialize to dict for storage or JSON output.

        Converts all Decimal values to str for JSON compatibility.

        Returns:
            Dict with all fields, Decimals as strings.
        """
        return {
            "id": self.id,
            "creator_id": self.creator_id,
            "base_reserve": str(self.base_reserve),
            "quote_reserve": str(self.quote_reserve),
            "lp_supply": str(self.lp_supply),
            "fee_rate_bps": self.fee_rate_bps,
            "fees_accrued": {
                "base": str(self.fees_accrued.base),
                "quote": str(self.fees_accrued.quote),
            },
            "price_history": [
                {"timestamp": p.timestamp, "price": str(p.price)}
                for p in self.price_history
            ],
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class LPPosition:
    """One provider's claim on one pool.

    base_contributed/quote_contributed are cumulative and for reporting only;
    payouts are computed from lp_shares against the live reserves.
    """

    pool_id: str
    provider_id: str
    lp_shares: Decimal
    base_contributed: Decimal
    quote_contributed: Decimal
    created_at: float
    updated_at: float

    def to_dict(self) -> dict:
        return {
            "pool_id": self.pool_id,
            "provider_id": self.provider_id,
            "lp_shares": str(self.lp_shares),
            "base_contributed": str(self.base_contributed),
            "quote_contributed": str(self.quote_contributed),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class Trade:
    """Immutable record of one executed swap."""

    pool_id: str
    side: TradeSide
    amount_in: Decimal
    amount_out: Decimal
    fee_paid: Decimal  # denominated in the input side
    price_after: Decimal
    price_impact_pct: Decimal
    timestamp: float  # Unix seconds
    trader_id: str

    @property
    def base_amount(self) -> Decimal:
        """Base-side size of the trade (what candle volume sums)."""
        if self.side == TradeSide.BUY:
            return self.amount_in
        return self.amount_out

    @property
    def quote_amount(self) -> Decimal:
        """Quote-side size of the trade."""
        if self.side == TradeSide.BUY:
            return self.amount_out
        return self.amount_in

    def to_dict(self) -> dict:
        return {
            "pool_id": self.pool_id,
            "side": self.side.value,
            "amount_in": str(self.amount_in),
            "amount_out": str(self.amount_out),
            "fee_paid": str(self.fee_paid),
            "price_after": str(self.price_after),
            "price_impact_pct": str(self.price_impact_pct),
            "timestamp": self.timestamp,
            "trader_id": self.trader_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Trade":
        """Restore a Trade from its to_dict() form (Decimals stored as TEXT)."""
        return cls(
            pool_id=data["pool_id"],
            side=TradeSide(data["side"]),
            amount_in=Decimal(data["amount_in"]),
            amount_out=Decimal(data["amount_out"]),
            fee_paid=Decimal(data["fee_paid"]),
            price_after=Decimal(data["price_after"]),
            price_impact_pct=Decimal(data["price_impact_pct"]),
            timestamp=float(data["timestamp"]),
            trader_id=data["trader_id"],
        )


@dataclass(frozen=True)
class Candle:
    """OHLCV summary of the trades in one fixed-width time bucket.

    Derived from Trade records only; safe to cache and safe to discard.
    """

    time_bucket_start: int  # Unix seconds, aligned to the timeframe
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal  # sum of base-side trade sizes
    trade_count: int

    def to_dict(self) -> dict:
        return {
            "time": self.time_bucket_start,
            "open": str(self.open),
            "high": str(self.high),
            "low": str(self.low),
            "close": str(self.close),
            "volume": str(self.volume),
            "trade_count": self.trade_count,
        }


@dataclass
class PoolSnapshot:
    """Read-only view of a pool's current state for inspection calls."""

    pool_id: str
    creator_id: str
    base_reserve: Decimal
    quote_reserve: Decimal
    lp_supply: Decimal
    price: Decimal
    fee_rate_bps: int
    fees_base: Decimal
    fees_quote: Decimal
    trade_count: int
    updated_at: float
