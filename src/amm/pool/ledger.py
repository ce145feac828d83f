"""Pool ledger: the only component allowed to mutate a pool's reserves.

Each PoolLedger owns one Pool, that pool's append-only TradeLog and an
asyncio.Lock. Every mutating call (swap, liquidity add/remove) holds the lock
for exactly one read-modify-write of the reserves, so concurrent coroutines on
the same pool never interleave partial updates. Ledgers for different pools
share nothing and never contend.

Swap flow:
1. Pick reserve_in/reserve_out for the side
2. Price via quote_swap (pure; raises on rejection)
3. Replace both reserves, accrue the fee on the input side
4. Append the Trade and a price-history sample

A rejected quote raises before step 3, so a failed swap leaves the pool
exactly as it was and records nothing.
"""

import asyncio
import time
from collections import deque
from decimal import Decimal

from amm.config import PoolSettings
from amm.exceptions import InvalidInitialReserves, InvariantGuardError
from amm.logging import get_logger
from amm.models import Pool, PoolSnapshot, PricePoint, Trade, TradeSide
from amm.pool.trade_log import TradeLog
from amm.pricing.curve import (
    LiquidityQuote,
    RemovalQuote,
    SwapQuote,
    quote_liquidity_add,
    quote_swap,
    validate_fee_rate,
)
from amm.pricing.units import working_precision

logger = get_logger(__name__)


class PoolLedger:
    """Owns one pool's reserves, fee accumulator, price history and trade log.

    Args:
        pool: The pool record this ledger owns.
        settings: Pool settings (price history cap).
    """

    def __init__(self, pool: Pool, settings: PoolSettings | None = None) -> None:
        self._settings = settings or PoolSettings()
        self._pool = pool
        self._pool.price_history = deque(
            pool.price_history, maxlen=self._settings.price_history_max_len
        )
        self._trade_log = TradeLog(pool.id)
        self._lock = asyncio.Lock()

    @classmethod
    def create(
        cls,
        pool_id: str,
        creator_id: str,
        base_amount: Decimal,
        quote_amount: Decimal,
        fee_rate_bps: int,
        settings: PoolSettings | None = None,
        timestamp: float | None = None,
    ) -> tuple["PoolLedger", LiquidityQuote]:
        """Create a pool seeded with the creator's initial reserves.

        The first contribution runs through the bootstrap branch of the
        liquidity math: it fixes the initial price and mints
        sqrt(base_amount * quote_amount) shares.

        Args:
            pool_id: Unique id for the new pool.
            creator_id: Opaque id of the creating provider.
            base_amount: Initial base reserve.
            quote_amount: Initial quote reserve.
            fee_rate_bps: Swap fee in basis points, fixed for the pool's life.
            settings: Pool settings.
            timestamp: Creation time (defaults to now).

        Returns:
            Tuple of (ledger, bootstrap LiquidityQuote). The quote's minted
            shares belong to the creator's initial LP position.

        Raises:
            InvalidFeeRate: If fee_rate_bps is outside [0, 10000).
            InvalidInitialReserves: If either amount is not positive.
            DegenerateRatio: If the seed amounts mint zero shares.
        """
        validate_fee_rate(fee_rate_bps)
        if base_amount <= 0 or quote_amount <= 0:
            raise InvalidInitialReserves(
                f"Initial reserves must be positive, got {base_amount}/{quote_amount}"
            )

        bootstrap = quote_liquidity_add(
            base_reserve=Decimal("0"),
            quote_reserve=Decimal("0"),
            lp_supply=Decimal("0"),
            base_in=base_amount,
            quote_in=quote_amount,
        )

        now = timestamp if timestamp is not None else time.time()
        pool = Pool(
            id=pool_id,
            creator_id=creator_id,
            base_reserve=bootstrap.base_accepted,
            quote_reserve=bootstrap.quote_accepted,
            lp_supply=bootstrap.minted_shares,
            fee_rate_bps=fee_rate_bps,
            created_at=now,
            updated_at=now,
        )
        ledger = cls(pool, settings)

        logger.info(
            "pool_created",
            pool_id=pool_id,
            creator_id=creator_id,
            base_reserve=str(pool.base_reserve),
            quote_reserve=str(pool.quote_reserve),
            lp_supply=str(pool.lp_supply),
            fee_rate_bps=fee_rate_bps,
            price=str(pool.price),
        )
        return ledger, bootstrap

    @property
    def pool(self) -> Pool:
        """The live pool record. Read it; never mutate it outside this ledger."""
        return self._pool

    @property
    def pool_id(self) -> str:
        return self._pool.id

    @property
    def lock(self) -> asyncio.Lock:
        """Per-pool mutual-exclusion lock for read-modify-write operations."""
        return self._lock

    @property
    def trade_log(self) -> TradeLog:
        return self._trade_log

    def _reserves_for(self, side: TradeSide) -> tuple[Decimal, Decimal]:
        """Return (reserve_in, reserve_out) for a swap direction."""
        if side == TradeSide.BUY:
            return self._pool.base_reserve, self._pool.quote_reserve
        return self._pool.quote_reserve, self._pool.base_reserve

    def quote(
        self,
        side: TradeSide,
        amount_in: Decimal,
        max_price_impact_pct: Decimal | None = None,
    ) -> SwapQuote:
        """Preview a swap against the current reserves.

        Same math as swap(); never mutates the pool and never records a trade.

        Raises:
            SlippageExceeded: If price impact exceeds max_price_impact_pct.
            InsufficientLiquidity: If the swap is empty or would drain the pool.
        """
        reserve_in, reserve_out = self._reserves_for(side)
        return quote_swap(
            reserve_in=reserve_in,
            reserve_out=reserve_out,
            amount_in=amount_in,
            fee_rate_bps=self._pool.fee_rate_bps,
            max_price_impact_pct=max_price_impact_pct,
        )

    async def swap(
        self,
        side: TradeSide,
        amount_in: Decimal,
        trader_id: str,
        max_price_impact_pct: Decimal | None = None,
        timestamp: float | None = None,
    ) -> Trade:
        """Execute a swap atomically under the pool lock.

        Args:
            side: BUY (base in, quote out) or SELL (quote in, base out).
            amount_in: Raw amount paid in.
            trader_id: Opaque id recorded on the trade.
            max_price_impact_pct: Optional ceiling on |price impact|.
            timestamp: Execution time (defaults to now).

        Returns:
            The recorded Trade.

        Raises:
            SlippageExceeded: If price impact exceeds the ceiling.
            InsufficientLiquidity: If the swap is empty or would drain the pool.
        """
        async with self._lock:
            try:
                quote = self.quote(side, amount_in, max_price_impact_pct)
            except InvariantGuardError as exc:
                # Market outcome, not a system failure.
                logger.info(
                    "swap_rejected",
                    pool_id=self._pool.id,
                    side=side.value,
                    amount_in=str(amount_in),
                    reason=type(exc).__name__,
                    detail=str(exc),
                )
                raise

            now = timestamp if timestamp is not None else time.time()
            self._apply_swap(side, quote, now)

            trade = Trade(
                pool_id=self._pool.id,
                side=side,
                amount_in=quote.amount_in,
                amount_out=quote.amount_out,
                fee_paid=quote.fee,
                price_after=self._pool.price,
                price_impact_pct=quote.price_impact_pct,
                timestamp=now,
                trader_id=trader_id,
            )
            self._trade_log.append(trade)
            self._pool.price_history.append(PricePoint(timestamp=now, price=trade.price_after))

            logger.info(
                "swap_executed",
                pool_id=self._pool.id,
                side=side.value,
                trader_id=trader_id,
                amount_in=str(trade.amount_in),
                amount_out=str(trade.amount_out),
                fee=str(trade.fee_paid),
                price_after=str(trade.price_after),
                price_impact_pct=str(trade.price_impact_pct),
            )
            return trade

    def _apply_swap(self, side: TradeSide, quote: SwapQuote, now: float) -> None:
        """Replace both reserves and accrue the fee. Caller holds the lock."""
        with working_precision():
            if side == TradeSide.BUY:
                self._pool.base_reserve = quote.new_reserve_in
                self._pool.quote_reserve = quote.new_reserve_out
                self._pool.fees_accrued.base += quote.fee
            else:
                self._pool.quote_reserve = quote.new_reserve_in
                self._pool.base_reserve = quote.new_reserve_out
                self._pool.fees_accrued.quote += quote.fee
        self._pool.updated_at = now

    def apply_liquidity_add(self, quote: LiquidityQuote, now: float) -> None:
        """Credit accepted amounts and minted shares. Caller holds the lock."""
        with working_precision():
            self._pool.base_reserve += quote.base_accepted
            self._pool.quote_reserve += quote.quote_accepted
            self._pool.lp_supply += quote.minted_shares
        self._pool.updated_at = now

    def apply_liquidity_remove(self, removal: RemovalQuote, now: float) -> None:
        """Debit released amounts and burned shares. Caller holds the lock."""
        with working_precision():
            self._pool.base_reserve -= removal.base_out
            self._pool.quote_reserve -= removal.quote_out
            self._pool.lp_supply -= removal.shares_burned
        self._pool.updated_at = now

    def snapshot(self) -> PoolSnapshot:
        """Return a read-only view of the pool's current state."""
        return PoolSnapshot(
            pool_id=self._pool.id,
            creator_id=self._pool.creator_id,
            base_reserve=self._pool.base_reserve,
            quote_reserve=self._pool.quote_reserve,
            lp_supply=self._pool.lp_supply,
            price=self._pool.price,
            fee_rate_bps=self._pool.fee_rate_bps,
            fees_base=self._pool.fees_accrued.base,
            fees_quote=self._pool.fees_accrued.quote,
            trade_count=len(self._trade_log),
            updated_at=self._pool.updated_at,
        )
