"""LP position bookkeeping and liquidity add/remove.

Keeps one LPPosition per (pool, provider). Share math comes from the pricing
core; reserve and supply changes go through PoolLedger while this ledger holds
that pool's lock, so a liquidity change and a swap on the same pool can never
interleave.

Both operations are all-or-nothing: every check and every computation runs
before the first mutation.

Invariant: for every pool, sum(position.lp_shares) == pool.lp_supply.
"""

import time
from dataclasses import dataclass
from decimal import Decimal

from amm.exceptions import InsufficientShares, InvalidAmount, InvariantGuardError
from amm.logging import get_logger
from amm.models import LPPosition
from amm.pool.ledger import PoolLedger
from amm.pricing.curve import quote_liquidity_add, quote_liquidity_remove
from amm.pricing.units import working_precision

logger = get_logger(__name__)


@dataclass
class LiquidityReceipt:
    """Outcome of adding liquidity.

    The accepted amounts may be less than offered when trimmed to the pool
    ratio; the refund fields tell the caller what to hand back.
    """

    pool_id: str
    provider_id: str
    minted_shares: Decimal
    base_accepted: Decimal
    quote_accepted: Decimal
    base_refund: Decimal
    quote_refund: Decimal
    position_shares: Decimal  # provider's total after the add


@dataclass
class RemovalReceipt:
    """Outcome of removing liquidity."""

    pool_id: str
    provider_id: str
    shares_burned: Decimal
    base_out: Decimal
    quote_out: Decimal
    remaining_shares: Decimal  # zero means the position was deleted


class LiquidityLedger:
    """Tracks LP positions and applies liquidity changes to pools."""

    def __init__(self) -> None:
        self._positions: dict[tuple[str, str], LPPosition] = {}

    def open_position(
        self,
        pool_id: str,
        provider_id: str,
        shares: Decimal,
        base_contributed: Decimal,
        quote_contributed: Decimal,
        timestamp: float | None = None,
    ) -> LPPosition:
        """Create or top up a provider's position with already-minted shares.

        Used for the creator's bootstrap position and by add_liquidity.

        Args:
            pool_id: Pool the shares belong to.
            provider_id: Opaque provider id.
            shares: Newly minted shares to credit.
            base_contributed: Base amount accepted for those shares.
            quote_contributed: Quote amount accepted for those shares.
            timestamp: Update time (defaults to now).

        Returns:
            The created or updated LPPosition.
        """
        now = timestamp if timestamp is not None else time.time()
        key = (pool_id, provider_id)
        position = self._positions.get(key)
        if position is None:
            position = LPPosition(
                pool_id=pool_id,
                provider_id=provider_id,
                lp_shares=shares,
                base_contributed=base_contributed,
                quote_contributed=quote_contributed,
                created_at=now,
                updated_at=now,
            )
            self._positions[key] = position
        else:
            with working_precision():
                position.lp_shares += shares
                position.base_contributed += base_contributed
                position.quote_contributed += quote_contributed
            position.updated_at = now
        return position

    async def add_liquidity(
        self,
        ledger: PoolLedger,
        provider_id: str,
        base_in: Decimal,
        quote_in: Decimal,
        timestamp: float | None = None,
    ) -> LiquidityReceipt:
        """Add liquidity to a pool at its current ratio.

        A fully drained pool (lp_supply == 0) is re-seeded through the
        bootstrap branch, and the contribution sets a fresh price.

        Args:
            ledger: Ledger of the target pool.
            provider_id: Opaque provider id.
            base_in: Base amount offered.
            quote_in: Quote amount offered.
            timestamp: Operation time (defaults to now).

        Returns:
            LiquidityReceipt with minted shares, accepted amounts and refunds.

        Raises:
            InvalidAmount: If either amount is negative.
            ZeroLiquidity: If both amounts are zero.
            DegenerateRatio: If the contribution mints zero shares.
        """
        async with ledger.lock:
            pool = ledger.pool
            try:
                quote = quote_liquidity_add(
                    base_reserve=pool.base_reserve,
                    quote_reserve=pool.quote_reserve,
                    lp_supply=pool.lp_supply,
                    base_in=base_in,
                    quote_in=quote_in,
                )
            except InvariantGuardError as exc:
                logger.info(
                    "liquidity_rejected",
                    pool_id=pool.id,
                    provider_id=provider_id,
                    operation="add",
                    reason=type(exc).__name__,
                    detail=str(exc),
                )
                raise

            now = timestamp if timestamp is not None else time.time()
            ledger.apply_liquidity_add(quote, now)
            position = self.open_position(
                pool_id=pool.id,
                provider_id=provider_id,
                shares=quote.minted_shares,
                base_contributed=quote.base_accepted,
                quote_contributed=quote.quote_accepted,
                timestamp=now,
            )

            logger.info(
                "liquidity_added",
                pool_id=pool.id,
                provider_id=provider_id,
                minted_shares=str(quote.minted_shares),
                base_accepted=str(quote.base_accepted),
                quote_accepted=str(quote.quote_accepted),
                lp_supply=str(pool.lp_supply),
            )

            with working_precision():
                base_refund = base_in - quote.base_accepted
                quote_refund = quote_in - quote.quote_accepted
            return LiquidityReceipt(
                pool_id=pool.id,
                provider_id=provider_id,
                minted_shares=quote.minted_shares,
                base_accepted=quote.base_accepted,
                quote_accepted=quote.quote_accepted,
                base_refund=base_refund,
                quote_refund=quote_refund,
                position_shares=position.lp_shares,
            )

    async def remove_liquidity(
        self,
        ledger: PoolLedger,
        provider_id: str,
        shares: Decimal,
        timestamp: float | None = None,
    ) -> RemovalReceipt:
        """Burn a provider's shares and release the pro-rata reserves.

        Price-neutral: both reserves shrink by the same fraction. The position
        is deleted when its shares reach zero.

        Args:
            ledger: Ledger of the target pool.
            provider_id: Opaque provider id.
            shares: Number of LP shares to burn.
            timestamp: Operation time (defaults to now).

        Returns:
            RemovalReceipt with the released base and quote amounts.

        Raises:
            InvalidAmount: If shares is not positive.
            InsufficientShares: If the provider holds fewer shares than requested.
        """
        if shares <= 0:
            raise InvalidAmount(f"Shares to burn must be positive, got {shares}")

        async with ledger.lock:
            pool = ledger.pool
            key = (pool.id, provider_id)
            position = self._positions.get(key)
            held = position.lp_shares if position is not None else Decimal("0")

            try:
                if shares > held:
                    raise InsufficientShares(
                        f"Provider {provider_id} holds {held} shares, cannot burn {shares}"
                    )
                removal = quote_liquidity_remove(
                    base_reserve=pool.base_reserve,
                    quote_reserve=pool.quote_reserve,
                    lp_supply=pool.lp_supply,
                    shares=shares,
                )
            except InvariantGuardError as exc:
                logger.info(
                    "liquidity_rejected",
                    pool_id=pool.id,
                    provider_id=provider_id,
                    operation="remove",
                    reason=type(exc).__name__,
                    detail=str(exc),
                )
                raise

            now = timestamp if timestamp is not None else time.time()
            ledger.apply_liquidity_remove(removal, now)

            with working_precision():
                position.lp_shares -= shares
            position.updated_at = now
            remaining = position.lp_shares
            if remaining == 0:
                del self._positions[key]

            logger.info(
                "liquidity_removed",
                pool_id=pool.id,
                provider_id=provider_id,
                shares_burned=str(shares),
                base_out=str(removal.base_out),
                quote_out=str(removal.quote_out),
                remaining_shares=str(remaining),
                lp_supply=str(pool.lp_supply),
            )

            return RemovalReceipt(
                pool_id=pool.id,
                provider_id=provider_id,
                shares_burned=shares,
                base_out=removal.base_out,
                quote_out=removal.quote_out,
                remaining_shares=remaining,
            )

    def get_position(self, pool_id: str, provider_id: str) -> LPPosition | None:
        """Return a provider's position in a pool, or None."""
        return self._positions.get((pool_id, provider_id))

    def positions_for_pool(self, pool_id: str) -> list[LPPosition]:
        """Return every position held in a pool."""
        return [p for (pid, _), p in self._positions.items() if pid == pool_id]

    def positions_for_provider(self, provider_id: str) -> list[LPPosition]:
        """Return every position a provider holds, across pools."""
        return [p for (_, prov), p in self._positions.items() if prov == provider_id]

    def total_shares(self, pool_id: str) -> Decimal:
        """Sum of lp_shares across a pool's positions (equals pool.lp_supply)."""
        with working_precision():
            return sum(
                (p.lp_shares for p in self.positions_for_pool(pool_id)),
                Decimal("0"),
            )
