"""Exchange engine: the contract surface the outer layers call into.

Wires the components together:
1. AppSettings (pool and candle configuration)
2. PoolLedger per pool (reserves, fees, price history, trade log, lock)
3. LiquidityLedger (LP positions across pools)
4. CandleAggregator (stateless candle reads)

Operations: create_pool, get_quote, swap, add_liquidity, remove_liquidity,
get_candles, plus read-only inspection (pools, positions, trades) and chart
statistics. The engine knows nothing about strategy or networks; accounts are
opaque provider/trader ids.

Mutations are serialized per pool by that pool's lock; pools never share
state. Quote and candle reads take a synchronous snapshot without awaiting,
so they always see a consistent pool state.
"""

import time
from collections.abc import Callable
from decimal import Decimal
from uuid import uuid4

from amm.candles.aggregator import CandleAggregator, Timeframe
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
from amm.config import AppSettings
from amm.exceptions import InvalidAmount, PoolNotFound, ValidationError
from amm.liquidity.ledger import LiquidityLedger, LiquidityReceipt, RemovalReceipt
from amm.logging import get_logger, operation_context
from amm.models import Candle, LPPosition, Pool, PoolSnapshot, Trade, TradeSide
from amm.pool.ledger import PoolLedger
from amm.pricing.curve import SwapQuote

logger = get_logger(__name__)


def _parse_side(side: TradeSide | str) -> TradeSide:
    if isinstance(side, TradeSide):
        return side
    try:
        return TradeSide(side)
    except ValueError:
        raise ValidationError(f"Invalid side: {side}. Valid options: buy, sell") from None


def _check_limit(limit: int) -> None:
    if limit <= 0:
        raise InvalidAmount(f"Trade limit must be positive, got {limit}")


class ExchangeEngine:
    """In-memory DEX core: pools, LP positions, trades and candles.

    Args:
        settings: Application settings. Defaults to AppSettings().
        clock: Source of Unix-second timestamps for new records.
    """

    def __init__(
        self,
        settings: AppSettings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings or AppSettings()
        self._clock = clock
        self._pools: dict[str, PoolLedger] = {}
        self._liquidity = LiquidityLedger()
        self._candles = CandleAggregator(self._settings.candles)

    def _ledger(self, pool_id: str) -> PoolLedger:
        ledger = self._pools.get(pool_id)
        if ledger is None:
            logger.warning("pool_not_found", pool_id=pool_id)
            raise PoolNotFound(f"Pool {pool_id} not found")
        return ledger

    # ──────────────────────────────────────────────
    # Pool lifecycle and swaps
    # ──────────────────────────────────────────────

    async def create_pool(
        self,
        provider_id: str,
        base_amount: Decimal,
        quote_amount: Decimal,
        fee_rate_bps: int | None = None,
    ) -> tuple[Pool, LPPosition]:
        """Create a pool and the creator's initial LP position.

        Args:
            provider_id: Opaque id of the creator.
            base_amount: Initial base reserve.
            quote_amount: Initial quote reserve.
            fee_rate_bps: Swap fee in basis points. Defaults to
                PoolSettings.default_fee_rate_bps.

        Returns:
            Tuple of (pool, creator's LPPosition).

        Raises:
            InvalidFeeRate: If fee_rate_bps is outside [0, 10000).
            InvalidInitialReserves: If either amount is not positive.
        """
        if fee_rate_bps is None:
            fee_rate_bps = self._settings.pool.default_fee_rate_bps

        pool_id = uuid4().hex[:16]
        now = self._clock()
        with operation_context("create_pool", provider_id):
            ledger, bootstrap = PoolLedger.create(
                pool_id=pool_id,
                creator_id=provider_id,
                base_amount=base_amount,
                quote_amount=quote_amount,
                fee_rate_bps=fee_rate_bps,
                settings=self._settings.pool,
                timestamp=now,
            )
        position = self._liquidity.open_position(
            pool_id=pool_id,
            provider_id=provider_id,
            shares=bootstrap.minted_shares,
            base_contributed=bootstrap.base_accepted,
            quote_contributed=bootstrap.quote_accepted,
            timestamp=now,
        )
        self._pools[pool_id] = ledger
        return ledger.pool, position

    async def get_quote(
        self,
        pool_id: str,
        side: TradeSide | str,
        amount_in: Decimal,
        max_price_impact_pct: Decimal | None = None,
    ) -> SwapQuote:
        """Preview a swap without mutating the pool or recording a trade.

        Raises:
            PoolNotFound: If pool_id is unknown.
            SlippageExceeded: If price impact exceeds max_price_impact_pct.
            InsufficientLiquidity: If the swap is empty or would drain the pool.
        """
        ledger = self._ledger(pool_id)
        return ledger.quote(_parse_side(side), amount_in, max_price_impact_pct)

    async def swap(
        self,
        pool_id: str,
        side: TradeSide | str,
        amount_in: Decimal,
        trader_id: str,
        max_price_impact_pct: Decimal | None = None,
    ) -> Trade:
        """Execute a swap and record the trade.

        A rejected swap is a no-op: the pool is left unchanged and no trade
        is recorded. Callers must re-quote rather than retry blindly.

        Raises:
            PoolNotFound: If pool_id is unknown.
            SlippageExceeded: If price impact exceeds max_price_impact_pct.
            InsufficientLiquidity: If the swap is empty or would drain the pool.
        """
        ledger = self._ledger(pool_id)
        with operation_context("swap", trader_id):
            return await ledger.swap(
                side=_parse_side(side),
                amount_in=amount_in,
                trader_id=trader_id,
                max_price_impact_pct=max_price_impact_pct,
                timestamp=self._clock(),
            )

    # ──────────────────────────────────────────────
    # Liquidity
    # ──────────────────────────────────────────────

    async def add_liquidity(
        self,
        pool_id: str,
        provider_id: str,
        base_in: Decimal,
        quote_in: Decimal,
    ) -> LiquidityReceipt:
        """Add liquidity at the pool ratio; see LiquidityLedger.add_liquidity.

        Raises:
            PoolNotFound: If pool_id is unknown.
            InvalidAmount: If either amount is negative.
            ZeroLiquidity: If both amounts are zero.
            DegenerateRatio: If the contribution mints zero shares.
        """
        ledger = self._ledger(pool_id)
        with operation_context("add_liquidity", provider_id):
            return await self._liquidity.add_liquidity(
                ledger, provider_id, base_in, quote_in, timestamp=self._clock()
            )

    async def remove_liquidity(
        self,
        pool_id: str,
        provider_id: str,
        shares: Decimal,
    ) -> RemovalReceipt:
        """Burn shares for pro-rata reserves; see LiquidityLedger.remove_liquidity.

        Raises:
            PoolNotFound: If pool_id is unknown.
            InvalidAmount: If shares is not positive.
            InsufficientShares: If the provider holds fewer shares.
        """
        ledger = self._ledger(pool_id)
        with operation_context("remove_liquidity", provider_id):
            return await self._liquidity.remove_liquidity(
                ledger, provider_id, shares, timestamp=self._clock()
            )

    # ──────────────────────────────────────────────
    # Candles and chart statistics
    # ──────────────────────────────────────────────

    async def get_candles(
        self,
        pool_id: str,
        timeframe: Timeframe | str | None = None,
        limit: int | None = None,
        start: float | None = None,
        end: float | None = None,
    ) -> list[Candle]:
        """Return gap-filled OHLCV candles for a pool, oldest first.

        A pool with no trades returns an empty list.

        Raises:
            PoolNotFound: If pool_id is unknown.
            InvalidTimeframe: If timeframe is not supported.
        """
        trades = self._ledger(pool_id).trade_log.snapshot()
        return self._candles.candles(trades, timeframe, limit=limit, start=start, end=end)

    async def get_latest_price(self, pool_id: str) -> LatestPrice | None:
        return latest_price(self._ledger(pool_id).trade_log.snapshot())

    async def get_price_change(self, pool_id: str, period: str = "24h") -> PriceChange:
        trades = self._ledger(pool_id).trade_log.snapshot()
        return price_change(trades, period, now=self._clock())

    async def get_volume_summary(self, pool_id: str, period: str = "24h") -> VolumeSummary:
        trades = self._ledger(pool_id).trade_log.snapshot()
        return volume_summary(trades, period, now=self._clock())

    async def get_trade_stats(self, pool_id: str) -> TradeStats:
        """Return lifetime trade totals for a pool (counts, volumes, fees, sizes)."""
        return trade_stats(self._ledger(pool_id).trade_log.snapshot())

    # ──────────────────────────────────────────────
    # Read-only inspection
    # ──────────────────────────────────────────────

    def get_pool(self, pool_id: str) -> PoolSnapshot:
        """Return a snapshot of a pool's reserves, supply, price and fees."""
        return self._ledger(pool_id).snapshot()

    def list_pools(self, creator_id: str | None = None) -> list[PoolSnapshot]:
        """Return snapshots of all pools, newest first, optionally by creator."""
        ledgers = sorted(
            self._pools.values(), key=lambda ledger: ledger.pool.created_at, reverse=True
        )
        return [
            ledger.snapshot()
            for ledger in ledgers
            if creator_id is None or ledger.pool.creator_id == creator_id
        ]

    def get_trades(
        self,
        pool_id: str,
        limit: int | None = None,
        side: TradeSide | str | None = None,
    ) -> tuple[Trade, ...]:
        """Return a pool's trades, optionally filtered by side.

        Without a limit the whole log comes back oldest first. With a limit,
        the most recent ``limit`` trades come back newest first.

        Raises:
            PoolNotFound: If pool_id is unknown.
            InvalidAmount: If limit is given and not positive.
            ValidationError: If side is not buy or sell.
        """
        trade_log = self._ledger(pool_id).trade_log
        wanted = _parse_side(side) if side is not None else None
        if limit is not None:
            _check_limit(limit)
            return trade_log.recent(limit, wanted)
        trades = trade_log.snapshot()
        if wanted is None:
            return trades
        return tuple(t for t in trades if t.side == wanted)

    def get_trader_trades(
        self,
        trader_id: str,
        pool_id: str | None = None,
        limit: int | None = None,
    ) -> list[Trade]:
        """Return a trader's trades across pools (or in one pool), newest first.

        Raises:
            PoolNotFound: If pool_id is given and unknown.
            InvalidAmount: If limit is given and not positive.
        """
        if limit is not None:
            _check_limit(limit)
        ledgers = [self._ledger(pool_id)] if pool_id is not None else self._pools.values()

        trades: list[Trade] = []
        for ledger in ledgers:
            trades.extend(reversed(ledger.trade_log.by_trader(trader_id)))
        # Stable: trades sharing a timestamp stay newest first.
        trades.sort(key=lambda t: t.timestamp, reverse=True)
        if limit is not None:
            return trades[:limit]
        return trades

    def get_position(self, pool_id: str, provider_id: str) -> LPPosition | None:
        self._ledger(pool_id)
        return self._liquidity.get_position(pool_id, provider_id)

    def get_positions(self, provider_id: str) -> list[LPPosition]:
        return self._liquidity.positions_for_provider(provider_id)

    def get_pool_positions(self, pool_id: str) -> list[LPPosition]:
        self._ledger(pool_id)
        return self._liquidity.positions_for_pool(pool_id)
