"""Volume simulation: drive a pool with synthetic traders on a simulated clock.

Generates a reproducible stream of buys and sells against one pool so charts,
statistics and fee accrual can be exercised without real users:

1. Split the base budget evenly across ``wallet_count`` synthetic wallets
2. Each step, pick buy or sell by ``buy_ratio`` and rotate to the next wallet
3. Buys spend a random size in [min_trade_size, max_trade_size] of base
4. Sells spend 10-50% of the tokens that wallet acquired earlier
5. Advance the clock by ``trade_interval_seconds``

A step the wallet cannot fund falls back to the opposite side, and is skipped
when neither side is possible. Rejected swaps are counted, never retried.
The session stops after ``trade_count`` steps or when the remaining budget
drops below ``min_trade_size``.
"""

import random
from dataclasses import dataclass, field
from decimal import Decimal

from amm.config import SimulationSettings
from amm.engine import ExchangeEngine
from amm.exceptions import InvariantGuardError
from amm.logging import get_logger
from amm.models import TradeSide
from amm.pricing.units import truncate_units, working_precision

logger = get_logger(__name__)

SELL_FRACTION_RANGE = (0.1, 0.5)


class SimulatedClock:
    """Manually advanced Unix-seconds clock shared with the engine."""

    def __init__(self, start: float) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class SimulatedWallet:
    """Synthetic trader balances in raw units."""

    trader_id: str
    base: Decimal
    tokens: Decimal = Decimal("0")


@dataclass
class SessionMetrics:
    """Summary of one simulation session."""

    pool_id: str
    start_price: Decimal
    end_price: Decimal = Decimal("0")
    total_trades: int = 0
    buy_trades: int = 0
    sell_trades: int = 0
    rejected_trades: int = 0
    skipped_steps: int = 0
    total_volume: Decimal = Decimal("0")  # base side
    remaining_budget: Decimal = Decimal("0")
    wallets: list[SimulatedWallet] = field(default_factory=list)


class VolumeSimulator:
    """Runs one synthetic trading session against an engine pool.

    Args:
        engine: Engine holding the pool.
        clock: The engine's clock; advanced between trades.
        settings: Session parameters.
    """

    def __init__(
        self,
        engine: ExchangeEngine,
        clock: SimulatedClock,
        settings: SimulationSettings | None = None,
    ) -> None:
        self._engine = engine
        self._clock = clock
        self._settings = settings or SimulationSettings()
        self._rng = random.Random(self._settings.seed)

    def _trade_size(self, remaining_budget: Decimal) -> Decimal:
        low = float(self._settings.min_trade_size)
        high = float(self._settings.max_trade_size)
        size = truncate_units(Decimal(str(self._rng.uniform(low, high))))
        return min(size, remaining_budget)

    def _sell_size(self, tokens: Decimal) -> Decimal:
        fraction = Decimal(str(self._rng.uniform(*SELL_FRACTION_RANGE)))
        return truncate_units(tokens * fraction)

    async def run(self, pool_id: str) -> SessionMetrics:
        """Run the session to completion and return its metrics.

        Raises:
            PoolNotFound: If pool_id is unknown.
        """
        settings = self._settings
        pool = self._engine.get_pool(pool_id)
        share = truncate_units(settings.budget / settings.wallet_count)
        wallets = [
            SimulatedWallet(trader_id=f"sim-{i}", base=share)
            for i in range(settings.wallet_count)
        ]
        metrics = SessionMetrics(pool_id=pool_id, start_price=pool.price, wallets=wallets)
        remaining_budget = share * settings.wallet_count

        logger.info(
            "simulation_started",
            pool_id=pool_id,
            wallets=settings.wallet_count,
            budget=str(remaining_budget),
            trade_count=settings.trade_count,
            buy_ratio=settings.buy_ratio,
            seed=settings.seed,
        )

        for step in range(settings.trade_count):
            if remaining_budget < settings.min_trade_size:
                break

            wallet = wallets[step % len(wallets)]
            wants_buy = self._rng.random() < settings.buy_ratio
            buy_size = self._trade_size(remaining_budget)
            can_buy = buy_size > 0 and wallet.base >= buy_size
            can_sell = wallet.tokens > 0

            if can_buy and (wants_buy or not can_sell):
                side, amount_in = TradeSide.BUY, buy_size
            elif can_sell:
                side, amount_in = TradeSide.SELL, self._sell_size(wallet.tokens)
            else:
                side, amount_in = None, Decimal("0")

            if side is None or amount_in <= 0:
                metrics.skipped_steps += 1
                self._clock.advance(settings.trade_interval_seconds)
                continue

            try:
                trade = await self._engine.swap(pool_id, side, amount_in, wallet.trader_id)
            except InvariantGuardError:
                metrics.rejected_trades += 1
            else:
                with working_precision():
                    if side == TradeSide.BUY:
                        wallet.base -= trade.amount_in
                        wallet.tokens += trade.amount_out
                        remaining_budget -= trade.amount_in
                        metrics.buy_trades += 1
                    else:
                        wallet.tokens -= trade.amount_in
                        wallet.base += trade.amount_out
                        metrics.sell_trades += 1
                    metrics.total_trades += 1
                    metrics.total_volume += trade.base_amount

            self._clock.advance(settings.trade_interval_seconds)

        metrics.end_price = self._engine.get_pool(pool_id).price
        metrics.remaining_budget = remaining_budget

        logger.info(
            "simulation_complete",
            pool_id=pool_id,
            total_trades=metrics.total_trades,
            buy_trades=metrics.buy_trades,
            sell_trades=metrics.sell_trades,
            rejected_trades=metrics.rejected_trades,
            skipped_steps=metrics.skipped_steps,
            total_volume=str(metrics.total_volume),
            start_price=str(metrics.start_price),
            end_price=str(metrics.end_price),
        )
        return metrics
