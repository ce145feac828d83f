"""Entry point: run a simulated trading session against a fresh pool.

Component wiring order:
1. AppSettings (configuration)
2. Logging setup
3. SimulatedClock (engine and simulator share it)
4. ExchangeEngine
5. Pool seeded with the simulation's initial reserves
6. VolumeSimulator session
7. Candle and statistics summary
"""

import asyncio
import time

from amm.config import AppSettings
from amm.engine import ExchangeEngine
from amm.logging import get_logger, setup_logging
from amm.simulation import SessionMetrics, SimulatedClock, VolumeSimulator


async def run(settings: AppSettings | None = None) -> SessionMetrics:
    """Run one simulation session and log its chart summary."""
    # 1. Load settings
    if settings is None:
        settings = AppSettings()

    # 2. Setup logging
    setup_logging(settings.log_level, settings.log_format)
    logger = get_logger("amm.main")

    # 3-4. Build the engine on a simulated clock
    clock = SimulatedClock(start=float(int(time.time())))
    engine = ExchangeEngine(settings=settings, clock=clock)

    # 5. Seed the pool
    sim = settings.simulation
    pool, position = await engine.create_pool(
        provider_id="sim-creator",
        base_amount=sim.initial_base,
        quote_amount=sim.initial_quote,
    )
    logger.info(
        "simulation_pool_ready",
        pool_id=pool.id,
        price=str(pool.price),
        lp_shares=str(position.lp_shares),
        fee_rate_bps=pool.fee_rate_bps,
    )

    # 6. Run the session
    metrics = await VolumeSimulator(engine, clock, sim).run(pool.id)

    # 7. Summarize
    candles = await engine.get_candles(pool.id, sim.timeframe, limit=settings.candles.max_limit)
    change = await engine.get_price_change(pool.id, "24h")
    volume = await engine.get_volume_summary(pool.id, "24h")
    snapshot = engine.get_pool(pool.id)

    logger.info(
        "simulation_summary",
        pool_id=pool.id,
        candles=len(candles),
        timeframe=sim.timeframe,
        price_change_pct=str(change.change_pct),
        volume_24h=str(volume.total_volume),
        buy_ratio_pct=str(volume.buy_ratio_pct),
        fees_base=str(snapshot.fees_base),
        fees_quote=str(snapshot.fees_quote),
        lp_supply=str(snapshot.lp_supply),
    )
    for candle in candles:
        logger.debug("candle", pool_id=pool.id, **candle.to_dict())

    return metrics


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
