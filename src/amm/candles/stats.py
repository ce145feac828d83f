"""Chart summary statistics computed from a pool's trade records.

Pure functions over trades, like the candle aggregator: the caller passes the
evaluation time explicitly so results are reproducible.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from amm.exceptions import InvalidTimeframe
from amm.models import Trade, TradeSide
from amm.pricing.units import truncate_pct, truncate_units, working_precision

STATS_PERIOD_SECONDS = {
    "1h": 60 * 60,
    "24h": 24 * 60 * 60,
    "7d": 7 * 24 * 60 * 60,
    "30d": 30 * 24 * 60 * 60,
}


@dataclass
class LatestPrice:
    """Most recent executed trade's price and size."""

    price: Decimal
    timestamp: float
    side: TradeSide
    base_amount: Decimal
    quote_amount: Decimal


@dataclass
class PriceChange:
    """Price movement between the first trade in a period and the latest trade."""

    period: str
    current_price: Decimal
    old_price: Decimal
    change: Decimal
    change_pct: Decimal


@dataclass
class VolumeSummary:
    """Base-side traded volume over a period, split by side."""

    period: str
    total_volume: Decimal
    buy_volume: Decimal
    sell_volume: Decimal
    total_trades: int
    buy_count: int
    sell_count: int
    buy_ratio_pct: Decimal


@dataclass
class TradeStats:
    """Lifetime trade totals for a pool."""

    total_trades: int = 0
    buy_count: int = 0
    sell_count: int = 0
    total_volume: Decimal = Decimal("0")
    buy_volume: Decimal = Decimal("0")
    sell_volume: Decimal = Decimal("0")
    quote_volume: Decimal = Decimal("0")
    fees_base: Decimal = Decimal("0")
    fees_quote: Decimal = Decimal("0")
    avg_trade_size: Decimal = Decimal("0")
    max_trade_size: Decimal = Decimal("0")


def period_seconds(period: str) -> int:
    """Return the length of a statistics period.

    Raises:
        InvalidTimeframe: If period is not one of 1h, 24h, 7d, 30d.
    """
    try:
        return STATS_PERIOD_SECONDS[period]
    except KeyError:
        valid = ", ".join(STATS_PERIOD_SECONDS)
        raise InvalidTimeframe(f"Invalid period: {period}. Valid options: {valid}") from None


def latest_price(trades: Iterable[Trade]) -> LatestPrice | None:
    """Return the latest trade's price, or None when there are no trades."""
    latest: Trade | None = None
    for trade in trades:
        if latest is None or trade.timestamp >= latest.timestamp:
            latest = trade
    if latest is None:
        return None

    return LatestPrice(
        price=latest.price_after,
        timestamp=latest.timestamp,
        side=latest.side,
        base_amount=latest.base_amount,
        quote_amount=latest.quote_amount,
    )


def price_change(trades: Iterable[Trade], period: str, now: float) -> PriceChange:
    """Compare the latest price with the first price inside the period.

    Returns zero change when the pool has no trades at all, or none inside
    the period.

    Args:
        trades: Trade records for one pool.
        period: One of 1h, 24h, 7d, 30d.
        now: Evaluation time in Unix seconds.
    """
    window_start = now - period_seconds(period)
    ordered = sorted(trades, key=lambda t: t.timestamp)
    in_window = [t for t in ordered if t.timestamp >= window_start]

    zero = Decimal("0")
    if not ordered or not in_window:
        return PriceChange(
            period=period, current_price=zero, old_price=zero, change=zero, change_pct=zero
        )

    current = ordered[-1].price_after
    old = in_window[0].price_after
    with working_precision():
        change = current - old
        change_pct = truncate_pct(change / old * 100) if old > 0 else zero

    return PriceChange(
        period=period,
        current_price=current,
        old_price=old,
        change=change,
        change_pct=change_pct,
    )


def trade_stats(trades: Iterable[Trade]) -> TradeStats:
    """Lifetime totals over every trade passed in.

    Fees are kept per side because each trade pays its fee in the input asset.
    Average and maximum sizes are base-side; the average truncates to a whole
    raw unit. All figures are zero for an empty input.
    """
    stats = TradeStats()
    with working_precision():
        for trade in trades:
            size = trade.base_amount
            if trade.side == TradeSide.BUY:
                stats.buy_count += 1
                stats.buy_volume += size
                stats.fees_base += trade.fee_paid
            else:
                stats.sell_count += 1
                stats.sell_volume += size
                stats.fees_quote += trade.fee_paid
            stats.quote_volume += trade.quote_amount
            stats.max_trade_size = max(stats.max_trade_size, size)

        stats.total_trades = stats.buy_count + stats.sell_count
        stats.total_volume = stats.buy_volume + stats.sell_volume
        if stats.total_trades > 0:
            stats.avg_trade_size = truncate_units(stats.total_volume / stats.total_trades)
    return stats


def volume_summary(trades: Iterable[Trade], period: str, now: float) -> VolumeSummary:
    """Summarize base-side volume and trade counts inside the period.

    Args:
        trades: Trade records for one pool.
        period: One of 1h, 24h, 7d, 30d.
        now: Evaluation time in Unix seconds.
    """
    window_start = now - period_seconds(period)
    stats = trade_stats(t for t in trades if t.timestamp >= window_start)

    if stats.total_trades > 0:
        with working_precision():
            buy_ratio_pct = truncate_pct(
                Decimal(stats.buy_count) / Decimal(stats.total_trades) * 100
            )
    else:
        buy_ratio_pct = Decimal("0")

    return VolumeSummary(
        period=period,
        total_volume=stats.total_volume,
        buy_volume=stats.buy_volume,
        sell_volume=stats.sell_volume,
        total_trades=stats.total_trades,
        buy_count=stats.buy_count,
        sell_count=stats.sell_count,
        buy_ratio_pct=buy_ratio_pct,
    )
