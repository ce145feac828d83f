"""OHLCV candle aggregation from a pool's trade records.

Stateless per call: consuming trades -> bucketing -> gap-filling -> done.
Nothing is cached between calls, so candles can never drift from the trade
log and identical calls return identical sequences.

Bucketing floors each trade timestamp to its timeframe boundary
(ts - ts % seconds). Within a bucket: open = first trade's price, high/low =
running max/min, close = last trade's price, volume = sum of base-side sizes.

Gap filling inserts flat candles (OHLC = previous close, zero volume, zero
trades) between non-empty buckets so charts get a contiguous time axis. It is
a charting convention and can be switched off per call or via CandleSettings.
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from amm.config import CandleSettings
from amm.exceptions import InvalidAmount, InvalidTimeframe
from amm.models import Candle, Trade
from amm.pricing.units import working_precision

_TIMEFRAME_SECONDS = {
    "1m": 60,
    "5m": 5 * 60,
    "15m": 15 * 60,
    "1h": 60 * 60,
    "4h": 4 * 60 * 60,
    "1d": 24 * 60 * 60,
}


class Timeframe(str, Enum):
    """Supported candle widths."""

    M1 = "1m"
    M5 = "5m"
    M15 = "15m"
    H1 = "1h"
    H4 = "4h"
    D1 = "1d"

    @property
    def seconds(self) -> int:
        return _TIMEFRAME_SECONDS[self.value]

    @classmethod
    def parse(cls, value: "Timeframe | str") -> "Timeframe":
        """Resolve a Timeframe from an enum member or its string form.

        Raises:
            InvalidTimeframe: If the value is not one of 1m, 5m, 15m, 1h, 4h, 1d.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            valid = ", ".join(t.value for t in cls)
            raise InvalidTimeframe(
                f"Invalid timeframe: {value}. Valid options: {valid}"
            ) from None


def bucket_start(timestamp: float, timeframe: Timeframe) -> int:
    """Floor a Unix timestamp (seconds) to its timeframe boundary."""
    seconds = math.floor(timestamp)
    return seconds - seconds % timeframe.seconds


@dataclass
class _Bucket:
    """Mutable accumulator for one candle while trades are consumed."""

    start: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal
    trade_count: int

    def add(self, price: Decimal, base_amount: Decimal) -> None:
        self.high = max(self.high, price)
        self.low = min(self.low, price)
        self.close = price
        with working_precision():
            self.volume += base_amount
        self.trade_count += 1

    def freeze(self) -> Candle:
        return Candle(
            time_bucket_start=self.start,
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.close,
            volume=self.volume,
            trade_count=self.trade_count,
        )


def _flat_candle(start: int, price: Decimal) -> Candle:
    return Candle(
        time_bucket_start=start,
        open=price,
        high=price,
        low=price,
        close=price,
        volume=Decimal("0"),
        trade_count=0,
    )


def _fill_gaps(candles: list[Candle], timeframe: Timeframe) -> list[Candle]:
    """Insert flat candles for every missing bucket between consecutive candles.

    Args:
        candles: Non-empty buckets in strictly ascending order.
        timeframe: Width of each bucket.

    Returns:
        Contiguous candle list with a constant step of timeframe.seconds.
    """
    if len(candles) <= 1:
        return list(candles)

    step = timeframe.seconds
    filled: list[Candle] = []
    for current, following in zip(candles, candles[1:]):
        filled.append(current)
        gap_start = current.time_bucket_start + step
        while gap_start < following.time_bucket_start:
            filled.append(_flat_candle(gap_start, current.close))
            gap_start += step
    filled.append(candles[-1])
    return filled


def aggregate_candles(
    trades: Iterable[Trade],
    timeframe: Timeframe | str,
    limit: int | None = None,
    start: float | None = None,
    end: float | None = None,
    fill_gaps: bool = True,
) -> list[Candle]:
    """Aggregate trades into ascending OHLCV candles.

    Args:
        trades: Trade records for one pool, in any order.
        timeframe: Candle width (Timeframe or its string form).
        limit: Keep only the most recent ``limit`` candles. None keeps all.
            Asking for more than exist returns what exists, without padding.
        start: Ignore trades before this Unix time (inclusive bound).
        end: Ignore trades at or after this Unix time (exclusive bound).
        fill_gaps: Synthesize flat candles for empty buckets between trades.

    Returns:
        Candles strictly ascending by time_bucket_start. Empty list when no
        trade falls inside the window.

    Raises:
        InvalidTimeframe: If timeframe is not supported.
        InvalidAmount: If limit is given and not positive.
    """
    tf = Timeframe.parse(timeframe)
    if limit is not None and limit <= 0:
        raise InvalidAmount(f"Candle limit must be positive, got {limit}")

    selected = [
        t
        for t in trades
        if (start is None or t.timestamp >= start) and (end is None or t.timestamp < end)
    ]
    if not selected:
        return []
    # Stable sort keeps log order for trades sharing a timestamp.
    selected.sort(key=lambda t: t.timestamp)

    buckets: list[_Bucket] = []
    for trade in selected:
        key = bucket_start(trade.timestamp, tf)
        if buckets and buckets[-1].start == key:
            buckets[-1].add(trade.price_after, trade.base_amount)
            continue
        buckets.append(
            _Bucket(
                start=key,
                open=trade.price_after,
                high=trade.price_after,
                low=trade.price_after,
                close=trade.price_after,
                volume=trade.base_amount,
                trade_count=1,
            )
        )

    candles = [b.freeze() for b in buckets]
    if fill_gaps:
        candles = _fill_gaps(candles, tf)

    if limit is not None and len(candles) > limit:
        candles = candles[-limit:]
    return candles


class CandleAggregator:
    """Candle reader that applies CandleSettings defaults.

    Holds configuration only; every call recomputes from the trades passed in.

    Args:
        settings: Candle defaults (timeframe, limit, max limit, gap policy).
    """

    def __init__(self, settings: CandleSettings | None = None) -> None:
        self._settings = settings or CandleSettings()

    def candles(
        self,
        trades: Iterable[Trade],
        timeframe: Timeframe | str | None = None,
        limit: int | None = None,
        start: float | None = None,
        end: float | None = None,
    ) -> list[Candle]:
        """Aggregate with configured defaults; limit is capped at max_limit."""
        tf = Timeframe.parse(timeframe or self._settings.default_timeframe)
        resolved_limit = limit if limit is not None else self._settings.default_limit
        if resolved_limit > self._settings.max_limit:
            resolved_limit = self._settings.max_limit
        return aggregate_candles(
            trades,
            tf,
            limit=resolved_limit,
            start=start,
            end=end,
            fill_gaps=self._settings.fill_gaps,
        )
