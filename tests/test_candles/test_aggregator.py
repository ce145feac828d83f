"""Tests for OHLCV candle aggregation.

Verifies:
- bucket alignment to timeframe boundaries
- OHLC from price_after, volume from base-side size, trade counts
- gap filling with flat candles at the previous close
- limit keeps the most recent candles, window bounds filter trades
- invalid timeframe/limit rejected, empty input gives no candles
"""

from decimal import Decimal

import pytest

from amm.candles.aggregator import (
    CandleAggregator,
    Timeframe,
    aggregate_candles,
    bucket_start,
)
from amm.config import CandleSettings
from amm.exceptions import InvalidAmount, InvalidTimeframe
from amm.models import Trade, TradeSide


def _make_trade(
    timestamp: float,
    price: str,
    base_amount: str = "1",
    side: TradeSide = TradeSide.BUY,
) -> Trade:
    """Build a trade whose base-side size is base_amount."""
    if side == TradeSide.BUY:
        amount_in, amount_out = Decimal(base_amount), Decimal("1")
    else:
        amount_in, amount_out = Decimal("1"), Decimal(base_amount)
    return Trade(
        pool_id="pool-1",
        side=side,
        amount_in=amount_in,
        amount_out=amount_out,
        fee_paid=Decimal("0"),
        price_after=Decimal(price),
        price_impact_pct=Decimal("0"),
        timestamp=timestamp,
        trader_id="bob",
    )


class TestTimeframe:
    def test_parse_string(self) -> None:
        assert Timeframe.parse("15m") is Timeframe.M15
        assert Timeframe.parse(Timeframe.H4) is Timeframe.H4

    def test_seconds(self) -> None:
        assert Timeframe.M1.seconds == 60
        assert Timeframe.D1.seconds == 86400

    def test_invalid(self) -> None:
        with pytest.raises(InvalidTimeframe):
            Timeframe.parse("2h")

    def test_bucket_alignment(self) -> None:
        assert bucket_start(1_700_000_123.9, Timeframe.M5) == 1_700_000_100
        assert bucket_start(1_700_000_123, Timeframe.M1) == 1_700_000_100
        assert bucket_start(120, Timeframe.M1) == 120

    def test_fractional_timestamp_floors_toward_past(self) -> None:
        assert bucket_start(59.9, Timeframe.M1) == 0
        assert bucket_start(-0.5, Timeframe.M1) == -60
        assert bucket_start(-60, Timeframe.M1) == -60
        assert bucket_start(-60.25, Timeframe.M1) == -120


class TestAggregateCandles:
    """Test aggregate_candles bucketing and OHLCV math."""

    def test_single_bucket_ohlcv(self) -> None:
        trades = [
            _make_trade(120, "100", "1"),
            _make_trade(130, "105", "2"),
            _make_trade(170, "98", "1"),
        ]

        candles = aggregate_candles(trades, "1m")

        assert len(candles) == 1
        candle = candles[0]
        assert candle.time_bucket_start == 120
        assert candle.open == Decimal("100")
        assert candle.high == Decimal("105")
        assert candle.low == Decimal("98")
        assert candle.close == Decimal("98")
        assert candle.volume == Decimal("4")
        assert candle.trade_count == 3

    def test_sell_volume_counts_base_out(self) -> None:
        trades = [_make_trade(60, "2", "7", side=TradeSide.SELL)]

        candles = aggregate_candles(trades, Timeframe.M1)

        assert candles[0].volume == Decimal("7")

    def test_gap_filled_with_previous_close(self) -> None:
        trades = [_make_trade(60, "10"), _make_trade(250, "12", "3")]

        candles = aggregate_candles(trades, "1m")

        assert [c.time_bucket_start for c in candles] == [60, 120, 180, 240]
        for gap in candles[1:3]:
            assert gap.open == gap.high == gap.low == gap.close == Decimal("10")
            assert gap.volume == Decimal("0")
            assert gap.trade_count == 0
        assert candles[-1].close == Decimal("12")
        assert candles[-1].volume == Decimal("3")

    def test_gap_fill_disabled(self) -> None:
        trades = [_make_trade(60, "10"), _make_trade(250, "12")]

        candles = aggregate_candles(trades, "1m", fill_gaps=False)

        assert [c.time_bucket_start for c in candles] == [60, 240]

    def test_limit_keeps_most_recent(self) -> None:
        trades = [_make_trade(60 * i, str(100 + i)) for i in range(1, 6)]

        candles = aggregate_candles(trades, "1m", limit=2)

        assert [c.time_bucket_start for c in candles] == [240, 300]

    def test_limit_larger_than_available(self) -> None:
        trades = [_make_trade(60 * i, "1") for i in range(1, 4)]
        assert len(aggregate_candles(trades, "1m", limit=10)) == 3

    def test_empty_trades(self) -> None:
        assert aggregate_candles([], "1h") == []

    def test_unsorted_input(self) -> None:
        trades = [_make_trade(130, "3"), _make_trade(120, "1"), _make_trade(125, "2")]

        candle = aggregate_candles(trades, "1m")[0]

        assert candle.open == Decimal("1")
        assert candle.close == Decimal("3")

    def test_same_timestamp_keeps_input_order(self) -> None:
        trades = [_make_trade(120, "5"), _make_trade(120, "6")]

        candle = aggregate_candles(trades, "1m")[0]

        assert candle.open == Decimal("5")
        assert candle.close == Decimal("6")

    def test_window_bounds(self) -> None:
        trades = [_make_trade(60, "1"), _make_trade(120, "2"), _make_trade(180, "3")]

        candles = aggregate_candles(trades, "1m", start=120, end=180)

        assert [c.time_bucket_start for c in candles] == [120]

    def test_window_with_no_trades(self) -> None:
        trades = [_make_trade(60, "1")]
        assert aggregate_candles(trades, "1m", start=1000) == []

    def test_strictly_ascending(self) -> None:
        trades = [_make_trade(t, "1") for t in (5000, 61, 900, 3601, 62)]

        candles = aggregate_candles(trades, "5m")

        starts = [c.time_bucket_start for c in candles]
        assert starts == sorted(set(starts))
        assert all(s % 300 == 0 for s in starts)

    def test_idempotent(self) -> None:
        trades = [_make_trade(60 * i, str(i)) for i in range(1, 10)]
        assert aggregate_candles(trades, "5m") == aggregate_candles(trades, "5m")

    def test_invalid_timeframe(self) -> None:
        with pytest.raises(InvalidTimeframe):
            aggregate_candles([_make_trade(60, "1")], "2m")

    @pytest.mark.parametrize("limit", [0, -3])
    def test_invalid_limit(self, limit: int) -> None:
        with pytest.raises(InvalidAmount):
            aggregate_candles([_make_trade(60, "1")], "1m", limit=limit)


class TestCandleAggregator:
    """Test CandleAggregator settings defaults."""

    def test_defaults_from_settings(self) -> None:
        aggregator = CandleAggregator(
            CandleSettings(default_timeframe="1h", default_limit=2, max_limit=10)
        )
        trades = [_make_trade(3600 * i, str(i)) for i in range(1, 5)]

        candles = aggregator.candles(trades)

        assert [c.time_bucket_start for c in candles] == [3 * 3600, 4 * 3600]

    def test_limit_clamped_to_max(self) -> None:
        aggregator = CandleAggregator(
            CandleSettings(default_timeframe="1m", default_limit=2, max_limit=3)
        )
        trades = [_make_trade(60 * i, "1") for i in range(1, 8)]

        assert len(aggregator.candles(trades, limit=500)) == 3

    def test_fill_gaps_setting(self) -> None:
        aggregator = CandleAggregator(CandleSettings(default_timeframe="1m", fill_gaps=False))
        trades = [_make_trade(60, "1"), _make_trade(600, "2")]

        assert len(aggregator.candles(trades)) == 2
