"""Append-only trade record log for one pool.

The log is the single source of truth shared by the pool ledger (writer) and
candle/statistics readers. Records are immutable Trade instances; readers get
a tuple copy, so they always see a consistent prefix and never a record that
is half-written.
"""

from collections.abc import Iterator

from amm.models import Trade, TradeSide


class TradeLog:
    """Append-only, in-order list of executed trades."""

    def __init__(self, pool_id: str) -> None:
        self._pool_id = pool_id
        self._trades: list[Trade] = []

    @property
    def pool_id(self) -> str:
        return self._pool_id

    def append(self, trade: Trade) -> None:
        """Append a trade. Trades from other pools are rejected."""
        if trade.pool_id != self._pool_id:
            raise ValueError(
                f"Trade for pool {trade.pool_id} cannot be logged in pool {self._pool_id}"
            )
        self._trades.append(trade)

    def snapshot(self) -> tuple[Trade, ...]:
        """Return every trade recorded so far, oldest first."""
        return tuple(self._trades)

    def since(self, start: float) -> tuple[Trade, ...]:
        """Return trades with timestamp >= start, oldest first."""
        return tuple(t for t in self._trades if t.timestamp >= start)

    def recent(self, limit: int, side: TradeSide | None = None) -> tuple[Trade, ...]:
        """Return up to limit trades, newest first, optionally of one side."""
        picked: list[Trade] = []
        for trade in reversed(self._trades):
            if len(picked) >= limit:
                break
            if side is None or trade.side == side:
                picked.append(trade)
        return tuple(picked)

    def by_trader(self, trader_id: str) -> tuple[Trade, ...]:
        """Return one trader's trades, oldest first."""
        return tuple(t for t in self._trades if t.trader_id == trader_id)

    def latest(self) -> Trade | None:
        return self._trades[-1] if self._trades else None

    def __len__(self) -> int:
        return len(self._trades)

    def __iter__(self) -> Iterator[Trade]:
        return iter(self.snapshot())
