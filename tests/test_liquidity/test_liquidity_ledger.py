"""Tests for LiquidityLedger: positions, add/remove, share conservation.

Verifies:
- add trims to the pool ratio, mints pro rata and reports refunds
- remove releases pro-rata reserves and deletes emptied positions
- sum of position shares always equals pool.lp_supply
- failed operations change nothing
- a fully drained pool can be re-seeded
- reserves, shares and refunds stay exact on very large pools
"""

from decimal import Decimal

import pytest

from amm.exceptions import DegenerateRatio, InsufficientShares, InvalidAmount, ZeroLiquidity
from amm.liquidity.ledger import LiquidityLedger
from amm.models import TradeSide
from amm.pool.ledger import PoolLedger


def _seed(
    base: str = "1000", quote: str = "4000", fee_rate_bps: int = 30
) -> tuple[PoolLedger, LiquidityLedger]:
    """Create pool 'p1' owned by alice and register her bootstrap position."""
    ledger, bootstrap = PoolLedger.create(
        pool_id="p1",
        creator_id="alice",
        base_amount=Decimal(base),
        quote_amount=Decimal(quote),
        fee_rate_bps=fee_rate_bps,
        timestamp=1_000.0,
    )
    liquidity = LiquidityLedger()
    liquidity.open_position(
        pool_id="p1",
        provider_id="alice",
        shares=bootstrap.minted_shares,
        base_contributed=bootstrap.base_accepted,
        quote_contributed=bootstrap.quote_accepted,
        timestamp=1_000.0,
    )
    return ledger, liquidity


class TestAddLiquidity:
    """Test add_liquidity trimming, minting and position updates."""

    @pytest.mark.asyncio
    async def test_add_trims_and_refunds(self) -> None:
        ledger, liquidity = _seed()

        receipt = await liquidity.add_liquidity(
            ledger, "bob", Decimal("100"), Decimal("1000"), timestamp=2_000.0
        )

        assert receipt.minted_shares == Decimal("200")
        assert receipt.base_accepted == Decimal("100")
        assert receipt.quote_accepted == Decimal("400")
        assert receipt.base_refund == Decimal("0")
        assert receipt.quote_refund == Decimal("600")
        assert receipt.position_shares == Decimal("200")
        assert ledger.pool.base_reserve == Decimal("1100")
        assert ledger.pool.quote_reserve == Decimal("4400")
        assert ledger.pool.lp_supply == Decimal("2200")
        # Ratio preserved: price unchanged
        assert ledger.pool.price == Decimal("0.25")

    @pytest.mark.asyncio
    async def test_repeat_add_tops_up_position(self) -> None:
        ledger, liquidity = _seed()

        await liquidity.add_liquidity(ledger, "bob", Decimal("100"), Decimal("400"))
        receipt = await liquidity.add_liquidity(ledger, "bob", Decimal("100"), Decimal("400"))

        position = liquidity.get_position("p1", "bob")
        assert position is not None
        assert position.lp_shares == receipt.position_shares
        assert position.base_contributed == Decimal("200")
        assert position.quote_contributed == Decimal("800")
        assert liquidity.total_shares("p1") == ledger.pool.lp_supply

    @pytest.mark.asyncio
    async def test_zero_contribution_rejected(self) -> None:
        ledger, liquidity = _seed()
        before = ledger.pool.to_dict()

        with pytest.raises(ZeroLiquidity):
            await liquidity.add_liquidity(ledger, "bob", Decimal("0"), Decimal("0"))

        assert ledger.pool.to_dict() == before
        assert liquidity.get_position("p1", "bob") is None

    @pytest.mark.asyncio
    async def test_dust_contribution_rejected(self) -> None:
        ledger, liquidity = _seed(base="10000", quote="40000")
        before = ledger.pool.to_dict()

        with pytest.raises(DegenerateRatio):
            await liquidity.add_liquidity(ledger, "bob", Decimal("1"), Decimal("4"))

        assert ledger.pool.to_dict() == before
        assert liquidity.get_position("p1", "bob") is None
        assert not ledger.lock.locked()

    @pytest.mark.asyncio
    async def test_negative_amount_rejected(self) -> None:
        ledger, liquidity = _seed()
        with pytest.raises(InvalidAmount):
            await liquidity.add_liquidity(ledger, "bob", Decimal("-1"), Decimal("4"))


class TestRemoveLiquidity:
    """Test remove_liquidity payouts and position cleanup."""

    @pytest.mark.asyncio
    async def test_remove_all_of_position_deletes_it(self) -> None:
        ledger, liquidity = _seed()
        await liquidity.add_liquidity(ledger, "bob", Decimal("100"), Decimal("1000"))

        receipt = await liquidity.remove_liquidity(ledger, "bob", Decimal("200"))

        assert receipt.base_out == Decimal("100")
        assert receipt.quote_out == Decimal("400")
        assert receipt.remaining_shares == Decimal("0")
        assert liquidity.get_position("p1", "bob") is None
        assert ledger.pool.lp_supply == Decimal("2000")
        assert liquidity.total_shares("p1") == ledger.pool.lp_supply

    @pytest.mark.asyncio
    async def test_partial_remove_keeps_position(self) -> None:
        ledger, liquidity = _seed()

        receipt = await liquidity.remove_liquidity(ledger, "alice", Decimal("500"))

        assert receipt.base_out == Decimal("250")
        assert receipt.quote_out == Decimal("1000")
        assert receipt.remaining_shares == Decimal("1500")
        assert ledger.pool.base_reserve == Decimal("750")
        assert ledger.pool.quote_reserve == Decimal("3000")
        position = liquidity.get_position("p1", "alice")
        assert position is not None
        assert position.lp_shares == Decimal("1500")

    @pytest.mark.asyncio
    async def test_more_than_held_rejected(self) -> None:
        """Supply is large enough but the provider's own position is not."""
        ledger, liquidity = _seed()
        await liquidity.add_liquidity(ledger, "bob", Decimal("100"), Decimal("400"))
        before = ledger.pool.to_dict()

        with pytest.raises(InsufficientShares):
            await liquidity.remove_liquidity(ledger, "bob", Decimal("201"))

        assert ledger.pool.to_dict() == before
        assert liquidity.get_position("p1", "bob").lp_shares == Decimal("200")

    @pytest.mark.asyncio
    async def test_no_position_rejected(self) -> None:
        ledger, liquidity = _seed()
        with pytest.raises(InsufficientShares):
            await liquidity.remove_liquidity(ledger, "mallory", Decimal("1"))
        assert not ledger.lock.locked()

    @pytest.mark.asyncio
    async def test_non_positive_shares_rejected(self) -> None:
        ledger, liquidity = _seed()
        with pytest.raises(InvalidAmount):
            await liquidity.remove_liquidity(ledger, "alice", Decimal("0"))

    @pytest.mark.asyncio
    async def test_full_drain_then_reseed(self) -> None:
        ledger, liquidity = _seed()

        receipt = await liquidity.remove_liquidity(ledger, "alice", Decimal("2000"))

        assert receipt.base_out == Decimal("1000")
        assert receipt.quote_out == Decimal("4000")
        assert ledger.pool.base_reserve == Decimal("0")
        assert ledger.pool.quote_reserve == Decimal("0")
        assert ledger.pool.lp_supply == Decimal("0")
        assert ledger.pool.price == Decimal("0")
        assert liquidity.positions_for_pool("p1") == []

        reseed = await liquidity.add_liquidity(ledger, "carol", Decimal("50"), Decimal("200"))

        assert reseed.minted_shares == Decimal("100")
        assert ledger.pool.lp_supply == Decimal("100")
        assert ledger.pool.price == Decimal("0.25")


class TestShareAccounting:
    @pytest.mark.asyncio
    async def test_shares_sum_to_supply_through_mixed_activity(self) -> None:
        ledger, liquidity = _seed(base="1000000", quote="4000000")

        await liquidity.add_liquidity(ledger, "bob", Decimal("12345"), Decimal("99999"))
        await ledger.swap(TradeSide.BUY, Decimal("20000"), "trader")
        await liquidity.add_liquidity(ledger, "carol", Decimal("777"), Decimal("3001"))
        await ledger.swap(TradeSide.SELL, Decimal("50000"), "trader")
        await liquidity.remove_liquidity(ledger, "bob", Decimal("1000"))
        await liquidity.remove_liquidity(ledger, "alice", Decimal("333333"))

        assert liquidity.total_shares("p1") == ledger.pool.lp_supply

    @pytest.mark.asyncio
    async def test_remove_then_readd_is_near_neutral(self) -> None:
        """Round trip returns reserves and supply to within one unit."""
        ledger, liquidity = _seed(base="1000001", quote="1000000", fee_rate_bps=0)
        base_before = ledger.pool.base_reserve
        quote_before = ledger.pool.quote_reserve
        supply_before = ledger.pool.lp_supply

        removal = await liquidity.remove_liquidity(ledger, "alice", Decimal("500000"))
        await liquidity.add_liquidity(ledger, "alice", removal.base_out, removal.quote_out)

        assert abs(ledger.pool.base_reserve - base_before) <= 1
        assert abs(ledger.pool.quote_reserve - quote_before) <= 1
        assert abs(ledger.pool.lp_supply - supply_before) <= 1
        assert liquidity.total_shares("p1") == ledger.pool.lp_supply

    @pytest.mark.asyncio
    async def test_remove_then_readd_exact_on_even_pool(self) -> None:
        ledger, liquidity = _seed(base="1000000", quote="1000000", fee_rate_bps=0)

        removal = await liquidity.remove_liquidity(ledger, "alice", Decimal("333333"))
        await liquidity.add_liquidity(ledger, "alice", removal.base_out, removal.quote_out)

        assert ledger.pool.base_reserve == Decimal("1000000")
        assert ledger.pool.quote_reserve == Decimal("1000000")
        assert ledger.pool.lp_supply == Decimal("1000000")

    @pytest.mark.asyncio
    async def test_positions_for_provider_across_pools(self) -> None:
        ledger, liquidity = _seed()
        other, bootstrap = PoolLedger.create(
            pool_id="p2",
            creator_id="bob",
            base_amount=Decimal("900"),
            quote_amount=Decimal("100"),
            fee_rate_bps=30,
        )
        liquidity.open_position("p2", "bob", bootstrap.minted_shares, Decimal("900"), Decimal("100"))
        await liquidity.add_liquidity(ledger, "bob", Decimal("100"), Decimal("400"))

        pools = sorted(p.pool_id for p in liquidity.positions_for_provider("bob"))

        assert pools == ["p1", "p2"]
        assert other.pool.lp_supply == Decimal("300")


class TestLargeRawAmounts:
    """Reserves, shares and refunds stay exact past 28 significant digits."""

    @pytest.mark.asyncio
    async def test_add_then_remove_is_exact(self) -> None:
        ledger, liquidity = _seed(base=str(10**30), quote=str(10**30), fee_rate_bps=0)

        receipt = await liquidity.add_liquidity(
            ledger, "bob", Decimal("123456789"), Decimal(10**30)
        )

        assert receipt.minted_shares == Decimal("123456789")
        assert receipt.quote_accepted == Decimal("123456789")
        assert receipt.quote_refund == Decimal(10**30 - 123456789)
        assert ledger.pool.base_reserve == Decimal(10**30 + 123456789)
        assert ledger.pool.quote_reserve == Decimal(10**30 + 123456789)
        assert ledger.pool.lp_supply == Decimal(10**30 + 123456789)
        assert liquidity.total_shares("p1") == ledger.pool.lp_supply

        removal = await liquidity.remove_liquidity(ledger, "bob", Decimal("123456789"))

        assert removal.base_out == Decimal("123456789")
        assert removal.quote_out == Decimal("123456789")
        assert ledger.pool.base_reserve == Decimal(10**30)
        assert ledger.pool.quote_reserve == Decimal(10**30)
        assert ledger.pool.lp_supply == Decimal(10**30)
        assert liquidity.get_position("p1", "bob") is None

    @pytest.mark.asyncio
    async def test_top_up_keeps_position_exact(self) -> None:
        ledger, liquidity = _seed(base=str(10**30), quote=str(10**30), fee_rate_bps=0)

        await liquidity.add_liquidity(ledger, "alice", Decimal("7"), Decimal("7"))

        position = liquidity.get_position("p1", "alice")
        assert position is not None
        assert position.lp_shares == Decimal(10**30 + 7)
        assert position.base_contributed == Decimal(10**30 + 7)
        assert liquidity.total_shares("p1") == ledger.pool.lp_supply
