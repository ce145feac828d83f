"""Constant-product pricing and liquidity share math.

Pure functions: no I/O, no clock, no mutable state. Identical inputs always
produce identical outputs, which is what lets PoolLedger.quote() and
PoolLedger.swap() share one code path.

Constant product (x * y = k):
  - The input side's fee is deducted before pricing, but the full input stays
    in the pool, so k grows with every fee-bearing swap.
  - Liquidity is added at the pool's current ratio and removed pro rata, so
    neither moves the price.

CRITICAL: All computations use Decimal. Never use float.
"""

from dataclasses import dataclass
from decimal import Decimal

from amm.exceptions import (
    DegenerateRatio,
    InsufficientLiquidity,
    InsufficientShares,
    InvalidAmount,
    InvalidFeeRate,
    SlippageExceeded,
    ZeroLiquidity,
)
from amm.pricing.units import (
    BPS_DENOMINATOR,
    integer_sqrt,
    truncate_pct,
    truncate_units,
    working_precision,
)

MAX_FEE_RATE_BPS = 10000


@dataclass(frozen=True)
class SwapQuote:
    """Result of pricing a swap against a pair of reserves."""

    amount_in: Decimal
    amount_out: Decimal
    fee: Decimal  # denominated in the input side, already inside new_reserve_in
    new_reserve_in: Decimal
    new_reserve_out: Decimal
    price_impact_pct: Decimal


@dataclass(frozen=True)
class LiquidityQuote:
    """Shares minted for a contribution, after trimming to the pool ratio."""

    minted_shares: Decimal
    base_accepted: Decimal
    quote_accepted: Decimal


@dataclass(frozen=True)
class RemovalQuote:
    """Reserves released by burning a number of LP shares."""

    shares_burned: Decimal
    base_out: Decimal
    quote_out: Decimal


def validate_fee_rate(fee_rate_bps: int) -> None:
    """Raise InvalidFeeRate unless 0 <= fee_rate_bps < 10000."""
    if not 0 <= fee_rate_bps < MAX_FEE_RATE_BPS:
        raise InvalidFeeRate(
            f"Fee rate {fee_rate_bps} bps outside [0, {MAX_FEE_RATE_BPS})"
        )


def quote_swap(
    reserve_in: Decimal,
    reserve_out: Decimal,
    amount_in: Decimal,
    fee_rate_bps: int,
    max_price_impact_pct: Decimal | None = None,
) -> SwapQuote:
    """Price a swap of amount_in against a constant-product pool.

    Formula:
        fee = trunc(amount_in * fee_rate_bps / 10000)
        reserve_out_new = reserve_in * reserve_out / (reserve_in + amount_in - fee)
        amount_out = trunc(reserve_out - reserve_out_new)

    Price impact compares the realized output against the output the
    pre-trade marginal price would have given:
        impact = (1 - amount_out * reserve_in / (amount_in * reserve_out)) * 100
    It is positive when the trader gets worse execution than the marginal
    price, and includes the fee.

    Args:
        reserve_in: Reserve of the side being sold into the pool.
        reserve_out: Reserve of the side being bought from the pool.
        amount_in: Raw amount the trader pays in.
        fee_rate_bps: Input-side fee in basis points.
        max_price_impact_pct: Optional ceiling on |price impact| in percent.

    Returns:
        SwapQuote with the output amount, fee and post-trade reserves.

    Raises:
        InvalidFeeRate: If fee_rate_bps is outside [0, 10000).
        InsufficientLiquidity: If any input is non-positive, or the output
            would drain the pool or rounds down to zero.
        SlippageExceeded: If |price impact| exceeds max_price_impact_pct.
    """
    validate_fee_rate(fee_rate_bps)
    if reserve_in <= 0 or reserve_out <= 0:
        raise InsufficientLiquidity(
            f"Pool has no liquidity (reserves {reserve_in}/{reserve_out})"
        )
    if amount_in <= 0:
        raise InsufficientLiquidity(f"Swap amount must be positive, got {amount_in}")

    with working_precision():
        fee = truncate_units(amount_in * Decimal(fee_rate_bps) / BPS_DENOMINATOR)
        amount_in_after_fee = amount_in - fee

        reserve_out_new = (reserve_in * reserve_out) / (reserve_in + amount_in_after_fee)
        amount_out = truncate_units(reserve_out - reserve_out_new)

        if amount_out <= 0:
            raise InsufficientLiquidity(
                f"Swap of {amount_in} yields no output against reserve {reserve_out}"
            )
        if amount_out >= reserve_out:
            raise InsufficientLiquidity(
                f"Swap output {amount_out} would drain reserve {reserve_out}"
            )

        ideal_out = amount_in * reserve_out / reserve_in
        price_impact_pct = truncate_pct((Decimal("1") - amount_out / ideal_out) * 100)
        new_reserve_in = reserve_in + amount_in
        new_reserve_out = reserve_out - amount_out

    if max_price_impact_pct is not None and abs(price_impact_pct) > max_price_impact_pct:
        raise SlippageExceeded(
            f"Price impact {price_impact_pct}% exceeds maximum {max_price_impact_pct}%"
        )

    return SwapQuote(
        amount_in=amount_in,
        amount_out=amount_out,
        fee=fee,
        new_reserve_in=new_reserve_in,
        new_reserve_out=new_reserve_out,
        price_impact_pct=price_impact_pct,
    )


def quote_liquidity_add(
    base_reserve: Decimal,
    quote_reserve: Decimal,
    lp_supply: Decimal,
    base_in: Decimal,
    quote_in: Decimal,
) -> LiquidityQuote:
    """Compute shares minted for a liquidity contribution.

    Bootstrap (lp_supply == 0): the contribution sets the initial price and
    mints sqrt(base_in * quote_in) shares.

    Otherwise the side in excess of the pool ratio is trimmed so the accepted
    amounts match base_reserve / quote_reserve, and shares are minted pro rata
    on the smaller of the two sides' fractions so existing holders are never
    diluted by rounding.

    Args:
        base_reserve: Current base reserve.
        quote_reserve: Current quote reserve.
        lp_supply: Current LP shares outstanding.
        base_in: Base amount offered.
        quote_in: Quote amount offered.

    Returns:
        LiquidityQuote with minted shares and the accepted (possibly trimmed)
        amounts. The caller returns the unused remainder to the provider.

    Raises:
        InvalidAmount: If either amount is negative.
        ZeroLiquidity: If both amounts are zero.
        DegenerateRatio: If the contribution would mint zero shares.
    """
    if base_in < 0 or quote_in < 0:
        raise InvalidAmount(f"Liquidity amounts must be non-negative, got {base_in}/{quote_in}")
    if base_in == 0 and quote_in == 0:
        raise ZeroLiquidity("Liquidity contribution is empty on both sides")

    with working_precision():
        if lp_supply == 0:
            minted = integer_sqrt(base_in * quote_in)
            base_accepted, quote_accepted = base_in, quote_in
        else:
            quote_needed = truncate_units(base_in * quote_reserve / base_reserve)
            if quote_needed <= quote_in:
                base_accepted, quote_accepted = base_in, quote_needed
            else:
                base_accepted = truncate_units(quote_in * base_reserve / quote_reserve)
                quote_accepted = quote_in
            minted = truncate_units(
                min(
                    lp_supply * base_accepted / base_reserve,
                    lp_supply * quote_accepted / quote_reserve,
                )
            )

    if minted <= 0:
        raise DegenerateRatio(
            f"Contribution {base_in}/{quote_in} mints no shares at the pool ratio"
        )

    return LiquidityQuote(
        minted_shares=minted,
        base_accepted=base_accepted,
        quote_accepted=quote_accepted,
    )


def quote_liquidity_remove(
    base_reserve: Decimal,
    quote_reserve: Decimal,
    lp_supply: Decimal,
    shares: Decimal,
) -> RemovalQuote:
    """Compute the reserves released by burning LP shares.

    Pro rata: base_out = base_reserve * shares / lp_supply, same for quote.
    Burning the whole supply releases the whole reserves.

    Raises:
        InvalidAmount: If shares is not positive.
        InsufficientShares: If shares exceeds lp_supply.
    """
    if shares <= 0:
        raise InvalidAmount(f"Shares to burn must be positive, got {shares}")
    if shares > lp_supply:
        raise InsufficientShares(f"Cannot burn {shares} shares of supply {lp_supply}")

    if shares == lp_supply:
        return RemovalQuote(shares_burned=shares, base_out=base_reserve, quote_out=quote_reserve)

    with working_precision():
        base_out = truncate_units(base_reserve * shares / lp_supply)
        quote_out = truncate_units(quote_reserve * shares / lp_supply)

    return RemovalQuote(shares_burned=shares, base_out=base_out, quote_out=quote_out)
