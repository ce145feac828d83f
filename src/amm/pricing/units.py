"""Unit quantization helpers shared by the pricing core and the ledgers.

All monetary values use Decimal. Never use float for reserves, prices or fees.

One rounding rule applies everywhere: truncate toward zero. Token amounts are
whole raw smallest-units, prices keep 18 decimal places and percentages keep 4.
Quotes and executed swaps go through the same helpers, so a preview and the
swap it previews can never disagree by a rounding step.
"""

from contextlib import AbstractContextManager
from decimal import ROUND_DOWN, Context, Decimal, localcontext

#: Whole raw smallest-unit (e.g. one lamport, one token base unit).
UNIT = Decimal("1")

#: Price precision: base units per quote unit, 18 decimal places.
PRICE_QUANTUM = Decimal("0.000000000000000001")

#: Percentage precision for price impact and change figures.
PCT_QUANTUM = Decimal("0.0001")

#: Working precision for intermediate products of large raw reserves.
#: Default Decimal precision (28) silently rounds 1e18 * 1e12 style products.
WORKING_PRECISION = 80

BPS_DENOMINATOR = Decimal("10000")


def working_precision() -> AbstractContextManager[Context]:
    """Decimal context for raw-unit arithmetic.

    Every sum, difference and product of reserves, shares, fees or volumes
    runs inside it: 18-decimal raw amounts pass 28 significant digits long
    before they stop being realistic, and the default context would round
    them silently.
    """
    return localcontext(prec=WORKING_PRECISION)


def truncate_units(value: Decimal) -> Decimal:
    """Truncate a token amount toward zero to a whole raw unit.

    Args:
        value: The raw amount, possibly fractional after division.

    Returns:
        The amount with its fractional part dropped.
    """
    return value.quantize(UNIT, rounding=ROUND_DOWN)


def truncate_price(value: Decimal) -> Decimal:
    """Truncate a price toward zero to 18 decimal places."""
    return value.quantize(PRICE_QUANTUM, rounding=ROUND_DOWN)


def truncate_pct(value: Decimal) -> Decimal:
    """Truncate a percentage toward zero to 4 decimal places."""
    return value.quantize(PCT_QUANTUM, rounding=ROUND_DOWN)


def spot_price(base_reserve: Decimal, quote_reserve: Decimal) -> Decimal:
    """Marginal price of one quote unit in base units (base / quote).

    Returns zero for a drained pool rather than dividing by zero.
    """
    if quote_reserve <= 0:
        return Decimal("0")
    with working_precision():
        return truncate_price(base_reserve / quote_reserve)


def integer_sqrt(value: Decimal) -> Decimal:
    """Square root truncated to a whole unit.

    Used for bootstrap share minting: sqrt(base * quote).

    Args:
        value: Non-negative product of two raw amounts.

    Returns:
        floor(sqrt(value)) as a Decimal.
    """
    if value <= 0:
        return Decimal("0")
    with working_precision():
        root = truncate_units(value.sqrt())
        # sqrt is correctly rounded; step back if it landed one unit high.
        while root * root > value:
            root -= UNIT
        return root
