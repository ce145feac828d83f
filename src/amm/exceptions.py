"""Custom exceptions for the AMM core.

All pricing, pool and liquidity exceptions live here to avoid circular
imports between modules. Three families:

- ValidationError: malformed input, rejected before any computation.
- InvariantGuardError: legitimate market outcomes (slippage, thin pool,
  not enough shares). Callers show these to the end user; they are not
  system failures and are never retried internally.
- PoolNotFound: the caller passed a stale or unknown pool id.
"""


class AMMError(Exception):
    """Base exception for all AMM core errors."""


class ValidationError(AMMError):
    """Raised when an input has the wrong shape or range."""


class InvalidFeeRate(ValidationError):
    """Raised when a fee rate is outside [0, 10000) basis points."""


class InvalidInitialReserves(ValidationError):
    """Raised when a pool is created with a non-positive reserve."""


class InvalidAmount(ValidationError):
    """Raised when an amount, share count or limit is negative or zero where not allowed."""


class InvalidTimeframe(ValidationError):
    """Raised when a candle timeframe or statistics period is not recognised."""


class InvariantGuardError(AMMError):
    """Base for expected, recoverable rejections that protect pool invariants."""


class SlippageExceeded(InvariantGuardError):
    """Raised when a swap's price impact exceeds the caller's ceiling."""


class InsufficientLiquidity(InvariantGuardError):
    """Raised when a swap would drain the pool or its output rounds to nothing."""


class InsufficientShares(InvariantGuardError):
    """Raised when a provider tries to burn more LP shares than they hold."""


class DegenerateRatio(InvariantGuardError):
    """Raised when a liquidity contribution would mint zero shares."""


class ZeroLiquidity(InvariantGuardError):
    """Raised when a liquidity contribution has nothing on either side."""


class PoolNotFound(AMMError, KeyError):
    """Raised when a pool id is not known to the engine."""

    def __str__(self) -> str:
        # KeyError wraps its message in quotes; keep the plain message.
        return Exception.__str__(self)
