"""Configuration system using pydantic-settings with environment variable loading."""

from decimal import Decimal
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PoolSettings(BaseSettings):
    """Pool creation and bookkeeping parameters."""

    model_config = SettingsConfigDict(env_prefix="POOL_")

    default_fee_rate_bps: int = Field(default=30, ge=0, lt=10000)  # 0.3%
    price_history_max_len: int = Field(default=1000, gt=0)  # oldest-first eviction


class CandleSettings(BaseSettings):
    """Candle aggregation defaults for chart consumers.

    Controls the timeframe and candle count used when a caller does not pass
    them explicitly, the upper bound on a single request, and the gap-filling
    policy. All fields configurable via CANDLE_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="CANDLE_")

    default_timeframe: Literal["1m", "5m", "15m", "1h", "4h", "1d"] = "5m"
    default_limit: int = Field(default=100, gt=0)
    max_limit: int = Field(default=1000, gt=0)
    # Repeat the previous close with zero volume for empty buckets.
    # Disable for UIs that prefer to omit empty candles.
    fill_gaps: bool = True


class SimulationSettings(BaseSettings):
    """Volume simulation session parameters.

    Amounts are raw units. Wallets start with an equal share of the base
    budget and no tokens; sells spend tokens acquired by earlier buys.
    """

    model_config = SettingsConfigDict(env_prefix="SIM_")

    initial_base: Decimal = Decimal("10000000")
    initial_quote: Decimal = Decimal("1000000000")
    wallet_count: int = Field(default=5, gt=0)
    budget: Decimal = Decimal("2000000")
    trade_count: int = Field(default=200, gt=0)
    min_trade_size: Decimal = Decimal("1000")
    max_trade_size: Decimal = Decimal("50000")
    buy_ratio: float = Field(default=0.6, ge=0.0, le=1.0)
    trade_interval_seconds: float = Field(default=30.0, gt=0)
    timeframe: Literal["1m", "5m", "15m", "1h", "4h", "1d"] = "5m"
    seed: int | None = None  # None = nondeterministic


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    pool: PoolSettings = PoolSettings()
    candles: CandleSettings = CandleSettings()
    simulation: SimulationSettings = SimulationSettings()
