"""Shared test fixtures for the AMM core."""

import pytest

from amm.config import AppSettings, CandleSettings, PoolSettings
from amm.engine import ExchangeEngine
from amm.simulation import SimulatedClock


@pytest.fixture
def app_settings() -> AppSettings:
    """Return AppSettings with test defaults."""
    return AppSettings(
        log_level="DEBUG",
        pool=PoolSettings(default_fee_rate_bps=30, price_history_max_len=1000),
        candles=CandleSettings(default_timeframe="1m", default_limit=100, max_limit=1000),
    )


@pytest.fixture
def clock() -> SimulatedClock:
    """Deterministic clock starting at a fixed Unix time."""
    return SimulatedClock(start=1_700_000_000.0)


@pytest.fixture
def engine(app_settings: AppSettings, clock: SimulatedClock) -> ExchangeEngine:
    return ExchangeEngine(settings=app_settings, clock=clock)
