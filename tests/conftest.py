"""Shared test fixtures for the exchange engine."""

from collections.abc import AsyncIterator
from decimal import Decimal

import pytest
import pytest_asyncio

from zborsa.config import AppSettings, LedgerSettings, PricingSettings, SwapSettings
from zborsa.ledger.database import LedgerDatabase
from zborsa.ledger.store import LedgerStore
from zborsa.providers import (
    SettingsFlagsProvider,
    StaticAccessPolicy,
    StaticEligibilityProvider,
)

T0 = 1_700_000_000.0


class FakeClock:
    """Manually advanced clock returning Unix seconds."""

    def __init__(self, start: float = T0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mock_settings(tmp_path) -> AppSettings:
    """Return AppSettings with test defaults and a temporary ledger file."""
    return AppSettings(
        log_level="DEBUG",
        ledger=LedgerSettings(db_path=str(tmp_path / "ledger.db")),
        swap=SwapSettings(
            min_eligibility_score=Decimal("5"),
            daily_swap_limit=1000,
            daily_swap_limit_per_user=50,
        ),
        pricing=PricingSettings(),
    )


@pytest_asyncio.fixture
async def database(mock_settings: AppSettings) -> AsyncIterator[LedgerDatabase]:
    async with LedgerDatabase(mock_settings.ledger.db_path) as db:
        yield db


@pytest.fixture
def store(database: LedgerDatabase) -> LedgerStore:
    return LedgerStore(database)


@pytest.fixture
def eligibility() -> StaticEligibilityProvider:
    return StaticEligibilityProvider(
        {"alice": Decimal("10"), "bob": Decimal("10"), "carol": Decimal("2")}
    )


@pytest.fixture
def flags_provider(mock_settings: AppSettings) -> SettingsFlagsProvider:
    return SettingsFlagsProvider(mock_settings)


@pytest.fixture
def access_policy() -> StaticAccessPolicy:
    return StaticAccessPolicy({"admin"})
