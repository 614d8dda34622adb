"""Tests for yield accrual arithmetic."""

from decimal import Decimal

import pytest

from zborsa.models import StakeRecord, StakeStatus
from zborsa.staking.yields import (
    elapsed_days,
    is_early,
    pending_yield,
    projected_yield,
    withdrawal_yield,
)

T0 = 1_700_000_000.0
DAY = 86400


@pytest.fixture
def stake() -> StakeRecord:
    return StakeRecord(
        id="stake-1",
        user_id="alice",
        token_type="OBX",
        amount=Decimal("100"),
        yield_token="STX",
        yield_rate=Decimal("0.08"),
        lock_period_days=7,
        start_date=T0,
        end_date=T0 + 7 * DAY,
        total_yield_accrued=Decimal("0"),
        last_yield_at=T0,
        status=StakeStatus.ACTIVE,
    )


class TestElapsedDays:
    def test_fractional_days(self) -> None:
        assert elapsed_days(T0, T0 + 315360) == Decimal("3.65")

    def test_never_negative(self) -> None:
        assert elapsed_days(T0, T0 - 100) == Decimal("0")


class TestPendingYield:
    def test_simple_interest_on_365_day_year(self, stake: StakeRecord) -> None:
        assert pending_yield(stake, T0 + 315360) == Decimal("0.08")

    def test_projected_includes_settled(self, stake: StakeRecord) -> None:
        stake.total_yield_accrued = Decimal("0.5")
        assert projected_yield(stake, T0 + 315360) == Decimal("0.58")

    def test_zero_at_start(self, stake: StakeRecord) -> None:
        assert pending_yield(stake, T0) == Decimal("0")


class TestWithdrawalYield:
    def test_early_withdrawal_halves_pending(self, stake: StakeRecord) -> None:
        amount, early = withdrawal_yield(stake, T0 + 315360)
        assert early is True
        assert amount == Decimal("0.04")

    def test_matured_withdrawal_keeps_full_yield(self, stake: StakeRecord) -> None:
        amount, early = withdrawal_yield(stake, T0 + 630720)
        assert early is False
        assert amount == Decimal("0.16")

    def test_penalty_never_touches_settled_yield(self, stake: StakeRecord) -> None:
        stake.total_yield_accrued = Decimal("1")
        stake.last_yield_at = T0 + DAY
        amount, early = withdrawal_yield(stake, T0 + DAY + 315360)
        assert early is True
        assert amount == Decimal("1.04")

    def test_maturity_boundary_is_not_early(self, stake: StakeRecord) -> None:
        assert is_early(stake, stake.end_date - 1) is True
        assert is_early(stake, stake.end_date) is False
