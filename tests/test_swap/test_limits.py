"""Tests for rolling-window swap quotas."""

from decimal import Decimal

import pytest
import pytest_asyncio

from zborsa.config import SwapSettings
from zborsa.exceptions import ResourceExhaustedError, SwapLimitExceeded
from zborsa.ledger.store import LedgerStore
from zborsa.models import ExchangeFlags, SwapStatus, SwapTransaction
from zborsa.pricing.oracle import RateOracle
from zborsa.swap.executor import SwapExecutor
from zborsa.swap.limits import SwapLimiter

DAY = 86400


def _flags(global_limit: int = 3, per_user: int = 2) -> ExchangeFlags:
    return ExchangeFlags(
        global_swap_enabled=True,
        staking_enabled=True,
        daily_swap_limit=global_limit,
        daily_swap_limit_per_user=per_user,
    )


async def _insert(store: LedgerStore, swap_id: str, user_id: str, created_at: float,
                  status: SwapStatus = SwapStatus.COMPLETED) -> None:
    async with store.transaction() as txn:
        await txn.insert_swap(
            SwapTransaction(
                id=swap_id,
                user_id=user_id,
                from_token="OBX",
                to_token="STX",
                from_amount=Decimal("1"),
                to_amount=Decimal("2.376"),
                rate=Decimal("2.4"),
                fee=Decimal("0.01"),
                status=status,
                created_at=created_at,
            )
        )


class TestSwapLimiter:
    @pytest.mark.asyncio
    async def test_allows_under_limit(self, store: LedgerStore, clock) -> None:
        limiter = SwapLimiter(store, SwapSettings())
        await _insert(store, "s1", "alice", clock.now - 10)

        allowed, reason = await limiter.check_can_swap("alice", _flags(), clock.now)
        assert allowed is True
        assert reason == ""

    @pytest.mark.asyncio
    async def test_per_user_limit(self, store: LedgerStore, clock) -> None:
        limiter = SwapLimiter(store, SwapSettings())
        await _insert(store, "s1", "alice", clock.now - 10)
        await _insert(store, "s2", "alice", clock.now - 5)

        allowed, reason = await limiter.check_can_swap("alice", _flags(), clock.now)
        assert allowed is False
        assert "this account" in reason

        allowed, _ = await limiter.check_can_swap("bob", _flags(), clock.now)
        assert allowed is True

    @pytest.mark.asyncio
    async def test_global_limit(self, store: LedgerStore, clock) -> None:
        limiter = SwapLimiter(store, SwapSettings())
        await _insert(store, "s1", "alice", clock.now - 10)
        await _insert(store, "s2", "bob", clock.now - 10)
        await _insert(store, "s3", "carol", clock.now - 10)

        allowed, reason = await limiter.check_can_swap("dave", _flags(), clock.now)
        assert allowed is False
        assert "Global" in reason

    @pytest.mark.asyncio
    async def test_old_and_failed_swaps_not_counted(self, store: LedgerStore, clock) -> None:
        limiter = SwapLimiter(store, SwapSettings())
        await _insert(store, "old-1", "alice", clock.now - DAY - 1)
        await _insert(store, "old-2", "alice", clock.now - DAY - 100)
        await _insert(store, "f1", "alice", clock.now, SwapStatus.FAILED)
        await _insert(store, "f2", "alice", clock.now, SwapStatus.FAILED)

        allowed, _ = await limiter.check_can_swap("alice", _flags(), clock.now)
        assert allowed is True

    def test_window_start(self, store: LedgerStore) -> None:
        limiter = SwapLimiter(store, SwapSettings(window_hours=12))
        assert limiter.window_start(100_000.0) == 100_000.0 - 12 * 3600


class TestSwapQuotaEndToEnd:
    @pytest_asyncio.fixture
    async def executor(self, store, eligibility, flags_provider, mock_settings, clock):
        flags_provider.overrides.daily_swap_limit_per_user = 2
        flags_provider.overrides.daily_swap_limit = 3
        for account in ("alice", "bob"):
            await store.open_account(account)
            await store.deposit(account, "OBX", Decimal("50"))
        oracle = RateOracle(mock_settings.pricing, clock=clock)
        return SwapExecutor(
            store, oracle, eligibility, flags_provider, mock_settings.swap, clock
        )

    @pytest.mark.asyncio
    async def test_per_user_then_global_limit(self, executor: SwapExecutor, store) -> None:
        await executor.swap_tokens("alice", "OBX", "STX", Decimal("1"))
        await executor.swap_tokens("alice", "OBX", "STX", Decimal("1"))

        with pytest.raises(SwapLimitExceeded) as exc_info:
            await executor.swap_tokens("alice", "OBX", "STX", Decimal("1"))
        assert isinstance(exc_info.value, ResourceExhaustedError)
        assert await store.get_balance("alice", "OBX") == Decimal("48")

        # Another account is unaffected until the global limit
        await executor.swap_tokens("bob", "OBX", "STX", Decimal("1"))
        with pytest.raises(SwapLimitExceeded, match="Global"):
            await executor.swap_tokens("bob", "OBX", "STX", Decimal("1"))

    @pytest.mark.asyncio
    async def test_quota_frees_after_window(self, executor: SwapExecutor, clock) -> None:
        await executor.swap_tokens("alice", "OBX", "STX", Decimal("1"))
        await executor.swap_tokens("alice", "OBX", "STX", Decimal("1"))
        with pytest.raises(SwapLimitExceeded):
            await executor.swap_tokens("alice", "OBX", "STX", Decimal("1"))

        clock.advance(DAY + 1)

        result = await executor.swap_tokens("alice", "OBX", "STX", Decimal("1"))
        assert result.from_amount == Decimal("1")
