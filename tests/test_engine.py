"""End-to-end tests through the ExchangeEngine facade."""

from decimal import Decimal

import pytest
import pytest_asyncio

from zborsa.engine import ExchangeEngine
from zborsa.exceptions import EngineError, InvalidArgumentError, PermissionDeniedError
from zborsa.models import StakeStatus, SwapStatus

DAY = 86400


@pytest_asyncio.fixture
async def engine(mock_settings, eligibility, access_policy, clock):
    async with ExchangeEngine.create(
        mock_settings,
        eligibility=eligibility,
        access_policy=access_policy,
        clock=clock,
    ) as engine:
        await engine.open_account("alice")
        await engine.deposit("alice", "OBX", Decimal("50"))
        yield engine


class TestSwapFlow:
    @pytest.mark.asyncio
    async def test_estimate_then_swap(self, engine: ExchangeEngine) -> None:
        quote = await engine.estimate_swap("OBX", "STX", "10")
        assert quote.output_amount == Decimal("23.76")

        result = await engine.swap_tokens("alice", "OBX", "STX", "10")

        assert result.to_amount == quote.output_amount
        assert await engine.get_balances("alice") == {
            "OBX": Decimal("40"),
            "STX": Decimal("23.76"),
        }
        (swap,) = await engine.get_swap_history("alice")
        assert swap.id == result.swap_id
        assert swap.status == SwapStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_swap_history_limit(self, engine: ExchangeEngine, clock) -> None:
        for _ in range(12):
            await engine.swap_tokens("alice", "OBX", "STX", Decimal("1"))
            clock.advance(1)

        history = await engine.get_swap_history("alice")
        assert len(history) == 10
        assert history == sorted(history, key=lambda s: s.created_at, reverse=True)
        assert len(await engine.get_swap_history("alice", limit=3)) == 3

        with pytest.raises(InvalidArgumentError):
            await engine.get_swap_history("alice", limit=0)

    @pytest.mark.asyncio
    async def test_token_pairs(self, engine: ExchangeEngine) -> None:
        assert len(await engine.get_token_pairs()) == 12
        obx_pairs = await engine.get_token_pairs("VIZ")
        assert {p.key for p in obx_pairs} == {("OBX", "VIZ"), ("VIZ", "OBX")}


class TestStakingFlow:
    @pytest.mark.asyncio
    async def test_stake_settle_and_withdraw(self, engine: ExchangeEngine, clock) -> None:
        await engine.deposit("alice", "OBX", Decimal("50"))
        stake = await engine.stake_tokens("alice", "OBX", Decimal("100"), "STX", 7)
        assert (await engine.get_balances("alice"))["OBX"] == Decimal("0")

        clock.advance(630720)
        with pytest.raises(PermissionDeniedError):
            await engine.process_yields("alice")
        run = await engine.process_yields("admin")
        assert run.completed_count == 1

        assert await engine.get_active_stakes("alice") == []
        (projection,) = await engine.get_active_stakes("alice", include_completed=True)
        assert projection.projected_yield == Decimal("0.16")

        result = await engine.withdraw_stake("alice", stake.id)
        assert result.yield_amount == Decimal("0.16")
        assert await engine.get_balances("alice") == {
            "OBX": Decimal("100"),
            "STX": Decimal("0.16"),
        }

        (record,) = await engine.get_stake_history("alice")
        assert record.status == StakeStatus.WITHDRAWN
        assert await engine.get_stake_history("alice", StakeStatus.ACTIVE) == []

    @pytest.mark.asyncio
    async def test_total_supply_conserved_by_swaps_and_stakes(
        self, engine: ExchangeEngine
    ) -> None:
        stake = await engine.stake_tokens("alice", "OBX", Decimal("20"), "STX", 7)
        balances = await engine.get_balances("alice")
        assert balances["OBX"] + stake.amount == Decimal("50")

        await engine.withdraw_stake("alice", stake.id)
        assert (await engine.get_balances("alice"))["OBX"] == Decimal("50")

    @pytest.mark.asyncio
    async def test_stake_lookup(self, engine: ExchangeEngine) -> None:
        stake = await engine.stake_tokens("alice", "OBX", Decimal("20"), "STX", 7)

        assert await engine.get_stake(stake.id) == stake
        assert await engine.get_stake("missing") is None


class TestAccounts:
    @pytest.mark.asyncio
    async def test_account_lifecycle(self, engine: ExchangeEngine) -> None:
        assert await engine.account_exists("alice") is True
        assert await engine.account_exists("bob") is False

        assert await engine.open_account("bob") is True
        assert await engine.account_exists("bob") is True
        assert await engine.get_balances("bob") == {}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("account_id", ["", "  ", None])
    async def test_blank_account_id_is_invalid_argument(
        self, engine: ExchangeEngine, account_id
    ) -> None:
        with pytest.raises(InvalidArgumentError) as exc_info:
            await engine.open_account(account_id)
        assert isinstance(exc_info.value, EngineError)
        assert exc_info.value.code == "invalid-argument"

    @pytest.mark.asyncio
    async def test_non_positive_deposit_is_invalid_argument(
        self, engine: ExchangeEngine
    ) -> None:
        with pytest.raises(InvalidArgumentError):
            await engine.deposit("alice", "OBX", "0")
        assert await engine.get_balances("alice") == {"OBX": Decimal("50")}


class TestSwapCounts:
    @pytest.mark.asyncio
    async def test_count_swaps(self, engine: ExchangeEngine, clock) -> None:
        await engine.open_account("bob")
        await engine.deposit("bob", "OBX", Decimal("10"))
        await engine.swap_tokens("alice", "OBX", "STX", Decimal("1"))
        clock.advance(60)
        await engine.swap_tokens("alice", "OBX", "STX", Decimal("1"))
        await engine.swap_tokens("bob", "OBX", "STX", Decimal("1"))

        assert await engine.count_swaps() == 3
        assert await engine.count_swaps(user_id="alice") == 2
        assert await engine.count_swaps(since=clock.now) == 2
