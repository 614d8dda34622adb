"""Tests for configuration loading and the runtime flag overlay."""

from decimal import Decimal

import pytest

from zborsa.config import AppSettings, PricingSettings, RuntimeFlags, StakingSettings, SwapSettings
from zborsa.exceptions import InternalError, NotFoundError
from zborsa.models import StakingOption
from zborsa.providers import (
    SettingsFlagsProvider,
    StaticAccessPolicy,
    StaticEligibilityProvider,
    call_collaborator,
)


class TestSettings:
    def test_defaults(self) -> None:
        swap = SwapSettings()
        assert swap.daily_swap_limit == 1000
        assert swap.daily_swap_limit_per_user == 50
        assert swap.min_eligibility_score == Decimal("5")
        assert swap.window_hours == 24

        pricing = PricingSettings()
        obx_stx = next(p for p in pricing.pairs if p.key == ("OBX", "STX"))
        assert obx_stx.rate == Decimal("2.4")
        assert obx_stx.fee == Decimal("0.01")
        assert (obx_stx.min_amount, obx_stx.max_amount) == (Decimal("0.1"), Decimal("100"))

        options = StakingSettings().options
        assert StakingOption("OBX", "STX", Decimal("0.08"), 7, Decimal("5"), Decimal("100")) in options

    def test_env_overrides(self, monkeypatch) -> None:
        monkeypatch.setenv("SWAP_DAILY_SWAP_LIMIT", "7")
        monkeypatch.setenv("SWAP_GLOBAL_SWAP_ENABLED", "false")
        monkeypatch.setenv("PRICING_MAX_DEVIATION", "0.1")

        assert SwapSettings().daily_swap_limit == 7
        assert SwapSettings().global_swap_enabled is False
        assert PricingSettings().max_deviation == Decimal("0.1")

    def test_staking_options_from_env_json(self, monkeypatch) -> None:
        monkeypatch.setenv(
            "STAKING_OPTIONS",
            '[{"token_type": "OBX", "yield_token": "LOG", "yield_rate": "0.1",'
            ' "lock_period_days": 14, "min_amount": "1", "max_amount": "10"}]',
        )
        (option,) = StakingSettings().options
        assert option.yield_token == "LOG"
        assert option.yield_rate == Decimal("0.1")
        assert option.lock_period_days == 14


class TestSettingsFlagsProvider:
    @pytest.mark.asyncio
    async def test_settings_values(self) -> None:
        provider = SettingsFlagsProvider(AppSettings())
        flags = await provider.get_flags()
        assert flags.global_swap_enabled is True
        assert flags.staking_enabled is True
        assert flags.daily_swap_limit == 1000
        assert len(flags.staking_options) == 4

    @pytest.mark.asyncio
    async def test_overrides_take_precedence(self) -> None:
        provider = SettingsFlagsProvider(
            AppSettings(), RuntimeFlags(staking_enabled=False, daily_swap_limit_per_user=3)
        )
        flags = await provider.get_flags()
        assert flags.staking_enabled is False
        assert flags.daily_swap_limit_per_user == 3
        assert flags.daily_swap_limit == 1000

        provider.overrides.staking_options = []
        assert (await provider.get_flags()).staking_options == []


class TestStaticProviders:
    @pytest.mark.asyncio
    async def test_eligibility_lookup(self) -> None:
        provider = StaticEligibilityProvider({"alice": Decimal("7")})
        assert await provider.get_score("alice") == Decimal("7")
        provider.set_score("alice", Decimal("1"))
        assert await provider.get_score("alice") == Decimal("1")
        with pytest.raises(NotFoundError):
            await provider.get_score("bob")

    @pytest.mark.asyncio
    async def test_access_policy(self) -> None:
        policy = StaticAccessPolicy({"admin"})
        assert await policy.is_privileged("admin") is True
        assert await policy.is_privileged("alice") is False


class TestCallCollaborator:
    @pytest.mark.asyncio
    async def test_engine_errors_pass_through(self) -> None:
        async def missing():
            raise NotFoundError("gone")

        with pytest.raises(NotFoundError):
            await call_collaborator("eligibility", missing())

    @pytest.mark.asyncio
    async def test_unexpected_errors_become_internal(self) -> None:
        async def broken():
            raise TimeoutError("upstream timed out")

        with pytest.raises(InternalError, match="eligibility lookup failed"):
            await call_collaborator("eligibility", broken())
