"""Interfaces to the engine's external collaborators.

The swap executor and staking manager depend ONLY on these ABCs. Concrete
implementations (static ones below, or an application's own) are injected at
startup, so test doubles never leak into business logic.
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable
from decimal import Decimal
from typing import TypeVar

from zborsa.config import AppSettings, RuntimeFlags
from zborsa.exceptions import EngineError, InternalError, NotFoundError
from zborsa.logging import get_logger
from zborsa.models import ExchangeFlags

logger = get_logger(__name__)

T = TypeVar("T")


class EligibilityProvider(ABC):
    """Supplies the externally computed eligibility score for an account."""

    @abstractmethod
    async def get_score(self, account_id: str) -> Decimal:
        """Return the account's score.

        Raises:
            NotFoundError: If the account is unknown.
        """
        ...


class FlagsProvider(ABC):
    """Supplies feature flags, swap limits, and the staking option menu."""

    @abstractmethod
    async def get_flags(self) -> ExchangeFlags:
        ...


class AccessPolicy(ABC):
    """Decides whether a caller may run privileged bulk operations."""

    @abstractmethod
    async def is_privileged(self, caller_id: str) -> bool:
        ...


async def call_collaborator(name: str, call: Awaitable[T]) -> T:
    """Await a collaborator call, surfacing unexpected failures as InternalError.

    Engine errors raised by the collaborator (e.g. NotFoundError) pass through.
    """
    try:
        return await call
    except EngineError:
        raise
    except Exception as exc:
        logger.error("collaborator_call_failed", collaborator=name, error=str(exc))
        raise InternalError(f"{name} lookup failed: {exc}") from exc


class StaticEligibilityProvider(EligibilityProvider):
    """In-memory score table."""

    def __init__(self, scores: dict[str, Decimal] | None = None) -> None:
        self._scores: dict[str, Decimal] = dict(scores or {})

    def set_score(self, account_id: str, score: Decimal) -> None:
        self._scores[account_id] = score

    async def get_score(self, account_id: str) -> Decimal:
        try:
            return self._scores[account_id]
        except KeyError:
            raise NotFoundError(f"No eligibility score for account {account_id}") from None


class SettingsFlagsProvider(FlagsProvider):
    """Builds ExchangeFlags from AppSettings plus a mutable RuntimeFlags overlay."""

    def __init__(self, settings: AppSettings, overrides: RuntimeFlags | None = None) -> None:
        self._settings = settings
        self.overrides = overrides or RuntimeFlags()

    async def get_flags(self) -> ExchangeFlags:
        swap = self._settings.swap
        staking = self._settings.staking
        o = self.overrides
        return ExchangeFlags(
            global_swap_enabled=(
                o.global_swap_enabled if o.global_swap_enabled is not None
                else swap.global_swap_enabled
            ),
            staking_enabled=(
                o.staking_enabled if o.staking_enabled is not None else staking.enabled
            ),
            daily_swap_limit=(
                o.daily_swap_limit if o.daily_swap_limit is not None
                else swap.daily_swap_limit
            ),
            daily_swap_limit_per_user=(
                o.daily_swap_limit_per_user if o.daily_swap_limit_per_user is not None
                else swap.daily_swap_limit_per_user
            ),
            staking_options=list(
                o.staking_options if o.staking_options is not None else staking.options
            ),
        )


class StaticAccessPolicy(AccessPolicy):
    """Grants privilege to a fixed set of administrator ids."""

    def __init__(self, admin_ids: set[str] | None = None) -> None:
        self._admin_ids = set(admin_ids or ())

    async def is_privileged(self, caller_id: str) -> bool:
        return caller_id in self._admin_ids
