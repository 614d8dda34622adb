"""Component wiring and the engine's public operations.

Component wiring order (in ExchangeEngine.create):
1. AppSettings (configuration)
2. Logging setup (optional)
3. LedgerDatabase + LedgerStore (balances, swap and stake records)
4. RateOracle (token pairs and live rates)
5. Collaborators (eligibility scores, feature flags, access policy)
6. SwapExecutor
7. StakingManager
8. TransactionLog

The application layer owns authentication and transport; it calls the
operations below with an already-authenticated account id.
"""

import time
from collections.abc import Callable
from decimal import Decimal
from typing import Self

from zborsa.config import AppSettings
from zborsa.history import TransactionLog
from zborsa.ledger.database import LedgerDatabase
from zborsa.ledger.store import LedgerStore
from zborsa.logging import get_logger, setup_logging
from zborsa.models import (
    StakeProjection,
    StakeRecord,
    StakeStatus,
    SwapQuote,
    SwapResult,
    SwapTransaction,
    TokenPair,
    WithdrawalResult,
    YieldRunResult,
)
from zborsa.pricing.oracle import RateOracle
from zborsa.providers import (
    AccessPolicy,
    EligibilityProvider,
    FlagsProvider,
    SettingsFlagsProvider,
    StaticAccessPolicy,
    StaticEligibilityProvider,
)
from zborsa.staking.manager import StakingManager
from zborsa.swap.executor import SwapExecutor
from zborsa.validation import coerce_amount

logger = get_logger(__name__)


class ExchangeEngine:
    """Facade over the swap executor, staking manager, oracle, and logs.

    Usage:
        async with ExchangeEngine.create(settings, eligibility=scores) as engine:
            result = await engine.swap_tokens("alice", "OBX", "STX", Decimal("10"))
    """

    def __init__(
        self,
        database: LedgerDatabase,
        store: LedgerStore,
        oracle: RateOracle,
        swap_executor: SwapExecutor,
        staking_manager: StakingManager,
        transaction_log: TransactionLog,
        flags: FlagsProvider,
    ) -> None:
        self.database = database
        self.store = store
        self.oracle = oracle
        self.swap_executor = swap_executor
        self.staking_manager = staking_manager
        self.transaction_log = transaction_log
        self.flags = flags

    @classmethod
    def create(
        cls,
        settings: AppSettings | None = None,
        eligibility: EligibilityProvider | None = None,
        flags: FlagsProvider | None = None,
        access_policy: AccessPolicy | None = None,
        clock: Callable[[], float] = time.time,
        configure_logging: bool = False,
    ) -> "ExchangeEngine":
        """Build the full component graph. Call start() (or use async with) before use."""
        settings = settings or AppSettings()
        if configure_logging:
            setup_logging(settings.log_level)

        database = LedgerDatabase(
            settings.ledger.db_path, busy_timeout_ms=settings.ledger.busy_timeout_ms
        )
        store = LedgerStore(database)
        oracle = RateOracle(settings.pricing, clock=clock)

        eligibility = eligibility or StaticEligibilityProvider()
        flags = flags or SettingsFlagsProvider(settings)
        access_policy = access_policy or StaticAccessPolicy()

        swap_executor = SwapExecutor(
            store=store,
            oracle=oracle,
            eligibility=eligibility,
            flags=flags,
            settings=settings.swap,
            clock=clock,
        )
        staking_manager = StakingManager(
            store=store,
            flags=flags,
            access_policy=access_policy,
            clock=clock,
        )
        transaction_log = TransactionLog(store, settings.swap)

        return cls(
            database=database,
            store=store,
            oracle=oracle,
            swap_executor=swap_executor,
            staking_manager=staking_manager,
            transaction_log=transaction_log,
            flags=flags,
        )

    async def start(self) -> None:
        await self.database.connect()
        logger.info("exchange_engine_started")

    async def stop(self) -> None:
        await self.database.close()
        logger.info("exchange_engine_stopped")

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.stop()

    # -- Swaps ---------------------------------------------------------------

    async def swap_tokens(
        self, user_id: str, from_token: str, to_token: str, amount: object
    ) -> SwapResult:
        return await self.swap_executor.swap_tokens(user_id, from_token, to_token, amount)

    async def estimate_swap(
        self, from_token: str, to_token: str, amount: object
    ) -> SwapQuote | None:
        return await self.oracle.estimate_output(from_token, to_token, coerce_amount(amount))

    async def get_token_pairs(self, token: str | None = None) -> list[TokenPair]:
        if token is None:
            return await self.oracle.get_all_token_pairs()
        return await self.oracle.get_token_pairs(token)

    async def get_swap_history(
        self, user_id: str, limit: int | None = None
    ) -> list[SwapTransaction]:
        return await self.transaction_log.get_swap_history(user_id, limit)

    # -- Staking -------------------------------------------------------------

    async def stake_tokens(
        self,
        user_id: str,
        token_type: str,
        amount: object,
        yield_token: str,
        lock_period_days: int,
    ) -> StakeRecord:
        return await self.staking_manager.stake_tokens(
            user_id, token_type, amount, yield_token, lock_period_days
        )

    async def get_active_stakes(
        self, user_id: str, include_completed: bool = False
    ) -> list[StakeProjection]:
        return await self.staking_manager.get_active_stakes(user_id, include_completed)

    async def withdraw_stake(self, user_id: str, stake_id: str) -> WithdrawalResult:
        return await self.staking_manager.withdraw_stake(user_id, stake_id)

    async def process_yields(self, caller_id: str) -> YieldRunResult:
        return await self.staking_manager.process_yields(caller_id)

    async def get_stake_history(
        self, user_id: str, status: StakeStatus | None = None
    ) -> list[StakeRecord]:
        return await self.transaction_log.get_stake_history(user_id, status)

    async def get_stake(self, stake_id: str) -> StakeRecord | None:
        return await self.transaction_log.get_stake(stake_id)

    async def count_swaps(
        self, user_id: str | None = None, since: float | None = None
    ) -> int:
        return await self.transaction_log.count_swaps(user_id, since)

    # -- Accounts ------------------------------------------------------------

    async def open_account(self, account_id: str) -> bool:
        return await self.store.open_account(account_id)

    async def account_exists(self, account_id: str) -> bool:
        return await self.store.account_exists(account_id)

    async def deposit(self, account_id: str, token: str, amount: object) -> Decimal:
        return await self.store.deposit(account_id, token, coerce_amount(amount))

    async def get_balances(self, account_id: str) -> dict[str, Decimal]:
        return await self.store.get_balances(account_id)
