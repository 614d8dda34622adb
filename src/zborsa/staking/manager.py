"""Stake lifecycle management: open, project, withdraw, and bulk yield processing.

Stake flow:
1. stake_tokens validates against the configured option menu, then debits the
   principal and inserts an ACTIVE record in one ledger transaction
2. get_active_stakes projects pending yield without writing anything
3. process_yields (privileged, externally triggered) settles whole days of
   yield and marks matured stakes COMPLETED
4. withdraw_stake returns principal plus yield (pending yield halved if the
   lock has not matured) and marks the stake WITHDRAWN

Every stake write is a compare-and-set against the stored status and
last_yield_at, so concurrent yield runs or double withdrawals credit once.
"""

import time
from collections.abc import Callable
from uuid import uuid4

from zborsa.exceptions import (
    AmountOutOfBoundsError,
    ConflictError,
    EngineError,
    FeatureDisabledError,
    InsufficientBalanceError,
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
)
from zborsa.ledger.queries import StakeQuery
from zborsa.ledger.store import LedgerStore
from zborsa.logging import bound_operation, get_logger
from zborsa.models import (
    SECONDS_PER_DAY,
    StakeProjection,
    StakeRecord,
    StakeStatus,
    StakingOption,
    WithdrawalResult,
    YieldRunResult,
)
from zborsa.providers import AccessPolicy, FlagsProvider, call_collaborator
from zborsa.staking.yields import (
    ZERO,
    elapsed_days,
    pending_yield,
    projected_yield,
    withdrawal_yield,
)
from zborsa.validation import coerce_amount, coerce_days, require_text

logger = get_logger(__name__)

MIN_DAYS_BETWEEN_ACCRUALS = 1


class StakingManager:
    """Opens, projects, settles, and withdraws time-locked stakes.

    Args:
        store: Ledger store for balances and stake records.
        flags: Feature flag and staking option lookup.
        access_policy: Privileged-caller check for process_yields.
        clock: Returns the current Unix time in seconds.
    """

    def __init__(
        self,
        store: LedgerStore,
        flags: FlagsProvider,
        access_policy: AccessPolicy,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._flags = flags
        self._access_policy = access_policy
        self._clock = clock

    # ──────────────────────────────────────────────
    # Open
    # ──────────────────────────────────────────────

    async def stake_tokens(
        self,
        user_id: str,
        token_type: object,
        amount: object,
        yield_token: object,
        lock_period_days: object,
    ) -> StakeRecord:
        """Lock ``amount`` of ``token_type`` to earn ``yield_token``.

        Raises:
            InvalidArgumentError: Missing/malformed fields or no matching option.
            FeatureDisabledError: Staking disabled.
            AmountOutOfBoundsError: Amount outside the option's min/max.
            NotFoundError: Unknown account.
            InsufficientBalanceError: Balance too low.
            LedgerError: Commit failed.
        """
        with bound_operation("stake_tokens", user_id=user_id):
            user_id = require_text(user_id, "user_id")
            token = require_text(token_type, "token_type")
            reward = require_text(yield_token, "yield_token")
            days = coerce_days(lock_period_days)
            qty = coerce_amount(amount)

            flags = await call_collaborator("flags", self._flags.get_flags())
            if not flags.staking_enabled:
                raise FeatureDisabledError("Staking is currently disabled")

            option = _match_option(flags.staking_options, token, reward, days)
            if option is None:
                raise InvalidArgumentError(
                    "Invalid staking option. Select a valid combination of "
                    "token type, yield token, and lock period."
                )

            if not (option.min_amount <= qty <= option.max_amount):
                raise AmountOutOfBoundsError(
                    f"Amount must be between {option.min_amount} and {option.max_amount}"
                )

            balance = await self._store.get_balance(user_id, token)
            if balance < qty:
                raise InsufficientBalanceError(f"Insufficient {token} balance")

            now = self._clock()
            stake = StakeRecord(
                id=uuid4().hex,
                user_id=user_id,
                token_type=token,
                amount=qty,
                yield_token=reward,
                yield_rate=option.yield_rate,
                lock_period_days=days,
                start_date=now,
                end_date=now + days * SECONDS_PER_DAY,
                total_yield_accrued=ZERO,
                last_yield_at=now,
                status=StakeStatus.ACTIVE,
            )

            async with self._store.transaction() as txn:
                await txn.debit(user_id, token, qty)
                await txn.insert_stake(stake)

            logger.info(
                "stake_opened",
                stake_id=stake.id,
                token_type=token,
                amount=str(qty),
                yield_token=reward,
                yield_rate=str(option.yield_rate),
                lock_period_days=days,
            )
            return stake

    # ──────────────────────────────────────────────
    # Read
    # ──────────────────────────────────────────────

    async def get_active_stakes(
        self, user_id: str, include_completed: bool = False
    ) -> list[StakeProjection]:
        """Project current yield for the caller's open stakes. Read-only."""
        user_id = require_text(user_id, "user_id")
        statuses = (StakeStatus.ACTIVE,)
        if include_completed:
            statuses = (StakeStatus.ACTIVE, StakeStatus.COMPLETED)
        stakes = await self._store.list_stakes(StakeQuery(user_id=user_id, statuses=statuses))

        now = self._clock()
        projections = []
        for stake in stakes:
            projections.append(
                StakeProjection(
                    stake=stake,
                    pending_yield=pending_yield(stake, now),
                    projected_yield=projected_yield(stake, now),
                )
            )
        return projections

    # ──────────────────────────────────────────────
    # Withdraw
    # ──────────────────────────────────────────────

    async def withdraw_stake(self, user_id: str, stake_id: object) -> WithdrawalResult:
        """Return principal and yield for a stake owned by ``user_id``.

        Raises:
            InvalidArgumentError: Missing stake id.
            NotFoundError: Stake does not exist.
            PermissionDeniedError: Stake belongs to another account.
            ConflictError: Stake already withdrawn.
            LedgerError: Commit failed.
        """
        with bound_operation("withdraw_stake", user_id=user_id):
            user_id = require_text(user_id, "user_id")
            sid = require_text(stake_id, "stake_id")

            now = self._clock()
            async with self._store.transaction() as txn:
                stake = await txn.get_stake(sid)
                if stake is None:
                    raise NotFoundError(f"Stake {sid} not found")
                if stake.user_id != user_id:
                    raise PermissionDeniedError(
                        "You do not have permission to withdraw this stake"
                    )
                if not stake.is_open:
                    raise ConflictError(f"Stake {sid} has already been withdrawn")

                yield_amount, early = withdrawal_yield(stake, now)

                updated = await txn.update_stake(
                    sid,
                    status=StakeStatus.WITHDRAWN,
                    total_yield_accrued=yield_amount,
                    last_yield_at=now,
                    expected_status=stake.status,
                    expected_last_yield_at=stake.last_yield_at,
                )
                if not updated:
                    raise ConflictError(f"Stake {sid} changed during withdrawal")

                await txn.credit(user_id, stake.token_type, stake.amount)
                await txn.credit(user_id, stake.yield_token, yield_amount)

            logger.info(
                "stake_withdrawn",
                stake_id=sid,
                returned_amount=str(stake.amount),
                yield_amount=str(yield_amount),
                early_withdrawal=early,
            )
            return WithdrawalResult(
                stake_id=sid,
                returned_amount=stake.amount,
                yield_amount=yield_amount,
                early_withdrawal=early,
            )

    # ──────────────────────────────────────────────
    # Bulk yield processing
    # ──────────────────────────────────────────────

    async def process_yields(self, caller_id: str) -> YieldRunResult:
        """Settle yield on every ACTIVE stake. Privileged callers only.

        - Matured stakes (now >= end_date): settle pending yield, mark COMPLETED.
        - At least one day since last settlement: add pending yield.
        - Otherwise: skip.

        A failure on one stake is logged and counted; the scan continues.
        """
        with bound_operation("process_yields", caller_id=caller_id):
            allowed = await call_collaborator(
                "access_policy", self._access_policy.is_privileged(caller_id)
            )
            if not allowed:
                raise PermissionDeniedError("Only administrators can process yields")

            stakes = await self._store.list_stakes(
                StakeQuery(statuses=(StakeStatus.ACTIVE,))
            )
            result = YieldRunResult()
            if not stakes:
                logger.info("process_yields_no_active_stakes")
                return result

            now = self._clock()
            for stake in stakes:
                try:
                    outcome = await self._process_one(stake.id, now)
                except EngineError as exc:
                    result.failed_count += 1
                    result.failed_stake_ids.append(stake.id)
                    logger.error(
                        "stake_yield_failed",
                        stake_id=stake.id,
                        error=str(exc),
                        error_code=exc.code,
                    )
                    continue

                if outcome == "completed":
                    result.completed_count += 1
                    result.processed_count += 1
                elif outcome == "accrued":
                    result.accrued_count += 1
                    result.processed_count += 1
                else:
                    result.skipped_count += 1

            logger.info(
                "process_yields_complete",
                processed=result.processed_count,
                completed=result.completed_count,
                accrued=result.accrued_count,
                skipped=result.skipped_count,
                failed=result.failed_count,
            )
            return result

    async def _process_one(self, stake_id: str, now: float) -> str:
        """Settle a single stake atomically. Returns completed/accrued/skipped.

        The stake is re-read inside the transaction; the write only applies
        if status and last_yield_at are unchanged since that read.
        """
        async with self._store.transaction() as txn:
            stake = await txn.get_stake(stake_id)
            if stake is None or stake.status != StakeStatus.ACTIVE:
                return "skipped"

            matured = now >= stake.end_date
            if not matured and elapsed_days(stake.last_yield_at, now) < MIN_DAYS_BETWEEN_ACCRUALS:
                return "skipped"

            new_total = stake.total_yield_accrued + pending_yield(stake, now)
            new_status = StakeStatus.COMPLETED if matured else StakeStatus.ACTIVE

            updated = await txn.update_stake(
                stake_id,
                status=new_status,
                total_yield_accrued=new_total,
                last_yield_at=now,
                expected_status=StakeStatus.ACTIVE,
                expected_last_yield_at=stake.last_yield_at,
            )
            if not updated:
                return "skipped"

        logger.debug(
            "stake_yield_settled",
            stake_id=stake_id,
            status=new_status.value,
            total_yield_accrued=str(new_total),
        )
        return "completed" if matured else "accrued"


def _match_option(
    options: list[StakingOption], token_type: str, yield_token: str, days: int
) -> StakingOption | None:
    """Exact match on (token_type, yield_token, lock_period_days)."""
    for option in options:
        if (
            option.token_type == token_type
            and option.yield_token == yield_token
            and option.lock_period_days == days
        ):
            return option
    return None
