"""Swap execution for a single account.

Swap flow:
1. Validate request fields (tokens, positive numeric amount, distinct tokens)
2. Check the caller's eligibility score
3. Check the pair exists, is active, and the amount is within its bounds
4. Check swaps are enabled
5. Check per-account and global rolling-window quotas
6. Check the source balance
7. Quote the output
8. Commit debit + credit + swap record in ONE ledger transaction
9. Feed the committed amount back to the rate oracle

Nothing is mutated before step 8. If the commit fails, a failed swap record
is appended separately for audit and LedgerError propagates.
"""

import time
from collections.abc import Callable
from decimal import Decimal
from uuid import uuid4

from zborsa.config import SwapSettings
from zborsa.exceptions import (
    FeatureDisabledError,
    InsufficientBalanceError,
    InternalError,
    InvalidArgumentError,
    InvalidSwapError,
    LedgerError,
    PermissionDeniedError,
    SwapLimitExceeded,
)
from zborsa.ledger.store import LedgerStore
from zborsa.logging import bound_operation, get_logger
from zborsa.models import SwapQuote, SwapResult, SwapStatus, SwapTransaction
from zborsa.pricing.oracle import RateOracle
from zborsa.providers import EligibilityProvider, FlagsProvider, call_collaborator
from zborsa.swap.limits import SwapLimiter
from zborsa.validation import coerce_amount, require_text

logger = get_logger(__name__)


class SwapExecutor:
    """Validates and executes token swaps.

    Args:
        store: Ledger store for balances and swap records.
        oracle: Rate oracle for validation, quotes, and demand feedback.
        eligibility: Eligibility score lookup.
        flags: Feature flag and limit lookup.
        settings: Swap settings (eligibility threshold, window).
        clock: Returns the current Unix time in seconds.
    """

    def __init__(
        self,
        store: LedgerStore,
        oracle: RateOracle,
        eligibility: EligibilityProvider,
        flags: FlagsProvider,
        settings: SwapSettings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._oracle = oracle
        self._eligibility = eligibility
        self._flags = flags
        self._settings = settings or SwapSettings()
        self._clock = clock
        self._limiter = SwapLimiter(store, self._settings)

    async def swap_tokens(
        self,
        user_id: str,
        from_token: object,
        to_token: object,
        amount: object,
    ) -> SwapResult:
        """Swap ``amount`` of ``from_token`` into ``to_token`` for ``user_id``.

        Returns:
            SwapResult describing the committed swap.

        Raises:
            InvalidArgumentError: Missing/malformed fields or identical tokens.
            NotFoundError: Unknown account.
            PermissionDeniedError: Eligibility score below threshold.
            InvalidSwapError: No active pair, or amount outside pair bounds.
            FeatureDisabledError: Swaps disabled.
            SwapLimitExceeded: Per-account or global window quota used up.
            InsufficientBalanceError: Source balance too low.
            InternalError: Quote unavailable or ledger commit failed.
        """
        with bound_operation("swap_tokens", user_id=user_id):
            user_id, src, dst, qty = self._validate_request(
                user_id, from_token, to_token, amount
            )

            await self._check_eligibility(user_id)

            if not await self._oracle.is_valid_swap(src, dst, qty):
                raise InvalidSwapError(
                    f"Invalid swap {src}->{dst} for amount {qty}. "
                    f"Check token pair and amount limits."
                )

            flags = await call_collaborator("flags", self._flags.get_flags())
            if not flags.global_swap_enabled:
                raise FeatureDisabledError("Token swaps are currently disabled")

            now = self._clock()
            allowed, reason = await self._limiter.check_can_swap(user_id, flags, now)
            if not allowed:
                raise SwapLimitExceeded(reason)

            balance = await self._store.get_balance(user_id, src)
            if balance < qty:
                raise InsufficientBalanceError(f"Insufficient {src} balance")

            quote = await self._oracle.estimate_output(src, dst, qty)
            if quote is None:
                raise InternalError("Failed to calculate swap output")

            swap = await self._commit(user_id, src, dst, qty, quote, now)

            await self._oracle.record_swap(src, dst, qty)

            logger.info(
                "swap_executed",
                swap_id=swap.id,
                from_token=src,
                to_token=dst,
                from_amount=str(qty),
                to_amount=str(quote.output_amount),
                rate=str(quote.rate),
                fee=str(quote.fee),
            )

            return SwapResult(
                swap_id=swap.id,
                from_token=src,
                to_token=dst,
                from_amount=qty,
                to_amount=quote.output_amount,
                rate=quote.rate,
                fee=quote.fee,
            )

    def _validate_request(
        self, user_id: str, from_token: object, to_token: object, amount: object
    ) -> tuple[str, str, str, Decimal]:
        uid = require_text(user_id, "user_id")
        src = require_text(from_token, "from_token")
        dst = require_text(to_token, "to_token")
        qty = coerce_amount(amount)
        if src == dst:
            raise InvalidArgumentError("Cannot swap a token for itself")
        return uid, src, dst, qty

    async def _check_eligibility(self, user_id: str) -> None:
        score = await call_collaborator(
            "eligibility", self._eligibility.get_score(user_id)
        )
        if score < self._settings.min_eligibility_score:
            raise PermissionDeniedError(
                f"Eligibility score too low. Minimum required: "
                f"{self._settings.min_eligibility_score}"
            )

    async def _commit(
        self,
        user_id: str,
        src: str,
        dst: str,
        qty: Decimal,
        quote: SwapQuote,
        now: float,
    ) -> SwapTransaction:
        swap = SwapTransaction(
            id=uuid4().hex,
            user_id=user_id,
            from_token=src,
            to_token=dst,
            from_amount=qty,
            to_amount=quote.output_amount,
            rate=quote.rate,
            fee=quote.fee,
            status=SwapStatus.COMPLETED,
            created_at=now,
        )
        try:
            async with self._store.transaction() as txn:
                await txn.debit(user_id, src, qty)
                await txn.credit(user_id, dst, quote.output_amount)
                await txn.insert_swap(swap)
        except LedgerError:
            logger.error("swap_commit_failed", swap_id=swap.id, exc_info=True)
            await self._record_failure(swap)
            raise
        return swap

    async def _record_failure(self, swap: SwapTransaction) -> None:
        swap.status = SwapStatus.FAILED
        try:
            async with self._store.transaction() as txn:
                await txn.insert_swap(swap)
        except LedgerError:
            logger.error("swap_failure_record_failed", swap_id=swap.id, exc_info=True)
