"""Read path over the append-only swap and stake logs."""

from zborsa.config import SwapSettings
from zborsa.exceptions import InvalidArgumentError
from zborsa.ledger.queries import StakeQuery, SwapQuery
from zborsa.ledger.store import LedgerStore
from zborsa.models import StakeRecord, StakeStatus, SwapStatus, SwapTransaction
from zborsa.validation import require_text


class TransactionLog:
    """History queries for swap transactions and stake records.

    Args:
        store: Ledger store holding the records.
        settings: Swap settings (default page size).
    """

    def __init__(self, store: LedgerStore, settings: SwapSettings | None = None) -> None:
        self._store = store
        self._settings = settings or SwapSettings()

    async def get_swap_history(
        self, user_id: str, limit: int | None = None
    ) -> list[SwapTransaction]:
        """Return the account's most recent swaps, newest first."""
        user_id = require_text(user_id, "user_id")
        if limit is None:
            limit = self._settings.history_default_limit
        if limit <= 0:
            raise InvalidArgumentError("limit must be positive")
        return await self._store.list_swaps(SwapQuery(user_id=user_id, limit=limit))

    async def get_stake_history(
        self, user_id: str, status: StakeStatus | None = None
    ) -> list[StakeRecord]:
        """Return the account's stakes (optionally one status), newest first."""
        user_id = require_text(user_id, "user_id")
        statuses = (status,) if status is not None else ()
        return await self._store.list_stakes(StakeQuery(user_id=user_id, statuses=statuses))

    async def get_stake(self, stake_id: str) -> StakeRecord | None:
        return await self._store.get_stake(stake_id)

    async def count_swaps(
        self, user_id: str | None = None, since: float | None = None
    ) -> int:
        """Count completed swaps, optionally for one account and/or since a time."""
        return await self._store.count_swaps(
            SwapQuery(user_id=user_id, since=since, status=SwapStatus.COMPLETED)
        )
