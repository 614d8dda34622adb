"""Rolling-window swap quotas.

Both the per-account and the global limit count completed swaps whose
created_at falls within the last ``window_hours`` before now. There is no
calendar-day reset: every swap ages out exactly one window after it was made.

Counts are read outside the swap's commit transaction, so under concurrent
load a handful of swaps may overshoot a limit.
"""

from zborsa.config import SwapSettings
from zborsa.ledger.queries import SwapQuery
from zborsa.ledger.store import LedgerStore
from zborsa.logging import get_logger
from zborsa.models import ExchangeFlags, SwapStatus

logger = get_logger(__name__)


class SwapLimiter:
    """Checks per-account and global swap counts against the window limits.

    Args:
        store: Ledger store holding swap transaction records.
        settings: Swap settings (window length).
    """

    def __init__(self, store: LedgerStore, settings: SwapSettings) -> None:
        self._store = store
        self._window_seconds = settings.window_hours * 3600

    def window_start(self, now: float) -> float:
        return now - self._window_seconds

    async def check_can_swap(
        self, user_id: str, flags: ExchangeFlags, now: float
    ) -> tuple[bool, str]:
        """Check whether one more swap fits in the current window.

        Returns:
            Tuple of (allowed, reason). If allowed is True, reason is "".
        """
        since = self.window_start(now)

        user_count = await self._store.count_swaps(
            SwapQuery(user_id=user_id, since=since, status=SwapStatus.COMPLETED)
        )
        if user_count >= flags.daily_swap_limit_per_user:
            logger.info(
                "swap_user_limit_reached",
                user_id=user_id,
                count=user_count,
                limit=flags.daily_swap_limit_per_user,
            )
            return False, (
                f"Daily swap limit of {flags.daily_swap_limit_per_user} "
                f"reached for this account"
            )

        global_count = await self._store.count_swaps(
            SwapQuery(since=since, status=SwapStatus.COMPLETED)
        )
        if global_count >= flags.daily_swap_limit:
            logger.warning(
                "swap_global_limit_reached",
                count=global_count,
                limit=flags.daily_swap_limit,
            )
            return False, f"Global daily swap limit of {flags.daily_swap_limit} reached"

        return True, ""
