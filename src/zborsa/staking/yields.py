"""Yield accrual arithmetic for time-locked stakes.

All calculations use Decimal. The year basis is a fixed 365 days (no leap-year
adjustment) and elapsed time is measured in fractional days.

  pending_yield = amount * yield_rate * (days_since_last_yield / 365)

Early withdrawal halves only the pending (unsettled) part; yield already
credited to total_yield_accrued is never penalised.
"""

from decimal import Decimal

from zborsa.models import DAYS_PER_YEAR, SECONDS_PER_DAY, StakeRecord

ZERO = Decimal("0")
EARLY_WITHDRAWAL_YIELD_SHARE = Decimal("0.5")


def elapsed_days(since: float, until: float) -> Decimal:
    """Fractional days between two Unix timestamps (never negative)."""
    seconds = Decimal(str(until)) - Decimal(str(since))
    if seconds <= ZERO:
        return ZERO
    return seconds / SECONDS_PER_DAY


def pending_yield(stake: StakeRecord, now: float) -> Decimal:
    """Yield accrued since the stake's last settlement, unpenalised."""
    days = elapsed_days(stake.last_yield_at, now)
    return stake.amount * stake.yield_rate * (days / DAYS_PER_YEAR)


def projected_yield(stake: StakeRecord, now: float) -> Decimal:
    """Settled yield plus pending yield, as shown to the stake holder."""
    return stake.total_yield_accrued + pending_yield(stake, now)


def is_early(stake: StakeRecord, now: float) -> bool:
    """True when the lock period has not yet matured."""
    return now < stake.end_date


def withdrawal_yield(stake: StakeRecord, now: float) -> tuple[Decimal, bool]:
    """Total yield paid out on withdrawal at ``now``.

    Returns:
        Tuple of (yield_amount, early_withdrawal).
    """
    early = is_early(stake, now)
    pending = pending_yield(stake, now)
    if early:
        pending *= EARLY_WITHDRAWAL_YIELD_SHARE
    return stake.total_yield_accrued + pending, early
