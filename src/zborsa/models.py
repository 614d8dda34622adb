"""Shared data models for the token exchange and staking engine.

CRITICAL: All token amounts, rates, fees, and yields use Decimal. Never use float
for them. Timestamps are Unix seconds (float).
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

SECONDS_PER_DAY = 86400
DAYS_PER_YEAR = Decimal("365")


class SwapStatus(str, Enum):
    """Outcome recorded on a swap transaction."""

    COMPLETED = "completed"
    FAILED = "failed"


class StakeStatus(str, Enum):
    """Lifecycle state of a stake. WITHDRAWN is terminal."""

    ACTIVE = "active"
    COMPLETED = "completed"
    WITHDRAWN = "withdrawn"


@dataclass
class TokenPair:
    """A directed, priced conversion rule between two token symbols.

    Rates for A->B and B->A are independent entries.
    """

    from_token: str
    to_token: str
    rate: Decimal
    fee: Decimal
    min_amount: Decimal
    max_amount: Decimal
    is_active: bool = True

    @property
    def key(self) -> tuple[str, str]:
        return (self.from_token, self.to_token)


@dataclass(frozen=True)
class StakingOption:
    """A configured stake-token / yield-token / lock-period menu entry."""

    token_type: str
    yield_token: str
    yield_rate: Decimal  # annualized
    lock_period_days: int
    min_amount: Decimal
    max_amount: Decimal


@dataclass
class ExchangeFlags:
    """Feature flags and limits read from external configuration."""

    global_swap_enabled: bool
    staking_enabled: bool
    daily_swap_limit: int
    daily_swap_limit_per_user: int
    staking_options: list[StakingOption] = field(default_factory=list)


@dataclass
class SwapQuote:
    """Quoted output for a prospective swap."""

    output_amount: Decimal
    fee: Decimal
    rate: Decimal


@dataclass
class SwapTransaction:
    """Append-only record of one swap attempt."""

    id: str
    user_id: str
    from_token: str
    to_token: str
    from_amount: Decimal
    to_amount: Decimal
    rate: Decimal
    fee: Decimal
    status: SwapStatus
    created_at: float


@dataclass
class SwapResult:
    """Result returned to the caller of a successful swap."""

    swap_id: str
    from_token: str
    to_token: str
    from_amount: Decimal
    to_amount: Decimal
    rate: Decimal
    fee: Decimal


@dataclass
class StakeRecord:
    """A time-locked stake.

    While ACTIVE only total_yield_accrued and last_yield_at change.
    """

    id: str
    user_id: str
    token_type: str
    amount: Decimal
    yield_token: str
    yield_rate: Decimal
    lock_period_days: int
    start_date: float
    end_date: float
    total_yield_accrued: Decimal
    last_yield_at: float
    status: StakeStatus

    @property
    def is_open(self) -> bool:
        """Principal not yet returned (ACTIVE or COMPLETED)."""
        return self.status != StakeStatus.WITHDRAWN


@dataclass
class StakeProjection:
    """A stake together with its projected (not yet settled) yield."""

    stake: StakeRecord
    pending_yield: Decimal
    projected_yield: Decimal


@dataclass
class WithdrawalResult:
    """Funds returned by a stake withdrawal."""

    stake_id: str
    returned_amount: Decimal
    yield_amount: Decimal
    early_withdrawal: bool


@dataclass
class YieldRunResult:
    """Summary of one bulk yield processing run."""

    processed_count: int = 0
    completed_count: int = 0
    accrued_count: int = 0
    skipped_count: int = 0
    failed_count: int = 0
    failed_stake_ids: list[str] = field(default_factory=list)
