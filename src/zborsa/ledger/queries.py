"""Typed filters for swap and stake record queries.

Each filter renders itself into a parameterised SQL WHERE clause; callers never
assemble field/operator/value tuples by hand.
"""

from dataclasses import dataclass

from zborsa.models import StakeStatus, SwapStatus


@dataclass(frozen=True)
class SwapQuery:
    """Filter over swap_transactions.

    Attributes:
        user_id: Restrict to one account (None = all accounts).
        since: Inclusive lower bound on created_at (Unix seconds).
        status: Restrict to one status (None = any).
        limit: Maximum rows returned by list queries, newest first.
    """

    user_id: str | None = None
    since: float | None = None
    status: SwapStatus | None = None
    limit: int | None = None

    def where(self) -> tuple[str, list]:
        conditions: list[str] = []
        params: list = []
        if self.user_id is not None:
            conditions.append("user_id = ?")
            params.append(self.user_id)
        if self.since is not None:
            conditions.append("created_at >= ?")
            params.append(self.since)
        if self.status is not None:
            conditions.append("status = ?")
            params.append(self.status.value)
        return _join(conditions), params


@dataclass(frozen=True)
class StakeQuery:
    """Filter over stake_records."""

    user_id: str | None = None
    statuses: tuple[StakeStatus, ...] = ()
    limit: int | None = None

    def where(self) -> tuple[str, list]:
        conditions: list[str] = []
        params: list = []
        if self.user_id is not None:
            conditions.append("user_id = ?")
            params.append(self.user_id)
        if self.statuses:
            placeholders = ", ".join("?" for _ in self.statuses)
            conditions.append(f"status IN ({placeholders})")
            params.extend(s.value for s in self.statuses)
        return _join(conditions), params


def _join(conditions: list[str]) -> str:
    if not conditions:
        return ""
    return " WHERE " + " AND ".join(conditions)
