"""Ledger persistence layer.

Provides the SQLite connection manager, the transactional balance/record
store, and typed query filters for swap and stake history.
"""

from zborsa.ledger.database import LedgerDatabase
from zborsa.ledger.queries import StakeQuery, SwapQuery
from zborsa.ledger.store import LedgerStore, LedgerTransaction

__all__ = [
    "LedgerDatabase",
    "LedgerStore",
    "LedgerTransaction",
    "StakeQuery",
    "SwapQuery",
]
