"""Typed, transactional read/write abstraction over the ledger database.

Provides LedgerStore with an atomic ``transaction()`` primitive and typed
read helpers for balances, swap transactions, and stake records. All SQL is
isolated behind this interface.

CRITICAL: All amounts are stored as TEXT in SQLite and restored as Decimal on read.

Every statement on the shared aiosqlite connection runs under one asyncio.Lock,
so a transaction's intermediate state is never visible to another coroutine
and a balance check plus its decrement always happen inside the same unit.
"""

import asyncio
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from decimal import Decimal

import aiosqlite

from zborsa.exceptions import (
    InsufficientBalanceError,
    InvalidArgumentError,
    LedgerError,
    NotFoundError,
)
from zborsa.ledger.database import LedgerDatabase
from zborsa.ledger.queries import StakeQuery, SwapQuery
from zborsa.logging import get_logger
from zborsa.models import StakeRecord, StakeStatus, SwapStatus, SwapTransaction
from zborsa.validation import require_text

logger = get_logger(__name__)

ZERO = Decimal("0")

_SWAP_COLUMNS = (
    "id, user_id, from_token, to_token, from_amount, to_amount, "
    "rate, fee, status, created_at"
)
_STAKE_COLUMNS = (
    "id, user_id, token_type, amount, yield_token, yield_rate, lock_period_days, "
    "start_date, end_date, total_yield_accrued, last_yield_at, status"
)


def _row_to_swap(row: tuple) -> SwapTransaction:
    return SwapTransaction(
        id=row[0],
        user_id=row[1],
        from_token=row[2],
        to_token=row[3],
        from_amount=Decimal(row[4]),
        to_amount=Decimal(row[5]),
        rate=Decimal(row[6]),
        fee=Decimal(row[7]),
        status=SwapStatus(row[8]),
        created_at=row[9],
    )


def _row_to_stake(row: tuple) -> StakeRecord:
    return StakeRecord(
        id=row[0],
        user_id=row[1],
        token_type=row[2],
        amount=Decimal(row[3]),
        yield_token=row[4],
        yield_rate=Decimal(row[5]),
        lock_period_days=row[6],
        start_date=row[7],
        end_date=row[8],
        total_yield_accrued=Decimal(row[9]),
        last_yield_at=row[10],
        status=StakeStatus(row[11]),
    )


class LedgerTransaction:
    """Operations available inside one atomic ledger transaction.

    Only valid inside ``LedgerStore.transaction()``; any sqlite failure is
    raised as LedgerError and rolls the whole transaction back.
    """

    def __init__(self, connection: aiosqlite.Connection) -> None:
        self._db = connection
        self._open = True

    def _close(self) -> None:
        self._open = False

    async def _execute(self, sql: str, params: tuple | list = ()) -> aiosqlite.Cursor:
        if not self._open:
            raise LedgerError("Ledger transaction already finished")
        try:
            return await self._db.execute(sql, params)
        except aiosqlite.Error as exc:
            raise LedgerError(f"Ledger statement failed: {exc}") from exc

    async def ensure_account(self, account_id: str) -> None:
        """Raise NotFoundError if the account does not exist."""
        cursor = await self._execute(
            "SELECT 1 FROM accounts WHERE account_id = ?", (account_id,)
        )
        if await cursor.fetchone() is None:
            raise NotFoundError(f"Account {account_id} not found")

    async def get_balance(self, account_id: str, token: str) -> Decimal:
        await self.ensure_account(account_id)
        cursor = await self._execute(
            "SELECT amount FROM balances WHERE account_id = ? AND token = ?",
            (account_id, token),
        )
        row = await cursor.fetchone()
        return Decimal(row[0]) if row is not None else ZERO

    async def get_balances(self, account_id: str) -> dict[str, Decimal]:
        await self.ensure_account(account_id)
        cursor = await self._execute(
            "SELECT token, amount FROM balances WHERE account_id = ? ORDER BY token",
            (account_id,),
        )
        rows = await cursor.fetchall()
        return {row[0]: Decimal(row[1]) for row in rows}

    async def _write_balance(self, account_id: str, token: str, amount: Decimal) -> None:
        await self._execute(
            "INSERT INTO balances (account_id, token, amount) VALUES (?, ?, ?) "
            "ON CONFLICT(account_id, token) DO UPDATE SET amount = excluded.amount",
            (account_id, token, str(amount)),
        )

    async def debit(self, account_id: str, token: str, amount: Decimal) -> Decimal:
        """Compare-and-decrement a balance. Returns the new balance.

        Raises InsufficientBalanceError instead of letting the balance go negative.
        """
        if amount <= ZERO:
            raise InvalidArgumentError("Debit amount must be positive")
        current = await self.get_balance(account_id, token)
        if current < amount:
            raise InsufficientBalanceError(
                f"Insufficient {token} balance: have {current}, need {amount}"
            )
        new_balance = current - amount
        await self._write_balance(account_id, token, new_balance)
        return new_balance

    async def credit(self, account_id: str, token: str, amount: Decimal) -> Decimal:
        """Increment a balance (creating the token entry if needed)."""
        if amount < ZERO:
            raise InvalidArgumentError("Credit amount must not be negative")
        current = await self.get_balance(account_id, token)
        new_balance = current + amount
        await self._write_balance(account_id, token, new_balance)
        return new_balance

    async def insert_swap(self, swap: SwapTransaction) -> None:
        await self._execute(
            f"INSERT INTO swap_transactions ({_SWAP_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                swap.id,
                swap.user_id,
                swap.from_token,
                swap.to_token,
                str(swap.from_amount),
                str(swap.to_amount),
                str(swap.rate),
                str(swap.fee),
                swap.status.value,
                swap.created_at,
            ),
        )

    async def insert_stake(self, stake: StakeRecord) -> None:
        await self._execute(
            f"INSERT INTO stake_records ({_STAKE_COLUMNS}) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                stake.id,
                stake.user_id,
                stake.token_type,
                str(stake.amount),
                stake.yield_token,
                str(stake.yield_rate),
                stake.lock_period_days,
                stake.start_date,
                stake.end_date,
                str(stake.total_yield_accrued),
                stake.last_yield_at,
                stake.status.value,
            ),
        )

    async def get_stake(self, stake_id: str) -> StakeRecord | None:
        cursor = await self._execute(
            f"SELECT {_STAKE_COLUMNS} FROM stake_records WHERE id = ?", (stake_id,)
        )
        row = await cursor.fetchone()
        return _row_to_stake(row) if row is not None else None

    async def update_stake(
        self,
        stake_id: str,
        *,
        status: StakeStatus,
        total_yield_accrued: Decimal,
        last_yield_at: float,
        expected_status: StakeStatus,
        expected_last_yield_at: float | None = None,
    ) -> bool:
        """Compare-and-set a stake's mutable fields.

        The update only applies if the stored status (and, when given,
        last_yield_at) still match what the caller read. Returns True if the
        row changed.
        """
        sql = (
            "UPDATE stake_records SET status = ?, total_yield_accrued = ?, "
            "last_yield_at = ? WHERE id = ? AND status = ?"
        )
        params: list = [
            status.value,
            str(total_yield_accrued),
            last_yield_at,
            stake_id,
            expected_status.value,
        ]
        if expected_last_yield_at is not None:
            sql += " AND last_yield_at = ?"
            params.append(expected_last_yield_at)
        cursor = await self._execute(sql, params)
        return cursor.rowcount == 1


class LedgerStore:
    """Transactional SQLite store for balances, swaps, and stakes.

    Usage:
        async with LedgerDatabase("data/ledger.db") as database:
            store = LedgerStore(database)
            async with store.transaction() as txn:
                await txn.debit("alice", "OBX", Decimal("10"))
                await txn.credit("alice", "STX", Decimal("23.76"))
    """

    def __init__(self, database: LedgerDatabase) -> None:
        self._database = database
        self._lock = asyncio.Lock()

    # ──────────────────────────────────────────────
    # Transactions
    # ──────────────────────────────────────────────

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[LedgerTransaction]:
        """Run a block of ledger operations atomically.

        Commits when the block exits normally; rolls back on any exception.
        Begin/commit failures are raised as LedgerError.
        """
        async with self._lock:
            await self._control("BEGIN IMMEDIATE")
            txn = LedgerTransaction(self._database.db)
            try:
                yield txn
            except BaseException:
                txn._close()
                await self._rollback()
                raise
            txn._close()
            try:
                await self._control("COMMIT")
            except LedgerError:
                await self._rollback()
                raise

    async def _control(self, statement: str) -> None:
        try:
            await self._database.db.execute(statement)
        except aiosqlite.Error as exc:
            logger.error("ledger_control_failed", statement=statement, error=str(exc))
            raise LedgerError(f"Ledger {statement} failed: {exc}") from exc

    async def _rollback(self) -> None:
        try:
            await self._database.db.execute("ROLLBACK")
        except aiosqlite.Error:
            # Nothing to roll back if BEGIN never took effect.
            logger.warning("ledger_rollback_failed", exc_info=True)

    async def _fetchall(self, sql: str, params: tuple | list = ()) -> list:
        async with self._lock:
            try:
                cursor = await self._database.db.execute(sql, params)
                return list(await cursor.fetchall())
            except aiosqlite.Error as exc:
                raise LedgerError(f"Ledger query failed: {exc}") from exc

    # ──────────────────────────────────────────────
    # Accounts and balances
    # ──────────────────────────────────────────────

    async def open_account(self, account_id: str, created_at: float | None = None) -> bool:
        """Create an empty balance map for an account. Returns False if it existed."""
        account_id = require_text(account_id, "account_id")
        async with self.transaction() as txn:
            cursor = await txn._execute(
                "INSERT OR IGNORE INTO accounts (account_id, created_at) VALUES (?, ?)",
                (account_id, created_at if created_at is not None else time.time()),
            )
            created = cursor.rowcount == 1
        if created:
            logger.info("account_opened", account_id=account_id)
        return created

    async def account_exists(self, account_id: str) -> bool:
        rows = await self._fetchall(
            "SELECT 1 FROM accounts WHERE account_id = ?", (account_id,)
        )
        return bool(rows)

    async def get_balances(self, account_id: str) -> dict[str, Decimal]:
        async with self.transaction() as txn:
            return await txn.get_balances(account_id)

    async def get_balance(self, account_id: str, token: str) -> Decimal:
        async with self.transaction() as txn:
            return await txn.get_balance(account_id, token)

    async def deposit(self, account_id: str, token: str, amount: Decimal) -> Decimal:
        """Credit tokens minted by an external reward pipeline."""
        if amount <= ZERO:
            raise InvalidArgumentError("Deposit amount must be positive")
        async with self.transaction() as txn:
            new_balance = await txn.credit(account_id, token, amount)
        logger.info(
            "balance_deposited",
            account_id=account_id,
            token=token,
            amount=str(amount),
            balance=str(new_balance),
        )
        return new_balance

    # ──────────────────────────────────────────────
    # Swap and stake records
    # ──────────────────────────────────────────────

    async def list_swaps(self, query: SwapQuery) -> list[SwapTransaction]:
        """Return swaps matching the query, newest first."""
        where, params = query.where()
        sql = f"SELECT {_SWAP_COLUMNS} FROM swap_transactions{where} ORDER BY created_at DESC"
        if query.limit is not None:
            sql += " LIMIT ?"
            params.append(query.limit)
        rows = await self._fetchall(sql, params)
        return [_row_to_swap(row) for row in rows]

    async def count_swaps(self, query: SwapQuery) -> int:
        where, params = query.where()
        rows = await self._fetchall(
            f"SELECT COUNT(*) FROM swap_transactions{where}", params
        )
        return int(rows[0][0])

    async def list_stakes(self, query: StakeQuery) -> list[StakeRecord]:
        """Return stakes matching the query, newest first."""
        where, params = query.where()
        sql = f"SELECT {_STAKE_COLUMNS} FROM stake_records{where} ORDER BY start_date DESC"
        if query.limit is not None:
            sql += " LIMIT ?"
            params.append(query.limit)
        rows = await self._fetchall(sql, params)
        return [_row_to_stake(row) for row in rows]

    async def get_stake(self, stake_id: str) -> StakeRecord | None:
        rows = await self._fetchall(
            f"SELECT {_STAKE_COLUMNS} FROM stake_records WHERE id = ?", (stake_id,)
        )
        return _row_to_stake(rows[0]) if rows else None
