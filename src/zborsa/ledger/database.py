"""Async SQLite database manager for the token ledger.

Uses aiosqlite in autocommit mode (isolation_level=None) so that the ledger
store controls transaction boundaries explicitly with BEGIN IMMEDIATE /
COMMIT / ROLLBACK. WAL mode keeps history reads from blocking writers.
"""

import os
from typing import Self

import aiosqlite

from zborsa.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS accounts (
    account_id TEXT PRIMARY KEY,
    created_at REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS balances (
    account_id TEXT NOT NULL REFERENCES accounts(account_id),
    token TEXT NOT NULL,
    amount TEXT NOT NULL,
    PRIMARY KEY (account_id, token)
);

CREATE TABLE IF NOT EXISTS swap_transactions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    from_token TEXT NOT NULL,
    to_token TEXT NOT NULL,
    from_amount TEXT NOT NULL,
    to_amount TEXT NOT NULL,
    rate TEXT NOT NULL,
    fee TEXT NOT NULL,
    status TEXT NOT NULL,
    created_at REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS stake_records (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    token_type TEXT NOT NULL,
    amount TEXT NOT NULL,
    yield_token TEXT NOT NULL,
    yield_rate TEXT NOT NULL,
    lock_period_days INTEGER NOT NULL,
    start_date REAL NOT NULL,
    end_date REAL NOT NULL,
    total_yield_accrued TEXT NOT NULL,
    last_yield_at REAL NOT NULL,
    status TEXT NOT NULL
);
"""

_CREATE_INDEXES_SQL = """
CREATE INDEX IF NOT EXISTS idx_swaps_created
    ON swap_transactions(created_at);

CREATE INDEX IF NOT EXISTS idx_swaps_user_created
    ON swap_transactions(user_id, created_at);

CREATE INDEX IF NOT EXISTS idx_stakes_status
    ON stake_records(status);

CREATE INDEX IF NOT EXISTS idx_stakes_user_status
    ON stake_records(user_id, status);
"""


class LedgerDatabase:
    """Async SQLite connection manager for the ledger.

    Usage:
        async with LedgerDatabase("data/ledger.db") as database:
            store = LedgerStore(database)
    """

    def __init__(self, db_path: str = "data/ledger.db", busy_timeout_ms: int = 5000) -> None:
        self._db_path = db_path
        self._busy_timeout_ms = busy_timeout_ms
        self._connection: aiosqlite.Connection | None = None

    @property
    def db(self) -> aiosqlite.Connection:
        """Access the raw aiosqlite connection.

        Raises RuntimeError if not connected.
        """
        if self._connection is None:
            raise RuntimeError("Ledger database not connected. Call connect() first.")
        return self._connection

    @property
    def path(self) -> str:
        return self._db_path

    async def connect(self) -> None:
        """Open the connection, configure pragmas, and create the schema."""
        db_dir = os.path.dirname(self._db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self._connection = await aiosqlite.connect(self._db_path, isolation_level=None)

        await self._connection.execute("PRAGMA journal_mode=WAL")
        await self._connection.execute("PRAGMA synchronous=NORMAL")
        await self._connection.execute("PRAGMA foreign_keys=ON")
        await self._connection.execute(f"PRAGMA busy_timeout={int(self._busy_timeout_ms)}")

        await self._create_tables()
        await self._ensure_schema_version()

        logger.info("ledger_db_connected", db_path=self._db_path)

    async def close(self) -> None:
        """Close the database connection if open."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("ledger_db_closed", db_path=self._db_path)

    async def _create_tables(self) -> None:
        assert self._connection is not None
        await self._connection.executescript(_CREATE_TABLES_SQL)
        await self._connection.executescript(_CREATE_INDEXES_SQL)

    async def _ensure_schema_version(self) -> None:
        assert self._connection is not None
        cursor = await self._connection.execute(
            "SELECT version FROM schema_version LIMIT 1"
        )
        row = await cursor.fetchone()
        if row is None:
            await self._connection.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            logger.info("schema_version_set", version=SCHEMA_VERSION)

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()
