"""
SQLite-backed store for bankrolls, events, operations and bets.

Every public ledger contract runs inside exactly one ``unit_of_work()``:
one connection, one ``BEGIN IMMEDIATE`` transaction, committed only if the
whole block succeeds. Taking the write lock up front means a balance read
inside the block cannot be invalidated by another writer before commit.
"""
import sqlite3
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path
from typing import Iterator, Optional, Union
import logging

from betledger.exceptions import StorageError
from betledger.ledger.money import decimal_add
from betledger.store.repositories import UnitOfWork

logger = logging.getLogger(__name__)

# Decimal columns are declared DECIMAL_TEXT: TEXT affinity keeps the exact
# string, the converter turns it back into Decimal on read.
sqlite3.register_adapter(Decimal, str)
sqlite3.register_converter("DECIMAL_TEXT", lambda raw: Decimal(raw.decode()))

SCHEMA = """
CREATE TABLE IF NOT EXISTS bankrolls (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    bookmaker_name TEXT NOT NULL,
    currency TEXT NOT NULL,
    current_balance DECIMAL_TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE(user_id, bookmaker_name)
);

CREATE TABLE IF NOT EXISTS events (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    event_date TEXT NOT NULL,
    sport TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_events_date ON events(event_date);

CREATE TABLE IF NOT EXISTS operations (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    type TEXT NOT NULL CHECK (type IN ('SIMPLE', 'ARBITRAGE', 'MATCHED')),
    status TEXT NOT NULL DEFAULT 'PENDING',
    total_stake DECIMAL_TEXT NOT NULL,
    expected_return DECIMAL_TEXT,
    actual_return DECIMAL_TEXT,
    roi DECIMAL_TEXT,
    matched_odds DECIMAL_TEXT,
    description TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_operations_user ON operations(user_id, created_at);

CREATE TABLE IF NOT EXISTS bets (
    id TEXT PRIMARY KEY,
    operation_id TEXT NOT NULL REFERENCES operations(id) ON DELETE CASCADE,
    bankroll_id TEXT NOT NULL REFERENCES bankrolls(id),
    event_id TEXT REFERENCES events(id),
    selection TEXT NOT NULL,
    league TEXT,
    odds DECIMAL_TEXT NOT NULL,
    stake DECIMAL_TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'PENDING',
    result_value DECIMAL_TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_bets_operation ON bets(operation_id);
CREATE INDEX IF NOT EXISTS idx_bets_bankroll ON bets(bankroll_id);
"""


class Database:
    """
    Connection factory and transaction boundary.

    Usage:
        db = Database("data/betbook.db")
        db.init_schema()

        with db.unit_of_work() as uow:
            uow.bankrolls.adjust_balance(bankroll_id, Decimal("-100"))
    """

    def __init__(
        self,
        db_path: Union[str, Path] = "data/betbook.db",
        busy_timeout_s: float = 30.0,
        wal: bool = True,
    ):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.busy_timeout_s = busy_timeout_s
        self.wal = wal

    @classmethod
    def from_settings(cls, store_settings=None) -> "Database":
        if store_settings is None:
            from betledger.config import settings
            store_settings = settings.store
        return cls(
            db_path=store_settings.db_path,
            busy_timeout_s=store_settings.busy_timeout_s,
            wal=store_settings.wal,
        )

    def _get_conn(self) -> sqlite3.Connection:
        """Open a connection in manual-transaction mode."""
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.busy_timeout_s,
            isolation_level=None,
            detect_types=sqlite3.PARSE_DECLTYPES,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout_s * 1000)}")
        conn.create_function("decimal_add", 2, decimal_add, deterministic=True)
        return conn

    def init_schema(self) -> None:
        """Create tables and indexes if missing."""
        try:
            conn = self._get_conn()
            try:
                if self.wal:
                    conn.execute("PRAGMA journal_mode=WAL")
                conn.executescript(SCHEMA)
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to initialize database: {e}") from e
        logger.info(f"Initialized ledger store at {self.db_path}")

    @contextmanager
    def unit_of_work(self, readonly: bool = False) -> Iterator[UnitOfWork]:
        """
        Open one atomic unit of work.

        Commits when the block exits normally; rolls back on any exception and
        re-raises it. Store failures surface as ``StorageError``.
        """
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to open database: {e}") from e

        try:
            conn.execute("BEGIN" if readonly else "BEGIN IMMEDIATE")
            try:
                yield UnitOfWork(conn)
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            logger.error(f"Unit of work aborted: {e}")
            raise StorageError(str(e)) from e
        finally:
            conn.close()


def open_database(db_path: Optional[Union[str, Path]] = None) -> Database:
    """Database at ``db_path`` (or the configured path) with schema ensured."""
    db = Database(db_path) if db_path is not None else Database.from_settings()
    db.init_schema()
    return db
