"""
Database management for ledgerflow.

Plain sqlite3 with an explicit, non-singleton handle. Every service receives
the LedgerDatabase it works on.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from ledgerflow.core.exceptions import DatabaseError

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
-- Accounts: one per bank/broker account, bound to a parser key
CREATE TABLE IF NOT EXISTS accounts (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    institution TEXT NOT NULL,
    parser_key TEXT NOT NULL,
    currency TEXT NOT NULL DEFAULT 'EUR',
    balance TEXT NOT NULL DEFAULT '0',
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);

-- Import records: one per processed export file
CREATE TABLE IF NOT EXISTS imports (
    id TEXT PRIMARY KEY,
    account_id TEXT NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
    parser_key TEXT NOT NULL,
    source_file TEXT,
    status TEXT NOT NULL DEFAULT 'PENDING'
        CHECK(status IN ('PENDING', 'PROCESSING', 'PROCESSED', 'FAILED', 'ROLLED_BACK')),
    parsed_count INTEGER DEFAULT 0,
    inserted_count INTEGER DEFAULT 0,
    skipped_count INTEGER DEFAULT 0,
    updated_count INTEGER DEFAULT 0,
    skipped_rows INTEGER DEFAULT 0,
    error_message TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    processed_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_imports_account ON imports(account_id, status);

-- Ledger transactions; amount is a positive magnitude, direction is in kind
CREATE TABLE IF NOT EXISTS transactions (
    id TEXT PRIMARY KEY,
    account_id TEXT NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
    import_id TEXT REFERENCES imports(id) ON DELETE SET NULL,
    date TEXT NOT NULL,
    value_date TEXT,
    description TEXT NOT NULL,
    amount TEXT NOT NULL,
    kind TEXT NOT NULL CHECK(kind IN ('income', 'expense', 'transfer')),
    is_debit INTEGER NOT NULL DEFAULT 0,
    bank_category TEXT,
    bank_label TEXT,
    reference TEXT,
    additional_info TEXT,
    category_id TEXT,
    category_source TEXT CHECK(category_source IS NULL OR
        category_source IN ('RULE', 'BANK', 'TRANSFER', 'AI', 'MANUAL')),
    category_confidence REAL,
    rule_id INTEGER,
    is_internal INTEGER NOT NULL DEFAULT 0,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_transactions_account_date ON transactions(account_id, date);
CREATE INDEX IF NOT EXISTS idx_transactions_category ON transactions(category_id);
CREATE INDEX IF NOT EXISTS idx_transactions_import ON transactions(import_id);

-- Categorization rules
CREATE TABLE IF NOT EXISTS category_rules (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    pattern TEXT NOT NULL,
    match_type TEXT NOT NULL DEFAULT 'CONTAINS'
        CHECK(match_type IN ('EXACT', 'CONTAINS', 'STARTS_WITH', 'REGEX')),
    priority INTEGER NOT NULL DEFAULT 100,
    category_id TEXT NOT NULL,
    source_filter TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_category_rules_active ON category_rules(is_active, priority);

-- Categorization run log
CREATE TABLE IF NOT EXISTS categorization_runs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    account_id TEXT,
    total INTEGER NOT NULL,
    rule_matches INTEGER NOT NULL,
    bank_matches INTEGER NOT NULL,
    ai_matches INTEGER NOT NULL,
    transfer_matches INTEGER NOT NULL,
    unmatched INTEGER NOT NULL,
    duration_ms INTEGER NOT NULL,
    estimated_cost TEXT NOT NULL DEFAULT '0',
    applied INTEGER NOT NULL DEFAULT 1,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

-- Recurring patterns, maintained by the detector only
CREATE TABLE IF NOT EXISTS recurring_patterns (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    account_id TEXT,
    description TEXT NOT NULL,
    normalized_description TEXT NOT NULL,
    amount TEXT NOT NULL,
    frequency TEXT NOT NULL CHECK(frequency IN ('WEEKLY', 'MONTHLY', 'QUARTERLY', 'ANNUAL')),
    tolerance_percent REAL NOT NULL DEFAULT 10,
    occurrence_count INTEGER NOT NULL,
    category_id TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    last_seen_at TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_recurring_normalized ON recurring_patterns(normalized_description);
"""


class LedgerDatabase:
    """
    Owns one sqlite3 connection and the ledger schema.

    Usage:
        with LedgerDatabase(":memory:") as db:
            with db.transaction():
                db.execute("INSERT INTO accounts ...")
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = str(db_path)
        self._connection: Optional[sqlite3.Connection] = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the connection, opening it on first use."""
        if self._connection is None:
            self.connect()
        return self._connection

    def connect(self) -> sqlite3.Connection:
        """
        Open the database and create the schema.

        Returns:
            Database connection

        Raises:
            DatabaseError: If initialization fails
        """
        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

            # isolation_level=None: transactions are opened explicitly in transaction()
            self._connection = sqlite3.connect(self.db_path, isolation_level=None)
            self._connection.row_factory = sqlite3.Row
            self._connection.execute("PRAGMA foreign_keys = ON")

            if self.db_path != ":memory:":
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")

            self._connection.executescript(SCHEMA_SQL)
            logger.debug(f"Opened ledger database at {self.db_path}")
            return self._connection

        except sqlite3.Error as e:
            self._connection = None
            raise DatabaseError(f"Failed to initialize database {self.db_path}: {e}") from e

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        """Execute SQL statement."""
        return self.connection.execute(sql, params)

    def executemany(self, sql: str, params_list: list) -> sqlite3.Cursor:
        """Execute SQL statement with multiple parameter sets."""
        return self.connection.executemany(sql, params_list)

    @contextmanager
    def transaction(self):
        """
        Context manager for atomic transactions.

        Nested use joins the outer transaction.

        Raises:
            DatabaseError: If the transaction fails on a sqlite error
        """
        conn = self.connection
        if conn.in_transaction:
            yield conn
            return

        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except sqlite3.Error as e:
            conn.execute("ROLLBACK")
            raise DatabaseError(f"Transaction failed: {e}") from e
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        else:
            conn.execute("COMMIT")

    def get_tables(self) -> list:
        """Get list of all tables in database."""
        cursor = self.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        return [row["name"] for row in cursor.fetchall()]

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def __enter__(self) -> "LedgerDatabase":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
