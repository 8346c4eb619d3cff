"""
Tests for LedgerDatabase.
"""

import pytest

from ledgerflow.core.database import LedgerDatabase
from ledgerflow.core.exceptions import DatabaseError


class TestLedgerDatabase:
    """Tests for connection handling and schema creation."""

    def test_schema_created(self, ledger_db):
        tables = ledger_db.get_tables()

        for table in ("accounts", "imports", "transactions", "category_rules",
                      "categorization_runs", "recurring_patterns"):
            assert table in tables

    def test_file_database(self, tmp_path):
        path = tmp_path / "nested" / "ledger.db"

        with LedgerDatabase(str(path)) as db:
            db.execute(
                "INSERT INTO accounts (id, name, institution, parser_key) VALUES ('a', 'A', 'B', 'boursorama')"
            )

        assert path.exists()
        with LedgerDatabase(str(path)) as db:
            assert db.execute("SELECT COUNT(*) AS n FROM accounts").fetchone()["n"] == 1

    def test_foreign_keys_enforced(self, ledger_db):
        with pytest.raises(DatabaseError):
            with ledger_db.transaction():
                ledger_db.execute(
                    "INSERT INTO imports (id, account_id, parser_key) VALUES ('imp', 'missing', 'x')"
                )

    def test_transaction_commits(self, ledger_db):
        with ledger_db.transaction():
            ledger_db.execute(
                "INSERT INTO accounts (id, name, institution, parser_key) VALUES ('a', 'A', 'B', 'x')"
            )

        assert ledger_db.execute("SELECT COUNT(*) AS n FROM accounts").fetchone()["n"] == 1

    def test_transaction_rolls_back_on_error(self, ledger_db):
        with pytest.raises(RuntimeError):
            with ledger_db.transaction():
                ledger_db.execute(
                    "INSERT INTO accounts (id, name, institution, parser_key) VALUES ('a', 'A', 'B', 'x')"
                )
                raise RuntimeError("boom")

        assert ledger_db.execute("SELECT COUNT(*) AS n FROM accounts").fetchone()["n"] == 0
        assert not ledger_db.connection.in_transaction

    def test_nested_transaction_joins_outer(self, ledger_db):
        with pytest.raises(RuntimeError):
            with ledger_db.transaction():
                with ledger_db.transaction():
                    ledger_db.execute(
                        "INSERT INTO accounts (id, name, institution, parser_key) VALUES ('a', 'A', 'B', 'x')"
                    )
                raise RuntimeError("outer failure")

        assert ledger_db.execute("SELECT COUNT(*) AS n FROM accounts").fetchone()["n"] == 0

    def test_bad_match_type_rejected_by_schema(self, ledger_db):
        with pytest.raises(DatabaseError):
            with ledger_db.transaction():
                ledger_db.execute(
                    "INSERT INTO category_rules (pattern, match_type, category_id) VALUES ('X', 'FUZZY', 'cat-fees')"
                )

    def test_close_and_reopen(self):
        db = LedgerDatabase(":memory:")
        db.connect()
        db.close()

        # connection property reopens lazily
        assert "accounts" in db.get_tables()
        db.close()
