"""
Ledger store: accounts, persisted transactions and import records.

Amounts are stored as TEXT and handled as Decimal. Ledger amounts are
positive magnitudes; the kind column carries the direction.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from ledgerflow.core.database import LedgerDatabase
from ledgerflow.core.exceptions import (
    AccountNotFoundError,
    ImportNotFoundError,
    TransactionNotFoundError,
)

logger = logging.getLogger(__name__)

# Columns an import may overwrite on reprocess of its own rows; category
# columns and row ownership are never touched
REPROCESS_COLUMNS = (
    "date",
    "value_date",
    "description",
    "amount",
    "kind",
    "is_debit",
    "bank_category",
    "bank_label",
    "reference",
    "additional_info",
)

TRANSACTION_COLUMNS = ("id", "account_id", "import_id") + REPROCESS_COLUMNS


class ImportStatus:
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"
    ROLLED_BACK = "ROLLED_BACK"


@dataclass
class Account:
    """A bank or brokerage account bound to one parser key."""

    id: str
    name: str
    institution: str
    parser_key: str
    currency: str = "EUR"
    balance: Decimal = Decimal("0")

    @classmethod
    def from_row(cls, row) -> "Account":
        return cls(
            id=row["id"],
            name=row["name"],
            institution=row["institution"],
            parser_key=row["parser_key"],
            currency=row["currency"],
            balance=Decimal(row["balance"]),
        )


@dataclass
class LedgerTransaction:
    """A persisted transaction as read back for categorization."""

    id: str
    account_id: str
    date: date
    description: str
    amount: Decimal
    kind: str
    is_debit: bool
    bank_category: Optional[str] = None
    bank_label: Optional[str] = None
    category_id: Optional[str] = None
    category_source: Optional[str] = None
    parser_key: Optional[str] = None
    import_id: Optional[str] = None

    @property
    def signed_amount(self) -> Decimal:
        return -self.amount if self.is_debit else self.amount

    @classmethod
    def from_row(cls, row) -> "LedgerTransaction":
        keys = row.keys()
        return cls(
            id=row["id"],
            account_id=row["account_id"],
            date=date.fromisoformat(row["date"]),
            description=row["description"],
            amount=Decimal(row["amount"]),
            kind=row["kind"],
            is_debit=bool(row["is_debit"]),
            bank_category=row["bank_category"],
            bank_label=row["bank_label"],
            category_id=row["category_id"],
            category_source=row["category_source"],
            parser_key=row["parser_key"] if "parser_key" in keys else None,
            import_id=row["import_id"],
        )


@dataclass
class UpsertResult:
    inserted: int = 0
    skipped: int = 0
    updated: int = 0


@dataclass
class ImportRecord:
    """One processed export file."""

    id: str
    account_id: str
    parser_key: str
    source_file: Optional[str]
    status: str
    parsed_count: int = 0
    inserted_count: int = 0
    skipped_count: int = 0
    updated_count: int = 0
    skipped_rows: int = 0
    error_message: Optional[str] = None
    created_at: Optional[str] = None
    processed_at: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "ImportRecord":
        return cls(**{k: row[k] for k in row.keys()})


class LedgerStore:
    """
    Persistence for accounts, ledger transactions and import records.

    Usage:
        store = LedgerStore(LedgerDatabase(":memory:"))
        account = store.create_account("Compte courant", "Caisse d'Épargne", "caisse_epargne")
    """

    def __init__(self, db: LedgerDatabase):
        self.db = db

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def create_account(
        self,
        name: str,
        institution: str,
        parser_key: str,
        currency: str = "EUR",
        account_id: Optional[str] = None,
    ) -> Account:
        account_id = account_id or f"acc-{uuid.uuid4().hex[:12]}"
        self.db.execute(
            """INSERT INTO accounts (id, name, institution, parser_key, currency)
               VALUES (?, ?, ?, ?, ?)""",
            (account_id, name, institution, parser_key, currency),
        )
        logger.info(f"Created account {account_id} ({institution} / {parser_key})")
        return Account(account_id, name, institution, parser_key, currency)

    def get_account(self, account_id: str) -> Account:
        row = self.db.execute("SELECT * FROM accounts WHERE id = ?", (account_id,)).fetchone()
        if row is None:
            raise AccountNotFoundError(account_id)
        return Account.from_row(row)

    def list_accounts(self) -> List[Account]:
        rows = self.db.execute("SELECT * FROM accounts ORDER BY created_at, id").fetchall()
        return [Account.from_row(r) for r in rows]

    def delete_account(self, account_id: str) -> None:
        """Delete an account with its transactions and imports."""
        self.get_account(account_id)
        with self.db.transaction():
            self.db.execute("DELETE FROM accounts WHERE id = ?", (account_id,))
        logger.info(f"Deleted account {account_id}")

    # ------------------------------------------------------------------
    # Balance
    # ------------------------------------------------------------------

    def get_account_balance(self, account_id: str) -> Decimal:
        return self.get_account(account_id).balance

    def set_account_balance(self, account_id: str, balance: Decimal) -> None:
        cursor = self.db.execute(
            "UPDATE accounts SET balance = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (str(balance), account_id),
        )
        if cursor.rowcount == 0:
            raise AccountNotFoundError(account_id)

    def recalculate_balance(self, account_id: str) -> Decimal:
        """Recompute the balance as sum(income) - sum(expense). Transfers are excluded."""
        rows = self.db.execute(
            "SELECT amount, kind FROM transactions WHERE account_id = ? AND kind != 'transfer'",
            (account_id,),
        ).fetchall()

        balance = Decimal("0")
        for row in rows:
            amount = Decimal(row["amount"])
            balance += amount if row["kind"] == "income" else -amount

        self.set_account_balance(account_id, balance)
        logger.debug(f"Account {account_id} balance recalculated: {balance}")
        return balance

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def upsert_transactions(self, rows: Iterable[Dict[str, Any]], overwrite: bool = False) -> UpsertResult:
        """
        Persist ledger rows keyed by their deterministic id.

        Args:
            rows: Dicts holding TRANSACTION_COLUMNS
            overwrite: Update the import-owned columns of existing rows that
                belong to the same import instead of leaving them untouched.
                Rows owned by another import are counted as skipped.

        Returns:
            UpsertResult with inserted, skipped and updated counts
        """
        result = UpsertResult()
        columns = ", ".join(TRANSACTION_COLUMNS)
        placeholders = ", ".join("?" for _ in TRANSACTION_COLUMNS)
        insert_sql = f"INSERT OR IGNORE INTO transactions ({columns}) VALUES ({placeholders})"
        update_sql = (
            "UPDATE transactions SET "
            + ", ".join(f"{c} = ?" for c in REPROCESS_COLUMNS)
            + ", updated_at = CURRENT_TIMESTAMP WHERE id = ? AND import_id IS ?"
        )

        with self.db.transaction():
            for row in rows:
                values = tuple(_to_db(row.get(c)) for c in TRANSACTION_COLUMNS)
                cursor = self.db.execute(insert_sql, values)
                if cursor.rowcount == 1:
                    result.inserted += 1
                    continue
                if overwrite:
                    values = tuple(_to_db(row.get(c)) for c in REPROCESS_COLUMNS)
                    cursor = self.db.execute(update_sql, values + (row["id"], row.get("import_id")))
                    if cursor.rowcount == 1:
                        result.updated += 1
                        continue
                result.skipped += 1

        return result

    def get_transaction(self, transaction_id: str) -> LedgerTransaction:
        row = self.db.execute(
            """SELECT t.*, a.parser_key FROM transactions t
               JOIN accounts a ON a.id = t.account_id WHERE t.id = ?""",
            (transaction_id,),
        ).fetchone()
        if row is None:
            raise TransactionNotFoundError(transaction_id)
        return LedgerTransaction.from_row(row)

    def list_transactions(
        self,
        account_id: Optional[str] = None,
        uncategorized_only: bool = False,
        since: Optional[date] = None,
    ) -> List[LedgerTransaction]:
        """List transactions in a stable order (date, then id)."""
        sql = """SELECT t.*, a.parser_key FROM transactions t
                 JOIN accounts a ON a.id = t.account_id WHERE 1 = 1"""
        params: list = []
        if account_id:
            sql += " AND t.account_id = ?"
            params.append(account_id)
        if uncategorized_only:
            sql += " AND t.category_id IS NULL"
        if since:
            sql += " AND t.date >= ?"
            params.append(since.isoformat())
        sql += " ORDER BY t.date, t.id"
        return [LedgerTransaction.from_row(r) for r in self.db.execute(sql, tuple(params)).fetchall()]

    def list_uncategorized(self, account_id: Optional[str] = None) -> List[LedgerTransaction]:
        return self.list_transactions(account_id, uncategorized_only=True)

    def assign_category(
        self,
        transaction_id: str,
        category_id: str,
        source: str,
        confidence: float,
        rule_id: Optional[int] = None,
        is_internal: bool = False,
        only_if_uncategorized: bool = True,
    ) -> bool:
        """
        Set a transaction's category.

        Returns:
            False when the transaction already had a category and
            only_if_uncategorized is set
        """
        sql = """UPDATE transactions
                 SET category_id = ?, category_source = ?, category_confidence = ?,
                     rule_id = ?, is_internal = ?, updated_at = CURRENT_TIMESTAMP
                 WHERE id = ?"""
        if only_if_uncategorized:
            sql += " AND category_id IS NULL"
        cursor = self.db.execute(
            sql, (category_id, source, confidence, rule_id, int(is_internal), transaction_id)
        )
        return cursor.rowcount == 1

    def count_transactions(self, account_id: str) -> int:
        row = self.db.execute(
            "SELECT COUNT(*) AS n FROM transactions WHERE account_id = ?", (account_id,)
        ).fetchone()
        return row["n"]

    # ------------------------------------------------------------------
    # Imports
    # ------------------------------------------------------------------

    def create_import(self, account_id: str, parser_key: str, source_file: str = "") -> ImportRecord:
        import_id = f"imp-{uuid.uuid4().hex[:12]}"
        self.db.execute(
            """INSERT INTO imports (id, account_id, parser_key, source_file, status)
               VALUES (?, ?, ?, ?, ?)""",
            (import_id, account_id, parser_key, source_file, ImportStatus.PENDING),
        )
        return self.get_import(import_id)

    def get_import(self, import_id: str) -> ImportRecord:
        row = self.db.execute("SELECT * FROM imports WHERE id = ?", (import_id,)).fetchone()
        if row is None:
            raise ImportNotFoundError(import_id)
        return ImportRecord.from_row(row)

    def list_imports(self, account_id: Optional[str] = None) -> List[ImportRecord]:
        if account_id:
            rows = self.db.execute(
                "SELECT * FROM imports WHERE account_id = ? ORDER BY created_at, id", (account_id,)
            ).fetchall()
        else:
            rows = self.db.execute("SELECT * FROM imports ORDER BY created_at, id").fetchall()
        return [ImportRecord.from_row(r) for r in rows]

    def find_processing_import(self, account_id: str) -> Optional[ImportRecord]:
        row = self.db.execute(
            "SELECT * FROM imports WHERE account_id = ? AND status = ? LIMIT 1",
            (account_id, ImportStatus.PROCESSING),
        ).fetchone()
        return ImportRecord.from_row(row) if row else None

    def update_import(self, import_id: str, **fields) -> None:
        """Update import columns; setting a final status stamps processed_at."""
        if fields.get("status") in (ImportStatus.PROCESSED, ImportStatus.FAILED, ImportStatus.ROLLED_BACK):
            fields["processed_at"] = datetime.now().isoformat(timespec="seconds")
        assignments = ", ".join(f"{k} = ?" for k in fields)
        self.db.execute(f"UPDATE imports SET {assignments} WHERE id = ?", tuple(fields.values()) + (import_id,))

    def delete_import_transactions(self, import_id: str) -> int:
        cursor = self.db.execute("DELETE FROM transactions WHERE import_id = ?", (import_id,))
        return cursor.rowcount


def _to_db(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return int(value)
    return value
