"""
Import coordinator.

Turns parsed transactions into ledger rows with deterministic ids, persists
them with ignore-on-conflict semantics and keeps the account balance and the
import records up to date.

Flow:
    bytes + parser key -> ParserRegistry -> ParseResult -> ledger rows
    -> LedgerStore.upsert_transactions -> recalculate_balance
"""

import hashlib
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Type

from ledgerflow.core.config import ImportSettings
from ledgerflow.core.exceptions import ImportInProgressError
from ledgerflow.core.ledger import ImportStatus, LedgerStore
from ledgerflow.parsers.bank import ParserRegistry
from ledgerflow.parsers.bank.models import ParsedTransaction, ParseResult, TransactionKind

logger = logging.getLogger(__name__)


def transaction_identity(
    account_id: str,
    txn_date: date,
    amount: Decimal,
    kind: TransactionKind,
    position: int,
) -> str:
    """
    Deterministic ledger id for a parsed transaction.

    position is the transaction's rank among the file's transactions on the
    same date, so same-day same-amount rows stay distinct while re-imports
    of the same file produce the same ids.

    Format: tx-{sha256[:24]}
    """
    key = f"{account_id}|{txn_date.isoformat()}|{amount:.2f}|{kind.value}|{position}"
    return f"tx-{hashlib.sha256(key.encode('utf-8')).hexdigest()[:24]}"


def assign_positions(transactions: Iterable[ParsedTransaction]) -> List[int]:
    """Per-date running counter, in file order."""
    counters: Dict[date, int] = defaultdict(int)
    positions = []
    for txn in transactions:
        positions.append(counters[txn.date])
        counters[txn.date] += 1
    return positions


@dataclass
class ImportResult:
    """Outcome of one import or reprocess."""

    import_id: str
    account_id: str
    parser_key: str
    parsed: int = 0
    inserted: int = 0
    skipped: int = 0
    updated: int = 0
    removed: int = 0
    skipped_rows: int = 0
    balance: Decimal = Decimal("0")
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def summary(self) -> str:
        return (
            f"{self.parsed} parsed, {self.inserted} inserted, {self.skipped} duplicates, "
            f"{self.updated} updated, {self.skipped_rows} rows skipped"
        )


class ImportCoordinator:
    """
    Imports export files into the ledger.

    At most one import may be PROCESSING per account; a second one is
    rejected with ImportInProgressError rather than queued.

    Usage:
        coordinator = ImportCoordinator(LedgerStore(db))
        result = coordinator.import_file(account.id, Path("export.csv").read_bytes(),
                                         source_file="export.csv")
    """

    def __init__(self, ledger: LedgerStore, registry: Type[ParserRegistry] = ParserRegistry,
                 settings: Optional[ImportSettings] = None):
        self.ledger = ledger
        self.registry = registry
        self.settings = settings or ImportSettings()

    def import_file(
        self,
        account_id: str,
        raw: bytes,
        parser_key: Optional[str] = None,
        source_file: str = "",
    ) -> ImportResult:
        """
        Parse and import one export file.

        Args:
            account_id: Target account
            raw: File content
            parser_key: Institution key; defaults to the account's parser key
            source_file: File name, also used to pick a spreadsheet parser

        Returns:
            ImportResult with counts and the new balance

        Raises:
            AccountNotFoundError: Unknown account
            UnknownParserError: Unknown institution key
            ImportInProgressError: Another import is processing for the account
        """
        account = self.ledger.get_account(account_id)
        parser = self.registry.create_for_file(parser_key or account.parser_key, source_file, self.settings)
        record_id = self._start_import(account_id, parser.PARSER_KEY, source_file)

        logger.info(f"Import {record_id}: {source_file or 'input'} into {account_id} with {parser.PARSER_KEY}")
        try:
            parsed = parser.parse(raw, source_file)
            result = self._persist(account_id, record_id, parser.PARSER_KEY, parsed, overwrite=False)
        except Exception as e:
            logger.exception(f"Import {record_id} failed")
            self.ledger.update_import(record_id, status=ImportStatus.FAILED, error_message=str(e))
            raise

        logger.info(f"Import {record_id} done: {result.summary()}")
        return result

    def reprocess(self, import_id: str, raw: bytes) -> ImportResult:
        """
        Re-import a file on operator request.

        Existing rows of the import are overwritten (amount, description, bank
        category...) but keep their assigned category. Rows of the import that
        no longer appear in the file are removed; new rows are inserted. Rows
        that another import created are counted as duplicates and left alone.
        """
        record = self.ledger.get_import(import_id)
        parser = self.registry.create_for_file(record.parser_key, record.source_file or "", self.settings)
        self._start_import(record.account_id, record.parser_key, record.source_file, import_id=import_id)

        logger.info(f"Reprocessing import {import_id}")
        try:
            parsed = parser.parse(raw, record.source_file or "")
            result = self._persist(record.account_id, import_id, record.parser_key, parsed, overwrite=True)
        except Exception as e:
            logger.exception(f"Reprocess of {import_id} failed")
            self.ledger.update_import(import_id, status=ImportStatus.FAILED, error_message=str(e))
            raise

        logger.info(f"Reprocess {import_id} done: {result.summary()}, {result.removed} removed")
        return result

    def rollback_import(self, import_id: str) -> int:
        """
        Delete every transaction created by an import.

        Returns:
            Number of deleted transactions
        """
        record = self.ledger.get_import(import_id)
        with self.ledger.db.transaction():
            deleted = self.ledger.delete_import_transactions(import_id)
            self.ledger.update_import(import_id, status=ImportStatus.ROLLED_BACK)
            self.ledger.recalculate_balance(record.account_id)

        logger.info(f"Rolled back import {import_id}: {deleted} transactions deleted")
        return deleted

    def build_rows(self, account_id: str, import_id: str, transactions: List[ParsedTransaction]) -> List[dict]:
        """Convert parsed transactions to ledger rows with deterministic ids."""
        rows = []
        for txn, position in zip(transactions, assign_positions(transactions)):
            rows.append({
                "id": transaction_identity(account_id, txn.date, txn.amount, txn.kind, position),
                "account_id": account_id,
                "import_id": import_id,
                "date": txn.date,
                "value_date": txn.value_date,
                "description": txn.description,
                "amount": txn.amount,
                "kind": txn.kind.value,
                "is_debit": txn.is_debit,
                "bank_category": txn.raw_category,
                "bank_label": txn.bank_label,
                "reference": txn.reference,
                "additional_info": txn.additional_info,
            })
        return rows

    def _start_import(self, account_id: str, parser_key: str, source_file: Optional[str],
                      import_id: Optional[str] = None) -> str:
        """Claim the account for one import, creating the record when needed."""
        with self.ledger.db.transaction():
            if self.ledger.find_processing_import(account_id):
                raise ImportInProgressError(account_id)
            if import_id is None:
                import_id = self.ledger.create_import(account_id, parser_key, source_file or "").id
            self.ledger.update_import(import_id, status=ImportStatus.PROCESSING, error_message=None)
        return import_id

    def _persist(self, account_id: str, import_id: str, parser_key: str,
                 parsed: ParseResult, overwrite: bool) -> ImportResult:
        result = ImportResult(
            import_id=import_id,
            account_id=account_id,
            parser_key=parser_key,
            parsed=len(parsed.transactions),
            skipped_rows=parsed.skipped_rows,
            errors=list(parsed.errors),
            warnings=list(parsed.warnings),
        )

        rows = self.build_rows(account_id, import_id, parsed.transactions)
        with self.ledger.db.transaction():
            upsert = self.ledger.upsert_transactions(rows, overwrite=overwrite)
            if overwrite:
                result.removed = self._remove_stale(import_id, {r["id"] for r in rows})
            result.balance = self.ledger.recalculate_balance(account_id)
            self.ledger.update_import(
                import_id,
                status=ImportStatus.PROCESSED,
                parsed_count=result.parsed,
                inserted_count=upsert.inserted,
                skipped_count=upsert.skipped,
                updated_count=upsert.updated,
                skipped_rows=parsed.skipped_rows,
                error_message="; ".join(parsed.errors) or None,
            )

        result.inserted, result.skipped, result.updated = upsert.inserted, upsert.skipped, upsert.updated
        if parsed.errors:
            logger.warning(f"Import {import_id}: nothing importable ({'; '.join(parsed.errors)})")
        return result

    def _remove_stale(self, import_id: str, keep_ids: set) -> int:
        rows = self.ledger.db.execute(
            "SELECT id FROM transactions WHERE import_id = ?", (import_id,)
        ).fetchall()
        stale = [r["id"] for r in rows if r["id"] not in keep_ids]
        self.ledger.db.executemany("DELETE FROM transactions WHERE id = ?", [(i,) for i in stale])
        return len(stale)
