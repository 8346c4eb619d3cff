"""
Categorization pipeline.

Tiers, in order, for every uncategorized transaction:
1. Rules (priority descending, then creation order)
2. Bank category hint supplied by the parser
3. Transfers: kind=transfer shortcut, then cross-account mirror pairs
4. Unmatched

An AI tier is reserved: ai_matches and estimated_cost stay at zero.
"""

import logging
import time
from datetime import timedelta
from typing import List, Optional, Set

from ledgerflow.core.categories import Category
from ledgerflow.core.config import CategorizationSettings
from ledgerflow.core.ledger import LedgerStore, LedgerTransaction
from ledgerflow.services.categorization.bank_category_mapper import BankCategoryMapper
from ledgerflow.services.categorization.models import (
    SOURCE_CONFIDENCE,
    CategorizationRun,
    CategorizationStats,
    CategoryAssignment,
    CategoryRule,
    CategorySource,
)
from ledgerflow.services.categorization.rule_engine import RuleEngine
from ledgerflow.services.categorization.rule_store import RuleStore
from ledgerflow.services.categorization.transfer_detector import TransferDetector, is_flagged_transfer

logger = logging.getLogger(__name__)


class CategorizationPipeline:
    """
    Assigns categories to uncategorized ledger transactions.

    Usage:
        pipeline = CategorizationPipeline(ledger, RuleStore(db))
        run = pipeline.run(account_id)
        print(run.stats.rule_matches)
    """

    def __init__(
        self,
        ledger: LedgerStore,
        rule_store: RuleStore,
        settings: Optional[CategorizationSettings] = None,
        mapper: Optional[BankCategoryMapper] = None,
    ):
        self.ledger = ledger
        self.rule_store = rule_store
        self.settings = settings or CategorizationSettings()
        self.mapper = mapper or BankCategoryMapper()
        self.transfer_detector = TransferDetector(self.settings.transfer_window_days)

    def run(self, account_id: Optional[str] = None, apply: bool = True) -> CategorizationRun:
        """
        Categorize every uncategorized transaction (of one account, or all).

        Args:
            account_id: Restrict to one account
            apply: Write assignments to the ledger; False is a dry run

        Returns:
            CategorizationRun with stats and assignments
        """
        started = time.perf_counter()
        transactions = self.ledger.list_uncategorized(account_id)
        engine = RuleEngine(self.rule_store.list_active_rules())

        stats = CategorizationStats()
        assignments: List[CategoryAssignment] = []
        unmatched: List[LedgerTransaction] = []

        for txn in transactions:
            assignment = self.categorize(txn, engine)
            if assignment is None:
                unmatched.append(txn)
            else:
                assignments.append(assignment)

        if unmatched and self.settings.detect_transfer_pairs:
            claimed = {a.transaction_id for a in assignments if a.category_id != Category.TRANSFER.value}
            paired = self._pair_transfers(unmatched, claimed)
            assignments.extend(paired)
            paired_ids = {a.transaction_id for a in paired}
            unmatched = [t for t in unmatched if t.id not in paired_ids]

        for assignment in assignments:
            stats.record(assignment.source)
        for _ in unmatched:
            stats.record(None)

        if apply:
            with self.ledger.db.transaction():
                for assignment in assignments:
                    self.ledger.assign_category(
                        assignment.transaction_id,
                        assignment.category_id,
                        assignment.source.value,
                        assignment.confidence,
                        rule_id=assignment.rule_id,
                        is_internal=assignment.is_internal,
                    )

        stats.duration = int((time.perf_counter() - started) * 1000)
        self._log_run(account_id, stats, apply)

        logger.info(
            f"Categorization {'applied' if apply else 'dry run'}: {stats.total} transactions, "
            f"{stats.rule_matches} rules, {stats.bank_matches} bank, "
            f"{stats.transfer_matches} transfers, {stats.unmatched} unmatched"
        )
        return CategorizationRun(stats=stats, assignments=assignments, applied=apply)

    def categorize(self, txn: LedgerTransaction, engine: RuleEngine) -> Optional[CategoryAssignment]:
        """Run tiers 1 to 3a on one transaction."""
        rule = engine.match(txn.description, txn.parser_key, txn.account_id)
        if rule is not None:
            return self._from_rule(txn, rule)

        category = self.mapper.map(txn.bank_category, txn.bank_label)
        if category is not None:
            return _assignment(txn, category, CategorySource.BANK)

        if is_flagged_transfer(txn):
            return _assignment(txn, Category.TRANSFER, CategorySource.TRANSFER)

        return None

    def categorize_manually(self, transaction_id: str, category_id: str,
                            create_rule: bool = True) -> Optional[CategoryRule]:
        """
        Apply a user correction and optionally learn an EXACT rule from it.

        Only this transaction changes; other transactions, categorized or
        not, are left alone until the next run.

        Returns:
            The learned rule, or None
        """
        category = Category.from_id(category_id)
        txn = self.ledger.get_transaction(transaction_id)

        with self.ledger.db.transaction():
            self.ledger.assign_category(
                txn.id,
                category.value,
                CategorySource.MANUAL.value,
                SOURCE_CONFIDENCE[CategorySource.MANUAL],
                is_internal=category == Category.TRANSFER,
                only_if_uncategorized=False,
            )
            rule = None
            if create_rule:
                rule = self.rule_store.upsert_by_pattern(
                    txn.description, category, priority=self.settings.manual_rule_priority
                )

        logger.info(f"Transaction {transaction_id} manually set to {category.value}")
        return rule

    def _from_rule(self, txn: LedgerTransaction, rule: CategoryRule) -> CategoryAssignment:
        category = Category.lookup(rule.category_id) or Category.OTHER_EXPENSE
        assignment = _assignment(txn, category, CategorySource.RULE)
        assignment.rule_id = rule.id
        return assignment

    def _pair_transfers(self, unmatched: List[LedgerTransaction], claimed: Set[str]) -> List[CategoryAssignment]:
        """Pair unmatched transactions with mirrors; ids in claimed got another category this run."""
        window = timedelta(days=self.settings.transfer_window_days)
        since = min(t.date for t in unmatched) - window
        pool = [
            t for t in self.ledger.list_transactions(since=since)
            if t.kind != "transfer" and t.id not in claimed
            and t.category_id in (None, Category.TRANSFER.value)
        ]
        pairs = self.transfer_detector.find_pairs(unmatched, pool)

        by_id = {t.id: t for t in unmatched}
        assignments = []
        for candidate_id, mirror_id in pairs.items():
            assignments.append(_assignment(by_id[candidate_id], Category.TRANSFER, CategorySource.TRANSFER))
            # Mirror in the same run: categorize it too
            if mirror_id in by_id:
                assignments.append(_assignment(by_id[mirror_id], Category.TRANSFER, CategorySource.TRANSFER))
        return assignments

    def _log_run(self, account_id: Optional[str], stats: CategorizationStats, applied: bool) -> None:
        self.ledger.db.execute(
            """INSERT INTO categorization_runs
               (account_id, total, rule_matches, bank_matches, ai_matches, transfer_matches,
                unmatched, duration_ms, estimated_cost, applied)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                account_id,
                stats.total,
                stats.rule_matches,
                stats.bank_matches,
                stats.ai_matches,
                stats.transfer_matches,
                stats.unmatched,
                stats.duration,
                str(stats.estimated_cost),
                int(applied),
            ),
        )


def _assignment(txn: LedgerTransaction, category: Category, source: CategorySource) -> CategoryAssignment:
    return CategoryAssignment(
        transaction_id=txn.id,
        category_id=category.value,
        source=source,
        confidence=SOURCE_CONFIDENCE[source],
        is_internal=category == Category.TRANSFER,
    )
