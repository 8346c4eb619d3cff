"""
Internal transfer detection.

Two signals:
- the parser already flagged the transaction as a transfer (kind=transfer)
- the transaction has a mirror in another account: same amount, opposite
  direction, dates at most window_days apart
"""

import logging
from typing import Dict, Iterable, List, Set

from ledgerflow.core.ledger import LedgerTransaction

logger = logging.getLogger(__name__)


def is_flagged_transfer(txn: LedgerTransaction) -> bool:
    return txn.kind == "transfer"


class TransferDetector:
    """Matches money leaving one account with money arriving in another."""

    def __init__(self, window_days: int = 3):
        self.window_days = window_days

    def find_pairs(self, candidates: Iterable[LedgerTransaction],
                   pool: Iterable[LedgerTransaction]) -> Dict[str, str]:
        """
        Pair candidates with mirror transactions from the pool.

        Each pool transaction is used at most once. Candidates are taken in
        (date, id) order and get the closest-dated mirror, ties broken by id,
        so the result is deterministic.

        Returns:
            Mapping candidate id -> mirror id
        """
        by_amount: Dict[str, List[LedgerTransaction]] = {}
        for txn in sorted(pool, key=lambda t: (t.date, t.id)):
            by_amount.setdefault(f"{txn.amount:.2f}", []).append(txn)

        used: Set[str] = set()
        pairs: Dict[str, str] = {}
        for txn in sorted(candidates, key=lambda t: (t.date, t.id)):
            if txn.id in used:
                continue
            best = None
            for other in by_amount.get(f"{txn.amount:.2f}", []):
                if other.id in used or other.id == txn.id:
                    continue
                if other.account_id == txn.account_id or other.is_debit == txn.is_debit:
                    continue
                gap = abs((other.date - txn.date).days)
                if gap > self.window_days:
                    continue
                if best is None or gap < abs((best.date - txn.date).days):
                    best = other
            if best is not None:
                pairs[txn.id] = best.id
                used.update((txn.id, best.id))

        if pairs:
            logger.debug(f"Found {len(pairs)} internal transfer pairs")
        return pairs
