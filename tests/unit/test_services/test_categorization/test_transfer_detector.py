"""
Tests for internal transfer detection.
"""

from datetime import date
from decimal import Decimal

from ledgerflow.core.ledger import LedgerTransaction
from ledgerflow.services.categorization import TransferDetector
from ledgerflow.services.categorization.transfer_detector import is_flagged_transfer


def _txn(txn_id, account_id, amount, is_debit, day, kind=None):
    return LedgerTransaction(
        id=txn_id,
        account_id=account_id,
        date=date(2024, 3, day),
        description="VIR",
        amount=Decimal(amount),
        kind=kind or ("expense" if is_debit else "income"),
        is_debit=is_debit,
    )


class TestTransferDetector:
    """Tests for cross-account mirror pairing."""

    def test_pairs_mirror_in_other_account(self):
        out = _txn("a1", "acc-courant", "500", True, 10)
        mirror = _txn("b1", "acc-livret", "500.00", False, 11)

        assert TransferDetector().find_pairs([out], [out, mirror]) == {"a1": "b1"}

    def test_same_account_is_not_a_transfer(self):
        out = _txn("a1", "acc-courant", "500", True, 10)
        back = _txn("a2", "acc-courant", "500", False, 10)

        assert TransferDetector().find_pairs([out], [out, back]) == {}

    def test_same_direction_is_not_a_transfer(self):
        out = _txn("a1", "acc-courant", "500", True, 10)
        other = _txn("b1", "acc-livret", "500", True, 10)

        assert TransferDetector().find_pairs([out], [out, other]) == {}

    def test_window(self):
        out = _txn("a1", "acc-courant", "500", True, 10)
        late = _txn("b1", "acc-livret", "500", False, 14)

        assert TransferDetector(window_days=3).find_pairs([out], [late]) == {}
        assert TransferDetector(window_days=4).find_pairs([out], [late]) == {"a1": "b1"}

    def test_closest_mirror_wins_and_is_used_once(self):
        out1 = _txn("a1", "acc-courant", "100", True, 10)
        out2 = _txn("a2", "acc-courant", "100", True, 12)
        far = _txn("b1", "acc-livret", "100", False, 8)
        near = _txn("b2", "acc-livret", "100", False, 11)

        pairs = TransferDetector(window_days=5).find_pairs([out1, out2], [far, near])

        assert pairs == {"a1": "b2", "a2": "b1"}

    def test_flagged_transfer(self):
        assert is_flagged_transfer(_txn("a1", "acc", "1", True, 1, kind="transfer"))
        assert not is_flagged_transfer(_txn("a1", "acc", "1", True, 1))
