"""
Tests for the Boursorama parser.
"""

import pytest
from datetime import date
from decimal import Decimal

from ledgerflow.parsers.bank.boursorama import BoursoramaParser, extract_short_label
from ledgerflow.parsers.bank.models import TransactionKind

from conftest import BOURSORAMA_HEADER


class TestBoursoramaParser:
    """Tests for Boursorama CSV exports."""

    @pytest.fixture
    def result(self):
        lines = [
            BOURSORAMA_HEADER,
            "2024-01-15;2024-01-15;CARTE 14/01/24 CARREFOUR | CARREFOUR CITY PARIS;Supermarché;Alimentation;Carrefour;-23,45;;00012345;Compte;1 000,00",
            "2024-01-31;2024-01-31;VIR SALAIRE ACME;Salaires et revenus d'activité;Revenus;;2 500,00;Janvier;00012345;Compte;3 500,00",
            "2024-02-01;2024-02-01;VIR VERS LIVRET;Virements internes;Mouvements internes;;-200,00;;00012345;Compte;3 300,00",
            "2024-02-02;2024-02-02;NUL;;;;0,00;;00012345;Compte;3 300,00",
            "2024-02-03;short;row",
        ]
        raw = "\ufeff".encode("utf-8") + "\n".join(lines).encode("utf-8")
        return BoursoramaParser().parse(raw)

    def test_counts(self, result):
        assert len(result) == 3
        assert result.skipped_rows == 2

    def test_expense(self, result):
        txn = result[0]

        assert txn.date == date(2024, 1, 15)
        assert txn.description == "CARTE 14/01/24 CARREFOUR"
        assert txn.amount == Decimal("23.45")
        assert txn.kind == TransactionKind.EXPENSE
        assert txn.raw_category == "cat-groceries"
        assert txn.bank_label == "Alimentation > Supermarché"
        assert txn.balance == Decimal("1000.00")

    def test_income(self, result):
        txn = result[1]

        assert txn.kind == TransactionKind.INCOME
        assert txn.amount == Decimal("2500.00")
        assert txn.raw_category == "cat-salary"
        assert txn.additional_info == "Janvier"

    def test_internal_transfer(self, result):
        txn = result[2]

        assert txn.kind == TransactionKind.TRANSFER
        assert txn.signed_amount == Decimal("-200.00")

    def test_short_label(self):
        assert extract_short_label("PRLV SEPA FREE | FREE MOBILE REF 123") == "PRLV SEPA FREE"
        assert extract_short_label("SIMPLE") == "SIMPLE"
