"""
Tests for parsed transaction models.
"""

import pytest
from datetime import date
from decimal import Decimal

from ledgerflow.parsers.bank.models import ParsedTransaction, ParseResult, TransactionKind


class TestParsedTransaction:
    """Tests for ParsedTransaction dataclass."""

    def test_amount_converted_to_decimal(self):
        txn = ParsedTransaction(date(2024, 1, 1), "TEST", 12.5, TransactionKind.EXPENSE)
        assert isinstance(txn.amount, Decimal)
        assert txn.amount == Decimal("12.5")

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-10")])
    def test_amount_must_be_positive(self, amount):
        with pytest.raises(ValueError):
            ParsedTransaction(date(2024, 1, 1), "TEST", amount, TransactionKind.INCOME)

    def test_signed_amount(self):
        income = ParsedTransaction(date(2024, 1, 1), "IN", Decimal("10"), TransactionKind.INCOME)
        expense = ParsedTransaction(date(2024, 1, 1), "OUT", Decimal("10"), TransactionKind.EXPENSE)

        assert income.signed_amount == Decimal("10")
        assert expense.signed_amount == Decimal("-10")
        assert expense.is_debit

    def test_transfer_direction_comes_from_is_debit(self):
        outgoing = ParsedTransaction(date(2024, 1, 1), "VIR", Decimal("5"), TransactionKind.TRANSFER, is_debit=True)
        incoming = ParsedTransaction(date(2024, 1, 1), "VIR", Decimal("5"), TransactionKind.TRANSFER)

        assert outgoing.signed_amount == Decimal("-5")
        assert incoming.signed_amount == Decimal("5")
        assert outgoing.is_transfer


class TestParseResult:
    """Tests for ParseResult dataclass."""

    def test_add_error_marks_failure(self):
        result = ParseResult(success=True)
        result.add_error("Empty file")

        assert not result.success
        assert result.errors == ["Empty file"]

    def test_warnings_keep_success(self):
        result = ParseResult(success=True)
        result.add_warning("Header only")

        assert result.success

    def test_sequence_protocol_and_totals(self):
        result = ParseResult(success=True)
        result.transactions = [
            ParsedTransaction(date(2024, 1, 3), "A", Decimal("100"), TransactionKind.INCOME),
            ParsedTransaction(date(2024, 1, 1), "B", Decimal("30"), TransactionKind.EXPENSE),
            ParsedTransaction(date(2024, 1, 2), "C", Decimal("5"), TransactionKind.TRANSFER),
        ]

        assert len(result) == 3
        assert [t.description for t in result] == ["A", "B", "C"]
        assert result[1].description == "B"
        assert result.total_income == Decimal("100")
        assert result.total_expense == Decimal("30")
        assert result.statement_period == (date(2024, 1, 1), date(2024, 1, 3))

    def test_empty_statement_period(self):
        assert ParseResult(success=True).statement_period is None
