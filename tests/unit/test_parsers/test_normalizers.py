"""
Tests for locale normalizers.
"""

import pytest
from datetime import date
from decimal import Decimal

from ledgerflow.parsers.normalizers import (
    DateFormat,
    excel_serial_to_date,
    normalize_description,
    normalize_whitespace,
    parse_amount,
    parse_date,
    strip_accents,
)


class TestParseAmount:
    """Tests for French amount parsing."""

    @pytest.mark.parametrize("text,expected", [
        ("1 234,56", Decimal("1234.56")),
        ("1234,56", Decimal("1234.56")),
        ("-123,45", Decimal("-123.45")),
        ("+50,00", Decimal("50.00")),
        ("1\u00a0234,56", Decimal("1234.56")),
        ("1\u202f234,56", Decimal("1234.56")),
        ("1.234,56", Decimal("1234.56")),
        ("12.50", Decimal("12.50")),
        ("12,00 €", Decimal("12.00")),
        ("3500", Decimal("3500")),
    ])
    def test_amounts(self, text, expected):
        assert parse_amount(text) == expected

    @pytest.mark.parametrize("text", ["", "   ", "abc", "-", None])
    def test_non_numeric_is_zero(self, text):
        assert parse_amount(text) == Decimal("0")

    def test_numbers_pass_through(self):
        assert parse_amount(1250) == Decimal("1250")
        assert parse_amount(12.5) == Decimal("12.5")
        assert parse_amount(Decimal("7.10")) == Decimal("7.10")


class TestParseDate:
    """Tests for date parsing."""

    def test_day_month_year(self):
        assert parse_date("15/01/2024") == date(2024, 1, 15)

    def test_iso(self):
        assert parse_date("2024-01-15", DateFormat.ISO) == date(2024, 1, 15)

    def test_month_day_year(self):
        assert parse_date("01/15/2024", DateFormat.MDY) == date(2024, 1, 15)

    def test_falls_back_to_other_layouts(self):
        assert parse_date("2024-01-15", DateFormat.DMY) == date(2024, 1, 15)

    def test_day_first_is_not_read_as_month_first(self):
        assert parse_date("02/03/2024") == date(2024, 3, 2)

    @pytest.mark.parametrize("text", ["", "   ", None, "invalid", "Oui"])
    def test_unparseable_is_none(self, text):
        assert parse_date(text) is None

    def test_generic_fallback_with_separators(self):
        assert parse_date("15.01.2024") == date(2024, 1, 15)

    @pytest.mark.parametrize("text", ["2024", "now", "today", "45000"])
    def test_text_without_date_separator_is_none(self, text):
        assert parse_date(text) is None


class TestExcelSerial:
    """Tests for spreadsheet serial conversion."""

    def test_epoch(self):
        assert excel_serial_to_date(0) == date(1899, 12, 30)

    def test_known_serial(self):
        assert excel_serial_to_date(45000) == date(2023, 3, 15)

    def test_time_of_day_is_dropped(self):
        assert excel_serial_to_date(45000.75) == date(2023, 3, 15)

    def test_early_serials(self):
        assert excel_serial_to_date(1) == date(1899, 12, 31)
        assert excel_serial_to_date(60) == date(1900, 2, 28)

    @pytest.mark.parametrize("serial", [1e12, -1e12, float("nan"), float("inf")])
    def test_out_of_range_is_none(self, serial):
        assert excel_serial_to_date(serial) is None


class TestTextFolding:
    """Tests for whitespace and accent folding."""

    def test_normalize_whitespace(self):
        assert normalize_whitespace("  CB   CARREFOUR \t MARKET ") == "CB CARREFOUR MARKET"
        assert normalize_whitespace(None) == ""

    def test_strip_accents(self):
        assert strip_accents("Santé Électricité") == "Sante Electricite"

    def test_normalize_description(self):
        assert normalize_description("  Café   de la  Gare ") == "CAFE DE LA GARE"
