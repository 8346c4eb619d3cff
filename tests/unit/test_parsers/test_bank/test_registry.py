"""
Tests for the parser registry.
"""

import pytest

from ledgerflow.core.exceptions import ConfigurationError, UnknownParserError
from ledgerflow.parsers.bank import (
    BankStatementParser,
    BoursoramaParser,
    CaisseEpargneEntrepriseParser,
    CaisseEpargneParser,
    CreditMutuelExcelParser,
    CreditMutuelParser,
    ParserRegistry,
)
from ledgerflow.parsers.bank.registry import normalize_key


class TestParserRegistry:
    """Tests for key resolution and parser creation."""

    @pytest.mark.parametrize("key,expected", [
        ("caisse_epargne", CaisseEpargneParser),
        ("CAISSE_EPARGNE", CaisseEpargneParser),
        ("Caisse d'Épargne", CaisseEpargneParser),
        ("caisse_epargne_entreprise", CaisseEpargneEntrepriseParser),
        ("Crédit Mutuel", CreditMutuelParser),
        ("CIC", CreditMutuelParser),
        ("credit_mutuel_xlsx", CreditMutuelExcelParser),
        ("boursorama", BoursoramaParser),
    ])
    def test_create(self, key, expected):
        assert isinstance(ParserRegistry.create(key), expected)

    def test_unknown_key_is_a_configuration_error(self):
        with pytest.raises(UnknownParserError) as exc_info:
            ParserRegistry.create("banque_imaginaire")

        assert isinstance(exc_info.value, ConfigurationError)
        assert exc_info.value.code == "UNKNOWN_PARSER"
        assert exc_info.value.parser_key == "banque_imaginaire"

    def test_spreadsheet_variant_for_workbooks(self):
        assert isinstance(ParserRegistry.create_for_file("credit_mutuel", "releve.xlsx"), CreditMutuelExcelParser)
        assert isinstance(ParserRegistry.create_for_file("credit_mutuel", "releve.csv"), CreditMutuelParser)
        assert isinstance(ParserRegistry.create_for_file("boursorama", "export.xlsx"), BoursoramaParser)

    def test_available(self):
        keys = ParserRegistry.available()

        assert "caisse_epargne" in keys
        assert "credit_mutuel_xlsx" in keys
        assert keys == sorted(keys)

    def test_register_new_institution(self):
        class DummyParser(BankStatementParser):
            PARSER_KEY = "dummy_bank"
            BANK_NAME = "Dummy"

            def _parse_content(self, raw, result):
                pass

        ParserRegistry.register("dummy_bank", DummyParser, aliases=["Dummy Bank"])
        try:
            assert isinstance(ParserRegistry.create("Dummy Bank"), DummyParser)
        finally:
            ParserRegistry.unregister("dummy_bank")

        with pytest.raises(UnknownParserError):
            ParserRegistry.create("Dummy Bank")

    def test_normalize_key(self):
        assert normalize_key("Crédit Mutuel") == "credit_mutuel"
        assert normalize_key(" Caisse d'Épargne ") == "caisse_d_epargne"
