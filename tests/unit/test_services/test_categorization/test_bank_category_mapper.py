"""
Tests for bank category hints.
"""

from ledgerflow.core.categories import Category
from ledgerflow.services.categorization import BankCategoryMapper


class TestBankCategoryMapper:

    def test_canonical_id_from_parser(self):
        assert BankCategoryMapper().map("cat-groceries") == Category.GROCERIES

    def test_label_most_specific_part_first(self):
        mapper = BankCategoryMapper()

        assert mapper.map(None, "Revenus > Salaires") == Category.SALARY
        assert mapper.map(None, "Alimentation > Inconnu") == Category.GROCERIES

    def test_accents_and_case_ignored(self):
        assert BankCategoryMapper().map(None, "SANTÉ") == Category.HEALTH

    def test_nothing_maps(self):
        mapper = BankCategoryMapper()

        assert mapper.map(None, None) is None
        assert mapper.map("cat-nope", "Divers") is None
