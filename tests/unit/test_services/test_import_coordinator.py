"""
Tests for the import coordinator.
"""

import pytest
from datetime import date
from decimal import Decimal

from ledgerflow.core.config import ImportSettings
from ledgerflow.core.exceptions import ImportInProgressError, UnknownParserError
from ledgerflow.core.ledger import ImportStatus
from ledgerflow.parsers.bank.models import ParsedTransaction, TransactionKind
from ledgerflow.services.import_coordinator import (
    ImportCoordinator,
    assign_positions,
    transaction_identity,
)

from conftest import CE_BUSINESS_HEADER


@pytest.fixture
def coordinator(ledger):
    return ImportCoordinator(ledger)


class TestTransactionIdentity:
    """Tests for deterministic ledger ids."""

    def test_deterministic(self):
        first = transaction_identity("acc", date(2024, 1, 15), Decimal("3500"), TransactionKind.INCOME, 0)
        second = transaction_identity("acc", date(2024, 1, 15), Decimal("3500.00"), TransactionKind.INCOME, 0)

        assert first == second
        assert first.startswith("tx-")
        assert len(first) == 27

    @pytest.mark.parametrize("changes", [
        {"account_id": "other"},
        {"txn_date": date(2024, 1, 16)},
        {"amount": Decimal("3500.01")},
        {"kind": TransactionKind.EXPENSE},
        {"position": 1},
    ])
    def test_every_component_matters(self, changes):
        base = dict(account_id="acc", txn_date=date(2024, 1, 15), amount=Decimal("3500"),
                    kind=TransactionKind.INCOME, position=0)
        assert transaction_identity(**base) != transaction_identity(**{**base, **changes})

    def test_positions_count_per_date(self):
        txns = [
            ParsedTransaction(date(2024, 1, 1), "A", Decimal("1"), TransactionKind.EXPENSE),
            ParsedTransaction(date(2024, 1, 1), "B", Decimal("1"), TransactionKind.EXPENSE),
            ParsedTransaction(date(2024, 1, 2), "C", Decimal("1"), TransactionKind.EXPENSE),
            ParsedTransaction(date(2024, 1, 1), "D", Decimal("1"), TransactionKind.EXPENSE),
        ]
        assert assign_positions(txns) == [0, 1, 0, 2]


class TestImportFile:
    """Tests for first imports and re-imports."""

    def test_enterprise_import(self, coordinator, ledger, sci_account, enterprise_csv):
        result = coordinator.import_file(sci_account.id, enterprise_csv, source_file="sci.csv")

        assert result.success
        assert result.parsed == 2
        assert result.inserted == 2
        assert result.balance == Decimal("2250.00")
        assert ledger.get_account_balance(sci_account.id) == Decimal("2250.00")

        record = ledger.get_import(result.import_id)
        assert record.status == ImportStatus.PROCESSED
        assert record.parser_key == "caisse_epargne_entreprise"
        assert record.inserted_count == 2

    def test_reimport_is_idempotent(self, coordinator, ledger, sci_account, enterprise_csv):
        coordinator.import_file(sci_account.id, enterprise_csv)
        second = coordinator.import_file(sci_account.id, enterprise_csv)

        assert second.inserted == 0
        assert second.skipped == 2
        assert ledger.count_transactions(sci_account.id) == 2
        assert second.balance == Decimal("2250.00")

    def test_same_day_same_amount_rows_are_distinct(self, coordinator, ledger, sci_account, csv_builder):
        raw = csv_builder(CE_BUSINESS_HEADER, [
            "15/01/2024;CB BOULANGERIE;;;Carte;-2,50;;15/01/2024;15/01/2024;Non",
            "15/01/2024;CB BOULANGERIE;;;Carte;-2,50;;15/01/2024;15/01/2024;Non",
        ])

        result = coordinator.import_file(sci_account.id, raw)

        assert result.inserted == 2
        assert len({t.id for t in ledger.list_transactions(sci_account.id)}) == 2

    def test_import_settings_reach_the_parser(self, ledger, sci_account, csv_builder):
        row = "15/01/2024;LOYER SCI;;;Virement;;3500,00;15/01/2024;15/01/2024;Oui"
        raw = csv_builder(CE_BUSINESS_HEADER.replace(";", "\t"), [row.replace(";", "\t")])
        coordinator = ImportCoordinator(ledger, settings=ImportSettings(default_delimiter="\t"))

        result = coordinator.import_file(sci_account.id, raw)

        assert result.inserted == 1
        assert result.balance == Decimal("3500.00")

    def test_parser_key_override(self, coordinator, sci_account, csv_builder):
        raw = csv_builder("Date;Date de valeur;Débit;Crédit;Libellé;Solde", [
            "02/01/2024;02/01/2024;-52,30;;PRLV SEPA EDF;100,00",
        ])

        result = coordinator.import_file(sci_account.id, raw, parser_key="Crédit Mutuel")

        assert result.parser_key == "credit_mutuel"
        assert result.inserted == 1

    def test_unknown_parser(self, coordinator, ledger, sci_account, enterprise_csv):
        with pytest.raises(UnknownParserError):
            coordinator.import_file(sci_account.id, enterprise_csv, parser_key="banque_imaginaire")

        assert ledger.list_imports(sci_account.id) == []

    def test_empty_file_reports_error(self, coordinator, ledger, sci_account):
        result = coordinator.import_file(sci_account.id, b"")

        assert not result.success
        assert result.inserted == 0
        assert ledger.get_import(result.import_id).error_message == "Empty file"

    def test_import_in_progress_is_rejected(self, coordinator, ledger, sci_account, enterprise_csv):
        busy = ledger.create_import(sci_account.id, "caisse_epargne_entreprise")
        ledger.update_import(busy.id, status=ImportStatus.PROCESSING)

        with pytest.raises(ImportInProgressError):
            coordinator.import_file(sci_account.id, enterprise_csv)

        assert ledger.count_transactions(sci_account.id) == 0

    def test_parser_crash_marks_import_failed(self, ledger, sci_account, enterprise_csv):
        class CrashingParser:
            PARSER_KEY = "crashing"

            def parse(self, raw, source_file=""):
                raise RuntimeError("parser bug")

        class CrashingRegistry:
            @classmethod
            def create_for_file(cls, key, filename="", settings=None):
                return CrashingParser()

        with pytest.raises(RuntimeError):
            ImportCoordinator(ledger, registry=CrashingRegistry).import_file(sci_account.id, enterprise_csv)

        record = ledger.list_imports(sci_account.id)[0]
        assert record.status == ImportStatus.FAILED
        assert record.error_message == "parser bug"

        # the account is free again
        assert ImportCoordinator(ledger).import_file(sci_account.id, enterprise_csv).inserted == 2


class TestRollbackAndReprocess:
    """Tests for undoing and re-running imports."""

    def test_rollback(self, coordinator, ledger, sci_account, enterprise_csv):
        result = coordinator.import_file(sci_account.id, enterprise_csv)

        deleted = coordinator.rollback_import(result.import_id)

        assert deleted == 2
        assert ledger.count_transactions(sci_account.id) == 0
        assert ledger.get_account_balance(sci_account.id) == Decimal("0")
        assert ledger.get_import(result.import_id).status == ImportStatus.ROLLED_BACK

    def test_rollback_keeps_other_imports(self, coordinator, ledger, sci_account, enterprise_csv, csv_builder):
        coordinator.import_file(sci_account.id, enterprise_csv)
        other = coordinator.import_file(sci_account.id, csv_builder(CE_BUSINESS_HEADER, [
            "01/02/2024;LOYER SCI;;;Virement;;3500,00;01/02/2024;01/02/2024;Oui",
        ]))

        coordinator.rollback_import(other.import_id)

        assert ledger.count_transactions(sci_account.id) == 2
        assert ledger.get_account_balance(sci_account.id) == Decimal("2250.00")

    def test_reprocess_overwrites_and_keeps_categories(self, coordinator, ledger, sci_account,
                                                       enterprise_csv, csv_builder):
        first = coordinator.import_file(sci_account.id, enterprise_csv)
        rent = next(t for t in ledger.list_transactions(sci_account.id) if t.description == "LOYER SCI")
        ledger.assign_category(rent.id, "cat-rental-income", "MANUAL", 1.0)

        corrected = csv_builder(CE_BUSINESS_HEADER, [
            "15/01/2024;LOYER SCI JANVIER;REF-LOYER-001;Loyer janvier;Virement;;3500,00;15/01/2024;15/01/2024;Oui",
            "25/01/2024;REMBOURSEMENT;;;Virement;;100,00;25/01/2024;25/01/2024;Non",
        ])
        result = coordinator.reprocess(first.import_id, corrected)

        assert (result.inserted, result.updated, result.removed) == (1, 1, 1)
        assert result.balance == Decimal("3600.00")

        reloaded = ledger.get_transaction(rent.id)
        assert reloaded.description == "LOYER SCI JANVIER"
        assert reloaded.category_id == "cat-rental-income"
        assert ledger.get_import(first.import_id).status == ImportStatus.PROCESSED

    def test_reprocess_of_duplicate_import_leaves_rows_with_their_owner(self, coordinator, ledger, sci_account,
                                                                        enterprise_csv):
        original = coordinator.import_file(sci_account.id, enterprise_csv)
        duplicate = coordinator.import_file(sci_account.id, enterprise_csv)
        assert duplicate.inserted == 0

        result = coordinator.reprocess(duplicate.import_id, enterprise_csv)

        assert (result.inserted, result.updated, result.skipped, result.removed) == (0, 0, 2, 0)
        assert {t.import_id for t in ledger.list_transactions(sci_account.id)} == {original.import_id}

        assert coordinator.rollback_import(duplicate.import_id) == 0
        assert ledger.count_transactions(sci_account.id) == 2

        assert coordinator.rollback_import(original.import_id) == 2
        assert ledger.count_transactions(sci_account.id) == 0
