"""
Shared pytest fixtures for ledgerflow tests.

Provides an in-memory ledger, stores, accounts and export-file builders.
"""

import pytest
import sys
from datetime import date
from decimal import Decimal
from io import BytesIO
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from openpyxl import Workbook

from ledgerflow.core.database import LedgerDatabase
from ledgerflow.core.ledger import LedgerStore
from ledgerflow.services.categorization import RuleStore


CE_PERSONAL_HEADER = (
    "Date de comptabilisation;Libelle simplifie;Libelle operation;Reference;"
    "Informations complementaires;Type operation;Categorie;Sous categorie;"
    "Debit;Credit;Date operation;Date de valeur;Pointage operation"
)

CE_BUSINESS_HEADER = (
    "Date comptable;Libelle simplifie;Reference;Informations complementaires;"
    "Type operation;Debit;Credit;Date operation;Date de valeur;Pointage"
)

CREDIT_MUTUEL_HEADER = "Date;Date de valeur;Débit;Crédit;Libellé;Solde"

BOURSORAMA_HEADER = (
    "dateOp;dateVal;label;category;categoryParent;supplierFound;amount;"
    "comment;accountNum;accountLabel;accountbalance"
)


@pytest.fixture
def ledger_db():
    """Provide a fresh in-memory LedgerDatabase for each test."""
    db = LedgerDatabase(":memory:")
    db.connect()
    yield db
    db.close()


@pytest.fixture
def ledger(ledger_db):
    """Provide a LedgerStore on the in-memory database."""
    return LedgerStore(ledger_db)


@pytest.fixture
def rule_store(ledger_db):
    """Provide a RuleStore on the in-memory database."""
    return RuleStore(ledger_db)


@pytest.fixture
def account(ledger):
    """Create a Caisse d'Épargne personal account."""
    return ledger.create_account(
        "Compte courant", "Caisse d'Épargne", "caisse_epargne", account_id="acc-courant"
    )


@pytest.fixture
def sci_account(ledger):
    """Create a Caisse d'Épargne SCI account."""
    return ledger.create_account(
        "SCI Les Tilleuls", "Caisse d'Épargne", "caisse_epargne_entreprise", account_id="acc-sci"
    )


@pytest.fixture
def enterprise_csv():
    """Enterprise export: header + one credit row + one debit row."""
    return "\n".join([
        CE_BUSINESS_HEADER,
        "15/01/2024;LOYER SCI;REF-LOYER-001;Loyer janvier;Virement;;3500,00;15/01/2024;15/01/2024;Oui",
        "20/01/2024;CHARGES COPRO;REF-COPRO-001;;Prelevement;-1250,00;;20/01/2024;20/01/2024;Non",
    ]).encode("utf-8")


def make_csv(header: str, rows) -> bytes:
    """Build CSV bytes from a header and pre-joined rows."""
    return "\n".join([header, *rows]).encode("utf-8")


def make_workbook(sheets) -> bytes:
    """
    Build .xlsx bytes.

    Args:
        sheets: Mapping of sheet name -> list of rows (lists of cell values)
    """
    wb = Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(title=name)
        for row in rows:
            ws.append(list(row))
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def csv_builder():
    """Provide make_csv to tests."""
    return make_csv


@pytest.fixture
def workbook_builder():
    """Provide make_workbook to tests."""
    return make_workbook


@pytest.fixture
def add_transaction(ledger):
    """
    Factory inserting one ledger transaction and returning it.

    Usage:
        txn = add_transaction(account.id, "CB CARREFOUR", "45.30", "expense", date(2024, 1, 15))
    """
    counter = {"n": 0}

    def _add(account_id, description, amount, kind="expense", txn_date=None, is_debit=None, **extra):
        counter["n"] += 1
        txn_id = extra.pop("txn_id", f"tx-test-{counter['n']:04d}")
        row = {
            "id": txn_id,
            "account_id": account_id,
            "import_id": None,
            "date": txn_date or date(2024, 1, 15),
            "value_date": None,
            "description": description,
            "amount": Decimal(amount),
            "kind": kind,
            "is_debit": (kind == "expense") if is_debit is None else is_debit,
            "bank_category": None,
            "bank_label": None,
            "reference": None,
            "additional_info": None,
        }
        row.update(extra)
        ledger.upsert_transactions([row])
        return ledger.get_transaction(txn_id)

    return _add
