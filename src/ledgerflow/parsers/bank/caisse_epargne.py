"""
Caisse d'Épargne CSV parser.

Two export layouts exist:

Personal (13 columns):
    Date de comptabilisation;Libelle simplifie;Libelle operation;Reference;
    Informations complementaires;Type operation;Categorie;Sous categorie;
    Debit;Credit;Date operation;Date de valeur;Pointage operation

Business / SCI (10 columns, no category columns, Pointage is Oui/Non):
    Date comptable;Libelle simplifie;Reference;Informations complementaires;
    Type operation;Debit;Credit;Date operation;Date de valeur;Pointage

The layout is detected once from the header, then rows are read through the
matching column table. Amounts use the French format ("1 234,56"), dates are
DD/MM/YYYY, the separator is ';'.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ledgerflow.core.categories import Category
from ledgerflow.parsers.bank.base import (
    BankStatementParser,
    RawInput,
    build_additional_info,
    cell_or_none,
    fold_label,
    join_label,
    merge_debit_credit,
    translate_category,
)
from ledgerflow.parsers.bank.models import ParsedTransaction, ParseResult, TransactionKind
from ledgerflow.parsers.normalizers import DateFormat, normalize_whitespace, parse_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ColumnMap:
    """Column indices of one export layout. None means the column does not exist."""

    accounting_date: int
    short_label: int
    label: Optional[int]
    reference: int
    info: int
    operation_type: int
    category: Optional[int]
    subcategory: Optional[int]
    debit: int
    credit: int
    operation_date: int
    value_date: int
    min_columns: int


class ColumnLayout(Enum):
    """Known Caisse d'Épargne export layouts."""

    PERSONAL = ColumnMap(
        accounting_date=0, short_label=1, label=2, reference=3, info=4,
        operation_type=5, category=6, subcategory=7, debit=8, credit=9,
        operation_date=10, value_date=11, min_columns=13,
    )
    BUSINESS = ColumnMap(
        accounting_date=0, short_label=1, label=None, reference=2, info=3,
        operation_type=4, category=None, subcategory=None, debit=5, credit=6,
        operation_date=7, value_date=8, min_columns=10,
    )

    @property
    def columns(self) -> ColumnMap:
        return self.value


def detect_layout(header: List[str]) -> Optional[ColumnLayout]:
    """
    Detect the layout from header tokens.

    'Pointage' without 'Categorie' is the business layout; a 'Categorie'
    column is the personal one. Headers with neither marker are matched on
    their column count.
    """
    tokens = [fold_label(h) for h in header]
    has_category = any(t.startswith("categorie") for t in tokens)
    has_pointage = any(t.startswith("pointage") for t in tokens)

    if has_pointage and not has_category:
        return ColumnLayout.BUSINESS
    if has_category:
        return ColumnLayout.PERSONAL
    if len(header) >= ColumnLayout.PERSONAL.columns.min_columns:
        return ColumnLayout.PERSONAL
    if len(header) >= ColumnLayout.BUSINESS.columns.min_columns:
        return ColumnLayout.BUSINESS
    return None


# Native category/subcategory labels (folded) to canonical categories
CATEGORY_TABLE = {
    # Revenus
    "revenus et rentrees d'argent": Category.OTHER_INCOME,
    "salaires": Category.SALARY,
    "salaires et revenus d'activite": Category.SALARY,
    "remboursements": Category.REFUND,
    "revenus fonciers": Category.RENTAL_INCOME,
    # Vie quotidienne
    "alimentation": Category.GROCERIES,
    "hyper/supermarche": Category.GROCERIES,
    "restaurant": Category.RESTAURANTS,
    "restauration rapide": Category.RESTAURANTS,
    "transports": Category.TRANSPORT,
    "transports en commun": Category.TRANSPORT,
    "taxis et vtc": Category.TRANSPORT,
    "carburant": Category.TRANSPORT,
    "trains, avions et ferrys": Category.TRAVEL,
    "hotel": Category.TRAVEL,
    "logement - maison": Category.HOUSING,
    "loyer": Category.HOUSING,
    "internet et telephonie": Category.SUBSCRIPTIONS,
    "video, musique et jeux": Category.SUBSCRIPTIONS,
    "energie eau, gaz, electricite, fioul": Category.UTILITIES,
    "banque et assurances": Category.INSURANCE,
    "assurances": Category.INSURANCE,
    "frais bancaires": Category.FEES,
    "sante": Category.HEALTH,
    "pharmacie": Category.HEALTH,
    "consultation medicale": Category.HEALTH,
    "shopping et services": Category.SHOPPING,
    "vetements et chaussures": Category.SHOPPING,
    "high-tech/electromenager": Category.SHOPPING,
    "loisirs et vacances": Category.LEISURE,
    "expo, musee, cinema": Category.LEISURE,
    "sport, gym et equipement": Category.LEISURE,
    "bar": Category.LEISURE,
    "livres, magazines": Category.LEISURE,
    "enseignement": Category.EDUCATION,
    "impots et taxes": Category.TAXES,
    "epargne": Category.SAVINGS,
    "credits": Category.LOAN_PAYMENT,
    "transaction exclue": Category.TRANSFER,
    "virement interne": Category.TRANSFER,
}

TRANSFER_CATEGORIES = frozenset({"transaction exclue"})
TRANSFER_SUBCATEGORIES = frozenset({"virement interne"})


class CaisseEpargneParser(BankStatementParser):
    """Parser for Caisse d'Épargne CSV exports (personal and business layouts)."""

    PARSER_KEY = "caisse_epargne"
    BANK_NAME = "Caisse d'Épargne"
    FIXED_LAYOUT: Optional[ColumnLayout] = None

    def _parse_content(self, raw: RawInput, result: ParseResult) -> None:
        rows = self._read_rows(raw)

        if not rows:
            result.add_error("No rows found")
            return
        if len(rows) < 2:
            # Header only: nothing importable, not a failure
            result.add_warning("Header only, no transactions")
            return

        layout = self.FIXED_LAYOUT or detect_layout(rows[0])
        if layout is None:
            result.add_error(f"Unrecognized header with {len(rows[0])} columns")
            return
        logger.debug(f"{self.BANK_NAME}: using {layout.name} layout")

        for index, row in enumerate(rows[1:], start=1):
            transaction = self._parse_row(row, layout.columns)
            if transaction is None:
                self._skip(result, index, "incomplete or empty row")
                continue
            result.transactions.append(transaction)

    def _parse_row(self, row: List[str], cols: ColumnMap) -> Optional[ParsedTransaction]:
        if len(row) < cols.min_columns:
            return None

        txn_date = parse_date(row[cols.operation_date], DateFormat.DMY) or parse_date(
            row[cols.accounting_date], DateFormat.DMY
        )
        if txn_date is None:
            return None

        merged = merge_debit_credit(row[cols.debit], row[cols.credit])
        if merged is None:
            return None
        amount, kind = merged

        label = row[cols.label] if cols.label is not None else ""
        description = normalize_whitespace(label) or normalize_whitespace(row[cols.short_label])
        if not description:
            return None

        category = cell_or_none(row, cols.category) if cols.category is not None else None
        subcategory = cell_or_none(row, cols.subcategory) if cols.subcategory is not None else None

        is_debit = kind == TransactionKind.EXPENSE
        if fold_label(category) in TRANSFER_CATEGORIES or fold_label(subcategory) in TRANSFER_SUBCATEGORIES:
            kind = TransactionKind.TRANSFER

        return ParsedTransaction(
            date=txn_date,
            description=description,
            amount=amount,
            kind=kind,
            raw_category=translate_category(CATEGORY_TABLE, subcategory, category),
            bank_label=join_label(category, subcategory),
            reference=cell_or_none(row, cols.reference),
            value_date=parse_date(row[cols.value_date], DateFormat.DMY),
            additional_info=build_additional_info(row[cols.operation_type], row[cols.info]),
            is_debit=is_debit,
        )


class CaisseEpargneEntrepriseParser(CaisseEpargneParser):
    """
    Parser for Caisse d'Épargne business (SCI / enterprise) accounts.

    Always reads the 10-column layout: no category columns, Pointage is Oui/Non
    and ignored. Debits are kept as absolute amounts with kind=expense, so
    signed_amount is negative for them.
    """

    PARSER_KEY = "caisse_epargne_entreprise"
    BANK_NAME = "Caisse d'Épargne Entreprise"
    FIXED_LAYOUT = ColumnLayout.BUSINESS
