"""
Boursorama Banque CSV parser.

Format (UTF-8 with BOM, ';' separated, ISO dates):
    dateOp;dateVal;label;category;categoryParent;supplierFound;amount;
    comment;accountNum;accountLabel;accountbalance

A single signed amount column carries the direction.
"""

import logging
from typing import List, Optional

from ledgerflow.core.categories import Category
from ledgerflow.parsers.bank.base import (
    BankStatementParser,
    RawInput,
    cell_or_none,
    fold_label,
    join_label,
    translate_category,
)
from ledgerflow.parsers.bank.models import ParsedTransaction, ParseResult, TransactionKind
from ledgerflow.parsers.normalizers import DateFormat, normalize_whitespace, parse_amount, parse_date

logger = logging.getLogger(__name__)

MIN_COLUMNS = 11

CATEGORY_TABLE = {
    "salaires et revenus d'activite": Category.SALARY,
    "revenus d'epargne": Category.DIVIDENDS,
    "remboursements": Category.REFUND,
    "loyers percus": Category.RENTAL_INCOME,
    "alimentation": Category.GROCERIES,
    "supermarche": Category.GROCERIES,
    "restaurants, bars, discotheques": Category.RESTAURANTS,
    "restaurants": Category.RESTAURANTS,
    "auto & moto": Category.TRANSPORT,
    "carburant": Category.TRANSPORT,
    "transports en commun": Category.TRANSPORT,
    "voyages & vacances": Category.TRAVEL,
    "logement": Category.HOUSING,
    "loyers, charges": Category.HOUSING,
    "electricite, gaz": Category.UTILITIES,
    "eau": Category.UTILITIES,
    "telephonie (fixe et mobile)": Category.SUBSCRIPTIONS,
    "internet": Category.SUBSCRIPTIONS,
    "abonnements": Category.SUBSCRIPTIONS,
    "assurances": Category.INSURANCE,
    "frais bancaires": Category.FEES,
    "sante": Category.HEALTH,
    "achats & shopping": Category.SHOPPING,
    "loisirs & sorties": Category.LEISURE,
    "scolarite & enfants": Category.EDUCATION,
    "impots & taxes": Category.TAXES,
    "epargne": Category.SAVINGS,
    "placements": Category.INVESTMENT,
    "credits": Category.LOAN_PAYMENT,
    "mouvements internes": Category.TRANSFER,
    "virements internes": Category.TRANSFER,
}

TRANSFER_LABELS = frozenset({"mouvements internes", "virements internes"})


def extract_short_label(label: str) -> str:
    """Boursorama labels are 'SHORT | details'; keep the short part."""
    head = label.split(" | ", 1)[0]
    return normalize_whitespace(head) or normalize_whitespace(label)


class BoursoramaParser(BankStatementParser):
    """Parser for Boursorama Banque CSV exports."""

    PARSER_KEY = "boursorama"
    BANK_NAME = "Boursorama"

    def _parse_content(self, raw: RawInput, result: ParseResult) -> None:
        rows = self._read_rows(raw)
        if not rows:
            result.add_error("No rows found")
            return

        for index, row in enumerate(rows[1:], start=1):
            transaction = self._parse_row(row)
            if transaction is None:
                self._skip(result, index, "incomplete or zero-amount row")
                continue
            result.transactions.append(transaction)

    def _parse_row(self, row: List[str]) -> Optional[ParsedTransaction]:
        if len(row) < MIN_COLUMNS:
            return None

        txn_date = parse_date(row[0], DateFormat.ISO)
        if txn_date is None:
            return None

        signed = parse_amount(row[6])
        if signed == 0:
            return None

        description = extract_short_label(row[2])
        if not description:
            return None

        category, parent = cell_or_none(row, 3), cell_or_none(row, 4)
        kind = TransactionKind.INCOME if signed > 0 else TransactionKind.EXPENSE
        is_debit = signed < 0
        if fold_label(parent) in TRANSFER_LABELS or fold_label(category) in TRANSFER_LABELS:
            kind = TransactionKind.TRANSFER

        balance_str = cell_or_none(row, 10)

        return ParsedTransaction(
            date=txn_date,
            description=description,
            amount=abs(signed),
            kind=kind,
            raw_category=translate_category(CATEGORY_TABLE, category, parent),
            bank_label=join_label(parent, category),
            value_date=parse_date(row[1], DateFormat.ISO),
            additional_info=cell_or_none(row, 7),
            balance=parse_amount(balance_str) if balance_str else None,
            is_debit=is_debit,
        )
