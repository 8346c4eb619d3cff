"""
Crédit Mutuel / CIC CSV parser.

Format: Date;Date de valeur;Débit;Crédit;Libellé;Solde
Dates are DD/MM/YYYY, amounts French formatted, separator ';'.
"""

import logging
from typing import List, Optional

from ledgerflow.parsers.bank.base import BankStatementParser, RawInput, merge_debit_credit
from ledgerflow.parsers.bank.models import ParsedTransaction, ParseResult
from ledgerflow.parsers.normalizers import DateFormat, normalize_whitespace, parse_amount, parse_date

logger = logging.getLogger(__name__)

MIN_COLUMNS = 6


class CreditMutuelParser(BankStatementParser):
    """Parser for Crédit Mutuel CSV exports."""

    PARSER_KEY = "credit_mutuel"
    BANK_NAME = "Crédit Mutuel"

    def _parse_content(self, raw: RawInput, result: ParseResult) -> None:
        rows = self._read_rows(raw)
        if not rows:
            result.add_error("No rows found")
            return

        for index, row in enumerate(rows[1:], start=1):
            transaction = self._parse_row(row)
            if transaction is None:
                self._skip(result, index, "incomplete or empty row")
                continue
            result.transactions.append(transaction)

    def _parse_row(self, row: List[str]) -> Optional[ParsedTransaction]:
        if len(row) < MIN_COLUMNS:
            return None

        date_str, value_date_str, debit_str, credit_str, label, balance_str = row[:MIN_COLUMNS]

        txn_date = parse_date(date_str, DateFormat.DMY)
        if txn_date is None:
            return None

        merged = merge_debit_credit(debit_str, credit_str)
        if merged is None:
            return None
        amount, kind = merged

        description = normalize_whitespace(label)
        if not description:
            return None

        return ParsedTransaction(
            date=txn_date,
            description=description,
            amount=amount,
            kind=kind,
            value_date=parse_date(value_date_str, DateFormat.DMY),
            balance=parse_amount(balance_str) if balance_str else None,
        )
