"""
Crédit Mutuel / CIC Excel parser.

The export has one sheet per account, named "Cpt <number> ...". Other sheets
(summary, cards) are ignored. Each account sheet starts with 5 rows of
metadata and column headers, then:

    A: date (serial number or DD/MM/YYYY)   C: libellé   D: débit   E: crédit
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from ledgerflow.parsers.bank.base import BankStatementParser, RawInput, merge_debit_credit
from ledgerflow.parsers.bank.models import ParsedTransaction, ParseResult
from ledgerflow.parsers.normalizers import DateFormat, excel_serial_to_date, normalize_whitespace, parse_date
from ledgerflow.parsers.spreadsheet import Cell, CellKind, Sheet, open_workbook

logger = logging.getLogger(__name__)


class CreditMutuelExcelParser(BankStatementParser):
    """Parser for Crédit Mutuel multi-sheet .xlsx exports."""

    PARSER_KEY = "credit_mutuel_xlsx"
    BANK_NAME = "Crédit Mutuel"

    SHEET_PREFIX = "Cpt "
    HEADER_ROWS = 5
    DATE_COL = 0
    DESCRIPTION_COL = 2
    DEBIT_COL = 3
    CREDIT_COL = 4

    def _parse_content(self, raw: RawInput, result: ParseResult) -> None:
        if isinstance(raw, str):
            result.add_error("Spreadsheet parser needs binary content")
            return

        workbook = open_workbook(raw)

        account_sheets = [name for name in workbook.sheet_names if name.startswith(self.SHEET_PREFIX)]
        if not account_sheets:
            result.add_warning(f"No sheet starting with {self.SHEET_PREFIX!r}")
            return

        for name in account_sheets:
            self._parse_sheet(workbook.sheet(name), result)

    def _parse_sheet(self, sheet: Sheet, result: ParseResult) -> None:
        before = len(result.transactions)

        for row in range(self.HEADER_ROWS, sheet.max_row + 1):
            transaction = self._parse_row(sheet, row)
            if transaction is None:
                self._skip(result, row, f"sheet {sheet.name!r}: incomplete or empty row")
                continue
            result.transactions.append(transaction)

        logger.debug(f"Sheet {sheet.name!r}: {len(result.transactions) - before} transactions")

    def _parse_row(self, sheet: Sheet, row: int) -> Optional[ParsedTransaction]:
        txn_date = _cell_date(sheet.cell(row, self.DATE_COL))
        if txn_date is None:
            return None

        merged = merge_debit_credit(
            _cell_amount(sheet.cell(row, self.DEBIT_COL)),
            _cell_amount(sheet.cell(row, self.CREDIT_COL)),
        )
        if merged is None:
            return None
        amount, kind = merged

        label = sheet.cell(row, self.DESCRIPTION_COL)
        description = normalize_whitespace(label.text) if label else ""
        if not description:
            return None

        return ParsedTransaction(date=txn_date, description=description, amount=amount, kind=kind)


def _cell_date(cell: Optional[Cell]) -> Optional[date]:
    if cell is None:
        return None
    if cell.kind in (CellKind.DATE_SERIAL, CellKind.NUMBER):
        return excel_serial_to_date(cell.value)
    return parse_date(cell.value, DateFormat.DMY)


def _cell_amount(cell: Optional[Cell]):
    """Numeric cells as Decimal, text cells left for parse_amount."""
    if cell is None:
        return None
    if cell.kind == CellKind.STRING:
        return cell.value
    return Decimal(str(cell.value))
