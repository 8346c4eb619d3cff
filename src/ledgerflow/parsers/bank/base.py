"""
Base class for bank statement parsers.

Provides the shared parse flow and the helpers every institution needs:
debit/credit merge, raw-category translation and additional-info synthesis.
"""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, List, Optional, Tuple, Union

from ledgerflow.core.categories import Category
from ledgerflow.core.config import ImportSettings
from ledgerflow.core.exceptions import LedgerFlowError
from ledgerflow.parsers.bank.models import ParseResult, TransactionKind
from ledgerflow.parsers.normalizers import normalize_whitespace, parse_amount, strip_accents
from ledgerflow.parsers.tabular import decode_bytes, parse_delimited

logger = logging.getLogger(__name__)

RawInput = Union[bytes, str]


class BankStatementParser(ABC):
    """Abstract base class for bank statement parsers."""

    PARSER_KEY: str = ""  # Override in subclass
    BANK_NAME: str = ""  # Override in subclass

    def __init__(self, settings: Optional[ImportSettings] = None):
        self.settings = settings or ImportSettings()

    def parse(self, raw: RawInput, source_file: str = "") -> ParseResult:
        """
        Parse an export file.

        Malformed rows are skipped and counted. File-level defects give an
        empty, unsuccessful result; nothing is raised for data problems.

        Args:
            raw: File content as bytes (or already decoded text for CSV formats)
            source_file: Name of the file, for reporting

        Returns:
            ParseResult with transactions and counters
        """
        result = ParseResult(success=True, source_file=source_file, parser_key=self.PARSER_KEY)

        if not raw:
            result.add_error("Empty file")
            return result

        try:
            self._parse_content(raw, result)
        except LedgerFlowError as e:
            logger.warning(f"{self.BANK_NAME}: cannot read {source_file or 'input'}: {e.message}")
            result.add_error(e.message)
            return result

        logger.info(
            f"{self.BANK_NAME}: parsed {len(result.transactions)} transactions "
            f"({result.skipped_rows} rows skipped) from {source_file or 'input'}"
        )
        return result

    def _read_rows(self, raw: RawInput) -> List[List[str]]:
        """Decode delimited content with the configured encoding and delimiter."""
        text = decode_bytes(raw, self.settings.fallback_encoding)
        return parse_delimited(text, self.settings.default_delimiter)

    @abstractmethod
    def _parse_content(self, raw: RawInput, result: ParseResult) -> None:
        """Fill result from the raw input."""

    def _skip(self, result: ParseResult, row_index: int, reason: str) -> None:
        logger.debug(f"{self.BANK_NAME}: skipping row {row_index}: {reason}")
        result.skip_row()


def merge_debit_credit(debit, credit) -> Optional[Tuple[Decimal, TransactionKind]]:
    """
    Merge separate debit/credit columns into (amount, kind).

    amount = credit or |debit|; income when credit is non-zero.

    Returns:
        None when both columns are empty or zero
    """
    credit_value = parse_amount(credit)
    debit_value = parse_amount(debit)

    if credit_value != 0:
        return abs(credit_value), TransactionKind.INCOME
    if debit_value != 0:
        return abs(debit_value), TransactionKind.EXPENSE
    return None


def fold_label(label: Optional[str]) -> str:
    """Fold a native label for table lookups: no accents, lower case, single spaces."""
    return normalize_whitespace(strip_accents(label or "")).lower()


def translate_category(table: Dict[str, Category], *labels: Optional[str]) -> Optional[str]:
    """
    Translate native labels to a canonical category id.

    Labels are tried in order (most specific first, e.g. subcategory before
    category). Unmapped labels give None.
    """
    for label in labels:
        folded = fold_label(label)
        if folded and folded in table:
            return table[folded].value
    return None


def join_label(*parts: Optional[str], separator: str = " > ") -> Optional[str]:
    """Join non-empty label parts, None when nothing is left."""
    kept = [normalize_whitespace(p) for p in parts if p and p.strip()]
    return separator.join(kept) if kept else None


def build_additional_info(operation_type: Optional[str], free_text: Optional[str]) -> Optional[str]:
    """
    Synthesize additional info from operation type and free text.

    Example:
        >>> build_additional_info("Virement", "Loyer janvier")
        'Type: Virement | Loyer janvier'
    """
    parts = []
    if operation_type and operation_type.strip():
        parts.append(f"Type: {operation_type.strip()}")
    if free_text and free_text.strip():
        parts.append(free_text.strip())
    return " | ".join(parts) if parts else None


def cell_or_none(row, index: int) -> Optional[str]:
    """Field at index, stripped, None when missing or blank."""
    if index >= len(row):
        return None
    value = row[index].strip() if isinstance(row[index], str) else row[index]
    return value or None
