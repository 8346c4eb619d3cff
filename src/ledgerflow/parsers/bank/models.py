"""
Canonical parsed transaction models.

Every institution parser converges to ParsedTransaction; ParseResult is the
container the import coordinator consumes.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterator, List, Optional


class TransactionKind(Enum):
    """Direction of a transaction. Amounts are magnitudes, kind carries the sign."""

    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


@dataclass
class ParsedTransaction:
    """Represents a single transaction read from an export file."""

    date: date
    description: str
    amount: Decimal
    kind: TransactionKind
    raw_category: Optional[str] = None  # canonical category id translated by the parser
    bank_label: Optional[str] = None  # category label as written in the export
    reference: Optional[str] = None
    value_date: Optional[date] = None
    additional_info: Optional[str] = None
    balance: Optional[Decimal] = None
    is_debit: bool = False

    def __post_init__(self):
        """Normalize amount and enforce the positive magnitude invariant."""
        if not isinstance(self.amount, Decimal):
            self.amount = Decimal(str(self.amount))
        if self.amount <= 0:
            raise ValueError(f"Transaction amount must be positive, got {self.amount}")
        if self.kind == TransactionKind.EXPENSE:
            self.is_debit = True
        elif self.kind == TransactionKind.INCOME:
            self.is_debit = False

    @property
    def signed_amount(self) -> Decimal:
        """Amount signed by direction: negative for money leaving the account."""
        return -self.amount if self.is_debit else self.amount

    @property
    def is_income(self) -> bool:
        return self.kind == TransactionKind.INCOME

    @property
    def is_transfer(self) -> bool:
        return self.kind == TransactionKind.TRANSFER


@dataclass
class ParseResult:
    """Result of parsing one export file."""

    success: bool
    transactions: List[ParsedTransaction] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    skipped_rows: int = 0
    source_file: str = ""
    parser_key: str = ""

    def add_error(self, error: str) -> None:
        """Add a file-level error and mark the result unsuccessful."""
        self.errors.append(error)
        self.success = False

    def add_warning(self, warning: str) -> None:
        """Add warning message."""
        self.warnings.append(warning)

    def skip_row(self) -> None:
        self.skipped_rows += 1

    @property
    def statement_period(self) -> Optional[tuple]:
        """(first date, last date) covered by the transactions, None when empty."""
        if not self.transactions:
            return None
        dates = [t.date for t in self.transactions]
        return min(dates), max(dates)

    @property
    def total_income(self) -> Decimal:
        return sum((t.amount for t in self.transactions if t.kind == TransactionKind.INCOME), Decimal("0"))

    @property
    def total_expense(self) -> Decimal:
        return sum((t.amount for t in self.transactions if t.kind == TransactionKind.EXPENSE), Decimal("0"))

    def __iter__(self) -> Iterator[ParsedTransaction]:
        return iter(self.transactions)

    def __len__(self) -> int:
        return len(self.transactions)

    def __getitem__(self, index: int) -> ParsedTransaction:
        return self.transactions[index]
