"""
Locale normalizers for French bank exports.

Pure functions: amount strings to Decimal, date strings and spreadsheet
serials to calendar dates, text folding.
"""

import logging
import math
import re
import unicodedata
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Union

import pandas as pd

logger = logging.getLogger(__name__)

# Spreadsheet day zero, including the legacy 1900 leap-year offset
EXCEL_EPOCH = date(1899, 12, 30)

_WHITESPACE_RE = re.compile(r"\s+")
_AMOUNT_JUNK_RE = re.compile(r"[^0-9.+\-]")
# Digits on both sides of a day/month/year separator
_DATE_SEPARATOR_RE = re.compile(r"\d\s*[/.\-]\s*\d")


class DateFormat(Enum):
    """Date layouts found in exports."""

    DMY = "%d/%m/%Y"
    ISO = "%Y-%m-%d"
    MDY = "%m/%d/%Y"


def parse_amount(value: Union[str, int, float, Decimal, None]) -> Decimal:
    """
    Parse a French formatted amount.

    Whitespace (including non-breaking thousands separators) is removed, the
    decimal comma becomes a dot and any other character except digits, sign
    and dot is dropped. Non-numeric input gives Decimal("0").

    The result keeps its sign; whether to negate or take the absolute value
    is up to the institution parser.

    Example:
        >>> parse_amount("1 234,56")
        Decimal('1234.56')
        >>> parse_amount("-123,45")
        Decimal('-123.45')
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return Decimal("0")
        return Decimal(str(value))

    text = _WHITESPACE_RE.sub("", str(value))
    if "," in text:
        # "1.234,56": dots before the decimal comma are thousands separators
        head, _, tail = text.partition(",")
        text = head.replace(".", "") + "." + tail.replace(",", "")
    text = _AMOUNT_JUNK_RE.sub("", text)

    if not text:
        return Decimal("0")

    try:
        return Decimal(text)
    except InvalidOperation:
        return Decimal("0")


def parse_date(value: Optional[str], fmt: DateFormat = DateFormat.DMY) -> Optional[date]:
    """
    Parse a date string in the given layout.

    Falls back to generic parsing (day first unless fmt is MDY) when the
    layout does not match. Generic parsing only sees text with a
    date separator between digits, so "2024" or "now" are rejected.

    Returns:
        The date, or None when unparseable (callers skip the row)
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None

    try:
        return datetime.strptime(text, fmt.value).date()
    except ValueError:
        pass

    for other in DateFormat:
        if other is fmt or (other is DateFormat.MDY and fmt is DateFormat.DMY):
            continue
        try:
            return datetime.strptime(text, other.value).date()
        except ValueError:
            continue

    if not _DATE_SEPARATOR_RE.search(text):
        return None

    try:
        parsed = pd.to_datetime(text, dayfirst=fmt is not DateFormat.MDY)
    except (ValueError, TypeError, OverflowError):
        return None

    if pd.isna(parsed):
        return None
    return parsed.date()


def excel_serial_to_date(serial: Union[int, float, Decimal]) -> Optional[date]:
    """
    Convert a spreadsheet serial number to a calendar date.

    The fractional part (time of day) is dropped. Serials outside the
    calendar range (or NaN) give None.

    Example:
        >>> excel_serial_to_date(45000)
        datetime.date(2023, 3, 15)
    """
    try:
        return EXCEL_EPOCH + timedelta(days=math.floor(float(serial)))
    except (OverflowError, ValueError):
        return None


def normalize_whitespace(text: Optional[str]) -> str:
    """Trim and collapse internal whitespace runs to one space."""
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", str(text)).strip()


def strip_accents(text: str) -> str:
    """Remove diacritics ("Santé" -> "Sante")."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_description(text: Optional[str]) -> str:
    """Fold a description for grouping: accents removed, upper case, single spaces."""
    return normalize_whitespace(strip_accents(text or "")).upper()
