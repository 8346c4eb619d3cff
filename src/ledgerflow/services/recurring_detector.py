"""
Recurring pattern detection.

Scans ledger history, groups transactions by normalized description and
amount band, infers the cadence from the modal interval between consecutive
occurrences and upserts RecurringPattern rows. Independent from import and
categorization; meant to run periodically.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import List, Optional, Tuple

import pandas as pd

from ledgerflow.core.config import RecurringSettings
from ledgerflow.core.database import LedgerDatabase
from ledgerflow.parsers.normalizers import normalize_description

logger = logging.getLogger(__name__)


class Frequency(Enum):
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    ANNUAL = "ANNUAL"


# Inclusive day ranges per cadence
FREQUENCY_BANDS: List[Tuple[Frequency, int, int]] = [
    (Frequency.WEEKLY, 5, 9),
    (Frequency.MONTHLY, 25, 35),
    (Frequency.QUARTERLY, 75, 105),
    (Frequency.ANNUAL, 335, 395),
]


def classify_interval(days: float) -> Optional[Frequency]:
    """Bucket an interval in days, None outside every band."""
    for frequency, low, high in FREQUENCY_BANDS:
        if low <= days <= high:
            return frequency
    return None


def split_amount_bands(amounts: List[float], tolerance_percent: float) -> List[List[int]]:
    """
    Split amounts into bands whose members are all within tolerance of the band mean.

    Returns:
        Lists of indices into amounts, each band sorted by amount
    """
    order = sorted(range(len(amounts)), key=lambda i: amounts[i])
    bands: List[List[int]] = []
    current: List[int] = []

    for index in order:
        candidate = current + [index]
        values = [amounts[i] for i in candidate]
        mean = sum(values) / len(values)
        limit = abs(mean) * tolerance_percent / 100
        if current and (mean - min(values) > limit or max(values) - mean > limit):
            bands.append(current)
            candidate = [index]
        current = candidate

    if current:
        bands.append(current)
    return bands


def modal_interval(dates: List[date]) -> Optional[int]:
    """
    Most common gap in days between consecutive dates.

    Same-day repeats are ignored; ties resolve to the median of the tied gaps.
    """
    ordered = sorted(dates)
    gaps = pd.Series([(b - a).days for a, b in zip(ordered, ordered[1:])])
    gaps = gaps[gaps > 0]
    if gaps.empty:
        return None
    return int(round(gaps.mode().median()))


@dataclass
class DetectedPattern:
    """A recurring group found in history."""

    account_id: str
    description: str
    normalized_description: str
    amount: Decimal
    frequency: Frequency
    occurrence_count: int
    last_seen_at: date
    interval_days: int
    category_id: Optional[str] = None


@dataclass
class RecurringPattern:
    """A stored recurring pattern."""

    id: int
    account_id: Optional[str]
    description: str
    normalized_description: str
    amount: Decimal
    frequency: Frequency
    tolerance_percent: float
    occurrence_count: int
    is_active: bool
    last_seen_at: date
    category_id: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "RecurringPattern":
        return cls(
            id=row["id"],
            account_id=row["account_id"],
            description=row["description"],
            normalized_description=row["normalized_description"],
            amount=Decimal(row["amount"]),
            frequency=Frequency(row["frequency"]),
            tolerance_percent=row["tolerance_percent"],
            occurrence_count=row["occurrence_count"],
            is_active=bool(row["is_active"]),
            last_seen_at=date.fromisoformat(row["last_seen_at"]),
            category_id=row["category_id"],
        )


@dataclass
class RecurringRunResult:
    detected: List[DetectedPattern] = field(default_factory=list)
    created: int = 0
    updated: int = 0


class RecurringPatternDetector:
    """
    Detects recurring transactions.

    Usage:
        detector = RecurringPatternDetector(db)
        result = detector.run()
        for pattern in detector.list_active():
            print(pattern.description, pattern.frequency.value)
    """

    def __init__(self, db: LedgerDatabase, settings: Optional[RecurringSettings] = None):
        self.db = db
        self.settings = settings or RecurringSettings()

    def load_history(self, as_of: Optional[date] = None, account_id: Optional[str] = None) -> pd.DataFrame:
        """Non-transfer transactions inside the lookback window as a DataFrame."""
        as_of = as_of or date.today()
        sql = """SELECT id, account_id, date, description, amount, is_debit, category_id
                 FROM transactions WHERE kind != 'transfer' AND date <= ?"""
        params: list = [as_of.isoformat()]
        if self.settings.lookback_months:
            since = (pd.Timestamp(as_of) - pd.DateOffset(months=self.settings.lookback_months)).date()
            sql += " AND date >= ?"
            params.append(since.isoformat())
        if account_id:
            sql += " AND account_id = ?"
            params.append(account_id)
        sql += " ORDER BY date, id"

        rows = [dict(r) for r in self.db.execute(sql, tuple(params)).fetchall()]
        columns = ["id", "account_id", "date", "description", "amount", "is_debit", "category_id"]
        df = pd.DataFrame(rows, columns=columns)
        if df.empty:
            return df

        df["date"] = pd.to_datetime(df["date"]).dt.date
        df["amount"] = df["amount"].astype(float)
        df["normalized"] = df["description"].map(normalize_description)
        return df

    def detect(self, as_of: Optional[date] = None, account_id: Optional[str] = None) -> List[DetectedPattern]:
        """
        Find recurring groups without touching the database.

        Groups are (account, direction, normalized description), split into
        amount bands. A band needs min_occurrences rows and a modal interval
        inside one of the frequency bands.
        """
        df = self.load_history(as_of, account_id)
        if df.empty:
            return []

        patterns = []
        for (acct, _, normalized), group in df.groupby(["account_id", "is_debit", "normalized"], sort=True):
            if len(group) < self.settings.min_occurrences:
                continue
            group = group.reset_index(drop=True)
            for band in split_amount_bands(group["amount"].tolist(), self.settings.tolerance_percent):
                members = group.loc[band].sort_values(["date", "id"])
                pattern = self._evaluate(acct, normalized, members)
                if pattern is not None:
                    patterns.append(pattern)

        logger.info(f"Detected {len(patterns)} recurring patterns")
        return patterns

    def run(self, as_of: Optional[date] = None, account_id: Optional[str] = None) -> RecurringRunResult:
        """Detect and upsert patterns; existing ones are updated, never recreated."""
        result = RecurringRunResult(detected=self.detect(as_of, account_id))

        with self.db.transaction():
            for pattern in result.detected:
                existing_id = self._find_existing(pattern)
                if existing_id is None:
                    self._insert(pattern)
                    result.created += 1
                else:
                    self._update(existing_id, pattern)
                    result.updated += 1

        logger.info(f"Recurring patterns: {result.created} created, {result.updated} updated")
        return result

    def list_active(self, account_id: Optional[str] = None) -> List[RecurringPattern]:
        sql = "SELECT * FROM recurring_patterns WHERE is_active = 1"
        params: tuple = ()
        if account_id:
            sql += " AND account_id = ?"
            params = (account_id,)
        sql += " ORDER BY normalized_description, id"
        return [RecurringPattern.from_row(r) for r in self.db.execute(sql, params).fetchall()]

    def _evaluate(self, account_id: str, normalized: str, members: pd.DataFrame) -> Optional[DetectedPattern]:
        if len(members) < self.settings.min_occurrences:
            return None

        interval = modal_interval(members["date"].tolist())
        if interval is None:
            return None
        frequency = classify_interval(interval)
        if frequency is None:
            return None

        categories = members["category_id"].dropna()
        mean = Decimal(str(members["amount"].mean())).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        latest = members.iloc[-1]

        return DetectedPattern(
            account_id=account_id,
            description=latest["description"],
            normalized_description=normalized,
            amount=mean,
            frequency=frequency,
            occurrence_count=len(members),
            last_seen_at=latest["date"],
            interval_days=interval,
            category_id=categories.mode().iloc[0] if not categories.empty else None,
        )

    def _find_existing(self, pattern: DetectedPattern) -> Optional[int]:
        rows = self.db.execute(
            """SELECT id, amount FROM recurring_patterns
               WHERE account_id = ? AND normalized_description = ? ORDER BY id""",
            (pattern.account_id, pattern.normalized_description),
        ).fetchall()
        limit = pattern.amount * Decimal(str(self.settings.tolerance_percent)) / 100
        for row in rows:
            if abs(Decimal(row["amount"]) - pattern.amount) <= limit:
                return row["id"]
        return None

    def _insert(self, pattern: DetectedPattern) -> None:
        self.db.execute(
            """INSERT INTO recurring_patterns
               (account_id, description, normalized_description, amount, frequency,
                tolerance_percent, occurrence_count, category_id, last_seen_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                pattern.account_id,
                pattern.description,
                pattern.normalized_description,
                str(pattern.amount),
                pattern.frequency.value,
                self.settings.tolerance_percent,
                pattern.occurrence_count,
                pattern.category_id,
                pattern.last_seen_at.isoformat(),
            ),
        )

    def _update(self, pattern_id: int, pattern: DetectedPattern) -> None:
        self.db.execute(
            """UPDATE recurring_patterns
               SET description = ?, amount = ?, frequency = ?, occurrence_count = ?,
                   category_id = COALESCE(?, category_id), last_seen_at = ?, is_active = 1,
                   updated_at = CURRENT_TIMESTAMP
               WHERE id = ?""",
            (
                pattern.description,
                str(pattern.amount),
                pattern.frequency.value,
                pattern.occurrence_count,
                pattern.category_id,
                pattern.last_seen_at.isoformat(),
                pattern_id,
            ),
        )
