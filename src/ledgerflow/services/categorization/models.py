"""
Categorization data models.
"""

from dataclasses import asdict, dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional


class MatchType(Enum):
    """How a rule pattern is compared to a description."""

    EXACT = "EXACT"
    CONTAINS = "CONTAINS"
    STARTS_WITH = "STARTS_WITH"
    REGEX = "REGEX"


class CategorySource(Enum):
    """Which tier assigned a category."""

    RULE = "RULE"
    BANK = "BANK"
    AI = "AI"
    TRANSFER = "TRANSFER"
    MANUAL = "MANUAL"


# Confidence recorded with each tier's assignment
SOURCE_CONFIDENCE = {
    CategorySource.RULE: 1.0,
    CategorySource.MANUAL: 1.0,
    CategorySource.TRANSFER: 0.9,
    CategorySource.BANK: 0.7,
    CategorySource.AI: 0.5,
}


@dataclass
class CategoryRule:
    """A stored categorization rule."""

    id: int
    pattern: str
    category_id: str
    match_type: MatchType = MatchType.CONTAINS
    priority: int = 100
    source_filter: Optional[str] = None
    is_active: bool = True
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "CategoryRule":
        return cls(
            id=row["id"],
            pattern=row["pattern"],
            category_id=row["category_id"],
            match_type=MatchType(row["match_type"]),
            priority=row["priority"],
            source_filter=row["source_filter"],
            is_active=bool(row["is_active"]),
            created_at=row["created_at"],
        )


@dataclass
class CategoryAssignment:
    """Category chosen for one transaction."""

    transaction_id: str
    category_id: str
    source: CategorySource
    confidence: float
    rule_id: Optional[int] = None
    is_internal: bool = False


@dataclass
class CategorizationStats:
    """Aggregate counters of one categorization run. duration is in milliseconds."""

    total: int = 0
    rule_matches: int = 0
    bank_matches: int = 0
    ai_matches: int = 0
    transfer_matches: int = 0
    unmatched: int = 0
    duration: int = 0
    estimated_cost: Decimal = Decimal("0")

    @property
    def matched(self) -> int:
        return self.total - self.unmatched

    def record(self, source: Optional[CategorySource]) -> None:
        self.total += 1
        if source is None:
            self.unmatched += 1
        elif source == CategorySource.RULE:
            self.rule_matches += 1
        elif source == CategorySource.BANK:
            self.bank_matches += 1
        elif source == CategorySource.AI:
            self.ai_matches += 1
        elif source == CategorySource.TRANSFER:
            self.transfer_matches += 1

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["estimated_cost"] = str(self.estimated_cost)
        return data


@dataclass
class CategorizationRun:
    """Stats plus the assignments of one run."""

    stats: CategorizationStats
    assignments: List[CategoryAssignment] = field(default_factory=list)
    applied: bool = True

    def category_of(self, transaction_id: str) -> Optional[str]:
        for assignment in self.assignments:
            if assignment.transaction_id == transaction_id:
                return assignment.category_id
        return None
