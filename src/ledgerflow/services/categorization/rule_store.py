"""
Category rule persistence.

Rules are evaluated in priority order (highest first); equal priorities keep
creation order so categorization stays reproducible.
"""

import logging
import re
from typing import List, Optional, Tuple, Union

from ledgerflow.core.categories import Category
from ledgerflow.core.database import LedgerDatabase
from ledgerflow.core.exceptions import ValidationError
from ledgerflow.services.categorization.models import CategoryRule, MatchType

logger = logging.getLogger(__name__)

# Starter rules for common French merchants: (pattern, category, match type, priority)
DEFAULT_RULES: List[Tuple[str, Category, MatchType, int]] = [
    ("CARREFOUR", Category.GROCERIES, MatchType.CONTAINS, 100),
    ("LECLERC", Category.GROCERIES, MatchType.CONTAINS, 100),
    ("INTERMARCHE", Category.GROCERIES, MatchType.CONTAINS, 100),
    ("MONOPRIX", Category.GROCERIES, MatchType.CONTAINS, 100),
    ("LIDL", Category.GROCERIES, MatchType.CONTAINS, 100),
    ("AUCHAN", Category.GROCERIES, MatchType.CONTAINS, 100),
    ("SNCF", Category.TRAVEL, MatchType.CONTAINS, 100),
    ("RATP", Category.TRANSPORT, MatchType.CONTAINS, 100),
    ("UBER", Category.TRANSPORT, MatchType.CONTAINS, 90),
    ("UBER EATS", Category.RESTAURANTS, MatchType.CONTAINS, 110),
    ("NETFLIX", Category.SUBSCRIPTIONS, MatchType.CONTAINS, 100),
    ("SPOTIFY", Category.SUBSCRIPTIONS, MatchType.CONTAINS, 100),
    ("FREE MOBILE", Category.SUBSCRIPTIONS, MatchType.CONTAINS, 100),
    ("EDF", Category.UTILITIES, MatchType.STARTS_WITH, 100),
    ("ENGIE", Category.UTILITIES, MatchType.CONTAINS, 100),
    ("PHARMACIE", Category.HEALTH, MatchType.CONTAINS, 100),
    ("DGFIP", Category.TAXES, MatchType.CONTAINS, 100),
    (r"^(VIR|VIREMENT) .*SALAIRE", Category.SALARY, MatchType.REGEX, 120),
    ("COTIS", Category.FEES, MatchType.STARTS_WITH, 80),
]


def _category_id(category: Union[Category, str]) -> str:
    if isinstance(category, Category):
        return category.value
    return Category.from_id(category).value


def _match_type(match_type: Union[MatchType, str]) -> MatchType:
    if isinstance(match_type, MatchType):
        return match_type
    try:
        return MatchType(str(match_type).upper())
    except ValueError:
        raise ValidationError(f"Unknown match type: {match_type}") from None


class RuleStore:
    """
    Persistence for CategoryRule.

    Usage:
        store = RuleStore(db)
        store.create_rule("CARREFOUR", Category.GROCERIES)
        rules = store.list_active_rules()
    """

    def __init__(self, db: LedgerDatabase):
        self.db = db

    def create_rule(
        self,
        pattern: str,
        category_id: Union[Category, str],
        match_type: Union[MatchType, str] = MatchType.CONTAINS,
        priority: int = 100,
        source_filter: Optional[str] = None,
    ) -> CategoryRule:
        """
        Create a rule.

        Raises:
            ValidationError: Empty pattern, unknown category or match type
        """
        if not pattern or not pattern.strip():
            raise ValidationError("Rule pattern cannot be empty")
        category_value = _category_id(category_id)
        match_type = _match_type(match_type)

        if match_type == MatchType.REGEX:
            try:
                re.compile(pattern)
            except re.error as e:
                logger.warning(f"Rule pattern {pattern!r} is not a valid regex ({e}); it will never match")

        cursor = self.db.execute(
            """INSERT INTO category_rules (pattern, match_type, priority, category_id, source_filter)
               VALUES (?, ?, ?, ?, ?)""",
            (pattern, match_type.value, int(priority), category_value, source_filter),
        )
        logger.debug(f"Created rule {cursor.lastrowid}: {match_type.value} {pattern!r} -> {category_value}")
        return self.get_rule(cursor.lastrowid)

    def get_rule(self, rule_id: int) -> CategoryRule:
        row = self.db.execute("SELECT * FROM category_rules WHERE id = ?", (rule_id,)).fetchone()
        if row is None:
            raise ValidationError(f"Rule not found: {rule_id}", code="RULE_NOT_FOUND")
        return CategoryRule.from_row(row)

    def list_active_rules(self, source_scope: Optional[str] = None) -> List[CategoryRule]:
        """
        Active rules ordered by priority descending, then creation order.

        Args:
            source_scope: When set, only universal rules and rules filtered
                on this institution/parser key are returned
        """
        sql = "SELECT * FROM category_rules WHERE is_active = 1"
        params: tuple = ()
        if source_scope:
            sql += " AND (source_filter IS NULL OR source_filter = ?)"
            params = (source_scope,)
        sql += " ORDER BY priority DESC, id ASC"
        return [CategoryRule.from_row(r) for r in self.db.execute(sql, params).fetchall()]

    def list_rules(self) -> List[CategoryRule]:
        rows = self.db.execute("SELECT * FROM category_rules ORDER BY priority DESC, id ASC").fetchall()
        return [CategoryRule.from_row(r) for r in rows]

    def upsert_by_pattern(
        self,
        pattern: str,
        category_id: Union[Category, str],
        priority: int = 200,
        match_type: Union[MatchType, str] = MatchType.EXACT,
        source_filter: Optional[str] = None,
    ) -> CategoryRule:
        """Create a rule, or retarget the existing one with the same pattern and match type."""
        match_type = _match_type(match_type)
        row = self.db.execute(
            "SELECT id FROM category_rules WHERE pattern = ? AND match_type = ? ORDER BY id LIMIT 1",
            (pattern, match_type.value),
        ).fetchone()

        if row is None:
            return self.create_rule(pattern, category_id, match_type, priority, source_filter)

        self.db.execute(
            """UPDATE category_rules
               SET category_id = ?, priority = ?, is_active = 1, updated_at = CURRENT_TIMESTAMP
               WHERE id = ?""",
            (_category_id(category_id), int(priority), row["id"]),
        )
        logger.debug(f"Updated rule {row['id']} for pattern {pattern!r}")
        return self.get_rule(row["id"])

    def deactivate(self, rule_id: int) -> None:
        self.get_rule(rule_id)
        self.db.execute(
            "UPDATE category_rules SET is_active = 0, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (rule_id,),
        )

    def seed_defaults(self) -> int:
        """Insert DEFAULT_RULES that are not present yet. Returns the number created."""
        created = 0
        with self.db.transaction():
            for pattern, category, match_type, priority in DEFAULT_RULES:
                exists = self.db.execute(
                    "SELECT 1 FROM category_rules WHERE pattern = ? AND match_type = ?",
                    (pattern, match_type.value),
                ).fetchone()
                if not exists:
                    self.create_rule(pattern, category, match_type, priority)
                    created += 1
        logger.info(f"Seeded {created} default rules")
        return created
