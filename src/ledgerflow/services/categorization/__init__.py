"""
Transaction categorization.

Components:
- RuleStore: rule persistence and ordering
- RuleEngine: EXACT / CONTAINS / STARTS_WITH / REGEX matching
- BankCategoryMapper: bank-supplied category hints
- TransferDetector: internal transfer detection
- CategorizationPipeline: tiered categorization with stats and manual rule learning
"""

from ledgerflow.services.categorization.models import (
    CategorizationRun,
    CategorizationStats,
    CategoryAssignment,
    CategoryRule,
    CategorySource,
    MatchType,
)
from ledgerflow.services.categorization.rule_store import RuleStore
from ledgerflow.services.categorization.rule_engine import RuleEngine
from ledgerflow.services.categorization.bank_category_mapper import BankCategoryMapper
from ledgerflow.services.categorization.transfer_detector import TransferDetector
from ledgerflow.services.categorization.pipeline import CategorizationPipeline

__all__ = [
    "CategorizationRun",
    "CategorizationStats",
    "CategoryAssignment",
    "CategoryRule",
    "CategorySource",
    "MatchType",
    "RuleStore",
    "RuleEngine",
    "BankCategoryMapper",
    "TransferDetector",
    "CategorizationPipeline",
]
