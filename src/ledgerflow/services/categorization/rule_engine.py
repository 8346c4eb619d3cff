"""
Rule matching.

EXACT is a case-sensitive full match; CONTAINS and STARTS_WITH ignore case;
REGEX is searched case-insensitively and an invalid pattern never matches.
"""

import logging
import re
from typing import Dict, Iterable, List, Optional, Pattern

from ledgerflow.core.exceptions import UnknownParserError
from ledgerflow.parsers.bank import ParserRegistry
from ledgerflow.parsers.bank.registry import normalize_key
from ledgerflow.services.categorization.models import CategoryRule, MatchType

logger = logging.getLogger(__name__)

_INVALID = object()


class RuleEngine:
    """
    Picks the winning rule for a description.

    Rules must be given in evaluation order (see RuleStore.list_active_rules);
    the first matching rule wins.
    """

    def __init__(self, rules: Iterable[CategoryRule]):
        self.rules: List[CategoryRule] = list(rules)
        self._regex_cache: Dict[str, object] = {}

    def match(self, description: str, source: Optional[str] = None,
              account_id: Optional[str] = None) -> Optional[CategoryRule]:
        """
        First matching rule, or None.

        Args:
            description: Transaction description
            source: Parser/institution key of the transaction
            account_id: Account of the transaction, also accepted by source filters
        """
        for rule in self.rules:
            if not rule.is_active:
                continue
            if rule.source_filter and not _source_allows(rule.source_filter, source, account_id):
                continue
            if self.matches(rule, description):
                return rule
        return None

    def matches(self, rule: CategoryRule, description: str) -> bool:
        text = description or ""
        if rule.match_type == MatchType.EXACT:
            return text == rule.pattern
        if rule.match_type == MatchType.CONTAINS:
            return rule.pattern.casefold() in text.casefold()
        if rule.match_type == MatchType.STARTS_WITH:
            return text.casefold().startswith(rule.pattern.casefold())
        if rule.match_type == MatchType.REGEX:
            compiled = self._compile(rule)
            return compiled is not None and compiled.search(text) is not None
        return False

    def _compile(self, rule: CategoryRule) -> Optional[Pattern]:
        cached = self._regex_cache.get(rule.pattern)
        if cached is None:
            try:
                cached = re.compile(rule.pattern, re.IGNORECASE)
            except re.error as e:
                logger.warning(f"Rule {rule.id}: invalid regex {rule.pattern!r} ({e}), treated as non-matching")
                cached = _INVALID
            self._regex_cache[rule.pattern] = cached
        return None if cached is _INVALID else cached


def _source_allows(source_filter: str, source: Optional[str], account_id: Optional[str]) -> bool:
    if account_id and source_filter == account_id:
        return True
    return bool(source) and _canonical_source(source_filter) == _canonical_source(source)


def _canonical_source(key: str) -> str:
    """Registered parser key for key or one of its aliases; other names are only normalized."""
    try:
        return ParserRegistry.resolve(key)
    except UnknownParserError:
        return normalize_key(key)
