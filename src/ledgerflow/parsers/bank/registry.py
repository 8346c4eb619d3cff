"""
Registry mapping institution keys to parser classes.

Example:
    ParserRegistry.register("my_bank", MyBankParser, aliases=["My Bank"])
    parser = ParserRegistry.create("My Bank")
"""

import logging
import re
from pathlib import PurePath
from typing import Dict, Iterable, List, Optional, Type

from ledgerflow.core.config import ImportSettings
from ledgerflow.core.exceptions import UnknownParserError
from ledgerflow.parsers.bank.base import BankStatementParser
from ledgerflow.parsers.normalizers import strip_accents

logger = logging.getLogger(__name__)

SPREADSHEET_SUFFIXES = (".xlsx", ".xlsm")

_KEY_SEPARATORS_RE = re.compile(r"[\s'’\-]+")


def normalize_key(key: str) -> str:
    """'Crédit Mutuel' -> 'credit_mutuel'."""
    return _KEY_SEPARATORS_RE.sub("_", strip_accents(key.strip()).lower()).strip("_")


class ParserRegistry:
    """Registry for institution parsers. Lookups are case and accent insensitive."""

    _parsers: Dict[str, Type[BankStatementParser]] = {}
    _aliases: Dict[str, str] = {}
    _spreadsheet_variants: Dict[str, str] = {}

    @classmethod
    def register(
        cls,
        key: str,
        parser_class: Type[BankStatementParser],
        aliases: Iterable[str] = (),
        spreadsheet_variant: Optional[str] = None,
    ) -> None:
        """
        Register a parser class.

        Args:
            key: Canonical parser key
            parser_class: BankStatementParser subclass
            aliases: Other names accepted for this key
            spreadsheet_variant: Key to use instead when the file is a workbook
        """
        key = normalize_key(key)
        cls._parsers[key] = parser_class
        for alias in aliases:
            cls._aliases[normalize_key(alias)] = key
        if spreadsheet_variant:
            cls._spreadsheet_variants[key] = normalize_key(spreadsheet_variant)
        logger.debug(f"Registered parser: {key}")

    @classmethod
    def resolve(cls, key: str) -> str:
        """
        Resolve a key or alias to the canonical parser key.

        Raises:
            UnknownParserError: If nothing is registered under that name
        """
        normalized = normalize_key(key or "")
        normalized = cls._aliases.get(normalized, normalized)
        if normalized not in cls._parsers:
            raise UnknownParserError(key)
        return normalized

    @classmethod
    def create(cls, key: str, settings: Optional[ImportSettings] = None) -> BankStatementParser:
        """
        Get a parser instance by institution key.

        Args:
            key: Parser key or alias
            settings: Decoding settings handed to the parser

        Raises:
            UnknownParserError: If the key is not registered
        """
        return cls._parsers[cls.resolve(key)](settings)

    @classmethod
    def create_for_file(cls, key: str, filename: str = "",
                        settings: Optional[ImportSettings] = None) -> BankStatementParser:
        """Like create, switching to the spreadsheet variant for workbook files."""
        resolved = cls.resolve(key)
        if PurePath(filename or "").suffix.lower() in SPREADSHEET_SUFFIXES:
            resolved = cls._spreadsheet_variants.get(resolved, resolved)
        return cls._parsers[resolved](settings)

    @classmethod
    def available(cls) -> List[str]:
        """Registered canonical keys, sorted."""
        return sorted(cls._parsers)

    @classmethod
    def unregister(cls, key: str) -> None:
        key = normalize_key(key)
        cls._parsers.pop(key, None)
        cls._spreadsheet_variants.pop(key, None)
        for alias in [a for a, target in cls._aliases.items() if target == key]:
            del cls._aliases[alias]
