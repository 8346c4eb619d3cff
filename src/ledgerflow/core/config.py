"""Configuration for ledgerflow.

Data-driven settings with sensible defaults, optionally overridden by a JSON
file. The file location comes from ``LEDGERFLOW_CONFIG`` and the database
location from ``LEDGERFLOW_DB``.
"""

import copy
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from ledgerflow.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "LEDGERFLOW_CONFIG"
DB_ENV_VAR = "LEDGERFLOW_DB"
DEFAULT_HOME = Path.home() / ".ledgerflow"

DEFAULT_CONFIG = {
    "version": "1.0",
    "database": {
        "path": None,  # Resolved from env or DEFAULT_HOME
    },
    "import": {
        "default_delimiter": ";",
        "fallback_encoding": "windows-1252",
    },
    "categorization": {
        "default_rule_priority": 100,
        "manual_rule_priority": 200,
        "detect_transfer_pairs": True,
        "transfer_window_days": 3,
    },
    "recurring": {
        "min_occurrences": 3,
        "tolerance_percent": 10.0,
        "lookback_months": 6,
    },
}


@dataclass
class ImportSettings:
    """Settings used while decoding export files."""
    default_delimiter: str = ";"
    fallback_encoding: str = "windows-1252"


@dataclass
class CategorizationSettings:
    """Settings for the categorization pipeline and rule learning."""
    default_rule_priority: int = 100
    manual_rule_priority: int = 200
    detect_transfer_pairs: bool = True
    transfer_window_days: int = 3


@dataclass
class RecurringSettings:
    """Settings for the recurring pattern detector."""
    min_occurrences: int = 3
    tolerance_percent: float = 10.0
    lookback_months: Optional[int] = 6  # None scans the whole history


@dataclass
class LedgerConfig:
    """
    Top-level configuration.

    Usage:
        config = LedgerConfig.load()
        db = LedgerDatabase(config.database_path)
    """
    database_path: str = ""
    import_settings: ImportSettings = field(default_factory=ImportSettings)
    categorization: CategorizationSettings = field(default_factory=CategorizationSettings)
    recurring: RecurringSettings = field(default_factory=RecurringSettings)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerConfig":
        """Build a config from a (possibly partial) dictionary merged over defaults."""
        merged = _deep_merge(copy.deepcopy(DEFAULT_CONFIG), data or {})

        try:
            return cls(
                database_path=merged["database"].get("path") or _default_db_path(),
                import_settings=ImportSettings(**merged["import"]),
                categorization=CategorizationSettings(**merged["categorization"]),
                recurring=RecurringSettings(**merged["recurring"]),
            )
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    @classmethod
    def from_json(cls, path: Path) -> "LedgerConfig":
        """Load configuration from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {path}")

        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Config file {path} is not valid JSON: {e}") from e

        logger.debug(f"Loaded configuration from {path}")
        return cls.from_dict(data)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "LedgerConfig":
        """
        Load configuration with fallback to defaults.

        Args:
            path: Explicit JSON config path. Defaults to $LEDGERFLOW_CONFIG.

        Returns:
            LedgerConfig instance
        """
        path = path or os.environ.get(CONFIG_ENV_VAR)
        if path:
            return cls.from_json(Path(path))
        return cls.from_dict({})


def _default_db_path() -> str:
    return os.environ.get(DB_ENV_VAR) or str(DEFAULT_HOME / "ledger.db")


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries, override wins."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result
