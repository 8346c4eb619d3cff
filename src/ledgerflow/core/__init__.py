"""
Core module - foundation components for ledgerflow.

Provides:
- LedgerDatabase: sqlite schema and transactions
- LedgerStore: accounts, ledger transactions and import records
- LedgerConfig: JSON/env configuration
- Category: canonical category table
"""

from ledgerflow.core.categories import Category
from ledgerflow.core.config import LedgerConfig
from ledgerflow.core.database import LedgerDatabase
from ledgerflow.core.exceptions import LedgerFlowError
from ledgerflow.core.ledger import LedgerStore

__all__ = ["Category", "LedgerConfig", "LedgerDatabase", "LedgerFlowError", "LedgerStore"]
