"""ledgerflow - bank export ingestion, ledger import and categorization."""

__version__ = "0.1.0"
