"""
Custom exceptions for ledgerflow.

All ledgerflow-specific exceptions inherit from LedgerFlowError for easy catching.
Row-level data defects are never raised; they are counted by the parsers.
"""


class LedgerFlowError(Exception):
    """Base exception for all ledgerflow errors."""

    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.message = message
        self.code = code


class DatabaseError(LedgerFlowError):
    """Database operation errors."""

    def __init__(self, message: str, code: str = "DB_ERROR"):
        super().__init__(message, code)


class ConfigurationError(LedgerFlowError):
    """Programmer or configuration errors. Fatal, never retried."""

    def __init__(self, message: str, code: str = "CONFIG_ERROR"):
        super().__init__(message, code)


class UnknownParserError(ConfigurationError):
    """Raised when no parser is registered for an institution key."""

    def __init__(self, parser_key: str, code: str = "UNKNOWN_PARSER"):
        super().__init__(f"Unknown parser: {parser_key}", code)
        self.parser_key = parser_key


class ValidationError(LedgerFlowError):
    """Raised when caller-supplied values are invalid (bad match type, bad category...)."""

    def __init__(self, message: str, code: str = "VALIDATION_ERROR"):
        super().__init__(message, code)


class AccountNotFoundError(LedgerFlowError):
    """Raised when an account is not found."""

    def __init__(self, account_id: str, code: str = "ACCOUNT_NOT_FOUND"):
        super().__init__(f"Account not found: {account_id}", code)
        self.account_id = account_id


class TransactionNotFoundError(LedgerFlowError):
    """Raised when a ledger transaction is not found."""

    def __init__(self, transaction_id: str, code: str = "TRANSACTION_NOT_FOUND"):
        super().__init__(f"Transaction not found: {transaction_id}", code)
        self.transaction_id = transaction_id


class ImportNotFoundError(LedgerFlowError):
    """Raised when an import record is not found."""

    def __init__(self, import_id: str, code: str = "IMPORT_NOT_FOUND"):
        super().__init__(f"Import not found: {import_id}", code)
        self.import_id = import_id


class ImportInProgressError(LedgerFlowError):
    """Raised when another import is already appending to the same account."""

    def __init__(self, account_id: str, code: str = "IMPORT_IN_PROGRESS"):
        super().__init__(f"An import is already processing for account {account_id}", code)
        self.account_id = account_id


class SpreadsheetDecodeError(LedgerFlowError):
    """Raised when workbook bytes cannot be opened."""

    def __init__(self, message: str, code: str = "SPREADSHEET_DECODE_ERROR"):
        super().__init__(message, code)
