"""Exception types shared across the import pipeline."""

from pathlib import Path
from typing import Optional


class BudgetImportError(Exception):
    """Base class for all household budget import errors."""

    pass


class ParseError(BudgetImportError):
    """Exception raised when a source cannot be parsed."""

    def __init__(self, message: str, file_path: Optional[Path] = None):
        """Initialize ParseError.

        Args:
            message: Error message.
            file_path: Optional path to the source that failed to parse.
        """
        self.file_path = file_path
        super().__init__(message)


class FormatError(ParseError):
    """Required columns are missing or the payload shape is unrecognized.

    Fatal for the whole submission: no row is processed.
    """

    def __init__(
        self,
        message: str,
        format_tag: Optional[str] = None,
        missing_columns: Optional[list[str]] = None,
        file_path: Optional[Path] = None,
    ):
        self.format_tag = format_tag
        self.missing_columns = missing_columns or []
        super().__init__(message, file_path)


class RowParseError(ParseError):
    """A single data row could not be parsed.

    Raised for unparseable dates, and for unparseable amounts when lenient
    amount parsing is disabled. The row is skipped and reported, the rest of
    the submission continues.
    """

    def __init__(self, message: str, row_number: int = 0, reason: str = "invalid_row"):
        self.row_number = row_number
        self.reason = reason
        super().__init__(message)


class ConfigError(BudgetImportError):
    """Exception raised for configuration errors."""

    pass


class StorageError(BudgetImportError):
    """Base exception for row store operations."""

    pass


class PersistenceError(StorageError):
    """A chunk of rows could not be written."""

    def __init__(self, message: str, row_count: int = 0):
        self.row_count = row_count
        super().__init__(message)


class DuplicateViolation(StorageError):
    """The store's uniqueness constraint rejected a row.

    Expected when two imports for the same tenant race past the
    existing-fingerprint check.
    """

    def __init__(self, message: str, table: str = "", key: Optional[tuple] = None):
        self.table = table
        self.key = key
        super().__init__(message)
