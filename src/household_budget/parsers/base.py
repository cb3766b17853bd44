"""Abstract base class for transaction source parsers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from household_budget.errors import ParseError
from household_budget.models.report import UnparseableRow
from household_budget.models.transaction import TransactionCandidate
from household_budget.utils.logging_config import get_logger

logger = get_logger(__name__)

# Maximum source size to prevent memory exhaustion (10 MB)
MAX_SOURCE_SIZE = 10 * 1024 * 1024

# Maximum number of data rows per submission
MAX_SOURCE_ROWS = 50_000


@dataclass
class ParseResult:
    """Everything a parser extracted from one submission.

    Attributes:
        candidates: Parsed rows, in source order.
        format_tag: Format the source was parsed as.
        pending_count: Rows skipped because they were not yet posted.
        unparseable: Rows that need manual entry.
        amount_warnings: Row numbers whose amount defaulted to zero.
        raw_rows: Original row data (header -> value), skipped rows included.
    """

    candidates: list[TransactionCandidate] = field(default_factory=list)
    format_tag: str = ""
    pending_count: int = 0
    unparseable: list[UnparseableRow] = field(default_factory=list)
    amount_warnings: list[int] = field(default_factory=list)
    raw_rows: list[dict[str, Any]] = field(default_factory=list)


class BaseParser(ABC):
    """Abstract base class for all source parsers.

    Subclasses must implement:
    - parse(): Turn source text into a ParseResult
    """

    def __init__(
        self,
        strict: bool = False,
        pending_marker: str = "PENDING",
        default_category: str = "Unexpected",
        default_payer: str = "Together",
    ):
        """Initialize parser.

        Args:
            strict: If True, an unparseable amount makes the row unparseable.
                   If False, the amount defaults to zero and a warning is kept.
            pending_marker: Date-cell prefix identifying pending rows.
            default_category: Category assigned when the source has none.
            default_payer: Payer assigned when the caller supplies none.
        """
        self.strict = strict
        self.pending_marker = pending_marker
        self.default_category = default_category
        self.default_payer = default_payer

    @property
    def name(self) -> str:
        """Return parser name for logging."""
        return self.__class__.__name__

    @abstractmethod
    def parse(
        self,
        source: Any,
        currency: Optional[str] = None,
        payer: Optional[str] = None,
        year: Optional[int] = None,
    ) -> ParseResult:
        """Parse a source and return its candidates.

        Args:
            source: Raw source content.
            currency: Currency override for the batch.
            payer: Payer applied to every row.
            year: Year used for dates that omit it.

        Returns:
            ParseResult.

        Raises:
            FormatError: If the source does not match the expected layout.
        """
        pass

    def parse_file(
        self,
        file_path: Path,
        currency: Optional[str] = None,
        payer: Optional[str] = None,
        year: Optional[int] = None,
    ) -> ParseResult:
        """Read a file and parse its contents.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            ParseError: If the file is too large or cannot be decoded.
        """
        text = read_source(file_path)
        try:
            return self.parse(text, currency=currency, payer=payer, year=year)
        except ParseError as e:
            if e.file_path is None:
                e.file_path = file_path
            raise


def read_source(file_path: Path) -> str:
    """Read a source file as text.

    A UTF-8 byte order mark is dropped; bytes that are not valid UTF-8 are
    replaced rather than failing the whole import.

    Args:
        file_path: Path to the source.

    Returns:
        File contents.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ParseError: If the file exceeds the size limit.
    """
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    file_size = file_path.stat().st_size
    if file_size > MAX_SOURCE_SIZE:
        raise ParseError(
            f"File too large ({file_size / 1024 / 1024:.1f} MB). "
            f"Maximum allowed is {MAX_SOURCE_SIZE / 1024 / 1024:.0f} MB",
            file_path,
        )

    with open(file_path, encoding="utf-8-sig", errors="replace") as f:
        text = f.read()

    logger.debug(f"Read {len(text)} characters from {file_path.name}")
    return text


def display_row(values: list[str], limit: int = 4) -> str:
    """Join the first few cell values for an unparseable-row listing."""
    return " | ".join(v for v in values[:limit])
