"""Source format detection and parser selection."""

from pathlib import Path
from typing import Any, Optional

from household_budget.errors import FormatError
from household_budget.parsers.base import BaseParser, ParseResult, read_source
from household_budget.parsers.csv_parser import CSVParser
from household_budget.parsers.formats import AUTO_FORMAT, JSON_FORMAT, KNOWN_FORMATS
from household_budget.parsers.json_parser import JSONParser
from household_budget.utils.logging_config import get_logger

logger = get_logger(__name__)


def looks_like_json(source: Any) -> bool:
    """Check whether a source is (or looks like) a structured payload."""
    if isinstance(source, (list, dict)):
        return True
    if isinstance(source, str):
        return source.lstrip().startswith(("[", "{"))
    return False


class FormatDetector:
    """Selects a parser for a format tag, or detects the format.

    This class provides:
    - One parser per registered bank format plus the JSON parser
    - Header-based detection for the "auto" tag
    - File and in-memory parsing entry points
    """

    def __init__(
        self,
        strict: bool = False,
        pending_marker: str = "PENDING",
        default_category: str = "Unexpected",
        default_payer: str = "Together",
    ):
        """Initialize with all available parsers.

        Args:
            strict: If True, unparseable amounts reject the row.
            pending_marker: Date prefix of pending rows.
            default_category: Category given to tabular rows.
            default_payer: Payer used when none is supplied.
        """
        self.strict = strict
        options = {
            "strict": strict,
            "pending_marker": pending_marker,
            "default_category": default_category,
            "default_payer": default_payer,
        }
        self.csv_parsers: dict[str, CSVParser] = {
            tag: CSVParser(fmt, **options) for tag, fmt in KNOWN_FORMATS.items()
        }
        self.json_parser = JSONParser(**options)

    @property
    def supported_formats(self) -> list[str]:
        return [*self.csv_parsers, JSON_FORMAT, AUTO_FORMAT]

    def get_parser(self, format_tag: str) -> BaseParser:
        """Return the parser for an explicit format tag.

        Raises:
            FormatError: If the tag is unknown.
        """
        key = format_tag.strip().lower()
        if key == JSON_FORMAT:
            return self.json_parser
        if key in self.csv_parsers:
            return self.csv_parsers[key]
        raise FormatError(
            f"Unknown format '{format_tag}'. Supported: {', '.join(self.supported_formats)}",
            format_tag=format_tag,
        )

    def detect_format(self, source: Any) -> Optional[str]:
        """Detect the format of a source.

        Structured payloads are recognized by their leading bracket; tabular
        text is matched against each registered format in order.

        Args:
            source: Raw source content.

        Returns:
            Format tag, or None if nothing matched.
        """
        if looks_like_json(source):
            return JSON_FORMAT
        text = str(source)
        for tag, parser in self.csv_parsers.items():
            if parser.matches(text):
                logger.debug(f"Source matched format {tag}")
                return tag
        return None

    def parse(
        self,
        source: Any,
        format_tag: str = AUTO_FORMAT,
        currency: Optional[str] = None,
        payer: Optional[str] = None,
        year: Optional[int] = None,
    ) -> ParseResult:
        """Parse a source with the parser for its format.

        Args:
            source: Raw source content.
            format_tag: Format tag, or "auto" to detect it.
            currency: Currency override.
            payer: Payer applied to every row.
            year: Year for dates that omit it.

        Returns:
            ParseResult.

        Raises:
            FormatError: If the format is unknown or cannot be detected.
        """
        tag = format_tag.strip().lower()
        if tag == AUTO_FORMAT:
            detected = self.detect_format(source)
            if detected is None:
                raise FormatError(
                    f"Could not detect source format. Tried: {', '.join(self.csv_parsers)}",
                    format_tag=AUTO_FORMAT,
                )
            logger.info(f"Detected source format: {detected}")
            tag = detected

        parser = self.get_parser(tag)
        logger.debug(f"Parsing with {parser.name}")
        return parser.parse(source, currency=currency, payer=payer, year=year)

    def parse_file(
        self,
        file_path: Path,
        format_tag: str = AUTO_FORMAT,
        currency: Optional[str] = None,
        payer: Optional[str] = None,
        year: Optional[int] = None,
    ) -> ParseResult:
        """Read and parse a source file.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            FormatError: If the format is unknown or cannot be detected.
        """
        text = read_source(file_path)
        try:
            return self.parse(text, format_tag, currency=currency, payer=payer, year=year)
        except FormatError as e:
            if e.file_path is None:
                e.file_path = file_path
            raise

