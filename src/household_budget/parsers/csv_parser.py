"""Tabular bank export parser with header detection."""

from datetime import date
from decimal import Decimal
from typing import Any, Optional

from household_budget.errors import FormatError, ParseError, RowParseError
from household_budget.models.report import UnparseableRow
from household_budget.models.transaction import TransactionCandidate
from household_budget.parsers.base import MAX_SOURCE_ROWS, BaseParser, ParseResult, display_row
from household_budget.parsers.formats import AmountLayout, BankFormat
from household_budget.utils.date_utils import is_pending, parse_date
from household_budget.utils.decimal_utils import parse_amount
from household_budget.utils.logging_config import get_logger

logger = get_logger(__name__)

# Lines scanned for the header row; anything above it is statement preamble
HEADER_SCAN_LINES = 10


def split_fields(line: str, separator: str = ",") -> list[str]:
    """Split one line into trimmed fields.

    A double quote toggles quoted state and is dropped; the separator only
    splits outside quotes. Escaped quotes ("") inside a quoted field are not
    supported: they toggle twice and vanish.

    Args:
        line: Raw line without its terminator.
        separator: Field separator.

    Returns:
        List of field values.
    """
    fields = []
    current: list[str] = []
    in_quotes = False
    for ch in line:
        if ch == '"':
            in_quotes = not in_quotes
            continue
        if ch == separator and not in_quotes:
            fields.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    fields.append("".join(current).strip())
    return fields


def find_column(headers: list[str], name: str) -> Optional[int]:
    """Locate a column by name.

    An exact case-insensitive match wins; otherwise the first header that
    contains the name.

    Args:
        headers: Header cells.
        name: Column name to look for.

    Returns:
        Column index, or None.
    """
    wanted = name.strip().lower()
    lowered = [h.strip().lower() for h in headers]
    if wanted in lowered:
        return lowered.index(wanted)
    for i, header in enumerate(lowered):
        if wanted in header:
            return i
    return None


def missing_columns(headers: list[str], bank_format: BankFormat) -> list[str]:
    """Required columns of a format absent from a header row."""
    return [c for c in bank_format.required_columns if find_column(headers, c) is None]


def find_header(lines: list[str], bank_format: BankFormat) -> Optional[int]:
    """Find the header line for a format.

    Args:
        lines: Source lines.
        bank_format: Format whose required columns must all be present.

    Returns:
        Index into ``lines`` of the header row, or None.
    """
    scanned = 0
    for i, line in enumerate(lines):
        if not line.strip():
            continue
        if scanned >= HEADER_SCAN_LINES:
            break
        scanned += 1
        if not missing_columns(split_fields(line), bank_format):
            return i
    return None


class CSVParser(BaseParser):
    """Parser for one bank's comma-separated export."""

    def __init__(self, bank_format: BankFormat, **kwargs: Any):
        """Initialize CSV parser.

        Args:
            bank_format: Layout of the bank export.
            **kwargs: Passed to BaseParser.
        """
        super().__init__(**kwargs)
        self.bank_format = bank_format

    @property
    def name(self) -> str:
        return f"CSVParser[{self.bank_format.tag}]"

    def matches(self, source: str) -> bool:
        """Check whether the source has a header row for this format."""
        return find_header(source.splitlines(), self.bank_format) is not None

    def parse(
        self,
        source: Any,
        currency: Optional[str] = None,
        payer: Optional[str] = None,
        year: Optional[int] = None,
    ) -> ParseResult:
        """Parse tabular text into candidates.

        Args:
            source: Raw text of the export.
            currency: Currency override for single-currency formats.
            payer: Payer applied to every row.
            year: Year for dates that omit it (default: current year).

        Returns:
            ParseResult.

        Raises:
            FormatError: If no header row with all required columns is found.
            ParseError: If the source exceeds the row limit.
        """
        fmt = self.bank_format
        lines = str(source).splitlines()
        header_idx = find_header(lines, fmt)

        if header_idx is None:
            first_line = next((line for line in lines if line.strip()), "")
            missing = missing_columns(split_fields(first_line), fmt)
            raise FormatError(
                f"Source is not a {fmt.label} export: missing columns {', '.join(missing)}",
                format_tag=fmt.tag,
                missing_columns=missing,
            )

        headers = split_fields(lines[header_idx])
        if header_idx > 0:
            logger.debug(f"Skipped {header_idx} preamble lines before {fmt.label} header")

        result = ParseResult(format_tag=fmt.tag)
        batch_year = year or date.today().year
        row_payer = payer or self.default_payer
        row_number = 0

        for line in lines[header_idx + 1 :]:
            if not line.strip():
                continue

            row_number += 1
            if row_number > MAX_SOURCE_ROWS:
                raise ParseError(
                    f"Source exceeds maximum row limit ({MAX_SOURCE_ROWS:,} rows). "
                    f"Split it into smaller files."
                )

            values = split_fields(line)
            raw = self._raw_row(headers, values)
            result.raw_rows.append(raw)

            date_cell = self._cell(values, headers, fmt.date_column)
            if is_pending(date_cell, self.pending_marker):
                result.pending_count += 1
                continue

            try:
                candidate = self._parse_row(
                    values, headers, row_number, currency, row_payer, batch_year, result
                )
            except RowParseError as e:
                logger.warning(f"Row {row_number}: {e}")
                result.unparseable.append(
                    UnparseableRow(row_number=row_number, reason=e.reason, raw_data=display_row(values))
                )
                continue

            candidate.raw_data = raw
            result.candidates.append(candidate)

        logger.info(
            f"Parsed {len(result.candidates)} transactions as {fmt.label} "
            f"({result.pending_count} pending, {len(result.unparseable)} unparseable)"
        )
        if result.amount_warnings:
            logger.warning(
                f"{len(result.amount_warnings)} rows had unparseable amounts and were set to 0"
            )
        return result

    def _parse_row(
        self,
        values: list[str],
        headers: list[str],
        row_number: int,
        currency: Optional[str],
        payer: str,
        year: int,
        result: ParseResult,
    ) -> TransactionCandidate:
        """Parse one data row.

        Raises:
            RowParseError: If the date (or, in strict mode, the amount) is invalid.
        """
        fmt = self.bank_format

        date_cell = self._cell(values, headers, fmt.date_column)
        if not date_cell:
            raise RowParseError("Missing date", row_number, "missing_date")
        try:
            txn_date = parse_date(date_cell, fmt.date_layouts, default_year=year)
        except ValueError as e:
            raise RowParseError(str(e), row_number, "invalid_date") from e

        amount, row_currency = self._parse_amount(values, headers, row_number, currency, result)

        return TransactionCandidate(
            txn_date=txn_date,
            description=self._cell(values, headers, fmt.description_column),
            amount=amount,
            currency=row_currency,
            category=self.default_category,
            payer=payer,
            row_number=row_number,
        )

    def _parse_amount(
        self,
        values: list[str],
        headers: list[str],
        row_number: int,
        currency: Optional[str],
        result: ParseResult,
    ) -> tuple[Decimal, str]:
        """Combine the amount columns into a signed amount and its currency."""
        fmt = self.bank_format
        defaulted = False

        def cell_amount(column: str) -> Decimal:
            nonlocal defaulted
            raw = self._cell(values, headers, column)
            try:
                return parse_amount(raw)
            except ValueError as e:
                if self.strict:
                    raise RowParseError(str(e), row_number, "invalid_amount") from e
                defaulted = True
                return Decimal("0")

        if fmt.amount_layout is AmountLayout.SPLIT:
            withdrawal_col, deposit_col = fmt.amount_columns
            withdrawal = cell_amount(withdrawal_col)
            deposit = cell_amount(deposit_col)
            amount = deposit if deposit > 0 else -abs(withdrawal)
            row_currency = currency or fmt.currency
        elif fmt.amount_layout is AmountLayout.DUAL_CURRENCY:
            local_col, reference_col = fmt.amount_columns
            local_amount = cell_amount(local_col)
            reference_amount = cell_amount(reference_col)
            # Card statements list charges as positive numbers
            if reference_amount != 0:
                amount = -reference_amount
                row_currency = fmt.secondary_currency or fmt.currency
            else:
                amount = -local_amount
                row_currency = fmt.currency
        else:
            amount = cell_amount(fmt.amount_columns[0])
            row_currency = currency or fmt.currency

        if defaulted:
            result.amount_warnings.append(row_number)
            logger.debug(f"Row {row_number}: unparseable amount defaulted to 0")

        return amount, row_currency.upper()

    def _cell(self, values: list[str], headers: list[str], column: str) -> str:
        idx = find_column(headers, column)
        if idx is None or idx >= len(values):
            return ""
        return values[idx].strip()

    @staticmethod
    def _raw_row(headers: list[str], values: list[str]) -> dict[str, Any]:
        raw: dict[str, Any] = {}
        for i, value in enumerate(values):
            key = headers[i] if i < len(headers) and headers[i] else f"column_{i + 1}"
            raw[key] = value
        return raw
