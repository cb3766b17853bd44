"""Parser for pasted structured (JSON) transaction payloads."""

import json
from decimal import Decimal
from typing import Any, Optional

from household_budget.errors import FormatError, ParseError, RowParseError
from household_budget.models.report import UnparseableRow
from household_budget.models.transaction import TransactionCandidate
from household_budget.parsers.base import MAX_SOURCE_ROWS, BaseParser, ParseResult
from household_budget.parsers.formats import JSON_FORMAT
from household_budget.utils.date_utils import parse_iso_date
from household_budget.utils.decimal_utils import parse_amount, safe_decimal
from household_budget.utils.logging_config import get_logger

logger = get_logger(__name__)

# Categories assumed when an entry carries none
DEFAULT_EXPENSE_CATEGORY = "Food"
DEFAULT_INCOME_CATEGORY = "Salary"


def load_entries(source: Any) -> list[Any]:
    """Extract the list of entries from a payload.

    Accepts JSON text, a list of entries, or an object holding the list
    under ``transactions``.

    Raises:
        FormatError: If the payload is not valid JSON or has another shape.
    """
    payload = source
    if isinstance(source, (str, bytes)):
        try:
            payload = json.loads(source)
        except json.JSONDecodeError as e:
            raise FormatError(f"Invalid JSON payload: {e}", format_tag=JSON_FORMAT) from e

    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("transactions"), list):
        return payload["transactions"]

    raise FormatError(
        "JSON payload must be a list of transactions or an object with a 'transactions' list",
        format_tag=JSON_FORMAT,
    )


class JSONParser(BaseParser):
    """Parser for structured transaction lists."""

    def parse(
        self,
        source: Any,
        currency: Optional[str] = None,
        payer: Optional[str] = None,
        year: Optional[int] = None,
    ) -> ParseResult:
        """Parse a structured payload into candidates.

        Entries without a usable date are reported as unparseable. Entries
        whose amount is zero are dropped.

        Args:
            source: JSON text or already decoded payload.
            currency: Fallback currency for entries without one.
            payer: Fallback payer for entries without one.
            year: Unused; structured dates always carry a year.

        Returns:
            ParseResult.

        Raises:
            FormatError: If the payload shape is not recognized.
        """
        entries = load_entries(source)
        if len(entries) > MAX_SOURCE_ROWS:
            raise ParseError(f"Payload exceeds maximum row limit ({MAX_SOURCE_ROWS:,} rows)")

        result = ParseResult(format_tag=JSON_FORMAT)
        fallback_currency = (currency or "USD").upper()
        fallback_payer = payer or self.default_payer
        zero_dropped = 0

        for row_number, entry in enumerate(entries, start=1):
            result.raw_rows.append(dict(entry) if isinstance(entry, dict) else {"value": entry})

            try:
                candidate = self._parse_entry(entry, row_number, fallback_currency, fallback_payer, result)
            except RowParseError as e:
                logger.warning(f"Entry {row_number}: {e}")
                result.unparseable.append(
                    UnparseableRow(row_number=row_number, reason=e.reason, raw_data=_display(entry))
                )
                continue

            if candidate.amount == 0:
                zero_dropped += 1
                continue
            result.candidates.append(candidate)

        logger.info(
            f"Parsed {len(result.candidates)} transactions from JSON payload "
            f"({zero_dropped} zero-amount dropped, {len(result.unparseable)} unparseable)"
        )
        return result

    def _parse_entry(
        self,
        entry: Any,
        row_number: int,
        fallback_currency: str,
        fallback_payer: str,
        result: ParseResult,
    ) -> TransactionCandidate:
        if not isinstance(entry, dict):
            raise RowParseError("Entry is not an object", row_number, "invalid_entry")

        raw_date = entry.get("txn_date") or entry.get("date")
        if not raw_date:
            raise RowParseError("Missing date", row_number, "missing_date")
        try:
            txn_date = parse_iso_date(raw_date)
        except ValueError as e:
            raise RowParseError(str(e), row_number, "invalid_date") from e

        amount = self._entry_amount(entry.get("amount"), row_number, result)
        category = entry.get("category") or (
            DEFAULT_EXPENSE_CATEGORY if amount < 0 else DEFAULT_INCOME_CATEGORY
        )

        return TransactionCandidate(
            txn_date=txn_date,
            description=str(entry.get("description") or entry.get("memo") or "").strip(),
            amount=amount,
            currency=str(entry.get("currency") or fallback_currency).upper(),
            category=str(category),
            payer=str(entry.get("payer") or fallback_payer),
            row_number=row_number,
            raw_data=dict(entry),
        )

    def _entry_amount(self, value: Any, row_number: int, result: ParseResult) -> Decimal:
        if isinstance(value, str):
            try:
                return parse_amount(value)
            except ValueError as e:
                if self.strict:
                    raise RowParseError(str(e), row_number, "invalid_amount") from e
                result.amount_warnings.append(row_number)
                return Decimal("0")

        amount = safe_decimal(value, default=None)  # type: ignore[arg-type]
        if amount is None:
            if self.strict and value is not None:
                raise RowParseError(f"Cannot parse amount {value!r}", row_number, "invalid_amount")
            if value is not None:
                result.amount_warnings.append(row_number)
            return Decimal("0")
        return amount


def _display(entry: Any) -> str:
    if isinstance(entry, dict):
        return " | ".join(str(v) for v in list(entry.values())[:4])
    return str(entry)[:80]
