"""Strict date parsing for bank statement layouts."""

import calendar
import re
from datetime import date
from typing import Optional

# Supported layouts. Slash layouts are ambiguous, so every bank format
# declares the ones it uses instead of guessing.
ISO = "YYYY-MM-DD"
US_SLASH = "MM/DD/YYYY"
EU_SLASH = "DD/MM/YYYY"
DAY_MONTH_ABBR = "DD-Mon"

SPANISH_MONTHS = {
    "ene": 1,
    "feb": 2,
    "mar": 3,
    "abr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "ago": 8,
    "sep": 9,
    "set": 9,
    "oct": 10,
    "nov": 11,
    "dic": 12,
}

_ISO_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_SLASH_PATTERN = re.compile(r"^(\d{1,2})/(\d{1,2})(?:/(\d{2}|\d{4}))?$")
_DAY_MONTH_PATTERN = re.compile(r"^(\d{1,2})-([A-Za-z]{3})$")


def is_pending(raw_date: Optional[str], marker: str = "PENDING") -> bool:
    """Check whether a date cell carries the pending marker.

    Args:
        raw_date: Raw date cell.
        marker: Marker text, matched case-insensitively as a prefix.

    Returns:
        True if the row is a pending (not yet posted) transaction.
    """
    if not raw_date or not marker:
        return False
    return raw_date.strip().upper().startswith(marker.upper())


def _expand_year(year_part: Optional[str], default_year: Optional[int]) -> int:
    if not year_part:
        if default_year is None:
            raise ValueError("Date has no year and no default year was given")
        return default_year
    if len(year_part) == 2:
        return 2000 + int(year_part)
    return int(year_part)


def _parse_layout(date_str: str, layout: str, default_year: Optional[int]) -> date:
    if layout == ISO:
        match = _ISO_PATTERN.match(date_str)
        if not match:
            raise ValueError(f"'{date_str}' is not {ISO}")
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    if layout in (US_SLASH, EU_SLASH):
        match = _SLASH_PATTERN.match(date_str)
        if not match:
            raise ValueError(f"'{date_str}' is not {layout}")
        first, second = int(match.group(1)), int(match.group(2))
        year = _expand_year(match.group(3), default_year)
        if layout == US_SLASH:
            return date(year, first, second)
        return date(year, second, first)

    if layout == DAY_MONTH_ABBR:
        match = _DAY_MONTH_PATTERN.match(date_str)
        if not match:
            raise ValueError(f"'{date_str}' is not {DAY_MONTH_ABBR}")
        month = SPANISH_MONTHS.get(match.group(2).lower())
        if month is None:
            raise ValueError(f"Unknown month abbreviation in '{date_str}'")
        return date(_expand_year(None, default_year), month, int(match.group(1)))

    raise ValueError(f"Unsupported date layout: {layout}")


def parse_date(
    raw_date: Optional[str],
    layouts: tuple[str, ...] = (ISO,),
    default_year: Optional[int] = None,
) -> date:
    """Parse a date cell strictly against the given layouts.

    Args:
        raw_date: Raw date string.
        layouts: Accepted layouts, tried in order.
        default_year: Year used when the layout omits it.

    Returns:
        Parsed date.

    Raises:
        ValueError: If no layout yields a valid calendar date.
    """
    if not raw_date or not raw_date.strip():
        raise ValueError("Empty date string")

    date_str = raw_date.strip()
    errors = []
    for layout in layouts:
        try:
            return _parse_layout(date_str, layout, default_year)
        except ValueError as e:
            errors.append(str(e))

    raise ValueError(f"Cannot parse date '{raw_date}': {'; '.join(errors)}")


def parse_iso_date(value: object) -> date:
    """Parse a date from a structured payload (first ten characters)."""
    if isinstance(value, date):
        return value
    return parse_date(str(value or "")[:10], (ISO,))


def month_key(d: date) -> str:
    """Return the ``YYYY-MM`` month a date falls in."""
    return f"{d.year:04d}-{d.month:02d}"


def month_bounds(month: str) -> tuple[date, date]:
    """Return the first and last day of a ``YYYY-MM`` month.

    Raises:
        ValueError: If the month string is malformed.
    """
    match = re.match(r"^(\d{4})-(\d{2})$", month.strip())
    if not match:
        raise ValueError(f"Month must be YYYY-MM, got '{month}'")
    year, mon = int(match.group(1)), int(match.group(2))
    last_day = calendar.monthrange(year, mon)[1]
    return date(year, mon, 1), date(year, mon, last_day)


def is_date_in_range(
    d: date,
    start_date: date | None = None,
    end_date: date | None = None,
) -> bool:
    """Check if a date is within an inclusive range.

    Args:
        d: Date to check.
        start_date: Start of range. None means no lower bound.
        end_date: End of range. None means no upper bound.

    Returns:
        True if date is within range.
    """
    if start_date is not None and d < start_date:
        return False
    if end_date is not None and d > end_date:
        return False
    return True
