"""Sanitization for exported files and file names."""

import re
from typing import Optional

# Leading characters that make spreadsheet applications evaluate a cell
_FORMULA_CHARS = ("=", "+", "-", "@", "\t", "\r", "\n", "|")

# A plain signed number ("-4.50", "+12") is data, not a formula
_SIGNED_NUMBER = re.compile(r"^[+-]\d+(?:[.,]\d+)?$")

_UNSAFE_FILENAME_PATTERN = re.compile(r'[<>:"/\\|?*\x00-\x1f\s]+')


def sanitize_for_csv(value: Optional[str]) -> Optional[str]:
    """Neutralize spreadsheet formulas in a text cell.

    Bank descriptions are free text typed by merchants, so anything starting
    with a formula character gets a leading single quote. Signed numbers are
    left alone.

    Args:
        value: Cell text, or None.

    Returns:
        Safe cell text, or None if input was None.
    """
    if not value:
        return value

    if value.startswith(_FORMULA_CHARS) and not _SIGNED_NUMBER.match(value):
        return "'" + value

    return value


def safe_filename_part(value: str, fallback: str = "unknown") -> str:
    """Replace path separators, control characters and whitespace with ``_``."""
    return _UNSAFE_FILENAME_PATTERN.sub("_", value).strip("_") or fallback
