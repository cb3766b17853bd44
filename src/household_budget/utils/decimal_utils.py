"""Decimal utilities for monetary amounts.

All monetary calculations use Decimal to avoid floating-point drift.
"""

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

# Symbols removed before numeric conversion. Longest first so "US$" is not
# half-stripped by "$".
PERMITTED_SYMBOLS = ("US$", "S/.", "S/", "$", "€", "£")

# Regex for parentheses-enclosed negatives: ($1,234.56) or (1234.56)
PARENS_NEGATIVE_PATTERN = re.compile(r"^\s*\(\s*([^)]+)\s*\)\s*$")

# What must remain once the permitted symbols are gone
NUMERIC_PATTERN = re.compile(r"^\d+(\.\d+)?$|^\.\d+$")

TWO_PLACES = Decimal("0.01")

# Amounts at or above this magnitude cannot be rounded to cents (and summed)
# within the default 28-digit context
MAX_ABS_AMOUNT = Decimal("1e15")


def parse_amount(raw_amount: Optional[str]) -> Decimal:
    """Parse a raw amount string into a signed Decimal.

    Handles:
    - Plain: 1234.56, -1234.56, +1234.56
    - With currency: $1,234.56, -$1,234.56, S/ 45.90, US$12.00
    - Parentheses for negative: ($1,234.56)

    Sign markers, currency symbols, thousands separators and whitespace are
    stripped; anything else left over makes the value unparseable.

    Args:
        raw_amount: The raw amount string. Blank means zero.

    Returns:
        Signed amount as Decimal.

    Raises:
        ValueError: If the amount cannot be parsed or its magnitude is at
            least MAX_ABS_AMOUNT.
    """
    if raw_amount is None:
        return Decimal("0")

    amount_str = str(raw_amount).strip()
    if not amount_str:
        return Decimal("0")

    original = amount_str
    is_negative = False

    parens_match = PARENS_NEGATIVE_PATTERN.match(amount_str)
    if parens_match:
        amount_str = parens_match.group(1).strip()
        is_negative = True

    # Sign may sit before or after the currency symbol: -$5.00, $-5.00
    for symbol in PERMITTED_SYMBOLS:
        amount_str = amount_str.replace(symbol, "")
    amount_str = amount_str.strip()

    if amount_str.startswith("-"):
        is_negative = True
        amount_str = amount_str[1:]
    elif amount_str.startswith("+"):
        amount_str = amount_str[1:]

    amount_str = amount_str.replace(",", "")
    amount_str = re.sub(r"\s+", "", amount_str)

    if not NUMERIC_PATTERN.match(amount_str):
        raise ValueError(f"Cannot parse amount '{original}'")

    try:
        amount = Decimal(amount_str)
    except InvalidOperation as e:
        raise ValueError(f"Cannot parse amount '{original}': {e}") from e

    if amount >= MAX_ABS_AMOUNT:
        raise ValueError(f"Amount '{original}' is out of range")

    return -amount if is_negative else amount


def quantize_amount(amount: Decimal) -> Decimal:
    """Round to cents, half-up, folding -0.00 into 0.00."""
    rounded = amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    if rounded == 0:
        return Decimal("0.00")
    return rounded


def format_amount(amount: Decimal) -> str:
    """Format an amount with exactly two decimal places.

    Args:
        amount: The amount to format.

    Returns:
        String like "-1234.56" or "0.00".
    """
    return str(quantize_amount(amount))


def safe_decimal(value: Optional[object], default: Decimal = Decimal("0")) -> Decimal:
    """Safely convert a value to Decimal.

    Args:
        value: Value to convert (string, int, float, Decimal or None).
        default: Default value if conversion fails.

    Returns:
        Decimal value, or default when the value is not a finite number
        below MAX_ABS_AMOUNT in magnitude.
    """
    if value is None or isinstance(value, bool):
        return default

    try:
        if isinstance(value, Decimal):
            result = value
        elif isinstance(value, (int, float, str)):
            result = Decimal(str(value).strip())
        else:
            return default
        if not result.is_finite() or abs(result) >= MAX_ABS_AMOUNT:
            return default
        return result
    except (InvalidOperation, ValueError):
        return default


def sum_amounts(amounts: list[Decimal]) -> Decimal:
    """Sum a list of Decimal amounts.

    Args:
        amounts: List of Decimal amounts.

    Returns:
        Sum as Decimal.
    """
    total = Decimal("0")
    for amount in amounts:
        total += amount
    return total
