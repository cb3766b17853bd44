"""Currency conversion between the reference currency and the local one."""

from decimal import Decimal

from household_budget.utils.decimal_utils import quantize_amount

DEFAULT_REFERENCE_CURRENCY = "USD"

# Display symbols for supported currencies
CURRENCY_SYMBOLS = {"USD": "$", "PEN": "S/."}


def convert_amount(
    amount: Decimal,
    from_currency: str,
    to_currency: str,
    rate: Decimal,
    reference_currency: str = DEFAULT_REFERENCE_CURRENCY,
) -> Decimal:
    """Convert an amount between the reference and the local currency.

    The rate is expressed as local units per one reference unit
    (e.g. 3.25 PEN per USD).

    Args:
        amount: Amount to convert.
        from_currency: Source currency code.
        to_currency: Target currency code.
        rate: Conversion rate.
        reference_currency: The currency limits are expressed in.

    Returns:
        Converted amount (unrounded).
    """
    if from_currency == to_currency:
        return amount
    if to_currency == reference_currency:
        return amount / rate
    return amount * rate


def to_reference(
    amount: Decimal,
    currency: str,
    rate: Decimal,
    reference_currency: str = DEFAULT_REFERENCE_CURRENCY,
) -> Decimal:
    """Convert an amount into the reference currency."""
    return convert_amount(amount, currency, reference_currency, rate, reference_currency)


def format_currency_amount(amount: Decimal, currency: str, is_converted: bool = False) -> str:
    """Format an amount for display, e.g. ``-$12.50`` or ``≈S/.40.63``.

    Args:
        amount: Amount to format.
        currency: Currency code.
        is_converted: Prefix with an approximation marker.

    Returns:
        Display string.
    """
    prefix = "≈" if is_converted else ""
    symbol = CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    sign = "-" if amount < 0 else ""
    return f"{prefix}{sign}{symbol}{quantize_amount(abs(amount))}"
