"""Registry of known bank export formats."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from household_budget.utils.date_utils import DAY_MONTH_ABBR, EU_SLASH, ISO, US_SLASH


class AmountLayout(Enum):
    """How a bank export carries the transaction amount."""

    SIGNED = "signed"  # One column, negative = expense
    SPLIT = "split"  # Separate withdrawal and deposit columns
    DUAL_CURRENCY = "dual_currency"  # One column per currency, charges positive


@dataclass(frozen=True)
class BankFormat:
    """Column layout of one bank's tabular export.

    Attributes:
        tag: Format tag used on the command line and in batches.
        label: Human-readable bank name.
        date_column: Header of the date column.
        description_column: Header of the description column.
        amount_columns: Amount headers. SIGNED uses one; SPLIT uses
            (withdrawals, deposits); DUAL_CURRENCY uses (local, reference).
        amount_layout: How the amount columns are combined.
        date_layouts: Accepted date layouts, tried in order.
        currency: Default currency of the export.
        secondary_currency: Currency of the second DUAL_CURRENCY column.
    """

    tag: str
    label: str
    date_column: str
    description_column: str
    amount_columns: tuple[str, ...]
    amount_layout: AmountLayout = AmountLayout.SIGNED
    date_layouts: tuple[str, ...] = (US_SLASH,)
    currency: str = "USD"
    secondary_currency: Optional[str] = None

    @property
    def required_columns(self) -> tuple[str, ...]:
        return (self.date_column, self.description_column, *self.amount_columns)


# Ordered: "auto" detection picks the first format whose columns all match,
# so more specific layouts come before the generic ones.
KNOWN_FORMATS: dict[str, BankFormat] = {
    "interbank": BankFormat(
        tag="interbank",
        label="Interbank",
        date_column="Fecha",
        description_column="Comercio",
        amount_columns=("S/", "US$"),
        amount_layout=AmountLayout.DUAL_CURRENCY,
        date_layouts=(DAY_MONTH_ABBR,),
        currency="PEN",
        secondary_currency="USD",
    ),
    "pnc_checking": BankFormat(
        tag="pnc_checking",
        label="PNC Checking",
        date_column="Transaction Date",
        description_column="Transaction Description",
        amount_columns=("Amount",),
        date_layouts=(ISO, US_SLASH),
        currency="USD",
    ),
    "pnc": BankFormat(
        tag="pnc",
        label="PNC Bank",
        date_column="Date",
        description_column="Description",
        amount_columns=("Withdrawals", "Deposits"),
        amount_layout=AmountLayout.SPLIT,
        date_layouts=(US_SLASH,),
        currency="USD",
    ),
    "bcp": BankFormat(
        tag="bcp",
        label="BCP",
        date_column="Fecha",
        description_column="Descripcion",
        amount_columns=("Importe",),
        date_layouts=(EU_SLASH,),
        currency="PEN",
    ),
    "bbva": BankFormat(
        tag="bbva",
        label="BBVA",
        date_column="Fecha",
        description_column="Concepto",
        amount_columns=("Importe",),
        date_layouts=(EU_SLASH,),
        currency="PEN",
    ),
    "scotiabank": BankFormat(
        tag="scotiabank",
        label="Scotiabank",
        date_column="Fecha",
        description_column="Descripcion",
        amount_columns=("Monto",),
        date_layouts=(EU_SLASH,),
        currency="PEN",
    ),
    "other": BankFormat(
        tag="other",
        label="Other",
        date_column="Date",
        description_column="Description",
        amount_columns=("Amount",),
        date_layouts=(US_SLASH, ISO),
        currency="USD",
    ),
}

AUTO_FORMAT = "auto"
JSON_FORMAT = "json"


def get_format(tag: str) -> BankFormat:
    """Look up a registered bank format.

    Args:
        tag: Format tag (case-insensitive).

    Returns:
        BankFormat.

    Raises:
        KeyError: If the tag is not registered.
    """
    key = tag.strip().lower()
    if key not in KNOWN_FORMATS:
        raise KeyError(f"Unknown format '{tag}'. Known formats: {', '.join(KNOWN_FORMATS)}")
    return KNOWN_FORMATS[key]


def format_label(tag: str) -> str:
    """Display label for a format tag, falling back to the upper-cased tag."""
    fmt = KNOWN_FORMATS.get(tag.strip().lower())
    if fmt is not None:
        return fmt.label
    if tag.strip().lower() == JSON_FORMAT:
        return "JSON"
    return tag.upper()
