"""Category limit configuration and status models."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from household_budget.utils.decimal_utils import safe_decimal


class FlagMode(Enum):
    """Which transactions get flagged once a category limit is reached."""

    OFF = "off"
    CROSSING = "crossing"  # Only the transaction that crosses the limit
    ALL_AFTER = "all_after"  # The crossing transaction and every later one


class StatusLevel(Enum):
    """Spending level of a category relative to its limit."""

    NORMAL = "normal"
    APPROACHING = "approaching"
    EXCEEDED = "exceeded"


@dataclass(frozen=True)
class CategoryLimit:
    """Monthly cap for one category, in the reference currency.

    Attributes:
        limit: Cap amount. Non-positive values make the category inert.
        flag_mode: Flag policy applied once the cap is passed.
    """

    limit: Decimal
    flag_mode: FlagMode = FlagMode.OFF

    @property
    def has_limit(self) -> bool:
        return self.limit > 0

    @property
    def is_active(self) -> bool:
        """True if this limit participates in flagging."""
        return self.has_limit and self.flag_mode is not FlagMode.OFF

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "CategoryLimit":
        """Create from a config mapping.

        Unknown flag modes fall back to ``off`` so a typo never starts
        flagging transactions.
        """
        raw_mode = str(data.get("flag_mode", data.get("flagMode", "off")) or "off").lower()
        try:
            mode = FlagMode(raw_mode)
        except ValueError:
            mode = FlagMode.OFF
        return cls(limit=safe_decimal(data.get("limit")), flag_mode=mode)


@dataclass(frozen=True)
class CategoryStatus:
    """Spend-to-date for one limited category.

    Attributes:
        category: Category name.
        spent: Sum of absolute expense amounts.
        limit: Configured cap.
        percentage: spent / limit * 100.
        status: Level derived from percentage.
        flag_mode: Configured flag policy.
        remaining: max(0, limit - spent).
    """

    category: str
    spent: Decimal
    limit: Decimal
    percentage: Decimal
    status: StatusLevel
    flag_mode: FlagMode
    remaining: Decimal
