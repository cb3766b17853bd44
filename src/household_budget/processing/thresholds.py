"""Flagging of unusually large single transactions."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from household_budget.models.transaction import (
    FlagDecision,
    FlagReason,
    FlagSource,
    TransactionRecord,
)
from household_budget.utils.currency import DEFAULT_REFERENCE_CURRENCY
from household_budget.utils.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_THRESHOLD = Decimal("500")
DEFAULT_CONVERSION_RATE = Decimal("3.25")


def threshold_for(
    currency: str,
    threshold: Decimal = DEFAULT_THRESHOLD,
    conversion_rate: Decimal = DEFAULT_CONVERSION_RATE,
    reference_currency: str = DEFAULT_REFERENCE_CURRENCY,
) -> Decimal:
    """Threshold expressed in the given currency.

    Other currencies use the reference threshold times the rate, rounded to
    a whole unit (500 USD at 3.25 is 1625 PEN).
    """
    if currency == reference_currency:
        return threshold
    return (threshold * conversion_rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


class ThresholdFlagger:
    """Flags single transactions whose absolute amount exceeds a threshold."""

    def __init__(
        self,
        threshold: Decimal = DEFAULT_THRESHOLD,
        conversion_rate: Decimal = DEFAULT_CONVERSION_RATE,
        reference_currency: str = DEFAULT_REFERENCE_CURRENCY,
    ):
        """Initialize flagger.

        Args:
            threshold: Threshold in the reference currency.
            conversion_rate: Local units per reference unit.
            reference_currency: Currency the threshold is expressed in.
        """
        self.threshold = threshold
        self.conversion_rate = conversion_rate
        self.reference_currency = reference_currency

    def evaluate(self, txn: TransactionRecord) -> FlagDecision:
        """Decide whether a transaction is over the threshold."""
        limit = threshold_for(txn.currency, self.threshold, self.conversion_rate, self.reference_currency)
        if abs(txn.amount) <= limit:
            return FlagDecision.none()
        if txn.amount < 0:
            return FlagDecision.flag(FlagReason.OVER_THRESHOLD_EXPENSE)
        return FlagDecision.flag(FlagReason.OVER_THRESHOLD_INCOME)

    def apply(self, records: Iterable[TransactionRecord]) -> int:
        """Flag records over the threshold in place.

        Records already flagged (e.g. as possible duplicates) keep their flag.

        Returns:
            Number of records newly flagged.
        """
        flagged = 0
        for record in records:
            if record.is_flagged:
                continue
            decision = self.evaluate(record)
            if decision.flagged and decision.reason is not None:
                record.apply_flag(decision.reason, FlagSource.THRESHOLD)
                flagged += 1

        if flagged:
            logger.info(f"Flagged {flagged} transactions over the single-transaction threshold")
        return flagged
