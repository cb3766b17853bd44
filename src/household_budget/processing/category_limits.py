"""Category spending limits and limit-based flagging.

Limits are monthly caps in the reference currency. Amounts in the other
currency are converted (divided by the rate) before comparison. All running
state lives in a LimitAccumulator created per call, so every function here
is pure with respect to its inputs.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from household_budget.models.limits import CategoryLimit, CategoryStatus, FlagMode, StatusLevel
from household_budget.models.transaction import FlagDecision, FlagReason, TransactionRecord
from household_budget.utils.currency import DEFAULT_REFERENCE_CURRENCY, to_reference
from household_budget.utils.logging_config import get_logger

logger = get_logger(__name__)

EXCEEDED_PERCENT = Decimal("100")
APPROACHING_PERCENT = Decimal("80")


@dataclass
class LimitAccumulator:
    """Running expense totals per category for one evaluation.

    Attributes:
        totals: Category to spent amount in the reference currency.
        crossed: Categories whose running total has passed the limit.
    """

    totals: dict[str, Decimal] = field(default_factory=dict)
    crossed: set[str] = field(default_factory=set)

    def add(self, category: str, amount: Decimal) -> Decimal:
        """Add an amount to a category and return the new total."""
        total = self.totals.get(category, Decimal("0")) + amount
        self.totals[category] = total
        return total

    def total(self, category: str) -> Decimal:
        return self.totals.get(category, Decimal("0"))

    def is_crossed(self, category: str) -> bool:
        return category in self.crossed


@dataclass
class CategoryCrossing:
    """Where a category passed its limit during a batch evaluation.

    Attributes:
        category: Category name.
        crossing_index: Input index of the transaction that crossed.
        crossing_id: Store id of that transaction, if it has one.
        flagged_after: Input indices flagged after the crossing (all_after).
    """

    category: str
    crossing_index: Optional[int] = None
    crossing_id: Optional[str] = None
    flagged_after: list[int] = field(default_factory=list)


@dataclass
class BatchLimitResult:
    """Outcome of evaluate_batch.

    Attributes:
        decisions: One decision per input transaction, in input order.
        crossings: Per-category crossing details for participating categories.
        accumulator: Final running totals.
    """

    decisions: list[FlagDecision]
    crossings: dict[str, CategoryCrossing]
    accumulator: LimitAccumulator

    @property
    def flagged_indices(self) -> list[int]:
        return [i for i, d in enumerate(self.decisions) if d.flagged]


def _reference_amount(
    txn: TransactionRecord,
    conversion_rate: Optional[Decimal],
    reference_currency: str,
) -> Decimal:
    """Absolute amount of a transaction in the reference currency."""
    amount = abs(txn.amount)
    if conversion_rate is None or txn.currency == reference_currency:
        return amount
    return to_reference(amount, txn.currency, conversion_rate, reference_currency)


def _status_level(percentage: Decimal) -> StatusLevel:
    if percentage >= EXCEEDED_PERCENT:
        return StatusLevel.EXCEEDED
    if percentage >= APPROACHING_PERCENT:
        return StatusLevel.APPROACHING
    return StatusLevel.NORMAL


def category_status(
    transactions: Iterable[TransactionRecord],
    limits: dict[str, CategoryLimit],
    conversion_rate: Optional[Decimal] = None,
    reference_currency: str = DEFAULT_REFERENCE_CURRENCY,
) -> dict[str, CategoryStatus]:
    """Summarize spending against each limited category.

    Categories without a positive limit are left out.

    Args:
        transactions: Transactions of the period (usually one month).
        limits: Category limits.
        conversion_rate: Local units per reference unit. None sums amounts
            as they are.
        reference_currency: Currency limits are expressed in.

    Returns:
        Category to CategoryStatus.
    """
    limited = {c: limit for c, limit in limits.items() if limit.has_limit}
    spent: dict[str, Decimal] = {c: Decimal("0") for c in limited}

    for txn in transactions:
        if txn.category in spent and txn.amount < 0:
            spent[txn.category] += _reference_amount(txn, conversion_rate, reference_currency)

    statuses: dict[str, CategoryStatus] = {}
    for category, limit_config in limited.items():
        total = spent[category]
        percentage = total / limit_config.limit * 100
        statuses[category] = CategoryStatus(
            category=category,
            spent=total,
            limit=limit_config.limit,
            percentage=percentage,
            status=_status_level(percentage),
            flag_mode=limit_config.flag_mode,
            remaining=max(Decimal("0"), limit_config.limit - total),
        )
    return statuses


def evaluate_batch(
    transactions: Sequence[TransactionRecord],
    limits: dict[str, CategoryLimit],
    conversion_rate: Decimal,
    reference_currency: str = DEFAULT_REFERENCE_CURRENCY,
) -> BatchLimitResult:
    """Decide which transactions of a period cross their category limit.

    Transactions are scanned oldest first (ties keep input order). Income
    and categories without an active limit are ignored. The first expense
    that takes the running total strictly above the limit is the crossing
    transaction; ``crossing`` flags only it, ``all_after`` flags it and every
    later expense in the category.

    Args:
        transactions: Transactions of the period, in any order.
        limits: Category limits.
        conversion_rate: Local units per reference unit.
        reference_currency: Currency limits are expressed in.

    Returns:
        BatchLimitResult with decisions aligned to the input order.
    """
    decisions = [FlagDecision.none() for _ in transactions]
    active = {c: limit for c, limit in limits.items() if limit.is_active}
    crossings = {c: CategoryCrossing(category=c) for c in active}
    acc = LimitAccumulator()

    if not active:
        return BatchLimitResult(decisions, crossings, acc)

    order = sorted(range(len(transactions)), key=lambda i: transactions[i].txn_date)

    for idx in order:
        txn = transactions[idx]
        limit_config = active.get(txn.category)
        if limit_config is None or txn.amount >= 0:
            continue

        total = acc.add(txn.category, _reference_amount(txn, conversion_rate, reference_currency))
        crossing = crossings[txn.category]

        if not acc.is_crossed(txn.category) and total > limit_config.limit:
            acc.crossed.add(txn.category)
            crossing.crossing_index = idx
            crossing.crossing_id = txn.id
            decisions[idx] = FlagDecision.flag(FlagReason.OVER_CATEGORY_LIMIT)
        elif acc.is_crossed(txn.category) and limit_config.flag_mode is FlagMode.ALL_AFTER:
            crossing.flagged_after.append(idx)
            decisions[idx] = FlagDecision.flag(FlagReason.OVER_CATEGORY_LIMIT)

    flagged = sum(1 for d in decisions if d.flagged)
    logger.debug(f"Category limits: {flagged} of {len(decisions)} transactions over limit")
    return BatchLimitResult(decisions, crossings, acc)


def evaluate_incremental(
    new: TransactionRecord,
    existing: Iterable[TransactionRecord],
    limits: dict[str, CategoryLimit],
    conversion_rate: Decimal,
    reference_currency: str = DEFAULT_REFERENCE_CURRENCY,
) -> FlagDecision:
    """Decide whether one added or edited transaction should be flagged.

    Args:
        new: The transaction being added or edited.
        existing: Other transactions of the same period. A row with the same
            id as ``new`` is the pre-edit version and is ignored.
        limits: Category limits.
        conversion_rate: Local units per reference unit.
        reference_currency: Currency limits are expressed in.

    Returns:
        FlagDecision.
    """
    limit_config = limits.get(new.category)
    if limit_config is None or not limit_config.is_active or new.amount >= 0:
        return FlagDecision.none()

    acc = LimitAccumulator()
    for txn in existing:
        if txn.category != new.category or txn.amount >= 0:
            continue
        if new.id is not None and txn.id == new.id:
            continue
        acc.add(txn.category, _reference_amount(txn, conversion_rate, reference_currency))

    before = acc.total(new.category)
    after = acc.add(new.category, _reference_amount(new, conversion_rate, reference_currency))
    was_over = before > limit_config.limit
    is_over = after > limit_config.limit

    if limit_config.flag_mode is FlagMode.CROSSING and not was_over and is_over:
        return FlagDecision.flag(FlagReason.OVER_CATEGORY_LIMIT)
    if limit_config.flag_mode is FlagMode.ALL_AFTER and (was_over or is_over):
        return FlagDecision.flag(FlagReason.OVER_CATEGORY_LIMIT)
    return FlagDecision.none()
