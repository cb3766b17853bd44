"""Common read queries over the row store."""

from typing import Optional

from household_budget.models.transaction import TransactionRecord
from household_budget.storage.interface import TRANSACTIONS_TABLE, RowStore
from household_budget.utils.date_utils import is_date_in_range, month_bounds


async def fetch_month_records(
    store: RowStore,
    tenant_id: str,
    month: str,
    currency: Optional[str] = None,
) -> list[TransactionRecord]:
    """Load a tenant's transactions for one month, oldest first.

    Args:
        store: Row store.
        tenant_id: Household identifier.
        month: Month as ``YYYY-MM``.
        currency: Only rows in this currency, if given.

    Returns:
        Records sorted by date.

    Raises:
        ValueError: If the month is malformed.
        StorageError: If the read fails.
    """
    first, last = month_bounds(month)
    filters: dict[str, object] = {"tenant_id": tenant_id}
    if currency:
        filters["currency"] = currency.upper()

    rows = await store.select(TRANSACTIONS_TABLE, filters)
    records = [TransactionRecord.from_row(r) for r in rows]
    return sorted(
        (r for r in records if is_date_in_range(r.txn_date, first, last)),
        key=lambda r: r.txn_date,
    )
