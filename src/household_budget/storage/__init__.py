"""Row store contract and the in-memory implementation."""

from household_budget.storage.interface import (
    BATCHES_TABLE,
    TRANSACTIONS_TABLE,
    DuplicateViolation,
    PersistenceError,
    Row,
    RowStore,
    StorageError,
)
from household_budget.storage.memory import InMemoryRowStore
from household_budget.storage.queries import fetch_month_records

__all__ = [
    "RowStore",
    "Row",
    "InMemoryRowStore",
    "fetch_month_records",
    "StorageError",
    "PersistenceError",
    "DuplicateViolation",
    "TRANSACTIONS_TABLE",
    "BATCHES_TABLE",
]
