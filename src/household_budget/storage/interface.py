"""Abstract row store interface.

The import pipeline talks to persistence through two operations only:
``upsert`` and ``select``. Any backend (a hosted Postgres, SQLite, the
in-memory store used by the CLI and tests) implements this interface.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from household_budget.errors import DuplicateViolation, PersistenceError, StorageError

TRANSACTIONS_TABLE = "transactions"
BATCHES_TABLE = "import_batches"

Row = dict[str, Any]

__all__ = [
    "RowStore",
    "Row",
    "StorageError",
    "PersistenceError",
    "DuplicateViolation",
    "TRANSACTIONS_TABLE",
    "BATCHES_TABLE",
]


class RowStore(ABC):
    """Abstract interface for row storage.

    Implementations must enforce a uniqueness constraint on
    ``(tenant_id, fingerprint)`` for the transactions table.
    """

    @abstractmethod
    async def upsert(
        self,
        table: str,
        rows: Sequence[Row],
        conflict_key: Optional[Sequence[str]] = None,
    ) -> list[Row]:
        """Insert or merge rows.

        Args:
            table: Table name.
            rows: Rows to write.
            conflict_key: Columns identifying an existing row to merge into.
                Without it every row is inserted.

        Returns:
            The written rows, including store-assigned ids.

        Raises:
            DuplicateViolation: If an insert breaks a uniqueness constraint.
                No row of the call is written.
            PersistenceError: If the write fails for any other reason.
        """
        pass

    @abstractmethod
    async def select(self, table: str, filters: Optional[dict[str, Any]] = None) -> list[Row]:
        """Read rows matching all filters.

        Args:
            table: Table name.
            filters: Column to value. A list, tuple or set value matches any
                of its members.

        Returns:
            Matching rows.

        Raises:
            StorageError: If the read fails.
        """
        pass
