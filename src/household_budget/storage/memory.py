"""In-memory row store with optional JSON snapshot persistence."""

import copy
import json
import uuid
from pathlib import Path
from typing import Any, Optional, Sequence

from household_budget.storage.interface import (
    TRANSACTIONS_TABLE,
    DuplicateViolation,
    PersistenceError,
    Row,
    RowStore,
    StorageError,
)
from household_budget.utils.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_UNIQUE_CONSTRAINTS: dict[str, tuple[str, ...]] = {
    TRANSACTIONS_TABLE: ("tenant_id", "fingerprint"),
}


def _matches(row: Row, filters: dict[str, Any]) -> bool:
    for column, expected in filters.items():
        value = row.get(column)
        if isinstance(expected, (list, tuple, set, frozenset)):
            if value not in expected:
                return False
        elif value != expected:
            return False
    return True


class InMemoryRowStore(RowStore):
    """Row store kept in process memory.

    Rows are copied on the way in and out, so callers never share state
    with the store.
    """

    def __init__(self, unique_constraints: Optional[dict[str, tuple[str, ...]]] = None):
        """Initialize an empty store.

        Args:
            unique_constraints: Table to the columns that must be unique
                together. Defaults to (tenant_id, fingerprint) on transactions.
        """
        self.unique_constraints = dict(
            DEFAULT_UNIQUE_CONSTRAINTS if unique_constraints is None else unique_constraints
        )
        self._tables: dict[str, list[Row]] = {}

    def _unique_key(self, table: str, row: Row) -> Optional[tuple]:
        columns = self.unique_constraints.get(table)
        if not columns:
            return None
        return tuple(row.get(c) for c in columns)

    async def upsert(
        self,
        table: str,
        rows: Sequence[Row],
        conflict_key: Optional[Sequence[str]] = None,
    ) -> list[Row]:
        """Insert or merge rows (see RowStore.upsert).

        Raises:
            DuplicateViolation: If an insert breaks a uniqueness constraint.
            PersistenceError: If a row is not a mapping or lacks a conflict
                key column. Nothing is written for the row that failed or
                any later one.
        """
        stored = self._tables.setdefault(table, [])

        if conflict_key:
            written = []
            for row in rows:
                if not isinstance(row, dict) or any(c not in row for c in conflict_key):
                    raise PersistenceError(
                        f"Rows merged into {table} must carry {tuple(conflict_key)}",
                        row_count=len(rows),
                    )
                key = {c: row[c] for c in conflict_key}
                existing = next((r for r in stored if _matches(r, key)), None)
                if existing is not None:
                    existing.update(copy.deepcopy(row))
                    written.append(copy.deepcopy(existing))
                else:
                    written.append(self._insert_checked(table, stored, [row])[0])
            return written

        return self._insert_checked(table, stored, rows)

    def _insert_checked(self, table: str, stored: list[Row], rows: Sequence[Row]) -> list[Row]:
        """Insert all rows or none of them."""
        taken = {self._unique_key(table, r) for r in stored}
        new_rows = []
        for row in rows:
            if not isinstance(row, dict):
                raise PersistenceError(
                    f"Row for {table} must be a mapping, got {type(row).__name__}",
                    row_count=len(rows),
                )
            key = self._unique_key(table, row)
            if key is not None:
                if key in taken:
                    raise DuplicateViolation(
                        f"Duplicate key {key} violates unique constraint on {table}",
                        table=table,
                        key=key,
                    )
                taken.add(key)
            new_row = copy.deepcopy(row)
            new_row.setdefault("id", str(uuid.uuid4()))
            new_rows.append(new_row)

        stored.extend(new_rows)
        logger.debug(f"Inserted {len(new_rows)} rows into {table}")
        return copy.deepcopy(new_rows)

    async def select(self, table: str, filters: Optional[dict[str, Any]] = None) -> list[Row]:
        """Read rows matching all filters (see RowStore.select)."""
        rows = self._tables.get(table, [])
        return [copy.deepcopy(r) for r in rows if _matches(r, filters or {})]

    def count(self, table: str) -> int:
        return len(self._tables.get(table, []))

    def save(self, path: Path) -> None:
        """Write a JSON snapshot of every table.

        Args:
            path: Snapshot file path.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump({"tables": self._tables}, f, indent=2, default=str)
        logger.info(f"Saved store snapshot to {path}")

    @classmethod
    def load(cls, path: Path) -> "InMemoryRowStore":
        """Load a store from a JSON snapshot.

        A missing file yields an empty store.

        Raises:
            StorageError: If the snapshot is unreadable.
        """
        store = cls()
        if not path.exists():
            logger.info(f"Store snapshot {path} not found, starting empty")
            return store

        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Cannot read store snapshot {path}: {e}") from e

        tables = data.get("tables") if isinstance(data, dict) else None
        if not isinstance(tables, dict):
            raise StorageError(f"Store snapshot {path} has no 'tables' mapping")

        store._tables = {str(name): list(rows) for name, rows in tables.items()}
        logger.info(f"Loaded store snapshot from {path}")
        return store
