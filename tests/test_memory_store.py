"""Tests for the in-memory row store."""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from household_budget.models import TransactionRecord
from household_budget.storage import (
    BATCHES_TABLE,
    TRANSACTIONS_TABLE,
    DuplicateViolation,
    InMemoryRowStore,
    PersistenceError,
    StorageError,
    fetch_month_records,
)


def make_row(fingerprint: str, tenant_id: str = "t1", txn_date: str = "2026-01-05", **extra: object) -> dict:
    """Create a transaction row."""
    row = {
        "tenant_id": tenant_id,
        "txn_date": txn_date,
        "currency": "USD",
        "amount": "-10.00",
        "description": "TEST",
        "category": "Unexpected",
        "payer": "Together",
        "fingerprint": fingerprint,
    }
    row.update(extra)
    return row


class TestUpsert:
    """Tests for inserts and merges."""

    def test_insert_assigns_ids(self) -> None:
        """Test that inserted rows get an id."""
        store = InMemoryRowStore()
        rows = asyncio.run(store.upsert(TRANSACTIONS_TABLE, [make_row("fp_1"), make_row("fp_2")]))

        assert len(rows) == 2
        assert all(r["id"] for r in rows)
        assert rows[0]["id"] != rows[1]["id"]
        assert store.count(TRANSACTIONS_TABLE) == 2

    def test_duplicate_in_call_rejects_whole_call(self) -> None:
        """Test that a conflict inside one call writes nothing."""
        store = InMemoryRowStore()
        with pytest.raises(DuplicateViolation) as exc_info:
            asyncio.run(store.upsert(TRANSACTIONS_TABLE, [make_row("fp_1"), make_row("fp_1")]))

        assert exc_info.value.key == ("t1", "fp_1")
        assert store.count(TRANSACTIONS_TABLE) == 0

    def test_duplicate_against_stored_row(self) -> None:
        """Test that a conflict with an existing row leaves the store unchanged."""
        store = InMemoryRowStore()
        asyncio.run(store.upsert(TRANSACTIONS_TABLE, [make_row("fp_1")]))

        with pytest.raises(DuplicateViolation):
            asyncio.run(store.upsert(TRANSACTIONS_TABLE, [make_row("fp_2"), make_row("fp_1")]))
        assert store.count(TRANSACTIONS_TABLE) == 1

    def test_non_mapping_row_rejected(self) -> None:
        """Test that a malformed chunk fails as a persistence error."""
        store = InMemoryRowStore()
        with pytest.raises(PersistenceError) as exc_info:
            asyncio.run(store.upsert(TRANSACTIONS_TABLE, [make_row("fp_1"), ["not", "a", "row"]]))

        assert exc_info.value.row_count == 2
        assert not isinstance(exc_info.value, DuplicateViolation)
        assert store.count(TRANSACTIONS_TABLE) == 0

    def test_merge_without_conflict_column_rejected(self) -> None:
        """Test that a merge row must carry its conflict key."""
        store = InMemoryRowStore()
        with pytest.raises(PersistenceError):
            asyncio.run(
                store.upsert(TRANSACTIONS_TABLE, [{"is_flagged": True}], conflict_key=("id",))
            )
        assert store.count(TRANSACTIONS_TABLE) == 0

    def test_same_fingerprint_other_tenant_allowed(self) -> None:
        """Test that uniqueness is per tenant."""
        store = InMemoryRowStore()
        asyncio.run(
            store.upsert(TRANSACTIONS_TABLE, [make_row("fp_1"), make_row("fp_1", tenant_id="t2")])
        )
        assert store.count(TRANSACTIONS_TABLE) == 2

    def test_tables_without_constraint(self) -> None:
        """Test that batch rows are not constrained."""
        store = InMemoryRowStore()
        asyncio.run(store.upsert(BATCHES_TABLE, [{"tenant_id": "t1"}, {"tenant_id": "t1"}]))
        assert store.count(BATCHES_TABLE) == 2

    def test_conflict_key_merges(self) -> None:
        """Test that an upsert on id updates only the given columns."""
        store = InMemoryRowStore()
        (stored,) = asyncio.run(store.upsert(TRANSACTIONS_TABLE, [make_row("fp_1")]))

        asyncio.run(
            store.upsert(
                TRANSACTIONS_TABLE,
                [{"id": stored["id"], "is_flagged": True}],
                conflict_key=("id",),
            )
        )
        (row,) = asyncio.run(store.select(TRANSACTIONS_TABLE))
        assert row["is_flagged"] is True
        assert row["fingerprint"] == "fp_1"
        assert store.count(TRANSACTIONS_TABLE) == 1

    def test_rows_are_copied(self) -> None:
        """Test that callers cannot mutate stored rows."""
        store = InMemoryRowStore()
        row = make_row("fp_1")
        asyncio.run(store.upsert(TRANSACTIONS_TABLE, [row]))
        row["description"] = "CHANGED"

        (selected,) = asyncio.run(store.select(TRANSACTIONS_TABLE))
        selected["amount"] = "0.00"
        (again,) = asyncio.run(store.select(TRANSACTIONS_TABLE))

        assert again["description"] == "TEST"
        assert again["amount"] == "-10.00"


class TestSelect:
    """Tests for filtered reads."""

    def test_equality_and_in_filters(self) -> None:
        """Test that list values mean membership."""
        store = InMemoryRowStore()
        asyncio.run(
            store.upsert(
                TRANSACTIONS_TABLE,
                [make_row("fp_1"), make_row("fp_2"), make_row("fp_3"), make_row("fp_1", tenant_id="t2")],
            )
        )

        rows = asyncio.run(
            store.select(TRANSACTIONS_TABLE, {"tenant_id": "t1", "fingerprint": ["fp_1", "fp_3", "fp_9"]})
        )
        assert sorted(r["fingerprint"] for r in rows) == ["fp_1", "fp_3"]

    def test_unknown_table_is_empty(self) -> None:
        """Test reading a table that was never written."""
        assert asyncio.run(InMemoryRowStore().select("nothing")) == []


class TestSnapshot:
    """Tests for JSON snapshot persistence."""

    def test_save_and_load(self, tmp_path) -> None:
        """Test that a saved store loads back with its rows and constraint."""
        path = tmp_path / "store.json"
        store = InMemoryRowStore()
        asyncio.run(store.upsert(TRANSACTIONS_TABLE, [make_row("fp_1")]))
        store.save(path)

        loaded = InMemoryRowStore.load(path)
        assert loaded.count(TRANSACTIONS_TABLE) == 1
        with pytest.raises(DuplicateViolation):
            asyncio.run(loaded.upsert(TRANSACTIONS_TABLE, [make_row("fp_1")]))

    def test_missing_file_is_empty(self, tmp_path) -> None:
        """Test that a missing snapshot starts an empty store."""
        assert InMemoryRowStore.load(tmp_path / "none.json").count(TRANSACTIONS_TABLE) == 0

    def test_corrupt_file_raises(self, tmp_path) -> None:
        """Test that an unreadable snapshot is a StorageError."""
        path = tmp_path / "store.json"
        path.write_text("{broken", encoding="utf-8")
        with pytest.raises(StorageError):
            InMemoryRowStore.load(path)

    def test_wrong_shape_raises(self, tmp_path) -> None:
        """Test that a snapshot without tables is rejected."""
        path = tmp_path / "store.json"
        path.write_text('{"rows": []}', encoding="utf-8")
        with pytest.raises(StorageError, match="tables"):
            InMemoryRowStore.load(path)


class TestFetchMonthRecords:
    """Tests for the month query."""

    def test_filters_month_tenant_and_currency(self) -> None:
        """Test that only the tenant's rows of the month are returned, oldest first."""
        store = InMemoryRowStore()
        asyncio.run(
            store.upsert(
                TRANSACTIONS_TABLE,
                [
                    make_row("fp_1", txn_date="2026-01-20"),
                    make_row("fp_2", txn_date="2026-01-03"),
                    make_row("fp_3", txn_date="2026-02-01"),
                    make_row("fp_4", tenant_id="t2", txn_date="2026-01-10"),
                    make_row("fp_5", txn_date="2026-01-11", currency="PEN"),
                ],
            )
        )

        records = asyncio.run(fetch_month_records(store, "t1", "2026-01", currency="usd"))

        assert [r.fingerprint for r in records] == ["fp_2", "fp_1"]
        assert all(isinstance(r, TransactionRecord) for r in records)
        assert records[0].txn_date == date(2026, 1, 3)
        assert records[0].amount == Decimal("-10.00")
