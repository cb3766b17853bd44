"""Filtering of transactions already present in the store."""

from dataclasses import dataclass, field

from household_budget.models.transaction import TransactionRecord
from household_budget.storage.interface import TRANSACTIONS_TABLE, RowStore
from household_budget.utils.logging_config import get_logger

logger = get_logger(__name__)

# Fingerprints per lookup, to bound request size
LOOKUP_CHUNK_SIZE = 100


@dataclass
class DedupResult:
    """Partition of records into new and already-stored.

    Attributes:
        new: Records to persist, in input order.
        existing: Records whose fingerprint is already stored.
    """

    new: list[TransactionRecord] = field(default_factory=list)
    existing: list[TransactionRecord] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return len(self.existing)


class Deduplicator:
    """Checks fingerprints against previously stored transactions.

    Existing matches are skipped, never flagged: seeing the same statement
    twice is expected.
    """

    def __init__(self, store: RowStore, chunk_size: int = LOOKUP_CHUNK_SIZE):
        """Initialize deduplicator.

        Args:
            store: Row store holding the tenant's transactions.
            chunk_size: Fingerprints per lookup query.
        """
        self.store = store
        self.chunk_size = chunk_size

    async def existing_fingerprints(self, tenant_id: str, fingerprints: list[str]) -> set[str]:
        """Return the subset of fingerprints already stored for a tenant.

        Args:
            tenant_id: Household identifier.
            fingerprints: Fingerprints to look up.

        Returns:
            Fingerprints found in the store.

        Raises:
            StorageError: If a lookup fails.
        """
        unique = list(dict.fromkeys(fingerprints))
        found: set[str] = set()
        for start in range(0, len(unique), self.chunk_size):
            chunk = unique[start : start + self.chunk_size]
            rows = await self.store.select(
                TRANSACTIONS_TABLE, {"tenant_id": tenant_id, "fingerprint": chunk}
            )
            found.update(str(r.get("fingerprint")) for r in rows)
        return found

    async def filter_new(self, tenant_id: str, records: list[TransactionRecord]) -> DedupResult:
        """Split records into new and already-stored.

        Args:
            tenant_id: Household identifier.
            records: Fingerprinted records (after in-batch suffixing).

        Returns:
            DedupResult.
        """
        existing = await self.existing_fingerprints(tenant_id, [r.fingerprint for r in records])

        result = DedupResult()
        for record in records:
            if record.fingerprint in existing:
                result.existing.append(record)
            else:
                result.new.append(record)

        logger.info(
            f"Dedup: {len(result.new)} new, {result.skipped_count} already imported"
        )
        return result


async def filter_new(
    store: RowStore, tenant_id: str, records: list[TransactionRecord]
) -> DedupResult:
    """Convenience function to split records into new and already-stored.

    Args:
        store: Row store.
        tenant_id: Household identifier.
        records: Fingerprinted records.

    Returns:
        DedupResult.
    """
    return await Deduplicator(store).filter_new(tenant_id, records)
