"""End-to-end import of one submitted source.

Pipeline:
    parse -> fingerprint (+ in-batch suffixing, threshold flags) -> dedup
    -> create staged batch -> chunked insert -> re-query
    -> category limit flags -> report

The orchestrator always returns an ImportReport; parse and store failures
are recorded on the report instead of being raised.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from household_budget.config import Config
from household_budget.errors import DuplicateViolation, ParseError, PersistenceError, StorageError
from household_budget.models.batch import ImportBatch, make_display_name
from household_budget.models.report import ImportReport
from household_budget.models.transaction import FlagSource, TransactionRecord
from household_budget.parsers.base import ParseResult
from household_budget.parsers.detector import FormatDetector
from household_budget.parsers.formats import format_label
from household_budget.processing.category_limits import evaluate_batch
from household_budget.processing.deduplicator import Deduplicator, DedupResult
from household_budget.processing.fingerprint import assign_fingerprints, base_fingerprint
from household_budget.processing.thresholds import ThresholdFlagger
from household_budget.storage.interface import BATCHES_TABLE, TRANSACTIONS_TABLE, RowStore
from household_budget.utils.date_utils import is_date_in_range, month_bounds, month_key
from household_budget.utils.decimal_utils import sum_amounts
from household_budget.utils.logging_config import LogContext, get_logger

logger = get_logger(__name__)


@dataclass
class _Prepared:
    """Output of the parse, fingerprint and dedup steps."""

    parse_result: ParseResult
    records: list
    dedup: DedupResult


class ImportOrchestrator:
    """Runs a submission through the full import pipeline.

    Note: The orchestrator holds no per-import state; one instance can serve
    many imports. Concurrent imports for the same tenant are resolved by the
    store's uniqueness constraint.
    """

    def __init__(self, store: RowStore, config: Optional[Config] = None):
        """Initialize orchestrator.

        Args:
            store: Row store for transactions and batches.
            config: Application configuration (defaults if None).
        """
        self.store = store
        self.config = config or Config()

        settings = self.config.import_settings
        currency = self.config.currency
        self.detector = FormatDetector(
            strict=not settings.lenient_amounts,
            pending_marker=settings.pending_marker,
            default_category=settings.default_category,
            default_payer=settings.default_payer,
        )
        self.deduplicator = Deduplicator(store)
        self.threshold_flagger = ThresholdFlagger(
            threshold=settings.single_transaction_threshold,
            conversion_rate=currency.conversion_rate,
            reference_currency=currency.reference,
        )

    async def run(
        self,
        source: Any,
        format_tag: str,
        tenant_id: str,
        payer: Optional[str] = None,
        currency: Optional[str] = None,
        year: Optional[int] = None,
    ) -> ImportReport:
        """Import a source for a tenant.

        Args:
            source: File path, raw text, or decoded structured payload.
            format_tag: Format tag, "json" or "auto".
            tenant_id: Household to import into.
            payer: Payer applied to rows without one.
            currency: Currency override.
            year: Year for dates that omit it.

        Returns:
            ImportReport describing what was written.
        """
        report = ImportReport(tenant_id=tenant_id, format_tag=format_tag)
        prepared = await self._prepare(source, format_tag, tenant_id, payer, currency, year, report)
        if prepared is None:
            return report

        new_records = prepared.dedup.new
        if not new_records:
            logger.info("Nothing to insert: every transaction is already imported")
            return report

        try:
            batch_id = await self._create_batch(prepared, tenant_id, payer, currency, year, report)
        except StorageError as e:
            logger.error(f"Could not create import batch: {e}")
            report.aborted = True
            report.error = f"Could not create import batch: {e}"
            return report
        report.batch_id = batch_id

        for record in new_records:
            record.import_batch_id = batch_id
        await self._insert_chunks(new_records, report)

        try:
            persisted = await self._load_batch(batch_id)
            report.limit_flagged = await self._apply_category_limits(tenant_id, persisted)
        except StorageError as e:
            logger.error(f"Post-insert review failed for batch {batch_id}: {e}")
            report.error = f"Post-insert review failed: {e}"
            return report

        self._summarize(report, persisted)
        logger.info(
            f"Import complete: {report.inserted} inserted, {report.failed} failed, "
            f"{report.skipped_duplicates} duplicates, {report.skipped_pending} pending"
        )
        return report

    async def analyze(
        self,
        source: Any,
        format_tag: str,
        tenant_id: str,
        payer: Optional[str] = None,
        currency: Optional[str] = None,
        year: Optional[int] = None,
    ) -> ImportReport:
        """Preview an import without writing anything.

        Runs parsing, fingerprinting and the dedup lookup only.

        Returns:
            ImportReport with ``dry_run`` set and the would-be inserts in
            ``preview``.
        """
        report = ImportReport(tenant_id=tenant_id, format_tag=format_tag, dry_run=True)
        prepared = await self._prepare(source, format_tag, tenant_id, payer, currency, year, report)
        if prepared is None:
            return report

        report.preview = list(prepared.dedup.new)
        self._summarize(report, report.preview)
        return report

    async def _prepare(
        self,
        source: Any,
        format_tag: str,
        tenant_id: str,
        payer: Optional[str],
        currency: Optional[str],
        year: Optional[int],
        report: ImportReport,
    ) -> Optional[_Prepared]:
        """Parse, fingerprint and dedup. Returns None if the run must stop."""
        with LogContext(logger, "parse", format=format_tag, tenant=tenant_id) as step:
            try:
                if isinstance(source, Path):
                    parse_result = self.detector.parse_file(
                        source, format_tag, currency=currency, payer=payer, year=year
                    )
                else:
                    parse_result = self.detector.parse(
                        source, format_tag, currency=currency, payer=payer, year=year
                    )
                step.set(rows=len(parse_result.candidates), pending=parse_result.pending_count)
            except (ParseError, FileNotFoundError) as e:
                logger.error(f"Import aborted: {e}")
                report.aborted = True
                report.error = str(e)
                return None

        report.format_tag = parse_result.format_tag
        report.total_parsed = len(parse_result.candidates)
        report.skipped_pending = parse_result.pending_count
        report.unparseable = list(parse_result.unparseable)
        report.amount_warnings = list(parse_result.amount_warnings)

        records = assign_fingerprints(
            parse_result.candidates,
            tenant_id,
            flag_originals=self.config.import_settings.flag_duplicate_originals,
        )
        report.in_batch_duplicates = sum(
            1 for r in records if r.fingerprint != base_fingerprint(r.fingerprint)
        )
        if self.config.import_settings.threshold_flagging:
            report.threshold_flagged = self.threshold_flagger.apply(records)

        with LogContext(logger, "dedup", tenant=tenant_id, count=len(records)) as step:
            try:
                dedup = await self.deduplicator.filter_new(tenant_id, records)
                step.set(new=len(dedup.new), skipped=dedup.skipped_count)
            except StorageError as e:
                logger.error(f"Import aborted: existing-transaction lookup failed: {e}")
                report.aborted = True
                report.error = f"Existing-transaction lookup failed: {e}"
                return None

        report.skipped_duplicates = dedup.skipped_count
        return _Prepared(parse_result=parse_result, records=records, dedup=dedup)

    async def _create_batch(
        self,
        prepared: _Prepared,
        tenant_id: str,
        payer: Optional[str],
        currency: Optional[str],
        year: Optional[int],
        report: ImportReport,
    ) -> str:
        """Store a staged batch for the new records and return its id.

        Raises:
            StorageError: If the batch cannot be written.
        """
        new_records = prepared.dedup.new
        dates = sorted(r.txn_date for r in new_records)
        start, end = dates[0], dates[-1]
        month = month_key(start)
        batch_currency = (currency or new_records[0].currency).upper()

        batch = ImportBatch(
            tenant_id=tenant_id,
            currency=batch_currency,
            month=month,
            source_format=report.format_tag,
            default_payer=payer or self.config.import_settings.default_payer,
            date_range_start=start,
            date_range_end=end,
            raw_payload=prepared.parse_result.raw_rows,
            txn_year=year or end.year,
            display_name=make_display_name(format_label(report.format_tag), month),
        )

        with LogContext(logger, "create_batch", tenant=tenant_id, month=month):
            rows = await self.store.upsert(BATCHES_TABLE, [batch.to_row()])
        batch_id = str(rows[0]["id"])
        logger.info(f"Created staged import batch {batch_id} ({batch.display_name})")
        return batch_id

    async def _insert_chunks(self, records: list[TransactionRecord], report: ImportReport) -> None:
        """Insert records in chunks, retrying a rejected chunk row by row."""
        chunk_size = self.config.import_settings.chunk_size

        for start in range(0, len(records), chunk_size):
            chunk = records[start : start + chunk_size]
            chunk_no = start // chunk_size + 1
            try:
                written = await self.store.upsert(TRANSACTIONS_TABLE, [r.to_row() for r in chunk])
                report.inserted += len(written)
            except DuplicateViolation as e:
                logger.warning(f"Chunk {chunk_no} hit the uniqueness constraint ({e}), retrying row by row")
                await self._insert_rows(chunk, report)
            except PersistenceError as e:
                logger.error(f"Chunk {chunk_no} ({e.row_count or len(chunk)} rows) was not written: {e}")
                report.failed += len(chunk)
            except StorageError as e:
                logger.error(f"Chunk {chunk_no} ({len(chunk)} rows) failed: {e}")
                report.failed += len(chunk)

    async def _insert_rows(self, records: list[TransactionRecord], report: ImportReport) -> None:
        for record in records:
            try:
                await self.store.upsert(TRANSACTIONS_TABLE, [record.to_row()])
                report.inserted += 1
            except DuplicateViolation:
                # Another import stored it after our dedup lookup
                logger.info(f"Row {record.source_row} already stored by a concurrent import, skipped")
                report.skipped_duplicates += 1
            except PersistenceError as e:
                logger.error(f"Row {record.source_row} was not written: {e}")
                report.failed += 1
            except StorageError as e:
                logger.error(f"Row {record.source_row} failed: {e}")
                report.failed += 1

    async def _load_batch(self, batch_id: str) -> list[TransactionRecord]:
        rows = await self.store.select(TRANSACTIONS_TABLE, {"import_batch_id": batch_id})
        records = [TransactionRecord.from_row(r) for r in rows]
        records.sort(key=lambda r: r.txn_date)
        return records

    async def _apply_category_limits(self, tenant_id: str, batch_records: list[TransactionRecord]) -> int:
        """Flag this batch's rows that push a category over its limit.

        Each covered month is evaluated over all of the tenant's rows for that
        month; only rows of this batch are updated.

        Returns:
            Number of rows newly flagged.
        """
        limits = self.config.category_limits
        if not batch_records or not any(limit.is_active for limit in limits.values()):
            return 0

        batch_ids = {r.id for r in batch_records}
        by_id = {r.id: r for r in batch_records}
        tenant_rows = await self.store.select(TRANSACTIONS_TABLE, {"tenant_id": tenant_id})
        tenant_records = [TransactionRecord.from_row(r) for r in tenant_rows]

        updates = []
        for month in sorted({month_key(r.txn_date) for r in batch_records}):
            first, last = month_bounds(month)
            month_records = [r for r in tenant_records if is_date_in_range(r.txn_date, first, last)]
            with LogContext(logger, "category_limits", month=month, count=len(month_records)):
                result = evaluate_batch(
                    month_records,
                    limits,
                    self.config.currency.conversion_rate,
                    self.config.currency.reference,
                )

            for record, decision in zip(month_records, result.decisions):
                if not decision.flagged or decision.reason is None:
                    continue
                if record.id not in batch_ids or record.is_flagged:
                    continue
                target = by_id[record.id]
                target.apply_flag(decision.reason, FlagSource.CATEGORY_LIMIT)
                updates.append(
                    {
                        "id": target.id,
                        "is_flagged": True,
                        "flag_reason": decision.reason.value,
                        "flag_source": FlagSource.CATEGORY_LIMIT.value,
                    }
                )

        if updates:
            await self.store.upsert(TRANSACTIONS_TABLE, updates, conflict_key=("id",))
            logger.info(f"Flagged {len(updates)} transactions over their category limit")
        return len(updates)

    @staticmethod
    def _summarize(report: ImportReport, records: list[TransactionRecord]) -> None:
        income = [r for r in records if r.is_income]
        expenses = [r for r in records if r.is_expense]
        report.income_count = len(income)
        report.income_total = sum_amounts([r.amount for r in income])
        report.expense_count = len(expenses)
        report.expense_total = sum_amounts([r.amount for r in expenses])
        report.flagged = [r for r in records if r.is_flagged]


async def run_import(
    store: RowStore,
    source: Any,
    format_tag: str,
    tenant_id: str,
    config: Optional[Config] = None,
    **kwargs: Any,
) -> ImportReport:
    """Convenience function to run one import.

    Args:
        store: Row store.
        source: File path, raw text or structured payload.
        format_tag: Format tag, "json" or "auto".
        tenant_id: Household to import into.
        config: Application configuration.
        **kwargs: payer, currency, year.

    Returns:
        ImportReport.
    """
    return await ImportOrchestrator(store, config).run(source, format_tag, tenant_id, **kwargs)
