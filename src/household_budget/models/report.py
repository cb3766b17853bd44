"""Report models returned by the import orchestrator."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

from household_budget.models.transaction import TransactionRecord
from household_budget.utils.decimal_utils import format_amount


@dataclass(frozen=True)
class UnparseableRow:
    """A source row that must be entered manually.

    Attributes:
        row_number: 1-based data row number.
        reason: Short machine-readable reason ("missing_date", "invalid_date",
            "invalid_amount").
        raw_data: First few cell values joined for display.
    """

    row_number: int
    reason: str
    raw_data: str


@dataclass
class ImportReport:
    """Operator-facing outcome of one submission.

    Attributes:
        tenant_id: Household the import ran for.
        format_tag: Source format used.
        batch_id: Identifier of the created batch, if any.
        dry_run: True when nothing was written.
        aborted: True when the submission was rejected as a whole.
        error: Reason for an aborted run.
        total_parsed: Candidates produced by the parser.
        inserted: Rows written to the store.
        failed: Rows that could not be written.
        skipped_pending: Pending rows skipped by the parser.
        skipped_duplicates: Rows already present in the store.
        in_batch_duplicates: Rows given a duplicate-suffixed fingerprint.
        threshold_flagged: Rows flagged for a large single amount.
        limit_flagged: Rows flagged by the category limit engine.
        income_count: Persisted income rows.
        income_total: Sum of persisted income.
        expense_count: Persisted expense rows.
        expense_total: Sum of persisted expenses (negative).
        flagged: Persisted rows currently flagged.
        unparseable: Rows that could not be parsed.
        amount_warnings: Row numbers whose amount defaulted to zero.
        preview: Rows that would be inserted (dry run only).
    """

    tenant_id: str
    format_tag: str
    batch_id: Optional[str] = None
    dry_run: bool = False
    aborted: bool = False
    error: Optional[str] = None
    total_parsed: int = 0
    inserted: int = 0
    failed: int = 0
    skipped_pending: int = 0
    skipped_duplicates: int = 0
    in_batch_duplicates: int = 0
    threshold_flagged: int = 0
    limit_flagged: int = 0
    income_count: int = 0
    income_total: Decimal = field(default_factory=lambda: Decimal("0"))
    expense_count: int = 0
    expense_total: Decimal = field(default_factory=lambda: Decimal("0"))
    flagged: list[TransactionRecord] = field(default_factory=list)
    unparseable: list[UnparseableRow] = field(default_factory=list)
    amount_warnings: list[int] = field(default_factory=list)
    preview: list[TransactionRecord] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        """Everything that should have been written was written."""
        return not self.aborted and self.failed == 0

    @property
    def is_partial(self) -> bool:
        """Some rows were written and some failed."""
        return not self.aborted and self.failed > 0 and self.inserted > 0

    @property
    def net_total(self) -> Decimal:
        return self.income_total + self.expense_total

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible summary of the report."""

        def txn(record: TransactionRecord) -> dict[str, Any]:
            return {
                "txn_date": record.txn_date.isoformat(),
                "description": record.description,
                "amount": format_amount(record.amount),
                "currency": record.currency,
                "fingerprint": record.fingerprint,
                "flag_reason": record.flag_reason.value if record.flag_reason else None,
                "flag_source": record.flag_source.value if record.flag_source else None,
            }

        return {
            "tenant_id": self.tenant_id,
            "format": self.format_tag,
            "batch_id": self.batch_id,
            "dry_run": self.dry_run,
            "aborted": self.aborted,
            "error": self.error,
            "total_parsed": self.total_parsed,
            "inserted": self.inserted,
            "failed": self.failed,
            "skipped_pending": self.skipped_pending,
            "skipped_duplicates": self.skipped_duplicates,
            "in_batch_duplicates": self.in_batch_duplicates,
            "threshold_flagged": self.threshold_flagged,
            "limit_flagged": self.limit_flagged,
            "income": {"count": self.income_count, "total": format_amount(self.income_total)},
            "expenses": {"count": self.expense_count, "total": format_amount(self.expense_total)},
            "flagged": [txn(r) for r in self.flagged],
            "unparseable": [
                {"row": u.row_number, "reason": u.reason, "raw": u.raw_data} for u in self.unparseable
            ],
            "amount_warnings": list(self.amount_warnings),
            "preview": [txn(r) for r in self.preview],
        }
