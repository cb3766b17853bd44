"""Transaction data models for household budget records."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from household_budget.utils.date_utils import parse_iso_date
from household_budget.utils.decimal_utils import format_amount, safe_decimal


class FlagReason(Enum):
    """Why a transaction was flagged for household discussion."""

    POSSIBLE_DUPLICATE = "possible_duplicate"
    OVER_CATEGORY_LIMIT = "over_category_limit"
    OVER_THRESHOLD_EXPENSE = "over_threshold_expense"
    OVER_THRESHOLD_INCOME = "over_threshold_income"


class FlagSource(Enum):
    """Which part of the system set the flag."""

    IMPORT = "import"
    CATEGORY_LIMIT = "category_limit"
    THRESHOLD = "threshold"


class RecordStatus(Enum):
    """Visibility of a stored transaction."""

    PENDING = "pending"  # Belongs to a staged batch
    CONFIRMED = "confirmed"


@dataclass(frozen=True)
class FlagDecision:
    """Tagged result of a flagging rule."""

    flagged: bool
    reason: Optional[FlagReason] = None

    @classmethod
    def flag(cls, reason: FlagReason) -> "FlagDecision":
        return cls(True, reason)

    @classmethod
    def none(cls) -> "FlagDecision":
        return cls(False, None)


@dataclass
class TransactionCandidate:
    """A parsed source row, before fingerprinting.

    Attributes:
        txn_date: Transaction date.
        description: Merchant/payee text as it appeared in the source.
        amount: Signed amount (negative = expense, positive = income).
        currency: ISO currency code.
        category: Category assigned at import time.
        payer: Household member who paid.
        row_number: 1-based row number in the source (header excluded).
        raw_data: Original cell values keyed by header, for the audit trail.
    """

    txn_date: date
    description: str
    amount: Decimal
    currency: str
    category: str
    payer: str
    row_number: int = 0
    raw_data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_expense(self) -> bool:
        return self.amount < 0


@dataclass
class TransactionRecord:
    """A transaction as persisted in the row store.

    Attributes:
        tenant_id: Household the transaction belongs to.
        txn_date: Transaction date.
        currency: ISO currency code.
        amount: Signed amount (negative = expense, positive = income).
        description: Description text.
        category: Budget category.
        payer: Household member who paid.
        source: Where the row came from ("import", "csv", "manual").
        fingerprint: Content-derived key, unique per tenant.
        recurrence_key: Recurring definition id for generated occurrences.
        is_flagged: Whether the row awaits household discussion.
        flag_reason: Why it was flagged.
        flag_source: What flagged it.
        id: Store-assigned identifier.
        import_batch_id: Batch the row was imported with.
        status: Pending while its batch is staged.
        source_row: Row number in the source file (not persisted).
    """

    tenant_id: str
    txn_date: date
    currency: str
    amount: Decimal
    description: str
    category: str
    payer: str
    source: str = "import"
    fingerprint: str = ""
    recurrence_key: Optional[str] = None
    is_flagged: bool = False
    flag_reason: Optional[FlagReason] = None
    flag_source: Optional[FlagSource] = None
    id: Optional[str] = None
    import_batch_id: Optional[str] = None
    status: RecordStatus = RecordStatus.PENDING
    source_row: Optional[int] = None

    @property
    def is_expense(self) -> bool:
        return self.amount < 0

    @property
    def is_income(self) -> bool:
        return self.amount > 0

    def apply_flag(self, reason: FlagReason, source: FlagSource) -> None:
        """Mark this transaction as flagged.

        Args:
            reason: Why it is flagged.
            source: Which rule flagged it.
        """
        self.is_flagged = True
        self.flag_reason = reason
        self.flag_source = source

    def to_row(self) -> dict[str, Any]:
        """Serialize to a store row (JSON-compatible values)."""
        row: dict[str, Any] = {
            "tenant_id": self.tenant_id,
            "txn_date": self.txn_date.isoformat(),
            "currency": self.currency,
            "amount": format_amount(self.amount),
            "description": self.description,
            "category": self.category,
            "payer": self.payer,
            "source": self.source,
            "fingerprint": self.fingerprint,
            "recurrence_key": self.recurrence_key,
            "is_flagged": self.is_flagged,
            "flag_reason": self.flag_reason.value if self.flag_reason else None,
            "flag_source": self.flag_source.value if self.flag_source else None,
            "import_batch_id": self.import_batch_id,
            "status": self.status.value,
        }
        if self.id is not None:
            row["id"] = self.id
        return row

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "TransactionRecord":
        """Build a record from a store row.

        Args:
            row: Row as returned by the store.

        Returns:
            TransactionRecord.

        Raises:
            ValueError: If the row has no parseable date.
        """
        flag_reason = row.get("flag_reason")
        flag_source = row.get("flag_source")
        return cls(
            tenant_id=str(row.get("tenant_id", "")),
            txn_date=parse_iso_date(row.get("txn_date")),
            currency=str(row.get("currency", "")),
            amount=safe_decimal(row.get("amount")),
            description=str(row.get("description") or ""),
            category=str(row.get("category") or ""),
            payer=str(row.get("payer") or ""),
            source=str(row.get("source") or "import"),
            fingerprint=str(row.get("fingerprint") or ""),
            recurrence_key=row.get("recurrence_key"),
            is_flagged=bool(row.get("is_flagged", False)),
            flag_reason=FlagReason(flag_reason) if flag_reason else None,
            flag_source=FlagSource(flag_source) if flag_source else None,
            id=row.get("id"),
            import_batch_id=row.get("import_batch_id"),
            status=RecordStatus(row.get("status") or RecordStatus.PENDING.value),
        )

    def __repr__(self) -> str:
        return (
            f"TransactionRecord(date={self.txn_date}, "
            f"description={self.description[:30]!r}, "
            f"amount={self.amount} {self.currency}, "
            f"fingerprint={self.fingerprint})"
        )
