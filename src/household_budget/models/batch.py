"""Import batch model: one submitted source and its audit payload."""

import copy
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Optional


class BatchStatus(Enum):
    """Review state of an import batch."""

    STAGED = "staged"
    CONFIRMED = "confirmed"


def _freeze(value: Any) -> Any:
    """Recursively convert containers into read-only equivalents."""
    if isinstance(value, dict):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    """Inverse of _freeze, producing fresh JSON-compatible containers."""
    if isinstance(value, MappingProxyType):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


def make_display_name(format_label: str, month: str) -> str:
    """Build a batch label such as ``"PNC Bank Jan 2026"``.

    Args:
        format_label: Human-readable source format label.
        month: Covered month as ``YYYY-MM``.

    Returns:
        Display name.
    """
    try:
        month_date = datetime.strptime(month, "%Y-%m")
    except ValueError:
        return f"{format_label} {month}"
    return f"{format_label} {month_date.strftime('%b')} {month_date.year}"


@dataclass(frozen=True)
class ImportBatch:
    """A submitted source awaiting (or past) household review.

    The raw payload is deep-copied and frozen on construction so the audit
    trail cannot drift from what was submitted.

    Attributes:
        tenant_id: Household the batch belongs to.
        currency: Batch currency.
        month: Covered month (YYYY-MM).
        source_format: Format tag the source was parsed with.
        default_payer: Payer applied to rows without one.
        date_range_start: Earliest transaction date.
        date_range_end: Latest transaction date.
        raw_payload: Original per-row data, read-only.
        status: Review state.
        txn_year: Year used for dates without one.
        display_name: Label for review screens.
        id: Store-assigned identifier.
        created_at: Creation timestamp (UTC).
    """

    tenant_id: str
    currency: str
    month: str
    source_format: str
    default_payer: str
    date_range_start: Optional[date]
    date_range_end: Optional[date]
    raw_payload: Any = ()
    status: BatchStatus = BatchStatus.STAGED
    txn_year: Optional[int] = None
    display_name: str = ""
    id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        object.__setattr__(self, "raw_payload", _freeze(copy.deepcopy(self.raw_payload)))

    def payload_copy(self) -> Any:
        """Return a mutable deep copy of the raw payload."""
        return _thaw(self.raw_payload)

    def to_row(self) -> dict[str, Any]:
        """Serialize to a store row."""
        row: dict[str, Any] = {
            "tenant_id": self.tenant_id,
            "currency": self.currency,
            "month": self.month,
            "source_format": self.source_format,
            "default_payer": self.default_payer,
            "date_range_start": self.date_range_start.isoformat() if self.date_range_start else None,
            "date_range_end": self.date_range_end.isoformat() if self.date_range_end else None,
            "raw_payload": self.payload_copy(),
            "status": self.status.value,
            "txn_year": self.txn_year,
            "display_name": self.display_name,
            "created_at": self.created_at.isoformat(),
        }
        if self.id is not None:
            row["id"] = self.id
        return row
