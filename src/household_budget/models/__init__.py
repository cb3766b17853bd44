"""Data models for transactions, import batches, limits and reports."""

from household_budget.models.batch import BatchStatus, ImportBatch, make_display_name
from household_budget.models.limits import CategoryLimit, CategoryStatus, FlagMode, StatusLevel
from household_budget.models.report import ImportReport, UnparseableRow
from household_budget.models.transaction import (
    FlagDecision,
    FlagReason,
    FlagSource,
    RecordStatus,
    TransactionCandidate,
    TransactionRecord,
)

__all__ = [
    "BatchStatus",
    "ImportBatch",
    "make_display_name",
    "CategoryLimit",
    "CategoryStatus",
    "FlagMode",
    "StatusLevel",
    "ImportReport",
    "UnparseableRow",
    "FlagDecision",
    "FlagReason",
    "FlagSource",
    "RecordStatus",
    "TransactionCandidate",
    "TransactionRecord",
]
