"""Transaction import pipeline components."""

from household_budget.processing.category_limits import (
    BatchLimitResult,
    CategoryCrossing,
    LimitAccumulator,
    category_status,
    evaluate_batch,
    evaluate_incremental,
)
from household_budget.processing.deduplicator import (
    DedupResult,
    Deduplicator,
    filter_new,
)
from household_budget.processing.fingerprint import (
    assign_fingerprints,
    base_fingerprint,
    fingerprint,
    fingerprint_for_record,
    normalize_description,
    recurring_fingerprint,
)
from household_budget.processing.orchestrator import (
    ImportOrchestrator,
    run_import,
)
from household_budget.processing.thresholds import (
    ThresholdFlagger,
    threshold_for,
)

__all__ = [
    "fingerprint",
    "normalize_description",
    "assign_fingerprints",
    "base_fingerprint",
    "recurring_fingerprint",
    "fingerprint_for_record",
    "Deduplicator",
    "DedupResult",
    "filter_new",
    "LimitAccumulator",
    "CategoryCrossing",
    "BatchLimitResult",
    "category_status",
    "evaluate_batch",
    "evaluate_incremental",
    "ThresholdFlagger",
    "threshold_for",
    "ImportOrchestrator",
    "run_import",
]
