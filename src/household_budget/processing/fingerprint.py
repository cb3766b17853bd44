"""Content-derived transaction fingerprints.

A fingerprint identifies a transaction by its content so that re-importing
the same statement never creates a second copy. The hash is a 32-bit
rolling hash (multiplier 31, one step per UTF-16 code unit) rendered as
``fp_<decimal>``; it must stay bit-compatible with fingerprints already
stored, so it is not replaced by a stronger digest. The store's uniqueness
constraint is what guarantees correctness.

Amounts are rounded half-up on their exact decimal value. Payload floats with
more than two decimals whose binary value sits just below a half cent (1.005
is stored as 1.00499...) may therefore render one cent higher here than in
fingerprints written by float-based tooling, so such rows are not recognized
as already imported. Amounts with at most two decimals, which covers every
tabular export, hash identically.
"""

import re
from collections import Counter
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from household_budget.models.transaction import (
    FlagReason,
    FlagSource,
    TransactionCandidate,
    TransactionRecord,
)
from household_budget.utils.decimal_utils import format_amount
from household_budget.utils.logging_config import get_logger

logger = get_logger(__name__)

FINGERPRINT_PREFIX = "fp_"
DUPLICATE_SUFFIX = "_dup"
RECURRING_PREFIX = "recurring_"

_DUP_SUFFIX_PATTERN = re.compile(r"_dup\d+$")
_HASH_MASK = 0xFFFFFFFF


def normalize_description(description: Optional[str]) -> str:
    """Trim, collapse internal whitespace, and lowercase a description."""
    return " ".join((description or "").split()).lower()


def rolling_hash(text: str) -> int:
    """32-bit unsigned rolling hash over the UTF-16 code units of text."""
    encoded = text.encode("utf-16-le", "surrogatepass")
    h = 0
    for i in range(0, len(encoded), 2):
        code_unit = encoded[i] | (encoded[i + 1] << 8)
        h = (h * 31 + code_unit) & _HASH_MASK
    return h


def canonical_string(
    tenant_id: str,
    currency: str,
    txn_date: date,
    amount: Decimal,
    description: Optional[str],
) -> str:
    """Build the pipe-separated string a fingerprint is hashed from."""
    return "|".join(
        [
            tenant_id,
            currency,
            txn_date.isoformat(),
            format_amount(amount),
            normalize_description(description),
        ]
    )


def fingerprint(
    tenant_id: str,
    currency: str,
    txn_date: date,
    amount: Decimal,
    description: Optional[str],
) -> str:
    """Compute the base fingerprint of a transaction.

    Args:
        tenant_id: Household identifier.
        currency: Currency code.
        txn_date: Transaction date.
        amount: Signed amount; rounded half-up to cents.
        description: Description; whitespace and case are normalized.

    Returns:
        Fingerprint such as ``fp_2832947713``.
    """
    base = canonical_string(tenant_id, currency, txn_date, amount, description)
    return f"{FINGERPRINT_PREFIX}{rolling_hash(base)}"


def duplicate_fingerprint(base: str, occurrence: int) -> str:
    """Suffix a base fingerprint for its k-th (k >= 2) in-batch occurrence."""
    return f"{base}{DUPLICATE_SUFFIX}{occurrence}"


def base_fingerprint(value: str) -> str:
    """Strip a duplicate suffix, returning the base fingerprint."""
    return _DUP_SUFFIX_PATTERN.sub("", value)


def recurring_fingerprint(recurrence_key: str, occurrence_date: date) -> str:
    """Fingerprint for a generated occurrence of a recurring transaction."""
    return f"{RECURRING_PREFIX}{recurrence_key}_{occurrence_date.isoformat()}"


def fingerprint_for_record(record: TransactionRecord) -> str:
    """Recompute the base fingerprint from a record's stored fields."""
    return fingerprint(
        record.tenant_id, record.currency, record.txn_date, record.amount, record.description
    )


def assign_fingerprints(
    candidates: Iterable[TransactionCandidate],
    tenant_id: str,
    flag_originals: bool = False,
    source: str = "import",
) -> list[TransactionRecord]:
    """Turn parsed candidates into fingerprinted records.

    The first candidate with a given base fingerprint keeps it. Later ones
    get ``_dup2``, ``_dup3``... and are flagged as possible duplicates so the
    household can confirm whether the bank really charged twice.

    Args:
        candidates: Parsed candidates, in source order.
        tenant_id: Household the records belong to.
        flag_originals: Also flag the first occurrence of a duplicated group.
        source: Source tag stored on each record.

    Returns:
        Records in candidate order.
    """
    records: list[TransactionRecord] = []
    seen: Counter[str] = Counter()
    first_of_group: dict[str, TransactionRecord] = {}

    for candidate in candidates:
        base = fingerprint(
            tenant_id, candidate.currency, candidate.txn_date, candidate.amount, candidate.description
        )
        seen[base] += 1
        occurrence = seen[base]

        record = TransactionRecord(
            tenant_id=tenant_id,
            txn_date=candidate.txn_date,
            currency=candidate.currency,
            amount=candidate.amount,
            description=candidate.description,
            category=candidate.category,
            payer=candidate.payer,
            source=source,
            fingerprint=base if occurrence == 1 else duplicate_fingerprint(base, occurrence),
            source_row=candidate.row_number,
        )

        if occurrence == 1:
            first_of_group[base] = record
        else:
            record.apply_flag(FlagReason.POSSIBLE_DUPLICATE, FlagSource.IMPORT)
            if flag_originals and not first_of_group[base].is_flagged:
                first_of_group[base].apply_flag(FlagReason.POSSIBLE_DUPLICATE, FlagSource.IMPORT)

        records.append(record)

    duplicates = sum(count - 1 for count in seen.values())
    if duplicates:
        logger.info(f"Flagged {duplicates} possible in-batch duplicates")
    return records
