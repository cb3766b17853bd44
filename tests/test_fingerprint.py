"""Tests for transaction fingerprints and in-batch duplicate handling."""

from datetime import date
from decimal import Decimal

from household_budget.models import FlagReason, FlagSource, TransactionCandidate, TransactionRecord
from household_budget.processing.fingerprint import (
    assign_fingerprints,
    base_fingerprint,
    canonical_string,
    fingerprint,
    fingerprint_for_record,
    normalize_description,
    recurring_fingerprint,
    rolling_hash,
)
from household_budget.utils.decimal_utils import safe_decimal


def make_candidate(
    description: str = "COFFEE SHOP",
    amount: str = "-4.50",
    day: int = 5,
    currency: str = "USD",
    row_number: int = 1,
) -> TransactionCandidate:
    """Create a test candidate."""
    return TransactionCandidate(
        txn_date=date(2026, 1, day),
        description=description,
        amount=Decimal(amount),
        currency=currency,
        category="Unexpected",
        payer="Together",
        row_number=row_number,
    )


class TestRollingHash:
    """Tests for the 32-bit rolling hash."""

    def test_known_values(self) -> None:
        """Test against hand-computed values."""
        assert rolling_hash("") == 0
        assert rolling_hash("a") == 97
        assert rolling_hash("ab") == 97 * 31 + 98

    def test_hashes_utf16_code_units(self) -> None:
        """Test that astral characters contribute both surrogate halves."""
        assert rolling_hash("\U0001F600") == 0xD83D * 31 + 0xDE00

    def test_wraps_to_32_bits(self) -> None:
        """Test that long input stays within an unsigned 32-bit range."""
        value = rolling_hash("x" * 500)
        assert 0 <= value <= 0xFFFFFFFF


class TestFingerprint:
    """Tests for base fingerprint computation."""

    def test_canonical_string(self) -> None:
        """Test the pipe-separated canonical form."""
        assert (
            canonical_string("t1", "USD", date(2026, 1, 5), Decimal("-4.5"), "  Coffee   Shop ")
            == "t1|USD|2026-01-05|-4.50|coffee shop"
        )

    def test_normalize_description(self) -> None:
        """Test whitespace collapsing and lowercasing."""
        assert normalize_description("  Coffee   SHOP \t Downtown ") == "coffee shop downtown"
        assert normalize_description(None) == ""

    def test_format(self) -> None:
        """Test the fp_<decimal> rendering."""
        value = fingerprint("t1", "USD", date(2026, 1, 5), Decimal("-4.50"), "Coffee")
        assert value.startswith("fp_")
        assert value[3:].isdigit()

    def test_description_normalization_is_equivalent(self) -> None:
        """Test that case and spacing do not change the fingerprint."""
        a = fingerprint("t1", "USD", date(2026, 1, 5), Decimal("-4.50"), "COFFEE  SHOP")
        b = fingerprint("t1", "USD", date(2026, 1, 5), Decimal("-4.50"), " coffee shop ")
        assert a == b

    def test_amount_rounded_to_cents(self) -> None:
        """Test that amounts equal after rounding share a fingerprint."""
        a = fingerprint("t1", "USD", date(2026, 1, 5), Decimal("-4.499"), "Coffee")
        b = fingerprint("t1", "USD", date(2026, 1, 5), Decimal("-4.5"), "Coffee")
        assert a == b

    def test_payload_float_half_cent_rounds_up(self) -> None:
        """Test that a float like 1.005 is rounded on its decimal text."""
        amount = safe_decimal(1.005)
        assert amount == Decimal("1.005")
        assert canonical_string("t1", "USD", date(2026, 1, 5), amount, "Refund").split("|")[3] == "1.01"

    def test_tenant_and_currency_distinguish(self) -> None:
        """Test that the same content for another tenant or currency differs."""
        base = fingerprint("t1", "USD", date(2026, 1, 5), Decimal("-4.50"), "Coffee")
        assert fingerprint("t2", "USD", date(2026, 1, 5), Decimal("-4.50"), "Coffee") != base
        assert fingerprint("t1", "PEN", date(2026, 1, 5), Decimal("-4.50"), "Coffee") != base

    def test_recomputed_from_stored_row(self) -> None:
        """Test that a stored row yields the same base fingerprint."""
        (record,) = assign_fingerprints([make_candidate()], "t1")
        restored = TransactionRecord.from_row(record.to_row())
        assert fingerprint_for_record(restored) == record.fingerprint


class TestSuffixes:
    """Tests for duplicate and recurring fingerprint helpers."""

    def test_base_fingerprint(self) -> None:
        """Test stripping the duplicate suffix."""
        assert base_fingerprint("fp_123_dup2") == "fp_123"
        assert base_fingerprint("fp_123_dup17") == "fp_123"
        assert base_fingerprint("fp_123") == "fp_123"

    def test_recurring_fingerprint(self) -> None:
        """Test the recurring occurrence key."""
        assert recurring_fingerprint("abc", date(2026, 2, 1)) == "recurring_abc_2026-02-01"


class TestAssignFingerprints:
    """Tests for in-batch duplicate suffixing."""

    def test_identical_rows_get_suffixes(self) -> None:
        """Test _dup2, _dup3 for the second and third identical rows."""
        candidates = [
            make_candidate(row_number=1),
            make_candidate(row_number=2),
            make_candidate(row_number=3),
            make_candidate(description="BAKERY", row_number=4),
        ]
        records = assign_fingerprints(candidates, "t1")

        base = records[0].fingerprint
        assert [r.fingerprint for r in records[:3]] == [base, f"{base}_dup2", f"{base}_dup3"]
        assert base_fingerprint(records[3].fingerprint) != base
        assert [r.source_row for r in records] == [1, 2, 3, 4]

    def test_duplicates_flagged_originals_not(self) -> None:
        """Test that only later occurrences are flagged by default."""
        records = assign_fingerprints([make_candidate(), make_candidate()], "t1")

        assert not records[0].is_flagged
        assert records[1].is_flagged
        assert records[1].flag_reason is FlagReason.POSSIBLE_DUPLICATE
        assert records[1].flag_source is FlagSource.IMPORT

    def test_flag_originals(self) -> None:
        """Test that the first occurrence can be flagged too."""
        records = assign_fingerprints(
            [make_candidate(), make_candidate(), make_candidate(description="OTHER")],
            "t1",
            flag_originals=True,
        )
        assert [r.is_flagged for r in records] == [True, True, False]

    def test_three_rows_two_distinct(self) -> None:
        """Test a batch where the last two rows are identical."""
        candidates = [
            make_candidate(description="COFFEE SHOP, DOWNTOWN", amount="-4.50", day=5),
            make_candidate(description="PAYROLL", amount="2000.00", day=6),
            make_candidate(description="PAYROLL", amount="2000.00", day=6),
        ]
        records = assign_fingerprints(candidates, "t1")

        assert len(records) == 3
        assert len({base_fingerprint(r.fingerprint) for r in records}) == 2
        assert records[2].fingerprint == f"{records[1].fingerprint}_dup2"
