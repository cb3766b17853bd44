"""Tests for the tabular bank export parser."""

from datetime import date
from decimal import Decimal

import pytest

from household_budget.errors import FormatError
from household_budget.parsers import KNOWN_FORMATS, CSVParser, FormatDetector, split_fields

PNC_CSV = """Date,Description,Withdrawals,Deposits,Balance
01/05/2026,"COFFEE SHOP, DOWNTOWN",4.50,,995.50
01/06/2026,PAYROLL,,2000.00,2995.50
01/06/2026,PAYROLL,,2000.00,4995.50
"""

PNC_CHECKING_CSV = """Transaction Date,Transaction Description,Amount
PENDING,GAS STATION,-40.00
2026-01-10,GROCERY STORE,-82.15
2026-01-11,REFUND,+12.00
"""

INTERBANK_CSV = """Fecha,Comercio,S/,US$
05-Ene,PLAZA VEA,150.00,
07-Ene,NETFLIX.COM,,15.99
"""


def make_parser(tag: str, **kwargs: object) -> CSVParser:
    """Create a parser for a registered format."""
    return CSVParser(KNOWN_FORMATS[tag], **kwargs)


class TestSplitFields:
    """Tests for the quote-toggle field splitter."""

    def test_plain_fields_are_trimmed(self) -> None:
        """Test that whitespace around fields is removed."""
        assert split_fields(" a , b ,c") == ["a", "b", "c"]

    def test_quoted_field_keeps_separator(self) -> None:
        """Test that a comma inside quotes does not split the field."""
        assert split_fields('a,"b, c",d') == ["a", "b, c", "d"]

    def test_empty_trailing_field(self) -> None:
        """Test that a trailing separator yields an empty last field."""
        assert split_fields("a,b,") == ["a", "b", ""]

    def test_escaped_quotes_are_not_supported(self) -> None:
        """Test that doubled quotes toggle state and disappear."""
        assert split_fields('"He said ""hi""",x') == ["He said hi", "x"]


class TestCSVParser:
    """Tests for CSVParser row handling."""

    def test_split_withdrawal_deposit_columns(self) -> None:
        """Test PNC rows: withdrawals negative, deposits positive."""
        result = make_parser("pnc").parse(PNC_CSV)

        assert result.format_tag == "pnc"
        assert len(result.candidates) == 3
        coffee, pay1, pay2 = result.candidates
        assert coffee.amount == Decimal("-4.50")
        assert coffee.description == "COFFEE SHOP, DOWNTOWN"
        assert coffee.txn_date == date(2026, 1, 5)
        assert coffee.currency == "USD"
        assert pay1.amount == Decimal("2000.00")
        assert pay1.txn_date == pay2.txn_date

    def test_defaults_applied(self) -> None:
        """Test that default category and payer are set on every row."""
        result = make_parser("pnc").parse(PNC_CSV, payer="Alex")
        assert {c.category for c in result.candidates} == {"Unexpected"}
        assert {c.payer for c in result.candidates} == {"Alex"}

    def test_raw_rows_kept_for_audit(self) -> None:
        """Test that original cell values are kept per row."""
        result = make_parser("pnc").parse(PNC_CSV)
        assert len(result.raw_rows) == 3
        assert result.raw_rows[0]["Description"] == "COFFEE SHOP, DOWNTOWN"
        assert result.candidates[0].raw_data == result.raw_rows[0]

    def test_row_numbers_are_one_based(self) -> None:
        """Test that data rows are numbered from 1, header excluded."""
        result = make_parser("pnc").parse(PNC_CSV)
        assert [c.row_number for c in result.candidates] == [1, 2, 3]

    def test_pending_rows_counted_not_parsed(self) -> None:
        """Test that a pending marker skips the row and increments the counter."""
        result = make_parser("pnc_checking").parse(PNC_CHECKING_CSV)

        assert result.pending_count == 1
        assert [c.description for c in result.candidates] == ["GROCERY STORE", "REFUND"]
        assert result.candidates[0].amount == Decimal("-82.15")
        assert result.candidates[1].amount == Decimal("12.00")
        assert not result.unparseable
        assert len(result.raw_rows) == 3

    def test_pending_marker_is_case_insensitive(self) -> None:
        """Test that a lowercase pending marker is recognized."""
        text = "Transaction Date,Transaction Description,Amount\npending,X,-1.00\n"
        result = make_parser("pnc_checking").parse(text)
        assert result.pending_count == 1
        assert result.candidates == []

    def test_dual_currency_columns(self) -> None:
        """Test Interbank rows pick the currency of the non-empty column."""
        result = make_parser("interbank").parse(INTERBANK_CSV, year=2026)

        plaza, netflix = result.candidates
        assert plaza.txn_date == date(2026, 1, 5)
        assert plaza.amount == Decimal("-150.00")
        assert plaza.currency == "PEN"
        assert netflix.txn_date == date(2026, 1, 7)
        assert netflix.amount == Decimal("-15.99")
        assert netflix.currency == "USD"

    def test_day_first_dates_and_thousands(self) -> None:
        """Test BCP day-first dates and quoted thousands separators."""
        text = 'Fecha,Descripcion,Importe\n15/01/2026,SUPERMERCADO,"-1,250.50"\n'
        result = make_parser("bcp").parse(text)

        (candidate,) = result.candidates
        assert candidate.txn_date == date(2026, 1, 15)
        assert candidate.amount == Decimal("-1250.50")
        assert candidate.currency == "PEN"

    def test_currency_override(self) -> None:
        """Test that an explicit currency replaces the format default."""
        result = make_parser("pnc").parse(PNC_CSV, currency="pen")
        assert {c.currency for c in result.candidates} == {"PEN"}

    def test_preamble_lines_skipped(self) -> None:
        """Test that statement lines above the header are ignored."""
        text = (
            "Account Number: ****1234\n"
            "Statement Period: 01/01/2026 - 01/31/2026\n"
            "\n"
            "Date,Description,Amount\n"
            "01/03/2026,BOOKSTORE,-25.00\n"
        )
        result = make_parser("other").parse(text)

        assert len(result.candidates) == 1
        assert result.candidates[0].description == "BOOKSTORE"

    def test_header_match_is_case_insensitive(self) -> None:
        """Test that header names match regardless of case."""
        text = "DATE,DESCRIPTION,AMOUNT\n01/03/2026,BOOKSTORE,-25.00\n"
        assert len(make_parser("other").parse(text).candidates) == 1

    def test_missing_columns_raise_format_error(self) -> None:
        """Test that a header without the required columns aborts parsing."""
        with pytest.raises(FormatError) as exc_info:
            make_parser("bcp").parse(PNC_CSV)

        assert exc_info.value.format_tag == "bcp"
        assert exc_info.value.missing_columns == ["Fecha", "Descripcion", "Importe"]

    def test_invalid_and_missing_dates_are_unparseable(self) -> None:
        """Test that bad dates skip the row and are reported."""
        text = (
            "Date,Description,Amount\n"
            "13/45/2026,BAD DATE,-1.00\n"
            ",NO DATE,-2.00\n"
            "01/04/2026,GOOD,-3.00\n"
        )
        result = make_parser("other").parse(text)

        assert [c.description for c in result.candidates] == ["GOOD"]
        assert [(u.row_number, u.reason) for u in result.unparseable] == [
            (1, "invalid_date"),
            (2, "missing_date"),
        ]
        assert "BAD DATE" in result.unparseable[0].raw_data

    def test_unparseable_amount_defaults_to_zero(self) -> None:
        """Test lenient mode keeps the row with a zero amount and a warning."""
        text = "Date,Description,Amount\n01/03/2026,ODD,abc\n"
        result = make_parser("other").parse(text)

        assert result.candidates[0].amount == Decimal("0")
        assert result.amount_warnings == [1]

    def test_unparseable_amount_rejected_in_strict_mode(self) -> None:
        """Test strict mode reports the row instead of zeroing it."""
        text = "Date,Description,Amount\n01/03/2026,ODD,abc\n"
        result = make_parser("other", strict=True).parse(text)

        assert result.candidates == []
        assert result.unparseable[0].reason == "invalid_amount"

    def test_blank_lines_ignored(self) -> None:
        """Test that blank lines between rows are skipped."""
        text = "Date,Description,Amount\n\n01/03/2026,A,-1.00\n   \n01/04/2026,B,-2.00\n"
        result = make_parser("other").parse(text)
        assert [c.row_number for c in result.candidates] == [1, 2]


class TestFormatDetector:
    """Tests for format detection and parser selection."""

    def test_detects_specific_format_first(self) -> None:
        """Test that PNC checking is preferred over the generic layout."""
        detector = FormatDetector()
        assert detector.detect_format(PNC_CHECKING_CSV) == "pnc_checking"
        assert detector.detect_format(PNC_CSV) == "pnc"
        assert detector.detect_format(INTERBANK_CSV) == "interbank"

    def test_detects_json(self) -> None:
        """Test that bracketed payloads are treated as JSON."""
        detector = FormatDetector()
        assert detector.detect_format('  [{"date": "2026-01-01"}]') == "json"
        assert detector.detect_format([]) == "json"

    def test_auto_parse(self) -> None:
        """Test parsing with the auto tag."""
        result = FormatDetector().parse(PNC_CSV, "auto")
        assert result.format_tag == "pnc"
        assert len(result.candidates) == 3

    def test_undetectable_source_raises(self) -> None:
        """Test that auto detection failure is a FormatError."""
        with pytest.raises(FormatError, match="Could not detect"):
            FormatDetector().parse("foo,bar\n1,2\n", "auto")

    def test_unknown_tag_raises(self) -> None:
        """Test that an unregistered tag is a FormatError."""
        with pytest.raises(FormatError, match="Unknown format"):
            FormatDetector().get_parser("chase")

    def test_parse_file_sets_path_on_error(self, tmp_path) -> None:
        """Test that file parsing errors carry the file path."""
        path = tmp_path / "statement.csv"
        path.write_text(PNC_CSV, encoding="utf-8")

        with pytest.raises(FormatError) as exc_info:
            FormatDetector().parse_file(path, "bcp")
        assert exc_info.value.file_path == path

    def test_parse_file_strips_bom(self, tmp_path) -> None:
        """Test that a UTF-8 byte order mark does not break header matching."""
        path = tmp_path / "statement.csv"
        path.write_bytes(("\ufeff" + PNC_CSV).encode("utf-8"))

        result = FormatDetector().parse_file(path, "pnc")
        assert len(result.candidates) == 3
