"""Parsers for bank exports and structured transaction payloads."""

from household_budget.parsers.base import BaseParser, ParseResult, read_source
from household_budget.parsers.csv_parser import CSVParser, find_header, split_fields
from household_budget.parsers.detector import FormatDetector, looks_like_json
from household_budget.parsers.formats import (
    AUTO_FORMAT,
    JSON_FORMAT,
    KNOWN_FORMATS,
    AmountLayout,
    BankFormat,
    format_label,
    get_format,
)
from household_budget.parsers.json_parser import JSONParser, load_entries

__all__ = [
    "BaseParser",
    "ParseResult",
    "read_source",
    "CSVParser",
    "JSONParser",
    "split_fields",
    "find_header",
    "load_entries",
    "FormatDetector",
    "looks_like_json",
    "AmountLayout",
    "BankFormat",
    "KNOWN_FORMATS",
    "AUTO_FORMAT",
    "JSON_FORMAT",
    "get_format",
    "format_label",
]
