"""CSV export of a month's transactions."""

import csv
from pathlib import Path

from household_budget.models.transaction import TransactionRecord
from household_budget.utils.decimal_utils import format_amount
from household_budget.utils.logging_config import get_logger
from household_budget.utils.sanitize import safe_filename_part, sanitize_for_csv

logger = get_logger(__name__)

DEFAULT_APP_NAME = "household-budget"

EXPORT_COLUMNS = [
    "txn_date",
    "description",
    "amount",
    "currency",
    "category",
    "payer",
    "is_flagged",
    "flag_reason",
    "source",
]


def export_filename(month: str, currency: str, app_name: str = DEFAULT_APP_NAME) -> str:
    """Build the export file name, e.g. ``household-budget_2026-01_USD.csv``.

    Args:
        month: Month as ``YYYY-MM``.
        currency: Currency code.
        app_name: Application name prefix.

    Returns:
        File name.
    """
    parts = [app_name, month, currency]
    return "_".join(safe_filename_part(p) for p in parts) + ".csv"


class CSVExporter:
    """Writes transactions to a CSV file for spreadsheet import."""

    def __init__(self, app_name: str = DEFAULT_APP_NAME):
        """Initialize CSV exporter.

        Args:
            app_name: Prefix for generated file names.
        """
        self.app_name = app_name

    def export_month(
        self,
        output_dir: Path,
        records: list[TransactionRecord],
        month: str,
        currency: str,
    ) -> Path:
        """Export one month of transactions in one currency.

        Args:
            output_dir: Directory to write into (created if missing).
            records: Transactions to write, in the order given.
            month: Month as ``YYYY-MM``.
            currency: Currency code used in the file name.

        Returns:
            Path to the created file.
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        output_path = output_dir / export_filename(month, currency, self.app_name)
        self.write(output_path, records)
        return output_path

    def write(self, output_path: Path, records: list[TransactionRecord]) -> None:
        """Write records to a CSV file.

        Args:
            output_path: File to create or overwrite.
            records: Transactions to write.
        """
        with open(output_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(EXPORT_COLUMNS)
            for record in records:
                writer.writerow(
                    [
                        record.txn_date.isoformat(),
                        sanitize_for_csv(record.description),
                        format_amount(record.amount),
                        record.currency,
                        sanitize_for_csv(record.category),
                        sanitize_for_csv(record.payer),
                        "true" if record.is_flagged else "false",
                        record.flag_reason.value if record.flag_reason else "",
                        record.source,
                    ]
                )

        logger.info(f"Exported {len(records)} transactions to {output_path}")
