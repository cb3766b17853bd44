"""Output writers."""

from household_budget.output.csv_exporter import CSVExporter, export_filename

__all__ = ["CSVExporter", "export_filename"]
