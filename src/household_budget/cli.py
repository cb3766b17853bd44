"""Command-line interface for the household budget importer."""

import argparse
import asyncio
import json
import os
import sys
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from household_budget import __version__
from household_budget.config import Config, load_config, load_limits, save_limits
from household_budget.errors import ConfigError, StorageError
from household_budget.models.limits import CategoryLimit, FlagMode, StatusLevel
from household_budget.models.report import ImportReport
from household_budget.utils.currency import format_currency_amount
from household_budget.utils.logging_config import get_logger, setup_logging

# Load environment variables from .env file (if it exists)
load_dotenv()

console = Console()
logger = get_logger(__name__)

DEFAULT_STORE_FILE = "household_budget_store.json"

# Exit codes
EXIT_OK = 0
EXIT_ABORTED = 1
EXIT_PARTIAL = 2

_STATUS_STYLES = {
    StatusLevel.NORMAL: "green",
    StatusLevel.APPROACHING: "yellow",
    StatusLevel.EXCEEDED: "red",
}


def default_config_dir() -> Path:
    return Path(os.environ.get("HOUSEHOLD_BUDGET_CONFIG_DIR", "config"))


def default_store_path() -> Path:
    return Path(os.environ.get("HOUSEHOLD_BUDGET_STORE", DEFAULT_STORE_FILE))


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="household-budget",
        description="Import bank exports into a household budget and flag transactions for review",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s import statement.csv --format pnc --tenant home
  %(prog)s import card.csv --format interbank --tenant home --year 2026 --dry-run
  %(prog)s limits --tenant home --month 2026-01
  %(prog)s export --tenant home --month 2026-01 --currency USD
  %(prog)s set-limit Food 800 --mode crossing
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "--config-dir",
        type=Path,
        default=None,
        help="Base config directory (default: $HOUSEHOLD_BUDGET_CONFIG_DIR or ./config)",
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to settings.yaml (default: <config-dir>/settings.yaml)",
    )

    parser.add_argument(
        "--limits",
        type=Path,
        default=None,
        help="Path to limits.yaml (default: <config-dir>/limits.yaml)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase output verbosity (-v, -vv)",
    )

    parser.add_argument(
        "--validate-only",
        action="store_true",
        help="Validate configuration files only",
    )

    subparsers = parser.add_subparsers(dest="command")

    # import
    import_parser = subparsers.add_parser("import", help="Import a bank export or JSON payload")
    import_parser.add_argument("file", type=Path, help="Source file (CSV export or JSON)")
    import_parser.add_argument(
        "--format",
        dest="format_tag",
        default="auto",
        help="Source format: interbank, pnc, pnc_checking, bcp, bbva, scotiabank, other, json, auto",
    )
    import_parser.add_argument("--tenant", required=True, help="Household identifier")
    import_parser.add_argument("--payer", default=None, help="Payer for imported rows")
    import_parser.add_argument("--currency", default=None, help="Currency override (USD, PEN)")
    import_parser.add_argument("--year", type=int, default=None, help="Year for dates without one")
    import_parser.add_argument("--store", type=Path, default=None, help="Store snapshot file")
    import_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse and check for duplicates without writing anything",
    )
    import_parser.add_argument("--json", action="store_true", help="Print the report as JSON")

    # limits
    limits_parser = subparsers.add_parser("limits", help="Show category spending against limits")
    limits_parser.add_argument("--tenant", required=True, help="Household identifier")
    limits_parser.add_argument("--month", required=True, help="Month (YYYY-MM)")
    limits_parser.add_argument("--store", type=Path, default=None, help="Store snapshot file")

    # export
    export_parser = subparsers.add_parser("export", help="Export a month of transactions to CSV")
    export_parser.add_argument("--tenant", required=True, help="Household identifier")
    export_parser.add_argument("--month", required=True, help="Month (YYYY-MM)")
    export_parser.add_argument("--currency", required=True, help="Currency (USD, PEN)")
    export_parser.add_argument("--store", type=Path, default=None, help="Store snapshot file")
    export_parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("."),
        help="Directory for the CSV file (default: current directory)",
    )

    # set-limit
    set_limit_parser = subparsers.add_parser("set-limit", help="Set a category's monthly limit")
    set_limit_parser.add_argument("category", help="Category name")
    set_limit_parser.add_argument("amount", help="Limit in the reference currency (0 removes it)")
    set_limit_parser.add_argument(
        "--mode",
        choices=[m.value for m in FlagMode],
        default=FlagMode.OFF.value,
        help="Flag mode once the limit is passed (default: off)",
    )

    return parser


def get_log_level(verbosity: int) -> str:
    """Convert verbosity count to log level.

    Args:
        verbosity: Number of -v flags.

    Returns:
        Log level string.
    """
    if verbosity >= 2:
        return "DEBUG"
    elif verbosity >= 1:
        return "INFO"
    else:
        return "WARNING"


def exit_code_for(report: ImportReport) -> int:
    """Map an import report to a process exit code."""
    if report.aborted:
        return EXIT_ABORTED
    if report.failed > 0:
        return EXIT_PARTIAL
    return EXIT_OK


def validate_config(args: argparse.Namespace) -> int:
    """Validate configuration files.

    Args:
        args: Parsed command-line arguments.

    Returns:
        0 if valid, 1 if errors found.
    """
    console.print("[bold]Validating configuration files...[/bold]\n")

    errors = []
    warnings = []

    config_dir = args.config_dir or default_config_dir()
    if not config_dir.exists():
        warnings.append(f"Config directory not found: {config_dir}")

    settings_path = args.config or (config_dir / "settings.yaml")
    if settings_path.exists():
        console.print(f"[green]✓[/green] Settings: {settings_path}")
    else:
        warnings.append(f"Settings file not found: {settings_path}")

    limits_path = args.limits or (config_dir / "limits.yaml")
    if limits_path.exists():
        console.print(f"[green]✓[/green] Limits: {limits_path}")
    else:
        warnings.append(f"Limits file not found: {limits_path}")

    try:
        config = load_config(
            settings_path=args.config,
            limits_path=args.limits,
            config_dir=config_dir,
        )
        active = sum(1 for limit in config.category_limits.values() if limit.is_active)
        console.print("\n[green]✓[/green] Configuration loaded successfully")
        console.print(f"  - {len(config.category_limits)} category limits ({active} flagging)")
        console.print(
            f"  - Reference currency {config.currency.reference}, "
            f"rate {config.currency.conversion_rate} {config.currency.local}"
        )
        console.print(f"  - Chunk size {config.import_settings.chunk_size}")
    except (ConfigError, ValueError) as e:
        errors.append(f"Failed to load configuration: {e}")

    if warnings:
        console.print("\n[yellow]Warnings:[/yellow]")
        for w in warnings:
            console.print(f"  - {w}")

    if errors:
        console.print("\n[red]Errors:[/red]")
        for err in errors:
            console.print(f"  - {err}")
        return 1

    console.print("\n[green]Configuration is valid.[/green]")
    return 0


def display_report(report: ImportReport) -> None:
    """Display an import report.

    Args:
        report: Report returned by the orchestrator.
    """
    if report.aborted:
        console.print(f"\n[red]Import aborted: {report.error}[/red]")
        return

    title = "Dry Run Summary" if report.dry_run else "Import Summary"
    console.print(f"\n[bold]{title}[/bold]")
    console.print(f"  Format: {report.format_tag}")
    if report.batch_id:
        console.print(f"  Batch: {report.batch_id} (staged)")
    console.print(f"  Parsed: {report.total_parsed}")
    if report.dry_run:
        console.print(f"  Would insert: {len(report.preview)}")
    else:
        console.print(f"  Inserted: {report.inserted}")
        console.print(f"  Failed: {report.failed}")
    console.print(
        f"  Skipped: {report.skipped_pending} pending + {report.skipped_duplicates} already imported"
    )
    console.print(f"  In-file duplicates flagged: {report.in_batch_duplicates}")
    console.print(f"  Income: {report.income_count} txns, {report.income_total:.2f}")
    console.print(f"  Expenses: {report.expense_count} txns, {report.expense_total:.2f}")
    console.print(f"  Flagged: {len(report.flagged)}")

    if report.flagged:
        table = Table(title="Flagged Transactions")
        table.add_column("Source")
        table.add_column("Date")
        table.add_column("Amount", justify="right")
        table.add_column("Reason")
        table.add_column("Description")
        for record in report.flagged:
            table.add_row(
                record.flag_source.value if record.flag_source else "?",
                record.txn_date.isoformat(),
                format_currency_amount(record.amount, record.currency),
                record.flag_reason.value if record.flag_reason else "",
                record.description[:45],
            )
        console.print(table)

    if report.unparseable:
        console.print(f"\n[yellow]Unparseable rows ({len(report.unparseable)}), enter manually:[/yellow]")
        for row in report.unparseable[:10]:
            console.print(f"  - Row {row.row_number} ({row.reason}): {row.raw_data}")
        if len(report.unparseable) > 10:
            console.print(f"  ... and {len(report.unparseable) - 10} more")

    if report.amount_warnings:
        rows = ", ".join(str(n) for n in report.amount_warnings[:10])
        console.print(f"\n[yellow]Amounts set to 0 (unparseable) on rows: {rows}[/yellow]")

    if report.error:
        console.print(f"\n[red]{report.error}[/red]")


def import_command(args: argparse.Namespace, config: Config) -> int:
    """Run an import from the command line.

    Args:
        args: Parsed command-line arguments.
        config: Loaded configuration.

    Returns:
        Exit code.
    """
    from household_budget.processing.orchestrator import ImportOrchestrator
    from household_budget.storage.memory import InMemoryRowStore

    if not args.file.exists():
        console.print(f"[red]Error: File not found: {args.file}[/red]")
        return EXIT_ABORTED

    store_path = args.store or default_store_path()
    try:
        store = InMemoryRowStore.load(store_path)
    except StorageError as e:
        console.print(f"[red]Error: {e}[/red]")
        return EXIT_ABORTED

    orchestrator = ImportOrchestrator(store, config)
    operation = orchestrator.analyze if args.dry_run else orchestrator.run

    with console.status(f"Importing {args.file.name}..."):
        report = asyncio.run(
            operation(
                args.file,
                args.format_tag,
                args.tenant,
                payer=args.payer,
                currency=args.currency,
                year=args.year,
            )
        )

    if not args.dry_run and report.inserted > 0:
        store.save(store_path)

    if args.json:
        console.print_json(json.dumps(report.to_dict()))
    else:
        display_report(report)

    return exit_code_for(report)


def limits_command(args: argparse.Namespace, config: Config) -> int:
    """Show category spending against limits for a month.

    Args:
        args: Parsed command-line arguments.
        config: Loaded configuration.

    Returns:
        Exit code.
    """
    from household_budget.processing.category_limits import category_status
    from household_budget.storage.memory import InMemoryRowStore
    from household_budget.storage.queries import fetch_month_records

    try:
        store = InMemoryRowStore.load(args.store or default_store_path())
        records = asyncio.run(fetch_month_records(store, args.tenant, args.month))
    except (StorageError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    statuses = category_status(
        records,
        config.category_limits,
        config.currency.conversion_rate,
        config.currency.reference,
    )
    if not statuses:
        console.print("[yellow]No category limits configured.[/yellow]")
        return 0

    reference = config.currency.reference
    table = Table(title=f"Category limits {args.month} ({reference})")
    table.add_column("Category")
    table.add_column("Spent", justify="right")
    table.add_column("Limit", justify="right")
    table.add_column("Used", justify="right")
    table.add_column("Remaining", justify="right")
    table.add_column("Flag mode")
    for category, status in sorted(statuses.items()):
        style = _STATUS_STYLES[status.status]
        table.add_row(
            category,
            format_currency_amount(status.spent, reference),
            format_currency_amount(status.limit, reference),
            f"[{style}]{status.percentage:.1f}%[/{style}]",
            format_currency_amount(status.remaining, reference),
            status.flag_mode.value,
        )
    console.print(table)
    return 0


def export_command(args: argparse.Namespace) -> int:
    """Export a month of transactions to CSV.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Exit code.
    """
    from household_budget.output.csv_exporter import CSVExporter
    from household_budget.storage.memory import InMemoryRowStore
    from household_budget.storage.queries import fetch_month_records

    try:
        store = InMemoryRowStore.load(args.store or default_store_path())
        records = asyncio.run(
            fetch_month_records(store, args.tenant, args.month, currency=args.currency)
        )
    except (StorageError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    output_path = CSVExporter().export_month(args.output_dir, records, args.month, args.currency)
    console.print(f"[green]Exported {len(records)} transactions to {output_path}[/green]")
    return 0


def set_limit_command(
    category: str,
    limit_amount: str,
    flag_mode: str,
    limits_path: Optional[Path],
    config_dir: Path,
) -> int:
    """Set (or remove) a category limit in limits.yaml.

    Args:
        category: Category name.
        limit_amount: Limit as a decimal string; 0 removes the limit.
        flag_mode: One of the FlagMode values.
        limits_path: Path to limits.yaml (None for <config_dir>/limits.yaml).
        config_dir: Config directory.

    Returns:
        Exit code.
    """
    try:
        amount = Decimal(limit_amount)
    except InvalidOperation:
        console.print(f"[red]Error: Invalid limit amount: {limit_amount}[/red]")
        return 1
    if not amount.is_finite() or amount < 0:
        console.print(f"[red]Error: Limit must be a non-negative number, got {limit_amount}[/red]")
        return 1

    try:
        mode = FlagMode(flag_mode)
    except ValueError:
        console.print(f"[red]Error: Unknown flag mode: {flag_mode}[/red]")
        return 1

    path = limits_path or (config_dir / "limits.yaml")
    try:
        limits = load_limits(path) if path.exists() else {}
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    if amount == 0:
        limits.pop(category, None)
        console.print(f"[green]Removed limit for {category}[/green]")
    else:
        limits[category] = CategoryLimit(limit=amount, flag_mode=mode)
        console.print(f"[green]Set {category} limit to {amount} ({mode.value})[/green]")

    save_limits(path, limits)
    return 0


def main() -> int:
    """Main entry point for the CLI.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = create_parser()
    args = parser.parse_args()

    config_dir = args.config_dir or default_config_dir()

    log_level = get_log_level(args.verbose)
    setup_logging(level=log_level, console_output=args.verbose > 0)

    if args.validate_only:
        return validate_config(args)

    if args.command is None:
        parser.print_usage()
        return 1

    if args.command == "set-limit":
        return set_limit_command(args.category, args.amount, args.mode, args.limits, config_dir)

    try:
        config = load_config(
            settings_path=args.config,
            limits_path=args.limits,
            config_dir=config_dir,
        )
    except (ConfigError, FileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        console.print("Run with --validate-only to check configuration files.")
        return 1

    # Without -v the settings file decides where the log goes
    if args.verbose == 0:
        setup_logging(level=config.logging.level, log_file=config.logging.file, console_output=False)

    if args.command == "import":
        return import_command(args, config)
    if args.command == "limits":
        return limits_command(args, config)
    if args.command == "export":
        return export_command(args)

    parser.print_usage()
    return 1


if __name__ == "__main__":
    sys.exit(main())
