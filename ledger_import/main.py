"""CLI entry point for bank statement CSV import."""

import functools
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence, Tuple

import click

from ledger_import.config import load_settings
from ledger_import.engine.detector import ColumnDetector
from ledger_import.engine.importer import TransactionImporter
from ledger_import.engine.matcher import DuplicateMatcher
from ledger_import.engine.models import (
    AmountPattern,
    ColumnMapping,
    DetectedColumns,
    DuplicateStatus,
    ImportRow,
    IndicatorAmount,
    SeparateAmounts,
    SingleAmount,
)
from ledger_import.engine.normalizer import AmountNormalizer
from ledger_import.engine.selection import ImportService, dismiss_reconcile
from ledger_import.parsers.csv_parser import CSVParser
from ledger_import.reports.excel_report import ImportReportGenerator
from ledger_import.reports.preview import import_rows_to_frame
from ledger_import.store.client import create_ledger_engine, make_session_factory
from ledger_import.store.models import Base

logger = logging.getLogger(__name__)


def column_index(headers: Sequence[str], name: Optional[str]) -> Optional[int]:
    """
    Resolve a column given by header name (case-insensitive) or 1-based number.

    Raises:
        click.BadParameter: If no such column exists.
    """
    if name is None:
        return None
    wanted = name.strip().lower()
    for idx, header in enumerate(headers):
        if header.strip().lower() == wanted:
            return idx
    if wanted.isdigit() and 1 <= int(wanted) <= len(headers):
        return int(wanted) - 1
    raise click.BadParameter(
        f"Column {name!r} not found. Available columns: {', '.join(headers)}"
    )


def build_mapping(
    headers: Sequence[str],
    detected: DetectedColumns,
    date_col: Optional[str] = None,
    desc_col: Optional[str] = None,
    category_col: Optional[str] = None,
    amount_col: Optional[str] = None,
    debit_col: Optional[str] = None,
    credit_col: Optional[str] = None,
    indicator_col: Optional[str] = None,
    debit_values: Tuple[str, ...] = (),
) -> ColumnMapping:
    """
    Combine detected columns with user overrides into a ColumnMapping.

    Raises:
        click.UsageError: If a required column is still unknown.
    """
    date_idx = column_index(headers, date_col)
    desc_idx = column_index(headers, desc_col)
    category_idx = column_index(headers, category_col)

    if date_idx is None:
        date_idx = detected.date_column
    if desc_idx is None:
        desc_idx = detected.description_column
    if category_idx is None:
        category_idx = detected.category_column

    pattern = _override_pattern(
        headers, amount_col, debit_col, credit_col, indicator_col, debit_values
    ) or detected.amount_pattern

    missing = []
    if date_idx is None:
        missing.append("date (--date-col)")
    if desc_idx is None:
        missing.append("description (--desc-col)")
    if pattern is None:
        missing.append("amount (--amount-col or --debit-col/--credit-col)")
    if missing:
        raise click.UsageError(
            f"Could not detect columns: {', '.join(missing)}. "
            f"Available columns: {', '.join(headers)}"
        )

    return ColumnMapping(
        date_column=date_idx,
        description_column=desc_idx,
        amount_pattern=pattern,
        category_column=category_idx,
    )


def _override_pattern(
    headers: Sequence[str],
    amount_col: Optional[str],
    debit_col: Optional[str],
    credit_col: Optional[str],
    indicator_col: Optional[str],
    debit_values: Tuple[str, ...],
) -> Optional[AmountPattern]:
    if debit_col or credit_col:
        if not (debit_col and credit_col):
            raise click.UsageError("--debit-col and --credit-col must be given together.")
        return SeparateAmounts(
            debit_column=column_index(headers, debit_col),
            credit_column=column_index(headers, credit_col),
        )
    if amount_col and indicator_col:
        values = tuple(v.strip().upper() for v in debit_values) or ColumnDetector.DEBIT_INDICATORS
        return IndicatorAmount(
            amount_column=column_index(headers, amount_col),
            indicator_column=column_index(headers, indicator_col),
            debit_values=values,
        )
    if amount_col:
        return SingleAmount(amount_column=column_index(headers, amount_col))
    if indicator_col:
        raise click.UsageError("--indicator-col requires --amount-col.")
    return None


def import_options(func):
    """Arguments and column overrides shared by preview and import."""
    options = [
        click.option("--date-col", help="Date column (header name or 1-based number)."),
        click.option("--desc-col", help="Description column."),
        click.option("--category-col", help="Category column."),
        click.option("--amount-col", help="Signed amount column, or unsigned with --indicator-col."),
        click.option("--debit-col", help="Debit column (requires --credit-col)."),
        click.option("--credit-col", help="Credit column (requires --debit-col)."),
        click.option("--indicator-col", help="DR/CR indicator column (requires --amount-col)."),
        click.option(
            "--debit-value",
            "debit_values",
            multiple=True,
            help="Indicator value meaning debit (repeatable, default DR/DEBIT/D/DB/-).",
        ),
        click.option("--account", "-a", "account_id", required=True, help="Target account id."),
        click.option("--user", "-u", "user_id", required=True, help="Owner user id."),
        click.argument("csv_file", type=click.Path(exists=True, dir_okay=False)),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def handle_errors(func):
    """Exit 1 on expected pipeline errors and 2 on anything unexpected."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (click.ClickException, click.exceptions.Exit):
            raise
        except FileNotFoundError as e:
            click.echo(f"\n  ERROR: {e}", err=True)
            sys.exit(1)
        except ValueError as e:
            click.echo(f"\n  ERROR: {e}", err=True)
            sys.exit(1)
        except Exception as e:
            logger.exception("Unexpected error during import")
            click.echo(f"\n  UNEXPECTED ERROR: {e}", err=True)
            sys.exit(2)

    return wrapper


def classify_file(ctx: click.Context, csv_file: str, account_id: str, user_id: str, **overrides):
    """Parse, detect, normalize and classify a CSV file."""
    settings = ctx.obj["settings"]

    click.echo(f"\n  Parsing {csv_file}...")
    parsed = CSVParser().parse(Path(csv_file))
    click.echo(f"   Found {len(parsed.rows)} data rows, columns: {', '.join(parsed.headers)}")

    detected = ColumnDetector().detect_columns(parsed.headers, parsed.rows[: settings.sample_rows])
    mapping = build_mapping(parsed.headers, detected, **overrides)
    click.echo(f"   Amount pattern: {type(mapping.amount_pattern).__name__}")

    transactions = AmountNormalizer().normalize(parsed.rows, mapping)
    skipped = len(parsed.rows) - len(transactions)
    click.echo(f"   Normalized {len(transactions)} transactions ({skipped} rows skipped)")

    rows = DuplicateMatcher(ctx.obj["session_factory"]).detect_duplicates(
        transactions, account_id, user_id
    )
    return rows, skipped


def echo_rows(rows: Sequence[ImportRow]) -> None:
    frame = import_rows_to_frame(list(rows))
    if frame.empty:
        click.echo("\n  No transactions to show.")
        return
    click.echo("")
    click.echo(frame.to_string(index=False))


def echo_counts(rows: Sequence[ImportRow]) -> None:
    click.echo("\n" + "=" * 60)
    click.echo("  IMPORT PREVIEW")
    click.echo("=" * 60)
    for status in DuplicateStatus:
        count = sum(1 for r in rows if r.status == status)
        click.echo(f"  {status.value.capitalize() + ':':<22}{count}")
    click.echo(f"  {'Selected:':<22}{sum(1 for r in rows if r.selected)} of {len(rows)}")
    click.echo("=" * 60)


@click.group()
@click.option(
    "--database-url",
    envvar="DATABASE_URL",
    help="SQLAlchemy database URL (default: $DATABASE_URL or sqlite:///ledger.db).",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level (default: $LEDGER_IMPORT_LOG_LEVEL or INFO).",
)
@click.pass_context
def cli(ctx: click.Context, database_url: Optional[str], log_level: Optional[str]) -> None:
    """
    Ledger CSV Import

    Imports bank statement CSV files into a ledger account, flagging
    duplicates and reconciling bill, loan and credit card payments that
    were already recorded.

    Example:
        ledger-import preview statement.csv --account ACC --user USER
    """
    settings = load_settings()
    if database_url:
        settings = replace(settings, database_url=database_url)

    logging.basicConfig(
        level=(log_level or settings.log_level).upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    engine = create_ledger_engine(settings.database_url)
    ctx.obj = {
        "settings": settings,
        "engine": engine,
        "session_factory": make_session_factory(engine),
    }
    ctx.call_on_close(engine.dispose)


@cli.command("init-db")
@click.pass_context
@handle_errors
def init_db(ctx: click.Context) -> None:
    """Create the ledger tables if they don't exist."""
    Base.metadata.create_all(ctx.obj["engine"])
    click.echo("  Database schema is ready.")


@cli.command()
@import_options
@click.option("--report", "-r", type=click.Path(dir_okay=False), help="Write an Excel review workbook.")
@click.option("--export", "-e", type=click.Path(dir_okay=False), help="Write the preview as CSV.")
@click.pass_context
@handle_errors
def preview(
    ctx: click.Context,
    csv_file: str,
    account_id: str,
    user_id: str,
    report: Optional[str],
    export: Optional[str],
    **overrides,
) -> None:
    """Show how each row of CSV_FILE would be imported, without writing."""
    rows, _ = classify_file(ctx, csv_file, account_id, user_id, **overrides)

    echo_rows(rows)
    echo_counts(rows)

    if export:
        import_rows_to_frame(rows).to_csv(export, index=False)
        click.echo(f"\n  Preview exported to: {Path(export).absolute()}")
    if report:
        output_path = ImportReportGenerator().generate(rows, report)
        click.echo(f"\n  Report saved to: {output_path.absolute()}")


@cli.command("import")
@import_options
@click.option("--include-review", is_flag=True, help="Also import rows flagged for review.")
@click.option("--no-reconcile", is_flag=True, help="Import reconcile matches as new rows instead.")
@click.option("--report", "-r", type=click.Path(dir_okay=False), help="Write an Excel workbook.")
@click.pass_context
@handle_errors
def import_command(
    ctx: click.Context,
    csv_file: str,
    account_id: str,
    user_id: str,
    include_review: bool,
    no_reconcile: bool,
    report: Optional[str],
    **overrides,
) -> None:
    """Import CSV_FILE into an account."""
    rows, skipped = classify_file(ctx, csv_file, account_id, user_id, **overrides)

    adjusted = []
    for row in rows:
        if no_reconcile and row.status == DuplicateStatus.RECONCILE:
            row = dismiss_reconcile(row)
        if include_review and row.status == DuplicateStatus.REVIEW:
            row = replace(row, selected=True)
        adjusted.append(row)

    echo_counts(adjusted)

    service = ImportService(TransactionImporter(ctx.obj["session_factory"]))
    result = service.import_rows(adjusted, account_id, user_id)
    not_imported = sum(1 for r in adjusted if not r.selected) + skipped

    click.echo("\n" + "=" * 60)
    click.echo("  IMPORT SUMMARY")
    click.echo("=" * 60)
    click.echo(f"  Imported:             {result.imported}")
    click.echo(f"  Reconciled:           {result.reconciled}")
    click.echo(f"  Not Imported:         {not_imported}")
    click.echo(f"  New Balance:          {result.new_balance:,.2f}")
    click.echo("=" * 60)

    if report:
        output_path = ImportReportGenerator().generate(adjusted, report, result)
        click.echo(f"\n  Report saved to: {output_path.absolute()}")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
