"""Function-style entry points for the import pipeline.

Each function wraps the class that implements it so callers (a web handler,
a script, the CLI) can drive the pipeline without wiring objects together.
Store-backed functions take an optional ``session_factory``; without one they
use the engine configured from ``DATABASE_URL``.
"""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy.orm import Session, sessionmaker

from ledger_import.engine.detector import ColumnDetector
from ledger_import.engine.importer import TransactionImporter
from ledger_import.engine.matcher import DuplicateMatcher
from ledger_import.engine.models import (
    AmountPattern,
    ColumnMapping,
    DetectedColumns,
    ImportResult,
    ImportRow,
    NormalizedTransaction,
    ParsedCSV,
    ReconcileItem,
)
from ledger_import.engine.normalizer import AmountNormalizer
from ledger_import.parsers.csv_parser import CSVParser


def parse_csv(content: str) -> ParsedCSV:
    return CSVParser().parse_content(content)


def detect_columns(headers: Sequence[str], sample_rows: Sequence[Sequence[str]]) -> DetectedColumns:
    return ColumnDetector().detect_columns(headers, sample_rows)


def detect_amount_pattern(
    headers: Sequence[str], sample_rows: Sequence[Sequence[str]]
) -> AmountPattern | None:
    return ColumnDetector().detect_amount_pattern(headers, sample_rows)


def normalize_amounts(
    rows: Sequence[Sequence[str]], mapping: ColumnMapping
) -> list[NormalizedTransaction]:
    return AmountNormalizer().normalize(rows, mapping)


def detect_duplicates(
    transactions: Sequence[NormalizedTransaction],
    account_id: str,
    user_id: str | None,
    *,
    session_factory: sessionmaker[Session] | None = None,
) -> list[ImportRow]:
    return DuplicateMatcher(session_factory).detect_duplicates(transactions, account_id, user_id)


def import_transactions(
    transactions: Sequence[NormalizedTransaction],
    account_id: str,
    user_id: str | None,
    *,
    session_factory: sessionmaker[Session] | None = None,
) -> ImportResult:
    return TransactionImporter(session_factory).import_transactions(
        transactions, account_id, user_id
    )


def import_and_reconcile(
    new_transactions: Sequence[NormalizedTransaction],
    reconcile_items: Sequence[ReconcileItem],
    account_id: str,
    user_id: str | None,
    *,
    session_factory: sessionmaker[Session] | None = None,
) -> ImportResult:
    return TransactionImporter(session_factory).import_and_reconcile(
        new_transactions, reconcile_items, account_id, user_id
    )


__all__ = [
    "detect_amount_pattern",
    "detect_columns",
    "detect_duplicates",
    "import_and_reconcile",
    "import_transactions",
    "normalize_amounts",
    "parse_csv",
]
