"""Convert mapped CSV rows into signed transaction candidates."""

import logging
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Sequence

from ledger_import.engine.models import (
    AmountPattern,
    ColumnMapping,
    IndicatorAmount,
    NormalizedTransaction,
    SeparateAmounts,
    SingleAmount,
    to_cents,
)
from ledger_import.parsers.csv_parser import cell

logger = logging.getLogger(__name__)

ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
LONG_YEAR_DATE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$")
SHORT_YEAR_DATE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{2})$")
NUMBER = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
STRIP_CHARS = re.compile(r"[$,\s]")


class AmountNormalizer:
    """
    Normalize CSV rows into NormalizedTransaction objects.

    Negative amounts are debits (money out), positive amounts are credits.
    Rows with a blank date or description, an unparseable date, or a
    missing/zero amount are skipped rather than failing the batch.
    """

    def normalize(
        self, rows: Sequence[Sequence[str]], mapping: ColumnMapping
    ) -> List[NormalizedTransaction]:
        """
        Apply a column mapping to every row.

        Args:
            rows: Parsed CSV data rows.
            mapping: Confirmed column mapping with its amount pattern.

        Returns:
            List of normalized transactions, in input order.
        """
        transactions: List[NormalizedTransaction] = []

        for idx, row in enumerate(rows):
            try:
                transactions.append(self._convert_row(row, mapping))
            except (ValueError, InvalidOperation) as e:
                # InvalidOperation: amount too large to quantize to cents
                logger.debug("Skipping row %s: %r", idx, e)

        logger.info("Normalized %d of %d rows", len(transactions), len(rows))
        return transactions

    def _convert_row(self, row: Sequence[str], mapping: ColumnMapping) -> NormalizedTransaction:
        """Convert a single row, raising ValueError when it must be skipped."""
        date_str = cell(row, mapping.date_column).strip()
        description = cell(row, mapping.description_column).strip()

        if not date_str:
            raise ValueError("blank date")
        if not description:
            raise ValueError("blank description")

        txn_date = parse_date(date_str)
        if txn_date is None:
            raise ValueError(f"Could not parse date: {date_str!r}")

        amount = self._extract_amount(row, mapping.amount_pattern)
        if amount is None:
            raise ValueError("no usable amount")

        amount = to_cents(amount)
        if amount == 0:
            raise ValueError("zero amount")

        category = None
        if mapping.category_column is not None:
            category = cell(row, mapping.category_column).strip() or None

        return NormalizedTransaction(
            date=txn_date,
            description=description,
            amount=amount,
            category=category,
        )

    def _extract_amount(self, row: Sequence[str], pattern: AmountPattern) -> Optional[Decimal]:
        """Return the signed amount for a row according to its amount pattern."""
        if isinstance(pattern, SingleAmount):
            return parse_number(cell(row, pattern.amount_column))

        if isinstance(pattern, SeparateAmounts):
            debit_raw = cell(row, pattern.debit_column).strip()
            credit_raw = cell(row, pattern.credit_column).strip()
            debit = parse_number(debit_raw) if debit_raw else None
            credit = parse_number(credit_raw) if credit_raw else None

            if debit is not None and debit != 0:
                return -abs(debit)
            if credit is not None and credit != 0:
                return abs(credit)
            return None

        if isinstance(pattern, IndicatorAmount):
            amount = parse_number(cell(row, pattern.amount_column))
            if amount is None:
                return None
            indicator = cell(row, pattern.indicator_column).strip().upper()
            if indicator in pattern.debit_values:
                return -abs(amount)
            return abs(amount)

        raise TypeError(f"Unknown amount pattern: {pattern!r}")


def parse_date(value: str) -> Optional[str]:
    """
    Parse a CSV date into an ISO "YYYY-MM-DD" string.

    Supported shapes, in order: YYYY-MM-DD, M/D/YYYY (read as D/M/YYYY when
    the first number is above 12 and the second is not), and M/D/YY with the
    century taken as 2000. Dashes may replace slashes. Returns None for
    anything else, including impossible calendar dates.
    """
    trimmed = value.strip()

    match = ISO_DATE.match(trimmed)
    if match:
        return _iso(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    match = LONG_YEAR_DATE.match(trimmed)
    if match:
        first, second, year = (int(g) for g in match.groups())
        if first > 12 and second <= 12:
            return _iso(year, second, first)
        return _iso(year, first, second)

    match = SHORT_YEAR_DATE.match(trimmed)
    if match:
        month, day, year = (int(g) for g in match.groups())
        return _iso(year + 2000, month, day)

    return None


def parse_number(value: str) -> Optional[Decimal]:
    """
    Parse a bank-formatted amount.

    "$1,234.56" -> 1234.56, "(100.00)" -> -100.00. Returns None when the
    cleaned text is not a plain finite number.
    """
    cleaned = STRIP_CHARS.sub("", value or "")

    if cleaned.startswith("(") and cleaned.endswith(")"):
        cleaned = "-" + cleaned[1:-1]

    if not NUMBER.match(cleaned):
        return None

    try:
        number = Decimal(cleaned)
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def _iso(year: int, month: int, day: int) -> Optional[str]:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None
