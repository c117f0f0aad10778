"""Header-based column and amount pattern detection."""

from typing import List, Optional, Sequence

from ledger_import.engine.models import (
    AmountPattern,
    DetectedColumns,
    IndicatorAmount,
    SeparateAmounts,
    SingleAmount,
)
from ledger_import.parsers.csv_parser import cell


class ColumnDetector:
    """
    Guess which CSV columns hold the date, description, category and amount.

    Detection is pure name matching against curated synonym lists. Sample
    rows are only consulted to confirm a debit/credit indicator column.

    Amount patterns, in resolution order:
    1. Separate debit and credit columns
    2. Amount column plus a DR/CR style indicator column
    3. Single signed amount column
    """

    DATE_NAMES = (
        "date", "transaction date", "trans date", "post date", "posting date", "trans. date",
    )
    DESCRIPTION_NAMES = (
        "description", "desc", "memo", "payee", "narrative", "details",
        "transaction description",
    )
    CATEGORY_NAMES = ("category", "type", "classification")

    DEBIT_NAMES = ("debit", "withdrawal", "debit amount", "withdrawals")
    CREDIT_NAMES = ("credit", "deposit", "credit amount", "deposits")
    AMOUNT_NAMES = ("amount", "transaction amount", "trans amount", "value")
    INDICATOR_NAMES = (
        "type", "dr/cr", "debit/credit", "indicator", "transaction type", "dr cr",
    )

    # Order matters: detected debit values are reported in this order.
    DEBIT_INDICATORS = ("DR", "DEBIT", "D", "DB", "-")

    def detect_columns(
        self, headers: Sequence[str], sample_rows: Sequence[Sequence[str]]
    ) -> DetectedColumns:
        """
        Suggest a column layout from headers and a sample of data rows.

        Args:
            headers: Header cells as found in the file.
            sample_rows: First few data rows, used for indicator detection.

        Returns:
            DetectedColumns with None for anything not recognized.
        """
        lower = self._normalize(headers)
        return DetectedColumns(
            date_column=self._find(lower, self.DATE_NAMES),
            description_column=self._find(lower, self.DESCRIPTION_NAMES),
            category_column=self._find(lower, self.CATEGORY_NAMES),
            amount_pattern=self._detect_pattern(lower, sample_rows),
        )

    def detect_amount_pattern(
        self, headers: Sequence[str], sample_rows: Sequence[Sequence[str]]
    ) -> Optional[AmountPattern]:
        """Detect only the amount pattern, e.g. after the user edits headers."""
        return self._detect_pattern(self._normalize(headers), sample_rows)

    def _detect_pattern(
        self, lower: List[str], sample_rows: Sequence[Sequence[str]]
    ) -> Optional[AmountPattern]:
        debit_col = self._find(lower, self.DEBIT_NAMES)
        credit_col = self._find(lower, self.CREDIT_NAMES)
        if debit_col is not None and credit_col is not None:
            return SeparateAmounts(debit_column=debit_col, credit_column=credit_col)

        amount_col = self._find(lower, self.AMOUNT_NAMES)
        if amount_col is None:
            return None

        indicator_col = self._find(lower, self.INDICATOR_NAMES)
        if indicator_col is not None and indicator_col != amount_col:
            observed = {
                cell(row, indicator_col).strip().upper() for row in sample_rows
            }
            observed.discard("")
            debit_values = tuple(d for d in self.DEBIT_INDICATORS if d in observed)
            if debit_values:
                return IndicatorAmount(
                    amount_column=amount_col,
                    indicator_column=indicator_col,
                    debit_values=debit_values,
                )

        # Most common layout; used even when the sample has no negatives.
        return SingleAmount(amount_column=amount_col)

    @staticmethod
    def _normalize(headers: Sequence[str]) -> List[str]:
        return [h.strip().lower() for h in headers]

    @staticmethod
    def _find(lower: List[str], names: Sequence[str]) -> Optional[int]:
        for idx, header in enumerate(lower):
            if header in names:
                return idx
        return None
