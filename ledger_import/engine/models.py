"""Data models for the import pipeline."""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import List, Optional, Tuple, Union

CENTS = Decimal("0.01")


def to_cents(value) -> Decimal:
    """Quantize an amount to cents, rounding half away from zero."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


class DuplicateStatus(Enum):
    """Classification of an import candidate against existing history."""
    NEW = "new"
    DUPLICATE = "duplicate"
    REVIEW = "review"
    RECONCILE = "reconcile"


class ReconcileType(Enum):
    """Kind of existing record an imported row can replace."""
    BILL = "bill"
    LOAN = "loan"
    CREDIT_CARD = "credit_card"


@dataclass
class ParsedCSV:
    """Header row plus data rows of a CSV file."""
    headers: List[str]
    rows: List[List[str]]


@dataclass(frozen=True)
class SingleAmount:
    """One signed amount column."""
    amount_column: int


@dataclass(frozen=True)
class SeparateAmounts:
    """Independent debit and credit columns."""
    debit_column: int
    credit_column: int


@dataclass(frozen=True)
class IndicatorAmount:
    """Unsigned amount column plus a flag column whose values mark debits."""
    amount_column: int
    indicator_column: int
    debit_values: Tuple[str, ...]


AmountPattern = Union[SingleAmount, SeparateAmounts, IndicatorAmount]


@dataclass(frozen=True)
class ColumnMapping:
    """User-confirmed column layout that drives normalization."""
    date_column: int
    description_column: int
    amount_pattern: AmountPattern
    category_column: Optional[int] = None


@dataclass
class DetectedColumns:
    """Column suggestions from header analysis; None where nothing matched."""
    date_column: Optional[int] = None
    description_column: Optional[int] = None
    category_column: Optional[int] = None
    amount_pattern: Optional[AmountPattern] = None

    def to_mapping(self) -> Optional[ColumnMapping]:
        """Return a mapping when every required column was detected."""
        if (
            self.date_column is None
            or self.description_column is None
            or self.amount_pattern is None
        ):
            return None
        return ColumnMapping(
            date_column=self.date_column,
            description_column=self.description_column,
            amount_pattern=self.amount_pattern,
            category_column=self.category_column,
        )


@dataclass(frozen=True)
class NormalizedTransaction:
    """A signed, cent-rounded import candidate. Negative amounts are debits."""
    date: str
    description: str
    amount: Decimal
    category: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_cents(self.amount))

    @property
    def is_expense(self) -> bool:
        return self.amount < 0

    @property
    def abs_cents(self) -> int:
        return int(abs(self.amount) * 100)


@dataclass(frozen=True)
class ReconcileMatch:
    """An existing record that an imported row should replace."""
    transaction_id: str
    bill_name: str
    type: ReconcileType
    bill_payment_id: Optional[str] = None
    linked_transaction_id: Optional[str] = None


@dataclass(frozen=True)
class ReconcileItem:
    """An import candidate paired with the record it replaces."""
    transaction: NormalizedTransaction
    reconcile_match: ReconcileMatch


@dataclass
class ImportRow:
    """Per-candidate duplicate detection result exposed to the caller."""
    index: int
    date: str
    description: str
    amount: Decimal
    category: Optional[str]
    status: DuplicateStatus
    match_description: Optional[str] = None
    reconcile_match: Optional[ReconcileMatch] = None
    reconcile_candidates: List[ReconcileMatch] = field(default_factory=list)
    selected: bool = False

    @classmethod
    def from_transaction(
        cls,
        index: int,
        txn: NormalizedTransaction,
        status: DuplicateStatus,
        match_description: Optional[str] = None,
        reconcile_match: Optional[ReconcileMatch] = None,
        reconcile_candidates: Optional[List[ReconcileMatch]] = None,
    ) -> "ImportRow":
        return cls(
            index=index,
            date=txn.date,
            description=txn.description,
            amount=txn.amount,
            category=txn.category,
            status=status,
            match_description=match_description,
            reconcile_match=reconcile_match,
            reconcile_candidates=list(reconcile_candidates or []),
            selected=status in (DuplicateStatus.NEW, DuplicateStatus.RECONCILE),
        )

    def to_transaction(self) -> NormalizedTransaction:
        return NormalizedTransaction(
            date=self.date,
            description=self.description,
            amount=self.amount,
            category=self.category,
        )


@dataclass
class ImportResult:
    """Outcome of a persisted import."""
    imported: int = 0
    reconciled: int = 0
    skipped: int = 0
    new_balance: Decimal = Decimal("0")
