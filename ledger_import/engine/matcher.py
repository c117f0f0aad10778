"""Duplicate and reconciliation matching against existing account history."""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional, Sequence, Set, Tuple

from sqlalchemy.orm import Session, sessionmaker

from ledger_import.engine.errors import AccountNotFoundError, UnauthorizedError
from ledger_import.engine.models import (
    DuplicateStatus,
    ImportRow,
    NormalizedTransaction,
    ReconcileMatch,
    ReconcileType,
    to_cents,
)
from ledger_import.store.client import session_scope
from ledger_import.store.models import AccountType, TransactionType
from ledger_import.store.repository import (
    BillLinkedTransaction,
    ExistingTransaction,
    LedgerStore,
    LinkedTransfer,
)

logger = logging.getLogger(__name__)

FUZZY_DISTANCE = 3
LENGTH_SHORTCUT = 10
VARIABLE_BILL_LOW = 0.8
VARIABLE_BILL_HIGH = 1.2

LOAN_ACCOUNT_TYPES = (AccountType.LOAN, AccountType.MORTGAGE)


def levenshtein(a: str, b: str) -> int:
    """
    Case-insensitive edit distance between two strings.

    When the lengths differ by more than 10 the length difference is
    returned without computing the full distance.
    """
    a = a.lower()
    b = b.lower()
    m, n = len(a), len(b)

    if abs(m - n) > LENGTH_SHORTCUT:
        return abs(m - n)

    previous = list(range(n + 1))
    for i in range(1, m + 1):
        current = [i] + [0] * n
        for j in range(1, n + 1):
            cost = 0 if a[i - 1] == b[j - 1] else 1
            current[j] = min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost,
            )
        previous = current

    return previous[n]


@dataclass(frozen=True)
class _Candidate:
    """A reconcile target with the date used for same-month filtering."""
    match: ReconcileMatch
    date: date
    cents: int


class DuplicateMatcher:
    """
    Classify import candidates against an account's existing transactions.

    Matching Strategy:
    1. Duplicate: same date, same amount, description equal ignoring case
    2. Review: same date, same amount, description within edit distance 2
    3. Reconcile: expense that replaces a bill payment, loan payment or
       credit card payment already recorded in the same month
    4. New: everything else
    """

    def __init__(self, session_factory: Optional[sessionmaker[Session]] = None):
        self.session_factory = session_factory

    def detect_duplicates(
        self,
        transactions: Sequence[NormalizedTransaction],
        account_id: str,
        user_id: Optional[str],
    ) -> List[ImportRow]:
        """
        Compare candidates with the account history.

        Args:
            transactions: Normalized import candidates.
            account_id: Target account.
            user_id: Caller identity; the account must belong to it.

        Returns:
            One ImportRow per candidate, in input order.

        Raises:
            UnauthorizedError: If no user id was supplied.
            AccountNotFoundError: If the account is not the user's.
        """
        if not user_id:
            raise UnauthorizedError()

        with session_scope(self.session_factory) as session:
            store = LedgerStore(session)
            if store.get_account(account_id, user_id) is None:
                raise AccountNotFoundError()

            existing = store.list_transactions(account_id)
            bill_linked = store.list_bill_linked_transactions(account_id)
            transfers = store.list_linked_transfers(account_id)

        return self.classify(transactions, existing, bill_linked, transfers)

    def classify(
        self,
        transactions: Sequence[NormalizedTransaction],
        existing: Sequence[ExistingTransaction],
        bill_linked: Sequence[BillLinkedTransaction] = (),
        transfers: Sequence[LinkedTransfer] = (),
    ) -> List[ImportRow]:
        """Classify candidates against already-loaded history."""
        description_index = self._build_description_index(existing)
        reconcile_index, variable_bills = self._build_reconcile_index(bill_linked, transfers)

        # Targets claimed by earlier rows of this batch.
        claimed: Set[str] = set()
        rows: List[ImportRow] = []

        for index, txn in enumerate(transactions):
            status, match_description = self._match_description(txn, description_index)

            available: List[ReconcileMatch] = []
            if status == DuplicateStatus.NEW and txn.is_expense:
                available = self._find_reconcile_candidates(
                    txn, reconcile_index, variable_bills, claimed
                )

            if available:
                status = DuplicateStatus.RECONCILE
                claimed.add(available[0].transaction_id)
                rows.append(ImportRow.from_transaction(
                    index, txn, status,
                    reconcile_match=available[0],
                    reconcile_candidates=available,
                ))
            else:
                rows.append(ImportRow.from_transaction(
                    index, txn, status, match_description=match_description,
                ))

        counts = defaultdict(int)
        for row in rows:
            counts[row.status.value] += 1
        logger.info("Classified %d rows: %s", len(rows), dict(counts))
        return rows

    def _build_description_index(
        self, existing: Sequence[ExistingTransaction]
    ) -> Dict[str, List[str]]:
        """Index existing descriptions by "date|amount"."""
        index: Dict[str, List[str]] = defaultdict(list)
        for txn in existing:
            index[_key(txn.date.isoformat(), txn.amount)].append(txn.description)
        return index

    def _build_reconcile_index(
        self,
        bill_linked: Sequence[BillLinkedTransaction],
        transfers: Sequence[LinkedTransfer],
    ) -> Tuple[Dict[int, List[_Candidate]], List[_Candidate]]:
        """Index reconcile targets by absolute cents; collect variable bills separately."""
        index: Dict[int, List[_Candidate]] = defaultdict(list)
        variable_bills: List[_Candidate] = []

        for txn in bill_linked:
            candidate = _Candidate(
                match=ReconcileMatch(
                    transaction_id=txn.transaction_id,
                    bill_payment_id=txn.bill_payment_id,
                    bill_name=txn.bill_name,
                    type=ReconcileType.BILL,
                ),
                date=txn.date,
                cents=_abs_cents(txn.amount),
            )
            index[candidate.cents].append(candidate)
            if txn.is_variable_amount:
                variable_bills.append(candidate)

        for txn in transfers:
            kind = self._transfer_kind(txn)
            if kind is None:
                continue
            candidate = _Candidate(
                match=ReconcileMatch(
                    transaction_id=txn.transaction_id,
                    bill_name=txn.linked_account_name,
                    type=kind,
                    linked_transaction_id=txn.linked_transaction_id,
                ),
                date=txn.date,
                cents=_abs_cents(txn.amount),
            )
            index[candidate.cents].append(candidate)

        return index, variable_bills

    @staticmethod
    def _transfer_kind(txn: LinkedTransfer) -> Optional[ReconcileType]:
        if (
            txn.linked_account_type in LOAN_ACCOUNT_TYPES
            and txn.linked_type == TransactionType.LOAN_PRINCIPAL
        ):
            return ReconcileType.LOAN
        if (
            txn.linked_account_type == AccountType.CREDIT_CARD
            and txn.linked_type == TransactionType.TRANSFER
        ):
            return ReconcileType.CREDIT_CARD
        return None

    def _match_description(
        self, txn: NormalizedTransaction, index: Dict[str, List[str]]
    ) -> Tuple[DuplicateStatus, Optional[str]]:
        """Exact (case-insensitive) beats fuzzy; keep scanning after a fuzzy hit."""
        status = DuplicateStatus.NEW
        match_description: Optional[str] = None
        wanted = txn.description.lower()

        for desc in index.get(_key(txn.date, txn.amount), []):
            if desc.lower() == wanted:
                return DuplicateStatus.DUPLICATE, desc
            if levenshtein(desc, txn.description) < FUZZY_DISTANCE:
                status = DuplicateStatus.REVIEW
                match_description = desc

        return status, match_description

    def _find_reconcile_candidates(
        self,
        txn: NormalizedTransaction,
        index: Dict[int, List[_Candidate]],
        variable_bills: List[_Candidate],
        claimed: Set[str],
    ) -> List[ReconcileMatch]:
        cents = txn.abs_cents
        txn_date = date.fromisoformat(txn.date)

        available = [
            c.match for c in index.get(cents, [])
            if c.match.transaction_id not in claimed and _same_month(txn_date, c.date)
        ]
        if available:
            return available

        # Variable-amount bills: accept within 20% of the estimate.
        for c in variable_bills:
            if c.match.transaction_id in claimed or not _same_month(txn_date, c.date):
                continue
            if c.cents == 0:
                continue
            ratio = cents / c.cents
            if VARIABLE_BILL_LOW <= ratio <= VARIABLE_BILL_HIGH:
                available.append(c.match)

        return available


def _key(date_str: str, amount) -> str:
    return f"{date_str}|{to_cents(amount)}"


def _abs_cents(amount) -> int:
    return int(abs(to_cents(amount)) * 100)


def _same_month(a: date, b: date) -> bool:
    return a.year == b.year and a.month == b.month
