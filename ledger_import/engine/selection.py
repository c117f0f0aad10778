"""Review-step helpers: adjust classified rows and turn a selection into an import."""

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence

from ledger_import.engine.errors import DuplicateReconcileTargetError, NoTransactionsError
from ledger_import.engine.importer import TransactionImporter
from ledger_import.engine.models import (
    DuplicateStatus,
    ImportResult,
    ImportRow,
    NormalizedTransaction,
    ReconcileItem,
)

logger = logging.getLogger(__name__)


@dataclass
class ImportPlan:
    """Selected rows split into plain inserts and reconciliations."""
    new_transactions: List[NormalizedTransaction] = field(default_factory=list)
    reconcile_items: List[ReconcileItem] = field(default_factory=list)

    @property
    def has_reconcile(self) -> bool:
        return bool(self.reconcile_items)


def dismiss_reconcile(row: ImportRow) -> ImportRow:
    """Treat a reconcile row as a plain new transaction instead."""
    return replace(
        row, status=DuplicateStatus.NEW, reconcile_match=None, reconcile_candidates=[]
    )


def choose_candidate(row: ImportRow, transaction_id: str) -> ImportRow:
    """
    Point a reconcile row at another of its candidates.

    Raises:
        ValueError: If ``transaction_id`` is not one of the row's candidates.
    """
    for candidate in row.reconcile_candidates:
        if candidate.transaction_id == transaction_id:
            return replace(row, reconcile_match=candidate)
    raise ValueError(f"Transaction {transaction_id!r} is not a candidate for row {row.index}")


def build_import_plan(rows: Sequence[ImportRow]) -> ImportPlan:
    """
    Split the selected rows into new transactions and reconcile items.

    Raises:
        NoTransactionsError: If no row is selected.
        DuplicateReconcileTargetError: If two selected rows replace the same record.
    """
    selected = [row for row in rows if row.selected]
    if not selected:
        raise NoTransactionsError("No transactions selected")

    plan = ImportPlan()
    targets = set()

    for row in selected:
        if row.status == DuplicateStatus.RECONCILE and row.reconcile_match is not None:
            target = row.reconcile_match.transaction_id
            if target in targets:
                raise DuplicateReconcileTargetError()
            targets.add(target)
            plan.reconcile_items.append(
                ReconcileItem(transaction=row.to_transaction(), reconcile_match=row.reconcile_match)
            )
        else:
            plan.new_transactions.append(row.to_transaction())

    return plan


class ImportService:
    """Run an ImportPlan through the matching importer entry point."""

    def __init__(self, importer: Optional[TransactionImporter] = None):
        self.importer = importer or TransactionImporter()

    def run(self, plan: ImportPlan, account_id: str, user_id: Optional[str]) -> ImportResult:
        if plan.has_reconcile:
            return self.importer.import_and_reconcile(
                plan.new_transactions, plan.reconcile_items, account_id, user_id
            )
        return self.importer.import_transactions(plan.new_transactions, account_id, user_id)

    def import_rows(
        self, rows: Sequence[ImportRow], account_id: str, user_id: Optional[str]
    ) -> ImportResult:
        """Build a plan from the selected rows and import it."""
        plan = build_import_plan(rows)
        logger.info(
            "Importing %d new and %d reconciled rows",
            len(plan.new_transactions), len(plan.reconcile_items),
        )
        return self.run(plan, account_id, user_id)
