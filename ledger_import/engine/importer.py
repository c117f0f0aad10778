"""Atomic persistence of confirmed import rows."""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy.orm import Session, sessionmaker

from ledger_import.engine.errors import (
    AccountNotFoundError,
    DuplicateReconcileTargetError,
    NoTransactionsError,
    ReconcileTargetNotFoundError,
    UnauthorizedError,
)
from ledger_import.engine.models import (
    ImportResult,
    NormalizedTransaction,
    ReconcileItem,
    ReconcileType,
    to_cents,
)
from ledger_import.store.client import session_scope
from ledger_import.store.models import TransactionSource, TransactionType
from ledger_import.store.repository import LedgerStore, NewTransaction

logger = logging.getLogger(__name__)


class TransactionImporter:
    """
    Persist import rows and adjust the account balance in one transaction.

    Every insert, update, delete and the balance increment of a call commit
    together; any failure rolls all of them back and propagates.
    """

    def __init__(self, session_factory: Optional[sessionmaker[Session]] = None):
        self.session_factory = session_factory

    def import_transactions(
        self,
        transactions: Sequence[NormalizedTransaction],
        account_id: str,
        user_id: Optional[str],
    ) -> ImportResult:
        """
        Insert every candidate as an IMPORT transaction.

        Args:
            transactions: Confirmed candidates.
            account_id: Target account.
            user_id: Caller identity.

        Returns:
            ImportResult with the imported count and new balance.

        Raises:
            UnauthorizedError: If no user id was supplied.
            NoTransactionsError: If ``transactions`` is empty.
            AccountNotFoundError: If the account is not the user's.
        """
        if not user_id:
            raise UnauthorizedError()
        if not transactions:
            raise NoTransactionsError()

        net = to_cents(sum((t.amount for t in transactions), Decimal("0")))

        with session_scope(self.session_factory) as session:
            store = self._store_for(session, account_id, user_id)
            store.create_transactions(
                user_id, account_id, [_imported(t) for t in transactions]
            )
            new_balance = store.increment_balance(account_id, net)

        logger.info(
            "Imported %d transactions into account %s (net %s)",
            len(transactions), account_id, net,
        )
        return ImportResult(
            imported=len(transactions),
            reconciled=0,
            skipped=0,
            new_balance=to_cents(new_balance),
        )

    def import_and_reconcile(
        self,
        new_transactions: Sequence[NormalizedTransaction],
        reconcile_items: Sequence[ReconcileItem],
        account_id: str,
        user_id: Optional[str],
    ) -> ImportResult:
        """
        Insert new candidates and replace reconciled records with imported ones.

        Bill items repoint their bill payment at the imported row and delete
        the row it replaces. Loan and credit card items swap the transfer leg
        on this account for the imported row and relink the partner leg.

        The balance moves by the sum of new amounts plus, for bill items,
        the difference between each imported amount and the amount it
        replaces. Loan and credit card swaps leave the balance unchanged.

        Raises:
            UnauthorizedError: If no user id was supplied.
            NoTransactionsError: If both inputs are empty.
            AccountNotFoundError: If the account is not the user's.
            DuplicateReconcileTargetError: If two items replace the same record.
            ReconcileTargetNotFoundError: If a bill item's record is not a
                non-imported payment of that bill on this account, or a
                transfer item's leg is not on this account linked to the
                user's partner leg. Nothing is written.
        """
        if not user_id:
            raise UnauthorizedError()
        if not new_transactions and not reconcile_items:
            raise NoTransactionsError()

        with session_scope(self.session_factory) as session:
            store = self._store_for(session, account_id, user_id)

            delta = sum((t.amount for t in new_transactions), Decimal("0"))
            targets = set()
            for item in reconcile_items:
                match = item.reconcile_match
                if match.transaction_id in targets:
                    raise DuplicateReconcileTargetError()
                targets.add(match.transaction_id)

                if match.type == ReconcileType.BILL:
                    old = store.get_bill_target_amount(
                        match.transaction_id, match.bill_payment_id, account_id
                    )
                    if old is None:
                        raise ReconcileTargetNotFoundError()
                    delta += item.transaction.amount - to_cents(old)
                elif not store.has_transfer_target(
                    match.transaction_id, match.linked_transaction_id, account_id, user_id
                ):
                    raise ReconcileTargetNotFoundError()
            delta = to_cents(delta)

            store.create_transactions(
                user_id, account_id, [_imported(t) for t in new_transactions]
            )

            for item in reconcile_items:
                if item.reconcile_match.type == ReconcileType.BILL:
                    self._reconcile_bill(store, item, account_id, user_id)
                else:
                    self._reconcile_transfer(store, item, account_id, user_id)

            new_balance = store.increment_balance(account_id, delta)

        logger.info(
            "Imported %d and reconciled %d transactions into account %s (net %s)",
            len(new_transactions), len(reconcile_items), account_id, delta,
        )
        return ImportResult(
            imported=len(new_transactions),
            reconciled=len(reconcile_items),
            skipped=0,
            new_balance=to_cents(new_balance),
        )

    def _store_for(self, session: Session, account_id: str, user_id: str) -> LedgerStore:
        store = LedgerStore(session)
        if store.get_account(account_id, user_id) is None:
            raise AccountNotFoundError()
        return store

    def _reconcile_bill(
        self, store: LedgerStore, item: ReconcileItem, account_id: str, user_id: str
    ) -> None:
        match = item.reconcile_match
        new_id = store.create_transaction(user_id, account_id, _imported(item.transaction))
        if match.bill_payment_id:
            store.repoint_bill_payment(match.bill_payment_id, new_id)
        store.delete_transaction(match.transaction_id, account_id)
        logger.debug("Bill %r: replaced %s with %s", match.bill_name, match.transaction_id, new_id)

    def _reconcile_transfer(
        self, store: LedgerStore, item: ReconcileItem, account_id: str, user_id: str
    ) -> None:
        match = item.reconcile_match
        partner_id = match.linked_transaction_id

        # Unlink first: linked_transaction_id is unique.
        if partner_id:
            store.set_link(partner_id, None, user_id)
        store.delete_transaction(match.transaction_id, account_id)

        new_id = store.create_transaction(
            user_id,
            account_id,
            _imported(item.transaction, TransactionType.TRANSFER, linked_to=partner_id),
        )
        if partner_id:
            store.set_link(partner_id, new_id, user_id)
        logger.debug(
            "%s %r: replaced %s with %s",
            match.type.value, match.bill_name, match.transaction_id, new_id,
        )


def _imported(
    txn: NormalizedTransaction,
    txn_type: Optional[TransactionType] = None,
    linked_to: Optional[str] = None,
) -> NewTransaction:
    if txn_type is None:
        txn_type = TransactionType.EXPENSE if txn.amount < 0 else TransactionType.INCOME
    return NewTransaction(
        date=date.fromisoformat(txn.date),
        description=txn.description,
        amount=txn.amount,
        type=txn_type,
        category=txn.category or None,
        source=TransactionSource.IMPORT,
        linked_transaction_id=linked_to,
    )
