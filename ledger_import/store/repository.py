"""Account and transaction store operations used by the import pipeline.

``LedgerStore`` wraps one SQLAlchemy session. It never commits; the caller
owns the transaction (see ``store.client.session_scope``). Write methods
flush immediately so statements reach the database in call order, which the
reconciliation steps rely on to avoid unique-index collisions on
``linked_transaction_id``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import delete, insert, select, update
from sqlalchemy.orm import Session, aliased

from ledger_import.store.models import (
    Account,
    AccountType,
    BillPayment,
    RecurringBill,
    Transaction,
    TransactionSource,
    TransactionType,
    new_id,
)


@dataclass(frozen=True)
class ExistingTransaction:
    """Projection used for exact/fuzzy duplicate matching."""

    date: date
    description: str
    amount: Decimal


@dataclass(frozen=True)
class BillLinkedTransaction:
    """A non-imported transaction recorded as a bill payment."""

    transaction_id: str
    date: date
    amount: Decimal
    bill_payment_id: str
    bill_name: str
    is_variable_amount: bool


@dataclass(frozen=True)
class LinkedTransfer:
    """A non-imported transfer leg plus facts about its partner leg."""

    transaction_id: str
    date: date
    amount: Decimal
    linked_transaction_id: str
    linked_type: TransactionType
    linked_account_name: str
    linked_account_type: AccountType


@dataclass(frozen=True)
class NewTransaction:
    """Values for a transaction row to insert."""

    date: date
    description: str
    amount: Decimal
    type: TransactionType
    category: str | None = None
    source: TransactionSource = TransactionSource.IMPORT
    linked_transaction_id: str | None = None


class LedgerStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    # ---------------------------
    # reads
    # ---------------------------

    def get_account(self, account_id: str, user_id: str) -> Account | None:
        """Return the account when it exists and belongs to ``user_id``."""

        stmt = select(Account).where(Account.id == account_id, Account.user_id == user_id)
        return self.session.scalars(stmt).first()

    def list_transactions(self, account_id: str) -> list[ExistingTransaction]:
        stmt = select(Transaction.date, Transaction.description, Transaction.amount).where(
            Transaction.account_id == account_id
        )
        return [
            ExistingTransaction(date=d, description=desc, amount=amt)
            for d, desc, amt in self.session.execute(stmt)
        ]

    def list_bill_linked_transactions(self, account_id: str) -> list[BillLinkedTransaction]:
        stmt = (
            select(
                Transaction.id,
                Transaction.date,
                Transaction.amount,
                BillPayment.id,
                RecurringBill.name,
                RecurringBill.is_variable_amount,
            )
            .join(BillPayment, BillPayment.transaction_id == Transaction.id)
            .join(RecurringBill, RecurringBill.id == BillPayment.recurring_bill_id)
            .where(
                Transaction.account_id == account_id,
                Transaction.source != TransactionSource.IMPORT,
            )
            .order_by(Transaction.date, Transaction.created_at)
        )
        return [
            BillLinkedTransaction(
                transaction_id=tx_id,
                date=d,
                amount=amt,
                bill_payment_id=bp_id,
                bill_name=name,
                is_variable_amount=bool(variable),
            )
            for tx_id, d, amt, bp_id, name, variable in self.session.execute(stmt)
        ]

    def list_linked_transfers(self, account_id: str) -> list[LinkedTransfer]:
        partner = aliased(Transaction)
        stmt = (
            select(
                Transaction.id,
                Transaction.date,
                Transaction.amount,
                Transaction.linked_transaction_id,
                partner.type,
                Account.name,
                Account.type,
            )
            .join(partner, partner.id == Transaction.linked_transaction_id)
            .join(Account, Account.id == partner.account_id)
            .where(
                Transaction.account_id == account_id,
                Transaction.type == TransactionType.TRANSFER,
                Transaction.source != TransactionSource.IMPORT,
                Transaction.linked_transaction_id.is_not(None),
            )
            .order_by(Transaction.date, Transaction.created_at)
        )
        return [
            LinkedTransfer(
                transaction_id=tx_id,
                date=d,
                amount=amt,
                linked_transaction_id=linked_id,
                linked_type=linked_type,
                linked_account_name=acct_name,
                linked_account_type=acct_type,
            )
            for tx_id, d, amt, linked_id, linked_type, acct_name, acct_type in self.session.execute(
                stmt
            )
        ]

    def get_bill_target_amount(
        self, transaction_id: str, bill_payment_id: str | None, account_id: str
    ) -> Decimal | None:
        """Amount of a non-imported bill payment transaction on the account, else None."""

        stmt = (
            select(Transaction.amount)
            .join(BillPayment, BillPayment.transaction_id == Transaction.id)
            .where(
                Transaction.id == transaction_id,
                Transaction.account_id == account_id,
                Transaction.source != TransactionSource.IMPORT,
                BillPayment.id == bill_payment_id,
            )
        )
        return self.session.scalar(stmt)

    def has_transfer_target(
        self,
        transaction_id: str,
        linked_transaction_id: str | None,
        account_id: str,
        user_id: str,
    ) -> bool:
        """True when the transfer leg is on the account and linked to the user's partner leg."""

        partner = aliased(Transaction)
        stmt = (
            select(Transaction.id)
            .join(partner, partner.id == Transaction.linked_transaction_id)
            .where(
                Transaction.id == transaction_id,
                Transaction.account_id == account_id,
                Transaction.type == TransactionType.TRANSFER,
                Transaction.source != TransactionSource.IMPORT,
                Transaction.linked_transaction_id == linked_transaction_id,
                partner.user_id == user_id,
            )
        )
        return self.session.scalar(stmt) is not None

    # ---------------------------
    # writes
    # ---------------------------

    def create_transactions(
        self, user_id: str, account_id: str, rows: Iterable[NewTransaction]
    ) -> int:
        """Bulk insert rows; returns the number inserted."""

        payloads = [self._payload(user_id, account_id, row) for row in rows]
        if not payloads:
            return 0
        self.session.execute(insert(Transaction), payloads)
        self.session.flush()
        return len(payloads)

    def create_transaction(self, user_id: str, account_id: str, row: NewTransaction) -> str:
        """Insert one row and return its id."""

        payload = self._payload(user_id, account_id, row)
        self.session.execute(insert(Transaction), [payload])
        self.session.flush()
        return payload["id"]

    def set_link(
        self, transaction_id: str, linked_transaction_id: str | None, user_id: str
    ) -> None:
        self.session.execute(
            update(Transaction)
            .where(Transaction.id == transaction_id, Transaction.user_id == user_id)
            .values(linked_transaction_id=linked_transaction_id)
            .execution_options(synchronize_session=False)
        )
        self.session.flush()

    def delete_transaction(self, transaction_id: str, account_id: str) -> None:
        self.session.execute(
            delete(Transaction)
            .where(Transaction.id == transaction_id, Transaction.account_id == account_id)
            .execution_options(synchronize_session=False)
        )
        self.session.flush()

    def repoint_bill_payment(self, bill_payment_id: str, transaction_id: str) -> None:
        self.session.execute(
            update(BillPayment)
            .where(BillPayment.id == bill_payment_id)
            .values(transaction_id=transaction_id)
            .execution_options(synchronize_session=False)
        )
        self.session.flush()

    def increment_balance(self, account_id: str, delta: Decimal) -> Decimal:
        """Add ``delta`` to the stored balance and return the new balance."""

        self.session.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(balance=Account.balance + delta)
            .execution_options(synchronize_session=False)
        )
        self.session.flush()
        balance = self.session.scalar(select(Account.balance).where(Account.id == account_id))
        return Decimal(balance)

    @staticmethod
    def _payload(user_id: str, account_id: str, row: NewTransaction) -> dict:
        return {
            "id": new_id(),
            "user_id": user_id,
            "account_id": account_id,
            "date": row.date,
            "description": row.description,
            "amount": row.amount,
            "type": row.type,
            "category": row.category or None,
            "source": row.source,
            "linked_transaction_id": row.linked_transaction_id,
        }


__all__ = [
    "BillLinkedTransaction",
    "ExistingTransaction",
    "LedgerStore",
    "LinkedTransfer",
    "NewTransaction",
]
