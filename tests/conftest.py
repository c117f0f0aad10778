"""Shared fixtures: a file-backed SQLite ledger per test plus seeding helpers."""

from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from ledger_import.engine.models import NormalizedTransaction
from ledger_import.store.client import create_ledger_engine, make_session_factory, session_scope
from ledger_import.store.models import (
    Account,
    AccountType,
    Base,
    BillPayment,
    RecurringBill,
    Transaction,
    TransactionSource,
    TransactionType,
    new_id,
)

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


@pytest.fixture
def engine(tmp_path: Path):
    # File-backed so every session sees the same database.
    engine = create_ledger_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def ledger(session_factory):
    return LedgerSeeder(session_factory)


@pytest.fixture
def checking(ledger) -> str:
    return ledger.account("Checking", AccountType.CHECKING, balance="500.00")


def txn(date_str: str, amount: str, description: str = "Test", category=None) -> NormalizedTransaction:
    """Helper to create import candidates."""
    return NormalizedTransaction(
        date=date_str,
        description=description,
        amount=Decimal(amount),
        category=category,
    )


class LedgerSeeder:
    """Inserts accounts, transactions and bills for tests."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def account(
        self,
        name: str,
        type: AccountType = AccountType.CHECKING,
        balance: str = "0",
        user_id: str = USER_ID,
    ) -> str:
        account_id = new_id()
        with session_scope(self.session_factory) as s:
            s.add(Account(
                id=account_id, user_id=user_id, name=name, type=type, balance=Decimal(balance)
            ))
        return account_id

    def transaction(
        self,
        account_id: str,
        date_str: str,
        amount: str,
        description: str = "Existing",
        type: TransactionType = TransactionType.EXPENSE,
        source: TransactionSource = TransactionSource.MANUAL,
        linked_transaction_id=None,
    ) -> str:
        tx_id = new_id()
        with session_scope(self.session_factory) as s:
            s.add(Transaction(
                id=tx_id,
                user_id=USER_ID,
                account_id=account_id,
                date=date.fromisoformat(date_str),
                description=description,
                amount=Decimal(amount),
                type=type,
                source=source,
                linked_transaction_id=linked_transaction_id,
            ))
        return tx_id

    def bill_payment(
        self,
        account_id: str,
        date_str: str,
        amount: str,
        name: str = "Electric",
        variable: bool = False,
        source: TransactionSource = TransactionSource.RECURRING,
    ):
        """Create a bill, its payment record and the linked transaction."""
        tx_id = self.transaction(account_id, date_str, amount, name, source=source)
        bill_id = new_id()
        payment_id = new_id()
        paid = date.fromisoformat(date_str)
        with session_scope(self.session_factory) as s:
            s.add(RecurringBill(
                id=bill_id,
                user_id=USER_ID,
                account_id=account_id,
                name=name,
                amount=abs(Decimal(amount)),
                day_of_month=paid.day,
                is_variable_amount=variable,
            ))
            s.flush()
            s.add(BillPayment(
                id=payment_id,
                recurring_bill_id=bill_id,
                transaction_id=tx_id,
                month=paid.month,
                year=paid.year,
                amount=abs(Decimal(amount)),
            ))
        return tx_id, payment_id

    def transfer(
        self,
        account_id: str,
        partner_account_id: str,
        date_str: str,
        amount: str,
        partner_type: TransactionType,
        description: str = "Payment",
    ):
        """Create a two-leg transfer linked in both directions."""
        leg_id = self.transaction(
            account_id, date_str, amount, description, type=TransactionType.TRANSFER
        )
        partner_id = self.transaction(
            partner_account_id,
            date_str,
            str(-Decimal(amount)),
            description,
            type=partner_type,
            linked_transaction_id=leg_id,
        )
        with session_scope(self.session_factory) as s:
            s.get(Transaction, leg_id).linked_transaction_id = partner_id
        return leg_id, partner_id

    def get(self, model, id_):
        with session_scope(self.session_factory) as s:
            return s.get(model, id_)

    def transactions(self, account_id: str):
        with session_scope(self.session_factory) as s:
            return list(
                s.query(Transaction)
                .filter(Transaction.account_id == account_id)
                .order_by(Transaction.date, Transaction.description)
            )

    def balance(self, account_id: str) -> Decimal:
        return self.get(Account, account_id).balance
