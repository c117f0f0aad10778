"""SQLAlchemy ORM models for the ledger tables the import pipeline touches."""

from __future__ import annotations

import enum
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def new_id() -> str:
    return uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class AccountType(enum.Enum):
    CHECKING = "CHECKING"
    SAVINGS = "SAVINGS"
    CREDIT_CARD = "CREDIT_CARD"
    LOAN = "LOAN"
    MORTGAGE = "MORTGAGE"


class TransactionType(enum.Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"
    LOAN_PRINCIPAL = "LOAN_PRINCIPAL"
    LOAN_INTEREST = "LOAN_INTEREST"
    INTEREST_EARNED = "INTEREST_EARNED"
    INTEREST_CHARGED = "INTEREST_CHARGED"


class TransactionSource(enum.Enum):
    MANUAL = "MANUAL"
    IMPORT = "IMPORT"
    PLAID = "PLAID"
    RECURRING = "RECURRING"
    SYSTEM = "SYSTEM"


# ---------------------------
# accounts
# ---------------------------


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    type: Mapped[AccountType] = mapped_column(Enum(AccountType), nullable=False)
    balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )


# ---------------------------
# transactions
# ---------------------------


class Transaction(Base):
    __tablename__ = "transactions"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    account_id: Mapped[str] = mapped_column(
        String, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    type: Mapped[TransactionType] = mapped_column(Enum(TransactionType), nullable=False)
    category: Mapped[str | None] = mapped_column(String, nullable=True)
    source: Mapped[TransactionSource] = mapped_column(
        Enum(TransactionSource), nullable=False, default=TransactionSource.MANUAL
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    # One-directional pointer to the other leg of a transfer. Unique, so a
    # partner must be unlinked before a replacement leg can point at it.
    linked_transaction_id: Mapped[str | None] = mapped_column(
        String,
        ForeignKey("transactions.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (Index("ix_transactions_account_date", "account_id", "date"),)


# ---------------------------
# recurring bills
# ---------------------------


class RecurringBill(Base):
    __tablename__ = "recurring_bills"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    account_id: Mapped[str] = mapped_column(
        String, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    day_of_month: Mapped[int] = mapped_column(Integer, nullable=False)
    # Estimated amount; the real charge is only known once billed.
    is_variable_amount: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class BillPayment(Base):
    __tablename__ = "bill_payments"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_id)
    recurring_bill_id: Mapped[str] = mapped_column(
        String, ForeignKey("recurring_bills.id", ondelete="CASCADE"), nullable=False
    )
    transaction_id: Mapped[str | None] = mapped_column(
        String,
        ForeignKey("transactions.id", ondelete="CASCADE"),
        nullable=True,
        unique=True,
    )
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    paid_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        Index("ix_bill_payments_bill_period", "recurring_bill_id", "month", "year"),
    )


__all__ = [
    "Account",
    "AccountType",
    "Base",
    "BillPayment",
    "RecurringBill",
    "Transaction",
    "TransactionSource",
    "TransactionType",
    "new_id",
]
