"""Tests for duplicate detection and reconciliation matching."""

from datetime import date
from decimal import Decimal

import pytest

from conftest import OTHER_USER_ID, USER_ID, txn
from ledger_import.engine.errors import AccountNotFoundError, UnauthorizedError
from ledger_import.engine.matcher import DuplicateMatcher, levenshtein
from ledger_import.engine.models import DuplicateStatus, ReconcileType
from ledger_import.store.models import AccountType, TransactionSource, TransactionType
from ledger_import.store.repository import (
    BillLinkedTransaction,
    ExistingTransaction,
    LinkedTransfer,
)


def existing(date_str: str, amount: str, desc: str) -> ExistingTransaction:
    return ExistingTransaction(
        date=date.fromisoformat(date_str), description=desc, amount=Decimal(amount)
    )


def bill(
    tx_id: str, date_str: str, amount: str, name: str = "Electric", variable: bool = False
) -> BillLinkedTransaction:
    return BillLinkedTransaction(
        transaction_id=tx_id,
        date=date.fromisoformat(date_str),
        amount=Decimal(amount),
        bill_payment_id=f"bp-{tx_id}",
        bill_name=name,
        is_variable_amount=variable,
    )


def transfer(
    tx_id: str,
    date_str: str,
    amount: str,
    account_type: AccountType,
    linked_type: TransactionType,
    name: str = "Car Loan",
) -> LinkedTransfer:
    return LinkedTransfer(
        transaction_id=tx_id,
        date=date.fromisoformat(date_str),
        amount=Decimal(amount),
        linked_transaction_id=f"partner-{tx_id}",
        linked_type=linked_type,
        linked_account_name=name,
        linked_account_type=account_type,
    )


class TestLevenshtein:
    """Test the edit distance helper."""

    def test_classic(self):
        assert levenshtein("kitten", "sitting") == 3

    def test_case_insensitive(self):
        assert levenshtein("COFFEE", "coffee") == 0

    def test_empty(self):
        assert levenshtein("", "abc") == 3
        assert levenshtein("", "") == 0

    def test_length_shortcut(self):
        assert levenshtein("a", "b" * 20) == 19

    def test_shortcut_boundary_computes_distance(self):
        assert levenshtein("a", "b" * 11) == 11


class TestDescriptionMatching:
    """Test duplicate and review classification."""

    def test_exact_duplicate_ignores_case(self):
        rows = DuplicateMatcher().classify(
            [txn("2026-01-15", "-5.50", "coffee")],
            [existing("2026-01-15", "-5.50", "COFFEE")],
        )

        assert rows[0].status == DuplicateStatus.DUPLICATE
        assert rows[0].match_description == "COFFEE"
        assert rows[0].selected is False

    def test_near_match_needs_review(self):
        rows = DuplicateMatcher().classify(
            [txn("2026-01-15", "-42.10", "WALMART #1235")],
            [existing("2026-01-15", "-42.10", "WALMART #1234")],
        )

        assert rows[0].status == DuplicateStatus.REVIEW
        assert rows[0].match_description == "WALMART #1234"
        assert rows[0].selected is False

    def test_distance_three_is_new(self):
        rows = DuplicateMatcher().classify(
            [txn("2026-01-15", "-42.10", "WALMART #1999")],
            [existing("2026-01-15", "-42.10", "WALMART #1234")],
        )

        assert rows[0].status == DuplicateStatus.NEW
        assert rows[0].match_description is None

    def test_exact_beats_earlier_fuzzy(self):
        rows = DuplicateMatcher().classify(
            [txn("2026-01-15", "-5.50", "Coffee")],
            [
                existing("2026-01-15", "-5.50", "Coffees"),
                existing("2026-01-15", "-5.50", "COFFEE"),
            ],
        )

        assert rows[0].status == DuplicateStatus.DUPLICATE
        assert rows[0].match_description == "COFFEE"

    def test_different_date_or_amount_is_new(self):
        rows = DuplicateMatcher().classify(
            [txn("2026-01-16", "-5.50", "Coffee"), txn("2026-01-15", "-5.51", "Coffee")],
            [existing("2026-01-15", "-5.50", "Coffee")],
        )

        assert [r.status for r in rows] == [DuplicateStatus.NEW, DuplicateStatus.NEW]
        assert all(r.selected for r in rows)

    def test_sign_matters(self):
        rows = DuplicateMatcher().classify(
            [txn("2026-01-15", "5.50", "Coffee")],
            [existing("2026-01-15", "-5.50", "Coffee")],
        )

        assert rows[0].status == DuplicateStatus.NEW

    def test_rows_keep_input_order_and_index(self):
        candidates = [txn("2026-01-15", "-1", "A"), txn("2026-01-16", "-2", "B")]
        rows = DuplicateMatcher().classify(candidates, [])

        assert [(r.index, r.description) for r in rows] == [(0, "A"), (1, "B")]


class TestReconcileMatching:
    """Test bill, loan and credit card reconciliation."""

    def test_bill_payment_reconciles(self):
        rows = DuplicateMatcher().classify(
            [txn("2026-01-05", "-120.00", "ELECTRIC CO")],
            [existing("2026-01-03", "-120.00", "Electric")],
            bill_linked=[bill("t1", "2026-01-03", "-120.00")],
        )

        row = rows[0]
        assert row.status == DuplicateStatus.RECONCILE
        assert row.selected is True
        assert row.reconcile_match.transaction_id == "t1"
        assert row.reconcile_match.bill_payment_id == "bp-t1"
        assert row.reconcile_match.type == ReconcileType.BILL
        assert row.reconcile_candidates == [row.reconcile_match]

    def test_income_never_reconciles(self):
        rows = DuplicateMatcher().classify(
            [txn("2026-01-05", "120.00", "Deposit")],
            [],
            bill_linked=[bill("t1", "2026-01-03", "-120.00")],
        )

        assert rows[0].status == DuplicateStatus.NEW

    def test_duplicate_is_not_reconciled(self):
        rows = DuplicateMatcher().classify(
            [txn("2026-01-03", "-120.00", "Electric")],
            [existing("2026-01-03", "-120.00", "Electric")],
            bill_linked=[bill("t1", "2026-01-03", "-120.00")],
        )

        assert rows[0].status == DuplicateStatus.DUPLICATE
        assert rows[0].reconcile_match is None

    def test_other_month_is_new(self):
        rows = DuplicateMatcher().classify(
            [txn("2026-02-03", "-120.00", "Electric")],
            [],
            bill_linked=[bill("t1", "2026-01-03", "-120.00")],
        )

        assert rows[0].status == DuplicateStatus.NEW

    def test_same_month_other_year_is_new(self):
        rows = DuplicateMatcher().classify(
            [txn("2027-01-03", "-120.00", "Electric")],
            [],
            bill_linked=[bill("t1", "2026-01-03", "-120.00")],
        )

        assert rows[0].status == DuplicateStatus.NEW

    def test_target_claimed_once_per_batch(self):
        rows = DuplicateMatcher().classify(
            [txn("2026-01-05", "-120.00", "Electric A"), txn("2026-01-06", "-120.00", "Electric B")],
            [],
            bill_linked=[bill("t1", "2026-01-03", "-120.00")],
        )

        assert rows[0].status == DuplicateStatus.RECONCILE
        assert rows[1].status == DuplicateStatus.NEW

    def test_multiple_candidates(self):
        rows = DuplicateMatcher().classify(
            [txn("2026-01-20", "-50.00", "Payment"), txn("2026-01-21", "-50.00", "Payment 2")],
            [],
            bill_linked=[
                bill("t1", "2026-01-03", "-50.00", name="Water"),
                bill("t2", "2026-01-10", "-50.00", name="Internet"),
            ],
        )

        assert [c.transaction_id for c in rows[0].reconcile_candidates] == ["t1", "t2"]
        assert rows[0].reconcile_match.transaction_id == "t1"
        assert [c.transaction_id for c in rows[1].reconcile_candidates] == ["t2"]
        assert rows[1].reconcile_match.transaction_id == "t2"

    @pytest.mark.parametrize("amount, status", [
        ("-115.00", DuplicateStatus.RECONCILE),
        ("-80.00", DuplicateStatus.RECONCILE),
        ("-120.00", DuplicateStatus.RECONCILE),
        ("-79.99", DuplicateStatus.NEW),
        ("-125.00", DuplicateStatus.NEW),
    ])
    def test_variable_bill_tolerance(self, amount, status):
        rows = DuplicateMatcher().classify(
            [txn("2026-01-05", amount, "Gas Utility")],
            [],
            bill_linked=[bill("t1", "2026-01-03", "-100.00", name="Gas", variable=True)],
        )

        assert rows[0].status == status

    def test_fixed_bill_has_no_tolerance(self):
        rows = DuplicateMatcher().classify(
            [txn("2026-01-05", "-115.00", "Electric")],
            [],
            bill_linked=[bill("t1", "2026-01-03", "-100.00")],
        )

        assert rows[0].status == DuplicateStatus.NEW

    def test_exact_amount_preferred_over_variable(self):
        rows = DuplicateMatcher().classify(
            [txn("2026-01-05", "-110.00", "Utility")],
            [],
            bill_linked=[
                bill("var", "2026-01-02", "-100.00", name="Gas", variable=True),
                bill("fixed", "2026-01-03", "-110.00", name="Phone"),
            ],
        )

        assert [c.transaction_id for c in rows[0].reconcile_candidates] == ["fixed"]

    def test_loan_transfer(self):
        rows = DuplicateMatcher().classify(
            [txn("2026-01-28", "-500.00", "AUTO LOAN PMT")],
            [],
            transfers=[transfer(
                "t1", "2026-01-25", "-500.00", AccountType.LOAN, TransactionType.LOAN_PRINCIPAL
            )],
        )

        match = rows[0].reconcile_match
        assert rows[0].status == DuplicateStatus.RECONCILE
        assert match.type == ReconcileType.LOAN
        assert match.bill_name == "Car Loan"
        assert match.linked_transaction_id == "partner-t1"
        assert match.bill_payment_id is None

    def test_mortgage_transfer(self):
        rows = DuplicateMatcher().classify(
            [txn("2026-01-01", "-1500.00", "MORTGAGE")],
            [],
            transfers=[transfer(
                "t1", "2026-01-01", "-1500.00", AccountType.MORTGAGE,
                TransactionType.LOAN_PRINCIPAL, name="Home",
            )],
        )

        assert rows[0].reconcile_match.type == ReconcileType.LOAN

    def test_credit_card_transfer(self):
        rows = DuplicateMatcher().classify(
            [txn("2026-01-28", "-250.00", "CARD PAYMENT")],
            [],
            transfers=[transfer(
                "t1", "2026-01-20", "-250.00", AccountType.CREDIT_CARD,
                TransactionType.TRANSFER, name="Visa",
            )],
        )

        assert rows[0].reconcile_match.type == ReconcileType.CREDIT_CARD
        assert rows[0].reconcile_match.bill_name == "Visa"

    @pytest.mark.parametrize("account_type, linked_type", [
        (AccountType.SAVINGS, TransactionType.TRANSFER),
        (AccountType.LOAN, TransactionType.LOAN_INTEREST),
        (AccountType.CREDIT_CARD, TransactionType.EXPENSE),
    ])
    def test_other_transfers_ignored(self, account_type, linked_type):
        rows = DuplicateMatcher().classify(
            [txn("2026-01-28", "-250.00", "Transfer")],
            [],
            transfers=[transfer("t1", "2026-01-20", "-250.00", account_type, linked_type)],
        )

        assert rows[0].status == DuplicateStatus.NEW


class TestDetectDuplicates:
    """Test matching against a seeded ledger."""

    def test_requires_user(self, session_factory, checking):
        matcher = DuplicateMatcher(session_factory)

        with pytest.raises(UnauthorizedError):
            matcher.detect_duplicates([txn("2026-01-15", "-5.50")], checking, None)
        with pytest.raises(UnauthorizedError):
            matcher.detect_duplicates([txn("2026-01-15", "-5.50")], checking, "")

    def test_account_must_belong_to_user(self, session_factory, checking):
        with pytest.raises(AccountNotFoundError, match="Account not found"):
            DuplicateMatcher(session_factory).detect_duplicates(
                [txn("2026-01-15", "-5.50")], checking, OTHER_USER_ID
            )

    def test_unknown_account(self, session_factory):
        with pytest.raises(AccountNotFoundError):
            DuplicateMatcher(session_factory).detect_duplicates(
                [txn("2026-01-15", "-5.50")], "missing", USER_ID
            )

    def test_duplicates_against_history(self, session_factory, ledger, checking):
        ledger.transaction(checking, "2026-01-15", "-5.50", "COFFEE")
        ledger.transaction(checking, "2026-01-16", "-42.10", "WALMART #1234")

        rows = DuplicateMatcher(session_factory).detect_duplicates(
            [
                txn("2026-01-15", "-5.50", "Coffee"),
                txn("2026-01-16", "-42.10", "WALMART #1235"),
                txn("2026-01-17", "-9.99", "Netflix"),
            ],
            checking,
            USER_ID,
        )

        assert [r.status for r in rows] == [
            DuplicateStatus.DUPLICATE, DuplicateStatus.REVIEW, DuplicateStatus.NEW,
        ]

    def test_other_account_history_ignored(self, session_factory, ledger, checking):
        savings = ledger.account("Savings", AccountType.SAVINGS)
        ledger.transaction(savings, "2026-01-15", "-5.50", "COFFEE")

        rows = DuplicateMatcher(session_factory).detect_duplicates(
            [txn("2026-01-15", "-5.50", "Coffee")], checking, USER_ID
        )

        assert rows[0].status == DuplicateStatus.NEW

    def test_bill_reconcile_from_store(self, session_factory, ledger, checking):
        tx_id, payment_id = ledger.bill_payment(checking, "2026-01-03", "-120.00")

        rows = DuplicateMatcher(session_factory).detect_duplicates(
            [txn("2026-01-05", "-120.00", "ELECTRIC CO")], checking, USER_ID
        )

        assert rows[0].status == DuplicateStatus.RECONCILE
        assert rows[0].reconcile_match.transaction_id == tx_id
        assert rows[0].reconcile_match.bill_payment_id == payment_id
        assert rows[0].reconcile_match.bill_name == "Electric"

    def test_imported_bill_payment_not_reconciled(self, session_factory, ledger, checking):
        ledger.bill_payment(checking, "2026-01-03", "-120.00", source=TransactionSource.IMPORT)

        rows = DuplicateMatcher(session_factory).detect_duplicates(
            [txn("2026-01-05", "-120.00", "ELECTRIC CO")], checking, USER_ID
        )

        assert rows[0].status == DuplicateStatus.NEW

    def test_loan_transfer_from_store(self, session_factory, ledger, checking):
        loan = ledger.account("Car Loan", AccountType.LOAN)
        leg_id, partner_id = ledger.transfer(
            checking, loan, "2026-01-25", "-300.00", TransactionType.LOAN_PRINCIPAL
        )

        rows = DuplicateMatcher(session_factory).detect_duplicates(
            [txn("2026-01-28", "-300.00", "AUTO LOAN PMT")], checking, USER_ID
        )

        match = rows[0].reconcile_match
        assert match.type == ReconcileType.LOAN
        assert match.transaction_id == leg_id
        assert match.linked_transaction_id == partner_id
        assert match.bill_name == "Car Loan"

    def test_credit_card_transfer_from_store(self, session_factory, ledger, checking):
        card = ledger.account("Visa", AccountType.CREDIT_CARD)
        ledger.transfer(checking, card, "2026-01-20", "-250.00", TransactionType.TRANSFER)

        rows = DuplicateMatcher(session_factory).detect_duplicates(
            [txn("2026-01-28", "-250.00", "CARD PAYMENT")], checking, USER_ID
        )

        assert rows[0].reconcile_match.type == ReconcileType.CREDIT_CARD
        assert rows[0].reconcile_match.bill_name == "Visa"
