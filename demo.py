"""
Demo script for the ledger CSV import pipeline.

Builds a throwaway SQLite ledger with a checking account, a recorded
electric bill payment and a car loan payment, then imports a bank export
that repeats, near-repeats and replaces some of those records.

Usage:
    python demo.py
"""

import logging
import tempfile
from datetime import date
from decimal import Decimal
from pathlib import Path

from ledger_import import api
from ledger_import.engine.importer import TransactionImporter
from ledger_import.engine.selection import ImportService
from ledger_import.reports.excel_report import ImportReportGenerator
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

USER_ID = "demo-user"

STATEMENT = """\
Date,Description,Debit,Credit,Category
01/15/2026,COFFEE HOUSE,5.50,,Dining
01/16/2026,WALMART #1235,42.10,,Groceries
01/05/2026,CITY ELECTRIC,118.40,,Utilities
01/28/2026,AUTO LOAN PMT,300.00,,
01/31/2026,PAYROLL,,2500.00,Income
not a date,Junk row,1.00,,
"""


def seed(session_factory) -> str:
    """Create the demo account and its existing history."""
    checking_id = new_id()
    loan_id = new_id()
    with session_scope(session_factory) as s:
        s.add_all([
            Account(id=checking_id, user_id=USER_ID, name="Checking",
                    type=AccountType.CHECKING, balance=Decimal("1200.00")),
            Account(id=loan_id, user_id=USER_ID, name="Car Loan",
                    type=AccountType.LOAN, balance=Decimal("-9000.00")),
        ])
        s.flush()

        s.add_all([
            Transaction(user_id=USER_ID, account_id=checking_id, date=date(2026, 1, 15),
                        description="Coffee House", amount=Decimal("-5.50"),
                        type=TransactionType.EXPENSE),
            Transaction(user_id=USER_ID, account_id=checking_id, date=date(2026, 1, 16),
                        description="WALMART #1234", amount=Decimal("-42.10"),
                        type=TransactionType.EXPENSE),
        ])

        bill_tx = Transaction(id=new_id(), user_id=USER_ID, account_id=checking_id,
                              date=date(2026, 1, 3), description="Electric",
                              amount=Decimal("-110.00"), type=TransactionType.EXPENSE,
                              source=TransactionSource.RECURRING)
        bill = RecurringBill(id=new_id(), user_id=USER_ID, account_id=checking_id,
                             name="Electric", amount=Decimal("110.00"), day_of_month=3,
                             is_variable_amount=True)
        s.add_all([bill_tx, bill])
        s.flush()
        s.add(BillPayment(recurring_bill_id=bill.id, transaction_id=bill_tx.id,
                          month=1, year=2026, amount=Decimal("110.00")))

        leg = Transaction(id=new_id(), user_id=USER_ID, account_id=checking_id,
                          date=date(2026, 1, 25), description="Loan payment",
                          amount=Decimal("-300.00"), type=TransactionType.TRANSFER)
        s.add(leg)
        s.flush()
        partner = Transaction(id=new_id(), user_id=USER_ID, account_id=loan_id,
                              date=date(2026, 1, 25), description="Loan payment",
                              amount=Decimal("300.00"), type=TransactionType.LOAN_PRINCIPAL,
                              linked_transaction_id=leg.id)
        s.add(partner)
        s.flush()
        leg.linked_transaction_id = partner.id

    return checking_id


def main():
    """Run the import demo."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    workdir = Path(tempfile.mkdtemp(prefix="ledger-import-demo-"))
    engine = create_ledger_engine(f"sqlite:///{workdir / 'ledger.db'}")
    Base.metadata.create_all(engine)
    session_factory = make_session_factory(engine)
    account_id = seed(session_factory)

    print("=" * 60)
    print("  LEDGER CSV IMPORT - DEMO")
    print("=" * 60)

    # Step 1: Parse
    print("\n  [1/4] Parsing bank export")
    parsed = api.parse_csv(STATEMENT)
    print(f"        Columns: {', '.join(parsed.headers)}")
    print(f"        Found {len(parsed.rows)} data rows")

    # Step 2: Detect columns and normalize
    print("\n  [2/4] Detecting columns and normalizing amounts")
    detected = api.detect_columns(parsed.headers, parsed.rows)
    mapping = detected.to_mapping()
    print(f"        Amount pattern: {mapping.amount_pattern}")
    transactions = api.normalize_amounts(parsed.rows, mapping)
    print(f"        {len(transactions)} usable transactions")

    # Step 3: Classify
    print("\n  [3/4] Matching against account history")
    rows = api.detect_duplicates(
        transactions, account_id, USER_ID, session_factory=session_factory
    )
    for r in rows:
        target = f" -> {r.reconcile_match.bill_name}" if r.reconcile_match else ""
        selected = "x" if r.selected else " "
        print(
            f"        [{selected}] {r.status.value:>9} | {r.date} | {r.amount:>9} | "
            f"{r.description[:25]}{target}"
        )

    # Step 4: Import the default selection
    print("\n  [4/4] Importing selected rows")
    service = ImportService(TransactionImporter(session_factory))
    result = service.import_rows(rows, account_id, USER_ID)

    output_path = ImportReportGenerator().generate(rows, workdir / "import_report.xlsx", result)

    print("\n" + "=" * 60)
    print("  IMPORT SUMMARY")
    print("=" * 60)
    print(f"  Imported:             {result.imported}")
    print(f"  Reconciled:           {result.reconciled}")
    print(f"  New Balance:          {result.new_balance:>12,.2f}")
    print("=" * 60)

    print(f"\n  Report saved to: {output_path.absolute()}\n")
    engine.dispose()


if __name__ == "__main__":
    main()
