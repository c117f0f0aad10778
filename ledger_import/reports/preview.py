"""Tabular preview of classified import rows."""

from typing import List

import pandas as pd

from ledger_import.engine.models import ImportRow

PREVIEW_COLUMNS = [
    "row", "date", "amount", "description", "category", "status", "selected", "match",
]


def import_rows_to_frame(rows: List[ImportRow]) -> pd.DataFrame:
    """Build a DataFrame with one line per import row, for display or CSV export."""
    records = []
    for r in rows:
        if r.reconcile_match is not None:
            match = f"{r.reconcile_match.type.value}: {r.reconcile_match.bill_name}"
        else:
            match = r.match_description or ""
        records.append({
            "row": r.index + 1,
            "date": r.date,
            "amount": float(r.amount),
            "description": r.description,
            "category": r.category or "",
            "status": r.status.value,
            "selected": r.selected,
            "match": match,
        })
    return pd.DataFrame.from_records(records, columns=PREVIEW_COLUMNS)
