"""Excel review workbook for classified import rows."""

from datetime import datetime
from pathlib import Path
from typing import List, Optional

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from ledger_import.engine.models import DuplicateStatus, ImportResult, ImportRow


class ImportReportGenerator:
    """Generate an Excel workbook summarizing an import preview or result."""

    # Style constants
    HEADER_FILL = PatternFill(start_color="1F4E79", end_color="1F4E79", fill_type="solid")
    HEADER_FONT = Font(name="Calibri", size=11, bold=True, color="FFFFFF")
    NEW_FILL = PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid")
    RECONCILE_FILL = PatternFill(start_color="DDEBF7", end_color="DDEBF7", fill_type="solid")
    REVIEW_FILL = PatternFill(start_color="FFEB9C", end_color="FFEB9C", fill_type="solid")
    DUPLICATE_FILL = PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid")
    TITLE_FONT = Font(name="Calibri", size=16, bold=True, color="1F4E79")
    SUBTITLE_FONT = Font(name="Calibri", size=12, bold=True, color="1F4E79")
    KPI_FONT = Font(name="Calibri", size=14, bold=True)
    THIN_BORDER = Border(
        left=Side(style="thin"),
        right=Side(style="thin"),
        top=Side(style="thin"),
        bottom=Side(style="thin"),
    )

    ROW_HEADERS = ["Row", "Date", "Amount", "Description", "Category", "Selected", "Match"]

    def generate(
        self,
        rows: List[ImportRow],
        output_path: str | Path,
        result: Optional[ImportResult] = None,
    ) -> Path:
        """
        Generate the workbook with 5 tabs.

        Args:
            rows: Classified import rows.
            output_path: Path for the output Excel file.
            result: Import outcome, when the rows were already imported.

        Returns:
            Path to the generated report.
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        wb = Workbook()

        # Tab 1: Summary
        self._create_summary_tab(wb, rows, result)

        # Tabs 2-5: one per status
        self._create_rows_tab(wb, "New", "00B050", self.NEW_FILL, self._by_status(rows, DuplicateStatus.NEW))
        self._create_reconcile_tab(wb, self._by_status(rows, DuplicateStatus.RECONCILE))
        self._create_rows_tab(wb, "Review", "FFC000", self.REVIEW_FILL, self._by_status(rows, DuplicateStatus.REVIEW))
        self._create_rows_tab(
            wb, "Duplicates", "FF0000", self.DUPLICATE_FILL, self._by_status(rows, DuplicateStatus.DUPLICATE)
        )

        wb.save(str(output_path))
        return output_path

    @staticmethod
    def _by_status(rows: List[ImportRow], status: DuplicateStatus) -> List[ImportRow]:
        return [r for r in rows if r.status == status]

    def _create_summary_tab(
        self, wb: Workbook, rows: List[ImportRow], result: Optional[ImportResult]
    ) -> None:
        """Create the Summary dashboard tab."""
        ws = wb.active
        ws.title = "Summary"
        ws.sheet_properties.tabColor = "1F4E79"

        ws.merge_cells("A1:F1")
        ws["A1"] = "Transaction Import Report"
        ws["A1"].font = self.TITLE_FONT
        ws["A1"].alignment = Alignment(horizontal="center")

        ws.merge_cells("A2:F2")
        ws["A2"] = f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"
        ws["A2"].alignment = Alignment(horizontal="center")

        kpis = [
            ("Total Rows", len(rows)),
            ("Selected", sum(1 for r in rows if r.selected)),
            ("New", len(self._by_status(rows, DuplicateStatus.NEW))),
            ("Reconcile", len(self._by_status(rows, DuplicateStatus.RECONCILE))),
            ("Review", len(self._by_status(rows, DuplicateStatus.REVIEW))),
            ("Duplicates", len(self._by_status(rows, DuplicateStatus.DUPLICATE))),
        ]

        ws["A4"] = "Classification"
        ws["A4"].font = self.SUBTITLE_FONT

        for i, (label, value) in enumerate(kpis, start=5):
            ws[f"A{i}"] = label
            ws[f"A{i}"].font = Font(bold=True)
            ws[f"B{i}"] = value
            ws[f"B{i}"].font = self.KPI_FONT
            if label in ("Review", "Duplicates") and value > 0:
                ws[f"B{i}"].fill = self.REVIEW_FILL

        row = len(kpis) + 7
        ws[f"A{row}"] = "Amount Summary"
        ws[f"A{row}"].font = self.SUBTITLE_FONT
        row += 1

        selected = [r for r in rows if r.selected]
        amounts = [
            ("Selected Debits", sum(float(r.amount) for r in selected if r.amount < 0)),
            ("Selected Credits", sum(float(r.amount) for r in selected if r.amount > 0)),
            ("Selected Net", sum(float(r.amount) for r in selected)),
        ]
        if result is not None:
            amounts.append(("New Balance", float(result.new_balance)))

        for label, amount in amounts:
            ws[f"A{row}"] = label
            ws[f"A{row}"].font = Font(bold=True)
            ws[f"B{row}"] = amount
            ws[f"B{row}"].number_format = '#,##0.00'
            row += 1

        if result is not None:
            for label, value in (
                ("Imported", result.imported),
                ("Reconciled", result.reconciled),
                ("Skipped", result.skipped),
            ):
                ws[f"A{row}"] = label
                ws[f"A{row}"].font = Font(bold=True)
                ws[f"B{row}"] = value
                row += 1

        ws.column_dimensions["A"].width = 25
        ws.column_dimensions["B"].width = 20

    def _create_rows_tab(
        self, wb: Workbook, title: str, color: str, fill: PatternFill, rows: List[ImportRow]
    ) -> None:
        """Create a tab listing rows of one status."""
        ws = wb.create_sheet(title)
        ws.sheet_properties.tabColor = color

        self._write_headers(ws, self.ROW_HEADERS)

        for i, r in enumerate(rows, start=2):
            ws[f"A{i}"] = r.index + 1
            ws[f"B{i}"] = r.date
            ws[f"C{i}"] = float(r.amount)
            ws[f"C{i}"].number_format = '#,##0.00'
            ws[f"D{i}"] = r.description[:80]
            ws[f"E{i}"] = r.category or ""
            ws[f"F{i}"] = "yes" if r.selected else "no"
            ws[f"G{i}"] = r.match_description or ""

            for col in range(1, len(self.ROW_HEADERS) + 1):
                ws.cell(row=i, column=col).fill = fill

        self._auto_width(ws, self.ROW_HEADERS)

    def _create_reconcile_tab(self, wb: Workbook, rows: List[ImportRow]) -> None:
        """Create the Reconcile tab with the record each row replaces."""
        ws = wb.create_sheet("Reconcile")
        ws.sheet_properties.tabColor = "2F75B5"

        headers = ["Row", "Date", "Amount", "Description", "Replaces", "Kind", "Candidates"]
        self._write_headers(ws, headers)

        for i, r in enumerate(rows, start=2):
            match = r.reconcile_match
            ws[f"A{i}"] = r.index + 1
            ws[f"B{i}"] = r.date
            ws[f"C{i}"] = float(r.amount)
            ws[f"C{i}"].number_format = '#,##0.00'
            ws[f"D{i}"] = r.description[:80]
            ws[f"E{i}"] = match.bill_name if match else ""
            ws[f"F{i}"] = match.type.value if match else ""
            ws[f"G{i}"] = len(r.reconcile_candidates)

            for col in range(1, len(headers) + 1):
                ws.cell(row=i, column=col).fill = self.RECONCILE_FILL

        self._auto_width(ws, headers)

    def _write_headers(self, ws, headers: List[str]) -> None:
        """Write styled header row."""
        for col_idx, header in enumerate(headers, start=1):
            cell = ws.cell(row=1, column=col_idx, value=header)
            cell.font = self.HEADER_FONT
            cell.fill = self.HEADER_FILL
            cell.alignment = Alignment(horizontal="center")
            cell.border = self.THIN_BORDER

        # Freeze top row
        ws.freeze_panes = "A2"

        # Auto-filter
        ws.auto_filter.ref = f"A1:{get_column_letter(len(headers))}1"

    def _auto_width(self, ws, headers: List[str]) -> None:
        """Auto-adjust column widths."""
        for col_idx, header in enumerate(headers, start=1):
            col_letter = get_column_letter(col_idx)
            max_len = len(header) + 4
            ws.column_dimensions[col_letter].width = min(max_len, 35)
