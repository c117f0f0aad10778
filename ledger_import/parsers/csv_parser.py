"""CSV bank statement parser."""

import logging
from pathlib import Path
from typing import List, Sequence

from ledger_import.engine.errors import EmptyFileError
from ledger_import.engine.models import ParsedCSV

logger = logging.getLogger(__name__)

BOM = "\ufeff"


def cell(row: Sequence[str], idx: int) -> str:
    """Return a cell of a parsed row; missing cells and bad indexes read as blank."""
    if 0 <= idx < len(row) and row[idx] is not None:
        return row[idx]
    return ""


class CSVParser:
    """
    Parse comma-delimited bank exports into a header row and data rows.

    Handles the usual export quirks: quoted fields with embedded commas,
    newlines and doubled quotes, a leading BOM, CRLF or LF line endings,
    and blank trailing lines.
    """

    def parse(self, file_path: str | Path) -> ParsedCSV:
        """
        Read a CSV file and parse its contents.

        Args:
            file_path: Path to the CSV file.

        Returns:
            ParsedCSV with trimmed headers and raw data rows.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            EmptyFileError: If the file has no data rows.
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        with open(file_path, "r", encoding="utf-8", newline="") as f:
            content = f.read()

        return self.parse_content(content)

    def parse_content(self, content: str) -> ParsedCSV:
        """
        Parse raw CSV text.

        Args:
            content: File content as a string.

        Returns:
            ParsedCSV where the first non-blank row is the header row.

        Raises:
            EmptyFileError: If fewer than two non-blank rows exist.
        """
        if content.startswith(BOM):
            content = content[1:]

        rows = self._split_rows(content)
        non_empty = [row for row in rows if any(value.strip() for value in row)]

        if len(non_empty) < 2:
            raise EmptyFileError()

        headers = [value.strip() for value in non_empty[0]]
        data_rows = non_empty[1:]
        logger.debug("Parsed %d columns and %d data rows", len(headers), len(data_rows))
        return ParsedCSV(headers=headers, rows=data_rows)

    def _split_rows(self, content: str) -> List[List[str]]:
        """Scan the content character by character into rows of fields."""
        rows: List[List[str]] = []
        current: List[str] = []
        field: List[str] = []
        in_quotes = False
        i = 0
        n = len(content)

        while i < n:
            char = content[i]

            if in_quotes:
                if char == '"':
                    if i + 1 < n and content[i + 1] == '"':
                        field.append('"')
                        i += 2
                        continue
                    in_quotes = False
                else:
                    field.append(char)
                i += 1
                continue

            if char == '"':
                in_quotes = True
            elif char == ",":
                current.append("".join(field))
                field = []
            elif char == "\r" or char == "\n":
                current.append("".join(field))
                field = []
                rows.append(current)
                current = []
                if char == "\r" and i + 1 < n and content[i + 1] == "\n":
                    i += 1
            else:
                field.append(char)
            i += 1

        if field or current:
            current.append("".join(field))
            rows.append(current)

        return rows
