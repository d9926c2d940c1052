"""Excel (.xlsx) bank statement parser."""

from pathlib import Path
from typing import Any
from zipfile import BadZipFile

from openpyxl import load_workbook  # type: ignore[import-untyped]
from openpyxl.utils.exceptions import InvalidFileException  # type: ignore[import-untyped]

from tenant_books.exceptions import ImportFormatError
from tenant_books.parsers.base import ParsedStatementRow, StatementParser


class XLSXStatementParser(StatementParser):
    """Reads the active sheet. The header is the first row that names a date column."""

    source = "xlsx"
    MAX_HEADER_SCAN = 20

    def parse(self, file_path: str | Path) -> list[ParsedStatementRow]:
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Excel file not found: {file_path}")

        try:
            wb = load_workbook(path, read_only=True, data_only=True)
        except (BadZipFile, InvalidFileException, KeyError, OSError) as exc:
            raise ImportFormatError(
                f"Not a readable Excel workbook: {exc}", file_name=path.name
            ) from exc
        try:
            ws = wb.active
            if ws is None:
                return []
            all_rows: list[tuple[Any, ...]] = list(ws.iter_rows(values_only=True))
        finally:
            wb.close()

        header_index = None
        columns: dict[str, int] = {}
        for index, values in enumerate(all_rows[: self.MAX_HEADER_SCAN]):
            columns = self.detect_columns(values)
            if self.has_required_columns(columns):
                header_index = index
                break
        if header_index is None:
            raise ImportFormatError(
                "No header row with a date and an amount column was found",
                file_name=path.name,
            )

        rows: list[ParsedStatementRow] = []
        for row_num, values in enumerate(all_rows[header_index + 1 :], start=1):
            if all(value is None or str(value).strip() == "" for value in values):
                continue
            parsed = self.build_row(values, columns, row_num)
            if parsed is not None:
                rows.append(parsed)
        return rows
