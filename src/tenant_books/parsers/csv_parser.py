"""CSV bank statement parser."""

import csv
import io
from pathlib import Path

from tenant_books.exceptions import ImportFormatError
from tenant_books.parsers.base import ParsedStatementRow, StatementParser


class CSVStatementParser(StatementParser):
    source = "csv"

    def parse(self, file_path: str | Path) -> list[ParsedStatementRow]:
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"CSV file not found: {file_path}")

        try:
            text = path.read_text(encoding="utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ImportFormatError(
                f"Statement is not UTF-8 text: {exc.reason}", file_name=path.name
            ) from exc

        rows: list[ParsedStatementRow] = []
        reader = csv.reader(io.StringIO(text, newline=""))
        headers = next(reader, None)
        if headers is None:
            return []
        columns = self.detect_columns(headers)
        if not self.has_required_columns(columns):
            raise ImportFormatError(
                "Statement needs a date column and an amount or debit/credit columns",
                file_name=path.name,
            )
        for row_num, values in enumerate(reader, start=1):
            if not any(value.strip() for value in values):
                continue
            parsed = self.build_row(values, columns, row_num)
            if parsed is not None:
                rows.append(parsed)
        return rows
