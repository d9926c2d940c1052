from pathlib import Path

from tenant_books.exceptions import ImportFormatError
from tenant_books.parsers.base import ParsedStatementRow, StatementParser
from tenant_books.parsers.csv_parser import CSVStatementParser
from tenant_books.parsers.xlsx_parser import XLSXStatementParser

_PARSERS: dict[str, type[StatementParser]] = {
    ".csv": CSVStatementParser,
    ".xlsx": XLSXStatementParser,
}


def parser_for(file_path: str | Path) -> StatementParser:
    """Pick a parser from the file extension."""
    suffix = Path(file_path).suffix.lower()
    parser_class = _PARSERS.get(suffix)
    if parser_class is None:
        raise ImportFormatError(
            f"Unsupported statement format: {suffix or 'no extension'}",
            file_name=Path(file_path).name,
        )
    return parser_class()


__all__ = [
    "CSVStatementParser",
    "ParsedStatementRow",
    "StatementParser",
    "XLSXStatementParser",
    "parser_for",
]
