"""Shared pieces of the bank statement parsers."""

import hashlib
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class ParsedStatementRow:
    """One row of a bank statement.

    Attributes:
        date: Transaction date
        description: Bank description
        amount: Signed amount, positive for money coming in
        balance: Running balance when the statement carries one
        external_id: Stable hash of the row used to skip re-imported rows
    """

    date: date
    description: str
    amount: Decimal
    balance: Decimal | None = None
    external_id: str | None = None


class StatementParser(ABC):
    """Base class for statement parsers.

    Columns are found by header name, case-insensitively. A statement either
    has a signed amount column or separate debit and credit columns.
    """

    DATE_COLUMNS = ["date", "posted date", "posting date", "transaction date", "trans date"]
    DESCRIPTION_COLUMNS = ["description", "memo", "payee", "name", "details"]
    AMOUNT_COLUMNS = ["amount", "transaction amount"]
    BALANCE_COLUMNS = ["balance", "running balance"]
    DEBIT_COLUMNS = ["debit", "withdrawal", "withdrawals"]
    CREDIT_COLUMNS = ["credit", "deposit", "deposits"]

    DATE_FORMATS = [
        "%Y-%m-%d",
        "%m/%d/%Y",
        "%m/%d/%y",
        "%d/%m/%Y",
        "%Y/%m/%d",
        "%d-%m-%Y",
        "%d %b %Y",
    ]

    source: str = ""

    @abstractmethod
    def parse(self, file_path: str | Path) -> list[ParsedStatementRow]:
        ...

    def detect_columns(self, headers: Sequence[Any]) -> dict[str, int]:
        """Map field names to column positions from a header row."""
        candidates = {
            "date": self.DATE_COLUMNS,
            "description": self.DESCRIPTION_COLUMNS,
            "amount": self.AMOUNT_COLUMNS,
            "balance": self.BALANCE_COLUMNS,
            "debit": self.DEBIT_COLUMNS,
            "credit": self.CREDIT_COLUMNS,
        }
        normalized = [str(h).strip().lower() if h is not None else "" for h in headers]
        columns: dict[str, int] = {}
        for field_name, names in candidates.items():
            for name in names:
                if name in normalized:
                    columns[field_name] = normalized.index(name)
                    break
        return columns

    def has_required_columns(self, columns: dict[str, int]) -> bool:
        has_amount = "amount" in columns or ("debit" in columns or "credit" in columns)
        return "date" in columns and has_amount

    def build_row(
        self, values: Sequence[Any], columns: dict[str, int], row_num: int
    ) -> ParsedStatementRow | None:
        """Turn raw cell values into a row, or None for blank and unparseable rows."""

        def cell(field_name: str) -> Any:
            index = columns.get(field_name)
            if index is None or index >= len(values):
                return None
            return values[index]

        txn_date = self.parse_date(cell("date"))
        if txn_date is None:
            return None

        amount = self.parse_decimal(cell("amount"))
        if amount is None:
            debit = self.parse_decimal(cell("debit"))
            credit = self.parse_decimal(cell("credit"))
            if debit is None and credit is None:
                return None
            amount = abs(credit or Decimal("0")) - abs(debit or Decimal("0"))

        description = str(cell("description") or "").strip()
        return ParsedStatementRow(
            date=txn_date,
            description=description,
            amount=amount,
            balance=self.parse_decimal(cell("balance")),
            external_id=self.row_id(row_num, txn_date, amount, description),
        )

    def parse_date(self, value: Any) -> date | None:
        if value is None:
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        text = str(value).strip()
        if not text:
            return None
        for fmt in self.DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt).date()
            except ValueError:
                continue
        return None

    def parse_decimal(self, value: Any) -> Decimal | None:
        """Parse an amount, accepting ``$``, thousands separators and ``(1.00)`` negatives."""
        if value is None:
            return None
        if isinstance(value, (int, float, Decimal)):
            return Decimal(str(value))

        cleaned = str(value).strip().replace("$", "").replace(",", "").replace(" ", "")
        if not cleaned:
            return None
        if cleaned.startswith("(") and cleaned.endswith(")"):
            cleaned = "-" + cleaned[1:-1]
        try:
            return Decimal(cleaned)
        except InvalidOperation:
            return None

    def row_id(self, row_num: int, txn_date: date, amount: Decimal, description: str) -> str:
        hash_input = f"{self.source}:{row_num}:{txn_date.isoformat()}:{amount}:{description}"
        return hashlib.sha256(hash_input.encode()).hexdigest()[:16]
