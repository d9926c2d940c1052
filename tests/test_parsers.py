"""Tests for the bank statement parsers."""

from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from openpyxl import Workbook

from tenant_books.exceptions import ImportFormatError
from tenant_books.parsers import (
    CSVStatementParser,
    XLSXStatementParser,
    parser_for,
)
from tenant_books.parsers.base import StatementParser
from tenant_books.services.matching import (
    bigram_similarity,
    description_similarity,
    duplicate_score,
    normalize_description,
)


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


class TestCSVStatementParser:
    """Tests for CSV statements."""

    def test_signed_amount_column(self, tmp_path: Path) -> None:
        csv_file = _write(
            tmp_path / "stmt.csv",
            "Date,Description,Amount,Balance\n"
            "2025-01-05,STRIPE PAYOUT,\"$1,250.00\",5250.00\n"
            "01/06/2025,STARBUCKS #123,(4.75),5245.25\n",
        )

        rows = CSVStatementParser().parse(csv_file)

        assert len(rows) == 2
        assert rows[0].date == date(2025, 1, 5)
        assert rows[0].description == "STRIPE PAYOUT"
        assert rows[0].amount == Decimal("1250.00")
        assert rows[0].balance == Decimal("5250.00")
        assert rows[1].date == date(2025, 1, 6)
        assert rows[1].amount == Decimal("-4.75")

    def test_debit_credit_columns(self, tmp_path: Path) -> None:
        csv_file = _write(
            tmp_path / "stmt.csv",
            "Posted Date,Memo,Withdrawal,Deposit\n"
            "2025-02-01,Rent,1200.00,\n"
            "2025-02-02,Client payment,,300.00\n",
        )

        rows = CSVStatementParser().parse(csv_file)

        assert [r.amount for r in rows] == [Decimal("-1200.00"), Decimal("300.00")]
        assert rows[0].description == "Rent"

    def test_headers_case_insensitive_and_bom(self, tmp_path: Path) -> None:
        csv_file = tmp_path / "stmt.csv"
        csv_file.write_text("DATE,PAYEE,AMOUNT\n2025-03-01,Coffee,-3.50\n", encoding="utf-8-sig")

        rows = CSVStatementParser().parse(csv_file)

        assert rows[0].amount == Decimal("-3.50")
        assert rows[0].description == "Coffee"

    def test_bad_dates_and_blank_rows_skipped(self, tmp_path: Path) -> None:
        csv_file = _write(
            tmp_path / "stmt.csv",
            "Date,Description,Amount\n"
            "not a date,Junk,1.00\n"
            ",,\n"
            "2025-01-05,Good,2.00\n",
        )

        rows = CSVStatementParser().parse(csv_file)

        assert [r.description for r in rows] == ["Good"]

    def test_external_ids_differ_per_row(self, tmp_path: Path) -> None:
        csv_file = _write(
            tmp_path / "stmt.csv",
            "Date,Description,Amount\n"
            "2025-01-05,Fee,-1.00\n"
            "2025-01-05,Fee,-1.00\n",
        )

        rows = CSVStatementParser().parse(csv_file)

        assert len(rows[0].external_id or "") == 16
        assert rows[0].external_id != rows[1].external_id

    def test_missing_date_column(self, tmp_path: Path) -> None:
        csv_file = _write(tmp_path / "stmt.csv", "Description,Amount\nThing,1.00\n")

        with pytest.raises(ImportFormatError):
            CSVStatementParser().parse(csv_file)

    def test_missing_amount_columns(self, tmp_path: Path) -> None:
        csv_file = _write(tmp_path / "stmt.csv", "Date,Description\n2025-01-01,Thing\n")

        with pytest.raises(ImportFormatError):
            CSVStatementParser().parse(csv_file)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            CSVStatementParser().parse(tmp_path / "nope.csv")

    def test_not_utf8(self, tmp_path: Path) -> None:
        csv_file = tmp_path / "stmt.csv"
        csv_file.write_bytes("Date,Description,Amount\n2025-01-01,Café,1.00\n".encode("cp1252"))

        with pytest.raises(ImportFormatError):
            CSVStatementParser().parse(csv_file)


class TestXLSXStatementParser:
    """Tests for Excel statements."""

    def test_header_found_below_title_rows(self, tmp_path: Path) -> None:
        wb = Workbook()
        ws = wb.active
        ws.append(["First Community Bank"])
        ws.append([])
        ws.append(["Date", "Description", "Debit", "Credit"])
        ws.append([date(2025, 4, 1), "Payroll", 2500, None])
        ws.append([date(2025, 4, 2), "Refund", None, 40.5])
        path = tmp_path / "stmt.xlsx"
        wb.save(path)

        rows = XLSXStatementParser().parse(path)

        assert [r.date for r in rows] == [date(2025, 4, 1), date(2025, 4, 2)]
        assert rows[0].amount == Decimal("-2500")
        assert rows[1].amount == Decimal("40.5")

    def test_no_header(self, tmp_path: Path) -> None:
        wb = Workbook()
        wb.active.append(["just", "some", "cells"])
        path = tmp_path / "stmt.xlsx"
        wb.save(path)

        with pytest.raises(ImportFormatError):
            XLSXStatementParser().parse(path)


class TestParserFor:
    def test_picks_by_extension(self) -> None:
        assert isinstance(parser_for("a.CSV"), CSVStatementParser)
        assert isinstance(parser_for("a.xlsx"), XLSXStatementParser)

    def test_unsupported_extension(self) -> None:
        with pytest.raises(ImportFormatError):
            parser_for("statement.ofx")


class TestValueParsing:
    """Tests for the shared amount and date parsing."""

    def test_parse_decimal(self) -> None:
        parser: StatementParser = CSVStatementParser()

        assert parser.parse_decimal("(1,234.50)") == Decimal("-1234.50")
        assert parser.parse_decimal("$12") == Decimal("12")
        assert parser.parse_decimal("") is None
        assert parser.parse_decimal("abc") is None

    def test_parse_date_formats(self) -> None:
        parser = CSVStatementParser()

        assert parser.parse_date("2025-07-04") == date(2025, 7, 4)
        assert parser.parse_date("07/04/2025") == date(2025, 7, 4)
        assert parser.parse_date("04 Jul 2025") == date(2025, 7, 4)
        assert parser.parse_date("yesterday") is None


class TestMatchingHelpers:
    """Tests for description normalization and duplicate scoring."""

    def test_normalize(self) -> None:
        assert normalize_description("  AMZN  Mktp*US #123 ") == "amzn mktpus 123"
        assert normalize_description("Tim's Cafe #12") == "tims cafe 12"
        assert normalize_description(None) == ""

    def test_similarity(self) -> None:
        assert description_similarity("Coffee Shop", "COFFEE  SHOP!") == 1.0
        assert description_similarity("", "anything") == 0.0

    def test_bigram_similarity(self) -> None:
        assert bigram_similarity("night", "nacht") == 0.25
        assert bigram_similarity("stripe payout", "stripepayout") == 1.0
        assert bigram_similarity("a", "ab") == 0.0
        assert bigram_similarity("aaaa", "aa") == 0.5

    def test_duplicate_score(self) -> None:
        same = duplicate_score(
            date(2025, 1, 1), Decimal("10"), "Rent",
            date(2025, 1, 3), Decimal("10"), "Rent",
        )
        different_description = duplicate_score(
            date(2025, 1, 1), Decimal("10"), "Rent",
            date(2025, 1, 2), Decimal("10"), "Groceries",
        )
        far_apart = duplicate_score(
            date(2025, 1, 1), Decimal("10"), "Rent",
            date(2025, 1, 10), Decimal("10"), "Rent",
        )

        assert same == 100
        assert different_description == 80
        assert far_apart == 60
