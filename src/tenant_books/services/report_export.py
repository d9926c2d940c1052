"""CSV rendering of financial reports.

Cells that a spreadsheet would evaluate as a formula are prefixed with a
single quote.
"""

from __future__ import annotations

import csv
import io
from decimal import Decimal
from typing import Any

from tenant_books.services.interfaces import (
    BalanceSheetReport,
    CashFlowReport,
    GeneralLedgerReport,
    ProfitAndLossReport,
    ReportLine,
    TrialBalanceReport,
)

FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")


def sanitize_cell(value: Any) -> str:
    if value is None:
        return ""
    text = str(value)
    if text.startswith(FORMULA_PREFIXES):
        return f"'{text}"
    return text


def format_amount(amount: Decimal | None) -> str:
    if amount is None:
        return ""
    return f"{amount:.2f}"


def _render(rows: list[list[str]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerows(rows)
    return buffer.getvalue()


def _section_rows(title: str, lines: list[ReportLine], type_label: str) -> list[list[str]]:
    rows = [["", f"--- {title} ---", "", ""]]
    for line in lines:
        rows.append(
            [
                sanitize_cell(line.code),
                sanitize_cell(line.name),
                type_label,
                format_amount(line.amount),
            ]
        )
    return rows


def trial_balance_to_csv(report: TrialBalanceReport) -> str:
    rows = [["Account Code", "Account Name", "Debit", "Credit"]]
    for row in report.rows:
        rows.append(
            [
                sanitize_cell(row.code),
                sanitize_cell(row.name),
                format_amount(row.debit) if row.debit > 0 else "",
                format_amount(row.credit) if row.credit > 0 else "",
            ]
        )
    rows.append(
        ["", "Totals", format_amount(report.total_debits), format_amount(report.total_credits)]
    )
    return _render(rows)


def profit_and_loss_to_csv(report: ProfitAndLossReport) -> str:
    rows = [["Account Code", "Account Name", "Type", "Balance"]]
    rows.extend(_section_rows("Revenue", report.revenue, "INCOME"))
    rows.append(["", "Total Revenue", "", format_amount(report.total_revenue)])
    rows.extend(_section_rows("Expenses", report.expenses, "EXPENSE"))
    rows.append(["", "Total Expenses", "", format_amount(report.total_expenses)])
    rows.append(["", "Net Income", "", format_amount(report.net_income)])
    return _render(rows)


def balance_sheet_to_csv(report: BalanceSheetReport) -> str:
    rows = [["Account Code", "Account Name", "Type", "Balance"]]
    rows.extend(_section_rows("Assets", report.assets, "ASSET"))
    rows.append(["", "Total Assets", "", format_amount(report.total_assets)])
    rows.extend(_section_rows("Liabilities", report.liabilities, "LIABILITY"))
    rows.append(["", "Total Liabilities", "", format_amount(report.total_liabilities)])
    rows.extend(_section_rows("Equity", report.equity, "EQUITY"))
    rows.append(
        [
            "3100",
            "Retained Earnings (Prior Years)",
            "EQUITY",
            format_amount(report.retained_earnings_prior),
        ]
    )
    rows.append(
        ["", "Net Income (Current Year)", "EQUITY", format_amount(report.retained_earnings_current)]
    )
    rows.append(["", "Total Equity", "", format_amount(report.total_equity)])
    rows.append(
        [
            "",
            "Total Liabilities & Equity",
            "",
            format_amount(report.total_liabilities_and_equity),
        ]
    )
    return _render(rows)


def general_ledger_to_csv(report: GeneralLedgerReport) -> str:
    rows = [["Date", "Entry #", "Memo", "Debit", "Credit", "Running Balance"]]
    for row in report.rows:
        rows.append(
            [
                row.entry_date.isoformat(),
                sanitize_cell(row.entry_number),
                sanitize_cell(row.memo),
                format_amount(row.debit) if row.debit > 0 else "",
                format_amount(row.credit) if row.credit > 0 else "",
                format_amount(row.balance),
            ]
        )
    return _render(rows)


def cash_flow_to_csv(report: CashFlowReport) -> str:
    rows = [["Category", "Item", "Amount"]]
    rows.append(["Operating", "Net Income", format_amount(report.net_income)])
    sections = (
        ("Operating", report.operating, report.total_operating),
        ("Investing", report.investing, report.total_investing),
        ("Financing", report.financing, report.total_financing),
    )
    for label, lines, total in sections:
        for line in lines:
            rows.append([label, sanitize_cell(line.name), format_amount(line.amount)])
        rows.append([label, "Total", format_amount(total)])
    rows.append(["", "Opening Cash Balance", format_amount(report.opening_cash)])
    rows.append(["", "Net Cash Change", format_amount(report.net_cash_change)])
    rows.append(["", "Closing Cash Balance", format_amount(report.closing_cash)])
    return _render(rows)
