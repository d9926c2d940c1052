"""Tests for the financial reports."""

from collections.abc import Callable
from datetime import date
from decimal import Decimal

import pytest

from tenant_books.container import Container, ServiceScope
from tenant_books.domain.entities import Entity, GLAccount
from tenant_books.domain.journal import JournalEntry
from tenant_books.domain.tenancy import TenantContext
from tenant_books.domain.value_objects import Currency
from tenant_books.exceptions import (
    EntityNotFoundError,
    MultiCurrencyConsolidationError,
    ValidationError,
)
from tenant_books.services.interfaces import LineInput, ReportSeverity


@pytest.fixture
def history(
    account: Callable[[str], GLAccount], post_entry: Callable[..., JournalEntry]
) -> list[JournalEntry]:
    """Two fiscal years of activity for the test entity."""
    return [
        post_entry(account("1100").id, account("3000").id, "10000.00", date(2024, 6, 1)),
        post_entry(account("1100").id, account("4000").id, "2000.00", date(2024, 7, 1)),
        post_entry(account("5600").id, account("1100").id, "500.00", date(2024, 8, 1)),
        post_entry(account("1200").id, account("4000").id, "1000.00", date(2025, 1, 15)),
        post_entry(account("5400").id, account("1100").id, "300.00", date(2025, 2, 1)),
    ]


class TestTrialBalance:
    """Tests for the trial balance."""

    def test_balanced(
        self, services: ServiceScope, entity: Entity, history: list[JournalEntry]
    ) -> None:
        report = services.reporting.trial_balance(entity.id, date(2025, 3, 31))

        rows = {row.code: row for row in report.rows}
        assert report.is_balanced
        assert report.severity == ReportSeverity.OK
        assert report.total_debits == Decimal("13000.00")
        assert rows["1100"].debit == Decimal("11200.00")
        assert rows["4000"].credit == Decimal("3000.00")
        assert "1000" not in rows

    def test_as_of_excludes_later_entries(
        self, services: ServiceScope, entity: Entity, history: list[JournalEntry]
    ) -> None:
        report = services.reporting.trial_balance(entity.id, date(2024, 12, 31))

        rows = {row.code: row for row in report.rows}
        assert rows["1100"].debit == Decimal("11500.00")
        assert "1200" not in rows

    def test_voided_entry_nets_to_zero(
        self,
        services: ServiceScope,
        entity: Entity,
        account: Callable[[str], GLAccount],
        post_entry: Callable[..., JournalEntry],
    ) -> None:
        entry = post_entry(account("5100").id, account("1100").id, "75.00")
        services.journal.void_entry(entry.id, reversal_date=date(2025, 1, 20))

        report = services.reporting.trial_balance(entity.id, date(2025, 12, 31))

        assert all(row.debit == 0 and row.credit == 0 for row in report.rows)
        assert report.is_balanced


class TestProfitAndLoss:
    """Tests for the income statement."""

    def test_current_period(
        self, services: ServiceScope, entity: Entity, history: list[JournalEntry]
    ) -> None:
        report = services.reporting.profit_and_loss(
            [entity.id], date(2025, 1, 1), date(2025, 3, 31)
        )

        assert [line.code for line in report.revenue] == ["4000"]
        assert report.total_revenue == Decimal("1000.00")
        assert report.total_expenses == Decimal("300.00")
        assert report.net_income == Decimal("700.00")
        assert report.currency == Currency.USD

    def test_end_before_start(self, services: ServiceScope, entity: Entity) -> None:
        with pytest.raises(ValidationError):
            services.reporting.profit_and_loss([entity.id], date(2025, 2, 1), date(2025, 1, 1))

    def test_needs_an_entity(self, services: ServiceScope) -> None:
        with pytest.raises(ValidationError):
            services.reporting.profit_and_loss([], date(2025, 1, 1), date(2025, 1, 31))


class TestBalanceSheet:
    """Tests for the balance sheet."""

    def test_retained_earnings_split(
        self, services: ServiceScope, entity: Entity, history: list[JournalEntry]
    ) -> None:
        report = services.reporting.balance_sheet([entity.id], date(2025, 3, 31))

        assert report.total_assets == Decimal("12200.00")
        assert report.total_liabilities == Decimal("0")
        assert [line.code for line in report.equity] == ["3000"]
        assert report.retained_earnings_prior == Decimal("1500.00")
        assert report.retained_earnings_current == Decimal("700.00")
        assert report.total_equity == Decimal("12200.00")
        assert report.is_balanced

    def test_fiscal_year_start_month(
        self, container: Container, owner_context: TenantContext, services: ServiceScope
    ) -> None:
        july = container.tenancy_service.create_entity(
            owner_context, "July Year Co", fiscal_year_start=7
        )

        assert services.reporting.fiscal_year_start(july, date(2025, 3, 31)) == date(2024, 7, 1)
        assert services.reporting.fiscal_year_start(july, date(2025, 7, 1)) == date(2025, 7, 1)

    def test_consolidates_by_account_code(
        self,
        container: Container,
        owner_context: TenantContext,
        services: ServiceScope,
        entity: Entity,
        account: Callable[[str], GLAccount],
        post_entry: Callable[..., JournalEntry],
    ) -> None:
        post_entry(account("1100").id, account("3000").id, "100.00")
        sister = container.tenancy_service.create_entity(owner_context, "Sister Co")
        services.gl_accounts.seed_default_coa(sister.id)
        bank = services.gl_accounts.get_account_by_code(sister.id, "1100")
        equity = services.gl_accounts.get_account_by_code(sister.id, "3000")
        entry = services.journal.create_entry(
            sister.id,
            date(2025, 1, 15),
            "Capital",
            [
                LineInput(gl_account_id=bank.id, debit=Decimal("50.00")),
                LineInput(gl_account_id=equity.id, credit=Decimal("50.00")),
            ],
        )
        services.journal.approve_entry(entry.id)

        report = services.reporting.balance_sheet([entity.id, sister.id], date(2025, 1, 31))

        assert [(line.code, line.amount) for line in report.assets] == [
            ("1100", Decimal("150.00"))
        ]
        assert report.is_balanced

    def test_rejects_mixed_currencies(
        self,
        container: Container,
        owner_context: TenantContext,
        services: ServiceScope,
        entity: Entity,
    ) -> None:
        canadian = container.tenancy_service.create_entity(
            owner_context, "Maple Ltd", functional_currency=Currency.CAD
        )

        with pytest.raises(MultiCurrencyConsolidationError):
            services.reporting.balance_sheet([entity.id, canadian.id], date(2025, 1, 31))

    def test_other_tenant_entity(
        self, other_tenant_services: ServiceScope, entity: Entity
    ) -> None:
        with pytest.raises(EntityNotFoundError):
            other_tenant_services.reporting.balance_sheet([entity.id], date(2025, 1, 31))


class TestCashFlow:
    """Tests for the indirect-method cash flow statement."""

    def test_working_capital_adjustment(
        self, services: ServiceScope, entity: Entity, history: list[JournalEntry]
    ) -> None:
        report = services.reporting.cash_flow([entity.id], date(2025, 1, 1), date(2025, 2, 28))

        assert report.net_income == Decimal("700.00")
        assert [(line.code, line.amount) for line in report.operating] == [
            ("1200", Decimal("-1000.00"))
        ]
        assert report.investing == []
        assert report.financing == []
        assert report.opening_cash == Decimal("11500.00")
        assert report.closing_cash == Decimal("11200.00")
        assert report.net_cash_change == Decimal("-300.00")
        assert report.is_reconciled

    def test_investing_and_financing(
        self,
        services: ServiceScope,
        entity: Entity,
        account: Callable[[str], GLAccount],
        post_entry: Callable[..., JournalEntry],
        history: list[JournalEntry],
    ) -> None:
        post_entry(account("1500").id, account("1100").id, "4000.00", date(2025, 3, 1))
        post_entry(account("1100").id, account("2500").id, "2500.00", date(2025, 3, 5))
        post_entry(account("5900").id, account("1510").id, "100.00", date(2025, 3, 31))

        report = services.reporting.cash_flow([entity.id], date(2025, 3, 1), date(2025, 3, 31))

        assert report.net_income == Decimal("-100.00")
        assert [(line.code, line.amount) for line in report.operating] == [
            ("1510", Decimal("100.00"))
        ]
        assert report.total_operating == Decimal("0")
        assert report.total_investing == Decimal("-4000.00")
        assert report.total_financing == Decimal("2500.00")
        assert report.net_cash_change == Decimal("-1500.00")
        assert report.closing_cash - report.opening_cash == Decimal("-1500.00")

    def test_end_before_start(self, services: ServiceScope, entity: Entity) -> None:
        with pytest.raises(ValidationError):
            services.reporting.cash_flow([entity.id], date(2025, 2, 1), date(2025, 1, 1))


class TestGeneralLedger:
    """Tests for the account ledger."""

    def test_opening_and_running_balance(
        self,
        services: ServiceScope,
        entity: Entity,
        account: Callable[[str], GLAccount],
        history: list[JournalEntry],
    ) -> None:
        report = services.reporting.general_ledger(
            entity.id, account("1100").id, start_date=date(2025, 1, 1)
        )

        assert report.code == "1100"
        assert report.opening_balance == Decimal("11500.00")
        assert len(report.rows) == 1
        assert report.rows[0].credit == Decimal("300.00")
        assert report.closing_balance == Decimal("11200.00")

    def test_full_history(
        self,
        services: ServiceScope,
        entity: Entity,
        account: Callable[[str], GLAccount],
        history: list[JournalEntry],
    ) -> None:
        report = services.reporting.general_ledger(entity.id, account("4000").id)

        assert report.opening_balance == 0
        assert [row.balance for row in report.rows] == [Decimal("2000.00"), Decimal("3000.00")]
        assert report.rows[0].entry_number == history[1].entry_number
