"""Tests for budgets and variance."""

from collections.abc import Callable
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from tenant_books.container import Container, ServiceScope
from tenant_books.domain.entities import Entity, GLAccount
from tenant_books.domain.planning import BudgetAlertLevel, BudgetPeriod, BudgetVariance
from tenant_books.domain.tenancy import TenantContext
from tenant_books.domain.value_objects import Currency, Money
from tenant_books.exceptions import (
    CrossEntityReferenceError,
    InvalidAmountError,
    RecordNotFoundError,
    ValidationError,
)


def _variance(budgeted: str, actual: str) -> BudgetVariance:
    return BudgetVariance(
        budget_id=uuid4(),
        budget_name="Test",
        budgeted=Money(Decimal(budgeted), Currency.USD),
        actual=Money(Decimal(actual), Currency.USD),
    )


class TestBudgetVariance:
    """Tests for the variance value object."""

    def test_under_budget(self) -> None:
        variance = _variance("1000", "500")

        assert variance.variance.amount == Decimal("500")
        assert variance.variance_percent == Decimal("50.00")
        assert variance.utilization_percent == Decimal("50.00")
        assert variance.alert_level == BudgetAlertLevel.OK

    def test_warning_at_eighty_percent(self) -> None:
        assert _variance("1000", "800").alert_level == BudgetAlertLevel.WARNING

    def test_over_budget_at_hundred_percent(self) -> None:
        variance = _variance("1000", "1250")

        assert variance.alert_level == BudgetAlertLevel.OVER_BUDGET
        assert variance.variance.amount == Decimal("-250")

    def test_zero_budget(self) -> None:
        variance = _variance("0", "10")

        assert variance.utilization_percent == Decimal("0")
        assert variance.alert_level == BudgetAlertLevel.OK


class TestBudgetService:
    """Tests for BudgetService."""

    def test_actual_from_posted_activity(
        self,
        services: ServiceScope,
        entity: Entity,
        account: Callable[[str], GLAccount],
        post_entry: Callable[..., object],
    ) -> None:
        rent = account("5600")
        bank = account("1100")
        post_entry(rent.id, bank.id, "700.00", entry_date=date(2025, 1, 5))
        post_entry(rent.id, bank.id, "150.00", entry_date=date(2025, 1, 20))
        post_entry(rent.id, bank.id, "999.00", entry_date=date(2025, 2, 1))

        budget = services.budgets.create_budget(
            entity.id,
            "January rent",
            Decimal("1000.00"),
            date(2025, 1, 1),
            date(2025, 1, 31),
            gl_account_id=rent.id,
        )
        variance = services.budgets.get_variance(budget.id)

        assert variance.actual.amount == Decimal("850.00")
        assert variance.variance.amount == Decimal("150.00")
        assert variance.alert_level == BudgetAlertLevel.WARNING

    def test_budget_without_account_has_no_actual(
        self, services: ServiceScope, entity: Entity
    ) -> None:
        budget = services.budgets.create_budget(
            entity.id,
            "Overall",
            Decimal("5000"),
            date(2025, 1, 1),
            date(2025, 12, 31),
            period=BudgetPeriod.YEARLY,
        )

        assert services.budgets.get_variance(budget.id).actual.amount == 0

    def test_negative_amount(self, services: ServiceScope, entity: Entity) -> None:
        with pytest.raises(InvalidAmountError):
            services.budgets.create_budget(
                entity.id, "Bad", Decimal("-1"), date(2025, 1, 1), date(2025, 1, 31)
            )

    def test_end_before_start(self, services: ServiceScope, entity: Entity) -> None:
        with pytest.raises(ValidationError):
            services.budgets.create_budget(
                entity.id, "Bad", Decimal("1"), date(2025, 2, 1), date(2025, 1, 1)
            )

    def test_account_from_other_entity(
        self,
        services: ServiceScope,
        container: Container,
        owner_context: TenantContext,
        entity: Entity,
    ) -> None:
        other = container.tenancy_service.create_entity(owner_context, "Side Project LLC")
        services.gl_accounts.seed_default_coa(other.id)
        foreign = services.gl_accounts.get_account_by_code(other.id, "5600")

        with pytest.raises(CrossEntityReferenceError):
            services.budgets.create_budget(
                entity.id,
                "Rent",
                Decimal("100"),
                date(2025, 1, 1),
                date(2025, 1, 31),
                gl_account_id=foreign.id,
            )

    def test_list_and_delete(self, services: ServiceScope, entity: Entity) -> None:
        budget = services.budgets.create_budget(
            entity.id, "Travel", Decimal("300"), date(2025, 1, 1), date(2025, 3, 31)
        )
        assert [v.budget_name for v in services.budgets.list_variances(entity.id)] == ["Travel"]

        services.budgets.delete_budget(budget.id)

        assert services.budgets.list_budgets(entity.id) == []
        with pytest.raises(RecordNotFoundError):
            services.budgets.get_budget(budget.id)

    def test_other_tenant_cannot_read(
        self, services: ServiceScope, other_tenant_services: ServiceScope, entity: Entity
    ) -> None:
        budget = services.budgets.create_budget(
            entity.id, "Travel", Decimal("300"), date(2025, 1, 1), date(2025, 3, 31)
        )

        with pytest.raises(RecordNotFoundError):
            other_tenant_services.budgets.get_budget(budget.id)
