from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from tenant_books.domain.planning import Budget, BudgetPeriod, BudgetVariance
from tenant_books.domain.tenancy import TenantContext
from tenant_books.domain.value_objects import Money
from tenant_books.exceptions import (
    CrossEntityReferenceError,
    InvalidAmountError,
    RecordNotFoundError,
    ValidationError,
)
from tenant_books.logging_config import get_logger
from tenant_books.repositories.interfaces import (
    BudgetRepository,
    EntityRepository,
    GLAccountRepository,
    JournalEntryRepository,
)
from tenant_books.services.audit import AuditService, snapshot
from tenant_books.services.tenancy import require_entity, require_write

logger = get_logger(__name__)


class BudgetService:
    """Budgets per GL account and their variance against posted activity."""

    def __init__(
        self,
        budget_repo: BudgetRepository,
        gl_account_repo: GLAccountRepository,
        journal_repo: JournalEntryRepository,
        entity_repo: EntityRepository,
        audit: AuditService,
        context: TenantContext,
    ) -> None:
        self._budget_repo = budget_repo
        self._gl_account_repo = gl_account_repo
        self._journal_repo = journal_repo
        self._entity_repo = entity_repo
        self._audit = audit
        self._context = context

    def create_budget(
        self,
        entity_id: UUID,
        name: str,
        amount: Decimal,
        start_date: date,
        end_date: date,
        period: BudgetPeriod = BudgetPeriod.MONTHLY,
        gl_account_id: UUID | None = None,
    ) -> Budget:
        require_write(self._context, "create_budget")
        entity = require_entity(self._entity_repo, self._context, entity_id)
        if amount < 0:
            raise InvalidAmountError(str(amount), "budget amount cannot be negative")
        if gl_account_id is not None:
            account = self._gl_account_repo.get(gl_account_id)
            if account is None or account.entity_id != entity_id:
                raise CrossEntityReferenceError([str(gl_account_id)], entity_id)
        try:
            budget = Budget(
                entity_id=entity_id,
                name=name,
                amount=Money(amount, entity.functional_currency),
                start_date=start_date,
                end_date=end_date,
                period=period,
                gl_account_id=gl_account_id,
            )
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        self._budget_repo.add(budget)
        self._audit.log_create(
            "Budget",
            budget.id,
            snapshot(budget, "name", "amount", "start_date", "end_date", "gl_account_id"),
            entity_id=entity_id,
        )
        logger.info("budget_created", budget_id=str(budget.id), entity_id=str(entity_id))
        return budget

    def get_budget(self, budget_id: UUID) -> Budget:
        budget = self._budget_repo.get(budget_id)
        if budget is None:
            raise RecordNotFoundError("budget", budget_id)
        entity = self._entity_repo.get(budget.entity_id)
        if entity is None or entity.tenant_id != self._context.tenant_id:
            raise RecordNotFoundError("budget", budget_id)
        return budget

    def list_budgets(self, entity_id: UUID) -> list[Budget]:
        require_entity(self._entity_repo, self._context, entity_id)
        return self._budget_repo.list_by_entity(entity_id)

    def delete_budget(self, budget_id: UUID) -> None:
        require_write(self._context, "delete_budget")
        budget = self.get_budget(budget_id)
        self._budget_repo.delete(budget.id)
        self._audit.log_delete(
            "Budget", budget.id, snapshot(budget, "name", "amount"), entity_id=budget.entity_id
        )

    def get_variance(self, budget_id: UUID) -> BudgetVariance:
        return self._variance(self.get_budget(budget_id))

    def list_variances(self, entity_id: UUID) -> list[BudgetVariance]:
        return [self._variance(budget) for budget in self.list_budgets(entity_id)]

    def _variance(self, budget: Budget) -> BudgetVariance:
        actual = Decimal("0")
        if budget.gl_account_id is not None:
            for ledger_line in self._journal_repo.list_posted_lines(
                [budget.entity_id],
                date_from=budget.start_date,
                date_to=budget.end_date,
                gl_account_id=budget.gl_account_id,
            ):
                actual += ledger_line.line.functional_debit - ledger_line.line.functional_credit
        return BudgetVariance(
            budget_id=budget.id,
            budget_name=budget.name,
            budgeted=budget.amount,
            actual=Money(actual, budget.amount.currency),
            gl_account_id=budget.gl_account_id,
        )
