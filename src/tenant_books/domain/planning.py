from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from tenant_books.domain.value_objects import Money


def _utc_now() -> datetime:
    return datetime.now(UTC)


class BudgetPeriod(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class BudgetAlertLevel(str, Enum):
    OK = "ok"
    WARNING = "warning"
    OVER_BUDGET = "over-budget"


WARNING_UTILIZATION = Decimal("80")
OVER_BUDGET_UTILIZATION = Decimal("100")


@dataclass
class Budget:
    entity_id: UUID
    name: str
    amount: Money
    start_date: date
    end_date: date
    period: BudgetPeriod = BudgetPeriod.MONTHLY
    id: UUID = field(default_factory=uuid4)
    gl_account_id: UUID | None = None
    created_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        if self.end_date < self.start_date:
            raise ValueError("Budget end_date must not precede start_date")


@dataclass(frozen=True)
class BudgetVariance:
    budget_id: UUID
    budget_name: str
    budgeted: Money
    actual: Money
    gl_account_id: UUID | None = None

    @property
    def variance(self) -> Money:
        return self.budgeted - self.actual

    @property
    def variance_percent(self) -> Decimal:
        if self.budgeted.amount <= 0:
            return Decimal("0")
        return (self.variance.amount / self.budgeted.amount * 100).quantize(
            Decimal("0.01")
        )

    @property
    def utilization_percent(self) -> Decimal:
        if self.budgeted.amount <= 0:
            return Decimal("0")
        return (self.actual.amount / self.budgeted.amount * 100).quantize(
            Decimal("0.01")
        )

    @property
    def alert_level(self) -> BudgetAlertLevel:
        utilization = self.utilization_percent
        if utilization >= OVER_BUDGET_UTILIZATION:
            return BudgetAlertLevel.OVER_BUDGET
        if utilization >= WARNING_UTILIZATION:
            return BudgetAlertLevel.WARNING
        return BudgetAlertLevel.OK
