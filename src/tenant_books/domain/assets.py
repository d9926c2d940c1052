import calendar
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from tenant_books.domain.value_objects import round_money


def _utc_now() -> datetime:
    return datetime.now(UTC)


class DepreciationMethod(str, Enum):
    STRAIGHT_LINE = "straight_line"
    DECLINING_BALANCE = "declining_balance"
    UNITS_OF_PRODUCTION = "units_of_production"


class AssetStatus(str, Enum):
    ACTIVE = "active"
    FULLY_DEPRECIATED = "fully_depreciated"
    DISPOSED = "disposed"


def first_of_month(value: date) -> date:
    return value.replace(day=1)


def calculate_period_depreciation(
    cost: Decimal,
    salvage_value: Decimal,
    useful_life_months: int,
    accumulated: Decimal,
    method: DepreciationMethod,
    acquired_date: date,
    period_date: date,
) -> Decimal:
    """Depreciation charge for the month containing ``period_date``.

    Straight-line prorates the month of acquisition by the days remaining in
    it. Double-declining balance applies 2 / life to net book value. Units of
    production has no unit counts to work from and falls back to straight-line.
    The charge never takes net book value below salvage.
    """
    remaining = cost - accumulated - salvage_value
    if remaining <= 0:
        return Decimal("0")

    base = cost - salvage_value
    if method == DepreciationMethod.DECLINING_BALANCE:
        charge = round_money((cost - accumulated) * 2 / useful_life_months)
    else:
        monthly = round_money(base / useful_life_months)
        charge = monthly
        if (
            method == DepreciationMethod.STRAIGHT_LINE
            and (acquired_date.year, acquired_date.month)
            == (period_date.year, period_date.month)
        ):
            days_in_month = calendar.monthrange(acquired_date.year, acquired_date.month)[1]
            remaining_days = days_in_month - acquired_date.day + 1
            charge = round_money(monthly * remaining_days / days_in_month)

    return min(charge, remaining)


@dataclass
class FixedAsset:
    entity_id: UUID
    name: str
    cost: Decimal
    useful_life_months: int
    acquired_date: date
    salvage_value: Decimal = Decimal("0")
    depreciation_method: DepreciationMethod = DepreciationMethod.STRAIGHT_LINE
    id: UUID = field(default_factory=uuid4)
    category: str = ""
    accumulated_depreciation: Decimal = Decimal("0")
    status: AssetStatus = AssetStatus.ACTIVE
    asset_gl_account_id: UUID | None = None
    depreciation_expense_gl_account_id: UUID | None = None
    accumulated_depreciation_gl_account_id: UUID | None = None
    disposed_date: date | None = None
    disposal_amount: Decimal | None = None
    created_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        for name in ("cost", "salvage_value", "accumulated_depreciation"):
            value = getattr(self, name)
            if not isinstance(value, Decimal):
                setattr(self, name, Decimal(str(value)))
        if self.useful_life_months <= 0:
            raise ValueError("useful_life_months must be positive")
        if self.salvage_value > self.cost:
            raise ValueError("salvage_value cannot exceed cost")

    @property
    def net_book_value(self) -> Decimal:
        return self.cost - self.accumulated_depreciation

    @property
    def depreciable_remaining(self) -> Decimal:
        return self.cost - self.accumulated_depreciation - self.salvage_value

    @property
    def is_fully_depreciated(self) -> bool:
        return self.depreciable_remaining <= 0

    def depreciation_for(self, period_date: date) -> Decimal:
        return calculate_period_depreciation(
            self.cost,
            self.salvage_value,
            self.useful_life_months,
            self.accumulated_depreciation,
            self.depreciation_method,
            self.acquired_date,
            period_date,
        )


@dataclass
class DepreciationEntry:
    fixed_asset_id: UUID
    period_date: date
    amount: Decimal
    method: DepreciationMethod
    id: UUID = field(default_factory=uuid4)
    journal_entry_id: UUID | None = None
    created_at: datetime = field(default_factory=_utc_now)
