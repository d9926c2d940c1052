from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID, uuid4

from tenant_books.domain.value_objects import (
    AccountType,
    Currency,
    EntityType,
    NormalBalance,
)


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class Entity:
    """A legal entity whose books are kept inside a tenant."""

    tenant_id: UUID
    name: str
    entity_type: EntityType = EntityType.CORPORATION
    functional_currency: Currency = Currency.USD
    id: UUID = field(default_factory=uuid4)
    fiscal_year_start: int = 1
    country: str = "US"
    is_active: bool = True
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        if not 1 <= self.fiscal_year_start <= 12:
            raise ValueError(
                f"fiscal_year_start must be a month number, got {self.fiscal_year_start}"
            )

    def deactivate(self) -> None:
        self.is_active = False
        self.updated_at = _utc_now()


@dataclass
class GLAccount:
    entity_id: UUID
    code: str
    name: str
    account_type: AccountType
    normal_balance: NormalBalance | None = None
    id: UUID = field(default_factory=uuid4)
    parent_account_id: UUID | None = None
    description: str = ""
    is_active: bool = True
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        if self.normal_balance is None:
            self.normal_balance = self.account_type.default_normal_balance

    @property
    def is_debit_normal(self) -> bool:
        return self.normal_balance == NormalBalance.DEBIT

    def deactivate(self) -> None:
        self.is_active = False
        self.updated_at = _utc_now()

    def touch(self) -> None:
        self.updated_at = _utc_now()
