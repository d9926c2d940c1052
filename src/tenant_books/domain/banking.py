"""Bank accounts, recorded bank transactions, imported feed rows and matches."""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from tenant_books.domain.value_objects import Currency, Money


def _utc_now() -> datetime:
    return datetime.now(UTC)


class BankFeedStatus(str, Enum):
    PENDING = "pending"
    POSTED = "posted"
    IGNORED = "ignored"


class MatchStatus(str, Enum):
    SUGGESTED = "suggested"
    MATCHED = "matched"


class ImportBatchStatus(str, Enum):
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"


@dataclass
class BankAccount:
    entity_id: UUID
    name: str
    currency: Currency = Currency.USD
    id: UUID = field(default_factory=uuid4)
    gl_account_id: UUID | None = None
    institution: str = ""
    is_active: bool = True
    created_at: datetime = field(default_factory=_utc_now)


@dataclass
class BankTransaction:
    """A recorded movement on a bank account. Positive amounts are inflows."""

    account_id: UUID
    transaction_date: date
    description: str
    amount: Money
    id: UUID = field(default_factory=uuid4)
    journal_entry_id: UUID | None = None
    category: str | None = None
    import_batch_id: UUID | None = None
    created_at: datetime = field(default_factory=_utc_now)
    deleted_at: datetime | None = None

    @property
    def is_inflow(self) -> bool:
        return self.amount.amount > 0

    @property
    def is_posted(self) -> bool:
        return self.journal_entry_id is not None


@dataclass
class BankFeedTransaction:
    """A line delivered by a bank feed, waiting to be reconciled."""

    account_id: UUID
    transaction_date: date
    description: str
    amount: Money
    id: UUID = field(default_factory=uuid4)
    status: BankFeedStatus = BankFeedStatus.PENDING
    external_id: str | None = None
    balance: Decimal | None = None
    created_at: datetime = field(default_factory=_utc_now)


@dataclass
class TransactionMatch:
    bank_feed_transaction_id: UUID
    transaction_id: UUID
    status: MatchStatus = MatchStatus.SUGGESTED
    confidence: Decimal = Decimal("0")
    id: UUID = field(default_factory=uuid4)
    matched_by: UUID | None = None
    created_at: datetime = field(default_factory=_utc_now)


@dataclass
class ImportBatch:
    account_id: UUID
    file_name: str
    source: str = "csv"
    status: ImportBatchStatus = ImportBatchStatus.PROCESSING
    id: UUID = field(default_factory=uuid4)
    total_rows: int = 0
    imported: int = 0
    duplicates: int = 0
    error: str | None = None
    created_at: datetime = field(default_factory=_utc_now)


@dataclass
class FXRate:
    """Units of ``quote`` per one unit of ``base`` on ``rate_date``."""

    base: Currency
    quote: Currency
    rate_date: date
    rate: Decimal
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        if not isinstance(self.rate, Decimal):
            self.rate = Decimal(str(self.rate))
        if self.rate <= 0:
            raise ValueError(f"Exchange rate must be positive, got {self.rate}")
