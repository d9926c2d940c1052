from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from tenant_books.domain.value_objects import Currency, Money


def _utc_now() -> datetime:
    return datetime.now(UTC)


class JournalEntryStatus(str, Enum):
    DRAFT = "draft"
    POSTED = "posted"
    VOIDED = "voided"


class SourceType(str, Enum):
    MANUAL = "manual"
    BANK_FEED = "bank_feed"
    INVOICE = "invoice"
    BILL = "bill"
    PAYMENT = "payment"
    DEPRECIATION = "depreciation"
    ADJUSTMENT = "adjustment"
    AI_SUGGESTION = "ai_suggestion"
    TRANSFER = "transfer"
    CREDIT_NOTE = "credit_note"


def format_entry_number(sequence: int) -> str:
    return f"JE-{sequence:03d}"


def parse_entry_number(entry_number: str | None) -> int:
    """Numeric suffix of an entry number such as ``JE-042``; 0 when absent."""
    if not entry_number:
        return 0
    _, _, suffix = entry_number.rpartition("-")
    return int(suffix) if suffix.isdigit() else 0


@dataclass
class JournalLine:
    """One side of a journal entry.

    ``debit_amount``/``credit_amount`` are in the line currency. When the line
    is in a foreign currency, ``exchange_rate`` is set and the functional
    currency amounts live in ``base_debit``/``base_credit``.
    """

    gl_account_id: UUID
    id: UUID = field(default_factory=uuid4)
    debit_amount: Money = field(default_factory=lambda: Money.zero())
    credit_amount: Money = field(default_factory=lambda: Money.zero())
    memo: str = ""
    exchange_rate: Decimal | None = None
    base_debit: Decimal | None = None
    base_credit: Decimal | None = None

    @property
    def currency(self) -> Currency:
        return self.debit_amount.currency  # type: ignore[return-value]

    @property
    def is_debit(self) -> bool:
        return self.debit_amount.is_positive and self.credit_amount.is_zero

    @property
    def is_credit(self) -> bool:
        return self.credit_amount.is_positive and self.debit_amount.is_zero

    @property
    def functional_debit(self) -> Decimal:
        if self.exchange_rate is not None and self.base_debit is not None:
            return self.base_debit
        return self.debit_amount.amount

    @property
    def functional_credit(self) -> Decimal:
        if self.exchange_rate is not None and self.base_credit is not None:
            return self.base_credit
        return self.credit_amount.amount

    def reversed(self, memo_prefix: str = "REVERSAL: ") -> "JournalLine":
        return JournalLine(
            gl_account_id=self.gl_account_id,
            debit_amount=self.credit_amount,
            credit_amount=self.debit_amount,
            memo=f"{memo_prefix}{self.memo}" if self.memo else "",
            exchange_rate=self.exchange_rate,
            base_debit=self.base_credit,
            base_credit=self.base_debit,
        )


@dataclass
class JournalEntry:
    entity_id: UUID
    entry_date: date
    memo: str = ""
    lines: list[JournalLine] = field(default_factory=list)
    id: UUID = field(default_factory=uuid4)
    entry_number: str | None = None
    status: JournalEntryStatus = JournalEntryStatus.DRAFT
    source_type: SourceType = SourceType.MANUAL
    source_id: UUID | None = None
    source_document: dict[str, Any] | None = None
    linked_entry_id: UUID | None = None
    created_by: UUID | None = None
    updated_by: UUID | None = None
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)
    deleted_at: datetime | None = None

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit_amount.amount for line in self.lines), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit_amount.amount for line in self.lines), Decimal("0"))

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits

    @property
    def is_draft(self) -> bool:
        return self.status == JournalEntryStatus.DRAFT

    @property
    def is_posted(self) -> bool:
        return self.status == JournalEntryStatus.POSTED

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def gl_account_ids(self) -> set[UUID]:
        return {line.gl_account_id for line in self.lines}

    def touch(self, user_id: UUID | None) -> None:
        self.updated_by = user_id
        self.updated_at = _utc_now()


@dataclass(frozen=True)
class LedgerLine:
    """A posted journal line together with the header fields reports need."""

    entry_id: UUID
    entity_id: UUID
    entry_number: str | None
    entry_date: date
    entry_memo: str
    line: JournalLine
