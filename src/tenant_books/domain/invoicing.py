"""Receivables (clients, invoices) and payables (vendors, bills) with payments."""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from tenant_books.domain.value_objects import Currency, Money, round_money


def _utc_now() -> datetime:
    return datetime.now(UTC)


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class BillStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


INVOICE_TRANSITIONS: dict[InvoiceStatus, set[InvoiceStatus]] = {
    InvoiceStatus.DRAFT: {InvoiceStatus.SENT, InvoiceStatus.CANCELLED},
    InvoiceStatus.SENT: {
        InvoiceStatus.PARTIALLY_PAID,
        InvoiceStatus.PAID,
        InvoiceStatus.OVERDUE,
        InvoiceStatus.CANCELLED,
    },
    InvoiceStatus.PARTIALLY_PAID: {InvoiceStatus.PAID, InvoiceStatus.OVERDUE},
    InvoiceStatus.OVERDUE: {InvoiceStatus.PARTIALLY_PAID, InvoiceStatus.PAID},
    InvoiceStatus.PAID: set(),
    InvoiceStatus.CANCELLED: set(),
}

BILL_TRANSITIONS: dict[BillStatus, set[BillStatus]] = {
    BillStatus.DRAFT: {BillStatus.PENDING, BillStatus.CANCELLED},
    BillStatus.PENDING: {
        BillStatus.PARTIALLY_PAID,
        BillStatus.PAID,
        BillStatus.OVERDUE,
        BillStatus.CANCELLED,
    },
    BillStatus.PARTIALLY_PAID: {BillStatus.PAID, BillStatus.OVERDUE},
    BillStatus.OVERDUE: {BillStatus.PARTIALLY_PAID, BillStatus.PAID},
    BillStatus.PAID: set(),
    BillStatus.CANCELLED: set(),
}


class PaymentDirection(str, Enum):
    RECEIVABLE = "receivable"
    PAYABLE = "payable"


class PaymentMethod(str, Enum):
    TRANSFER = "transfer"
    CARD = "card"
    CASH = "cash"
    CHEQUE = "cheque"
    WIRE = "wire"
    OTHER = "other"


@dataclass
class Client:
    entity_id: UUID
    name: str
    email: str | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utc_now)


@dataclass
class Vendor:
    entity_id: UUID
    name: str
    email: str | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utc_now)


@dataclass
class TaxRate:
    entity_id: UUID
    code: str
    name: str
    rate: Decimal
    id: UUID = field(default_factory=uuid4)
    is_active: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.rate, Decimal):
            self.rate = Decimal(str(self.rate))
        if not Decimal("0") <= self.rate <= Decimal("1"):
            raise ValueError(f"Tax rate must be a fraction between 0 and 1, got {self.rate}")


@dataclass
class DocumentLine:
    """Line of an invoice or a bill. ``amount`` includes tax."""

    description: str
    quantity: Decimal
    unit_price: Decimal
    id: UUID = field(default_factory=uuid4)
    tax_rate_id: UUID | None = None
    tax_amount: Decimal = Decimal("0")
    gl_account_id: UUID | None = None

    def __post_init__(self) -> None:
        for name in ("quantity", "unit_price", "tax_amount"):
            value = getattr(self, name)
            if not isinstance(value, Decimal):
                setattr(self, name, Decimal(str(value)))

    @property
    def net_amount(self) -> Decimal:
        return round_money(self.quantity * self.unit_price)

    @property
    def amount(self) -> Decimal:
        return self.net_amount + self.tax_amount

    def apply_tax_rate(self, rate: Decimal) -> None:
        self.tax_amount = round_money(self.net_amount * rate)


class _DocumentTotals:
    """Totals shared by invoices and bills."""

    lines: list[DocumentLine]
    paid_amount: Decimal
    currency: Currency
    due_date: date

    @property
    def subtotal(self) -> Decimal:
        return sum((line.net_amount for line in self.lines), Decimal("0"))

    @property
    def tax_total(self) -> Decimal:
        return sum((line.tax_amount for line in self.lines), Decimal("0"))

    @property
    def total(self) -> Decimal:
        return self.subtotal + self.tax_total

    @property
    def outstanding(self) -> Decimal:
        return self.total - self.paid_amount

    def total_money(self) -> Money:
        return Money(self.total, self.currency)

    def is_past_due(self, as_of: date) -> bool:
        return self.due_date < as_of


@dataclass
class Invoice(_DocumentTotals):
    entity_id: UUID
    client_id: UUID
    invoice_number: str
    issue_date: date
    due_date: date
    currency: Currency = Currency.USD
    lines: list[DocumentLine] = field(default_factory=list)
    paid_amount: Decimal = Decimal("0")
    status: InvoiceStatus = InvoiceStatus.DRAFT
    id: UUID = field(default_factory=uuid4)
    notes: str = ""
    created_at: datetime = field(default_factory=_utc_now)
    deleted_at: datetime | None = None


@dataclass
class Bill(_DocumentTotals):
    entity_id: UUID
    vendor_id: UUID
    bill_number: str
    issue_date: date
    due_date: date
    currency: Currency = Currency.USD
    lines: list[DocumentLine] = field(default_factory=list)
    paid_amount: Decimal = Decimal("0")
    status: BillStatus = BillStatus.DRAFT
    id: UUID = field(default_factory=uuid4)
    notes: str = ""
    created_at: datetime = field(default_factory=_utc_now)
    deleted_at: datetime | None = None


@dataclass
class PaymentAllocation:
    payment_id: UUID
    amount: Decimal
    invoice_id: UUID | None = None
    bill_id: UUID | None = None
    id: UUID = field(default_factory=uuid4)
    journal_entry_id: UUID | None = None
    created_at: datetime = field(default_factory=_utc_now)


@dataclass
class Payment:
    entity_id: UUID
    payment_date: date
    amount: Decimal
    currency: Currency
    client_id: UUID | None = None
    vendor_id: UUID | None = None
    payment_method: PaymentMethod = PaymentMethod.TRANSFER
    reference: str = ""
    id: UUID = field(default_factory=uuid4)
    allocations: list[PaymentAllocation] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utc_now)
    deleted_at: datetime | None = None

    def __post_init__(self) -> None:
        if (self.client_id is None) == (self.vendor_id is None):
            raise ValueError("A payment needs exactly one of client_id or vendor_id")
        if not isinstance(self.amount, Decimal):
            self.amount = Decimal(str(self.amount))

    @property
    def direction(self) -> PaymentDirection:
        if self.client_id is not None:
            return PaymentDirection.RECEIVABLE
        return PaymentDirection.PAYABLE

    @property
    def allocated_amount(self) -> Decimal:
        return sum((a.amount for a in self.allocations), Decimal("0"))

    @property
    def unallocated_amount(self) -> Decimal:
        return self.amount - self.allocated_amount


class CreditNoteStatus(str, Enum):
    DRAFT = "draft"
    APPROVED = "approved"
    APPLIED = "applied"
    VOIDED = "voided"


CREDIT_NOTE_TRANSITIONS: dict[CreditNoteStatus, set[CreditNoteStatus]] = {
    CreditNoteStatus.DRAFT: {CreditNoteStatus.APPROVED, CreditNoteStatus.VOIDED},
    CreditNoteStatus.APPROVED: {CreditNoteStatus.APPLIED, CreditNoteStatus.VOIDED},
    CreditNoteStatus.APPLIED: set(),
    CreditNoteStatus.VOIDED: set(),
}


@dataclass
class CreditNote:
    """Credit against one invoice (customer credit) or one bill (vendor credit).

    Approved credit is applied in one or more steps; each application lowers
    the linked document's outstanding amount. The note becomes APPLIED once
    ``applied_amount`` reaches ``amount``.
    """

    entity_id: UUID
    credit_note_number: str
    note_date: date
    amount: Decimal
    currency: Currency = Currency.USD
    reason: str = ""
    invoice_id: UUID | None = None
    bill_id: UUID | None = None
    applied_amount: Decimal = Decimal("0")
    status: CreditNoteStatus = CreditNoteStatus.DRAFT
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utc_now)
    deleted_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.invoice_id is not None and self.bill_id is not None:
            raise ValueError("A credit note links to an invoice or a bill, not both")
        for name in ("amount", "applied_amount"):
            value = getattr(self, name)
            if not isinstance(value, Decimal):
                setattr(self, name, Decimal(str(value)))

    @property
    def remaining(self) -> Decimal:
        return self.amount - self.applied_amount
