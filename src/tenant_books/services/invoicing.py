"""Invoices, bills, credit notes, payments with allocations, and receivables/payables aging."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import UUID

from tenant_books.domain.invoicing import (
    BILL_TRANSITIONS,
    CREDIT_NOTE_TRANSITIONS,
    INVOICE_TRANSITIONS,
    Bill,
    BillStatus,
    Client,
    CreditNote,
    CreditNoteStatus,
    DocumentLine,
    Invoice,
    InvoiceStatus,
    Payment,
    PaymentAllocation,
    PaymentDirection,
    PaymentMethod,
    TaxRate,
    Vendor,
)
from tenant_books.domain.journal import JournalEntryStatus, SourceType
from tenant_books.domain.tenancy import TenantContext
from tenant_books.domain.value_objects import Currency
from tenant_books.exceptions import (
    CreditNoteError,
    CrossEntityReferenceError,
    InvalidAmountError,
    InvalidStatusTransitionError,
    InvoicingError,
    PaymentAllocationError,
    RecordNotFoundError,
    ValidationError,
)
from tenant_books.logging_config import get_logger
from tenant_books.repositories.interfaces import (
    BillRepository,
    ClientRepository,
    CreditNoteRepository,
    EntityRepository,
    GLAccountRepository,
    InvoiceRepository,
    JournalEntryRepository,
    PaymentRepository,
    TaxRateRepository,
    VendorRepository,
)
from tenant_books.repositories.sqlite import SQLiteDatabase
from tenant_books.services.audit import AuditService, snapshot
from tenant_books.services.journal import JournalServiceImpl
from tenant_books.services.tenancy import require_entity, require_write

logger = get_logger(__name__)

_OPEN_INVOICE_STATUSES = (
    InvoiceStatus.SENT,
    InvoiceStatus.PARTIALLY_PAID,
    InvoiceStatus.OVERDUE,
)
_OPEN_BILL_STATUSES = (
    BillStatus.PENDING,
    BillStatus.PARTIALLY_PAID,
    BillStatus.OVERDUE,
)
_OVERDUE_INVOICE_SOURCES = (InvoiceStatus.SENT, InvoiceStatus.PARTIALLY_PAID)
_OVERDUE_BILL_SOURCES = (BillStatus.PENDING, BillStatus.PARTIALLY_PAID)

AGING_BUCKETS = ("current", "1-30", "31-60", "60+")

_CREDIT_NOTE_NUMBER = re.compile(r"^CN-(\d+)$")


def aging_bucket(days_past_due: int) -> str:
    if days_past_due <= 0:
        return "current"
    if days_past_due <= 30:
        return "1-30"
    if days_past_due <= 60:
        return "31-60"
    return "60+"


def next_credit_note_number(existing: list[str]) -> str:
    """Next ``CN-###`` after the highest number already issued."""
    highest = 0
    for number in existing:
        match = _CREDIT_NOTE_NUMBER.match(number)
        if match:
            highest = max(highest, int(match.group(1)))
    return f"CN-{highest + 1:03d}"


@dataclass
class DocumentLineInput:
    description: str
    quantity: Decimal
    unit_price: Decimal
    tax_rate_id: UUID | None = None
    gl_account_id: UUID | None = None


@dataclass
class AgingBucket:
    label: str
    amount: Decimal = Decimal("0")
    count: int = 0
    percentage: Decimal = Decimal("0")


@dataclass
class AgingSummary:
    entity_id: UUID
    direction: PaymentDirection
    as_of: date
    buckets: list[AgingBucket] = field(default_factory=list)

    @property
    def total_outstanding(self) -> Decimal:
        return sum((bucket.amount for bucket in self.buckets), Decimal("0"))


class InvoicingService:
    def __init__(
        self,
        database: SQLiteDatabase,
        invoice_repo: InvoiceRepository,
        bill_repo: BillRepository,
        payment_repo: PaymentRepository,
        credit_note_repo: CreditNoteRepository,
        client_repo: ClientRepository,
        vendor_repo: VendorRepository,
        tax_rate_repo: TaxRateRepository,
        gl_account_repo: GLAccountRepository,
        entity_repo: EntityRepository,
        journal_repo: JournalEntryRepository,
        journal: JournalServiceImpl,
        audit: AuditService,
        context: TenantContext,
    ) -> None:
        self._db = database
        self._invoice_repo = invoice_repo
        self._bill_repo = bill_repo
        self._payment_repo = payment_repo
        self._credit_note_repo = credit_note_repo
        self._client_repo = client_repo
        self._vendor_repo = vendor_repo
        self._tax_rate_repo = tax_rate_repo
        self._gl_account_repo = gl_account_repo
        self._entity_repo = entity_repo
        self._journal_repo = journal_repo
        self._journal = journal
        self._audit = audit
        self._context = context

    # ------------------------------------------------------------------
    # Parties and tax rates
    # ------------------------------------------------------------------

    def create_client(self, entity_id: UUID, name: str, email: str | None = None) -> Client:
        require_write(self._context, "create_client")
        require_entity(self._entity_repo, self._context, entity_id)
        client = Client(entity_id=entity_id, name=name, email=email)
        self._client_repo.add(client)
        return client

    def create_vendor(self, entity_id: UUID, name: str, email: str | None = None) -> Vendor:
        require_write(self._context, "create_vendor")
        require_entity(self._entity_repo, self._context, entity_id)
        vendor = Vendor(entity_id=entity_id, name=name, email=email)
        self._vendor_repo.add(vendor)
        return vendor

    def create_tax_rate(
        self, entity_id: UUID, code: str, name: str, rate: Decimal
    ) -> TaxRate:
        require_write(self._context, "create_tax_rate")
        require_entity(self._entity_repo, self._context, entity_id)
        tax_rate = TaxRate(entity_id=entity_id, code=code, name=name, rate=rate)
        self._tax_rate_repo.add(tax_rate)
        return tax_rate

    def get_tax_rate(self, tax_rate_id: UUID) -> TaxRate:
        tax_rate = self._tax_rate_repo.get(tax_rate_id)
        if tax_rate is None or not self._owns(tax_rate.entity_id):
            raise RecordNotFoundError("tax_rate", tax_rate_id)
        return tax_rate

    def list_tax_rates(self, entity_id: UUID) -> list[TaxRate]:
        require_entity(self._entity_repo, self._context, entity_id)
        return list(self._tax_rate_repo.list_by_entity(entity_id))

    def update_tax_rate(
        self, tax_rate_id: UUID, name: str | None = None, rate: Decimal | None = None
    ) -> TaxRate:
        """Rename or re-rate a tax rate.

        Lines already on invoices and bills keep the tax amount they were
        built with; only documents created afterwards use the new rate.
        """
        require_write(self._context, "update_tax_rate")
        tax_rate = self.get_tax_rate(tax_rate_id)
        if rate is not None and not Decimal("0") <= rate <= Decimal("1"):
            raise ValidationError(
                "Tax rate must be a fraction between 0 and 1", context={"rate": str(rate)}
            )
        before = {"name": tax_rate.name, "rate": str(tax_rate.rate)}
        if name is not None:
            tax_rate.name = name
        if rate is not None:
            tax_rate.rate = rate
        self._tax_rate_repo.update(tax_rate)
        self._audit.log_update(
            "TaxRate",
            tax_rate.id,
            before,
            {"name": tax_rate.name, "rate": str(tax_rate.rate)},
            entity_id=tax_rate.entity_id,
        )
        logger.info("tax_rate_updated", tax_rate_id=str(tax_rate.id), rate=str(tax_rate.rate))
        return tax_rate

    def deactivate_tax_rate(self, tax_rate_id: UUID) -> TaxRate:
        """Stop offering a tax rate on new document lines."""
        require_write(self._context, "deactivate_tax_rate")
        tax_rate = self.get_tax_rate(tax_rate_id)
        if tax_rate.is_active:
            tax_rate.is_active = False
            self._tax_rate_repo.update(tax_rate)
            self._audit.log_update(
                "TaxRate",
                tax_rate.id,
                {"is_active": True},
                {"is_active": False},
                entity_id=tax_rate.entity_id,
            )
            logger.info("tax_rate_deactivated", tax_rate_id=str(tax_rate.id))
        return tax_rate

    # ------------------------------------------------------------------
    # Invoices
    # ------------------------------------------------------------------

    def create_invoice(
        self,
        entity_id: UUID,
        client_id: UUID,
        invoice_number: str,
        issue_date: date,
        due_date: date,
        lines: list[DocumentLineInput],
        currency: Currency | None = None,
        notes: str = "",
    ) -> Invoice:
        require_write(self._context, "create_invoice")
        entity = require_entity(self._entity_repo, self._context, entity_id)
        client = self._client_repo.get(client_id)
        if client is None or client.entity_id != entity_id:
            raise RecordNotFoundError("client", client_id)
        existing = self._invoice_repo.list_by_entity(entity_id)
        if any(i.invoice_number == invoice_number for i in existing):
            raise InvoicingError(
                f"Invoice number {invoice_number} already exists",
                error_code="DUPLICATE_DOCUMENT_NUMBER",
                status_code=409,
                context={"invoice_number": invoice_number},
            )
        self._check_dates(issue_date, due_date)

        invoice = Invoice(
            entity_id=entity_id,
            client_id=client_id,
            invoice_number=invoice_number,
            issue_date=issue_date,
            due_date=due_date,
            currency=currency or entity.functional_currency,
            lines=self._build_lines(entity_id, lines),
            notes=notes,
        )
        self._invoice_repo.add(invoice)
        self._audit.log_create(
            "Invoice",
            invoice.id,
            {
                **snapshot(invoice, "invoice_number", "status", "currency"),
                "total": str(invoice.total),
            },
            entity_id=entity_id,
        )
        logger.info(
            "invoice_created",
            invoice_id=str(invoice.id),
            invoice_number=invoice_number,
            total=str(invoice.total),
        )
        return invoice

    def get_invoice(self, invoice_id: UUID) -> Invoice:
        invoice = self._invoice_repo.get(invoice_id)
        if invoice is None or invoice.deleted_at is not None or not self._owns(invoice.entity_id):
            raise RecordNotFoundError("invoice", invoice_id)
        return invoice

    def list_invoices(
        self, entity_id: UUID, status: InvoiceStatus | None = None
    ) -> list[Invoice]:
        require_entity(self._entity_repo, self._context, entity_id)
        return self._invoice_repo.list_by_entity(entity_id, status)

    def send_invoice(self, invoice_id: UUID) -> Invoice:
        require_write(self._context, "send_invoice")
        invoice = self.get_invoice(invoice_id)
        self._move_invoice(invoice, InvoiceStatus.SENT)
        return invoice

    def cancel_invoice(self, invoice_id: UUID) -> Invoice:
        require_write(self._context, "cancel_invoice")
        invoice = self.get_invoice(invoice_id)
        if invoice.paid_amount > 0:
            raise InvoicingError(
                "Cannot cancel an invoice with payments applied",
                error_code="DOCUMENT_HAS_PAYMENTS",
                context={"invoice_id": str(invoice.id)},
            )
        self._move_invoice(invoice, InvoiceStatus.CANCELLED)
        return invoice

    # ------------------------------------------------------------------
    # Bills
    # ------------------------------------------------------------------

    def create_bill(
        self,
        entity_id: UUID,
        vendor_id: UUID,
        bill_number: str,
        issue_date: date,
        due_date: date,
        lines: list[DocumentLineInput],
        currency: Currency | None = None,
        notes: str = "",
    ) -> Bill:
        require_write(self._context, "create_bill")
        entity = require_entity(self._entity_repo, self._context, entity_id)
        vendor = self._vendor_repo.get(vendor_id)
        if vendor is None or vendor.entity_id != entity_id:
            raise RecordNotFoundError("vendor", vendor_id)
        self._check_dates(issue_date, due_date)

        bill = Bill(
            entity_id=entity_id,
            vendor_id=vendor_id,
            bill_number=bill_number,
            issue_date=issue_date,
            due_date=due_date,
            currency=currency or entity.functional_currency,
            lines=self._build_lines(entity_id, lines),
            notes=notes,
        )
        self._bill_repo.add(bill)
        self._audit.log_create(
            "Bill",
            bill.id,
            {**snapshot(bill, "bill_number", "status", "currency"), "total": str(bill.total)},
            entity_id=entity_id,
        )
        logger.info("bill_created", bill_id=str(bill.id), total=str(bill.total))
        return bill

    def get_bill(self, bill_id: UUID) -> Bill:
        bill = self._bill_repo.get(bill_id)
        if bill is None or bill.deleted_at is not None or not self._owns(bill.entity_id):
            raise RecordNotFoundError("bill", bill_id)
        return bill

    def list_bills(self, entity_id: UUID, status: BillStatus | None = None) -> list[Bill]:
        require_entity(self._entity_repo, self._context, entity_id)
        return self._bill_repo.list_by_entity(entity_id, status)

    def approve_bill(self, bill_id: UUID) -> Bill:
        require_write(self._context, "approve_bill")
        bill = self.get_bill(bill_id)
        self._move_bill(bill, BillStatus.PENDING)
        return bill

    def cancel_bill(self, bill_id: UUID) -> Bill:
        require_write(self._context, "cancel_bill")
        bill = self.get_bill(bill_id)
        if bill.paid_amount > 0:
            raise InvoicingError(
                "Cannot cancel a bill with payments applied",
                error_code="DOCUMENT_HAS_PAYMENTS",
                context={"bill_id": str(bill.id)},
            )
        self._move_bill(bill, BillStatus.CANCELLED)
        return bill

    def mark_overdue(self, entity_id: UUID, as_of: date | None = None) -> int:
        """Flag unpaid invoices and bills whose due date has passed. Returns the count."""
        require_write(self._context, "mark_overdue")
        require_entity(self._entity_repo, self._context, entity_id)
        as_of = as_of or date.today()
        count = 0
        for invoice in self._invoice_repo.list_by_entity(entity_id):
            if invoice.status in _OVERDUE_INVOICE_SOURCES and invoice.is_past_due(as_of):
                self._move_invoice(invoice, InvoiceStatus.OVERDUE)
                count += 1
        for bill in self._bill_repo.list_by_entity(entity_id):
            if bill.status in _OVERDUE_BILL_SOURCES and bill.is_past_due(as_of):
                self._move_bill(bill, BillStatus.OVERDUE)
                count += 1
        logger.info("documents_marked_overdue", entity_id=str(entity_id), count=count)
        return count

    # ------------------------------------------------------------------
    # Credit notes
    # ------------------------------------------------------------------

    def create_credit_note(
        self,
        entity_id: UUID,
        note_date: date,
        amount: Decimal,
        invoice_id: UUID | None = None,
        bill_id: UUID | None = None,
        reason: str = "",
        credit_note_number: str | None = None,
        currency: Currency | None = None,
    ) -> CreditNote:
        """Draft a credit note, optionally linked to one invoice or one bill.

        The number defaults to the next ``CN-###`` for the entity.
        """
        require_write(self._context, "create_credit_note")
        entity = require_entity(self._entity_repo, self._context, entity_id)
        if invoice_id is not None and bill_id is not None:
            raise ValidationError("A credit note links to an invoice or a bill, not both")
        if amount < 0:
            raise InvalidAmountError(str(amount), "credit amount cannot be negative")

        document: Invoice | Bill | None = None
        if invoice_id is not None:
            document = self.get_invoice(invoice_id)
        elif bill_id is not None:
            document = self.get_bill(bill_id)
        if document is not None and document.entity_id != entity_id:
            raise CreditNoteError(
                "Linked document belongs to a different entity", document_id=document.id
            )
        note_currency = currency or (
            document.currency if document is not None else entity.functional_currency
        )
        if document is not None and document.currency != note_currency:
            raise CreditNoteError(
                "Credit note currency differs from the linked document",
                document_id=document.id,
            )

        existing = self._credit_note_repo.list_by_entity(entity_id, include_deleted=True)
        number = credit_note_number or next_credit_note_number(
            [n.credit_note_number for n in existing]
        )
        if any(n.credit_note_number == number for n in existing):
            raise InvoicingError(
                f"Credit note number {number} already exists",
                error_code="DUPLICATE_DOCUMENT_NUMBER",
                status_code=409,
                context={"credit_note_number": number},
            )

        credit_note = CreditNote(
            entity_id=entity_id,
            credit_note_number=number,
            note_date=note_date,
            amount=amount,
            currency=note_currency,
            reason=reason,
            invoice_id=invoice_id,
            bill_id=bill_id,
        )
        self._credit_note_repo.add(credit_note)
        self._audit.log_create(
            "CreditNote",
            credit_note.id,
            {
                **snapshot(credit_note, "credit_note_number", "status", "currency"),
                "amount": str(amount),
            },
            entity_id=entity_id,
        )
        logger.info(
            "credit_note_created",
            credit_note_id=str(credit_note.id),
            credit_note_number=number,
            amount=str(amount),
        )
        return credit_note

    def get_credit_note(self, credit_note_id: UUID) -> CreditNote:
        credit_note = self._credit_note_repo.get(credit_note_id)
        if (
            credit_note is None
            or credit_note.deleted_at is not None
            or not self._owns(credit_note.entity_id)
        ):
            raise RecordNotFoundError("credit_note", credit_note_id)
        return credit_note

    def list_credit_notes(
        self, entity_id: UUID, status: CreditNoteStatus | None = None
    ) -> list[CreditNote]:
        require_entity(self._entity_repo, self._context, entity_id)
        return self._credit_note_repo.list_by_entity(entity_id, status)

    def approve_credit_note(self, credit_note_id: UUID) -> CreditNote:
        require_write(self._context, "approve_credit_note")
        credit_note = self.get_credit_note(credit_note_id)
        if credit_note.amount <= 0:
            raise CreditNoteError(
                "Credit note amount must be positive before approval",
                credit_note_id=credit_note.id,
            )
        self._move_credit_note(credit_note, CreditNoteStatus.APPROVED)
        return credit_note

    def apply_credit_note(
        self, credit_note_id: UUID, amount: Decimal, document_id: UUID | None = None
    ) -> CreditNote:
        """Apply approved credit to the linked invoice or bill.

        An unlinked note is linked to ``document_id`` on first application.
        The note stays APPROVED until all of its credit is used.

        Raises:
            CreditNoteError: If the amount exceeds the remaining credit or the
                document's outstanding amount, or the document is not open
            InvalidStatusTransitionError: If the note is not approved
        """
        require_write(self._context, "apply_credit_note")
        credit_note = self.get_credit_note(credit_note_id)
        self._check_credit_note_transition(credit_note, CreditNoteStatus.APPLIED)
        if amount <= 0:
            raise InvalidAmountError(str(amount), "applied credit must be positive")
        if amount > credit_note.remaining:
            raise CreditNoteError(
                "Application exceeds the remaining credit",
                amount=amount,
                remaining=credit_note.remaining,
            )

        document = self._credit_target(credit_note, document_id)
        if document.currency != credit_note.currency:
            raise CreditNoteError(
                "Document currency differs from credit note currency", document_id=document.id
            )
        if amount > document.outstanding:
            raise CreditNoteError(
                "Application exceeds the document's outstanding amount",
                amount=amount,
                outstanding=document.outstanding,
            )

        with self._db.transaction():
            document.paid_amount += amount
            settled = document.outstanding == 0
            if isinstance(document, Invoice):
                credit_note.invoice_id = document.id
                self._move_invoice(
                    document, InvoiceStatus.PAID if settled else InvoiceStatus.PARTIALLY_PAID
                )
            else:
                credit_note.bill_id = document.id
                self._move_bill(
                    document, BillStatus.PAID if settled else BillStatus.PARTIALLY_PAID
                )
            before = {
                "status": credit_note.status.value,
                "applied_amount": str(credit_note.applied_amount),
            }
            credit_note.applied_amount += amount
            if credit_note.remaining == 0:
                credit_note.status = CreditNoteStatus.APPLIED
            self._credit_note_repo.update(credit_note)
            self._audit.log_update(
                "CreditNote",
                credit_note.id,
                before,
                {
                    "status": credit_note.status.value,
                    "applied_amount": str(credit_note.applied_amount),
                },
                entity_id=credit_note.entity_id,
            )

        logger.info(
            "credit_note_applied",
            credit_note_id=str(credit_note.id),
            document_id=str(document.id),
            amount=str(amount),
        )
        return credit_note

    def void_credit_note(self, credit_note_id: UUID, as_of: date | None = None) -> CreditNote:
        """Void a draft or approved note.

        Credit already applied is taken back off the linked document, and any
        posted credit note journal entry is reversed on ``as_of``.
        """
        require_write(self._context, "void_credit_note")
        credit_note = self.get_credit_note(credit_note_id)
        self._check_credit_note_transition(credit_note, CreditNoteStatus.VOIDED)
        as_of = as_of or date.today()

        with self._db.transaction():
            if credit_note.applied_amount > 0:
                if credit_note.invoice_id is not None:
                    invoice = self._invoice_repo.get(credit_note.invoice_id)
                    if invoice is not None:
                        self._release_invoice(invoice, credit_note.applied_amount, as_of)
                if credit_note.bill_id is not None:
                    bill = self._bill_repo.get(credit_note.bill_id)
                    if bill is not None:
                        self._release_bill(bill, credit_note.applied_amount, as_of)
            for entry in self._journal_repo.find_by_source(SourceType.CREDIT_NOTE, credit_note.id):
                if entry.status == JournalEntryStatus.POSTED:
                    self._journal.void_entry(entry.id, reversal_date=as_of)
            self._move_credit_note(credit_note, CreditNoteStatus.VOIDED)

        logger.info(
            "credit_note_voided",
            credit_note_id=str(credit_note.id),
            released=str(credit_note.applied_amount),
        )
        return credit_note

    def delete_credit_note(self, credit_note_id: UUID) -> None:
        require_write(self._context, "delete_credit_note")
        credit_note = self.get_credit_note(credit_note_id)
        if credit_note.status != CreditNoteStatus.DRAFT:
            raise CreditNoteError(
                "Only draft credit notes can be deleted",
                credit_note_id=credit_note.id,
                status=credit_note.status.value,
            )
        credit_note.deleted_at = datetime.now(UTC)
        self._credit_note_repo.update(credit_note)
        self._audit.log_delete(
            "CreditNote",
            credit_note.id,
            {"credit_note_number": credit_note.credit_note_number},
            entity_id=credit_note.entity_id,
        )
        logger.info("credit_note_deleted", credit_note_id=str(credit_note_id))

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def create_payment(
        self,
        entity_id: UUID,
        payment_date: date,
        amount: Decimal,
        client_id: UUID | None = None,
        vendor_id: UUID | None = None,
        currency: Currency | None = None,
        payment_method: PaymentMethod = PaymentMethod.TRANSFER,
        reference: str = "",
    ) -> Payment:
        require_write(self._context, "create_payment")
        entity = require_entity(self._entity_repo, self._context, entity_id)
        if amount <= 0:
            raise InvalidAmountError(str(amount), "payment amount must be positive")
        if (client_id is None) == (vendor_id is None):
            raise ValidationError("A payment needs exactly one of client_id or vendor_id")
        if client_id is not None:
            client = self._client_repo.get(client_id)
            if client is None or client.entity_id != entity_id:
                raise RecordNotFoundError("client", client_id)
        if vendor_id is not None:
            vendor = self._vendor_repo.get(vendor_id)
            if vendor is None or vendor.entity_id != entity_id:
                raise RecordNotFoundError("vendor", vendor_id)

        payment = Payment(
            entity_id=entity_id,
            payment_date=payment_date,
            amount=amount,
            currency=currency or entity.functional_currency,
            client_id=client_id,
            vendor_id=vendor_id,
            payment_method=payment_method,
            reference=reference,
        )
        self._payment_repo.add(payment)
        self._audit.log_create(
            "Payment",
            payment.id,
            {"amount": str(amount), "direction": payment.direction.value},
            entity_id=entity_id,
        )
        logger.info(
            "payment_created",
            payment_id=str(payment.id),
            amount=str(amount),
            direction=payment.direction.value,
        )
        return payment

    def get_payment(self, payment_id: UUID) -> Payment:
        payment = self._payment_repo.get(payment_id)
        if payment is None or payment.deleted_at is not None or not self._owns(payment.entity_id):
            raise RecordNotFoundError("payment", payment_id)
        return payment

    def allocate_payment(
        self, payment_id: UUID, document_id: UUID, amount: Decimal
    ) -> PaymentAllocation:
        """Apply part of a payment to an invoice (receipts) or a bill (payments).

        Raises:
            PaymentAllocationError: If the amount exceeds the unallocated payment
                balance or the document's outstanding amount, or the document
                does not match the payment's direction, entity or currency
        """
        require_write(self._context, "allocate_payment")
        payment = self.get_payment(payment_id)
        if amount <= 0:
            raise InvalidAmountError(str(amount), "allocation amount must be positive")
        if amount > payment.unallocated_amount:
            raise PaymentAllocationError(
                "Allocation exceeds the unallocated payment balance",
                amount=amount,
                unallocated=payment.unallocated_amount,
            )

        with self._db.transaction():
            if payment.direction == PaymentDirection.RECEIVABLE:
                invoice = self._allocatable_invoice(payment, document_id, amount)
                allocation = PaymentAllocation(
                    payment_id=payment.id, amount=amount, invoice_id=invoice.id
                )
                self._payment_repo.add_allocation(allocation)
                invoice.paid_amount += amount
                target = (
                    InvoiceStatus.PAID
                    if invoice.outstanding == 0
                    else InvoiceStatus.PARTIALLY_PAID
                )
                self._move_invoice(invoice, target)
            else:
                bill = self._allocatable_bill(payment, document_id, amount)
                allocation = PaymentAllocation(
                    payment_id=payment.id, amount=amount, bill_id=bill.id
                )
                self._payment_repo.add_allocation(allocation)
                bill.paid_amount += amount
                target_bill = (
                    BillStatus.PAID if bill.outstanding == 0 else BillStatus.PARTIALLY_PAID
                )
                self._move_bill(bill, target_bill)
            payment.allocations.append(allocation)

        logger.info(
            "payment_allocated",
            payment_id=str(payment.id),
            document_id=str(document_id),
            amount=str(amount),
        )
        return allocation

    def deallocate_payment(self, allocation_id: UUID, as_of: date | None = None) -> None:
        """Remove an allocation and roll the document's status back."""
        require_write(self._context, "deallocate_payment")
        allocation = self._payment_repo.get_allocation(allocation_id)
        if allocation is None:
            raise RecordNotFoundError("allocation", allocation_id)
        self.get_payment(allocation.payment_id)
        if allocation.journal_entry_id is not None:
            raise PaymentAllocationError(
                "Posted allocations cannot be removed; void the journal entry first",
                allocation_id=allocation.id,
            )
        with self._db.transaction():
            self._revert_allocation(allocation, as_of or date.today())
        logger.info("payment_deallocated", allocation_id=str(allocation_id))

    def delete_payment(self, payment_id: UUID, as_of: date | None = None) -> None:
        require_write(self._context, "delete_payment")
        payment = self.get_payment(payment_id)
        if any(a.journal_entry_id is not None for a in payment.allocations):
            raise PaymentAllocationError(
                "Payments with posted allocations cannot be deleted", payment_id=payment.id
            )
        with self._db.transaction():
            for allocation in payment.allocations:
                self._revert_allocation(allocation, as_of or date.today())
            payment.deleted_at = datetime.now(UTC)
            self._payment_repo.update(payment)
            self._audit.log_delete(
                "Payment", payment.id, {"amount": str(payment.amount)}, entity_id=payment.entity_id
            )
        logger.info("payment_deleted", payment_id=str(payment_id))

    # ------------------------------------------------------------------
    # Aging
    # ------------------------------------------------------------------

    def aging_summary(
        self, entity_id: UUID, direction: PaymentDirection, as_of: date | None = None
    ) -> AgingSummary:
        require_entity(self._entity_repo, self._context, entity_id)
        as_of = as_of or date.today()
        documents: list[Invoice | Bill]
        if direction == PaymentDirection.RECEIVABLE:
            documents = [
                i for i in self._invoice_repo.list_by_entity(entity_id)
                if i.status in _OPEN_INVOICE_STATUSES
            ]
        else:
            documents = [
                b for b in self._bill_repo.list_by_entity(entity_id)
                if b.status in _OPEN_BILL_STATUSES
            ]

        buckets = {label: AgingBucket(label) for label in AGING_BUCKETS}
        for document in documents:
            if document.outstanding <= 0:
                continue
            bucket = buckets[aging_bucket((as_of - document.due_date).days)]
            bucket.amount += document.outstanding
            bucket.count += 1

        summary = AgingSummary(entity_id, direction, as_of, list(buckets.values()))
        total = summary.total_outstanding
        if total > 0:
            for bucket in summary.buckets:
                bucket.percentage = (bucket.amount / total * 100).quantize(Decimal("0.01"))
        return summary

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _owns(self, entity_id: UUID) -> bool:
        entity = self._entity_repo.get(entity_id)
        return entity is not None and entity.tenant_id == self._context.tenant_id

    @staticmethod
    def _check_dates(issue_date: date, due_date: date) -> None:
        if due_date < issue_date:
            raise ValidationError(
                "Due date cannot precede issue date",
                context={"issue_date": issue_date.isoformat(), "due_date": due_date.isoformat()},
            )

    def _build_lines(
        self, entity_id: UUID, lines: list[DocumentLineInput]
    ) -> list[DocumentLine]:
        if not lines:
            raise ValidationError("A document needs at least one line")
        built: list[DocumentLine] = []
        for line in lines:
            if line.quantity <= 0:
                raise InvalidAmountError(str(line.quantity), "quantity must be positive")
            if line.unit_price < 0:
                raise InvalidAmountError(str(line.unit_price), "unit price cannot be negative")
            if line.gl_account_id is not None:
                account = self._gl_account_repo.get(line.gl_account_id)
                if account is None or account.entity_id != entity_id or not account.is_active:
                    raise CrossEntityReferenceError([str(line.gl_account_id)], entity_id)
            document_line = DocumentLine(
                description=line.description,
                quantity=line.quantity,
                unit_price=line.unit_price,
                tax_rate_id=line.tax_rate_id,
                gl_account_id=line.gl_account_id,
            )
            if line.tax_rate_id is not None:
                tax_rate = self._tax_rate_repo.get(line.tax_rate_id)
                if tax_rate is None or tax_rate.entity_id != entity_id or not tax_rate.is_active:
                    raise RecordNotFoundError("tax_rate", line.tax_rate_id)
                document_line.apply_tax_rate(tax_rate.rate)
            built.append(document_line)
        return built

    def _allocatable_invoice(
        self, payment: Payment, invoice_id: UUID, amount: Decimal
    ) -> Invoice:
        invoice = self._invoice_repo.get(invoice_id)
        if invoice is None or invoice.deleted_at is not None:
            raise PaymentAllocationError(
                "Receipts can only be allocated to invoices", document_id=invoice_id
            )
        self._check_allocation_target(
            payment, invoice, amount, invoice.status in _OPEN_INVOICE_STATUSES
        )
        return invoice

    def _allocatable_bill(self, payment: Payment, bill_id: UUID, amount: Decimal) -> Bill:
        bill = self._bill_repo.get(bill_id)
        if bill is None or bill.deleted_at is not None:
            raise PaymentAllocationError(
                "Vendor payments can only be allocated to bills", document_id=bill_id
            )
        self._check_allocation_target(payment, bill, amount, bill.status in _OPEN_BILL_STATUSES)
        return bill

    @staticmethod
    def _check_allocation_target(
        payment: Payment, document: Invoice | Bill, amount: Decimal, is_open: bool
    ) -> None:
        if document.entity_id != payment.entity_id:
            raise PaymentAllocationError(
                "Document belongs to a different entity", document_id=document.id
            )
        if document.currency != payment.currency:
            raise PaymentAllocationError(
                "Document currency differs from payment currency", document_id=document.id
            )
        if not is_open:
            raise PaymentAllocationError(
                "Document is not open for payment",
                document_id=document.id,
                status=document.status.value,
            )
        if amount > document.outstanding:
            raise PaymentAllocationError(
                "Allocation exceeds the document's outstanding amount",
                amount=amount,
                outstanding=document.outstanding,
            )

    def _revert_allocation(self, allocation: PaymentAllocation, as_of: date) -> None:
        if allocation.invoice_id is not None:
            invoice = self._invoice_repo.get(allocation.invoice_id)
            if invoice is not None:
                self._release_invoice(invoice, allocation.amount, as_of)
        if allocation.bill_id is not None:
            bill = self._bill_repo.get(allocation.bill_id)
            if bill is not None:
                self._release_bill(bill, allocation.amount, as_of)
        self._payment_repo.delete_allocation(allocation.id)

    def _release_invoice(self, invoice: Invoice, amount: Decimal, as_of: date) -> None:
        invoice.paid_amount -= amount
        if invoice.paid_amount > 0:
            status = InvoiceStatus.PARTIALLY_PAID
        elif invoice.is_past_due(as_of):
            status = InvoiceStatus.OVERDUE
        else:
            status = InvoiceStatus.SENT
        self._set_invoice_status(invoice, status)

    def _release_bill(self, bill: Bill, amount: Decimal, as_of: date) -> None:
        bill.paid_amount -= amount
        if bill.paid_amount > 0:
            status = BillStatus.PARTIALLY_PAID
        elif bill.is_past_due(as_of):
            status = BillStatus.OVERDUE
        else:
            status = BillStatus.PENDING
        self._set_bill_status(bill, status)

    def _credit_target(
        self, credit_note: CreditNote, document_id: UUID | None
    ) -> Invoice | Bill:
        linked_id = credit_note.invoice_id or credit_note.bill_id
        if linked_id is not None and document_id is not None and document_id != linked_id:
            raise CreditNoteError(
                "Credit note is linked to a different document",
                credit_note_id=credit_note.id,
                document_id=document_id,
            )
        target_id = linked_id or document_id
        if target_id is None:
            raise ValidationError("An unlinked credit note needs a document to apply to")

        document: Invoice | Bill | None = self._invoice_repo.get(target_id)
        is_open = document is not None and document.status in _OPEN_INVOICE_STATUSES
        if document is None:
            document = self._bill_repo.get(target_id)
            is_open = document is not None and document.status in _OPEN_BILL_STATUSES
        if (
            document is None
            or document.deleted_at is not None
            or document.entity_id != credit_note.entity_id
        ):
            raise RecordNotFoundError("document", target_id)
        if not is_open:
            raise CreditNoteError(
                "Document is not open for credit",
                document_id=document.id,
                status=document.status.value,
            )
        return document

    def _move_invoice(self, invoice: Invoice, target: InvoiceStatus) -> None:
        if target != invoice.status and target not in INVOICE_TRANSITIONS[invoice.status]:
            raise InvalidStatusTransitionError("invoice", invoice.status.value, target.value)
        self._set_invoice_status(invoice, target)

    def _move_bill(self, bill: Bill, target: BillStatus) -> None:
        if target != bill.status and target not in BILL_TRANSITIONS[bill.status]:
            raise InvalidStatusTransitionError("bill", bill.status.value, target.value)
        self._set_bill_status(bill, target)

    def _set_invoice_status(self, invoice: Invoice, target: InvoiceStatus) -> None:
        before = invoice.status
        invoice.status = target
        self._invoice_repo.update(invoice)
        if before != target:
            self._audit.log_update(
                "Invoice",
                invoice.id,
                {"status": before.value},
                {"status": target.value, "paid_amount": str(invoice.paid_amount)},
                entity_id=invoice.entity_id,
            )

    def _set_bill_status(self, bill: Bill, target: BillStatus) -> None:
        before = bill.status
        bill.status = target
        self._bill_repo.update(bill)
        if before != target:
            self._audit.log_update(
                "Bill",
                bill.id,
                {"status": before.value},
                {"status": target.value, "paid_amount": str(bill.paid_amount)},
                entity_id=bill.entity_id,
            )

    def _check_credit_note_transition(
        self, credit_note: CreditNote, target: CreditNoteStatus
    ) -> None:
        if target not in CREDIT_NOTE_TRANSITIONS[credit_note.status]:
            raise InvalidStatusTransitionError(
                "credit_note", credit_note.status.value, target.value
            )

    def _move_credit_note(self, credit_note: CreditNote, target: CreditNoteStatus) -> None:
        self._check_credit_note_transition(credit_note, target)
        before = credit_note.status
        credit_note.status = target
        self._credit_note_repo.update(credit_note)
        self._audit.log_update(
            "CreditNote",
            credit_note.id,
            {"status": before.value},
            {"status": target.value, "applied_amount": str(credit_note.applied_amount)},
            entity_id=credit_note.entity_id,
        )
