"""Journal entries for invoices, bills, credit notes and payment allocations."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from tenant_books.domain.entities import Entity, GLAccount
from tenant_books.domain.invoicing import (
    Bill,
    BillStatus,
    CreditNote,
    CreditNoteStatus,
    Invoice,
    InvoiceStatus,
    PaymentAllocation,
)
from tenant_books.domain.journal import (
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
    SourceType,
)
from tenant_books.domain.tenancy import TenantContext
from tenant_books.domain.value_objects import Currency, Money
from tenant_books.exceptions import (
    AlreadyPostedError,
    DocumentNotPostableError,
    GLAccountNotFoundError,
    RecordNotFoundError,
)
from tenant_books.logging_config import get_logger
from tenant_books.repositories.interfaces import (
    BillRepository,
    CreditNoteRepository,
    EntityRepository,
    GLAccountRepository,
    InvoiceRepository,
    JournalEntryRepository,
    PaymentRepository,
)
from tenant_books.repositories.sqlite import SQLiteDatabase
from tenant_books.services.journal import JournalServiceImpl
from tenant_books.services.tenancy import require_write

logger = get_logger(__name__)

ACCOUNTS_RECEIVABLE_CODE = "1200"
ACCOUNTS_PAYABLE_CODE = "2000"
SALES_TAX_CODE = "2300"
DEFAULT_REVENUE_CODE = "4000"
DEFAULT_EXPENSE_CODE = "5990"


def _debit(account_id: UUID, amount: Decimal, currency: Currency, memo: str = "") -> JournalLine:
    return JournalLine(
        gl_account_id=account_id,
        debit_amount=Money(amount, currency),
        credit_amount=Money.zero(currency),
        memo=memo,
    )


def _credit(account_id: UUID, amount: Decimal, currency: Currency, memo: str = "") -> JournalLine:
    return JournalLine(
        gl_account_id=account_id,
        debit_amount=Money.zero(currency),
        credit_amount=Money(amount, currency),
        memo=memo,
    )


class DocumentPostingService:
    """Posts receivables and payables documents to the ledger.

    Invoice: DR Accounts Receivable, CR revenue per line, CR Sales Tax Payable.
    Bill: DR expense per line, DR Sales Tax Payable (recoverable), CR Accounts Payable.
    Allocation: DR bank / CR AR for receipts, DR AP / CR bank for payments.
    Credit note: DR revenue / CR AR against an invoice, DR AP / CR expense against a bill.
    """

    def __init__(
        self,
        database: SQLiteDatabase,
        invoice_repo: InvoiceRepository,
        bill_repo: BillRepository,
        payment_repo: PaymentRepository,
        credit_note_repo: CreditNoteRepository,
        gl_account_repo: GLAccountRepository,
        entity_repo: EntityRepository,
        journal_repo: JournalEntryRepository,
        journal: JournalServiceImpl,
        context: TenantContext,
    ) -> None:
        self._db = database
        self._invoice_repo = invoice_repo
        self._bill_repo = bill_repo
        self._payment_repo = payment_repo
        self._credit_note_repo = credit_note_repo
        self._gl_account_repo = gl_account_repo
        self._entity_repo = entity_repo
        self._journal_repo = journal_repo
        self._journal = journal
        self._context = context

    def post_invoice(self, invoice_id: UUID) -> JournalEntry:
        require_write(self._context, "post_invoice")
        invoice = self._invoice_repo.get(invoice_id)
        entity = self._owning_entity(invoice.entity_id if invoice else None)
        if invoice is None or entity is None or invoice.deleted_at is not None:
            raise RecordNotFoundError("invoice", invoice_id)
        if invoice.status in (InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED):
            raise DocumentNotPostableError(
                "invoice", invoice.id, f"invoice is {invoice.status.value}"
            )
        self._check_not_posted(SourceType.INVOICE, "invoice", invoice.id)
        self._check_currency("invoice", invoice, entity)

        currency = invoice.currency
        receivable = self._account_by_code(entity.id, ACCOUNTS_RECEIVABLE_CODE)
        memo = f"Invoice {invoice.invoice_number}"
        lines = [_debit(receivable.id, invoice.total, currency, memo)]
        revenue_default: GLAccount | None = None
        for line in invoice.lines:
            if line.net_amount == 0:
                continue
            account_id = line.gl_account_id
            if account_id is None:
                if revenue_default is None:
                    revenue_default = self._account_by_code(entity.id, DEFAULT_REVENUE_CODE)
                account_id = revenue_default.id
            lines.append(_credit(account_id, line.net_amount, currency, line.description))
        if invoice.tax_total > 0:
            tax = self._account_by_code(entity.id, SALES_TAX_CODE)
            lines.append(_credit(tax.id, invoice.tax_total, currency, "Sales tax"))

        with self._db.transaction():
            entry = self._journal.record_posted_entry(
                entity_id=entity.id,
                entry_date=invoice.issue_date,
                memo=memo,
                lines=lines,
                source_type=SourceType.INVOICE,
                source_id=invoice.id,
                source_document={"invoice_number": invoice.invoice_number},
            )
        logger.info(
            "invoice_posted",
            invoice_id=str(invoice.id),
            entry_id=str(entry.id),
            total=str(invoice.total),
        )
        return entry

    def post_bill(self, bill_id: UUID) -> JournalEntry:
        require_write(self._context, "post_bill")
        bill = self._bill_repo.get(bill_id)
        entity = self._owning_entity(bill.entity_id if bill else None)
        if bill is None or entity is None or bill.deleted_at is not None:
            raise RecordNotFoundError("bill", bill_id)
        if bill.status in (BillStatus.DRAFT, BillStatus.CANCELLED):
            raise DocumentNotPostableError("bill", bill.id, f"bill is {bill.status.value}")
        self._check_not_posted(SourceType.BILL, "bill", bill.id)
        self._check_currency("bill", bill, entity)

        currency = bill.currency
        lines: list[JournalLine] = []
        expense_default: GLAccount | None = None
        for line in bill.lines:
            if line.net_amount == 0:
                continue
            account_id = line.gl_account_id
            if account_id is None:
                if expense_default is None:
                    expense_default = self._account_by_code(entity.id, DEFAULT_EXPENSE_CODE)
                account_id = expense_default.id
            lines.append(_debit(account_id, line.net_amount, currency, line.description))
        if bill.tax_total > 0:
            tax = self._account_by_code(entity.id, SALES_TAX_CODE)
            lines.append(_debit(tax.id, bill.tax_total, currency, "Recoverable sales tax"))
        payable = self._account_by_code(entity.id, ACCOUNTS_PAYABLE_CODE)
        lines.append(_credit(payable.id, bill.total, currency, f"Bill {bill.bill_number}"))

        with self._db.transaction():
            entry = self._journal.record_posted_entry(
                entity_id=entity.id,
                entry_date=bill.issue_date,
                memo=f"Bill {bill.bill_number}",
                lines=lines,
                source_type=SourceType.BILL,
                source_id=bill.id,
                source_document={"bill_number": bill.bill_number},
            )
        logger.info("bill_posted", bill_id=str(bill.id), entry_id=str(entry.id))
        return entry

    def post_credit_note(self, credit_note_id: UUID) -> JournalEntry:
        """Record an approved credit note against the document it credits."""
        require_write(self._context, "post_credit_note")
        credit_note = self._credit_note_repo.get(credit_note_id)
        entity = self._owning_entity(credit_note.entity_id if credit_note else None)
        if credit_note is None or entity is None or credit_note.deleted_at is not None:
            raise RecordNotFoundError("credit_note", credit_note_id)
        if credit_note.status not in (CreditNoteStatus.APPROVED, CreditNoteStatus.APPLIED):
            raise DocumentNotPostableError(
                "credit_note", credit_note.id, f"credit note is {credit_note.status.value}"
            )
        if credit_note.invoice_id is None and credit_note.bill_id is None:
            raise DocumentNotPostableError(
                "credit_note", credit_note.id, "credit note is not linked to a document"
            )
        self._check_not_posted(SourceType.CREDIT_NOTE, "credit_note", credit_note.id)
        self._check_currency("credit_note", credit_note, entity)

        currency = credit_note.currency
        amount = credit_note.amount
        memo = f"Credit note {credit_note.credit_note_number}"
        if credit_note.invoice_id is not None:
            revenue = self._account_by_code(entity.id, DEFAULT_REVENUE_CODE)
            receivable = self._account_by_code(entity.id, ACCOUNTS_RECEIVABLE_CODE)
            lines = [
                _debit(revenue.id, amount, currency, credit_note.reason),
                _credit(receivable.id, amount, currency, memo),
            ]
        else:
            payable = self._account_by_code(entity.id, ACCOUNTS_PAYABLE_CODE)
            expense = self._account_by_code(entity.id, DEFAULT_EXPENSE_CODE)
            lines = [
                _debit(payable.id, amount, currency, memo),
                _credit(expense.id, amount, currency, credit_note.reason),
            ]

        with self._db.transaction():
            entry = self._journal.record_posted_entry(
                entity_id=entity.id,
                entry_date=credit_note.note_date,
                memo=memo,
                lines=lines,
                source_type=SourceType.CREDIT_NOTE,
                source_id=credit_note.id,
                source_document={"credit_note_number": credit_note.credit_note_number},
            )
        logger.info(
            "credit_note_posted",
            credit_note_id=str(credit_note.id),
            entry_id=str(entry.id),
            amount=str(amount),
        )
        return entry

    def post_payment_allocation(
        self, allocation_id: UUID, bank_gl_account_id: UUID
    ) -> JournalEntry:
        require_write(self._context, "post_payment")
        allocation = self._payment_repo.get_allocation(allocation_id)
        payment = self._payment_repo.get(allocation.payment_id) if allocation else None
        entity = self._owning_entity(payment.entity_id if payment else None)
        if allocation is None or payment is None or entity is None:
            raise RecordNotFoundError("allocation", allocation_id)
        if allocation.journal_entry_id is not None:
            raise AlreadyPostedError("payment_allocation", allocation.id)
        if payment.currency != entity.functional_currency:
            raise DocumentNotPostableError(
                "payment", payment.id, "payment currency differs from functional currency"
            )

        currency = payment.currency
        amount = allocation.amount
        if allocation.invoice_id is not None:
            receivable = self._account_by_code(entity.id, ACCOUNTS_RECEIVABLE_CODE)
            lines = [
                _debit(bank_gl_account_id, amount, currency),
                _credit(receivable.id, amount, currency),
            ]
        else:
            payable = self._account_by_code(entity.id, ACCOUNTS_PAYABLE_CODE)
            lines = [
                _debit(payable.id, amount, currency),
                _credit(bank_gl_account_id, amount, currency),
            ]

        with self._db.transaction():
            entry = self._journal.record_posted_entry(
                entity_id=entity.id,
                entry_date=payment.payment_date,
                memo=self._allocation_memo(allocation, payment.reference),
                lines=lines,
                source_type=SourceType.PAYMENT,
                source_id=allocation.id,
                source_document={"payment_id": str(payment.id)},
            )
            allocation.journal_entry_id = entry.id
            self._payment_repo.update_allocation(allocation)
        logger.info(
            "payment_allocation_posted",
            allocation_id=str(allocation.id),
            entry_id=str(entry.id),
        )
        return entry

    def _owning_entity(self, entity_id: UUID | None) -> Entity | None:
        if entity_id is None:
            return None
        entity = self._entity_repo.get(entity_id)
        if entity is None or entity.tenant_id != self._context.tenant_id:
            return None
        return entity

    def _check_not_posted(self, source_type: SourceType, kind: str, document_id: UUID) -> None:
        for entry in self._journal_repo.find_by_source(source_type, document_id):
            if entry.status != JournalEntryStatus.VOIDED:
                raise AlreadyPostedError(kind, document_id)

    @staticmethod
    def _check_currency(
        kind: str, document: Invoice | Bill | CreditNote, entity: Entity
    ) -> None:
        if document.currency != entity.functional_currency:
            raise DocumentNotPostableError(
                kind, document.id, "document currency differs from functional currency"
            )

    def _account_by_code(self, entity_id: UUID, code: str) -> GLAccount:
        account = self._gl_account_repo.get_by_code(entity_id, code)
        if account is None or not account.is_active:
            raise GLAccountNotFoundError(code, by_code=True)
        return account

    @staticmethod
    def _allocation_memo(allocation: PaymentAllocation, reference: str) -> str:
        kind = "Invoice" if allocation.invoice_id is not None else "Bill"
        suffix = f" ({reference})" if reference else ""
        return f"{kind} payment{suffix}"
