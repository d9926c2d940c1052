"""Tests for posting invoices, bills and payment allocations to the ledger."""

from collections.abc import Callable
from datetime import date
from decimal import Decimal

import pytest

from tenant_books.container import ServiceScope
from tenant_books.domain.entities import Entity, GLAccount
from tenant_books.domain.invoicing import Bill, Client, Invoice, TaxRate, Vendor
from tenant_books.domain.journal import JournalEntryStatus, SourceType
from tenant_books.domain.value_objects import Currency
from tenant_books.exceptions import (
    AlreadyPostedError,
    DocumentNotPostableError,
    RecordNotFoundError,
)
from tenant_books.services.invoicing import DocumentLineInput


@pytest.fixture
def client(services: ServiceScope, entity: Entity) -> Client:
    return services.invoicing.create_client(entity.id, "Globex")


@pytest.fixture
def vendor(services: ServiceScope, entity: Entity) -> Vendor:
    return services.invoicing.create_vendor(entity.id, "Paper Supply Co")


@pytest.fixture
def sales_tax(services: ServiceScope, entity: Entity) -> TaxRate:
    return services.invoicing.create_tax_rate(entity.id, "GST", "GST", Decimal("0.05"))


@pytest.fixture
def invoice(
    services: ServiceScope, entity: Entity, client: Client, sales_tax: TaxRate
) -> Invoice:
    draft = services.invoicing.create_invoice(
        entity.id,
        client.id,
        "INV-100",
        date(2025, 1, 10),
        date(2025, 2, 9),
        [DocumentLineInput("Design work", Decimal("2"), Decimal("100.00"), sales_tax.id)],
    )
    return services.invoicing.send_invoice(draft.id)


@pytest.fixture
def bill(services: ServiceScope, entity: Entity, vendor: Vendor, sales_tax: TaxRate) -> Bill:
    draft = services.invoicing.create_bill(
        entity.id,
        vendor.id,
        "PS-7781",
        date(2025, 1, 12),
        date(2025, 2, 11),
        [DocumentLineInput("Printer paper", Decimal("10"), Decimal("4.00"), sales_tax.id)],
    )
    return services.invoicing.approve_bill(draft.id)


def _balances(services: ServiceScope, entity: Entity) -> dict[str, Decimal]:
    return {b.code: b.balance for b in services.gl_accounts.get_account_balances(entity.id)}


class TestPostInvoice:
    """Tests for invoice posting."""

    def test_lines(
        self,
        services: ServiceScope,
        entity: Entity,
        invoice: Invoice,
        account: Callable[[str], GLAccount],
    ) -> None:
        entry = services.document_posting.post_invoice(invoice.id)

        assert entry.status == JournalEntryStatus.POSTED
        assert entry.source_type == SourceType.INVOICE
        assert entry.source_id == invoice.id
        assert entry.entry_date == date(2025, 1, 10)
        assert entry.memo == "Invoice INV-100"
        assert entry.is_balanced
        by_account = {line.gl_account_id: line for line in entry.lines}
        assert by_account[account("1200").id].debit_amount.amount == Decimal("210.00")
        assert by_account[account("4000").id].credit_amount.amount == Decimal("200.00")
        assert by_account[account("2300").id].credit_amount.amount == Decimal("10.00")

    def test_balances(self, services: ServiceScope, entity: Entity, invoice: Invoice) -> None:
        services.document_posting.post_invoice(invoice.id)

        balances = _balances(services, entity)
        assert balances["1200"] == Decimal("210.00")
        assert balances["4000"] == Decimal("200.00")
        assert balances["2300"] == Decimal("10.00")

    def test_line_account_overrides_default(
        self,
        services: ServiceScope,
        entity: Entity,
        client: Client,
        account: Callable[[str], GLAccount],
    ) -> None:
        draft = services.invoicing.create_invoice(
            entity.id,
            client.id,
            "INV-101",
            date(2025, 1, 10),
            date(2025, 2, 9),
            [
                DocumentLineInput(
                    "Interest", Decimal("1"), Decimal("15.00"), gl_account_id=account("4100").id
                )
            ],
        )
        services.invoicing.send_invoice(draft.id)

        entry = services.document_posting.post_invoice(draft.id)

        credited = {l.gl_account_id for l in entry.lines if l.credit_amount.amount > 0}
        assert credited == {account("4100").id}

    def test_draft_not_postable(
        self, services: ServiceScope, entity: Entity, client: Client
    ) -> None:
        draft = services.invoicing.create_invoice(
            entity.id,
            client.id,
            "INV-D",
            date(2025, 1, 10),
            date(2025, 2, 9),
            [DocumentLineInput("Work", Decimal("1"), Decimal("50"))],
        )

        with pytest.raises(DocumentNotPostableError):
            services.document_posting.post_invoice(draft.id)

    def test_foreign_currency_not_postable(
        self, services: ServiceScope, entity: Entity, client: Client
    ) -> None:
        draft = services.invoicing.create_invoice(
            entity.id,
            client.id,
            "INV-EUR",
            date(2025, 1, 10),
            date(2025, 2, 9),
            [DocumentLineInput("Work", Decimal("1"), Decimal("50"))],
            currency=Currency.EUR,
        )
        services.invoicing.send_invoice(draft.id)

        with pytest.raises(DocumentNotPostableError):
            services.document_posting.post_invoice(draft.id)

    def test_posted_once(self, services: ServiceScope, invoice: Invoice) -> None:
        services.document_posting.post_invoice(invoice.id)

        with pytest.raises(AlreadyPostedError):
            services.document_posting.post_invoice(invoice.id)

    def test_other_tenant_cannot_post(
        self, other_tenant_services: ServiceScope, invoice: Invoice
    ) -> None:
        with pytest.raises(RecordNotFoundError):
            other_tenant_services.document_posting.post_invoice(invoice.id)


class TestPostCreditNote:
    """Tests for credit note posting."""

    def test_invoice_credit_reduces_receivable(
        self, services: ServiceScope, entity: Entity, invoice: Invoice
    ) -> None:
        note = services.invoicing.create_credit_note(
            entity.id, date(2025, 1, 15), Decimal("50.00"), invoice_id=invoice.id
        )
        services.invoicing.approve_credit_note(note.id)
        services.document_posting.post_invoice(invoice.id)

        entry = services.document_posting.post_credit_note(note.id)

        assert entry.source_type == SourceType.CREDIT_NOTE
        assert entry.source_id == note.id
        assert entry.memo == "Credit note CN-001"
        balances = _balances(services, entity)
        assert balances["1200"] == Decimal("160.00")
        assert balances["4000"] == Decimal("150.00")

    def test_bill_credit_reduces_payable(
        self,
        services: ServiceScope,
        entity: Entity,
        bill: Bill,
        account: Callable[[str], GLAccount],
    ) -> None:
        note = services.invoicing.create_credit_note(
            entity.id, date(2025, 1, 15), Decimal("12.00"), bill_id=bill.id
        )
        services.invoicing.approve_credit_note(note.id)

        entry = services.document_posting.post_credit_note(note.id)

        by_account = {line.gl_account_id: line for line in entry.lines}
        assert by_account[account("2000").id].debit_amount.amount == Decimal("12.00")
        assert by_account[account("5990").id].credit_amount.amount == Decimal("12.00")

    def test_draft_and_unlinked_not_postable(
        self, services: ServiceScope, entity: Entity, invoice: Invoice
    ) -> None:
        draft = services.invoicing.create_credit_note(
            entity.id, date(2025, 1, 15), Decimal("5.00"), invoice_id=invoice.id
        )
        unlinked = services.invoicing.create_credit_note(
            entity.id, date(2025, 1, 15), Decimal("5.00")
        )
        services.invoicing.approve_credit_note(unlinked.id)

        with pytest.raises(DocumentNotPostableError):
            services.document_posting.post_credit_note(draft.id)
        with pytest.raises(DocumentNotPostableError):
            services.document_posting.post_credit_note(unlinked.id)

    def test_posted_once(self, services: ServiceScope, entity: Entity, invoice: Invoice) -> None:
        note = services.invoicing.create_credit_note(
            entity.id, date(2025, 1, 15), Decimal("5.00"), invoice_id=invoice.id
        )
        services.invoicing.approve_credit_note(note.id)
        services.document_posting.post_credit_note(note.id)

        with pytest.raises(AlreadyPostedError):
            services.document_posting.post_credit_note(note.id)


class TestPostBill:
    """Tests for bill posting."""

    def test_lines(
        self,
        services: ServiceScope,
        entity: Entity,
        bill: Bill,
        account: Callable[[str], GLAccount],
    ) -> None:
        entry = services.document_posting.post_bill(bill.id)

        assert entry.source_type == SourceType.BILL
        assert entry.memo == "Bill PS-7781"
        by_account = {line.gl_account_id: line for line in entry.lines}
        assert by_account[account("5990").id].debit_amount.amount == Decimal("40.00")
        assert by_account[account("2300").id].debit_amount.amount == Decimal("2.00")
        assert by_account[account("2000").id].credit_amount.amount == Decimal("42.00")

    def test_recoverable_tax_reduces_liability(
        self, services: ServiceScope, entity: Entity, invoice: Invoice, bill: Bill
    ) -> None:
        services.document_posting.post_invoice(invoice.id)
        services.document_posting.post_bill(bill.id)

        balances = _balances(services, entity)
        assert balances["2300"] == Decimal("8.00")
        assert balances["2000"] == Decimal("42.00")


class TestPostAllocation:
    """Tests for payment allocation posting."""

    def test_receipt(
        self,
        services: ServiceScope,
        entity: Entity,
        client: Client,
        invoice: Invoice,
        account: Callable[[str], GLAccount],
    ) -> None:
        services.document_posting.post_invoice(invoice.id)
        payment = services.invoicing.create_payment(
            entity.id, date(2025, 1, 20), Decimal("210.00"), client_id=client.id, reference="CHK 88"
        )
        allocation = services.invoicing.allocate_payment(
            payment.id, invoice.id, Decimal("210.00")
        )

        entry = services.document_posting.post_payment_allocation(
            allocation.id, account("1100").id
        )

        assert entry.source_type == SourceType.PAYMENT
        assert entry.memo == "Invoice payment (CHK 88)"
        assert entry.entry_date == date(2025, 1, 20)
        balances = _balances(services, entity)
        assert balances["1100"] == Decimal("210.00")
        assert balances["1200"] == Decimal("0.00")
        posted = services.invoicing.get_payment(payment.id).allocations[0]
        assert posted.journal_entry_id == entry.id

    def test_vendor_payment(
        self,
        services: ServiceScope,
        entity: Entity,
        vendor: Vendor,
        bill: Bill,
        account: Callable[[str], GLAccount],
    ) -> None:
        services.document_posting.post_bill(bill.id)
        payment = services.invoicing.create_payment(
            entity.id, date(2025, 1, 25), Decimal("42.00"), vendor_id=vendor.id
        )
        allocation = services.invoicing.allocate_payment(payment.id, bill.id, Decimal("42.00"))

        entry = services.document_posting.post_payment_allocation(
            allocation.id, account("1100").id
        )

        assert entry.memo == "Bill payment"
        balances = _balances(services, entity)
        assert balances["2000"] == Decimal("0.00")
        assert balances["1100"] == Decimal("-42.00")

    def test_posted_once(
        self,
        services: ServiceScope,
        entity: Entity,
        client: Client,
        invoice: Invoice,
        account: Callable[[str], GLAccount],
    ) -> None:
        payment = services.invoicing.create_payment(
            entity.id, date(2025, 1, 20), Decimal("10.00"), client_id=client.id
        )
        allocation = services.invoicing.allocate_payment(payment.id, invoice.id, Decimal("10.00"))
        services.document_posting.post_payment_allocation(allocation.id, account("1100").id)

        with pytest.raises(AlreadyPostedError):
            services.document_posting.post_payment_allocation(allocation.id, account("1100").id)
