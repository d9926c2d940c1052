"""Tests for credit notes against invoices and bills."""

from datetime import date
from decimal import Decimal

import pytest

from tenant_books.container import Container, ServiceScope
from tenant_books.domain.entities import Entity
from tenant_books.domain.invoicing import (
    Bill,
    BillStatus,
    Client,
    CreditNote,
    CreditNoteStatus,
    Invoice,
    InvoiceStatus,
    Vendor,
)
from tenant_books.domain.journal import JournalEntryStatus, SourceType
from tenant_books.exceptions import (
    CreditNoteError,
    InvalidStatusTransitionError,
    InvoicingError,
    PermissionDeniedError,
    RecordNotFoundError,
    ValidationError,
)
from tenant_books.services.invoicing import DocumentLineInput, next_credit_note_number


@pytest.fixture
def client(services: ServiceScope, entity: Entity) -> Client:
    return services.invoicing.create_client(entity.id, "Globex")


@pytest.fixture
def vendor(services: ServiceScope, entity: Entity) -> Vendor:
    return services.invoicing.create_vendor(entity.id, "Paper Supply Co")


@pytest.fixture
def invoice(services: ServiceScope, entity: Entity, client: Client) -> Invoice:
    draft = services.invoicing.create_invoice(
        entity.id,
        client.id,
        "INV-200",
        date(2025, 1, 1),
        date(2025, 1, 31),
        [DocumentLineInput("Retainer", Decimal("1"), Decimal("500.00"))],
    )
    return services.invoicing.send_invoice(draft.id)


@pytest.fixture
def bill(services: ServiceScope, entity: Entity, vendor: Vendor) -> Bill:
    draft = services.invoicing.create_bill(
        entity.id,
        vendor.id,
        "PS-1",
        date(2025, 1, 5),
        date(2025, 2, 4),
        [DocumentLineInput("Toner", Decimal("2"), Decimal("60.00"))],
    )
    return services.invoicing.approve_bill(draft.id)


@pytest.fixture
def approved_note(services: ServiceScope, entity: Entity, invoice: Invoice) -> CreditNote:
    note = services.invoicing.create_credit_note(
        entity.id, date(2025, 1, 10), Decimal("200.00"), invoice_id=invoice.id, reason="Late"
    )
    return services.invoicing.approve_credit_note(note.id)


class TestNumbering:
    def test_next_number(self) -> None:
        assert next_credit_note_number([]) == "CN-001"
        assert next_credit_note_number(["CN-002", "CN-010", "MANUAL-7"]) == "CN-011"

    def test_sequential_per_entity(self, services: ServiceScope, entity: Entity) -> None:
        first = services.invoicing.create_credit_note(entity.id, date(2025, 1, 2), Decimal("1"))
        second = services.invoicing.create_credit_note(entity.id, date(2025, 1, 3), Decimal("1"))

        assert first.credit_note_number == "CN-001"
        assert second.credit_note_number == "CN-002"

    def test_deleted_draft_keeps_its_number(
        self, services: ServiceScope, entity: Entity
    ) -> None:
        draft = services.invoicing.create_credit_note(entity.id, date(2025, 1, 2), Decimal("5"))
        services.invoicing.delete_credit_note(draft.id)

        later = services.invoicing.create_credit_note(entity.id, date(2025, 1, 3), Decimal("5"))

        assert later.credit_note_number == "CN-002"
        with pytest.raises(RecordNotFoundError):
            services.invoicing.get_credit_note(draft.id)

    def test_duplicate_number(self, services: ServiceScope, entity: Entity) -> None:
        services.invoicing.create_credit_note(
            entity.id, date(2025, 1, 2), Decimal("5"), credit_note_number="CN-050"
        )

        with pytest.raises(InvoicingError) as exc_info:
            services.invoicing.create_credit_note(
                entity.id, date(2025, 1, 2), Decimal("5"), credit_note_number="CN-050"
            )
        assert exc_info.value.error_code == "DUPLICATE_DOCUMENT_NUMBER"


class TestCreate:
    def test_links_one_document(
        self, services: ServiceScope, entity: Entity, invoice: Invoice, bill: Bill
    ) -> None:
        with pytest.raises(ValidationError):
            services.invoicing.create_credit_note(
                entity.id,
                date(2025, 1, 10),
                Decimal("10"),
                invoice_id=invoice.id,
                bill_id=bill.id,
            )

    def test_takes_document_currency(
        self, services: ServiceScope, entity: Entity, bill: Bill
    ) -> None:
        note = services.invoicing.create_credit_note(
            entity.id, date(2025, 1, 10), Decimal("10"), bill_id=bill.id
        )

        assert note.currency == bill.currency
        assert note.status == CreditNoteStatus.DRAFT
        assert note.remaining == Decimal("10")

    def test_hidden_from_other_tenants(
        self, other_tenant_services: ServiceScope, approved_note: CreditNote
    ) -> None:
        with pytest.raises(RecordNotFoundError):
            other_tenant_services.invoicing.get_credit_note(approved_note.id)

    def test_viewer_cannot_create(self, viewer_services: ServiceScope, entity: Entity) -> None:
        with pytest.raises(PermissionDeniedError):
            viewer_services.invoicing.create_credit_note(
                entity.id, date(2025, 1, 10), Decimal("10")
            )


class TestApprove:
    def test_zero_amount_cannot_be_approved(
        self, services: ServiceScope, entity: Entity
    ) -> None:
        note = services.invoicing.create_credit_note(entity.id, date(2025, 1, 10), Decimal("0"))

        with pytest.raises(CreditNoteError):
            services.invoicing.approve_credit_note(note.id)

    def test_only_drafts_can_be_deleted(
        self, services: ServiceScope, approved_note: CreditNote
    ) -> None:
        with pytest.raises(CreditNoteError):
            services.invoicing.delete_credit_note(approved_note.id)


class TestApply:
    """Tests for applying credit to documents."""

    def test_partial_then_full(
        self, services: ServiceScope, invoice: Invoice, approved_note: CreditNote
    ) -> None:
        partial = services.invoicing.apply_credit_note(approved_note.id, Decimal("50.00"))

        assert partial.status == CreditNoteStatus.APPROVED
        assert partial.remaining == Decimal("150.00")
        current = services.invoicing.get_invoice(invoice.id)
        assert current.outstanding == Decimal("450.00")
        assert current.status == InvoiceStatus.PARTIALLY_PAID

        full = services.invoicing.apply_credit_note(approved_note.id, Decimal("150.00"))

        assert full.status == CreditNoteStatus.APPLIED
        assert full.applied_amount == Decimal("200.00")
        assert services.invoicing.get_invoice(invoice.id).outstanding == Decimal("300.00")

    def test_exceeds_remaining_credit(
        self, services: ServiceScope, approved_note: CreditNote
    ) -> None:
        with pytest.raises(CreditNoteError):
            services.invoicing.apply_credit_note(approved_note.id, Decimal("200.01"))

    def test_exceeds_document_outstanding(
        self, services: ServiceScope, entity: Entity, bill: Bill
    ) -> None:
        note = services.invoicing.create_credit_note(
            entity.id, date(2025, 1, 10), Decimal("500.00"), bill_id=bill.id
        )
        services.invoicing.approve_credit_note(note.id)

        with pytest.raises(CreditNoteError):
            services.invoicing.apply_credit_note(note.id, Decimal("120.01"))

        applied = services.invoicing.apply_credit_note(note.id, Decimal("120.00"))
        assert applied.status == CreditNoteStatus.APPROVED
        assert services.invoicing.get_bill(bill.id).status == BillStatus.PAID

    def test_draft_cannot_be_applied(
        self, services: ServiceScope, entity: Entity, invoice: Invoice
    ) -> None:
        note = services.invoicing.create_credit_note(
            entity.id, date(2025, 1, 10), Decimal("10"), invoice_id=invoice.id
        )

        with pytest.raises(InvalidStatusTransitionError):
            services.invoicing.apply_credit_note(note.id, Decimal("10"))

    def test_unlinked_note_links_on_first_use(
        self, services: ServiceScope, entity: Entity, bill: Bill, invoice: Invoice
    ) -> None:
        note = services.invoicing.create_credit_note(entity.id, date(2025, 1, 10), Decimal("40"))
        services.invoicing.approve_credit_note(note.id)

        with pytest.raises(ValidationError):
            services.invoicing.apply_credit_note(note.id, Decimal("10"))

        applied = services.invoicing.apply_credit_note(note.id, Decimal("10"), bill.id)
        assert applied.bill_id == bill.id
        with pytest.raises(CreditNoteError):
            services.invoicing.apply_credit_note(note.id, Decimal("10"), invoice.id)

    def test_draft_document_is_not_open(
        self, services: ServiceScope, entity: Entity, client: Client
    ) -> None:
        draft = services.invoicing.create_invoice(
            entity.id,
            client.id,
            "INV-DRAFT",
            date(2025, 1, 1),
            date(2025, 1, 31),
            [DocumentLineInput("Work", Decimal("1"), Decimal("100"))],
        )
        note = services.invoicing.create_credit_note(
            entity.id, date(2025, 1, 10), Decimal("10"), invoice_id=draft.id
        )
        services.invoicing.approve_credit_note(note.id)

        with pytest.raises(CreditNoteError):
            services.invoicing.apply_credit_note(note.id, Decimal("10"))


class TestVoid:
    """Tests for voiding credit notes."""

    def test_releases_applied_credit(
        self, services: ServiceScope, invoice: Invoice, approved_note: CreditNote
    ) -> None:
        services.invoicing.apply_credit_note(approved_note.id, Decimal("80.00"))

        voided = services.invoicing.void_credit_note(approved_note.id, date(2025, 1, 20))

        assert voided.status == CreditNoteStatus.VOIDED
        current = services.invoicing.get_invoice(invoice.id)
        assert current.paid_amount == Decimal("0")
        assert current.status == InvoiceStatus.SENT

    def test_release_after_due_date_marks_overdue(
        self, services: ServiceScope, invoice: Invoice, approved_note: CreditNote
    ) -> None:
        services.invoicing.apply_credit_note(approved_note.id, Decimal("80.00"))

        services.invoicing.void_credit_note(approved_note.id, date(2025, 3, 1))

        assert services.invoicing.get_invoice(invoice.id).status == InvoiceStatus.OVERDUE

    def test_reverses_posted_entry(
        self, container: Container, services: ServiceScope, approved_note: CreditNote
    ) -> None:
        entry = services.document_posting.post_credit_note(approved_note.id)

        services.invoicing.void_credit_note(approved_note.id, date(2025, 1, 20))

        assert services.journal.get_entry(entry.id).status == JournalEntryStatus.VOIDED
        reversal = container.journal_repo.find_reversal(entry.id)
        assert reversal is not None
        assert reversal.source_type == SourceType.ADJUSTMENT

    def test_applied_note_cannot_be_voided(
        self, services: ServiceScope, approved_note: CreditNote
    ) -> None:
        services.invoicing.apply_credit_note(approved_note.id, Decimal("200.00"))

        with pytest.raises(InvalidStatusTransitionError):
            services.invoicing.void_credit_note(approved_note.id)

    def test_viewer_cannot_void(
        self, viewer_services: ServiceScope, approved_note: CreditNote
    ) -> None:
        with pytest.raises(PermissionDeniedError):
            viewer_services.invoicing.void_credit_note(approved_note.id)


def test_list_by_status(
    services: ServiceScope, entity: Entity, approved_note: CreditNote
) -> None:
    services.invoicing.create_credit_note(entity.id, date(2025, 1, 11), Decimal("3"))

    approved = services.invoicing.list_credit_notes(entity.id, CreditNoteStatus.APPROVED)

    assert [n.id for n in approved] == [approved_note.id]
    assert len(services.invoicing.list_credit_notes(entity.id)) == 2
