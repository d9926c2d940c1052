"""Tests for the journal entry lifecycle."""

from collections.abc import Callable
from datetime import date
from decimal import Decimal

import pytest

from tenant_books.container import Container, ServiceScope
from tenant_books.domain.entities import Entity, GLAccount
from tenant_books.domain.journal import JournalEntry, JournalEntryStatus, SourceType
from tenant_books.domain.tenancy import Role, TenantContext
from tenant_books.exceptions import (
    AlreadyVoidedError,
    CrossEntityReferenceError,
    FiscalPeriodClosedError,
    ImmutableEntryError,
    InvalidJournalLineError,
    JournalEntryNotFoundError,
    PermissionDeniedError,
    SeparationOfDutiesError,
    UnbalancedEntryError,
)
from tenant_books.services.interfaces import LineInput


def _lines(debit_id, credit_id, amount: str = "100.00") -> list[LineInput]:
    return [
        LineInput(gl_account_id=debit_id, debit=Decimal(amount)),
        LineInput(gl_account_id=credit_id, credit=Decimal(amount)),
    ]


class TestCreateEntry:
    """Tests for draft creation and validation."""

    def test_creates_numbered_draft(
        self, services: ServiceScope, entity: Entity, account: Callable[[str], GLAccount]
    ) -> None:
        first = services.journal.create_entry(
            entity.id, date(2025, 1, 10), "Owner contribution",
            _lines(account("1100").id, account("3000").id),
        )
        second = services.journal.create_entry(
            entity.id, date(2025, 1, 11), "Another",
            _lines(account("1100").id, account("3000").id),
        )

        assert first.status == JournalEntryStatus.DRAFT
        assert first.entry_number == "JE-001"
        assert second.entry_number == "JE-002"
        assert first.total_debits == Decimal("100.00")
        assert first.created_by == services.context.user_id
        assert first.source_type == SourceType.MANUAL

    def test_single_line_rejected(
        self, services: ServiceScope, entity: Entity, account: Callable[[str], GLAccount]
    ) -> None:
        with pytest.raises(InvalidJournalLineError):
            services.journal.create_entry(
                entity.id, date(2025, 1, 10), "One line",
                [LineInput(gl_account_id=account("1100").id, debit=Decimal("5"))],
            )

    def test_line_with_both_sides_rejected(
        self, services: ServiceScope, entity: Entity, account: Callable[[str], GLAccount]
    ) -> None:
        with pytest.raises(InvalidJournalLineError):
            services.journal.create_entry(
                entity.id, date(2025, 1, 10), "Both",
                [
                    LineInput(
                        gl_account_id=account("1100").id,
                        debit=Decimal("5"),
                        credit=Decimal("5"),
                    ),
                    LineInput(gl_account_id=account("3000").id, credit=Decimal("5")),
                ],
            )

    def test_negative_amount_rejected(
        self, services: ServiceScope, entity: Entity, account: Callable[[str], GLAccount]
    ) -> None:
        with pytest.raises(InvalidJournalLineError):
            services.journal.create_entry(
                entity.id, date(2025, 1, 10), "Negative",
                [
                    LineInput(gl_account_id=account("1100").id, debit=Decimal("-5")),
                    LineInput(gl_account_id=account("3000").id, credit=Decimal("5")),
                ],
            )

    def test_sub_cent_amount_rejected(
        self, services: ServiceScope, entity: Entity, account: Callable[[str], GLAccount]
    ) -> None:
        with pytest.raises(InvalidJournalLineError):
            services.journal.create_entry(
                entity.id, date(2025, 1, 10), "Dust",
                [
                    LineInput(gl_account_id=account("1100").id, debit=Decimal("0.004")),
                    LineInput(gl_account_id=account("3000").id, credit=Decimal("0.004")),
                ],
            )

    def test_unbalanced_rejected(
        self, services: ServiceScope, entity: Entity, account: Callable[[str], GLAccount]
    ) -> None:
        with pytest.raises(UnbalancedEntryError):
            services.journal.create_entry(
                entity.id, date(2025, 1, 10), "Off by a cent",
                [
                    LineInput(gl_account_id=account("1100").id, debit=Decimal("100.00")),
                    LineInput(gl_account_id=account("3000").id, credit=Decimal("99.99")),
                ],
            )

    def test_foreign_entity_account_rejected(
        self,
        container: Container,
        owner_context: TenantContext,
        services: ServiceScope,
        entity: Entity,
        account: Callable[[str], GLAccount],
    ) -> None:
        other = container.tenancy_service.create_entity(owner_context, "Sister Co")
        services.gl_accounts.seed_default_coa(other.id)
        foreign = services.gl_accounts.get_account_by_code(other.id, "3000")

        with pytest.raises(CrossEntityReferenceError):
            services.journal.create_entry(
                entity.id, date(2025, 1, 10), "Cross", _lines(account("1100").id, foreign.id)
            )

    def test_inactive_account_rejected(
        self, services: ServiceScope, entity: Entity, account: Callable[[str], GLAccount]
    ) -> None:
        services.gl_accounts.deactivate_account(account("1300").id)

        with pytest.raises(CrossEntityReferenceError):
            services.journal.create_entry(
                entity.id, date(2025, 1, 10), "Inactive",
                _lines(account("1300").id, account("3000").id),
            )

    def test_locked_period_rejected(
        self, services: ServiceScope, entity: Entity, account: Callable[[str], GLAccount]
    ) -> None:
        calendar = services.fiscal_periods.create_calendar(entity.id, 2025)
        services.fiscal_periods.lock_period(calendar.periods[0].id)

        with pytest.raises(FiscalPeriodClosedError):
            services.journal.create_entry(
                entity.id, date(2025, 1, 10), "Late",
                _lines(account("1100").id, account("3000").id),
            )

    def test_viewer_cannot_create(
        self,
        container: Container,
        owner_context: TenantContext,
        entity: Entity,
        account: Callable[[str], GLAccount],
    ) -> None:
        membership = container.tenancy_service.add_member(
            owner_context, "viewer@acme.test", Role.VIEWER
        )
        viewer = container.scope(
            container.tenancy_service.resolve_context(
                owner_context.tenant_id, membership.user_id
            )
        )

        with pytest.raises(PermissionDeniedError):
            viewer.journal.create_entry(
                entity.id, date(2025, 1, 10), "Nope",
                _lines(account("1100").id, account("3000").id),
            )


class TestApproveEntry:
    """Tests for approval and separation of duties."""

    def test_owner_may_approve_own_entry(
        self, services: ServiceScope, entity: Entity, account: Callable[[str], GLAccount]
    ) -> None:
        draft = services.journal.create_entry(
            entity.id, date(2025, 1, 10), "Own", _lines(account("1100").id, account("3000").id)
        )

        posted = services.journal.approve_entry(draft.id)

        assert posted.status == JournalEntryStatus.POSTED
        assert services.journal.get_entry(draft.id).status == JournalEntryStatus.POSTED

    def test_bookkeeper_cannot_approve_own_entry(
        self,
        bookkeeper_services: ServiceScope,
        entity: Entity,
        account: Callable[[str], GLAccount],
    ) -> None:
        draft = bookkeeper_services.journal.create_entry(
            entity.id, date(2025, 1, 10), "Mine", _lines(account("1100").id, account("3000").id)
        )

        with pytest.raises(SeparationOfDutiesError):
            bookkeeper_services.journal.approve_entry(draft.id)

    def test_second_user_approves(
        self,
        services: ServiceScope,
        bookkeeper_services: ServiceScope,
        entity: Entity,
        account: Callable[[str], GLAccount],
    ) -> None:
        draft = services.journal.create_entry(
            entity.id, date(2025, 1, 10), "Theirs",
            _lines(account("1100").id, account("3000").id),
        )

        posted = bookkeeper_services.journal.approve_entry(draft.id)

        assert posted.status == JournalEntryStatus.POSTED

    def test_posted_entry_cannot_be_approved_again(
        self,
        services: ServiceScope,
        account: Callable[[str], GLAccount],
        post_entry: Callable[..., JournalEntry],
    ) -> None:
        posted = post_entry(account("1100").id, account("3000").id, "10.00")

        with pytest.raises(ImmutableEntryError):
            services.journal.approve_entry(posted.id)


class TestVoidEntry:
    """Tests for voiding through a reversing entry."""

    def test_void_posts_reversal(
        self,
        services: ServiceScope,
        entity: Entity,
        account: Callable[[str], GLAccount],
        post_entry: Callable[..., JournalEntry],
    ) -> None:
        posted = post_entry(account("1100").id, account("4000").id, "75.00", memo="Sale")

        result = services.journal.void_entry(posted.id, reversal_date=date(2025, 1, 20))

        assert result.voided_entry.status == JournalEntryStatus.VOIDED
        reversal = result.reversal_entry
        assert reversal.status == JournalEntryStatus.POSTED
        assert reversal.source_type == SourceType.ADJUSTMENT
        assert reversal.memo == "REVERSAL: Sale"
        assert reversal.linked_entry_id == posted.id
        assert reversal.entry_date == date(2025, 1, 20)
        assert reversal.lines[0].credit_amount.amount == Decimal("75.00")

        balances = {
            b.code: b.balance for b in services.gl_accounts.get_account_balances(entity.id)
        }
        assert balances["1100"] == 0
        assert balances["4000"] == 0

    def test_void_twice(
        self,
        services: ServiceScope,
        account: Callable[[str], GLAccount],
        post_entry: Callable[..., JournalEntry],
    ) -> None:
        posted = post_entry(account("1100").id, account("4000").id, "75.00")
        services.journal.void_entry(posted.id, reversal_date=date(2025, 1, 20))

        with pytest.raises(AlreadyVoidedError):
            services.journal.void_entry(posted.id, reversal_date=date(2025, 1, 21))

    def test_void_draft_rejected(
        self, services: ServiceScope, entity: Entity, account: Callable[[str], GLAccount]
    ) -> None:
        draft = services.journal.create_entry(
            entity.id, date(2025, 1, 10), "Draft", _lines(account("1100").id, account("3000").id)
        )

        with pytest.raises(ImmutableEntryError):
            services.journal.void_entry(draft.id)


class TestDeleteEntry:
    """Tests for deleting drafts."""

    def test_delete_draft(
        self, services: ServiceScope, entity: Entity, account: Callable[[str], GLAccount]
    ) -> None:
        draft = services.journal.create_entry(
            entity.id, date(2025, 1, 10), "Scratch", _lines(account("1100").id, account("3000").id)
        )

        services.journal.delete_entry(draft.id)

        with pytest.raises(JournalEntryNotFoundError):
            services.journal.get_entry(draft.id)

    def test_delete_posted_rejected(
        self,
        services: ServiceScope,
        account: Callable[[str], GLAccount],
        post_entry: Callable[..., JournalEntry],
    ) -> None:
        posted = post_entry(account("1100").id, account("3000").id, "10.00")

        with pytest.raises(ImmutableEntryError):
            services.journal.delete_entry(posted.id)


class TestListEntries:
    """Tests for filtering and paging entries."""

    def test_newest_first_with_cursor(
        self,
        services: ServiceScope,
        entity: Entity,
        account: Callable[[str], GLAccount],
        post_entry: Callable[..., JournalEntry],
    ) -> None:
        for day in (1, 2, 3):
            post_entry(account("1100").id, account("3000").id, "1.00", date(2025, 1, day))

        first_page = services.journal.list_entries(entity.id, limit=2)
        assert [e.entry_date.day for e in first_page.entries] == [3, 2]
        assert first_page.next_cursor is not None

        second_page = services.journal.list_entries(
            entity.id, limit=2, cursor=first_page.next_cursor
        )
        assert [e.entry_date.day for e in second_page.entries] == [1]
        assert second_page.next_cursor is None

    def test_filter_by_status_and_date(
        self,
        services: ServiceScope,
        entity: Entity,
        account: Callable[[str], GLAccount],
        post_entry: Callable[..., JournalEntry],
    ) -> None:
        post_entry(account("1100").id, account("3000").id, "1.00", date(2025, 1, 5))
        services.journal.create_entry(
            entity.id, date(2025, 2, 5), "Draft", _lines(account("1100").id, account("3000").id)
        )

        drafts = services.journal.list_entries(entity.id, status=JournalEntryStatus.DRAFT)
        january = services.journal.list_entries(
            entity.id, date_from=date(2025, 1, 1), date_to=date(2025, 1, 31)
        )

        assert [e.memo for e in drafts.entries] == ["Draft"]
        assert [e.entry_date for e in january.entries] == [date(2025, 1, 5)]
