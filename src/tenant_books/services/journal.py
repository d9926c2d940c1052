"""JournalService implementation: drafts, approval, voiding by reversal."""

from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from tenant_books.domain.entities import Entity
from tenant_books.domain.journal import (
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
    SourceType,
    format_entry_number,
    parse_entry_number,
)
from tenant_books.domain.tenancy import Role, TenantContext
from tenant_books.domain.value_objects import Money, round_money
from tenant_books.exceptions import (
    AlreadyVoidedError,
    CrossEntityReferenceError,
    ImmutableEntryError,
    InvalidJournalLineError,
    JournalEntryNotFoundError,
    SeparationOfDutiesError,
    UnbalancedEntryError,
)
from tenant_books.logging_config import get_logger
from tenant_books.repositories.interfaces import (
    EntityRepository,
    GLAccountRepository,
    JournalEntryRepository,
)
from tenant_books.repositories.sqlite import SQLiteDatabase
from tenant_books.services.audit import AuditService
from tenant_books.services.fiscal_periods import FiscalPeriodService
from tenant_books.services.interfaces import (
    EntryPage,
    JournalService,
    LineInput,
    VoidResult,
)
from tenant_books.services.tenancy import require_entity, require_write

logger = get_logger(__name__)

REVERSAL_PREFIX = "REVERSAL: "


def _entry_summary(entry: JournalEntry) -> dict[str, Any]:
    return {
        "entry_number": entry.entry_number,
        "memo": entry.memo,
        "status": entry.status.value,
        "line_count": len(entry.lines),
        "total_amount": str(entry.total_debits),
    }


class JournalServiceImpl(JournalService):
    """Journal entries for the entities of one tenant.

    Manual entries start as drafts and reach the ledger through approval.
    Entries generated by the posting engines are recorded as posted directly
    through ``record_posted_entry``.
    """

    def __init__(
        self,
        database: SQLiteDatabase,
        journal_repo: JournalEntryRepository,
        gl_account_repo: GLAccountRepository,
        entity_repo: EntityRepository,
        fiscal_periods: FiscalPeriodService,
        audit: AuditService,
        context: TenantContext,
    ) -> None:
        self._db = database
        self._journal_repo = journal_repo
        self._gl_account_repo = gl_account_repo
        self._entity_repo = entity_repo
        self._fiscal_periods = fiscal_periods
        self._audit = audit
        self._context = context

    def create_entry(
        self,
        entity_id: UUID,
        entry_date: date,
        memo: str,
        lines: list[LineInput],
        source_type: SourceType = SourceType.MANUAL,
        source_id: UUID | None = None,
    ) -> JournalEntry:
        """Validate and save a draft journal entry.

        Args:
            entity_id: Entity whose books the entry belongs to
            entry_date: Accounting date of the entry
            memo: Free-text description
            lines: Debit/credit lines in the entity's functional currency
            source_type: Where the entry came from
            source_id: Id of the originating record, if any

        Raises:
            EntityNotFoundError: If the entity is not part of the tenant
            FiscalPeriodClosedError: If the entry date is in a locked or closed period
            InvalidJournalLineError: On fewer than two lines or malformed amounts
            CrossEntityReferenceError: If a GL account is inactive or foreign
            UnbalancedEntryError: If debits don't equal credits
        """
        require_write(self._context, "create_journal_entry")
        entity = require_entity(self._entity_repo, self._context, entity_id)
        self._fiscal_periods.ensure_open(entity_id, entry_date)

        if len(lines) < 2:
            raise InvalidJournalLineError("A journal entry needs at least two lines")
        journal_lines = [
            self._build_line(entity, index, line) for index, line in enumerate(lines)
        ]

        entry = JournalEntry(
            entity_id=entity_id,
            entry_date=entry_date,
            memo=memo,
            lines=journal_lines,
            source_type=source_type,
            source_id=source_id,
            created_by=self._context.user_id,
            updated_by=self._context.user_id,
        )
        self._validate_accounts(entry)
        self._validate_balance(entry)

        with self._db.transaction():
            entry.entry_number = self._next_entry_number(entity_id)
            self._journal_repo.add(entry)
            self._audit.log_create(
                "JournalEntry", entry.id, _entry_summary(entry), entity_id=entity_id
            )

        logger.info(
            "journal_entry_created",
            entry_id=str(entry.id),
            entry_number=entry.entry_number,
            entity_id=str(entity_id),
            lines=len(entry.lines),
        )
        return entry

    def record_posted_entry(
        self,
        entity_id: UUID,
        entry_date: date,
        memo: str,
        lines: list[JournalLine],
        source_type: SourceType,
        source_id: UUID | None = None,
        source_document: dict[str, Any] | None = None,
    ) -> JournalEntry:
        """Record a system-generated entry straight into the ledger.

        Callers are expected to run this inside ``database.transaction()``
        together with the update of the originating record.
        """
        require_write(self._context, "post_journal_entry")
        require_entity(self._entity_repo, self._context, entity_id)
        self._fiscal_periods.ensure_open(entity_id, entry_date)

        entry = JournalEntry(
            entity_id=entity_id,
            entry_date=entry_date,
            memo=memo,
            lines=lines,
            status=JournalEntryStatus.POSTED,
            source_type=source_type,
            source_id=source_id,
            source_document=source_document,
            created_by=self._context.user_id,
            updated_by=self._context.user_id,
        )
        self._validate_accounts(entry)
        self._validate_balance(entry)

        with self._db.transaction():
            entry.entry_number = self._next_entry_number(entity_id)
            self._journal_repo.add(entry)
            self._audit.log_create(
                "JournalEntry", entry.id, _entry_summary(entry), entity_id=entity_id
            )

        logger.info(
            "journal_entry_posted",
            entry_id=str(entry.id),
            entry_number=entry.entry_number,
            source_type=source_type.value,
        )
        return entry

    def get_entry(self, entry_id: UUID) -> JournalEntry:
        entry = self._journal_repo.get(entry_id)
        if entry is None or entry.is_deleted:
            raise JournalEntryNotFoundError(entry_id)
        entity = self._entity_repo.get(entry.entity_id)
        if entity is None or entity.tenant_id != self._context.tenant_id:
            raise JournalEntryNotFoundError(entry_id)
        return entry

    def approve_entry(self, entry_id: UUID) -> JournalEntry:
        """Move a draft into the ledger.

        The creator of an entry may only approve it when they own the tenant.
        """
        require_write(self._context, "approve_journal_entry")
        entry = self.get_entry(entry_id)
        if not entry.is_draft:
            raise ImmutableEntryError(entry.id, entry.status.value, "approve")
        if entry.created_by == self._context.user_id and self._context.role != Role.OWNER:
            raise SeparationOfDutiesError(entry.id)
        self._fiscal_periods.ensure_open(entry.entity_id, entry.entry_date)

        entry.status = JournalEntryStatus.POSTED
        entry.touch(self._context.user_id)
        self._journal_repo.update(entry)
        self._audit.log_update(
            "JournalEntry",
            entry.id,
            {"status": JournalEntryStatus.DRAFT.value},
            {"status": JournalEntryStatus.POSTED.value},
            entity_id=entry.entity_id,
        )
        logger.info(
            "journal_entry_approved",
            entry_id=str(entry.id),
            entry_number=entry.entry_number,
        )
        return entry

    def void_entry(self, entry_id: UUID, reversal_date: date | None = None) -> VoidResult:
        """Void a posted entry by posting its mirror image.

        Raises:
            AlreadyVoidedError: If the entry is voided or already has a reversal
            ImmutableEntryError: If the entry is still a draft
        """
        require_write(self._context, "void_journal_entry")
        entry = self.get_entry(entry_id)
        if entry.status == JournalEntryStatus.VOIDED:
            raise AlreadyVoidedError(entry.id)
        if not entry.is_posted:
            raise ImmutableEntryError(entry.id, entry.status.value, "void")
        if self._journal_repo.find_reversal(entry.id) is not None:
            raise AlreadyVoidedError(entry.id)

        on_date = reversal_date or date.today()
        self._fiscal_periods.ensure_open(entry.entity_id, on_date)

        reversal = JournalEntry(
            entity_id=entry.entity_id,
            entry_date=on_date,
            memo=f"{REVERSAL_PREFIX}{entry.memo}",
            lines=[line.reversed(REVERSAL_PREFIX) for line in entry.lines],
            status=JournalEntryStatus.POSTED,
            source_type=SourceType.ADJUSTMENT,
            source_id=entry.id,
            linked_entry_id=entry.id,
            created_by=self._context.user_id,
            updated_by=self._context.user_id,
        )

        with self._db.transaction():
            reversal.entry_number = self._next_entry_number(entry.entity_id)
            self._journal_repo.add(reversal)
            entry.status = JournalEntryStatus.VOIDED
            entry.touch(self._context.user_id)
            self._journal_repo.update(entry)
            self._audit.log_create(
                "JournalEntry",
                reversal.id,
                _entry_summary(reversal),
                entity_id=entry.entity_id,
            )
            self._audit.log_update(
                "JournalEntry",
                entry.id,
                {"status": JournalEntryStatus.POSTED.value},
                {
                    "status": JournalEntryStatus.VOIDED.value,
                    "reversal_entry_id": str(reversal.id),
                },
                entity_id=entry.entity_id,
            )

        logger.info(
            "journal_entry_voided",
            entry_id=str(entry.id),
            reversal_id=str(reversal.id),
            reversal_number=reversal.entry_number,
        )
        return VoidResult(voided_entry=entry, reversal_entry=reversal)

    def delete_entry(self, entry_id: UUID) -> None:
        require_write(self._context, "delete_journal_entry")
        entry = self.get_entry(entry_id)
        if not entry.is_draft:
            raise ImmutableEntryError(entry.id, entry.status.value, "delete")
        entry.deleted_at = datetime.now(UTC)
        entry.touch(self._context.user_id)
        self._journal_repo.update(entry)
        self._audit.log_delete(
            "JournalEntry", entry.id, _entry_summary(entry), entity_id=entry.entity_id
        )
        logger.info("journal_entry_deleted", entry_id=str(entry.id))

    def list_entries(
        self,
        entity_id: UUID,
        status: JournalEntryStatus | None = None,
        source_type: SourceType | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        limit: int = 50,
        cursor: UUID | None = None,
    ) -> EntryPage:
        require_entity(self._entity_repo, self._context, entity_id)
        limit = max(1, min(limit, 200))
        # One extra row tells whether another page exists
        entries = self._journal_repo.list_entries(
            entity_id, status, source_type, date_from, date_to, limit + 1, cursor
        )
        if len(entries) > limit:
            entries = entries[:limit]
            return EntryPage(entries=entries, next_cursor=entries[-1].id)
        return EntryPage(entries=entries)

    def _build_line(self, entity: Entity, index: int, line: LineInput) -> JournalLine:
        debit = round_money(Decimal(str(line.debit)))
        credit = round_money(Decimal(str(line.credit)))
        if debit < 0 or credit < 0:
            raise InvalidJournalLineError("Line amounts cannot be negative", index)
        if (debit > 0) == (credit > 0):
            raise InvalidJournalLineError(
                "Each line needs exactly one of debit or credit", index
            )
        currency = entity.functional_currency
        return JournalLine(
            gl_account_id=line.gl_account_id,
            debit_amount=Money(debit, currency),
            credit_amount=Money(credit, currency),
            memo=line.memo,
        )

    def _validate_accounts(self, entry: JournalEntry) -> None:
        invalid: list[str] = []
        for account_id in sorted(entry.gl_account_ids, key=str):
            account = self._gl_account_repo.get(account_id)
            if account is None or account.entity_id != entry.entity_id or not account.is_active:
                invalid.append(str(account_id))
        if invalid:
            raise CrossEntityReferenceError(invalid, entry.entity_id)

    def _validate_balance(self, entry: JournalEntry) -> None:
        debits = sum((line.functional_debit for line in entry.lines), Decimal("0"))
        credits = sum((line.functional_credit for line in entry.lines), Decimal("0"))
        if debits != credits:
            raise UnbalancedEntryError(str(debits), str(credits))

    def _next_entry_number(self, entity_id: UUID) -> str:
        last = self._journal_repo.last_entry_number(entity_id)
        return format_entry_number(parse_entry_number(last) + 1)
