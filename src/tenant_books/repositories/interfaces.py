from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import date, datetime
from uuid import UUID

from tenant_books.domain.ai import (
    AIAction,
    AIActionStatus,
    AIActionType,
    AIDecisionLog,
    AIDecisionType,
    CategorizationRule,
    RoutingResult,
)
from tenant_books.domain.assets import AssetStatus, DepreciationEntry, FixedAsset
from tenant_books.domain.audit import AuditEntry
from tenant_books.domain.banking import (
    BankAccount,
    BankFeedTransaction,
    BankTransaction,
    FXRate,
    ImportBatch,
    TransactionMatch,
)
from tenant_books.domain.entities import Entity, GLAccount
from tenant_books.domain.fiscal import FiscalCalendar, FiscalPeriod
from tenant_books.domain.invoicing import (
    Bill,
    BillStatus,
    Client,
    CreditNote,
    CreditNoteStatus,
    Invoice,
    InvoiceStatus,
    Payment,
    PaymentAllocation,
    TaxRate,
    Vendor,
)
from tenant_books.domain.journal import (
    JournalEntry,
    JournalEntryStatus,
    LedgerLine,
    SourceType,
)
from tenant_books.domain.planning import Budget
from tenant_books.domain.tenancy import Tenant, TenantMembership, User
from tenant_books.domain.value_objects import Currency


class TenantRepository(ABC):
    @abstractmethod
    def add(self, tenant: Tenant) -> None:
        pass

    @abstractmethod
    def get(self, tenant_id: UUID) -> Tenant | None:
        pass

    @abstractmethod
    def list_all(self) -> Iterable[Tenant]:
        pass

    @abstractmethod
    def add_user(self, user: User) -> None:
        pass

    @abstractmethod
    def get_user(self, user_id: UUID) -> User | None:
        pass

    @abstractmethod
    def get_user_by_email(self, email: str) -> User | None:
        pass

    @abstractmethod
    def add_membership(self, membership: TenantMembership) -> None:
        pass

    @abstractmethod
    def get_membership(
        self, tenant_id: UUID, user_id: UUID
    ) -> TenantMembership | None:
        pass

    @abstractmethod
    def list_memberships(self, tenant_id: UUID) -> Iterable[TenantMembership]:
        pass


class EntityRepository(ABC):
    @abstractmethod
    def add(self, entity: Entity) -> None:
        pass

    @abstractmethod
    def get(self, entity_id: UUID) -> Entity | None:
        pass

    @abstractmethod
    def list_by_tenant(self, tenant_id: UUID) -> Iterable[Entity]:
        pass

    @abstractmethod
    def update(self, entity: Entity) -> None:
        pass


class GLAccountRepository(ABC):
    @abstractmethod
    def add(self, account: GLAccount) -> None:
        pass

    @abstractmethod
    def get(self, account_id: UUID) -> GLAccount | None:
        pass

    @abstractmethod
    def get_by_code(self, entity_id: UUID, code: str) -> GLAccount | None:
        pass

    @abstractmethod
    def list_by_entity(
        self, entity_id: UUID, include_inactive: bool = True
    ) -> Iterable[GLAccount]:
        pass

    @abstractmethod
    def list_children(self, parent_account_id: UUID) -> Iterable[GLAccount]:
        pass

    @abstractmethod
    def count_by_entity(self, entity_id: UUID) -> int:
        pass

    @abstractmethod
    def update(self, account: GLAccount) -> None:
        pass


class JournalEntryRepository(ABC):
    @abstractmethod
    def add(self, entry: JournalEntry) -> None:
        pass

    @abstractmethod
    def get(self, entry_id: UUID) -> JournalEntry | None:
        pass

    @abstractmethod
    def update(self, entry: JournalEntry) -> None:
        """Persist header changes (status, memo, links, deletion)."""
        pass

    @abstractmethod
    def list_entries(
        self,
        entity_id: UUID,
        status: JournalEntryStatus | None = None,
        source_type: SourceType | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        limit: int = 50,
        cursor: UUID | None = None,
    ) -> list[JournalEntry]:
        pass

    @abstractmethod
    def last_entry_number(self, entity_id: UUID) -> str | None:
        pass

    @abstractmethod
    def find_reversal(self, entry_id: UUID) -> JournalEntry | None:
        pass

    @abstractmethod
    def find_by_source(
        self, source_type: SourceType, source_id: UUID
    ) -> Iterable[JournalEntry]:
        pass

    @abstractmethod
    def list_posted_lines(
        self,
        entity_ids: list[UUID],
        date_from: date | None = None,
        date_to: date | None = None,
        gl_account_id: UUID | None = None,
    ) -> list[LedgerLine]:
        """Ledger lines ordered by date. Voided entries stay, offset by their reversals."""
        pass

    @abstractmethod
    def has_posted_lines(self, gl_account_id: UUID) -> bool:
        pass


class FiscalCalendarRepository(ABC):
    @abstractmethod
    def add(self, calendar: FiscalCalendar) -> None:
        pass

    @abstractmethod
    def get(self, calendar_id: UUID) -> FiscalCalendar | None:
        pass

    @abstractmethod
    def get_by_year(self, entity_id: UUID, year: int) -> FiscalCalendar | None:
        pass

    @abstractmethod
    def list_by_entity(self, entity_id: UUID) -> Iterable[FiscalCalendar]:
        pass

    @abstractmethod
    def get_period(self, period_id: UUID) -> FiscalPeriod | None:
        pass

    @abstractmethod
    def update_period(self, period: FiscalPeriod) -> None:
        pass

    @abstractmethod
    def find_period(self, entity_id: UUID, on_date: date) -> FiscalPeriod | None:
        pass


class BankAccountRepository(ABC):
    @abstractmethod
    def add(self, account: BankAccount) -> None:
        pass

    @abstractmethod
    def get(self, account_id: UUID) -> BankAccount | None:
        pass

    @abstractmethod
    def list_by_entity(self, entity_id: UUID) -> Iterable[BankAccount]:
        pass

    @abstractmethod
    def update(self, account: BankAccount) -> None:
        pass


class BankTransactionRepository(ABC):
    @abstractmethod
    def add(self, txn: BankTransaction) -> None:
        pass

    @abstractmethod
    def get(self, txn_id: UUID) -> BankTransaction | None:
        pass

    @abstractmethod
    def update(self, txn: BankTransaction) -> None:
        pass

    @abstractmethod
    def list_by_account(
        self,
        account_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[BankTransaction]:
        pass


class BankFeedRepository(ABC):
    @abstractmethod
    def add(self, feed_txn: BankFeedTransaction) -> None:
        pass

    @abstractmethod
    def get(self, feed_txn_id: UUID) -> BankFeedTransaction | None:
        pass

    @abstractmethod
    def get_by_external_id(
        self, account_id: UUID, external_id: str
    ) -> BankFeedTransaction | None:
        pass

    @abstractmethod
    def update(self, feed_txn: BankFeedTransaction) -> None:
        pass

    @abstractmethod
    def list_by_account(self, account_id: UUID) -> list[BankFeedTransaction]:
        pass


class TransactionMatchRepository(ABC):
    @abstractmethod
    def add(self, match: TransactionMatch) -> None:
        pass

    @abstractmethod
    def get(self, match_id: UUID) -> TransactionMatch | None:
        pass

    @abstractmethod
    def delete(self, match_id: UUID) -> None:
        pass

    @abstractmethod
    def get_matched_for_feed(self, feed_txn_id: UUID) -> TransactionMatch | None:
        pass

    @abstractmethod
    def get_matched_for_transaction(self, txn_id: UUID) -> TransactionMatch | None:
        pass

    @abstractmethod
    def list_for_account(self, account_id: UUID) -> list[TransactionMatch]:
        pass


class ImportBatchRepository(ABC):
    @abstractmethod
    def add(self, batch: ImportBatch) -> None:
        pass

    @abstractmethod
    def get(self, batch_id: UUID) -> ImportBatch | None:
        pass

    @abstractmethod
    def update(self, batch: ImportBatch) -> None:
        pass


class FXRateRepository(ABC):
    @abstractmethod
    def add(self, rate: FXRate) -> None:
        pass

    @abstractmethod
    def get_latest(
        self, base: Currency, quote: Currency, on_or_before: date
    ) -> FXRate | None:
        pass


class ClientRepository(ABC):
    @abstractmethod
    def add(self, client: Client) -> None:
        pass

    @abstractmethod
    def get(self, client_id: UUID) -> Client | None:
        pass

    @abstractmethod
    def list_by_entity(self, entity_id: UUID) -> Iterable[Client]:
        pass


class VendorRepository(ABC):
    @abstractmethod
    def add(self, vendor: Vendor) -> None:
        pass

    @abstractmethod
    def get(self, vendor_id: UUID) -> Vendor | None:
        pass

    @abstractmethod
    def list_by_entity(self, entity_id: UUID) -> Iterable[Vendor]:
        pass


class TaxRateRepository(ABC):
    @abstractmethod
    def add(self, tax_rate: TaxRate) -> None:
        pass

    @abstractmethod
    def get(self, tax_rate_id: UUID) -> TaxRate | None:
        pass

    @abstractmethod
    def update(self, tax_rate: TaxRate) -> None:
        pass

    @abstractmethod
    def list_by_entity(self, entity_id: UUID) -> Iterable[TaxRate]:
        pass


class InvoiceRepository(ABC):
    @abstractmethod
    def add(self, invoice: Invoice) -> None:
        pass

    @abstractmethod
    def get(self, invoice_id: UUID) -> Invoice | None:
        pass

    @abstractmethod
    def update(self, invoice: Invoice) -> None:
        pass

    @abstractmethod
    def list_by_entity(
        self, entity_id: UUID, status: InvoiceStatus | None = None
    ) -> list[Invoice]:
        pass


class BillRepository(ABC):
    @abstractmethod
    def add(self, bill: Bill) -> None:
        pass

    @abstractmethod
    def get(self, bill_id: UUID) -> Bill | None:
        pass

    @abstractmethod
    def update(self, bill: Bill) -> None:
        pass

    @abstractmethod
    def list_by_entity(
        self, entity_id: UUID, status: BillStatus | None = None
    ) -> list[Bill]:
        pass


class CreditNoteRepository(ABC):
    @abstractmethod
    def add(self, credit_note: CreditNote) -> None:
        pass

    @abstractmethod
    def get(self, credit_note_id: UUID) -> CreditNote | None:
        pass

    @abstractmethod
    def update(self, credit_note: CreditNote) -> None:
        pass

    @abstractmethod
    def list_by_entity(
        self,
        entity_id: UUID,
        status: CreditNoteStatus | None = None,
        include_deleted: bool = False,
    ) -> list[CreditNote]:
        pass


class PaymentRepository(ABC):
    @abstractmethod
    def add(self, payment: Payment) -> None:
        pass

    @abstractmethod
    def get(self, payment_id: UUID) -> Payment | None:
        pass

    @abstractmethod
    def update(self, payment: Payment) -> None:
        pass

    @abstractmethod
    def add_allocation(self, allocation: PaymentAllocation) -> None:
        pass

    @abstractmethod
    def get_allocation(self, allocation_id: UUID) -> PaymentAllocation | None:
        pass

    @abstractmethod
    def update_allocation(self, allocation: PaymentAllocation) -> None:
        pass

    @abstractmethod
    def delete_allocation(self, allocation_id: UUID) -> None:
        pass


class BudgetRepository(ABC):
    @abstractmethod
    def add(self, budget: Budget) -> None:
        pass

    @abstractmethod
    def get(self, budget_id: UUID) -> Budget | None:
        pass

    @abstractmethod
    def list_by_entity(self, entity_id: UUID) -> list[Budget]:
        pass

    @abstractmethod
    def delete(self, budget_id: UUID) -> None:
        pass


class FixedAssetRepository(ABC):
    @abstractmethod
    def add(self, asset: FixedAsset) -> None:
        pass

    @abstractmethod
    def get(self, asset_id: UUID) -> FixedAsset | None:
        pass

    @abstractmethod
    def update(self, asset: FixedAsset) -> None:
        pass

    @abstractmethod
    def list_by_entity(
        self, entity_id: UUID, status: AssetStatus | None = None
    ) -> list[FixedAsset]:
        pass

    @abstractmethod
    def add_depreciation_entry(self, entry: DepreciationEntry) -> None:
        pass

    @abstractmethod
    def get_depreciation_entry(
        self, asset_id: UUID, period_date: date
    ) -> DepreciationEntry | None:
        pass

    @abstractmethod
    def list_depreciation_entries(self, asset_id: UUID) -> list[DepreciationEntry]:
        pass


class RuleRepository(ABC):
    @abstractmethod
    def add(self, rule: CategorizationRule) -> None:
        pass

    @abstractmethod
    def get(self, rule_id: UUID) -> CategorizationRule | None:
        pass

    @abstractmethod
    def update(self, rule: CategorizationRule) -> None:
        pass

    @abstractmethod
    def list_active(self, entity_id: UUID) -> list[CategorizationRule]:
        """Active rules ordered by source priority, then creation time."""
        pass


class AIDecisionLogRepository(ABC):
    @abstractmethod
    def add(self, decision: AIDecisionLog) -> None:
        pass

    @abstractmethod
    def list_decisions(
        self,
        tenant_id: UUID,
        entity_id: UUID | None = None,
        decision_type: AIDecisionType | None = None,
        routing_result: RoutingResult | None = None,
        limit: int = 100,
    ) -> list[AIDecisionLog]:
        pass


class AIActionRepository(ABC):
    @abstractmethod
    def add(self, action: AIAction) -> None:
        pass

    @abstractmethod
    def get(self, action_id: UUID) -> AIAction | None:
        pass

    @abstractmethod
    def update(self, action: AIAction) -> None:
        pass

    @abstractmethod
    def list_actions(
        self,
        tenant_id: UUID,
        entity_id: UUID | None = None,
        status: AIActionStatus | None = None,
        action_type: AIActionType | None = None,
    ) -> list[AIAction]:
        pass

    @abstractmethod
    def expire_pending_before(self, tenant_id: UUID, now: datetime) -> int:
        pass


class AuditRepository(ABC):
    @abstractmethod
    def add(self, entry: AuditEntry) -> None:
        pass

    @abstractmethod
    def list_for_record(self, tenant_id: UUID, record_id: UUID) -> list[AuditEntry]:
        pass

    @abstractmethod
    def list_by_tenant(
        self, tenant_id: UUID, model: str | None = None, limit: int = 100
    ) -> list[AuditEntry]:
        pass
