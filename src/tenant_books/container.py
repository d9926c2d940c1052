"""Dependency container for Tenant Books.

Repositories are shared for the lifetime of the container. Services act on
behalf of one tenant user, so they are built per ``TenantContext`` through a
``ServiceScope``.

Usage:
    from tenant_books.container import get_container

    container = get_container()
    context = container.tenancy_service.resolve_context(tenant_id, user_id)
    services = container.scope(context)
    services.journal.create_entry(...)
"""

from __future__ import annotations

from functools import cached_property, lru_cache

from tenant_books.config import Settings, get_settings
from tenant_books.domain.tenancy import TenantContext
from tenant_books.logging_config import get_logger
from tenant_books.repositories.sqlite import (
    SQLiteAIActionRepository,
    SQLiteAIDecisionLogRepository,
    SQLiteAuditRepository,
    SQLiteBankAccountRepository,
    SQLiteBankFeedRepository,
    SQLiteBankTransactionRepository,
    SQLiteBillRepository,
    SQLiteBudgetRepository,
    SQLiteClientRepository,
    SQLiteCreditNoteRepository,
    SQLiteDatabase,
    SQLiteEntityRepository,
    SQLiteFiscalCalendarRepository,
    SQLiteFixedAssetRepository,
    SQLiteFXRateRepository,
    SQLiteGLAccountRepository,
    SQLiteImportBatchRepository,
    SQLiteInvoiceRepository,
    SQLiteJournalEntryRepository,
    SQLitePaymentRepository,
    SQLiteRuleRepository,
    SQLiteTaxRateRepository,
    SQLiteTenantRepository,
    SQLiteTransactionMatchRepository,
    SQLiteVendorRepository,
)
from tenant_books.services.ai_decisions import AIDecisionService
from tenant_books.services.assets import AssetService
from tenant_books.services.audit import AuditService
from tenant_books.services.bank_import import BankImportService
from tenant_books.services.budget import BudgetService
from tenant_books.services.categorization import CategorizationService
from tenant_books.services.document_posting import DocumentPostingService
from tenant_books.services.fiscal_periods import FiscalPeriodService
from tenant_books.services.gl_accounts import GLAccountService
from tenant_books.services.invoicing import InvoicingService
from tenant_books.services.journal import JournalServiceImpl
from tenant_books.services.posting import PostingServiceImpl
from tenant_books.services.reconciliation import ReconciliationServiceImpl
from tenant_books.services.reporting import ReportingServiceImpl
from tenant_books.services.tenancy import TenancyService
from tenant_books.services.transfers import TransferService

logger = get_logger(__name__)


class Container:
    """Lazily builds the database and repositories from settings.

    Tests can pass their own settings:

        container = Container(settings=Settings(sqlite_path=":memory:"))
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        logger.debug(
            "container_created",
            environment=self._settings.environment.value,
            sqlite_path=str(self._settings.sqlite_path),
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    @cached_property
    def database(self) -> SQLiteDatabase:
        """The SQLite database, with its schema created on first access."""
        db_path = str(self._settings.sqlite_path)
        logger.info("initializing_sqlite_database", path=db_path)
        db = SQLiteDatabase(db_path, check_same_thread=False)
        db.initialize()
        return db

    @cached_property
    def tenant_repo(self) -> SQLiteTenantRepository:
        return SQLiteTenantRepository(self.database)

    @cached_property
    def entity_repo(self) -> SQLiteEntityRepository:
        return SQLiteEntityRepository(self.database)

    @cached_property
    def gl_account_repo(self) -> SQLiteGLAccountRepository:
        return SQLiteGLAccountRepository(self.database)

    @cached_property
    def journal_repo(self) -> SQLiteJournalEntryRepository:
        return SQLiteJournalEntryRepository(self.database)

    @cached_property
    def calendar_repo(self) -> SQLiteFiscalCalendarRepository:
        return SQLiteFiscalCalendarRepository(self.database)

    @cached_property
    def bank_account_repo(self) -> SQLiteBankAccountRepository:
        return SQLiteBankAccountRepository(self.database)

    @cached_property
    def bank_txn_repo(self) -> SQLiteBankTransactionRepository:
        return SQLiteBankTransactionRepository(self.database)

    @cached_property
    def bank_feed_repo(self) -> SQLiteBankFeedRepository:
        return SQLiteBankFeedRepository(self.database)

    @cached_property
    def match_repo(self) -> SQLiteTransactionMatchRepository:
        return SQLiteTransactionMatchRepository(self.database)

    @cached_property
    def import_batch_repo(self) -> SQLiteImportBatchRepository:
        return SQLiteImportBatchRepository(self.database)

    @cached_property
    def fx_rate_repo(self) -> SQLiteFXRateRepository:
        return SQLiteFXRateRepository(self.database)

    @cached_property
    def client_repo(self) -> SQLiteClientRepository:
        return SQLiteClientRepository(self.database)

    @cached_property
    def vendor_repo(self) -> SQLiteVendorRepository:
        return SQLiteVendorRepository(self.database)

    @cached_property
    def tax_rate_repo(self) -> SQLiteTaxRateRepository:
        return SQLiteTaxRateRepository(self.database)

    @cached_property
    def invoice_repo(self) -> SQLiteInvoiceRepository:
        return SQLiteInvoiceRepository(self.database)

    @cached_property
    def bill_repo(self) -> SQLiteBillRepository:
        return SQLiteBillRepository(self.database)

    @cached_property
    def payment_repo(self) -> SQLitePaymentRepository:
        return SQLitePaymentRepository(self.database)

    @cached_property
    def credit_note_repo(self) -> SQLiteCreditNoteRepository:
        return SQLiteCreditNoteRepository(self.database)

    @cached_property
    def budget_repo(self) -> SQLiteBudgetRepository:
        return SQLiteBudgetRepository(self.database)

    @cached_property
    def asset_repo(self) -> SQLiteFixedAssetRepository:
        return SQLiteFixedAssetRepository(self.database)

    @cached_property
    def rule_repo(self) -> SQLiteRuleRepository:
        return SQLiteRuleRepository(self.database)

    @cached_property
    def decision_repo(self) -> SQLiteAIDecisionLogRepository:
        return SQLiteAIDecisionLogRepository(self.database)

    @cached_property
    def action_repo(self) -> SQLiteAIActionRepository:
        return SQLiteAIActionRepository(self.database)

    @cached_property
    def audit_repo(self) -> SQLiteAuditRepository:
        return SQLiteAuditRepository(self.database)

    @cached_property
    def tenancy_service(self) -> TenancyService:
        return TenancyService(self.tenant_repo, self.entity_repo, self.audit_repo)

    def scope(self, context: TenantContext) -> ServiceScope:
        """Services acting for ``context``."""
        return ServiceScope(self, context)

    def close(self) -> None:
        if "database" in self.__dict__:
            logger.info("closing_database_connection")
            self.database.close()

    def __enter__(self) -> Container:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


class ServiceScope:
    """Per-context service graph. Services are created on first use."""

    def __init__(self, container: Container, context: TenantContext) -> None:
        self._c = container
        self.context = context

    @cached_property
    def audit(self) -> AuditService:
        return AuditService(
            self._c.audit_repo, self.context, enabled=self._c.settings.enable_audit_log
        )

    @cached_property
    def gl_accounts(self) -> GLAccountService:
        c = self._c
        return GLAccountService(
            c.database, c.gl_account_repo, c.entity_repo, c.journal_repo, self.audit, self.context
        )

    @cached_property
    def fiscal_periods(self) -> FiscalPeriodService:
        return FiscalPeriodService(
            self._c.calendar_repo, self._c.entity_repo, self.audit, self.context
        )

    @cached_property
    def journal(self) -> JournalServiceImpl:
        c = self._c
        return JournalServiceImpl(
            c.database,
            c.journal_repo,
            c.gl_account_repo,
            c.entity_repo,
            self.fiscal_periods,
            self.audit,
            self.context,
        )

    @cached_property
    def posting(self) -> PostingServiceImpl:
        c = self._c
        return PostingServiceImpl(
            c.database,
            c.bank_txn_repo,
            c.bank_account_repo,
            c.gl_account_repo,
            c.entity_repo,
            c.fx_rate_repo,
            self.fiscal_periods,
            self.journal,
            self.context,
        )

    @cached_property
    def transfers(self) -> TransferService:
        c = self._c
        return TransferService(
            c.database,
            c.bank_account_repo,
            c.gl_account_repo,
            c.entity_repo,
            c.journal_repo,
            c.fx_rate_repo,
            self.journal,
            self.context,
        )

    @cached_property
    def document_posting(self) -> DocumentPostingService:
        c = self._c
        return DocumentPostingService(
            c.database,
            c.invoice_repo,
            c.bill_repo,
            c.payment_repo,
            c.credit_note_repo,
            c.gl_account_repo,
            c.entity_repo,
            c.journal_repo,
            self.journal,
            self.context,
        )

    @cached_property
    def invoicing(self) -> InvoicingService:
        c = self._c
        return InvoicingService(
            c.database,
            c.invoice_repo,
            c.bill_repo,
            c.payment_repo,
            c.credit_note_repo,
            c.client_repo,
            c.vendor_repo,
            c.tax_rate_repo,
            c.gl_account_repo,
            c.entity_repo,
            c.journal_repo,
            self.journal,
            self.audit,
            self.context,
        )

    @cached_property
    def bank_import(self) -> BankImportService:
        c = self._c
        return BankImportService(
            c.database,
            c.bank_account_repo,
            c.bank_txn_repo,
            c.bank_feed_repo,
            c.import_batch_repo,
            c.fx_rate_repo,
            c.gl_account_repo,
            c.entity_repo,
            self.audit,
            self.context,
        )

    @cached_property
    def ai_decisions(self) -> AIDecisionService:
        settings = self._c.settings
        return AIDecisionService(
            self._c.decision_repo,
            self._c.action_repo,
            self._c.entity_repo,
            self.context,
            auto_apply_threshold=settings.ai_auto_apply_threshold,
            review_threshold=settings.ai_review_threshold,
            action_ttl_days=settings.ai_action_ttl_days,
            model_version=settings.ai_model_version,
        )

    @cached_property
    def reconciliation(self) -> ReconciliationServiceImpl:
        c = self._c
        return ReconciliationServiceImpl(
            c.database,
            c.bank_feed_repo,
            c.bank_txn_repo,
            c.match_repo,
            c.bank_account_repo,
            c.entity_repo,
            self.ai_decisions,
            self.context,
            suggestion_limit=c.settings.reconciliation_suggestion_limit,
            date_window_days=c.settings.reconciliation_date_window_days,
        )

    @cached_property
    def categorization(self) -> CategorizationService:
        c = self._c
        return CategorizationService(
            c.rule_repo,
            c.gl_account_repo,
            c.entity_repo,
            self.ai_decisions,
            self.audit,
            self.context,
        )

    @cached_property
    def budgets(self) -> BudgetService:
        c = self._c
        return BudgetService(
            c.budget_repo,
            c.gl_account_repo,
            c.journal_repo,
            c.entity_repo,
            self.audit,
            self.context,
        )

    @cached_property
    def assets(self) -> AssetService:
        c = self._c
        return AssetService(
            c.database,
            c.asset_repo,
            c.gl_account_repo,
            c.entity_repo,
            self.journal,
            self.audit,
            self.context,
        )

    @cached_property
    def reporting(self) -> ReportingServiceImpl:
        c = self._c
        return ReportingServiceImpl(
            c.entity_repo, c.gl_account_repo, c.journal_repo, c.calendar_repo, self.context
        )


_container: Container | None = None


@lru_cache
def get_container() -> Container:
    """The process-wide container, created on first use from default settings."""
    global _container
    if _container is None:
        _container = Container()
    return _container


def reset_container() -> None:
    """Close and forget the process-wide container."""
    global _container
    if _container is not None:
        _container.close()
        _container = None
    get_container.cache_clear()
