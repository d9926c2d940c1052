from tenant_books.services.ai_decisions import AIDecisionService, BatchResult
from tenant_books.services.assets import AssetService, DepreciationRunResult
from tenant_books.services.audit import AuditService
from tenant_books.services.bank_import import BankImportService
from tenant_books.services.budget import BudgetService
from tenant_books.services.categorization import CategorizationService, CategorySuggestion
from tenant_books.services.document_posting import DocumentPostingService
from tenant_books.services.fiscal_periods import FiscalPeriodService
from tenant_books.services.gl_accounts import GLAccountService
from tenant_books.services.interfaces import (
    BalanceSheetReport,
    GeneralLedgerReport,
    JournalService,
    LineInput,
    MatchSuggestion,
    PostingService,
    ProfitAndLossReport,
    ReconciliationService,
    ReconciliationStatus,
    ReportingService,
    SplitInput,
    TrialBalanceReport,
)
from tenant_books.services.invoicing import InvoicingService
from tenant_books.services.journal import JournalServiceImpl
from tenant_books.services.posting import PostingServiceImpl
from tenant_books.services.reconciliation import ReconciliationServiceImpl
from tenant_books.services.reporting import ReportingServiceImpl
from tenant_books.services.tenancy import TenancyService

__all__ = [
    "AIDecisionService",
    "AssetService",
    "AuditService",
    "BalanceSheetReport",
    "BankImportService",
    "BatchResult",
    "BudgetService",
    "CategorizationService",
    "CategorySuggestion",
    "DepreciationRunResult",
    "DocumentPostingService",
    "FiscalPeriodService",
    "GLAccountService",
    "GeneralLedgerReport",
    "InvoicingService",
    "JournalService",
    "JournalServiceImpl",
    "LineInput",
    "MatchSuggestion",
    "PostingService",
    "PostingServiceImpl",
    "ProfitAndLossReport",
    "ReconciliationService",
    "ReconciliationServiceImpl",
    "ReconciliationStatus",
    "ReportingService",
    "ReportingServiceImpl",
    "SplitInput",
    "TenancyService",
    "TrialBalanceReport",
]
