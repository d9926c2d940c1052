from tenant_books.domain.ai import (
    AIAction,
    AIActionStatus,
    AIActionType,
    AIDecisionLog,
    AIDecisionType,
    CategorizationRule,
    RoutingResult,
    RuleCondition,
    RuleSource,
)
from tenant_books.domain.assets import DepreciationEntry, DepreciationMethod, FixedAsset
from tenant_books.domain.audit import AuditAction, AuditEntry
from tenant_books.domain.banking import (
    BankAccount,
    BankFeedStatus,
    BankFeedTransaction,
    BankTransaction,
    FXRate,
    ImportBatch,
    MatchStatus,
    TransactionMatch,
)
from tenant_books.domain.entities import Entity, GLAccount
from tenant_books.domain.fiscal import FiscalCalendar, FiscalPeriod, FiscalPeriodStatus
from tenant_books.domain.invoicing import (
    Bill,
    BillStatus,
    Client,
    DocumentLine,
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
    JournalLine,
    LedgerLine,
    SourceType,
)
from tenant_books.domain.planning import Budget, BudgetVariance
from tenant_books.domain.tenancy import Role, Tenant, TenantContext, TenantMembership, User
from tenant_books.domain.value_objects import (
    AccountType,
    Currency,
    EntityType,
    Money,
    NormalBalance,
)

__all__ = [
    "AIAction",
    "AIActionStatus",
    "AIActionType",
    "AIDecisionLog",
    "AIDecisionType",
    "AccountType",
    "AuditAction",
    "AuditEntry",
    "BankAccount",
    "BankFeedStatus",
    "BankFeedTransaction",
    "BankTransaction",
    "Bill",
    "BillStatus",
    "Budget",
    "BudgetVariance",
    "CategorizationRule",
    "Client",
    "Currency",
    "DepreciationEntry",
    "DepreciationMethod",
    "DocumentLine",
    "Entity",
    "EntityType",
    "FXRate",
    "FiscalCalendar",
    "FiscalPeriod",
    "FiscalPeriodStatus",
    "FixedAsset",
    "GLAccount",
    "ImportBatch",
    "Invoice",
    "InvoiceStatus",
    "JournalEntry",
    "JournalEntryStatus",
    "JournalLine",
    "LedgerLine",
    "MatchStatus",
    "Money",
    "NormalBalance",
    "Payment",
    "PaymentAllocation",
    "Role",
    "RoutingResult",
    "RuleCondition",
    "RuleSource",
    "SourceType",
    "TaxRate",
    "Tenant",
    "TenantContext",
    "TenantMembership",
    "TransactionMatch",
    "User",
    "Vendor",
]
