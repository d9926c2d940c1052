"""Pydantic v2 schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

CURRENCY_PATTERN = r"^[A-Z]{3}$"


class HealthResponse(BaseModel):
    status: str
    version: str | None = None


class ErrorResponse(BaseModel):
    error: str
    message: str
    context: dict[str, Any] = Field(default_factory=dict)


# Tenant Schemas
class TenantCreate(BaseModel):
    """Schema for creating a tenant with its owner."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255)
    owner_email: str = Field(..., min_length=3, max_length=255)
    owner_name: str = ""


class TenantResponse(BaseModel):
    id: UUID
    name: str
    owner_id: UUID
    created_at: datetime


class MemberCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(..., min_length=3, max_length=255)
    role: str = Field(
        default="bookkeeper", pattern=r"^(owner|admin|accountant|bookkeeper|viewer)$"
    )
    name: str = ""


class MemberResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    user_id: UUID
    role: str


# Entity Schemas
class EntityCreate(BaseModel):
    """Schema for creating an entity."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255)
    entity_type: str = Field(
        default="corporation",
        pattern=r"^(corporation|sole_proprietorship|partnership|llc|personal)$",
    )
    functional_currency: str = Field(default="USD", pattern=CURRENCY_PATTERN)
    fiscal_year_start: int = Field(default=1, ge=1, le=12)
    country: str = Field(default="US", min_length=2, max_length=2)


class EntityResponse(BaseModel):
    """Schema for entity response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tenant_id: UUID
    name: str
    entity_type: str
    functional_currency: str
    fiscal_year_start: int
    country: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


# GL Account Schemas
class GLAccountCreate(BaseModel):
    """Schema for creating a ledger account."""

    model_config = ConfigDict(str_strip_whitespace=True)

    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=255)
    account_type: str = Field(..., pattern=r"^(asset|liability|equity|income|expense)$")
    normal_balance: str | None = Field(default=None, pattern=r"^(debit|credit)$")
    parent_account_id: UUID | None = None
    description: str = ""


class GLAccountUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    parent_account_id: UUID | None = None


class GLAccountResponse(BaseModel):
    id: UUID
    entity_id: UUID
    code: str
    name: str
    account_type: str
    normal_balance: str
    parent_account_id: UUID | None
    description: str
    is_active: bool


class GLAccountNodeResponse(BaseModel):
    account: GLAccountResponse
    children: list["GLAccountNodeResponse"] = Field(default_factory=list)


class GLAccountBalanceResponse(BaseModel):
    account_id: UUID
    code: str
    name: str
    account_type: str
    total_debits: str
    total_credits: str
    balance: str


class SeedResponse(BaseModel):
    seeded: bool
    account_count: int


# Journal Schemas
class JournalLineCreate(BaseModel):
    gl_account_id: UUID
    debit: Decimal = Field(default=Decimal("0"), ge=0)
    credit: Decimal = Field(default=Decimal("0"), ge=0)
    memo: str = ""


class JournalEntryCreate(BaseModel):
    """Schema for creating a draft journal entry."""

    model_config = ConfigDict(str_strip_whitespace=True)

    entity_id: UUID
    entry_date: date
    memo: str = ""
    lines: list[JournalLineCreate] = Field(..., min_length=2)


class JournalLineResponse(BaseModel):
    id: UUID
    gl_account_id: UUID
    debit: str
    credit: str
    currency: str
    memo: str


class JournalEntryResponse(BaseModel):
    id: UUID
    entity_id: UUID
    entry_number: str | None
    entry_date: date
    memo: str
    status: str
    source_type: str
    source_id: UUID | None
    linked_entry_id: UUID | None
    created_by: UUID | None
    total_debits: str
    total_credits: str
    lines: list[JournalLineResponse]


class JournalEntryPage(BaseModel):
    entries: list[JournalEntryResponse]
    next_cursor: UUID | None = None


class VoidRequest(BaseModel):
    reversal_date: date | None = None


class VoidResponse(BaseModel):
    voided_entry: JournalEntryResponse
    reversal_entry: JournalEntryResponse


# Fiscal Schemas
class FiscalCalendarCreate(BaseModel):
    entity_id: UUID
    year: int = Field(..., ge=1900, le=2999)
    start_month: int | None = Field(default=None, ge=1, le=12)


class FiscalPeriodResponse(BaseModel):
    id: UUID
    calendar_id: UUID
    period_number: int
    name: str
    start_date: date
    end_date: date
    status: str


class FiscalCalendarResponse(BaseModel):
    id: UUID
    entity_id: UUID
    year: int
    start_date: date
    end_date: date
    periods: list[FiscalPeriodResponse]


# Banking Schemas
class BankAccountCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    entity_id: UUID
    name: str = Field(..., min_length=1, max_length=255)
    currency: str | None = Field(default=None, pattern=CURRENCY_PATTERN)
    gl_account_id: UUID | None = None
    institution: str = ""


class BankAccountResponse(BaseModel):
    id: UUID
    entity_id: UUID
    name: str
    currency: str
    gl_account_id: UUID | None
    institution: str
    is_active: bool


class BankTransactionCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    transaction_date: date
    description: str = Field(..., min_length=1)
    amount: Decimal
    category: str | None = None


class BankTransactionResponse(BaseModel):
    id: UUID
    account_id: UUID
    transaction_date: date
    description: str
    amount: str
    currency: str
    category: str | None
    journal_entry_id: UUID | None


class FeedTransactionResponse(BaseModel):
    id: UUID
    account_id: UUID
    transaction_date: date
    description: str
    amount: str
    currency: str
    status: str
    external_id: str | None


class FeedRowCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    transaction_date: date
    description: str = Field(..., min_length=1)
    amount: Decimal
    balance: Decimal | None = None
    external_id: str | None = None


class FeedRowsCreate(BaseModel):
    rows: list[FeedRowCreate] = Field(..., min_length=1)


class PostTransactionRequest(BaseModel):
    gl_account_id: UUID
    exchange_rate: Decimal | None = Field(default=None, gt=0)
    memo: str | None = None


class SplitLine(BaseModel):
    gl_account_id: UUID
    amount: Decimal = Field(..., gt=0)
    memo: str = ""


class PostSplitRequest(BaseModel):
    splits: list[SplitLine] = Field(..., min_length=1)
    exchange_rate: Decimal | None = Field(default=None, gt=0)


class PostBulkRequest(BaseModel):
    transaction_ids: list[UUID] = Field(..., min_length=1)
    gl_account_id: UUID


class PostingResponse(BaseModel):
    transaction: BankTransactionResponse
    entry: JournalEntryResponse


class TransferCreate(BaseModel):
    from_account_id: UUID
    to_account_id: UUID
    amount: Decimal = Field(..., gt=0)
    transfer_date: date
    memo: str = ""
    exchange_rate: Decimal | None = Field(default=None, gt=0)
    check_balance: bool = True


class TransferResponse(BaseModel):
    id: UUID
    entity_id: UUID
    from_account_id: UUID
    to_account_id: UUID
    transfer_date: date
    amount: str
    currency: str
    received: str
    received_currency: str
    exchange_rate: str | None
    memo: str
    is_voided: bool
    outgoing_entry: JournalEntryResponse
    incoming_entry: JournalEntryResponse


# Reconciliation Schemas
class MatchSuggestionResponse(BaseModel):
    transaction_id: UUID
    transaction_date: date
    description: str
    amount: str
    confidence: str
    reasons: list[str]


class MatchCreate(BaseModel):
    bank_feed_id: UUID
    transaction_id: UUID


class MatchResponse(BaseModel):
    id: UUID
    bank_feed_transaction_id: UUID
    transaction_id: UUID
    status: str
    confidence: str
    matched_by: UUID | None


class ReconciliationStatusResponse(BaseModel):
    account_id: UUID
    total: int
    matched: int
    unmatched: int
    suggested: int
    reconciliation_percent: str


# Invoicing Schemas
class PartyCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    entity_id: UUID
    name: str = Field(..., min_length=1, max_length=255)
    email: str | None = None


class PartyResponse(BaseModel):
    id: UUID
    entity_id: UUID
    name: str
    email: str | None


class TaxRateCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    entity_id: UUID
    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=255)
    rate: Decimal = Field(..., ge=0, le=1)


class TaxRateUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str | None = Field(default=None, min_length=1, max_length=255)
    rate: Decimal | None = Field(default=None, ge=0, le=1)


class TaxRateResponse(BaseModel):
    id: UUID
    entity_id: UUID
    code: str
    name: str
    rate: str
    is_active: bool


class DocumentLineCreate(BaseModel):
    description: str = Field(..., min_length=1)
    quantity: Decimal = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)
    tax_rate_id: UUID | None = None
    gl_account_id: UUID | None = None


class InvoiceCreate(BaseModel):
    """Schema for creating a draft invoice."""

    model_config = ConfigDict(str_strip_whitespace=True)

    entity_id: UUID
    client_id: UUID
    invoice_number: str = Field(..., min_length=1, max_length=50)
    issue_date: date
    due_date: date
    currency: str | None = Field(default=None, pattern=CURRENCY_PATTERN)
    notes: str = ""
    lines: list[DocumentLineCreate] = Field(..., min_length=1)


class BillCreate(BaseModel):
    """Schema for creating a draft bill."""

    model_config = ConfigDict(str_strip_whitespace=True)

    entity_id: UUID
    vendor_id: UUID
    bill_number: str = Field(..., min_length=1, max_length=50)
    issue_date: date
    due_date: date
    currency: str | None = Field(default=None, pattern=CURRENCY_PATTERN)
    notes: str = ""
    lines: list[DocumentLineCreate] = Field(..., min_length=1)


class DocumentLineResponse(BaseModel):
    id: UUID
    description: str
    quantity: str
    unit_price: str
    tax_amount: str
    amount: str
    gl_account_id: UUID | None


class DocumentResponse(BaseModel):
    id: UUID
    entity_id: UUID
    party_id: UUID
    number: str
    issue_date: date
    due_date: date
    currency: str
    status: str
    subtotal: str
    tax_total: str
    total: str
    paid_amount: str
    outstanding: str
    lines: list[DocumentLineResponse]


class CreditNoteCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    entity_id: UUID
    note_date: date
    amount: Decimal = Field(..., ge=0)
    invoice_id: UUID | None = None
    bill_id: UUID | None = None
    reason: str = Field(default="", max_length=500)
    credit_note_number: str | None = Field(default=None, min_length=1, max_length=50)
    currency: str | None = Field(default=None, pattern=CURRENCY_PATTERN)


class CreditNoteApply(BaseModel):
    amount: Decimal = Field(..., gt=0)
    document_id: UUID | None = None


class CreditNoteResponse(BaseModel):
    id: UUID
    entity_id: UUID
    credit_note_number: str
    note_date: date
    amount: str
    applied_amount: str
    remaining: str
    currency: str
    status: str
    reason: str
    invoice_id: UUID | None = None
    bill_id: UUID | None = None


class PaymentCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    entity_id: UUID
    payment_date: date
    amount: Decimal = Field(..., gt=0)
    client_id: UUID | None = None
    vendor_id: UUID | None = None
    currency: str | None = Field(default=None, pattern=CURRENCY_PATTERN)
    payment_method: str = Field(
        default="transfer", pattern=r"^(transfer|card|cash|cheque|wire|other)$"
    )
    reference: str = ""


class AllocationCreate(BaseModel):
    document_id: UUID
    amount: Decimal = Field(..., gt=0)


class PostAllocationRequest(BaseModel):
    bank_gl_account_id: UUID


class AllocationResponse(BaseModel):
    id: UUID
    payment_id: UUID
    amount: str
    invoice_id: UUID | None
    bill_id: UUID | None
    journal_entry_id: UUID | None


class PaymentResponse(BaseModel):
    id: UUID
    entity_id: UUID
    payment_date: date
    amount: str
    currency: str
    direction: str
    payment_method: str
    reference: str
    allocated_amount: str
    unallocated_amount: str
    allocations: list[AllocationResponse]


class AgingBucketResponse(BaseModel):
    label: str
    amount: str
    count: int
    percentage: str


class AgingSummaryResponse(BaseModel):
    entity_id: UUID
    direction: str
    as_of: date
    total_outstanding: str
    buckets: list[AgingBucketResponse]


# Report Schemas
class ReportLineResponse(BaseModel):
    account_id: UUID | None
    code: str
    name: str
    account_type: str
    amount: str


class TrialBalanceRowResponse(BaseModel):
    account_id: UUID
    code: str
    name: str
    account_type: str
    debit: str
    credit: str


class TrialBalanceResponse(BaseModel):
    entity_ids: list[UUID]
    as_of: date
    currency: str
    rows: list[TrialBalanceRowResponse]
    total_debits: str
    total_credits: str
    is_balanced: bool
    severity: str


class ProfitAndLossResponse(BaseModel):
    entity_ids: list[UUID]
    start_date: date
    end_date: date
    currency: str
    revenue: list[ReportLineResponse]
    expenses: list[ReportLineResponse]
    total_revenue: str
    total_expenses: str
    net_income: str


class BalanceSheetResponse(BaseModel):
    entity_ids: list[UUID]
    as_of: date
    currency: str
    assets: list[ReportLineResponse]
    liabilities: list[ReportLineResponse]
    equity: list[ReportLineResponse]
    retained_earnings_prior: str
    retained_earnings_current: str
    total_assets: str
    total_liabilities: str
    total_equity: str
    total_liabilities_and_equity: str
    is_balanced: bool


class CashFlowResponse(BaseModel):
    entity_ids: list[UUID]
    start_date: date
    end_date: date
    currency: str
    net_income: str
    operating: list[ReportLineResponse]
    investing: list[ReportLineResponse]
    financing: list[ReportLineResponse]
    total_operating: str
    total_investing: str
    total_financing: str
    net_cash_change: str
    opening_cash: str
    closing_cash: str


class GeneralLedgerRowResponse(BaseModel):
    entry_id: UUID
    entry_number: str | None
    entry_date: date
    memo: str
    debit: str
    credit: str
    balance: str


class GeneralLedgerResponse(BaseModel):
    account_id: UUID
    code: str
    name: str
    start_date: date | None
    end_date: date | None
    opening_balance: str
    rows: list[GeneralLedgerRowResponse]


# Budget Schemas
class BudgetCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    entity_id: UUID
    name: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(..., gt=0)
    start_date: date
    end_date: date
    period: str = Field(default="monthly", pattern=r"^(monthly|quarterly|yearly)$")
    gl_account_id: UUID | None = None


class BudgetResponse(BaseModel):
    id: UUID
    entity_id: UUID
    name: str
    amount: str
    currency: str
    start_date: date
    end_date: date
    period: str
    gl_account_id: UUID | None


class BudgetVarianceResponse(BaseModel):
    budget_id: UUID
    budget_name: str
    budgeted: str
    actual: str
    variance: str
    variance_percent: str
    utilization_percent: str
    alert_level: str


# Asset Schemas
class AssetCreate(BaseModel):
    """Schema for capitalizing a fixed asset."""

    model_config = ConfigDict(str_strip_whitespace=True)

    entity_id: UUID
    name: str = Field(..., min_length=1, max_length=255)
    cost: Decimal = Field(..., gt=0)
    useful_life_months: int = Field(..., gt=0)
    acquired_date: date
    salvage_value: Decimal = Field(default=Decimal("0"), ge=0)
    depreciation_method: str = Field(
        default="straight_line",
        pattern=r"^(straight_line|declining_balance|units_of_production)$",
    )
    category: str = ""
    asset_gl_account_id: UUID | None = None
    depreciation_expense_gl_account_id: UUID | None = None
    accumulated_depreciation_gl_account_id: UUID | None = None


class AssetResponse(BaseModel):
    id: UUID
    entity_id: UUID
    name: str
    category: str
    cost: str
    salvage_value: str
    useful_life_months: int
    acquired_date: date
    depreciation_method: str
    accumulated_depreciation: str
    net_book_value: str
    status: str
    disposed_date: date | None
    disposal_amount: str | None


class DisposeRequest(BaseModel):
    disposed_date: date
    disposal_amount: Decimal = Field(..., ge=0)


class DisposalResponse(BaseModel):
    asset: AssetResponse
    net_book_value: str
    gain_loss: str


class DepreciationRunRequest(BaseModel):
    entity_id: UUID
    period_date: date
    asset_ids: list[UUID] | None = None


class DepreciationEntryResponse(BaseModel):
    id: UUID
    fixed_asset_id: UUID
    period_date: date
    amount: str
    method: str
    journal_entry_id: UUID | None


class DepreciationRunResponse(BaseModel):
    period_date: date
    processed: int
    skipped: int
    entries: list[DepreciationEntryResponse]


# Categorization Schemas
class CategorizeRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    entity_id: UUID
    description: str = Field(..., min_length=1)
    amount: Decimal
    account_id: UUID | None = None
    transaction_id: UUID | None = None


class CategorySuggestionResponse(BaseModel):
    category_name: str | None
    confidence: int
    confidence_tier: str
    match_reason: str
    gl_account_id: UUID | None
    gl_account_code: str | None
    rule_id: UUID | None
    decision_id: UUID | None


class RuleConditionSchema(BaseModel):
    field: str = Field(..., pattern=r"^(description|amount|account_id)$")
    op: str = Field(..., pattern=r"^(contains|eq|gt|gte|lt|lte)$")
    value: str


class RuleCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    entity_id: UUID
    name: str = Field(..., min_length=1, max_length=255)
    conditions: list[RuleConditionSchema] = Field(..., min_length=1)
    operator: str = Field(default="AND", pattern=r"^(AND|OR)$")
    category_name: str | None = None
    gl_account_id: UUID | None = None
    source: str = Field(
        default="user_manual", pattern=r"^(user_manual|ai_suggested|system_default)$"
    )
    flag_for_review: bool = False


class RuleResponse(BaseModel):
    id: UUID
    entity_id: UUID
    name: str
    conditions: list[RuleConditionSchema]
    operator: str
    category_name: str | None
    gl_account_id: UUID | None
    source: str
    user_approved: bool
    is_active: bool
    confidence: int
    execution_count: int


# AI Action Schemas
class AIActionCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    entity_id: UUID
    action_type: str = Field(..., pattern=r"^(categorization|je_draft|rule_suggestion|alert)$")
    title: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    payload: dict[str, Any] = Field(default_factory=dict)
    priority: str = Field(default="medium", pattern=r"^(low|medium|high|critical)$")
    confidence: int | None = Field(default=None, ge=0, le=100)


class AIActionResponse(BaseModel):
    id: UUID
    entity_id: UUID
    action_type: str
    title: str
    description: str
    payload: dict[str, Any]
    priority: str
    status: str
    confidence: int | None
    expires_at: datetime
    reviewed_by: UUID | None
    reviewed_at: datetime | None


class ApproveActionRequest(BaseModel):
    modified_payload: dict[str, Any] | None = None


class RejectActionRequest(BaseModel):
    reason: str = ""


class BatchActionRequest(BaseModel):
    action_ids: list[UUID] = Field(..., min_length=1)
    reason: str = ""


class BatchActionResponse(BaseModel):
    succeeded: list[UUID]
    failed: list[UUID]
    expired: list[UUID]
    counts: dict[str, int]


class ActionStatsResponse(BaseModel):
    total: int
    by_status: dict[str, int]
    by_type: dict[str, int]
    pending_high_priority: int


class AIDecisionResponse(BaseModel):
    id: UUID
    decision_type: str
    entity_id: UUID | None
    document_id: UUID | None
    confidence: int | None
    routing_result: str
    explanation: str
    model_version: str
    input_hash: str
    created_at: datetime
