"""API routes for Tenant Books.

Every route except health and tenant creation acts for the tenant user named by
the ``X-Tenant-ID`` and ``X-User-ID`` headers. The user's role comes from the
tenant membership table.
"""

from datetime import date
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, Response, status

from tenant_books.api.schemas import (
    ActionStatsResponse,
    AgingBucketResponse,
    AgingSummaryResponse,
    AIActionCreate,
    AIActionResponse,
    AIDecisionResponse,
    AllocationCreate,
    AllocationResponse,
    ApproveActionRequest,
    AssetCreate,
    AssetResponse,
    BalanceSheetResponse,
    BankAccountCreate,
    BankAccountResponse,
    BankTransactionCreate,
    BankTransactionResponse,
    BatchActionRequest,
    BatchActionResponse,
    BillCreate,
    BudgetCreate,
    BudgetResponse,
    BudgetVarianceResponse,
    CashFlowResponse,
    CategorizeRequest,
    CategorySuggestionResponse,
    CreditNoteApply,
    CreditNoteCreate,
    CreditNoteResponse,
    DepreciationEntryResponse,
    DepreciationRunRequest,
    DepreciationRunResponse,
    DisposalResponse,
    DisposeRequest,
    DocumentLineCreate,
    DocumentLineResponse,
    DocumentResponse,
    EntityCreate,
    EntityResponse,
    FeedRowsCreate,
    FeedTransactionResponse,
    FiscalCalendarCreate,
    FiscalCalendarResponse,
    FiscalPeriodResponse,
    GeneralLedgerResponse,
    GeneralLedgerRowResponse,
    GLAccountBalanceResponse,
    GLAccountCreate,
    GLAccountNodeResponse,
    GLAccountResponse,
    GLAccountUpdate,
    HealthResponse,
    InvoiceCreate,
    JournalEntryCreate,
    JournalEntryPage,
    JournalEntryResponse,
    JournalLineResponse,
    MatchCreate,
    MatchResponse,
    MatchSuggestionResponse,
    MemberCreate,
    MemberResponse,
    PartyCreate,
    PartyResponse,
    PaymentCreate,
    PaymentResponse,
    PostAllocationRequest,
    PostBulkRequest,
    PostingResponse,
    PostSplitRequest,
    PostTransactionRequest,
    ProfitAndLossResponse,
    ReconciliationStatusResponse,
    RejectActionRequest,
    ReportLineResponse,
    RuleConditionSchema,
    RuleCreate,
    RuleResponse,
    SeedResponse,
    TaxRateCreate,
    TaxRateResponse,
    TaxRateUpdate,
    TenantCreate,
    TenantResponse,
    TransferCreate,
    TransferResponse,
    TrialBalanceResponse,
    TrialBalanceRowResponse,
    VoidRequest,
    VoidResponse,
)
from tenant_books.config import get_settings
from tenant_books.container import Container, ServiceScope, get_container
from tenant_books.domain.ai import (
    AIAction,
    AIActionPriority,
    AIActionStatus,
    AIActionType,
    AIDecisionLog,
    AIDecisionType,
    CategorizationRule,
    RuleCondition,
    RuleLogic,
    RuleSource,
)
from tenant_books.domain.assets import (
    AssetStatus,
    DepreciationEntry,
    DepreciationMethod,
    FixedAsset,
)
from tenant_books.domain.banking import (
    BankAccount,
    BankFeedTransaction,
    BankTransaction,
    TransactionMatch,
)
from tenant_books.domain.entities import Entity, GLAccount
from tenant_books.domain.fiscal import FiscalCalendar, FiscalPeriod
from tenant_books.domain.invoicing import (
    Bill,
    BillStatus,
    CreditNote,
    CreditNoteStatus,
    Invoice,
    InvoiceStatus,
    Payment,
    PaymentAllocation,
    PaymentDirection,
    PaymentMethod,
    TaxRate,
)
from tenant_books.domain.journal import JournalEntry, JournalEntryStatus, SourceType
from tenant_books.domain.planning import Budget, BudgetPeriod, BudgetVariance
from tenant_books.domain.tenancy import Role, TenantContext
from tenant_books.domain.value_objects import (
    AccountType,
    Currency,
    EntityType,
    Money,
    NormalBalance,
)
from tenant_books.logging_config import bind_tenant
from tenant_books.parsers.base import ParsedStatementRow
from tenant_books.services.categorization import CategorySuggestion
from tenant_books.services.gl_accounts import AccountNode
from tenant_books.services.interfaces import (
    GeneralLedgerReport,
    LineInput,
    ReportLine,
    SplitInput,
    Transfer,
)
from tenant_books.services.invoicing import DocumentLineInput
from tenant_books.services.report_export import (
    balance_sheet_to_csv,
    cash_flow_to_csv,
    general_ledger_to_csv,
    profit_and_loss_to_csv,
    trial_balance_to_csv,
)

# Create routers
health_router = APIRouter(tags=["health"])
tenant_router = APIRouter(prefix="/tenants", tags=["tenants"])
entity_router = APIRouter(prefix="/entities", tags=["entities"])
gl_account_router = APIRouter(prefix="/gl-accounts", tags=["gl-accounts"])
journal_router = APIRouter(prefix="/journal-entries", tags=["journal"])
fiscal_router = APIRouter(prefix="/fiscal", tags=["fiscal"])
bank_router = APIRouter(prefix="/bank-accounts", tags=["banking"])
posting_router = APIRouter(prefix="/bank-transactions", tags=["banking"])
transfer_router = APIRouter(prefix="/transfers", tags=["banking"])
reconciliation_router = APIRouter(prefix="/reconciliation", tags=["reconciliation"])
invoicing_router = APIRouter(tags=["invoicing"])
report_router = APIRouter(prefix="/reports", tags=["reports"])
budget_router = APIRouter(prefix="/budgets", tags=["budgets"])
asset_router = APIRouter(prefix="/assets", tags=["assets"])
categorization_router = APIRouter(prefix="/categorization", tags=["categorization"])
ai_router = APIRouter(prefix="/ai", tags=["ai"])


# Dependency injection functions
def get_app_container() -> Container:
    """The container routes use; tests override this with an in-memory one."""
    return get_container()


def get_tenant_context(
    container: Annotated[Container, Depends(get_app_container)],
    x_tenant_id: Annotated[UUID, Header()],
    x_user_id: Annotated[UUID, Header()],
) -> TenantContext:
    context = container.tenancy_service.resolve_context(x_tenant_id, x_user_id)
    bind_tenant(context.tenant_id, context.user_id)
    return context


def get_services(
    container: Annotated[Container, Depends(get_app_container)],
    context: Annotated[TenantContext, Depends(get_tenant_context)],
) -> ServiceScope:
    return container.scope(context)


Services = Annotated[ServiceScope, Depends(get_services)]


# Helper functions
def _amount(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


def _currency(money: Money) -> str:
    currency = money.currency
    return currency.value if isinstance(currency, Currency) else str(currency)


def _entity_to_response(entity: Entity) -> EntityResponse:
    return EntityResponse(
        id=entity.id,
        tenant_id=entity.tenant_id,
        name=entity.name,
        entity_type=entity.entity_type.value,
        functional_currency=entity.functional_currency.value,
        fiscal_year_start=entity.fiscal_year_start,
        country=entity.country,
        is_active=entity.is_active,
        created_at=entity.created_at,
        updated_at=entity.updated_at,
    )


def _gl_account_to_response(account: GLAccount) -> GLAccountResponse:
    return GLAccountResponse(
        id=account.id,
        entity_id=account.entity_id,
        code=account.code,
        name=account.name,
        account_type=account.account_type.value,
        normal_balance=(
            account.normal_balance or account.account_type.default_normal_balance
        ).value,
        parent_account_id=account.parent_account_id,
        description=account.description,
        is_active=account.is_active,
    )


def _node_to_response(node: AccountNode) -> GLAccountNodeResponse:
    return GLAccountNodeResponse(
        account=_gl_account_to_response(node.account),
        children=[_node_to_response(child) for child in node.children],
    )


def _entry_to_response(entry: JournalEntry) -> JournalEntryResponse:
    return JournalEntryResponse(
        id=entry.id,
        entity_id=entry.entity_id,
        entry_number=entry.entry_number,
        entry_date=entry.entry_date,
        memo=entry.memo,
        status=entry.status.value,
        source_type=entry.source_type.value,
        source_id=entry.source_id,
        linked_entry_id=entry.linked_entry_id,
        created_by=entry.created_by,
        total_debits=str(entry.total_debits),
        total_credits=str(entry.total_credits),
        lines=[
            JournalLineResponse(
                id=line.id,
                gl_account_id=line.gl_account_id,
                debit=str(line.debit_amount.amount),
                credit=str(line.credit_amount.amount),
                currency=_currency(line.debit_amount),
                memo=line.memo,
            )
            for line in entry.lines
        ],
    )


def _period_to_response(period: FiscalPeriod) -> FiscalPeriodResponse:
    return FiscalPeriodResponse(
        id=period.id,
        calendar_id=period.calendar_id,
        period_number=period.period_number,
        name=period.name,
        start_date=period.start_date,
        end_date=period.end_date,
        status=period.status.value,
    )


def _calendar_to_response(calendar: FiscalCalendar) -> FiscalCalendarResponse:
    return FiscalCalendarResponse(
        id=calendar.id,
        entity_id=calendar.entity_id,
        year=calendar.year,
        start_date=calendar.start_date,
        end_date=calendar.end_date,
        periods=[_period_to_response(period) for period in calendar.periods],
    )


def _bank_account_to_response(account: BankAccount) -> BankAccountResponse:
    return BankAccountResponse(
        id=account.id,
        entity_id=account.entity_id,
        name=account.name,
        currency=account.currency.value,
        gl_account_id=account.gl_account_id,
        institution=account.institution,
        is_active=account.is_active,
    )


def _bank_txn_to_response(txn: BankTransaction) -> BankTransactionResponse:
    return BankTransactionResponse(
        id=txn.id,
        account_id=txn.account_id,
        transaction_date=txn.transaction_date,
        description=txn.description,
        amount=str(txn.amount.amount),
        currency=_currency(txn.amount),
        category=txn.category,
        journal_entry_id=txn.journal_entry_id,
    )


def _transfer_to_response(transfer: Transfer) -> TransferResponse:
    return TransferResponse(
        id=transfer.id,
        entity_id=transfer.entity_id,
        from_account_id=transfer.from_account_id,
        to_account_id=transfer.to_account_id,
        transfer_date=transfer.transfer_date,
        amount=str(transfer.amount.amount),
        currency=_currency(transfer.amount),
        received=str(transfer.received.amount),
        received_currency=_currency(transfer.received),
        exchange_rate=_amount(transfer.exchange_rate),
        memo=transfer.memo,
        is_voided=transfer.is_voided,
        outgoing_entry=_entry_to_response(transfer.outgoing_entry),
        incoming_entry=_entry_to_response(transfer.incoming_entry),
    )


def _feed_txn_to_response(txn: BankFeedTransaction) -> FeedTransactionResponse:
    return FeedTransactionResponse(
        id=txn.id,
        account_id=txn.account_id,
        transaction_date=txn.transaction_date,
        description=txn.description,
        amount=str(txn.amount.amount),
        currency=_currency(txn.amount),
        status=txn.status.value,
        external_id=txn.external_id,
    )


def _match_to_response(match: TransactionMatch) -> MatchResponse:
    return MatchResponse(
        id=match.id,
        bank_feed_transaction_id=match.bank_feed_transaction_id,
        transaction_id=match.transaction_id,
        status=match.status.value,
        confidence=str(match.confidence),
        matched_by=match.matched_by,
    )


def _document_to_response(document: Invoice | Bill) -> DocumentResponse:
    if isinstance(document, Invoice):
        party_id, number = document.client_id, document.invoice_number
    else:
        party_id, number = document.vendor_id, document.bill_number
    return DocumentResponse(
        id=document.id,
        entity_id=document.entity_id,
        party_id=party_id,
        number=number,
        issue_date=document.issue_date,
        due_date=document.due_date,
        currency=document.currency.value,
        status=document.status.value,
        subtotal=str(document.subtotal),
        tax_total=str(document.tax_total),
        total=str(document.total),
        paid_amount=str(document.paid_amount),
        outstanding=str(document.outstanding),
        lines=[
            DocumentLineResponse(
                id=line.id,
                description=line.description,
                quantity=str(line.quantity),
                unit_price=str(line.unit_price),
                tax_amount=str(line.tax_amount),
                amount=str(line.amount),
                gl_account_id=line.gl_account_id,
            )
            for line in document.lines
        ],
    )


def _document_lines(lines: list[DocumentLineCreate]) -> list[DocumentLineInput]:
    return [
        DocumentLineInput(
            description=line.description,
            quantity=line.quantity,
            unit_price=line.unit_price,
            tax_rate_id=line.tax_rate_id,
            gl_account_id=line.gl_account_id,
        )
        for line in lines
    ]


def _allocation_to_response(allocation: PaymentAllocation) -> AllocationResponse:
    return AllocationResponse(
        id=allocation.id,
        payment_id=allocation.payment_id,
        amount=str(allocation.amount),
        invoice_id=allocation.invoice_id,
        bill_id=allocation.bill_id,
        journal_entry_id=allocation.journal_entry_id,
    )


def _tax_rate_to_response(tax_rate: TaxRate) -> TaxRateResponse:
    return TaxRateResponse(
        id=tax_rate.id,
        entity_id=tax_rate.entity_id,
        code=tax_rate.code,
        name=tax_rate.name,
        rate=str(tax_rate.rate),
        is_active=tax_rate.is_active,
    )


def _credit_note_to_response(credit_note: CreditNote) -> CreditNoteResponse:
    return CreditNoteResponse(
        id=credit_note.id,
        entity_id=credit_note.entity_id,
        credit_note_number=credit_note.credit_note_number,
        note_date=credit_note.note_date,
        amount=str(credit_note.amount),
        applied_amount=str(credit_note.applied_amount),
        remaining=str(credit_note.remaining),
        currency=credit_note.currency.value,
        status=credit_note.status.value,
        reason=credit_note.reason,
        invoice_id=credit_note.invoice_id,
        bill_id=credit_note.bill_id,
    )


def _payment_to_response(payment: Payment) -> PaymentResponse:
    return PaymentResponse(
        id=payment.id,
        entity_id=payment.entity_id,
        payment_date=payment.payment_date,
        amount=str(payment.amount),
        currency=payment.currency.value,
        direction=payment.direction.value,
        payment_method=payment.payment_method.value,
        reference=payment.reference,
        allocated_amount=str(payment.allocated_amount),
        unallocated_amount=str(payment.unallocated_amount),
        allocations=[_allocation_to_response(a) for a in payment.allocations],
    )


def _report_lines(lines: list[ReportLine]) -> list[ReportLineResponse]:
    return [
        ReportLineResponse(
            account_id=line.account_id,
            code=line.code,
            name=line.name,
            account_type=line.account_type.value,
            amount=str(line.amount),
        )
        for line in lines
    ]


def _general_ledger_to_response(report: GeneralLedgerReport) -> GeneralLedgerResponse:
    return GeneralLedgerResponse(
        account_id=report.account_id,
        code=report.code,
        name=report.name,
        start_date=report.start_date,
        end_date=report.end_date,
        opening_balance=str(report.opening_balance),
        rows=[
            GeneralLedgerRowResponse(
                entry_id=row.entry_id,
                entry_number=row.entry_number,
                entry_date=row.entry_date,
                memo=row.memo,
                debit=str(row.debit),
                credit=str(row.credit),
                balance=str(row.balance),
            )
            for row in report.rows
        ],
    )


def _budget_to_response(budget: Budget) -> BudgetResponse:
    return BudgetResponse(
        id=budget.id,
        entity_id=budget.entity_id,
        name=budget.name,
        amount=str(budget.amount.amount),
        currency=_currency(budget.amount),
        start_date=budget.start_date,
        end_date=budget.end_date,
        period=budget.period.value,
        gl_account_id=budget.gl_account_id,
    )


def _variance_to_response(variance: BudgetVariance) -> BudgetVarianceResponse:
    return BudgetVarianceResponse(
        budget_id=variance.budget_id,
        budget_name=variance.budget_name,
        budgeted=str(variance.budgeted.amount),
        actual=str(variance.actual.amount),
        variance=str(variance.variance.amount),
        variance_percent=str(variance.variance_percent),
        utilization_percent=str(variance.utilization_percent),
        alert_level=variance.alert_level.value,
    )


def _asset_to_response(asset: FixedAsset) -> AssetResponse:
    return AssetResponse(
        id=asset.id,
        entity_id=asset.entity_id,
        name=asset.name,
        category=asset.category,
        cost=str(asset.cost),
        salvage_value=str(asset.salvage_value),
        useful_life_months=asset.useful_life_months,
        acquired_date=asset.acquired_date,
        depreciation_method=asset.depreciation_method.value,
        accumulated_depreciation=str(asset.accumulated_depreciation),
        net_book_value=str(asset.net_book_value),
        status=asset.status.value,
        disposed_date=asset.disposed_date,
        disposal_amount=_amount(asset.disposal_amount),
    )


def _depreciation_to_response(entry: DepreciationEntry) -> DepreciationEntryResponse:
    return DepreciationEntryResponse(
        id=entry.id,
        fixed_asset_id=entry.fixed_asset_id,
        period_date=entry.period_date,
        amount=str(entry.amount),
        method=entry.method.value,
        journal_entry_id=entry.journal_entry_id,
    )


def _suggestion_to_response(suggestion: CategorySuggestion) -> CategorySuggestionResponse:
    return CategorySuggestionResponse(
        category_name=suggestion.category_name,
        confidence=suggestion.confidence,
        confidence_tier=suggestion.confidence_tier.value,
        match_reason=suggestion.match_reason,
        gl_account_id=suggestion.gl_account_id,
        gl_account_code=suggestion.gl_account_code,
        rule_id=suggestion.rule_id,
        decision_id=suggestion.decision_id,
    )


def _rule_to_response(rule: CategorizationRule) -> RuleResponse:
    return RuleResponse(
        id=rule.id,
        entity_id=rule.entity_id,
        name=rule.name,
        conditions=[RuleConditionSchema(**c.to_dict()) for c in rule.conditions],
        operator=rule.operator.value,
        category_name=rule.category_name,
        gl_account_id=rule.gl_account_id,
        source=rule.source.value,
        user_approved=rule.user_approved,
        is_active=rule.is_active,
        confidence=rule.confidence,
        execution_count=rule.execution_count,
    )


def _action_to_response(action: AIAction) -> AIActionResponse:
    return AIActionResponse(
        id=action.id,
        entity_id=action.entity_id,
        action_type=action.action_type.value,
        title=action.title,
        description=action.description,
        payload=action.payload,
        priority=action.priority.value,
        status=action.status.value,
        confidence=action.confidence,
        expires_at=action.expires_at,
        reviewed_by=action.reviewed_by,
        reviewed_at=action.reviewed_at,
    )


def _decision_to_response(decision: AIDecisionLog) -> AIDecisionResponse:
    return AIDecisionResponse(
        id=decision.id,
        decision_type=decision.decision_type.value,
        entity_id=decision.entity_id,
        document_id=decision.document_id,
        confidence=decision.confidence,
        routing_result=decision.routing_result.value,
        explanation=decision.explanation,
        model_version=decision.model_version,
        input_hash=decision.input_hash,
        created_at=decision.created_at,
    )


def _csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# Health endpoint
@health_router.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy", version=get_settings().app_version)


# Tenant endpoints
@tenant_router.post("", response_model=TenantResponse, status_code=status.HTTP_201_CREATED)
def create_tenant(
    payload: TenantCreate,
    container: Annotated[Container, Depends(get_app_container)],
) -> TenantResponse:
    """Create a tenant and its owning user."""
    tenant, owner = container.tenancy_service.create_tenant(
        payload.name, payload.owner_email, payload.owner_name
    )
    return TenantResponse(
        id=tenant.id, name=tenant.name, owner_id=owner.id, created_at=tenant.created_at
    )


@tenant_router.post(
    "/members", response_model=MemberResponse, status_code=status.HTTP_201_CREATED
)
def add_member(
    payload: MemberCreate,
    container: Annotated[Container, Depends(get_app_container)],
    context: Annotated[TenantContext, Depends(get_tenant_context)],
) -> MemberResponse:
    """Add a user to the caller's tenant. Owners and admins only."""
    membership = container.tenancy_service.add_member(
        context, payload.email, Role(payload.role), payload.name
    )
    return MemberResponse(
        id=membership.id,
        tenant_id=membership.tenant_id,
        user_id=membership.user_id,
        role=membership.role.value,
    )


# Entity endpoints
@entity_router.post("", response_model=EntityResponse, status_code=status.HTTP_201_CREATED)
def create_entity(
    payload: EntityCreate,
    container: Annotated[Container, Depends(get_app_container)],
    context: Annotated[TenantContext, Depends(get_tenant_context)],
) -> EntityResponse:
    """Create a new entity."""
    entity = container.tenancy_service.create_entity(
        context,
        name=payload.name,
        entity_type=EntityType(payload.entity_type),
        functional_currency=Currency(payload.functional_currency),
        fiscal_year_start=payload.fiscal_year_start,
        country=payload.country,
    )
    return _entity_to_response(entity)


@entity_router.get("", response_model=list[EntityResponse])
def list_entities(
    container: Annotated[Container, Depends(get_app_container)],
    context: Annotated[TenantContext, Depends(get_tenant_context)],
) -> list[EntityResponse]:
    """List the tenant's entities."""
    return [_entity_to_response(e) for e in container.tenancy_service.list_entities(context)]


@entity_router.get("/{entity_id}", response_model=EntityResponse)
def get_entity(
    entity_id: UUID,
    container: Annotated[Container, Depends(get_app_container)],
    context: Annotated[TenantContext, Depends(get_tenant_context)],
) -> EntityResponse:
    """Get entity by ID."""
    return _entity_to_response(container.tenancy_service.get_entity(context, entity_id))


# GL account endpoints
@gl_account_router.post(
    "/seed/{entity_id}", response_model=SeedResponse, status_code=status.HTTP_201_CREATED
)
def seed_chart_of_accounts(entity_id: UUID, services: Services) -> SeedResponse:
    """Seed the default chart of accounts. A no-op when the entity already has accounts."""
    result = services.gl_accounts.seed_default_coa(entity_id)
    return SeedResponse(seeded=result.seeded, account_count=result.account_count)


@gl_account_router.post(
    "/{entity_id}", response_model=GLAccountResponse, status_code=status.HTTP_201_CREATED
)
def create_gl_account(
    entity_id: UUID, payload: GLAccountCreate, services: Services
) -> GLAccountResponse:
    account = services.gl_accounts.create_account(
        entity_id,
        code=payload.code,
        name=payload.name,
        account_type=AccountType(payload.account_type),
        normal_balance=NormalBalance(payload.normal_balance) if payload.normal_balance else None,
        parent_account_id=payload.parent_account_id,
        description=payload.description,
    )
    return _gl_account_to_response(account)


@gl_account_router.get("/{entity_id}", response_model=list[GLAccountResponse])
def list_gl_accounts(
    entity_id: UUID,
    services: Services,
    include_inactive: bool = Query(default=False),
) -> list[GLAccountResponse]:
    accounts = services.gl_accounts.list_accounts(entity_id, include_inactive)
    return [_gl_account_to_response(a) for a in accounts]


@gl_account_router.get("/{entity_id}/tree", response_model=list[GLAccountNodeResponse])
def get_account_tree(entity_id: UUID, services: Services) -> list[GLAccountNodeResponse]:
    return [_node_to_response(node) for node in services.gl_accounts.get_account_tree(entity_id)]


@gl_account_router.get("/{entity_id}/balances", response_model=list[GLAccountBalanceResponse])
def get_account_balances(
    entity_id: UUID,
    services: Services,
    as_of: date | None = Query(default=None),
) -> list[GLAccountBalanceResponse]:
    return [
        GLAccountBalanceResponse(
            account_id=balance.account_id,
            code=balance.code,
            name=balance.name,
            account_type=balance.account_type.value,
            total_debits=str(balance.total_debits),
            total_credits=str(balance.total_credits),
            balance=str(balance.balance),
        )
        for balance in services.gl_accounts.get_account_balances(entity_id, as_of)
    ]


@gl_account_router.patch("/account/{account_id}", response_model=GLAccountResponse)
def update_gl_account(
    account_id: UUID, payload: GLAccountUpdate, services: Services
) -> GLAccountResponse:
    account = services.gl_accounts.update_account(
        account_id,
        name=payload.name,
        description=payload.description,
        parent_account_id=payload.parent_account_id,
    )
    return _gl_account_to_response(account)


@gl_account_router.post("/account/{account_id}/deactivate", response_model=GLAccountResponse)
def deactivate_gl_account(account_id: UUID, services: Services) -> GLAccountResponse:
    return _gl_account_to_response(services.gl_accounts.deactivate_account(account_id))


# Journal endpoints
@journal_router.post(
    "", response_model=JournalEntryResponse, status_code=status.HTTP_201_CREATED
)
def create_journal_entry(payload: JournalEntryCreate, services: Services) -> JournalEntryResponse:
    """Create a draft journal entry. It reaches the ledger once approved."""
    entry = services.journal.create_entry(
        entity_id=payload.entity_id,
        entry_date=payload.entry_date,
        memo=payload.memo,
        lines=[
            LineInput(
                gl_account_id=line.gl_account_id,
                debit=line.debit,
                credit=line.credit,
                memo=line.memo,
            )
            for line in payload.lines
        ],
    )
    return _entry_to_response(entry)


@journal_router.get("", response_model=JournalEntryPage)
def list_journal_entries(
    services: Services,
    entity_id: UUID = Query(...),
    entry_status: str | None = Query(default=None, alias="status"),
    source_type: str | None = Query(default=None),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    cursor: UUID | None = Query(default=None),
) -> JournalEntryPage:
    """List entries newest first, one page at a time."""
    page = services.journal.list_entries(
        entity_id,
        status=JournalEntryStatus(entry_status) if entry_status else None,
        source_type=SourceType(source_type) if source_type else None,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        cursor=cursor,
    )
    return JournalEntryPage(
        entries=[_entry_to_response(e) for e in page.entries],
        next_cursor=page.next_cursor,
    )


@journal_router.get("/{entry_id}", response_model=JournalEntryResponse)
def get_journal_entry(entry_id: UUID, services: Services) -> JournalEntryResponse:
    return _entry_to_response(services.journal.get_entry(entry_id))


@journal_router.post("/{entry_id}/approve", response_model=JournalEntryResponse)
def approve_journal_entry(entry_id: UUID, services: Services) -> JournalEntryResponse:
    """Post a draft entry. The approver must not be the entry's creator."""
    return _entry_to_response(services.journal.approve_entry(entry_id))


@journal_router.post("/{entry_id}/void", response_model=VoidResponse)
def void_journal_entry(
    entry_id: UUID, payload: VoidRequest, services: Services
) -> VoidResponse:
    result = services.journal.void_entry(entry_id, payload.reversal_date)
    return VoidResponse(
        voided_entry=_entry_to_response(result.voided_entry),
        reversal_entry=_entry_to_response(result.reversal_entry),
    )


@journal_router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_journal_entry(entry_id: UUID, services: Services) -> Response:
    """Soft-delete a draft entry."""
    services.journal.delete_entry(entry_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Fiscal endpoints
@fiscal_router.post(
    "/calendars", response_model=FiscalCalendarResponse, status_code=status.HTTP_201_CREATED
)
def create_fiscal_calendar(
    payload: FiscalCalendarCreate, services: Services
) -> FiscalCalendarResponse:
    calendar = services.fiscal_periods.create_calendar(
        payload.entity_id, payload.year, payload.start_month
    )
    return _calendar_to_response(calendar)


@fiscal_router.get("/calendars", response_model=list[FiscalCalendarResponse])
def list_fiscal_calendars(
    services: Services, entity_id: UUID = Query(...)
) -> list[FiscalCalendarResponse]:
    return [_calendar_to_response(c) for c in services.fiscal_periods.list_calendars(entity_id)]


@fiscal_router.post("/periods/{period_id}/lock", response_model=FiscalPeriodResponse)
def lock_fiscal_period(period_id: UUID, services: Services) -> FiscalPeriodResponse:
    return _period_to_response(services.fiscal_periods.lock_period(period_id))


@fiscal_router.post("/periods/{period_id}/close", response_model=FiscalPeriodResponse)
def close_fiscal_period(period_id: UUID, services: Services) -> FiscalPeriodResponse:
    return _period_to_response(services.fiscal_periods.close_period(period_id))


@fiscal_router.post("/periods/{period_id}/reopen", response_model=FiscalPeriodResponse)
def reopen_fiscal_period(period_id: UUID, services: Services) -> FiscalPeriodResponse:
    return _period_to_response(services.fiscal_periods.reopen_period(period_id))


# Bank account endpoints
@bank_router.post("", response_model=BankAccountResponse, status_code=status.HTTP_201_CREATED)
def create_bank_account(payload: BankAccountCreate, services: Services) -> BankAccountResponse:
    account = services.bank_import.create_bank_account(
        payload.entity_id,
        payload.name,
        currency=Currency(payload.currency) if payload.currency else None,
        gl_account_id=payload.gl_account_id,
        institution=payload.institution,
    )
    return _bank_account_to_response(account)


@bank_router.get("", response_model=list[BankAccountResponse])
def list_bank_accounts(
    services: Services, entity_id: UUID = Query(...)
) -> list[BankAccountResponse]:
    return [_bank_account_to_response(a) for a in services.bank_import.list_accounts(entity_id)]


@bank_router.post(
    "/{account_id}/transactions",
    response_model=BankTransactionResponse,
    status_code=status.HTTP_201_CREATED,
)
def record_bank_transaction(
    account_id: UUID, payload: BankTransactionCreate, services: Services
) -> BankTransactionResponse:
    txn = services.bank_import.record_transaction(
        account_id,
        payload.transaction_date,
        payload.description,
        payload.amount,
        payload.category,
    )
    return _bank_txn_to_response(txn)


@bank_router.get("/{account_id}/transactions", response_model=list[BankTransactionResponse])
def list_bank_transactions(
    account_id: UUID,
    services: Services,
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
) -> list[BankTransactionResponse]:
    transactions = services.bank_import.list_transactions(account_id, date_from, date_to)
    return [_bank_txn_to_response(t) for t in transactions]


@bank_router.post(
    "/{account_id}/feed",
    response_model=list[FeedTransactionResponse],
    status_code=status.HTTP_201_CREATED,
)
def receive_bank_feed(
    account_id: UUID, payload: FeedRowsCreate, services: Services
) -> list[FeedTransactionResponse]:
    """Take in bank feed rows. Rows whose external id was already received are skipped."""
    rows = [
        ParsedStatementRow(
            date=row.transaction_date,
            description=row.description,
            amount=row.amount,
            balance=row.balance,
            external_id=row.external_id,
        )
        for row in payload.rows
    ]
    added = services.bank_import.add_feed_transactions(account_id, rows)
    return [_feed_txn_to_response(t) for t in added]


@bank_router.get("/{account_id}/feed", response_model=list[FeedTransactionResponse])
def list_bank_feed(account_id: UUID, services: Services) -> list[FeedTransactionResponse]:
    return [_feed_txn_to_response(t) for t in services.bank_import.list_feed(account_id)]


# Posting endpoints
@posting_router.post("/{transaction_id}/post", response_model=PostingResponse)
def post_bank_transaction(
    transaction_id: UUID, payload: PostTransactionRequest, services: Services
) -> PostingResponse:
    """Post a bank transaction against one ledger account."""
    result = services.posting.post_transaction(
        transaction_id, payload.gl_account_id, payload.exchange_rate, payload.memo
    )
    return PostingResponse(
        transaction=_bank_txn_to_response(result.transaction),
        entry=_entry_to_response(result.entry),
    )


@posting_router.post("/{transaction_id}/post-split", response_model=PostingResponse)
def post_split_transaction(
    transaction_id: UUID, payload: PostSplitRequest, services: Services
) -> PostingResponse:
    result = services.posting.post_split(
        transaction_id,
        [
            SplitInput(gl_account_id=split.gl_account_id, amount=split.amount, memo=split.memo)
            for split in payload.splits
        ],
        payload.exchange_rate,
    )
    return PostingResponse(
        transaction=_bank_txn_to_response(result.transaction),
        entry=_entry_to_response(result.entry),
    )


@posting_router.post("/post-bulk", response_model=list[PostingResponse])
def post_bulk_transactions(
    payload: PostBulkRequest, services: Services
) -> list[PostingResponse]:
    """Post several transactions to one account. Nothing is posted if any fails."""
    results = services.posting.post_bulk(payload.transaction_ids, payload.gl_account_id)
    return [
        PostingResponse(
            transaction=_bank_txn_to_response(result.transaction),
            entry=_entry_to_response(result.entry),
        )
        for result in results
    ]


# Transfer endpoints
@transfer_router.post("", response_model=TransferResponse, status_code=status.HTTP_201_CREATED)
def create_transfer(payload: TransferCreate, services: Services) -> TransferResponse:
    """Move money between two bank accounts of one entity."""
    transfer = services.transfers.create_transfer(
        payload.from_account_id,
        payload.to_account_id,
        payload.amount,
        payload.transfer_date,
        memo=payload.memo,
        exchange_rate=payload.exchange_rate,
        check_balance=payload.check_balance,
    )
    return _transfer_to_response(transfer)


@transfer_router.get("", response_model=list[TransferResponse])
def list_transfers(
    services: Services,
    entity_id: UUID = Query(...),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
) -> list[TransferResponse]:
    transfers = services.transfers.list_transfers(entity_id, date_from, date_to)
    return [_transfer_to_response(t) for t in transfers]


@transfer_router.get("/{transfer_id}", response_model=TransferResponse)
def get_transfer(transfer_id: UUID, services: Services) -> TransferResponse:
    return _transfer_to_response(services.transfers.get_transfer(transfer_id))


@transfer_router.post("/{transfer_id}/void", response_model=TransferResponse)
def void_transfer(
    transfer_id: UUID, payload: VoidRequest, services: Services
) -> TransferResponse:
    return _transfer_to_response(
        services.transfers.void_transfer(transfer_id, payload.reversal_date)
    )


# Reconciliation endpoints
@reconciliation_router.get(
    "/suggestions/{bank_feed_id}", response_model=list[MatchSuggestionResponse]
)
def suggest_matches(
    bank_feed_id: UUID,
    services: Services,
    limit: int | None = Query(default=None, ge=1, le=50),
) -> list[MatchSuggestionResponse]:
    suggestions = services.reconciliation.suggest_matches(bank_feed_id, limit)
    return [
        MatchSuggestionResponse(
            transaction_id=s.transaction_id,
            transaction_date=s.transaction_date,
            description=s.description,
            amount=str(s.amount.amount),
            confidence=str(s.confidence),
            reasons=s.reasons,
        )
        for s in suggestions
    ]


@reconciliation_router.post(
    "/matches", response_model=MatchResponse, status_code=status.HTTP_201_CREATED
)
def create_match(payload: MatchCreate, services: Services) -> MatchResponse:
    match = services.reconciliation.create_match(payload.bank_feed_id, payload.transaction_id)
    return _match_to_response(match)


@reconciliation_router.delete("/matches/{match_id}", status_code=status.HTTP_204_NO_CONTENT)
def unmatch(match_id: UUID, services: Services) -> Response:
    services.reconciliation.unmatch(match_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@reconciliation_router.get("/status/{account_id}", response_model=ReconciliationStatusResponse)
def reconciliation_status(account_id: UUID, services: Services) -> ReconciliationStatusResponse:
    result = services.reconciliation.get_status(account_id)
    return ReconciliationStatusResponse(
        account_id=result.account_id,
        total=result.total,
        matched=result.matched,
        unmatched=result.unmatched,
        suggested=result.suggested,
        reconciliation_percent=str(result.reconciliation_percent),
    )


# Invoicing endpoints
@invoicing_router.post(
    "/clients", response_model=PartyResponse, status_code=status.HTTP_201_CREATED
)
def create_client(payload: PartyCreate, services: Services) -> PartyResponse:
    client = services.invoicing.create_client(payload.entity_id, payload.name, payload.email)
    return PartyResponse(
        id=client.id, entity_id=client.entity_id, name=client.name, email=client.email
    )


@invoicing_router.post(
    "/vendors", response_model=PartyResponse, status_code=status.HTTP_201_CREATED
)
def create_vendor(payload: PartyCreate, services: Services) -> PartyResponse:
    vendor = services.invoicing.create_vendor(payload.entity_id, payload.name, payload.email)
    return PartyResponse(
        id=vendor.id, entity_id=vendor.entity_id, name=vendor.name, email=vendor.email
    )


@invoicing_router.post(
    "/tax-rates", response_model=TaxRateResponse, status_code=status.HTTP_201_CREATED
)
def create_tax_rate(payload: TaxRateCreate, services: Services) -> TaxRateResponse:
    tax_rate = services.invoicing.create_tax_rate(
        payload.entity_id, payload.code, payload.name, payload.rate
    )
    return _tax_rate_to_response(tax_rate)


@invoicing_router.get("/tax-rates", response_model=list[TaxRateResponse])
def list_tax_rates(services: Services, entity_id: UUID = Query(...)) -> list[TaxRateResponse]:
    return [_tax_rate_to_response(t) for t in services.invoicing.list_tax_rates(entity_id)]


@invoicing_router.patch("/tax-rates/{tax_rate_id}", response_model=TaxRateResponse)
def update_tax_rate(
    tax_rate_id: UUID, payload: TaxRateUpdate, services: Services
) -> TaxRateResponse:
    tax_rate = services.invoicing.update_tax_rate(tax_rate_id, payload.name, payload.rate)
    return _tax_rate_to_response(tax_rate)


@invoicing_router.post("/tax-rates/{tax_rate_id}/deactivate", response_model=TaxRateResponse)
def deactivate_tax_rate(tax_rate_id: UUID, services: Services) -> TaxRateResponse:
    return _tax_rate_to_response(services.invoicing.deactivate_tax_rate(tax_rate_id))


@invoicing_router.post(
    "/invoices", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED
)
def create_invoice(payload: InvoiceCreate, services: Services) -> DocumentResponse:
    invoice = services.invoicing.create_invoice(
        entity_id=payload.entity_id,
        client_id=payload.client_id,
        invoice_number=payload.invoice_number,
        issue_date=payload.issue_date,
        due_date=payload.due_date,
        lines=_document_lines(payload.lines),
        currency=Currency(payload.currency) if payload.currency else None,
        notes=payload.notes,
    )
    return _document_to_response(invoice)


@invoicing_router.get("/invoices", response_model=list[DocumentResponse])
def list_invoices(
    services: Services,
    entity_id: UUID = Query(...),
    invoice_status: str | None = Query(default=None, alias="status"),
) -> list[DocumentResponse]:
    invoices = services.invoicing.list_invoices(
        entity_id, InvoiceStatus(invoice_status) if invoice_status else None
    )
    return [_document_to_response(i) for i in invoices]


@invoicing_router.get("/invoices/{invoice_id}", response_model=DocumentResponse)
def get_invoice(invoice_id: UUID, services: Services) -> DocumentResponse:
    return _document_to_response(services.invoicing.get_invoice(invoice_id))


@invoicing_router.post("/invoices/{invoice_id}/send", response_model=DocumentResponse)
def send_invoice(invoice_id: UUID, services: Services) -> DocumentResponse:
    return _document_to_response(services.invoicing.send_invoice(invoice_id))


@invoicing_router.post("/invoices/{invoice_id}/cancel", response_model=DocumentResponse)
def cancel_invoice(invoice_id: UUID, services: Services) -> DocumentResponse:
    return _document_to_response(services.invoicing.cancel_invoice(invoice_id))


@invoicing_router.post("/invoices/{invoice_id}/post", response_model=JournalEntryResponse)
def post_invoice(invoice_id: UUID, services: Services) -> JournalEntryResponse:
    """Record the invoice in the ledger: receivable against income and tax."""
    return _entry_to_response(services.document_posting.post_invoice(invoice_id))


@invoicing_router.post(
    "/bills", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED
)
def create_bill(payload: BillCreate, services: Services) -> DocumentResponse:
    bill = services.invoicing.create_bill(
        entity_id=payload.entity_id,
        vendor_id=payload.vendor_id,
        bill_number=payload.bill_number,
        issue_date=payload.issue_date,
        due_date=payload.due_date,
        lines=_document_lines(payload.lines),
        currency=Currency(payload.currency) if payload.currency else None,
        notes=payload.notes,
    )
    return _document_to_response(bill)


@invoicing_router.get("/bills", response_model=list[DocumentResponse])
def list_bills(
    services: Services,
    entity_id: UUID = Query(...),
    bill_status: str | None = Query(default=None, alias="status"),
) -> list[DocumentResponse]:
    bills = services.invoicing.list_bills(
        entity_id, BillStatus(bill_status) if bill_status else None
    )
    return [_document_to_response(b) for b in bills]


@invoicing_router.get("/bills/{bill_id}", response_model=DocumentResponse)
def get_bill(bill_id: UUID, services: Services) -> DocumentResponse:
    return _document_to_response(services.invoicing.get_bill(bill_id))


@invoicing_router.post("/bills/{bill_id}/approve", response_model=DocumentResponse)
def approve_bill(bill_id: UUID, services: Services) -> DocumentResponse:
    return _document_to_response(services.invoicing.approve_bill(bill_id))


@invoicing_router.post("/bills/{bill_id}/cancel", response_model=DocumentResponse)
def cancel_bill(bill_id: UUID, services: Services) -> DocumentResponse:
    return _document_to_response(services.invoicing.cancel_bill(bill_id))


@invoicing_router.post("/bills/{bill_id}/post", response_model=JournalEntryResponse)
def post_bill(bill_id: UUID, services: Services) -> JournalEntryResponse:
    return _entry_to_response(services.document_posting.post_bill(bill_id))


@invoicing_router.post("/documents/mark-overdue")
def mark_overdue(
    services: Services,
    entity_id: UUID = Query(...),
    as_of: date | None = Query(default=None),
) -> dict[str, int]:
    return {"updated": services.invoicing.mark_overdue(entity_id, as_of)}


@invoicing_router.get("/aging", response_model=AgingSummaryResponse)
def aging_summary(
    services: Services,
    entity_id: UUID = Query(...),
    direction: str = Query(default="receivable", pattern=r"^(receivable|payable)$"),
    as_of: date | None = Query(default=None),
) -> AgingSummaryResponse:
    summary = services.invoicing.aging_summary(entity_id, PaymentDirection(direction), as_of)
    return AgingSummaryResponse(
        entity_id=summary.entity_id,
        direction=summary.direction.value,
        as_of=summary.as_of,
        total_outstanding=str(summary.total_outstanding),
        buckets=[
            AgingBucketResponse(
                label=bucket.label,
                amount=str(bucket.amount),
                count=bucket.count,
                percentage=str(bucket.percentage),
            )
            for bucket in summary.buckets
        ],
    )


@invoicing_router.post(
    "/credit-notes", response_model=CreditNoteResponse, status_code=status.HTTP_201_CREATED
)
def create_credit_note(payload: CreditNoteCreate, services: Services) -> CreditNoteResponse:
    credit_note = services.invoicing.create_credit_note(
        entity_id=payload.entity_id,
        note_date=payload.note_date,
        amount=payload.amount,
        invoice_id=payload.invoice_id,
        bill_id=payload.bill_id,
        reason=payload.reason,
        credit_note_number=payload.credit_note_number,
        currency=Currency(payload.currency) if payload.currency else None,
    )
    return _credit_note_to_response(credit_note)


@invoicing_router.get("/credit-notes", response_model=list[CreditNoteResponse])
def list_credit_notes(
    services: Services,
    entity_id: UUID = Query(...),
    note_status: str | None = Query(default=None, alias="status"),
) -> list[CreditNoteResponse]:
    credit_notes = services.invoicing.list_credit_notes(
        entity_id, CreditNoteStatus(note_status) if note_status else None
    )
    return [_credit_note_to_response(n) for n in credit_notes]


@invoicing_router.get("/credit-notes/{credit_note_id}", response_model=CreditNoteResponse)
def get_credit_note(credit_note_id: UUID, services: Services) -> CreditNoteResponse:
    return _credit_note_to_response(services.invoicing.get_credit_note(credit_note_id))


@invoicing_router.delete(
    "/credit-notes/{credit_note_id}", status_code=status.HTTP_204_NO_CONTENT
)
def delete_credit_note(credit_note_id: UUID, services: Services) -> Response:
    services.invoicing.delete_credit_note(credit_note_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@invoicing_router.post(
    "/credit-notes/{credit_note_id}/approve", response_model=CreditNoteResponse
)
def approve_credit_note(credit_note_id: UUID, services: Services) -> CreditNoteResponse:
    return _credit_note_to_response(services.invoicing.approve_credit_note(credit_note_id))


@invoicing_router.post("/credit-notes/{credit_note_id}/apply", response_model=CreditNoteResponse)
def apply_credit_note(
    credit_note_id: UUID, payload: CreditNoteApply, services: Services
) -> CreditNoteResponse:
    credit_note = services.invoicing.apply_credit_note(
        credit_note_id, payload.amount, payload.document_id
    )
    return _credit_note_to_response(credit_note)


@invoicing_router.post("/credit-notes/{credit_note_id}/void", response_model=CreditNoteResponse)
def void_credit_note(
    credit_note_id: UUID, payload: VoidRequest, services: Services
) -> CreditNoteResponse:
    credit_note = services.invoicing.void_credit_note(credit_note_id, payload.reversal_date)
    return _credit_note_to_response(credit_note)


@invoicing_router.post(
    "/credit-notes/{credit_note_id}/post", response_model=JournalEntryResponse
)
def post_credit_note(credit_note_id: UUID, services: Services) -> JournalEntryResponse:
    return _entry_to_response(services.document_posting.post_credit_note(credit_note_id))


@invoicing_router.post(
    "/payments", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED
)
def create_payment(payload: PaymentCreate, services: Services) -> PaymentResponse:
    payment = services.invoicing.create_payment(
        entity_id=payload.entity_id,
        payment_date=payload.payment_date,
        amount=payload.amount,
        client_id=payload.client_id,
        vendor_id=payload.vendor_id,
        currency=Currency(payload.currency) if payload.currency else None,
        payment_method=PaymentMethod(payload.payment_method),
        reference=payload.reference,
    )
    return _payment_to_response(payment)


@invoicing_router.get("/payments/{payment_id}", response_model=PaymentResponse)
def get_payment(payment_id: UUID, services: Services) -> PaymentResponse:
    return _payment_to_response(services.invoicing.get_payment(payment_id))


@invoicing_router.delete("/payments/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_payment(payment_id: UUID, services: Services) -> Response:
    services.invoicing.delete_payment(payment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@invoicing_router.post(
    "/payments/{payment_id}/allocations",
    response_model=AllocationResponse,
    status_code=status.HTTP_201_CREATED,
)
def allocate_payment(
    payment_id: UUID, payload: AllocationCreate, services: Services
) -> AllocationResponse:
    allocation = services.invoicing.allocate_payment(
        payment_id, payload.document_id, payload.amount
    )
    return _allocation_to_response(allocation)


@invoicing_router.delete(
    "/allocations/{allocation_id}", status_code=status.HTTP_204_NO_CONTENT
)
def deallocate_payment(allocation_id: UUID, services: Services) -> Response:
    services.invoicing.deallocate_payment(allocation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@invoicing_router.post(
    "/allocations/{allocation_id}/post", response_model=JournalEntryResponse
)
def post_payment_allocation(
    allocation_id: UUID, payload: PostAllocationRequest, services: Services
) -> JournalEntryResponse:
    entry = services.document_posting.post_payment_allocation(
        allocation_id, payload.bank_gl_account_id
    )
    return _entry_to_response(entry)


# Report endpoints
@report_router.get("/trial-balance/{entity_id}", response_model=TrialBalanceResponse)
def trial_balance_report(
    entity_id: UUID, services: Services, as_of: date = Query(...)
) -> TrialBalanceResponse:
    report = services.reporting.trial_balance(entity_id, as_of)
    return TrialBalanceResponse(
        entity_ids=report.entity_ids,
        as_of=report.as_of,
        currency=report.currency.value,
        rows=[
            TrialBalanceRowResponse(
                account_id=row.account_id,
                code=row.code,
                name=row.name,
                account_type=row.account_type.value,
                debit=str(row.debit),
                credit=str(row.credit),
            )
            for row in report.rows
        ],
        total_debits=str(report.total_debits),
        total_credits=str(report.total_credits),
        is_balanced=report.is_balanced,
        severity=report.severity.value,
    )


@report_router.get("/trial-balance/{entity_id}/csv")
def trial_balance_csv(
    entity_id: UUID, services: Services, as_of: date = Query(...)
) -> Response:
    report = services.reporting.trial_balance(entity_id, as_of)
    return _csv_response(trial_balance_to_csv(report), f"trial_balance_{as_of}.csv")


@report_router.get("/profit-and-loss", response_model=ProfitAndLossResponse)
def profit_and_loss_report(
    services: Services,
    entity_ids: list[UUID] = Query(...),
    start_date: date = Query(...),
    end_date: date = Query(...),
) -> ProfitAndLossResponse:
    """Profit and loss for one entity or several sharing a functional currency."""
    report = services.reporting.profit_and_loss(entity_ids, start_date, end_date)
    return ProfitAndLossResponse(
        entity_ids=report.entity_ids,
        start_date=report.start_date,
        end_date=report.end_date,
        currency=report.currency.value,
        revenue=_report_lines(report.revenue),
        expenses=_report_lines(report.expenses),
        total_revenue=str(report.total_revenue),
        total_expenses=str(report.total_expenses),
        net_income=str(report.net_income),
    )


@report_router.get("/profit-and-loss/csv")
def profit_and_loss_csv(
    services: Services,
    entity_ids: list[UUID] = Query(...),
    start_date: date = Query(...),
    end_date: date = Query(...),
) -> Response:
    report = services.reporting.profit_and_loss(entity_ids, start_date, end_date)
    return _csv_response(
        profit_and_loss_to_csv(report), f"profit_and_loss_{start_date}_{end_date}.csv"
    )


@report_router.get("/balance-sheet", response_model=BalanceSheetResponse)
def balance_sheet_report(
    services: Services,
    entity_ids: list[UUID] = Query(...),
    as_of: date = Query(...),
) -> BalanceSheetResponse:
    report = services.reporting.balance_sheet(entity_ids, as_of)
    return BalanceSheetResponse(
        entity_ids=report.entity_ids,
        as_of=report.as_of,
        currency=report.currency.value,
        assets=_report_lines(report.assets),
        liabilities=_report_lines(report.liabilities),
        equity=_report_lines(report.equity),
        retained_earnings_prior=str(report.retained_earnings_prior),
        retained_earnings_current=str(report.retained_earnings_current),
        total_assets=str(report.total_assets),
        total_liabilities=str(report.total_liabilities),
        total_equity=str(report.total_equity),
        total_liabilities_and_equity=str(report.total_liabilities_and_equity),
        is_balanced=report.is_balanced,
    )


@report_router.get("/balance-sheet/csv")
def balance_sheet_csv(
    services: Services,
    entity_ids: list[UUID] = Query(...),
    as_of: date = Query(...),
) -> Response:
    report = services.reporting.balance_sheet(entity_ids, as_of)
    return _csv_response(balance_sheet_to_csv(report), f"balance_sheet_{as_of}.csv")


@report_router.get("/cash-flow", response_model=CashFlowResponse)
def cash_flow_report(
    services: Services,
    entity_ids: list[UUID] = Query(...),
    start_date: date = Query(...),
    end_date: date = Query(...),
) -> CashFlowResponse:
    report = services.reporting.cash_flow(entity_ids, start_date, end_date)
    return CashFlowResponse(
        entity_ids=report.entity_ids,
        start_date=report.start_date,
        end_date=report.end_date,
        currency=report.currency.value,
        net_income=str(report.net_income),
        operating=_report_lines(report.operating),
        investing=_report_lines(report.investing),
        financing=_report_lines(report.financing),
        total_operating=str(report.total_operating),
        total_investing=str(report.total_investing),
        total_financing=str(report.total_financing),
        net_cash_change=str(report.net_cash_change),
        opening_cash=str(report.opening_cash),
        closing_cash=str(report.closing_cash),
    )


@report_router.get("/cash-flow/csv")
def cash_flow_csv(
    services: Services,
    entity_ids: list[UUID] = Query(...),
    start_date: date = Query(...),
    end_date: date = Query(...),
) -> Response:
    report = services.reporting.cash_flow(entity_ids, start_date, end_date)
    return _csv_response(cash_flow_to_csv(report), f"cash_flow_{start_date}_{end_date}.csv")


@report_router.get(
    "/general-ledger/{entity_id}/{gl_account_id}", response_model=GeneralLedgerResponse
)
def general_ledger_report(
    entity_id: UUID,
    gl_account_id: UUID,
    services: Services,
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
) -> GeneralLedgerResponse:
    report = services.reporting.general_ledger(entity_id, gl_account_id, start_date, end_date)
    return _general_ledger_to_response(report)


@report_router.get("/general-ledger/{entity_id}/{gl_account_id}/csv")
def general_ledger_csv(
    entity_id: UUID,
    gl_account_id: UUID,
    services: Services,
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
) -> Response:
    report = services.reporting.general_ledger(entity_id, gl_account_id, start_date, end_date)
    return _csv_response(general_ledger_to_csv(report), f"general_ledger_{report.code}.csv")


# Budget endpoints
@budget_router.post("", response_model=BudgetResponse, status_code=status.HTTP_201_CREATED)
def create_budget(payload: BudgetCreate, services: Services) -> BudgetResponse:
    budget = services.budgets.create_budget(
        payload.entity_id,
        payload.name,
        payload.amount,
        payload.start_date,
        payload.end_date,
        period=BudgetPeriod(payload.period),
        gl_account_id=payload.gl_account_id,
    )
    return _budget_to_response(budget)


@budget_router.get("", response_model=list[BudgetResponse])
def list_budgets(services: Services, entity_id: UUID = Query(...)) -> list[BudgetResponse]:
    return [_budget_to_response(b) for b in services.budgets.list_budgets(entity_id)]


@budget_router.get("/variances", response_model=list[BudgetVarianceResponse])
def list_budget_variances(
    services: Services, entity_id: UUID = Query(...)
) -> list[BudgetVarianceResponse]:
    return [_variance_to_response(v) for v in services.budgets.list_variances(entity_id)]


@budget_router.get("/{budget_id}/variance", response_model=BudgetVarianceResponse)
def get_budget_variance(budget_id: UUID, services: Services) -> BudgetVarianceResponse:
    return _variance_to_response(services.budgets.get_variance(budget_id))


@budget_router.delete("/{budget_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_budget(budget_id: UUID, services: Services) -> Response:
    services.budgets.delete_budget(budget_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Asset endpoints
@asset_router.post("", response_model=AssetResponse, status_code=status.HTTP_201_CREATED)
def capitalize_asset(payload: AssetCreate, services: Services) -> AssetResponse:
    asset = services.assets.capitalize_asset(
        entity_id=payload.entity_id,
        name=payload.name,
        cost=payload.cost,
        useful_life_months=payload.useful_life_months,
        acquired_date=payload.acquired_date,
        salvage_value=payload.salvage_value,
        depreciation_method=DepreciationMethod(payload.depreciation_method),
        category=payload.category,
        asset_gl_account_id=payload.asset_gl_account_id,
        depreciation_expense_gl_account_id=payload.depreciation_expense_gl_account_id,
        accumulated_depreciation_gl_account_id=payload.accumulated_depreciation_gl_account_id,
    )
    return _asset_to_response(asset)


@asset_router.get("", response_model=list[AssetResponse])
def list_assets(
    services: Services,
    entity_id: UUID = Query(...),
    asset_status: str | None = Query(default=None, alias="status"),
) -> list[AssetResponse]:
    assets = services.assets.list_assets(
        entity_id, AssetStatus(asset_status) if asset_status else None
    )
    return [_asset_to_response(a) for a in assets]


@asset_router.post("/depreciation-runs", response_model=DepreciationRunResponse)
def run_depreciation(
    payload: DepreciationRunRequest, services: Services
) -> DepreciationRunResponse:
    """Book one month of depreciation. Assets already booked for the month are skipped."""
    result = services.assets.run_depreciation(
        payload.entity_id, payload.period_date, payload.asset_ids
    )
    return DepreciationRunResponse(
        period_date=result.period_date,
        processed=result.processed,
        skipped=result.skipped,
        entries=[_depreciation_to_response(e) for e in result.entries],
    )


@asset_router.get("/{asset_id}", response_model=AssetResponse)
def get_asset(asset_id: UUID, services: Services) -> AssetResponse:
    return _asset_to_response(services.assets.get_asset(asset_id))


@asset_router.get("/{asset_id}/depreciation", response_model=list[DepreciationEntryResponse])
def list_asset_depreciation(
    asset_id: UUID, services: Services
) -> list[DepreciationEntryResponse]:
    return [_depreciation_to_response(e) for e in services.assets.list_depreciation(asset_id)]


@asset_router.post("/{asset_id}/dispose", response_model=DisposalResponse)
def dispose_asset(asset_id: UUID, payload: DisposeRequest, services: Services) -> DisposalResponse:
    result = services.assets.dispose_asset(
        asset_id, payload.disposed_date, payload.disposal_amount
    )
    return DisposalResponse(
        asset=_asset_to_response(result.asset),
        net_book_value=str(result.net_book_value),
        gain_loss=str(result.gain_loss),
    )


# Categorization endpoints
@categorization_router.post("/suggest", response_model=CategorySuggestionResponse)
def categorize_transaction(
    payload: CategorizeRequest, services: Services
) -> CategorySuggestionResponse:
    """Suggest a category: entity rules first, then the keyword table."""
    suggestion = services.categorization.categorize(
        payload.entity_id,
        payload.description,
        payload.amount,
        account_id=payload.account_id,
        transaction_id=payload.transaction_id,
    )
    return _suggestion_to_response(suggestion)


@categorization_router.post(
    "/rules", response_model=RuleResponse, status_code=status.HTTP_201_CREATED
)
def create_rule(payload: RuleCreate, services: Services) -> RuleResponse:
    rule = services.categorization.create_rule(
        payload.entity_id,
        payload.name,
        [RuleCondition.from_dict(c.model_dump()) for c in payload.conditions],
        operator=RuleLogic(payload.operator),
        category_name=payload.category_name,
        gl_account_id=payload.gl_account_id,
        source=RuleSource(payload.source),
        flag_for_review=payload.flag_for_review,
    )
    return _rule_to_response(rule)


@categorization_router.get("/rules", response_model=list[RuleResponse])
def list_rules(services: Services, entity_id: UUID = Query(...)) -> list[RuleResponse]:
    return [_rule_to_response(r) for r in services.categorization.list_rules(entity_id)]


@categorization_router.post("/rules/{rule_id}/approve", response_model=RuleResponse)
def approve_rule(rule_id: UUID, services: Services) -> RuleResponse:
    return _rule_to_response(services.categorization.approve_rule(rule_id))


@categorization_router.post("/rules/{rule_id}/deactivate", response_model=RuleResponse)
def deactivate_rule(rule_id: UUID, services: Services) -> RuleResponse:
    return _rule_to_response(services.categorization.deactivate_rule(rule_id))


# AI action endpoints
@ai_router.post("/actions", response_model=AIActionResponse, status_code=status.HTTP_201_CREATED)
def create_action(payload: AIActionCreate, services: Services) -> AIActionResponse:
    action = services.ai_decisions.create_action(
        payload.entity_id,
        AIActionType(payload.action_type),
        payload.title,
        description=payload.description,
        payload=payload.payload,
        priority=AIActionPriority(payload.priority),
        confidence=payload.confidence,
    )
    return _action_to_response(action)


@ai_router.get("/actions", response_model=list[AIActionResponse])
def list_actions(
    services: Services,
    entity_id: UUID | None = Query(default=None),
    action_status: str | None = Query(default=None, alias="status"),
    action_type: str | None = Query(default=None),
) -> list[AIActionResponse]:
    actions = services.ai_decisions.list_actions(
        entity_id,
        AIActionStatus(action_status) if action_status else None,
        AIActionType(action_type) if action_type else None,
    )
    return [_action_to_response(a) for a in actions]


@ai_router.get("/actions/stats", response_model=ActionStatsResponse)
def action_stats(
    services: Services, entity_id: UUID | None = Query(default=None)
) -> ActionStatsResponse:
    stats = services.ai_decisions.get_stats(entity_id)
    return ActionStatsResponse(
        total=stats.total,
        by_status=stats.by_status,
        by_type=stats.by_type,
        pending_high_priority=stats.pending_high_priority,
    )


@ai_router.post("/actions/batch-approve", response_model=BatchActionResponse)
def batch_approve(payload: BatchActionRequest, services: Services) -> BatchActionResponse:
    result = services.ai_decisions.batch_approve(payload.action_ids)
    return BatchActionResponse(
        succeeded=result.succeeded,
        failed=result.failed,
        expired=result.expired,
        counts=result.as_counts(),
    )


@ai_router.post("/actions/batch-reject", response_model=BatchActionResponse)
def batch_reject(payload: BatchActionRequest, services: Services) -> BatchActionResponse:
    result = services.ai_decisions.batch_reject(payload.action_ids, payload.reason)
    return BatchActionResponse(
        succeeded=result.succeeded,
        failed=result.failed,
        expired=result.expired,
        counts=result.as_counts(),
    )


@ai_router.post("/actions/expire")
def expire_actions(services: Services) -> dict[str, int]:
    return {"expired": services.ai_decisions.expire_stale_actions()}


@ai_router.get("/actions/{action_id}", response_model=AIActionResponse)
def get_action(action_id: UUID, services: Services) -> AIActionResponse:
    return _action_to_response(services.ai_decisions.get_action(action_id))


@ai_router.post("/actions/{action_id}/approve", response_model=AIActionResponse)
def approve_action(
    action_id: UUID, payload: ApproveActionRequest, services: Services
) -> AIActionResponse:
    action = services.ai_decisions.approve_action(action_id, payload.modified_payload)
    return _action_to_response(action)


@ai_router.post("/actions/{action_id}/reject", response_model=AIActionResponse)
def reject_action(
    action_id: UUID, payload: RejectActionRequest, services: Services
) -> AIActionResponse:
    return _action_to_response(services.ai_decisions.reject_action(action_id, payload.reason))


@ai_router.get("/decisions", response_model=list[AIDecisionResponse])
def list_decisions(
    services: Services,
    entity_id: UUID | None = Query(default=None),
    decision_type: str | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
) -> list[AIDecisionResponse]:
    decisions = services.ai_decisions.list_decisions(
        entity_id,
        AIDecisionType(decision_type) if decision_type else None,
        limit=limit,
    )
    return [_decision_to_response(d) for d in decisions]
