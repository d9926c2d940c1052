"""Domain exception hierarchy for Tenant Books.

All domain-specific exceptions inherit from TenantBooksError so the API can
translate every application error through a single handler, while callers
can still catch the precise failure they care about.
"""

from typing import Any
from uuid import UUID


class TenantBooksError(Exception):
    """Base exception for all Tenant Books errors.

    Carries a stable ``error_code`` for API clients, the HTTP status the API
    should answer with, and free-form context for logs and responses.
    """

    error_code: str = "TB_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        if status_code:
            self.status_code = status_code
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "context": self.context,
        }


class RecordNotFoundError(TenantBooksError):
    """Raised when a record of a given kind cannot be found for the tenant.

    The error code is derived from the record kind, e.g. ``INVOICE_NOT_FOUND``.
    """

    status_code = 404

    def __init__(self, record_type: str, record_id: UUID | str) -> None:
        super().__init__(
            f"{record_type.replace('_', ' ').capitalize()} not found: {record_id}",
            error_code=f"{record_type.upper()}_NOT_FOUND",
            context={f"{record_type}_id": str(record_id)},
        )


# =============================================================================
# Tenant Errors
# =============================================================================


class TenantError(TenantBooksError):
    error_code = "TENANT_ERROR"
    status_code = 400


class TenantNotFoundError(TenantError):
    error_code = "TENANT_NOT_FOUND"
    status_code = 404

    def __init__(self, tenant_id: UUID | str) -> None:
        super().__init__(
            f"Tenant not found: {tenant_id}",
            context={"tenant_id": str(tenant_id)},
        )


# =============================================================================
# Entity Errors
# =============================================================================


class EntityError(TenantBooksError):
    """Base exception for entity-related errors."""

    error_code = "ENTITY_ERROR"
    status_code = 400


class EntityNotFoundError(EntityError):
    """Raised when an entity is missing or belongs to another tenant."""

    error_code = "ENTITY_NOT_FOUND"
    status_code = 404

    def __init__(self, entity_id: UUID | str) -> None:
        super().__init__(
            f"Entity not found: {entity_id}",
            context={"entity_id": str(entity_id)},
        )


# =============================================================================
# GL Account Errors
# =============================================================================


class GLAccountError(TenantBooksError):
    error_code = "GL_ACCOUNT_ERROR"
    status_code = 400


class GLAccountNotFoundError(GLAccountError):
    """Raised when a GL account cannot be found by id or by code."""

    error_code = "GL_ACCOUNT_NOT_FOUND"
    status_code = 404

    def __init__(self, account_ref: UUID | str, *, by_code: bool = False) -> None:
        key = "code" if by_code else "gl_account_id"
        label = "code" if by_code else "id"
        super().__init__(
            f"GL account not found ({label}): {account_ref}",
            context={key: str(account_ref)},
        )


class DuplicateGLAccountCodeError(GLAccountError):
    error_code = "DUPLICATE_GL_CODE"
    status_code = 409

    def __init__(self, code: str, entity_id: UUID | str) -> None:
        super().__init__(
            f"GL account code {code} already exists for this entity",
            context={"code": code, "entity_id": str(entity_id)},
        )


class GLAccountInactiveError(GLAccountError):
    error_code = "GL_ACCOUNT_INACTIVE"

    def __init__(self, account_id: UUID | str, code: str | None = None) -> None:
        super().__init__(
            f"GL account is inactive: {code or account_id}",
            context={"gl_account_id": str(account_id), "code": code},
        )


class GLAccountInUseError(GLAccountError):
    """Raised when deactivating an account that still carries a balance or children."""

    error_code = "GL_ACCOUNT_IN_USE"
    status_code = 409

    def __init__(self, account_id: UUID | str, reason: str) -> None:
        super().__init__(
            f"GL account cannot be deactivated: {reason}",
            context={"gl_account_id": str(account_id), "reason": reason},
        )


class CrossEntityReferenceError(GLAccountError):
    """Raised when a record references a GL account of a different entity."""

    error_code = "CROSS_ENTITY_REFERENCE"
    status_code = 403

    def __init__(self, account_ids: list[str], entity_id: UUID | str) -> None:
        super().__init__(
            "GL accounts do not belong to the entry's entity or are inactive",
            context={"gl_account_ids": account_ids, "entity_id": str(entity_id)},
        )


# =============================================================================
# Journal Entry Errors
# =============================================================================


class JournalEntryError(TenantBooksError):
    error_code = "JOURNAL_ENTRY_ERROR"
    status_code = 400


class JournalEntryNotFoundError(JournalEntryError):
    error_code = "JOURNAL_ENTRY_NOT_FOUND"
    status_code = 404

    def __init__(self, entry_id: UUID | str) -> None:
        super().__init__(
            f"Journal entry not found: {entry_id}",
            context={"journal_entry_id": str(entry_id)},
        )


class UnbalancedEntryError(JournalEntryError):
    """Raised when an entry's debits don't equal its credits."""

    error_code = "UNBALANCED_ENTRY"

    def __init__(self, debit_total: str, credit_total: str) -> None:
        super().__init__(
            f"Journal entry is unbalanced: debits={debit_total}, credits={credit_total}",
            context={"debit_total": debit_total, "credit_total": credit_total},
        )


class InvalidJournalLineError(JournalEntryError):
    error_code = "INVALID_JOURNAL_LINE"

    def __init__(self, message: str, line_index: int | None = None) -> None:
        context = {} if line_index is None else {"line_index": line_index}
        super().__init__(message, context=context)


class AlreadyPostedError(JournalEntryError):
    """Raised when a draft-only operation meets an already posted record."""

    error_code = "ALREADY_POSTED"
    status_code = 409

    def __init__(self, record_type: str, record_id: UUID | str) -> None:
        super().__init__(
            f"{record_type.replace('_', ' ').capitalize()} is already posted: {record_id}",
            context={"record_type": record_type, "record_id": str(record_id)},
        )


class AlreadyVoidedError(JournalEntryError):
    error_code = "ALREADY_VOIDED"
    status_code = 409

    def __init__(self, entry_id: UUID | str) -> None:
        super().__init__(
            f"Journal entry is already voided: {entry_id}",
            context={"journal_entry_id": str(entry_id)},
        )


class ImmutableEntryError(JournalEntryError):
    """Raised when an operation would mutate an entry that is no longer a draft."""

    error_code = "IMMUTABLE_POSTED_ENTRY"

    def __init__(self, entry_id: UUID | str, status: str, action: str) -> None:
        super().__init__(
            f"Cannot {action} a journal entry in {status} status",
            context={"journal_entry_id": str(entry_id), "status": status},
        )


class SeparationOfDutiesError(JournalEntryError):
    error_code = "SEPARATION_OF_DUTIES"
    status_code = 403

    def __init__(self, entry_id: UUID | str) -> None:
        super().__init__(
            "The creator of a journal entry cannot approve it",
            context={"journal_entry_id": str(entry_id)},
        )


# =============================================================================
# Fiscal Period Errors
# =============================================================================


class FiscalPeriodError(TenantBooksError):
    error_code = "FISCAL_PERIOD_ERROR"
    status_code = 400


class FiscalPeriodClosedError(FiscalPeriodError):
    """Raised when a date falls into a locked or closed fiscal period."""

    error_code = "FISCAL_PERIOD_CLOSED"

    def __init__(
        self, period_id: UUID | str, period_name: str, status: str
    ) -> None:
        super().__init__(
            f"Fiscal period {period_name} is {status}",
            context={
                "period_id": str(period_id),
                "period_name": period_name,
                "status": status,
            },
        )


class DuplicateCalendarError(FiscalPeriodError):
    error_code = "DUPLICATE_CALENDAR_YEAR"
    status_code = 409

    def __init__(self, entity_id: UUID | str, year: int) -> None:
        super().__init__(
            f"A fiscal calendar for {year} already exists",
            context={"entity_id": str(entity_id), "year": year},
        )


class InvalidPeriodTransitionError(FiscalPeriodError):
    """Raised when a period status change is not allowed.

    The error code names the precise reason, e.g. ``PERIOD_NOT_LOCKED``.
    """

    def __init__(self, error_code: str, message: str, period_id: UUID | str) -> None:
        super().__init__(
            message, error_code=error_code, context={"period_id": str(period_id)}
        )


# =============================================================================
# Posting Errors
# =============================================================================


class PostingError(TenantBooksError):
    error_code = "POSTING_ERROR"
    status_code = 400


class BankAccountNotMappedError(PostingError):
    error_code = "BANK_ACCOUNT_NOT_MAPPED"

    def __init__(self, bank_account_id: UUID | str) -> None:
        super().__init__(
            "Bank account is not linked to a GL account",
            context={"bank_account_id": str(bank_account_id)},
        )


class MissingFXRateError(PostingError):
    error_code = "MISSING_FX_RATE"

    def __init__(self, base: str, quote: str, on_date: str) -> None:
        super().__init__(
            f"No exchange rate from {base} to {quote} on or before {on_date}",
            context={"base": base, "quote": quote, "date": on_date},
        )


class SplitMismatchError(PostingError):
    error_code = "SPLIT_AMOUNT_MISMATCH"

    def __init__(self, split_total: str, transaction_amount: str) -> None:
        super().__init__(
            f"Split total {split_total} does not equal transaction amount {transaction_amount}",
            context={
                "split_total": split_total,
                "transaction_amount": transaction_amount,
            },
        )


class InvalidTransferError(PostingError):
    error_code = "INVALID_TRANSFER"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, context={k: str(v) for k, v in context.items()})


class InsufficientBalanceError(PostingError):
    error_code = "INSUFFICIENT_BALANCE"

    def __init__(self, bank_account_id: UUID | str, balance: str, requested: str) -> None:
        super().__init__(
            f"Balance {balance} does not cover transfer of {requested}",
            context={
                "bank_account_id": str(bank_account_id),
                "balance": balance,
                "requested": requested,
            },
        )


class DocumentNotPostableError(PostingError):
    error_code = "DOCUMENT_NOT_POSTABLE"

    def __init__(self, document_type: str, document_id: UUID | str, reason: str) -> None:
        super().__init__(
            f"Cannot post {document_type}: {reason}",
            context={"document_type": document_type, "document_id": str(document_id)},
        )


# =============================================================================
# Invoicing Errors
# =============================================================================


class InvoicingError(TenantBooksError):
    error_code = "INVOICING_ERROR"
    status_code = 400


class InvalidStatusTransitionError(InvoicingError):
    error_code = "INVALID_STATUS_TRANSITION"

    def __init__(self, document_type: str, current: str, target: str) -> None:
        super().__init__(
            f"Cannot move {document_type} from {current} to {target}",
            context={"document_type": document_type, "from": current, "to": target},
        )


class PaymentAllocationError(InvoicingError):
    error_code = "INVALID_ALLOCATION"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(
            message, context={k: str(v) for k, v in context.items()}
        )


class CreditNoteError(InvoicingError):
    error_code = "INVALID_CREDIT_NOTE"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(
            message, context={k: str(v) for k, v in context.items()}
        )


# =============================================================================
# Reconciliation Errors
# =============================================================================


class ReconciliationError(TenantBooksError):
    error_code = "RECONCILIATION_ERROR"
    status_code = 400


class AlreadyMatchedError(ReconciliationError):
    error_code = "ALREADY_MATCHED"
    status_code = 409

    def __init__(self, record_type: str, record_id: UUID | str) -> None:
        super().__init__(
            f"{record_type.replace('_', ' ').capitalize()} is already matched",
            context={"record_type": record_type, "record_id": str(record_id)},
        )


# =============================================================================
# AI Errors
# =============================================================================


class AIError(TenantBooksError):
    error_code = "AI_ERROR"
    status_code = 400


class ActionNotPendingError(AIError):
    error_code = "ACTION_NOT_PENDING"
    status_code = 409

    def __init__(self, action_id: UUID | str, status: str, verb: str) -> None:
        super().__init__(
            f"Cannot {verb} action in {status} status",
            context={"action_id": str(action_id), "status": status},
        )


class ActionExpiredError(AIError):
    error_code = "ACTION_EXPIRED"
    status_code = 410

    def __init__(self, action_id: UUID | str) -> None:
        super().__init__(
            "Action has expired", context={"action_id": str(action_id)}
        )


# =============================================================================
# Fixed Asset Errors
# =============================================================================


class AssetError(TenantBooksError):
    error_code = "ASSET_ERROR"
    status_code = 400


class AssetDisposedError(AssetError):
    error_code = "ASSET_DISPOSED"

    def __init__(self, asset_id: UUID | str) -> None:
        super().__init__(
            "Asset has already been disposed", context={"asset_id": str(asset_id)}
        )


# =============================================================================
# Reporting Errors
# =============================================================================


class ReportError(TenantBooksError):
    error_code = "REPORT_ERROR"
    status_code = 400


class MultiCurrencyConsolidationError(ReportError):
    error_code = "MULTI_CURRENCY_CONSOLIDATION_NOT_SUPPORTED"

    def __init__(self, currencies: list[str]) -> None:
        super().__init__(
            "Entities with different functional currencies cannot be consolidated: "
            + ", ".join(sorted(currencies)),
            context={"currencies": sorted(currencies)},
        )


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(TenantBooksError):
    error_code = "VALIDATION_ERROR"
    status_code = 422


class InvalidAmountError(ValidationError):
    error_code = "INVALID_AMOUNT"

    def __init__(self, amount: str, reason: str) -> None:
        super().__init__(
            f"Invalid amount '{amount}': {reason}",
            context={"amount": amount, "reason": reason},
        )


class ImportFormatError(ValidationError):
    """Raised when a bank statement file cannot be read."""

    error_code = "UNSUPPORTED_IMPORT_FORMAT"

    def __init__(self, message: str, file_name: str | None = None) -> None:
        super().__init__(message, context={"file_name": file_name})


# =============================================================================
# Authorization Errors
# =============================================================================


class AuthorizationError(TenantBooksError):
    error_code = "AUTHORIZATION_ERROR"
    status_code = 403


class TenantAccessDeniedError(AuthorizationError):
    """Raised when a user has no membership in the requested tenant."""

    error_code = "TENANT_ACCESS_DENIED"

    def __init__(self, tenant_id: UUID | str, user_id: UUID | str) -> None:
        super().__init__(
            "User is not a member of this tenant",
            context={"tenant_id": str(tenant_id), "user_id": str(user_id)},
        )


class PermissionDeniedError(AuthorizationError):
    error_code = "PERMISSION_DENIED"

    def __init__(self, action: str, role: str) -> None:
        super().__init__(
            f"Permission denied: role {role} cannot {action}",
            context={"action": action, "role": role},
        )
