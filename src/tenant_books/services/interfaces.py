from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from tenant_books.domain.banking import BankTransaction, TransactionMatch
from tenant_books.domain.journal import JournalEntry, JournalEntryStatus, SourceType
from tenant_books.domain.value_objects import AccountType, Currency, Money


@dataclass
class LineInput:
    """A requested journal line in the entity's functional currency."""

    gl_account_id: UUID
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    memo: str = ""


@dataclass
class SplitInput:
    gl_account_id: UUID
    amount: Decimal
    memo: str = ""


@dataclass
class EntryPage:
    entries: list[JournalEntry]
    next_cursor: UUID | None = None


@dataclass
class VoidResult:
    voided_entry: JournalEntry
    reversal_entry: JournalEntry


@dataclass
class PostingResult:
    transaction: BankTransaction
    entry: JournalEntry


@dataclass
class Transfer:
    """Money moved between two bank accounts of one entity.

    Recorded as two linked posted entries through the transit account: the
    outgoing entry credits the source bank and the incoming entry debits the
    destination bank. ``id`` is the outgoing entry's id.
    """

    id: UUID
    entity_id: UUID
    from_account_id: UUID
    to_account_id: UUID
    transfer_date: date
    amount: Money
    received: Money
    exchange_rate: Decimal | None
    memo: str
    outgoing_entry: JournalEntry
    incoming_entry: JournalEntry

    @property
    def is_voided(self) -> bool:
        return self.outgoing_entry.status == JournalEntryStatus.VOIDED


@dataclass
class MatchSuggestion:
    transaction_id: UUID
    transaction_date: date
    description: str
    amount: Money
    confidence: Decimal
    reasons: list[str] = field(default_factory=list)


@dataclass
class ReconciliationStatus:
    account_id: UUID
    total: int
    matched: int
    unmatched: int
    suggested: int

    @property
    def reconciliation_percent(self) -> Decimal:
        if self.total == 0:
            return Decimal("100")
        return (Decimal(self.matched) / Decimal(self.total) * 100).quantize(
            Decimal("0.01")
        )


class ReportSeverity(str, Enum):
    OK = "ok"
    CRITICAL = "critical"


@dataclass
class ReportLine:
    account_id: UUID | None
    code: str
    name: str
    account_type: AccountType
    amount: Decimal


@dataclass
class TrialBalanceRow:
    account_id: UUID
    code: str
    name: str
    account_type: AccountType
    debit: Decimal
    credit: Decimal


@dataclass
class TrialBalanceReport:
    entity_ids: list[UUID]
    as_of: date
    currency: Currency
    rows: list[TrialBalanceRow]

    @property
    def total_debits(self) -> Decimal:
        return sum((row.debit for row in self.rows), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((row.credit for row in self.rows), Decimal("0"))

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits

    @property
    def severity(self) -> ReportSeverity:
        return ReportSeverity.OK if self.is_balanced else ReportSeverity.CRITICAL


@dataclass
class ProfitAndLossReport:
    entity_ids: list[UUID]
    start_date: date
    end_date: date
    currency: Currency
    revenue: list[ReportLine]
    expenses: list[ReportLine]

    @property
    def total_revenue(self) -> Decimal:
        return sum((line.amount for line in self.revenue), Decimal("0"))

    @property
    def total_expenses(self) -> Decimal:
        return sum((line.amount for line in self.expenses), Decimal("0"))

    @property
    def net_income(self) -> Decimal:
        return self.total_revenue - self.total_expenses


@dataclass
class BalanceSheetReport:
    entity_ids: list[UUID]
    as_of: date
    currency: Currency
    assets: list[ReportLine]
    liabilities: list[ReportLine]
    equity: list[ReportLine]
    retained_earnings_prior: Decimal
    retained_earnings_current: Decimal

    @property
    def total_assets(self) -> Decimal:
        return sum((line.amount for line in self.assets), Decimal("0"))

    @property
    def total_liabilities(self) -> Decimal:
        return sum((line.amount for line in self.liabilities), Decimal("0"))

    @property
    def retained_earnings(self) -> Decimal:
        return self.retained_earnings_prior + self.retained_earnings_current

    @property
    def total_equity(self) -> Decimal:
        equity = sum((line.amount for line in self.equity), Decimal("0"))
        return equity + self.retained_earnings

    @property
    def total_liabilities_and_equity(self) -> Decimal:
        return self.total_liabilities + self.total_equity

    @property
    def is_balanced(self) -> bool:
        return self.total_assets == self.total_liabilities_and_equity


@dataclass
class CashFlowReport:
    """Indirect-method cash flow: net income adjusted by balance-sheet movements.

    Item amounts are cash effects, so an increase in receivables is negative.
    """

    entity_ids: list[UUID]
    start_date: date
    end_date: date
    currency: Currency
    net_income: Decimal
    operating: list[ReportLine]
    investing: list[ReportLine]
    financing: list[ReportLine]
    opening_cash: Decimal
    closing_cash: Decimal

    @property
    def total_operating(self) -> Decimal:
        return self.net_income + sum((line.amount for line in self.operating), Decimal("0"))

    @property
    def total_investing(self) -> Decimal:
        return sum((line.amount for line in self.investing), Decimal("0"))

    @property
    def total_financing(self) -> Decimal:
        return sum((line.amount for line in self.financing), Decimal("0"))

    @property
    def net_cash_change(self) -> Decimal:
        return self.total_operating + self.total_investing + self.total_financing

    @property
    def is_reconciled(self) -> bool:
        return self.opening_cash + self.net_cash_change == self.closing_cash


@dataclass
class GeneralLedgerRow:
    entry_id: UUID
    entry_number: str | None
    entry_date: date
    memo: str
    debit: Decimal
    credit: Decimal
    balance: Decimal


@dataclass
class GeneralLedgerReport:
    account_id: UUID
    code: str
    name: str
    start_date: date | None
    end_date: date | None
    opening_balance: Decimal
    rows: list[GeneralLedgerRow]

    @property
    def closing_balance(self) -> Decimal:
        if self.rows:
            return self.rows[-1].balance
        return self.opening_balance


class JournalService(ABC):
    @abstractmethod
    def create_entry(
        self,
        entity_id: UUID,
        entry_date: date,
        memo: str,
        lines: list[LineInput],
        source_type: SourceType = SourceType.MANUAL,
        source_id: UUID | None = None,
    ) -> JournalEntry:
        pass

    @abstractmethod
    def get_entry(self, entry_id: UUID) -> JournalEntry:
        pass

    @abstractmethod
    def approve_entry(self, entry_id: UUID) -> JournalEntry:
        pass

    @abstractmethod
    def void_entry(self, entry_id: UUID, reversal_date: date | None = None) -> VoidResult:
        pass

    @abstractmethod
    def delete_entry(self, entry_id: UUID) -> None:
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
    ) -> EntryPage:
        pass


class PostingService(ABC):
    @abstractmethod
    def post_transaction(
        self,
        transaction_id: UUID,
        gl_account_id: UUID,
        exchange_rate: Decimal | None = None,
        memo: str | None = None,
    ) -> PostingResult:
        pass

    @abstractmethod
    def post_bulk(
        self, transaction_ids: list[UUID], gl_account_id: UUID
    ) -> list[PostingResult]:
        pass

    @abstractmethod
    def post_split(
        self,
        transaction_id: UUID,
        splits: list[SplitInput],
        exchange_rate: Decimal | None = None,
    ) -> PostingResult:
        pass


class ReconciliationService(ABC):
    @abstractmethod
    def suggest_matches(
        self, bank_feed_id: UUID, limit: int | None = None
    ) -> list[MatchSuggestion]:
        pass

    @abstractmethod
    def create_match(
        self, bank_feed_id: UUID, transaction_id: UUID
    ) -> TransactionMatch:
        pass

    @abstractmethod
    def unmatch(self, match_id: UUID) -> None:
        pass

    @abstractmethod
    def get_status(self, account_id: UUID) -> ReconciliationStatus:
        pass


class ReportingService(ABC):
    @abstractmethod
    def trial_balance(self, entity_id: UUID, as_of: date) -> TrialBalanceReport:
        pass

    @abstractmethod
    def profit_and_loss(
        self, entity_ids: list[UUID], start_date: date, end_date: date
    ) -> ProfitAndLossReport:
        pass

    @abstractmethod
    def balance_sheet(self, entity_ids: list[UUID], as_of: date) -> BalanceSheetReport:
        pass

    @abstractmethod
    def cash_flow(
        self, entity_ids: list[UUID], start_date: date, end_date: date
    ) -> CashFlowReport:
        pass

    @abstractmethod
    def general_ledger(
        self,
        entity_id: UUID,
        gl_account_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> GeneralLedgerReport:
        pass
