"""Reporting service implementation: trial balance, P&L, balance sheet, cash flow and ledger."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from tenant_books.domain.entities import Entity, GLAccount
from tenant_books.domain.journal import LedgerLine
from tenant_books.domain.tenancy import TenantContext
from tenant_books.domain.value_objects import AccountType, Currency
from tenant_books.exceptions import (
    GLAccountNotFoundError,
    MultiCurrencyConsolidationError,
    ValidationError,
)
from tenant_books.logging_config import get_logger
from tenant_books.repositories.interfaces import (
    EntityRepository,
    FiscalCalendarRepository,
    GLAccountRepository,
    JournalEntryRepository,
)
from tenant_books.services.interfaces import (
    BalanceSheetReport,
    CashFlowReport,
    GeneralLedgerReport,
    GeneralLedgerRow,
    ProfitAndLossReport,
    ReportingService,
    ReportLine,
    TrialBalanceReport,
    TrialBalanceRow,
)
from tenant_books.services.tenancy import require_entity

logger = get_logger(__name__)

RETAINED_EARNINGS_CODE = "3100"

# Default chart ranges: 1000-1199 hold cash and bank accounts, 1500 and up
# long-lived assets, 2500 and up long-term debt
CASH_CODE_LIMIT = "1200"
INVESTING_ASSET_CODE = "1500"
ACCUMULATED_DEPRECIATION_CODE = "1510"
FINANCING_LIABILITY_CODE = "2500"

_DEBIT_SIDE = (AccountType.ASSET, AccountType.EXPENSE)


@dataclass
class _AccountTotals:
    """Posted activity of one account code across the consolidated entities."""

    account_id: UUID
    code: str
    name: str
    account_type: AccountType
    debits: Decimal = Decimal("0")
    credits: Decimal = Decimal("0")

    @property
    def net_debit(self) -> Decimal:
        return self.debits - self.credits

    @property
    def amount(self) -> Decimal:
        """Balance signed the way the account's section of a report presents it."""
        if self.account_type in _DEBIT_SIDE:
            return self.debits - self.credits
        return self.credits - self.debits

    def report_line(self) -> ReportLine:
        return ReportLine(
            account_id=self.account_id,
            code=self.code,
            name=self.name,
            account_type=self.account_type,
            amount=self.amount,
        )


class ReportingServiceImpl(ReportingService):
    """Financial statements built from posted journal lines.

    Several entities can be reported together when they share a functional
    currency; their accounts are combined by account code. Lines recorded in a
    foreign currency count at their functional-currency amounts.
    """

    def __init__(
        self,
        entity_repo: EntityRepository,
        gl_account_repo: GLAccountRepository,
        journal_repo: JournalEntryRepository,
        calendar_repo: FiscalCalendarRepository,
        context: TenantContext,
    ) -> None:
        self._entity_repo = entity_repo
        self._gl_account_repo = gl_account_repo
        self._journal_repo = journal_repo
        self._calendar_repo = calendar_repo
        self._context = context

    def trial_balance(self, entity_id: UUID, as_of: date) -> TrialBalanceReport:
        entity = require_entity(self._entity_repo, self._context, entity_id)
        totals = self._totals([entity], date_to=as_of)
        rows = []
        for account in sorted(totals.values(), key=lambda t: t.code):
            if account.debits == 0 and account.credits == 0:
                continue
            net = account.net_debit
            rows.append(
                TrialBalanceRow(
                    account_id=account.account_id,
                    code=account.code,
                    name=account.name,
                    account_type=account.account_type,
                    debit=net if net > 0 else Decimal("0"),
                    credit=-net if net < 0 else Decimal("0"),
                )
            )
        report = TrialBalanceReport(
            entity_ids=[entity.id],
            as_of=as_of,
            currency=entity.functional_currency,
            rows=rows,
        )
        if not report.is_balanced:
            logger.error(
                "trial_balance_out_of_balance",
                entity_id=str(entity.id),
                total_debits=str(report.total_debits),
                total_credits=str(report.total_credits),
            )
        return report

    def profit_and_loss(
        self, entity_ids: list[UUID], start_date: date, end_date: date
    ) -> ProfitAndLossReport:
        _check_range(start_date, end_date)
        entities = self._load_entities(entity_ids)
        currency = self._consolidation_currency(entities)
        totals = self._totals(entities, date_from=start_date, date_to=end_date)
        return ProfitAndLossReport(
            entity_ids=[entity.id for entity in entities],
            start_date=start_date,
            end_date=end_date,
            currency=currency,
            revenue=self._section(totals, AccountType.INCOME),
            expenses=self._section(totals, AccountType.EXPENSE),
        )

    def balance_sheet(self, entity_ids: list[UUID], as_of: date) -> BalanceSheetReport:
        """Balance sheet at ``as_of``.

        Retained earnings are split into prior years (the balance of account
        3100 plus net income before the current fiscal year) and the current
        fiscal year's net income up to ``as_of``.
        """
        entities = self._load_entities(entity_ids)
        currency = self._consolidation_currency(entities)
        fiscal_year_start = self.fiscal_year_start(entities[0], as_of)

        totals = self._totals(entities, date_to=as_of)
        prior = self._totals(entities, date_to=fiscal_year_start - timedelta(days=1))

        equity = [
            line
            for line in self._section(totals, AccountType.EQUITY)
            if line.code != RETAINED_EARNINGS_CODE
        ]
        retained = totals.get(RETAINED_EARNINGS_CODE)
        prior_net_income = self._net_income(prior)
        current_net_income = self._net_income(totals) - prior_net_income

        report = BalanceSheetReport(
            entity_ids=[entity.id for entity in entities],
            as_of=as_of,
            currency=currency,
            assets=self._section(totals, AccountType.ASSET),
            liabilities=self._section(totals, AccountType.LIABILITY),
            equity=equity,
            retained_earnings_prior=(retained.amount if retained else Decimal("0"))
            + prior_net_income,
            retained_earnings_current=current_net_income,
        )
        if not report.is_balanced:
            logger.error(
                "balance_sheet_out_of_balance",
                entity_ids=[str(entity.id) for entity in entities],
                total_assets=str(report.total_assets),
                total_liabilities_and_equity=str(report.total_liabilities_and_equity),
            )
        return report

    def cash_flow(
        self, entity_ids: list[UUID], start_date: date, end_date: date
    ) -> CashFlowReport:
        """Cash flow for the period by the indirect method.

        Cash is the asset accounts coded below 1200. Every other balance-sheet
        account lands in operating, investing or financing by its code range;
        accumulated depreciation stays in operating as a non-cash add-back.
        """
        _check_range(start_date, end_date)
        entities = self._load_entities(entity_ids)
        currency = self._consolidation_currency(entities)
        period = self._totals(entities, date_from=start_date, date_to=end_date)
        opening = self._totals(entities, date_to=start_date - timedelta(days=1))
        closing = self._totals(entities, date_to=end_date)

        sections: dict[str, list[ReportLine]] = {
            "operating": [],
            "investing": [],
            "financing": [],
        }
        for account in sorted(period.values(), key=lambda t: t.code):
            section = _cash_flow_section(account)
            if section is None or account.net_debit == 0:
                continue
            sections[section].append(
                ReportLine(
                    account_id=account.account_id,
                    code=account.code,
                    name=account.name,
                    account_type=account.account_type,
                    amount=-account.net_debit,
                )
            )

        report = CashFlowReport(
            entity_ids=[entity.id for entity in entities],
            start_date=start_date,
            end_date=end_date,
            currency=currency,
            net_income=self._net_income(period),
            operating=sections["operating"],
            investing=sections["investing"],
            financing=sections["financing"],
            opening_cash=_cash_balance(opening),
            closing_cash=_cash_balance(closing),
        )
        if not report.is_reconciled:
            logger.error(
                "cash_flow_not_reconciled",
                entity_ids=[str(entity.id) for entity in entities],
                opening_cash=str(report.opening_cash),
                net_cash_change=str(report.net_cash_change),
                closing_cash=str(report.closing_cash),
            )
        return report

    def general_ledger(
        self,
        entity_id: UUID,
        gl_account_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> GeneralLedgerReport:
        entity = require_entity(self._entity_repo, self._context, entity_id)
        account = self._gl_account_repo.get(gl_account_id)
        if account is None or account.entity_id != entity.id:
            raise GLAccountNotFoundError(gl_account_id)

        opening = Decimal("0")
        if start_date is not None:
            for ledger_line in self._journal_repo.list_posted_lines(
                [entity.id],
                date_to=start_date - timedelta(days=1),
                gl_account_id=account.id,
            ):
                opening += self._signed(account, ledger_line)

        rows: list[GeneralLedgerRow] = []
        balance = opening
        for ledger_line in self._journal_repo.list_posted_lines(
            [entity.id], date_from=start_date, date_to=end_date, gl_account_id=account.id
        ):
            balance += self._signed(account, ledger_line)
            rows.append(
                GeneralLedgerRow(
                    entry_id=ledger_line.entry_id,
                    entry_number=ledger_line.entry_number,
                    entry_date=ledger_line.entry_date,
                    memo=ledger_line.line.memo or ledger_line.entry_memo,
                    debit=ledger_line.line.functional_debit,
                    credit=ledger_line.line.functional_credit,
                    balance=balance,
                )
            )
        return GeneralLedgerReport(
            account_id=account.id,
            code=account.code,
            name=account.name,
            start_date=start_date,
            end_date=end_date,
            opening_balance=opening,
            rows=rows,
        )

    def fiscal_year_start(self, entity: Entity, as_of: date) -> date:
        """First day of the fiscal year containing ``as_of``.

        The entity's fiscal calendar decides when one covers the date,
        otherwise the entity's fiscal-year start month does.
        """
        for year in (as_of.year, as_of.year - 1):
            fiscal_calendar = self._calendar_repo.get_by_year(entity.id, year)
            if (
                fiscal_calendar is not None
                and fiscal_calendar.start_date <= as_of <= fiscal_calendar.end_date
            ):
                return fiscal_calendar.start_date
        start = date(as_of.year, entity.fiscal_year_start, 1)
        if as_of < start:
            start = date(as_of.year - 1, entity.fiscal_year_start, 1)
        return start

    def _load_entities(self, entity_ids: list[UUID]) -> list[Entity]:
        if not entity_ids:
            raise ValidationError("At least one entity is required")
        unique_ids = list(dict.fromkeys(entity_ids))
        return [
            require_entity(self._entity_repo, self._context, entity_id)
            for entity_id in unique_ids
        ]

    @staticmethod
    def _consolidation_currency(entities: list[Entity]) -> Currency:
        currencies = {entity.functional_currency for entity in entities}
        if len(currencies) > 1:
            raise MultiCurrencyConsolidationError([currency.value for currency in currencies])
        return entities[0].functional_currency

    def _totals(
        self,
        entities: list[Entity],
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> dict[str, _AccountTotals]:
        accounts: dict[UUID, GLAccount] = {}
        for entity in entities:
            for account in self._gl_account_repo.list_by_entity(entity.id, include_inactive=True):
                accounts[account.id] = account

        totals: dict[str, _AccountTotals] = {}
        for ledger_line in self._journal_repo.list_posted_lines(
            [entity.id for entity in entities], date_from=date_from, date_to=date_to
        ):
            line = ledger_line.line
            account = accounts.get(line.gl_account_id)
            if account is None:
                continue
            account_totals = totals.get(account.code)
            if account_totals is None:
                account_totals = _AccountTotals(
                    account_id=account.id,
                    code=account.code,
                    name=account.name,
                    account_type=account.account_type,
                )
                totals[account.code] = account_totals
            account_totals.debits += line.functional_debit
            account_totals.credits += line.functional_credit
        return totals

    @staticmethod
    def _section(totals: dict[str, _AccountTotals], account_type: AccountType) -> list[ReportLine]:
        return [
            account.report_line()
            for account in sorted(totals.values(), key=lambda t: t.code)
            if account.account_type == account_type and account.amount != 0
        ]

    @staticmethod
    def _net_income(totals: dict[str, _AccountTotals]) -> Decimal:
        income = sum(
            (t.amount for t in totals.values() if t.account_type == AccountType.INCOME),
            Decimal("0"),
        )
        expenses = sum(
            (t.amount for t in totals.values() if t.account_type == AccountType.EXPENSE),
            Decimal("0"),
        )
        return income - expenses

    @staticmethod
    def _signed(account: GLAccount, ledger_line: LedgerLine) -> Decimal:
        line = ledger_line.line
        if account.is_debit_normal:
            return line.functional_debit - line.functional_credit
        return line.functional_credit - line.functional_debit


def _check_range(start_date: date, end_date: date) -> None:
    if end_date < start_date:
        raise ValidationError(
            "Report end date precedes start date",
            context={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
        )


def _is_cash(account: _AccountTotals) -> bool:
    return account.account_type == AccountType.ASSET and account.code < CASH_CODE_LIMIT


def _cash_balance(totals: dict[str, _AccountTotals]) -> Decimal:
    return sum((t.net_debit for t in totals.values() if _is_cash(t)), Decimal("0"))


def _cash_flow_section(account: _AccountTotals) -> str | None:
    """Cash flow section of a non-cash balance-sheet account; None otherwise."""
    if account.account_type == AccountType.ASSET:
        if _is_cash(account):
            return None
        if account.code == ACCUMULATED_DEPRECIATION_CODE:
            return "operating"
        return "investing" if account.code >= INVESTING_ASSET_CODE else "operating"
    if account.account_type == AccountType.LIABILITY:
        return "financing" if account.code >= FINANCING_LIABILITY_CODE else "operating"
    if account.account_type == AccountType.EQUITY:
        return "financing"
    return None
