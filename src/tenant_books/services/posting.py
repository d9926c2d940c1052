"""PostingService implementation: bank transactions to BANK_FEED journal entries."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from tenant_books.domain.banking import BankAccount, BankTransaction
from tenant_books.domain.entities import Entity, GLAccount
from tenant_books.domain.journal import JournalLine, SourceType
from tenant_books.domain.tenancy import TenantContext
from tenant_books.domain.value_objects import Currency, Money, round_money
from tenant_books.exceptions import (
    AlreadyPostedError,
    BankAccountNotMappedError,
    CrossEntityReferenceError,
    GLAccountInactiveError,
    GLAccountNotFoundError,
    InvalidAmountError,
    MissingFXRateError,
    RecordNotFoundError,
    SplitMismatchError,
)
from tenant_books.logging_config import get_logger
from tenant_books.repositories.interfaces import (
    BankAccountRepository,
    BankTransactionRepository,
    EntityRepository,
    FXRateRepository,
    GLAccountRepository,
)
from tenant_books.repositories.sqlite import SQLiteDatabase
from tenant_books.services.fiscal_periods import FiscalPeriodService
from tenant_books.services.interfaces import PostingResult, PostingService, SplitInput
from tenant_books.services.journal import JournalServiceImpl
from tenant_books.services.tenancy import require_write

logger = get_logger(__name__)


@dataclass
class _PostingTarget:
    transaction: BankTransaction
    bank_account: BankAccount
    entity: Entity
    bank_gl_account_id: UUID
    rate: Decimal | None = None


class PostingServiceImpl(PostingService):
    """Turns recorded bank transactions into posted journal entries.

    An inflow debits the bank's GL account and credits the target account; an
    outflow does the opposite. Transactions in a currency other than the
    entity's functional currency carry the exchange rate and base amounts on
    every line.
    """

    def __init__(
        self,
        database: SQLiteDatabase,
        bank_txn_repo: BankTransactionRepository,
        bank_account_repo: BankAccountRepository,
        gl_account_repo: GLAccountRepository,
        entity_repo: EntityRepository,
        fx_rate_repo: FXRateRepository,
        fiscal_periods: FiscalPeriodService,
        journal: JournalServiceImpl,
        context: TenantContext,
    ) -> None:
        self._db = database
        self._bank_txn_repo = bank_txn_repo
        self._bank_account_repo = bank_account_repo
        self._gl_account_repo = gl_account_repo
        self._entity_repo = entity_repo
        self._fx_rate_repo = fx_rate_repo
        self._fiscal_periods = fiscal_periods
        self._journal = journal
        self._context = context

    def post_transaction(
        self,
        transaction_id: UUID,
        gl_account_id: UUID,
        exchange_rate: Decimal | None = None,
        memo: str | None = None,
    ) -> PostingResult:
        require_write(self._context, "post_bank_transaction")
        target = self._prepare(transaction_id)
        self._check_target_account(gl_account_id, target.entity)
        self._fiscal_periods.ensure_open(target.entity.id, target.transaction.transaction_date)
        target.rate = self._resolve_rate(target, exchange_rate)

        amount = abs(target.transaction.amount.amount)
        lines = [
            self._line(target, target.bank_gl_account_id, amount, bank_side=True),
            self._line(target, gl_account_id, amount, bank_side=False),
        ]
        with self._db.transaction():
            result = self._record(target, lines, memo)
        logger.info(
            "bank_transaction_posted",
            transaction_id=str(transaction_id),
            entry_id=str(result.entry.id),
            foreign_currency=target.rate is not None,
        )
        return result

    def post_bulk(
        self, transaction_ids: list[UUID], gl_account_id: UUID
    ) -> list[PostingResult]:
        """Post several transactions to one account, all or nothing."""
        require_write(self._context, "post_bank_transaction")
        unique_ids = list(dict.fromkeys(transaction_ids))
        targets = [self._prepare(transaction_id) for transaction_id in unique_ids]
        for target in targets:
            self._check_target_account(gl_account_id, target.entity)
            self._fiscal_periods.ensure_open(
                target.entity.id, target.transaction.transaction_date
            )
            target.rate = self._resolve_rate(target, None)

        results: list[PostingResult] = []
        with self._db.transaction():
            for target in targets:
                amount = abs(target.transaction.amount.amount)
                lines = [
                    self._line(target, target.bank_gl_account_id, amount, bank_side=True),
                    self._line(target, gl_account_id, amount, bank_side=False),
                ]
                results.append(self._record(target, lines, None))
        logger.info("bank_transactions_bulk_posted", count=len(results))
        return results

    def post_split(
        self,
        transaction_id: UUID,
        splits: list[SplitInput],
        exchange_rate: Decimal | None = None,
    ) -> PostingResult:
        require_write(self._context, "post_bank_transaction")
        if not splits:
            raise InvalidAmountError("0", "at least one split is required")
        target = self._prepare(transaction_id)
        for split in splits:
            if split.amount <= 0:
                raise InvalidAmountError(str(split.amount), "split amounts must be positive")
            self._check_target_account(split.gl_account_id, target.entity)

        amount = abs(target.transaction.amount.amount)
        split_total = sum((split.amount for split in splits), Decimal("0"))
        if split_total != amount:
            raise SplitMismatchError(str(split_total), str(amount))

        self._fiscal_periods.ensure_open(target.entity.id, target.transaction.transaction_date)
        target.rate = self._resolve_rate(target, exchange_rate)

        split_lines = [
            self._line(target, split.gl_account_id, split.amount, bank_side=False, memo=split.memo)
            for split in splits
        ]
        bank_line = self._line(target, target.bank_gl_account_id, amount, bank_side=True)
        if target.rate is not None:
            self._absorb_rounding(bank_line, split_lines, splits)

        with self._db.transaction():
            result = self._record(target, [bank_line, *split_lines], None)
        logger.info(
            "bank_transaction_split_posted",
            transaction_id=str(transaction_id),
            splits=len(splits),
        )
        return result

    def _prepare(self, transaction_id: UUID) -> _PostingTarget:
        transaction = self._bank_txn_repo.get(transaction_id)
        if transaction is None or transaction.deleted_at is not None:
            raise RecordNotFoundError("transaction", transaction_id)
        bank_account = self._bank_account_repo.get(transaction.account_id)
        entity = self._entity_repo.get(bank_account.entity_id) if bank_account else None
        if bank_account is None or entity is None or entity.tenant_id != self._context.tenant_id:
            raise RecordNotFoundError("transaction", transaction_id)
        if transaction.is_posted:
            raise AlreadyPostedError("transaction", transaction_id)
        if bank_account.gl_account_id is None:
            raise BankAccountNotMappedError(bank_account.id)
        return _PostingTarget(transaction, bank_account, entity, bank_account.gl_account_id)

    def _check_target_account(self, gl_account_id: UUID, entity: Entity) -> GLAccount:
        account = self._gl_account_repo.get(gl_account_id)
        if account is None:
            raise GLAccountNotFoundError(gl_account_id)
        if not account.is_active:
            raise GLAccountInactiveError(account.id, account.code)
        if account.entity_id != entity.id:
            raise CrossEntityReferenceError([str(gl_account_id)], entity.id)
        return account

    def _resolve_rate(
        self, target: _PostingTarget, override: Decimal | None
    ) -> Decimal | None:
        currency = Currency(target.transaction.amount.currency)
        functional = target.entity.functional_currency
        if currency == functional:
            return None
        if override is not None:
            if override <= 0:
                raise InvalidAmountError(str(override), "exchange rate must be positive")
            return override
        fx_rate = self._fx_rate_repo.get_latest(
            currency, functional, target.transaction.transaction_date
        )
        if fx_rate is None:
            raise MissingFXRateError(
                currency.value,
                functional.value,
                target.transaction.transaction_date.isoformat(),
            )
        return fx_rate.rate

    def _line(
        self,
        target: _PostingTarget,
        gl_account_id: UUID,
        amount: Decimal,
        bank_side: bool,
        memo: str = "",
    ) -> JournalLine:
        currency = Currency(target.transaction.amount.currency)
        value = Money(round_money(amount), currency)
        zero = Money.zero(currency)
        # The bank side is debited for inflows, the other side for outflows
        is_debit = bank_side == target.transaction.is_inflow
        line = JournalLine(
            gl_account_id=gl_account_id,
            debit_amount=value if is_debit else zero,
            credit_amount=zero if is_debit else value,
            memo=memo or target.transaction.description,
        )
        if target.rate is not None:
            base = round_money(value.amount * target.rate)
            line.exchange_rate = target.rate
            line.base_debit = base if is_debit else Decimal("0")
            line.base_credit = Decimal("0") if is_debit else base
        return line

    @staticmethod
    def _absorb_rounding(
        bank_line: JournalLine, split_lines: list[JournalLine], splits: list[SplitInput]
    ) -> None:
        """Give the base-currency rounding remainder to the largest split."""
        bank_base = bank_line.functional_debit + bank_line.functional_credit
        split_base = sum(
            (line.functional_debit + line.functional_credit for line in split_lines),
            Decimal("0"),
        )
        remainder = bank_base - split_base
        if remainder == 0:
            return
        largest = max(range(len(splits)), key=lambda index: splits[index].amount)
        line = split_lines[largest]
        if line.base_debit:
            line.base_debit += remainder
        else:
            line.base_credit = (line.base_credit or Decimal("0")) + remainder

    def _record(
        self, target: _PostingTarget, lines: list[JournalLine], memo: str | None
    ) -> PostingResult:
        transaction = target.transaction
        entry = self._journal.record_posted_entry(
            entity_id=target.entity.id,
            entry_date=transaction.transaction_date,
            memo=memo or transaction.description,
            lines=lines,
            source_type=SourceType.BANK_FEED,
            source_id=transaction.id,
            source_document={
                "bank_account_id": str(target.bank_account.id),
                "amount": str(transaction.amount.amount),
                "currency": Currency(transaction.amount.currency).value,
            },
        )
        transaction.journal_entry_id = entry.id
        self._bank_txn_repo.update(transaction)
        return PostingResult(transaction=transaction, entry=entry)
