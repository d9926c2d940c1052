"""Transfers between bank accounts of one entity."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from tenant_books.domain.banking import BankAccount
from tenant_books.domain.entities import Entity, GLAccount
from tenant_books.domain.journal import JournalEntry, JournalLine, SourceType
from tenant_books.domain.tenancy import TenantContext
from tenant_books.domain.value_objects import AccountType, Currency, Money, round_money
from tenant_books.exceptions import (
    AlreadyVoidedError,
    BankAccountNotMappedError,
    CrossEntityReferenceError,
    GLAccountInactiveError,
    GLAccountNotFoundError,
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidTransferError,
    MissingFXRateError,
    RecordNotFoundError,
)
from tenant_books.logging_config import get_logger
from tenant_books.repositories.interfaces import (
    BankAccountRepository,
    EntityRepository,
    FXRateRepository,
    GLAccountRepository,
    JournalEntryRepository,
)
from tenant_books.repositories.sqlite import SQLiteDatabase
from tenant_books.services.interfaces import Transfer
from tenant_books.services.journal import JournalServiceImpl
from tenant_books.services.tenancy import require_entity, require_write

logger = get_logger(__name__)

TRANSIT_ACCOUNT_CODE = "1050"
RATE_PLACES = Decimal("0.000001")


class TransferService:
    """Moves money between two bank accounts through the transit account.

    Each transfer is two posted TRANSFER entries linked to each other. Both
    carry the same functional-currency value, so the transit account nets to
    zero once both legs are on the books.
    """

    def __init__(
        self,
        database: SQLiteDatabase,
        bank_account_repo: BankAccountRepository,
        gl_account_repo: GLAccountRepository,
        entity_repo: EntityRepository,
        journal_repo: JournalEntryRepository,
        fx_rate_repo: FXRateRepository,
        journal: JournalServiceImpl,
        context: TenantContext,
    ) -> None:
        self._db = database
        self._bank_account_repo = bank_account_repo
        self._gl_account_repo = gl_account_repo
        self._entity_repo = entity_repo
        self._journal_repo = journal_repo
        self._fx_rate_repo = fx_rate_repo
        self._journal = journal
        self._context = context

    def create_transfer(
        self,
        from_account_id: UUID,
        to_account_id: UUID,
        amount: Decimal,
        transfer_date: date,
        memo: str = "",
        exchange_rate: Decimal | None = None,
        check_balance: bool = True,
    ) -> Transfer:
        """Record a transfer of ``amount`` in the source account's currency.

        Args:
            from_account_id: Bank account the money leaves
            to_account_id: Bank account the money arrives in
            amount: Positive amount in the source account's currency
            transfer_date: Accounting date of both legs
            memo: Description for both entries
            exchange_rate: Source-to-destination rate, required when the
                two accounts hold different currencies
            check_balance: Reject transfers that overdraw an asset account

        Raises:
            InvalidTransferError: Same account twice, or a missing exchange rate
            CrossEntityReferenceError: If the accounts belong to different entities
            BankAccountNotMappedError: If either account has no GL account
            InsufficientBalanceError: If the source balance is too low
            FiscalPeriodClosedError: If the date is in a locked or closed period
        """
        require_write(self._context, "create_transfer")
        if from_account_id == to_account_id:
            raise InvalidTransferError(
                "Cannot transfer to the same account", bank_account_id=from_account_id
            )
        amount = round_money(Decimal(str(amount)))
        if amount <= 0:
            raise InvalidAmountError(str(amount), "transfer amount must be positive")

        source = self._load_account(from_account_id)
        destination = self._load_account(to_account_id)
        if source.entity_id != destination.entity_id:
            raise CrossEntityReferenceError([str(to_account_id)], source.entity_id)
        entity = require_entity(self._entity_repo, self._context, source.entity_id)
        source_gl = self._mapped_gl_account(source)
        destination_gl = self._mapped_gl_account(destination)
        transit = self._transit_account(entity.id)

        if source.currency != destination.currency:
            if exchange_rate is None:
                raise InvalidTransferError(
                    "Transfers between currencies need an exchange rate",
                    from_currency=source.currency.value,
                    to_currency=destination.currency.value,
                )
            if exchange_rate <= 0:
                raise InvalidAmountError(str(exchange_rate), "exchange rate must be positive")
            received = round_money(amount * exchange_rate)
        else:
            exchange_rate = None
            received = amount

        value = self._functional_value(
            entity, source, destination, amount, received, transfer_date
        )
        if check_balance and source_gl.account_type == AccountType.ASSET:
            balance = self._gl_balance(source_gl)
            if balance < value:
                raise InsufficientBalanceError(source.id, str(balance), str(value))

        document: dict[str, Any] = {
            "from_account_id": str(source.id),
            "to_account_id": str(destination.id),
            "amount": str(amount),
            "currency": source.currency.value,
            "received": str(received),
            "received_currency": destination.currency.value,
            "exchange_rate": str(exchange_rate) if exchange_rate is not None else None,
        }
        text = memo or f"Transfer {source.name} to {destination.name}"
        functional = entity.functional_currency

        with self._db.transaction():
            outgoing = self._journal.record_posted_entry(
                entity_id=entity.id,
                entry_date=transfer_date,
                memo=text,
                lines=[
                    _line(transit.id, amount, source.currency, value, functional, debit=True),
                    _line(source_gl.id, amount, source.currency, value, functional, debit=False),
                ],
                source_type=SourceType.TRANSFER,
                source_id=source.id,
                source_document={**document, "leg": "out"},
            )
            incoming = self._journal.record_posted_entry(
                entity_id=entity.id,
                entry_date=transfer_date,
                memo=text,
                lines=[
                    _line(
                        destination_gl.id,
                        received,
                        destination.currency,
                        value,
                        functional,
                        debit=True,
                    ),
                    _line(
                        transit.id, received, destination.currency, value, functional, debit=False
                    ),
                ],
                source_type=SourceType.TRANSFER,
                source_id=destination.id,
                source_document={**document, "leg": "in"},
            )
            outgoing.linked_entry_id = incoming.id
            incoming.linked_entry_id = outgoing.id
            self._journal_repo.update(outgoing)
            self._journal_repo.update(incoming)

        logger.info(
            "transfer_created",
            transfer_id=str(outgoing.id),
            from_account_id=str(source.id),
            to_account_id=str(destination.id),
            amount=str(amount),
            currency=source.currency.value,
        )
        return _to_transfer(outgoing, incoming)

    def void_transfer(self, transfer_id: UUID, reversal_date: date | None = None) -> Transfer:
        """Reverse both legs of a transfer."""
        require_write(self._context, "void_transfer")
        transfer = self.get_transfer(transfer_id)
        if transfer.is_voided:
            raise AlreadyVoidedError(transfer.id)

        with self._db.transaction():
            outgoing = self._journal.void_entry(transfer.outgoing_entry.id, reversal_date)
            incoming = self._journal.void_entry(transfer.incoming_entry.id, reversal_date)

        logger.info(
            "transfer_voided",
            transfer_id=str(transfer.id),
            reversal_ids=[str(outgoing.reversal_entry.id), str(incoming.reversal_entry.id)],
        )
        return _to_transfer(outgoing.voided_entry, incoming.voided_entry)

    def get_transfer(self, transfer_id: UUID) -> Transfer:
        """Look a transfer up by the id of either of its entries."""
        entry = self._journal_repo.get(transfer_id)
        if entry is None or entry.source_type != SourceType.TRANSFER or entry.is_deleted:
            raise RecordNotFoundError("transfer", transfer_id)
        entity = self._entity_repo.get(entry.entity_id)
        if entity is None or entity.tenant_id != self._context.tenant_id:
            raise RecordNotFoundError("transfer", transfer_id)
        other = self._journal_repo.get(entry.linked_entry_id) if entry.linked_entry_id else None
        if other is None:
            raise RecordNotFoundError("transfer", transfer_id)
        if _leg(entry) == "out":
            return _to_transfer(entry, other)
        return _to_transfer(other, entry)

    def list_transfers(
        self,
        entity_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
        limit: int = 100,
    ) -> list[Transfer]:
        require_entity(self._entity_repo, self._context, entity_id)
        limit = max(1, min(limit, 500))
        # Two entries per transfer
        entries = self._journal_repo.list_entries(
            entity_id, None, SourceType.TRANSFER, date_from, date_to, limit * 2
        )
        by_id = {entry.id: entry for entry in entries}
        transfers: list[Transfer] = []
        for entry in entries:
            if _leg(entry) != "out" or entry.linked_entry_id is None:
                continue
            incoming = by_id.get(entry.linked_entry_id) or self._journal_repo.get(
                entry.linked_entry_id
            )
            if incoming is not None:
                transfers.append(_to_transfer(entry, incoming))
        return transfers[:limit]

    def _load_account(self, account_id: UUID) -> BankAccount:
        account = self._bank_account_repo.get(account_id)
        entity = self._entity_repo.get(account.entity_id) if account else None
        if account is None or entity is None or entity.tenant_id != self._context.tenant_id:
            raise RecordNotFoundError("bank_account", account_id)
        if not account.is_active:
            raise InvalidTransferError("Bank account is inactive", bank_account_id=account_id)
        return account

    def _mapped_gl_account(self, account: BankAccount) -> GLAccount:
        if account.gl_account_id is None:
            raise BankAccountNotMappedError(account.id)
        gl_account = self._gl_account_repo.get(account.gl_account_id)
        if gl_account is None:
            raise GLAccountNotFoundError(account.gl_account_id)
        if not gl_account.is_active:
            raise GLAccountInactiveError(gl_account.id, gl_account.code)
        return gl_account

    def _transit_account(self, entity_id: UUID) -> GLAccount:
        account = self._gl_account_repo.get_by_code(entity_id, TRANSIT_ACCOUNT_CODE)
        if account is None:
            raise GLAccountNotFoundError(TRANSIT_ACCOUNT_CODE, by_code=True)
        if not account.is_active:
            raise GLAccountInactiveError(account.id, account.code)
        return account

    def _functional_value(
        self,
        entity: Entity,
        source: BankAccount,
        destination: BankAccount,
        amount: Decimal,
        received: Decimal,
        on_date: date,
    ) -> Decimal:
        functional = entity.functional_currency
        if source.currency == functional:
            return amount
        if destination.currency == functional:
            return received
        fx_rate = self._fx_rate_repo.get_latest(source.currency, functional, on_date)
        if fx_rate is None:
            raise MissingFXRateError(
                source.currency.value, functional.value, on_date.isoformat()
            )
        return round_money(amount * fx_rate.rate)

    def _gl_balance(self, account: GLAccount) -> Decimal:
        balance = Decimal("0")
        for ledger_line in self._journal_repo.list_posted_lines(
            [account.entity_id], gl_account_id=account.id
        ):
            balance += ledger_line.line.functional_debit - ledger_line.line.functional_credit
        return balance


def _line(
    gl_account_id: UUID,
    amount: Decimal,
    currency: Currency,
    value: Decimal,
    functional: Currency,
    debit: bool,
) -> JournalLine:
    money = Money(amount, currency)
    zero = Money.zero(currency)
    line = JournalLine(
        gl_account_id=gl_account_id,
        debit_amount=money if debit else zero,
        credit_amount=zero if debit else money,
    )
    if currency != functional:
        line.exchange_rate = (value / amount).quantize(RATE_PLACES)
        line.base_debit = value if debit else Decimal("0")
        line.base_credit = Decimal("0") if debit else value
    return line


def _leg(entry: JournalEntry) -> str | None:
    return (entry.source_document or {}).get("leg")


def _to_transfer(outgoing: JournalEntry, incoming: JournalEntry) -> Transfer:
    document = outgoing.source_document or {}
    rate = document.get("exchange_rate")
    return Transfer(
        id=outgoing.id,
        entity_id=outgoing.entity_id,
        from_account_id=UUID(document["from_account_id"]),
        to_account_id=UUID(document["to_account_id"]),
        transfer_date=outgoing.entry_date,
        amount=Money(Decimal(document["amount"]), document["currency"]),
        received=Money(Decimal(document["received"]), document["received_currency"]),
        exchange_rate=Decimal(rate) if rate is not None else None,
        memo=outgoing.memo,
        outgoing_entry=outgoing,
        incoming_entry=incoming,
    )
