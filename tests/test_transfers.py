"""Tests for transfers between bank accounts."""

from collections.abc import Callable
from datetime import date
from decimal import Decimal

import pytest

from tenant_books.container import Container, ServiceScope
from tenant_books.domain.banking import BankAccount
from tenant_books.domain.entities import Entity, GLAccount
from tenant_books.domain.journal import JournalEntry, JournalEntryStatus, SourceType
from tenant_books.domain.tenancy import TenantContext
from tenant_books.domain.value_objects import Currency
from tenant_books.exceptions import (
    AlreadyVoidedError,
    BankAccountNotMappedError,
    CrossEntityReferenceError,
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidTransferError,
    PermissionDeniedError,
    RecordNotFoundError,
)


@pytest.fixture
def checking(
    services: ServiceScope,
    entity: Entity,
    account: Callable[[str], GLAccount],
    post_entry: Callable[..., JournalEntry],
) -> BankAccount:
    bank = services.bank_import.create_bank_account(
        entity.id, "Checking", gl_account_id=account("1100").id
    )
    post_entry(account("1100").id, account("3000").id, "1000.00", date(2025, 1, 2))
    return bank


@pytest.fixture
def savings(
    services: ServiceScope, entity: Entity, account: Callable[[str], GLAccount]
) -> BankAccount:
    return services.bank_import.create_bank_account(
        entity.id, "Savings", gl_account_id=account("1000").id
    )


def _balances(services: ServiceScope, entity: Entity) -> dict[str, Decimal]:
    return {b.code: b.balance for b in services.gl_accounts.get_account_balances(entity.id)}


class TestCreateTransfer:
    """Tests for recording transfers."""

    def test_two_linked_posted_entries(
        self,
        services: ServiceScope,
        entity: Entity,
        checking: BankAccount,
        savings: BankAccount,
    ) -> None:
        transfer = services.transfers.create_transfer(
            checking.id, savings.id, Decimal("250.00"), date(2025, 1, 10)
        )

        outgoing, incoming = transfer.outgoing_entry, transfer.incoming_entry
        assert transfer.id == outgoing.id
        assert outgoing.status == incoming.status == JournalEntryStatus.POSTED
        assert outgoing.source_type == incoming.source_type == SourceType.TRANSFER
        assert outgoing.linked_entry_id == incoming.id
        assert incoming.linked_entry_id == outgoing.id
        assert transfer.memo == "Transfer Checking to Savings"
        balances = _balances(services, entity)
        assert balances["1100"] == Decimal("750.00")
        assert balances["1000"] == Decimal("250.00")
        assert balances["1050"] == Decimal("0")

    def test_same_account_rejected(
        self, services: ServiceScope, checking: BankAccount
    ) -> None:
        with pytest.raises(InvalidTransferError):
            services.transfers.create_transfer(
                checking.id, checking.id, Decimal("10"), date(2025, 1, 10)
            )

    def test_amount_must_be_positive(
        self, services: ServiceScope, checking: BankAccount, savings: BankAccount
    ) -> None:
        with pytest.raises(InvalidAmountError):
            services.transfers.create_transfer(
                checking.id, savings.id, Decimal("0"), date(2025, 1, 10)
            )

    def test_insufficient_balance(
        self,
        services: ServiceScope,
        entity: Entity,
        checking: BankAccount,
        savings: BankAccount,
    ) -> None:
        with pytest.raises(InsufficientBalanceError):
            services.transfers.create_transfer(
                savings.id, checking.id, Decimal("5.00"), date(2025, 1, 10)
            )

        services.transfers.create_transfer(
            savings.id, checking.id, Decimal("5.00"), date(2025, 1, 10), check_balance=False
        )
        assert _balances(services, entity)["1000"] == Decimal("-5.00")

    def test_unmapped_account(
        self, services: ServiceScope, entity: Entity, checking: BankAccount
    ) -> None:
        loose = services.bank_import.create_bank_account(entity.id, "Loose")

        with pytest.raises(BankAccountNotMappedError):
            services.transfers.create_transfer(
                checking.id, loose.id, Decimal("10"), date(2025, 1, 10)
            )

    def test_accounts_of_different_entities(
        self,
        container: Container,
        owner_context: TenantContext,
        services: ServiceScope,
        checking: BankAccount,
    ) -> None:
        sister = container.tenancy_service.create_entity(owner_context, "Acme Holdings")
        services.gl_accounts.seed_default_coa(sister.id)
        elsewhere = services.bank_import.create_bank_account(
            sister.id,
            "Holdings Checking",
            gl_account_id=services.gl_accounts.get_account_by_code(sister.id, "1100").id,
        )

        with pytest.raises(CrossEntityReferenceError):
            services.transfers.create_transfer(
                checking.id, elsewhere.id, Decimal("10"), date(2025, 1, 10)
            )


class TestForeignCurrencyTransfer:
    @pytest.fixture
    def euro(
        self, services: ServiceScope, entity: Entity, account: Callable[[str], GLAccount]
    ) -> BankAccount:
        return services.bank_import.create_bank_account(
            entity.id, "Euro", currency=Currency.EUR, gl_account_id=account("1010").id
        )

    def test_rate_required(
        self, services: ServiceScope, checking: BankAccount, euro: BankAccount
    ) -> None:
        with pytest.raises(InvalidTransferError):
            services.transfers.create_transfer(
                checking.id, euro.id, Decimal("100.00"), date(2025, 1, 10)
            )

    def test_received_amount_and_base_value(
        self,
        services: ServiceScope,
        entity: Entity,
        checking: BankAccount,
        euro: BankAccount,
        account: Callable[[str], GLAccount],
    ) -> None:
        transfer = services.transfers.create_transfer(
            checking.id,
            euro.id,
            Decimal("100.00"),
            date(2025, 1, 10),
            exchange_rate=Decimal("0.90"),
        )

        assert transfer.received.amount == Decimal("90.00")
        assert transfer.received.currency == Currency.EUR
        euro_line = next(
            line
            for line in transfer.incoming_entry.lines
            if line.gl_account_id == account("1010").id
        )
        assert euro_line.debit_amount.amount == Decimal("90.00")
        assert euro_line.functional_debit == Decimal("100.00")
        balances = _balances(services, entity)
        assert balances["1010"] == Decimal("100.00")
        assert balances["1050"] == Decimal("0")


class TestVoidTransfer:
    def test_void_reverses_both_legs(
        self,
        services: ServiceScope,
        entity: Entity,
        checking: BankAccount,
        savings: BankAccount,
    ) -> None:
        transfer = services.transfers.create_transfer(
            checking.id, savings.id, Decimal("250.00"), date(2025, 1, 10)
        )

        voided = services.transfers.void_transfer(transfer.id, date(2025, 1, 11))

        assert voided.is_voided
        assert voided.incoming_entry.status == JournalEntryStatus.VOIDED
        balances = _balances(services, entity)
        assert balances["1100"] == Decimal("1000.00")
        assert balances["1000"] == Decimal("0")

    def test_void_twice(
        self, services: ServiceScope, checking: BankAccount, savings: BankAccount
    ) -> None:
        transfer = services.transfers.create_transfer(
            checking.id, savings.id, Decimal("25.00"), date(2025, 1, 10)
        )
        services.transfers.void_transfer(transfer.id)

        with pytest.raises(AlreadyVoidedError):
            services.transfers.void_transfer(transfer.incoming_entry.id)


class TestLookup:
    def test_get_by_either_entry(
        self, services: ServiceScope, checking: BankAccount, savings: BankAccount
    ) -> None:
        transfer = services.transfers.create_transfer(
            checking.id, savings.id, Decimal("25.00"), date(2025, 1, 10)
        )

        found = services.transfers.get_transfer(transfer.incoming_entry.id)

        assert found.id == transfer.id
        assert found.from_account_id == checking.id
        assert found.to_account_id == savings.id
        assert found.amount.amount == Decimal("25.00")

    def test_list_for_entity(
        self,
        services: ServiceScope,
        entity: Entity,
        checking: BankAccount,
        savings: BankAccount,
    ) -> None:
        for day in (10, 12):
            services.transfers.create_transfer(
                checking.id, savings.id, Decimal("10.00"), date(2025, 1, day)
            )

        transfers = services.transfers.list_transfers(entity.id)

        assert [t.transfer_date for t in transfers] == [date(2025, 1, 12), date(2025, 1, 10)]

    def test_manual_entry_is_not_a_transfer(
        self, services: ServiceScope, checking: BankAccount
    ) -> None:
        manual = services.journal.list_entries(checking.entity_id).entries[0]

        with pytest.raises(RecordNotFoundError):
            services.transfers.get_transfer(manual.id)

    def test_other_tenant_cannot_see(
        self,
        services: ServiceScope,
        other_tenant_services: ServiceScope,
        checking: BankAccount,
        savings: BankAccount,
    ) -> None:
        transfer = services.transfers.create_transfer(
            checking.id, savings.id, Decimal("25.00"), date(2025, 1, 10)
        )

        with pytest.raises(RecordNotFoundError):
            other_tenant_services.transfers.get_transfer(transfer.id)


def test_viewer_cannot_transfer(
    viewer_services: ServiceScope, checking: BankAccount, savings: BankAccount
) -> None:
    with pytest.raises(PermissionDeniedError):
        viewer_services.transfers.create_transfer(
            checking.id, savings.id, Decimal("25.00"), date(2025, 1, 10)
        )
