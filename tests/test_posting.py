"""Tests for posting bank transactions to the ledger."""

from collections.abc import Callable
from datetime import date
from decimal import Decimal

import pytest

from tenant_books.container import ServiceScope
from tenant_books.domain.banking import BankAccount
from tenant_books.domain.entities import Entity, GLAccount
from tenant_books.domain.journal import JournalEntryStatus, SourceType
from tenant_books.domain.value_objects import Currency
from tenant_books.exceptions import (
    AlreadyPostedError,
    BankAccountNotMappedError,
    FiscalPeriodClosedError,
    GLAccountInactiveError,
    MissingFXRateError,
    SplitMismatchError,
)
from tenant_books.services.interfaces import SplitInput


@pytest.fixture
def checking(
    services: ServiceScope, entity: Entity, account: Callable[[str], GLAccount]
) -> BankAccount:
    return services.bank_import.create_bank_account(
        entity.id, "Checking", gl_account_id=account("1100").id
    )


def _balances(services: ServiceScope, entity: Entity) -> dict[str, Decimal]:
    return {b.code: b.balance for b in services.gl_accounts.get_account_balances(entity.id)}


class TestPostTransaction:
    """Tests for single transaction posting."""

    def test_inflow_debits_bank(
        self,
        services: ServiceScope,
        entity: Entity,
        checking: BankAccount,
        account: Callable[[str], GLAccount],
    ) -> None:
        txn = services.bank_import.record_transaction(
            checking.id, date(2025, 1, 5), "STRIPE PAYOUT", Decimal("500.00")
        )

        result = services.posting.post_transaction(txn.id, account("4000").id)

        entry = result.entry
        assert entry.status == JournalEntryStatus.POSTED
        assert entry.source_type == SourceType.BANK_FEED
        assert entry.source_id == txn.id
        assert result.transaction.journal_entry_id == entry.id
        bank_line = next(l for l in entry.lines if l.gl_account_id == account("1100").id)
        assert bank_line.debit_amount.amount == Decimal("500.00")
        assert _balances(services, entity)["4000"] == Decimal("500.00")

    def test_outflow_credits_bank(
        self,
        services: ServiceScope,
        entity: Entity,
        checking: BankAccount,
        account: Callable[[str], GLAccount],
    ) -> None:
        txn = services.bank_import.record_transaction(
            checking.id, date(2025, 1, 6), "OFFICE DEPOT", Decimal("-42.10")
        )

        services.posting.post_transaction(txn.id, account("5400").id, memo="Paper")

        balances = _balances(services, entity)
        assert balances["1100"] == Decimal("-42.10")
        assert balances["5400"] == Decimal("42.10")

    def test_post_twice(
        self, services: ServiceScope, checking: BankAccount, account: Callable[[str], GLAccount]
    ) -> None:
        txn = services.bank_import.record_transaction(
            checking.id, date(2025, 1, 5), "Deposit", Decimal("10")
        )
        services.posting.post_transaction(txn.id, account("4000").id)

        with pytest.raises(AlreadyPostedError):
            services.posting.post_transaction(txn.id, account("4000").id)

    def test_unmapped_bank_account(
        self, services: ServiceScope, entity: Entity, account: Callable[[str], GLAccount]
    ) -> None:
        unmapped = services.bank_import.create_bank_account(entity.id, "Unmapped")
        txn = services.bank_import.record_transaction(
            unmapped.id, date(2025, 1, 5), "Deposit", Decimal("10")
        )

        with pytest.raises(BankAccountNotMappedError):
            services.posting.post_transaction(txn.id, account("4000").id)

    def test_inactive_target(
        self, services: ServiceScope, checking: BankAccount, account: Callable[[str], GLAccount]
    ) -> None:
        services.gl_accounts.deactivate_account(account("4300").id)
        txn = services.bank_import.record_transaction(
            checking.id, date(2025, 1, 5), "Deposit", Decimal("10")
        )

        with pytest.raises(GLAccountInactiveError):
            services.posting.post_transaction(txn.id, account("4300").id)

    def test_closed_period(
        self,
        services: ServiceScope,
        entity: Entity,
        checking: BankAccount,
        account: Callable[[str], GLAccount],
    ) -> None:
        calendar = services.fiscal_periods.create_calendar(entity.id, 2025)
        services.fiscal_periods.lock_period(calendar.periods[0].id)
        txn = services.bank_import.record_transaction(
            checking.id, date(2025, 1, 5), "Deposit", Decimal("10")
        )

        with pytest.raises(FiscalPeriodClosedError):
            services.posting.post_transaction(txn.id, account("4000").id)
        assert services.bank_import.list_transactions(checking.id)[0].journal_entry_id is None


class TestForeignCurrency:
    """Tests for transactions outside the functional currency."""

    def test_missing_rate(
        self, services: ServiceScope, entity: Entity, account: Callable[[str], GLAccount]
    ) -> None:
        euro = services.bank_import.create_bank_account(
            entity.id, "Euro", currency=Currency.EUR, gl_account_id=account("1000").id
        )
        txn = services.bank_import.record_transaction(
            euro.id, date(2025, 1, 5), "Client EU", Decimal("100.00")
        )

        with pytest.raises(MissingFXRateError):
            services.posting.post_transaction(txn.id, account("4000").id)

    def test_stored_rate_sets_base_amounts(
        self,
        services: ServiceScope,
        entity: Entity,
        account: Callable[[str], GLAccount],
    ) -> None:
        euro = services.bank_import.create_bank_account(
            entity.id, "Euro", currency=Currency.EUR, gl_account_id=account("1000").id
        )
        services.bank_import.add_fx_rate(
            Currency.EUR, Currency.USD, date(2025, 1, 1), Decimal("1.0850")
        )
        txn = services.bank_import.record_transaction(
            euro.id, date(2025, 1, 5), "Client EU", Decimal("100.00")
        )

        entry = services.posting.post_transaction(txn.id, account("4000").id).entry

        for line in entry.lines:
            assert line.exchange_rate == Decimal("1.0850")
        assert sum(l.base_debit or 0 for l in entry.lines) == Decimal("108.50")
        assert _balances(services, entity)["4000"] == Decimal("108.50")

    def test_override_rate_beats_stored_rate(
        self,
        services: ServiceScope,
        entity: Entity,
        account: Callable[[str], GLAccount],
    ) -> None:
        euro = services.bank_import.create_bank_account(
            entity.id, "Euro", currency=Currency.EUR, gl_account_id=account("1000").id
        )
        services.bank_import.add_fx_rate(
            Currency.EUR, Currency.USD, date(2025, 1, 1), Decimal("1.0850")
        )
        txn = services.bank_import.record_transaction(
            euro.id, date(2025, 1, 5), "Client EU", Decimal("100.00")
        )

        entry = services.posting.post_transaction(
            txn.id, account("4000").id, exchange_rate=Decimal("1.2000")
        ).entry

        assert {line.exchange_rate for line in entry.lines} == {Decimal("1.2000")}
        assert _balances(services, entity)["4000"] == Decimal("120.00")

    def test_split_rounding_remainder_goes_to_largest_split(
        self,
        services: ServiceScope,
        entity: Entity,
        account: Callable[[str], GLAccount],
    ) -> None:
        euro = services.bank_import.create_bank_account(
            entity.id, "Euro", currency=Currency.EUR, gl_account_id=account("1000").id
        )
        txn = services.bank_import.record_transaction(
            euro.id, date(2025, 1, 9), "Office run", Decimal("-10.00")
        )

        entry = services.posting.post_split(
            txn.id,
            [
                SplitInput(account("5400").id, Decimal("3.33")),
                SplitInput(account("5800").id, Decimal("3.33")),
                SplitInput(account("5600").id, Decimal("3.34")),
            ],
            exchange_rate=Decimal("1.005"),
        ).entry

        base = {line.gl_account_id: line.functional_debit for line in entry.lines}
        # 3.33 and 3.34 each round to 3.35 in base; the bank side is 10.05
        assert base[account("5400").id] == Decimal("3.35")
        assert base[account("5800").id] == Decimal("3.35")
        assert base[account("5600").id] == Decimal("3.35")
        bank_line = next(l for l in entry.lines if l.gl_account_id == account("1000").id)
        assert bank_line.functional_credit == Decimal("10.05")
        assert sum(base.values(), Decimal("0")) == Decimal("10.05")


class TestPostBulk:
    def test_all_or_nothing(
        self, services: ServiceScope, checking: BankAccount, account: Callable[[str], GLAccount]
    ) -> None:
        first = services.bank_import.record_transaction(
            checking.id, date(2025, 1, 5), "A", Decimal("10")
        )
        second = services.bank_import.record_transaction(
            checking.id, date(2025, 1, 6), "B", Decimal("20")
        )
        services.posting.post_transaction(second.id, account("4000").id)

        with pytest.raises(AlreadyPostedError):
            services.posting.post_bulk([first.id, second.id], account("4000").id)
        posted = {
            t.id: t.journal_entry_id for t in services.bank_import.list_transactions(checking.id)
        }
        assert posted[first.id] is None

    def test_posts_each(
        self, services: ServiceScope, checking: BankAccount, account: Callable[[str], GLAccount]
    ) -> None:
        ids = [
            services.bank_import.record_transaction(
                checking.id, date(2025, 1, day), f"Sale {day}", Decimal("10")
            ).id
            for day in (5, 6)
        ]

        results = services.posting.post_bulk(ids, account("4000").id)

        assert len(results) == 2
        assert all(r.transaction.journal_entry_id for r in results)


class TestPostSplit:
    """Tests for split postings."""

    def test_split_across_accounts(
        self,
        services: ServiceScope,
        entity: Entity,
        checking: BankAccount,
        account: Callable[[str], GLAccount],
    ) -> None:
        txn = services.bank_import.record_transaction(
            checking.id, date(2025, 1, 7), "COSTCO", Decimal("-150.00")
        )

        result = services.posting.post_split(
            txn.id,
            [
                SplitInput(account("5400").id, Decimal("100.00"), "Supplies"),
                SplitInput(account("5800").id, Decimal("50.00"), "Snacks"),
            ],
        )

        assert len(result.entry.lines) == 3
        balances = _balances(services, entity)
        assert balances["5400"] == Decimal("100.00")
        assert balances["5800"] == Decimal("50.00")
        assert balances["1100"] == Decimal("-150.00")

    def test_split_mismatch(
        self, services: ServiceScope, checking: BankAccount, account: Callable[[str], GLAccount]
    ) -> None:
        txn = services.bank_import.record_transaction(
            checking.id, date(2025, 1, 7), "COSTCO", Decimal("-150.00")
        )

        with pytest.raises(SplitMismatchError):
            services.posting.post_split(
                txn.id, [SplitInput(account("5400").id, Decimal("100.00"))]
            )
