"""Tests for the chart of accounts service."""

from collections.abc import Callable
from datetime import date

import pytest

from tenant_books.container import Container, ServiceScope
from tenant_books.domain.entities import Entity, GLAccount
from tenant_books.domain.journal import JournalEntry
from tenant_books.domain.tenancy import TenantContext
from tenant_books.domain.value_objects import AccountType, NormalBalance
from tenant_books.exceptions import (
    CrossEntityReferenceError,
    DuplicateGLAccountCodeError,
    GLAccountInUseError,
    GLAccountNotFoundError,
)
from tenant_books.services.gl_accounts import DEFAULT_COA_TEMPLATE


class TestSeedDefaultCOA:
    """Tests for seeding the default chart of accounts."""

    def test_seed_creates_template(self, services: ServiceScope, entity: Entity) -> None:
        accounts = services.gl_accounts.list_accounts(entity.id)

        assert len(accounts) == len(DEFAULT_COA_TEMPLATE)
        assert {"1000", "1200", "2000", "3100", "4000", "5990"} <= {a.code for a in accounts}

    def test_seed_is_idempotent(self, services: ServiceScope, entity: Entity) -> None:
        result = services.gl_accounts.seed_default_coa(entity.id)

        assert result.seeded is False
        assert result.account_count == len(DEFAULT_COA_TEMPLATE)

    def test_seeded_hierarchy(self, account: Callable[[str], GLAccount]) -> None:
        assert account("1010").parent_account_id == account("1000").id
        assert account("1510").parent_account_id == account("1500").id

    def test_contra_asset_is_credit_normal(
        self, account: Callable[[str], GLAccount]
    ) -> None:
        accumulated = account("1510")

        assert accumulated.account_type == AccountType.ASSET
        assert accumulated.normal_balance == NormalBalance.CREDIT


class TestCreateAccount:
    """Tests for custom account creation."""

    def test_defaults_normal_balance(self, services: ServiceScope, entity: Entity) -> None:
        created = services.gl_accounts.create_account(
            entity.id, "6100", "Software", AccountType.EXPENSE
        )

        assert created.normal_balance == NormalBalance.DEBIT
        assert services.gl_accounts.get_account(created.id).name == "Software"

    def test_duplicate_code(self, services: ServiceScope, entity: Entity) -> None:
        with pytest.raises(DuplicateGLAccountCodeError):
            services.gl_accounts.create_account(
                entity.id, "1000", "Another Cash", AccountType.ASSET
            )

    def test_parent_from_other_entity(
        self,
        container: Container,
        owner_context: TenantContext,
        services: ServiceScope,
        entity: Entity,
    ) -> None:
        other = container.tenancy_service.create_entity(owner_context, "Sister Co")
        services.gl_accounts.seed_default_coa(other.id)
        foreign_parent = services.gl_accounts.get_account_by_code(other.id, "1000")

        with pytest.raises(CrossEntityReferenceError):
            services.gl_accounts.create_account(
                entity.id, "1020", "Till", AccountType.ASSET, parent_account_id=foreign_parent.id
            )


class TestTenantIsolation:
    def test_other_tenant_cannot_read_account(
        self,
        other_tenant_services: ServiceScope,
        account: Callable[[str], GLAccount],
    ) -> None:
        with pytest.raises(GLAccountNotFoundError):
            other_tenant_services.gl_accounts.get_account(account("1000").id)


class TestUpdateAccount:
    """Tests for renaming and re-parenting accounts."""

    def test_rename(self, services: ServiceScope, account: Callable[[str], GLAccount]) -> None:
        updated = services.gl_accounts.update_account(
            account("5400").id, name="Office Supplies & Software", description="misc"
        )

        assert updated.name == "Office Supplies & Software"
        assert updated.description == "misc"
        assert updated.code == "5400"

    def test_self_parent_rejected(
        self, services: ServiceScope, account: Callable[[str], GLAccount]
    ) -> None:
        cash = account("1000")

        with pytest.raises(CrossEntityReferenceError):
            services.gl_accounts.update_account(cash.id, parent_account_id=cash.id)


class TestDeactivateAccount:
    """Tests for deactivating accounts."""

    def test_deactivate_unused_leaf(
        self, services: ServiceScope, entity: Entity, account: Callable[[str], GLAccount]
    ) -> None:
        deactivated = services.gl_accounts.deactivate_account(account("1300").id)

        assert deactivated.is_active is False
        active_codes = {a.code for a in services.gl_accounts.list_accounts(entity.id)}
        all_codes = {
            a.code
            for a in services.gl_accounts.list_accounts(entity.id, include_inactive=True)
        }
        assert "1300" not in active_codes
        assert "1300" in all_codes

    def test_parent_with_active_children(
        self, services: ServiceScope, account: Callable[[str], GLAccount]
    ) -> None:
        with pytest.raises(GLAccountInUseError):
            services.gl_accounts.deactivate_account(account("1000").id)

    def test_account_with_balance(
        self,
        services: ServiceScope,
        account: Callable[[str], GLAccount],
        post_entry: Callable[..., JournalEntry],
    ) -> None:
        post_entry(account("1100").id, account("3000").id, "500.00")

        with pytest.raises(GLAccountInUseError):
            services.gl_accounts.deactivate_account(account("1100").id)


class TestTreeAndBalances:
    """Tests for the account tree and balances."""

    def test_tree_nests_children(self, services: ServiceScope, entity: Entity) -> None:
        roots = services.gl_accounts.get_account_tree(entity.id)
        by_code = {node.account.code: node for node in roots}

        assert "1010" not in by_code
        assert [child.account.code for child in by_code["1000"].children] == ["1010"]

    def test_balances_signed_by_normal_balance(
        self,
        services: ServiceScope,
        entity: Entity,
        account: Callable[[str], GLAccount],
        post_entry: Callable[..., JournalEntry],
    ) -> None:
        post_entry(account("1100").id, account("4000").id, "250.00")

        balances = {
            b.code: b.balance
            for b in services.gl_accounts.get_account_balances(entity.id, date(2025, 12, 31))
        }

        assert balances["1100"] == 250
        assert balances["4000"] == 250
        assert balances["5400"] == 0

    def test_balances_respect_as_of(
        self,
        services: ServiceScope,
        entity: Entity,
        account: Callable[[str], GLAccount],
        post_entry: Callable[..., JournalEntry],
    ) -> None:
        post_entry(account("1100").id, account("4000").id, "250.00", date(2025, 3, 1))

        balances = {
            b.code: b.balance
            for b in services.gl_accounts.get_account_balances(entity.id, date(2025, 2, 28))
        }

        assert balances["1100"] == 0
