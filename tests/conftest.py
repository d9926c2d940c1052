"""Shared fixtures: an in-memory container, a tenant, and a seeded entity."""

from collections.abc import Callable, Iterator
from datetime import date
from decimal import Decimal
from pathlib import Path
from uuid import UUID

import pytest

from tenant_books.config import Settings
from tenant_books.container import Container, ServiceScope
from tenant_books.domain.entities import Entity, GLAccount
from tenant_books.domain.journal import JournalEntry
from tenant_books.domain.tenancy import Role, TenantContext
from tenant_books.services.interfaces import LineInput


@pytest.fixture
def container() -> Iterator[Container]:
    c = Container(settings=Settings(sqlite_path=Path(":memory:")))
    yield c
    c.close()


@pytest.fixture
def owner_context(container: Container) -> TenantContext:
    tenant, owner = container.tenancy_service.create_tenant(
        "Acme Books", "owner@acme.test", "Olive Owner"
    )
    return container.tenancy_service.resolve_context(tenant.id, owner.id)


@pytest.fixture
def services(container: Container, owner_context: TenantContext) -> ServiceScope:
    return container.scope(owner_context)


@pytest.fixture
def entity(container: Container, owner_context: TenantContext, services: ServiceScope) -> Entity:
    entity = container.tenancy_service.create_entity(owner_context, "Acme Operating Co")
    services.gl_accounts.seed_default_coa(entity.id)
    return entity


@pytest.fixture
def account(services: ServiceScope, entity: Entity) -> Callable[[str], GLAccount]:
    """Look up a seeded account of the test entity by code."""

    def _lookup(code: str) -> GLAccount:
        return services.gl_accounts.get_account_by_code(entity.id, code)

    return _lookup


@pytest.fixture
def bookkeeper_services(
    container: Container, owner_context: TenantContext
) -> ServiceScope:
    membership = container.tenancy_service.add_member(
        owner_context, "keeper@acme.test", Role.BOOKKEEPER, "Kim Keeper"
    )
    context = container.tenancy_service.resolve_context(
        owner_context.tenant_id, membership.user_id
    )
    return container.scope(context)


@pytest.fixture
def viewer_services(container: Container, owner_context: TenantContext) -> ServiceScope:
    membership = container.tenancy_service.add_member(
        owner_context, "viewer@acme.test", Role.VIEWER, "Vic Viewer"
    )
    context = container.tenancy_service.resolve_context(
        owner_context.tenant_id, membership.user_id
    )
    return container.scope(context)


@pytest.fixture
def other_tenant_services(container: Container) -> ServiceScope:
    tenant, owner = container.tenancy_service.create_tenant("Rival Inc", "boss@rival.test")
    context = container.tenancy_service.resolve_context(tenant.id, owner.id)
    return container.scope(context)


@pytest.fixture
def post_entry(
    services: ServiceScope, entity: Entity
) -> Callable[..., JournalEntry]:
    """Create and approve a two-line entry debiting one account and crediting another."""

    def _post(
        debit_account_id: UUID,
        credit_account_id: UUID,
        amount: str,
        entry_date: date = date(2025, 1, 15),
        memo: str = "Test entry",
    ) -> JournalEntry:
        entry = services.journal.create_entry(
            entity.id,
            entry_date,
            memo,
            [
                LineInput(gl_account_id=debit_account_id, debit=Decimal(amount)),
                LineInput(gl_account_id=credit_account_id, credit=Decimal(amount)),
            ],
        )
        return services.journal.approve_entry(entry.id)

    return _post
