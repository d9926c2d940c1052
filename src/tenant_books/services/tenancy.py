"""Tenants, memberships and entities, plus the access checks shared by services."""

from __future__ import annotations

from uuid import UUID

from tenant_books.domain.audit import AuditAction, AuditEntry
from tenant_books.domain.entities import Entity
from tenant_books.domain.tenancy import Role, Tenant, TenantContext, TenantMembership, User
from tenant_books.domain.value_objects import Currency, EntityType
from tenant_books.exceptions import (
    EntityNotFoundError,
    PermissionDeniedError,
    TenantAccessDeniedError,
    TenantNotFoundError,
)
from tenant_books.logging_config import get_logger
from tenant_books.repositories.interfaces import (
    AuditRepository,
    EntityRepository,
    TenantRepository,
)
from tenant_books.services.audit import snapshot

logger = get_logger(__name__)


def require_entity(
    entity_repo: EntityRepository, context: TenantContext, entity_id: UUID
) -> Entity:
    """Load an entity, hiding entities of other tenants behind a not-found."""
    entity = entity_repo.get(entity_id)
    if entity is None or entity.tenant_id != context.tenant_id:
        raise EntityNotFoundError(entity_id)
    return entity


def require_write(context: TenantContext, action: str) -> None:
    if not context.role.can_write:
        raise PermissionDeniedError(action, context.role.value)


class TenancyService:
    def __init__(
        self,
        tenant_repo: TenantRepository,
        entity_repo: EntityRepository,
        audit_repo: AuditRepository,
    ) -> None:
        self._tenant_repo = tenant_repo
        self._entity_repo = entity_repo
        self._audit_repo = audit_repo

    def create_tenant(
        self, name: str, owner_email: str, owner_name: str = ""
    ) -> tuple[Tenant, User]:
        """Create a tenant and make ``owner_email`` its owner.

        An existing user with that email is reused.
        """
        if not name.strip():
            raise ValueError("Tenant name must not be empty")
        tenant = Tenant(name=name.strip())
        self._tenant_repo.add(tenant)

        user = self._tenant_repo.get_user_by_email(owner_email)
        if user is None:
            user = User(email=owner_email, name=owner_name)
            self._tenant_repo.add_user(user)

        self._tenant_repo.add_membership(
            TenantMembership(tenant_id=tenant.id, user_id=user.id, role=Role.OWNER)
        )
        logger.info("tenant_created", tenant_id=str(tenant.id), owner_id=str(user.id))
        return tenant, user

    def add_member(
        self,
        context: TenantContext,
        email: str,
        role: Role = Role.BOOKKEEPER,
        name: str = "",
    ) -> TenantMembership:
        if context.role not in (Role.OWNER, Role.ADMIN):
            raise PermissionDeniedError("add_member", context.role.value)
        user = self._tenant_repo.get_user_by_email(email)
        if user is None:
            user = User(email=email, name=name)
            self._tenant_repo.add_user(user)
        membership = TenantMembership(tenant_id=context.tenant_id, user_id=user.id, role=role)
        self._tenant_repo.add_membership(membership)
        logger.info(
            "tenant_member_added",
            tenant_id=str(context.tenant_id),
            user_id=str(user.id),
            role=role.value,
        )
        return membership

    def resolve_context(self, tenant_id: UUID, user_id: UUID) -> TenantContext:
        """Build the acting context for a user, using the role stored on the membership."""
        if self._tenant_repo.get(tenant_id) is None:
            raise TenantNotFoundError(tenant_id)
        membership = self._tenant_repo.get_membership(tenant_id, user_id)
        if membership is None:
            raise TenantAccessDeniedError(tenant_id, user_id)
        return TenantContext(tenant_id=tenant_id, user_id=user_id, role=membership.role)

    def list_tenants(self) -> list[Tenant]:
        return list(self._tenant_repo.list_all())

    def create_entity(
        self,
        context: TenantContext,
        name: str,
        entity_type: EntityType = EntityType.CORPORATION,
        functional_currency: Currency = Currency.USD,
        fiscal_year_start: int = 1,
        country: str = "US",
    ) -> Entity:
        require_write(context, "create_entity")
        entity = Entity(
            tenant_id=context.tenant_id,
            name=name,
            entity_type=entity_type,
            functional_currency=functional_currency,
            fiscal_year_start=fiscal_year_start,
            country=country,
        )
        self._entity_repo.add(entity)
        self._audit_repo.add(
            AuditEntry(
                tenant_id=context.tenant_id,
                model="Entity",
                record_id=entity.id,
                action=AuditAction.CREATE,
                entity_id=entity.id,
                user_id=context.user_id,
                after=snapshot(entity, "name", "entity_type", "functional_currency"),
            )
        )
        logger.info(
            "entity_created",
            tenant_id=str(context.tenant_id),
            entity_id=str(entity.id),
            functional_currency=functional_currency.value,
        )
        return entity

    def get_entity(self, context: TenantContext, entity_id: UUID) -> Entity:
        return require_entity(self._entity_repo, context, entity_id)

    def list_entities(self, context: TenantContext) -> list[Entity]:
        return list(self._entity_repo.list_by_tenant(context.tenant_id))
