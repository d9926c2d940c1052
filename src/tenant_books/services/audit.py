"""Audit trail service for tracking changes to tenant records."""

from __future__ import annotations

import dataclasses
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from tenant_books.domain.audit import AuditAction, AuditEntry
from tenant_books.domain.tenancy import TenantContext
from tenant_books.logging_config import get_logger
from tenant_books.repositories.interfaces import AuditRepository

logger = get_logger(__name__)


def to_jsonable(value: Any) -> Any:
    """Convert domain values into JSON-compatible primitives."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: to_jsonable(getattr(value, f.name))
            for f in dataclasses.fields(value)
        }
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_jsonable(v) for v in value]
    return value


def snapshot(record: Any, *fields: str) -> dict[str, Any]:
    """Capture selected attributes of a record for the audit log."""
    return {name: to_jsonable(getattr(record, name)) for name in fields}


class AuditService:
    def __init__(
        self,
        audit_repo: AuditRepository,
        context: TenantContext,
        enabled: bool = True,
    ) -> None:
        self._audit_repo = audit_repo
        self._context = context
        self._enabled = enabled

    def log_create(
        self,
        model: str,
        record_id: UUID,
        after: dict[str, Any],
        entity_id: UUID | None = None,
    ) -> AuditEntry | None:
        return self._record(model, record_id, AuditAction.CREATE, entity_id, None, after)

    def log_update(
        self,
        model: str,
        record_id: UUID,
        before: dict[str, Any],
        after: dict[str, Any],
        entity_id: UUID | None = None,
    ) -> AuditEntry | None:
        return self._record(model, record_id, AuditAction.UPDATE, entity_id, before, after)

    def log_delete(
        self,
        model: str,
        record_id: UUID,
        before: dict[str, Any],
        entity_id: UUID | None = None,
    ) -> AuditEntry | None:
        return self._record(model, record_id, AuditAction.DELETE, entity_id, before, None)

    def history(self, record_id: UUID) -> list[AuditEntry]:
        return self._audit_repo.list_for_record(self._context.tenant_id, record_id)

    def recent(self, model: str | None = None, limit: int = 100) -> list[AuditEntry]:
        return self._audit_repo.list_by_tenant(self._context.tenant_id, model, limit)

    def _record(
        self,
        model: str,
        record_id: UUID,
        action: AuditAction,
        entity_id: UUID | None,
        before: dict[str, Any] | None,
        after: dict[str, Any] | None,
    ) -> AuditEntry | None:
        if not self._enabled:
            return None
        entry = AuditEntry(
            tenant_id=self._context.tenant_id,
            model=model,
            record_id=record_id,
            action=action,
            entity_id=entity_id,
            user_id=self._context.user_id,
            before=before,
            after=after,
        )
        self._audit_repo.add(entry)
        logger.debug(
            "audit_recorded",
            model=model,
            record_id=str(record_id),
            action=action.value,
        )
        return entry
