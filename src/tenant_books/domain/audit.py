"""Audit trail domain models for tracking changes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


def _utc_now() -> datetime:
    return datetime.now(UTC)


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class AuditEntry:
    tenant_id: UUID
    model: str
    record_id: UUID
    action: AuditAction
    id: UUID = field(default_factory=uuid4)
    entity_id: UUID | None = None
    user_id: UUID | None = None
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    timestamp: datetime = field(default_factory=_utc_now)

    @property
    def changed_fields(self) -> list[str]:
        if self.before is None or self.after is None:
            return []
        keys = set(self.before) | set(self.after)
        return sorted(k for k in keys if self.before.get(k) != self.after.get(k))
