"""Categorization rules, the AI decision audit log and reviewable AI actions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


def _utc_now() -> datetime:
    return datetime.now(UTC)


class RuleSource(str, Enum):
    USER_MANUAL = "user_manual"
    AI_SUGGESTED = "ai_suggested"
    SYSTEM_DEFAULT = "system_default"

    @property
    def priority(self) -> int:
        return _RULE_PRIORITY[self]


_RULE_PRIORITY = {
    RuleSource.USER_MANUAL: 1,
    RuleSource.AI_SUGGESTED: 2,
    RuleSource.SYSTEM_DEFAULT: 3,
}


class ConditionOperator(str, Enum):
    CONTAINS = "contains"
    EQ = "eq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"


class RuleLogic(str, Enum):
    AND = "AND"
    OR = "OR"


RULE_FIELDS = ("description", "amount", "account_id")

_OPERATOR_TEXT = {
    ConditionOperator.CONTAINS: "contains",
    ConditionOperator.EQ: "equals",
    ConditionOperator.GT: ">",
    ConditionOperator.GTE: ">=",
    ConditionOperator.LT: "<",
    ConditionOperator.LTE: "<=",
}


@dataclass(frozen=True)
class RuleCondition:
    field: str
    op: ConditionOperator
    value: str | Decimal

    def __post_init__(self) -> None:
        if self.field not in RULE_FIELDS:
            raise ValueError(f"Unsupported rule field: {self.field}")

    def matches(self, values: dict[str, Any]) -> bool:
        actual = values.get(self.field)
        if actual is None:
            return False
        if self.op == ConditionOperator.CONTAINS:
            return str(self.value).lower() in str(actual).lower()
        if self.op == ConditionOperator.EQ:
            if isinstance(actual, Decimal):
                return actual == Decimal(str(self.value))
            return str(actual) == str(self.value)
        if not isinstance(actual, Decimal):
            return False
        threshold = Decimal(str(self.value))
        if self.op == ConditionOperator.GT:
            return actual > threshold
        if self.op == ConditionOperator.GTE:
            return actual >= threshold
        if self.op == ConditionOperator.LT:
            return actual < threshold
        return actual <= threshold

    def describe(self) -> str:
        if isinstance(self.value, Decimal):
            value = f"{self.value:.2f}"
        else:
            value = f'"{self.value}"'
        return f"{self.field} {_OPERATOR_TEXT[self.op]} {value}"

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "op": self.op.value, "value": str(self.value)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RuleCondition:
        op = ConditionOperator(data["op"])
        value: str | Decimal = data["value"]
        if op != ConditionOperator.CONTAINS and data["field"] == "amount":
            value = Decimal(str(value))
        return cls(field=data["field"], op=op, value=value)


@dataclass
class CategorizationRule:
    entity_id: UUID
    name: str
    conditions: list[RuleCondition]
    operator: RuleLogic = RuleLogic.AND
    category_name: str | None = None
    gl_account_id: UUID | None = None
    source: RuleSource = RuleSource.USER_MANUAL
    id: UUID = field(default_factory=uuid4)
    user_approved: bool = False
    flag_for_review: bool = False
    is_active: bool = True
    execution_count: int = 0
    created_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        if not self.conditions:
            raise ValueError("A rule needs at least one condition")
        if self.category_name is None and self.gl_account_id is None and not self.flag_for_review:
            raise ValueError("A rule must set a category, a GL account or flag for review")

    def matches(self, values: dict[str, Any]) -> bool:
        results = (condition.matches(values) for condition in self.conditions)
        if self.operator == RuleLogic.AND:
            return all(results)
        return any(results)

    @property
    def confidence(self) -> int:
        if self.source == RuleSource.USER_MANUAL:
            return 95
        if self.source == RuleSource.AI_SUGGESTED:
            return 90 if self.user_approved else 85
        return 85

    def describe(self) -> str:
        return f" {self.operator.value} ".join(c.describe() for c in self.conditions)


class ConfidenceTier(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def for_score(cls, confidence: int) -> ConfidenceTier:
        if confidence >= 85:
            return cls.HIGH
        if confidence >= 60:
            return cls.MEDIUM
        return cls.LOW


class AIDecisionType(str, Enum):
    CATEGORIZATION = "categorization"
    AUTO_MATCH = "auto_match"
    DOCUMENT_EXTRACTION = "document_extraction"
    JE_SUGGESTION = "je_suggestion"


class RoutingResult(str, Enum):
    AUTO_APPLIED = "auto_applied"
    REVIEW_REQUIRED = "review_required"
    MANUAL = "manual"
    REJECTED = "rejected"


@dataclass
class AIDecisionLog:
    tenant_id: UUID
    decision_type: AIDecisionType
    input_hash: str
    model_version: str
    routing_result: RoutingResult
    id: UUID = field(default_factory=uuid4)
    entity_id: UUID | None = None
    document_id: UUID | None = None
    confidence: int | None = None
    explanation: str = ""
    extracted_data: dict[str, Any] | None = None
    processing_time_ms: int | None = None
    created_at: datetime = field(default_factory=_utc_now)


class AIActionType(str, Enum):
    CATEGORIZATION = "categorization"
    JE_DRAFT = "je_draft"
    RULE_SUGGESTION = "rule_suggestion"
    ALERT = "alert"


class AIActionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    MODIFIED = "modified"
    EXPIRED = "expired"


class AIActionPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class AIAction:
    tenant_id: UUID
    entity_id: UUID
    action_type: AIActionType
    title: str
    expires_at: datetime
    id: UUID = field(default_factory=uuid4)
    description: str = ""
    payload: dict[str, Any] = field(default_factory=dict)
    priority: AIActionPriority = AIActionPriority.MEDIUM
    status: AIActionStatus = AIActionStatus.PENDING
    confidence: int | None = None
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    created_at: datetime = field(default_factory=_utc_now)

    @property
    def is_pending(self) -> bool:
        return self.status == AIActionStatus.PENDING

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at < (now or _utc_now())
