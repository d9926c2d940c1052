"""AI decision audit log and the review queue of AI-proposed actions."""

from __future__ import annotations

import hashlib
import json
from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from tenant_books.domain.ai import (
    AIAction,
    AIActionPriority,
    AIActionStatus,
    AIActionType,
    AIDecisionLog,
    AIDecisionType,
    RoutingResult,
)
from tenant_books.domain.tenancy import TenantContext
from tenant_books.exceptions import (
    ActionExpiredError,
    ActionNotPendingError,
    RecordNotFoundError,
    TenantBooksError,
)
from tenant_books.logging_config import get_logger
from tenant_books.repositories.interfaces import (
    AIActionRepository,
    AIDecisionLogRepository,
    EntityRepository,
)
from tenant_books.services.tenancy import require_entity, require_write

logger = get_logger(__name__)


def input_hash(data: Any) -> str:
    """SHA-256 of the canonical JSON form of a decision's input."""
    canonical = json.dumps(data, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(canonical.encode()).hexdigest()


@dataclass
class BatchResult:
    succeeded: list[UUID] = field(default_factory=list)
    failed: list[UUID] = field(default_factory=list)
    expired: list[UUID] = field(default_factory=list)

    def as_counts(self) -> dict[str, int]:
        return {
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
            "expired": len(self.expired),
        }


@dataclass
class ActionStats:
    total: int
    by_status: dict[str, int]
    by_type: dict[str, int]
    pending_high_priority: int


class AIDecisionService:
    """Records every automated decision and manages actions awaiting review.

    Confidence scores are integers from 0 to 100. A score at or above the
    auto-apply threshold is applied directly, one at or above the review
    threshold is queued for a person, anything lower is left to manual work.
    """

    def __init__(
        self,
        decision_repo: AIDecisionLogRepository,
        action_repo: AIActionRepository,
        entity_repo: EntityRepository,
        context: TenantContext,
        auto_apply_threshold: int = 90,
        review_threshold: int = 60,
        action_ttl_days: int = 14,
        model_version: str = "keyword-rules-v1",
    ) -> None:
        self._decision_repo = decision_repo
        self._action_repo = action_repo
        self._entity_repo = entity_repo
        self._context = context
        self._auto_apply_threshold = auto_apply_threshold
        self._review_threshold = review_threshold
        self._action_ttl = timedelta(days=action_ttl_days)
        self._model_version = model_version

    def route(self, confidence: int) -> RoutingResult:
        if confidence >= self._auto_apply_threshold:
            return RoutingResult.AUTO_APPLIED
        if confidence >= self._review_threshold:
            return RoutingResult.REVIEW_REQUIRED
        return RoutingResult.MANUAL

    def log_decision(
        self,
        decision_type: AIDecisionType,
        input_data: dict[str, Any],
        confidence: int,
        explanation: str = "",
        entity_id: UUID | None = None,
        document_id: UUID | None = None,
        extracted_data: dict[str, Any] | None = None,
        routing_result: RoutingResult | None = None,
    ) -> AIDecisionLog:
        decision = AIDecisionLog(
            tenant_id=self._context.tenant_id,
            decision_type=decision_type,
            input_hash=input_hash(input_data),
            model_version=self._model_version,
            routing_result=routing_result or self.route(confidence),
            entity_id=entity_id,
            document_id=document_id,
            confidence=confidence,
            explanation=explanation,
            extracted_data=extracted_data,
        )
        self._decision_repo.add(decision)
        logger.info(
            "ai_decision_logged",
            decision_type=decision_type.value,
            routing_result=decision.routing_result.value,
            confidence=confidence,
        )
        return decision

    def list_decisions(
        self,
        entity_id: UUID | None = None,
        decision_type: AIDecisionType | None = None,
        routing_result: RoutingResult | None = None,
        limit: int = 100,
    ) -> list[AIDecisionLog]:
        return self._decision_repo.list_decisions(
            self._context.tenant_id, entity_id, decision_type, routing_result, limit
        )

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def create_action(
        self,
        entity_id: UUID,
        action_type: AIActionType,
        title: str,
        description: str = "",
        payload: dict[str, Any] | None = None,
        priority: AIActionPriority = AIActionPriority.MEDIUM,
        confidence: int | None = None,
        expires_at: datetime | None = None,
    ) -> AIAction:
        require_write(self._context, "create_ai_action")
        require_entity(self._entity_repo, self._context, entity_id)
        action = AIAction(
            tenant_id=self._context.tenant_id,
            entity_id=entity_id,
            action_type=action_type,
            title=title,
            description=description,
            payload=payload or {},
            priority=priority,
            confidence=confidence,
            expires_at=expires_at or datetime.now(UTC) + self._action_ttl,
        )
        self._action_repo.add(action)
        logger.info(
            "ai_action_created",
            action_id=str(action.id),
            action_type=action_type.value,
            priority=priority.value,
        )
        return action

    def get_action(self, action_id: UUID) -> AIAction:
        action = self._action_repo.get(action_id)
        if action is None or action.tenant_id != self._context.tenant_id:
            raise RecordNotFoundError("action", action_id)
        return action

    def list_actions(
        self,
        entity_id: UUID | None = None,
        status: AIActionStatus | None = None,
        action_type: AIActionType | None = None,
    ) -> list[AIAction]:
        return self._action_repo.list_actions(
            self._context.tenant_id, entity_id, status, action_type
        )

    def approve_action(
        self, action_id: UUID, modified_payload: dict[str, Any] | None = None
    ) -> AIAction:
        """Approve a pending action, optionally with a corrected payload.

        Raises:
            ActionNotPendingError: If the action was already reviewed
            ActionExpiredError: If the action passed its expiry; it is marked EXPIRED
        """
        require_write(self._context, "approve_ai_action")
        action = self._pending_action(action_id, "approve")
        if modified_payload is not None:
            action.payload = modified_payload
            return self._review(action, AIActionStatus.MODIFIED)
        return self._review(action, AIActionStatus.APPROVED)

    def reject_action(self, action_id: UUID, reason: str = "") -> AIAction:
        require_write(self._context, "reject_ai_action")
        action = self.get_action(action_id)
        if not action.is_pending:
            raise ActionNotPendingError(action.id, action.status.value, "reject")
        if reason:
            action.payload = {**action.payload, "rejection_reason": reason}
        return self._review(action, AIActionStatus.REJECTED)

    def batch_approve(self, action_ids: list[UUID]) -> BatchResult:
        require_write(self._context, "approve_ai_action")
        result = BatchResult()
        for action_id in action_ids:
            try:
                self.approve_action(action_id)
            except ActionExpiredError:
                result.expired.append(action_id)
            except TenantBooksError:
                result.failed.append(action_id)
            else:
                result.succeeded.append(action_id)
        logger.info("ai_actions_batch_approved", **result.as_counts())
        return result

    def batch_reject(self, action_ids: list[UUID], reason: str = "") -> BatchResult:
        require_write(self._context, "reject_ai_action")
        result = BatchResult()
        for action_id in action_ids:
            try:
                self.reject_action(action_id, reason)
            except TenantBooksError:
                result.failed.append(action_id)
            else:
                result.succeeded.append(action_id)
        logger.info("ai_actions_batch_rejected", **result.as_counts())
        return result

    def expire_stale_actions(self, now: datetime | None = None) -> int:
        require_write(self._context, "expire_ai_actions")
        count = self._action_repo.expire_pending_before(
            self._context.tenant_id, now or datetime.now(UTC)
        )
        if count:
            logger.info("ai_actions_expired", count=count)
        return count

    def get_stats(self, entity_id: UUID | None = None) -> ActionStats:
        actions = self.list_actions(entity_id)
        by_status = Counter(action.status.value for action in actions)
        by_type = Counter(action.action_type.value for action in actions)
        high_priority = sum(
            1
            for action in actions
            if action.is_pending
            and action.priority in (AIActionPriority.HIGH, AIActionPriority.CRITICAL)
        )
        return ActionStats(
            total=len(actions),
            by_status=dict(by_status),
            by_type=dict(by_type),
            pending_high_priority=high_priority,
        )

    def _pending_action(self, action_id: UUID, verb: str) -> AIAction:
        action = self.get_action(action_id)
        if not action.is_pending:
            raise ActionNotPendingError(action.id, action.status.value, verb)
        if action.is_expired():
            action.status = AIActionStatus.EXPIRED
            self._action_repo.update(action)
            raise ActionExpiredError(action.id)
        return action

    def _review(self, action: AIAction, status: AIActionStatus) -> AIAction:
        action.status = status
        action.reviewed_by = self._context.user_id
        action.reviewed_at = datetime.now(UTC)
        self._action_repo.update(action)
        logger.info(
            "ai_action_reviewed",
            action_id=str(action.id),
            status=status.value,
        )
        return action
