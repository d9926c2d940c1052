"""Tests for the AI decision log and the action review queue."""

from datetime import UTC, datetime, timedelta

import pytest

from tenant_books.container import ServiceScope
from tenant_books.domain.ai import (
    AIActionPriority,
    AIActionStatus,
    AIActionType,
    AIDecisionType,
    RoutingResult,
)
from tenant_books.domain.entities import Entity
from tenant_books.exceptions import (
    ActionExpiredError,
    ActionNotPendingError,
    PermissionDeniedError,
)
from tenant_books.services.ai_decisions import input_hash


class TestRouting:
    """Tests for confidence routing."""

    @pytest.mark.parametrize(
        ("confidence", "expected"),
        [
            (100, RoutingResult.AUTO_APPLIED),
            (90, RoutingResult.AUTO_APPLIED),
            (89, RoutingResult.REVIEW_REQUIRED),
            (60, RoutingResult.REVIEW_REQUIRED),
            (59, RoutingResult.MANUAL),
        ],
    )
    def test_thresholds(
        self, services: ServiceScope, confidence: int, expected: RoutingResult
    ) -> None:
        assert services.ai_decisions.route(confidence) == expected


class TestDecisionLog:
    def test_input_hash_ignores_key_order(self) -> None:
        assert input_hash({"a": 1, "b": "x"}) == input_hash({"b": "x", "a": 1})
        assert len(input_hash({"a": 1})) == 64

    def test_log_and_filter(self, services: ServiceScope, entity: Entity) -> None:
        services.ai_decisions.log_decision(
            AIDecisionType.CATEGORIZATION, {"description": "x"}, 95, entity_id=entity.id
        )
        services.ai_decisions.log_decision(
            AIDecisionType.AUTO_MATCH, {"feed": "y"}, 40, entity_id=entity.id
        )

        manual = services.ai_decisions.list_decisions(routing_result=RoutingResult.MANUAL)
        categorizations = services.ai_decisions.list_decisions(
            entity_id=entity.id, decision_type=AIDecisionType.CATEGORIZATION
        )

        assert [d.decision_type for d in manual] == [AIDecisionType.AUTO_MATCH]
        assert len(categorizations) == 1
        assert categorizations[0].routing_result == RoutingResult.AUTO_APPLIED
        assert categorizations[0].input_hash == input_hash({"description": "x"})

    def test_decisions_scoped_to_tenant(
        self, services: ServiceScope, other_tenant_services: ServiceScope, entity: Entity
    ) -> None:
        services.ai_decisions.log_decision(AIDecisionType.CATEGORIZATION, {}, 95)

        assert other_tenant_services.ai_decisions.list_decisions() == []


class TestActions:
    """Tests for approving, rejecting and expiring actions."""

    def test_create_defaults(self, services: ServiceScope, entity: Entity) -> None:
        action = services.ai_decisions.create_action(
            entity.id, AIActionType.CATEGORIZATION, "Categorize STARBUCKS"
        )

        assert action.status == AIActionStatus.PENDING
        assert action.priority == AIActionPriority.MEDIUM
        assert action.expires_at > datetime.now(UTC) + timedelta(days=13)

    def test_approve(self, services: ServiceScope, entity: Entity) -> None:
        action = services.ai_decisions.create_action(
            entity.id, AIActionType.JE_DRAFT, "Accrue rent", payload={"amount": "100"}
        )

        approved = services.ai_decisions.approve_action(action.id)

        assert approved.status == AIActionStatus.APPROVED
        assert approved.reviewed_by == services.context.user_id
        assert services.ai_decisions.get_action(action.id).status == AIActionStatus.APPROVED

    def test_approve_with_changes(self, services: ServiceScope, entity: Entity) -> None:
        action = services.ai_decisions.create_action(
            entity.id, AIActionType.JE_DRAFT, "Accrue rent", payload={"amount": "100"}
        )

        modified = services.ai_decisions.approve_action(action.id, {"amount": "120"})

        assert modified.status == AIActionStatus.MODIFIED
        assert services.ai_decisions.get_action(action.id).payload == {"amount": "120"}

    def test_approve_twice(self, services: ServiceScope, entity: Entity) -> None:
        action = services.ai_decisions.create_action(entity.id, AIActionType.ALERT, "Heads up")
        services.ai_decisions.approve_action(action.id)

        with pytest.raises(ActionNotPendingError):
            services.ai_decisions.approve_action(action.id)

    def test_expired_action(self, services: ServiceScope, entity: Entity) -> None:
        action = services.ai_decisions.create_action(
            entity.id,
            AIActionType.ALERT,
            "Old",
            expires_at=datetime.now(UTC) - timedelta(minutes=1),
        )

        with pytest.raises(ActionExpiredError):
            services.ai_decisions.approve_action(action.id)
        assert services.ai_decisions.get_action(action.id).status == AIActionStatus.EXPIRED

    def test_reject_keeps_reason(self, services: ServiceScope, entity: Entity) -> None:
        action = services.ai_decisions.create_action(
            entity.id, AIActionType.RULE_SUGGESTION, "New rule", payload={"keyword": "uber"}
        )

        rejected = services.ai_decisions.reject_action(action.id, "too broad")

        assert rejected.status == AIActionStatus.REJECTED
        assert rejected.payload == {"keyword": "uber", "rejection_reason": "too broad"}

    def test_batch_approve(self, services: ServiceScope, entity: Entity) -> None:
        fresh = services.ai_decisions.create_action(entity.id, AIActionType.ALERT, "Fresh")
        stale = services.ai_decisions.create_action(
            entity.id,
            AIActionType.ALERT,
            "Stale",
            expires_at=datetime.now(UTC) - timedelta(days=1),
        )
        done = services.ai_decisions.create_action(entity.id, AIActionType.ALERT, "Done")
        services.ai_decisions.reject_action(done.id)

        result = services.ai_decisions.batch_approve([fresh.id, stale.id, done.id])

        assert result.succeeded == [fresh.id]
        assert result.expired == [stale.id]
        assert result.failed == [done.id]

    def test_batch_reject(self, services: ServiceScope, entity: Entity) -> None:
        first = services.ai_decisions.create_action(entity.id, AIActionType.ALERT, "One")
        second = services.ai_decisions.create_action(entity.id, AIActionType.ALERT, "Two")

        result = services.ai_decisions.batch_reject([first.id, second.id], "noise")

        assert result.as_counts() == {"succeeded": 2, "failed": 0, "expired": 0}

    def test_expire_stale(self, services: ServiceScope, entity: Entity) -> None:
        services.ai_decisions.create_action(entity.id, AIActionType.ALERT, "One")
        services.ai_decisions.create_action(entity.id, AIActionType.ALERT, "Two")

        expired = services.ai_decisions.expire_stale_actions(
            datetime.now(UTC) + timedelta(days=30)
        )

        assert expired == 2
        assert len(services.ai_decisions.list_actions(status=AIActionStatus.EXPIRED)) == 2

    def test_stats(self, services: ServiceScope, entity: Entity) -> None:
        services.ai_decisions.create_action(
            entity.id, AIActionType.ALERT, "Urgent", priority=AIActionPriority.HIGH
        )
        low = services.ai_decisions.create_action(
            entity.id, AIActionType.CATEGORIZATION, "Minor", priority=AIActionPriority.LOW
        )
        services.ai_decisions.approve_action(low.id)

        stats = services.ai_decisions.get_stats(entity.id)

        assert stats.total == 2
        assert stats.by_status == {"pending": 1, "approved": 1}
        assert stats.by_type == {"alert": 1, "categorization": 1}
        assert stats.pending_high_priority == 1

    def test_viewer_cannot_queue_or_expire(
        self, services: ServiceScope, viewer_services: ServiceScope, entity: Entity
    ) -> None:
        services.ai_decisions.create_action(entity.id, AIActionType.ALERT, "Existing")

        with pytest.raises(PermissionDeniedError):
            viewer_services.ai_decisions.create_action(
                entity.id, AIActionType.ALERT, "Sneaky"
            )
        with pytest.raises(PermissionDeniedError):
            viewer_services.ai_decisions.expire_stale_actions(
                datetime.now(UTC) + timedelta(days=30)
            )

        assert [a.title for a in viewer_services.ai_decisions.list_actions()] == ["Existing"]
        assert viewer_services.ai_decisions.list_actions()[0].status == AIActionStatus.PENDING
