"""Transaction categorization: entity rules first, then a keyword table.

Keyword matching follows the same ordered first-hit approach as a rules
engine: the table is scanned top to bottom and the first keyword contained in
the lowercased description wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID

from tenant_books.domain.ai import (
    AIDecisionType,
    CategorizationRule,
    ConfidenceTier,
    RuleCondition,
    RuleLogic,
    RuleSource,
)
from tenant_books.domain.entities import GLAccount
from tenant_books.domain.tenancy import TenantContext
from tenant_books.exceptions import (
    CrossEntityReferenceError,
    RecordNotFoundError,
    ValidationError,
)
from tenant_books.logging_config import get_logger
from tenant_books.repositories.interfaces import (
    EntityRepository,
    GLAccountRepository,
    RuleRepository,
)
from tenant_books.services.ai_decisions import AIDecisionService
from tenant_books.services.audit import AuditService, snapshot
from tenant_books.services.tenancy import require_entity, require_write

logger = get_logger(__name__)

KEYWORD_CONFIDENCE = 85

INCOME = "income"
EXPENSE = "expense"
TRANSFER = "transfer"

# (keyword, kind, category); order matters, the first contained keyword wins
KEYWORD_PATTERNS: tuple[tuple[str, str, str], ...] = (
    ("restaurant", EXPENSE, "Meals & Entertainment"),
    ("cafe", EXPENSE, "Meals & Entertainment"),
    ("coffee", EXPENSE, "Meals & Entertainment"),
    ("starbucks", EXPENSE, "Meals & Entertainment"),
    ("tim hortons", EXPENSE, "Meals & Entertainment"),
    ("mcdonald", EXPENSE, "Meals & Entertainment"),
    ("subway", EXPENSE, "Meals & Entertainment"),
    ("pizza", EXPENSE, "Meals & Entertainment"),
    ("burger", EXPENSE, "Meals & Entertainment"),
    ("doordash", EXPENSE, "Meals & Entertainment"),
    ("uber eats", EXPENSE, "Meals & Entertainment"),
    ("skip the dishes", EXPENSE, "Meals & Entertainment"),
    ("grubhub", EXPENSE, "Meals & Entertainment"),
    ("uber", EXPENSE, "Transportation"),
    ("lyft", EXPENSE, "Transportation"),
    ("taxi", EXPENSE, "Transportation"),
    ("parking", EXPENSE, "Transportation"),
    ("gas station", EXPENSE, "Transportation"),
    ("shell", EXPENSE, "Transportation"),
    ("esso", EXPENSE, "Transportation"),
    ("petro-canada", EXPENSE, "Transportation"),
    ("transit", EXPENSE, "Transportation"),
    ("staples", EXPENSE, "Office Supplies"),
    ("amazon", EXPENSE, "Office Supplies"),
    ("office depot", EXPENSE, "Office Supplies"),
    ("best buy", EXPENSE, "Office Supplies"),
    ("adobe", EXPENSE, "Software & Subscriptions"),
    ("microsoft", EXPENSE, "Software & Subscriptions"),
    ("google workspace", EXPENSE, "Software & Subscriptions"),
    ("dropbox", EXPENSE, "Software & Subscriptions"),
    ("slack", EXPENSE, "Software & Subscriptions"),
    ("zoom", EXPENSE, "Software & Subscriptions"),
    ("github", EXPENSE, "Software & Subscriptions"),
    ("aws", EXPENSE, "Software & Subscriptions"),
    ("digitalocean", EXPENSE, "Software & Subscriptions"),
    ("heroku", EXPENSE, "Software & Subscriptions"),
    ("netlify", EXPENSE, "Software & Subscriptions"),
    ("vercel", EXPENSE, "Software & Subscriptions"),
    ("electricity", EXPENSE, "Utilities"),
    ("hydro", EXPENSE, "Utilities"),
    ("internet", EXPENSE, "Utilities"),
    ("phone", EXPENSE, "Utilities"),
    ("rogers", EXPENSE, "Utilities"),
    ("bell", EXPENSE, "Utilities"),
    ("telus", EXPENSE, "Utilities"),
    ("shaw", EXPENSE, "Utilities"),
    ("rent", EXPENSE, "Rent"),
    ("lease", EXPENSE, "Rent"),
    ("property management", EXPENSE, "Rent"),
    ("legal", EXPENSE, "Professional Services"),
    ("lawyer", EXPENSE, "Professional Services"),
    ("accounting", EXPENSE, "Professional Services"),
    ("consultant", EXPENSE, "Professional Services"),
    ("consulting", EXPENSE, "Professional Services"),
    ("google ads", EXPENSE, "Marketing & Advertising"),
    ("facebook ads", EXPENSE, "Marketing & Advertising"),
    ("linkedin ads", EXPENSE, "Marketing & Advertising"),
    ("advertising", EXPENSE, "Marketing & Advertising"),
    ("marketing", EXPENSE, "Marketing & Advertising"),
    ("insurance", EXPENSE, "Insurance"),
    ("bank fee", EXPENSE, "Bank Fees"),
    ("service charge", EXPENSE, "Bank Fees"),
    ("monthly fee", EXPENSE, "Bank Fees"),
    ("overdraft", EXPENSE, "Bank Fees"),
    ("payment received", INCOME, "Sales Revenue"),
    ("invoice payment", INCOME, "Sales Revenue"),
    ("stripe", INCOME, "Sales Revenue"),
    ("paypal", INCOME, "Sales Revenue"),
    ("square", INCOME, "Sales Revenue"),
    ("deposit", INCOME, "Sales Revenue"),
    ("interest", INCOME, "Interest Income"),
    ("dividend", INCOME, "Investment Income"),
    ("payroll", EXPENSE, "Payroll"),
    ("salary", EXPENSE, "Payroll"),
    ("wages", EXPENSE, "Payroll"),
    ("employee", EXPENSE, "Payroll"),
    ("cra", EXPENSE, "Taxes"),
    ("tax payment", EXPENSE, "Taxes"),
    ("gst", EXPENSE, "Taxes"),
    ("hst", EXPENSE, "Taxes"),
    ("pst", EXPENSE, "Taxes"),
    ("income tax", EXPENSE, "Taxes"),
    ("transfer", TRANSFER, "Transfer"),
    ("e-transfer", TRANSFER, "Transfer"),
    ("interac", TRANSFER, "Transfer"),
)

CATEGORY_TO_COA_CODE: dict[str, str] = {
    "meals & entertainment": "5800",
    "transportation": "5800",
    "office supplies": "5400",
    "software & subscriptions": "5400",
    "utilities": "5600",
    "rent": "5600",
    "professional services": "5500",
    "marketing & advertising": "5100",
    "insurance": "5300",
    "bank fees": "5200",
    "sales revenue": "4000",
    "interest income": "4200",
    "investment income": "4300",
    "other income": "4300",
    "payroll": "5700",
    "cost of goods sold": "5000",
    "depreciation": "5900",
    "taxes": "2400",
}

DEFAULT_GL_CODES = {INCOME: "4300", EXPENSE: "5990"}


@dataclass
class CategorySuggestion:
    category_name: str | None
    confidence: int
    match_reason: str
    gl_account_id: UUID | None = None
    gl_account_code: str | None = None
    rule_id: UUID | None = None
    decision_id: UUID | None = None

    @property
    def confidence_tier(self) -> ConfidenceTier:
        return ConfidenceTier.for_score(self.confidence)


def match_keyword(description: str) -> tuple[str, str, str] | None:
    """First (keyword, kind, category) whose keyword appears in the description."""
    text = description.lower().strip()
    for pattern in KEYWORD_PATTERNS:
        if pattern[0] in text:
            return pattern
    return None


def category_kind(category_name: str | None, amount: Decimal) -> str:
    if category_name:
        for _, kind, name in KEYWORD_PATTERNS:
            if name.lower() == category_name.lower():
                return INCOME if kind == INCOME else EXPENSE
    return INCOME if amount >= 0 else EXPENSE


class CategorizationService:
    def __init__(
        self,
        rule_repo: RuleRepository,
        gl_account_repo: GLAccountRepository,
        entity_repo: EntityRepository,
        ai_decisions: AIDecisionService,
        audit: AuditService,
        context: TenantContext,
    ) -> None:
        self._rule_repo = rule_repo
        self._gl_account_repo = gl_account_repo
        self._entity_repo = entity_repo
        self._ai_decisions = ai_decisions
        self._audit = audit
        self._context = context

    def categorize(
        self,
        entity_id: UUID,
        description: str,
        amount: Decimal,
        account_id: UUID | None = None,
        transaction_id: UUID | None = None,
    ) -> CategorySuggestion:
        """Suggest a category and GL account for a bank transaction.

        Args:
            entity_id: Entity whose rules and chart of accounts apply
            description: Bank description as imported
            amount: Signed amount, positive for inflows
            account_id: Bank account the transaction belongs to, for rules on account_id
            transaction_id: Recorded on the decision log entry

        Returns:
            The suggestion, with the id of the decision log entry written for it
        """
        require_write(self._context, "categorize")
        require_entity(self._entity_repo, self._context, entity_id)
        values: dict[str, Any] = {
            "description": description,
            "amount": amount,
            "account_id": str(account_id) if account_id else None,
        }

        suggestion = self._apply_rules(entity_id, values)
        if suggestion is None:
            suggestion = self._apply_keywords(entity_id, description, amount)
        if suggestion is None:
            suggestion = CategorySuggestion(
                category_name=None, confidence=0, match_reason="No match found"
            )

        decision = self._ai_decisions.log_decision(
            AIDecisionType.CATEGORIZATION,
            {"description": description, "amount": str(amount)},
            confidence=suggestion.confidence,
            explanation=suggestion.match_reason,
            entity_id=entity_id,
            document_id=transaction_id,
            extracted_data={
                "category_name": suggestion.category_name,
                "gl_account_code": suggestion.gl_account_code,
                "rule_id": str(suggestion.rule_id) if suggestion.rule_id else None,
            },
        )
        suggestion.decision_id = decision.id
        logger.info(
            "transaction_categorized",
            entity_id=str(entity_id),
            category=suggestion.category_name,
            confidence=suggestion.confidence,
            routing=decision.routing_result.value,
        )
        return suggestion

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def create_rule(
        self,
        entity_id: UUID,
        name: str,
        conditions: list[RuleCondition],
        operator: RuleLogic = RuleLogic.AND,
        category_name: str | None = None,
        gl_account_id: UUID | None = None,
        source: RuleSource = RuleSource.USER_MANUAL,
        flag_for_review: bool = False,
    ) -> CategorizationRule:
        require_write(self._context, "create_rule")
        require_entity(self._entity_repo, self._context, entity_id)
        if gl_account_id is not None:
            self._check_gl_account(gl_account_id, entity_id)
        try:
            rule = CategorizationRule(
                entity_id=entity_id,
                name=name,
                conditions=conditions,
                operator=operator,
                category_name=category_name,
                gl_account_id=gl_account_id,
                source=source,
                user_approved=source == RuleSource.USER_MANUAL,
                flag_for_review=flag_for_review,
            )
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        self._rule_repo.add(rule)
        self._audit.log_create(
            "CategorizationRule",
            rule.id,
            snapshot(rule, "name", "source", "category_name", "gl_account_id"),
            entity_id=entity_id,
        )
        logger.info("rule_created", rule_id=str(rule.id), source=source.value)
        return rule

    def get_rule(self, rule_id: UUID) -> CategorizationRule:
        rule = self._rule_repo.get(rule_id)
        if rule is None:
            raise RecordNotFoundError("rule", rule_id)
        entity = self._entity_repo.get(rule.entity_id)
        if entity is None or entity.tenant_id != self._context.tenant_id:
            raise RecordNotFoundError("rule", rule_id)
        return rule

    def list_rules(self, entity_id: UUID) -> list[CategorizationRule]:
        require_entity(self._entity_repo, self._context, entity_id)
        return self._rule_repo.list_active(entity_id)

    def approve_rule(self, rule_id: UUID) -> CategorizationRule:
        """Mark an AI-suggested rule as approved, which raises its confidence."""
        require_write(self._context, "approve_rule")
        rule = self.get_rule(rule_id)
        rule.user_approved = True
        self._rule_repo.update(rule)
        self._audit.log_update(
            "CategorizationRule",
            rule.id,
            {"user_approved": False},
            {"user_approved": True},
            entity_id=rule.entity_id,
        )
        return rule

    def deactivate_rule(self, rule_id: UUID) -> CategorizationRule:
        require_write(self._context, "deactivate_rule")
        rule = self.get_rule(rule_id)
        rule.is_active = False
        self._rule_repo.update(rule)
        self._audit.log_update(
            "CategorizationRule",
            rule.id,
            {"is_active": True},
            {"is_active": False},
            entity_id=rule.entity_id,
        )
        return rule

    def _apply_rules(
        self, entity_id: UUID, values: dict[str, Any]
    ) -> CategorySuggestion | None:
        for rule in self._rule_repo.list_active(entity_id):
            if not rule.matches(values):
                continue
            rule.execution_count += 1
            self._rule_repo.update(rule)
            gl_account = self._resolve_gl(
                entity_id,
                rule.gl_account_id,
                rule.category_name,
                category_kind(rule.category_name, values["amount"]),
            )
            return CategorySuggestion(
                category_name=rule.category_name or rule.name,
                confidence=rule.confidence,
                match_reason=f"Rule: {rule.describe()}",
                gl_account_id=gl_account.id if gl_account else None,
                gl_account_code=gl_account.code if gl_account else None,
                rule_id=rule.id,
            )
        return None

    def _apply_keywords(
        self, entity_id: UUID, description: str, amount: Decimal
    ) -> CategorySuggestion | None:
        match = match_keyword(description)
        if match is None:
            return None
        keyword, kind, category_name = match
        gl_account = self._resolve_gl(
            entity_id, None, category_name, INCOME if kind == INCOME else EXPENSE
        )
        return CategorySuggestion(
            category_name=category_name,
            confidence=KEYWORD_CONFIDENCE,
            match_reason=f'Keyword match: "{keyword}"',
            gl_account_id=gl_account.id if gl_account else None,
            gl_account_code=gl_account.code if gl_account else None,
        )

    def _resolve_gl(
        self,
        entity_id: UUID,
        gl_account_id: UUID | None,
        category_name: str | None,
        kind: str,
    ) -> GLAccount | None:
        if gl_account_id is not None:
            account = self._gl_account_repo.get(gl_account_id)
            if account is not None and account.entity_id == entity_id and account.is_active:
                return account

        if category_name:
            code = CATEGORY_TO_COA_CODE.get(category_name.lower())
            if code is not None:
                account = self._gl_account_repo.get_by_code(entity_id, code)
                if account is not None and account.is_active:
                    return account

        account = self._gl_account_repo.get_by_code(entity_id, DEFAULT_GL_CODES[kind])
        if account is not None and account.is_active:
            return account
        logger.warning(
            "gl_resolution_failed",
            entity_id=str(entity_id),
            category=category_name,
            kind=kind,
        )
        return None

    def _check_gl_account(self, gl_account_id: UUID, entity_id: UUID) -> None:
        account = self._gl_account_repo.get(gl_account_id)
        if account is None or account.entity_id != entity_id:
            raise CrossEntityReferenceError([str(gl_account_id)], entity_id)
