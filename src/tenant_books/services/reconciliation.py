"""Reconciliation of bank-feed rows against recorded bank transactions."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from uuid import UUID

from tenant_books.domain.ai import AIDecisionType
from tenant_books.domain.banking import (
    BankAccount,
    BankFeedStatus,
    BankFeedTransaction,
    BankTransaction,
    MatchStatus,
    TransactionMatch,
)
from tenant_books.domain.tenancy import TenantContext
from tenant_books.exceptions import AlreadyMatchedError, RecordNotFoundError
from tenant_books.logging_config import get_logger
from tenant_books.repositories.interfaces import (
    BankAccountRepository,
    BankFeedRepository,
    BankTransactionRepository,
    EntityRepository,
    TransactionMatchRepository,
)
from tenant_books.repositories.sqlite import SQLiteDatabase
from tenant_books.services.ai_decisions import AIDecisionService
from tenant_books.services.interfaces import (
    MatchSuggestion,
    ReconciliationService,
    ReconciliationStatus,
)
from tenant_books.services.matching import description_similarity
from tenant_books.services.tenancy import require_write

logger = get_logger(__name__)

SCORE_EXACT_AMOUNT = Decimal("0.40")
SCORE_DATE_CLOSE = Decimal("0.40")
SCORE_DATE_NEAR = Decimal("0.20")
SCORE_DESCRIPTION_STRONG = Decimal("0.20")
SCORE_DESCRIPTION_WEAK = Decimal("0.15")
CLOSE_DATE_DAYS = 3
STRONG_SIMILARITY = 0.90
WEAK_SIMILARITY = 0.70


def score_candidate(
    feed_txn: BankFeedTransaction, candidate: BankTransaction, window_days: int
) -> tuple[Decimal, list[str]]:
    """Score one recorded transaction against a feed row.

    Returns a zero score when the amounts differ or the dates are further
    apart than the window; both are hard requirements for a match.
    """
    if candidate.amount.amount != feed_txn.amount.amount:
        return Decimal("0"), []
    day_gap = abs((candidate.transaction_date - feed_txn.transaction_date).days)
    if day_gap > window_days:
        return Decimal("0"), []

    score = SCORE_EXACT_AMOUNT
    reasons = ["exact amount"]
    if day_gap <= CLOSE_DATE_DAYS:
        score += SCORE_DATE_CLOSE
        reasons.append(f"date within {CLOSE_DATE_DAYS} days")
    else:
        score += SCORE_DATE_NEAR
        reasons.append(f"date within {window_days} days")

    similarity = description_similarity(feed_txn.description, candidate.description)
    if similarity >= STRONG_SIMILARITY:
        score += SCORE_DESCRIPTION_STRONG
        reasons.append("description match")
    elif similarity >= WEAK_SIMILARITY:
        score += SCORE_DESCRIPTION_WEAK
        reasons.append("similar description")
    return min(score, Decimal("1")), reasons


class ReconciliationServiceImpl(ReconciliationService):
    """Suggests, confirms and undoes matches between feed rows and transactions.

    The best suggestion for a feed row is kept as a SUGGESTED match so the
    reconciliation status can report rows that have a proposal waiting.
    Read-only members get the ranking without anything being stored.
    """

    def __init__(
        self,
        database: SQLiteDatabase,
        bank_feed_repo: BankFeedRepository,
        bank_txn_repo: BankTransactionRepository,
        match_repo: TransactionMatchRepository,
        bank_account_repo: BankAccountRepository,
        entity_repo: EntityRepository,
        ai_decisions: AIDecisionService,
        context: TenantContext,
        suggestion_limit: int = 5,
        date_window_days: int = 7,
    ) -> None:
        self._db = database
        self._bank_feed_repo = bank_feed_repo
        self._bank_txn_repo = bank_txn_repo
        self._match_repo = match_repo
        self._bank_account_repo = bank_account_repo
        self._entity_repo = entity_repo
        self._ai_decisions = ai_decisions
        self._context = context
        self._suggestion_limit = suggestion_limit
        self._date_window_days = date_window_days

    def suggest_matches(
        self, bank_feed_id: UUID, limit: int | None = None
    ) -> list[MatchSuggestion]:
        """Rank unmatched recorded transactions that could explain a feed row.

        Raises:
            RecordNotFoundError: If the feed row is unknown to this tenant
            AlreadyMatchedError: If the feed row already has a confirmed match
        """
        feed_txn = self._get_feed_transaction(bank_feed_id)
        account = self._get_account(feed_txn.account_id)
        if self._match_repo.get_matched_for_feed(feed_txn.id) is not None:
            raise AlreadyMatchedError("bank_feed_transaction", feed_txn.id)

        window = timedelta(days=self._date_window_days)
        candidates = self._bank_txn_repo.list_by_account(
            account.id,
            feed_txn.transaction_date - window,
            feed_txn.transaction_date + window,
        )
        suggestions: list[MatchSuggestion] = []
        for candidate in candidates:
            if self._match_repo.get_matched_for_transaction(candidate.id) is not None:
                continue
            score, reasons = score_candidate(feed_txn, candidate, self._date_window_days)
            if score <= 0:
                continue
            suggestions.append(
                MatchSuggestion(
                    transaction_id=candidate.id,
                    transaction_date=candidate.transaction_date,
                    description=candidate.description,
                    amount=candidate.amount,
                    confidence=score,
                    reasons=reasons,
                )
            )
        suggestions.sort(key=lambda suggestion: suggestion.confidence, reverse=True)
        suggestions = suggestions[: limit or self._suggestion_limit]

        if suggestions and self._context.role.can_write:
            self._remember_top_suggestion(feed_txn, account, suggestions[0])
        logger.info(
            "match_suggestions_generated",
            bank_feed_id=str(feed_txn.id),
            candidates=len(candidates),
            suggestions=len(suggestions),
        )
        return suggestions

    def create_match(self, bank_feed_id: UUID, transaction_id: UUID) -> TransactionMatch:
        require_write(self._context, "create_match")
        feed_txn = self._get_feed_transaction(bank_feed_id)
        transaction = self._bank_txn_repo.get(transaction_id)
        if transaction is None or transaction.deleted_at is not None:
            raise RecordNotFoundError("transaction", transaction_id)
        if transaction.account_id != feed_txn.account_id:
            raise RecordNotFoundError("transaction", transaction_id)
        if self._match_repo.get_matched_for_feed(feed_txn.id) is not None:
            raise AlreadyMatchedError("bank_feed_transaction", feed_txn.id)
        if self._match_repo.get_matched_for_transaction(transaction.id) is not None:
            raise AlreadyMatchedError("transaction", transaction.id)

        match = TransactionMatch(
            bank_feed_transaction_id=feed_txn.id,
            transaction_id=transaction.id,
            status=MatchStatus.MATCHED,
            confidence=Decimal("1.0"),
            matched_by=self._context.user_id,
        )
        with self._db.transaction():
            self._clear_suggestions(feed_txn.account_id, feed_txn.id)
            self._match_repo.add(match)
            feed_txn.status = BankFeedStatus.POSTED
            self._bank_feed_repo.update(feed_txn)
        logger.info(
            "transaction_matched",
            match_id=str(match.id),
            bank_feed_id=str(feed_txn.id),
            transaction_id=str(transaction.id),
        )
        return match

    def unmatch(self, match_id: UUID) -> None:
        require_write(self._context, "unmatch")
        match = self._match_repo.get(match_id)
        if match is None:
            raise RecordNotFoundError("match", match_id)
        feed_txn = self._get_feed_transaction(match.bank_feed_transaction_id)
        with self._db.transaction():
            self._match_repo.delete(match.id)
            if match.status == MatchStatus.MATCHED:
                feed_txn.status = BankFeedStatus.PENDING
                self._bank_feed_repo.update(feed_txn)
        logger.info("transaction_unmatched", match_id=str(match_id))

    def get_status(self, account_id: UUID) -> ReconciliationStatus:
        account = self._get_account(account_id)
        feed = self._bank_feed_repo.list_by_account(account.id)
        matches = self._match_repo.list_for_account(account.id)
        matched_ids = {
            m.bank_feed_transaction_id for m in matches if m.status == MatchStatus.MATCHED
        }
        suggested_ids = {
            m.bank_feed_transaction_id
            for m in matches
            if m.status == MatchStatus.SUGGESTED
        } - matched_ids
        matched = sum(1 for row in feed if row.id in matched_ids)
        return ReconciliationStatus(
            account_id=account.id,
            total=len(feed),
            matched=matched,
            unmatched=len(feed) - matched,
            suggested=sum(1 for row in feed if row.id in suggested_ids),
        )

    def _remember_top_suggestion(
        self,
        feed_txn: BankFeedTransaction,
        account: BankAccount,
        top: MatchSuggestion,
    ) -> None:
        with self._db.transaction():
            self._clear_suggestions(account.id, feed_txn.id)
            self._match_repo.add(
                TransactionMatch(
                    bank_feed_transaction_id=feed_txn.id,
                    transaction_id=top.transaction_id,
                    status=MatchStatus.SUGGESTED,
                    confidence=top.confidence,
                )
            )
        self._ai_decisions.log_decision(
            AIDecisionType.AUTO_MATCH,
            {
                "bank_feed_id": str(feed_txn.id),
                "amount": str(feed_txn.amount.amount),
                "date": feed_txn.transaction_date.isoformat(),
                "description": feed_txn.description,
            },
            confidence=int(top.confidence * 100),
            explanation=", ".join(top.reasons),
            entity_id=account.entity_id,
            extracted_data={"transaction_id": str(top.transaction_id)},
        )

    def _clear_suggestions(self, account_id: UUID, feed_txn_id: UUID) -> None:
        for match in self._match_repo.list_for_account(account_id):
            if (
                match.bank_feed_transaction_id == feed_txn_id
                and match.status == MatchStatus.SUGGESTED
            ):
                self._match_repo.delete(match.id)

    def _get_feed_transaction(self, bank_feed_id: UUID) -> BankFeedTransaction:
        feed_txn = self._bank_feed_repo.get(bank_feed_id)
        if feed_txn is None:
            raise RecordNotFoundError("bank_feed_transaction", bank_feed_id)
        self._get_account(
            feed_txn.account_id,
            record_type="bank_feed_transaction",
            record_id=bank_feed_id,
        )
        return feed_txn

    def _get_account(
        self,
        account_id: UUID,
        record_type: str = "bank_account",
        record_id: UUID | None = None,
    ) -> BankAccount:
        account = self._bank_account_repo.get(account_id)
        entity = self._entity_repo.get(account.entity_id) if account else None
        if account is None or entity is None or entity.tenant_id != self._context.tenant_id:
            raise RecordNotFoundError(record_type, record_id or account_id)
        return account
