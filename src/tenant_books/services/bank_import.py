"""Bank accounts, statement import with duplicate detection, and bank-feed intake."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path
from uuid import UUID

from tenant_books.domain.banking import (
    BankAccount,
    BankFeedTransaction,
    BankTransaction,
    FXRate,
    ImportBatch,
    ImportBatchStatus,
)
from tenant_books.domain.tenancy import TenantContext
from tenant_books.domain.value_objects import Currency, Money
from tenant_books.exceptions import (
    CrossEntityReferenceError,
    ImportFormatError,
    RecordNotFoundError,
)
from tenant_books.logging_config import get_logger
from tenant_books.parsers import ParsedStatementRow, parser_for
from tenant_books.repositories.interfaces import (
    BankAccountRepository,
    BankFeedRepository,
    BankTransactionRepository,
    EntityRepository,
    FXRateRepository,
    GLAccountRepository,
    ImportBatchRepository,
)
from tenant_books.repositories.sqlite import SQLiteDatabase
from tenant_books.services.audit import AuditService, snapshot
from tenant_books.services.matching import (
    DUPLICATE_DATE_WINDOW_DAYS,
    DUPLICATE_THRESHOLD,
    duplicate_score,
)
from tenant_books.services.tenancy import require_entity, require_write

logger = get_logger(__name__)


@dataclass(frozen=True)
class _SeenRow:
    transaction_date: date
    amount: Decimal
    description: str


class BankImportService:
    def __init__(
        self,
        database: SQLiteDatabase,
        bank_account_repo: BankAccountRepository,
        bank_txn_repo: BankTransactionRepository,
        bank_feed_repo: BankFeedRepository,
        import_batch_repo: ImportBatchRepository,
        fx_rate_repo: FXRateRepository,
        gl_account_repo: GLAccountRepository,
        entity_repo: EntityRepository,
        audit: AuditService,
        context: TenantContext,
    ) -> None:
        self._db = database
        self._bank_account_repo = bank_account_repo
        self._bank_txn_repo = bank_txn_repo
        self._bank_feed_repo = bank_feed_repo
        self._import_batch_repo = import_batch_repo
        self._fx_rate_repo = fx_rate_repo
        self._gl_account_repo = gl_account_repo
        self._entity_repo = entity_repo
        self._audit = audit
        self._context = context

    def create_bank_account(
        self,
        entity_id: UUID,
        name: str,
        currency: Currency | None = None,
        gl_account_id: UUID | None = None,
        institution: str = "",
    ) -> BankAccount:
        require_write(self._context, "create_bank_account")
        entity = require_entity(self._entity_repo, self._context, entity_id)
        if gl_account_id is not None:
            self._check_gl_account(gl_account_id, entity_id)
        account = BankAccount(
            entity_id=entity_id,
            name=name,
            currency=currency or entity.functional_currency,
            gl_account_id=gl_account_id,
            institution=institution,
        )
        self._bank_account_repo.add(account)
        self._audit.log_create(
            "BankAccount",
            account.id,
            snapshot(account, "name", "currency", "gl_account_id"),
            entity_id=entity_id,
        )
        logger.info("bank_account_created", account_id=str(account.id), entity_id=str(entity_id))
        return account

    def link_gl_account(self, account_id: UUID, gl_account_id: UUID) -> BankAccount:
        require_write(self._context, "link_bank_account")
        account = self.get_account(account_id)
        self._check_gl_account(gl_account_id, account.entity_id)
        before = snapshot(account, "gl_account_id")
        account.gl_account_id = gl_account_id
        self._bank_account_repo.update(account)
        self._audit.log_update(
            "BankAccount",
            account.id,
            before,
            snapshot(account, "gl_account_id"),
            entity_id=account.entity_id,
        )
        return account

    def get_account(self, account_id: UUID) -> BankAccount:
        account = self._bank_account_repo.get(account_id)
        if account is None:
            raise RecordNotFoundError("bank_account", account_id)
        entity = self._entity_repo.get(account.entity_id)
        if entity is None or entity.tenant_id != self._context.tenant_id:
            raise RecordNotFoundError("bank_account", account_id)
        return account

    def list_accounts(self, entity_id: UUID) -> list[BankAccount]:
        require_entity(self._entity_repo, self._context, entity_id)
        return list(self._bank_account_repo.list_by_entity(entity_id))

    def record_transaction(
        self,
        account_id: UUID,
        transaction_date: date,
        description: str,
        amount: Decimal,
        category: str | None = None,
    ) -> BankTransaction:
        """Record a single transaction by hand. Positive amounts are inflows."""
        require_write(self._context, "record_bank_transaction")
        account = self.get_account(account_id)
        transaction = BankTransaction(
            account_id=account.id,
            transaction_date=transaction_date,
            description=description,
            amount=Money(amount, account.currency),
            category=category,
        )
        self._bank_txn_repo.add(transaction)
        return transaction

    def list_transactions(
        self,
        account_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[BankTransaction]:
        self.get_account(account_id)
        return self._bank_txn_repo.list_by_account(account_id, date_from, date_to)

    def import_statement(self, account_id: UUID, file_path: str | Path) -> ImportBatch:
        """Import a CSV or XLSX statement as recorded bank transactions.

        Rows that look like a transaction already on the account, or like an
        earlier row of the same file, are counted as duplicates and skipped.
        A file that cannot be read leaves the batch FAILED with the reason.
        """
        require_write(self._context, "import_statement")
        account = self.get_account(account_id)
        path = Path(file_path)
        batch = ImportBatch(
            account_id=account.id,
            file_name=path.name,
            source=path.suffix.lower().lstrip(".") or "unknown",
        )
        self._import_batch_repo.add(batch)

        try:
            rows = parser_for(path).parse(path)
        except (ImportFormatError, FileNotFoundError, ValueError) as exc:
            batch.status = ImportBatchStatus.FAILED
            batch.error = str(exc)
            self._import_batch_repo.update(batch)
            logger.warning(
                "statement_import_failed",
                account_id=str(account.id),
                file_name=batch.file_name,
                error=str(exc),
            )
            return batch

        batch.total_rows = len(rows)
        with self._db.transaction():
            seen = self._existing_rows(account.id, rows)
            for row in rows:
                if self._is_duplicate(row, seen):
                    batch.duplicates += 1
                    continue
                self._bank_txn_repo.add(
                    BankTransaction(
                        account_id=account.id,
                        transaction_date=row.date,
                        description=row.description,
                        amount=Money(row.amount, account.currency),
                        import_batch_id=batch.id,
                    )
                )
                seen.append(_SeenRow(row.date, row.amount, row.description))
                batch.imported += 1
            batch.status = ImportBatchStatus.PROCESSED
            self._import_batch_repo.update(batch)

        logger.info(
            "statement_imported",
            account_id=str(account.id),
            file_name=batch.file_name,
            total_rows=batch.total_rows,
            imported=batch.imported,
            duplicates=batch.duplicates,
        )
        return batch

    def get_import_batch(self, batch_id: UUID) -> ImportBatch:
        batch = self._import_batch_repo.get(batch_id)
        if batch is None:
            raise RecordNotFoundError("import_batch", batch_id)
        self.get_account(batch.account_id)
        return batch

    def add_feed_transactions(
        self, account_id: UUID, rows: list[ParsedStatementRow]
    ) -> list[BankFeedTransaction]:
        """Take in rows delivered by a bank feed; rows already seen by external id are skipped."""
        require_write(self._context, "add_feed_transactions")
        account = self.get_account(account_id)
        added: list[BankFeedTransaction] = []
        seen_ids: set[str] = set()
        with self._db.transaction():
            for row in rows:
                if row.external_id is not None:
                    if row.external_id in seen_ids:
                        continue
                    if self._bank_feed_repo.get_by_external_id(account.id, row.external_id):
                        continue
                    seen_ids.add(row.external_id)
                feed_txn = BankFeedTransaction(
                    account_id=account.id,
                    transaction_date=row.date,
                    description=row.description,
                    amount=Money(row.amount, account.currency),
                    external_id=row.external_id,
                    balance=row.balance,
                )
                self._bank_feed_repo.add(feed_txn)
                added.append(feed_txn)
        logger.info(
            "bank_feed_received",
            account_id=str(account.id),
            received=len(rows),
            added=len(added),
        )
        return added

    def list_feed(self, account_id: UUID) -> list[BankFeedTransaction]:
        self.get_account(account_id)
        return self._bank_feed_repo.list_by_account(account_id)

    def add_fx_rate(
        self, base: Currency, quote: Currency, rate_date: date, rate: Decimal
    ) -> FXRate:
        require_write(self._context, "add_fx_rate")
        fx_rate = FXRate(base=base, quote=quote, rate_date=rate_date, rate=rate)
        self._fx_rate_repo.add(fx_rate)
        logger.info(
            "fx_rate_recorded",
            base=base.value,
            quote=quote.value,
            rate_date=rate_date.isoformat(),
            rate=str(rate),
        )
        return fx_rate

    def _existing_rows(
        self, account_id: UUID, rows: list[ParsedStatementRow]
    ) -> list[_SeenRow]:
        if not rows:
            return []
        window = timedelta(days=DUPLICATE_DATE_WINDOW_DAYS)
        date_from = min(row.date for row in rows) - window
        date_to = max(row.date for row in rows) + window
        return [
            _SeenRow(txn.transaction_date, txn.amount.amount, txn.description)
            for txn in self._bank_txn_repo.list_by_account(account_id, date_from, date_to)
        ]

    @staticmethod
    def _is_duplicate(row: ParsedStatementRow, seen: list[_SeenRow]) -> bool:
        return any(
            duplicate_score(
                row.date,
                row.amount,
                row.description,
                other.transaction_date,
                other.amount,
                other.description,
            )
            >= DUPLICATE_THRESHOLD
            for other in seen
        )

    def _check_gl_account(self, gl_account_id: UUID, entity_id: UUID) -> None:
        gl_account = self._gl_account_repo.get(gl_account_id)
        if gl_account is None or gl_account.entity_id != entity_id or not gl_account.is_active:
            raise CrossEntityReferenceError([str(gl_account_id)], entity_id)
