"""SQLite implementations of repository interfaces."""

from __future__ import annotations

import contextlib
import json
import sqlite3
from collections.abc import Iterable, Iterator
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from uuid import UUID

from tenant_books.domain.ai import (
    AIAction,
    AIActionPriority,
    AIActionStatus,
    AIActionType,
    AIDecisionLog,
    AIDecisionType,
    CategorizationRule,
    RoutingResult,
    RuleCondition,
    RuleLogic,
    RuleSource,
)
from tenant_books.domain.assets import (
    AssetStatus,
    DepreciationEntry,
    DepreciationMethod,
    FixedAsset,
)
from tenant_books.domain.audit import AuditAction, AuditEntry
from tenant_books.domain.banking import (
    BankAccount,
    BankFeedStatus,
    BankFeedTransaction,
    BankTransaction,
    FXRate,
    ImportBatch,
    ImportBatchStatus,
    MatchStatus,
    TransactionMatch,
)
from tenant_books.domain.entities import Entity, GLAccount
from tenant_books.domain.fiscal import FiscalCalendar, FiscalPeriod, FiscalPeriodStatus
from tenant_books.domain.invoicing import (
    Bill,
    BillStatus,
    Client,
    CreditNote,
    CreditNoteStatus,
    DocumentLine,
    Invoice,
    InvoiceStatus,
    Payment,
    PaymentAllocation,
    PaymentMethod,
    TaxRate,
    Vendor,
)
from tenant_books.domain.journal import (
    JournalEntry,
    JournalEntryStatus,
    JournalLine,
    LedgerLine,
    SourceType,
    parse_entry_number,
)
from tenant_books.domain.planning import Budget, BudgetPeriod
from tenant_books.domain.tenancy import Role, Tenant, TenantMembership, User
from tenant_books.domain.value_objects import (
    AccountType,
    Currency,
    EntityType,
    Money,
    NormalBalance,
)
from tenant_books.repositories.interfaces import (
    AIActionRepository,
    AIDecisionLogRepository,
    AuditRepository,
    BankAccountRepository,
    BankFeedRepository,
    BankTransactionRepository,
    BillRepository,
    BudgetRepository,
    ClientRepository,
    CreditNoteRepository,
    EntityRepository,
    FiscalCalendarRepository,
    FixedAssetRepository,
    FXRateRepository,
    GLAccountRepository,
    ImportBatchRepository,
    InvoiceRepository,
    JournalEntryRepository,
    PaymentRepository,
    RuleRepository,
    TaxRateRepository,
    TenantRepository,
    TransactionMatchRepository,
    VendorRepository,
)


def _id(value: UUID | None) -> str | None:
    return str(value) if value is not None else None


def _text(value: object | None) -> str | None:
    return str(value) if value is not None else None


def _uuid(value: str | None) -> UUID | None:
    return UUID(value) if value else None


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _decimal(value: str | None) -> Decimal | None:
    return Decimal(value) if value is not None else None


def _json(value: object | None) -> str | None:
    return json.dumps(value) if value is not None else None


# A voided entry stays in the ledger next to the reversal that cancels it
_LEDGER_STATUSES = (JournalEntryStatus.POSTED.value, JournalEntryStatus.VOIDED.value)


class SQLiteDatabase:
    """SQLite database connection manager."""

    def __init__(
        self, path: str | Path = ":memory:", check_same_thread: bool = True
    ) -> None:
        self._path = str(path)
        self._check_same_thread = check_same_thread
        self._connection: sqlite3.Connection | None = None
        self._transaction_depth = 0

    @property
    def path(self) -> str:
        return self._path

    def get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._connection is None:
            self._connection = sqlite3.connect(
                self._path, check_same_thread=self._check_same_thread
            )
            self._connection.row_factory = sqlite3.Row
            self._connection.execute("PRAGMA foreign_keys = ON")
        return self._connection

    @property
    def in_transaction(self) -> bool:
        return self._transaction_depth > 0

    @contextlib.contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Group repository writes so they commit or roll back together.

        Nested blocks join the outermost one. Repository ``commit()`` calls
        made inside the block are deferred until it exits.
        """
        conn = self.get_connection()
        self._transaction_depth += 1
        try:
            yield conn
        except BaseException:
            self._transaction_depth -= 1
            if self._transaction_depth == 0:
                conn.rollback()
            raise
        self._transaction_depth -= 1
        if self._transaction_depth == 0:
            conn.commit()

    def commit(self) -> None:
        if self._transaction_depth == 0:
            self.get_connection().commit()

    def initialize(self) -> None:
        """Create all database tables."""
        conn = self.get_connection()
        conn.executescript(
            """
            -- Tenancy
            CREATE TABLE IF NOT EXISTS tenants (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS users (
                id TEXT PRIMARY KEY,
                email TEXT NOT NULL UNIQUE,
                name TEXT NOT NULL DEFAULT '',
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS tenant_memberships (
                id TEXT PRIMARY KEY,
                tenant_id TEXT NOT NULL,
                user_id TEXT NOT NULL,
                role TEXT NOT NULL,
                created_at TEXT NOT NULL,
                UNIQUE(tenant_id, user_id),
                FOREIGN KEY (tenant_id) REFERENCES tenants(id),
                FOREIGN KEY (user_id) REFERENCES users(id)
            );

            -- Entities and chart of accounts
            CREATE TABLE IF NOT EXISTS entities (
                id TEXT PRIMARY KEY,
                tenant_id TEXT NOT NULL,
                name TEXT NOT NULL,
                entity_type TEXT NOT NULL,
                functional_currency TEXT NOT NULL,
                fiscal_year_start INTEGER NOT NULL DEFAULT 1,
                country TEXT NOT NULL DEFAULT 'US',
                is_active INTEGER NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                FOREIGN KEY (tenant_id) REFERENCES tenants(id)
            );
            CREATE INDEX IF NOT EXISTS idx_entities_tenant ON entities(tenant_id);

            CREATE TABLE IF NOT EXISTS gl_accounts (
                id TEXT PRIMARY KEY,
                entity_id TEXT NOT NULL,
                code TEXT NOT NULL,
                name TEXT NOT NULL,
                account_type TEXT NOT NULL,
                normal_balance TEXT NOT NULL,
                parent_account_id TEXT,
                description TEXT NOT NULL DEFAULT '',
                is_active INTEGER NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                UNIQUE(entity_id, code),
                FOREIGN KEY (entity_id) REFERENCES entities(id),
                FOREIGN KEY (parent_account_id) REFERENCES gl_accounts(id)
            );

            -- Journal
            CREATE TABLE IF NOT EXISTS journal_entries (
                id TEXT PRIMARY KEY,
                entity_id TEXT NOT NULL,
                entry_number TEXT,
                entry_date TEXT NOT NULL,
                memo TEXT NOT NULL DEFAULT '',
                status TEXT NOT NULL,
                source_type TEXT NOT NULL,
                source_id TEXT,
                source_document TEXT,
                linked_entry_id TEXT,
                created_by TEXT,
                updated_by TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                deleted_at TEXT,
                FOREIGN KEY (entity_id) REFERENCES entities(id),
                FOREIGN KEY (linked_entry_id) REFERENCES journal_entries(id)
            );
            CREATE INDEX IF NOT EXISTS idx_journal_entries_entity ON journal_entries(entity_id, entry_date);
            CREATE INDEX IF NOT EXISTS idx_journal_entries_source ON journal_entries(source_type, source_id);

            CREATE TABLE IF NOT EXISTS journal_lines (
                id TEXT PRIMARY KEY,
                journal_entry_id TEXT NOT NULL,
                line_order INTEGER NOT NULL,
                gl_account_id TEXT NOT NULL,
                currency TEXT NOT NULL,
                debit_amount TEXT NOT NULL,
                credit_amount TEXT NOT NULL,
                memo TEXT NOT NULL DEFAULT '',
                exchange_rate TEXT,
                base_debit TEXT,
                base_credit TEXT,
                FOREIGN KEY (journal_entry_id) REFERENCES journal_entries(id),
                FOREIGN KEY (gl_account_id) REFERENCES gl_accounts(id)
            );
            CREATE INDEX IF NOT EXISTS idx_journal_lines_entry ON journal_lines(journal_entry_id);
            CREATE INDEX IF NOT EXISTS idx_journal_lines_account ON journal_lines(gl_account_id);

            -- Fiscal calendars
            CREATE TABLE IF NOT EXISTS fiscal_calendars (
                id TEXT PRIMARY KEY,
                entity_id TEXT NOT NULL,
                year INTEGER NOT NULL,
                start_date TEXT NOT NULL,
                end_date TEXT NOT NULL,
                created_at TEXT NOT NULL,
                UNIQUE(entity_id, year),
                FOREIGN KEY (entity_id) REFERENCES entities(id)
            );

            CREATE TABLE IF NOT EXISTS fiscal_periods (
                id TEXT PRIMARY KEY,
                calendar_id TEXT NOT NULL,
                period_number INTEGER NOT NULL,
                name TEXT NOT NULL,
                start_date TEXT NOT NULL,
                end_date TEXT NOT NULL,
                status TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                UNIQUE(calendar_id, period_number),
                FOREIGN KEY (calendar_id) REFERENCES fiscal_calendars(id)
            );

            -- Banking
            CREATE TABLE IF NOT EXISTS bank_accounts (
                id TEXT PRIMARY KEY,
                entity_id TEXT NOT NULL,
                name TEXT NOT NULL,
                currency TEXT NOT NULL,
                gl_account_id TEXT,
                institution TEXT NOT NULL DEFAULT '',
                is_active INTEGER NOT NULL DEFAULT 1,
                created_at TEXT NOT NULL,
                FOREIGN KEY (entity_id) REFERENCES entities(id),
                FOREIGN KEY (gl_account_id) REFERENCES gl_accounts(id)
            );

            CREATE TABLE IF NOT EXISTS import_batches (
                id TEXT PRIMARY KEY,
                account_id TEXT NOT NULL,
                file_name TEXT NOT NULL,
                source TEXT NOT NULL,
                status TEXT NOT NULL,
                total_rows INTEGER NOT NULL DEFAULT 0,
                imported INTEGER NOT NULL DEFAULT 0,
                duplicates INTEGER NOT NULL DEFAULT 0,
                error TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY (account_id) REFERENCES bank_accounts(id)
            );

            CREATE TABLE IF NOT EXISTS bank_transactions (
                id TEXT PRIMARY KEY,
                account_id TEXT NOT NULL,
                transaction_date TEXT NOT NULL,
                description TEXT NOT NULL,
                amount TEXT NOT NULL,
                currency TEXT NOT NULL,
                journal_entry_id TEXT,
                category TEXT,
                import_batch_id TEXT,
                created_at TEXT NOT NULL,
                deleted_at TEXT,
                FOREIGN KEY (account_id) REFERENCES bank_accounts(id),
                FOREIGN KEY (journal_entry_id) REFERENCES journal_entries(id),
                FOREIGN KEY (import_batch_id) REFERENCES import_batches(id)
            );
            CREATE INDEX IF NOT EXISTS idx_bank_transactions_account ON bank_transactions(account_id, transaction_date);

            CREATE TABLE IF NOT EXISTS bank_feed_transactions (
                id TEXT PRIMARY KEY,
                account_id TEXT NOT NULL,
                transaction_date TEXT NOT NULL,
                description TEXT NOT NULL,
                amount TEXT NOT NULL,
                currency TEXT NOT NULL,
                status TEXT NOT NULL,
                external_id TEXT,
                balance TEXT,
                created_at TEXT NOT NULL,
                UNIQUE(account_id, external_id),
                FOREIGN KEY (account_id) REFERENCES bank_accounts(id)
            );

            CREATE TABLE IF NOT EXISTS transaction_matches (
                id TEXT PRIMARY KEY,
                bank_feed_transaction_id TEXT NOT NULL,
                transaction_id TEXT NOT NULL,
                status TEXT NOT NULL,
                confidence TEXT NOT NULL,
                matched_by TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY (bank_feed_transaction_id) REFERENCES bank_feed_transactions(id),
                FOREIGN KEY (transaction_id) REFERENCES bank_transactions(id)
            );
            CREATE INDEX IF NOT EXISTS idx_matches_feed ON transaction_matches(bank_feed_transaction_id);
            CREATE INDEX IF NOT EXISTS idx_matches_transaction ON transaction_matches(transaction_id);

            CREATE TABLE IF NOT EXISTS fx_rates (
                id TEXT PRIMARY KEY,
                base TEXT NOT NULL,
                quote TEXT NOT NULL,
                rate_date TEXT NOT NULL,
                rate TEXT NOT NULL,
                UNIQUE(base, quote, rate_date)
            );

            -- Invoicing
            CREATE TABLE IF NOT EXISTS clients (
                id TEXT PRIMARY KEY,
                entity_id TEXT NOT NULL,
                name TEXT NOT NULL,
                email TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY (entity_id) REFERENCES entities(id)
            );

            CREATE TABLE IF NOT EXISTS vendors (
                id TEXT PRIMARY KEY,
                entity_id TEXT NOT NULL,
                name TEXT NOT NULL,
                email TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY (entity_id) REFERENCES entities(id)
            );

            CREATE TABLE IF NOT EXISTS tax_rates (
                id TEXT PRIMARY KEY,
                entity_id TEXT NOT NULL,
                code TEXT NOT NULL,
                name TEXT NOT NULL,
                rate TEXT NOT NULL,
                is_active INTEGER NOT NULL DEFAULT 1,
                UNIQUE(entity_id, code),
                FOREIGN KEY (entity_id) REFERENCES entities(id)
            );

            CREATE TABLE IF NOT EXISTS invoices (
                id TEXT PRIMARY KEY,
                entity_id TEXT NOT NULL,
                client_id TEXT NOT NULL,
                invoice_number TEXT NOT NULL,
                issue_date TEXT NOT NULL,
                due_date TEXT NOT NULL,
                currency TEXT NOT NULL,
                status TEXT NOT NULL,
                paid_amount TEXT NOT NULL,
                notes TEXT NOT NULL DEFAULT '',
                created_at TEXT NOT NULL,
                deleted_at TEXT,
                UNIQUE(entity_id, invoice_number),
                FOREIGN KEY (entity_id) REFERENCES entities(id),
                FOREIGN KEY (client_id) REFERENCES clients(id)
            );

            CREATE TABLE IF NOT EXISTS bills (
                id TEXT PRIMARY KEY,
                entity_id TEXT NOT NULL,
                vendor_id TEXT NOT NULL,
                bill_number TEXT NOT NULL,
                issue_date TEXT NOT NULL,
                due_date TEXT NOT NULL,
                currency TEXT NOT NULL,
                status TEXT NOT NULL,
                paid_amount TEXT NOT NULL,
                notes TEXT NOT NULL DEFAULT '',
                created_at TEXT NOT NULL,
                deleted_at TEXT,
                FOREIGN KEY (entity_id) REFERENCES entities(id),
                FOREIGN KEY (vendor_id) REFERENCES vendors(id)
            );

            -- Invoice and bill lines share one table, keyed by document kind
            CREATE TABLE IF NOT EXISTS document_lines (
                id TEXT PRIMARY KEY,
                document_kind TEXT NOT NULL,
                document_id TEXT NOT NULL,
                line_order INTEGER NOT NULL,
                description TEXT NOT NULL,
                quantity TEXT NOT NULL,
                unit_price TEXT NOT NULL,
                tax_rate_id TEXT,
                tax_amount TEXT NOT NULL,
                gl_account_id TEXT,
                FOREIGN KEY (tax_rate_id) REFERENCES tax_rates(id),
                FOREIGN KEY (gl_account_id) REFERENCES gl_accounts(id)
            );
            CREATE INDEX IF NOT EXISTS idx_document_lines_document ON document_lines(document_kind, document_id);

            CREATE TABLE IF NOT EXISTS payments (
                id TEXT PRIMARY KEY,
                entity_id TEXT NOT NULL,
                payment_date TEXT NOT NULL,
                amount TEXT NOT NULL,
                currency TEXT NOT NULL,
                client_id TEXT,
                vendor_id TEXT,
                payment_method TEXT NOT NULL,
                reference TEXT NOT NULL DEFAULT '',
                created_at TEXT NOT NULL,
                deleted_at TEXT,
                FOREIGN KEY (entity_id) REFERENCES entities(id),
                FOREIGN KEY (client_id) REFERENCES clients(id),
                FOREIGN KEY (vendor_id) REFERENCES vendors(id)
            );

            CREATE TABLE IF NOT EXISTS payment_allocations (
                id TEXT PRIMARY KEY,
                payment_id TEXT NOT NULL,
                invoice_id TEXT,
                bill_id TEXT,
                amount TEXT NOT NULL,
                journal_entry_id TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY (payment_id) REFERENCES payments(id),
                FOREIGN KEY (invoice_id) REFERENCES invoices(id),
                FOREIGN KEY (bill_id) REFERENCES bills(id)
            );

            CREATE TABLE IF NOT EXISTS credit_notes (
                id TEXT PRIMARY KEY,
                entity_id TEXT NOT NULL,
                credit_note_number TEXT NOT NULL,
                note_date TEXT NOT NULL,
                amount TEXT NOT NULL,
                applied_amount TEXT NOT NULL,
                currency TEXT NOT NULL,
                reason TEXT NOT NULL DEFAULT '',
                invoice_id TEXT,
                bill_id TEXT,
                status TEXT NOT NULL,
                created_at TEXT NOT NULL,
                deleted_at TEXT,
                UNIQUE(entity_id, credit_note_number),
                FOREIGN KEY (entity_id) REFERENCES entities(id),
                FOREIGN KEY (invoice_id) REFERENCES invoices(id),
                FOREIGN KEY (bill_id) REFERENCES bills(id)
            );

            -- Budgets
            CREATE TABLE IF NOT EXISTS budgets (
                id TEXT PRIMARY KEY,
                entity_id TEXT NOT NULL,
                name TEXT NOT NULL,
                amount TEXT NOT NULL,
                currency TEXT NOT NULL,
                period TEXT NOT NULL,
                start_date TEXT NOT NULL,
                end_date TEXT NOT NULL,
                gl_account_id TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY (entity_id) REFERENCES entities(id),
                FOREIGN KEY (gl_account_id) REFERENCES gl_accounts(id)
            );

            -- Fixed assets
            CREATE TABLE IF NOT EXISTS fixed_assets (
                id TEXT PRIMARY KEY,
                entity_id TEXT NOT NULL,
                name TEXT NOT NULL,
                category TEXT NOT NULL DEFAULT '',
                cost TEXT NOT NULL,
                salvage_value TEXT NOT NULL,
                useful_life_months INTEGER NOT NULL,
                depreciation_method TEXT NOT NULL,
                acquired_date TEXT NOT NULL,
                accumulated_depreciation TEXT NOT NULL,
                status TEXT NOT NULL,
                asset_gl_account_id TEXT,
                depreciation_expense_gl_account_id TEXT,
                accumulated_depreciation_gl_account_id TEXT,
                disposed_date TEXT,
                disposal_amount TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY (entity_id) REFERENCES entities(id)
            );

            CREATE TABLE IF NOT EXISTS depreciation_entries (
                id TEXT PRIMARY KEY,
                fixed_asset_id TEXT NOT NULL,
                period_date TEXT NOT NULL,
                amount TEXT NOT NULL,
                method TEXT NOT NULL,
                journal_entry_id TEXT,
                created_at TEXT NOT NULL,
                UNIQUE(fixed_asset_id, period_date),
                FOREIGN KEY (fixed_asset_id) REFERENCES fixed_assets(id)
            );

            -- Categorization and AI audit trail
            CREATE TABLE IF NOT EXISTS categorization_rules (
                id TEXT PRIMARY KEY,
                entity_id TEXT NOT NULL,
                name TEXT NOT NULL,
                conditions TEXT NOT NULL,
                operator TEXT NOT NULL,
                category_name TEXT,
                gl_account_id TEXT,
                source TEXT NOT NULL,
                user_approved INTEGER NOT NULL DEFAULT 0,
                flag_for_review INTEGER NOT NULL DEFAULT 0,
                is_active INTEGER NOT NULL DEFAULT 1,
                execution_count INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                FOREIGN KEY (entity_id) REFERENCES entities(id)
            );

            CREATE TABLE IF NOT EXISTS ai_decision_logs (
                id TEXT PRIMARY KEY,
                tenant_id TEXT NOT NULL,
                entity_id TEXT,
                document_id TEXT,
                decision_type TEXT NOT NULL,
                input_hash TEXT NOT NULL,
                model_version TEXT NOT NULL,
                confidence INTEGER,
                routing_result TEXT NOT NULL,
                explanation TEXT NOT NULL DEFAULT '',
                extracted_data TEXT,
                processing_time_ms INTEGER,
                created_at TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_ai_decision_logs_tenant ON ai_decision_logs(tenant_id, created_at);

            CREATE TABLE IF NOT EXISTS ai_actions (
                id TEXT PRIMARY KEY,
                tenant_id TEXT NOT NULL,
                entity_id TEXT NOT NULL,
                action_type TEXT NOT NULL,
                title TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                payload TEXT NOT NULL,
                priority TEXT NOT NULL,
                status TEXT NOT NULL,
                confidence INTEGER,
                expires_at TEXT NOT NULL,
                reviewed_by TEXT,
                reviewed_at TEXT,
                created_at TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_ai_actions_tenant ON ai_actions(tenant_id, status);

            -- Audit log
            CREATE TABLE IF NOT EXISTS audit_log (
                id TEXT PRIMARY KEY,
                tenant_id TEXT NOT NULL,
                entity_id TEXT,
                user_id TEXT,
                model TEXT NOT NULL,
                record_id TEXT NOT NULL,
                action TEXT NOT NULL,
                before_state TEXT,
                after_state TEXT,
                timestamp TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_audit_log_record ON audit_log(tenant_id, record_id);
            """
        )
        conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None


class SQLiteTenantRepository(TenantRepository):
    """SQLite implementation of TenantRepository, including users and memberships."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, tenant: Tenant) -> None:
        conn = self._db.get_connection()
        conn.execute(
            "INSERT INTO tenants (id, name, created_at) VALUES (?, ?, ?)",
            (str(tenant.id), tenant.name, tenant.created_at.isoformat()),
        )
        self._db.commit()

    def get(self, tenant_id: UUID) -> Tenant | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM tenants WHERE id = ?", (str(tenant_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_tenant(row)

    def list_all(self) -> Iterable[Tenant]:
        conn = self._db.get_connection()
        rows = conn.execute("SELECT * FROM tenants ORDER BY created_at").fetchall()
        return [self._row_to_tenant(row) for row in rows]

    def add_user(self, user: User) -> None:
        conn = self._db.get_connection()
        conn.execute(
            "INSERT INTO users (id, email, name, created_at) VALUES (?, ?, ?, ?)",
            (str(user.id), user.email, user.name, user.created_at.isoformat()),
        )
        self._db.commit()

    def get_user(self, user_id: UUID) -> User | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM users WHERE id = ?", (str(user_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_user_by_email(self, email: str) -> User | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM users WHERE lower(email) = lower(?)", (email,)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def add_membership(self, membership: TenantMembership) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO tenant_memberships (id, tenant_id, user_id, role, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                str(membership.id),
                str(membership.tenant_id),
                str(membership.user_id),
                membership.role.value,
                membership.created_at.isoformat(),
            ),
        )
        self._db.commit()

    def get_membership(
        self, tenant_id: UUID, user_id: UUID
    ) -> TenantMembership | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM tenant_memberships WHERE tenant_id = ? AND user_id = ?",
            (str(tenant_id), str(user_id)),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_membership(row)

    def list_memberships(self, tenant_id: UUID) -> Iterable[TenantMembership]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM tenant_memberships WHERE tenant_id = ? ORDER BY created_at",
            (str(tenant_id),),
        ).fetchall()
        return [self._row_to_membership(row) for row in rows]

    def _row_to_tenant(self, row: sqlite3.Row) -> Tenant:
        return Tenant(
            name=row["name"],
            id=UUID(row["id"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            email=row["email"],
            name=row["name"],
            id=UUID(row["id"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def _row_to_membership(self, row: sqlite3.Row) -> TenantMembership:
        return TenantMembership(
            tenant_id=UUID(row["tenant_id"]),
            user_id=UUID(row["user_id"]),
            role=Role(row["role"]),
            id=UUID(row["id"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )


class SQLiteEntityRepository(EntityRepository):
    """SQLite implementation of EntityRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, entity: Entity) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO entities (id, tenant_id, name, entity_type, functional_currency,
                                  fiscal_year_start, country, is_active, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(entity.id),
                str(entity.tenant_id),
                entity.name,
                entity.entity_type.value,
                entity.functional_currency.value,
                entity.fiscal_year_start,
                entity.country,
                1 if entity.is_active else 0,
                entity.created_at.isoformat(),
                entity.updated_at.isoformat(),
            ),
        )
        self._db.commit()

    def get(self, entity_id: UUID) -> Entity | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM entities WHERE id = ?", (str(entity_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_entity(row)

    def list_by_tenant(self, tenant_id: UUID) -> Iterable[Entity]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM entities WHERE tenant_id = ? ORDER BY name",
            (str(tenant_id),),
        ).fetchall()
        return [self._row_to_entity(row) for row in rows]

    def update(self, entity: Entity) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            UPDATE entities SET
                name = ?,
                entity_type = ?,
                functional_currency = ?,
                fiscal_year_start = ?,
                country = ?,
                is_active = ?,
                updated_at = ?
            WHERE id = ?
            """,
            (
                entity.name,
                entity.entity_type.value,
                entity.functional_currency.value,
                entity.fiscal_year_start,
                entity.country,
                1 if entity.is_active else 0,
                entity.updated_at.isoformat(),
                str(entity.id),
            ),
        )
        self._db.commit()

    def _row_to_entity(self, row: sqlite3.Row) -> Entity:
        return Entity(
            tenant_id=UUID(row["tenant_id"]),
            name=row["name"],
            entity_type=EntityType(row["entity_type"]),
            functional_currency=Currency(row["functional_currency"]),
            id=UUID(row["id"]),
            fiscal_year_start=row["fiscal_year_start"],
            country=row["country"],
            is_active=bool(row["is_active"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


class SQLiteGLAccountRepository(GLAccountRepository):
    """SQLite implementation of GLAccountRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, account: GLAccount) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO gl_accounts (id, entity_id, code, name, account_type, normal_balance,
                                     parent_account_id, description, is_active, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(account.id),
                str(account.entity_id),
                account.code,
                account.name,
                account.account_type.value,
                account.normal_balance.value if account.normal_balance else None,
                _id(account.parent_account_id),
                account.description,
                1 if account.is_active else 0,
                account.created_at.isoformat(),
                account.updated_at.isoformat(),
            ),
        )
        self._db.commit()

    def get(self, account_id: UUID) -> GLAccount | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM gl_accounts WHERE id = ?", (str(account_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_account(row)

    def get_by_code(self, entity_id: UUID, code: str) -> GLAccount | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM gl_accounts WHERE entity_id = ? AND code = ?",
            (str(entity_id), code),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_account(row)

    def list_by_entity(
        self, entity_id: UUID, include_inactive: bool = True
    ) -> Iterable[GLAccount]:
        conn = self._db.get_connection()
        query = "SELECT * FROM gl_accounts WHERE entity_id = ?"
        if not include_inactive:
            query += " AND is_active = 1"
        query += " ORDER BY code"
        rows = conn.execute(query, (str(entity_id),)).fetchall()
        return [self._row_to_account(row) for row in rows]

    def list_children(self, parent_account_id: UUID) -> Iterable[GLAccount]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM gl_accounts WHERE parent_account_id = ? ORDER BY code",
            (str(parent_account_id),),
        ).fetchall()
        return [self._row_to_account(row) for row in rows]

    def count_by_entity(self, entity_id: UUID) -> int:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT COUNT(*) AS n FROM gl_accounts WHERE entity_id = ?",
            (str(entity_id),),
        ).fetchone()
        return int(row["n"])

    def update(self, account: GLAccount) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            UPDATE gl_accounts SET
                code = ?,
                name = ?,
                account_type = ?,
                normal_balance = ?,
                parent_account_id = ?,
                description = ?,
                is_active = ?,
                updated_at = ?
            WHERE id = ?
            """,
            (
                account.code,
                account.name,
                account.account_type.value,
                account.normal_balance.value if account.normal_balance else None,
                _id(account.parent_account_id),
                account.description,
                1 if account.is_active else 0,
                account.updated_at.isoformat(),
                str(account.id),
            ),
        )
        self._db.commit()

    def _row_to_account(self, row: sqlite3.Row) -> GLAccount:
        return GLAccount(
            entity_id=UUID(row["entity_id"]),
            code=row["code"],
            name=row["name"],
            account_type=AccountType(row["account_type"]),
            normal_balance=NormalBalance(row["normal_balance"]),
            id=UUID(row["id"]),
            parent_account_id=_uuid(row["parent_account_id"]),
            description=row["description"],
            is_active=bool(row["is_active"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )


class SQLiteJournalEntryRepository(JournalEntryRepository):
    """SQLite implementation of JournalEntryRepository.

    Lines are written once with their entry and never updated afterwards.
    """

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, entry: JournalEntry) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO journal_entries (id, entity_id, entry_number, entry_date, memo, status,
                                         source_type, source_id, source_document, linked_entry_id,
                                         created_by, updated_by, created_at, updated_at, deleted_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(entry.id),
                str(entry.entity_id),
                entry.entry_number,
                entry.entry_date.isoformat(),
                entry.memo,
                entry.status.value,
                entry.source_type.value,
                _id(entry.source_id),
                _json(entry.source_document),
                _id(entry.linked_entry_id),
                _id(entry.created_by),
                _id(entry.updated_by),
                entry.created_at.isoformat(),
                entry.updated_at.isoformat(),
                _iso(entry.deleted_at),
            ),
        )
        for order, line in enumerate(entry.lines):
            conn.execute(
                """
                INSERT INTO journal_lines (id, journal_entry_id, line_order, gl_account_id, currency,
                                           debit_amount, credit_amount, memo, exchange_rate,
                                           base_debit, base_credit)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(line.id),
                    str(entry.id),
                    order,
                    str(line.gl_account_id),
                    line.currency.value,
                    str(line.debit_amount.amount),
                    str(line.credit_amount.amount),
                    line.memo,
                    _text(line.exchange_rate),
                    _text(line.base_debit),
                    _text(line.base_credit),
                ),
            )
        self._db.commit()

    def get(self, entry_id: UUID) -> JournalEntry | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM journal_entries WHERE id = ?", (str(entry_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_entry(row)

    def update(self, entry: JournalEntry) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            UPDATE journal_entries SET
                entry_number = ?,
                entry_date = ?,
                memo = ?,
                status = ?,
                linked_entry_id = ?,
                updated_by = ?,
                updated_at = ?,
                deleted_at = ?
            WHERE id = ?
            """,
            (
                entry.entry_number,
                entry.entry_date.isoformat(),
                entry.memo,
                entry.status.value,
                _id(entry.linked_entry_id),
                _id(entry.updated_by),
                entry.updated_at.isoformat(),
                _iso(entry.deleted_at),
                str(entry.id),
            ),
        )
        self._db.commit()

    def list_entries(
        self,
        entity_id: UUID,
        status: JournalEntryStatus | None = None,
        source_type: SourceType | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        limit: int = 50,
        cursor: UUID | None = None,
    ) -> list[JournalEntry]:
        conn = self._db.get_connection()
        query = "SELECT * FROM journal_entries WHERE entity_id = ? AND deleted_at IS NULL"
        params: list[object] = [str(entity_id)]

        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        if source_type is not None:
            query += " AND source_type = ?"
            params.append(source_type.value)
        if date_from is not None:
            query += " AND entry_date >= ?"
            params.append(date_from.isoformat())
        if date_to is not None:
            query += " AND entry_date <= ?"
            params.append(date_to.isoformat())
        if cursor is not None:
            anchor = conn.execute(
                "SELECT entry_date, created_at, id FROM journal_entries WHERE id = ?",
                (str(cursor),),
            ).fetchone()
            if anchor is not None:
                query += " AND (entry_date, created_at, id) < (?, ?, ?)"
                params.extend(
                    [anchor["entry_date"], anchor["created_at"], anchor["id"]]
                )

        query += " ORDER BY entry_date DESC, created_at DESC, id DESC LIMIT ?"
        params.append(limit)
        rows = conn.execute(query, params).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def last_entry_number(self, entity_id: UUID) -> str | None:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT entry_number FROM journal_entries WHERE entity_id = ? AND entry_number IS NOT NULL",
            (str(entity_id),),
        ).fetchall()
        numbers = [row["entry_number"] for row in rows]
        if not numbers:
            return None
        # Lexical order breaks past JE-999, so compare numeric suffixes
        return max(numbers, key=parse_entry_number)

    def find_reversal(self, entry_id: UUID) -> JournalEntry | None:
        conn = self._db.get_connection()
        row = conn.execute(
            """
            SELECT * FROM journal_entries
            WHERE linked_entry_id = ? AND source_type = ? AND deleted_at IS NULL
            """,
            (str(entry_id), SourceType.ADJUSTMENT.value),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_entry(row)

    def find_by_source(
        self, source_type: SourceType, source_id: UUID
    ) -> Iterable[JournalEntry]:
        conn = self._db.get_connection()
        rows = conn.execute(
            """
            SELECT * FROM journal_entries
            WHERE source_type = ? AND source_id = ? AND deleted_at IS NULL
            ORDER BY created_at
            """,
            (source_type.value, str(source_id)),
        ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def list_posted_lines(
        self,
        entity_ids: list[UUID],
        date_from: date | None = None,
        date_to: date | None = None,
        gl_account_id: UUID | None = None,
    ) -> list[LedgerLine]:
        if not entity_ids:
            return []
        conn = self._db.get_connection()
        placeholders = ", ".join("?" for _ in entity_ids)
        query = f"""
            SELECT l.*, e.entity_id, e.entry_number, e.entry_date, e.memo AS entry_memo
            FROM journal_lines l
            JOIN journal_entries e ON e.id = l.journal_entry_id
            WHERE e.entity_id IN ({placeholders})
              AND e.status IN (?, ?)
              AND e.deleted_at IS NULL
        """
        params: list[object] = [str(entity_id) for entity_id in entity_ids]
        params.extend(_LEDGER_STATUSES)

        if date_from is not None:
            query += " AND e.entry_date >= ?"
            params.append(date_from.isoformat())
        if date_to is not None:
            query += " AND e.entry_date <= ?"
            params.append(date_to.isoformat())
        if gl_account_id is not None:
            query += " AND l.gl_account_id = ?"
            params.append(str(gl_account_id))

        query += " ORDER BY e.entry_date, e.created_at, l.line_order"
        rows = conn.execute(query, params).fetchall()
        return [
            LedgerLine(
                entry_id=UUID(row["journal_entry_id"]),
                entity_id=UUID(row["entity_id"]),
                entry_number=row["entry_number"],
                entry_date=date.fromisoformat(row["entry_date"]),
                entry_memo=row["entry_memo"],
                line=self._row_to_line(row),
            )
            for row in rows
        ]

    def has_posted_lines(self, gl_account_id: UUID) -> bool:
        conn = self._db.get_connection()
        row = conn.execute(
            """
            SELECT 1 FROM journal_lines l
            JOIN journal_entries e ON e.id = l.journal_entry_id
            WHERE l.gl_account_id = ? AND e.status IN (?, ?) AND e.deleted_at IS NULL
            LIMIT 1
            """,
            (str(gl_account_id), *_LEDGER_STATUSES),
        ).fetchone()
        return row is not None

    def _load_lines(self, entry_id: str) -> list[JournalLine]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM journal_lines WHERE journal_entry_id = ? ORDER BY line_order",
            (entry_id,),
        ).fetchall()
        return [self._row_to_line(row) for row in rows]

    def _row_to_line(self, row: sqlite3.Row) -> JournalLine:
        currency = Currency(row["currency"])
        return JournalLine(
            gl_account_id=UUID(row["gl_account_id"]),
            id=UUID(row["id"]),
            debit_amount=Money(Decimal(row["debit_amount"]), currency),
            credit_amount=Money(Decimal(row["credit_amount"]), currency),
            memo=row["memo"],
            exchange_rate=_decimal(row["exchange_rate"]),
            base_debit=_decimal(row["base_debit"]),
            base_credit=_decimal(row["base_credit"]),
        )

    def _row_to_entry(self, row: sqlite3.Row) -> JournalEntry:
        return JournalEntry(
            entity_id=UUID(row["entity_id"]),
            entry_date=date.fromisoformat(row["entry_date"]),
            memo=row["memo"],
            lines=self._load_lines(row["id"]),
            id=UUID(row["id"]),
            entry_number=row["entry_number"],
            status=JournalEntryStatus(row["status"]),
            source_type=SourceType(row["source_type"]),
            source_id=_uuid(row["source_id"]),
            source_document=json.loads(row["source_document"])
            if row["source_document"]
            else None,
            linked_entry_id=_uuid(row["linked_entry_id"]),
            created_by=_uuid(row["created_by"]),
            updated_by=_uuid(row["updated_by"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            deleted_at=_datetime(row["deleted_at"]),
        )


class SQLiteFiscalCalendarRepository(FiscalCalendarRepository):
    """SQLite implementation of FiscalCalendarRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, calendar: FiscalCalendar) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO fiscal_calendars (id, entity_id, year, start_date, end_date, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                str(calendar.id),
                str(calendar.entity_id),
                calendar.year,
                calendar.start_date.isoformat(),
                calendar.end_date.isoformat(),
                calendar.created_at.isoformat(),
            ),
        )
        for period in calendar.periods:
            conn.execute(
                """
                INSERT INTO fiscal_periods (id, calendar_id, period_number, name, start_date,
                                            end_date, status, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    str(period.id),
                    str(calendar.id),
                    period.period_number,
                    period.name,
                    period.start_date.isoformat(),
                    period.end_date.isoformat(),
                    period.status.value,
                    period.updated_at.isoformat(),
                ),
            )
        self._db.commit()

    def get(self, calendar_id: UUID) -> FiscalCalendar | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM fiscal_calendars WHERE id = ?", (str(calendar_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_calendar(row)

    def get_by_year(self, entity_id: UUID, year: int) -> FiscalCalendar | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM fiscal_calendars WHERE entity_id = ? AND year = ?",
            (str(entity_id), year),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_calendar(row)

    def list_by_entity(self, entity_id: UUID) -> Iterable[FiscalCalendar]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM fiscal_calendars WHERE entity_id = ? ORDER BY year",
            (str(entity_id),),
        ).fetchall()
        return [self._row_to_calendar(row) for row in rows]

    def get_period(self, period_id: UUID) -> FiscalPeriod | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM fiscal_periods WHERE id = ?", (str(period_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_period(row)

    def update_period(self, period: FiscalPeriod) -> None:
        conn = self._db.get_connection()
        conn.execute(
            "UPDATE fiscal_periods SET name = ?, status = ?, updated_at = ? WHERE id = ?",
            (
                period.name,
                period.status.value,
                period.updated_at.isoformat(),
                str(period.id),
            ),
        )
        self._db.commit()

    def find_period(self, entity_id: UUID, on_date: date) -> FiscalPeriod | None:
        conn = self._db.get_connection()
        row = conn.execute(
            """
            SELECT p.* FROM fiscal_periods p
            JOIN fiscal_calendars c ON c.id = p.calendar_id
            WHERE c.entity_id = ? AND p.start_date <= ? AND p.end_date >= ?
            ORDER BY p.start_date
            LIMIT 1
            """,
            (str(entity_id), on_date.isoformat(), on_date.isoformat()),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_period(row)

    def _row_to_period(self, row: sqlite3.Row) -> FiscalPeriod:
        return FiscalPeriod(
            calendar_id=UUID(row["calendar_id"]),
            period_number=row["period_number"],
            name=row["name"],
            start_date=date.fromisoformat(row["start_date"]),
            end_date=date.fromisoformat(row["end_date"]),
            status=FiscalPeriodStatus(row["status"]),
            id=UUID(row["id"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def _row_to_calendar(self, row: sqlite3.Row) -> FiscalCalendar:
        conn = self._db.get_connection()
        period_rows = conn.execute(
            "SELECT * FROM fiscal_periods WHERE calendar_id = ? ORDER BY period_number",
            (row["id"],),
        ).fetchall()
        return FiscalCalendar(
            entity_id=UUID(row["entity_id"]),
            year=row["year"],
            start_date=date.fromisoformat(row["start_date"]),
            end_date=date.fromisoformat(row["end_date"]),
            id=UUID(row["id"]),
            periods=[self._row_to_period(p) for p in period_rows],
            created_at=datetime.fromisoformat(row["created_at"]),
        )


class SQLiteBankAccountRepository(BankAccountRepository):
    """SQLite implementation of BankAccountRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, account: BankAccount) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO bank_accounts (id, entity_id, name, currency, gl_account_id,
                                       institution, is_active, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(account.id),
                str(account.entity_id),
                account.name,
                account.currency.value,
                _id(account.gl_account_id),
                account.institution,
                1 if account.is_active else 0,
                account.created_at.isoformat(),
            ),
        )
        self._db.commit()

    def get(self, account_id: UUID) -> BankAccount | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM bank_accounts WHERE id = ?", (str(account_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_account(row)

    def list_by_entity(self, entity_id: UUID) -> Iterable[BankAccount]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM bank_accounts WHERE entity_id = ? ORDER BY name",
            (str(entity_id),),
        ).fetchall()
        return [self._row_to_account(row) for row in rows]

    def update(self, account: BankAccount) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            UPDATE bank_accounts SET
                name = ?,
                currency = ?,
                gl_account_id = ?,
                institution = ?,
                is_active = ?
            WHERE id = ?
            """,
            (
                account.name,
                account.currency.value,
                _id(account.gl_account_id),
                account.institution,
                1 if account.is_active else 0,
                str(account.id),
            ),
        )
        self._db.commit()

    def _row_to_account(self, row: sqlite3.Row) -> BankAccount:
        return BankAccount(
            entity_id=UUID(row["entity_id"]),
            name=row["name"],
            currency=Currency(row["currency"]),
            id=UUID(row["id"]),
            gl_account_id=_uuid(row["gl_account_id"]),
            institution=row["institution"],
            is_active=bool(row["is_active"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )


class SQLiteBankTransactionRepository(BankTransactionRepository):
    """SQLite implementation of BankTransactionRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, txn: BankTransaction) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO bank_transactions (id, account_id, transaction_date, description, amount,
                                           currency, journal_entry_id, category, import_batch_id,
                                           created_at, deleted_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(txn.id),
                str(txn.account_id),
                txn.transaction_date.isoformat(),
                txn.description,
                str(txn.amount.amount),
                txn.amount.currency.value,
                _id(txn.journal_entry_id),
                txn.category,
                _id(txn.import_batch_id),
                txn.created_at.isoformat(),
                _iso(txn.deleted_at),
            ),
        )
        self._db.commit()

    def get(self, txn_id: UUID) -> BankTransaction | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM bank_transactions WHERE id = ?", (str(txn_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_transaction(row)

    def update(self, txn: BankTransaction) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            UPDATE bank_transactions SET
                description = ?,
                journal_entry_id = ?,
                category = ?,
                deleted_at = ?
            WHERE id = ?
            """,
            (
                txn.description,
                _id(txn.journal_entry_id),
                txn.category,
                _iso(txn.deleted_at),
                str(txn.id),
            ),
        )
        self._db.commit()

    def list_by_account(
        self,
        account_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[BankTransaction]:
        conn = self._db.get_connection()
        query = "SELECT * FROM bank_transactions WHERE account_id = ? AND deleted_at IS NULL"
        params: list[str] = [str(account_id)]

        if date_from is not None:
            query += " AND transaction_date >= ?"
            params.append(date_from.isoformat())
        if date_to is not None:
            query += " AND transaction_date <= ?"
            params.append(date_to.isoformat())

        query += " ORDER BY transaction_date, created_at"
        rows = conn.execute(query, params).fetchall()
        return [self._row_to_transaction(row) for row in rows]

    def _row_to_transaction(self, row: sqlite3.Row) -> BankTransaction:
        return BankTransaction(
            account_id=UUID(row["account_id"]),
            transaction_date=date.fromisoformat(row["transaction_date"]),
            description=row["description"],
            amount=Money(Decimal(row["amount"]), row["currency"]),
            id=UUID(row["id"]),
            journal_entry_id=_uuid(row["journal_entry_id"]),
            category=row["category"],
            import_batch_id=_uuid(row["import_batch_id"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            deleted_at=_datetime(row["deleted_at"]),
        )


class SQLiteBankFeedRepository(BankFeedRepository):
    """SQLite implementation of BankFeedRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, feed_txn: BankFeedTransaction) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO bank_feed_transactions (id, account_id, transaction_date, description,
                                                amount, currency, status, external_id, balance,
                                                created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(feed_txn.id),
                str(feed_txn.account_id),
                feed_txn.transaction_date.isoformat(),
                feed_txn.description,
                str(feed_txn.amount.amount),
                feed_txn.amount.currency.value,
                feed_txn.status.value,
                feed_txn.external_id,
                _text(feed_txn.balance),
                feed_txn.created_at.isoformat(),
            ),
        )
        self._db.commit()

    def get(self, feed_txn_id: UUID) -> BankFeedTransaction | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM bank_feed_transactions WHERE id = ?", (str(feed_txn_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_feed(row)

    def get_by_external_id(
        self, account_id: UUID, external_id: str
    ) -> BankFeedTransaction | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM bank_feed_transactions WHERE account_id = ? AND external_id = ?",
            (str(account_id), external_id),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_feed(row)

    def update(self, feed_txn: BankFeedTransaction) -> None:
        conn = self._db.get_connection()
        conn.execute(
            "UPDATE bank_feed_transactions SET status = ?, description = ? WHERE id = ?",
            (feed_txn.status.value, feed_txn.description, str(feed_txn.id)),
        )
        self._db.commit()

    def list_by_account(self, account_id: UUID) -> list[BankFeedTransaction]:
        conn = self._db.get_connection()
        rows = conn.execute(
            """
            SELECT * FROM bank_feed_transactions
            WHERE account_id = ?
            ORDER BY transaction_date, created_at
            """,
            (str(account_id),),
        ).fetchall()
        return [self._row_to_feed(row) for row in rows]

    def _row_to_feed(self, row: sqlite3.Row) -> BankFeedTransaction:
        return BankFeedTransaction(
            account_id=UUID(row["account_id"]),
            transaction_date=date.fromisoformat(row["transaction_date"]),
            description=row["description"],
            amount=Money(Decimal(row["amount"]), row["currency"]),
            id=UUID(row["id"]),
            status=BankFeedStatus(row["status"]),
            external_id=row["external_id"],
            balance=_decimal(row["balance"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )


class SQLiteTransactionMatchRepository(TransactionMatchRepository):
    """SQLite implementation of TransactionMatchRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, match: TransactionMatch) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO transaction_matches (id, bank_feed_transaction_id, transaction_id, status,
                                             confidence, matched_by, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(match.id),
                str(match.bank_feed_transaction_id),
                str(match.transaction_id),
                match.status.value,
                str(match.confidence),
                _id(match.matched_by),
                match.created_at.isoformat(),
            ),
        )
        self._db.commit()

    def get(self, match_id: UUID) -> TransactionMatch | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM transaction_matches WHERE id = ?", (str(match_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_match(row)

    def delete(self, match_id: UUID) -> None:
        conn = self._db.get_connection()
        conn.execute("DELETE FROM transaction_matches WHERE id = ?", (str(match_id),))
        self._db.commit()

    def get_matched_for_feed(self, feed_txn_id: UUID) -> TransactionMatch | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM transaction_matches WHERE bank_feed_transaction_id = ? AND status = ?",
            (str(feed_txn_id), MatchStatus.MATCHED.value),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_match(row)

    def get_matched_for_transaction(self, txn_id: UUID) -> TransactionMatch | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM transaction_matches WHERE transaction_id = ? AND status = ?",
            (str(txn_id), MatchStatus.MATCHED.value),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_match(row)

    def list_for_account(self, account_id: UUID) -> list[TransactionMatch]:
        conn = self._db.get_connection()
        rows = conn.execute(
            """
            SELECT m.* FROM transaction_matches m
            JOIN bank_feed_transactions f ON f.id = m.bank_feed_transaction_id
            WHERE f.account_id = ?
            ORDER BY m.created_at
            """,
            (str(account_id),),
        ).fetchall()
        return [self._row_to_match(row) for row in rows]

    def _row_to_match(self, row: sqlite3.Row) -> TransactionMatch:
        return TransactionMatch(
            bank_feed_transaction_id=UUID(row["bank_feed_transaction_id"]),
            transaction_id=UUID(row["transaction_id"]),
            status=MatchStatus(row["status"]),
            confidence=Decimal(row["confidence"]),
            id=UUID(row["id"]),
            matched_by=_uuid(row["matched_by"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )


class SQLiteImportBatchRepository(ImportBatchRepository):
    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, batch: ImportBatch) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO import_batches (id, account_id, file_name, source, status, total_rows,
                                        imported, duplicates, error, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(batch.id),
                str(batch.account_id),
                batch.file_name,
                batch.source,
                batch.status.value,
                batch.total_rows,
                batch.imported,
                batch.duplicates,
                batch.error,
                batch.created_at.isoformat(),
            ),
        )
        self._db.commit()

    def get(self, batch_id: UUID) -> ImportBatch | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM import_batches WHERE id = ?", (str(batch_id),)
        ).fetchone()
        if row is None:
            return None
        return ImportBatch(
            account_id=UUID(row["account_id"]),
            file_name=row["file_name"],
            source=row["source"],
            status=ImportBatchStatus(row["status"]),
            id=UUID(row["id"]),
            total_rows=row["total_rows"],
            imported=row["imported"],
            duplicates=row["duplicates"],
            error=row["error"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def update(self, batch: ImportBatch) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            UPDATE import_batches SET
                status = ?,
                total_rows = ?,
                imported = ?,
                duplicates = ?,
                error = ?
            WHERE id = ?
            """,
            (
                batch.status.value,
                batch.total_rows,
                batch.imported,
                batch.duplicates,
                batch.error,
                str(batch.id),
            ),
        )
        self._db.commit()


class SQLiteFXRateRepository(FXRateRepository):
    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, rate: FXRate) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO fx_rates (id, base, quote, rate_date, rate)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(base, quote, rate_date) DO UPDATE SET rate = excluded.rate
            """,
            (
                str(rate.id),
                rate.base.value,
                rate.quote.value,
                rate.rate_date.isoformat(),
                str(rate.rate),
            ),
        )
        self._db.commit()

    def get_latest(
        self, base: Currency, quote: Currency, on_or_before: date
    ) -> FXRate | None:
        conn = self._db.get_connection()
        row = conn.execute(
            """
            SELECT * FROM fx_rates
            WHERE base = ? AND quote = ? AND rate_date <= ?
            ORDER BY rate_date DESC
            LIMIT 1
            """,
            (base.value, quote.value, on_or_before.isoformat()),
        ).fetchone()
        if row is None:
            return None
        return FXRate(
            base=Currency(row["base"]),
            quote=Currency(row["quote"]),
            rate_date=date.fromisoformat(row["rate_date"]),
            rate=Decimal(row["rate"]),
            id=UUID(row["id"]),
        )


class SQLiteClientRepository(ClientRepository):
    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, client: Client) -> None:
        conn = self._db.get_connection()
        conn.execute(
            "INSERT INTO clients (id, entity_id, name, email, created_at) VALUES (?, ?, ?, ?, ?)",
            (
                str(client.id),
                str(client.entity_id),
                client.name,
                client.email,
                client.created_at.isoformat(),
            ),
        )
        self._db.commit()

    def get(self, client_id: UUID) -> Client | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM clients WHERE id = ?", (str(client_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_client(row)

    def list_by_entity(self, entity_id: UUID) -> Iterable[Client]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM clients WHERE entity_id = ? ORDER BY name", (str(entity_id),)
        ).fetchall()
        return [self._row_to_client(row) for row in rows]

    def _row_to_client(self, row: sqlite3.Row) -> Client:
        return Client(
            entity_id=UUID(row["entity_id"]),
            name=row["name"],
            email=row["email"],
            id=UUID(row["id"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )


class SQLiteVendorRepository(VendorRepository):
    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, vendor: Vendor) -> None:
        conn = self._db.get_connection()
        conn.execute(
            "INSERT INTO vendors (id, entity_id, name, email, created_at) VALUES (?, ?, ?, ?, ?)",
            (
                str(vendor.id),
                str(vendor.entity_id),
                vendor.name,
                vendor.email,
                vendor.created_at.isoformat(),
            ),
        )
        self._db.commit()

    def get(self, vendor_id: UUID) -> Vendor | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM vendors WHERE id = ?", (str(vendor_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_vendor(row)

    def list_by_entity(self, entity_id: UUID) -> Iterable[Vendor]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM vendors WHERE entity_id = ? ORDER BY name", (str(entity_id),)
        ).fetchall()
        return [self._row_to_vendor(row) for row in rows]

    def _row_to_vendor(self, row: sqlite3.Row) -> Vendor:
        return Vendor(
            entity_id=UUID(row["entity_id"]),
            name=row["name"],
            email=row["email"],
            id=UUID(row["id"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )


class SQLiteTaxRateRepository(TaxRateRepository):
    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, tax_rate: TaxRate) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO tax_rates (id, entity_id, code, name, rate, is_active)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                str(tax_rate.id),
                str(tax_rate.entity_id),
                tax_rate.code,
                tax_rate.name,
                str(tax_rate.rate),
                1 if tax_rate.is_active else 0,
            ),
        )
        self._db.commit()

    def get(self, tax_rate_id: UUID) -> TaxRate | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM tax_rates WHERE id = ?", (str(tax_rate_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_tax_rate(row)

    def update(self, tax_rate: TaxRate) -> None:
        conn = self._db.get_connection()
        conn.execute(
            "UPDATE tax_rates SET name = ?, rate = ?, is_active = ? WHERE id = ?",
            (
                tax_rate.name,
                str(tax_rate.rate),
                1 if tax_rate.is_active else 0,
                str(tax_rate.id),
            ),
        )
        self._db.commit()

    def list_by_entity(self, entity_id: UUID) -> Iterable[TaxRate]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM tax_rates WHERE entity_id = ? ORDER BY code", (str(entity_id),)
        ).fetchall()
        return [self._row_to_tax_rate(row) for row in rows]

    def _row_to_tax_rate(self, row: sqlite3.Row) -> TaxRate:
        return TaxRate(
            entity_id=UUID(row["entity_id"]),
            code=row["code"],
            name=row["name"],
            rate=Decimal(row["rate"]),
            id=UUID(row["id"]),
            is_active=bool(row["is_active"]),
        )


def _insert_document_lines(
    conn: sqlite3.Connection, kind: str, document_id: UUID, lines: list[DocumentLine]
) -> None:
    for order, line in enumerate(lines):
        conn.execute(
            """
            INSERT INTO document_lines (id, document_kind, document_id, line_order, description,
                                        quantity, unit_price, tax_rate_id, tax_amount, gl_account_id)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(line.id),
                kind,
                str(document_id),
                order,
                line.description,
                str(line.quantity),
                str(line.unit_price),
                _id(line.tax_rate_id),
                str(line.tax_amount),
                _id(line.gl_account_id),
            ),
        )


def _load_document_lines(
    conn: sqlite3.Connection, kind: str, document_id: str
) -> list[DocumentLine]:
    rows = conn.execute(
        """
        SELECT * FROM document_lines
        WHERE document_kind = ? AND document_id = ?
        ORDER BY line_order
        """,
        (kind, document_id),
    ).fetchall()
    return [
        DocumentLine(
            description=row["description"],
            quantity=Decimal(row["quantity"]),
            unit_price=Decimal(row["unit_price"]),
            id=UUID(row["id"]),
            tax_rate_id=_uuid(row["tax_rate_id"]),
            tax_amount=Decimal(row["tax_amount"]),
            gl_account_id=_uuid(row["gl_account_id"]),
        )
        for row in rows
    ]


class SQLiteInvoiceRepository(InvoiceRepository):
    """SQLite implementation of InvoiceRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, invoice: Invoice) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO invoices (id, entity_id, client_id, invoice_number, issue_date, due_date,
                                  currency, status, paid_amount, notes, created_at, deleted_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(invoice.id),
                str(invoice.entity_id),
                str(invoice.client_id),
                invoice.invoice_number,
                invoice.issue_date.isoformat(),
                invoice.due_date.isoformat(),
                invoice.currency.value,
                invoice.status.value,
                str(invoice.paid_amount),
                invoice.notes,
                invoice.created_at.isoformat(),
                _iso(invoice.deleted_at),
            ),
        )
        _insert_document_lines(conn, "invoice", invoice.id, invoice.lines)
        self._db.commit()

    def get(self, invoice_id: UUID) -> Invoice | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM invoices WHERE id = ?", (str(invoice_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_invoice(row)

    def update(self, invoice: Invoice) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            UPDATE invoices SET
                due_date = ?,
                status = ?,
                paid_amount = ?,
                notes = ?,
                deleted_at = ?
            WHERE id = ?
            """,
            (
                invoice.due_date.isoformat(),
                invoice.status.value,
                str(invoice.paid_amount),
                invoice.notes,
                _iso(invoice.deleted_at),
                str(invoice.id),
            ),
        )
        self._db.commit()

    def list_by_entity(
        self, entity_id: UUID, status: InvoiceStatus | None = None
    ) -> list[Invoice]:
        conn = self._db.get_connection()
        query = "SELECT * FROM invoices WHERE entity_id = ? AND deleted_at IS NULL"
        params: list[str] = [str(entity_id)]
        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        query += " ORDER BY issue_date, invoice_number"
        rows = conn.execute(query, params).fetchall()
        return [self._row_to_invoice(row) for row in rows]

    def _row_to_invoice(self, row: sqlite3.Row) -> Invoice:
        conn = self._db.get_connection()
        return Invoice(
            entity_id=UUID(row["entity_id"]),
            client_id=UUID(row["client_id"]),
            invoice_number=row["invoice_number"],
            issue_date=date.fromisoformat(row["issue_date"]),
            due_date=date.fromisoformat(row["due_date"]),
            currency=Currency(row["currency"]),
            lines=_load_document_lines(conn, "invoice", row["id"]),
            paid_amount=Decimal(row["paid_amount"]),
            status=InvoiceStatus(row["status"]),
            id=UUID(row["id"]),
            notes=row["notes"],
            created_at=datetime.fromisoformat(row["created_at"]),
            deleted_at=_datetime(row["deleted_at"]),
        )


class SQLiteBillRepository(BillRepository):
    """SQLite implementation of BillRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, bill: Bill) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO bills (id, entity_id, vendor_id, bill_number, issue_date, due_date,
                               currency, status, paid_amount, notes, created_at, deleted_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(bill.id),
                str(bill.entity_id),
                str(bill.vendor_id),
                bill.bill_number,
                bill.issue_date.isoformat(),
                bill.due_date.isoformat(),
                bill.currency.value,
                bill.status.value,
                str(bill.paid_amount),
                bill.notes,
                bill.created_at.isoformat(),
                _iso(bill.deleted_at),
            ),
        )
        _insert_document_lines(conn, "bill", bill.id, bill.lines)
        self._db.commit()

    def get(self, bill_id: UUID) -> Bill | None:
        conn = self._db.get_connection()
        row = conn.execute("SELECT * FROM bills WHERE id = ?", (str(bill_id),)).fetchone()
        if row is None:
            return None
        return self._row_to_bill(row)

    def update(self, bill: Bill) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            UPDATE bills SET
                due_date = ?,
                status = ?,
                paid_amount = ?,
                notes = ?,
                deleted_at = ?
            WHERE id = ?
            """,
            (
                bill.due_date.isoformat(),
                bill.status.value,
                str(bill.paid_amount),
                bill.notes,
                _iso(bill.deleted_at),
                str(bill.id),
            ),
        )
        self._db.commit()

    def list_by_entity(
        self, entity_id: UUID, status: BillStatus | None = None
    ) -> list[Bill]:
        conn = self._db.get_connection()
        query = "SELECT * FROM bills WHERE entity_id = ? AND deleted_at IS NULL"
        params: list[str] = [str(entity_id)]
        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        query += " ORDER BY issue_date, bill_number"
        rows = conn.execute(query, params).fetchall()
        return [self._row_to_bill(row) for row in rows]

    def _row_to_bill(self, row: sqlite3.Row) -> Bill:
        conn = self._db.get_connection()
        return Bill(
            entity_id=UUID(row["entity_id"]),
            vendor_id=UUID(row["vendor_id"]),
            bill_number=row["bill_number"],
            issue_date=date.fromisoformat(row["issue_date"]),
            due_date=date.fromisoformat(row["due_date"]),
            currency=Currency(row["currency"]),
            lines=_load_document_lines(conn, "bill", row["id"]),
            paid_amount=Decimal(row["paid_amount"]),
            status=BillStatus(row["status"]),
            id=UUID(row["id"]),
            notes=row["notes"],
            created_at=datetime.fromisoformat(row["created_at"]),
            deleted_at=_datetime(row["deleted_at"]),
        )


class SQLitePaymentRepository(PaymentRepository):
    """SQLite implementation of PaymentRepository, including allocations."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, payment: Payment) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO payments (id, entity_id, payment_date, amount, currency, client_id,
                                  vendor_id, payment_method, reference, created_at, deleted_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(payment.id),
                str(payment.entity_id),
                payment.payment_date.isoformat(),
                str(payment.amount),
                payment.currency.value,
                _id(payment.client_id),
                _id(payment.vendor_id),
                payment.payment_method.value,
                payment.reference,
                payment.created_at.isoformat(),
                _iso(payment.deleted_at),
            ),
        )
        self._db.commit()

    def get(self, payment_id: UUID) -> Payment | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM payments WHERE id = ?", (str(payment_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_payment(row)

    def update(self, payment: Payment) -> None:
        conn = self._db.get_connection()
        conn.execute(
            "UPDATE payments SET reference = ?, deleted_at = ? WHERE id = ?",
            (payment.reference, _iso(payment.deleted_at), str(payment.id)),
        )
        self._db.commit()

    def add_allocation(self, allocation: PaymentAllocation) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO payment_allocations (id, payment_id, invoice_id, bill_id, amount,
                                             journal_entry_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(allocation.id),
                str(allocation.payment_id),
                _id(allocation.invoice_id),
                _id(allocation.bill_id),
                str(allocation.amount),
                _id(allocation.journal_entry_id),
                allocation.created_at.isoformat(),
            ),
        )
        self._db.commit()

    def get_allocation(self, allocation_id: UUID) -> PaymentAllocation | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM payment_allocations WHERE id = ?", (str(allocation_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_allocation(row)

    def update_allocation(self, allocation: PaymentAllocation) -> None:
        conn = self._db.get_connection()
        conn.execute(
            "UPDATE payment_allocations SET amount = ?, journal_entry_id = ? WHERE id = ?",
            (
                str(allocation.amount),
                _id(allocation.journal_entry_id),
                str(allocation.id),
            ),
        )
        self._db.commit()

    def delete_allocation(self, allocation_id: UUID) -> None:
        conn = self._db.get_connection()
        conn.execute(
            "DELETE FROM payment_allocations WHERE id = ?", (str(allocation_id),)
        )
        self._db.commit()

    def _row_to_allocation(self, row: sqlite3.Row) -> PaymentAllocation:
        return PaymentAllocation(
            payment_id=UUID(row["payment_id"]),
            amount=Decimal(row["amount"]),
            invoice_id=_uuid(row["invoice_id"]),
            bill_id=_uuid(row["bill_id"]),
            id=UUID(row["id"]),
            journal_entry_id=_uuid(row["journal_entry_id"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def _row_to_payment(self, row: sqlite3.Row) -> Payment:
        conn = self._db.get_connection()
        allocation_rows = conn.execute(
            "SELECT * FROM payment_allocations WHERE payment_id = ? ORDER BY created_at",
            (row["id"],),
        ).fetchall()
        return Payment(
            entity_id=UUID(row["entity_id"]),
            payment_date=date.fromisoformat(row["payment_date"]),
            amount=Decimal(row["amount"]),
            currency=Currency(row["currency"]),
            client_id=_uuid(row["client_id"]),
            vendor_id=_uuid(row["vendor_id"]),
            payment_method=PaymentMethod(row["payment_method"]),
            reference=row["reference"],
            id=UUID(row["id"]),
            allocations=[self._row_to_allocation(a) for a in allocation_rows],
            created_at=datetime.fromisoformat(row["created_at"]),
            deleted_at=_datetime(row["deleted_at"]),
        )


class SQLiteCreditNoteRepository(CreditNoteRepository):
    """SQLite implementation of CreditNoteRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, credit_note: CreditNote) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO credit_notes (id, entity_id, credit_note_number, note_date, amount,
                                      applied_amount, currency, reason, invoice_id, bill_id,
                                      status, created_at, deleted_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(credit_note.id),
                str(credit_note.entity_id),
                credit_note.credit_note_number,
                credit_note.note_date.isoformat(),
                str(credit_note.amount),
                str(credit_note.applied_amount),
                credit_note.currency.value,
                credit_note.reason,
                _id(credit_note.invoice_id),
                _id(credit_note.bill_id),
                credit_note.status.value,
                credit_note.created_at.isoformat(),
                _iso(credit_note.deleted_at),
            ),
        )
        self._db.commit()

    def get(self, credit_note_id: UUID) -> CreditNote | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM credit_notes WHERE id = ?", (str(credit_note_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_credit_note(row)

    def update(self, credit_note: CreditNote) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            UPDATE credit_notes SET
                amount = ?,
                applied_amount = ?,
                reason = ?,
                invoice_id = ?,
                bill_id = ?,
                status = ?,
                deleted_at = ?
            WHERE id = ?
            """,
            (
                str(credit_note.amount),
                str(credit_note.applied_amount),
                credit_note.reason,
                _id(credit_note.invoice_id),
                _id(credit_note.bill_id),
                credit_note.status.value,
                _iso(credit_note.deleted_at),
                str(credit_note.id),
            ),
        )
        self._db.commit()

    def list_by_entity(
        self,
        entity_id: UUID,
        status: CreditNoteStatus | None = None,
        include_deleted: bool = False,
    ) -> list[CreditNote]:
        conn = self._db.get_connection()
        query = "SELECT * FROM credit_notes WHERE entity_id = ?"
        params: list[str] = [str(entity_id)]
        if not include_deleted:
            query += " AND deleted_at IS NULL"
        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        query += " ORDER BY note_date, credit_note_number"
        rows = conn.execute(query, params).fetchall()
        return [self._row_to_credit_note(row) for row in rows]

    def _row_to_credit_note(self, row: sqlite3.Row) -> CreditNote:
        return CreditNote(
            entity_id=UUID(row["entity_id"]),
            credit_note_number=row["credit_note_number"],
            note_date=date.fromisoformat(row["note_date"]),
            amount=Decimal(row["amount"]),
            currency=Currency(row["currency"]),
            reason=row["reason"],
            invoice_id=_uuid(row["invoice_id"]),
            bill_id=_uuid(row["bill_id"]),
            applied_amount=Decimal(row["applied_amount"]),
            status=CreditNoteStatus(row["status"]),
            id=UUID(row["id"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            deleted_at=_datetime(row["deleted_at"]),
        )


class SQLiteBudgetRepository(BudgetRepository):
    """SQLite implementation of BudgetRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, budget: Budget) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO budgets (id, entity_id, name, amount, currency, period, start_date,
                                 end_date, gl_account_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(budget.id),
                str(budget.entity_id),
                budget.name,
                str(budget.amount.amount),
                budget.amount.currency.value,
                budget.period.value,
                budget.start_date.isoformat(),
                budget.end_date.isoformat(),
                _id(budget.gl_account_id),
                budget.created_at.isoformat(),
            ),
        )
        self._db.commit()

    def get(self, budget_id: UUID) -> Budget | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM budgets WHERE id = ?", (str(budget_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_budget(row)

    def list_by_entity(self, entity_id: UUID) -> list[Budget]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM budgets WHERE entity_id = ? ORDER BY start_date, name",
            (str(entity_id),),
        ).fetchall()
        return [self._row_to_budget(row) for row in rows]

    def delete(self, budget_id: UUID) -> None:
        conn = self._db.get_connection()
        conn.execute("DELETE FROM budgets WHERE id = ?", (str(budget_id),))
        self._db.commit()

    def _row_to_budget(self, row: sqlite3.Row) -> Budget:
        return Budget(
            entity_id=UUID(row["entity_id"]),
            name=row["name"],
            amount=Money(Decimal(row["amount"]), row["currency"]),
            start_date=date.fromisoformat(row["start_date"]),
            end_date=date.fromisoformat(row["end_date"]),
            period=BudgetPeriod(row["period"]),
            id=UUID(row["id"]),
            gl_account_id=_uuid(row["gl_account_id"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )


class SQLiteFixedAssetRepository(FixedAssetRepository):
    """SQLite implementation of FixedAssetRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, asset: FixedAsset) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO fixed_assets (id, entity_id, name, category, cost, salvage_value,
                                      useful_life_months, depreciation_method, acquired_date,
                                      accumulated_depreciation, status, asset_gl_account_id,
                                      depreciation_expense_gl_account_id,
                                      accumulated_depreciation_gl_account_id, disposed_date,
                                      disposal_amount, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(asset.id),
                str(asset.entity_id),
                asset.name,
                asset.category,
                str(asset.cost),
                str(asset.salvage_value),
                asset.useful_life_months,
                asset.depreciation_method.value,
                asset.acquired_date.isoformat(),
                str(asset.accumulated_depreciation),
                asset.status.value,
                _id(asset.asset_gl_account_id),
                _id(asset.depreciation_expense_gl_account_id),
                _id(asset.accumulated_depreciation_gl_account_id),
                _iso(asset.disposed_date),
                _text(asset.disposal_amount),
                asset.created_at.isoformat(),
            ),
        )
        self._db.commit()

    def get(self, asset_id: UUID) -> FixedAsset | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM fixed_assets WHERE id = ?", (str(asset_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_asset(row)

    def update(self, asset: FixedAsset) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            UPDATE fixed_assets SET
                name = ?,
                category = ?,
                accumulated_depreciation = ?,
                status = ?,
                asset_gl_account_id = ?,
                depreciation_expense_gl_account_id = ?,
                accumulated_depreciation_gl_account_id = ?,
                disposed_date = ?,
                disposal_amount = ?
            WHERE id = ?
            """,
            (
                asset.name,
                asset.category,
                str(asset.accumulated_depreciation),
                asset.status.value,
                _id(asset.asset_gl_account_id),
                _id(asset.depreciation_expense_gl_account_id),
                _id(asset.accumulated_depreciation_gl_account_id),
                _iso(asset.disposed_date),
                _text(asset.disposal_amount),
                str(asset.id),
            ),
        )
        self._db.commit()

    def list_by_entity(
        self, entity_id: UUID, status: AssetStatus | None = None
    ) -> list[FixedAsset]:
        conn = self._db.get_connection()
        query = "SELECT * FROM fixed_assets WHERE entity_id = ?"
        params: list[str] = [str(entity_id)]
        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        query += " ORDER BY acquired_date, name"
        rows = conn.execute(query, params).fetchall()
        return [self._row_to_asset(row) for row in rows]

    def add_depreciation_entry(self, entry: DepreciationEntry) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO depreciation_entries (id, fixed_asset_id, period_date, amount, method,
                                              journal_entry_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(entry.id),
                str(entry.fixed_asset_id),
                entry.period_date.isoformat(),
                str(entry.amount),
                entry.method.value,
                _id(entry.journal_entry_id),
                entry.created_at.isoformat(),
            ),
        )
        self._db.commit()

    def get_depreciation_entry(
        self, asset_id: UUID, period_date: date
    ) -> DepreciationEntry | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM depreciation_entries WHERE fixed_asset_id = ? AND period_date = ?",
            (str(asset_id), period_date.isoformat()),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_depreciation(row)

    def list_depreciation_entries(self, asset_id: UUID) -> list[DepreciationEntry]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM depreciation_entries WHERE fixed_asset_id = ? ORDER BY period_date",
            (str(asset_id),),
        ).fetchall()
        return [self._row_to_depreciation(row) for row in rows]

    def _row_to_depreciation(self, row: sqlite3.Row) -> DepreciationEntry:
        return DepreciationEntry(
            fixed_asset_id=UUID(row["fixed_asset_id"]),
            period_date=date.fromisoformat(row["period_date"]),
            amount=Decimal(row["amount"]),
            method=DepreciationMethod(row["method"]),
            id=UUID(row["id"]),
            journal_entry_id=_uuid(row["journal_entry_id"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def _row_to_asset(self, row: sqlite3.Row) -> FixedAsset:
        return FixedAsset(
            entity_id=UUID(row["entity_id"]),
            name=row["name"],
            cost=Decimal(row["cost"]),
            useful_life_months=row["useful_life_months"],
            acquired_date=date.fromisoformat(row["acquired_date"]),
            salvage_value=Decimal(row["salvage_value"]),
            depreciation_method=DepreciationMethod(row["depreciation_method"]),
            id=UUID(row["id"]),
            category=row["category"],
            accumulated_depreciation=Decimal(row["accumulated_depreciation"]),
            status=AssetStatus(row["status"]),
            asset_gl_account_id=_uuid(row["asset_gl_account_id"]),
            depreciation_expense_gl_account_id=_uuid(
                row["depreciation_expense_gl_account_id"]
            ),
            accumulated_depreciation_gl_account_id=_uuid(
                row["accumulated_depreciation_gl_account_id"]
            ),
            disposed_date=_date(row["disposed_date"]),
            disposal_amount=_decimal(row["disposal_amount"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )


class SQLiteRuleRepository(RuleRepository):
    """SQLite implementation of RuleRepository. Conditions are stored as JSON."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, rule: CategorizationRule) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO categorization_rules (id, entity_id, name, conditions, operator,
                                              category_name, gl_account_id, source, user_approved,
                                              flag_for_review, is_active, execution_count,
                                              created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(rule.id),
                str(rule.entity_id),
                rule.name,
                json.dumps([c.to_dict() for c in rule.conditions]),
                rule.operator.value,
                rule.category_name,
                _id(rule.gl_account_id),
                rule.source.value,
                1 if rule.user_approved else 0,
                1 if rule.flag_for_review else 0,
                1 if rule.is_active else 0,
                rule.execution_count,
                rule.created_at.isoformat(),
            ),
        )
        self._db.commit()

    def get(self, rule_id: UUID) -> CategorizationRule | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM categorization_rules WHERE id = ?", (str(rule_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_rule(row)

    def update(self, rule: CategorizationRule) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            UPDATE categorization_rules SET
                name = ?,
                conditions = ?,
                operator = ?,
                category_name = ?,
                gl_account_id = ?,
                user_approved = ?,
                flag_for_review = ?,
                is_active = ?,
                execution_count = ?
            WHERE id = ?
            """,
            (
                rule.name,
                json.dumps([c.to_dict() for c in rule.conditions]),
                rule.operator.value,
                rule.category_name,
                _id(rule.gl_account_id),
                1 if rule.user_approved else 0,
                1 if rule.flag_for_review else 0,
                1 if rule.is_active else 0,
                rule.execution_count,
                str(rule.id),
            ),
        )
        self._db.commit()

    def list_active(self, entity_id: UUID) -> list[CategorizationRule]:
        conn = self._db.get_connection()
        rows = conn.execute(
            """
            SELECT * FROM categorization_rules
            WHERE entity_id = ? AND is_active = 1
            ORDER BY created_at
            """,
            (str(entity_id),),
        ).fetchall()
        rules = [self._row_to_rule(row) for row in rows]
        # sorted() is stable, so creation order survives within a source
        return sorted(rules, key=lambda rule: rule.source.priority)

    def _row_to_rule(self, row: sqlite3.Row) -> CategorizationRule:
        return CategorizationRule(
            entity_id=UUID(row["entity_id"]),
            name=row["name"],
            conditions=[RuleCondition.from_dict(c) for c in json.loads(row["conditions"])],
            operator=RuleLogic(row["operator"]),
            category_name=row["category_name"],
            gl_account_id=_uuid(row["gl_account_id"]),
            source=RuleSource(row["source"]),
            id=UUID(row["id"]),
            user_approved=bool(row["user_approved"]),
            flag_for_review=bool(row["flag_for_review"]),
            is_active=bool(row["is_active"]),
            execution_count=row["execution_count"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )


class SQLiteAIDecisionLogRepository(AIDecisionLogRepository):
    """Append-only store for AI decisions."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, decision: AIDecisionLog) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO ai_decision_logs (id, tenant_id, entity_id, document_id, decision_type,
                                          input_hash, model_version, confidence, routing_result,
                                          explanation, extracted_data, processing_time_ms,
                                          created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(decision.id),
                str(decision.tenant_id),
                _id(decision.entity_id),
                _id(decision.document_id),
                decision.decision_type.value,
                decision.input_hash,
                decision.model_version,
                decision.confidence,
                decision.routing_result.value,
                decision.explanation,
                _json(decision.extracted_data),
                decision.processing_time_ms,
                decision.created_at.isoformat(),
            ),
        )
        self._db.commit()

    def list_decisions(
        self,
        tenant_id: UUID,
        entity_id: UUID | None = None,
        decision_type: AIDecisionType | None = None,
        routing_result: RoutingResult | None = None,
        limit: int = 100,
    ) -> list[AIDecisionLog]:
        conn = self._db.get_connection()
        query = "SELECT * FROM ai_decision_logs WHERE tenant_id = ?"
        params: list[object] = [str(tenant_id)]
        if entity_id is not None:
            query += " AND entity_id = ?"
            params.append(str(entity_id))
        if decision_type is not None:
            query += " AND decision_type = ?"
            params.append(decision_type.value)
        if routing_result is not None:
            query += " AND routing_result = ?"
            params.append(routing_result.value)
        query += " ORDER BY created_at DESC LIMIT ?"
        params.append(limit)
        rows = conn.execute(query, params).fetchall()
        return [
            AIDecisionLog(
                tenant_id=UUID(row["tenant_id"]),
                decision_type=AIDecisionType(row["decision_type"]),
                input_hash=row["input_hash"],
                model_version=row["model_version"],
                routing_result=RoutingResult(row["routing_result"]),
                id=UUID(row["id"]),
                entity_id=_uuid(row["entity_id"]),
                document_id=_uuid(row["document_id"]),
                confidence=row["confidence"],
                explanation=row["explanation"],
                extracted_data=json.loads(row["extracted_data"])
                if row["extracted_data"]
                else None,
                processing_time_ms=row["processing_time_ms"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]


class SQLiteAIActionRepository(AIActionRepository):
    """SQLite implementation of AIActionRepository."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, action: AIAction) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO ai_actions (id, tenant_id, entity_id, action_type, title, description,
                                    payload, priority, status, confidence, expires_at,
                                    reviewed_by, reviewed_at, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(action.id),
                str(action.tenant_id),
                str(action.entity_id),
                action.action_type.value,
                action.title,
                action.description,
                json.dumps(action.payload),
                action.priority.value,
                action.status.value,
                action.confidence,
                action.expires_at.isoformat(),
                _id(action.reviewed_by),
                _iso(action.reviewed_at),
                action.created_at.isoformat(),
            ),
        )
        self._db.commit()

    def get(self, action_id: UUID) -> AIAction | None:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM ai_actions WHERE id = ?", (str(action_id),)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_action(row)

    def update(self, action: AIAction) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            UPDATE ai_actions SET
                payload = ?,
                status = ?,
                reviewed_by = ?,
                reviewed_at = ?
            WHERE id = ?
            """,
            (
                json.dumps(action.payload),
                action.status.value,
                _id(action.reviewed_by),
                _iso(action.reviewed_at),
                str(action.id),
            ),
        )
        self._db.commit()

    def list_actions(
        self,
        tenant_id: UUID,
        entity_id: UUID | None = None,
        status: AIActionStatus | None = None,
        action_type: AIActionType | None = None,
    ) -> list[AIAction]:
        conn = self._db.get_connection()
        query = "SELECT * FROM ai_actions WHERE tenant_id = ?"
        params: list[str] = [str(tenant_id)]
        if entity_id is not None:
            query += " AND entity_id = ?"
            params.append(str(entity_id))
        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        if action_type is not None:
            query += " AND action_type = ?"
            params.append(action_type.value)
        query += " ORDER BY created_at DESC"
        rows = conn.execute(query, params).fetchall()
        return [self._row_to_action(row) for row in rows]

    def expire_pending_before(self, tenant_id: UUID, now: datetime) -> int:
        conn = self._db.get_connection()
        cursor = conn.execute(
            """
            UPDATE ai_actions SET status = ?
            WHERE tenant_id = ? AND status = ? AND expires_at < ?
            """,
            (
                AIActionStatus.EXPIRED.value,
                str(tenant_id),
                AIActionStatus.PENDING.value,
                now.isoformat(),
            ),
        )
        self._db.commit()
        return cursor.rowcount

    def _row_to_action(self, row: sqlite3.Row) -> AIAction:
        return AIAction(
            tenant_id=UUID(row["tenant_id"]),
            entity_id=UUID(row["entity_id"]),
            action_type=AIActionType(row["action_type"]),
            title=row["title"],
            expires_at=datetime.fromisoformat(row["expires_at"]),
            id=UUID(row["id"]),
            description=row["description"],
            payload=json.loads(row["payload"]),
            priority=AIActionPriority(row["priority"]),
            status=AIActionStatus(row["status"]),
            confidence=row["confidence"],
            reviewed_by=_uuid(row["reviewed_by"]),
            reviewed_at=_datetime(row["reviewed_at"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )


class SQLiteAuditRepository(AuditRepository):
    def __init__(self, database: SQLiteDatabase) -> None:
        self._db = database

    def add(self, entry: AuditEntry) -> None:
        conn = self._db.get_connection()
        conn.execute(
            """
            INSERT INTO audit_log (id, tenant_id, entity_id, user_id, model, record_id, action,
                                   before_state, after_state, timestamp)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                str(entry.id),
                str(entry.tenant_id),
                _id(entry.entity_id),
                _id(entry.user_id),
                entry.model,
                str(entry.record_id),
                entry.action.value,
                _json(entry.before),
                _json(entry.after),
                entry.timestamp.isoformat(),
            ),
        )
        self._db.commit()

    def list_for_record(self, tenant_id: UUID, record_id: UUID) -> list[AuditEntry]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM audit_log WHERE tenant_id = ? AND record_id = ? ORDER BY timestamp",
            (str(tenant_id), str(record_id)),
        ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def list_by_tenant(
        self, tenant_id: UUID, model: str | None = None, limit: int = 100
    ) -> list[AuditEntry]:
        conn = self._db.get_connection()
        query = "SELECT * FROM audit_log WHERE tenant_id = ?"
        params: list[object] = [str(tenant_id)]
        if model is not None:
            query += " AND model = ?"
            params.append(model)
        query += " ORDER BY timestamp DESC LIMIT ?"
        params.append(limit)
        rows = conn.execute(query, params).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def _row_to_entry(self, row: sqlite3.Row) -> AuditEntry:
        return AuditEntry(
            tenant_id=UUID(row["tenant_id"]),
            model=row["model"],
            record_id=UUID(row["record_id"]),
            action=AuditAction(row["action"]),
            id=UUID(row["id"]),
            entity_id=_uuid(row["entity_id"]),
            user_id=_uuid(row["user_id"]),
            before=json.loads(row["before_state"]) if row["before_state"] else None,
            after=json.loads(row["after_state"]) if row["after_state"] else None,
            timestamp=datetime.fromisoformat(row["timestamp"]),
        )
