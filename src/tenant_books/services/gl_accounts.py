"""Chart of accounts: default template, account maintenance, tree and balances."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

from tenant_books.domain.entities import GLAccount
from tenant_books.domain.tenancy import TenantContext
from tenant_books.domain.value_objects import AccountType, NormalBalance
from tenant_books.exceptions import (
    CrossEntityReferenceError,
    DuplicateGLAccountCodeError,
    GLAccountInUseError,
    GLAccountNotFoundError,
)
from tenant_books.logging_config import get_logger
from tenant_books.repositories.interfaces import (
    EntityRepository,
    GLAccountRepository,
    JournalEntryRepository,
)
from tenant_books.repositories.sqlite import SQLiteDatabase
from tenant_books.services.audit import AuditService, snapshot
from tenant_books.services.tenancy import require_entity, require_write

logger = get_logger(__name__)


@dataclass(frozen=True)
class AccountTemplate:
    code: str
    name: str
    account_type: AccountType
    normal_balance: NormalBalance
    parent_code: str | None = None


_A, _L, _E, _I, _X = (
    AccountType.ASSET,
    AccountType.LIABILITY,
    AccountType.EQUITY,
    AccountType.INCOME,
    AccountType.EXPENSE,
)
_DR, _CR = NormalBalance.DEBIT, NormalBalance.CREDIT

DEFAULT_COA_TEMPLATE: tuple[AccountTemplate, ...] = (
    AccountTemplate("1000", "Cash", _A, _DR),
    AccountTemplate("1010", "Petty Cash", _A, _DR, parent_code="1000"),
    AccountTemplate("1050", "Transfers in Transit", _A, _DR),
    AccountTemplate("1100", "Bank Account", _A, _DR),
    AccountTemplate("1200", "Accounts Receivable", _A, _DR),
    AccountTemplate("1300", "Inventory", _A, _DR),
    AccountTemplate("1400", "Prepaid Expenses", _A, _DR),
    AccountTemplate("1500", "Fixed Assets", _A, _DR),
    AccountTemplate("1510", "Accumulated Depreciation", _A, _CR, parent_code="1500"),
    AccountTemplate("2000", "Accounts Payable", _L, _CR),
    AccountTemplate("2100", "Credit Card Payable", _L, _CR),
    AccountTemplate("2200", "Accrued Liabilities", _L, _CR),
    AccountTemplate("2300", "Sales Tax Payable", _L, _CR),
    AccountTemplate("2400", "Income Tax Payable", _L, _CR),
    AccountTemplate("2500", "Loans Payable", _L, _CR),
    AccountTemplate("3000", "Owner's Equity", _E, _CR),
    AccountTemplate("3100", "Retained Earnings", _E, _CR),
    AccountTemplate("3200", "Owner's Draws", _E, _DR),
    AccountTemplate("3300", "Opening Balance Equity", _E, _CR),
    AccountTemplate("4000", "Service Revenue", _I, _CR),
    AccountTemplate("4100", "Product Sales", _I, _CR),
    AccountTemplate("4200", "Interest Income", _I, _CR),
    AccountTemplate("4300", "Other Income", _I, _CR),
    AccountTemplate("5000", "Cost of Goods Sold", _X, _DR),
    AccountTemplate("5100", "Advertising & Marketing", _X, _DR),
    AccountTemplate("5200", "Bank Fees & Interest", _X, _DR),
    AccountTemplate("5300", "Insurance", _X, _DR),
    AccountTemplate("5400", "Office Supplies", _X, _DR),
    AccountTemplate("5500", "Professional Fees", _X, _DR),
    AccountTemplate("5600", "Rent & Utilities", _X, _DR),
    AccountTemplate("5700", "Salaries & Wages", _X, _DR),
    AccountTemplate("5800", "Travel & Meals", _X, _DR),
    AccountTemplate("5900", "Depreciation", _X, _DR),
    AccountTemplate("5990", "Other Expenses", _X, _DR),
)


@dataclass
class SeedResult:
    seeded: bool
    account_count: int


@dataclass
class AccountNode:
    account: GLAccount
    children: list[AccountNode] = field(default_factory=list)


@dataclass
class AccountBalance:
    account_id: UUID
    code: str
    name: str
    account_type: AccountType
    normal_balance: NormalBalance
    total_debits: Decimal
    total_credits: Decimal

    @property
    def balance(self) -> Decimal:
        if self.normal_balance == NormalBalance.DEBIT:
            return self.total_debits - self.total_credits
        return self.total_credits - self.total_debits


class GLAccountService:
    def __init__(
        self,
        database: SQLiteDatabase,
        gl_account_repo: GLAccountRepository,
        entity_repo: EntityRepository,
        journal_repo: JournalEntryRepository,
        audit: AuditService,
        context: TenantContext,
    ) -> None:
        self._db = database
        self._gl_account_repo = gl_account_repo
        self._entity_repo = entity_repo
        self._journal_repo = journal_repo
        self._audit = audit
        self._context = context

    def seed_default_coa(self, entity_id: UUID) -> SeedResult:
        """Create the default chart of accounts unless the entity already has one."""
        require_write(self._context, "seed_default_coa")
        require_entity(self._entity_repo, self._context, entity_id)

        existing = self._gl_account_repo.count_by_entity(entity_id)
        if existing > 0:
            logger.info("coa_seed_skipped", entity_id=str(entity_id), existing=existing)
            return SeedResult(seeded=False, account_count=existing)

        with self._db.transaction():
            ids_by_code: dict[str, UUID] = {}
            for template in DEFAULT_COA_TEMPLATE:
                account = GLAccount(
                    entity_id=entity_id,
                    code=template.code,
                    name=template.name,
                    account_type=template.account_type,
                    normal_balance=template.normal_balance,
                    parent_account_id=ids_by_code.get(template.parent_code or ""),
                )
                self._gl_account_repo.add(account)
                ids_by_code[template.code] = account.id

            self._audit.log_create(
                "GLAccount",
                entity_id,
                {"operation": "seed_default_coa", "account_count": len(DEFAULT_COA_TEMPLATE)},
                entity_id=entity_id,
            )

        logger.info(
            "coa_seeded", entity_id=str(entity_id), account_count=len(DEFAULT_COA_TEMPLATE)
        )
        return SeedResult(seeded=True, account_count=len(DEFAULT_COA_TEMPLATE))

    def create_account(
        self,
        entity_id: UUID,
        code: str,
        name: str,
        account_type: AccountType,
        normal_balance: NormalBalance | None = None,
        parent_account_id: UUID | None = None,
        description: str = "",
    ) -> GLAccount:
        require_write(self._context, "create_gl_account")
        require_entity(self._entity_repo, self._context, entity_id)

        if self._gl_account_repo.get_by_code(entity_id, code) is not None:
            raise DuplicateGLAccountCodeError(code, entity_id)
        if parent_account_id is not None:
            self._require_same_entity_parent(parent_account_id, entity_id)

        account = GLAccount(
            entity_id=entity_id,
            code=code,
            name=name,
            account_type=account_type,
            normal_balance=normal_balance,
            parent_account_id=parent_account_id,
            description=description,
        )
        self._gl_account_repo.add(account)
        self._audit.log_create(
            "GLAccount",
            account.id,
            snapshot(account, "code", "name", "account_type", "normal_balance"),
            entity_id=entity_id,
        )
        logger.info("gl_account_created", entity_id=str(entity_id), code=code)
        return account

    def get_account(self, account_id: UUID) -> GLAccount:
        account = self._gl_account_repo.get(account_id)
        if account is None:
            raise GLAccountNotFoundError(account_id)
        # Accounts of another tenant's entity are reported as missing
        entity = self._entity_repo.get(account.entity_id)
        if entity is None or entity.tenant_id != self._context.tenant_id:
            raise GLAccountNotFoundError(account_id)
        return account

    def get_account_by_code(self, entity_id: UUID, code: str) -> GLAccount:
        require_entity(self._entity_repo, self._context, entity_id)
        account = self._gl_account_repo.get_by_code(entity_id, code)
        if account is None:
            raise GLAccountNotFoundError(code, by_code=True)
        return account

    def list_accounts(
        self, entity_id: UUID, include_inactive: bool = False
    ) -> list[GLAccount]:
        require_entity(self._entity_repo, self._context, entity_id)
        return list(self._gl_account_repo.list_by_entity(entity_id, include_inactive))

    def update_account(
        self,
        account_id: UUID,
        name: str | None = None,
        description: str | None = None,
        parent_account_id: UUID | None = None,
    ) -> GLAccount:
        """Rename, re-describe or re-parent an account. Code and type never change."""
        require_write(self._context, "update_gl_account")
        account = self.get_account(account_id)
        before = snapshot(account, "name", "description", "parent_account_id")

        if parent_account_id is not None:
            if parent_account_id == account.id:
                raise CrossEntityReferenceError([str(parent_account_id)], account.entity_id)
            self._require_same_entity_parent(parent_account_id, account.entity_id)
            account.parent_account_id = parent_account_id
        if name is not None:
            account.name = name
        if description is not None:
            account.description = description

        account.touch()
        self._gl_account_repo.update(account)
        self._audit.log_update(
            "GLAccount",
            account.id,
            before,
            snapshot(account, "name", "description", "parent_account_id"),
            entity_id=account.entity_id,
        )
        return account

    def deactivate_account(self, account_id: UUID) -> GLAccount:
        require_write(self._context, "deactivate_gl_account")
        account = self.get_account(account_id)

        active_children = [
            child
            for child in self._gl_account_repo.list_children(account.id)
            if child.is_active
        ]
        if active_children:
            raise GLAccountInUseError(
                account.id, f"{len(active_children)} active child account(s)"
            )

        balance = self._balance_for(account, as_of=None)
        if balance.balance != 0:
            raise GLAccountInUseError(account.id, f"non-zero balance {balance.balance}")

        account.deactivate()
        self._gl_account_repo.update(account)
        self._audit.log_update(
            "GLAccount",
            account.id,
            {"is_active": True},
            {"is_active": False},
            entity_id=account.entity_id,
        )
        logger.info("gl_account_deactivated", account_id=str(account.id), code=account.code)
        return account

    def get_account_tree(self, entity_id: UUID) -> list[AccountNode]:
        accounts = [a for a in self.list_accounts(entity_id) if a.is_active]
        nodes = {account.id: AccountNode(account) for account in accounts}
        roots: list[AccountNode] = []
        for account in accounts:
            node = nodes[account.id]
            parent = nodes.get(account.parent_account_id) if account.parent_account_id else None
            if parent is None:
                roots.append(node)
            else:
                parent.children.append(node)
        return roots

    def get_account_balances(
        self, entity_id: UUID, as_of: date | None = None
    ) -> list[AccountBalance]:
        accounts = self.list_accounts(entity_id)
        totals = self._posted_totals([entity_id], as_of)
        return [
            self._make_balance(account, *totals.get(account.id, (Decimal("0"), Decimal("0"))))
            for account in accounts
        ]

    def _balance_for(self, account: GLAccount, as_of: date | None) -> AccountBalance:
        debits = Decimal("0")
        credits = Decimal("0")
        for ledger_line in self._journal_repo.list_posted_lines(
            [account.entity_id], date_to=as_of, gl_account_id=account.id
        ):
            debits += ledger_line.line.functional_debit
            credits += ledger_line.line.functional_credit
        return self._make_balance(account, debits, credits)

    def _posted_totals(
        self, entity_ids: list[UUID], as_of: date | None
    ) -> dict[UUID, tuple[Decimal, Decimal]]:
        totals: dict[UUID, tuple[Decimal, Decimal]] = {}
        for ledger_line in self._journal_repo.list_posted_lines(entity_ids, date_to=as_of):
            line = ledger_line.line
            debits, credits = totals.get(line.gl_account_id, (Decimal("0"), Decimal("0")))
            totals[line.gl_account_id] = (
                debits + line.functional_debit,
                credits + line.functional_credit,
            )
        return totals

    def _make_balance(
        self, account: GLAccount, debits: Decimal, credits: Decimal
    ) -> AccountBalance:
        return AccountBalance(
            account_id=account.id,
            code=account.code,
            name=account.name,
            account_type=account.account_type,
            normal_balance=account.normal_balance or account.account_type.default_normal_balance,
            total_debits=debits,
            total_credits=credits,
        )

    def _require_same_entity_parent(self, parent_account_id: UUID, entity_id: UUID) -> None:
        parent = self._gl_account_repo.get(parent_account_id)
        if parent is None or parent.entity_id != entity_id:
            raise CrossEntityReferenceError([str(parent_account_id)], entity_id)
