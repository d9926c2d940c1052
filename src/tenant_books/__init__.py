from tenant_books.domain.entities import Entity, GLAccount
from tenant_books.domain.journal import JournalEntry, JournalLine
from tenant_books.domain.tenancy import Tenant, TenantContext
from tenant_books.domain.value_objects import (
    AccountType,
    Currency,
    EntityType,
    Money,
    NormalBalance,
)

__all__ = [
    "AccountType",
    "Currency",
    "Entity",
    "EntityType",
    "GLAccount",
    "JournalEntry",
    "JournalLine",
    "Money",
    "NormalBalance",
    "Tenant",
    "TenantContext",
]

__version__ = "0.1.0"
