from tenant_books.repositories.interfaces import (
    EntityRepository,
    GLAccountRepository,
    JournalEntryRepository,
    TenantRepository,
)
from tenant_books.repositories.sqlite import (
    SQLiteDatabase,
    SQLiteEntityRepository,
    SQLiteGLAccountRepository,
    SQLiteJournalEntryRepository,
    SQLiteTenantRepository,
)

__all__ = [
    "EntityRepository",
    "GLAccountRepository",
    "JournalEntryRepository",
    "TenantRepository",
    "SQLiteDatabase",
    "SQLiteEntityRepository",
    "SQLiteGLAccountRepository",
    "SQLiteJournalEntryRepository",
    "SQLiteTenantRepository",
]
