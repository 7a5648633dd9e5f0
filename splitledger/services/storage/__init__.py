"""
Storage Services Package

Provides abstract interfaces and an in-memory implementation for the
ledger record store. Real backends implement the same interfaces.
"""

from splitledger.errors import (
    DuplicateError,
    NotFoundError,
    StorageError,
)
from splitledger.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
)
from splitledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
]
