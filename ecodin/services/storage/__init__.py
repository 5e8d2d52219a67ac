"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the hosted backend; the in-memory backend serves tests and
runs without credentials.
"""

from ecodin.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    NotFoundError,
    QuotaStorageInterface,
    SnapshotCallback,
    StorageError,
    Subscription,
    TransactionStorageInterface,
)
from ecodin.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryQuotaStorage,
    InMemoryTransactionStorage,
)
from ecodin.services.storage.subscriptions import subscribe_while_alive
from ecodin.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsQuotaStorage,
    GoogleSheetsTransactionStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "QuotaStorageInterface",
    "SnapshotCallback",
    "Subscription",
    "TransactionStorageInterface",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryQuotaStorage",
    "InMemoryTransactionStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsQuotaStorage",
    "GoogleSheetsTransactionStorage",
    # Helpers
    "subscribe_while_alive",
]
