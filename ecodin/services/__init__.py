"""Services package."""

from ecodin.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsQuotaStorage,
    GoogleSheetsTransactionStorage,
    InMemoryAuditStorage,
    InMemoryQuotaStorage,
    InMemoryTransactionStorage,
    NotFoundError,
    QuotaStorageInterface,
    StorageError,
    Subscription,
    TransactionStorageInterface,
)

__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsQuotaStorage",
    "GoogleSheetsTransactionStorage",
    "InMemoryAuditStorage",
    "InMemoryQuotaStorage",
    "InMemoryTransactionStorage",
    "NotFoundError",
    "QuotaStorageInterface",
    "StorageError",
    "Subscription",
    "TransactionStorageInterface",
]
