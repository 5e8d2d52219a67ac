"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for another hosted document store later
2. Use in-memory storage for testing and local runs
3. Keep business logic decoupled from the storage client

Every operation is scoped by user_id: each user sees only their own
transactions and their own quota record.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Callable, Optional

from ecodin.models.audit import AuditEvent
from ecodin.models.summary import QuotaRecord
from ecodin.models.transaction import Transaction

SnapshotCallback = Callable[[list[Transaction]], None]


class Subscription:
    """
    Handle returned by subscribe().

    Calling unsubscribe() stops further snapshots; it is safe to call twice.
    """

    def __init__(self, cancel: Callable[[], None]):
        self._cancel = cancel
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if self._active:
            self._active = False
            self._cancel()


class TransactionStorageInterface(ABC):
    """
    Abstract interface for transaction storage.

    Any storage implementation (Google Sheets, in-memory, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def add_transaction(self, user_id: str, transaction: Transaction) -> Transaction:
        """
        Persist a new transaction.

        Returns:
            The stored transaction, with its store-assigned id

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_transaction(self, user_id: str, transaction_id: str) -> Optional[Transaction]:
        """Return the transaction, or None if this user has no such id."""
        pass

    @abstractmethod
    async def update_transaction(self, user_id: str, transaction: Transaction) -> Transaction:
        """
        Replace a stored transaction (matched by id).

        Raises:
            NotFoundError: If the transaction doesn't exist
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def delete_transaction(self, user_id: str, transaction_id: str) -> bool:
        """
        Delete a transaction.

        Returns:
            True if something was deleted, False if the id was unknown
        """
        pass

    @abstractmethod
    async def list_transactions(
        self,
        user_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Transaction]:
        """
        List a user's transactions, oldest first.

        Args:
            date_from: Only transactions on or after this date
            date_to: Only transactions on or before this date
        """
        pass

    @abstractmethod
    def subscribe(self, user_id: str, callback: SnapshotCallback) -> Subscription:
        """
        Register for full snapshots of a user's transactions.

        The callback receives the complete list (oldest first) right away
        and again after every change to that user's transactions. Each
        snapshot replaces the previous one.
        """
        pass


class QuotaStorageInterface(ABC):
    """One QuotaRecord per user. Records are created and updated, never deleted."""

    @abstractmethod
    async def get_quota(self, user_id: str) -> Optional[QuotaRecord]:
        pass

    @abstractmethod
    async def save_quota(self, user_id: str, record: QuotaRecord) -> bool:
        """
        Create or overwrite the user's quota record.

        Raises:
            StorageError: If save fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Returns True if logged successfully."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
        user_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        """Most recent events first, optionally for a single user."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
