"""
In-Memory Storage Implementation

Used by the test suite and as the local fallback when Google Sheets is not
configured. Behaves like the hosted backend from the caller's point of view:
ids are assigned on insert, and every write pushes a full snapshot to the
user's subscribers.
"""

from datetime import date
from typing import Optional
from uuid import uuid4

from ecodin.models.audit import AuditEvent
from ecodin.models.summary import QuotaRecord
from ecodin.models.transaction import DateRange, Transaction
from ecodin.services.storage.interface import (
    AuditStorageInterface,
    NotFoundError,
    QuotaStorageInterface,
    SnapshotCallback,
    Subscription,
    TransactionStorageInterface,
)
from ecodin.services.storage.subscriptions import SnapshotHub


class InMemoryTransactionStorage(TransactionStorageInterface):
    """Transactions kept in a dict per user."""

    def __init__(self):
        self._transactions: dict[str, dict[str, Transaction]] = {}
        self._hub = SnapshotHub()

    def _snapshot(self, user_id: str) -> list[Transaction]:
        stored = self._transactions.get(user_id, {}).values()
        return sorted(stored, key=lambda tx: tx.date)

    def _publish(self, user_id: str) -> None:
        self._hub.publish(user_id, self._snapshot(user_id))

    async def add_transaction(self, user_id: str, transaction: Transaction) -> Transaction:
        stored = transaction.model_copy(update={"id": uuid4().hex})
        self._transactions.setdefault(user_id, {})[stored.id] = stored
        self._publish(user_id)
        return stored

    async def get_transaction(self, user_id: str, transaction_id: str) -> Optional[Transaction]:
        return self._transactions.get(user_id, {}).get(transaction_id)

    async def update_transaction(self, user_id: str, transaction: Transaction) -> Transaction:
        user_transactions = self._transactions.get(user_id, {})
        if transaction.id not in user_transactions:
            raise NotFoundError(f"Transaction not found: {transaction.id}")
        user_transactions[transaction.id] = transaction
        self._publish(user_id)
        return transaction

    async def delete_transaction(self, user_id: str, transaction_id: str) -> bool:
        removed = self._transactions.get(user_id, {}).pop(transaction_id, None)
        if removed is None:
            return False
        self._publish(user_id)
        return True

    async def list_transactions(
        self,
        user_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[Transaction]:
        window = DateRange(start=date_from, end=date_to)
        return [tx for tx in self._snapshot(user_id) if window.contains(tx.date)]

    def subscribe(self, user_id: str, callback: SnapshotCallback) -> Subscription:
        subscription = self._hub.add(user_id, callback)
        self._hub.deliver_initial(callback, user_id, self._snapshot(user_id))
        return subscription


class InMemoryQuotaStorage(QuotaStorageInterface):
    """Quota records keyed by user id."""

    def __init__(self):
        self._records: dict[str, QuotaRecord] = {}

    async def get_quota(self, user_id: str) -> Optional[QuotaRecord]:
        return self._records.get(user_id)

    async def save_quota(self, user_id: str, record: QuotaRecord) -> bool:
        self._records[user_id] = record
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_recent_events(
        self,
        limit: int = 100,
        user_id: Optional[str] = None,
    ) -> list[AuditEvent]:
        events = [
            event for event in self._events
            if user_id is None or event.user_id == user_id
        ]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
