"""
Snapshot subscriptions shared by the storage backends.

A backend calls publish() after every write; every subscriber for that
user gets the full, freshly read transaction list.
"""

import weakref
from itertools import count
from typing import Any, Callable

import structlog

from ecodin.models.transaction import Transaction
from ecodin.services.storage.interface import (
    SnapshotCallback,
    Subscription,
    TransactionStorageInterface,
)

logger = structlog.get_logger(__name__)


class SnapshotHub:
    """Per-user registry of snapshot callbacks."""

    def __init__(self):
        self._listeners: dict[str, dict[int, SnapshotCallback]] = {}
        self._ids = count()

    def add(self, user_id: str, callback: SnapshotCallback) -> Subscription:
        listener_id = next(self._ids)
        self._listeners.setdefault(user_id, {})[listener_id] = callback

        def cancel() -> None:
            listeners = self._listeners.get(user_id, {})
            listeners.pop(listener_id, None)
            if not listeners:
                self._listeners.pop(user_id, None)

        return Subscription(cancel)

    def has_listeners(self, user_id: str) -> bool:
        return bool(self._listeners.get(user_id))

    def publish(self, user_id: str, snapshot: list[Transaction]) -> None:
        """Deliver a snapshot; a failing listener never breaks the writer."""
        for callback in list(self._listeners.get(user_id, {}).values()):
            self._deliver(callback, user_id, snapshot)

    def deliver_initial(self, callback: SnapshotCallback, user_id: str, snapshot: list[Transaction]) -> None:
        self._deliver(callback, user_id, snapshot)

    def _deliver(self, callback: SnapshotCallback, user_id: str, snapshot: list[Transaction]) -> None:
        try:
            callback(list(snapshot))
        except Exception as e:
            logger.error(
                "snapshot_listener_failed",
                user_id=user_id,
                error=str(e),
            )


def subscribe_while_alive(
    storage: TransactionStorageInterface,
    user_id: str,
    owner: Any,
    deliver: Callable[[Any, list[Transaction]], None],
) -> Subscription:
    """
    Subscribe on behalf of owner, holding it only weakly.

    deliver(owner, snapshot) is called on every push while owner lives.
    Once owner has been garbage collected the listener cancels itself on
    the next push, so abandoned UI sessions do not pile up in the hub.
    """
    owner_ref = weakref.ref(owner)
    subscription = None

    def callback(snapshot: list[Transaction]) -> None:
        target = owner_ref()
        if target is None:
            if subscription is not None:
                subscription.unsubscribe()
            logger.debug("snapshot_listener_dropped", user_id=user_id)
            return
        deliver(target, snapshot)

    subscription = storage.subscribe(user_id, callback)
    return subscription
