"""In-process change notifications for a single user's preference row.

Every committed write through the PreferenceStore publishes the new row
state. Consumers treat an event as "recompute now", never as an ordering
guarantee relative to their own writes.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Set, TYPE_CHECKING

if TYPE_CHECKING:
    from app.services.preferences.preference_store import PreferenceSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreferenceChange:
    """A committed write to a user's preference row"""

    user_id: int
    snapshot: "PreferenceSnapshot"
    occurred_at: datetime = field(default_factory=datetime.utcnow)


class PreferenceSubscription:
    """Handle for one consumer's interest in one user's row.

    Lifecycle is explicit: nothing is delivered before ``start()`` or after
    ``stop()``. Usable as an async context manager.
    """

    def __init__(self, feed: "PreferenceChangeFeed", user_id: int, max_pending: int = 32):
        self.user_id = user_id
        self._feed = feed
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def start(self) -> "PreferenceSubscription":
        if not self._active:
            self._feed._register(self)
            self._active = True
        return self

    def stop(self) -> None:
        if self._active:
            self._feed._unregister(self)
            self._active = False

    async def __aenter__(self) -> "PreferenceSubscription":
        return self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def deliver(self, change: PreferenceChange) -> None:
        if not self._active:
            return

        if self._queue.full():
            # Each event carries the full row, so the oldest pending one is redundant
            self._queue.get_nowait()
        self._queue.put_nowait(change)

    async def next_event(self, timeout: Optional[float] = None) -> Optional[PreferenceChange]:
        """Wait for the next change; None when ``timeout`` elapses first."""
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    def pending(self) -> int:
        return self._queue.qsize()


class PreferenceChangeFeed:
    """Fan-out of preference changes, scoped per user id"""

    def __init__(self):
        self._subscribers: Dict[int, Set[PreferenceSubscription]] = {}

    def subscribe(self, user_id: int) -> PreferenceSubscription:
        """Create a (not yet started) subscription for ``user_id``."""
        return PreferenceSubscription(self, user_id)

    def publish(self, change: PreferenceChange) -> int:
        """Deliver ``change`` to every active subscriber of its user. Returns the count."""
        subscribers = list(self._subscribers.get(change.user_id, ()))
        for subscription in subscribers:
            subscription.deliver(change)

        if subscribers:
            logger.debug(f"Published preference change for user {change.user_id} to {len(subscribers)} subscriber(s)")
        return len(subscribers)

    def subscriber_count(self, user_id: int) -> int:
        return len(self._subscribers.get(user_id, ()))

    def _register(self, subscription: PreferenceSubscription) -> None:
        self._subscribers.setdefault(subscription.user_id, set()).add(subscription)

    def _unregister(self, subscription: PreferenceSubscription) -> None:
        subscribers = self._subscribers.get(subscription.user_id)
        if not subscribers:
            return
        subscribers.discard(subscription)
        if not subscribers:
            del self._subscribers[subscription.user_id]
