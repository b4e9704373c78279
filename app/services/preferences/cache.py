"""TTL cache for preference rows, owned by the PreferenceStore."""

import time
from typing import Callable, Dict, Optional, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from app.services.preferences.preference_store import PreferenceSnapshot


class PreferenceCache:
    """Caches found preference rows per user for ``ttl_seconds``.

    Absence is never cached: a missing row is about to be created lazily, so
    the next read has to reach the database.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[int, Tuple[float, "PreferenceSnapshot"]] = {}

    def get(self, user_id: int) -> Optional["PreferenceSnapshot"]:
        entry = self._entries.get(user_id)
        if entry is None:
            return None

        stored_at, snapshot = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            del self._entries[user_id]
            return None

        return snapshot

    def put(self, snapshot: "PreferenceSnapshot") -> None:
        now = self._clock()
        self._sweep(now)
        self._entries[snapshot.user_id] = (now, snapshot)

    def invalidate(self, user_id: int) -> None:
        self._entries.pop(user_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _sweep(self, now: float) -> None:
        """Drop every expired entry, including users who never read again."""
        expired = [
            user_id
            for user_id, (stored_at, _) in self._entries.items()
            if now - stored_at >= self.ttl_seconds
        ]
        for user_id in expired:
            del self._entries[user_id]
