"""Preference Store: per-user onboarding state with a TTL cache and change feed."""

from app.services.preferences.cache import PreferenceCache
from app.services.preferences.change_feed import (
    PreferenceChange,
    PreferenceChangeFeed,
    PreferenceSubscription,
)
from app.services.preferences.preference_store import (
    PreferenceSnapshot,
    PreferenceStore,
    preference_store,
)

__all__ = [
    "PreferenceCache",
    "PreferenceChange",
    "PreferenceChangeFeed",
    "PreferenceSubscription",
    "PreferenceSnapshot",
    "PreferenceStore",
    "preference_store",
]
