"""Preference Store: get / upsert access to the user_preferences table.

Writes are upserts keyed by user id and are last-write-wins. Every write
invalidates the cache entry for the user and publishes the new row on the
change feed.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models import UserPreferences
from app.services.preferences.cache import PreferenceCache
from app.services.preferences.change_feed import PreferenceChange, PreferenceChangeFeed
from app.utils.constants import ONBOARDING_STEP_STARTED

logger = logging.getLogger(__name__)

WRITABLE_FIELDS = frozenset({
    "has_completed_onboarding",
    "onboarding_step",
    "selected_plan_id",
    "onboarding_started_at",
    "onboarding_completed_at",
})

# Receives the current row (None when absent) and returns the fields to write
MergeFn = Callable[[Optional["PreferenceSnapshot"]], Dict[str, Any]]


@dataclass(frozen=True)
class PreferenceSnapshot:
    """Immutable copy of a user_preferences row"""

    user_id: int
    has_completed_onboarding: bool = False
    onboarding_step: int = ONBOARDING_STEP_STARTED
    selected_plan_id: Optional[str] = None
    onboarding_started_at: Optional[datetime] = None
    onboarding_completed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def has_selected_plan(self) -> bool:
        return bool(self.selected_plan_id)

    @classmethod
    def from_row(cls, row: UserPreferences) -> "PreferenceSnapshot":
        return cls(
            user_id=row.user_id,
            has_completed_onboarding=bool(row.has_completed_onboarding),
            onboarding_step=row.onboarding_step or ONBOARDING_STEP_STARTED,
            selected_plan_id=row.selected_plan_id,
            onboarding_started_at=row.onboarding_started_at,
            onboarding_completed_at=row.onboarding_completed_at,
            updated_at=row.updated_at,
        )

    @classmethod
    def fresh(cls, user_id: int) -> "PreferenceSnapshot":
        """What a missing row means: a user who has not started onboarding."""
        return cls(user_id=user_id)


class PreferenceStore:
    """Accessor for per-user onboarding preferences"""

    def __init__(
        self,
        cache: Optional[PreferenceCache] = None,
        feed: Optional[PreferenceChangeFeed] = None,
    ):
        self.cache = cache or PreferenceCache(settings.preference_cache_ttl_seconds)
        self.feed = feed or PreferenceChangeFeed()

    async def get(
        self,
        user_id: int,
        db: AsyncSession,
        use_cache: bool = True,
    ) -> Optional[PreferenceSnapshot]:
        """Return the user's row, or None when it does not exist yet."""
        if use_cache:
            cached = self.cache.get(user_id)
            if cached is not None:
                return cached

        result = await db.execute(
            select(UserPreferences)
            .where(UserPreferences.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None

        snapshot = PreferenceSnapshot.from_row(row)
        self.cache.put(snapshot)
        return snapshot

    async def get_or_create(
        self,
        user_id: int,
        db: AsyncSession,
    ) -> Tuple[PreferenceSnapshot, bool]:
        """Return the user's row, creating the initial one if absent.

        Returns:
            Tuple of (snapshot, created)
        """
        existing = await self.get(user_id, db, use_cache=False)
        if existing is not None:
            return existing, False

        snapshot, created = await self._apply(
            user_id,
            db,
            lambda current: {} if current else {
                "has_completed_onboarding": False,
                "onboarding_step": ONBOARDING_STEP_STARTED,
                "onboarding_started_at": datetime.utcnow(),
            },
        )
        if created:
            logger.info(f"Created initial preferences for user {user_id}")
        return snapshot, created

    async def upsert(self, user_id: int, db: AsyncSession, **fields: Any) -> PreferenceSnapshot:
        """Idempotent merge of ``fields`` into the user's row (created if absent)."""
        return await self.apply(user_id, db, lambda current: fields)

    async def apply(self, user_id: int, db: AsyncSession, merge: MergeFn) -> PreferenceSnapshot:
        """Read-modify-write in one transaction.

        ``merge`` sees the current row and returns the fields to set. A
        concurrent insert of the same row is retried once as an update.
        """
        snapshot, _ = await self._apply(user_id, db, merge)
        return snapshot

    async def notify(self, user_id: int, db: AsyncSession) -> PreferenceSnapshot:
        """Publish the user's current row after a write to another table that feeds the gate."""
        snapshot = await self.get(user_id, db, use_cache=False) or PreferenceSnapshot.fresh(user_id)
        self.feed.publish(PreferenceChange(user_id=user_id, snapshot=snapshot))
        return snapshot

    async def _apply(
        self,
        user_id: int,
        db: AsyncSession,
        merge: MergeFn,
    ) -> Tuple[PreferenceSnapshot, bool]:
        try:
            row, created = await self._write(user_id, db, merge)
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.info(f"Preferences row for user {user_id} created concurrently, retrying as update")
            row, created = await self._write(user_id, db, merge)
            await db.commit()

        await db.refresh(row)
        snapshot = PreferenceSnapshot.from_row(row)

        self.cache.invalidate(user_id)
        self.feed.publish(PreferenceChange(user_id=user_id, snapshot=snapshot))
        return snapshot, created

    async def reset(self, user_id: int, db: AsyncSession) -> PreferenceSnapshot:
        """Return the user to the start of onboarding."""
        snapshot = await self.upsert(
            user_id,
            db,
            has_completed_onboarding=False,
            onboarding_step=ONBOARDING_STEP_STARTED,
            selected_plan_id=None,
            onboarding_started_at=datetime.utcnow(),
            onboarding_completed_at=None,
        )
        logger.info(f"Reset onboarding for user {user_id}")
        return snapshot

    async def _write(
        self,
        user_id: int,
        db: AsyncSession,
        merge: MergeFn,
    ) -> Tuple[UserPreferences, bool]:
        """Stage the merged row; the flag is True when this call inserts it."""
        result = await db.execute(
            select(UserPreferences)
            .where(UserPreferences.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()

        current = PreferenceSnapshot.from_row(row) if row is not None else None
        fields = merge(current)

        unknown = set(fields) - WRITABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot write preference fields: {sorted(unknown)}")

        created = row is None
        if created:
            row = UserPreferences(
                user_id=user_id,
                has_completed_onboarding=False,
                onboarding_step=ONBOARDING_STEP_STARTED,
            )
            db.add(row)

        for name, value in fields.items():
            setattr(row, name, value)

        await db.flush()
        return row, created


# Global store instance, owns its cache and change feed
preference_store = PreferenceStore()
