"""Completion reconciler: runs when Stripe sends the user back after payment."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.services.onboarding.gate import Route
from app.services.preferences import PreferenceStore, preference_store
from app.services.stripe.stripe_service import SubscriptionService, subscription_service
from app.utils.constants import ONBOARDING_STEP_COMPLETED, ONBOARDING_STEP_STARTED
from app.utils.sentry_utils import capture_exception

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionResult:
    route: Route
    marked_complete: bool
    subscription_synced: bool


class CompletionReconciler:
    """Marks onboarding complete and refreshes subscription state.

    Safe to call repeatedly: the first completion timestamp and plan are kept.
    The user always ends up on the dashboard.
    """

    def __init__(
        self,
        store: Optional[PreferenceStore] = None,
        subscriptions: Optional[SubscriptionService] = None,
    ):
        self.store = store or preference_store
        self.subscriptions = subscriptions or subscription_service

    async def complete(self, user_id: int, db: AsyncSession) -> CompletionResult:
        marked_complete = await self._mark_complete(user_id, db)
        subscription_synced = await self._resync(user_id, db)

        logger.info(
            f"Onboarding completion for user {user_id}: "
            f"marked_complete={marked_complete}, subscription_synced={subscription_synced}"
        )
        return CompletionResult(
            route=Route.DASHBOARD,
            marked_complete=marked_complete,
            subscription_synced=subscription_synced,
        )

    async def _subscription_plan(self, user_id: int, db: AsyncSession) -> Optional[str]:
        try:
            snapshot = await self.subscriptions.get_status(user_id, db)
        except Exception as e:
            logger.warning(f"Could not read subscription plan for user {user_id}: {e}")
            await db.rollback()
            return None
        return snapshot.plan_id if snapshot else None

    async def _mark_complete(self, user_id: int, db: AsyncSession) -> bool:
        subscription_plan = await self._subscription_plan(user_id, db)
        now = datetime.utcnow()

        def merge(current):
            step = current.onboarding_step if current else ONBOARDING_STEP_STARTED
            return {
                "has_completed_onboarding": True,
                "onboarding_step": max(step, ONBOARDING_STEP_COMPLETED),
                "onboarding_completed_at": (current and current.onboarding_completed_at) or now,
                "onboarding_started_at": (current and current.onboarding_started_at) or now,
                # A completed row always carries a plan
                "selected_plan_id": (
                    (current and current.selected_plan_id)
                    or subscription_plan
                    or settings.default_plan_id
                ),
            }

        try:
            await self.store.apply(user_id, db, merge)
            return True
        except Exception as e:
            logger.error(f"Failed to mark onboarding complete for user {user_id}: {e}", exc_info=True)
            capture_exception(e)
            await db.rollback()
            return False

    async def _resync(self, user_id: int, db: AsyncSession) -> bool:
        try:
            await self.subscriptions.resync(user_id, db)
            return True
        except Exception as e:
            logger.error(f"Subscription resync failed for user {user_id}: {e}", exc_info=True)
            capture_exception(e)
            await db.rollback()
            return False


# Global reconciler instance
completion_reconciler = CompletionReconciler()
