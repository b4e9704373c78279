"""Plan selection: records the chosen plan and builds the hosted checkout redirect."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Set
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from sqlalchemy.ext.asyncio import AsyncSession

from app.services.onboarding.errors import (
    PlanUnavailableError,
    SelectionInProgressError,
    UnknownPlanError,
)
from app.services.onboarding.gate import Route
from app.services.preferences import PreferenceStore, preference_store
from app.services.stripe.plans import get_plan
from app.utils.constants import (
    ONBOARDING_STEP_PLAN_SELECTED,
    ONBOARDING_STEP_STARTED,
    PAYMENT_LINK_EMAIL_PARAM,
    PAYMENT_LINK_REFERENCE_PARAM,
)
from app.utils.redirects import app_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanSelection:
    plan_id: str
    redirect_url: str
    is_checkout: bool


def build_checkout_url(payment_link: str, email: str, user_id: int) -> str:
    """Append the correlation parameters to a payment link, keeping its own query."""
    parts = urlsplit(payment_link)
    query = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key not in (PAYMENT_LINK_EMAIL_PARAM, PAYMENT_LINK_REFERENCE_PARAM)
    ]
    query.append((PAYMENT_LINK_EMAIL_PARAM, email))
    query.append((PAYMENT_LINK_REFERENCE_PARAM, str(user_id)))
    return urlunsplit(parts._replace(query=urlencode(query)))


class PlanSelectionRecorder:
    """Handles a click on a pricing card"""

    def __init__(self, store: Optional[PreferenceStore] = None):
        self.store = store or preference_store
        self._in_flight: Set[int] = set()

    def is_in_flight(self, user_id: int) -> bool:
        return user_id in self._in_flight

    async def select_plan(
        self,
        user_id: int,
        email: str,
        plan_id: str,
        db: AsyncSession,
    ) -> PlanSelection:
        """Record ``plan_id`` for the user and return where to send them.

        Raises:
            UnknownPlanError: plan id is not in the catalog
            PlanUnavailableError: plan has no payment link configured
            SelectionInProgressError: another selection for this user is running
        """
        plan = get_plan(plan_id)
        if plan is None:
            raise UnknownPlanError(plan_id)

        if plan.contact_sales:
            logger.info(f"User {user_id} chose {plan.id}, sending to contact sales")
            return PlanSelection(
                plan_id=plan.id,
                redirect_url=app_url(Route.CONTACT_SALES.value),
                is_checkout=False,
            )

        if not plan.payment_link:
            raise PlanUnavailableError(plan.id)

        if user_id in self._in_flight:
            raise SelectionInProgressError(user_id)

        self._in_flight.add(user_id)
        try:
            await self._record(user_id, plan.id, db)
            redirect_url = build_checkout_url(plan.payment_link, email, user_id)
        finally:
            self._in_flight.discard(user_id)

        logger.info(f"User {user_id} selected plan {plan.id}, redirecting to checkout")
        return PlanSelection(plan_id=plan.id, redirect_url=redirect_url, is_checkout=True)

    async def _record(self, user_id: int, plan_id: str, db: AsyncSession) -> None:
        """Best-effort write; Stripe stays the source of truth for payment."""
        now = datetime.utcnow()

        def merge(current):
            step = current.onboarding_step if current else ONBOARDING_STEP_STARTED
            changes = {
                "selected_plan_id": plan_id,
                "onboarding_step": max(step, ONBOARDING_STEP_PLAN_SELECTED),
            }
            if current is None or current.onboarding_started_at is None:
                changes["onboarding_started_at"] = now
            return changes

        try:
            await self.store.apply(user_id, db, merge)
        except Exception as e:
            logger.error(f"Failed to record plan {plan_id} for user {user_id}: {e}", exc_info=True)


# Global recorder instance, holds the per-user in-flight set
plan_selection_recorder = PlanSelectionRecorder()
