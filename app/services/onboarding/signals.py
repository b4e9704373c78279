"""Gathers the gate inputs for a user. Reads only, never writes."""

import itertools
import logging
from dataclasses import dataclass, fields, replace
from typing import Iterator, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.models import User
from app.services.onboarding.gate import GateInput
from app.services.preferences import preference_store
from app.services.stripe.stripe_service import subscription_service
from app.services.trial import trial_service

logger = logging.getLogger(__name__)

_UNRESOLVED = object()


@dataclass(frozen=True)
class GateSignals:
    """Gate inputs where ``None`` means the signal is still unknown"""

    is_authenticated: Optional[bool] = None
    has_active_or_trialing_subscription: Optional[bool] = None
    is_in_trial: Optional[bool] = None
    has_completed_onboarding: Optional[bool] = None
    has_selected_plan: Optional[bool] = None

    @property
    def settled(self) -> bool:
        return not self.unresolved()

    def unresolved(self) -> List[str]:
        return [f.name for f in fields(self) if getattr(self, f.name) is None]

    def to_gate_input(self) -> GateInput:
        missing = self.unresolved()
        if missing:
            raise ValueError(f"Gate signals not settled: {missing}")
        return GateInput(**{f.name: getattr(self, f.name) for f in fields(self)})

    def completions(self) -> Iterator[GateInput]:
        """Every GateInput the unresolved signals could still settle into."""
        missing = self.unresolved()
        for values in itertools.product((False, True), repeat=len(missing)):
            yield replace(self, **dict(zip(missing, values))).to_gate_input()

    def assume_missing_false(self) -> "GateSignals":
        """Treat unknown signals as absent (no subscription, no trial, not onboarded)."""
        return replace(self, **{name: False for name in self.unresolved()})


UNAUTHENTICATED = GateSignals(
    is_authenticated=False,
    has_active_or_trialing_subscription=False,
    is_in_trial=False,
    has_completed_onboarding=False,
    has_selected_plan=False,
)


async def _read(label: str, user_id: int, db: AsyncSession, read):
    try:
        return await read()
    except Exception as e:
        logger.warning(f"Failed to read {label} for user {user_id}: {e}")
        return _UNRESOLVED


async def gather_signals(user: Optional[User], db: AsyncSession) -> GateSignals:
    """Read preference, subscription and trial state for ``user``.

    Reads that fail are left as ``None`` instead of raising.
    """
    if user is None:
        return UNAUTHENTICATED

    user_id = user.id

    preferences = await _read("preferences", user_id, db, lambda: preference_store.get(user_id, db))
    subscription = await _read("subscription", user_id, db, lambda: subscription_service.get_status(user_id, db))
    trial = await _read("trial", user_id, db, lambda: trial_service.get_trial_state(user_id, db))

    signals = GateSignals(is_authenticated=True)

    if preferences is not _UNRESOLVED:
        # A missing row is a known state: onboarding not started
        signals = replace(
            signals,
            has_completed_onboarding=bool(preferences and preferences.has_completed_onboarding),
            has_selected_plan=bool(preferences and preferences.has_selected_plan),
        )

    if subscription is not _UNRESOLVED:
        signals = replace(
            signals,
            has_active_or_trialing_subscription=bool(subscription and subscription.grants_access),
        )

    if trial is not _UNRESOLVED:
        signals = replace(signals, is_in_trial=trial.is_in_trial)

    return signals


async def gather_gate_input(user: Optional[User], db: AsyncSession) -> GateInput:
    """Gate input for server-side entry points, where failed reads count as absent."""
    user_id = user.id if user is not None else None
    signals = await gather_signals(user, db)
    if not signals.settled:
        logger.warning(f"Gate inputs unresolved for user {user_id}: {signals.unresolved()}, treating as absent")
    return signals.assume_missing_false().to_gate_input()
