"""Trial service: provisional access granted at signup without payment."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models import UserTrial

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrialState:
    """Read-only view of a user's trial window"""

    is_in_trial: bool
    trial_start_time: Optional[datetime] = None
    trial_end_time: Optional[datetime] = None
    is_trial_used: bool = False


NO_TRIAL = TrialState(is_in_trial=False)


class TrialService:
    """Service for trial window lookups"""

    def __init__(self, duration_hours: int | None = None):
        self.duration_hours = duration_hours or settings.trial_duration_hours

    @staticmethod
    def evaluate(trial: Optional[UserTrial], now: Optional[datetime] = None) -> TrialState:
        """Compute TrialState from a stored row. No row means no trial."""
        if trial is None:
            return NO_TRIAL

        now = now or datetime.utcnow()
        in_window = trial.trial_start_time <= now < trial.trial_end_time

        return TrialState(
            is_in_trial=(not trial.is_trial_used) and in_window,
            trial_start_time=trial.trial_start_time,
            trial_end_time=trial.trial_end_time,
            is_trial_used=trial.is_trial_used,
        )

    async def get_trial_state(
        self,
        user_id: int,
        db: AsyncSession,
        now: Optional[datetime] = None,
    ) -> TrialState:
        result = await db.execute(
            select(UserTrial).where(UserTrial.user_id == user_id)
        )
        return self.evaluate(result.scalar_one_or_none(), now)

    def build_trial(self, user_id: int, now: Optional[datetime] = None) -> UserTrial:
        """Build (not persist) the trial row for a newly created user.

        Does not commit - caller adds it to the session that creates the user.
        """
        start = now or datetime.utcnow()
        return UserTrial(
            user_id=user_id,
            trial_start_time=start,
            trial_end_time=start + timedelta(hours=self.duration_hours),
            is_trial_used=False,
        )


# Global service instance
trial_service = TrialService()
