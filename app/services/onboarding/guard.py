"""Navigation guard: what a page governed by the gate should do right now.

The client keeps asking (or listens on the event stream) while its data
loads. Until every signal is known the guard never names a destination, but
it can already hide a page that no outcome would allow.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncContextManager, AsyncIterator, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models import User
from app.services.onboarding.gate import Route, decide
from app.services.onboarding.signals import GateSignals, gather_signals
from app.services.preferences import PreferenceSubscription

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]


@dataclass(frozen=True)
class GuardDecision:
    settled: bool
    destination: Optional[Route]
    should_redirect: bool
    replace_history: bool
    show_page: bool
    slow_loading: bool = False

    def to_dict(self) -> dict:
        return {
            "settled": self.settled,
            "destination": self.destination.value if self.destination else None,
            "should_redirect": self.should_redirect,
            "replace_history": self.replace_history,
            "show_page": self.show_page,
            "slow_loading": self.slow_loading,
        }


def normalize_path(path: str) -> str:
    path = path.split("?", 1)[0].split("#", 1)[0]
    if len(path) > 1:
        path = path.rstrip("/")
    return path or "/"


class NavigationGuard:
    def __init__(self, loading_timeout_seconds: Optional[float] = None):
        self.loading_timeout_seconds = (
            loading_timeout_seconds
            if loading_timeout_seconds is not None
            else settings.loading_timeout_seconds
        )

    def evaluate(
        self,
        current_path: str,
        signals: GateSignals,
        waiting_since: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> GuardDecision:
        path = normalize_path(current_path)

        if signals.settled:
            destination = decide(signals.to_gate_input())
            redirect = destination.value != path
            return GuardDecision(
                settled=True,
                destination=destination,
                should_redirect=redirect,
                replace_history=redirect,
                show_page=not redirect,
            )

        # Hide the page only when no way the missing signals resolve would allow it
        reachable = {decide(candidate).value for candidate in signals.completions()}

        slow_loading = False
        if waiting_since is not None:
            if waiting_since.tzinfo is not None:
                waiting_since = waiting_since.astimezone(timezone.utc).replace(tzinfo=None)
            now = now or datetime.utcnow()
            slow_loading = (now - waiting_since).total_seconds() >= self.loading_timeout_seconds

        return GuardDecision(
            settled=False,
            destination=None,
            should_redirect=False,
            replace_history=False,
            show_page=path in reachable,
            slow_loading=slow_loading,
        )


async def watch_decisions(
    user: User,
    current_path: str,
    session_factory: SessionFactory,
    subscription: PreferenceSubscription,
    keepalive_seconds: float,
    guard: Optional[NavigationGuard] = None,
) -> AsyncIterator[Optional[GuardDecision]]:
    """Yield a decision now and again after every change to the user's row.

    Yields ``None`` when ``keepalive_seconds`` pass without a change. The
    caller owns ``subscription`` and must have started it.
    """
    guard = guard or navigation_guard
    user_id = user.id

    async with session_factory() as db:
        signals = await gather_signals(user, db)
    yield guard.evaluate(current_path, signals)

    while subscription.active:
        change = await subscription.next_event(timeout=keepalive_seconds)
        if change is None:
            yield None
            continue

        logger.debug(f"Preferences changed for user {user_id}, re-evaluating {current_path}")
        async with session_factory() as db:
            signals = await gather_signals(user, db)
        yield guard.evaluate(current_path, signals)


# Global guard instance
navigation_guard = NavigationGuard()
