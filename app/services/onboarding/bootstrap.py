"""Session bootstrap: runs once after a successful sign-in to pick the landing route."""

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

from sqlalchemy.ext.asyncio import AsyncSession

from app.models import User
from app.services.onboarding.gate import Route, decide
from app.services.onboarding.signals import gather_gate_input
from app.services.preferences import PreferenceStore, preference_store
from app.utils.sentry_utils import capture_exception

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BootstrapResult:
    route: str
    created_preferences: bool = False
    used_override: bool = False


def is_safe_next_path(next_path: Optional[str]) -> bool:
    """True for same-origin relative paths like ``/settings?tab=billing``."""
    if not next_path or not next_path.startswith("/") or next_path.startswith("//"):
        return False
    if "\\" in next_path:
        return False
    parts = urlsplit(next_path)
    return not parts.scheme and not parts.netloc


class SessionBootstrapHandler:
    """Ensures the preference row exists and computes where the user lands"""

    def __init__(self, store: Optional[PreferenceStore] = None):
        self.store = store or preference_store

    async def complete_login(
        self,
        user: User,
        db: AsyncSession,
        next_path: Optional[str] = None,
    ) -> BootstrapResult:
        """Create the preference row if missing, then route through the gate.

        Never raises: if the row cannot be created the user lands on onboarding.
        An explicit ``next_path`` wins over the gate route when it is a safe
        relative path.
        """
        user_id = user.id

        try:
            _, created = await self.store.get_or_create(user_id, db)
        except Exception as e:
            logger.error(f"Failed to create preferences for user {user_id}: {e}", exc_info=True)
            capture_exception(e)
            return BootstrapResult(route=Route.ONBOARDING.value)

        route = decide(await gather_gate_input(user, db))

        if next_path is not None:
            if is_safe_next_path(next_path):
                logger.info(f"User {user_id} signed in with explicit target {next_path}")
                return BootstrapResult(route=next_path, created_preferences=created, used_override=True)
            logger.warning(f"Ignoring unsafe post-login target for user {user_id}: {next_path!r}")

        logger.info(f"User {user_id} signed in, routing to {route.value} (new preferences={created})")
        return BootstrapResult(route=route.value, created_preferences=created)


# Global handler instance
session_bootstrap = SessionBootstrapHandler()
