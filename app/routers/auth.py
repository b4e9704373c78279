"""Authentication router: sign-in callback, login and user info"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db import get_db
from app.models import User
from app.schemas.common import MessageResponse
from app.schemas.user import (
    LoginResponse,
    PreferencesSummary,
    SubscriptionSummary,
    TrialSummary,
    UserResponse,
    UserWithDetailsResponse,
)
from app.services.firebase import (
    exchange_code_for_session,
    get_current_user,
    get_current_user_or_create,
    get_or_create_user,
)
from app.services.onboarding import Route, decide
from app.services.onboarding.bootstrap import session_bootstrap
from app.services.onboarding.signals import gather_gate_input
from app.services.preferences import preference_store
from app.services.stripe import subscription_service
from app.services.trial import trial_service
from app.utils.constants import AUTH_FAILED_ERROR
from app.utils.redirects import app_redirect

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def set_session_cookie(response: Response, session_cookie: str) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=session_cookie,
        max_age=settings.session_cookie_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        path="/",
    )


@router.get("/callback")
async def auth_callback(
    code: Optional[str] = None,
    next_path: Optional[str] = Query(None, alias="next"),
    db: AsyncSession = Depends(get_db),
):
    """
    Finish sign-in: exchange the one-time code for a session cookie.

    First-time users are created here. The browser is sent to the route the
    onboarding gate picks, or to an explicit ``next`` path.
    """
    if not code:
        return app_redirect(Route.LOGIN.value)

    try:
        token_data, session_cookie = await exchange_code_for_session(code)
        user, created = await get_or_create_user(token_data, db)
    except Exception as e:
        logger.warning(f"Sign-in code exchange failed: {e}")
        return app_redirect(Route.LOGIN.value, error=AUTH_FAILED_ERROR)

    if created:
        logger.info(f"First sign-in for user {user.id}")

    result = await session_bootstrap.complete_login(user, db, next_path=next_path)

    response = app_redirect(result.route)
    set_session_cookie(response, session_cookie)
    return response


@router.post("/login", response_model=LoginResponse)
async def login(
    next_path: Optional[str] = Query(None, alias="next"),
    user: User = Depends(get_current_user_or_create),
    db: AsyncSession = Depends(get_db),
):
    """
    Verify Firebase token and login or create user.

    Runs the same bootstrap as the sign-in callback and returns the
    destination instead of redirecting.
    """
    result = await session_bootstrap.complete_login(user, db, next_path=next_path)
    preferences = await preference_store.get(user.id, db)

    return LoginResponse(
        user=UserResponse.model_validate(user),
        is_new_user=result.created_preferences,
        onboarding_completed=bool(preferences and preferences.has_completed_onboarding),
        destination=result.route,
    )


@router.get("/me", response_model=UserWithDetailsResponse)
async def get_me(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Get current authenticated user's information.

    Returns user details along with onboarding, subscription and trial state.
    """
    preferences = await preference_store.get(user.id, db)
    subscription = await subscription_service.get_status(user.id, db)
    trial = await trial_service.get_trial_state(user.id, db)
    destination = decide(await gather_gate_input(user, db))

    return UserWithDetailsResponse(
        user=UserResponse.model_validate(user),
        preferences=PreferencesSummary.model_validate(preferences) if preferences else None,
        subscription=SubscriptionSummary.model_validate(subscription) if subscription else None,
        trial=TrialSummary.model_validate(trial),
        destination=destination.value,
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response):
    """Clear the session cookie."""
    response.delete_cookie(key=settings.session_cookie_name, path="/")
    return MessageResponse(message="Logged out")
