"""Onboarding router: status, plan selection, payment return and navigation"""

import json
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sse_starlette.sse import EventSourceResponse

from app.config import settings
from app.db import get_db, get_db_session
from app.models import User
from app.schemas.onboarding import (
    NavigationDecisionResponse,
    OnboardingStatusResponse,
    PlanSelectRequest,
    PlanSelectResponse,
)
from app.services.firebase import get_current_user, get_optional_user
from app.services.onboarding import (
    PlanUnavailableError,
    Route,
    SelectionInProgressError,
    UnknownPlanError,
    decide,
)
from app.services.onboarding.guard import navigation_guard, watch_decisions
from app.services.onboarding.plan_selection import plan_selection_recorder
from app.services.onboarding.reconciler import completion_reconciler
from app.services.onboarding.signals import gather_gate_input, gather_signals
from app.services.preferences import PreferenceSnapshot, preference_store
from app.utils.constants import AUTH_FAILED_ERROR
from app.utils.redirects import app_redirect

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/onboarding", tags=["Onboarding"])


def get_session_factory():
    """Opens sessions for long-lived streams, which outlive the request session."""
    return get_db_session


async def _status_response(
    user: User,
    snapshot: PreferenceSnapshot,
    db: AsyncSession,
) -> OnboardingStatusResponse:
    destination = decide(await gather_gate_input(user, db))
    return OnboardingStatusResponse(
        has_completed_onboarding=snapshot.has_completed_onboarding,
        onboarding_step=snapshot.onboarding_step,
        selected_plan_id=snapshot.selected_plan_id,
        onboarding_started_at=snapshot.onboarding_started_at,
        onboarding_completed_at=snapshot.onboarding_completed_at,
        destination=destination.value,
    )


@router.get("/status", response_model=OnboardingStatusResponse)
async def get_onboarding_status(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Get the caller's onboarding row, creating it on first access.
    """
    snapshot, created = await preference_store.get_or_create(user.id, db)
    if created:
        logger.info(f"Created onboarding row on status read for user {user.id}")
    return await _status_response(user, snapshot, db)


@router.post("/reset", response_model=OnboardingStatusResponse)
async def reset_onboarding(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Start onboarding over: no plan, step 1, not completed.
    """
    snapshot = await preference_store.reset(user.id, db)
    return await _status_response(user, snapshot, db)


@router.post("/plan", response_model=PlanSelectResponse)
async def select_plan(
    data: PlanSelectRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Record the chosen plan and return the checkout (or contact sales) URL.
    """
    try:
        selection = await plan_selection_recorder.select_plan(
            user_id=user.id,
            email=user.email,
            plan_id=data.plan_id,
            db=db,
        )
    except UnknownPlanError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    except SelectionInProgressError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )
    except PlanUnavailableError as e:
        logger.error(f"Plan selection unavailable: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )

    return PlanSelectResponse(
        plan_id=selection.plan_id,
        redirect_url=selection.redirect_url,
        is_checkout=selection.is_checkout,
    )


@router.get("/success")
async def onboarding_success(
    client_reference_id: Optional[str] = None,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Return target of the Stripe Payment Link.

    The user comes from the session only; query parameters are never trusted
    to identify the account.
    """
    if user is None:
        logger.warning("Payment return without a signed-in user")
        return app_redirect(Route.LOGIN.value, error=AUTH_FAILED_ERROR)

    user_id = user.id
    if client_reference_id and client_reference_id != str(user_id):
        logger.warning(
            f"Payment return reference {client_reference_id} does not match signed-in user {user_id}"
        )

    result = await completion_reconciler.complete(user_id, db)
    return app_redirect(result.route.value)


@router.get("/navigation", response_model=NavigationDecisionResponse)
async def get_navigation_decision(
    current_path: str = Query(..., min_length=1),
    waiting_since: Optional[datetime] = None,
    user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """
    What the page at ``current_path`` should do with the caller's current state.
    """
    signals = await gather_signals(user, db)
    decision = navigation_guard.evaluate(current_path, signals, waiting_since=waiting_since)
    return NavigationDecisionResponse(**decision.to_dict())


@router.get("/events")
async def navigation_events(
    request: Request,
    current_path: str = Query(..., min_length=1),
    user: User = Depends(get_current_user),
    session_factory=Depends(get_session_factory),
):
    """
    Server-sent navigation decisions for ``current_path``.

    One ``decision`` event on connect, then one after every change to the
    caller's onboarding row or subscription.
    """
    user_id = user.id

    async def event_generator():
        async with preference_store.feed.subscribe(user_id) as subscription:
            logger.info(f"Navigation stream opened for user {user_id} on {current_path}")
            try:
                async for decision in watch_decisions(
                    user,
                    current_path,
                    session_factory,
                    subscription,
                    settings.events_keepalive_seconds,
                ):
                    if await request.is_disconnected():
                        break
                    if decision is None:
                        continue
                    yield {
                        "event": "decision",
                        "data": json.dumps(decision.to_dict()),
                    }
            finally:
                logger.info(f"Navigation stream closed for user {user_id}")

    return EventSourceResponse(event_generator(), ping=int(settings.events_keepalive_seconds))
