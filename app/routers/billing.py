"""Billing router for Stripe integration"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

import stripe

from app.db import get_db
from app.models import User
from app.schemas.billing import (
    PlanListResponse,
    PlanResponse,
    SubscriptionEnvelope,
    SubscriptionResponse,
    UpgradeRequest,
    UpgradeResponse,
)
from app.services.firebase import get_current_user
from app.services.onboarding import NoSubscriptionError, UnknownPlanError
from app.services.stripe import list_plans, subscription_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["Billing"])


@router.get("/plans", response_model=PlanListResponse)
async def get_plans():
    """
    Plan catalog for the pricing step.

    Public endpoint - no authentication required.
    """
    return PlanListResponse(
        plans=[
            PlanResponse(
                id=plan.id,
                name=plan.name,
                price=plan.price,
                interval=plan.interval,
                description=plan.description,
                popular=plan.popular,
                contact_sales=plan.contact_sales,
                available=plan.contact_sales or bool(plan.payment_link),
            )
            for plan in list_plans()
        ]
    )


@router.get("/subscription", response_model=SubscriptionEnvelope)
async def get_subscription(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Get the mirrored subscription for the current user.
    """
    snapshot = await subscription_service.get_status(user.id, db)
    return SubscriptionEnvelope(
        subscription=SubscriptionResponse.model_validate(snapshot) if snapshot else None,
    )


@router.post("/sync", response_model=SubscriptionEnvelope)
async def sync_subscription(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Pull the current subscription state from Stripe.
    """
    user_id = user.id
    try:
        snapshot = await subscription_service.resync(user_id, db)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe error syncing subscription for user {user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Payment service error. Please try again.",
        )

    return SubscriptionEnvelope(
        subscription=SubscriptionResponse.model_validate(snapshot) if snapshot else None,
    )


@router.post("/upgrade", response_model=UpgradeResponse)
async def upgrade_subscription(
    data: UpgradeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Move the caller's own subscription to another plan.

    Returns the prorated amount Stripe will invoice.
    """
    user_id = user.id
    try:
        result = await subscription_service.upgrade(user_id, data.plan_id, data.prorate, db)
    except UnknownPlanError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    except NoSubscriptionError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe error changing plan for user {user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Payment service error. Please try again.",
        )

    return UpgradeResponse(
        success=True,
        status=result.status,
        plan_id=result.plan_id,
        product_name=result.product_name,
        current_period_end=result.current_period_end,
        proration_amount=result.proration_amount,
    )


@router.post("/webhooks/stripe")
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """
    Stripe webhook endpoint.

    Handles events from Stripe to update subscription status.
    """
    payload = await request.body()
    signature = request.headers.get("stripe-signature")

    if not signature:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing stripe-signature header",
        )

    try:
        event = subscription_service.construct_webhook_event(payload, signature)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid payload",
        )
    except stripe.SignatureVerificationError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid signature",
        )

    logger.info(f"Received Stripe webhook: {event.type}")

    try:
        if event.type == "checkout.session.completed":
            await subscription_service.handle_checkout_completed(event.data.object, db)

        elif event.type == "customer.subscription.updated":
            await subscription_service.handle_subscription_updated(event.data.object, db)

        elif event.type == "customer.subscription.deleted":
            await subscription_service.handle_subscription_deleted(event.data.object, db)

        elif event.type == "invoice.payment_failed":
            await subscription_service.handle_invoice_payment_failed(event.data.object, db)

        else:
            logger.debug(f"Unhandled webhook event type: {event.type}")

    except Exception as e:
        logger.error(f"Error handling webhook {event.type}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Webhook processing error: {str(e)}",
        )

    return {"status": "success"}
