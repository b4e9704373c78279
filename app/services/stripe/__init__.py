"""Stripe service module for hosted checkout and subscription state"""

from app.services.stripe.stripe_config import StripeSettings, stripe_settings
from app.services.stripe.plans import Plan, get_plan, get_plan_catalog, list_plans, plan_for_price
from app.services.stripe.stripe_service import (
    SubscriptionService,
    SubscriptionSnapshot,
    UpgradeResult,
    subscription_service,
)

__all__ = [
    "StripeSettings",
    "stripe_settings",
    "Plan",
    "get_plan",
    "get_plan_catalog",
    "list_plans",
    "plan_for_price",
    "SubscriptionService",
    "SubscriptionSnapshot",
    "UpgradeResult",
    "subscription_service",
]
