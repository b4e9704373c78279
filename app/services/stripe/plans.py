"""Plan catalog shown on the onboarding pricing step"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from app.services.stripe.stripe_config import stripe_settings

PRO_PLAN_ID = "pro"
ENTERPRISE_PLAN_ID = "enterprise"
CUSTOM_PLAN_ID = "custom"


@dataclass(frozen=True)
class Plan:
    id: str
    name: str
    price: str
    interval: str
    description: str
    payment_link: Optional[str] = None
    price_id: Optional[str] = None
    contact_sales: bool = False
    popular: bool = False

    @property
    def is_checkout(self) -> bool:
        return not self.contact_sales


def get_plan_catalog() -> Dict[str, Plan]:
    """Build the catalog from current Stripe settings, keyed by plan id."""
    plans = [
        Plan(
            id=PRO_PLAN_ID,
            name="Pro",
            price="$19",
            interval="month",
            description="Perfect for small teams and startups",
            payment_link=stripe_settings.stripe_pro_payment_link or None,
            price_id=stripe_settings.stripe_price_pro or None,
        ),
        Plan(
            id=ENTERPRISE_PLAN_ID,
            name="Enterprise",
            price="$49",
            interval="month",
            description="For larger organizations",
            payment_link=stripe_settings.stripe_enterprise_payment_link or None,
            price_id=stripe_settings.stripe_price_enterprise or None,
            popular=True,
        ),
        Plan(
            id=CUSTOM_PLAN_ID,
            name="Custom",
            price="Custom",
            interval="",
            description="Tailored to your needs",
            contact_sales=True,
        ),
    ]
    return {plan.id: plan for plan in plans}


def list_plans() -> List[Plan]:
    return list(get_plan_catalog().values())


def get_plan(plan_id: str) -> Optional[Plan]:
    return get_plan_catalog().get(plan_id)


def plan_for_price(price_id: Optional[str]) -> Optional[Plan]:
    """Reverse lookup used when Stripe reports which price a subscription is on."""
    if not price_id:
        return None
    for plan in get_plan_catalog().values():
        if plan.price_id == price_id:
            return plan
    return None
