"""Billing schemas: plan catalog, subscription and plan changes"""

from datetime import datetime
from pydantic import BaseModel


class PlanResponse(BaseModel):
    """Public plan card"""
    id: str
    name: str
    price: str
    interval: str
    description: str
    popular: bool
    contact_sales: bool
    available: bool


class PlanListResponse(BaseModel):
    plans: list[PlanResponse]


class SubscriptionResponse(BaseModel):
    """Mirrored Stripe subscription"""
    status: str
    plan_id: str | None
    product_name: str | None
    current_period_end: datetime | None
    cancel_at_period_end: bool

    class Config:
        from_attributes = True


class SubscriptionEnvelope(BaseModel):
    subscription: SubscriptionResponse | None


class UpgradeRequest(BaseModel):
    """Move the caller's subscription to another plan"""
    plan_id: str
    prorate: bool = True


class UpgradeResponse(BaseModel):
    success: bool
    status: str
    plan_id: str
    product_name: str | None
    current_period_end: datetime | None
    proration_amount: int
