"""Onboarding schemas: status, plan selection and navigation decisions"""

from datetime import datetime
from pydantic import BaseModel, Field


class OnboardingStatusResponse(BaseModel):
    """Current onboarding row plus where the gate sends the user"""
    has_completed_onboarding: bool
    onboarding_step: int
    selected_plan_id: str | None
    onboarding_started_at: datetime | None
    onboarding_completed_at: datetime | None
    destination: str

    class Config:
        from_attributes = True


class PlanSelectRequest(BaseModel):
    """Pricing card click"""
    plan_id: str = Field(..., min_length=1, max_length=50)


class PlanSelectResponse(BaseModel):
    """Where the browser should go next"""
    plan_id: str
    redirect_url: str
    is_checkout: bool


class NavigationDecisionResponse(BaseModel):
    """What a gated page should do right now"""
    settled: bool
    destination: str | None
    should_redirect: bool
    replace_history: bool
    show_page: bool
    slow_loading: bool
