"""User schemas for responses"""

from datetime import datetime
from pydantic import BaseModel, EmailStr


class UserResponse(BaseModel):
    """User basic response"""
    id: int
    email: EmailStr
    name: str | None
    created_at: datetime

    class Config:
        from_attributes = True


class PreferencesSummary(BaseModel):
    """Onboarding summary for user details"""
    has_completed_onboarding: bool
    onboarding_step: int
    selected_plan_id: str | None

    class Config:
        from_attributes = True


class SubscriptionSummary(BaseModel):
    """Subscription summary for user details"""
    plan_id: str | None
    status: str
    current_period_end: datetime | None

    class Config:
        from_attributes = True


class TrialSummary(BaseModel):
    """Trial window for user details"""
    is_in_trial: bool
    trial_end_time: datetime | None

    class Config:
        from_attributes = True


class UserWithDetailsResponse(BaseModel):
    """User response with onboarding, subscription and trial details"""
    user: UserResponse
    preferences: PreferencesSummary | None
    subscription: SubscriptionSummary | None
    trial: TrialSummary
    destination: str


class LoginResponse(BaseModel):
    """Login endpoint response"""
    user: UserResponse
    is_new_user: bool
    onboarding_completed: bool
    destination: str
