"""Pydantic schemas for request/response validation"""

from app.schemas.common import ErrorDetail, ErrorResponse, MessageResponse
from app.schemas.user import (
    LoginResponse,
    PreferencesSummary,
    SubscriptionSummary,
    TrialSummary,
    UserResponse,
    UserWithDetailsResponse,
)
from app.schemas.onboarding import (
    NavigationDecisionResponse,
    OnboardingStatusResponse,
    PlanSelectRequest,
    PlanSelectResponse,
)
from app.schemas.billing import (
    PlanListResponse,
    PlanResponse,
    SubscriptionEnvelope,
    SubscriptionResponse,
    UpgradeRequest,
    UpgradeResponse,
)

__all__ = [
    # Common
    "ErrorDetail",
    "ErrorResponse",
    "MessageResponse",
    # User
    "LoginResponse",
    "PreferencesSummary",
    "SubscriptionSummary",
    "TrialSummary",
    "UserResponse",
    "UserWithDetailsResponse",
    # Onboarding
    "NavigationDecisionResponse",
    "OnboardingStatusResponse",
    "PlanSelectRequest",
    "PlanSelectResponse",
    # Billing
    "PlanListResponse",
    "PlanResponse",
    "SubscriptionEnvelope",
    "SubscriptionResponse",
    "UpgradeRequest",
    "UpgradeResponse",
]
