"""Onboarding flow: gate decision and the handlers around it.

Only the dependency-free pieces are re-exported here; the handlers import
the Stripe and preference services, so import them from their modules.
"""

from app.services.onboarding.errors import (
    NoSubscriptionError,
    OnboardingError,
    PlanUnavailableError,
    SelectionInProgressError,
    UnknownPlanError,
)
from app.services.onboarding.gate import GateInput, Route, decide

__all__ = [
    "GateInput",
    "Route",
    "decide",
    "OnboardingError",
    "UnknownPlanError",
    "PlanUnavailableError",
    "SelectionInProgressError",
    "NoSubscriptionError",
]
