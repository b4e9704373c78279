"""Onboarding domain errors, translated to HTTP responses by the routers"""


class OnboardingError(Exception):
    """Base class for onboarding flow errors"""


class UnknownPlanError(OnboardingError):
    """Plan id is not in the catalog"""

    def __init__(self, plan_id: str):
        self.plan_id = plan_id
        super().__init__(f"Unknown plan: {plan_id}")


class PlanUnavailableError(OnboardingError):
    """Plan exists but has no payment link configured"""

    def __init__(self, plan_id: str):
        self.plan_id = plan_id
        super().__init__(f"Plan {plan_id} has no payment link configured")


class SelectionInProgressError(OnboardingError):
    """A plan selection for the same user is already being prepared"""

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"Plan selection already in progress for user {user_id}")


class NoSubscriptionError(OnboardingError):
    """User has no Stripe subscription to change"""

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"No subscription found for user {user_id}")
