"""Onboarding gate: the single decision from account state to a route.

Every entry point (login bootstrap, navigation guard, status endpoints)
gathers its inputs first and then calls ``decide``. The policy lives here
and nowhere else.
"""

from dataclasses import dataclass
from enum import Enum


class Route(str, Enum):
    """Canonical app routes"""

    LOGIN = "/login"
    ONBOARDING = "/onboarding"
    DASHBOARD = "/dashboard"
    CONTACT_SALES = "/contact-sales"


@dataclass(frozen=True)
class GateInput:
    is_authenticated: bool
    has_active_or_trialing_subscription: bool = False
    is_in_trial: bool = False
    has_completed_onboarding: bool = False
    has_selected_plan: bool = False


# An in-progress trial alone does not skip plan selection
TRIAL_GRANTS_ACCESS = False


def decide(gate_input: GateInput, trial_grants_access: bool = TRIAL_GRANTS_ACCESS) -> Route:
    """Map account state to a route. First matching rule wins.

    Callers use the default policy; ``trial_grants_access`` exists so the
    trial rule keeps its place in the order.
    """
    if not gate_input.is_authenticated:
        return Route.LOGIN
    if gate_input.has_active_or_trialing_subscription:
        return Route.DASHBOARD
    if trial_grants_access and gate_input.is_in_trial:
        return Route.DASHBOARD
    if gate_input.has_completed_onboarding and gate_input.has_selected_plan:
        return Route.DASHBOARD
    return Route.ONBOARDING
