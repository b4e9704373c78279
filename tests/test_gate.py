"""
Tests for the onboarding gate decision.
"""
import itertools

import pytest

from app.services.onboarding import GateInput, Route, decide

FLAGS = (
    "is_authenticated",
    "has_active_or_trialing_subscription",
    "is_in_trial",
    "has_completed_onboarding",
    "has_selected_plan",
)


def all_inputs():
    for values in itertools.product((False, True), repeat=len(FLAGS)):
        yield GateInput(**dict(zip(FLAGS, values)))


def expected_route(gate_input: GateInput, trial_grants_access: bool) -> Route:
    if not gate_input.is_authenticated:
        return Route.LOGIN
    if gate_input.has_active_or_trialing_subscription:
        return Route.DASHBOARD
    if trial_grants_access and gate_input.is_in_trial:
        return Route.DASHBOARD
    if gate_input.has_completed_onboarding and gate_input.has_selected_plan:
        return Route.DASHBOARD
    return Route.ONBOARDING


@pytest.mark.parametrize("trial_grants_access", [False, True])
def test_decision_follows_rule_order_for_every_input(trial_grants_access):
    for gate_input in all_inputs():
        assert decide(gate_input, trial_grants_access) == expected_route(gate_input, trial_grants_access)


def test_same_input_gives_same_route():
    for gate_input in all_inputs():
        assert len({decide(gate_input) for _ in range(5)}) == 1


def test_unauthenticated_always_goes_to_login():
    for gate_input in all_inputs():
        if not gate_input.is_authenticated:
            assert decide(gate_input) == Route.LOGIN
            assert decide(gate_input, trial_grants_access=True) == Route.LOGIN


def test_subscription_wins_over_incomplete_onboarding():
    gate_input = GateInput(
        is_authenticated=True,
        has_active_or_trialing_subscription=True,
        has_completed_onboarding=False,
        has_selected_plan=False,
    )
    assert decide(gate_input) == Route.DASHBOARD


def test_fresh_user_goes_to_onboarding():
    assert decide(GateInput(is_authenticated=True)) == Route.ONBOARDING


def test_trial_alone_does_not_skip_onboarding():
    assert decide(GateInput(is_authenticated=True, is_in_trial=True)) == Route.ONBOARDING


def test_completed_onboarding_needs_a_plan():
    assert decide(GateInput(is_authenticated=True, has_completed_onboarding=True)) == Route.ONBOARDING
    assert decide(
        GateInput(is_authenticated=True, has_completed_onboarding=True, has_selected_plan=True)
    ) == Route.DASHBOARD


def test_contact_sales_is_never_a_gate_outcome():
    assert {decide(gate_input) for gate_input in all_inputs()} == {
        Route.LOGIN,
        Route.ONBOARDING,
        Route.DASHBOARD,
    }
