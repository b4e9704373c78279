"""
End-to-end onboarding over HTTP: sign in, choose a plan, return from payment.
"""
from types import SimpleNamespace

import pytest
import stripe

from app.services.onboarding.plan_selection import plan_selection_recorder
from app.services.stripe import stripe_settings, subscription_service


@pytest.fixture
def stripe_offline(monkeypatch):
    """Resync finds nothing on Stripe's side."""
    calls = []

    async def fake_resync(user_id, db):
        calls.append(user_id)
        return None

    monkeypatch.setattr(subscription_service, "resync", fake_resync)
    return calls


async def test_signup_to_dashboard(client, sign_in, user, stripe_offline):
    user_id = user.id
    sign_in(user)

    login = await client.post("/api/v1/auth/login")
    assert login.json()["destination"] == "/onboarding"

    status = await client.get("/api/v1/onboarding/status")
    assert status.json()["onboarding_step"] == 1
    assert status.json()["destination"] == "/onboarding"

    guarded = await client.get("/api/v1/onboarding/navigation", params={"current_path": "/dashboard"})
    assert guarded.json()["should_redirect"] is True
    assert guarded.json()["destination"] == "/onboarding"

    selection = await client.post("/api/v1/onboarding/plan", json={"plan_id": "pro"})
    assert selection.status_code == 200
    assert selection.json()["is_checkout"] is True
    assert selection.json()["redirect_url"].startswith("https://buy.stripe.com/test_pro?")
    assert f"client_reference_id={user_id}" in selection.json()["redirect_url"]

    status = await client.get("/api/v1/onboarding/status")
    assert status.json()["onboarding_step"] == 2
    assert status.json()["selected_plan_id"] == "pro"
    # Choosing a plan is not paying for it
    assert status.json()["destination"] == "/onboarding"

    returned = await client.get("/api/v1/onboarding/success", params={"client_reference_id": str(user_id)})
    assert returned.status_code == 303
    assert returned.headers["location"] == "http://app.test/dashboard"
    assert stripe_offline == [user_id]

    status = await client.get("/api/v1/onboarding/status")
    assert status.json()["has_completed_onboarding"] is True
    assert status.json()["onboarding_step"] == 3
    assert status.json()["onboarding_completed_at"] is not None
    assert status.json()["destination"] == "/dashboard"

    guarded = await client.get("/api/v1/onboarding/navigation", params={"current_path": "/dashboard"})
    assert guarded.json()["show_page"] is True
    assert guarded.json()["should_redirect"] is False


async def test_success_return_is_idempotent(client, sign_in, user, stripe_offline):
    sign_in(user)

    first = await client.get("/api/v1/onboarding/success")
    completed_at = (await client.get("/api/v1/onboarding/status")).json()["onboarding_completed_at"]
    second = await client.get("/api/v1/onboarding/success")

    assert first.headers["location"] == second.headers["location"] == "http://app.test/dashboard"
    assert (await client.get("/api/v1/onboarding/status")).json()["onboarding_completed_at"] == completed_at


async def test_success_without_session_goes_to_login(client, sign_in, stripe_offline):
    sign_in(None)

    response = await client.get("/api/v1/onboarding/success", params={"client_reference_id": "1"})

    assert response.status_code == 303
    assert response.headers["location"] == "http://app.test/login?error=auth-failed"
    assert stripe_offline == []


async def test_contact_sales_plan(client, sign_in, user):
    sign_in(user)

    response = await client.post("/api/v1/onboarding/plan", json={"plan_id": "custom"})

    assert response.json() == {
        "plan_id": "custom",
        "redirect_url": "http://app.test/contact-sales",
        "is_checkout": False,
    }
    status = await client.get("/api/v1/onboarding/status")
    assert status.json()["selected_plan_id"] is None


async def test_plan_selection_errors(client, sign_in, user, monkeypatch):
    sign_in(user)

    unknown = await client.post("/api/v1/onboarding/plan", json={"plan_id": "platinum"})
    assert unknown.status_code == 400

    empty = await client.post("/api/v1/onboarding/plan", json={"plan_id": ""})
    assert empty.status_code == 422

    plan_selection_recorder._in_flight.add(user.id)
    busy = await client.post("/api/v1/onboarding/plan", json={"plan_id": "pro"})
    assert busy.status_code == 409
    plan_selection_recorder._in_flight.clear()

    monkeypatch.setattr(stripe_settings, "stripe_enterprise_payment_link", "")
    unavailable = await client.post("/api/v1/onboarding/plan", json={"plan_id": "enterprise"})
    assert unavailable.status_code == 503


async def test_reset_starts_over(client, sign_in, user, stripe_offline):
    sign_in(user)
    await client.get("/api/v1/onboarding/success")

    response = await client.post("/api/v1/onboarding/reset")

    assert response.status_code == 200
    assert response.json()["has_completed_onboarding"] is False
    assert response.json()["selected_plan_id"] is None
    assert response.json()["onboarding_step"] == 1
    assert response.json()["destination"] == "/onboarding"


async def test_navigation_for_signed_out_visitor(client, sign_in):
    sign_in(None)

    response = await client.get("/api/v1/onboarding/navigation", params={"current_path": "/onboarding"})

    assert response.json()["destination"] == "/login"
    assert response.json()["should_redirect"] is True


async def test_onboarding_endpoints_require_sign_in(client):
    assert (await client.get("/api/v1/onboarding/status")).status_code == 401
    assert (await client.post("/api/v1/onboarding/plan", json={"plan_id": "pro"})).status_code == 401
    assert (await client.get("/api/v1/onboarding/events", params={"current_path": "/dashboard"})).status_code == 401


async def test_plan_catalog(client):
    response = await client.get("/api/v1/billing/plans")

    plans = {plan["id"]: plan for plan in response.json()["plans"]}
    assert list(plans) == ["pro", "enterprise", "custom"]
    assert plans["enterprise"]["popular"] is True
    assert plans["custom"]["contact_sales"] is True
    assert all(plan["available"] for plan in plans.values())


async def test_subscription_endpoint(client, sign_in, make_user):
    paid = await make_user(email="paid@example.com", subscription_status="active")
    sign_in(paid)

    response = await client.get("/api/v1/billing/subscription")

    assert response.json()["subscription"]["status"] == "active"
    assert response.json()["subscription"]["plan_id"] == "pro"


async def test_sync_maps_stripe_errors(client, sign_in, user, monkeypatch):
    async def failing_resync(user_id, db):
        raise stripe.StripeError("stripe unavailable")

    monkeypatch.setattr(subscription_service, "resync", failing_resync)
    sign_in(user)

    response = await client.post("/api/v1/billing/sync")
    assert response.status_code == 502


async def test_upgrade_without_subscription_is_not_found(client, sign_in, user):
    sign_in(user)
    response = await client.post("/api/v1/billing/upgrade", json={"plan_id": "enterprise"})
    assert response.status_code == 404


async def test_webhook_requires_signature(client):
    response = await client.post("/api/v1/billing/webhooks/stripe", content=b"{}")
    assert response.status_code == 400


async def test_webhook_cancels_subscription(client, sign_in, make_user, monkeypatch):
    paid = await make_user(email="paid@example.com", subscription_status="active")
    event = SimpleNamespace(
        type="customer.subscription.deleted",
        data=SimpleNamespace(object={"id": "sub_test", "customer": "cus_test"}),
    )
    monkeypatch.setattr(subscription_service, "construct_webhook_event", lambda payload, signature: event)

    response = await client.post(
        "/api/v1/billing/webhooks/stripe",
        content=b"{}",
        headers={"stripe-signature": "t=1,v1=test"},
    )
    assert response.json() == {"status": "success"}

    sign_in(paid)
    subscription = await client.get("/api/v1/billing/subscription")
    assert subscription.json()["subscription"]["status"] == "canceled"
