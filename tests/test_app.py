"""
Tests for app-level endpoints, middleware and redirect helpers.
"""
from app.utils.redirects import app_redirect, app_url


async def test_health_reports_dependencies(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["database"] == "connected"
    assert response.json()["firebase"] == "unavailable"


async def test_requests_are_timed(client):
    response = await client.get("/api/v1/billing/plans")
    assert float(response.headers["X-Process-Time"]) >= 0


async def test_unauthenticated_error_shape(client):
    response = await client.get("/api/v1/billing/subscription")
    assert response.status_code == 401
    assert response.json() == {"detail": "Not authenticated"}


def test_app_url_builds_absolute_frontend_links():
    assert app_url("/dashboard") == "http://app.test/dashboard"
    assert app_url("/login", error="auth-failed", next=None) == "http://app.test/login?error=auth-failed"


def test_app_redirect_uses_see_other():
    response = app_redirect("/onboarding")
    assert response.status_code == 303
    assert response.headers["location"] == "http://app.test/onboarding"
