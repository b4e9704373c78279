"""
Tests for the sign-in callback and auth endpoints.
"""
from urllib.parse import parse_qs, urlsplit

import pytest
from fastapi import HTTPException
from sqlalchemy import select

import app.routers.auth as auth_router
from app.models import User, UserTrial
from app.services.firebase import TokenData

CALLBACK = "/api/v1/auth/callback"


@pytest.fixture
def firebase_exchange(monkeypatch):
    """Stand in for Firebase: every code signs in as ``identity``."""
    identity = {"uid": "firebase-new", "email": "first.login@example.com"}

    async def fake_exchange(code):
        if code == "bad-code":
            raise HTTPException(status_code=401, detail="Invalid token")
        return TokenData(uid=identity["uid"], email=identity["email"], name="First Login"), "session-cookie-value"

    monkeypatch.setattr(auth_router, "exchange_code_for_session", fake_exchange)
    return identity


async def test_callback_without_code_goes_to_login(client):
    response = await client.get(CALLBACK)
    assert response.status_code == 303
    assert response.headers["location"] == "http://app.test/login"


async def test_callback_with_rejected_code_reports_auth_failure(client, firebase_exchange):
    response = await client.get(CALLBACK, params={"code": "bad-code"})

    assert response.status_code == 303
    parts = urlsplit(response.headers["location"])
    assert parts.path == "/login"
    assert parse_qs(parts.query) == {"error": ["auth-failed"]}
    assert "set-cookie" not in response.headers


async def test_first_sign_in_creates_user_and_lands_on_onboarding(client, firebase_exchange, session_factory):
    response = await client.get(CALLBACK, params={"code": "good-code"})

    assert response.status_code == 303
    assert response.headers["location"] == "http://app.test/onboarding"
    assert "session=session-cookie-value" in response.headers["set-cookie"]
    assert "httponly" in response.headers["set-cookie"].lower()

    async with session_factory() as session:
        user = (await session.execute(select(User).where(User.firebase_uid == "firebase-new"))).scalar_one()
        trial = await session.get(UserTrial, user.id)
        assert trial is not None
        assert trial.is_trial_used is False


async def test_paying_user_lands_on_dashboard(client, firebase_exchange, make_user):
    paid = await make_user(email="paid@example.com", subscription_status="active")
    firebase_exchange.update(uid=paid.firebase_uid, email=paid.email)

    response = await client.get(CALLBACK, params={"code": "good-code"})

    assert response.headers["location"] == "http://app.test/dashboard"


async def test_callback_honours_safe_next_path(client, firebase_exchange):
    response = await client.get(CALLBACK, params={"code": "good-code", "next": "/settings"})
    assert response.headers["location"] == "http://app.test/settings"


async def test_callback_ignores_external_next_path(client, firebase_exchange):
    response = await client.get(CALLBACK, params={"code": "good-code", "next": "https://evil.example.com"})
    assert response.headers["location"] == "http://app.test/onboarding"


async def test_login_reports_new_user_and_destination(client, sign_in, user):
    sign_in(user)

    first = await client.post("/api/v1/auth/login")
    second = await client.post("/api/v1/auth/login")

    assert first.status_code == 200
    assert first.json()["is_new_user"] is True
    assert first.json()["destination"] == "/onboarding"
    assert first.json()["onboarding_completed"] is False
    assert second.json()["is_new_user"] is False


async def test_me_returns_state_and_destination(client, sign_in, make_user):
    paid = await make_user(email="paid@example.com", trial_hours=48, subscription_status="active")
    sign_in(paid)

    response = await client.get("/api/v1/auth/me")

    assert response.status_code == 200
    body = response.json()
    assert body["user"]["email"] == "paid@example.com"
    assert body["preferences"] is None
    assert body["subscription"]["status"] == "active"
    assert body["trial"]["is_in_trial"] is True
    assert body["destination"] == "/dashboard"


async def test_me_requires_credentials(client):
    response = await client.get("/api/v1/auth/me")
    assert response.status_code == 401


async def test_logout_clears_cookie(client):
    response = await client.post("/api/v1/auth/logout")
    assert response.status_code == 200
    assert response.headers["set-cookie"].startswith("session=")
