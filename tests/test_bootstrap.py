"""
Tests for the post-login session bootstrap.
"""
import pytest
from sqlalchemy import func, select

from app.models import UserPreferences
from app.services.onboarding import Route
from app.services.onboarding.bootstrap import SessionBootstrapHandler, is_safe_next_path, session_bootstrap
from app.services.preferences import preference_store


class FailingStore:
    async def get_or_create(self, user_id, db):
        raise RuntimeError("database unavailable")


async def test_first_login_creates_row_and_routes_to_onboarding(db, session_factory, user):
    result = await session_bootstrap.complete_login(user, db)

    assert result.route == Route.ONBOARDING.value
    assert result.created_preferences is True
    assert result.used_override is False

    async with session_factory() as session:
        count = await session.execute(
            select(func.count()).select_from(UserPreferences).where(UserPreferences.user_id == user.id)
        )
        assert count.scalar_one() == 1


async def test_second_login_reuses_row(db, user):
    await session_bootstrap.complete_login(user, db)
    result = await session_bootstrap.complete_login(user, db)
    assert result.created_preferences is False
    assert result.route == Route.ONBOARDING.value


async def test_new_user_with_trial_still_chooses_a_plan(db, make_user):
    trial_user = await make_user(email="trial@example.com", trial_hours=48)
    result = await session_bootstrap.complete_login(trial_user, db)
    assert result.route == Route.ONBOARDING.value


async def test_active_subscription_skips_unfinished_onboarding(db, make_user):
    paid_user = await make_user(email="paid@example.com", subscription_status="active")
    result = await session_bootstrap.complete_login(paid_user, db)
    assert result.route == Route.DASHBOARD.value


async def test_canceled_subscription_does_not_grant_access(db, make_user):
    lapsed = await make_user(email="lapsed@example.com", subscription_status="canceled")
    result = await session_bootstrap.complete_login(lapsed, db)
    assert result.route == Route.ONBOARDING.value


async def test_completed_onboarding_lands_on_dashboard(db, user):
    await preference_store.upsert(user.id, db, has_completed_onboarding=True, selected_plan_id="pro")
    result = await session_bootstrap.complete_login(user, db)
    assert result.route == Route.DASHBOARD.value


async def test_safe_next_path_overrides_gate(db, user):
    result = await session_bootstrap.complete_login(user, db, next_path="/settings?tab=billing")
    assert result.route == "/settings?tab=billing"
    assert result.used_override is True
    assert result.created_preferences is True


@pytest.mark.parametrize("next_path", ["https://evil.example.com", "//evil.example.com", "settings", "/\\evil"])
async def test_unsafe_next_path_is_ignored(db, user, next_path):
    result = await session_bootstrap.complete_login(user, db, next_path=next_path)
    assert result.route == Route.ONBOARDING.value
    assert result.used_override is False


async def test_row_creation_failure_falls_back_to_onboarding(db, make_user):
    paid_user = await make_user(email="paid@example.com", subscription_status="active")
    handler = SessionBootstrapHandler(store=FailingStore())

    result = await handler.complete_login(paid_user, db)

    assert result.route == Route.ONBOARDING.value
    assert result.created_preferences is False


@pytest.mark.parametrize(
    "path, expected",
    [
        ("/dashboard", True),
        ("/settings?tab=billing#plans", True),
        ("", False),
        (None, False),
        ("dashboard", False),
        ("//evil.example.com/x", False),
        ("https://evil.example.com", False),
        ("/\\evil.example.com", False),
    ],
)
def test_is_safe_next_path(path, expected):
    assert is_safe_next_path(path) is expected
