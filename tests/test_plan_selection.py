"""
Tests for recording a plan choice and building the checkout redirect.
"""
from urllib.parse import parse_qs, urlsplit

import pytest

from app.config import settings
from app.services.onboarding import (
    PlanUnavailableError,
    SelectionInProgressError,
    UnknownPlanError,
)
from app.services.onboarding.plan_selection import PlanSelectionRecorder, build_checkout_url
from app.services.preferences import preference_store
from app.services.stripe import stripe_settings
from app.utils.constants import ONBOARDING_STEP_COMPLETED, ONBOARDING_STEP_PLAN_SELECTED


class FailingStore:
    async def apply(self, user_id, db, merge):
        raise RuntimeError("write failed")


@pytest.fixture
def recorder():
    return PlanSelectionRecorder()


async def test_checkout_plan_records_choice_and_returns_payment_link(recorder, db, user):
    selection = await recorder.select_plan(user.id, user.email, "pro", db)

    assert selection.is_checkout is True
    assert selection.plan_id == "pro"

    parts = urlsplit(selection.redirect_url)
    assert f"{parts.scheme}://{parts.netloc}{parts.path}" == "https://buy.stripe.com/test_pro"
    assert parse_qs(parts.query) == {
        "prefilled_email": [user.email],
        "client_reference_id": [str(user.id)],
    }

    snapshot = await preference_store.get(user.id, db, use_cache=False)
    assert snapshot.selected_plan_id == "pro"
    assert snapshot.onboarding_step == ONBOARDING_STEP_PLAN_SELECTED
    assert snapshot.onboarding_started_at is not None
    assert snapshot.has_completed_onboarding is False
    assert not recorder.is_in_flight(user.id)


async def test_selection_never_moves_step_backwards(recorder, db, user):
    await preference_store.upsert(user.id, db, onboarding_step=ONBOARDING_STEP_COMPLETED, selected_plan_id="pro")

    await recorder.select_plan(user.id, user.email, "enterprise", db)

    snapshot = await preference_store.get(user.id, db, use_cache=False)
    assert snapshot.selected_plan_id == "enterprise"
    assert snapshot.onboarding_step == ONBOARDING_STEP_COMPLETED


async def test_contact_sales_plan_writes_nothing(recorder, db, user):
    selection = await recorder.select_plan(user.id, user.email, "custom", db)

    assert selection.is_checkout is False
    assert selection.redirect_url == "http://app.test/contact-sales"
    assert await preference_store.get(user.id, db, use_cache=False) is None


async def test_contact_sales_url_ignores_trailing_slash_in_app_url(recorder, db, user, monkeypatch):
    monkeypatch.setattr(settings, "app_url", "http://app.test/")

    selection = await recorder.select_plan(user.id, user.email, "custom", db)

    assert selection.redirect_url == "http://app.test/contact-sales"


async def test_unknown_plan_is_rejected(recorder, db, user):
    with pytest.raises(UnknownPlanError):
        await recorder.select_plan(user.id, user.email, "platinum", db)
    assert await preference_store.get(user.id, db, use_cache=False) is None


async def test_plan_without_payment_link_is_unavailable(recorder, db, user, monkeypatch):
    monkeypatch.setattr(stripe_settings, "stripe_pro_payment_link", "")

    with pytest.raises(PlanUnavailableError):
        await recorder.select_plan(user.id, user.email, "pro", db)
    assert await preference_store.get(user.id, db, use_cache=False) is None


async def test_second_selection_while_first_in_flight_is_rejected(recorder, db, user):
    recorder._in_flight.add(user.id)

    with pytest.raises(SelectionInProgressError):
        await recorder.select_plan(user.id, user.email, "pro", db)

    assert await preference_store.get(user.id, db, use_cache=False) is None


async def test_failed_write_still_redirects_to_checkout(db, user):
    recorder = PlanSelectionRecorder(store=FailingStore())

    selection = await recorder.select_plan(user.id, user.email, "enterprise", db)

    assert selection.is_checkout is True
    assert selection.redirect_url.startswith("https://buy.stripe.com/test_enterprise?")
    assert not recorder.is_in_flight(user.id)


def test_checkout_url_keeps_existing_query_and_replaces_stale_reference():
    url = build_checkout_url(
        "https://buy.stripe.com/abc?locale=de&client_reference_id=99",
        "a+b@example.com",
        7,
    )
    query = parse_qs(urlsplit(url).query)
    assert query == {
        "locale": ["de"],
        "prefilled_email": ["a+b@example.com"],
        "client_reference_id": ["7"],
    }
