"""
Tests for completing onboarding on the payment return.
"""
from datetime import datetime, timedelta

from app.services.onboarding import Route
from app.services.onboarding.reconciler import CompletionReconciler
from app.services.preferences import preference_store
from app.services.stripe import SubscriptionSnapshot
from app.utils.constants import ONBOARDING_STEP_COMPLETED


class FakeSubscriptions:
    def __init__(self, plan_id=None, resync_error=None, status_error=None):
        self.plan_id = plan_id
        self.resync_error = resync_error
        self.status_error = status_error
        self.resynced = []

    async def get_status(self, user_id, db):
        if self.status_error:
            raise self.status_error
        if self.plan_id is None:
            return None
        return SubscriptionSnapshot(status="active", plan_id=self.plan_id)

    async def resync(self, user_id, db):
        self.resynced.append(user_id)
        if self.resync_error:
            raise self.resync_error
        return None


async def test_completion_marks_row_and_routes_to_dashboard(db, user):
    user_id = user.id
    subscriptions = FakeSubscriptions()
    await preference_store.upsert(user_id, db, selected_plan_id="enterprise", onboarding_step=2)

    result = await CompletionReconciler(subscriptions=subscriptions).complete(user_id, db)

    assert result.route == Route.DASHBOARD
    assert result.marked_complete is True
    assert result.subscription_synced is True
    assert subscriptions.resynced == [user_id]

    snapshot = await preference_store.get(user_id, db, use_cache=False)
    assert snapshot.has_completed_onboarding is True
    assert snapshot.onboarding_step == ONBOARDING_STEP_COMPLETED
    assert snapshot.selected_plan_id == "enterprise"
    assert snapshot.onboarding_completed_at is not None


async def test_completion_is_idempotent(db, user):
    user_id = user.id
    reconciler = CompletionReconciler(subscriptions=FakeSubscriptions())
    earlier = datetime.utcnow() - timedelta(days=3)
    await preference_store.upsert(
        user_id,
        db,
        has_completed_onboarding=True,
        onboarding_step=ONBOARDING_STEP_COMPLETED,
        selected_plan_id="pro",
        onboarding_completed_at=earlier,
    )

    await reconciler.complete(user_id, db)
    await reconciler.complete(user_id, db)

    snapshot = await preference_store.get(user_id, db, use_cache=False)
    assert snapshot.onboarding_completed_at == earlier
    assert snapshot.selected_plan_id == "pro"


async def test_resync_failure_still_lands_on_dashboard(db, user):
    user_id = user.id
    reconciler = CompletionReconciler(subscriptions=FakeSubscriptions(resync_error=RuntimeError("stripe down")))

    result = await reconciler.complete(user_id, db)

    assert result.route == Route.DASHBOARD
    assert result.marked_complete is True
    assert result.subscription_synced is False

    snapshot = await preference_store.get(user_id, db, use_cache=False)
    assert snapshot.has_completed_onboarding is True


async def test_missing_row_is_created_complete_with_subscription_plan(db, user):
    user_id = user.id
    reconciler = CompletionReconciler(subscriptions=FakeSubscriptions(plan_id="enterprise"))

    await reconciler.complete(user_id, db)

    snapshot = await preference_store.get(user_id, db, use_cache=False)
    assert snapshot.has_completed_onboarding is True
    assert snapshot.selected_plan_id == "enterprise"
    assert snapshot.onboarding_started_at is not None


async def test_plan_falls_back_to_default_when_nothing_known(db, user):
    user_id = user.id
    reconciler = CompletionReconciler(subscriptions=FakeSubscriptions(status_error=RuntimeError("boom")))

    await reconciler.complete(user_id, db)

    snapshot = await preference_store.get(user_id, db, use_cache=False)
    assert snapshot.has_completed_onboarding is True
    assert snapshot.selected_plan_id == "pro"


async def test_write_failure_is_swallowed(db, user):
    class FailingStore:
        async def apply(self, user_id, db, merge):
            raise RuntimeError("write failed")

    user_id = user.id
    subscriptions = FakeSubscriptions()
    reconciler = CompletionReconciler(store=FailingStore(), subscriptions=subscriptions)

    result = await reconciler.complete(user_id, db)

    assert result.route == Route.DASHBOARD
    assert result.marked_complete is False
    assert subscriptions.resynced == [user_id]
