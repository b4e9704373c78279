"""Stripe service: subscription status, resync, webhooks and plan changes"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import stripe
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.models import User, Subscription
from app.models.subscription import SubscriptionStatus
from app.services.onboarding.errors import NoSubscriptionError, UnknownPlanError
from app.services.preferences import preference_store
from app.services.stripe.plans import get_plan, plan_for_price
from app.services.stripe.stripe_config import stripe_settings
from app.utils.constants import ACCESS_GRANTING_STATUSES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubscriptionSnapshot:
    """Read-only view of a subscriptions row"""

    status: str
    plan_id: Optional[str] = None
    product_name: Optional[str] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None

    @property
    def grants_access(self) -> bool:
        return self.status in ACCESS_GRANTING_STATUSES

    @classmethod
    def from_row(cls, row: Subscription) -> "SubscriptionSnapshot":
        return cls(
            status=row.status,
            plan_id=row.plan_id,
            product_name=row.product_name,
            current_period_end=row.current_period_end,
            cancel_at_period_end=bool(row.cancel_at_period_end),
            stripe_customer_id=row.stripe_customer_id,
            stripe_subscription_id=row.stripe_subscription_id,
        )


@dataclass(frozen=True)
class UpgradeResult:
    status: str
    plan_id: str
    product_name: Optional[str]
    current_period_end: Optional[datetime]
    proration_amount: int


class SubscriptionService:
    """Mirror of Stripe subscription state for the gate and billing pages"""

    def __init__(self):
        self._initialized = False

    def _ensure_initialized(self):
        """Lazy initialization of Stripe API key"""
        if not self._initialized:
            if not stripe_settings.stripe_secret_key:
                raise ValueError("STRIPE_SECRET_KEY not configured")
            stripe.api_key = stripe_settings.stripe_secret_key
            self._initialized = True

    def _get_attr(self, obj, key: str, default=None):
        """Safely get a field from a Stripe payload (works for both dict and StripeObject)"""
        if obj is None:
            return default
        if hasattr(obj, "get"):
            value = obj.get(key, default)
        else:
            value = getattr(obj, key, default)
        return default if value is None else value

    async def _get_record(self, db: AsyncSession, **filters) -> Optional[Subscription]:
        query = select(Subscription)
        for column, value in filters.items():
            query = query.where(getattr(Subscription, column) == value)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def _notify_access_changed(self, user_id: int, db: AsyncSession) -> None:
        """Wake open navigation streams; the gate reads subscriptions too."""
        await preference_store.notify(user_id, db)

    async def get_status(
        self,
        user_id: int,
        db: AsyncSession,
    ) -> Optional[SubscriptionSnapshot]:
        """Current subscription for the user, None when there is no record"""
        record = await self._get_record(db, user_id=user_id)
        if not record or not record.status:
            return None
        return SubscriptionSnapshot.from_row(record)

    async def _find_customer_id(
        self,
        user: User,
        record: Optional[Subscription],
    ) -> Optional[str]:
        if record and record.stripe_customer_id:
            return record.stripe_customer_id

        # Payment Links create the customer on Stripe's side, so fall back to email
        customers = await asyncio.to_thread(
            stripe.Customer.list,
            email=user.email,
            limit=1,
        )
        data = self._get_attr(customers, "data", [])
        if not data:
            return None
        return self._get_attr(data[0], "id")

    async def _product_name(self, price) -> Optional[str]:
        product = self._get_attr(price, "product")
        if not product:
            return None
        if not isinstance(product, str):
            return self._get_attr(product, "name")

        try:
            retrieved = await asyncio.to_thread(stripe.Product.retrieve, product)
            return self._get_attr(retrieved, "name")
        except stripe.StripeError as e:
            logger.warning(f"Could not retrieve Stripe product {product}: {e}")
            return None

    async def _apply_stripe_subscription(
        self,
        record: Subscription,
        stripe_subscription,
    ) -> None:
        """Copy Stripe subscription state onto the record.

        Note: Does not commit - caller is responsible for committing.
        """
        record.stripe_subscription_id = self._get_attr(stripe_subscription, "id")
        record.status = self._get_attr(stripe_subscription, "status", SubscriptionStatus.INCOMPLETE.value)
        record.cancel_at_period_end = bool(self._get_attr(stripe_subscription, "cancel_at_period_end", False))

        customer_id = self._get_attr(stripe_subscription, "customer")
        if isinstance(customer_id, str):
            record.stripe_customer_id = customer_id

        # Period end moved from the subscription onto its items in newer API versions
        items_data = self._get_attr(self._get_attr(stripe_subscription, "items", {}), "data", [])
        first_item = items_data[0] if items_data else None

        period_end = self._get_attr(stripe_subscription, "current_period_end")
        if not period_end and first_item is not None:
            period_end = self._get_attr(first_item, "current_period_end")
        if period_end:
            record.current_period_end = datetime.fromtimestamp(period_end)

        if first_item is not None:
            price = self._get_attr(first_item, "price")
            plan = plan_for_price(self._get_attr(price, "id"))
            if plan:
                record.plan_id = plan.id
            product_name = await self._product_name(price)
            if product_name:
                record.product_name = product_name

    async def resync(
        self,
        user_id: int,
        db: AsyncSession,
    ) -> Optional[SubscriptionSnapshot]:
        """Pull the latest subscription for the user's Stripe customer and store it.

        A user with no Stripe customer is left untouched.
        """
        self._ensure_initialized()

        user = await db.get(User, user_id)
        if not user:
            logger.warning(f"Resync requested for unknown user {user_id}")
            return None

        record = await self._get_record(db, user_id=user_id)
        customer_id = await self._find_customer_id(user, record)

        if not customer_id:
            logger.info(f"No Stripe customer for user {user_id}, nothing to sync")
            return SubscriptionSnapshot.from_row(record) if record else None

        subscriptions = await asyncio.to_thread(
            stripe.Subscription.list,
            customer=customer_id,
            status="all",
            limit=1,
        )
        data = self._get_attr(subscriptions, "data", [])

        if not record:
            record = Subscription(
                user_id=user_id,
                stripe_customer_id=customer_id,
                status=SubscriptionStatus.INCOMPLETE.value,
            )
            db.add(record)
        else:
            record.stripe_customer_id = customer_id

        if data:
            await self._apply_stripe_subscription(record, data[0])
        else:
            logger.info(f"Stripe customer {customer_id} has no subscriptions")

        await db.commit()
        await db.refresh(record)
        await self._notify_access_changed(user_id, db)

        logger.info(f"Synced subscription for user {user_id}: status={record.status}, plan={record.plan_id}")
        return SubscriptionSnapshot.from_row(record)

    def construct_webhook_event(
        self,
        payload: bytes,
        signature: str,
    ) -> stripe.Event:
        """Construct and verify webhook event"""
        self._ensure_initialized()

        if not stripe_settings.stripe_webhook_secret:
            raise ValueError("STRIPE_WEBHOOK_SECRET not configured")

        return stripe.Webhook.construct_event(
            payload,
            signature,
            stripe_settings.stripe_webhook_secret,
        )

    def _checkout_user_id(self, session) -> Optional[int]:
        """Payment Links carry the user id as client_reference_id; metadata is the fallback"""
        raw = self._get_attr(session, "client_reference_id")
        if not raw:
            raw = self._get_attr(self._get_attr(session, "metadata", {}), "user_id")
        if not raw:
            return None

        try:
            return int(raw)
        except (TypeError, ValueError):
            logger.error(f"Invalid user reference in checkout session: {raw}")
            return None

    async def handle_checkout_completed(
        self,
        session,  # Can be dict or StripeObject
        db: AsyncSession,
    ) -> None:
        """Handle checkout.session.completed event"""
        user_id = self._checkout_user_id(session)
        session_id = self._get_attr(session, "id")

        if user_id is None:
            logger.error(f"No user reference in checkout session {session_id}")
            return

        if not await db.get(User, user_id):
            logger.error(f"Checkout session {session_id} references unknown user {user_id}")
            return

        logger.info(f"Processing checkout completed: user_id={user_id}, session={session_id}")

        record = await self._get_record(db, user_id=user_id)
        if not record:
            record = Subscription(
                user_id=user_id,
                status=SubscriptionStatus.INCOMPLETE.value,
            )
            db.add(record)

        customer_id = self._get_attr(session, "customer")
        if customer_id:
            record.stripe_customer_id = customer_id

        subscription_id = self._get_attr(session, "subscription")
        if subscription_id:
            self._ensure_initialized()
            stripe_subscription = await asyncio.to_thread(stripe.Subscription.retrieve, subscription_id)
            await self._apply_stripe_subscription(record, stripe_subscription)
        else:
            logger.warning(f"Checkout session {session_id} has no subscription")

        await db.commit()
        await self._notify_access_changed(user_id, db)
        logger.info(f"Recorded checkout for user {user_id}: status={record.status}")

    async def _record_for_subscription(self, subscription, db: AsyncSession) -> Optional[Subscription]:
        sub_id = self._get_attr(subscription, "id")
        if sub_id:
            record = await self._get_record(db, stripe_subscription_id=sub_id)
            if record:
                return record

        user_id = self._get_attr(self._get_attr(subscription, "metadata", {}), "user_id")
        if user_id:
            record = await self._get_record(db, user_id=int(user_id))
            if record:
                return record

        customer_id = self._get_attr(subscription, "customer")
        if customer_id:
            return await self._get_record(db, stripe_customer_id=customer_id)
        return None

    async def handle_subscription_updated(
        self,
        subscription,  # Can be dict or StripeObject
        db: AsyncSession,
    ) -> None:
        """Handle customer.subscription.updated event"""
        record = await self._record_for_subscription(subscription, db)
        if not record:
            logger.warning(f"No subscription record for Stripe subscription {self._get_attr(subscription, 'id')}")
            return

        await self._apply_stripe_subscription(record, subscription)
        await db.commit()
        await self._notify_access_changed(record.user_id, db)
        logger.info(f"Updated subscription for user {record.user_id}: status={record.status}")

    async def handle_subscription_deleted(
        self,
        subscription,  # Can be dict or StripeObject
        db: AsyncSession,
    ) -> None:
        """Handle customer.subscription.deleted event"""
        record = await self._record_for_subscription(subscription, db)
        if not record:
            logger.warning(f"No subscription record for Stripe subscription {self._get_attr(subscription, 'id')}")
            return

        record.status = SubscriptionStatus.CANCELED.value
        record.cancel_at_period_end = False
        await db.commit()
        await self._notify_access_changed(record.user_id, db)
        logger.info(f"Canceled subscription for user {record.user_id}")

    async def handle_invoice_payment_failed(
        self,
        invoice,  # Can be dict or StripeObject
        db: AsyncSession,
    ) -> None:
        """Handle invoice.payment_failed event"""
        customer_id = self._get_attr(invoice, "customer")
        if not customer_id:
            return

        record = await self._get_record(db, stripe_customer_id=customer_id)
        if record:
            record.status = SubscriptionStatus.PAST_DUE.value
            await db.commit()
            await self._notify_access_changed(record.user_id, db)
            logger.warning(f"Payment failed for user {record.user_id}")

    async def upgrade(
        self,
        user_id: int,
        plan_id: str,
        prorate: bool,
        db: AsyncSession,
    ) -> UpgradeResult:
        """Move the user's own subscription to another catalog plan.

        Raises:
            UnknownPlanError: plan is not in the catalog
            ValueError: plan has no Stripe price configured
            NoSubscriptionError: user has no Stripe subscription to change
        """
        self._ensure_initialized()

        plan = get_plan(plan_id)
        if not plan or plan.contact_sales:
            raise UnknownPlanError(plan_id)
        if not plan.price_id:
            raise ValueError(f"Stripe price for plan {plan_id} not configured")

        record = await self._get_record(db, user_id=user_id)
        if not record or not record.stripe_subscription_id:
            raise NoSubscriptionError(user_id)

        stripe_subscription = await asyncio.to_thread(
            stripe.Subscription.retrieve, record.stripe_subscription_id
        )
        items_data = self._get_attr(self._get_attr(stripe_subscription, "items", {}), "data", [])
        if not items_data:
            raise NoSubscriptionError(user_id)

        updated = await asyncio.to_thread(
            stripe.Subscription.modify,
            record.stripe_subscription_id,
            items=[{"id": self._get_attr(items_data[0], "id"), "price": plan.price_id}],
            proration_behavior="create_prorations" if prorate else "none",
            expand=["latest_invoice"],
        )

        latest_invoice = self._get_attr(updated, "latest_invoice")
        proration_amount = 0
        if latest_invoice and not isinstance(latest_invoice, str):
            proration_amount = self._get_attr(latest_invoice, "amount_due", 0)

        logger.info(f"Changed subscription for user {user_id} to plan {plan.id} (prorate={prorate})")

        await self._apply_stripe_subscription(record, updated)
        record.plan_id = plan.id
        upgrade_result = UpgradeResult(
            status=record.status,
            plan_id=plan.id,
            product_name=record.product_name,
            current_period_end=record.current_period_end,
            proration_amount=proration_amount,
        )

        try:
            await db.commit()
        except Exception as e:
            # Stripe already changed the plan; the next webhook or resync repairs the record
            logger.error(f"Failed to store plan change for user {user_id}: {e}", exc_info=True)
            await db.rollback()
        else:
            await self._notify_access_changed(user_id, db)

        return upgrade_result


# Global instance
subscription_service = SubscriptionService()
