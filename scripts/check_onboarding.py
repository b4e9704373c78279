#!/usr/bin/env python3
"""
Onboarding Check Script

Show a user's onboarding row, subscription, trial and the route the
onboarding gate picks for them, straight from the database.
Useful for support questions like "why am I stuck on the pricing page".

Usage:
    # Check one user
    ENV=staging uv run python scripts/check_onboarding.py user --email user@example.com

    # List users who started but never finished onboarding
    ENV=staging uv run python scripts/check_onboarding.py stuck

    # Only the most recent N
    ENV=staging uv run python scripts/check_onboarding.py stuck --recent 10
"""

import argparse
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

env_file = os.getenv("ENV", "local")
load_dotenv(f".env.{env_file}")

from sqlalchemy import create_engine, or_, select
from sqlalchemy.orm import Session, sessionmaker

from app.db.database import build_database_url
from app.models import Subscription, User, UserPreferences, UserTrial
from app.services.onboarding import GateInput, decide
from app.services.trial import TrialService
from app.utils.constants import ACCESS_GRANTING_STATUSES


def get_db_session() -> Session:
    """Create a sync database session."""
    engine = create_engine(build_database_url(driver="postgresql"))
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    return SessionLocal()


def format_datetime(dt: Optional[datetime]) -> str:
    if dt is None:
        return "-"
    return dt.strftime("%Y-%m-%d %H:%M:%S")


def check_user(db: Session, email: str) -> int:
    user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if not user:
        print(f"No user with email {email}")
        return 1

    preferences = db.get(UserPreferences, user.id)
    trial = db.get(UserTrial, user.id)
    subscription = db.execute(
        select(Subscription).where(Subscription.user_id == user.id)
    ).scalar_one_or_none()
    trial_state = TrialService.evaluate(trial)

    print(f"User {user.id} <{user.email}>{' (deleted)' if user.is_deleted else ''}")
    print(f"  created:            {format_datetime(user.created_at)}")

    print("\nOnboarding")
    if preferences:
        print(f"  completed:          {preferences.has_completed_onboarding}")
        print(f"  step:               {preferences.onboarding_step}")
        print(f"  selected plan:      {preferences.selected_plan_id or '-'}")
        print(f"  started:            {format_datetime(preferences.onboarding_started_at)}")
        print(f"  completed at:       {format_datetime(preferences.onboarding_completed_at)}")
    else:
        print("  no row (created on next sign-in)")

    print("\nSubscription")
    if subscription:
        print(f"  status:             {subscription.status}")
        print(f"  plan:               {subscription.plan_id or '-'}")
        print(f"  customer:           {subscription.stripe_customer_id or '-'}")
        print(f"  period end:         {format_datetime(subscription.current_period_end)}")
    else:
        print("  none")

    print("\nTrial")
    print(f"  in trial:           {trial_state.is_in_trial}")
    print(f"  ends:               {format_datetime(trial_state.trial_end_time)}")

    route = decide(
        GateInput(
            is_authenticated=not user.is_deleted,
            has_active_or_trialing_subscription=bool(
                subscription and subscription.status in ACCESS_GRANTING_STATUSES
            ),
            is_in_trial=trial_state.is_in_trial,
            has_completed_onboarding=bool(preferences and preferences.has_completed_onboarding),
            has_selected_plan=bool(preferences and preferences.selected_plan_id),
        )
    )
    print(f"\nGate route: {route.value}")
    return 0


def list_stuck(db: Session, recent: Optional[int]) -> int:
    query = (
        select(User, UserPreferences)
        .join(UserPreferences, UserPreferences.user_id == User.id)
        .outerjoin(Subscription, Subscription.user_id == User.id)
        .where(UserPreferences.has_completed_onboarding.is_(False))
        .where(User.is_deleted.is_(False))
        # Paying users skip the gate even with an unfinished row
        .where(or_(Subscription.id.is_(None), Subscription.status.not_in(ACCESS_GRANTING_STATUSES)))
        .order_by(UserPreferences.updated_at.desc())
    )
    if recent:
        query = query.limit(recent)

    rows = db.execute(query).all()
    if not rows:
        print("No users with unfinished onboarding")
        return 0

    print(f"{'ID':>6}  {'EMAIL':<36} {'STEP':>4}  {'PLAN':<12} {'UPDATED'}")
    for user, preferences in rows:
        print(
            f"{user.id:>6}  {user.email:<36} {preferences.onboarding_step:>4}  "
            f"{preferences.selected_plan_id or '-':<12} {format_datetime(preferences.updated_at)}"
        )
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Inspect onboarding state")
    subparsers = parser.add_subparsers(dest="command", required=True)

    user_parser = subparsers.add_parser("user", help="Show one user's onboarding state")
    user_parser.add_argument("--email", required=True, help="User email")

    stuck_parser = subparsers.add_parser("stuck", help="List users with unfinished onboarding")
    stuck_parser.add_argument("--recent", type=int, help="Only the N most recently updated")

    args = parser.parse_args()

    db = get_db_session()
    try:
        if args.command == "user":
            return check_user(db, args.email)
        return list_stuck(db, args.recent)
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
