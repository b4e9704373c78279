from app.db.database import Base
from app.models.user import User
from app.models.user_preferences import UserPreferences
from app.models.user_trial import UserTrial
from app.models.subscription import Subscription, SubscriptionStatus

__all__ = [
    "Base",
    "User",
    "UserPreferences",
    "UserTrial",
    "Subscription",
    "SubscriptionStatus",
]
