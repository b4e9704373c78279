"""UserPreferences model holding per-user onboarding state"""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.db.database import Base


class UserPreferences(Base):
    """One row per user, keyed by user_id.

    has_completed_onboarding=True always comes with a selected_plan_id and an
    onboarding_completed_at timestamp.
    """

    __tablename__ = "user_preferences"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    has_completed_onboarding = Column(Boolean, default=False, nullable=False)
    onboarding_step = Column(Integer, default=1, nullable=False)  # 1 started, 2 plan selected, 3 completed
    selected_plan_id = Column(String(50), nullable=True)
    onboarding_started_at = Column(DateTime, nullable=True)
    onboarding_completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="preferences")

    def __repr__(self):
        return (
            f"<UserPreferences(user_id={self.user_id}, step={self.onboarding_step}, "
            f"completed={self.has_completed_onboarding})>"
        )
