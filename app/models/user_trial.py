"""UserTrial model for the provisional-access window granted at signup"""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer
from sqlalchemy.orm import relationship

from app.db.database import Base


class UserTrial(Base):
    """Trial window [trial_start_time, trial_end_time) for a user"""

    __tablename__ = "user_trials"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    trial_start_time = Column(DateTime, default=datetime.utcnow, nullable=False)
    trial_end_time = Column(DateTime, nullable=False)
    is_trial_used = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    user = relationship("User", back_populates="trial")

    def __repr__(self):
        return f"<UserTrial(user_id={self.user_id}, ends={self.trial_end_time}, used={self.is_trial_used})>"
