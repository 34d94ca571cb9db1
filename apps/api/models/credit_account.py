"""UserCredit model: one lifetime balance row per user."""

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base
from models.enums import PlanType


class UserCredit(Base):
    """Lifetime granted and consumed credits. Available = total - used."""

    __tablename__ = "user_credits"
    __table_args__ = (
        CheckConstraint("total_credits >= 0", name="ck_user_credits_total_non_negative"),
        CheckConstraint("used_credits >= 0", name="ck_user_credits_used_non_negative"),
        CheckConstraint("used_credits <= total_credits", name="ck_user_credits_used_within_total"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, unique=True, index=True)
    total_credits = Column(Integer, nullable=False, default=0)
    used_credits = Column(Integer, nullable=False, default=0)
    plan_type = Column(String, nullable=False, default=PlanType.FREE.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="credit_account")

    @property
    def available_credits(self) -> int:
        return int(self.total_credits or 0) - int(self.used_credits or 0)
