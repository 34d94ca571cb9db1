"""UserServiceUsage model: period-bucketed usage counters."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from database import Base


class UserServiceUsage(Base):
    """Usage counter for one (user, service, bucket key, period kind)."""

    __tablename__ = "user_service_usage"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "service_id",
            "period",
            "usage_period",
            name="uq_user_service_usage_bucket",
        ),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    service_id = Column(String, ForeignKey("services.id"), nullable=False, index=True)
    period = Column(String, nullable=False)
    usage_period = Column(String, nullable=False)
    usage_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
