"""SubscriptionPlan catalog and PlanService entitlements."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base
from models.enums import UsagePeriod

UNLIMITED_USAGE = -1


class SubscriptionPlan(Base):
    """Purchasable plan. Price is in cents."""

    __tablename__ = "subscription_plans"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, unique=True, nullable=False, index=True)
    title = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    price = Column(Integer, nullable=False, default=0)
    duration_days = Column(Integer, nullable=False, default=30)
    is_recurring = Column(Boolean, nullable=False, default=True)
    credits_included = Column(Integer, nullable=False, default=0)
    paddle_plan_id = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    plan_services = relationship("PlanService", back_populates="plan", cascade="all, delete-orphan")


class PlanService(Base):
    """Entitlement of one plan to one service. usage_limit -1 means unlimited."""

    __tablename__ = "plan_services"
    __table_args__ = (
        UniqueConstraint("plan_id", "service_id", name="uq_plan_services_plan_service"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    plan_id = Column(String, ForeignKey("subscription_plans.id"), nullable=False, index=True)
    service_id = Column(String, ForeignKey("services.id"), nullable=False, index=True)
    usage_limit = Column(Integer, nullable=False, default=UNLIMITED_USAGE)
    usage_period = Column(String, nullable=False, default=UsagePeriod.MONTHLY.value)

    plan = relationship("SubscriptionPlan", back_populates="plan_services")
    service = relationship("Service", back_populates="plan_services")
