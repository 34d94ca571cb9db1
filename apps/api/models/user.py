"""User model."""

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from database import Base


class User(Base):
    """User model for authenticated users."""
    
    __tablename__ = "users"
    
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    
    # Relationships
    credit_account = relationship("UserCredit", back_populates="user", uselist=False)
    credit_transactions = relationship("CreditTransaction", back_populates="user")
    usage_logs = relationship("CreditUsageLog", back_populates="user")
    subscriptions = relationship("UserSubscription", back_populates="user")
    scheduled_contents = relationship("ScheduledContent", back_populates="user", cascade="all, delete-orphan")
