"""ScheduledContent model for the content scheduler."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, JSON, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base
from models.enums import ContentStatus


class ScheduledContent(Base):
    """A post queued for publication on a social platform."""

    __tablename__ = "scheduled_contents"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String, nullable=True)
    content = Column(Text, nullable=False)
    platform = Column(String, nullable=False, index=True)
    hashtags_json = Column(JSON, nullable=True)
    scheduled_at = Column(DateTime(timezone=True), nullable=False, index=True)
    status = Column(String, nullable=False, default=ContentStatus.SCHEDULED.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="scheduled_contents")
