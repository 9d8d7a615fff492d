"""SQLAlchemy ORM model for notifications."""
from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import expression

from outliers.database import Base
from .base import utcnow


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    actor_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    article_id = Column(Uuid, ForeignKey("articles.id", ondelete="CASCADE"), nullable=True)
    group_id = Column(Uuid, ForeignKey("groups.id", ondelete="CASCADE"), nullable=True)
    read = Column(Boolean, nullable=False, server_default=expression.false(), default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    actor = relationship("Profile", foreign_keys=[actor_id])


__all__ = ["Notification"]
