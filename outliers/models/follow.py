"""SQLAlchemy ORM model for follower relationships."""
from __future__ import annotations

from sqlalchemy import Column, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship

from outliers.database import Base
from .base import utcnow


class Follower(Base):
    __tablename__ = "followers"

    follower_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True)
    following_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    follower = relationship("Profile", foreign_keys=[follower_id])
    following = relationship("Profile", foreign_keys=[following_id])


__all__ = ["Follower"]
