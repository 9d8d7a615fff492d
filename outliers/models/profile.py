"""SQLAlchemy ORM model for user profiles."""
from __future__ import annotations

import uuid

from sqlalchemy import JSON, Column, String, Text, Uuid

from outliers.database import Base
from .base import TimestampMixin


class Profile(TimestampMixin, Base):
    __tablename__ = "profiles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(150), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    avatar_url = Column(String(1024), nullable=True)
    banner_url = Column(String(1024), nullable=True)
    bio = Column(Text, nullable=True)
    sector = Column(String(120), nullable=True)
    social_links = Column(JSON, nullable=True)
    language = Column(String(16), nullable=True)


__all__ = ["Profile"]
