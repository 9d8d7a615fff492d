"""SQLAlchemy ORM models for groups, their members and group messages."""
from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import expression

from outliers.database import Base
from .base import TimestampMixin, utcnow


class Group(TimestampMixin, Base):
    __tablename__ = "groups"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)
    avatar_url = Column(String(1024), nullable=True)
    owner_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    is_private = Column(Boolean, nullable=False, server_default=expression.false(), default=False)

    owner = relationship("Profile")
    members = relationship("GroupMember", back_populates="group", cascade="all, delete-orphan")
    join_requests = relationship("GroupJoinRequest", back_populates="group", cascade="all, delete-orphan")
    messages = relationship("GroupMessage", back_populates="group", cascade="all, delete-orphan")


class GroupMember(Base):
    __tablename__ = "group_members"

    group_id = Column(Uuid, ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True)
    role = Column(String(16), nullable=False, default="member")
    joined_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    group = relationship("Group", back_populates="members")
    profile = relationship("Profile")


class GroupJoinRequest(Base):
    __tablename__ = "group_join_requests"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    group_id = Column(Uuid, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(16), nullable=False, default="pending")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    group = relationship("Group", back_populates="join_requests")
    profile = relationship("Profile")

    __table_args__ = (UniqueConstraint("group_id", "user_id", name="uq_group_join_requests_group_user"),)


class GroupMessage(Base):
    __tablename__ = "group_messages"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    group_id = Column(Uuid, ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=True)
    image_url = Column(String(1024), nullable=True)
    video_url = Column(String(1024), nullable=True)
    shared_article_id = Column(Uuid, ForeignKey("articles.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    group = relationship("Group", back_populates="messages")
    sender = relationship("Profile")
    shared_article = relationship("Article")


__all__ = ["Group", "GroupMember", "GroupJoinRequest", "GroupMessage"]
