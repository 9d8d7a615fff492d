"""SQLAlchemy ORM models for conversation messages, likes and read receipts."""
from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import expression

from outliers.database import Base
from .base import TimestampMixin, utcnow


class Message(TimestampMixin, Base):
    __tablename__ = "messages"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id = Column(Uuid, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    image_url = Column(Text, nullable=True)
    is_edited = Column(Boolean, nullable=False, server_default=expression.false(), default=False)
    is_deleted = Column(Boolean, nullable=False, server_default=expression.false(), default=False)

    conversation = relationship("Conversation", back_populates="messages")
    sender = relationship("Profile")
    likes = relationship("MessageLike", back_populates="message", cascade="all, delete-orphan")
    reads = relationship("MessageRead", back_populates="message", cascade="all, delete-orphan")


class MessageLike(Base):
    __tablename__ = "message_likes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    message_id = Column(Uuid, ForeignKey("messages.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    message = relationship("Message", back_populates="likes")

    __table_args__ = (UniqueConstraint("message_id", "user_id", name="uq_message_likes_message_user"),)


class MessageRead(Base):
    __tablename__ = "message_reads"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    message_id = Column(Uuid, ForeignKey("messages.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    message = relationship("Message", back_populates="reads")

    __table_args__ = (UniqueConstraint("message_id", "user_id", name="uq_message_reads_message_user"),)


__all__ = ["Message", "MessageLike", "MessageRead"]
