"""SQLAlchemy ORM models for articles and their engagement rows."""
from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import expression

from outliers.database import Base
from .base import TimestampMixin, utcnow


class Article(TimestampMixin, Base):
    __tablename__ = "articles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    author_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(300), nullable=False)
    content = Column(Text, nullable=False)
    image_url = Column(String(1024), nullable=True)
    published = Column(Boolean, nullable=False, server_default=expression.true(), default=True)

    author = relationship("Profile")
    likes = relationship("ArticleLike", back_populates="article", cascade="all, delete-orphan")
    comments = relationship("Comment", back_populates="article", cascade="all, delete-orphan")
    saves = relationship("SavedArticle", back_populates="article", cascade="all, delete-orphan")


class ArticleLike(Base):
    __tablename__ = "likes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    article_id = Column(Uuid, ForeignKey("articles.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    article = relationship("Article", back_populates="likes")

    __table_args__ = (UniqueConstraint("article_id", "user_id", name="uq_likes_article_user"),)


class SavedArticle(Base):
    __tablename__ = "saved_articles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    article_id = Column(Uuid, ForeignKey("articles.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    article = relationship("Article", back_populates="saves")

    __table_args__ = (UniqueConstraint("article_id", "user_id", name="uq_saved_articles_article_user"),)


class Comment(Base):
    __tablename__ = "comments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    article_id = Column(Uuid, ForeignKey("articles.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    article = relationship("Article", back_populates="comments")
    author = relationship("Profile")
    likes = relationship("CommentLike", back_populates="comment", cascade="all, delete-orphan")


class CommentLike(Base):
    __tablename__ = "comment_likes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    comment_id = Column(Uuid, ForeignKey("comments.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    comment = relationship("Comment", back_populates="likes")

    __table_args__ = (UniqueConstraint("comment_id", "user_id", name="uq_comment_likes_comment_user"),)


__all__ = ["Article", "ArticleLike", "SavedArticle", "Comment", "CommentLike"]
