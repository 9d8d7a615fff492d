"""Schemas for articles, comments and engagement toggles."""
from __future__ import annotations

from typing import List
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .common import ProfileSummary, UtcDatetime


class ArticleCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    content: str = Field(..., min_length=1)
    image_url: str | None = None
    published: bool = True


class ArticleUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=300)
    content: str | None = Field(None, min_length=1)
    image_url: str | None = None
    published: bool | None = None


class ArticleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    author_id: UUID
    title: str
    content: str
    image_url: str | None = None
    published: bool = True
    created_at: UtcDatetime
    updated_at: UtcDatetime
    author: ProfileSummary | None = None
    likes_count: int = 0
    comments_count: int = 0
    is_liked: bool = False
    is_saved: bool = False


class ArticleListResponse(BaseModel):
    items: List[ArticleResponse]


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    article_id: UUID
    user_id: UUID
    content: str
    created_at: UtcDatetime
    author: ProfileSummary | None = None
    likes_count: int = 0
    is_liked: bool = False


class EngagementResponse(BaseModel):
    """State of a toggle (like, save, follow) after the request."""

    target_id: UUID
    active: bool
    count: int


__all__ = [
    "ArticleCreate",
    "ArticleUpdate",
    "ArticleResponse",
    "ArticleListResponse",
    "CommentCreate",
    "CommentResponse",
    "EngagementResponse",
]
