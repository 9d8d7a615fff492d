"""Schemas for groups, memberships and group messages."""
from __future__ import annotations

from typing import List
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .common import ProfileSummary, UtcDatetime


class GroupCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=120)
    description: str | None = Field(None, max_length=2000)
    avatar_url: str | None = None
    is_private: bool = False


class GroupUpdate(BaseModel):
    name: str | None = Field(None, min_length=3, max_length=120)
    description: str | None = Field(None, max_length=2000)
    avatar_url: str | None = None
    is_private: bool | None = None


class GroupResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None = None
    avatar_url: str | None = None
    owner_id: UUID
    is_private: bool
    created_at: UtcDatetime
    updated_at: UtcDatetime
    members_count: int = 0
    viewer_role: str | None = None


class GroupMemberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    role: str
    joined_at: UtcDatetime
    profile: ProfileSummary | None = None


class GroupJoinResponse(BaseModel):
    group_id: UUID
    status: str


class JoinRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    group_id: UUID
    user_id: UUID
    status: str
    created_at: UtcDatetime
    profile: ProfileSummary | None = None


class JoinRequestDecision(BaseModel):
    approve: bool


class GroupMessageCreate(BaseModel):
    content: str | None = Field(None, max_length=4000)
    image_url: str | None = None
    video_url: str | None = None
    shared_article_id: UUID | None = None

    @model_validator(mode="after")
    def _require_payload(self) -> "GroupMessageCreate":
        has_text = bool((self.content or "").strip())
        if not (has_text or self.image_url or self.video_url or self.shared_article_id):
            raise ValueError("Group message requires text, media or a shared article")
        return self


class GroupMessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    group_id: UUID
    sender_id: UUID
    content: str | None = None
    image_url: str | None = None
    video_url: str | None = None
    shared_article_id: UUID | None = None
    created_at: UtcDatetime
    sender: ProfileSummary | None = None


__all__ = [
    "GroupCreate",
    "GroupUpdate",
    "GroupResponse",
    "GroupMemberResponse",
    "GroupJoinResponse",
    "JoinRequestResponse",
    "JoinRequestDecision",
    "GroupMessageCreate",
    "GroupMessageResponse",
]
