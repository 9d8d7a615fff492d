"""Schemas for profile endpoints."""
from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .common import UtcDatetime


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    avatar_url: str | None = None
    banner_url: str | None = None
    bio: str | None = None
    sector: str | None = None
    social_links: dict[str, Any] | None = None
    language: str | None = None
    created_at: UtcDatetime
    followers_count: int = 0
    following_count: int = 0
    is_following: bool = False


class ProfileUpdateRequest(BaseModel):
    bio: str | None = Field(None, max_length=500)
    sector: str | None = Field(None, max_length=120)
    social_links: dict[str, str] | None = None
    language: str | None = Field(None, max_length=16)


__all__ = ["ProfileResponse", "ProfileUpdateRequest"]
