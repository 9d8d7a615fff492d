"""Schemas for notifications."""
from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict

from .common import ProfileSummary, UtcDatetime


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    actor_id: UUID
    type: str
    article_id: UUID | None = None
    group_id: UUID | None = None
    read: bool
    created_at: UtcDatetime
    actor: ProfileSummary | None = None


class NotificationListResponse(BaseModel):
    items: list[NotificationResponse]


class NotificationSummaryResponse(BaseModel):
    unread_count: int = 0


__all__ = ["NotificationResponse", "NotificationListResponse", "NotificationSummaryResponse"]
