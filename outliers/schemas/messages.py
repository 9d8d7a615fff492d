"""Schemas used by conversation and message endpoints."""
from __future__ import annotations

from typing import List
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..constants import MAX_MESSAGE_LENGTH
from .common import ProfileSummary, UtcDatetime


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    conversation_id: UUID
    sender_id: UUID
    content: str
    image_url: str | None = None
    is_edited: bool = False
    is_deleted: bool = False
    created_at: UtcDatetime
    updated_at: UtcDatetime
    sender: ProfileSummary | None = None
    likes_count: int = 0
    is_liked_by_me: bool = False


class MessageCreate(BaseModel):
    id: UUID | None = Field(None, description="Client-generated identifier used to reconcile optimistic sends")
    content: str = Field("", max_length=MAX_MESSAGE_LENGTH)
    image_url: str | None = Field(None, max_length=2048)

    @model_validator(mode="after")
    def _require_payload(self) -> "MessageCreate":
        if not (self.content.strip() or self.image_url):
            raise ValueError("Message requires text or an image")
        return self


class MessageUpdate(BaseModel):
    content: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)


class MessageLikeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    message_id: UUID
    user_id: UUID
    created_at: UtcDatetime


class MessageLikeState(BaseModel):
    message_id: UUID
    likes_count: int
    is_liked_by_me: bool


class ParticipantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    conversation_id: UUID
    user_id: UUID
    created_at: UtcDatetime
    profile: ProfileSummary | None = None


class ConversationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_at: UtcDatetime
    updated_at: UtcDatetime
    participants: List[ParticipantResponse] = Field(default_factory=list)
    last_message: MessageResponse | None = None
    unread_count: int = 0


class ConversationStartRequest(BaseModel):
    target_id: UUID


class ConversationStartResponse(BaseModel):
    conversation_id: UUID
    created: bool


class MessageThreadResponse(BaseModel):
    conversation_id: UUID
    messages: List[MessageResponse]


class ReadReceiptResponse(BaseModel):
    message_id: UUID
    created: bool


__all__ = [
    "MessageResponse",
    "MessageCreate",
    "MessageUpdate",
    "MessageLikeResponse",
    "MessageLikeState",
    "ParticipantResponse",
    "ConversationResponse",
    "ConversationStartRequest",
    "ConversationStartResponse",
    "MessageThreadResponse",
    "ReadReceiptResponse",
]
