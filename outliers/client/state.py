"""Local state held by the chat core."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping
from uuid import UUID

from ..schemas import ConversationResponse, MessageResponse, ParticipantResponse, ProfileSummary


def _as_uuid(value: Any) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


def _as_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        moment = value
    else:
        moment = datetime.fromisoformat(str(value))
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


@dataclass(frozen=True, slots=True)
class ImageAttachment:
    """An image picked for a direct message, uploaded before the message is sent."""

    filename: str
    data: bytes
    content_type: str = "image/jpeg"


@dataclass(slots=True)
class MessageState:
    id: UUID
    conversation_id: UUID
    sender_id: UUID
    content: str
    created_at: datetime
    updated_at: datetime
    image_url: str | None = None
    is_edited: bool = False
    is_deleted: bool = False
    sender: ProfileSummary | None = None
    likes_count: int = 0
    is_liked_by_me: bool = False
    # Optimistically appended; not yet confirmed by the data service.
    pending: bool = False
    # Like counter was adjusted locally and awaits reconciliation.
    likes_provisional: bool = False

    @classmethod
    def from_response(cls, response: MessageResponse) -> "MessageState":
        return cls(
            id=response.id,
            conversation_id=response.conversation_id,
            sender_id=response.sender_id,
            content=response.content,
            created_at=response.created_at,
            updated_at=response.updated_at,
            image_url=response.image_url,
            is_edited=response.is_edited,
            is_deleted=response.is_deleted,
            sender=response.sender,
            likes_count=response.likes_count,
            is_liked_by_me=response.is_liked_by_me,
        )

    @classmethod
    def from_row(cls, row: Mapping[str, Any], *, sender: ProfileSummary | None = None) -> "MessageState":
        """Build a message from a raw change-feed row, which carries no likes or sender profile."""

        created_at = _as_datetime(row["created_at"])
        return cls(
            id=_as_uuid(row["id"]),
            conversation_id=_as_uuid(row["conversation_id"]),
            sender_id=_as_uuid(row["sender_id"]),
            content=str(row.get("content") or ""),
            created_at=created_at,
            updated_at=_as_datetime(row.get("updated_at") or created_at),
            image_url=row.get("image_url") or None,
            is_edited=bool(row.get("is_edited")),
            is_deleted=bool(row.get("is_deleted")),
            sender=sender,
        )


@dataclass(slots=True)
class ConversationState:
    id: UUID
    created_at: datetime
    updated_at: datetime
    participants: list[ParticipantResponse] = field(default_factory=list)
    last_message: MessageState | None = None
    unread_count: int = 0

    @classmethod
    def from_response(
        cls,
        response: ConversationResponse,
        *,
        last_message: MessageResponse | None = None,
        unread_count: int = 0,
    ) -> "ConversationState":
        return cls(
            id=response.id,
            created_at=response.created_at,
            updated_at=response.updated_at,
            participants=list(response.participants),
            last_message=MessageState.from_response(last_message) if last_message is not None else None,
            unread_count=unread_count,
        )

    def profile_of(self, user_id: UUID) -> ProfileSummary | None:
        for participant in self.participants:
            if participant.user_id == user_id:
                return participant.profile
        return None


__all__ = ["ConversationState", "ImageAttachment", "MessageState"]
