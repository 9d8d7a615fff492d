"""Conversation message services: insert, edit, soft delete, likes and read receipts."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Sequence, cast
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import and_, exists, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..constants import DELETED_MESSAGE_PLACEHOLDER, MAX_MESSAGE_LENGTH
from ..models import Conversation, ConversationParticipant, Message, MessageLike, MessageRead
from ..schemas import MessageResponse, ProfileSummary
from .realtime import ChangeEvent, ChangeType, row_payload

logger = logging.getLogger(__name__)


def serialize_message(message: Message, *, viewer_id: UUID | None) -> MessageResponse:
    """Build the viewer-scoped representation of ``message``."""

    like_user_ids = {like.user_id for like in message.likes}
    sender = message.sender
    return MessageResponse(
        id=message.id,
        conversation_id=message.conversation_id,
        sender_id=message.sender_id,
        content=message.content,
        image_url=message.image_url,
        is_edited=bool(message.is_edited),
        is_deleted=bool(message.is_deleted),
        created_at=message.created_at,
        updated_at=message.updated_at,
        sender=ProfileSummary.model_validate(sender) if sender is not None else None,
        likes_count=len(like_user_ids),
        is_liked_by_me=viewer_id in like_user_ids if viewer_id is not None else False,
    )


def is_participant(db: Session, conversation_id: UUID, user_id: UUID) -> bool:
    stmt = select(ConversationParticipant.id).where(
        ConversationParticipant.conversation_id == conversation_id,
        ConversationParticipant.user_id == user_id,
    )
    return db.scalar(stmt) is not None


def require_participant(db: Session, conversation_id: UUID, user_id: UUID) -> None:
    if not is_participant(db, conversation_id, user_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You are not part of this conversation")


def message_audience(db: Session, conversation_id: UUID) -> frozenset[UUID]:
    """Profiles entitled to observe changes on messages of ``conversation_id``."""

    stmt = select(ConversationParticipant.user_id).where(ConversationParticipant.conversation_id == conversation_id)
    return frozenset(db.scalars(stmt))


def message_change_event(db: Session, message: Message, type_: ChangeType) -> ChangeEvent:
    """Describe a change on ``messages`` visible to the conversation participants only."""

    return ChangeEvent(
        table="messages",
        type=type_,
        new=row_payload(message) if type_ != ChangeType.DELETE else None,
        old=row_payload(message) if type_ == ChangeType.DELETE else None,
        audience=message_audience(db, cast(UUID, message.conversation_id)),
    )


def message_like_change_event(db: Session, *, message_id: UUID, user_id: UUID, type_: ChangeType) -> ChangeEvent:
    message = _get_message_or_404(db, message_id)
    row = {"message_id": message_id, "user_id": user_id}
    return ChangeEvent(
        table="message_likes",
        type=type_,
        new=row if type_ != ChangeType.DELETE else None,
        old=row if type_ == ChangeType.DELETE else None,
        audience=message_audience(db, cast(UUID, message.conversation_id)),
    )


def _get_message_or_404(db: Session, message_id: UUID) -> Message:
    message = db.get(Message, message_id)
    if message is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    return message


def _load_message(db: Session, message_id: UUID) -> Message:
    stmt = (
        select(Message)
        .where(Message.id == message_id)
        .options(selectinload(Message.sender), selectinload(Message.likes))
        .execution_options(populate_existing=True)
    )
    message = db.scalar(stmt)
    if message is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    return message


def _normalize_content(content: str | None, *, allow_empty: bool = False) -> str:
    text = (content or "").strip()
    if not text and not allow_empty:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Message cannot be empty")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Message is too long")
    return text


def list_messages(db: Session, *, conversation_id: UUID, viewer_id: UUID) -> list[Message]:
    """Return every message of the conversation in ascending time order."""

    require_participant(db, conversation_id, viewer_id)
    stmt = (
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .options(selectinload(Message.sender), selectinload(Message.likes))
        .order_by(Message.created_at.asc(), Message.id.asc())
    )
    return list(db.scalars(stmt))


def get_last_message(db: Session, *, conversation_id: UUID, viewer_id: UUID) -> Message | None:
    require_participant(db, conversation_id, viewer_id)
    stmt = (
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .options(selectinload(Message.sender), selectinload(Message.likes))
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(1)
    )
    return db.scalar(stmt)


def count_unread(db: Session, *, conversation_id: UUID, viewer_id: UUID) -> int:
    """Count messages authored by others that carry no read receipt from ``viewer_id``."""

    require_participant(db, conversation_id, viewer_id)
    receipt = exists().where(and_(MessageRead.message_id == Message.id, MessageRead.user_id == viewer_id))
    stmt = (
        select(func.count(Message.id))
        .where(
            Message.conversation_id == conversation_id,
            Message.sender_id != viewer_id,
            ~receipt,
        )
    )
    return int(db.scalar(stmt) or 0)


def insert_message(
    db: Session,
    *,
    conversation_id: UUID,
    sender_id: UUID,
    content: str | None,
    image_url: str | None = None,
    message_id: UUID | None = None,
) -> Message:
    """Persist a new message and bump the conversation's ``updated_at``.

    A message carries text, an image URL or both; image-only messages store empty content.
    """

    image_url = (image_url or "").strip() or None
    text = _normalize_content(content, allow_empty=image_url is not None)
    conversation = db.get(Conversation, conversation_id)
    if conversation is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    require_participant(db, conversation_id, sender_id)

    now = datetime.now(timezone.utc)
    message = Message(
        conversation_id=conversation_id,
        sender_id=sender_id,
        content=text,
        image_url=image_url,
        created_at=now,
        updated_at=now,
    )
    if message_id is not None:
        message.id = message_id
    setattr(conversation, "updated_at", now)

    try:
        db.add(message)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Message already exists") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to persist message in conversation %s", conversation_id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to persist message") from exc

    return _load_message(db, cast(UUID, message.id))


def _explain_rejected_mutation(db: Session, message_id: UUID, actor_id: UUID, *, verb: str) -> HTTPException:
    message = _get_message_or_404(db, message_id)
    if message.sender_id != actor_id:
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"You can only {verb} your own messages")
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Message was deleted")


def update_message_content(db: Session, *, message_id: UUID, editor_id: UUID, content: str) -> Message:
    """Edit a message; only its sender may do so, and never after deletion."""

    text = _normalize_content(content)
    stmt = (
        update(Message)
        .where(
            Message.id == message_id,
            Message.sender_id == editor_id,
            Message.is_deleted.is_(False),
        )
        .values(content=text, is_edited=True, updated_at=datetime.now(timezone.utc))
    )
    try:
        result = db.execute(stmt)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to edit message") from exc

    if result.rowcount == 0:
        raise _explain_rejected_mutation(db, message_id, editor_id, verb="edit")
    return _load_message(db, message_id)


def soft_delete_message(db: Session, *, message_id: UUID, requester_id: UUID) -> Message:
    """Mark a message deleted, replace its content with the placeholder and drop any image."""

    message = _get_message_or_404(db, message_id)
    if message.sender_id != requester_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="You can only delete your own messages")
    if bool(message.is_deleted):
        return _load_message(db, message_id)

    stmt = (
        update(Message)
        .where(Message.id == message_id, Message.sender_id == requester_id)
        .values(
            is_deleted=True,
            content=DELETED_MESSAGE_PLACEHOLDER,
            image_url=None,
            updated_at=datetime.now(timezone.utc),
        )
    )
    try:
        db.execute(stmt)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to delete message") from exc

    return _load_message(db, message_id)


def like_message(db: Session, *, message_id: UUID, user_id: UUID) -> MessageLike:
    """Insert a like row; a second like by the same profile is a 409 conflict."""

    message = _get_message_or_404(db, message_id)
    require_participant(db, cast(UUID, message.conversation_id), user_id)

    like = MessageLike(message_id=message_id, user_id=user_id)
    try:
        db.add(like)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Message already liked") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to like message") from exc

    db.refresh(like)
    return like


def unlike_message(db: Session, *, message_id: UUID, user_id: UUID) -> int:
    """Remove the profile's like and return how many rows were deleted (0 or 1)."""

    like = db.scalar(select(MessageLike).where(MessageLike.message_id == message_id, MessageLike.user_id == user_id))
    if like is None:
        return 0
    try:
        db.delete(like)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to unlike message") from exc
    return 1


def list_message_likes(db: Session, *, message_ids: Sequence[UUID], viewer_id: UUID) -> list[MessageLike]:
    if not message_ids:
        return []
    stmt = (
        select(MessageLike)
        .join(Message, Message.id == MessageLike.message_id)
        .join(
            ConversationParticipant,
            and_(
                ConversationParticipant.conversation_id == Message.conversation_id,
                ConversationParticipant.user_id == viewer_id,
            ),
        )
        .where(MessageLike.message_id.in_(list(message_ids)))
    )
    return list(db.scalars(stmt))


def mark_message_read(db: Session, *, message_id: UUID, user_id: UUID) -> bool:
    """Insert a read receipt unless one exists; return whether a row was created."""

    existing = db.scalar(
        select(MessageRead.id).where(MessageRead.message_id == message_id, MessageRead.user_id == user_id)
    )
    if existing is not None:
        return False

    message = _get_message_or_404(db, message_id)
    require_participant(db, cast(UUID, message.conversation_id), user_id)

    try:
        db.add(MessageRead(message_id=message_id, user_id=user_id))
        db.commit()
    except IntegrityError:
        # A concurrent receipt won the race.
        db.rollback()
        return False
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to mark message read") from exc
    return True


def mark_messages_read(db: Session, *, message_ids: Iterable[UUID], user_id: UUID) -> int:
    return sum(1 for message_id in message_ids if mark_message_read(db, message_id=message_id, user_id=user_id))


__all__ = [
    "serialize_message",
    "is_participant",
    "require_participant",
    "message_audience",
    "message_change_event",
    "message_like_change_event",
    "list_messages",
    "get_last_message",
    "count_unread",
    "insert_message",
    "update_message_content",
    "soft_delete_message",
    "like_message",
    "unlike_message",
    "list_message_likes",
    "mark_message_read",
    "mark_messages_read",
]
