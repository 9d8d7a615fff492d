"""Conversation lookup, direct-conversation creation and list assembly."""
from __future__ import annotations

import logging
from typing import Sequence, cast
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..models import Conversation, ConversationParticipant, Profile
from ..schemas import ConversationResponse, MessageResponse, ParticipantResponse, ProfileSummary
from .message_service import count_unread, get_last_message, serialize_message

logger = logging.getLogger(__name__)


def pair_key(first: UUID, second: UUID) -> str:
    """Canonical key of the unordered pair ``{first, second}``."""

    low, high = sorted((str(first), str(second)))
    return f"{low}:{high}"


def list_participant_conversation_ids(db: Session, *, user_id: UUID) -> list[UUID]:
    """Distinct conversation ids the profile participates in, oldest membership first."""

    stmt = (
        select(ConversationParticipant.conversation_id)
        .where(ConversationParticipant.user_id == user_id)
        .order_by(ConversationParticipant.created_at.asc())
    )
    seen: list[UUID] = []
    for conversation_id in db.scalars(stmt):
        if conversation_id not in seen:
            seen.append(conversation_id)
    return seen


def list_conversations(db: Session, *, conversation_ids: Sequence[UUID], viewer_id: UUID) -> list[Conversation]:
    """Load the requested conversations the viewer belongs to, newest activity first."""

    if not conversation_ids:
        return []
    stmt = (
        select(Conversation)
        .where(
            Conversation.id.in_(list(conversation_ids)),
            Conversation.participants.any(ConversationParticipant.user_id == viewer_id),
        )
        .options(selectinload(Conversation.participants).selectinload(ConversationParticipant.profile))
        .order_by(Conversation.updated_at.desc())
    )
    return list(db.scalars(stmt))


def find_direct_conversation(db: Session, *, user_id: UUID, target_id: UUID) -> UUID | None:
    """Return the first conversation shared by both profiles, if any."""

    target_ids = set(list_participant_conversation_ids(db, user_id=target_id))
    for conversation_id in list_participant_conversation_ids(db, user_id=user_id):
        if conversation_id in target_ids:
            return conversation_id
    return None


def _conversation_by_pair(db: Session, key: str) -> Conversation | None:
    return db.scalar(select(Conversation).where(Conversation.pair_key == key))


def get_or_create_direct_conversation(db: Session, *, user_id: UUID, target_id: UUID) -> tuple[Conversation, bool]:
    """Resolve the direct conversation between two profiles, creating it atomically when missing.

    The conversation row and both participant rows are committed together, and
    the unique ``pair_key`` makes concurrent creators converge on one row.
    """

    if user_id == target_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot start a conversation with yourself")
    if db.get(Profile, target_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")

    existing_id = find_direct_conversation(db, user_id=user_id, target_id=target_id)
    if existing_id is not None:
        return cast(Conversation, db.get(Conversation, existing_id)), False

    key = pair_key(user_id, target_id)
    existing = _conversation_by_pair(db, key)
    if existing is not None:
        return existing, False

    conversation = Conversation(pair_key=key)
    conversation.participants = [
        ConversationParticipant(user_id=user_id),
        ConversationParticipant(user_id=target_id),
    ]
    try:
        db.add(conversation)
        db.commit()
    except IntegrityError:
        db.rollback()
        winner = _conversation_by_pair(db, key)
        if winner is None:
            logger.error("Direct conversation for %s vanished after a unique conflict", key)
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to start conversation")
        return winner, False
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to create conversation %s", key)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to start conversation") from exc

    db.refresh(conversation)
    logger.info("Created direct conversation %s", conversation.id)
    return conversation, True


def serialize_conversation(
    conversation: Conversation,
    *,
    last_message: MessageResponse | None = None,
    unread_count: int = 0,
) -> ConversationResponse:
    participants = [
        ParticipantResponse(
            id=participant.id,
            conversation_id=participant.conversation_id,
            user_id=participant.user_id,
            created_at=participant.created_at,
            profile=ProfileSummary.model_validate(participant.profile) if participant.profile is not None else None,
        )
        for participant in conversation.participants
    ]
    return ConversationResponse(
        id=conversation.id,
        created_at=conversation.created_at,
        updated_at=conversation.updated_at,
        participants=participants,
        last_message=last_message,
        unread_count=unread_count,
    )


def list_conversation_summaries(db: Session, *, viewer_id: UUID) -> list[ConversationResponse]:
    """Conversations of the viewer with last message and unread count, newest first."""

    conversation_ids = list_participant_conversation_ids(db, user_id=viewer_id)
    summaries: list[ConversationResponse] = []
    for conversation in list_conversations(db, conversation_ids=conversation_ids, viewer_id=viewer_id):
        conversation_id = cast(UUID, conversation.id)
        last = get_last_message(db, conversation_id=conversation_id, viewer_id=viewer_id)
        summaries.append(
            serialize_conversation(
                conversation,
                last_message=serialize_message(last, viewer_id=viewer_id) if last is not None else None,
                unread_count=count_unread(db, conversation_id=conversation_id, viewer_id=viewer_id),
            )
        )
    summaries.sort(key=lambda item: item.updated_at, reverse=True)
    return summaries


__all__ = [
    "pair_key",
    "list_participant_conversation_ids",
    "list_conversations",
    "find_direct_conversation",
    "get_or_create_direct_conversation",
    "serialize_conversation",
    "list_conversation_summaries",
]
