"""Direct conversation routes."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import Profile
from ..schemas import ConversationResponse, ConversationStartRequest, ConversationStartResponse, MessageThreadResponse
from ..services import (
    get_current_profile,
    get_or_create_direct_conversation,
    list_conversation_summaries,
    list_messages,
    serialize_message,
)

router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.get("", response_model=list[ConversationResponse])
async def list_conversations_endpoint(
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> list[ConversationResponse]:
    return list_conversation_summaries(db, viewer_id=current_profile.id)


@router.post("", response_model=ConversationStartResponse, status_code=status.HTTP_200_OK)
async def start_conversation_endpoint(
    payload: ConversationStartRequest,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> ConversationStartResponse:
    conversation, created = get_or_create_direct_conversation(
        db,
        user_id=current_profile.id,
        target_id=payload.target_id,
    )
    return ConversationStartResponse(conversation_id=conversation.id, created=created)


@router.get("/{conversation_id}/messages", response_model=MessageThreadResponse)
async def conversation_thread_endpoint(
    conversation_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> MessageThreadResponse:
    messages = list_messages(db, conversation_id=conversation_id, viewer_id=current_profile.id)
    return MessageThreadResponse(
        conversation_id=conversation_id,
        messages=[serialize_message(item, viewer_id=current_profile.id) for item in messages],
    )


__all__ = ["router"]
