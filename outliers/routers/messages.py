"""Messaging API routes: send, image upload, edit, soft delete, likes and read receipts."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status
from sqlalchemy.orm import Session

from ..constants import CHAT_MEDIA_BUCKET
from ..database import get_session
from ..models import Profile
from ..schemas import (
    MessageCreate,
    MessageLikeResponse,
    MessageLikeState,
    MessageResponse,
    MessageUpdate,
    ReadReceiptResponse,
    UploadResponse,
)
from ..services import (
    ChangeType,
    StorageConfigurationError,
    StorageUploadError,
    change_feed,
    get_current_profile,
    insert_message,
    like_message,
    list_message_likes,
    mark_message_read,
    message_change_event,
    message_like_change_event,
    require_participant,
    serialize_message,
    soft_delete_message,
    unlike_message,
    update_message_content,
    upload_file,
)

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("/in/{conversation_id}", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message_endpoint(
    conversation_id: UUID,
    payload: MessageCreate,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> MessageResponse:
    record = insert_message(
        db,
        conversation_id=conversation_id,
        sender_id=current_profile.id,
        content=payload.content,
        image_url=payload.image_url,
        message_id=payload.id,
    )
    await change_feed.publish(message_change_event(db, record, ChangeType.INSERT))
    return serialize_message(record, viewer_id=current_profile.id)


@router.post("/in/{conversation_id}/media", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_chat_media_endpoint(
    conversation_id: UUID,
    file: UploadFile = File(...),
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> UploadResponse:
    """Store an image for a direct message; the returned URL goes into ``image_url`` on send."""

    require_participant(db, conversation_id, current_profile.id)
    if not (file.content_type or "").startswith("image/"):
        raise HTTPException(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail="Only images can be attached")
    try:
        result = await upload_file(file, bucket=CHAT_MEDIA_BUCKET, folder=f"{conversation_id}/{current_profile.id}")
    except StorageConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except StorageUploadError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return UploadResponse(bucket=result.bucket, path=result.path, url=result.url, content_type=result.content_type)


@router.patch("/{message_id}", response_model=MessageResponse)
async def edit_message_endpoint(
    message_id: UUID,
    payload: MessageUpdate,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> MessageResponse:
    record = update_message_content(db, message_id=message_id, editor_id=current_profile.id, content=payload.content)
    await change_feed.publish(message_change_event(db, record, ChangeType.UPDATE))
    return serialize_message(record, viewer_id=current_profile.id)


@router.delete("/{message_id}", response_model=MessageResponse)
async def delete_message_endpoint(
    message_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> MessageResponse:
    record = soft_delete_message(db, message_id=message_id, requester_id=current_profile.id)
    await change_feed.publish(message_change_event(db, record, ChangeType.UPDATE))
    return serialize_message(record, viewer_id=current_profile.id)


@router.post("/{message_id}/like", response_model=MessageLikeResponse, status_code=status.HTTP_201_CREATED)
async def like_message_endpoint(
    message_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> MessageLikeResponse:
    like = like_message(db, message_id=message_id, user_id=current_profile.id)
    await change_feed.publish(
        message_like_change_event(db, message_id=message_id, user_id=current_profile.id, type_=ChangeType.INSERT)
    )
    return MessageLikeResponse.model_validate(like)


@router.delete("/{message_id}/like", status_code=status.HTTP_204_NO_CONTENT)
async def unlike_message_endpoint(
    message_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> Response:
    if unlike_message(db, message_id=message_id, user_id=current_profile.id):
        await change_feed.publish(
            message_like_change_event(db, message_id=message_id, user_id=current_profile.id, type_=ChangeType.DELETE)
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{message_id}/likes", response_model=MessageLikeState)
async def message_likes_endpoint(
    message_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> MessageLikeState:
    likes = list_message_likes(db, message_ids=[message_id], viewer_id=current_profile.id)
    return MessageLikeState(
        message_id=message_id,
        likes_count=len(likes),
        is_liked_by_me=any(like.user_id == current_profile.id for like in likes),
    )


@router.post("/{message_id}/read", response_model=ReadReceiptResponse)
async def mark_read_endpoint(
    message_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> ReadReceiptResponse:
    created = mark_message_read(db, message_id=message_id, user_id=current_profile.id)
    return ReadReceiptResponse(message_id=message_id, created=created)


__all__ = ["router"]
