"""Group routes: settings, membership, join requests and group messages."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import Profile
from ..schemas import (
    GroupCreate,
    GroupJoinResponse,
    GroupMemberResponse,
    GroupMessageCreate,
    GroupMessageResponse,
    GroupResponse,
    GroupUpdate,
    JoinRequestDecision,
    JoinRequestResponse,
    UploadResponse,
)
from ..services import (
    StorageConfigurationError,
    StorageUploadError,
    create_group,
    decide_join_request,
    get_current_profile,
    get_group,
    join_group,
    leave_group,
    list_group_messages,
    list_groups,
    list_join_requests,
    list_members,
    post_group_message,
    remove_member,
    require_group_member,
    serialize_group,
    update_group,
    upload_file,
)

router = APIRouter(prefix="/groups", tags=["groups"])

GROUP_MEDIA_BUCKET = "group-media"


@router.get("", response_model=list[GroupResponse])
async def list_groups_endpoint(
    mine: bool = Query(False),
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> list[GroupResponse]:
    groups = list_groups(db, member_id=current_profile.id if mine else None)
    return [serialize_group(db, group, viewer_id=current_profile.id) for group in groups]


@router.post("", response_model=GroupResponse, status_code=status.HTTP_201_CREATED)
async def create_group_endpoint(
    payload: GroupCreate,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> GroupResponse:
    group = create_group(db, owner_id=current_profile.id, payload=payload)
    return serialize_group(db, group, viewer_id=current_profile.id)


@router.get("/{group_id}", response_model=GroupResponse)
async def group_detail_endpoint(
    group_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> GroupResponse:
    return serialize_group(db, get_group(db, group_id=group_id), viewer_id=current_profile.id)


@router.patch("/{group_id}", response_model=GroupResponse)
async def update_group_endpoint(
    group_id: UUID,
    payload: GroupUpdate,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> GroupResponse:
    group = update_group(db, group_id=group_id, editor_id=current_profile.id, payload=payload)
    return serialize_group(db, group, viewer_id=current_profile.id)


@router.get("/{group_id}/members", response_model=list[GroupMemberResponse])
async def list_members_endpoint(
    group_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> list[GroupMemberResponse]:
    return [GroupMemberResponse.model_validate(member) for member in list_members(db, group_id=group_id)]


@router.post("/{group_id}/join", response_model=GroupJoinResponse)
async def join_group_endpoint(
    group_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> GroupJoinResponse:
    result = join_group(db, group_id=group_id, user_id=current_profile.id)
    return GroupJoinResponse(group_id=group_id, status=result.value)


@router.post("/{group_id}/leave", status_code=status.HTTP_204_NO_CONTENT)
async def leave_group_endpoint(
    group_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> Response:
    leave_group(db, group_id=group_id, user_id=current_profile.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{group_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member_endpoint(
    group_id: UUID,
    user_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> Response:
    remove_member(db, group_id=group_id, admin_id=current_profile.id, user_id=user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{group_id}/requests", response_model=list[JoinRequestResponse])
async def list_requests_endpoint(
    group_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> list[JoinRequestResponse]:
    requests = list_join_requests(db, group_id=group_id, admin_id=current_profile.id)
    return [JoinRequestResponse.model_validate(item) for item in requests]


@router.post("/requests/{request_id}", response_model=JoinRequestResponse)
async def decide_request_endpoint(
    request_id: UUID,
    payload: JoinRequestDecision,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> JoinRequestResponse:
    request = decide_join_request(db, request_id=request_id, admin_id=current_profile.id, approve=payload.approve)
    return JoinRequestResponse.model_validate(request)


@router.get("/{group_id}/messages", response_model=list[GroupMessageResponse])
async def list_group_messages_endpoint(
    group_id: UUID,
    limit: int = Query(100, ge=1, le=500),
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> list[GroupMessageResponse]:
    messages = list_group_messages(db, group_id=group_id, viewer_id=current_profile.id, limit=limit)
    return [GroupMessageResponse.model_validate(item) for item in messages]


@router.post("/{group_id}/messages", response_model=GroupMessageResponse, status_code=status.HTTP_201_CREATED)
async def post_group_message_endpoint(
    group_id: UUID,
    payload: GroupMessageCreate,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> GroupMessageResponse:
    message = post_group_message(db, group_id=group_id, sender_id=current_profile.id, payload=payload)
    return GroupMessageResponse.model_validate(message)


@router.post("/{group_id}/media", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_group_media_endpoint(
    group_id: UUID,
    file: UploadFile = File(...),
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> UploadResponse:
    require_group_member(db, group_id=group_id, user_id=current_profile.id)
    try:
        result = await upload_file(file, bucket=GROUP_MEDIA_BUCKET, folder=str(group_id))
    except StorageConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except StorageUploadError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return UploadResponse(bucket=result.bucket, path=result.path, url=result.url, content_type=result.content_type)


__all__ = ["router"]
