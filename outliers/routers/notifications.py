"""Notification API routes."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import Profile
from ..schemas import NotificationListResponse, NotificationResponse, NotificationSummaryResponse
from ..services import count_unread_notifications, get_current_profile, list_notifications, mark_all_read, mark_read

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
async def list_my_notifications(
    limit: int = Query(50, ge=1, le=200),
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> NotificationListResponse:
    records = list_notifications(db, current_profile.id, limit=limit)
    return NotificationListResponse(items=[NotificationResponse.model_validate(item) for item in records])


@router.get("/summary", response_model=NotificationSummaryResponse)
async def notification_summary(
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> NotificationSummaryResponse:
    return NotificationSummaryResponse(unread_count=count_unread_notifications(db, current_profile.id))


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> NotificationResponse:
    record = mark_read(db, notification_id=notification_id, user_id=current_profile.id)
    return NotificationResponse.model_validate(record)


@router.post("/mark-read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_notifications_read(
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> Response:
    mark_all_read(db, current_profile.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
