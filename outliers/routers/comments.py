"""Comment routes addressed by comment id."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import Profile
from ..schemas import EngagementResponse
from ..services import delete_comment, get_current_profile, toggle_comment_like

router = APIRouter(prefix="/comments", tags=["comments"])


@router.delete("/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment_endpoint(
    comment_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> Response:
    delete_comment(db, comment_id=comment_id, requester_id=current_profile.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{comment_id}/like", response_model=EngagementResponse)
async def toggle_comment_like_endpoint(
    comment_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> EngagementResponse:
    return toggle_comment_like(db, comment_id=comment_id, user_id=current_profile.id)


__all__ = ["router"]
