"""Business logic for follower relationships."""
from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Follower, Profile
from ..schemas import EngagementResponse
from .notification_service import NotificationType, notify_counterpart


@dataclass(slots=True)
class FollowStats:
    user_id: UUID
    followers_count: int
    following_count: int
    is_following: bool


def _get_profile_or_404(db: Session, profile_id: UUID) -> Profile:
    profile = db.get(Profile, profile_id)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return profile


def _followers_count(db: Session, profile_id: UUID) -> int:
    return int(db.scalar(select(func.count()).select_from(Follower).where(Follower.following_id == profile_id)) or 0)


def toggle_follow(db: Session, *, follower_id: UUID, target_id: UUID) -> EngagementResponse:
    """Follow or unfollow ``target_id``; a new follow notifies the followed profile."""

    if follower_id == target_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot follow yourself")
    _get_profile_or_404(db, target_id)

    existing = db.get(Follower, (follower_id, target_id))
    try:
        if existing is not None:
            db.delete(existing)
        else:
            db.add(Follower(follower_id=follower_id, following_id=target_id))
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Unable to update follow") from exc

    following = existing is None
    if following:
        notify_counterpart(db, user_id=target_id, actor_id=follower_id, type_=NotificationType.FOLLOW)
    return EngagementResponse(target_id=target_id, active=following, count=_followers_count(db, target_id))


def get_follow_stats(db: Session, *, user_id: UUID, viewer_id: UUID | None = None) -> FollowStats:
    _get_profile_or_404(db, user_id)

    following_count = db.scalar(select(func.count()).select_from(Follower).where(Follower.follower_id == user_id)) or 0
    is_following = False
    if viewer_id is not None:
        is_following = db.get(Follower, (viewer_id, user_id)) is not None

    return FollowStats(
        user_id=user_id,
        followers_count=_followers_count(db, user_id),
        following_count=int(following_count),
        is_following=is_following,
    )


def list_followers(db: Session, *, user_id: UUID) -> list[Profile]:
    _get_profile_or_404(db, user_id)
    stmt = (
        select(Profile)
        .join(Follower, Follower.follower_id == Profile.id)
        .where(Follower.following_id == user_id)
        .order_by(Follower.created_at.desc())
    )
    return list(db.scalars(stmt))


def list_following(db: Session, *, user_id: UUID) -> list[Profile]:
    _get_profile_or_404(db, user_id)
    stmt = (
        select(Profile)
        .join(Follower, Follower.following_id == Profile.id)
        .where(Follower.follower_id == user_id)
        .order_by(Follower.created_at.desc())
    )
    return list(db.scalars(stmt))


__all__ = ["FollowStats", "toggle_follow", "get_follow_stats", "list_followers", "list_following"]
