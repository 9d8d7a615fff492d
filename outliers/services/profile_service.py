"""Profile lookup and owner-only profile editing."""
from __future__ import annotations

from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import contains_pattern
from ..models import Profile
from ..schemas import ProfileResponse, ProfileUpdateRequest
from .follow_service import get_follow_stats

PROFILE_IMAGE_FIELDS = {"avatar": "avatar_url", "banner": "banner_url"}


def _build_profile_response(db: Session, profile: Profile, viewer_id: UUID | None) -> ProfileResponse:
    stats = get_follow_stats(db, user_id=profile.id, viewer_id=viewer_id)
    return ProfileResponse(
        id=profile.id,
        username=profile.username,
        avatar_url=profile.avatar_url,
        banner_url=profile.banner_url,
        bio=profile.bio,
        sector=profile.sector,
        social_links=profile.social_links,
        language=profile.language,
        created_at=profile.created_at,
        followers_count=stats.followers_count,
        following_count=stats.following_count,
        is_following=stats.is_following,
    )


def _get_profile_or_404(db: Session, profile_id: UUID) -> Profile:
    profile = db.get(Profile, profile_id)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return profile


def get_profile(db: Session, *, profile_id: UUID, viewer_id: UUID | None = None) -> ProfileResponse:
    profile = _get_profile_or_404(db, profile_id)
    return _build_profile_response(db, profile, viewer_id)


def get_profile_by_username(db: Session, *, username: str, viewer_id: UUID | None = None) -> ProfileResponse:
    profile = db.scalar(select(Profile).where(Profile.username == username.strip()))
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return _build_profile_response(db, profile, viewer_id)


def search_profiles(db: Session, *, query: str, limit: int = 20) -> list[Profile]:
    term = (query or "").strip()
    if not term:
        return []
    stmt = (
        select(Profile)
        .where(Profile.username.ilike(contains_pattern(term), escape="\\"))
        .order_by(Profile.username.asc())
        .limit(limit)
    )
    return list(db.scalars(stmt))


def update_profile(db: Session, *, profile_id: UUID, payload: ProfileUpdateRequest) -> ProfileResponse:
    profile = _get_profile_or_404(db, profile_id)
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No changes provided")

    for field, value in changes.items():
        if isinstance(value, str):
            value = value.strip() or None
        setattr(profile, field, value)

    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update profile") from exc
    db.refresh(profile)
    return _build_profile_response(db, profile, profile.id)


def set_profile_image(db: Session, *, profile_id: UUID, kind: str, url: str) -> ProfileResponse:
    field = PROFILE_IMAGE_FIELDS.get(kind)
    if field is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown profile image kind")
    profile = _get_profile_or_404(db, profile_id)
    setattr(profile, field, url)
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update profile") from exc
    db.refresh(profile)
    return _build_profile_response(db, profile, profile.id)


__all__ = [
    "PROFILE_IMAGE_FIELDS",
    "get_profile",
    "get_profile_by_username",
    "search_profiles",
    "update_profile",
    "set_profile_image",
]
