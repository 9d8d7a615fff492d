"""Profile routes: lookup, editing, follows and profile images."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import Profile
from ..schemas import EngagementResponse, ProfileResponse, ProfileSummary, ProfileUpdateRequest
from ..services import (
    StorageConfigurationError,
    StorageUploadError,
    get_current_profile,
    get_optional_profile,
    get_profile,
    get_profile_by_username,
    list_followers,
    list_following,
    search_profiles,
    set_profile_image,
    toggle_follow,
    update_profile,
    upload_file,
)
from ..services.profile_service import PROFILE_IMAGE_FIELDS

router = APIRouter(prefix="/profiles", tags=["profiles"])

_IMAGE_BUCKETS = {"avatar": "avatars", "banner": "banners"}


@router.get("/search", response_model=list[ProfileSummary])
async def search_profiles_endpoint(
    q: str = Query("", max_length=100),
    db: Session = Depends(get_session),
) -> list[ProfileSummary]:
    return [ProfileSummary.model_validate(item) for item in search_profiles(db, query=q)]


@router.get("/by-username/{username}", response_model=ProfileResponse)
async def profile_by_username_endpoint(
    username: str,
    viewer: Profile | None = Depends(get_optional_profile),
    db: Session = Depends(get_session),
) -> ProfileResponse:
    return get_profile_by_username(db, username=username, viewer_id=viewer.id if viewer else None)


@router.patch("/me", response_model=ProfileResponse)
async def update_me_endpoint(
    payload: ProfileUpdateRequest,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> ProfileResponse:
    return update_profile(db, profile_id=current_profile.id, payload=payload)


@router.post("/me/{kind}", response_model=ProfileResponse)
async def upload_profile_image_endpoint(
    kind: str,
    file: UploadFile = File(...),
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> ProfileResponse:
    if kind not in PROFILE_IMAGE_FIELDS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown profile image kind")
    try:
        result = await upload_file(file, bucket=_IMAGE_BUCKETS[kind], folder=str(current_profile.id))
    except StorageConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except StorageUploadError as exc:  # pragma: no cover - network bound
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return set_profile_image(db, profile_id=current_profile.id, kind=kind, url=result.url)


@router.get("/{profile_id}", response_model=ProfileResponse)
async def profile_detail_endpoint(
    profile_id: UUID,
    viewer: Profile | None = Depends(get_optional_profile),
    db: Session = Depends(get_session),
) -> ProfileResponse:
    return get_profile(db, profile_id=profile_id, viewer_id=viewer.id if viewer else None)


@router.post("/{profile_id}/follow", response_model=EngagementResponse)
async def toggle_follow_endpoint(
    profile_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> EngagementResponse:
    return toggle_follow(db, follower_id=current_profile.id, target_id=profile_id)


@router.get("/{profile_id}/followers", response_model=list[ProfileSummary])
async def followers_endpoint(profile_id: UUID, db: Session = Depends(get_session)) -> list[ProfileSummary]:
    return [ProfileSummary.model_validate(item) for item in list_followers(db, user_id=profile_id)]


@router.get("/{profile_id}/following", response_model=list[ProfileSummary])
async def following_endpoint(profile_id: UUID, db: Session = Depends(get_session)) -> list[ProfileSummary]:
    return [ProfileSummary.model_validate(item) for item in list_following(db, user_id=profile_id)]


__all__ = ["router"]
