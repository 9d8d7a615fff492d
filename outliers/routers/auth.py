"""Authentication routes: register, sign in and current profile."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import Profile
from ..schemas import AuthResponse, LoginRequest, ProfileResponse, RegisterRequest
from ..services import authenticate_profile, create_access_token, get_current_profile, get_profile, register_profile

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register_endpoint(
    payload: RegisterRequest,
    db: Session = Depends(get_session),
) -> AuthResponse:
    profile, token = register_profile(db, payload)
    return AuthResponse(access_token=token, profile_id=profile.id, username=profile.username)


@router.post("/login", response_model=AuthResponse)
async def login_endpoint(
    payload: LoginRequest,
    db: Session = Depends(get_session),
) -> AuthResponse:
    profile = authenticate_profile(db, payload.username, payload.password)
    if not profile:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    token = create_access_token(profile.id)
    return AuthResponse(access_token=token, profile_id=profile.id, username=profile.username)


@router.get("/me", response_model=ProfileResponse)
async def me_endpoint(
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> ProfileResponse:
    return get_profile(db, profile_id=current_profile.id, viewer_id=current_profile.id)


__all__ = ["router"]
