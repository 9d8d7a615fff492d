"""Schemas for authentication flows."""
from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=150, pattern=r"^[A-Za-z0-9_.-]+$")
    password: str = Field(..., min_length=8, max_length=128)
    bio: str | None = Field(None, max_length=500)


class LoginRequest(BaseModel):
    username: str
    password: str


class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    profile_id: UUID
    username: str


__all__ = ["RegisterRequest", "LoginRequest", "AuthResponse"]
