"""Schemas for storage uploads."""
from __future__ import annotations

from pydantic import BaseModel


class UploadResponse(BaseModel):
    bucket: str
    path: str
    url: str
    content_type: str


__all__ = ["UploadResponse"]
