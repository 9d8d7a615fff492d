"""S3-compatible object storage helpers."""
from __future__ import annotations

import io
import logging
import re
import uuid
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Iterable

from boto3.session import Session
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from ..config import get_settings
from ..security.secrets import MissingSecretError, require_secret

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageConfig:
    """Runtime configuration extracted from settings."""

    key: str
    secret: str
    region: str
    endpoint: str | None
    public_endpoint: str
    buckets: tuple[str, ...]


@dataclass(frozen=True)
class StorageUploadResult:
    """Metadata returned after uploading an object."""

    bucket: str
    path: str
    url: str
    content_type: str


class StorageConfigurationError(RuntimeError):
    """Raised when required storage settings are missing or invalid."""


class StorageUploadError(RuntimeError):
    """Raised when an upload to object storage fails."""


@lru_cache(maxsize=1)
def load_storage_config() -> StorageConfig:
    settings = get_settings()
    try:
        key = require_secret("STORAGE_ACCESS_KEY", settings.storage_access_key)
        secret = require_secret("STORAGE_SECRET_KEY", settings.storage_secret_key)
    except MissingSecretError as exc:
        raise StorageConfigurationError(str(exc)) from exc

    endpoint = (settings.storage_endpoint or "").strip().rstrip("/") or None
    public_endpoint = (settings.storage_public_endpoint or "").strip().rstrip("/")
    if not public_endpoint:
        if endpoint is None:
            public_endpoint = f"https://s3.{settings.storage_region}.amazonaws.com"
        else:
            public_endpoint = endpoint
    if not settings.bucket_names:
        raise StorageConfigurationError("STORAGE_BUCKETS must name at least one bucket")

    return StorageConfig(
        key=key,
        secret=secret,
        region=settings.storage_region,
        endpoint=endpoint,
        public_endpoint=public_endpoint,
        buckets=tuple(settings.bucket_names),
    )


@lru_cache(maxsize=1)
def get_storage_client() -> BaseClient:
    """Create a singleton boto3 S3 client."""

    config = load_storage_config()
    session = Session()
    return session.client(
        "s3",
        region_name=config.region,
        endpoint_url=config.endpoint,
        aws_access_key_id=config.key,
        aws_secret_access_key=config.secret,
    )


def ensure_buckets(*, client: BaseClient | None = None) -> list[str]:
    """Create every configured bucket that does not exist yet; returns the created names."""

    config = load_storage_config()
    s3_client = client or get_storage_client()
    created: list[str] = []
    for bucket in config.buckets:
        try:
            s3_client.head_bucket(Bucket=bucket)
            continue
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code not in {"404", "NoSuchBucket", "NotFound"}:
                raise StorageConfigurationError(f"Cannot access bucket {bucket}") from exc
        except BotoCoreError as exc:
            raise StorageConfigurationError(f"Cannot reach object storage for bucket {bucket}") from exc
        try:
            s3_client.create_bucket(Bucket=bucket)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in {"BucketAlreadyOwnedByYou", "BucketAlreadyExists"}:
                continue
            raise StorageConfigurationError(f"Cannot create bucket {bucket}") from exc
        except BotoCoreError as exc:
            raise StorageConfigurationError(f"Cannot create bucket {bucket}") from exc
        logger.info("Created storage bucket %s", bucket)
        created.append(bucket)
    return created


def _sanitize_segments(parts: Iterable[str]) -> list[str]:
    sanitized: list[str] = []
    for part in parts:
        if part in {"", ".", ".."}:
            continue
        cleaned = re.sub(r"[^A-Za-z0-9._-]", "-", part.strip())
        cleaned = re.sub(r"-+", "-", cleaned).strip("-._")
        if cleaned:
            sanitized.append(cleaned)
    return sanitized


def object_key(filename: str | None, folder: str) -> str:
    """Generate a unique object key anchored within ``folder``."""

    extension = Path(filename or "").suffix.lower()
    if extension and not re.fullmatch(r"\.[A-Za-z0-9]{1,10}", extension):
        extension = ""

    folder_segments = _sanitize_segments((folder or "uploads").replace("\\", "/").split("/"))
    safe_folder = "/".join(folder_segments) or "uploads"
    return f"{safe_folder}/{uuid.uuid4().hex}{extension}"


def build_public_url(bucket: str, path: str) -> str:
    config = load_storage_config()
    return f"{config.public_endpoint}/{bucket}/{path.lstrip('/')}"


def _require_bucket(bucket: str) -> None:
    if bucket not in load_storage_config().buckets:
        raise StorageUploadError(f"Unknown bucket: {bucket}")


async def upload_bytes(
    bucket: str,
    path: str,
    data: bytes,
    *,
    content_type: str = "application/octet-stream",
    client: BaseClient | None = None,
) -> StorageUploadResult:
    """Upload ``data`` under ``bucket/path`` and return its public URL."""

    _require_bucket(bucket)
    key = "/".join(_sanitize_segments(path.replace("\\", "/").split("/")))
    if not key:
        raise StorageUploadError("Invalid object path")
    s3_client = client or get_storage_client()

    def _upload() -> None:
        try:
            s3_client.upload_fileobj(io.BytesIO(data), bucket, key, ExtraArgs={"ContentType": content_type})
        except (ClientError, BotoCoreError) as exc:  # pragma: no cover - network bound
            logger.exception("Upload to %s/%s failed", bucket, key)
            raise StorageUploadError("Upload to object storage failed") from exc

    await run_in_threadpool(_upload)
    return StorageUploadResult(bucket=bucket, path=key, url=build_public_url(bucket, key), content_type=content_type)


async def upload_file(
    file: UploadFile,
    *,
    bucket: str,
    folder: str,
    client: BaseClient | None = None,
) -> StorageUploadResult:
    """Upload an ``UploadFile`` to a fresh key inside ``folder``."""

    data = await file.read()
    if not data:
        raise StorageUploadError("Uploaded file is empty")
    content_type = (file.content_type or "application/octet-stream").strip() or "application/octet-stream"
    return await upload_bytes(
        bucket,
        object_key(file.filename, folder),
        data,
        content_type=content_type,
        client=client,
    )


__all__ = [
    "StorageConfig",
    "StorageUploadResult",
    "StorageConfigurationError",
    "StorageUploadError",
    "load_storage_config",
    "get_storage_client",
    "ensure_buckets",
    "object_key",
    "build_public_url",
    "upload_bytes",
    "upload_file",
]
