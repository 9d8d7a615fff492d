"""Application entry point for the Outliers data service."""
from __future__ import annotations

import logging
import os
from typing import Iterable

from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .database import init_db
from .routers import (
    articles_router,
    auth_router,
    comments_router,
    conversations_router,
    groups_router,
    messages_router,
    notifications_router,
    profiles_router,
    realtime_router,
)
from .services import StorageConfigurationError, change_feed, ensure_buckets

logger = logging.getLogger(__name__)

settings = get_settings()
APP_NAME = settings.app_name
API_VERSION = settings.api_version

app = FastAPI(title=APP_NAME, version=API_VERSION)

cors_origins = os.getenv("CORS_ORIGINS")
if cors_origins:
    origins: Iterable[str] = [origin.strip() for origin in cors_origins.split(",") if origin.strip()]
else:
    origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(profiles_router)
app.include_router(articles_router)
app.include_router(comments_router)
app.include_router(groups_router)
app.include_router(notifications_router)
app.include_router(conversations_router)
app.include_router(messages_router)
app.include_router(realtime_router)


async def _provision_storage() -> None:
    try:
        created = await run_in_threadpool(ensure_buckets)
    except StorageConfigurationError as exc:
        logger.warning("Object storage unavailable: %s", exc)
        return
    if created:
        logger.info("Provisioned storage buckets: %s", ", ".join(created))


@app.on_event("startup")
async def _startup() -> None:
    """Ensure database schema and storage buckets are ready before serving."""

    try:
        init_db()
    except Exception:  # pragma: no cover - best effort logging
        logger.exception("Database initialisation failed")
        raise

    await _provision_storage()


@app.get("/api", tags=["system"])
def api_info() -> dict[str, str]:
    return {"service": APP_NAME, "version": API_VERSION}


@app.get("/health", tags=["system"])
async def healthcheck() -> dict[str, object]:
    return {"status": "ok", "realtime_subscriptions": change_feed.subscription_count()}
