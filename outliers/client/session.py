"""Signed-in identity that owns the chat store and the notification badge."""
from __future__ import annotations

import logging
from uuid import UUID

from fastapi import status
from sqlalchemy.orm import Session

from ..database import create_session
from ..models import Profile
from ..schemas import ProfileResponse, RegisterRequest
from ..services import (
    authenticate_profile,
    create_access_token,
    decode_access_token,
    get_profile,
    register_profile,
)
from ..services.realtime import ChangeFeed, change_feed
from .backend import BackendError, ServiceChatBackend, SessionFactory, run_service
from .chat_store import ChatStore
from .notices import NoticeSink
from .notification_badge import NotificationBadge

logger = logging.getLogger(__name__)


class ClientSession:
    """Holds the viewer identity; a chat store and badge exist only while signed in."""

    def __init__(
        self,
        *,
        session_factory: SessionFactory = create_session,
        feed: ChangeFeed = change_feed,
        notice_sink: NoticeSink | None = None,
        reconcile_interval: float | None = None,
        poll_interval: float | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._feed = feed
        self._notice_sink = notice_sink
        self._reconcile_interval = reconcile_interval
        self._poll_interval = poll_interval

        self.profile: ProfileResponse | None = None
        self.access_token: str | None = None
        self.chat: ChatStore | None = None
        self.badge: NotificationBadge | None = None

    @property
    def viewer_id(self) -> UUID | None:
        return self.profile.id if self.profile is not None else None

    @property
    def signed_in(self) -> bool:
        return self.profile is not None

    async def sign_up(self, username: str, password: str, *, bio: str | None = None) -> ProfileResponse:
        payload = RegisterRequest(username=username, password=password, bio=bio)

        def _work(db: Session) -> tuple[ProfileResponse, str]:
            profile, token = register_profile(db, payload)
            return get_profile(db, profile_id=profile.id, viewer_id=profile.id), token

        profile, token = await run_service(self._session_factory, _work)
        await self._start(profile, token)
        return profile

    async def sign_in(self, username: str, password: str) -> ProfileResponse:
        def _work(db: Session) -> tuple[ProfileResponse, str] | None:
            record: Profile | None = authenticate_profile(db, username, password)
            if record is None:
                return None
            return get_profile(db, profile_id=record.id, viewer_id=record.id), create_access_token(record.id)

        result = await run_service(self._session_factory, _work)
        if result is None:
            raise BackendError("Invalid credentials", status_code=status.HTTP_401_UNAUTHORIZED)
        profile, token = result
        await self._start(profile, token)
        return profile

    async def restore(self, token: str) -> ProfileResponse:
        """Resume a session from a previously issued access token."""

        def _work(db: Session) -> ProfileResponse:
            profile_id = decode_access_token(token)
            return get_profile(db, profile_id=profile_id, viewer_id=profile_id)

        profile = await run_service(self._session_factory, _work)
        await self._start(profile, token)
        return profile

    async def _start(self, profile: ProfileResponse, token: str) -> None:
        if self.signed_in:
            await self.sign_out()

        backend = ServiceChatBackend(profile.id, session_factory=self._session_factory, feed=self._feed)
        self.profile = profile
        self.access_token = token
        self.chat = ChatStore(
            backend,
            locale=profile.language,
            notice_sink=self._notice_sink,
            reconcile_interval=self._reconcile_interval,
        )
        self.badge = NotificationBadge(backend, interval=self._poll_interval)
        await self.chat.open()
        await self.badge.start()
        logger.info("Profile %s signed in", profile.id)

    async def sign_out(self) -> None:
        chat, self.chat = self.chat, None
        badge, self.badge = self.badge, None
        if chat is not None:
            await chat.close()
        if badge is not None:
            await badge.stop()
        if self.profile is not None:
            logger.info("Profile %s signed out", self.profile.id)
        self.profile = None
        self.access_token = None

    async def __aenter__(self) -> "ClientSession":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.sign_out()


__all__ = ["ClientSession"]
