"""Tests for the signed-in client session, the notification badge and notice translation."""
from __future__ import annotations

import asyncio
import os
from typing import Callable, Iterator

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_outliers.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from outliers.client import BackendError, ClientSession, NoticeLevel, NotificationBadge, ServiceChatBackend  # noqa: E402
from outliers.client.notices import build_notice  # noqa: E402
from outliers.database import Base, SessionLocal, engine  # noqa: E402
from outliers.models import Profile  # noqa: E402
from outliers.services import NotificationType, add_notification  # noqa: E402
from outliers.services.i18n_service import normalize_locale, select_locale, translate  # noqa: E402
from outliers.services.realtime import ChangeFeed  # noqa: E402


@pytest.fixture(scope="module", autouse=True)
def _create_schema() -> Iterator[None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clean_database() -> Iterator[None]:
    with SessionLocal() as session:
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
    yield


@pytest.fixture
def profile_factory() -> Callable[[str], Profile]:
    def _factory(username: str) -> Profile:
        with SessionLocal() as session:
            profile = Profile(username=username, hashed_password="test-hash")
            session.add(profile)
            session.commit()
            session.refresh(profile)
            return profile
    return _factory


def _notify(user: Profile, actor: Profile) -> None:
    with SessionLocal() as session:
        add_notification(session, user_id=user.id, actor_id=actor.id, type_=NotificationType.FOLLOW)


def test_sign_up_owns_chat_store_and_badge():
    feed = ChangeFeed()

    async def scenario() -> None:
        session = ClientSession(feed=feed, reconcile_interval=0, poll_interval=0)
        async with session:
            profile = await session.sign_up("marina", "segredo-forte", bio="Economista")
            assert session.signed_in
            assert session.viewer_id == profile.id
            assert session.access_token
            assert session.chat is not None and session.chat.is_open
            assert session.badge is not None
            assert feed.subscription_count("messages") == 1

            chat = session.chat
            await session.sign_out()
            assert not session.signed_in
            assert session.chat is None and session.badge is None
            assert not chat.is_open
            assert feed.subscription_count("messages") == 0

    asyncio.run(scenario())


def test_sign_in_and_restore():
    feed = ChangeFeed()

    async def scenario() -> None:
        first = ClientSession(feed=feed, reconcile_interval=0, poll_interval=0)
        await first.sign_up("marina", "segredo-forte")
        token = first.access_token
        await first.sign_out()

        second = ClientSession(feed=feed, reconcile_interval=0, poll_interval=0)
        with pytest.raises(BackendError) as excinfo:
            await second.sign_in("marina", "senha-errada")
        assert excinfo.value.status_code == 401
        assert not second.signed_in

        profile = await second.sign_in("marina", "segredo-forte")
        assert profile.username == "marina"

        # Signing in again replaces the previous chat store.
        previous_chat = second.chat
        await second.sign_in("marina", "segredo-forte")
        assert previous_chat is not None and not previous_chat.is_open
        assert feed.subscription_count("messages") == 1
        await second.sign_out()

        restored = ClientSession(feed=feed, reconcile_interval=0, poll_interval=0)
        assert token is not None
        assert (await restored.restore(token)).username == "marina"
        await restored.sign_out()

        with pytest.raises(BackendError) as invalid:
            await restored.restore("not-a-token")
        assert invalid.value.status_code == 401

    asyncio.run(scenario())


def test_badge_tracks_unread_notifications(profile_factory):
    marina = profile_factory("marina")
    joao = profile_factory("joao")
    _notify(marina, joao)
    _notify(marina, joao)

    async def scenario() -> None:
        changes: list[int] = []
        badge = NotificationBadge(
            ServiceChatBackend(marina.id, feed=ChangeFeed()),
            interval=0,
            on_change=changes.append,
        )
        await badge.start()
        assert badge.unread_count == 2
        assert not badge.running

        assert await badge.refresh() == 2
        assert changes == [2]

        _notify(marina, joao)
        assert await badge.refresh() == 3
        assert changes == [2, 3]

        await badge.stop()
        assert badge.unread_count == 0

    asyncio.run(scenario())


def test_badge_poll_loop_runs_until_stopped(profile_factory):
    marina = profile_factory("marina")
    joao = profile_factory("joao")
    _notify(marina, joao)

    async def scenario() -> None:
        refreshed = asyncio.Event()
        badge = NotificationBadge(
            ServiceChatBackend(marina.id, feed=ChangeFeed()),
            interval=60,
            on_change=lambda count: refreshed.set(),
        )
        await badge.start()
        assert badge.running
        await asyncio.wait_for(refreshed.wait(), timeout=5)
        assert badge.unread_count == 1

        await badge.stop()
        assert not badge.running

    asyncio.run(scenario())


def test_badge_keeps_last_value_when_polling_fails(profile_factory):
    marina = profile_factory("marina")

    class FlakyBackend(ServiceChatBackend):
        fail = False

        async def count_unread_notifications(self) -> int:
            if self.fail:
                raise BackendError("offline", status_code=503)
            return 4

    async def scenario() -> None:
        backend = FlakyBackend(marina.id, feed=ChangeFeed())
        badge = NotificationBadge(backend, interval=0)
        assert await badge.refresh() == 4
        backend.fail = True
        assert await badge.refresh() == 4
        assert badge.unread_count == 4

    asyncio.run(scenario())


def test_notice_translation_and_locale_fallbacks():
    assert normalize_locale("pt") == "pt-BR"
    assert normalize_locale("en-US") == "en"
    assert select_locale("fr-FR", ["xx", "en"]) == "en"
    assert select_locale(None) == "pt-BR"

    assert translate("pt-BR", "chat.message.send_failed") == "Não foi possível enviar a mensagem"
    assert translate("en", "chat.message.edited") == "Message edited"
    assert translate("en", "chat.unknown.key") == "chat.unknown.key"

    notice = build_notice("chat.message.edited", NoticeLevel.SUCCESS, "pt-BR")
    assert notice.message == "Mensagem editada com sucesso"
    assert notice.level is NoticeLevel.SUCCESS
