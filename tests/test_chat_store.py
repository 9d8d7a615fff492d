"""Behaviour of the conversation synchronization store against the in-process backend."""
from __future__ import annotations

import asyncio
import os
from typing import Callable, Iterator
from uuid import UUID

import pytest
from fastapi import HTTPException
from sqlalchemy import func, select

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///./test_outliers.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from outliers.client import BackendError, ChatStore, ImageAttachment, NoticeLevel, ServiceChatBackend  # noqa: E402
from outliers.constants import DELETED_MESSAGE_PLACEHOLDER  # noqa: E402
from outliers.database import Base, SessionLocal, engine  # noqa: E402
from outliers.models import Conversation, Profile  # noqa: E402
from outliers.services import StorageUploadResult, conversation_service, message_service, storage_service  # noqa: E402
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
def profile_factory() -> Callable[..., Profile]:
    def _factory(username: str, *, language: str | None = None) -> Profile:
        with SessionLocal() as session:
            profile = Profile(username=username, hashed_password="test-hash", language=language)
            session.add(profile)
            session.commit()
            session.refresh(profile)
            return profile

    return _factory


def _conversation_between(first: UUID, second: UUID) -> UUID:
    with SessionLocal() as session:
        conversation, _ = conversation_service.get_or_create_direct_conversation(
            session, user_id=first, target_id=second
        )
        return conversation.id


def _seed_message(conversation_id: UUID, sender_id: UUID, content: str) -> UUID:
    with SessionLocal() as session:
        message = message_service.insert_message(
            session, conversation_id=conversation_id, sender_id=sender_id, content=content
        )
        return message.id


def _unread_for(conversation_id: UUID, viewer_id: UUID) -> int:
    with SessionLocal() as session:
        return message_service.count_unread(session, conversation_id=conversation_id, viewer_id=viewer_id)


def _store(viewer_id: UUID, feed: ChangeFeed, *, backend: ServiceChatBackend | None = None) -> ChatStore:
    return ChatStore(backend or ServiceChatBackend(viewer_id, feed=feed), reconcile_interval=0)


def test_refresh_lists_conversations_with_unread_counts(profile_factory):
    alice = profile_factory("alice")
    bob = profile_factory("bob")
    carol = profile_factory("carol")
    with_bob = _conversation_between(alice.id, bob.id)
    with_carol = _conversation_between(alice.id, carol.id)
    _seed_message(with_bob, bob.id, "first")
    _seed_message(with_bob, bob.id, "second")
    _seed_message(with_bob, alice.id, "mine")
    _seed_message(with_carol, carol.id, "latest")

    async def scenario() -> None:
        store = _store(alice.id, ChangeFeed())
        async with store:
            ids = [conversation.id for conversation in store.conversations]
            assert ids == [with_carol, with_bob]
            counts = {conversation.id: conversation.unread_count for conversation in store.conversations}
            assert counts == {with_bob: 2, with_carol: 1}
            assert store.unread_total == 3
            assert store.conversations[0].last_message is not None
            assert store.conversations[0].last_message.content == "latest"
            assert not store.loading

    asyncio.run(scenario())


def test_fetch_marks_messages_read_and_recomputes_global_unread(profile_factory):
    alice = profile_factory("alice")
    bob = profile_factory("bob")
    carol = profile_factory("carol")
    with_bob = _conversation_between(alice.id, bob.id)
    with_carol = _conversation_between(alice.id, carol.id)
    _seed_message(with_bob, bob.id, "one")
    _seed_message(with_bob, bob.id, "two")
    _seed_message(with_carol, carol.id, "three")

    async def scenario() -> None:
        async with _store(alice.id, ChangeFeed()) as store:
            assert store.unread_total == 3
            await store.select_conversation(with_bob)
            assert [message.content for message in store.messages] == ["one", "two"]
            assert store.get_conversation(with_bob).unread_count == 0
            assert store.unread_total == 1

            await store.select_conversation(None)
            assert store.messages == []
            assert store.active_conversation_id is None

    asyncio.run(scenario())
    assert _unread_for(with_bob, alice.id) == 0
    assert _unread_for(with_carol, alice.id) == 1


def test_start_conversation_resolves_existing_pair(profile_factory):
    alice = profile_factory("alice")
    bob = profile_factory("bob")

    async def scenario() -> tuple[UUID | None, UUID | None]:
        async with _store(alice.id, ChangeFeed()) as store:
            first = await store.start_conversation(bob.id)
            assert store.active_conversation_id == first
            assert [conversation.id for conversation in store.conversations] == [first]
            second = await store.start_conversation(bob.id)
            return first, second

    first, second = asyncio.run(scenario())
    assert first is not None and first == second
    with SessionLocal() as session:
        assert session.scalar(select(func.count()).select_from(Conversation)) == 1


def test_concurrent_direct_conversation_creation_converges(profile_factory):
    alice = profile_factory("alice")
    bob = profile_factory("bob")
    feed = ChangeFeed()

    async def scenario() -> list[UUID]:
        return list(
            await asyncio.gather(
                ServiceChatBackend(alice.id, feed=feed).get_or_create_direct_conversation(bob.id),
                ServiceChatBackend(bob.id, feed=feed).get_or_create_direct_conversation(alice.id),
            )
        )

    ids = asyncio.run(scenario())
    assert ids[0] == ids[1]
    with SessionLocal() as session:
        assert session.scalar(select(func.count()).select_from(Conversation)) == 1


def test_start_conversation_with_self_reports_failure(profile_factory):
    alice = profile_factory("alice")

    async def scenario() -> None:
        async with _store(alice.id, ChangeFeed()) as store:
            assert await store.start_conversation(alice.id) is None
            assert store.active_conversation_id is None
            assert store.notices[-1].key == "chat.conversation.start_failed"
            assert store.notices[-1].level is NoticeLevel.ERROR

    asyncio.run(scenario())


def test_send_message_confirms_optimistic_copy(profile_factory):
    alice = profile_factory("alice")
    bob = profile_factory("bob")
    conversation_id = _conversation_between(alice.id, bob.id)

    async def scenario() -> None:
        async with _store(alice.id, ChangeFeed()) as store:
            await store.select_conversation(conversation_id)
            assert await store.send_message("   ") is None
            sent = await store.send_message("  olá  ")
            assert sent is not None
            assert [message.content for message in store.messages] == ["olá"]
            assert store.messages[0].pending is False
            assert store.messages[0].id == sent.id
            conversation = store.get_conversation(conversation_id)
            assert conversation.last_message.id == sent.id
            assert conversation.unread_count == 0
            assert store.unread_total == 0

    asyncio.run(scenario())
    assert _unread_for(conversation_id, bob.id) == 1


def test_send_message_with_image_uploads_first(profile_factory):
    alice = profile_factory("alice")
    bob = profile_factory("bob")
    conversation_id = _conversation_between(alice.id, bob.id)

    class UploadingBackend(ServiceChatBackend):
        uploads: list[tuple[UUID, str, bytes, str]] = []

        async def upload_chat_image(self, conversation_id, filename, data, *, content_type):
            self.uploads.append((conversation_id, filename, data, content_type))
            return f"https://cdn.example.test/chat-media/{conversation_id}/{filename}"

    async def scenario() -> None:
        backend = UploadingBackend(alice.id, feed=ChangeFeed())
        async with _store(alice.id, ChangeFeed(), backend=backend) as store:
            await store.select_conversation(conversation_id)
            photo = ImageAttachment(filename="praia.png", data=b"\x89PNG", content_type="image/png")

            captioned = await store.send_message("olha isso", image=photo)
            image_only = await store.send_message("   ", image=photo)

            assert captioned is not None and image_only is not None
            expected_url = f"https://cdn.example.test/chat-media/{conversation_id}/praia.png"
            assert [(message.content, message.image_url) for message in store.messages] == [
                ("olha isso", expected_url),
                ("", expected_url),
            ]
            assert backend.uploads == [(conversation_id, "praia.png", b"\x89PNG", "image/png")] * 2

            assert await store.delete_message(captioned.id) is True
            assert store.get_message(captioned.id).image_url is None

    asyncio.run(scenario())


def test_failed_image_upload_sends_nothing(profile_factory):
    alice = profile_factory("alice")
    bob = profile_factory("bob")
    conversation_id = _conversation_between(alice.id, bob.id)

    class OfflineStorageBackend(ServiceChatBackend):
        inserts = 0

        async def upload_chat_image(self, conversation_id, filename, data, *, content_type):
            raise BackendError("storage offline", status_code=503)

        async def insert_message(self, conversation_id, content, *, image_url=None, message_id=None):
            self.inserts += 1
            return await super().insert_message(
                conversation_id, content, image_url=image_url, message_id=message_id
            )

    async def scenario() -> None:
        backend = OfflineStorageBackend(alice.id, feed=ChangeFeed())
        async with _store(alice.id, ChangeFeed(), backend=backend) as store:
            await store.select_conversation(conversation_id)
            photo = ImageAttachment(filename="praia.png", data=b"\x89PNG", content_type="image/png")
            assert await store.send_message("legenda", image=photo) is None
            assert store.messages == []
            assert backend.inserts == 0
            assert store.notices[-1].key == "chat.message.upload_failed"

    asyncio.run(scenario())


def test_image_upload_rejects_non_images_and_outsiders(profile_factory):
    alice = profile_factory("alice")
    bob = profile_factory("bob")
    carol = profile_factory("carol")
    conversation_id = _conversation_between(alice.id, bob.id)

    async def scenario() -> None:
        backend = ServiceChatBackend(alice.id, feed=ChangeFeed())
        with pytest.raises(BackendError) as not_image:
            await backend.upload_chat_image(conversation_id, "notas.txt", b"texto", content_type="text/plain")
        assert not_image.value.status_code == 415

        outsider = ServiceChatBackend(carol.id, feed=ChangeFeed())
        with pytest.raises(BackendError) as forbidden:
            await outsider.upload_chat_image(conversation_id, "a.png", b"img", content_type="image/png")
        assert forbidden.value.status_code == 403

    asyncio.run(scenario())


def test_image_upload_stores_under_conversation_folder(profile_factory, monkeypatch):
    alice = profile_factory("alice")
    bob = profile_factory("bob")
    conversation_id = _conversation_between(alice.id, bob.id)
    calls: list[tuple[str, str, bytes, str]] = []

    async def _fake_upload_bytes(bucket, path, data, *, content_type="application/octet-stream", client=None):
        calls.append((bucket, path, data, content_type))
        return StorageUploadResult(
            bucket=bucket, path=path, url=f"https://cdn.example.test/{bucket}/{path}", content_type=content_type
        )

    monkeypatch.setattr(storage_service, "upload_bytes", _fake_upload_bytes)

    async def scenario() -> str:
        backend = ServiceChatBackend(alice.id, feed=ChangeFeed())
        return await backend.upload_chat_image(conversation_id, "praia.PNG", b"\x89PNG", content_type="image/png")

    url = asyncio.run(scenario())
    [(bucket, path, data, content_type)] = calls
    assert bucket == "chat-media"
    assert path.startswith(f"{conversation_id}/{alice.id}/")
    assert path.endswith(".png")
    assert (data, content_type) == (b"\x89PNG", "image/png")
    assert url == f"https://cdn.example.test/chat-media/{path}"


def test_failed_send_removes_pending_message(profile_factory):
    alice = profile_factory("alice")
    bob = profile_factory("bob")
    conversation_id = _conversation_between(alice.id, bob.id)
    feed = ChangeFeed()

    class FailingSendBackend(ServiceChatBackend):
        observed: list[tuple[str, bool]] = []
        store: ChatStore | None = None

        async def insert_message(self, conversation_id, content, *, image_url=None, message_id=None):
            assert self.store is not None
            self.observed = [(message.content, message.pending) for message in self.store.messages]
            raise BackendError("insert failed")

    async def scenario() -> None:
        backend = FailingSendBackend(alice.id, feed=feed)
        store = _store(alice.id, feed, backend=backend)
        backend.store = store
        async with store:
            await store.select_conversation(conversation_id)
            assert await store.send_message("vai falhar") is None
            assert backend.observed == [("vai falhar", True)]
            assert store.messages == []
            assert store.notices[-1].key == "chat.message.send_failed"
            assert store.notices[-1].message == "Não foi possível enviar a mensagem"

    asyncio.run(scenario())


def test_push_into_active_conversation_is_read_immediately(profile_factory):
    alice = profile_factory("alice")
    bob = profile_factory("bob")
    conversation_id = _conversation_between(alice.id, bob.id)
    feed = ChangeFeed()

    async def scenario() -> None:
        async with _store(alice.id, feed) as store:
            await store.select_conversation(conversation_id)
            sent = await ServiceChatBackend(bob.id, feed=feed).insert_message(conversation_id, "chegou")
            assert [message.id for message in store.messages] == [sent.id]
            assert store.messages[0].sender is not None
            assert store.messages[0].sender.username == "bob"
            assert store.get_conversation(conversation_id).unread_count == 0
            assert store.unread_total == 0
            assert store.get_conversation(conversation_id).last_message.content == "chegou"

    asyncio.run(scenario())
    assert _unread_for(conversation_id, alice.id) == 0


def test_push_into_background_conversation_increments_unread(profile_factory):
    alice = profile_factory("alice")
    bob = profile_factory("bob")
    carol = profile_factory("carol")
    with_bob = _conversation_between(alice.id, bob.id)
    with_carol = _conversation_between(alice.id, carol.id)
    feed = ChangeFeed()

    async def scenario() -> None:
        async with _store(alice.id, feed) as store:
            await store.select_conversation(with_bob)
            await ServiceChatBackend(carol.id, feed=feed).insert_message(with_carol, "psst")
            background = store.get_conversation(with_carol)
            assert background.unread_count == 1
            assert store.unread_total == 1
            assert store.conversations[0].id == with_carol
            assert store.messages == []

            # Own messages sent from another device never count as unread.
            await ServiceChatBackend(alice.id, feed=feed).insert_message(with_carol, "respondi")
            assert background.unread_count == 1
            assert store.unread_total == 1

    asyncio.run(scenario())


def test_push_for_unknown_conversation_is_dropped(profile_factory):
    alice = profile_factory("alice")
    bob = profile_factory("bob")
    feed = ChangeFeed()

    async def scenario() -> None:
        async with _store(alice.id, feed) as store:
            assert store.conversations == []
            # Created after the list was loaded, so the store does not know it yet.
            conversation_id = await ServiceChatBackend(bob.id, feed=feed).get_or_create_direct_conversation(alice.id)
            await ServiceChatBackend(bob.id, feed=feed).insert_message(conversation_id, "oi")
            assert store.conversations == []
            assert store.unread_total == 0

            await store.refresh_conversations()
            assert store.unread_total == 1

    asyncio.run(scenario())


def test_update_push_patches_loaded_message(profile_factory):
    alice = profile_factory("alice")
    bob = profile_factory("bob")
    conversation_id = _conversation_between(alice.id, bob.id)
    message_id = _seed_message(conversation_id, bob.id, "rascunho")
    feed = ChangeFeed()

    async def scenario() -> None:
        async with _store(alice.id, feed) as store:
            await store.select_conversation(conversation_id)
            await ServiceChatBackend(bob.id, feed=feed).update_message_content(message_id, "final")
            message = store.get_message(message_id)
            assert message.content == "final"
            assert message.is_edited is True
            assert store.get_conversation(conversation_id).last_message.content == "final"

    asyncio.run(scenario())


def test_edit_is_sender_only(profile_factory):
    alice = profile_factory("alice")
    bob = profile_factory("bob")
    conversation_id = _conversation_between(alice.id, bob.id)
    theirs = _seed_message(conversation_id, bob.id, "do bob")
    mine = _seed_message(conversation_id, alice.id, "minha")

    async def scenario() -> None:
        async with _store(alice.id, ChangeFeed()) as store:
            await store.select_conversation(conversation_id)
            assert await store.edit_message(theirs, "hackeado") is False
            assert store.get_message(theirs).content == "do bob"
            assert store.notices[-1].key == "chat.message.edit_failed"

            assert await store.edit_message(mine, "  corrigida ") is True
            edited = store.get_message(mine)
            assert edited.content == "corrigida"
            assert edited.is_edited is True
            assert store.notices[-1].key == "chat.message.edited"
            assert store.notices[-1].level is NoticeLevel.SUCCESS

    asyncio.run(scenario())


def test_deleted_message_keeps_position_and_refuses_edits(profile_factory):
    alice = profile_factory("alice")
    bob = profile_factory("bob")
    conversation_id = _conversation_between(alice.id, bob.id)
    first = _seed_message(conversation_id, alice.id, "um")
    _seed_message(conversation_id, bob.id, "dois")

    class CountingBackend(ServiceChatBackend):
        edits = 0

        async def update_message_content(self, message_id, content):
            self.edits += 1
            return await super().update_message_content(message_id, content)

    async def scenario() -> None:
        feed = ChangeFeed()
        backend = CountingBackend(alice.id, feed=feed)
        async with _store(alice.id, feed, backend=backend) as store:
            await store.select_conversation(conversation_id)
            assert await store.delete_message(first) is True
            assert store.messages[0].id == first
            assert store.messages[0].is_deleted is True
            assert store.messages[0].content == DELETED_MESSAGE_PLACEHOLDER

            assert await store.edit_message(first, "ressuscitar") is False
            assert backend.edits == 0

    asyncio.run(scenario())
    with SessionLocal() as session:
        with pytest.raises(HTTPException) as excinfo:
            message_service.update_message_content(session, message_id=first, editor_id=alice.id, content="x")
        assert excinfo.value.status_code == 409


def test_like_counters_and_reconciliation(profile_factory):
    alice = profile_factory("alice")
    bob = profile_factory("bob")
    conversation_id = _conversation_between(alice.id, bob.id)
    message_id = _seed_message(conversation_id, bob.id, "curte aí")

    async def scenario() -> None:
        async with _store(alice.id, ChangeFeed()) as store:
            await store.select_conversation(conversation_id)
            message = store.get_message(message_id)

            await store.unlike_message(message_id)
            assert message.likes_count == 0
            assert message.is_liked_by_me is False

            await store.like_message(message_id)
            assert message.likes_count == 1
            assert message.is_liked_by_me is True
            assert message.likes_provisional is True

            await store.reconcile_likes()
            assert message.likes_count == 1
            assert message.likes_provisional is False

            await store.unlike_message(message_id)
            assert message.likes_count == 0
            await store.unlike_message(message_id)
            assert message.likes_count == 0

    asyncio.run(scenario())


def test_duplicate_like_is_silent(profile_factory):
    alice = profile_factory("alice")
    bob = profile_factory("bob")
    conversation_id = _conversation_between(alice.id, bob.id)
    message_id = _seed_message(conversation_id, bob.id, "já curtida")

    async def scenario() -> None:
        async with _store(alice.id, ChangeFeed()) as store:
            await store.select_conversation(conversation_id)
            # Liked from another device after the view was loaded.
            with SessionLocal() as session:
                message_service.like_message(session, message_id=message_id, user_id=alice.id)
            notices_before = len(store.notices)

            await store.like_message(message_id)
            message = store.get_message(message_id)
            assert message.is_liked_by_me is True
            assert message.likes_count == 1
            assert len(store.notices) == notices_before

            await store.reconcile_likes()
            assert message.likes_count == 1
            assert message.likes_provisional is False

    asyncio.run(scenario())


def test_overlapping_likes_count_the_viewer_once(profile_factory):
    alice = profile_factory("alice")
    bob = profile_factory("bob")
    conversation_id = _conversation_between(alice.id, bob.id)
    message_id = _seed_message(conversation_id, bob.id, "toque duplo")

    class SlowFirstLike(ServiceChatBackend):
        def __init__(self, *args, **kwargs) -> None:
            super().__init__(*args, **kwargs)
            self.gate = asyncio.Event()
            self.committed = asyncio.Event()
            self.calls = 0

        async def insert_message_like(self, message_id):
            self.calls += 1
            first = self.calls == 1
            await super().insert_message_like(message_id)
            if first:
                self.committed.set()
                await self.gate.wait()

    async def scenario() -> None:
        backend = SlowFirstLike(alice.id, feed=ChangeFeed())
        async with _store(alice.id, ChangeFeed(), backend=backend) as store:
            await store.select_conversation(conversation_id)

            first = asyncio.create_task(store.like_message(message_id))
            await backend.committed.wait()
            await store.like_message(message_id)
            backend.gate.set()
            await first

            message = store.get_message(message_id)
            assert message.is_liked_by_me is True
            assert message.likes_count == 1
            assert backend.calls == 2
            assert not any(notice.level is NoticeLevel.ERROR for notice in store.notices)

    asyncio.run(scenario())


def test_reconcile_loop_survives_unexpected_errors(profile_factory):
    alice = profile_factory("alice")
    bob = profile_factory("bob")
    conversation_id = _conversation_between(alice.id, bob.id)
    _seed_message(conversation_id, bob.id, "curtidas")

    class BrokenOnceBackend(ServiceChatBackend):
        def __init__(self, *args, **kwargs) -> None:
            super().__init__(*args, **kwargs)
            self.calls = 0
            self.recovered = asyncio.Event()

        async def list_message_likes(self, message_ids):
            self.calls += 1
            if self.calls == 1:
                raise RuntimeError("decoder blew up")
            likes = await super().list_message_likes(message_ids)
            self.recovered.set()
            return likes

    async def scenario() -> None:
        backend = BrokenOnceBackend(alice.id, feed=ChangeFeed())
        store = ChatStore(backend, reconcile_interval=0.01)
        async with store:
            await store.select_conversation(conversation_id)
            await asyncio.wait_for(backend.recovered.wait(), timeout=5)
            assert backend.calls >= 2

    asyncio.run(scenario())


def test_stale_fetch_is_discarded(profile_factory):
    alice = profile_factory("alice")
    bob = profile_factory("bob")
    carol = profile_factory("carol")
    with_bob = _conversation_between(alice.id, bob.id)
    with_carol = _conversation_between(alice.id, carol.id)
    _seed_message(with_bob, bob.id, "lento")
    _seed_message(with_carol, carol.id, "rápido")

    class GatedBackend(ServiceChatBackend):
        def __init__(self, *args, gated: UUID, **kwargs) -> None:
            super().__init__(*args, **kwargs)
            self.gated = gated
            self.gate = asyncio.Event()
            self.waiting = asyncio.Event()

        async def list_messages(self, conversation_id):
            rows = await super().list_messages(conversation_id)
            if conversation_id == self.gated:
                self.waiting.set()
                await self.gate.wait()
            return rows

    async def scenario() -> None:
        backend = GatedBackend(alice.id, feed=ChangeFeed(), gated=with_bob)
        async with _store(alice.id, ChangeFeed(), backend=backend) as store:
            slow = asyncio.create_task(store.select_conversation(with_bob))
            await backend.waiting.wait()
            await store.select_conversation(with_carol)
            backend.gate.set()
            await slow

            assert store.active_conversation_id == with_carol
            assert [message.content for message in store.messages] == ["rápido"]

    asyncio.run(scenario())


def test_close_releases_subscription_and_state(profile_factory):
    alice = profile_factory("alice")
    bob = profile_factory("bob")
    conversation_id = _conversation_between(alice.id, bob.id)
    _seed_message(conversation_id, bob.id, "antes")
    feed = ChangeFeed()

    async def scenario() -> None:
        store = _store(alice.id, feed)
        await store.open()
        assert feed.subscription_count("messages") == 1
        await store.select_conversation(conversation_id)
        assert store.messages

        await store.close()
        assert feed.subscription_count("messages") == 0
        assert store.conversations == []
        assert store.messages == []
        assert store.unread_total == 0
        assert not store.is_open

        delivered = await ServiceChatBackend(bob.id, feed=feed).insert_message(conversation_id, "depois")
        assert delivered is not None
        assert store.messages == []

    asyncio.run(scenario())


def test_notices_follow_viewer_locale(profile_factory):
    alice = profile_factory("alice")

    async def scenario() -> None:
        store = ChatStore(ServiceChatBackend(alice.id, feed=ChangeFeed()), locale="en", reconcile_interval=0)
        async with store:
            await store.start_conversation(alice.id)
            assert store.notices[-1].message == "Could not start the conversation"

    asyncio.run(scenario())
