"""Conversation synchronization for a signed-in viewer.

The store keeps the viewer's conversation list, the messages of the active
conversation and the unread counters in step with the data service. It is
driven from two sides: explicit operations (fetch, send, edit, ...) and pushes
from the change feed. Every fetch carries a scope token so results that
arrive after the active conversation changed, or after the store closed, are
dropped instead of overwriting newer state.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Mapping
from uuid import UUID

from ..config import get_settings
from ..schemas import ProfileSummary
from ..services.i18n_service import select_locale
from ..services.realtime import ChangeEvent, ChangeType, Subscription
from .backend import BackendError, ChatBackend, DuplicateRecordError
from .notices import Notice, NoticeLevel, NoticeSink, build_notice
from .state import ConversationState, ImageAttachment, MessageState

logger = logging.getLogger(__name__)

MESSAGES_TABLE = "messages"


class ChatStore:
    """Local conversation state for one viewer, owned by a :class:`~outliers.client.session.ClientSession`."""

    def __init__(
        self,
        backend: ChatBackend,
        *,
        locale: str | None = None,
        notice_sink: NoticeSink | None = None,
        reconcile_interval: float | None = None,
    ) -> None:
        settings = get_settings()
        self._backend = backend
        self.viewer_id: UUID = backend.viewer_id
        self.locale = select_locale(locale, [settings.default_locale])
        self._notice_sink = notice_sink
        self._reconcile_interval = (
            settings.chat_likes_reconcile_seconds if reconcile_interval is None else reconcile_interval
        )

        self.conversations: list[ConversationState] = []
        self.messages: list[MessageState] = []
        self.active_conversation_id: UUID | None = None
        self.unread_total = 0
        self.loading = False
        self.notices: deque[Notice] = deque(maxlen=50)

        self._message_scope = 0
        self._list_scope = 0
        self._subscription: Subscription | None = None
        self._reconcile_task: asyncio.Task[None] | None = None
        self._reconcile_stop = asyncio.Event()
        self._opened = False
        self._closed = False

    # Lifecycle

    @property
    def is_open(self) -> bool:
        return self._opened and not self._closed

    async def open(self) -> None:
        """Subscribe to message changes, start like reconciliation and load conversations."""

        if self._opened:
            return
        self._opened = True
        self._closed = False
        try:
            self._subscription = await self._backend.subscribe(
                MESSAGES_TABLE,
                self.apply_change,
                events=(ChangeType.INSERT, ChangeType.UPDATE),
            )
        except BackendError:
            logger.warning("Realtime subscription for %s failed; continuing without pushes", self.viewer_id)

        if self._reconcile_interval > 0:
            self._reconcile_stop.clear()
            self._reconcile_task = asyncio.create_task(self._reconcile_loop())

        await self.refresh_conversations()

    async def close(self) -> None:
        """Release the subscription, stop background work and discard all local state."""

        if self._closed:
            return
        self._closed = True
        self._message_scope += 1
        self._list_scope += 1

        self._reconcile_stop.set()
        task, self._reconcile_task = self._reconcile_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.release()

        self.conversations = []
        self.messages = []
        self.active_conversation_id = None
        self.unread_total = 0
        self.loading = False
        logger.debug("Chat store for %s closed", self.viewer_id)

    async def __aenter__(self) -> "ChatStore":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # Lookups

    def get_conversation(self, conversation_id: UUID) -> ConversationState | None:
        for conversation in self.conversations:
            if conversation.id == conversation_id:
                return conversation
        return None

    def get_message(self, message_id: UUID) -> MessageState | None:
        for message in self.messages:
            if message.id == message_id:
                return message
        return None

    def _message_index(self, message_id: UUID) -> int | None:
        for index, message in enumerate(self.messages):
            if message.id == message_id:
                return index
        return None

    # Notices

    def _notify(self, key: str, level: NoticeLevel = NoticeLevel.ERROR) -> None:
        notice = build_notice(key, level, self.locale)
        self.notices.append(notice)
        if self._notice_sink is not None:
            self._notice_sink(notice)

    # Conversation list

    async def refresh_conversations(self) -> None:
        """Reload the conversation list with last message and unread count per conversation."""

        if self._closed:
            return
        self._list_scope += 1
        scope = self._list_scope
        self.loading = True
        try:
            conversation_ids = await self._backend.list_participant_conversation_ids()
            rows = await self._backend.list_conversations(conversation_ids)
            loaded: list[ConversationState] = []
            for row in rows:
                last_message = await self._backend.get_last_message(row.id)
                unread = await self._backend.count_unread(row.id)
                loaded.append(ConversationState.from_response(row, last_message=last_message, unread_count=unread))
        except BackendError as exc:
            logger.warning("Loading conversations for %s failed: %s", self.viewer_id, exc.detail)
            if scope == self._list_scope and not self._closed:
                self._notify("chat.conversations.load_failed")
            return
        finally:
            if scope == self._list_scope:
                self.loading = False

        if scope != self._list_scope or self._closed:
            logger.debug("Discarding stale conversation list for %s", self.viewer_id)
            return

        if self.active_conversation_id is not None:
            for conversation in loaded:
                if conversation.id == self.active_conversation_id:
                    conversation.unread_count = 0
        loaded.sort(key=lambda item: item.updated_at, reverse=True)
        self.conversations = loaded
        self.unread_total = sum(conversation.unread_count for conversation in loaded)

    def _sort_conversations(self) -> None:
        self.conversations.sort(key=lambda item: item.updated_at, reverse=True)

    def _touch_conversation(self, conversation: ConversationState, message: MessageState) -> None:
        conversation.last_message = message
        if message.created_at > conversation.updated_at:
            conversation.updated_at = message.created_at
        self._sort_conversations()

    # Active conversation

    async def select_conversation(self, conversation_id: UUID | None) -> None:
        """Make ``conversation_id`` active and load its messages; ``None`` clears the view."""

        self._message_scope += 1
        self.active_conversation_id = conversation_id
        self.messages = []
        if conversation_id is None:
            return
        await self.fetch_messages(conversation_id)

    async def fetch_messages(self, conversation_id: UUID) -> None:
        """Load messages of the active conversation, then mark the ones from others as read."""

        if self._closed:
            return
        scope = self._message_scope
        try:
            rows = await self._backend.list_messages(conversation_id)
        except BackendError as exc:
            logger.warning("Loading messages of %s failed: %s", conversation_id, exc.detail)
            if self._is_current(scope, conversation_id):
                self._notify("chat.messages.load_failed")
            return

        if not self._is_current(scope, conversation_id):
            logger.debug("Discarding stale messages of %s", conversation_id)
            return

        loaded = [MessageState.from_response(row) for row in rows]
        loaded_ids = {message.id for message in loaded}
        pending = [
            message
            for message in self.messages
            if message.pending and message.conversation_id == conversation_id and message.id not in loaded_ids
        ]
        self.messages = loaded + pending

        for message in loaded:
            if message.sender_id != self.viewer_id:
                await self.mark_as_read(message.id)

        conversation = self.get_conversation(conversation_id)
        if conversation is not None:
            conversation.unread_count = 0
        self.unread_total = sum(
            item.unread_count for item in self.conversations if item.id != conversation_id
        )

    def _is_current(self, scope: int, conversation_id: UUID) -> bool:
        return not self._closed and scope == self._message_scope and self.active_conversation_id == conversation_id

    async def start_conversation(self, target_id: UUID) -> UUID | None:
        """Open the direct conversation with ``target_id``, creating it when missing."""

        try:
            conversation_id = await self._backend.find_direct_conversation(target_id)
            if conversation_id is None:
                conversation_id = await self._backend.get_or_create_direct_conversation(target_id)
        except BackendError as exc:
            logger.warning("Starting a conversation with %s failed: %s", target_id, exc.detail)
            self._notify("chat.conversation.start_failed")
            return None

        if self._closed:
            return None
        await self.refresh_conversations()
        await self.select_conversation(conversation_id)
        return conversation_id

    # Messages

    def _viewer_profile(self, conversation_id: UUID) -> ProfileSummary | None:
        conversation = self.get_conversation(conversation_id)
        return conversation.profile_of(self.viewer_id) if conversation is not None else None

    async def send_message(self, content: str, *, image: ImageAttachment | None = None) -> MessageState | None:
        """Append an optimistic message and confirm it with the data service.

        An attached image is uploaded first; the message is only sent once its URL is known.
        """

        text = (content or "").strip()
        conversation_id = self.active_conversation_id
        if (not text and image is None) or conversation_id is None or self._closed:
            return None

        image_url: str | None = None
        if image is not None:
            try:
                image_url = await self._backend.upload_chat_image(
                    conversation_id, image.filename, image.data, content_type=image.content_type
                )
            except BackendError as exc:
                logger.warning("Uploading an image to %s failed: %s", conversation_id, exc.detail)
                self._notify("chat.message.upload_failed")
                return None
            if self._closed:
                return None

        now = datetime.now(timezone.utc)
        optimistic = MessageState(
            id=uuid.uuid4(),
            conversation_id=conversation_id,
            sender_id=self.viewer_id,
            content=text,
            created_at=now,
            updated_at=now,
            image_url=image_url,
            sender=self._viewer_profile(conversation_id),
            pending=True,
        )
        if self.active_conversation_id == conversation_id:
            self.messages.append(optimistic)

        try:
            row = await self._backend.insert_message(
                conversation_id, text, image_url=image_url, message_id=optimistic.id
            )
        except BackendError as exc:
            logger.warning("Sending a message to %s failed: %s", conversation_id, exc.detail)
            index = self._message_index(optimistic.id)
            if index is not None and self.messages[index].pending:
                del self.messages[index]
            self._notify("chat.message.send_failed")
            return None

        confirmed = MessageState.from_response(row)
        if confirmed.sender is None:
            confirmed.sender = optimistic.sender
        index = self._message_index(confirmed.id)
        if index is not None:
            self.messages[index] = confirmed
        conversation = self.get_conversation(conversation_id)
        if conversation is not None:
            self._touch_conversation(conversation, confirmed)
        return confirmed

    async def edit_message(self, message_id: UUID, content: str) -> bool:
        text = (content or "").strip()
        if not text:
            return False
        local = self.get_message(message_id)
        if local is not None and (local.is_deleted or local.pending):
            self._notify("chat.message.edit_failed")
            return False

        try:
            row = await self._backend.update_message_content(message_id, text)
        except BackendError as exc:
            logger.warning("Editing message %s failed: %s", message_id, exc.detail)
            self._notify("chat.message.edit_failed")
            return False

        self._patch_message(message_id, content=row.content, is_edited=True, updated_at=row.updated_at)
        self._notify("chat.message.edited", NoticeLevel.SUCCESS)
        return True

    async def delete_message(self, message_id: UUID) -> bool:
        """Soft-delete a message; it keeps its position with placeholder content."""

        local = self.get_message(message_id)
        if local is not None and local.pending:
            self._notify("chat.message.delete_failed")
            return False
        try:
            row = await self._backend.soft_delete_message(message_id)
        except BackendError as exc:
            logger.warning("Deleting message %s failed: %s", message_id, exc.detail)
            self._notify("chat.message.delete_failed")
            return False

        self._patch_message(
            message_id, content=row.content, image_url=row.image_url, is_deleted=True, updated_at=row.updated_at
        )
        self._notify("chat.message.deleted", NoticeLevel.SUCCESS)
        return True

    def _patch_message(self, message_id: UUID, **changes: Any) -> None:
        targets = [self.get_message(message_id)]
        for conversation in self.conversations:
            if conversation.last_message is not None and conversation.last_message.id == message_id:
                targets.append(conversation.last_message)
        for target in targets:
            if target is None:
                continue
            for field, value in changes.items():
                setattr(target, field, value)

    async def like_message(self, message_id: UUID) -> None:
        try:
            await self._backend.insert_message_like(message_id)
        except DuplicateRecordError:
            # The viewer's like row exists, so it counts at least once.
            local = self.get_message(message_id)
            if local is not None:
                if not local.is_liked_by_me:
                    local.likes_count += 1
                local.likes_count = max(local.likes_count, 1)
                local.is_liked_by_me = True
                local.likes_provisional = True
            return
        except BackendError as exc:
            logger.warning("Liking message %s failed: %s", message_id, exc.detail)
            self._notify("chat.message.like_failed")
            return

        local = self.get_message(message_id)
        if local is not None:
            if not local.is_liked_by_me:
                local.likes_count += 1
            local.likes_count = max(local.likes_count, 1)
            local.is_liked_by_me = True
            local.likes_provisional = True

    async def unlike_message(self, message_id: UUID) -> None:
        try:
            await self._backend.delete_message_like(message_id)
        except BackendError as exc:
            logger.warning("Unliking message %s failed: %s", message_id, exc.detail)
            self._notify("chat.message.unlike_failed")
            return

        local = self.get_message(message_id)
        if local is None:
            return
        if local.is_liked_by_me and local.likes_count > 0:
            local.likes_count -= 1
            local.likes_provisional = True
        local.is_liked_by_me = False

    async def mark_as_read(self, message_id: UUID) -> bool:
        try:
            return await self._backend.mark_message_read(message_id)
        except BackendError as exc:
            logger.warning("Marking message %s read failed: %s", message_id, exc.detail)
            return False

    async def reconcile_likes(self) -> None:
        """Re-derive like counters of loaded messages from the authoritative like sets."""

        targets = [message.id for message in self.messages if not message.pending]
        if not targets or self._closed:
            return
        scope = self._message_scope
        try:
            likes = await self._backend.list_message_likes(targets)
        except BackendError as exc:
            logger.warning("Reconciling likes failed: %s", exc.detail)
            return
        if scope != self._message_scope or self._closed:
            return

        for message in self.messages:
            if message.pending or message.id not in likes:
                continue
            users = likes[message.id]
            message.likes_count = len(users)
            message.is_liked_by_me = self.viewer_id in users
            message.likes_provisional = False

    async def _run_reconcile_once(self) -> None:
        if not self.messages:
            return
        try:
            await self.reconcile_likes()
        except Exception:
            logger.exception("Unexpected error while reconciling likes for %s", self.viewer_id)

    async def _reconcile_loop(self) -> None:
        while not self._reconcile_stop.is_set():
            try:
                await asyncio.wait_for(self._reconcile_stop.wait(), timeout=self._reconcile_interval)
            except asyncio.TimeoutError:
                await self._run_reconcile_once()

    # Realtime

    async def apply_change(self, event: ChangeEvent) -> None:
        """Patch local state from a change-feed event on ``messages``."""

        if self._closed or event.table != MESSAGES_TABLE or event.new is None:
            return
        if event.type == ChangeType.INSERT:
            await self._apply_insert(event.new)
        elif event.type == ChangeType.UPDATE:
            self._apply_update(event.new)

    async def _apply_insert(self, row: Mapping[str, Any]) -> None:
        incoming = MessageState.from_row(row)
        conversation = self.get_conversation(incoming.conversation_id)
        if conversation is None:
            logger.debug("Dropping push for unknown conversation %s", incoming.conversation_id)
            return

        already_seen = conversation.last_message is not None and conversation.last_message.id == incoming.id
        index = self._message_index(incoming.id)

        if incoming.conversation_id == self.active_conversation_id:
            if index is not None:
                incoming.sender = self.messages[index].sender
                incoming.likes_count = self.messages[index].likes_count
                incoming.is_liked_by_me = self.messages[index].is_liked_by_me
                self.messages[index] = incoming
            else:
                incoming.sender = conversation.profile_of(incoming.sender_id)
                self.messages.append(incoming)
            self._touch_conversation(conversation, incoming)
            if incoming.sender_id != self.viewer_id:
                await self.mark_as_read(incoming.id)
            return

        incoming.sender = conversation.profile_of(incoming.sender_id)
        self._touch_conversation(conversation, incoming)
        if incoming.sender_id != self.viewer_id and not already_seen:
            conversation.unread_count += 1
            self.unread_total += 1

    def _apply_update(self, row: Mapping[str, Any]) -> None:
        incoming = MessageState.from_row(row)
        self._patch_message(
            incoming.id,
            content=incoming.content,
            image_url=incoming.image_url,
            is_edited=incoming.is_edited,
            is_deleted=incoming.is_deleted,
            updated_at=incoming.updated_at,
        )


__all__ = ["ChatStore", "MESSAGES_TABLE"]
