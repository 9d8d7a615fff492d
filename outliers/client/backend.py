"""Viewer-scoped asynchronous access to the data service.

``ChatBackend`` is the only surface the client core talks to. The in-process
implementation runs the service layer in the thread pool with a fresh
SQLAlchemy session per call and publishes row changes on the change feed, the
same way the HTTP routes do.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Iterable, Sequence, TypeVar
from uuid import UUID

from fastapi import HTTPException, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..constants import CHAT_MEDIA_BUCKET
from ..database import create_session
from ..schemas import ConversationResponse, MessageResponse
from ..services import conversation_service, message_service, notification_service, storage_service
from ..services.realtime import ChangeEvent, ChangeFeed, ChangeHandler, ChangeType, Subscription, change_feed

logger = logging.getLogger(__name__)

T = TypeVar("T")
SessionFactory = Callable[[], Session]


class BackendError(RuntimeError):
    """A data-service call failed; ``status_code`` follows HTTP semantics."""

    def __init__(self, detail: str, *, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


class DuplicateRecordError(BackendError):
    """A uniqueness constraint rejected the write."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail, status_code=status.HTTP_409_CONFLICT)


def _translate_http_error(exc: HTTPException) -> BackendError:
    detail = str(exc.detail)
    if exc.status_code == status.HTTP_409_CONFLICT:
        return DuplicateRecordError(detail)
    return BackendError(detail, status_code=exc.status_code)


async def run_service(session_factory: SessionFactory, work: Callable[[Session], T]) -> T:
    """Run ``work`` with a dedicated session in the thread pool, mapping failures to :class:`BackendError`."""

    def _run() -> T:
        db = session_factory()
        try:
            return work(db)
        finally:
            db.close()

    try:
        return await run_in_threadpool(_run)
    except HTTPException as exc:
        raise _translate_http_error(exc) from exc
    except SQLAlchemyError as exc:
        logger.exception("Data service call failed")
        raise BackendError("Data service unavailable") from exc


class ChatBackend(ABC):
    """Operations the chat core needs, already scoped to ``viewer_id``."""

    viewer_id: UUID

    @abstractmethod
    async def list_participant_conversation_ids(self) -> list[UUID]: ...

    @abstractmethod
    async def list_conversations(self, conversation_ids: Sequence[UUID]) -> list[ConversationResponse]: ...

    @abstractmethod
    async def get_last_message(self, conversation_id: UUID) -> MessageResponse | None: ...

    @abstractmethod
    async def count_unread(self, conversation_id: UUID) -> int: ...

    @abstractmethod
    async def find_direct_conversation(self, target_id: UUID) -> UUID | None: ...

    @abstractmethod
    async def get_or_create_direct_conversation(self, target_id: UUID) -> UUID: ...

    @abstractmethod
    async def list_messages(self, conversation_id: UUID) -> list[MessageResponse]: ...

    @abstractmethod
    async def insert_message(
        self,
        conversation_id: UUID,
        content: str,
        *,
        image_url: str | None = None,
        message_id: UUID | None = None,
    ) -> MessageResponse: ...

    @abstractmethod
    async def upload_chat_image(
        self, conversation_id: UUID, filename: str, data: bytes, *, content_type: str
    ) -> str:
        """Store an image for ``conversation_id`` and return its public URL."""

    @abstractmethod
    async def update_message_content(self, message_id: UUID, content: str) -> MessageResponse: ...

    @abstractmethod
    async def soft_delete_message(self, message_id: UUID) -> MessageResponse: ...

    @abstractmethod
    async def insert_message_like(self, message_id: UUID) -> None: ...

    @abstractmethod
    async def delete_message_like(self, message_id: UUID) -> None: ...

    @abstractmethod
    async def list_message_likes(self, message_ids: Sequence[UUID]) -> dict[UUID, set[UUID]]:
        """Map each message id to the profiles that like it."""

    @abstractmethod
    async def mark_message_read(self, message_id: UUID) -> bool: ...

    @abstractmethod
    async def subscribe(
        self,
        table: str,
        handler: ChangeHandler,
        *,
        events: Iterable[ChangeType] | None = None,
    ) -> Subscription: ...

    @abstractmethod
    async def count_unread_notifications(self) -> int: ...


class ServiceChatBackend(ChatBackend):
    """In-process backend over the service layer and the shared change feed."""

    def __init__(
        self,
        viewer_id: UUID,
        *,
        session_factory: SessionFactory = create_session,
        feed: ChangeFeed = change_feed,
    ) -> None:
        self.viewer_id = viewer_id
        self._session_factory = session_factory
        self._feed = feed

    async def _call(self, work: Callable[[Session], T]) -> T:
        return await run_service(self._session_factory, work)

    async def _publish(self, event: ChangeEvent) -> None:
        await self._feed.publish(event)

    async def list_participant_conversation_ids(self) -> list[UUID]:
        return await self._call(
            lambda db: conversation_service.list_participant_conversation_ids(db, user_id=self.viewer_id)
        )

    async def list_conversations(self, conversation_ids: Sequence[UUID]) -> list[ConversationResponse]:
        def _work(db: Session) -> list[ConversationResponse]:
            rows = conversation_service.list_conversations(
                db, conversation_ids=conversation_ids, viewer_id=self.viewer_id
            )
            return [conversation_service.serialize_conversation(row) for row in rows]

        return await self._call(_work)

    async def get_last_message(self, conversation_id: UUID) -> MessageResponse | None:
        def _work(db: Session) -> MessageResponse | None:
            row = message_service.get_last_message(db, conversation_id=conversation_id, viewer_id=self.viewer_id)
            return message_service.serialize_message(row, viewer_id=self.viewer_id) if row is not None else None

        return await self._call(_work)

    async def count_unread(self, conversation_id: UUID) -> int:
        return await self._call(
            lambda db: message_service.count_unread(db, conversation_id=conversation_id, viewer_id=self.viewer_id)
        )

    async def find_direct_conversation(self, target_id: UUID) -> UUID | None:
        return await self._call(
            lambda db: conversation_service.find_direct_conversation(db, user_id=self.viewer_id, target_id=target_id)
        )

    async def get_or_create_direct_conversation(self, target_id: UUID) -> UUID:
        def _work(db: Session) -> UUID:
            conversation, _ = conversation_service.get_or_create_direct_conversation(
                db, user_id=self.viewer_id, target_id=target_id
            )
            return conversation.id

        return await self._call(_work)

    async def list_messages(self, conversation_id: UUID) -> list[MessageResponse]:
        def _work(db: Session) -> list[MessageResponse]:
            rows = message_service.list_messages(db, conversation_id=conversation_id, viewer_id=self.viewer_id)
            return [message_service.serialize_message(row, viewer_id=self.viewer_id) for row in rows]

        return await self._call(_work)

    async def insert_message(
        self,
        conversation_id: UUID,
        content: str,
        *,
        image_url: str | None = None,
        message_id: UUID | None = None,
    ) -> MessageResponse:
        def _work(db: Session) -> tuple[MessageResponse, ChangeEvent]:
            row = message_service.insert_message(
                db,
                conversation_id=conversation_id,
                sender_id=self.viewer_id,
                content=content,
                image_url=image_url,
                message_id=message_id,
            )
            event = message_service.message_change_event(db, row, ChangeType.INSERT)
            return message_service.serialize_message(row, viewer_id=self.viewer_id), event

        response, event = await self._call(_work)
        await self._publish(event)
        return response

    async def upload_chat_image(
        self, conversation_id: UUID, filename: str, data: bytes, *, content_type: str
    ) -> str:
        await self._call(lambda db: message_service.require_participant(db, conversation_id, self.viewer_id))
        if not content_type.startswith("image/"):
            raise BackendError("Only images can be attached", status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE)
        if not data:
            raise BackendError("Image is empty", status_code=status.HTTP_400_BAD_REQUEST)
        path = storage_service.object_key(filename, f"{conversation_id}/{self.viewer_id}")
        try:
            result = await storage_service.upload_bytes(CHAT_MEDIA_BUCKET, path, data, content_type=content_type)
        except storage_service.StorageConfigurationError as exc:
            raise BackendError(str(exc), status_code=status.HTTP_503_SERVICE_UNAVAILABLE) from exc
        except storage_service.StorageUploadError as exc:
            raise BackendError(str(exc), status_code=status.HTTP_502_BAD_GATEWAY) from exc
        return result.url

    async def update_message_content(self, message_id: UUID, content: str) -> MessageResponse:
        def _work(db: Session) -> tuple[MessageResponse, ChangeEvent]:
            row = message_service.update_message_content(
                db, message_id=message_id, editor_id=self.viewer_id, content=content
            )
            event = message_service.message_change_event(db, row, ChangeType.UPDATE)
            return message_service.serialize_message(row, viewer_id=self.viewer_id), event

        response, event = await self._call(_work)
        await self._publish(event)
        return response

    async def soft_delete_message(self, message_id: UUID) -> MessageResponse:
        def _work(db: Session) -> tuple[MessageResponse, ChangeEvent]:
            row = message_service.soft_delete_message(db, message_id=message_id, requester_id=self.viewer_id)
            event = message_service.message_change_event(db, row, ChangeType.UPDATE)
            return message_service.serialize_message(row, viewer_id=self.viewer_id), event

        response, event = await self._call(_work)
        await self._publish(event)
        return response

    async def insert_message_like(self, message_id: UUID) -> None:
        def _work(db: Session) -> ChangeEvent:
            message_service.like_message(db, message_id=message_id, user_id=self.viewer_id)
            return message_service.message_like_change_event(
                db, message_id=message_id, user_id=self.viewer_id, type_=ChangeType.INSERT
            )

        await self._publish(await self._call(_work))

    async def delete_message_like(self, message_id: UUID) -> None:
        def _work(db: Session) -> ChangeEvent | None:
            if not message_service.unlike_message(db, message_id=message_id, user_id=self.viewer_id):
                return None
            return message_service.message_like_change_event(
                db, message_id=message_id, user_id=self.viewer_id, type_=ChangeType.DELETE
            )

        event = await self._call(_work)
        if event is not None:
            await self._publish(event)

    async def list_message_likes(self, message_ids: Sequence[UUID]) -> dict[UUID, set[UUID]]:
        def _work(db: Session) -> dict[UUID, set[UUID]]:
            likes: dict[UUID, set[UUID]] = {message_id: set() for message_id in message_ids}
            for like in message_service.list_message_likes(db, message_ids=message_ids, viewer_id=self.viewer_id):
                likes.setdefault(like.message_id, set()).add(like.user_id)
            return likes

        return await self._call(_work)

    async def mark_message_read(self, message_id: UUID) -> bool:
        return await self._call(
            lambda db: message_service.mark_message_read(db, message_id=message_id, user_id=self.viewer_id)
        )

    async def subscribe(
        self,
        table: str,
        handler: ChangeHandler,
        *,
        events: Iterable[ChangeType] | None = None,
    ) -> Subscription:
        return await self._feed.subscribe(table, handler, events=events, viewer_id=self.viewer_id)

    async def count_unread_notifications(self) -> int:
        return await self._call(lambda db: notification_service.count_unread_notifications(db, self.viewer_id))


__all__ = [
    "BackendError",
    "ChatBackend",
    "DuplicateRecordError",
    "ServiceChatBackend",
    "SessionFactory",
    "run_service",
]
