"""In-process change feed that fans table events out to subscribers."""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Awaitable, Callable, Iterable, Mapping
from uuid import UUID

logger = logging.getLogger(__name__)


class ChangeType(StrEnum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """A single insert/update/delete on a named table."""

    table: str
    type: ChangeType
    new: Mapping[str, Any] | None = None
    old: Mapping[str, Any] | None = None
    # Profiles allowed to observe the row; ``None`` means every subscriber.
    audience: frozenset[UUID] | None = None
    commit_timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def record(self) -> Mapping[str, Any]:
        return self.new if self.new is not None else (self.old or {})

    def matches(self, filters: Mapping[str, Any]) -> bool:
        row = self.record
        return all(str(row.get(column)) == str(expected) for column, expected in filters.items())


ChangeHandler = Callable[[ChangeEvent], Awaitable[None]]


class Subscription:
    """Handle returned by :meth:`ChangeFeed.subscribe`; must be released explicitly."""

    def __init__(
        self,
        feed: "ChangeFeed",
        table: str,
        handler: ChangeHandler,
        *,
        events: Iterable[ChangeType | str] | None = None,
        filters: Mapping[str, Any] | None = None,
        viewer_id: UUID | None = None,
    ) -> None:
        self.id = uuid.uuid4().hex
        self.table = table
        self.events = frozenset(ChangeType(event) for event in events) if events else frozenset(ChangeType)
        self.filters = dict(filters or {})
        self.viewer_id = viewer_id
        self._handler = handler
        self._feed = feed
        self._released = False

    @property
    def active(self) -> bool:
        return not self._released

    def accepts(self, event: ChangeEvent) -> bool:
        if self._released or event.table != self.table or event.type not in self.events:
            return False
        if event.audience is not None and self.viewer_id not in event.audience:
            return False
        return event.matches(self.filters)

    async def deliver(self, event: ChangeEvent) -> None:
        await self._handler(event)

    async def release(self) -> None:
        await self._feed.unsubscribe(self)

    def _mark_released(self) -> None:
        self._released = True


class ChangeFeed:
    """Tracks subscriptions per table and delivers published events to them."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}
        self._lock = asyncio.Lock()

    async def subscribe(
        self,
        table: str,
        handler: ChangeHandler,
        *,
        events: Iterable[ChangeType | str] | None = None,
        filters: Mapping[str, Any] | None = None,
        viewer_id: UUID | None = None,
    ) -> Subscription:
        subscription = Subscription(self, table, handler, events=events, filters=filters, viewer_id=viewer_id)
        async with self._lock:
            self._subscriptions[subscription.id] = subscription
        logger.debug("Subscription %s registered on %s", subscription.id, table)
        return subscription

    async def unsubscribe(self, subscription: Subscription) -> None:
        async with self._lock:
            self._subscriptions.pop(subscription.id, None)
        subscription._mark_released()

    async def publish(self, event: ChangeEvent) -> int:
        """Deliver ``event`` to every matching subscription and return how many received it."""

        async with self._lock:
            targets = [sub for sub in self._subscriptions.values() if sub.accepts(event)]
        delivered = 0
        for subscription in targets:
            try:
                await subscription.deliver(event)
                delivered += 1
            except Exception:
                logger.exception("Change handler for subscription %s failed; releasing it", subscription.id)
                await self.unsubscribe(subscription)
        return delivered

    def subscription_count(self, table: str | None = None) -> int:
        return sum(1 for sub in self._subscriptions.values() if table is None or sub.table == table)


def row_payload(record: Any) -> dict[str, Any]:
    """Flatten an ORM row into a plain column mapping."""

    return {column.name: getattr(record, column.name) for column in record.__table__.columns}


change_feed = ChangeFeed()


__all__ = [
    "ChangeEvent",
    "ChangeFeed",
    "ChangeHandler",
    "ChangeType",
    "Subscription",
    "change_feed",
    "row_payload",
]
