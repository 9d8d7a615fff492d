"""Unread-notification badge refreshed on a fixed interval."""
from __future__ import annotations

import asyncio
import logging
from typing import Callable

from ..config import get_settings
from .backend import BackendError, ChatBackend

logger = logging.getLogger(__name__)


class NotificationBadge:
    def __init__(
        self,
        backend: ChatBackend,
        *,
        interval: float | None = None,
        on_change: Callable[[int], None] | None = None,
    ) -> None:
        self._backend = backend
        self._interval = get_settings().notification_poll_seconds if interval is None else interval
        self._on_change = on_change
        self.unread_count = 0
        self._task: asyncio.Task[None] | None = None
        self._stop = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def refresh(self) -> int:
        """Poll the unread count once; on failure the last known value is kept."""

        try:
            count = await self._backend.count_unread_notifications()
        except BackendError as exc:
            logger.warning("Polling notifications for %s failed: %s", self._backend.viewer_id, exc.detail)
            return self.unread_count
        if count != self.unread_count:
            self.unread_count = count
            if self._on_change is not None:
                self._on_change(count)
        return count

    async def _poll_loop(self) -> None:
        while not self._stop.is_set():
            await self.refresh()
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                continue

    async def start(self) -> None:
        if self.running:
            return
        if self._interval <= 0:
            await self.refresh()
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._poll_loop())

    async def stop(self) -> None:
        self._stop.set()
        task, self._task = self._task, None
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.unread_count = 0


__all__ = ["NotificationBadge"]
