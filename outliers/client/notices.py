"""User-facing notices emitted by the client core."""
from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Callable

from ..services.i18n_service import translate


class NoticeLevel(StrEnum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Notice:
    key: str
    level: NoticeLevel
    message: str


NoticeSink = Callable[[Notice], None]


def build_notice(key: str, level: NoticeLevel, locale: str) -> Notice:
    return Notice(key=key, level=level, message=translate(locale, key))


__all__ = ["Notice", "NoticeLevel", "NoticeSink", "build_notice"]
