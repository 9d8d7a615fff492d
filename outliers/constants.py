"""Project-wide constant values."""
from __future__ import annotations

DELETED_MESSAGE_PLACEHOLDER = "Esta mensagem foi apagada"

MAX_MESSAGE_LENGTH = 4000

CHAT_MEDIA_BUCKET = "chat-media"

__all__ = ["CHAT_MEDIA_BUCKET", "DELETED_MESSAGE_PLACEHOLDER", "MAX_MESSAGE_LENGTH"]
