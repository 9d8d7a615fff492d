"""Client core: conversation sync, session ownership and notification polling."""
from .backend import BackendError, ChatBackend, DuplicateRecordError, ServiceChatBackend
from .chat_store import ChatStore
from .notices import Notice, NoticeLevel
from .notification_badge import NotificationBadge
from .session import ClientSession
from .state import ConversationState, ImageAttachment, MessageState

__all__ = [
    "BackendError",
    "ChatBackend",
    "ChatStore",
    "ClientSession",
    "ConversationState",
    "DuplicateRecordError",
    "ImageAttachment",
    "MessageState",
    "Notice",
    "NoticeLevel",
    "NotificationBadge",
    "ServiceChatBackend",
]
