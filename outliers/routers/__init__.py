"""Aggregate router exports."""
from .articles import router as articles_router
from .auth import router as auth_router
from .comments import router as comments_router
from .conversations import router as conversations_router
from .groups import router as groups_router
from .messages import router as messages_router
from .notifications import router as notifications_router
from .profiles import router as profiles_router
from .realtime import router as realtime_router

__all__ = [
    "articles_router",
    "auth_router",
    "comments_router",
    "conversations_router",
    "groups_router",
    "messages_router",
    "notifications_router",
    "profiles_router",
    "realtime_router",
]
