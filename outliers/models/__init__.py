"""Convenience exports for ORM models."""
from .article import Article, ArticleLike, Comment, CommentLike, SavedArticle
from .conversation import Conversation, ConversationParticipant
from .follow import Follower
from .group import Group, GroupJoinRequest, GroupMember, GroupMessage
from .message import Message, MessageLike, MessageRead
from .notification import Notification
from .profile import Profile

__all__ = [
    "Article",
    "ArticleLike",
    "Comment",
    "CommentLike",
    "SavedArticle",
    "Conversation",
    "ConversationParticipant",
    "Follower",
    "Group",
    "GroupJoinRequest",
    "GroupMember",
    "GroupMessage",
    "Message",
    "MessageLike",
    "MessageRead",
    "Notification",
    "Profile",
]
