"""Convenience exports for schema layer."""
from .articles import (
    ArticleCreate,
    ArticleListResponse,
    ArticleResponse,
    ArticleUpdate,
    CommentCreate,
    CommentResponse,
    EngagementResponse,
)
from .auth import AuthResponse, LoginRequest, RegisterRequest
from .common import ProfileSummary, UtcDatetime
from .groups import (
    GroupCreate,
    GroupJoinResponse,
    GroupMemberResponse,
    GroupMessageCreate,
    GroupMessageResponse,
    GroupResponse,
    GroupUpdate,
    JoinRequestDecision,
    JoinRequestResponse,
)
from .messages import (
    ConversationResponse,
    ConversationStartRequest,
    ConversationStartResponse,
    MessageCreate,
    MessageLikeResponse,
    MessageLikeState,
    MessageResponse,
    MessageThreadResponse,
    MessageUpdate,
    ParticipantResponse,
    ReadReceiptResponse,
)
from .notifications import NotificationListResponse, NotificationResponse, NotificationSummaryResponse
from .profiles import ProfileResponse, ProfileUpdateRequest
from .storage import UploadResponse

__all__ = [
    "ArticleCreate",
    "ArticleListResponse",
    "ArticleResponse",
    "ArticleUpdate",
    "CommentCreate",
    "CommentResponse",
    "EngagementResponse",
    "AuthResponse",
    "LoginRequest",
    "RegisterRequest",
    "ProfileSummary",
    "UtcDatetime",
    "GroupCreate",
    "GroupJoinResponse",
    "GroupMemberResponse",
    "GroupMessageCreate",
    "GroupMessageResponse",
    "GroupResponse",
    "GroupUpdate",
    "JoinRequestDecision",
    "JoinRequestResponse",
    "ConversationResponse",
    "ConversationStartRequest",
    "ConversationStartResponse",
    "MessageCreate",
    "MessageLikeResponse",
    "MessageLikeState",
    "MessageResponse",
    "MessageThreadResponse",
    "MessageUpdate",
    "ParticipantResponse",
    "ReadReceiptResponse",
    "NotificationListResponse",
    "NotificationResponse",
    "NotificationSummaryResponse",
    "ProfileResponse",
    "ProfileUpdateRequest",
    "UploadResponse",
]
