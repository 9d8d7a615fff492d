"""Convenience exports for service layer."""
from .article_service import (
    create_article,
    create_comment,
    delete_article,
    delete_comment,
    get_article,
    list_articles,
    list_comments,
    list_saved_articles,
    search_articles,
    serialize_articles,
    serialize_comments,
    toggle_article_like,
    toggle_comment_like,
    toggle_saved_article,
    update_article,
)
from .auth_service import (
    authenticate_profile,
    create_access_token,
    decode_access_token,
    get_current_profile,
    get_optional_profile,
    register_profile,
)
from .conversation_service import (
    find_direct_conversation,
    get_or_create_direct_conversation,
    list_conversation_summaries,
    list_conversations,
    list_participant_conversation_ids,
    pair_key,
    serialize_conversation,
)
from .follow_service import FollowStats, get_follow_stats, list_followers, list_following, toggle_follow
from .group_service import (
    GroupRole,
    JoinStatus,
    create_group,
    decide_join_request,
    get_group,
    join_group,
    leave_group,
    list_group_messages,
    list_groups,
    list_join_requests,
    list_members,
    post_group_message,
    remove_member,
    require_group_member,
    serialize_group,
    update_group,
)
from .i18n_service import DEFAULT_LOCALE, SUPPORTED_LOCALES, select_locale, translate
from .message_service import (
    count_unread,
    get_last_message,
    insert_message,
    like_message,
    list_message_likes,
    list_messages,
    mark_message_read,
    mark_messages_read,
    message_audience,
    message_change_event,
    message_like_change_event,
    require_participant,
    serialize_message,
    soft_delete_message,
    unlike_message,
    update_message_content,
)
from .notification_service import (
    NotificationType,
    add_notification,
    count_unread_notifications,
    list_notifications,
    mark_all_read,
    mark_read,
    notify_counterpart,
)
from .profile_service import get_profile, get_profile_by_username, search_profiles, set_profile_image, update_profile
from .realtime import ChangeEvent, ChangeFeed, ChangeType, Subscription, change_feed, row_payload
from .storage_service import (
    StorageConfigurationError,
    StorageUploadError,
    StorageUploadResult,
    ensure_buckets,
    upload_bytes,
    upload_file,
)

__all__ = [
    "create_article",
    "create_comment",
    "delete_article",
    "delete_comment",
    "get_article",
    "list_articles",
    "list_comments",
    "list_saved_articles",
    "search_articles",
    "serialize_articles",
    "serialize_comments",
    "toggle_article_like",
    "toggle_comment_like",
    "toggle_saved_article",
    "update_article",
    "authenticate_profile",
    "create_access_token",
    "decode_access_token",
    "get_current_profile",
    "get_optional_profile",
    "register_profile",
    "find_direct_conversation",
    "get_or_create_direct_conversation",
    "list_conversation_summaries",
    "list_conversations",
    "list_participant_conversation_ids",
    "pair_key",
    "serialize_conversation",
    "FollowStats",
    "get_follow_stats",
    "list_followers",
    "list_following",
    "toggle_follow",
    "GroupRole",
    "JoinStatus",
    "create_group",
    "decide_join_request",
    "get_group",
    "join_group",
    "leave_group",
    "list_group_messages",
    "list_groups",
    "list_join_requests",
    "list_members",
    "post_group_message",
    "remove_member",
    "require_group_member",
    "serialize_group",
    "update_group",
    "DEFAULT_LOCALE",
    "SUPPORTED_LOCALES",
    "select_locale",
    "translate",
    "count_unread",
    "get_last_message",
    "insert_message",
    "like_message",
    "list_message_likes",
    "list_messages",
    "mark_message_read",
    "mark_messages_read",
    "message_audience",
    "message_change_event",
    "message_like_change_event",
    "require_participant",
    "serialize_message",
    "soft_delete_message",
    "unlike_message",
    "update_message_content",
    "NotificationType",
    "add_notification",
    "count_unread_notifications",
    "list_notifications",
    "mark_all_read",
    "mark_read",
    "notify_counterpart",
    "get_profile",
    "get_profile_by_username",
    "search_profiles",
    "set_profile_image",
    "update_profile",
    "ChangeEvent",
    "ChangeFeed",
    "ChangeType",
    "Subscription",
    "change_feed",
    "row_payload",
    "StorageConfigurationError",
    "StorageUploadError",
    "StorageUploadResult",
    "ensure_buckets",
    "upload_bytes",
    "upload_file",
]
