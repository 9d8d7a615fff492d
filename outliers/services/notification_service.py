"""Notification records for likes, comments, follows and group membership."""
from __future__ import annotations

import logging
from enum import StrEnum
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..models import Notification

logger = logging.getLogger(__name__)


class NotificationType(StrEnum):
    LIKE = "like"
    COMMENT = "comment"
    FOLLOW = "follow"
    GROUP_JOIN_REQUEST = "group_join_request"
    GROUP_JOIN_APPROVED = "group_join_approved"
    GROUP_JOIN_REJECTED = "group_join_rejected"


def list_notifications(db: Session, user_id: UUID, *, limit: int = 50) -> list[Notification]:
    """Return notifications for the recipient ordered newest first."""

    stmt = (
        select(Notification)
        .where(Notification.user_id == user_id)
        .options(selectinload(Notification.actor))
        .order_by(Notification.created_at.desc())
        .limit(limit)
    )
    return list(db.scalars(stmt))


def count_unread_notifications(db: Session, user_id: UUID) -> int:
    stmt = (
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
    )
    return int(db.scalar(stmt) or 0)


def add_notification(
    db: Session,
    *,
    user_id: UUID,
    actor_id: UUID,
    type_: NotificationType | str,
    article_id: UUID | None = None,
    group_id: UUID | None = None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        actor_id=actor_id,
        type=str(type_),
        article_id=article_id,
        group_id=group_id,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def notify_counterpart(
    db: Session,
    *,
    user_id: UUID,
    actor_id: UUID,
    type_: NotificationType | str,
    article_id: UUID | None = None,
    group_id: UUID | None = None,
) -> Notification | None:
    """Notify ``user_id`` about an action by ``actor_id`` unless they are the same profile.

    Notification failures never undo the action that triggered them.
    """

    if user_id == actor_id:
        return None
    try:
        return add_notification(
            db,
            user_id=user_id,
            actor_id=actor_id,
            type_=type_,
            article_id=article_id,
            group_id=group_id,
        )
    except SQLAlchemyError:
        db.rollback()
        logger.warning("Failed to create %s notification for %s", type_, user_id)
        return None


def mark_read(db: Session, *, notification_id: UUID, user_id: UUID) -> Notification:
    notification = db.get(Notification, notification_id)
    if notification is None or notification.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    setattr(notification, "read", True)
    db.commit()
    db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: UUID) -> int:
    stmt = (
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
        .values(read=True)
    )
    result = db.execute(stmt)
    db.commit()
    return int(result.rowcount or 0)


__all__ = [
    "NotificationType",
    "list_notifications",
    "count_unread_notifications",
    "add_notification",
    "notify_counterpart",
    "mark_read",
    "mark_all_read",
]
