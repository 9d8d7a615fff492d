"""Group management: membership, join requests and group messages."""
from __future__ import annotations

import logging
from enum import StrEnum
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..models import Article, Group, GroupJoinRequest, GroupMember, GroupMessage
from ..schemas import GroupCreate, GroupMessageCreate, GroupResponse, GroupUpdate
from .notification_service import NotificationType, notify_counterpart

logger = logging.getLogger(__name__)


class GroupRole(StrEnum):
    ADMIN = "admin"
    MEMBER = "member"


class JoinStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    JOINED = "joined"


def _get_group_or_404(db: Session, group_id: UUID) -> Group:
    group = db.get(Group, group_id)
    if group is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Group not found")
    return group


def _membership(db: Session, group_id: UUID, user_id: UUID) -> GroupMember | None:
    return db.get(GroupMember, (group_id, user_id))


def _require_member(db: Session, group_id: UUID, user_id: UUID) -> GroupMember:
    member = _membership(db, group_id, user_id)
    if member is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a member of this group")
    return member


def _require_admin(db: Session, group_id: UUID, user_id: UUID) -> GroupMember:
    member = _membership(db, group_id, user_id)
    if member is None or member.role != GroupRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Group admin privileges required")
    return member


def _commit(db: Session, detail: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception(detail)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail) from exc


def serialize_group(db: Session, group: Group, *, viewer_id: UUID | None = None) -> GroupResponse:
    members_count = db.scalar(select(func.count()).select_from(GroupMember).where(GroupMember.group_id == group.id))
    viewer_role = None
    if viewer_id is not None:
        member = _membership(db, group.id, viewer_id)
        viewer_role = member.role if member is not None else None
    return GroupResponse(
        id=group.id,
        name=group.name,
        description=group.description,
        avatar_url=group.avatar_url,
        owner_id=group.owner_id,
        is_private=group.is_private,
        created_at=group.created_at,
        updated_at=group.updated_at,
        members_count=int(members_count or 0),
        viewer_role=viewer_role,
    )


def create_group(db: Session, *, owner_id: UUID, payload: GroupCreate) -> Group:
    """Create a group and enrol its creator as the first admin."""

    name = payload.name.strip()
    if len(name) < 3:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Group name is too short")

    group = Group(
        name=name,
        description=(payload.description or "").strip() or None,
        avatar_url=payload.avatar_url,
        owner_id=owner_id,
        is_private=payload.is_private,
    )
    group.members = [GroupMember(user_id=owner_id, role=GroupRole.ADMIN.value)]
    db.add(group)
    _commit(db, "Failed to create group")
    db.refresh(group)
    logger.info("Group %s created by %s", group.id, owner_id)
    return group


def update_group(db: Session, *, group_id: UUID, editor_id: UUID, payload: GroupUpdate) -> Group:
    group = _get_group_or_404(db, group_id)
    _require_admin(db, group_id, editor_id)

    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No changes provided")
    for field, value in changes.items():
        if isinstance(value, str):
            value = value.strip() or None
        if field == "name" and not value:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Group name is required")
        setattr(group, field, value)

    _commit(db, "Failed to update group")
    db.refresh(group)
    return group


def get_group(db: Session, *, group_id: UUID) -> Group:
    return _get_group_or_404(db, group_id)


def list_groups(db: Session, *, member_id: UUID | None = None, limit: int = 50) -> list[Group]:
    """Newest groups first; restricted to the groups of ``member_id`` when given."""

    stmt = select(Group).order_by(Group.created_at.desc()).limit(limit)
    if member_id is not None:
        stmt = stmt.join(GroupMember, GroupMember.group_id == Group.id).where(GroupMember.user_id == member_id)
    return list(db.scalars(stmt))


def list_members(db: Session, *, group_id: UUID) -> list[GroupMember]:
    _get_group_or_404(db, group_id)
    stmt = (
        select(GroupMember)
        .where(GroupMember.group_id == group_id)
        .options(selectinload(GroupMember.profile))
        .order_by(GroupMember.joined_at.asc())
    )
    return list(db.scalars(stmt))


def join_group(db: Session, *, group_id: UUID, user_id: UUID) -> JoinStatus:
    """Join a public group directly, or file a pending request for a private one."""

    group = _get_group_or_404(db, group_id)
    if _membership(db, group_id, user_id) is not None:
        return JoinStatus.JOINED

    if not group.is_private:
        db.add(GroupMember(group_id=group_id, user_id=user_id, role=GroupRole.MEMBER.value))
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
        return JoinStatus.JOINED

    request = db.scalar(
        select(GroupJoinRequest).where(GroupJoinRequest.group_id == group_id, GroupJoinRequest.user_id == user_id)
    )
    if request is not None and request.status == JoinStatus.PENDING:
        return JoinStatus.PENDING
    if request is None:
        request = GroupJoinRequest(group_id=group_id, user_id=user_id)
        db.add(request)
    request.status = JoinStatus.PENDING.value
    _commit(db, "Failed to request group membership")

    notify_counterpart(
        db,
        user_id=group.owner_id,
        actor_id=user_id,
        type_=NotificationType.GROUP_JOIN_REQUEST,
        group_id=group_id,
    )
    return JoinStatus.PENDING


def list_join_requests(db: Session, *, group_id: UUID, admin_id: UUID) -> list[GroupJoinRequest]:
    _get_group_or_404(db, group_id)
    _require_admin(db, group_id, admin_id)
    stmt = (
        select(GroupJoinRequest)
        .where(GroupJoinRequest.group_id == group_id, GroupJoinRequest.status == JoinStatus.PENDING.value)
        .options(selectinload(GroupJoinRequest.profile))
        .order_by(GroupJoinRequest.created_at.asc())
    )
    return list(db.scalars(stmt))


def decide_join_request(db: Session, *, request_id: UUID, admin_id: UUID, approve: bool) -> GroupJoinRequest:
    """Approve or reject a pending request and notify the requester."""

    request = db.get(GroupJoinRequest, request_id)
    if request is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Join request not found")
    _require_admin(db, request.group_id, admin_id)
    if request.status != JoinStatus.PENDING:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Join request already decided")

    request.status = (JoinStatus.APPROVED if approve else JoinStatus.REJECTED).value
    if approve and _membership(db, request.group_id, request.user_id) is None:
        db.add(GroupMember(group_id=request.group_id, user_id=request.user_id, role=GroupRole.MEMBER.value))
    _commit(db, "Failed to decide join request")
    db.refresh(request)

    notify_counterpart(
        db,
        user_id=request.user_id,
        actor_id=admin_id,
        type_=NotificationType.GROUP_JOIN_APPROVED if approve else NotificationType.GROUP_JOIN_REJECTED,
        group_id=request.group_id,
    )
    return request


def _remaining_admins(db: Session, group_id: UUID, excluding: UUID) -> int:
    stmt = (
        select(func.count())
        .select_from(GroupMember)
        .where(
            GroupMember.group_id == group_id,
            GroupMember.role == GroupRole.ADMIN.value,
            GroupMember.user_id != excluding,
        )
    )
    return int(db.scalar(stmt) or 0)


def leave_group(db: Session, *, group_id: UUID, user_id: UUID) -> None:
    _get_group_or_404(db, group_id)
    member = _require_member(db, group_id, user_id)
    if member.role == GroupRole.ADMIN and _remaining_admins(db, group_id, user_id) == 0:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="The last admin cannot leave the group")
    db.delete(member)
    _commit(db, "Failed to leave group")


def remove_member(db: Session, *, group_id: UUID, admin_id: UUID, user_id: UUID) -> None:
    _get_group_or_404(db, group_id)
    _require_admin(db, group_id, admin_id)
    if admin_id == user_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Use leave to exit the group")
    member = _membership(db, group_id, user_id)
    if member is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")
    db.delete(member)
    _commit(db, "Failed to remove member")


def post_group_message(db: Session, *, group_id: UUID, sender_id: UUID, payload: GroupMessageCreate) -> GroupMessage:
    _get_group_or_404(db, group_id)
    _require_member(db, group_id, sender_id)
    if payload.shared_article_id is not None and db.get(Article, payload.shared_article_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shared article not found")

    message = GroupMessage(
        group_id=group_id,
        sender_id=sender_id,
        content=(payload.content or "").strip() or None,
        image_url=payload.image_url,
        video_url=payload.video_url,
        shared_article_id=payload.shared_article_id,
    )
    db.add(message)
    _commit(db, "Failed to send group message")
    db.refresh(message)
    return message


def list_group_messages(db: Session, *, group_id: UUID, viewer_id: UUID, limit: int = 100) -> list[GroupMessage]:
    """Latest ``limit`` messages of the group in ascending time order."""

    _get_group_or_404(db, group_id)
    _require_member(db, group_id, viewer_id)
    stmt = (
        select(GroupMessage)
        .where(GroupMessage.group_id == group_id)
        .options(selectinload(GroupMessage.sender))
        .order_by(GroupMessage.created_at.desc())
        .limit(limit)
    )
    return list(reversed(list(db.scalars(stmt))))


def require_group_member(db: Session, *, group_id: UUID, user_id: UUID) -> None:
    _get_group_or_404(db, group_id)
    _require_member(db, group_id, user_id)


__all__ = [
    "GroupRole",
    "JoinStatus",
    "serialize_group",
    "create_group",
    "update_group",
    "get_group",
    "list_groups",
    "list_members",
    "join_group",
    "list_join_requests",
    "decide_join_request",
    "leave_group",
    "remove_member",
    "post_group_message",
    "list_group_messages",
    "require_group_member",
]
