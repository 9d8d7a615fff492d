"""Business logic for articles, comments and article engagement."""
from __future__ import annotations

from typing import Sequence, cast
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..database import contains_pattern
from ..models import Article, ArticleLike, Comment, CommentLike, SavedArticle
from ..schemas import (
    ArticleCreate,
    ArticleResponse,
    ArticleUpdate,
    CommentResponse,
    EngagementResponse,
    ProfileSummary,
)
from .notification_service import NotificationType, notify_counterpart


def _get_article_or_404(db: Session, article_id: UUID) -> Article:
    article = db.get(Article, article_id)
    if article is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Article not found")
    return article


def _get_comment_or_404(db: Session, comment_id: UUID) -> Comment:
    comment = db.get(Comment, comment_id)
    if comment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
    return comment


def _count_by(db: Session, column, ids: Sequence[UUID]) -> dict[UUID, int]:
    if not ids:
        return {}
    stmt = select(column, func.count()).where(column.in_(list(ids))).group_by(column)
    return {key: int(count) for key, count in db.execute(stmt).all()}


def _viewer_set(db: Session, column, user_column, ids: Sequence[UUID], viewer_id: UUID | None) -> set[UUID]:
    if viewer_id is None or not ids:
        return set()
    stmt = select(column).where(column.in_(list(ids)), user_column == viewer_id)
    return set(db.scalars(stmt))


def serialize_articles(db: Session, articles: Sequence[Article], *, viewer_id: UUID | None) -> list[ArticleResponse]:
    """Attach like/comment counts and viewer flags to ``articles``."""

    ids = [cast(UUID, article.id) for article in articles]
    likes = _count_by(db, ArticleLike.article_id, ids)
    comments = _count_by(db, Comment.article_id, ids)
    liked = _viewer_set(db, ArticleLike.article_id, ArticleLike.user_id, ids, viewer_id)
    saved = _viewer_set(db, SavedArticle.article_id, SavedArticle.user_id, ids, viewer_id)

    return [
        ArticleResponse(
            id=article.id,
            author_id=article.author_id,
            title=article.title,
            content=article.content,
            image_url=article.image_url,
            published=bool(article.published),
            created_at=article.created_at,
            updated_at=article.updated_at,
            author=ProfileSummary.model_validate(article.author) if article.author is not None else None,
            likes_count=likes.get(article.id, 0),
            comments_count=comments.get(article.id, 0),
            is_liked=article.id in liked,
            is_saved=article.id in saved,
        )
        for article in articles
    ]


def create_article(db: Session, *, author_id: UUID, payload: ArticleCreate) -> Article:
    title = payload.title.strip()
    content = payload.content.strip()
    if not title or not content:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Title and content are required")

    article = Article(
        author_id=author_id,
        title=title,
        content=content,
        image_url=(payload.image_url or None),
        published=payload.published,
    )
    try:
        db.add(article)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create article") from exc
    db.refresh(article)
    return article


def get_article(db: Session, *, article_id: UUID, viewer_id: UUID | None) -> ArticleResponse:
    article = _get_article_or_404(db, article_id)
    if not article.published and article.author_id != viewer_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Article not found")
    return serialize_articles(db, [article], viewer_id=viewer_id)[0]


def update_article(db: Session, *, article_id: UUID, requester_id: UUID, payload: ArticleUpdate) -> Article:
    article = _get_article_or_404(db, article_id)
    if article.author_id != requester_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to edit this article")

    changes = payload.model_dump(exclude_unset=True)
    changed = False
    for field in ("title", "content"):
        value = changes.get(field)
        if value is None:
            continue
        text = value.strip()
        if not text:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"{field.title()} cannot be empty")
        if text != getattr(article, field):
            setattr(article, field, text)
            changed = True
    if "image_url" in changes and (changes["image_url"] or None) != article.image_url:
        setattr(article, "image_url", changes["image_url"] or None)
        changed = True
    if changes.get("published") is not None and changes["published"] != article.published:
        setattr(article, "published", changes["published"])
        changed = True

    if not changed:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No changes detected")

    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update article") from exc
    db.refresh(article)
    return article


def delete_article(db: Session, *, article_id: UUID, requester_id: UUID) -> None:
    article = _get_article_or_404(db, article_id)
    if article.author_id != requester_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to delete this article")
    db.delete(article)
    db.commit()


def list_articles(
    db: Session,
    *,
    viewer_id: UUID | None = None,
    author_id: UUID | None = None,
    limit: int = 50,
) -> list[ArticleResponse]:
    """Published articles newest first; authors also see their own drafts."""

    stmt = select(Article).options(selectinload(Article.author)).order_by(Article.created_at.desc()).limit(limit)
    if author_id is not None:
        stmt = stmt.where(Article.author_id == author_id)
    if viewer_id is not None:
        stmt = stmt.where(or_(Article.published.is_(True), Article.author_id == viewer_id))
    else:
        stmt = stmt.where(Article.published.is_(True))
    return serialize_articles(db, list(db.scalars(stmt)), viewer_id=viewer_id)


def search_articles(db: Session, *, query: str, viewer_id: UUID | None = None, limit: int = 50) -> list[ArticleResponse]:
    """Case-insensitive keyword search over title and content of published articles."""

    term = (query or "").strip()
    if not term:
        return []
    pattern = contains_pattern(term)
    stmt = (
        select(Article)
        .where(
            Article.published.is_(True),
            or_(Article.title.ilike(pattern, escape="\\"), Article.content.ilike(pattern, escape="\\")),
        )
        .options(selectinload(Article.author))
        .order_by(Article.created_at.desc())
        .limit(limit)
    )
    return serialize_articles(db, list(db.scalars(stmt)), viewer_id=viewer_id)


def toggle_article_like(db: Session, *, article_id: UUID, user_id: UUID) -> EngagementResponse:
    """Flip the viewer's like on an article and notify the author on a new like."""

    article = _get_article_or_404(db, article_id)
    existing = db.scalar(select(ArticleLike).where(ArticleLike.article_id == article_id, ArticleLike.user_id == user_id))

    try:
        if existing is not None:
            db.delete(existing)
        else:
            db.add(ArticleLike(article_id=article_id, user_id=user_id))
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update like") from exc

    liked = existing is None
    if liked:
        notify_counterpart(
            db,
            user_id=cast(UUID, article.author_id),
            actor_id=user_id,
            type_=NotificationType.LIKE,
            article_id=article_id,
        )
    count = db.scalar(select(func.count(ArticleLike.id)).where(ArticleLike.article_id == article_id)) or 0
    return EngagementResponse(target_id=article_id, active=liked, count=int(count))


def toggle_saved_article(db: Session, *, article_id: UUID, user_id: UUID) -> EngagementResponse:
    _get_article_or_404(db, article_id)
    existing = db.scalar(
        select(SavedArticle).where(SavedArticle.article_id == article_id, SavedArticle.user_id == user_id)
    )
    try:
        if existing is not None:
            db.delete(existing)
        else:
            db.add(SavedArticle(article_id=article_id, user_id=user_id))
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to save article") from exc

    count = db.scalar(select(func.count(SavedArticle.id)).where(SavedArticle.article_id == article_id)) or 0
    return EngagementResponse(target_id=article_id, active=existing is None, count=int(count))


def list_saved_articles(db: Session, *, user_id: UUID) -> list[ArticleResponse]:
    stmt = (
        select(Article)
        .join(SavedArticle, SavedArticle.article_id == Article.id)
        .where(SavedArticle.user_id == user_id)
        .options(selectinload(Article.author))
        .order_by(SavedArticle.created_at.desc())
    )
    return serialize_articles(db, list(db.scalars(stmt)), viewer_id=user_id)


def serialize_comments(db: Session, comments: Sequence[Comment], *, viewer_id: UUID | None) -> list[CommentResponse]:
    ids = [cast(UUID, comment.id) for comment in comments]
    likes = _count_by(db, CommentLike.comment_id, ids)
    liked = _viewer_set(db, CommentLike.comment_id, CommentLike.user_id, ids, viewer_id)
    return [
        CommentResponse(
            id=comment.id,
            article_id=comment.article_id,
            user_id=comment.user_id,
            content=comment.content,
            created_at=comment.created_at,
            author=ProfileSummary.model_validate(comment.author) if comment.author is not None else None,
            likes_count=likes.get(comment.id, 0),
            is_liked=comment.id in liked,
        )
        for comment in comments
    ]


def list_comments(db: Session, *, article_id: UUID, viewer_id: UUID | None = None) -> list[CommentResponse]:
    _get_article_or_404(db, article_id)
    stmt = (
        select(Comment)
        .where(Comment.article_id == article_id)
        .options(selectinload(Comment.author))
        .order_by(Comment.created_at.asc())
    )
    return serialize_comments(db, list(db.scalars(stmt)), viewer_id=viewer_id)


def create_comment(db: Session, *, article_id: UUID, author_id: UUID, content: str) -> Comment:
    article = _get_article_or_404(db, article_id)
    text = (content or "").strip()
    if not text:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Comment cannot be empty")

    comment = Comment(article_id=article_id, user_id=author_id, content=text)
    try:
        db.add(comment)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to add comment") from exc
    db.refresh(comment)

    notify_counterpart(
        db,
        user_id=cast(UUID, article.author_id),
        actor_id=author_id,
        type_=NotificationType.COMMENT,
        article_id=article_id,
    )
    return comment


def delete_comment(db: Session, *, comment_id: UUID, requester_id: UUID) -> None:
    """Delete a comment; its author or the article's author may do so."""

    comment = _get_comment_or_404(db, comment_id)
    article = _get_article_or_404(db, cast(UUID, comment.article_id))
    if requester_id not in {comment.user_id, article.author_id}:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to delete this comment")
    db.delete(comment)
    db.commit()


def toggle_comment_like(db: Session, *, comment_id: UUID, user_id: UUID) -> EngagementResponse:
    _get_comment_or_404(db, comment_id)
    existing = db.scalar(select(CommentLike).where(CommentLike.comment_id == comment_id, CommentLike.user_id == user_id))
    try:
        if existing is not None:
            db.delete(existing)
        else:
            db.add(CommentLike(comment_id=comment_id, user_id=user_id))
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update like") from exc

    count = db.scalar(select(func.count(CommentLike.id)).where(CommentLike.comment_id == comment_id)) or 0
    return EngagementResponse(target_id=comment_id, active=existing is None, count=int(count))


__all__ = [
    "serialize_articles",
    "create_article",
    "get_article",
    "update_article",
    "delete_article",
    "list_articles",
    "search_articles",
    "toggle_article_like",
    "toggle_saved_article",
    "list_saved_articles",
    "serialize_comments",
    "list_comments",
    "create_comment",
    "delete_comment",
    "toggle_comment_like",
]
