"""Article routes: CRUD, search, likes, saves and comments."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ..database import get_session
from ..models import Profile
from ..schemas import (
    ArticleCreate,
    ArticleListResponse,
    ArticleResponse,
    ArticleUpdate,
    CommentCreate,
    CommentResponse,
    EngagementResponse,
)
from ..services import (
    create_article,
    create_comment,
    delete_article,
    get_article,
    get_current_profile,
    get_optional_profile,
    list_articles,
    list_comments,
    list_saved_articles,
    search_articles,
    serialize_articles,
    serialize_comments,
    toggle_article_like,
    toggle_saved_article,
    update_article,
)

router = APIRouter(prefix="/articles", tags=["articles"])


def _viewer_id(viewer: Profile | None) -> UUID | None:
    return viewer.id if viewer is not None else None


@router.get("", response_model=ArticleListResponse)
async def list_articles_endpoint(
    author_id: UUID | None = Query(None),
    limit: int = Query(50, ge=1, le=100),
    viewer: Profile | None = Depends(get_optional_profile),
    db: Session = Depends(get_session),
) -> ArticleListResponse:
    items = list_articles(db, viewer_id=_viewer_id(viewer), author_id=author_id, limit=limit)
    return ArticleListResponse(items=items)


@router.get("/search", response_model=ArticleListResponse)
async def search_articles_endpoint(
    q: str = Query("", max_length=200),
    viewer: Profile | None = Depends(get_optional_profile),
    db: Session = Depends(get_session),
) -> ArticleListResponse:
    return ArticleListResponse(items=search_articles(db, query=q, viewer_id=_viewer_id(viewer)))


@router.get("/saved", response_model=ArticleListResponse)
async def saved_articles_endpoint(
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> ArticleListResponse:
    return ArticleListResponse(items=list_saved_articles(db, user_id=current_profile.id))


@router.post("", response_model=ArticleResponse, status_code=status.HTTP_201_CREATED)
async def create_article_endpoint(
    payload: ArticleCreate,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> ArticleResponse:
    article = create_article(db, author_id=current_profile.id, payload=payload)
    return serialize_articles(db, [article], viewer_id=current_profile.id)[0]


@router.get("/{article_id}", response_model=ArticleResponse)
async def article_detail_endpoint(
    article_id: UUID,
    viewer: Profile | None = Depends(get_optional_profile),
    db: Session = Depends(get_session),
) -> ArticleResponse:
    return get_article(db, article_id=article_id, viewer_id=_viewer_id(viewer))


@router.patch("/{article_id}", response_model=ArticleResponse)
async def update_article_endpoint(
    article_id: UUID,
    payload: ArticleUpdate,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> ArticleResponse:
    article = update_article(db, article_id=article_id, requester_id=current_profile.id, payload=payload)
    return serialize_articles(db, [article], viewer_id=current_profile.id)[0]


@router.delete("/{article_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_article_endpoint(
    article_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> Response:
    delete_article(db, article_id=article_id, requester_id=current_profile.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{article_id}/like", response_model=EngagementResponse)
async def toggle_like_endpoint(
    article_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> EngagementResponse:
    return toggle_article_like(db, article_id=article_id, user_id=current_profile.id)


@router.post("/{article_id}/save", response_model=EngagementResponse)
async def toggle_save_endpoint(
    article_id: UUID,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> EngagementResponse:
    return toggle_saved_article(db, article_id=article_id, user_id=current_profile.id)


@router.get("/{article_id}/comments", response_model=list[CommentResponse])
async def list_comments_endpoint(
    article_id: UUID,
    viewer: Profile | None = Depends(get_optional_profile),
    db: Session = Depends(get_session),
) -> list[CommentResponse]:
    return list_comments(db, article_id=article_id, viewer_id=_viewer_id(viewer))


@router.post("/{article_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
async def create_comment_endpoint(
    article_id: UUID,
    payload: CommentCreate,
    current_profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_session),
) -> CommentResponse:
    comment = create_comment(db, article_id=article_id, author_id=current_profile.id, content=payload.content)
    return serialize_comments(db, [comment], viewer_id=current_profile.id)[0]


__all__ = ["router"]
