# teamkb/api/articles.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from teamkb.core.deps import get_current_user, get_embedder, get_matcher, get_optional_user
from teamkb.core.errors import require_text
from teamkb.db.sa import get_session
from teamkb.models.auth_models import User
from teamkb.schemas.articles import ArticleCreate, ArticleOut, ArticleUpdate
from teamkb.services import articles as svc
from teamkb.services import scoping
from teamkb.services import search as srch
from teamkb.services.embeddings import Embedder
from teamkb.services.matchers import TextMatcher

router = APIRouter(prefix="/api/articles", tags=["articles"])


@router.post("", response_model=ArticleOut, summary="Create an article (personal or team)")
async def api_create_article(
    payload: ArticleCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    embedder: Optional[Embedder] = Depends(get_embedder),
):
    return await svc.create_article(
        session,
        current_user,
        payload.title,
        payload.content,
        metadata=payload.metadata,
        team_id=payload.team_id,
        embedder=embedder,
    )


@router.get("", response_model=List[ArticleOut], summary="Articles visible to the caller, newest first")
async def api_list_articles(
    team_id: Optional[int] = Query(None, alias="teamId"),
    category: Optional[str] = Query(None, description="Filter on metadata.category"),
    current_user: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    return await svc.list_articles(session, current_user, team_id=team_id, category=category)


# Static paths must be registered before /{article_id}
@router.get("/search", response_model=List[ArticleOut], summary="Text search within the caller's scope")
async def api_search_articles(
    q: Optional[str] = Query(None, description="Search query"),
    team_id: Optional[int] = Query(None, alias="teamId"),
    current_user: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
    matcher: TextMatcher = Depends(get_matcher),
):
    # a blank query is rejected before any membership lookup
    query = require_text(q, "Search query (q)")
    scope = await scoping.resolve_scope(session, current_user, team_id)
    return await srch.search_articles(session, scope, query, matcher)


@router.get("/{article_id}", response_model=ArticleOut, summary="Single article by id")
async def api_get_article(
    article_id: int,
    current_user: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
):
    return await svc.get_article(session, current_user, article_id)


@router.put("/{article_id}", response_model=ArticleOut, summary="Replace title and content; metadata only when sent")
async def api_update_article(
    article_id: int,
    payload: ArticleUpdate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
    embedder: Optional[Embedder] = Depends(get_embedder),
):
    return await svc.update_article(
        session,
        current_user,
        article_id,
        payload.title,
        payload.content,
        metadata=payload.metadata if "metadata" in payload.model_fields_set else svc.UNCHANGED,
        embedder=embedder,
    )


@router.delete("/{article_id}", summary="Delete an article (idempotent)")
async def api_delete_article(
    article_id: int,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Response:
    await svc.delete_article(session, current_user, article_id)
    return Response(status_code=200)
