from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from teamkb import config
from teamkb.core.errors import NotFound, Unauthenticated, require_text
from teamkb.db.base import utcnow
from teamkb.models.article_models import Article
from teamkb.models.auth_models import User
from teamkb.services.embeddings import Embedder, article_text
from teamkb.services.scoping import NoAccess, authorize_read, resolve_scope


logger = logging.getLogger("teamkb.articles")

# Default for update_article: metadata omitted from the request stays as stored
UNCHANGED: Any = object()


async def create_article(
    session: AsyncSession,
    caller: Optional[User],
    title: Optional[str],
    content: Optional[str],
    metadata: Optional[Dict[str, Any]] = None,
    team_id: Optional[int] = None,
    embedder: Optional[Embedder] = None,
) -> Article:
    if caller is None:
        raise Unauthenticated()
    title = require_text(title, "Title")
    content = require_text(content, "Content")
    if team_id is not None:
        # raises Forbidden for non-members
        await resolve_scope(session, caller, team_id)

    now = utcnow()
    article = Article(
        title=title,
        content=content,
        meta=metadata,
        author_id=caller.id,
        team_id=team_id,
        created_at=now,
        updated_at=now,
    )
    if embedder is not None:
        article.embedding = await embedder.embed(article_text(title, content))
    session.add(article)
    await session.flush()
    await session.commit()
    logger.info(
        "Article created",
        extra={"event": "article_created", "article_id": article.id, "team_id": team_id, "user_id": str(caller.id)},
    )
    return article


async def list_articles(
    session: AsyncSession,
    caller: Optional[User],
    team_id: Optional[int] = None,
    category: Optional[str] = None,
) -> List[Article]:
    """All articles visible in the caller's scope, newest first."""
    scope = await resolve_scope(session, caller, team_id)
    if isinstance(scope, NoAccess):
        return []
    stmt = select(Article).where(scope.clause())
    if category:
        stmt = stmt.where(Article.meta["category"].astext == category)
    stmt = stmt.order_by(Article.created_at.desc(), Article.id.desc())
    res = await session.execute(stmt)
    return list(res.scalars().all())


async def get_article(session: AsyncSession, caller: Optional[User], article_id: int) -> Article:
    # Existence is checked before authorization
    article = await session.get(Article, article_id)
    if article is None:
        raise NotFound("Article not found")
    await authorize_read(session, caller, article)
    return article


async def update_article(
    session: AsyncSession,
    caller: Optional[User],
    article_id: int,
    title: Optional[str],
    content: Optional[str],
    metadata: Optional[Dict[str, Any]] = UNCHANGED,
    embedder: Optional[Embedder] = None,
) -> Article:
    if caller is None:
        raise Unauthenticated()
    title = require_text(title, "Title")
    content = require_text(content, "Content")

    article = await session.get(Article, article_id)
    if article is None:
        raise NotFound("Article not found")
    if config.ENFORCE_MUTATION_SCOPE:
        await authorize_read(session, caller, article)

    article.title = title
    article.content = content
    if metadata is not UNCHANGED:
        article.meta = metadata
    article.updated_at = utcnow()
    if embedder is not None:
        article.embedding = await embedder.embed(article_text(title, content))
    await session.flush()
    await session.commit()
    logger.info(
        "Article updated",
        extra={"event": "article_updated", "article_id": article_id, "user_id": str(caller.id)},
    )
    return article


async def delete_article(session: AsyncSession, caller: Optional[User], article_id: int) -> None:
    """Delete by id. Deleting a missing id succeeds."""
    if caller is None:
        raise Unauthenticated()
    if config.ENFORCE_MUTATION_SCOPE:
        article = await session.get(Article, article_id)
        if article is None:
            return
        await authorize_read(session, caller, article)

    await session.execute(delete(Article).where(Article.id == article_id))
    await session.commit()
    logger.info(
        "Article deleted",
        extra={"event": "article_deleted", "article_id": article_id, "user_id": str(caller.id)},
    )


__all__ = [
    "create_article",
    "list_articles",
    "get_article",
    "update_article",
    "delete_article",
]
