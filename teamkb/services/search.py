from __future__ import annotations

import logging
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from teamkb.config import SEARCH_LIMIT
from teamkb.core.errors import require_text
from teamkb.models.article_models import Article
from teamkb.services.matchers import TextMatcher
from teamkb.services.scoping import NoAccess, Scope


logger = logging.getLogger("teamkb.search")


async def search_articles(
    session: AsyncSession,
    scope: Scope,
    query: str | None,
    matcher: TextMatcher,
    limit: int = SEARCH_LIMIT,
) -> List[Article]:
    q = require_text(query, "Search query (q)")
    if isinstance(scope, NoAccess):
        return []

    stmt = await matcher.statement(q, scope.clause(), limit)
    res = await session.execute(stmt)
    rows = list(res.scalars().all())
    logger.info(
        "Article search",
        extra={"event": "article_search", "matcher": matcher.name, "results": len(rows)},
    )
    return rows


__all__ = ["search_articles"]
