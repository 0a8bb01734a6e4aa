from __future__ import annotations

import abc
from typing import Optional

from sqlalchemy import Select, or_, select
from sqlalchemy.sql.elements import ColumnElement

from teamkb.models.article_models import Article
from teamkb.services.embeddings import Embedder


class TextMatcher(abc.ABC):
    """Builds the search statement for a query within an access predicate.

    ``where`` is always part of the same WHERE clause as the text predicate.
    """

    name: str

    @abc.abstractmethod
    async def statement(self, query: str, where: ColumnElement[bool], limit: int) -> Select:
        ...


class SubstringMatcher(TextMatcher):
    """Case-insensitive containment against title or content, newest first."""

    name = "substring"

    async def statement(self, query: str, where: ColumnElement[bool], limit: int) -> Select:
        text_match = or_(
            Article.title.icontains(query, autoescape=True),
            Article.content.icontains(query, autoescape=True),
        )
        return (
            select(Article)
            .where(where, text_match)
            .order_by(Article.created_at.desc(), Article.id.desc())
            .limit(limit)
        )


class EmbeddingMatcher(TextMatcher):
    """Cosine similarity between the query embedding and stored article embeddings."""

    name = "embedding"

    def __init__(self, embedder: Embedder, threshold: float = 0.7) -> None:
        self.embedder = embedder
        self.threshold = threshold

    async def statement(self, query: str, where: ColumnElement[bool], limit: int) -> Select:
        query_vec = await self.embedder.embed(query)
        similarity = 1 - Article.embedding.cosine_distance(query_vec)
        return (
            select(Article)
            .where(where, Article.embedding.is_not(None), similarity > self.threshold)
            .order_by(similarity.desc())
            .limit(limit)
        )


def build_matcher(kind: str, embedder: Optional[Embedder] = None, threshold: float = 0.7) -> TextMatcher:
    if kind == SubstringMatcher.name:
        return SubstringMatcher()
    if kind == EmbeddingMatcher.name:
        if embedder is None:
            raise ValueError("embedding matcher requires an embedder")
        return EmbeddingMatcher(embedder, threshold=threshold)
    raise ValueError(f"unknown search matcher: {kind!r}")
