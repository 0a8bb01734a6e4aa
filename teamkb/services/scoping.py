"""Which article rows a caller may read.

A scope is resolved from the caller and an optional team id:

* no caller                  -> ``NoAccess`` (matches nothing)
* caller, no team            -> ``PersonalScope`` (own articles without a team)
* caller, team they belong to -> ``TeamScope`` (every article of that team)

The same scope object renders the SQL predicate used by list/search and the
in-memory check applied to a single loaded row, so both paths share one rule.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy import and_, false
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from teamkb.core.errors import Forbidden, Unauthenticated
from teamkb.models.article_models import Article
from teamkb.models.auth_models import User
from teamkb.services import teams as team_svc


logger = logging.getLogger("teamkb.scoping")


@dataclass(frozen=True)
class NoAccess:
    def clause(self) -> ColumnElement[bool]:
        return false()

    def permits(self, article: Article) -> bool:
        return False


@dataclass(frozen=True)
class PersonalScope:
    author_id: uuid.UUID

    def clause(self) -> ColumnElement[bool]:
        return and_(Article.author_id == self.author_id, Article.team_id.is_(None))

    def permits(self, article: Article) -> bool:
        return article.team_id is None and article.author_id == self.author_id


@dataclass(frozen=True)
class TeamScope:
    team_id: int

    def clause(self) -> ColumnElement[bool]:
        return Article.team_id == self.team_id

    def permits(self, article: Article) -> bool:
        return article.team_id == self.team_id


Scope = Union[NoAccess, PersonalScope, TeamScope]


async def resolve_scope(session: AsyncSession, caller: Optional[User], team_id: Optional[int]) -> Scope:
    if caller is None:
        return NoAccess()
    if team_id is None:
        return PersonalScope(author_id=caller.id)
    membership = await team_svc.get_membership(session, team_id, caller.id)
    if membership is None:
        logger.warning(
            "Team scope requested by non-member",
            extra={"event": "scope_forbidden", "team_id": team_id, "user_id": str(caller.id)},
        )
        raise Forbidden("Not a member of this team")
    return TeamScope(team_id=team_id)


async def authorize_read(session: AsyncSession, caller: Optional[User], article: Article) -> None:
    """Check an already loaded article against the caller's scope for its team."""
    if caller is None:
        raise Unauthenticated()
    scope = await resolve_scope(session, caller, article.team_id)
    if not scope.permits(article):
        logger.warning(
            "Personal article requested by another user",
            extra={"event": "article_read_forbidden", "article_id": article.id, "user_id": str(caller.id)},
        )
        raise Forbidden("Not allowed to access this article")
