from __future__ import annotations

import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from teamkb.core.errors import Forbidden, InvalidArgument, NotFound, Unauthenticated, require_text
from teamkb.db.base import utcnow
from teamkb.models.auth_models import User
from teamkb.models.team_models import Team, TeamMembership, TeamRole


logger = logging.getLogger("teamkb.teams")


async def get_membership(session: AsyncSession, team_id: int, user_id: uuid.UUID) -> Optional[TeamMembership]:
    res = await session.execute(
        select(TeamMembership).where(
            TeamMembership.team_id == team_id,
            TeamMembership.user_id == user_id,
        )
    )
    return res.scalar_one_or_none()


async def create_team(session: AsyncSession, caller: Optional[User], name: Optional[str]) -> Team:
    """Create a team and its owner membership in a single transaction."""
    if caller is None:
        raise Unauthenticated()
    team_name = require_text(name, "Team name")

    now = utcnow()
    team = Team(name=team_name, owner_id=caller.id, created_at=now)
    session.add(team)
    await session.flush()  # to get team.id
    session.add(TeamMembership(team_id=team.id, user_id=caller.id, role=TeamRole.OWNER, created_at=now))
    await session.commit()
    logger.info(
        "Team created",
        extra={"event": "team_created", "team_id": team.id, "owner_id": str(caller.id)},
    )
    return team


async def list_user_teams(session: AsyncSession, caller: Optional[User]) -> List[Tuple[Team, TeamRole]]:
    if caller is None:
        raise Unauthenticated()
    stmt = (
        select(Team, TeamMembership.role)
        .join(TeamMembership, TeamMembership.team_id == Team.id)
        .where(TeamMembership.user_id == caller.id)
        .order_by(Team.created_at.desc())
    )
    res = await session.execute(stmt)
    return [(team, role) for team, role in res.all()]


async def add_member(
    session: AsyncSession,
    caller: Optional[User],
    team_id: int,
    username: Optional[str],
) -> TeamMembership:
    """Add ``username`` to the team as a member. Only the team owner may invite."""
    if caller is None:
        raise Unauthenticated()
    name = require_text(username, "Username")

    own = await get_membership(session, team_id, caller.id)
    if own is None or own.role != TeamRole.OWNER:
        logger.warning(
            "Member invite by non-owner",
            extra={"event": "team_invite_forbidden", "team_id": team_id, "user_id": str(caller.id)},
        )
        raise Forbidden("Only the team owner can add members")

    res = await session.execute(select(User).where(User.username == name))
    user = res.scalar_one_or_none()
    if user is None:
        raise NotFound("User not found")

    if await get_membership(session, team_id, user.id) is not None:
        raise InvalidArgument("User is already a member of this team")

    membership = TeamMembership(team_id=team_id, user_id=user.id, role=TeamRole.MEMBER, created_at=utcnow())
    session.add(membership)
    try:
        await session.flush()
        await session.commit()
    except IntegrityError:
        # concurrent invite of the same user
        await session.rollback()
        raise InvalidArgument("User is already a member of this team")
    logger.info(
        "Team member added",
        extra={"event": "team_member_added", "team_id": team_id, "user_id": str(user.id)},
    )
    return membership
