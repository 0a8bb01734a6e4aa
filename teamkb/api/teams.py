from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from teamkb.core.deps import get_current_user
from teamkb.db.sa import get_session
from teamkb.models.auth_models import User
from teamkb.schemas.teams import MemberAdd, MembershipOut, TeamCreate, TeamOut, TeamWithRole
from teamkb.services import teams as svc


router = APIRouter(prefix="/api/teams", tags=["teams"])


@router.post("", response_model=TeamOut, status_code=201)
async def api_create_team(
    payload: TeamCreate,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await svc.create_team(session, current_user, payload.name)


@router.get("", response_model=List[TeamWithRole])
async def api_list_teams(
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    rows = await svc.list_user_teams(session, current_user)
    return [TeamWithRole(team=TeamOut.model_validate(team), role=role) for team, role in rows]


@router.post("/{team_id}/members", response_model=MembershipOut, status_code=201)
async def api_add_member(
    team_id: int,
    payload: MemberAdd,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    return await svc.add_member(session, current_user, team_id, payload.username)
