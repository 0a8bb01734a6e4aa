from __future__ import annotations

import uuid
from datetime import datetime

from teamkb.models.team_models import TeamRole
from teamkb.schemas.base import CamelModel


class TeamCreate(CamelModel):
    name: str


class TeamOut(CamelModel):
    id: int
    name: str
    owner_id: uuid.UUID
    created_at: datetime


class TeamWithRole(CamelModel):
    team: TeamOut
    role: TeamRole


class MemberAdd(CamelModel):
    username: str


class MembershipOut(CamelModel):
    id: int
    team_id: int
    user_id: uuid.UUID
    role: TeamRole
    created_at: datetime
