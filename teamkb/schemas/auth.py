from __future__ import annotations

import uuid
from pydantic import BaseModel, Field
from typing import Literal, Optional


class RegisterRequest(BaseModel):
    username: str = Field(min_length=1, max_length=150)
    password: str = Field(min_length=8)


class LoginRequest(BaseModel):
    username: str
    password: str


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshRequest(BaseModel):
    refresh_token: str


class UserProfile(BaseModel):
    id: uuid.UUID
    username: str
    is_active: bool


class LogoutResponse(BaseModel):
    revoked: Literal["all", "single"]
    jti: Optional[str] = None
