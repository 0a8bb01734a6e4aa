from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from teamkb.core.errors import Unauthenticated
from teamkb.core.security import access_token_subject
from teamkb.db.sa import get_session
from teamkb.models.auth_models import User
from teamkb.services.embeddings import Embedder
from teamkb.services.matchers import TextMatcher


logger = logging.getLogger("teamkb.auth.deps")
# Missing credentials are handled here so they map to 401 rather than FastAPI's default
bearer_scheme = HTTPBearer(auto_error=False)


async def _user_from_token(session: AsyncSession, raw_token: str) -> User:
    try:
        user_id = access_token_subject(raw_token)
    except Unauthenticated as exc:
        logger.warning(
            "Access token rejected",
            extra={"event": "access_token_rejected", "reason": exc.message},
        )
        raise
    user = await session.get(User, user_id)
    if not user or not user.is_active:
        logger.warning(
            "User inactive or not found for token",
            extra={"event": "access_token_user_not_found", "user_id": str(user_id)},
        )
        raise Unauthenticated("User inactive or not found")
    return user


async def get_optional_user(
    token: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_session),
) -> Optional[User]:
    """Caller for endpoints that degrade to empty results; invalid tokens count as anonymous."""
    if token is None:
        return None
    try:
        return await _user_from_token(session, token.credentials)
    except Unauthenticated:
        return None


async def get_current_user(
    token: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_session),
) -> User:
    if token is None:
        raise Unauthenticated("Not authenticated")
    return await _user_from_token(session, token.credentials)


def get_matcher(request: Request) -> TextMatcher:
    return request.app.state.matcher


def get_embedder(request: Request) -> Optional[Embedder]:
    return request.app.state.embedder
