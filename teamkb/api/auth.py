from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from jose import JWTError
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from teamkb.core.deps import get_current_user
from teamkb.core.errors import Forbidden, InvalidArgument, Unauthenticated
from teamkb.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)
from teamkb.db.sa import get_session
from teamkb.models.auth_models import RefreshToken, User
from teamkb.schemas.auth import (
    LoginRequest,
    LogoutResponse,
    RefreshRequest,
    RegisterRequest,
    TokenPair,
    UserProfile,
)


router = APIRouter(prefix="/api", tags=["auth"])
logger = logging.getLogger("teamkb.auth")


async def _issue_token_pair(session: AsyncSession, user_id: uuid.UUID) -> tuple[TokenPair, RefreshToken]:
    """Create an access token and a stored refresh token whose row id is the JWT ``jti``."""
    access_token = create_access_token(user_id)
    refresh_row = RefreshToken(user_id=user_id, token="", expires_at=datetime.now(timezone.utc))
    session.add(refresh_row)
    await session.flush()  # to get refresh_row.id
    refresh_token = create_refresh_token(user_id, jti=str(refresh_row.id))
    claims = decode_token(refresh_token)
    refresh_row.token = refresh_token
    refresh_row.expires_at = datetime.fromtimestamp(claims["exp"], tz=timezone.utc)
    return TokenPair(access_token=access_token, refresh_token=refresh_token), refresh_row


def _claim_uuid(value: object, error: Exception) -> uuid.UUID:
    """Parse a ``sub``/``jti`` claim, raising ``error`` when it is not a UUID."""
    try:
        return uuid.UUID(str(value))
    except ValueError:
        logger.warning("Token claim is not a UUID", extra={"event": "token_claim_malformed"})
        raise error


async def _revoke_all(session: AsyncSession, user_id: uuid.UUID) -> None:
    await session.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user_id, RefreshToken.revoked == False)  # noqa: E712
        .values(revoked=True)
    )


@router.post("/register", response_model=TokenPair, status_code=201)
async def register(payload: RegisterRequest, session: AsyncSession = Depends(get_session)) -> TokenPair:
    username = payload.username.strip()
    if not username:
        raise InvalidArgument("Username is required")
    res = await session.execute(select(User).where(User.username == username))
    if res.scalar_one_or_none() is not None:
        raise InvalidArgument("Username already registered")

    user = User(username=username, password_hash=hash_password(payload.password))
    session.add(user)
    await session.flush()  # to get user.id

    pair, _ = await _issue_token_pair(session, user.id)
    await session.commit()
    logger.info(
        "User registered",
        extra={"event": "user_registered", "user_id": str(user.id), "username": user.username},
    )
    return pair


@router.post("/login", response_model=TokenPair)
async def login(payload: LoginRequest, session: AsyncSession = Depends(get_session)) -> TokenPair:
    res = await session.execute(select(User).where(User.username == payload.username))
    user = res.scalar_one_or_none()
    if user is None or not verify_password(payload.password, user.password_hash):
        logger.warning(
            "Login failed",
            extra={"event": "login_failed", "username": payload.username, "user_exists": user is not None},
        )
        raise Unauthenticated("Invalid username or password")
    if not user.is_active:
        logger.warning(
            "Login blocked for inactive user",
            extra={"event": "login_inactive", "username": payload.username, "user_id": str(user.id)},
        )
        raise Forbidden("User is inactive")

    pair, _ = await _issue_token_pair(session, user.id)
    await session.commit()
    logger.info(
        "User login",
        extra={"event": "user_login", "user_id": str(user.id), "username": user.username},
    )
    return pair


@router.post("/refresh", response_model=TokenPair)
async def refresh_tokens(payload: RefreshRequest, session: AsyncSession = Depends(get_session)) -> TokenPair:
    try:
        claims = decode_token(payload.refresh_token)
    except JWTError:
        logger.warning(
            "Refresh token invalid or expired (JWT decode)",
            extra={"event": "refresh_token_decode_error"},
        )
        raise Unauthenticated("Invalid or expired refresh token")
    if claims.get("type") != "refresh":
        logger.warning("Refresh token with invalid type", extra={"event": "refresh_token_invalid_type"})
        raise Unauthenticated("Invalid token type")
    sub = claims.get("sub")
    jti = claims.get("jti")
    if not sub or not jti:
        logger.warning("Refresh token with missing claims", extra={"event": "refresh_token_missing_claims"})
        raise Unauthenticated("Invalid token claims")
    user_id = _claim_uuid(sub, Unauthenticated("Invalid token claims"))
    token_id = _claim_uuid(jti, Unauthenticated("Invalid token claims"))

    res = await session.execute(
        select(RefreshToken).where(
            RefreshToken.id == token_id,
            RefreshToken.token == payload.refresh_token,
        )
    )
    token_row = res.scalar_one_or_none()
    if token_row is None or token_row.revoked:
        # Reuse of a rotated or unknown token: revoke every session of this user
        logger.warning(
            "Refresh token reuse detected; revoking all sessions",
            extra={"event": "refresh_reuse_detected", "user_id": str(user_id), "jti": str(token_id)},
        )
        await _revoke_all(session, user_id)
        await session.commit()
        raise Unauthenticated("Refresh token reuse detected; all sessions revoked")
    if token_row.is_expired():
        logger.warning(
            "Refresh token expired",
            extra={"event": "refresh_token_expired", "user_id": str(user_id), "jti": str(token_id)},
        )
        raise Unauthenticated("Refresh token expired")
    if token_row.user_id != user_id:
        logger.warning(
            "Refresh token user mismatch",
            extra={"event": "refresh_token_user_mismatch", "user_id": str(user_id), "jti": str(token_id)},
        )
        raise Unauthenticated("Token/user mismatch")

    token_row.revoked = True
    await session.flush()
    pair, new_row = await _issue_token_pair(session, user_id)
    await session.commit()
    logger.info(
        "Tokens refreshed",
        extra={
            "event": "token_refreshed",
            "user_id": str(user_id),
            "old_jti": str(token_id),
            "new_jti": str(new_row.id),
        },
    )
    return pair


@router.get("/user", response_model=UserProfile)
async def me(current_user: User = Depends(get_current_user)) -> UserProfile:
    return UserProfile(id=current_user.id, username=current_user.username, is_active=current_user.is_active)


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    payload: RefreshRequest | None = None,
    all_sessions: bool = Query(False, description="Revoke all refresh tokens for current user"),
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> LogoutResponse:
    if all_sessions or not payload:
        await _revoke_all(session, current_user.id)
        await session.commit()
        logger.info("Logout all sessions", extra={"event": "logout_all", "user_id": str(current_user.id)})
        return LogoutResponse(revoked="all")

    try:
        claims = decode_token(payload.refresh_token)
    except JWTError:
        logger.warning(
            "Logout with malformed or expired refresh token",
            extra={"event": "logout_token_decode_error"},
        )
        raise InvalidArgument("Malformed or expired refresh token")
    if claims.get("type") != "refresh" or not claims.get("sub") or not claims.get("jti"):
        logger.warning("Logout with invalid refresh token", extra={"event": "logout_invalid_token"})
        raise InvalidArgument("Invalid refresh token")
    token_id = _claim_uuid(claims["jti"], InvalidArgument("Invalid refresh token"))
    if _claim_uuid(claims["sub"], InvalidArgument("Invalid refresh token")) != current_user.id:
        logger.warning(
            "Logout token does not belong to user",
            extra={"event": "logout_token_user_mismatch", "user_id": str(current_user.id), "jti": str(token_id)},
        )
        raise Forbidden("Cannot revoke token of another user")

    await session.execute(
        update(RefreshToken)
        .where(RefreshToken.id == token_id, RefreshToken.user_id == current_user.id)
        .values(revoked=True)
    )
    await session.commit()
    logger.info(
        "Logout single session",
        extra={"event": "logout_single", "user_id": str(current_user.id), "jti": str(token_id)},
    )
    return LogoutResponse(revoked="single", jti=str(token_id))
