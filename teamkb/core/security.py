from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from teamkb import config
from teamkb.core.errors import Unauthenticated


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    return pwd_context.verify(plain_password, password_hash)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_access_token(subject: str | uuid.UUID, expires_minutes: Optional[int] = None) -> str:
    expire = _utcnow() + timedelta(minutes=expires_minutes or config.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims: Dict[str, Any] = {"sub": str(subject), "type": "access", "exp": expire}
    return jwt.encode(claims, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def create_refresh_token(subject: str | uuid.UUID, jti: Optional[str] = None,
                         expires_days: Optional[int] = None) -> str:
    expire = _utcnow() + timedelta(days=expires_days or config.REFRESH_TOKEN_EXPIRE_DAYS)
    claims: Dict[str, Any] = {
        "sub": str(subject),
        "type": "refresh",
        "jti": jti or str(uuid.uuid4()),
        "exp": expire,
    }
    return jwt.encode(claims, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    return jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])


def access_token_subject(token: str) -> uuid.UUID:
    """Validate an access token and return the user id it was issued for."""
    try:
        payload = decode_token(token)
    except JWTError:
        raise Unauthenticated("Invalid or expired token")
    if payload.get("type") != "access":
        raise Unauthenticated("Invalid token type")
    sub = payload.get("sub")
    if not sub:
        raise Unauthenticated("Invalid token subject")
    try:
        return uuid.UUID(str(sub))
    except ValueError:
        raise Unauthenticated("Invalid token subject")
