from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


def utcnow() -> datetime:
    """Timezone-aware now; every timestamp column defaults to it."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass
