from __future__ import annotations

import logging
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from teamkb import config
from teamkb.db.base import Base


logger = logging.getLogger("teamkb.db")

_engine: Optional[AsyncEngine] = None
_sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None


def _to_sqlalchemy_async_dsn(dsn: str | None) -> str:
    if not dsn:
        raise RuntimeError("DATABASE_URL is not configured")
    # Ensure SQLAlchemy asyncpg dialect
    if dsn.startswith("postgresql+asyncpg://"):
        return dsn
    if dsn.startswith("postgresql://"):
        return dsn.replace("postgresql://", "postgresql+asyncpg://", 1)
    if dsn.startswith("postgres://"):
        return dsn.replace("postgres://", "postgresql+asyncpg://", 1)
    return dsn


async def init_sa_engine(dsn: str | None = None) -> None:
    global _engine, _sessionmaker
    if _engine is None:
        async_dsn = _to_sqlalchemy_async_dsn(dsn or config.DB_DSN)
        _engine = create_async_engine(async_dsn, pool_pre_ping=True)
        _sessionmaker = async_sessionmaker(
            bind=_engine,
            expire_on_commit=False,
            autoflush=False,
        )


async def create_tables() -> None:
    """Create the pgvector extension and all mapped tables (idempotent)."""
    if _engine is None:
        return
    # Model modules must be imported so their tables are registered on Base.metadata
    from teamkb.models import article_models, auth_models, team_models  # noqa: F401

    async with _engine.begin() as conn:
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ensured", extra={"event": "schema_ready"})


async def close_sa_engine() -> None:
    global _engine, _sessionmaker
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _sessionmaker = None


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    if _sessionmaker is None:
        raise RuntimeError("SQLAlchemy engine is not initialized. Call init_sa_engine() first.")
    session = _sessionmaker()
    try:
        yield session
    finally:
        await session.close()
