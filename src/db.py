"""Database engine/session helpers."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from models import Base

DEFAULT_DB_URL = "sqlite+aiosqlite:///atlantis_stats.db"


def create_db_engine(db_url: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine with conservative defaults for scripts."""
    if db_url.startswith("sqlite") and ":memory:" in db_url:
        # In-memory SQLite must reuse one connection to keep its schema.
        return create_async_engine(db_url, poolclass=StaticPool, connect_args={"check_same_thread": False})
    return create_async_engine(db_url, pool_pre_ping=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to the provided engine."""
    return async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


async def ensure_schema(engine: AsyncEngine) -> None:
    """Create players/matches/match_participations tables if they do not exist."""
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)
