"""Credential database engine and session handling."""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, AsyncIterator, Dict, Optional

from practice.config import Settings, get_settings
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

engine: Optional[AsyncEngine] = None
AsyncSessionLocal: Optional[async_sessionmaker[AsyncSession]] = None


def _is_sqlite(settings: Settings) -> bool:
    return settings.db_url.startswith("sqlite")


def _engine_args(settings: Settings) -> Dict[str, Any]:
    args: Dict[str, Any] = {"pool_pre_ping": True, "echo": settings.debug}
    # SQLite has no connection pool sizing
    if not _is_sqlite(settings):
        args["pool_size"] = settings.db_pool_size
        args["max_overflow"] = settings.db_max_overflow
    return args


async def init_db() -> None:
    """Create the engine and session factory; build tables on SQLite."""
    global engine, AsyncSessionLocal

    settings = get_settings()
    engine = create_async_engine(settings.db_url, **_engine_args(settings))
    AsyncSessionLocal = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    if _is_sqlite(settings):
        from practice.db import models  # noqa: F401

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    global engine, AsyncSessionLocal

    if engine is not None:
        await engine.dispose()
    engine = None
    AsyncSessionLocal = None


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Transactional session for code running outside a request."""
    if AsyncSessionLocal is None:
        await init_db()
    assert AsyncSessionLocal is not None

    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session for dependency injection."""
    async with session_scope() as session:
        yield session
