"""
Contact database client.

One async engine per process, created at startup by `init_db()`. The identify
flow opens its own sessions from `get_session_factory()` so it can pick its
isolation level; everything else uses `get_db_session()`.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

import structlog
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from contact_identity.config import Settings, get_settings

logger = structlog.get_logger()

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def engine_options(settings: Settings) -> dict[str, Any]:
    """Keyword arguments for `create_async_engine`.

    `null` pool mode opens a connection per checkout, for deployments that sit
    behind an external pooler. Pooled limits are clamped to sane minimums.
    """
    options: dict[str, Any] = {"echo": settings.log_level == "DEBUG"}
    if settings.db_pool_mode == "null":
        options["poolclass"] = NullPool
        return options

    options.update(
        pool_size=max(1, int(settings.db_pool_size)),
        max_overflow=max(0, int(settings.db_pool_max_overflow)),
        pool_timeout=max(1, int(settings.db_pool_timeout_seconds)),
        pool_recycle=max(60, int(settings.db_pool_recycle_seconds)),
        pool_pre_ping=True,
    )
    return options


async def init_db() -> None:
    """Create the engine and session factory."""
    global _engine, _session_factory

    settings = get_settings()
    _engine = create_async_engine(str(settings.database_url), **engine_options(settings))
    _session_factory = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    logger.info(
        "Contact database initialized",
        url=make_url(str(settings.database_url)).render_as_string(hide_password=True),
        pool_mode=settings.db_pool_mode,
    )


async def close_db() -> None:
    """Dispose the engine. Safe to call when `init_db()` never ran."""
    global _engine, _session_factory

    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None
    logger.info("Contact database closed")


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    if _session_factory is None:
        raise RuntimeError("Contact database not initialized; call init_db() first")
    return _session_factory


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Session that commits on success and rolls back on any error."""
    session = get_session_factory()()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def ping_db() -> None:
    """Round-trip `SELECT 1`. Raises if the database is unreachable."""
    async with get_db_session() as session:
        await session.execute(text("SELECT 1"))
