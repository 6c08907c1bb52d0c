"""Database configuration and session management.

This module constructs an asynchronous SQLAlchemy engine and session
factory for the application from ``DATABASE_URL``.  Plain ``sqlite://`` and
``postgresql://`` URLs are upgraded to their async drivers (``aiosqlite`` and
``psycopg``).  When no URL is configured a local SQLite database is used only
if ``DB_DEV_FALLBACK_SQLITE`` is enabled.
"""

from __future__ import annotations

import logging
from typing import AsyncGenerator, Any

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from prompt_manager.core.config import settings

logger = logging.getLogger(__name__)

SQLITE_FALLBACK_URL = "sqlite+aiosqlite:///./app.db"


def normalize_database_url(raw_url: str) -> str:
    """Return ``raw_url`` rewritten to use an async driver."""
    url_obj = make_url(raw_url)
    driver = url_obj.drivername or ""
    if driver == "sqlite":
        url_obj = url_obj.set(drivername="sqlite+aiosqlite")
    elif driver in {"postgresql", "postgres", "postgresql+psycopg2", "postgresql+asyncpg"}:
        q = dict(url_obj.query or {})
        # Always require SSL unless explicitly configured
        if not q.get("sslmode"):
            q["sslmode"] = "require"
        url_obj = url_obj.set(drivername="postgresql+psycopg", query=q)
    return url_obj.render_as_string(hide_password=False)


def _resolve_database_url() -> str:
    if settings.DATABASE_URL:
        return normalize_database_url(settings.DATABASE_URL)
    if not settings.DB_DEV_FALLBACK_SQLITE:
        raise RuntimeError(
            "No database URL provided via DATABASE_URL; with "
            "DB_DEV_FALLBACK_SQLITE=false, a database URL is required."
        )
    return SQLITE_FALLBACK_URL


def _build_engine(url: str):
    engine_kwargs: dict[str, Any] = dict(echo=False)
    if url.startswith("sqlite") and ":memory:" in url:
        # One shared connection so every session sees the same in-memory db
        engine_kwargs.update(connect_args={"check_same_thread": False}, poolclass=StaticPool)
    else:
        engine_kwargs.update(pool_pre_ping=True)
    return create_async_engine(url, **engine_kwargs)


db_url = _resolve_database_url()
engine = _build_engine(db_url)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

# Declarative base
Base = declarative_base()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that yields a database session scoped to the request."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db() -> None:
    """Create all tables defined on ``Base``.

    In development, when the configured database is unreachable and
    ``DB_DEV_FALLBACK_SQLITE`` is set, switch to a local SQLite file instead
    of failing startup.
    """
    global engine, AsyncSessionLocal
    # Import all models to ensure metadata is populated
    from prompt_manager.models import tables  # noqa: F401

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        if (settings.ENVIRONMENT or "development").lower() == "development" and settings.DB_DEV_FALLBACK_SQLITE:
            logger.warning("DB init failed (%s); falling back to SQLite for development", e)
            engine = _build_engine(SQLITE_FALLBACK_URL)
            AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        else:
            raise

