"""
Inkpost: Database Engine & Session Management
=============================================

What:  Async SQLAlchemy engine construction, declarative Base, and the
       per-request session dependency.
How:   ServerState builds one engine (and its session factory) at startup
       through build_engine(); route handlers receive sessions through
       get_db_session(), which reads the factory from the RequestContext.

Connection Pooling:
    pool_size / max_overflow:  bounded set of connections shared by all requests
    pool_timeout:              checkout waits this long, then the pool raises
    pool_pre_ping:             validates connections before use
    SQLite (aiosqlite) keeps SQLAlchemy's default pool for its dialect.
"""

from typing import Any, AsyncGenerator, Dict

from fastapi import Depends
from sqlalchemy.exc import ArgumentError, InvalidRequestError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from inkpost.config import Settings
from inkpost.context import RequestContext, get_request_context
from inkpost.exceptions import StartupError


class Base(DeclarativeBase):
    """Base class for all ORM models; its metadata drives Alembic."""
    pass


def _engine_options(settings: Settings) -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": settings.log_level == "DEBUG"}
    if not settings.is_sqlite:
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=3600,
        )
    return options


def build_engine(settings: Settings) -> AsyncEngine:
    """
    Create the async engine for DATABASE_URL.

    No connection is opened here; connectivity is checked by
    ServerState.check_database() during startup.

    Raises:
        StartupError: the URL cannot be parsed or its driver is not installed.
    """
    try:
        return create_async_engine(settings.database_url, **_engine_options(settings))
    except (ArgumentError, InvalidRequestError, ImportError) as exc:
        raise StartupError(
            message=f"Invalid DATABASE_URL: {exc}",
            context={"error": type(exc).__name__},
        ) from exc


async def get_db_session(
    cx: RequestContext = Depends(get_request_context),
) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    Commits when the handler returns normally, rolls back and re-raises on
    any error. The session context manager returns the connection to the
    pool in both cases.

    Example:
        @router.get("/posts")
        async def list_posts(db: AsyncSession = Depends(get_db_session)):
            result = await db.execute(select(Post))
            return result.scalars().all()
    """
    async with cx.server.session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
