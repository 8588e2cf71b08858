"""
Inkpost: Server State
=====================

What:  Process-wide state shared by every request: settings, the template
       store, the database engine and its session factory.
How:   Built once by create_app() via ServerState.from_settings() and passed
       by reference to the middleware (and from there, through
       RequestContext, to every handler). Read-only after construction except
       for template reload.

Startup Checks (fail fast, before the listener binds):
    1. templates directory exists and every template compiles
    2. DATABASE_URL parses and its driver is importable
    3. the database answers `SELECT 1` (async, run from the lifespan)
"""

import logging
from dataclasses import dataclass

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from inkpost.config import Settings
from inkpost.database import build_engine
from inkpost.exceptions import RenderError, StartupError
from inkpost.templating import TemplateStore

logger = logging.getLogger(__name__)


@dataclass
class ServerState:
    settings: Settings
    templates: TemplateStore
    engine: AsyncEngine
    session_factory: async_sessionmaker

    @classmethod
    def from_settings(cls, settings: Settings) -> "ServerState":
        """
        Raises:
            StartupError: missing templates directory, template compile
            failure, or unusable DATABASE_URL.
        """
        templates_dir = settings.templates_dir
        if not templates_dir.is_dir():
            raise StartupError(
                message=f"{templates_dir} directory does not exist",
                context={"templates_dir": str(templates_dir)},
            )
        try:
            templates = TemplateStore(templates_dir)
        except RenderError as exc:
            raise StartupError(message=exc.message, context=exc.context) from exc

        engine = build_engine(settings)
        session_factory = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )
        return cls(
            settings=settings,
            templates=templates,
            engine=engine,
            session_factory=session_factory,
        )

    @property
    def dev_mode(self) -> bool:
        return self.settings.dev_mode

    def reload_templates(self) -> None:
        self.templates.reload()

    async def check_database(self) -> None:
        """
        Open one connection and run `SELECT 1`.

        Raises:
            StartupError: the database is unreachable or rejects the query.
        """
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as exc:
            raise StartupError(
                message=f"Database unreachable at {self.engine.url!r}: {exc}",
                context={"error": type(exc).__name__},
            ) from exc
        logger.info("Database reachable: %s", self.engine.url.render_as_string(hide_password=True))

    async def dispose(self) -> None:
        """Close every pooled connection."""
        await self.engine.dispose()
