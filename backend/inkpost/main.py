"""
Inkpost: FastAPI Application Factory
====================================

What:  Creates and configures the FastAPI application instance, and runs it
       under uvicorn for `inkpost serve`.
How:   create_app(settings) builds ServerState, registers middleware,
       exception handlers and routes, and returns the app.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────────────┐ ┌──────────┐                  │
    │  │ Request Context  │→│ Logging  │                  │
    │  └──────────────────┘ └──────────┘                  │
    │                                                     │
    │  Routes:                                            │
    │  ┌──────────┐ ┌───────────┐ ┌──────────────────┐    │
    │  │ GET /    │ │ /static/* │ │ POST /reload (*) │    │
    │  └──────────┘ └───────────┘ └──────────────────┘    │
    │                                                     │
    │  Exception Handlers:                                │
    │  ┌──────────────────────────────────────────────┐   │
    │  │ AppError → 500 + side channel │ 404 → text   │   │
    │  └──────────────────────────────────────────────┘   │
    └─────────────────────────────────────────────────────┘
    (*) only when RELOAD_ROUTE_ENABLED

Lifecycle:
    create_app():  templates compiled, DATABASE_URL parsed (StartupError)
    Startup:       database answers SELECT 1 (StartupError, listener not bound)
    Shutdown:      engine disposed
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from inkpost import __version__
from inkpost.config import Settings
from inkpost.exceptions import AppError, StartupError
from inkpost.middleware.logging import RequestLoggingMiddleware
from inkpost.middleware.request_context import RequestContextMiddleware, RequestIdFilter
from inkpost.routes import debug, pages
from inkpost.state import ServerState

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configure logging for the whole process.

    Called once by the process entry points, never by create_app(), so
    tests keep pytest's own log capture.

    Format: %(asctime)s [%(levelname)s] %(name)s [%(request_id)s] %(message)s
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdFilter())

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s [%(request_id)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    uvicorn runs this before binding its listener: a StartupError raised
    here aborts the process without ever accepting a connection.
    """
    server: ServerState = app.state.server

    logger.info("Inkpost %s starting up...", __version__)
    try:
        await server.check_database()
    except StartupError as e:
        logger.error("Startup failed: %s", e.message)
        await server.dispose()
        raise

    if server.dev_mode:
        logger.warning("DEV_MODE is on: error pages disclose internal details")
    logger.info("serving requests...")

    yield

    logger.info("Inkpost shutting down...")
    await server.dispose()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI, server: ServerState) -> None:
    """
    Handler map:
        AppError           → 500, error stored on request.state.app_error
        HTTPException 404  → 404 "Not found" (plain text)
        other HTTPException → FastAPI default

    Exceptions of any other type are not handled here; they propagate to
    RequestContextMiddleware, which lifts them into AppError.
    """

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError):
        logger.error("Internal error: %s", exc.message, exc_info=exc.error)
        request.state.app_error = exc
        return exc.into_response(server.dev_mode)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return PlainTextResponse("Not found", status_code=404)
        return await http_exception_handler(request, exc)


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Assemble the application.

    Args:
        settings: configuration; read from the environment when omitted.

    Raises:
        pydantic.ValidationError: DATABASE_URL (or another setting) invalid
        StartupError: templates directory missing, template compile error,
                      or unusable DATABASE_URL
    """
    settings = settings or Settings()
    server = ServerState.from_settings(settings)

    app = FastAPI(
        title="Inkpost",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.server = server

    # Last added = first to execute: RequestContext wraps Logging
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestContextMiddleware, server=server)

    register_exception_handlers(app, server)

    app.include_router(pages.router)
    if settings.reload_route_enabled:
        app.include_router(debug.router)
    app.mount(
        "/static",
        StaticFiles(directory=settings.static_dir, check_dir=False),
        name="static",
    )

    return app


def serve() -> int:
    """
    Entry point for `inkpost serve`: configure, build, run uvicorn.

    Returns a process exit code: 1 when configuration or startup fails.
    """
    try:
        settings = Settings()
    except ValidationError as e:
        setup_logging()
        logger.error("Configuration error: %s", e)
        return 1

    setup_logging(settings.log_level)
    try:
        app = create_app(settings)
    except StartupError as e:
        logger.error("Startup failed: %s", e.message)
        return 1

    config = uvicorn.Config(
        app,
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level.lower(),
        log_config=None,
        lifespan="on",
    )
    server = uvicorn.Server(config)
    try:
        server.run()
    except SystemExit:
        # Newer uvicorn exits the process itself when lifespan startup fails
        logger.error("Startup failed: uvicorn aborted before binding")
        return 1
    return 0 if server.started else 1
