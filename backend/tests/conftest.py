"""
Inkpost: Test Configuration (conftest.py)
=========================================

What:  Shared pytest fixtures for the whole suite.
How:   Every test gets its own copy of the package templates, a static
       directory, and a SQLite (aiosqlite) database file under tmp_path.

Fixture Hierarchy (all function-scoped):
    ├── templates_dir:   copy of inkpost/templates
    ├── static_dir:      directory holding styles.css
    ├── make_settings:   Settings factory pointing at the above
    ├── make_app:        create_app() plus the test-only routes below
    ├── client:          httpx AsyncClient, non-dev mode
    └── dev_client:      httpx AsyncClient, dev mode

Test-only routes:
    GET /whoami       RequestContext as JSON
    GET /boom         raises RuntimeError (lifted by the middleware)
    GET /app-error    raises AppError (handled, attached on the side channel)
    GET /bare-500     500 response with no AppError attached
    GET /teapot       418 response
"""

import os
import shutil
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi import Depends, FastAPI
from fastapi.responses import PlainTextResponse
from httpx import ASGITransport, AsyncClient

from inkpost.config import PACKAGE_DIR, Settings
from inkpost.context import RequestContext, get_request_context
from inkpost.exceptions import AppError
from inkpost.main import create_app

os.environ.setdefault("LOG_LEVEL", "WARNING")

BOOM_MESSAGE = "kaboom disk on fire"
WRAPPED_MESSAGE = "wrapped failure text"


def install_test_routes(app: FastAPI) -> None:
    async def whoami(cx: RequestContext = Depends(get_request_context)):
        return {
            "request_id": cx.request_id,
            "user": cx.user,
            "dev_mode": cx.server.dev_mode,
        }

    async def boom():
        raise RuntimeError(BOOM_MESSAGE)

    async def app_error():
        raise AppError(ValueError(WRAPPED_MESSAGE))

    async def bare_500():
        return PlainTextResponse("handler body", status_code=500)

    async def teapot():
        return PlainTextResponse("short and stout", status_code=418)

    app.add_api_route("/whoami", whoami, methods=["GET"])
    app.add_api_route("/boom", boom, methods=["GET"])
    app.add_api_route("/app-error", app_error, methods=["GET"])
    app.add_api_route("/bare-500", bare_500, methods=["GET"])
    app.add_api_route("/teapot", teapot, methods=["GET"])


def asgi_client(app: FastAPI) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.fixture
def templates_dir(tmp_path) -> Path:
    target = tmp_path / "templates"
    shutil.copytree(PACKAGE_DIR / "templates", target)
    return target


@pytest.fixture
def static_dir(tmp_path) -> Path:
    target = tmp_path / "static"
    target.mkdir()
    (target / "styles.css").write_text("body { color: black; }")
    return target


@pytest.fixture
def make_settings(tmp_path, templates_dir, static_dir):
    """Settings factory; keyword arguments override the test defaults."""

    def factory(**overrides) -> Settings:
        values = {
            "database_url": f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
            "templates_dir": templates_dir,
            "static_dir": static_dir,
            "log_level": "WARNING",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return factory


@pytest.fixture
def make_app(make_settings):
    def factory(**overrides) -> FastAPI:
        app = create_app(make_settings(**overrides))
        install_test_routes(app)
        return app

    return factory


@pytest_asyncio.fixture
async def client(make_app):
    async with asgi_client(make_app(dev_mode=False)) as c:
        yield c


@pytest_asyncio.fixture
async def dev_client(make_app):
    async with asgi_client(make_app(dev_mode=True)) as c:
        yield c
