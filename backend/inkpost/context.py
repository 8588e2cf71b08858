"""
Inkpost: Request Context
========================

What:  The per-request data bundle handed to every route handler.
How:   RequestContextMiddleware builds one RequestContext per request and
       stores it on `request.state.context`; handlers receive it through the
       get_request_context dependency.

Lifetime:
    Created before the route handler runs, dropped with the request.
    Holds a shared reference to ServerState; owns nothing else.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from starlette.requests import Request

from inkpost.exceptions import RenderError

if TYPE_CHECKING:
    from inkpost.state import ServerState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserSession:
    """Placeholder for an authenticated session. Nothing populates it yet."""


def resolve_user_session(request: Request, server: "ServerState") -> Optional[UserSession]:
    """
    Look up the session for this request.

    Extension point: always returns None. Cookie-based lookup goes here once
    sessions exist.
    """
    return None


@dataclass
class RequestContext:
    server: "ServerState"
    request_id: str
    user: Optional[UserSession] = None

    def common(self) -> Dict[str, Any]:
        """Variables every page receives."""
        return {
            "user": self.user,
            "dev_mode": self.server.dev_mode,
            "request_id": self.request_id,
        }

    def render(self, template: str, extra: Optional[Mapping[str, Any]] = None) -> str:
        """
        Render a template with the common variables plus `extra`.

        All page rendering goes through here, so a failure is logged once at
        error level before RenderError propagates.
        """
        params = self.common()
        if extra:
            params.update(extra)
        try:
            return self.server.templates.render(template, params)
        except RenderError as exc:
            logger.error("failed to render %s: %s", template, exc.message)
            raise


def get_request_context(request: Request) -> RequestContext:
    """FastAPI dependency returning the context attached by the middleware."""
    return request.state.context
