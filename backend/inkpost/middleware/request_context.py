"""
Inkpost: Request Context Middleware
===================================

What:  Wraps every request with pre- and post-processing: attaches a
       RequestContext before the route runs, and replaces internal-error
       responses with a rendered diagnostic page afterwards.
Why:   Routes stay thin. They raise on failure, and this layer is the single
       point that turns any failure into an HTML page instead of a bare 500.
How:   uuid4 request id, RequestContext on request.state, request id in a
       ContextVar for logging, error page on the way out.
Who:   Applied to every request via Starlette middleware.
When:  Outermost application middleware (added last in create_app()).

Request flow:
    1. request_id = uuid4 text; session resolved (currently always None)
    2. RequestContext stored on request.state.context; request id stored in
       request_id_var so every log record carries it
    3. await call_next(request)
    4. exception from the inner chain → lifted into AppError
       status 500 + request.state.app_error → diagnostic page
       anything else → passed through unchanged
    5. X-Request-ID header added to the outgoing response

Side channel:
    The AppError exception handler (main.py) stores the error on
    request.state.app_error. request.state is backed by the ASGI scope, so
    the handler and this middleware see the same object even though
    call_next hands back a new response.

Nothing raised inside the route chain escapes this layer. call_next is
stateless: the inner ASGI app is shared by concurrent requests without
per-call copies.
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from inkpost.context import RequestContext, resolve_user_session
from inkpost.debug_page import render_debug_page
from inkpost.exceptions import AppError
from inkpost.state import ServerState

logger = logging.getLogger(__name__)

# ── Context Variable ──────────────────────────────────────────────────────
# Coroutine-local: concurrent requests on the same thread each see their own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


class RequestIdFilter(logging.Filter):
    """Adds `request_id` from the current context to every LogRecord."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("-")
        return True


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Attaches a RequestContext to each request and recovers internal errors.

    Behavior:
        1. Fresh uuid4 request id per request (client headers are ignored)
        2. Context and id available to handlers, dependencies and loggers
        3. Any exception or AppError-backed 500 becomes the diagnostic page
        4. Every other response is returned unchanged
    """

    def __init__(self, app: ASGIApp, server: ServerState):
        super().__init__(app)
        self.server = server

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = str(uuid.uuid4())
        user = resolve_user_session(request, self.server)
        cx = RequestContext(server=self.server, request_id=rid, user=user)

        # Why request.state: handlers read it through get_request_context
        request.state.context = cx
        token = request_id_var.set(rid)
        # Reset on the way out so the id never leaks into the next request
        try:
            response = await self._call_inner(request, call_next, cx)
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = rid
        return response

    async def _call_inner(
        self, request: Request, call_next: RequestResponseEndpoint, cx: RequestContext
    ) -> Response:
        try:
            response = await call_next(request)
        except Exception as exc:
            lifted = AppError.lift(exc)
            logger.error(
                "Unhandled error in %s %s: %s",
                request.method,
                request.url.path,
                lifted.message,
                exc_info=lifted.error,
            )
            return render_debug_page(cx, lifted)

        if response.status_code != 500:
            return response

        # Why the side channel: a plain 500 from a handler is left untouched
        err: Optional[AppError] = getattr(request.state, "app_error", None)
        if err is None:
            return response
        return render_debug_page(cx, err)
