"""
Inkpost: Exception Hierarchy
============================

What:  Application-specific exceptions.
How:   Each exception carries a message and an optional context dict.
       Route code simply raises; failures reaching the HTTP boundary are
       lifted into AppError and turned into a 500 response.

Exception Hierarchy:
    InkpostError (base)
    ├── AppError       → 500 Internal Server Error (single "internal" kind)
    ├── RenderError    → template compilation or rendering failed
    └── StartupError   → process refuses to start (raised before binding)
"""

import traceback
from typing import Any, Dict, Optional

from starlette.responses import PlainTextResponse


class InkpostError(Exception):
    """
    Base exception for all Inkpost application errors.

    Attributes:
        message:  Human-readable error description
        context:  Additional debug info (logged, never rendered in non-dev mode)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class AppError(InkpostError):
    """
    Internal error at the HTTP boundary, wrapping the underlying failure.

    The wrapped exception is kept on `error` and chained as `__cause__`, so
    both the response body and the diagnostic page read the same instance.

    HTTP: always 500. The exception handler in main.py stores the AppError on
    `request.state.app_error`, where RequestContextMiddleware picks it up and
    renders the diagnostic page.
    """

    kind = "internal"

    def __init__(self, error: BaseException, context: Optional[Dict[str, Any]] = None):
        super().__init__(message=str(error) or type(error).__name__, context=context)
        self.error = error
        self.__cause__ = error

    @classmethod
    def lift(cls, exc: BaseException) -> "AppError":
        """Wrap any exception into an AppError; an AppError is returned as-is."""
        if isinstance(exc, AppError):
            return exc
        return cls(exc)

    def describe(self) -> str:
        """Full formatted detail of the underlying error, traceback included."""
        return "".join(
            traceback.format_exception(type(self.error), self.error, self.error.__traceback__)
        )

    def into_response(self, dev_mode: bool) -> PlainTextResponse:
        if dev_mode:
            body = f"Something went wrong: {self.error}"
        else:
            body = "Something went wrong."
        return PlainTextResponse(body, status_code=500)

    def __repr__(self) -> str:
        return f"AppError(kind={self.kind!r}, error={self.error!r})"


class RenderError(InkpostError):
    """
    Raised when a template cannot be compiled or rendered.

    Covers unknown template names, syntax errors found while compiling the
    template set, and errors raised while rendering (e.g. undefined variables).
    """

    def __init__(
        self,
        message: str = "Template rendering failed",
        template: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if template:
            ctx["template"] = template
        super().__init__(message=message, context=ctx)
        self.template = template


class StartupError(InkpostError):
    """
    Raised when the service cannot start.

    When: templates directory missing, template set fails to compile,
    DATABASE_URL cannot be parsed, or the database is unreachable.
    Always raised before the HTTP listener binds.
    """

    def __init__(
        self,
        message: str = "Service failed to start",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
