"""
Inkpost: Diagnostic Error Page
==============================

What:  Renders the page that replaces a bare 500 response.
How:   `500.jinja2` is rendered through RequestContext.render() with a single
       `error` variable. Its content depends on dev mode:

           dev mode:      full formatted error, traceback included
           non-dev mode:  "No debug info available." (template adds a
                          contact-the-administrator message)

       If `500.jinja2` itself fails, a plain-text message is returned
       instead. In dev mode it names both the rendering failure and the
       original error; otherwise it is one generic sentence.
"""

import html

from starlette.responses import HTMLResponse

from inkpost.context import RequestContext
from inkpost.exceptions import AppError, RenderError

ERROR_TEMPLATE = "500.jinja2"

NO_DEBUG_INFO = "No debug info available."

GENERIC_FAILURE = (
    "Internal server error; Something went terribly wrong! "
    "Please contact the site's administrators if you can."
)


def render_debug_page(cx: RequestContext, err: AppError) -> HTMLResponse:
    dev_mode = cx.server.dev_mode
    detail = err.describe() if dev_mode else NO_DEBUG_INFO

    try:
        page = cx.render(ERROR_TEMPLATE, {"error": detail})
    except RenderError as render_exc:
        if dev_mode:
            page = html.escape(
                f"Failed to render `{ERROR_TEMPLATE}`: {render_exc.message} "
                f"to display another error: {detail}"
            )
        else:
            page = GENERIC_FAILURE
    return HTMLResponse(page, status_code=500)
