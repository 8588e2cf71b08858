"""
Inkpost: Page Routes
====================

GET / renders `home.jinja2` with the common context (user, dev_mode,
request_id). A RenderError raised here propagates to the middleware.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from inkpost.context import RequestContext, get_request_context

router = APIRouter(tags=["Pages"])


@router.get("/", response_class=HTMLResponse)
async def home(cx: RequestContext = Depends(get_request_context)) -> HTMLResponse:
    return HTMLResponse(cx.render("home.jinja2"))
