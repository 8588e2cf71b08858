"""
Inkpost: Debug Routes
=====================

POST /reload recompiles every template from disk.

Only mounted when RELOAD_ROUTE_ENABLED is set (`inkpost dev` sets it for the
service it launches). Anywhere else the path is unmatched and answers 404.
"""

import logging

from fastapi import APIRouter, Depends, Response

from inkpost.context import RequestContext, get_request_context

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Debug"])


@router.post("/reload")
async def reload_templates(cx: RequestContext = Depends(get_request_context)) -> Response:
    logger.info("reloading templates...")
    cx.server.reload_templates()
    return Response(status_code=200)
