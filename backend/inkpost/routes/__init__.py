# Routes package init
"""
Inkpost: Route Handlers
=======================

Route Inventory:
    - pages.py:  GET  /         (home page)
    - debug.py:  POST /reload   (template reload, only when RELOAD_ROUTE_ENABLED)

Routes stay thin: they take the RequestContext, render, and return.
Failures are raised, never caught here; RequestContextMiddleware turns them
into the diagnostic page.
"""
