# Middleware package init
"""
Inkpost: Middleware Package
===========================

Middleware Chain (order matters):
    Request → [Request Context] → [Logging] → Route Handler

    1. Request Context FIRST: assigns the request id and attaches the
       RequestContext, recovers internal errors on the way out
    2. Logging: logs method, path, status and duration with the request id
"""
