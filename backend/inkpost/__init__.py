"""
Inkpost: Application Package
============================

What: Server-rendered web application skeleton (home page, static assets,
      placeholder Post model) plus a small development supervisor.
Who:  Imported by uvicorn through `inkpost.main`, by Alembic, and by pytest.

Layering:

    ┌─────────────────────────────────────┐
    │   Middleware (request context)      │  ← request id, error recovery
    ├─────────────────────────────────────┤
    │   Routes (pages, debug)             │  ← render templates
    ├─────────────────────────────────────┤
    │   ServerState (templates, engine)   │  ← shared process-wide state
    ├─────────────────────────────────────┤
    │   Database / Models                 │  ← async SQLAlchemy
    └─────────────────────────────────────┘
"""

__version__ = "0.1.0"
