"""
PageTree CMS — Application Package Initializer
==============================================

What: Marks the `pagetree` directory as a Python package.
Who:  Used by uvicorn (`uvicorn pagetree.main:app`) and pytest.

Architecture Note:
    The backend follows a layered layout:

    ┌─────────────────────────────────────┐
    │     Routes (HTTP + templates)       │  ← form bodies, redirects, renders
    ├─────────────────────────────────────┤
    │   Middleware (request-scoped data)  │  ← request id, access log, prefetch
    ├─────────────────────────────────────┤
    │      Services (business logic)      │  ← pages, breadcrumbs, tables
    ├─────────────────────────────────────┤
    │   Database (remote key-tree store)  │  ← async REST client
    └─────────────────────────────────────┘

    Routes never talk to the store directly for anything beyond handing the
    injected client to a service.
"""

__version__ = "1.0.0"
