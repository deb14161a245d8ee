"""
PageTree CMS — FastAPI Application Factory
==========================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn pagetree.main:app).

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────────┐ ┌──────────┐ ┌─────────────────┐  │
    │  │  Request ID  │→│ Logging  │→│  Data Fetch     │  │
    │  └──────────────┘ └──────────┘ └─────────────────┘  │
    │                                                     │
    │  Routes:                                            │
    │  ┌──────────────┐ ┌──────────┐ ┌─────────────────┐  │
    │  │ / + settings │ │ pages    │ │ tables, health  │  │
    │  └──────────────┘ └──────────┘ └─────────────────┘  │
    │                                                     │
    │  Exception Handlers (plain-text bodies):            │
    │  ┌──────────────────────────────────────────────┐   │
    │  │ NotFound→404 │ Malformed→400 │ Store/other→500│  │
    │  └──────────────────────────────────────────────┘   │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging, config validation, store client creation
    Shutdown: store connection pool closed
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse

from pagetree import __version__
from pagetree.config import settings
from pagetree.database import StoreClient, close_store, create_store
from pagetree.exceptions import (
    HierarchyError,
    MalformedRequestError,
    NotFoundError,
    PageTreeError,
    StoreError,
)
from pagetree.middleware.data_fetch import DataFetchMiddleware
from pagetree.middleware.logging import RequestLoggingMiddleware
from pagetree.middleware.request_id import RequestIDMiddleware, request_id_var
from pagetree.routes import health, pages, site, tables

logger = logging.getLogger(__name__)

INTERNAL_ERROR_BODY = "Internal Server Error"


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    When:   Called once during app startup, before any other initialization.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Per-call debug lines from the HTTP stack are too noisy at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup:
        1. Setup logging
        2. Validate configuration (logged, not fatal)
        3. Create the store client unless one was injected into create_app()

    Shutdown:
        1. Close the store client if this lifespan created it
    """
    setup_logging()
    logger.info("=" * 60)
    logger.info("PageTree CMS starting up...")

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))

    owns_store = getattr(app.state, "store", None) is None
    if owns_store:
        app.state.store = create_store()
    logger.info("Store: %s", settings.store_url)
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("PageTree CMS shutting down...")
    if owns_store:
        await close_store(app.state.store)
        app.state.store = None
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to HTTP status codes.

    Handler hierarchy:
        NotFoundError           → 404 "<Resource> not found"
        MalformedRequestError   → 400 message
        RequestValidationError  → 400 (missing/invalid form fields)
        StoreError              → 500 generic body
        HierarchyError          → 500 generic body
        PageTreeError (base)    → 500 generic body
        Exception (fallback)    → 500 generic body

    Bodies are plain text. Store and hierarchy details only go to the log;
    callers cannot tell an unreachable store from an unexpected exception.
    """

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        rid = request_id_var.get("")
        logger.info("[%s] %s: %s", rid, exc.message, exc.resource_id)
        return PlainTextResponse(exc.message, status_code=404)

    @app.exception_handler(MalformedRequestError)
    async def handle_malformed_request(request: Request, exc: MalformedRequestError):
        rid = request_id_var.get("")
        logger.warning("[%s] Malformed request: %s", rid, exc.message)
        return PlainTextResponse(exc.message, status_code=400)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        rid = request_id_var.get("")
        missing = [
            str(error["loc"][-1]) for error in exc.errors() if error.get("loc")
        ]
        logger.warning("[%s] Malformed request, invalid fields: %s", rid, missing)
        message = "Malformed request"
        if missing:
            message = f"Malformed request: missing or invalid field(s) {', '.join(missing)}"
        return PlainTextResponse(message, status_code=400)

    @app.exception_handler(StoreError)
    async def handle_store_error(request: Request, exc: StoreError):
        rid = request_id_var.get("")
        logger.error("[%s] Store error: %s | Context: %s", rid, exc.message, exc.context)
        return PlainTextResponse(INTERNAL_ERROR_BODY, status_code=500)

    @app.exception_handler(HierarchyError)
    async def handle_hierarchy_error(request: Request, exc: HierarchyError):
        rid = request_id_var.get("")
        logger.error("[%s] Page hierarchy error: %s | Context: %s", rid, exc.message, exc.context)
        return PlainTextResponse(INTERNAL_ERROR_BODY, status_code=500)

    @app.exception_handler(PageTreeError)
    async def handle_app_error(request: Request, exc: PageTreeError):
        rid = request_id_var.get("")
        logger.error("[%s] Application error: %s | Context: %s", rid, exc.message, exc.context)
        return PlainTextResponse(INTERNAL_ERROR_BODY, status_code=500)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return PlainTextResponse(INTERNAL_ERROR_BODY, status_code=500)


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(store: Optional[StoreClient] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        store: Store client to use instead of building one from settings at
               startup. The caller keeps ownership and closes it.

    Returns: Fully configured FastAPI instance ready to receive requests.
    """
    app = FastAPI(
        title="PageTree CMS",
        description="Hierarchical pages and simple tables on a remote key-tree store.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.store = store

    # Middleware executes in reverse order of addition:
    # RequestID → Logging → DataFetch → route
    app.add_middleware(DataFetchMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(site.router)
    app.include_router(pages.router)
    app.include_router(tables.router)
    app.include_router(health.router)

    return app


app = create_app()
