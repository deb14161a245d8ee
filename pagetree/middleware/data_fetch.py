"""
PageTree CMS — Site Data Prefetch Middleware
============================================

What:  Loads the three top-level collections every admin view relies on
       before the route handler runs.
How:   Three sequential store reads, each defaulting to an empty mapping:
           crudsettings → request.state.site_settings
           pages        → request.state.pages
           crudtables   → request.state.crudtables
When:  Only for paths under /settings, /pages and /tables.

Failure:
    Any store error aborts the request with a plain-text 500. The handler
    never runs with partially loaded data, and nothing is retried here.
"""

import logging
from typing import Iterable, Tuple

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from pagetree.exceptions import StoreError
from pagetree.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)

PREFETCH_PREFIXES: Tuple[str, ...] = ("/settings", "/pages", "/tables")


def needs_prefetch(path: str, prefixes: Iterable[str] = PREFETCH_PREFIXES) -> bool:
    """True for a prefix itself or anything below it (`/pages`, `/pages/x`, not `/pagesx`)."""
    return any(path == prefix or path.startswith(prefix + "/") for prefix in prefixes)


class DataFetchMiddleware(BaseHTTPMiddleware):
    """
    Populates request-scoped site data for the prefetch prefixes.

    The store client is taken from `request.app.state.store`, the same
    instance the route dependencies hand out.
    """

    def __init__(self, app, prefixes: Iterable[str] = PREFETCH_PREFIXES, **kwargs):
        super().__init__(app, **kwargs)
        self.prefixes = tuple(prefixes)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if not needs_prefetch(request.url.path, self.prefixes):
            return await call_next(request)

        store = request.app.state.store
        rid = request_id_var.get("")

        logger.info("[%s] Fetching site data from store...", rid)
        try:
            site_settings = await store.get("crudsettings") or {}
            pages = await store.get("pages") or {}
            crudtables = await store.get("crudtables") or {}
        except StoreError as e:
            logger.error(
                "[%s] Error fetching site data: %s | Context: %s", rid, e.message, e.context
            )
            return PlainTextResponse("Internal Server Error", status_code=500)

        request.state.site_settings = site_settings
        request.state.pages = pages
        request.state.crudtables = crudtables
        logger.info(
            "[%s] Site data fetched (%d settings, %d pages, %d tables).",
            rid,
            len(site_settings),
            len(pages),
            len(crudtables),
        )

        return await call_next(request)
