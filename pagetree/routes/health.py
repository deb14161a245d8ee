"""
PageTree CMS — Health Check Route
=================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Probes the remote store with a shallow read and reports the result.

Status levels:
    - healthy:   store reachable (HTTP 200)
    - unhealthy: store unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from pagetree import __version__
from pagetree.database import StoreClient, get_store
from pagetree.schemas.page import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    responses={503: {"description": "Store unreachable", "model": HealthResponse}},
)
async def health_check(store: StoreClient = Depends(get_store)):
    """Report service and store status."""
    store_ok = await store.ping()
    if not store_ok:
        logger.warning("Health check: store unreachable")

    report = HealthResponse(
        status="healthy" if store_ok else "unhealthy",
        version=__version__,
        store="connected" if store_ok else "disconnected",
        uptime_seconds=round(time.time() - _start_time, 2),
    )
    return JSONResponse(status_code=200 if store_ok else 503, content=report.model_dump())
