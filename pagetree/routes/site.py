"""
PageTree CMS — Landing Page and Settings Routes
===============================================

What:  GET / (static landing page with the page-creation form) and
       GET /settings (site settings view).
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import FileResponse, HTMLResponse

from pagetree.templating import STATIC_DIR, templates

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Site"])


@router.get("/", include_in_schema=False)
async def index() -> FileResponse:
    """Serve the static landing page."""
    return FileResponse(path=str(STATIC_DIR / "index.html"), media_type="text/html")


@router.get("/settings", response_class=HTMLResponse)
async def view_settings(request: Request):
    """
    Render the settings view.

    Data comes from the prefetch middleware (request.state.site_settings);
    this handler makes no store calls of its own.
    """
    logger.info("Rendering settings...")
    response = templates.TemplateResponse(
        request,
        "settings.html",
        {"settingsData": request.state.site_settings},
    )
    logger.info("Settings rendered successfully.")
    return response
