"""
PageTree CMS — Table Route Handlers
===================================

What:  GET /tables (metadata listing) and GET /tables/{table_name} (records).
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from pagetree.database import StoreClient, get_store
from pagetree.services.table_service import table_service
from pagetree.templating import templates

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Tables"])


@router.get("/tables", response_class=HTMLResponse)
async def list_tables(request: Request):
    """Render the prefetched table metadata."""
    logger.info("Rendering tables...")
    crudtables = table_service.list_tables(request.state.crudtables)
    response = templates.TemplateResponse(request, "tables.html", {"crudtables": crudtables})
    logger.info("Tables rendered successfully.")
    return response


@router.get("/tables/{table_name}", response_class=HTMLResponse)
async def view_table(
    request: Request,
    table_name: str,
    store: StoreClient = Depends(get_store),
):
    """Render one table's metadata and all of its records; 404 if unknown."""
    view = await table_service.get_table(store, table_name)

    logger.info("Rendering table...")
    response = templates.TemplateResponse(request, "table.html", view.template_context())
    logger.info("Table rendered successfully.")
    return response
