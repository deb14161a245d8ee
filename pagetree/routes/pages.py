"""
PageTree CMS — Page Route Handlers
==================================

What:  Page view, creation, content update and deletion.
How:   Extracts form/path data, delegates to PageService with the injected
       store client, then renders pages.html or redirects.

Route Inventory:
    POST /create/page          → 302 /
    GET  /pages/{page_name}    → pages.html, or 404
    GET  /pages/delete/{id}    → 302 /
    POST /pages/update/{id}    → 302 /pages/{id}

Mutations answer with redirects; the endpoints are driven by HTML forms.
"""

import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from pagetree.database import StoreClient, get_store, validate_key
from pagetree.exceptions import MalformedRequestError
from pagetree.services.page_service import page_service
from pagetree.templating import templates

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Pages"])


def require_form_fields(*fields: str):
    """
    Dependency factory: 400 when a form key is absent from the body.

    Form parameters default to "" so that a submitted-but-empty textarea
    stays a legal value; only a key missing altogether is malformed.
    """

    async def check(request: Request) -> None:
        form = await request.form()
        missing = [field for field in fields if field not in form]
        if missing:
            raise MalformedRequestError(
                message=f"Malformed request: missing field(s) {', '.join(missing)}",
                field=missing[0],
            )

    return check


@router.post("/create/page", dependencies=[Depends(require_form_fields("name", "content"))])
async def create_page(
    name: str = Form(default=""),
    content: str = Form(default=""),
    parentid: Optional[str] = Form(default=None),
    createdby: Optional[str] = Form(default=None),
    store: StoreClient = Depends(get_store),
) -> RedirectResponse:
    """
    Create a page with its content node.

    Neither uniqueness nor non-emptiness of `name` is checked.
    """
    await page_service.create_page(
        store,
        name=name,
        content=content,
        parent_id=parentid,
        created_by=createdby,
    )
    return RedirectResponse(url="/", status_code=302)


@router.get("/pages/delete/{page_id}")
async def delete_page(
    page_id: str,
    store: StoreClient = Depends(get_store),
) -> RedirectResponse:
    """Remove a page; children stay behind as orphans."""
    validate_key(page_id)
    await page_service.delete_page(store, page_id)
    return RedirectResponse(url="/", status_code=302)


@router.post("/pages/update/{page_id}", dependencies=[Depends(require_form_fields("content"))])
async def update_page_content(
    page_id: str,
    content: str = Form(default=""),
    store: StoreClient = Depends(get_store),
) -> RedirectResponse:
    """Overwrite a page's content, then show the page."""
    validate_key(page_id)
    await page_service.update_content(store, page_id, content)
    return RedirectResponse(url=f"/pages/{quote(page_id, safe='')}", status_code=302)


@router.get("/pages/{page_name}", response_class=HTMLResponse)
async def view_page(
    request: Request,
    page_name: str,
    store: StoreClient = Depends(get_store),
):
    """
    Render a page with its breadcrumb trail.

    Errors:
        NotFoundError (no page by that name or id)  → 404
        CycleDetectedError / DanglingParentError    → 500
    """
    view = await page_service.render_page(store, page_name)

    logger.info("Rendering page...")
    context = view.template_context()
    context["pages"] = request.state.pages
    response = templates.TemplateResponse(request, "pages.html", context)
    logger.info("Page rendered successfully.")
    return response
