"""
PageTree CMS — Page Service
===========================

What:  Lookup, creation, content update and deletion of pages.
How:   Composes store reads/writes; every call receives the store client
       explicitly so the service holds no connection state of its own.
Who:   Called by the page route handlers.

Render Flow (GET /pages/{name}):
    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐
    │ pages query  │───▶│ content read │───▶│ breadcrumbs  │
    │ name == x    │    │ content/{id} │    │ parent walk  │
    └──────────────┘    └──────────────┘    └──────────────┘

Duplicate names:
    Names are not unique. When several pages share a name, the one with the
    smallest key wins. Generated keys sort chronologically, so this is the
    page that was created first.
"""

import logging
from typing import Optional

from pagetree.config import settings
from pagetree.database import StoreClient, generate_push_id, join_path, validate_key
from pagetree.exceptions import MalformedRequestError, NotFoundError
from pagetree.models.page import Content, Page, utc_now_iso
from pagetree.schemas.page import PageView
from pagetree.services.breadcrumb_service import breadcrumb_service

logger = logging.getLogger(__name__)


class PageService:
    """
    Business logic for page operations.

    Responsibilities:
        - get_page_by_name(): name query with id fallback
        - render_page():      page + content + breadcrumb trail
        - create_page():      atomic write of page and content nodes
        - update_content():   partial update of a content node
        - delete_page():      page removal, optionally with its content
    """

    async def get_page_by_name(self, store: StoreClient, name: str) -> Page:
        """
        Find a page by its display name.

        When no page carries the name, `name` is tried as a page key. Update
        redirects point at /pages/{id}, which resolves through this fallback.

        Raises:
            NotFoundError: Neither a name match nor a page with that key exists
        """
        matches = await store.query_equal("pages", "name", name)
        if matches:
            key = min(matches)
            if len(matches) > 1:
                logger.warning(
                    "%d pages named %r; using %s", len(matches), name, key
                )
            return Page.from_store(key, matches[key])

        try:
            validate_key(name)
        except MalformedRequestError:
            raise NotFoundError(resource="page", resource_id=name)

        raw = await store.get(join_path("pages", name))
        if raw is None:
            raise NotFoundError(resource="page", resource_id=name)
        return Page.from_store(name, raw)

    async def get_content(self, store: StoreClient, page: Page) -> str:
        raw = await store.get(join_path("content", page.contentid))
        content = Content.from_store(raw)
        if content is not None:
            return content.content
        if page.legacy_content is not None:
            return page.legacy_content
        logger.warning("Page %s has no content node at content/%s", page.id, page.contentid)
        return ""

    async def render_page(self, store: StoreClient, name: str) -> PageView:
        """
        Collect everything needed to render a page.

        Store calls run one after another: name query, content read, then
        one read per ancestor.
        """
        logger.info("Fetching page: %s...", name)
        page = await self.get_page_by_name(store, name)
        content = await self.get_content(store, page)
        trail = await breadcrumb_service.build_trail(store, page.parentid)

        return PageView(
            page_id=page.id,
            content_id=page.contentid,
            name=page.name,
            content=content,
            parent_id=page.parentid,
            created_by=page.createdby,
            created_at=page.createdat,
            breadcrumb_trail=trail,
        )

    async def create_page(
        self,
        store: StoreClient,
        name: str,
        content: str,
        parent_id: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Page:
        """
        Create a page and its content node in one multi-location write.

        The page key is generated locally so both nodes can share it:
        pages/{id}.contentid == id and content/{id} holds the text.

        Raises:
            MalformedRequestError: `parent_id` is not a key of an existing page
        """
        parent_id = parent_id or None
        if parent_id is not None:
            validate_key(parent_id)
            if await store.get(join_path("pages", parent_id)) is None:
                raise MalformedRequestError(
                    message=f"Parent page '{parent_id}' does not exist",
                    field="parentid",
                )

        page_id = generate_push_id()
        page = Page(
            id=page_id,
            name=name,
            contentid=page_id,
            parentid=parent_id,
            createdby=created_by or None,
            createdat=utc_now_iso(),
        )

        logger.info("Creating new page %s (%r)...", page_id, name)
        await store.update(
            "",
            {
                f"pages/{page_id}": page.to_store(),
                f"content/{page_id}": {"content": content},
            },
        )
        logger.info("New page created: %s", page_id)
        return page

    async def update_content(self, store: StoreClient, page_id: str, content: str) -> None:
        """
        Overwrite the text stored at content/{page_id}.

        The page itself is not looked up: updating an id with no page behind
        it creates a content node nobody references.
        """
        logger.info("Updating page content: %s...", page_id)
        await store.update(join_path("content", page_id), {"content": content})
        logger.info("Page content updated: %s", page_id)

    async def delete_page(
        self,
        store: StoreClient,
        page_id: str,
        cascade_content: Optional[bool] = None,
    ) -> None:
        """
        Remove pages/{page_id}.

        Child pages keep their parentid and become orphans. The content node
        is removed as well only when `cascade_content` (default: settings)
        is set; both deletions then happen in one atomic write.
        """
        cascade = settings.delete_cascade_content if cascade_content is None else cascade_content
        page_path = join_path("pages", page_id)
        logger.info("Deleting page: %s (cascade_content=%s)...", page_id, cascade)

        if not cascade:
            await store.remove(page_path)
        else:
            raw = await store.get(page_path)
            content_id = Page.from_store(page_id, raw).contentid if raw is not None else page_id
            await store.update(
                "",
                {page_path: None, join_path("content", content_id): None},
            )
        logger.info("Page deleted: %s", page_id)


# ── Singleton Instance ────────────────────────────────────────────────────
page_service = PageService()
