"""
PageTree CMS — Breadcrumb Builder
=================================

What:  Builds the ancestor trail (root → immediate parent) for a page.
How:   Follows `parentid` pointers upward one store read at a time, then
       reverses the collected ancestors.
Who:   Called by PageService when rendering a page.

Walk Example:
    pages/c {parentid: b} → pages/b {parentid: a} → pages/a {no parent}
    build_trail(store, "b") visits b, a and returns [a, b].

Broken chains:
    - A page id seen twice, or more than `max_depth` ancestors, raises
      CycleDetectedError instead of looping forever.
    - A parent id with no page behind it raises DanglingParentError, or
      ends the walk early when the policy is "truncate".
"""

import logging
from typing import List, Optional

from pagetree.config import settings
from pagetree.database import StoreClient, join_path
from pagetree.exceptions import CycleDetectedError, DanglingParentError
from pagetree.models.page import Page
from pagetree.schemas.page import Breadcrumb

logger = logging.getLogger(__name__)


class BreadcrumbService:
    """
    Parent-pointer walker.

    The walk is sequential: each read depends on the previous page's
    parentid. Concurrent writes between reads are not isolated from it.
    """

    async def build_trail(
        self,
        store: StoreClient,
        parent_id: Optional[str],
        max_depth: Optional[int] = None,
        on_dangling: Optional[str] = None,
    ) -> List[Breadcrumb]:
        """
        Return the ancestors of a page whose parent is `parent_id`.

        Args:
            store:       Store client
            parent_id:   Immediate parent of the page being rendered; None or
                         empty for a root page
            max_depth:   Most ancestors to visit (default: settings)
            on_dangling: "fail" or "truncate" (default: settings)

        Returns:
            Breadcrumbs ordered root first; empty for a root page.

        Raises:
            CycleDetectedError:  Parent pointers loop, or the chain is deeper
                                 than `max_depth`
            DanglingParentError: A parent id does not resolve and the policy
                                 is "fail"
        """
        limit = max_depth or settings.breadcrumb_max_depth
        policy = on_dangling or settings.breadcrumb_on_dangling

        trail: List[Breadcrumb] = []
        visited: List[str] = []
        current = parent_id

        while current:
            if current in visited:
                logger.error(
                    "Cycle in page hierarchy at %s (walked %s)",
                    current,
                    " → ".join(visited),
                )
                raise CycleDetectedError(page_id=current, path=visited)
            if len(visited) >= limit:
                logger.error("Page hierarchy deeper than %d at %s", limit, current)
                raise CycleDetectedError(
                    page_id=current,
                    path=visited,
                    context={"max_depth": limit},
                )
            visited.append(current)

            raw = await store.get(join_path("pages", current))
            if raw is None:
                if policy == "truncate":
                    logger.warning(
                        "Parent page %s is missing; truncating breadcrumb trail", current
                    )
                    break
                raise DanglingParentError(parent_id=current)

            parent = Page.from_store(current, raw)
            trail.append(Breadcrumb(id=current, name=parent.name))
            current = parent.parentid

        trail.reverse()
        return trail


breadcrumb_service = BreadcrumbService()
