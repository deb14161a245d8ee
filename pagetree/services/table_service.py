"""
PageTree CMS — Table Service
============================

What:  Listing of table metadata and rendering data for a single table.
Who:   Called by the /tables route handlers.

Records under tables/{name} are handed to the template exactly as stored:
no pagination, no type coercion.
"""

import logging
from typing import Any, Dict

from pagetree.database import StoreClient, join_path, validate_key
from pagetree.exceptions import NotFoundError
from pagetree.models.page import CrudTable
from pagetree.schemas.page import TableView

logger = logging.getLogger(__name__)


def normalize_records(raw: Any) -> Dict[str, Any]:
    """
    Coerce a records node into a key → record mapping.

    The store returns integer-keyed children as a JSON array with nulls in
    the gaps; those come back keyed by their index.
    """
    if raw is None:
        return {}
    if isinstance(raw, list):
        return {str(i): record for i, record in enumerate(raw) if record is not None}
    if isinstance(raw, dict):
        return raw
    return {"value": raw}


class TableService:
    """Business logic for table metadata and records."""

    def list_tables(self, crudtables: Dict[str, Any]) -> Dict[str, CrudTable]:
        """Wrap prefetched crudtables metadata, keyed by store key."""
        return {key: CrudTable.from_store(key, raw) for key, raw in (crudtables or {}).items()}

    async def get_table(self, store: StoreClient, table_name: str) -> TableView:
        """
        Metadata and records for the table called `table_name`.

        Same tie-break as page lookup: the smallest key wins on duplicates.

        Raises:
            NotFoundError:         No crudtables entry carries that name
            MalformedRequestError: `table_name` is not a legal store key
        """
        validate_key(table_name)
        logger.info("Fetching table: %s...", table_name)

        matches = await store.query_equal("crudtables", "name", table_name)
        if not matches:
            raise NotFoundError(resource="table", resource_id=table_name)
        key = min(matches)
        if len(matches) > 1:
            logger.warning("%d tables named %r; using %s", len(matches), table_name, key)
        table = CrudTable.from_store(key, matches[key])

        records = normalize_records(await store.get(join_path("tables", table_name)))
        return TableView(table_name=table_name, table=table.attributes, records=records)


table_service = TableService()
