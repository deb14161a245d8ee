"""
PageTree CMS — Stored Record Models
===================================

What:  Pydantic models for the records kept in the remote store.
How:   Records arrive as plain JSON objects keyed by their store key; the
       `from_store` constructors attach the key and fill legacy gaps.
Who:   Built by the services from store reads; written back via `to_store`.

Store Layout:
    pages/{id}          → Page      {name, contentid, parentid?, createdby?, createdat?}
    content/{id}        → Content   {content}
    crudtables/{id}     → CrudTable {name, ...}
    tables/{name}/{id}  → free-form records (not modelled)
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


def _text(value: Any) -> Optional[str]:
    """Stored scalars as text; numeric keys and millisecond timestamps are common."""
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


class Page(BaseModel):
    """
    A node in the page hierarchy.

    Lifecycle:
        1. Created by POST /create/page together with its Content node
        2. Never rewritten afterwards; content updates target content/{contentid}
        3. Removed by GET /pages/delete/{id}; children keep their parentid

    Legacy records:
        Pages written before the split into pages/ and content/ hold
        `{name, content}` and no `contentid`. For those, `contentid` falls back
        to the page's own key and the inline text is kept in `legacy_content`.
    """

    id: str = Field(description="Store key under pages/")
    name: str = Field(default="", description="Display name, used for lookup")
    contentid: str = Field(description="Key of the Content node under content/")
    parentid: Optional[str] = Field(default=None, description="Key of the parent page")
    createdby: Optional[str] = Field(default=None)
    createdat: Optional[str] = Field(default=None, description="UTC ISO-8601 timestamp")
    legacy_content: Optional[str] = Field(default=None, exclude=True)

    @classmethod
    def from_store(cls, key: str, raw: Any) -> "Page":
        raw = raw if isinstance(raw, dict) else {}
        return cls(
            id=key,
            name=_text(raw.get("name")) or "",
            contentid=_text(raw.get("contentid")) or key,
            parentid=_text(raw.get("parentid")) or None,
            createdby=_text(raw.get("createdby")),
            createdat=_text(raw.get("createdat")),
            legacy_content=raw.get("content") if isinstance(raw.get("content"), str) else None,
        )

    def to_store(self) -> Dict[str, Any]:
        """Serialize for a write, leaving out the key and unset optionals."""
        record = {"name": self.name, "contentid": self.contentid}
        if self.parentid:
            record["parentid"] = self.parentid
        if self.createdby:
            record["createdby"] = self.createdby
        if self.createdat:
            record["createdat"] = self.createdat
        return record


class Content(BaseModel):
    """Body text of a page, stored separately from the page record."""

    content: str = ""

    @classmethod
    def from_store(cls, raw: Any) -> Optional["Content"]:
        if not isinstance(raw, dict):
            return None
        return cls(content=str(raw.get("content") or ""))


class CrudTable(BaseModel):
    """
    Metadata describing a table of records.

    Only `name` is interpreted; every other field is carried through to the
    template untouched.
    """

    id: str
    name: str = ""
    attributes: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_store(cls, key: str, raw: Any) -> "CrudTable":
        raw = raw if isinstance(raw, dict) else {}
        return cls(id=key, name=str(raw.get("name") or ""), attributes=dict(raw))


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
