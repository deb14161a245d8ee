"""
PageTree CMS — View Schemas
===========================

What:  Pydantic models describing what the services hand to the templates
       (and the JSON health report).
Who:   Returned by services, unpacked into template contexts by the routes.

Schemas are separate from the stored record models so that a template
never depends on the store layout directly.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Breadcrumb(BaseModel):
    """One ancestor in a breadcrumb trail."""

    id: str
    name: str


class PageView(BaseModel):
    """
    Everything pages.html needs to render a single page.

    `template_context()` keeps the variable names the templates have always
    used (pageName, pageId, breadcrumbTrail, ...).
    """

    page_id: str = Field(description="Store key of the page")
    content_id: str = Field(description="Store key of the content node")
    name: str
    content: str
    parent_id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[str] = None
    breadcrumb_trail: List[Breadcrumb] = Field(default_factory=list)

    def template_context(self) -> Dict[str, Any]:
        return {
            "pageName": self.name,
            "pageId": self.content_id,
            "pageKey": self.page_id,
            "content": self.content,
            "parentId": self.parent_id,
            "createdby": self.created_by,
            "createdat": self.created_at,
            "breadcrumbTrail": self.breadcrumb_trail,
        }


class TableView(BaseModel):
    """Table metadata plus its records, rendered verbatim by table.html."""

    table_name: str
    table: Dict[str, Any]
    records: Dict[str, Any] = Field(default_factory=dict)

    def template_context(self) -> Dict[str, Any]:
        return {
            "tableName": self.table_name,
            "table": self.table,
            "records": self.records,
        }


class HealthResponse(BaseModel):
    """
    Health check response showing service and store status.
    Who:   Returned by GET /health for monitoring and load balancer probes.
    """

    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    store: str = Field(description="Store connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")
