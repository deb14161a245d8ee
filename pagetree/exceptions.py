"""
PageTree CMS — Custom Exception Hierarchy
=========================================

What:  Application-specific exceptions for the different failure scenarios.
How:   Each exception carries a message and an optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return plain-text responses with the matching HTTP status code.
Who:   Raised by the store client, services and middleware.

Exception Hierarchy:
    PageTreeError (base)
    ├── NotFoundError            → 404 Not Found
    ├── MalformedRequestError    → 400 Bad Request
    ├── StoreError               → 500 Internal Server Error
    │   └── StoreUnavailableError → 500 (transport failure, retryable)
    └── HierarchyError           → 500 Internal Server Error
        ├── CycleDetectedError
        └── DanglingParentError
"""

from typing import Any, Dict, Optional


class PageTreeError(Exception):
    """
    Base exception for all PageTree application errors.

    Attributes:
        message:  Human-readable error description
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class NotFoundError(PageTreeError):
    """
    Raised when a requested resource does not exist.

    When:    Page-by-name lookup has no match, table metadata has no match.
    HTTP:    404 Not Found

    The store returns null for missing nodes rather than an error; the
    service layer converts that into this exception.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource.capitalize()} not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)
        self.resource = resource
        self.resource_id = resource_id


class MalformedRequestError(PageTreeError):
    """
    Raised when client input cannot be used as-is.

    When:    Missing form fields, or a path parameter that is not a legal
             store key (contains '.', '$', '#', '[', ']' or '/').
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Malformed request",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class StoreError(PageTreeError):
    """
    Raised when the remote store rejects a read or write.

    When:    Non-2xx response (permission denied, missing index, bad request).
    HTTP:    500 Internal Server Error

    The client only ever sees a generic body; the status code and store
    error text are logged server-side from `context`.
    """

    def __init__(
        self,
        message: str = "The data store rejected the operation",
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if status_code is not None:
            ctx["status_code"] = status_code
        super().__init__(message=message, context=ctx)
        self.status_code = status_code


class StoreUnavailableError(StoreError):
    """
    Raised when the remote store cannot be reached.

    When:    Connection refused, DNS failure, TLS failure, timeout.
    HTTP:    500 Internal Server Error

    This is the only error the store client retries, and only when
    STORE_RETRY_ATTEMPTS is above 1.
    """

    def __init__(
        self,
        message: str = "The data store is unreachable",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class HierarchyError(PageTreeError):
    """Base for broken parent-pointer chains discovered during a walk."""


class CycleDetectedError(HierarchyError):
    """
    Raised when a breadcrumb walk revisits a page or exceeds the depth bound.

    Attributes:
        page_id: The page at which the walk stopped
        path:    Page ids visited before the cycle closed, child → root
    """

    def __init__(
        self,
        page_id: str,
        path: Optional[list] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.page_id = page_id
        self.path = list(path or [])
        ctx = context or {}
        ctx["page_id"] = page_id
        ctx["path"] = self.path
        super().__init__(
            message=f"Parent chain loops back to page '{page_id}'",
            context=ctx,
        )


class DanglingParentError(HierarchyError):
    """
    Raised when a parent pointer references a page that does not exist.

    Typical cause: the parent was deleted and its children were left behind.
    """

    def __init__(
        self,
        parent_id: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.parent_id = parent_id
        ctx = context or {}
        ctx["parent_id"] = parent_id
        super().__init__(
            message=f"Parent page '{parent_id}' does not exist",
            context=ctx,
        )
