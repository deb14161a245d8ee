"""
PageTree CMS — Test Configuration (conftest.py)
===============================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixtures:
    ├── memory_store: In-memory stand-in for the remote store
    ├── seeded_store: memory_store pre-loaded with a small page tree and a table
    └── test_client:  HTTPX AsyncClient wired to an app using seeded_store
"""

import copy
import os
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Override settings for testing BEFORE any app imports
os.environ["STORE_URL"] = "https://test-store.example.firebasedatabase.app"
os.environ["STORE_AUTH_TOKEN"] = ""
os.environ["LOG_LEVEL"] = "WARNING"

from pagetree.database import generate_push_id  # noqa: E402
from pagetree.exceptions import StoreUnavailableError  # noqa: E402


# ══════════════════════════════════════════════════════════════════════════
# In-Memory Store
# ══════════════════════════════════════════════════════════════════════════

def _segments(path: str) -> List[str]:
    return [segment for segment in path.strip("/").split("/") if segment]


def _prune(node: Any) -> Any:
    """Drop empty objects, the way the store never keeps an empty node."""
    if not isinstance(node, dict):
        return node
    for key in list(node):
        node[key] = _prune(node[key])
        if node[key] is None or node[key] == {}:
            del node[key]
    return node


class InMemoryStore:
    """
    Same interface as RealtimeDatabase, backed by a nested dict.

    Extras for tests:
        data:         the whole tree, readable and writable directly
        calls:        (method, path) for every operation, in order
        fail_paths:   paths whose operations raise StoreUnavailableError
        unreachable:  makes ping() report False
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        self.data: Dict[str, Any] = copy.deepcopy(data or {})
        self.calls: List[Tuple[str, str]] = []
        self.fail_paths: Set[str] = set()
        self.unreachable = False

    def _record(self, method: str, path: str) -> None:
        self.calls.append((method, path))
        if path in self.fail_paths:
            raise StoreUnavailableError(context={"method": method, "path": path})

    def _read(self, segments: List[str]) -> Any:
        node: Any = self.data
        for segment in segments:
            if not isinstance(node, dict) or segment not in node:
                return None
            node = node[segment]
        return copy.deepcopy(node)

    def _write(self, segments: List[str], value: Any) -> None:
        if not segments:
            self.data = copy.deepcopy(value) if isinstance(value, dict) else {}
            return
        node = self.data
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                if value is None:
                    return
                child = node[segment] = {}
            node = child
        if value is None:
            node.pop(segments[-1], None)
        else:
            node[segments[-1]] = copy.deepcopy(value)
        _prune(self.data)

    async def get(self, path: str, shallow: bool = False) -> Any:
        self._record("GET", path)
        value = self._read(_segments(path))
        if value == {}:
            return None
        if shallow and isinstance(value, dict):
            return {key: True for key in value}
        return value

    async def query_equal(self, path: str, child: str, value: Any) -> Dict[str, Any]:
        self._record("QUERY", path)
        node = self._read(_segments(path)) or {}
        # Newest first: callers must not rely on the order the store returns
        return {
            key: record
            for key, record in reversed(list(node.items()))
            if isinstance(record, dict) and record.get(child) == value
        }

    async def set(self, path: str, value: Any) -> None:
        self._record("PUT", path)
        self._write(_segments(path), value)

    async def update(self, path: str, values: Dict[str, Any]) -> None:
        self._record("PATCH", path)
        base = _segments(path)
        for key, value in values.items():
            self._write(base + _segments(key), value)

    async def push(self, path: str, value: Any) -> str:
        self._record("POST", path)
        key = generate_push_id()
        self._write(_segments(path) + [key], value)
        return key

    async def remove(self, path: str) -> None:
        self._record("DELETE", path)
        self._write(_segments(path), None)

    async def ping(self) -> bool:
        return not self.unreachable


# ══════════════════════════════════════════════════════════════════════════
# Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def memory_store():
    """An empty in-memory store."""
    return InMemoryStore()


@pytest.fixture
def seeded_store():
    """
    A store holding:
        pages:   root ← docs ← guide   (guide's parent is docs, docs' is root)
        content: one node per page
        crudtables/t1: metadata for the "people" table with two records
        crudsettings: a site title
    """
    return InMemoryStore(
        {
            "crudsettings": {"siteTitle": "PageTree Test"},
            "pages": {
                "p-root": {"name": "Home", "contentid": "p-root", "createdby": "alice"},
                "p-docs": {"name": "Docs", "contentid": "p-docs", "parentid": "p-root"},
                "p-guide": {
                    "name": "Guide",
                    "contentid": "p-guide",
                    "parentid": "p-docs",
                    "createdby": "bob",
                    "createdat": "2024-01-15T12:00:00+00:00",
                },
            },
            "content": {
                "p-root": {"content": "Welcome home"},
                "p-docs": {"content": "All the docs"},
                "p-guide": {"content": "Step one, step two"},
            },
            "crudtables": {
                "t1": {"name": "people", "columns": "name,age"},
            },
            "tables": {
                "people": {
                    "r1": {"name": "Ada", "age": 36},
                    "r2": {"name": "Linus", "age": 28},
                },
            },
        }
    )


@pytest_asyncio.fixture
async def test_client(seeded_store):
    """
    HTTPX AsyncClient talking to a fresh app backed by `seeded_store`.

    Redirects are not followed so tests can assert on them.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from pagetree.main import create_app

    app = create_app(store=seeded_store)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
