"""
PageTree CMS — Remote Store Client Tests
========================================

What:  Tests for RealtimeDatabase against httpx.MockTransport.
How:   Each test installs a handler that inspects the outgoing request and
       returns a canned store response; no network access.

What we test:
    ✅ URL building, key validation and query-parameter encoding
    ✅ Verb mapping for set/update/push/remove
    ✅ Error mapping (HTTP status → StoreError, transport → StoreUnavailableError)
    ✅ Retry only when configured, and only for transport failures
    ✅ Push ids sort chronologically
"""

import json

import httpx
import pytest

from pagetree.database import (
    PushIdGenerator,
    RealtimeDatabase,
    filter_equal,
    join_path,
    validate_key,
)
from pagetree.exceptions import MalformedRequestError, StoreError, StoreUnavailableError

BASE_URL = "https://unit.example.firebasedatabase.app"


def make_db(handler, **kwargs) -> RealtimeDatabase:
    kwargs.setdefault("min_wait", 1)
    return RealtimeDatabase(BASE_URL, transport=httpx.MockTransport(handler), **kwargs)


class TestKeys:
    """Tests for store key validation."""

    def test_valid_keys(self):
        assert validate_key("-NxYz_123") == "-NxYz_123"
        assert validate_key("Hello World") == "Hello World"

    @pytest.mark.parametrize("key", ["", "a.b", "a$b", "a#b", "a[b", "a]b", "tab\there"])
    def test_invalid_keys(self, key):
        with pytest.raises(MalformedRequestError):
            validate_key(key)

    def test_join_path(self):
        assert join_path("pages", "abc") == "pages/abc"
        with pytest.raises(MalformedRequestError):
            join_path("pages", "a.b")


class TestRequests:
    """Tests for the REST mapping."""

    @pytest.mark.asyncio
    async def test_get_builds_json_url(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            return httpx.Response(200, json={"name": "Home"})

        db = make_db(handler)
        try:
            value = await db.get("pages/p1")
        finally:
            await db.aclose()

        assert value == {"name": "Home"}
        assert seen["method"] == "GET"
        assert seen["url"] == f"{BASE_URL}/pages/p1.json"

    @pytest.mark.asyncio
    async def test_get_missing_node_returns_none(self):
        db = make_db(lambda request: httpx.Response(200, content=b"null"))
        try:
            assert await db.get("pages/nothing") is None
        finally:
            await db.aclose()

    @pytest.mark.asyncio
    async def test_get_encodes_spaces_in_keys(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.raw_path.decode()
            return httpx.Response(200, json=None)

        db = make_db(handler)
        try:
            await db.get("tables/my table")
        finally:
            await db.aclose()

        assert seen["path"] == "/tables/my%20table.json"

    @pytest.mark.asyncio
    async def test_query_equal_encodes_params(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"k1": {"name": "Home"}})

        db = make_db(handler)
        try:
            result = await db.query_equal("pages", "name", "Home")
        finally:
            await db.aclose()

        assert result == {"k1": {"name": "Home"}}
        assert seen["params"] == {"orderBy": '"name"', "equalTo": '"Home"'}

    @pytest.mark.asyncio
    async def test_query_equal_no_match(self):
        db = make_db(lambda request: httpx.Response(200, json={}))
        try:
            assert await db.query_equal("pages", "name", "Nope") == {}
        finally:
            await db.aclose()

    @pytest.mark.asyncio
    async def test_query_equal_without_index_filters_locally(self):
        """A 400 "Index not defined" falls back to reading and filtering the node."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(dict(request.url.params))
            if "orderBy" in request.url.params:
                return httpx.Response(
                    400, json={"error": "Index not defined, add \".indexOn\": \"name\""}
                )
            return httpx.Response(
                200,
                json={
                    "k1": {"name": "Home"},
                    "k2": {"name": "Docs"},
                    "k0": {"name": "Home"},
                },
            )

        db = make_db(handler)
        try:
            first = await db.query_equal("pages", "name", "Home")
            second = await db.query_equal("pages", "name", "Docs")
        finally:
            await db.aclose()

        assert first == {"k1": {"name": "Home"}, "k0": {"name": "Home"}}
        assert min(first) == "k0"
        assert second == {"k2": {"name": "Docs"}}
        # The indexed query is not retried once the index is known to be missing
        assert [("orderBy" in params) for params in seen] == [True, False, False]

    @pytest.mark.asyncio
    async def test_query_equal_other_400_still_raises(self):
        db = make_db(lambda request: httpx.Response(400, json={"error": "Invalid data"}))
        try:
            with pytest.raises(StoreError):
                await db.query_equal("pages", "name", "x")
        finally:
            await db.aclose()

    def test_filter_equal_handles_arrays(self):
        assert filter_equal([None, {"name": "a"}, {"name": "b"}], "name", "b") == {
            "2": {"name": "b"}
        }
        assert filter_equal(None, "name", "b") == {}

    @pytest.mark.asyncio
    async def test_auth_token_is_sent(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=None)

        db = make_db(handler, auth_token="s3cret")
        try:
            await db.get("crudsettings")
        finally:
            await db.aclose()

        assert seen["params"] == {"auth": "s3cret"}

    @pytest.mark.asyncio
    async def test_write_verbs(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content) if request.content else None
            seen.append((request.method, request.url.path, body))
            if request.method == "POST":
                return httpx.Response(200, json={"name": "-Nnew"})
            return httpx.Response(200, json=body)

        db = make_db(handler)
        try:
            await db.set("crudsettings", {"a": 1})
            await db.update("", {"pages/x": {"name": "X"}, "content/x": {"content": ""}})
            key = await db.push("crudtables", {"name": "people"})
            await db.remove("pages/x")
        finally:
            await db.aclose()

        assert key == "-Nnew"
        assert seen == [
            ("PUT", "/crudsettings.json", {"a": 1}),
            ("PATCH", "/.json", {"pages/x": {"name": "X"}, "content/x": {"content": ""}}),
            ("POST", "/crudtables.json", {"name": "people"}),
            ("DELETE", "/pages/x.json", None),
        ]

    @pytest.mark.asyncio
    async def test_update_rejects_illegal_child_path(self):
        db = make_db(lambda request: httpx.Response(200, json=None))
        try:
            with pytest.raises(MalformedRequestError):
                await db.update("", {"pages/a.b": None})
        finally:
            await db.aclose()


class TestErrors:
    """Tests for error mapping and retry."""

    @pytest.mark.asyncio
    async def test_http_error_maps_to_store_error(self):
        db = make_db(lambda request: httpx.Response(401, json={"error": "Permission denied"}))
        try:
            with pytest.raises(StoreError) as excinfo:
                await db.get("pages")
        finally:
            await db.aclose()

        assert excinfo.value.status_code == 401
        assert "Permission denied" in excinfo.value.message
        assert not isinstance(excinfo.value, StoreUnavailableError)

    @pytest.mark.asyncio
    async def test_transport_error_maps_to_unavailable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        db = make_db(handler)
        try:
            with pytest.raises(StoreUnavailableError):
                await db.get("pages")
        finally:
            await db.aclose()

    @pytest.mark.asyncio
    async def test_no_retry_by_default(self):
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(1)
            raise httpx.ConnectError("down", request=request)

        db = make_db(handler)
        try:
            with pytest.raises(StoreUnavailableError):
                await db.get("pages")
        finally:
            await db.aclose()

        assert len(attempts) == 1

    @pytest.mark.asyncio
    async def test_retry_when_configured(self):
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(1)
            if len(attempts) < 3:
                raise httpx.ReadTimeout("slow", request=request)
            return httpx.Response(200, json={"ok": True})

        db = make_db(handler, max_attempts=3, min_wait=0, max_wait=0)
        try:
            assert await db.get("pages") == {"ok": True}
        finally:
            await db.aclose()

        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_http_errors_are_not_retried(self):
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(1)
            return httpx.Response(400, json={"error": "Invalid data; couldn't parse JSON object"})

        db = make_db(handler, max_attempts=3)
        try:
            with pytest.raises(StoreError):
                await db.query_equal("pages", "name", "x")
        finally:
            await db.aclose()

        assert len(attempts) == 1

    @pytest.mark.asyncio
    async def test_ping(self):
        ok = make_db(lambda request: httpx.Response(200, json={"p1": True}))
        down = make_db(lambda request: httpx.Response(503, text="unavailable"))
        try:
            assert await ok.ping() is True
            assert await down.ping() is False
        finally:
            await ok.aclose()
            await down.aclose()


class TestPushIds:
    """Tests for PushIdGenerator."""

    def test_length_and_alphabet(self):
        push_id = PushIdGenerator()()
        assert len(push_id) == 20
        assert all(ch.isalnum() or ch in "-_" for ch in push_id)

    def test_ids_sort_by_time(self):
        now = [1_700_000_000.000]
        generate = PushIdGenerator(clock=lambda: now[0])

        ids = []
        for step in range(5):
            ids.append(generate())
            ids.append(generate())  # same millisecond
            now[0] += 0.001 * (step + 1)

        assert ids == sorted(ids)
        assert len(set(ids)) == len(ids)
