"""
PageTree CMS — Remote Store Client
==================================

What:  Async client for the hosted key-tree document store, plus the FastAPI
       dependency and lifecycle helpers that hand it to request handlers.
How:   Speaks the store's REST protocol over a pooled httpx.AsyncClient:
       every node is addressable as `{store_url}/{path}.json`.
Who:   Created once in the application lifespan; injected into routes via
       `Depends(get_store)` and passed explicitly into services.

REST mapping:
    get(path)                   GET    /path.json
    query_equal(path, k, v)     GET    /path.json?orderBy="k"&equalTo="v"
    set(path, value)            PUT    /path.json
    update(path, values)        PATCH  /path.json   (multi-location at root)
    push(path, value)           POST   /path.json   → {"name": "<key>"}
    remove(path)                DELETE /path.json

Consistency:
    A single PATCH at the root with keys like "pages/<id>" and "content/<id>"
    is applied atomically by the store. That is the only multi-node write
    guarantee available; separate calls are independent.
"""

import json
import logging
import random
import time
from typing import Any, Callable, Dict, List, Optional, Protocol, Set, Tuple
from urllib.parse import quote

import httpx
from starlette.requests import Request
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from pagetree.config import settings
from pagetree.exceptions import MalformedRequestError, StoreError, StoreUnavailableError

logger = logging.getLogger(__name__)

# Characters the store refuses inside a key
FORBIDDEN_KEY_CHARS = frozenset(".$#[]/")

# Push-id alphabet, in ASCII order so generated keys sort chronologically
PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"


def validate_key(key: str) -> str:
    """
    Check that a single path segment is a legal store key.

    Raises:
        MalformedRequestError: empty key, forbidden character or control char.
    """
    if not key:
        raise MalformedRequestError(message="Empty key in store path", field="path")
    bad = [ch for ch in key if ch in FORBIDDEN_KEY_CHARS or ord(ch) < 32 or ord(ch) == 127]
    if bad:
        raise MalformedRequestError(
            message=f"Key '{key}' contains characters the store does not accept",
            field="path",
            context={"key": key},
        )
    return key


def split_path(path: str) -> List[str]:
    """Split a slash-separated store path into validated segments ("" is the root)."""
    segments = [segment for segment in path.strip("/").split("/") if segment != ""]
    return [validate_key(segment) for segment in segments]


def join_path(*parts: str) -> str:
    """Join path parts with '/', validating each resulting segment."""
    return "/".join(split_path("/".join(part for part in parts if part)))


class PushIdGenerator:
    """
    Generates 20-character, chronologically sortable keys.

    Layout: 8 characters of millisecond timestamp followed by 12 random
    characters. Two ids minted within the same millisecond reuse the random
    part incremented by one, so ordering holds inside a millisecond too.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._last_ms = -1
        self._last_rand: List[int] = [0] * 12

    def __call__(self) -> str:
        now = int(self._clock() * 1000)
        duplicate = now == self._last_ms
        self._last_ms = now

        ts_chars = []
        for _ in range(8):
            ts_chars.append(PUSH_CHARS[now % 64])
            now //= 64
        timestamp = "".join(reversed(ts_chars))

        if not duplicate:
            self._last_rand = [random.randrange(64) for _ in range(12)]
        else:
            i = 11
            while i >= 0 and self._last_rand[i] == 63:
                self._last_rand[i] = 0
                i -= 1
            if i >= 0:
                self._last_rand[i] += 1

        return timestamp + "".join(PUSH_CHARS[n] for n in self._last_rand)


generate_push_id = PushIdGenerator()


class StoreClient(Protocol):
    """Interface shared by RealtimeDatabase and in-memory test doubles."""

    async def get(self, path: str) -> Any:
        ...

    async def query_equal(self, path: str, child: str, value: Any) -> Dict[str, Any]:
        ...

    async def set(self, path: str, value: Any) -> None:
        ...

    async def update(self, path: str, values: Dict[str, Any]) -> None:
        ...

    async def push(self, path: str, value: Any) -> str:
        ...

    async def remove(self, path: str) -> None:
        ...

    async def ping(self) -> bool:
        ...


class RealtimeDatabase:
    """
    REST client for the remote key-tree store.

    Error mapping:
        httpx transport errors / timeouts → StoreUnavailableError
        non-2xx responses                 → StoreError (with status_code)

    Retry:
        Only StoreUnavailableError is retried, up to `max_attempts` total
        attempts with exponential backoff and jitter. With the default of a
        single attempt the first failure propagates immediately.
    """

    def __init__(
        self,
        base_url: str,
        auth_token: str = "",
        timeout: float = 10.0,
        max_attempts: int = 1,
        min_wait: int = 1,
        max_wait: int = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self.max_attempts = max_attempts
        self.min_wait = min_wait
        self.max_wait = max_wait
        self._unindexed: Set[Tuple[str, str]] = set()
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    # ── Public API ────────────────────────────────────────────────────────

    async def get(self, path: str, shallow: bool = False) -> Any:
        """Read the value at `path`; None when the node does not exist."""
        params = {"shallow": "true"} if shallow else None
        return await self._request("GET", path, params=params)

    async def query_equal(self, path: str, child: str, value: Any) -> Dict[str, Any]:
        """
        Children of `path` whose `child` field equals `value`.

        The store expects both query parameters JSON-encoded, so a string
        value travels as `"value"` including the quotes. Server-side matching
        needs an `.indexOn` rule for `child`; without one the store answers
        400 "Index not defined" and the whole node is read and filtered here
        instead. Such paths are remembered and skip the indexed query later.

        Returns:
            Mapping of key → record; empty when nothing matches.
        """
        index = (path, child)
        if index not in self._unindexed:
            params = {"orderBy": json.dumps(child), "equalTo": json.dumps(value)}
            try:
                result = await self._request("GET", path, params=params)
                return result or {}
            except StoreError as e:
                if not _is_missing_index(e):
                    raise
                logger.warning(
                    "No .indexOn \"%s\" rule at %s; filtering client-side", child, path or "/"
                )
                self._unindexed.add(index)

        return filter_equal(await self._request("GET", path), child, value)

    async def set(self, path: str, value: Any) -> None:
        """Replace the node at `path`."""
        await self._request("PUT", path, body=value)

    async def update(self, path: str, values: Dict[str, Any]) -> None:
        """
        Merge `values` into the node at `path`.

        Keys may themselves be slash-separated paths; a None value deletes
        that child. All keys are applied in one atomic write.
        """
        for key in values:
            split_path(key)
        await self._request("PATCH", path, body=values)

    async def push(self, path: str, value: Any) -> str:
        """Append `value` under a store-generated key and return the key."""
        result = await self._request("POST", path, body=value)
        return result["name"]

    async def remove(self, path: str) -> None:
        """Delete the node at `path`. Deleting a missing node is not an error."""
        await self._request("DELETE", path)

    async def ping(self) -> bool:
        """Lightweight reachability probe used by the health route."""
        try:
            await self.get("pages", shallow=True)
            return True
        except StoreError as e:
            logger.warning("Store ping failed: %s", e.message)
            return False

    async def aclose(self) -> None:
        """Close the pooled HTTP connections."""
        await self._client.aclose()

    # ── Internals ─────────────────────────────────────────────────────────

    def url_for(self, path: str) -> str:
        segments = split_path(path)
        encoded = "/".join(quote(segment, safe="") for segment in segments)
        return f"{self.base_url}/{encoded}.json"

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        body: Any = None,
    ) -> Any:
        url = self.url_for(path)
        query = dict(params or {})
        if self.auth_token:
            query["auth"] = self.auth_token

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(min=self.min_wait, max=self.max_wait)
            + wait_random(0, min(1, self.max_wait)),
            retry=retry_if_exception_type(StoreUnavailableError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                return await self._send(method, url, path, query, body)

    async def _send(
        self,
        method: str,
        url: str,
        path: str,
        query: Dict[str, str],
        body: Any,
    ) -> Any:
        start_time = time.perf_counter()
        kwargs: Dict[str, Any] = {"params": query or None}
        if method in ("PUT", "PATCH", "POST"):
            kwargs["json"] = body

        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning("Store %s %s timed out: %s", method, path or "/", str(e))
            raise StoreUnavailableError(
                message="The data store did not respond in time",
                context={"method": method, "path": path, "error_type": type(e).__name__},
            )
        except httpx.TransportError as e:
            logger.warning("Store %s %s failed: %s", method, path or "/", str(e))
            raise StoreUnavailableError(
                context={"method": method, "path": path, "error_type": type(e).__name__},
            )

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            "Store %s %s → %d in %.1fms",
            method,
            path or "/",
            response.status_code,
            duration_ms,
        )

        if response.is_error:
            detail = _error_detail(response)
            raise StoreError(
                message=f"Store {method} {path or '/'} failed: {detail}",
                status_code=response.status_code,
                context={"method": method, "path": path},
            )

        if not response.content:
            return None
        return response.json()


def _is_missing_index(error: StoreError) -> bool:
    return error.status_code == 400 and "Index not defined" in error.message


def filter_equal(node: Any, child: str, value: Any) -> Dict[str, Any]:
    """
    Children of `node` whose `child` field equals `value`.

    Array-shaped nodes (integer keys) are keyed by their index.
    """
    if isinstance(node, list):
        node = {str(i): record for i, record in enumerate(node) if record is not None}
    if not isinstance(node, dict):
        return {}
    return {
        key: record
        for key, record in node.items()
        if isinstance(record, dict) and record.get(child) == value
    }


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(payload, dict) and "error" in payload:
        return str(payload["error"])
    return response.text


# ── Dependency & Lifecycle Helpers ────────────────────────────────────────

def create_store() -> RealtimeDatabase:
    """Build a store client from the application settings."""
    return RealtimeDatabase(
        base_url=settings.store_url,
        auth_token=settings.store_auth_token,
        timeout=settings.store_timeout_seconds,
        max_attempts=settings.store_retry_attempts,
        min_wait=settings.store_retry_min_wait,
        max_wait=settings.store_retry_max_wait,
    )


def get_store(request: Request) -> StoreClient:
    """
    FastAPI dependency returning the application's store client.

    Example usage in a route:
        @router.get("/pages/{page_name}")
        async def view_page(page_name: str, store: StoreClient = Depends(get_store)):
            page = await page_service.get_page_by_name(store, page_name)
    """
    return request.app.state.store


async def close_store(store: StoreClient) -> None:
    """
    What:  Closes the store's connection pool.
    When:  Called during application shutdown (lifespan handler).
    """
    aclose = getattr(store, "aclose", None)
    if aclose is not None:
        await aclose()
