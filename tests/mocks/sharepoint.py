"""
In-memory list platform for tests.

Serves the slice of the OData REST surface the client uses (context info,
list items, current user, site groups) through ``httpx.MockTransport``, records
every request, and can be told to fail upcoming calls.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

import httpx

BASE_URL = "https://sp.test/sites/ideas"

_ITEMS_PATH = re.compile(r"/_api/web/lists/getbytitle\('([^']+)'\)/items(?:\((\d+)\))?$")
_GROUP_USERS_PATH = re.compile(r"/_api/web/sitegroups/getbyname\('(.+)'\)/users$")

THREAD_CONTENT_TYPE_ID = "0x012002004A0E6C0B1C3B4B4E8C2D7F1A9B3C5D6E"


@dataclass
class Failure:
    """A scripted failure for the next matching calls."""
    remaining: int
    status: int | None = None
    error: type[httpx.HTTPError] | None = None
    body: bytes | None = None
    match: Callable[[httpx.Request], bool] | None = None


@dataclass
class FakeSharePoint:
    """Fake backend; pass ``transport()`` to the client under test."""
    digest_prefix: str = "digest"
    digest_timeout: int = 1800
    current_user: dict[str, Any] = field(
        default_factory=lambda: {"Id": 7, "Title": "Ada Approver", "Email": "ada@example.com"}
    )

    lists: dict[str, dict[int, dict[str, Any]]] = field(default_factory=dict)
    groups: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    user_groups: list[str] = field(default_factory=list)
    requests: list[httpx.Request] = field(default_factory=list)
    issued_digests: list[str] = field(default_factory=list)
    failures: list[Failure] = field(default_factory=list)
    _next_id: int = 1

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    # =========================================================================
    # Test helpers
    # =========================================================================

    def add_item(self, list_name: str, **fields: Any) -> dict[str, Any]:
        """Seed an item; returns the stored dict."""
        item_id = fields.pop("ID", None) or self._allocate_id()
        self._next_id = max(self._next_id, item_id + 1)
        now = datetime.now(timezone.utc).isoformat()
        item = {"ID": item_id, "Id": item_id, "Created": now, "Modified": now, **fields}
        self.lists.setdefault(list_name, {})[item_id] = item
        return item

    def items(self, list_name: str) -> list[dict[str, Any]]:
        return list(self.lists.get(list_name, {}).values())

    def fail_next(
        self,
        times: int = 1,
        status: int | None = 500,
        error: type[httpx.HTTPError] | None = None,
        body: bytes | None = None,
        match: Callable[[httpx.Request], bool] | None = None,
    ) -> None:
        """Make the next ``times`` matching calls fail with a status, transport error or raw body."""
        self.failures.append(Failure(times, status, error, body, match))

    def calls(self, method: str | None = None, path_contains: str = "") -> list[httpx.Request]:
        """Recorded requests, optionally by wire method (MERGE/DELETE count as such)."""
        return [
            r for r in self.requests
            if (method is None or wire_method(r) == method) and path_contains in r.url.path
        ]

    # =========================================================================
    # Request handling
    # =========================================================================

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        for failure in self.failures:
            if failure.remaining > 0 and (failure.match is None or failure.match(request)):
                failure.remaining -= 1
                if failure.error is not None:
                    raise failure.error("scripted failure", request=request)
                if failure.body is not None:
                    return httpx.Response(200, content=failure.body)
                return httpx.Response(failure.status, json={"error": "scripted failure"})

        path = request.url.path.removeprefix(httpx.URL(BASE_URL).path)

        if path == "/_api/contextinfo":
            return self._context_info(request)

        if request.method != "GET" and request.headers.get("X-RequestDigest") not in self.issued_digests:
            return httpx.Response(403, json={"error": "invalid form digest"})

        if path == "/_api/web/currentuser":
            return _envelope(self.current_user)
        if path == "/_api/web/currentuser/Groups" or re.search(r"/GetUserById\(\d+\)/Groups$", path):
            return _envelope({"results": [{"Title": g} for g in self.user_groups]})

        group = _GROUP_USERS_PATH.search(path)
        if group:
            name = group.group(1).replace("''", "'")
            if name not in self.groups:
                return httpx.Response(404, json={"error": "group not found"})
            return _envelope({"results": self.groups[name]})

        match = _ITEMS_PATH.search(path)
        if not match:
            return httpx.Response(404, json={"error": f"no route for {path}"})

        list_name, item_id = match.group(1), match.group(2)
        store = self.lists.setdefault(list_name, {})

        if item_id is None:
            if request.method == "GET":
                rows = [i for i in store.values() if _matches(i, request.url.params.get("$filter", ""))]
                return _envelope({"results": rows})
            return self._create(list_name, request)

        item = store.get(int(item_id))
        if item is None:
            return httpx.Response(404, json={"error": "item not found"})

        method = wire_method(request)
        if method == "GET":
            return _envelope(item)
        if method == "MERGE":
            item.update(_fields(request))
            item["Modified"] = datetime.now(timezone.utc).isoformat()
            return httpx.Response(204)
        if method == "DELETE":
            del store[int(item_id)]
            return httpx.Response(200)
        return httpx.Response(405)

    def _context_info(self, request: httpx.Request) -> httpx.Response:
        digest = f"{self.digest_prefix}-{len(self.issued_digests) + 1}"
        self.issued_digests.append(digest)
        return _envelope({
            "GetContextWebInformation": {
                "FormDigestValue": digest,
                "FormDigestTimeoutSeconds": self.digest_timeout,
            }
        })

    def _create(self, list_name: str, request: httpx.Request) -> httpx.Response:
        fields = _fields(request)
        if list_name.endswith("discussions"):
            fields.setdefault("ContentTypeId", THREAD_CONTENT_TYPE_ID)
            fields.setdefault("Author", self.current_user)
        item = self.add_item(list_name, **fields)
        return httpx.Response(201, json={"d": item})

    def _allocate_id(self) -> int:
        item_id = self._next_id
        self._next_id += 1
        return item_id


def wire_method(request: httpx.Request) -> str:
    return request.headers.get("X-HTTP-Method", request.method)


def request_json(request: httpx.Request) -> dict[str, Any]:
    return json.loads(request.content) if request.content else {}


def _fields(request: httpx.Request) -> dict[str, Any]:
    body = request_json(request)
    body.pop("__metadata", None)
    return body


def _envelope(payload: Any) -> httpx.Response:
    return httpx.Response(200, json={"d": payload})


def _matches(item: dict[str, Any], odata_filter: str) -> bool:
    """Evaluate the handful of filter shapes the client emits."""
    for name, value in re.findall(r"([\w/]+) eq (\d+)", odata_filter):
        key = name.replace("/Id", "Id") if name.endswith("/Id") else name
        if item.get(key) != int(value):
            return False
    for name, value in re.findall(r"([\w/]+) eq '([^']*)'", odata_filter):
        if item.get(name) != value:
            return False
    prefixes = re.findall(r"startswith\(ContentTypeId,'([^']+)'\)", odata_filter)
    if prefixes and not str(item.get("ContentTypeId", "")).startswith(tuple(prefixes)):
        return False
    return True
