"""Secure API client for the list platform's OData REST surface."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import httpx

from ..config import BackendConfig, Config, GatewayConfig
from .errors import (
    GatewayError,
    HttpStatusError,
    MalformedResponseError,
    NetworkError,
)
from .queue import RequestQueue
from .retry import RetryPolicy
from .token import ODATA_VERBOSE, FormDigestProvider


logger = logging.getLogger(__name__)

DIGEST_HEADER = "X-RequestDigest"
METHOD_OVERRIDE_HEADER = "X-HTTP-Method"
MATCH_ANY_ETAG = "*"


@dataclass
class SecureApiClient:
    """
    Authenticated, retried, serialized access to the list platform.

    Every mutating call negotiates a form digest first. Any failure (transport,
    non-2xx, digest, malformed body) is retried by the policy; calls to the
    same URL are chained through the request queue.

    Usage:
        client = SecureApiClient.from_config(Config())
        envelope = await client.get("/_api/web/lists/getbytitle('ideas')/items")
        await client.update("/_api/web/lists/getbytitle('ideas')/items(1)", {"Status": "Approved"})
    """
    backend: BackendConfig = field(default_factory=BackendConfig)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    transport: httpx.AsyncBaseTransport | None = None
    tokens: FormDigestProvider | None = None
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    _policy: RetryPolicy = field(init=False)
    _queue: RequestQueue = field(init=False)
    _stats: dict = field(default_factory=dict, init=False)

    def __post_init__(self):
        self._policy = RetryPolicy(
            max_retries=self.gateway.max_retries,
            base_delay=self.gateway.retry_base_delay,
            retry_client_errors=self.gateway.retry_client_errors,
        )
        self._queue = RequestQueue(spacing=self.gateway.rate_limit_delay, sleep=self.sleep)
        if self.tokens is None:
            self.tokens = FormDigestProvider(
                backend=self.backend,
                cache_seconds=self.gateway.token_cache_seconds,
                transport=self.transport,
            )
        self._stats = {
            "requests": 0,
            "retries": 0,
            "failures": 0,
        }

    @classmethod
    def from_config(
        cls,
        config: Config,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> SecureApiClient:
        """Build a client from the main configuration."""
        return cls(backend=config.backend, gateway=config.gateway, transport=transport)

    # =========================================================================
    # Public operations
    # =========================================================================

    async def get(self, endpoint: str) -> dict[str, Any]:
        """GET an endpoint and return its envelope."""
        return await self._serialized("GET", self._url(endpoint))

    async def create(self, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        """POST a new item."""
        return await self._serialized("POST", self._url(endpoint), body=body)

    async def update(
        self,
        endpoint: str,
        body: dict[str, Any],
        etag: str | None = None,
    ) -> dict[str, Any]:
        """
        Partially update an item (MERGE semantics).

        Args:
            endpoint: Item endpoint
            body: Fields to change
            etag: Concurrency tag; defaults to "*" which skips the version check
        """
        headers = {
            METHOD_OVERRIDE_HEADER: "MERGE",
            "If-Match": etag or MATCH_ANY_ETAG,
        }
        return await self._serialized("POST", self._url(endpoint), body=body, headers=headers)

    async def remove(self, endpoint: str) -> dict[str, Any]:
        """Delete an item."""
        headers = {
            METHOD_OVERRIDE_HEADER: "DELETE",
            "If-Match": MATCH_ANY_ETAG,
        }
        return await self._serialized("POST", self._url(endpoint), headers=headers)

    # =========================================================================
    # Internals
    # =========================================================================

    def _url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.backend.base_url.rstrip('/')}{endpoint}"

    async def _serialized(
        self,
        method: str,
        url: str,
        body: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        async with self._queue.acquire(url):
            return await self._request_with_retry(method, url, body, headers or {})

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        body: dict[str, Any] | None,
        headers: dict[str, str],
    ) -> dict[str, Any]:
        attempt = 0
        while True:
            try:
                return await self._send(method, url, body, headers)
            except GatewayError as e:
                if not self._policy.should_retry(e, attempt):
                    self._stats["failures"] += 1
                    logger.error(f"Request failed after {attempt} retries: {method} {url}: {e}")
                    raise
                attempt += 1
                self._stats["retries"] += 1
                logger.info(
                    f"Request failed, retrying ({attempt}/{self._policy.max_retries}): "
                    f"{method} {url}: {e}"
                )
                await self.sleep(self._policy.delay_for(attempt))

    async def _send(
        self,
        method: str,
        url: str,
        body: dict[str, Any] | None,
        extra_headers: dict[str, str],
    ) -> dict[str, Any]:
        self._stats["requests"] += 1
        headers = {
            "Accept": ODATA_VERBOSE,
            "Content-Type": ODATA_VERBOSE,
            **self.backend.headers,
            **extra_headers,
        }

        if method != "GET":
            headers[DIGEST_HEADER] = await self.tokens.acquire_token()

        content = json.dumps(body).encode() if body is not None else None

        try:
            async with httpx.AsyncClient(
                timeout=self.backend.timeout,
                transport=self.transport,
            ) as client:
                response = await client.request(method, url, headers=headers, content=content)
        except httpx.HTTPError as e:
            raise NetworkError(f"{method} {url} failed: {e}") from e

        if response.status_code in (401, 403):
            self.tokens.invalidate()

        if not response.is_success:
            raise HttpStatusError(response.status_code, response.reason_phrase, url)

        # MERGE and DELETE answer with no content
        if response.status_code == 204 or not response.content:
            return {"d": {}}

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Response from {url} is not JSON") from e

        if not isinstance(data, dict) or "d" not in data:
            raise MalformedResponseError(f"Response from {url} has no 'd' envelope")

        return data

    @property
    def stats(self) -> dict:
        """Gateway statistics."""
        return {
            **self._stats,
            "queue": self._queue.stats,
            "tokens_fetched": self.tokens.total_fetched,
        }
