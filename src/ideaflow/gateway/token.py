"""Form digest (CSRF token) provider."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

import httpx

from ..config import BackendConfig
from .errors import TokenAcquisitionError


logger = logging.getLogger(__name__)

ODATA_VERBOSE = "application/json;odata=verbose"
CONTEXT_INFO_PATH = "/_api/contextinfo"


@dataclass
class FormDigestProvider:
    """
    Obtains the short-lived form digest required on mutating calls.

    By default a fresh digest is negotiated on every call. Setting
    ``cache_seconds`` reuses a digest for at most that long (and never longer
    than the server-advertised timeout); ``invalidate()`` forces renegotiation.
    """
    backend: BackendConfig
    cache_seconds: float = 0.0
    transport: httpx.AsyncBaseTransport | None = None

    _cached: tuple[str, float] | None = field(default=None, init=False)
    _total_fetched: int = field(default=0, init=False)

    async def acquire_token(self) -> str:
        """
        Return a form digest.

        Raises:
            TokenAcquisitionError: If the endpoint is unreachable, answers
                non-2xx, or returns no digest
        """
        if self.cache_seconds > 0 and self._cached is not None:
            digest, expires_at = self._cached
            if time.monotonic() < expires_at:
                return digest

        url = f"{self.backend.base_url.rstrip('/')}{CONTEXT_INFO_PATH}"
        headers = {
            **self.backend.headers,
            "Accept": ODATA_VERBOSE,
            "Content-Type": ODATA_VERBOSE,
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.backend.timeout,
                transport=self.transport,
            ) as client:
                response = await client.post(url, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Failed to get form digest from {url}: {e}")
            raise TokenAcquisitionError(f"Form digest endpoint unreachable: {e}") from e

        if not response.is_success:
            logger.error(f"Failed to get form digest: HTTP {response.status_code}")
            raise TokenAcquisitionError(
                f"Failed to get form digest: {response.status_code}",
                status=response.status_code,
            )

        try:
            info = response.json()["d"]["GetContextWebInformation"]
            digest = info["FormDigestValue"]
        except (ValueError, KeyError, TypeError) as e:
            raise TokenAcquisitionError(
                "Context info response has no form digest",
                status=response.status_code,
            ) from e

        self._total_fetched += 1

        if self.cache_seconds > 0:
            ttl = self.cache_seconds
            server_timeout = info.get("FormDigestTimeoutSeconds")
            if isinstance(server_timeout, (int, float)) and server_timeout > 0:
                ttl = min(ttl, float(server_timeout))
            self._cached = (digest, time.monotonic() + ttl)

        return digest

    def invalidate(self) -> None:
        """Drop any cached digest so the next call renegotiates."""
        self._cached = None

    @property
    def total_fetched(self) -> int:
        """Number of digests negotiated with the server."""
        return self._total_fetched
