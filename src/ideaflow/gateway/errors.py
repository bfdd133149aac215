"""Gateway exceptions."""

from __future__ import annotations


class GatewayError(Exception):
    """Base exception for gateway errors."""
    pass


class TokenAcquisitionError(GatewayError):
    """Raised when a form digest could not be obtained."""
    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class NetworkError(GatewayError):
    """Raised when the transport fails (connection refused, timeout, reset)."""
    pass


class HttpStatusError(GatewayError):
    """Raised when the backend answers with a non-2xx status."""
    def __init__(self, status: int, reason: str = "", url: str = ""):
        super().__init__(f"HTTP {status}: {reason}".rstrip(": "))
        self.status = status
        self.reason = reason
        self.url = url


class MalformedResponseError(GatewayError):
    """Raised when a response body is not the expected {"d": ...} envelope."""
    pass
