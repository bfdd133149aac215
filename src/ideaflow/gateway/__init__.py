"""Secure gateway - form digests, retry, and per-resource serialization."""

from .client import SecureApiClient
from .errors import (
    GatewayError,
    HttpStatusError,
    MalformedResponseError,
    NetworkError,
    TokenAcquisitionError,
)
from .queue import RequestQueue
from .retry import RetryPolicy
from .token import FormDigestProvider

__all__ = [
    "SecureApiClient",
    "FormDigestProvider",
    "RequestQueue",
    "RetryPolicy",
    "GatewayError",
    "HttpStatusError",
    "MalformedResponseError",
    "NetworkError",
    "TokenAcquisitionError",
]
