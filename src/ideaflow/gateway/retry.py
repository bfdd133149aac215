"""Retry policy for gateway calls."""

from __future__ import annotations

from dataclasses import dataclass

from .errors import GatewayError, HttpStatusError, TokenAcquisitionError

# Client errors that are still worth another attempt
_RETRYABLE_CLIENT_STATUSES = frozenset({408, 429})


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """
    Linear back-off retry policy.

    Attempt N (1-based) waits ``N * base_delay`` seconds before running.
    With the defaults a call is tried at most four times: 1s, 2s, 3s apart.
    """
    max_retries: int = 3
    base_delay: float = 1.0
    retry_client_errors: bool = True

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait before retry number ``attempt``."""
        return attempt * self.base_delay

    def should_retry(self, error: Exception, attempt: int) -> bool:
        """
        Decide whether a failed call gets another attempt.

        Args:
            error: The failure from the last attempt
            attempt: Number of retries already made
        """
        if attempt >= self.max_retries:
            return False
        if not isinstance(error, GatewayError):
            return False
        if self.retry_client_errors:
            return True

        status = error.status if isinstance(error, (HttpStatusError, TokenAcquisitionError)) else None
        if status is not None and 400 <= status < 500:
            return status in _RETRYABLE_CLIENT_STATUSES
        return True
