"""Input validation - rejects unsafe or malformed values before any network call."""

from __future__ import annotations

import re

# Common script-injection patterns
_UNSAFE_PATTERNS = [
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"on\w+\s*=", re.IGNORECASE),
    re.compile(r"<iframe", re.IGNORECASE),
    re.compile(r"<object", re.IGNORECASE),
    re.compile(r"<embed", re.IGNORECASE),
    re.compile(r"expression\s*\(", re.IGNORECASE),
    re.compile(r"vbscript:", re.IGNORECASE),
    re.compile(r"data:text/html", re.IGNORECASE),
]


class ValidationError(Exception):
    """Raised when input is rejected before reaching the backend."""
    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


def is_safe_string(value: str) -> bool:
    """True if the value contains none of the known injection patterns."""
    return not any(pattern.search(value) for pattern in _UNSAFE_PATTERNS)


def require_text(
    field: str,
    value: str | None,
    *,
    min_length: int = 1,
    max_length: int | None = None,
) -> str:
    """
    Validate a required free-text value and return it stripped.

    Raises:
        ValidationError: If missing, too short/long, or unsafe
    """
    if value is None or not value.strip():
        raise ValidationError(field, "This field is required")

    value = value.strip()
    if len(value) < min_length:
        raise ValidationError(field, f"Must be at least {min_length} characters long")
    if max_length is not None and len(value) > max_length:
        raise ValidationError(field, f"Must be no more than {max_length} characters long")
    if not is_safe_string(value):
        raise ValidationError(field, "Input contains potentially unsafe characters")
    return value


def optional_text(field: str, value: str | None, *, max_length: int | None = None) -> str:
    """Validate an optional free-text value; empty input yields ''."""
    if value is None or not value.strip():
        return ""
    return require_text(field, value, max_length=max_length)
