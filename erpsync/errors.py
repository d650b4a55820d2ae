"""Typed errors raised by the remote clients and the contact store.

The retry policy and the upsert coordinator match on these classes
instead of inspecting raw status codes.
"""

from typing import Optional


class SyncAPIError(Exception):
    """Base exception for remote platform and contact store errors."""

    status_code: Optional[int] = None

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class RateLimitError(SyncAPIError):
    """Raised when the remote platform answers 429 Too Many Requests."""

    status_code = 429

    def __init__(self, message: str = "Rate limit exceeded", retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class NotFoundError(SyncAPIError):
    """Raised when a remote resource does not exist."""

    status_code = 404


class DuplicateKeyError(SyncAPIError):
    """Raised when a write violates a uniqueness constraint."""

    status_code = 409


class AuthError(SyncAPIError):
    """Raised when credentials are rejected."""

    status_code = 401


class RemoteAPIError(SyncAPIError):
    """Any other remote failure (5xx, unexpected 4xx, transport errors)."""


class ContactValidationError(SyncAPIError):
    """Raised when the contact store rejects the data of a write."""

    status_code = 400


def error_from_status(
    status_code: int,
    message: str,
    retry_after: Optional[float] = None,
) -> SyncAPIError:
    """Build the error variant matching an HTTP status code."""
    if status_code == 429:
        return RateLimitError(message, retry_after=retry_after)
    if status_code == 404:
        return NotFoundError(message)
    if status_code == 409:
        return DuplicateKeyError(message)
    if status_code in (401, 403):
        return AuthError(message, status_code=status_code)
    return RemoteAPIError(message, status_code=status_code)


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Read a Retry-After header given in seconds."""
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None
