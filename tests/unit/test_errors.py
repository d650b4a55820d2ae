"""Unit tests for the typed error hierarchy."""

import pytest

from erpsync.errors import (
    AuthError,
    DuplicateKeyError,
    NotFoundError,
    RateLimitError,
    RemoteAPIError,
    SyncAPIError,
    error_from_status,
    parse_retry_after,
)


class TestErrorFromStatus:
    """Tests for mapping HTTP status codes to error variants."""

    @pytest.mark.parametrize("status,expected", [
        (429, RateLimitError),
        (404, NotFoundError),
        (409, DuplicateKeyError),
        (401, AuthError),
        (403, AuthError),
        (500, RemoteAPIError),
        (400, RemoteAPIError),
    ])
    def test_variant(self, status, expected):
        """Test each status maps to its error class."""
        error = error_from_status(status, "boom")

        assert isinstance(error, expected)
        assert isinstance(error, SyncAPIError)
        assert error.status_code == status

    def test_rate_limit_keeps_retry_after(self):
        """Test Retry-After is carried on rate limit errors."""
        error = error_from_status(429, "slow down", retry_after=2.5)

        assert error.retry_after == 2.5
        assert str(error) == "slow down"


class TestParseRetryAfter:
    """Tests for reading the Retry-After header."""

    def test_seconds(self):
        assert parse_retry_after("3") == 3.0

    def test_missing(self):
        assert parse_retry_after(None) is None

    def test_http_date_ignored(self):
        """Test HTTP-date values are not interpreted."""
        assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") is None
