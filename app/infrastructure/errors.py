"""
Exceptions raised by the outgoing HTTP clients and the local cache.
"""
from typing import Optional


class ExternalAPIError(Exception):
    """Custom exception for external API errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code or 502


class CatalogError(ExternalAPIError):
    """The open data catalog failed or returned an unusable payload."""


class BloomStatusClientError(ExternalAPIError):
    """A bloom status request failed; the caller may retry later."""


class RateLimitedError(BloomStatusClientError):
    """The backend rejected a write because the client is over its limit."""

    def __init__(self, retry_after: int, message: Optional[str] = None):
        super().__init__(
            message or f"Rate limit exceeded. Please try again in {retry_after} seconds.",
            status_code=429,
        )
        self.retry_after = retry_after


class CacheWriteError(Exception):
    """The local cache could not persist an entry (e.g. storage full)."""
