"""
Dependency injection for FastAPI.
"""
from typing import Annotated
from fastapi import Depends, Request
from slowapi.util import get_remote_address

from app.config import Settings
from app.infrastructure.bloom_status_store import BloomStatusStore
from app.services.domain.rate_limiter import SlidingWindowRateLimiter


class WriteRateLimitExceeded(Exception):
    """A client sent more writes than its window allows."""

    def __init__(self, retry_after: int):
        super().__init__(f"Rate limit exceeded, retry after {retry_after}s")
        self.retry_after = retry_after


def get_app_settings(request: Request) -> Settings:
    """
    Dependency factory for the settings of the running application.

    Returns:
        Settings instance
    """
    return request.app.state.settings


def get_bloom_status_store(request: Request) -> BloomStatusStore:
    """
    Dependency factory for BloomStatusStore.

    The store is created once per application during startup.

    Returns:
        BloomStatusStore instance
    """
    return request.app.state.bloom_status_store


def get_rate_limiter(request: Request) -> SlidingWindowRateLimiter:
    """
    Dependency factory for the write rate limiter.

    Returns:
        SlidingWindowRateLimiter instance shared by the whole process
    """
    return request.app.state.rate_limiter


async def enforce_write_rate_limit(
    request: Request,
    limiter: Annotated[SlidingWindowRateLimiter, Depends(get_rate_limiter)],
) -> None:
    """
    Count a write request against the client's window.

    Raises:
        WriteRateLimitExceeded: If the client is over its limit
    """
    decision = limiter.hit(get_remote_address(request))
    if not decision.allowed:
        raise WriteRateLimitExceeded(decision.retry_after)


# Type aliases for cleaner route signatures
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
BloomStatusStoreDep = Annotated[BloomStatusStore, Depends(get_bloom_status_store)]
