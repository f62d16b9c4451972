"""
Shared pytest fixtures for all tests.

This module provides common fixtures including:
- A controllable clock
- Settings pointing at a throwaway SQLite database
- Database, store and FastAPI test client
- Sample catalog records
- Mock bloom status and catalog clients
"""
import pytest
from types import SimpleNamespace
from typing import Any, Optional
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient
from limits.storage import memory as limits_memory

from app.config import Settings
from app.domain.models import NeighborhoodStats
from app.infrastructure.bloom_status_client import BloomStatusClient
from app.infrastructure.bloom_status_store import BloomStatusStore
from app.infrastructure.database import Database
from app.infrastructure.local_cache import LocalCache
from app.infrastructure.open_data_client import OpenDataClient
from app.main import create_app
from app.services.domain.rate_limiter import SlidingWindowRateLimiter


class FakeClock:
    """Clock whose time only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_catalog_record(
    tree_id: Any,
    street: Optional[str],
    neighborhood: Optional[str],
    lat: Any = 49.25,
    lon: Any = -123.1,
) -> dict:
    """Build a raw record shaped like the public trees catalog."""
    record = {
        "tree_id": tree_id,
        "std_street": street,
        "genus_name": "PRUNUS",
        "species_name": "SERRULATA",
        "common_name": "KWANZAN FLOWERING CHERRY",
        "neighbourhood_name": neighborhood,
    }
    if lat is not None or lon is not None:
        record["geo_point_2d"] = {"lat": lat, "lon": lon}
    return record


# ============================================================
# Clock Fixtures
# ============================================================

@pytest.fixture
def fake_clock() -> FakeClock:
    """A clock frozen at t=1000s."""
    return FakeClock()


# ============================================================
# Settings & Database Fixtures
# ============================================================

@pytest.fixture
def app_settings(tmp_path) -> Settings:
    """Settings backed by a SQLite file in a temporary directory."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'bloom_status.db'}",
        database_auto_create=True,
        request_timeout_seconds=2.0,
        stats_statement_timeout_ms=2000,
        cache_path="",
    )


@pytest.fixture
async def database(app_settings):
    """An initialised database that is disposed after the test."""
    db = Database(app_settings.database_url, echo=False)
    await db.init_db()
    yield db
    await db.close()


@pytest.fixture
def store(database) -> BloomStatusStore:
    """Bloom status store on the temporary database."""
    return BloomStatusStore(database, stats_timeout_ms=2000)


# ============================================================
# FastAPI Test Client Fixtures
# ============================================================

@pytest.fixture
def limits_clock(monkeypatch, fake_clock) -> FakeClock:
    """Make the in-memory rate limit storage read time from the fake clock."""
    monkeypatch.setattr(limits_memory, "time", SimpleNamespace(time=fake_clock))
    return fake_clock


@pytest.fixture
def rate_limiter(limits_clock) -> SlidingWindowRateLimiter:
    """Rate limiter with the default 20 writes / 60s driven by the fake clock."""
    return SlidingWindowRateLimiter(max_requests=20, window_seconds=60, clock=limits_clock)


@pytest.fixture
def test_app(app_settings, rate_limiter):
    """Application wired to the temporary database and fake-clock limiter."""
    return create_app(app_settings, rate_limiter=rate_limiter)


@pytest.fixture
def test_client(test_app):
    """Synchronous test client with the application lifespan running."""
    with TestClient(test_app) as client:
        yield client
    test_app.dependency_overrides.clear()


# ============================================================
# Client-side Fixtures
# ============================================================

@pytest.fixture
def memory_cache(fake_clock) -> LocalCache:
    """In-memory local cache driven by the fake clock."""
    return LocalCache(path=None, ttl_seconds=24 * 60 * 60, clock=fake_clock)


@pytest.fixture
def mock_bloom_client():
    """Bloom status client mock with nothing reported anywhere."""
    client = AsyncMock(spec=BloomStatusClient)
    client.get_neighborhood_stats.return_value = NeighborhoodStats()
    client.get_recent_reports.return_value = []
    client.get_status.return_value = None
    return client


@pytest.fixture
def mock_catalog():
    """Catalog client mock returning no records."""
    catalog = AsyncMock(spec=OpenDataClient)
    catalog.fetch_genus_trees.return_value = ([], False)
    catalog.fetch_neighborhood_trees.return_value = []
    return catalog
